"""
The catalog store: durable users, albums (with their tracks) and purchases on
top of a key-value backend, plus the derived library views.
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from melodymarket.exceptions import CatalogError, StorageReadError, StorageWriteError
from melodymarket.models.catalog import Album, Purchase, Track, User, utc_now
from melodymarket.models.config import DEFAULT_NAMESPACE
from melodymarket.utils.structured_logger import CatalogLogger, StructuredLogger

from .backend import KeyValueBackend
from .seed import (
    SAMPLE_DOWNLOADED_ALBUMS,
    SAMPLE_PURCHASED_ALBUMS,
    sample_albums,
    sample_purchases,
)

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]
IdGenerator = Callable[[], str]

ModelT = TypeVar("ModelT", bound=BaseModel)

ALL_GENRES = "All"


class TimestampIdGenerator:
    """
    Millisecond-timestamp ids. Two ids requested within the same millisecond
    are still distinct and increasing.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0

    def __call__(self) -> str:
        now = int(self._clock() * 1000)
        self._last = max(now, self._last + 1)
        return str(self._last)


class CatalogStore:
    """
    Reads and writes catalog records under a namespaced set of keys.

    Every read degrades to an empty or absent result when the stored value is
    unreadable or malformed; writes raise StorageWriteError. Read-modify-write
    operations on the same record are serialized within one store instance.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        namespace: str = DEFAULT_NAMESPACE,
        clock: Clock = utc_now,
        id_generator: IdGenerator | None = None,
        logger: CatalogLogger | None = None,
    ):
        """
        Args:
            backend: Where the JSON values live.
            namespace: Prefix for every key (``<ns>_user``, ``<ns>_albums``...).
            clock: Returns the current aware datetime (injectable for tests).
            id_generator: Produces ids for users and purchases.
            logger: Receiver of structured catalog events.
        """
        self.backend = backend
        self.namespace = namespace
        self._clock = clock
        self._id_generator = id_generator or TimestampIdGenerator()
        self._events = logger or CatalogLogger(StructuredLogger("melodymarket.events"))

        self.initialized_key = f"{namespace}_initialized"
        self.user_key = f"{namespace}_user"
        self.albums_key = f"{namespace}_albums"
        self.purchases_key = f"{namespace}_purchases"

        self._user_lock = asyncio.Lock()
        self._albums_lock = asyncio.Lock()
        self._purchases_lock = asyncio.Lock()

    def new_id(self) -> str:
        """A fresh id from the store's generator, for records built by callers."""
        return self._id_generator()

    def now(self) -> datetime:
        """The current time from the store's clock, for records built by callers."""
        return self._clock()

    # -------------------------------------------------------------------------
    # Raw (de)serialization
    # -------------------------------------------------------------------------

    async def _read_json(self, key: str) -> Any | None:
        try:
            raw = await self.backend.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except (StorageReadError, json.JSONDecodeError) as e:
            log.error(f"Error reading '{key}': {e}")
            self._events.read_failed(key, str(e))
            return None

    async def _read_model(self, key: str, model: type[ModelT]) -> ModelT | None:
        data = await self._read_json(key)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            log.error(f"Malformed {model.__name__} stored under '{key}': {e}")
            self._events.read_failed(key, f"invalid {model.__name__}")
            return None

    async def _read_list(self, key: str, model: type[ModelT]) -> list[ModelT]:
        data = await self._read_json(key)
        if data is None:
            return []
        try:
            return TypeAdapter(list[model]).validate_python(data)
        except PydanticValidationError as e:
            log.error(f"Malformed {model.__name__} list stored under '{key}': {e}")
            self._events.read_failed(key, f"invalid {model.__name__} list")
            return []

    async def _write(self, key: str, value: Any) -> None:
        await self.backend.set(key, json.dumps(value, ensure_ascii=False))

    async def _write_user(self, user: User) -> None:
        await self._write(self.user_key, user.to_storage())

    async def _write_albums(self, albums: list[Album]) -> None:
        await self._write(self.albums_key, [a.to_storage() for a in albums])

    async def _write_purchases(self, purchases: list[Purchase]) -> None:
        await self._write(self.purchases_key, [p.to_storage() for p in purchases])

    async def _write_user_or_restore_ledger(
        self, user: User, previous_ledger: list[Purchase]
    ) -> None:
        """
        Writes the user after a ledger append. If that write fails the ledger
        is put back to ``previous_ledger`` so neither record changes.
        Callers hold both the purchases and the user lock.
        """
        try:
            await self._write_user(user)
        except StorageWriteError:
            log.error(
                f"Could not save user '{user.id}'; restoring the purchase ledger."
            )
            await self._write_purchases(previous_ledger)
            raise

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Seeds the sample catalog on the very first run. Later calls do nothing.
        Albums already present are kept; only missing sample ids are added.
        """
        async with self._albums_lock:
            if await self._read_json(self.initialized_key) is not None:
                return

            existing = await self._read_list(self.albums_key, Album)
            existing_ids = {album.id for album in existing}
            seeds = [
                album
                for album in sample_albums(self._clock())
                if album.id not in existing_ids
            ]
            await self._write_albums(existing + seeds)
            await self.backend.set(self.initialized_key, "true")

        log.debug(f"Seeded {len(seeds)} sample albums into '{self.namespace}'.")
        self._events.catalog_seeded(self.namespace, len(seeds))

    async def is_initialized(self) -> bool:
        """True once ``initialize`` has seeded this namespace."""
        return await self._read_json(self.initialized_key) is not None

    async def reset(self) -> int:
        """Deletes every key in this namespace. Returns how many were removed."""
        own_keys = {
            self.initialized_key,
            self.user_key,
            self.albums_key,
            self.purchases_key,
        }
        keys = [k for k in await self.backend.keys(self.namespace) if k in own_keys]
        for key in keys:
            await self.backend.delete(key)
        log.info(f"Removed {len(keys)} stored entries from '{self.namespace}'.")
        return len(keys)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def get_current_user(self) -> User | None:
        return await self._read_model(self.user_key, User)

    async def save_user(self, user: User) -> None:
        """Overwrites the stored user record."""
        async with self._user_lock:
            await self._write_user(user)

    async def set_current_user(
        self,
        name: str,
        email: str,
        is_artist: bool = False,
        *,
        with_sample_data: bool = True,
    ) -> User:
        """
        Creates and stores a new current user.

        With ``with_sample_data`` (the default, for the first-run demo) the
        account is passed through ``seed_sample_account``. Real onboarding
        should pass False and start with empty lists.
        """
        user = User(
            id=self._id_generator(),
            name=name,
            email=email,
            is_artist=is_artist,
            balance=0.0,
            created_at=self._clock(),
        )
        async with self._user_lock:
            await self._write_user(user)
        self._events.user_created(user.id, user.name, with_sample_data)

        if with_sample_data:
            user = await self.seed_sample_account(user)
        return user

    async def seed_sample_account(self, user: User) -> User:
        """
        Gives ``user`` the demo purchases (albums 1 and 2, album 1 downloaded)
        and appends the matching backdated ledger rows.
        """
        now = self._clock()
        seeded = user.model_copy(
            update={
                "purchased_albums": list(
                    dict.fromkeys([*user.purchased_albums, *SAMPLE_PURCHASED_ALBUMS])
                ),
                "downloaded_albums": list(
                    dict.fromkeys(
                        [*user.downloaded_albums, *SAMPLE_DOWNLOADED_ALBUMS]
                    )
                ),
            }
        )
        purchase_ids = [self._id_generator() for _ in SAMPLE_PURCHASED_ALBUMS]
        async with self._purchases_lock:
            ledger = await self._read_list(self.purchases_key, Purchase)
            await self._write_purchases(
                [*ledger, *sample_purchases(seeded.id, purchase_ids, now)]
            )
            async with self._user_lock:
                await self._write_user_or_restore_ledger(seeded, ledger)
        return seeded

    async def toggle_artist_mode(self) -> User:
        """Flips the current user's artist flag and returns the saved user."""
        async with self._user_lock:
            user = await self.get_current_user()
            if user is None:
                raise CatalogError("No current user. Sign up first.")
            user.is_artist = not user.is_artist
            await self._write_user(user)
        log.info(f"Artist mode {'enabled' if user.is_artist else 'disabled'}.")
        return user

    # -------------------------------------------------------------------------
    # Albums
    # -------------------------------------------------------------------------

    async def get_albums(self) -> list[Album]:
        return await self._read_list(self.albums_key, Album)

    async def get_album(self, album_id: str) -> Album | None:
        return next((a for a in await self.get_albums() if a.id == album_id), None)

    async def save_album(self, album: Album) -> None:
        """Upserts by id: replaces the matching album in place or appends it."""
        async with self._albums_lock:
            albums = await self._read_list(self.albums_key, Album)
            index = next((i for i, a in enumerate(albums) if a.id == album.id), None)
            if index is None:
                albums.append(album)
            else:
                albums[index] = album
            await self._write_albums(albums)
        self._events.album_saved(
            album.id, album.title, len(album.tracks), replaced=index is not None
        )

    async def find_track(self, track_id: str) -> tuple[Album, Track] | None:
        """Finds a track anywhere in the catalog, with the album that owns it."""
        for album in await self.get_albums():
            if (track := album.find_track(track_id)) is not None:
                return album, track
        return None

    async def get_genres(self) -> list[str]:
        """Distinct genres in catalog order."""
        return list(dict.fromkeys(a.genre for a in await self.get_albums() if a.genre))

    async def get_albums_by_genre(self, genre: str) -> list[Album]:
        albums = await self.get_albums()
        if genre == ALL_GENRES:
            return albums
        return [a for a in albums if a.genre.casefold() == genre.casefold()]

    async def get_artist_albums(self, artist_id: str) -> list[Album]:
        return [a for a in await self.get_albums() if a.artist_id == artist_id]

    # -------------------------------------------------------------------------
    # Purchases and the user's library
    # -------------------------------------------------------------------------

    async def get_purchases(self) -> list[Purchase]:
        return await self._read_list(self.purchases_key, Purchase)

    async def save_purchase(self, purchase: Purchase) -> None:
        """
        Appends to the ledger, then adds the album to the current user's
        purchased list. Repeat purchases of one album append its id again.
        """
        repeat = False
        async with self._purchases_lock:
            ledger = await self._read_list(self.purchases_key, Purchase)
            await self._write_purchases([*ledger, purchase])

            async with self._user_lock:
                user = await self.get_current_user()
                if user is not None:
                    repeat = purchase.album_id in user.purchased_albums
                    user.purchased_albums = [*user.purchased_albums, purchase.album_id]
                    await self._write_user_or_restore_ledger(user, ledger)
                else:
                    log.warning(
                        f"Purchase '{purchase.id}' recorded without a current user."
                    )
        self._events.purchase_recorded(
            purchase.id, purchase.album_id, purchase.price, repeat
        )

    async def purchase_album(self, album_id: str) -> Purchase:
        """Buys an album for the current user at its listed price."""
        user = await self.get_current_user()
        if user is None:
            raise CatalogError("No current user. Sign up first.")
        album = await self.get_album(album_id)
        if album is None:
            raise CatalogError(f"Album '{album_id}' does not exist.")

        purchase = Purchase(
            id=self._id_generator(),
            user_id=user.id,
            album_id=album.id,
            purchase_date=self._clock(),
            price=album.price,
        )
        await self.save_purchase(purchase)
        return purchase

    async def get_user_purchased_albums(self) -> list[Album]:
        user = await self.get_current_user()
        if user is None or not user.purchased_albums:
            return []
        owned = set(user.purchased_albums)
        return [a for a in await self.get_albums() if a.id in owned]

    async def get_user_downloaded_albums(self) -> list[Album]:
        user = await self.get_current_user()
        if user is None or not user.downloaded_albums:
            return []
        downloaded = set(user.downloaded_albums)
        return [a for a in await self.get_albums() if a.id in downloaded]

    async def mark_album_as_downloaded(self, album_id: str) -> None:
        """Adds the album to the downloaded list once. Repeat calls do nothing."""
        async with self._user_lock:
            user = await self.get_current_user()
            if user is None:
                log.warning(f"Cannot mark '{album_id}' downloaded: no current user.")
                return
            if album_id in user.downloaded_albums:
                return
            purchased = album_id in user.purchased_albums
            if not purchased:
                log.warning(f"Album '{album_id}' marked downloaded before purchase.")
            user.downloaded_albums = [*user.downloaded_albums, album_id]
            await self._write_user(user)
        self._events.album_downloaded(album_id, purchased)

    async def has_user_purchased_album(self, album_id: str) -> bool:
        user = await self.get_current_user()
        return user is not None and album_id in user.purchased_albums
