"""
Pydantic models for the persisted catalog records: users, albums, tracks and
purchases.

Attributes are snake_case in Python and camelCase on disk, so the stored JSON
keeps the storefront's web layout (``purchasedAlbums``,
``createdAt``, ...). Dates are timezone-aware and serialize to ISO strings.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from melodymarket.utils.formatting import parse_clock


def utc_now() -> datetime:
    """Returns the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class CatalogModel(BaseModel):
    """Shared model configuration for all persisted records."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    def to_storage(self) -> dict:
        """Returns a JSON-ready dict using the persisted (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Track(CatalogModel):
    """A single track. Tracks only ever exist inside their parent album."""

    id: str
    title: str
    artist: str
    artist_id: str
    duration: str = "0:00"
    file_url: str | None = None
    preview_url: str | None = None
    album_id: str | None = None
    track_number: int = 1
    price: float = 0.0
    is_free: bool = False
    stream_count: int = 0
    purchase_count: int = 0
    genre: str = ""
    cover_image_url: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    tags: list[str] = Field(default_factory=list)
    is_downloaded: bool = False

    @property
    def duration_seconds(self) -> int:
        """The ``m:ss`` display duration converted to whole seconds."""
        return parse_clock(self.duration)


class Album(CatalogModel):
    """An album and its ordered tracks (order is track number, then insertion)."""

    id: str
    title: str
    artist_id: str
    artist_name: str
    price: float
    cover_image_url: str = ""
    tracks: list[Track] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    genre: str = ""
    description: str = ""
    is_downloaded: bool = False

    def find_track(self, track_id: str) -> Track | None:
        return next((t for t in self.tracks if t.id == track_id), None)


class User(CatalogModel):
    """The local account: identity plus purchase and download state."""

    id: str
    name: str
    email: str
    is_artist: bool = False
    profile_image: str | None = None
    purchased_tracks: list[str] = Field(default_factory=list)
    purchased_albums: list[str] = Field(default_factory=list)
    downloaded_albums: list[str] = Field(default_factory=list)
    following: list[str] = Field(default_factory=list)
    followers: list[str] = Field(default_factory=list)
    bio: str | None = None
    social_links: dict[str, str] | None = None
    balance: float = 0.0
    phone_number: str | None = None
    created_at: datetime = Field(default_factory=utc_now)


class Purchase(CatalogModel):
    """One row of the append-only purchase ledger."""

    id: str
    user_id: str
    album_id: str
    purchase_date: datetime = Field(default_factory=utc_now)
    price: float
