"""
Sound resources for the playback session.

A ``SoundLoader`` turns a URL into a ``Sound``. The bundled loader fetches the
file (HTTP or local), reads its length from the container headers with
mutagen, and hands back a ``ClockSound`` whose playhead is driven by a
monotonic clock. Nothing is decoded or sent to an audio device.
"""

import asyncio
import io
import logging
import math
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path
from urllib.parse import unquote, urlparse

import aiofiles
import aiohttp
import mutagen
from mutagen import MutagenError

from melodymarket.exceptions import PlaybackError

log = logging.getLogger(__name__)

FinishCallback = Callable[[], Awaitable[None]]


class Sound(ABC):
    """One loaded, playable resource. At most one is active per session."""

    volume: float = 1.0

    @property
    @abstractmethod
    def is_playing(self) -> bool: ...

    @property
    @abstractmethod
    def position(self) -> float:
        """Current playhead in seconds."""

    @property
    @abstractmethod
    def duration(self) -> float:
        """Length in seconds, 0.0 when unknown."""

    @abstractmethod
    async def play(self) -> None: ...

    @abstractmethod
    async def pause(self) -> None: ...

    @abstractmethod
    async def set_position(self, seconds: float) -> None: ...

    @abstractmethod
    async def unload(self) -> None:
        """Releases the resource. The sound cannot be played afterwards."""

    @abstractmethod
    def set_finish_callback(self, callback: FinishCallback | None) -> None:
        """Registers a coroutine function awaited when playback reaches the end."""


class ClockSound(Sound):
    """
    A sound whose playhead advances with a monotonic clock while playing.
    When the duration is known the end of the track is scheduled on the
    running event loop.
    """

    def __init__(
        self,
        duration: float,
        source: str = "",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self._duration = max(0.0, duration)
        self._clock = clock
        self._offset = 0.0
        self._started_at: float | None = None
        self._finish_task: asyncio.Task | None = None
        self._on_finish: FinishCallback | None = None
        self._unloaded = False

    def __repr__(self) -> str:
        return f"ClockSound(source={self.source!r}, duration={self._duration:.2f})"

    @property
    def is_playing(self) -> bool:
        return self._started_at is not None

    @property
    def is_unloaded(self) -> bool:
        return self._unloaded

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def position(self) -> float:
        if self._started_at is None:
            return self._offset
        elapsed = self._offset + (self._clock() - self._started_at)
        return min(elapsed, self._duration) if self._duration else elapsed

    def set_finish_callback(self, callback: FinishCallback | None) -> None:
        self._on_finish = callback

    async def play(self) -> None:
        if self._unloaded:
            raise PlaybackError(f"Sound '{self.source}' has been unloaded.")
        if self.is_playing:
            return
        if self._duration and self._offset >= self._duration:
            self._offset = 0.0
        self._started_at = self._clock()
        self._schedule_finish()

    async def pause(self) -> None:
        if not self.is_playing:
            return
        self._offset = self.position
        self._started_at = None
        self._cancel_finish()

    async def set_position(self, seconds: float) -> None:
        upper = self._duration if self._duration else math.inf
        self._offset = min(max(0.0, seconds), upper)
        if self.is_playing:
            self._started_at = self._clock()
            self._cancel_finish()
            self._schedule_finish()

    async def unload(self) -> None:
        self._offset = self.position
        self._started_at = None
        self._cancel_finish()
        self._unloaded = True

    def _schedule_finish(self) -> None:
        if not self._duration:
            return
        remaining = max(0.0, self._duration - self._offset)
        self._finish_task = asyncio.create_task(self._finish_after(remaining))

    def _cancel_finish(self) -> None:
        # The finish task may be the caller (end of track -> session stop -> unload).
        task = self._finish_task
        self._finish_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _finish_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._offset = self._duration
        self._started_at = None
        if self._on_finish is not None:
            await self._on_finish()


class SoundLoader(ABC):
    """Acquires a playable Sound for a URL."""

    @abstractmethod
    async def load(self, url: str) -> Sound:
        """
        Raises:
            PlaybackError: If the resource cannot be fetched or understood.
        """

    async def close(self) -> None:
        """Releases any connections held by the loader."""


class HttpSoundLoader(SoundLoader):
    """
    Loads sounds from http(s) URLs with aiohttp, or from local paths and
    ``file://`` URLs with aiofiles, and probes their length with mutagen.
    """

    def __init__(
        self,
        timeout: float = 20.0,
        max_bytes: int = 50 * 1024 * 1024,
        session: aiohttp.ClientSession | None = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout, sock_connect=10),
                headers={"Accept": "audio/*"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            log.debug("Sound loader HTTP session closed.")
        self._session = None

    async def load(self, url: str) -> Sound:
        parsed = urlparse(url)
        if parsed.scheme in ("http", "https"):
            data = await self._fetch_http(url)
        elif parsed.scheme in ("", "file"):
            path = Path(unquote(parsed.path) if parsed.scheme == "file" else url)
            data = await self._read_file(path)
        else:
            raise PlaybackError(f"Unsupported sound URL scheme '{parsed.scheme}'.")

        duration = self.probe_duration(data, url)
        log.debug(f"Loaded {len(data)} bytes from {url} ({duration:.1f}s)")
        return ClockSound(duration, source=url)

    async def _fetch_http(self, url: str) -> bytes:
        session = await self._get_session()
        try:
            async with session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                length = response.content_length
                if length is not None and length > self.max_bytes:
                    raise PlaybackError(
                        f"Sound at {url} is too large ({length} bytes)."
                    )
                buffer = bytearray()
                async for chunk in response.content.iter_chunked(65536):
                    buffer.extend(chunk)
                    if len(buffer) > self.max_bytes:
                        raise PlaybackError(
                            f"Sound at {url} exceeds {self.max_bytes} bytes."
                        )
                return bytes(buffer)
        except aiohttp.ClientError as e:
            raise PlaybackError(f"Could not fetch {url}: {e}") from e
        except asyncio.TimeoutError as e:
            raise PlaybackError(f"Timed out fetching {url}.") from e

    async def _read_file(self, path: Path) -> bytes:
        try:
            size = path.stat().st_size
            if size > self.max_bytes:
                raise PlaybackError(f"Sound file '{path}' is too large ({size} bytes).")
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise PlaybackError(f"Could not read sound file '{path}': {e}") from e

    @staticmethod
    def probe_duration(data: bytes, source: str = "") -> float:
        """
        Reads the stream length from container headers.

        Raises:
            PlaybackError: If mutagen does not recognise the data as audio.
        """
        try:
            audio = mutagen.File(io.BytesIO(data))
        except MutagenError as e:
            raise PlaybackError(f"Unreadable audio in {source or 'stream'}: {e}") from e
        if audio is None or audio.info is None:
            raise PlaybackError(f"Unrecognised audio format in {source or 'stream'}.")
        return float(getattr(audio.info, "length", 0.0) or 0.0)
