"""Test fixtures and configuration."""

import asyncio
import itertools
from datetime import datetime, timezone

import pytest

from melodymarket.exceptions import PlaybackError
from melodymarket.playback import ClockSound, PlaybackSession, SoundLoader
from melodymarket.storage import CatalogStore, MemoryBackend


@pytest.fixture
def fixed_time() -> datetime:
    """A fixed point in time for deterministic tests."""
    return datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def id_generator():
    """Predictable ID generator for tests."""
    counter = itertools.count(1000)
    return lambda: str(next(counter))


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend, fixed_time, id_generator) -> CatalogStore:
    """CatalogStore with injectable clock and ID generator."""
    return CatalogStore(backend, clock=lambda: fixed_time, id_generator=id_generator)


class FakeLoader(SoundLoader):
    """
    Hands out ClockSounds without touching the network.

    URLs listed in ``gates`` wait for their event before completing, and URLs
    in ``failures`` raise PlaybackError.
    """

    def __init__(
        self, duration: float = 30.0, sound_class: type[ClockSound] = ClockSound
    ):
        self.duration = duration
        self.sound_class = sound_class
        self.loaded: list[ClockSound] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: set[str] = set()
        self.closed = False

    async def load(self, url: str) -> ClockSound:
        if url in self.gates:
            await self.gates[url].wait()
        if url in self.failures:
            raise PlaybackError(f"Cannot decode {url}")
        sound = self.sound_class(self.duration, source=url)
        self.loaded.append(sound)
        return sound

    async def close(self) -> None:
        self.closed = True

    @property
    def active(self) -> list[ClockSound]:
        return [s for s in self.loaded if not s.is_unloaded]


class StateRecorder:
    """A play-state listener that remembers every notification."""

    def __init__(self):
        self.events: list[bool] = []

    def __call__(self, is_playing: bool) -> None:
        self.events.append(is_playing)


@pytest.fixture
def loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture
def recorder() -> StateRecorder:
    return StateRecorder()


@pytest.fixture
async def session(loader, recorder):
    """A session with a short preview window and a registered recorder."""
    playback = PlaybackSession(loader, preview_seconds=0.2, volume=0.5)
    playback.add_play_state_listener(recorder)
    yield playback
    await playback.stop()
