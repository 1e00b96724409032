"""
The playback session: one owner of the active sound, shared by every view.

Construct a single ``PlaybackSession`` and pass it to each component that
needs to play, pause or observe audio. Starting a track always tears down the
previous one first, so at most one sound is ever loaded.

Races between overlapping calls are settled with a generation counter that is
bumped by every play and stop. Work that finishes late (a slow load, a
preview timer, an end-of-track callback) compares its generation with the
current one and does nothing if it is stale.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from melodymarket.exceptions import PlaybackError
from melodymarket.models.config import PREVIEW_SECONDS
from melodymarket.utils.structured_logger import PlaybackLogger, StructuredLogger

from .sound import Sound, SoundLoader

log = logging.getLogger(__name__)

PlayStateListener = Callable[[bool], None]


class PlaybackState(Enum):
    """States of the playback session."""

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class PlaybackStatus:
    """A point-in-time snapshot of the session, for display."""

    state: PlaybackState
    track_id: str | None
    is_preview: bool
    position: float
    duration: float

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING


class PlaybackSession:
    """
    Manages at most one active sound and broadcasts play/pause transitions.

    States:
    - IDLE: Nothing loaded
    - LOADING: A play call is acquiring its sound
    - PLAYING: The sound is running
    - PAUSED: The sound is loaded but held
    """

    def __init__(
        self,
        loader: SoundLoader,
        preview_seconds: float = PREVIEW_SECONDS,
        volume: float = 0.7,
        logger: PlaybackLogger | None = None,
    ):
        """
        Args:
            loader: Acquires sounds for URLs.
            preview_seconds: How long a preview plays before stopping itself.
            volume: Volume applied to every loaded sound.
            logger: Receiver of structured playback events.
        """
        self.loader = loader
        self.preview_seconds = preview_seconds
        self.volume = volume
        self._events = logger or PlaybackLogger(StructuredLogger("melodymarket.events"))

        self._state = PlaybackState.IDLE
        self._sound: Sound | None = None
        self._current_track_id: str | None = None
        self._is_preview = False
        self._generation = 0
        self._preview_task: asyncio.Task | None = None
        # dict keeps registration order and set semantics
        self._listeners: dict[PlayStateListener, None] = {}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def get_current_track_id(self) -> str | None:
        return self._current_track_id

    def get_is_preview_mode(self) -> bool:
        return self._is_preview

    def is_playing(self) -> bool:
        return self._sound is not None and self._sound.is_playing

    def get_current_time(self) -> float:
        return self._sound.position if self._sound else 0.0

    def get_duration(self) -> float:
        return self._sound.duration if self._sound else 0.0

    def get_status(self) -> PlaybackStatus:
        return PlaybackStatus(
            state=self._state,
            track_id=self._current_track_id,
            is_preview=self._is_preview,
            position=self.get_current_time(),
            duration=self.get_duration(),
        )

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def add_play_state_listener(self, listener: PlayStateListener) -> None:
        """Registers a listener. Adding the same listener twice has no effect."""
        self._listeners[listener] = None

    def remove_play_state_listener(self, listener: PlayStateListener) -> None:
        self._listeners.pop(listener, None)

    def _notify_listeners(self, is_playing: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(is_playing)
            except Exception as e:
                log.warning(f"Play state listener {listener!r} failed: {e}", exc_info=True)
                self._events.listener_failed(repr(listener), str(e))

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def play_preview(self, track_id: str, url: str) -> None:
        """Plays a track's preview, stopping it after ``preview_seconds``."""
        await self._start(track_id, url, preview=True)

    async def play_full_track(self, track_id: str, url: str) -> None:
        await self._start(track_id, url, preview=False)

    async def _start(self, track_id: str, url: str, preview: bool) -> None:
        await self.stop()

        self._generation += 1
        generation = self._generation
        self._current_track_id = track_id
        self._is_preview = preview
        self._state = PlaybackState.LOADING

        try:
            sound = await self.loader.load(url)
        except Exception as e:
            self._events.load_failed(track_id, url, str(e))
            if generation == self._generation:
                self._reset_state()
            if isinstance(e, PlaybackError):
                raise
            raise PlaybackError(f"Could not load '{track_id}': {e}") from e

        if generation != self._generation:
            # A newer play or a stop happened while this one was loading.
            await self._discard_superseded(sound, track_id, generation)
            return

        self._sound = sound
        sound.volume = self.volume
        sound.set_finish_callback(lambda: self._on_sound_finished(generation))
        try:
            await sound.play()
        except Exception as e:
            # Torn down by a newer play or a stop while the sound was starting.
            if generation != self._generation:
                await self._discard_superseded(sound, track_id, generation)
                return
            log.error(f"Error playing '{track_id}': {e}")
            self._sound = None
            await sound.unload()
            self._reset_state()
            if isinstance(e, PlaybackError):
                raise
            raise PlaybackError(f"Could not play '{track_id}': {e}") from e

        if generation != self._generation:
            await self._discard_superseded(sound, track_id, generation)
            return

        self._state = PlaybackState.PLAYING
        if preview:
            self._preview_task = asyncio.create_task(
                self._expire_preview(track_id, generation)
            )
        self._events.playback_started(track_id, preview, sound.duration, generation)
        self._notify_listeners(True)

    async def pause(self) -> None:
        if self._sound is None or self._state is not PlaybackState.PLAYING:
            return
        generation = self._generation
        await self._sound.pause()
        if generation != self._generation:
            return
        self._state = PlaybackState.PAUSED
        self._notify_listeners(False)

    async def resume(self) -> None:
        if self._sound is None or self._state is not PlaybackState.PAUSED:
            return
        generation = self._generation
        await self._sound.play()
        if generation != self._generation:
            return
        self._state = PlaybackState.PLAYING
        self._notify_listeners(True)

    async def stop(self) -> None:
        """
        Releases the active sound, cancels any preview timer and returns to
        IDLE. Does nothing when already idle with nothing loaded.
        """
        await self._teardown("stop")

    async def seek(self, position_seconds: float) -> None:
        """Moves the playhead, clamped to the sound's length."""
        if self._sound is None:
            return
        await self._sound.set_position(position_seconds)

    async def dispose(self) -> None:
        """Stops playback and releases the loader's connections."""
        await self.stop()
        await self.loader.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.dispose()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _teardown(self, reason: str) -> None:
        if self._state is PlaybackState.IDLE and self._sound is None:
            return

        self._generation += 1
        self._cancel_preview_timer()

        sound, self._sound = self._sound, None
        track_id = self._current_track_id
        position = sound.position if sound else 0.0
        try:
            if sound is not None:
                await sound.unload()
        finally:
            self._reset_state()
            self._events.playback_stopped(track_id, position, reason)
            self._notify_listeners(False)

    async def _discard_superseded(
        self, sound: Sound, track_id: str, generation: int
    ) -> None:
        """Releases a sound whose play call was overtaken by a newer play or stop."""
        self._events.load_superseded(track_id, generation, self._generation)
        await sound.unload()

    def _reset_state(self) -> None:
        self._state = PlaybackState.IDLE
        self._current_track_id = None
        self._is_preview = False

    def _cancel_preview_timer(self) -> None:
        # The timer task may itself be the caller when a preview expires.
        task = self._preview_task
        self._preview_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _expire_preview(self, track_id: str, generation: int) -> None:
        await asyncio.sleep(self.preview_seconds)
        if (
            self._is_preview
            and self._current_track_id == track_id
            and self._generation == generation
        ):
            self._events.preview_expired(track_id, self.preview_seconds)
            await self._teardown("preview_expired")

    async def _on_sound_finished(self, generation: int) -> None:
        if generation == self._generation:
            await self._teardown("ended")
