"""
Playback Layer.

This package owns audio control: the single-instance playback session that
views share, and the loaders and sound objects it drives.
"""

from .session import PlaybackSession, PlaybackState, PlaybackStatus
from .sound import ClockSound, HttpSoundLoader, Sound, SoundLoader

__all__ = [
    "ClockSound",
    "HttpSoundLoader",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackStatus",
    "Sound",
    "SoundLoader",
]
