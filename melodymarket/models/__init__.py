"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application: catalog records, upload drafts and
configuration.
"""

from .catalog import Album, Purchase, Track, User
from .config import MarketConfig
from .drafts import AlbumDraft, TrackDraft

__all__ = [
    "Album",
    "AlbumDraft",
    "MarketConfig",
    "Purchase",
    "Track",
    "TrackDraft",
    "User",
]
