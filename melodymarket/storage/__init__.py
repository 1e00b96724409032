"""
Storage Layer.

This package handles all data persistence: the key-value backends, the
catalog store built on them, first-run seed data and the configuration file.
"""

from .backend import JsonFileBackend, KeyValueBackend, MemoryBackend
from .catalog_store import CatalogStore, TimestampIdGenerator
from .config_manager import ConfigManager

__all__ = [
    "CatalogStore",
    "ConfigManager",
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "TimestampIdGenerator",
]
