"""
Key-value backends that hold the raw JSON strings behind the catalog store.

``JsonFileBackend`` keeps one ``<key>.json`` file per key in a data directory
and replaces files atomically, so a failed write never leaves a half-written
value behind. ``MemoryBackend`` is a dict, for tests and embedding.
"""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import aiofiles
import aiofiles.os
from pathvalidate import ValidationError as PathValidationError
from pathvalidate import validate_filename

from melodymarket.exceptions import StorageError, StorageReadError, StorageWriteError

log = logging.getLogger(__name__)


class KeyValueBackend(ABC):
    """Async string-to-string storage, the local stand-in for a database."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Returns the stored value, or None if the key was never set."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Stores a value, raising StorageWriteError if the medium rejects it."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Removes a key. Missing keys are ignored."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """Lists stored keys starting with ``prefix``."""


class MemoryBackend(KeyValueBackend):
    """An in-process backend. Values are kept as the same JSON strings."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageWriteError(f"Value for '{key}' must be a string.")
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def snapshot(self) -> dict[str, str]:
        """A copy of everything stored, for inspection."""
        return dict(self._data)


class JsonFileBackend(KeyValueBackend):
    """
    Stores each key as a UTF-8 JSON file in a data directory.
    """

    SUFFIX = ".json"

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._write_lock = asyncio.Lock()

    def _get_path(self, key: str) -> Path:
        """Maps a key to its file, rejecting keys that are not safe filenames."""
        try:
            validate_filename(key + self.SUFFIX)
        except PathValidationError as e:
            raise StorageError(f"Invalid storage key '{key}': {e}") from e
        return self.data_dir / f"{key}{self.SUFFIX}"

    async def get(self, key: str) -> str | None:
        path = self._get_path(key)
        if not path.is_file():
            return None
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(f"Could not read '{path.name}': {e}") from e

    async def set(self, key: str, value: str) -> None:
        path = self._get_path(key)
        async with self._write_lock:
            try:
                await aiofiles.os.makedirs(self.data_dir, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{key}.", suffix=".tmp", dir=self.data_dir
                )
                os.close(fd)
            except OSError as e:
                raise StorageWriteError(
                    f"Could not prepare data directory '{self.data_dir}': {e}"
                ) from e
            try:
                async with aiofiles.open(tmp_name, "w", encoding="utf-8") as f:
                    await f.write(value)
                    await f.flush()
                await aiofiles.os.replace(tmp_name, path)
            except OSError as e:
                try:
                    await aiofiles.os.remove(tmp_name)
                except OSError:
                    log.debug(f"Could not remove temporary file '{tmp_name}'")
                raise StorageWriteError(f"Could not write '{path.name}': {e}") from e

    async def delete(self, key: str) -> None:
        path = self._get_path(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageWriteError(f"Could not delete '{path.name}': {e}") from e

    async def keys(self, prefix: str = "") -> list[str]:
        if not self.data_dir.is_dir():
            return []
        return sorted(
            p.stem
            for p in self.data_dir.glob(f"*{self.SUFFIX}")
            if p.stem.startswith(prefix)
        )
