"""
Local Key-Value Storage

The client keeps two things locally between runs: the session blob and
the offline action queue. Values are strings (JSON documents), the same
contract as a browser's localStorage.

Every write is flushed to disk before returning.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

import structlog


logger = structlog.get_logger(__name__)


class LocalStorageError(Exception):
    """Local storage could not be read or written."""
    pass


class LocalStorage(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass

    def get_json(self, key: str, default=None):
        """Decode a JSON value; unreadable values count as absent."""
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("local_storage_corrupt_value", key=key)
            return default

    def set_json(self, key: str, value) -> None:
        self.set_item(key, json.dumps(value, default=str))


class MemoryStorage(LocalStorage):
    """In-process storage. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage(LocalStorage):
    """
    Storage backed by one JSON object on disk.

    The whole file is rewritten on every change via a temp file and
    os.replace, so a crash leaves either the old or the new contents.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._items: Optional[dict[str, str]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if self._items is None:
            if self._path.exists():
                try:
                    data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
                except (OSError, ValueError) as e:
                    raise LocalStorageError(f"Cannot read local storage {self._path}: {e}")
                if not isinstance(data, dict):
                    raise LocalStorageError(f"Local storage {self._path} is not a JSON object")
                self._items = {str(k): str(v) for k, v in data.items()}
            else:
                self._items = {}
        return self._items

    def _flush(self) -> None:
        tmp_path = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self._path.parent),
                prefix=self._path.name,
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._items, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise LocalStorageError(f"Cannot write local storage {self._path}: {e}")

    def _write(self, key: str, value: Optional[str]) -> None:
        """Apply one change and flush it; on a failed flush memory is rolled back."""
        items = self._load()
        previous = items.get(key)
        if value is None:
            items.pop(key, None)
        else:
            items[key] = value
        try:
            self._flush()
        except LocalStorageError:
            if previous is None:
                items.pop(key, None)
            else:
                items[key] = previous
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        self._write(key, value)

    def remove_item(self, key: str) -> None:
        if key in self._load():
            self._write(key, None)
