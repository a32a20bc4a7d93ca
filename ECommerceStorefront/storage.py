"""Durable key-value storage with best-effort semantics.

PersistentStore wraps a string backend with JSON encode/decode. It never raises:
load falls back to the caller's default and save swallows write failures. Within a
session the in-memory state is the source of truth; storage only mirrors it.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple, Type, Union

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...


class MemoryBackend:
    """Session-local backend kept in a dict."""

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value


class FileBackend:
    """Backend storing one UTF-8 file per key inside a directory.

    Writes go to a temporary file that replaces the target, so a crash mid-write
    leaves the previous value in place.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in key)
        return self.directory / f"{safe}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class PersistentStore:
    """JSON adapter over a StorageBackend.

    Args:
        backend: Where encoded values are kept
    """

    def __init__(self, backend: StorageBackend):
        self._backend = backend

    def load(self, key: str, default: Any,
             expected_type: Optional[Union[Type, Tuple[Type, ...]]] = None) -> Any:
        """Return the decoded value stored under key, or default.

        default is returned when the key is missing, the stored text is not valid
        JSON, the backend fails, or the decoded value is not an instance of
        expected_type.
        """
        try:
            raw = self._backend.get_item(key)
        except Exception as e:
            logger.warning(f"Could not read '{key}' from storage: {e}")
            return default
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding malformed value stored under '{key}'")
            return default
        if expected_type is not None and not isinstance(value, expected_type):
            logger.warning(f"Discarding value under '{key}': expected {expected_type}, got {type(value).__name__}")
            return default
        return value

    def save(self, key: str, value: Any) -> None:
        """Encode value and write it under key. Failures are logged, never raised."""
        try:
            self._backend.set_item(key, json.dumps(value))
        except Exception as e:
            logger.warning(f"Could not persist '{key}': {e}")
