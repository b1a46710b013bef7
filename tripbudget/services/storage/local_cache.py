"""
Local Key/Value Cache

A small JSON file on disk that plays the role browser local storage plays
for the web client: it keeps the last refreshed exchange rates for offline
use and the id of the last selected trip.

Nothing stored here is required for correctness. A missing or corrupt file
reads as empty; only writes report errors.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from tripbudget.services.storage.interface import (
    KeyValueStoreInterface,
    LocalCacheError,
)


logger = structlog.get_logger(__name__)


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """Key/value cache persisted as one JSON object in a file."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("local_cache_unreadable", path=str(self._path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        """Write atomically: temp file in the same directory, then rename."""
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise LocalCacheError(f"Failed to write local cache {self._path}: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)
