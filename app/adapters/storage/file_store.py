"""JSON-file-backed key-value store.

The whole map lives in one JSON object on disk. Every write rewrites the file
through a temp file + ``os.replace`` so readers never see a half-written file.

Notes:
- Single-process: the lock serializes writers inside this process only.
- An unreadable or non-object file is treated as an empty store and is
  replaced on the next write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from app.adapters.storage.base import AbstractKeyValueStore

logger = logging.getLogger(__name__)


def _atomic_write_json(path: Path, payload: dict[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=f"{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as file_handle:
            json.dump(payload, file_handle, indent=2, sort_keys=True)
        os.replace(temp_path, path)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)


class JsonFileKeyValueStore(AbstractKeyValueStore):
    """Key-value store persisted as a single JSON object file."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(
                "store.file_unreadable",
                extra={"path": str(self._path), "error_type": type(exc).__name__},
            )
            return {}
        if not isinstance(raw, dict):
            logger.warning("store.file_malformed", extra={"path": str(self._path)})
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            _atomic_write_json(self._path, data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return
            del data[key]
            _atomic_write_json(self._path, data)

    def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        with self._lock:
            data = self._read_all()
            if data.get(key) != expected:
                return False
            data[key] = value
            _atomic_write_json(self._path, data)
            return True
