from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from storage.errors import StorageError

logger = logging.getLogger(__name__)


class JsonKeyValueStore:
    """String key -> string value store persisted as one JSON document.

    Values are kept as serialized JSON text, so a single malformed value only
    affects its own key. With no path the store lives in memory only.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._data: dict[str, str] = self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path or not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read local store '{self._path}': {e}")
            return {}
        if not isinstance(payload, dict):
            logger.warning(f"Local store '{self._path}' is not a JSON object, ignoring it")
            return {}
        return {str(k): v for k, v in payload.items() if isinstance(v, str)}

    def _commit(self, data: dict[str, str]) -> None:
        """Write `data` to disk, then make it the live state. On failure nothing changes."""
        if self._path:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp = self._path.with_suffix(self._path.suffix + ".tmp")
                tmp.write_text(json.dumps(data, ensure_ascii=False, sort_keys=True), encoding="utf-8")
                os.replace(tmp, self._path)
            except OSError as e:
                logger.error(f"Failed to write local store '{self._path}': {e}")
                raise StorageError(f"Could not write local store: {e}") from e
        self._data = data

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._commit({**self._data, key: value})

    def remove_item(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                self._commit({k: v for k, v in self._data.items() if k != key})

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def get_json(self, key: str, fallback: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Failed to parse stored key '{key}': {e}")
            return fallback

    def set_json(self, key: str, value: Any) -> bool:
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize value for key '{key}': {e}")
            return False
        self.set_item(key, raw)
        return True
