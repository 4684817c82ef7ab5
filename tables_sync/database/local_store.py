"""Device-local key-value storage backed by a JSON file (or memory only)."""
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from supabase_auth import AsyncSupportedStorage

logger = logging.getLogger(__name__)


class LocalStore:
    """Single-writer JSON key-value store. Every write rewrites the file atomically."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable local store {self.path}: {e}")
            return {}

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".local_store.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()

    def update(self, key: str, fn, default: Any = None) -> Any:
        """Read-modify-write `key` under the store lock; returns the new value."""
        with self._lock:
            value = fn(self._data.get(key, default))
            self._data[key] = value
            self._flush()
            return value


class LocalAuthStorage(AsyncSupportedStorage):
    """Persists the auth provider's session in the local store."""

    key_prefix = "supabase.auth.session"

    def __init__(self, store: LocalStore):
        self.store = store

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}.{key}"

    async def get_item(self, key: str) -> Optional[str]:
        return self.store.get(self._key(key))

    async def set_item(self, key: str, value: str) -> None:
        self.store.set(self._key(key), value)

    async def remove_item(self, key: str) -> None:
        self.store.remove(self._key(key))
