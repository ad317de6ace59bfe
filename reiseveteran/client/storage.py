"""Durable key-value storage for client state.

Mirrors browser localStorage: string keys, string values, single-key writes.
There is no cross-key transaction; writers that touch two keys do so back to
back with nothing in between.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional


COOKIE_PREFERENCES_KEY = "cookie-preferences"
COOKIE_CONSENT_TIMESTAMP_KEY = "cookie-consent-timestamp"
AUTH_TOKEN_KEY = "auth_token"
USERNAME_SETUP_SKIPPED_KEY = "username-setup-skipped"


def _debug(msg: str) -> None:
    print(f"[storage] {msg}")


class DurableStorage:
    """Interface shared by the storage backends."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryStorage(DurableStorage):
    """Process-local storage. Handy for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileStorage(DurableStorage):
    """Storage backed by one JSON object on disk.

    Every write re-reads the file, applies one key and swaps the new document
    in with os.replace, so a crash leaves either the old or the new file.
    A missing or unreadable file reads as empty.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            _debug(f"Could not read {self.path}: {e}")
            return {}
        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError:
            _debug(f"Ignoring corrupt storage file {self.path}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".storage-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = str(value)
            self._write(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key not in data:
                return
            del data[key]
            self._write(data)

    def clear(self) -> None:
        with self._lock:
            self._write({})
