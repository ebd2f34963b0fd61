import copy
import json
import threading
import time
from pathlib import Path
from typing import Any


class KeyValueStore:
    """get/set/delete with optional per-key TTL (seconds). None TTL never expires."""

    def get(self, key: str) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


def _expiry(ttl_seconds: int | None) -> float | None:
    if ttl_seconds is None:
        return None
    return time.time() + ttl_seconds


def _expired(expires_at: float | None) -> bool:
    return expires_at is not None and time.time() > expires_at


class MemoryStore(KeyValueStore):
    def __init__(self):
        self._entries: dict[str, tuple[float | None, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            hit = self._entries.get(key)
            if not hit:
                return None
            expires_at, value = hit
            if _expired(expires_at):
                self._entries.pop(key, None)
                return None
            return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        with self._lock:
            for stale in [k for k, (expires_at, _) in self._entries.items() if _expired(expires_at)]:
                del self._entries[stale]
            self._entries[key] = (_expiry(ttl_seconds), copy.deepcopy(value))

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileStore(KeyValueStore):
    """
    Whole-document JSON persistence: every write rewrites the file.
    Fine for a single process with modest key counts.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            return {}
        return {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, dict)}

    def _persist(self, snapshot: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(snapshot, ensure_ascii=True, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str) -> Any:
        with self._lock:
            entries = self._load()
            entry = entries.get(key)
            if entry is None:
                return None
            if _expired(entry.get("expires_at")):
                entries.pop(key, None)
                self._persist(entries)
                return None
            return entry.get("value")

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        with self._lock:
            entries = self._load()
            entries = {k: v for k, v in entries.items() if not _expired(v.get("expires_at"))}
            entries[key] = {"expires_at": _expiry(ttl_seconds), "value": value}
            self._persist(entries)

    def delete(self, key: str) -> None:
        with self._lock:
            entries = self._load()
            if entries.pop(key, None) is not None:
                self._persist(entries)

    def clear(self) -> None:
        with self._lock:
            self._persist({})


def build_store(file_path: str | None) -> KeyValueStore:
    if file_path:
        return JsonFileStore(file_path)
    return MemoryStore()
