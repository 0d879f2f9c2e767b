import hashlib
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Hashable, Iterator


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp, the form every table stores."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values (SQLite drops the offset) and convert aware ones."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =========================
# Checksums
# =========================
def calculate_checksum(data: bytes) -> str:
    """SHA-256 hex digest, used as the dedup key for stored content."""
    return hashlib.sha256(data).hexdigest()


# =========================
# Per-key locking
# =========================
class KeyedLock:
    """A mutex per key, created on demand and dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
