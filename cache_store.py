from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Any, Callable, Optional


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CacheLookup:
    value: Any
    hit: bool
    stored_at: Optional[datetime] = None
    age_seconds: Optional[float] = None


_MISS = CacheLookup(value=None, hit=False)


@dataclass
class _Slot:
    value: Any
    stored_at: datetime
    expires_at: datetime


class TTLCache:
    """Expiring store handed to collaborators that fetch remote data.

    The evaluation core never touches a cache; adapters such as the pricing
    feed receive one explicitly. ``clock`` is injectable so tests can move
    time without sleeping.
    """

    def __init__(self, default_ttl_seconds: int = 300, clock: Callable[[], datetime] = _utc_now) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._slots: dict[str, _Slot] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0
        self._expirations = 0

    def lookup(self, key: str) -> CacheLookup:
        now = self._clock()
        with self._lock:
            slot = self._slots.get(key)
            if slot is not None and slot.expires_at <= now:
                del self._slots[key]
                self._expirations += 1
                slot = None
            if slot is None:
                self._misses += 1
                return _MISS
            self._hits += 1
            age = (now - slot.stored_at).total_seconds()
            return CacheLookup(value=slot.value, hit=True, stored_at=slot.stored_at, age_seconds=age)

    def get(self, key: str) -> Any | None:
        return self.lookup(key).value

    def put(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            return
        now = self._clock()
        with self._lock:
            self._slots[key] = _Slot(value=value, stored_at=now, expires_at=now + timedelta(seconds=ttl))

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [key for key, slot in self._slots.items() if slot.expires_at <= now]
            for key in stale:
                del self._slots[key]
            self._expirations += len(stale)
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()

    def stats(self) -> dict[str, float | int]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "entries": len(self._slots),
                "hits": self._hits,
                "misses": self._misses,
                "expirations": self._expirations,
                "hit_ratio": round(self._hits / lookups, 3) if lookups else 0.0,
                "default_ttl_seconds": self.default_ttl_seconds,
            }
