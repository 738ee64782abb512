from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class IdempotencyStore(Protocol):
    """Tracks whether a delivered event id has been processed.

    Contract: if `seen(event_id)` is True then the event must be treated as already processed.
    """

    def seen(self, event_id: str) -> bool:
        ...

    def mark(self, event_id: str, *, ttl_seconds: int) -> None:
        ...


@dataclass
class InMemoryIdempotencyStore:
    """Bounded, per-process store. Oldest ids are evicted first once `max_entries` is reached."""

    _seen: dict[str, float]
    max_entries: int

    def __init__(self, *, max_entries: int = 10_000) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self._seen = {}
        self.max_entries = max_entries

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, exp in self._seen.items() if exp <= now]
        for k in expired:
            self._seen.pop(k, None)

    def __len__(self) -> int:
        return len(self._seen)

    def seen(self, event_id: str) -> bool:
        self._evict_expired(time.time())
        return event_id in self._seen

    def mark(self, event_id: str, *, ttl_seconds: int) -> None:
        now = time.time()
        self._evict_expired(now)
        # Re-marking moves the id to the young end of the insertion order.
        self._seen.pop(event_id, None)
        while len(self._seen) >= self.max_entries:
            oldest = next(iter(self._seen))
            del self._seen[oldest]
        self._seen[event_id] = now + ttl_seconds


class RedisIdempotencyStore:
    def __init__(self, redis_client, *, key_prefix: str):
        self._client = redis_client
        self._prefix = key_prefix.rstrip(":")

    @classmethod
    def from_url(cls, redis_url: str, *, key_prefix: str = "processed:student-events") -> "RedisIdempotencyStore":
        import redis  # type: ignore

        return cls(redis.Redis.from_url(redis_url, decode_responses=True), key_prefix=key_prefix)

    def _key(self, event_id: str) -> str:
        return f"{self._prefix}:{event_id}"

    def seen(self, event_id: str) -> bool:
        return bool(self._client.exists(self._key(event_id)))

    def mark(self, event_id: str, *, ttl_seconds: int) -> None:
        # SET NX prevents concurrent duplicates from double-processing.
        self._client.set(self._key(event_id), "1", ex=ttl_seconds, nx=True)
