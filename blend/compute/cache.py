"""
Blend - Score Cache Layer

In-process memoization for compatibility scores, taste profiles and trust
scores, keyed by a fingerprint of the inputs.

Cache Strategy:
    - No implicit expiry. An entry lives until it is invalidated.
    - Single-flight: concurrent requests for the same fingerprint share one
      computation. Different fingerprints compute in parallel.
    - Failures are never cached. The error reaches every waiting caller.
    - An invalidation while a computation is in flight drops that result.

Key Schema:
    pair:{hash}     → compatibility of two profile versions
    taste:{user_id} → taste profile
    trust:{user_id} → trust score
"""
import asyncio
import hashlib
import json
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import structlog

logger = structlog.get_logger()


def fingerprint(namespace: str, *parts: Any) -> str:
    """Stable cache key from a namespace and JSON-serialisable parts."""
    raw = json.dumps(parts, sort_keys=True, default=str, separators=(",", ":"))
    return f"{namespace}:{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:24]}"


@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    value: Any
    computed_at: float


class ScoreCache:
    """
    Usage:
        cache = ScoreCache()
        score = cache.get_or_compute(key, lambda: scorer.score(a, b))

        # when the inputs behind `key` change
        cache.invalidate(key)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, Future] = {}
        self._hits = 0
        self._misses = 0

    def get_or_compute(self, key: str, compute_fn: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._hits += 1
                logger.debug("cache_hit", fingerprint=key)
                return entry.value

            future = self._inflight.get(key)
            owner = future is None
            if owner:
                self._misses += 1
                future = Future()
                self._inflight[key] = future

        if not owner:
            logger.debug("cache_wait", fingerprint=key)
            return future.result()

        logger.debug("cache_miss", fingerprint=key)
        try:
            value = compute_fn()
        except BaseException as e:
            with self._lock:
                if self._inflight.get(key) is future:
                    del self._inflight[key]
            future.set_exception(e)
            logger.warning("cache_compute_failed", fingerprint=key, error=str(e))
            raise

        with self._lock:
            # Only store if nobody invalidated the key while we were computing
            if self._inflight.get(key) is future:
                del self._inflight[key]
                self._entries[key] = CacheEntry(key, value, time.time())
        future.set_result(value)
        return value

    async def aget_or_compute(self, key: str, compute_fn: Callable[[], Any]) -> Any:
        """Async variant sharing the same single-flight registry as the sync path."""
        return await asyncio.to_thread(self.get_or_compute, key, compute_fn)

    def peek(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def invalidate(self, key: str) -> bool:
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            # Detach any in-flight computation so its result is not stored
            self._inflight.pop(key, None)
        logger.info("cache_invalidated", fingerprint=key, removed=removed)
        return removed

    def invalidate_all(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._inflight.clear()
        logger.info("cache_cleared", entries=count)
        return count

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "in_flight": len(self._inflight),
                "hits": self._hits,
                "misses": self._misses,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
