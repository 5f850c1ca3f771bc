"""In-process read-through cache for catalog queries.

Entries carry an absolute expiry computed from a monotonic clock. A value
is never returned once its TTL has elapsed or after its key has been
invalidated. The cache is shared by every request in the process, so all
access goes through one lock.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger("backlog_tracker.cache")


class CacheKeys:
    ALL_GAMES = "all-games"
    DASHBOARD_STATS = "dashboard-stats"
    GAME_PREFIX = "game:"
    PLATFORM_PREFIX = "platform-games:"

    @staticmethod
    def game(game_id: int) -> str:
        return f"{CacheKeys.GAME_PREFIX}{game_id}"

    @staticmethod
    def platform_games(platform: str) -> str:
        return f"{CacheKeys.PLATFORM_PREFIX}{platform}"


@dataclass(frozen=True)
class _Entry:
    value: Any
    expires_at: float


class QueryCache:
    """TTL map with a generation counter.

    Every invalidation bumps the generation. A reader that captured the
    generation before loading passes it to ``set``; if anything was
    invalidated in between, the loaded value is dropped instead of cached.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._entries: dict[str, _Entry] = {}
        self._generation = 0
        self._lock = threading.RLock()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, key: str) -> tuple[Any, bool]:
        """Return ``(value, True)`` on a live hit, ``(None, False)`` otherwise."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Cache miss: %s", key)
                return None, False
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                logger.debug("Cache expired: %s", key)
                return None, False
            logger.debug("Cache hit: %s", key)
            return entry.value, True

    def set(
        self, key: str, value: Any, ttl_seconds: float, generation: Optional[int] = None
    ) -> bool:
        """Store ``value``. Returns False when ``generation`` is stale and nothing was stored."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("Cache set skipped for %s: invalidated while loading", key)
                return False
            self._entries[key] = _Entry(value, self._clock() + ttl_seconds)
            return True

    def invalidate(self, *keys: str) -> None:
        with self._lock:
            self._generation += 1
            for key in keys:
                self._entries.pop(key, None)
        if keys:
            logger.debug("Cache invalidated: %s", ", ".join(keys))

    def invalidate_prefix(self, prefix: str) -> None:
        with self._lock:
            self._generation += 1
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Cache invalidated %d keys with prefix %s", len(doomed), prefix)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key)[1]
