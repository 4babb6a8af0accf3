from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from app.core.config import get_settings
from app.services.repository import AgentRecord

DEFAULT_TTL_SECONDS = 60 * 60
DEFAULT_MAX_ENTRIES = 1000


@dataclass(slots=True)
class _CacheEntry:
    agent: AgentRecord
    expires_at: float


class AgentCache:
    """Process-local map of api key hash -> agent with TTL and a size bound.

    Eviction drops the oldest inserted key; it is not LRU. Losing entries only
    costs a store round trip.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, api_key_hash: str) -> AgentRecord | None:
        with self._lock:
            entry = self._entries.get(api_key_hash)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[api_key_hash]
                return None
            return entry.agent

    def set(self, api_key_hash: str, agent: AgentRecord) -> None:
        with self._lock:
            if api_key_hash not in self._entries and len(self._entries) >= self.max_entries:
                oldest_key = next(iter(self._entries))
                del self._entries[oldest_key]
            self._entries[api_key_hash] = _CacheEntry(agent=agent, expires_at=self._clock() + self.ttl_seconds)

    def invalidate(self, api_key_hash: str) -> None:
        with self._lock:
            self._entries.pop(api_key_hash, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, api_key_hash: object) -> bool:
        with self._lock:
            return api_key_hash in self._entries


@lru_cache
def get_agent_cache() -> AgentCache:
    settings = get_settings()
    return AgentCache(
        ttl_seconds=settings.auth_cache_ttl_seconds,
        max_entries=settings.auth_cache_max_entries,
    )
