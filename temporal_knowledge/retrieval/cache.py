"""
Query result cache.

Caches search results and tag statistics for one account with a time to
live. Every write to the account drops its cached results.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    value: Any
    stored_at: float
    ttl: float


class QueryCache:
    """
    TTL cache scoped to a single account.

    Usage:
        cache = QueryCache("acct-1", default_ttl=120)
        key = cache.search_key("bday", ["family"])
        if (hit := cache.get(key)) is None:
            cache.set(key, results)
    """

    def __init__(
        self,
        account_id: str,
        default_ttl: float = 120.0,
        clock: Callable[[], float] | None = None,
        enabled: bool = True,
    ):
        self.account_id = account_id
        self.default_ttl = default_ttl
        self.enabled = enabled
        self._clock = clock or time.monotonic
        self._entries: dict[str, _CacheEntry] = {}

    # Key builders
    def search_key(self, query: str, tags: list[str] | None = None) -> str:
        tag_part = ",".join(sorted(tags)) if tags else "no-tags"
        return f"search:{self.account_id}:{query.strip().lower()}:{tag_part}"

    def tag_stats_key(self) -> str:
        return f"tagstats:{self.account_id}"

    def recent_key(self, limit: int, include_superseded: bool = False) -> str:
        return f"recent:{self.account_id}:{limit}:{int(include_superseded)}"

    def get(self, key: str) -> Any | None:
        """Cached value, or None if missing or expired."""
        if not self.enabled:
            return None

        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.stored_at > entry.ttl:
            del self._entries[key]
            return None

        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if not self.enabled:
            return
        self._entries[key] = _CacheEntry(
            value=value,
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix. Returns the number dropped."""
        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def invalidate_account(self) -> int:
        """Drop every cached result for the account."""
        dropped = sum(
            self.invalidate_prefix(f"{kind}:{self.account_id}:") for kind in ("search", "recent")
        )
        if self._entries.pop(self.tag_stats_key(), None) is not None:
            dropped += 1
        if dropped:
            logger.debug(f"Invalidated {dropped} cached results for {self.account_id}")
        return dropped

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
