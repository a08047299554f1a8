from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Hashable, Tuple

from utils.logger import get_logger

_logger = get_logger(__name__)

CacheKey = Tuple[Hashable, ...]

PRODUCTS_KEY: CacheKey = ("products",)
ALL_ORDERS_KEY: CacheKey = ("all-orders",)
USERS_KEY: CacheKey = ("users",)


def product_key(product_id: str) -> CacheKey:
    return ("product", product_id)


def cart_key(user_id: str) -> CacheKey:
    return ("cart", user_id)


def orders_key(user_id: str) -> CacheKey:
    return ("orders", user_id)


class QueryCache:
    """
    Memoizes read results under tuple keys for the lifetime of the app.

    - fetch(key, fetcher) serves the cached value or awaits fetcher once; concurrent
      fetches of one key share a lock, so only the first one hits the network
    - invalidate(key) drops key and every key it prefixes: ("cart",) drops all carts
    - a fetch that was in flight when its key got invalidated still returns to its
      caller, but its result is not stored

    Locks and generation counters only exist while some fetch of their key is
    pending, so they don't pile up for every product ever opened.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, Any] = {}
        self._locks: Dict[CacheKey, asyncio.Lock] = {}
        self._generations: Dict[CacheKey, int] = {}
        self._pending: Dict[CacheKey, int] = {}

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def peek(self, key: CacheKey, default=None):
        return self._entries.get(key, default)

    async def fetch(self, key: CacheKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        if key in self._entries:
            return self._entries[key]

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._pending[key] = self._pending.get(key, 0) + 1
        try:
            async with lock:
                # another caller may have filled it while we waited
                if key in self._entries:
                    return self._entries[key]
                generation = self._generations.get(key, 0)
                value = await fetcher()
                if self._generations.get(key, 0) == generation:
                    self._entries[key] = value
                else:
                    _logger.debug(f"Discarding stale result for {key}")
                return value
        finally:
            self._pending[key] -= 1
            if not self._pending[key]:
                del self._pending[key]
                del self._locks[key]
                self._generations.pop(key, None)

    def _expire_in_flight(self, key: CacheKey) -> None:
        n = len(key)
        for k in self._pending:
            if k[:n] == key:
                self._generations[k] = self._generations.get(k, 0) + 1

    def invalidate(self, key: CacheKey) -> int:
        """Drop key and all keys it prefixes. Returns the number of entries dropped."""
        n = len(key)
        hit = [k for k in self._entries if k[:n] == key]
        for k in hit:
            del self._entries[k]
        self._expire_in_flight(key)
        _logger.debug(f"Invalidated {key} ({len(hit)} cached)")
        return len(hit)

    def clear(self) -> None:
        self._entries.clear()
        self._expire_in_flight(())
