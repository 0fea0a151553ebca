"""Cache-aside reads with stale-while-revalidate.

Entries written here are envelopes ``{"data": ..., "storedAt": <epoch ms>}``
so freshness is computed from the value itself, without a TTL lookup. The
store keeps each envelope for ``ttl + stale_ttl`` seconds; past ``ttl`` it
is stale but still servable.

Three outcomes:
    - fresh hit: age <= ttl, returned as-is
    - stale hit: age > ttl with SWR on, returned immediately while one
      background task refreshes it under ``<key>:refresh``
    - miss: absent (or stale with SWR off), fetched synchronously

Only the background refresh swallows errors, because nobody is waiting on
it. Everything else raises to the caller.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Set, TypeVar

from priceguide.cache.keys import refresh_lock_key
from priceguide.cache.ttl import CACHE_TTL
from priceguide.redis_client import get_store
from priceguide.store import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Strong references to in-flight refreshes; the event loop only keeps weak ones
_refresh_tasks: Set[asyncio.Task] = set()


@dataclass
class CacheResult(Generic[T]):
    """Value returned by a cache-aside read."""
    data: T
    from_cache: bool
    stale: bool = False


def make_envelope(data: Any, stored_at_ms: int) -> Dict[str, Any]:
    return {"data": data, "storedAt": stored_at_ms}


def is_envelope(value: Any) -> bool:
    return isinstance(value, dict) and "data" in value and isinstance(value.get("storedAt"), (int, float))


class CacheAside:
    """
    Read-through cache over a key-value store with optional SWR.

    Usage:
        cache = CacheAside(store)
        result = await cache.get(
            trending_key(),
            fetch_trending,
            ttl=CACHE_TTL.trending,
            stale_while_revalidate=True,
        )
        if result.stale:
            ...  # optionally tell the user the numbers are catching up
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        refresh_lock_ttl: int = CACHE_TTL.refresh_lock,
    ):
        """
        Args:
            store: Key-value store adapter
            clock: Returns wall-clock seconds since the epoch
            refresh_lock_ttl: Seconds before an abandoned refresh lock expires
        """
        self.store = store
        self._clock = clock
        self.refresh_lock_ttl = refresh_lock_ttl
        self.stats: Dict[str, int] = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "revalidations": 0,
            "revalidation_errors": 0,
        }

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_fresh(self, envelope: Any, ttl: int) -> bool:
        return is_envelope(envelope) and self._now_ms() - envelope["storedAt"] <= ttl * 1000

    async def get(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        ttl: int = CACHE_TTL.prices,
        stale_while_revalidate: bool = False,
        stale_ttl: Optional[int] = None,
    ) -> CacheResult[T]:
        """
        Read ``key`` through the cache.

        Args:
            key: Cache key
            fetch_fn: Zero-argument coroutine function calling the upstream
            ttl: Seconds an entry counts as fresh
            stale_while_revalidate: Serve stale entries and refresh in background
            stale_ttl: Extra seconds the store keeps an entry past ttl
                (defaults to ttl, so entries live 2 x ttl)

        Returns:
            CacheResult with the data and where it came from
        """
        stale_ttl = ttl if stale_ttl is None else stale_ttl
        envelope = await self.store.get(key)

        if envelope is not None and not is_envelope(envelope):
            logger.warning(f"Cache entry without storedAt, treating as miss: {key}")
            envelope = None

        if envelope is not None:
            age_ms = self._now_ms() - envelope["storedAt"]

            if age_ms <= ttl * 1000:
                logger.debug(f"Cache HIT (fresh): {key} [age={age_ms / 1000:.1f}s]")
                self.stats["hits_fresh"] += 1
                return CacheResult(data=envelope["data"], from_cache=True)

            if stale_while_revalidate:
                logger.info(f"Cache HIT (stale, revalidating): {key} [age={age_ms / 1000:.1f}s]")
                self.stats["hits_stale"] += 1
                self._schedule_refresh(key, fetch_fn, ttl, stale_ttl)
                return CacheResult(data=envelope["data"], from_cache=True, stale=True)

            logger.info(f"Cache EXPIRED: {key} [age={age_ms / 1000:.1f}s]")
        else:
            logger.info(f"Cache MISS: {key}")

        self.stats["misses"] += 1
        data = await fetch_fn()
        await self._write(key, data, ttl, stale_ttl)
        return CacheResult(data=data, from_cache=False)

    async def _write(self, key: str, data: Any, ttl: int, stale_ttl: int) -> None:
        await self.store.set(key, make_envelope(data, self._now_ms()), ex=ttl + stale_ttl)
        logger.debug(f"Cache SET: {key} (ttl={ttl}, stale_ttl={stale_ttl})")

    def _schedule_refresh(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: int,
        stale_ttl: int,
    ) -> None:
        task = asyncio.create_task(self._run_refresh(key, fetch_fn, ttl, stale_ttl))
        _refresh_tasks.add(task)
        task.add_done_callback(_refresh_tasks.discard)

    async def _run_refresh(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: int,
        stale_ttl: int,
    ) -> None:
        try:
            await self.refresh(key, fetch_fn, ttl, stale_ttl)
        except Exception as e:
            self.stats["revalidation_errors"] += 1
            logger.warning(f"Background revalidation failed: {key} - {e}", exc_info=True)

    async def refresh(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: int,
        stale_ttl: Optional[int] = None,
    ) -> bool:
        """
        Re-fetch ``key`` under its refresh lock.

        Returns:
            True if this call fetched and wrote new data, False if another
            caller holds the refresh lock or already refreshed the entry
        """
        stale_ttl = ttl if stale_ttl is None else stale_ttl
        lock = refresh_lock_key(key)

        token = uuid.uuid4().hex
        if not await self.store.set(lock, token, ex=self.refresh_lock_ttl, nx=True):
            logger.debug(f"Refresh already in progress: {key}")
            return False

        try:
            # A refresh that finished just before we got the lock leaves nothing to do
            if self._is_fresh(await self.store.get(key), ttl):
                logger.debug(f"Already refreshed: {key}")
                return False

            data = await fetch_fn()
            await self._write(key, data, ttl, stale_ttl)
            self.stats["revalidations"] += 1
            logger.debug(f"Background revalidation complete: {key}")
            return True
        finally:
            await self.store.release_lock(lock, token)


async def wait_for_refreshes() -> None:
    """Wait for every scheduled background refresh to finish (shutdown, tests)."""
    while _refresh_tasks:
        await asyncio.gather(*list(_refresh_tasks), return_exceptions=True)


async def cache_aside(
    key: str,
    fetch_fn: Callable[[], Awaitable[T]],
    ttl: int = CACHE_TTL.prices,
    stale_while_revalidate: bool = False,
    stale_ttl: Optional[int] = None,
    store: Optional[KeyValueStore] = None,
) -> CacheResult[T]:
    """
    Cache-aside read with the default clock.

    Args:
        key: Cache key
        fetch_fn: Zero-argument coroutine function calling the upstream
        ttl: Seconds an entry counts as fresh
        stale_while_revalidate: Serve stale entries and refresh in background
        stale_ttl: Extra seconds the store keeps an entry past ttl
        store: Store adapter; defaults to the global Redis pool
    """
    if store is None:
        store = get_store()
    return await CacheAside(store).get(
        key,
        fetch_fn,
        ttl=ttl,
        stale_while_revalidate=stale_while_revalidate,
        stale_ttl=stale_ttl,
    )
