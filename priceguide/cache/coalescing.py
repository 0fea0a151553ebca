"""Request coalescing across processes through a Redis lock.

When many callers miss the same key at once, only the one that wins the
lock calls the upstream; the rest poll the store until the value shows up.

Pattern:
    - GET the key; a hit returns straight away and never touches the lock
    - SET <key>:lock NX EX lock_ttl; the winner fetches, writes, unlocks
    - Losers sleep with exponential backoff and re-read the key
    - If the lock disappears without a value, or polling runs out, the
      follower fetches on its own

Mutual exclusion lives entirely in the store's atomic SET NX. There is no
in-process lock, so callers in different processes coalesce the same way as
tasks in one event loop. Each holder writes its own random token into the
lock and releases with a compare-and-delete, so a holder whose fetch
outlived the lock TTL cannot delete a lock a later caller has since taken.

The fallback fetch gives up strict single-fetcher ownership in the tail
case: several followers can fall through together and each call the
upstream. That is accepted in exchange for never blocking on a lock nobody
will release.

Usage:
    coalescer = RequestCoalescer(store)
    prices = await coalescer.get_or_fetch(
        card_prices_key("243172"),
        lambda: pricing_api.get_card("243172"),
        ttl=CACHE_TTL.prices,
    )
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from priceguide.cache.keys import lock_key
from priceguide.cache.ttl import CACHE_TTL
from priceguide.redis_client import get_store
from priceguide.store import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_DELAY = 0.1  # seconds
DEFAULT_MULTIPLIER = 1.5
DEFAULT_MAX_ATTEMPTS = 13


class RequestCoalescer:
    """
    Ensures concurrent misses on one key share a single upstream fetch.

    Followers wait at most ``polling_budget`` seconds. That budget must be
    longer than the lock TTL: a holder that dies leaves its lock to expire,
    and followers have to still be polling when it does.
    """

    def __init__(
        self,
        store: KeyValueStore,
        lock_ttl: int = CACHE_TTL.lock,
        base_delay: float = DEFAULT_BASE_DELAY,
        multiplier: float = DEFAULT_MULTIPLIER,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the coalescer.

        Args:
            store: Key-value store adapter
            lock_ttl: Seconds before an abandoned lock expires
            base_delay: First polling delay in seconds
            multiplier: Growth factor between polling delays
            max_attempts: Number of polls before falling back
            sleep: Awaitable sleep, replaceable in tests

        Raises:
            ValueError: If the polling budget is not longer than lock_ttl
        """
        self.store = store
        self.lock_ttl = lock_ttl
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_attempts = max_attempts
        self._sleep = sleep

        if self.polling_budget <= lock_ttl:
            raise ValueError(
                f"Polling budget {self.polling_budget:.1f}s must exceed "
                f"lock TTL {lock_ttl}s"
            )

        self.stats: Dict[str, int] = {
            "hits": 0,
            "fetches": 0,
            "coalesced": 0,
            "fallbacks": 0,
        }

    def delay_for(self, attempt: int) -> float:
        """Seconds to sleep before poll number ``attempt`` (0-based)."""
        return self.base_delay * (self.multiplier ** attempt)

    @property
    def polling_budget(self) -> float:
        """Total seconds a follower sleeps before falling back."""
        return sum(self.delay_for(n) for n in range(self.max_attempts))

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        ttl: int = CACHE_TTL.prices,
    ) -> T:
        """
        Return the cached value for ``key``, fetching it at most once.

        Args:
            key: Cache key
            fetch_fn: Zero-argument coroutine function calling the upstream
            ttl: Expiry in seconds for the stored value

        Returns:
            The cached or freshly fetched value

        Raises:
            Exception: Any error from fetch_fn (after the lock is released)
                or from the store
        """
        cached = await self.store.get(key)
        if cached is not None:
            self.stats["hits"] += 1
            return cached

        lock = lock_key(key)
        token = uuid.uuid4().hex
        acquired = await self.store.set(lock, token, ex=self.lock_ttl, nx=True)

        if acquired:
            logger.debug(f"Lock acquired, fetching: {key}")
            self.stats["fetches"] += 1
            try:
                data = await fetch_fn()
                await self._store_result(key, data, ttl)
            finally:
                # Released on failure too, so the next caller can retry
                await self.store.release_lock(lock, token)
            return data

        logger.debug(f"Coalescing on in-flight fetch: {key}")
        for attempt in range(self.max_attempts):
            await self._sleep(self.delay_for(attempt))

            result = await self.store.get(key)
            if result is not None:
                self.stats["coalesced"] += 1
                return result

            if not await self.store.exists(lock):
                # The holder may have written and unlocked between our two reads
                result = await self.store.get(key)
                if result is not None:
                    self.stats["coalesced"] += 1
                    return result
                logger.info(f"Lock released without data, fetching directly: {key}")
                break
        else:
            logger.warning(
                f"Gave up waiting after {self.max_attempts} polls, fetching directly: {key}"
            )

        self.stats["fallbacks"] += 1
        data = await fetch_fn()
        await self._store_result(key, data, ttl)
        return data

    async def _store_result(self, key: str, data: Any, ttl: int) -> None:
        # None reads back as a miss, so writing it would only waste a round trip
        if data is None:
            logger.debug(f"Fetch returned None, not caching: {key}")
            return
        await self.store.set(key, data, ex=ttl)
        logger.debug(f"Cache SET: {key} (ttl={ttl})")


async def with_request_coalescing(
    key: str,
    fetch_fn: Callable[[], Awaitable[T]],
    ttl: int = CACHE_TTL.prices,
    store: Optional[KeyValueStore] = None,
) -> T:
    """
    Coalesced read-through with default polling settings.

    Args:
        key: Cache key
        fetch_fn: Zero-argument coroutine function calling the upstream
        ttl: Expiry in seconds for the stored value
        store: Store adapter; defaults to the global Redis pool

    Returns:
        The cached or freshly fetched value
    """
    if store is None:
        store = get_store()
    return await RequestCoalescer(store).get_or_fetch(key, fetch_fn, ttl)
