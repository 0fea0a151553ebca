"""@cached decorator over the coalescing and SWR engines.

Wraps an async fetch function so each call goes through the cache. Unlike
a best-effort cache, store errors are not swallowed here: if Redis is down
the decorated call fails, and the caller decides what to show.

Strategies:
    - "coalesce": raw value, lock-based coalescing (default)
    - "swr": envelope with storedAt, stale-while-revalidate

Usage:
    from priceguide.cache.decorator import cached
    from priceguide.cache.keys import card_prices_key
    from priceguide.cache.ttl import CACHE_TTL

    @cached(key_builder=lambda tcg_player_id: card_prices_key(tcg_player_id),
            ttl=CACHE_TTL.prices)
    async def get_prices(tcg_player_id: str):
        return await pricing_api.get_card(tcg_player_id)

    @cached(key="trending:cards", ttl=CACHE_TTL.trending, strategy="swr")
    async def get_trending():
        return await compute_trending()
"""

import functools
import inspect
import logging
from typing import Any, Callable, Optional

from priceguide.cache.coalescing import RequestCoalescer
from priceguide.cache.swr import CacheAside
from priceguide.cache.ttl import CACHE_TTL
from priceguide.redis_client import get_store
from priceguide.store import KeyValueStore

logger = logging.getLogger(__name__)

STRATEGIES = ("coalesce", "swr")


def cached(
    key: Optional[str] = None,
    key_builder: Optional[Callable[..., str]] = None,
    ttl: int = CACHE_TTL.prices,
    strategy: str = "coalesce",
    store: Optional[KeyValueStore] = None,
):
    """
    Decorator caching the result of an async function.

    Args:
        key: Static cache key (use for functions with no arguments)
        key_builder: Builds the key from the function's arguments
        ttl: Time-to-live in seconds
        strategy: "coalesce" or "swr"
        store: Store adapter; defaults to the global Redis pool at call time

    Raises:
        ValueError: If neither or both of key/key_builder are given, the
            strategy is unknown, or the decorated function is not async
    """
    if key is None and key_builder is None:
        raise ValueError("Either 'key' or 'key_builder' must be provided")
    if key is not None and key_builder is not None:
        raise ValueError("Cannot provide both 'key' and 'key_builder'")
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy: {strategy}. Use one of {STRATEGIES}")

    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise ValueError(f"@cached requires an async function, got {func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            cache_key = key if key is not None else key_builder(*args, **kwargs)
            active_store = store if store is not None else get_store()

            async def fetch():
                logger.info(f"Cache MISS: {cache_key} (func={func.__name__})")
                return await func(*args, **kwargs)

            if strategy == "swr":
                result = await CacheAside(active_store).get(
                    cache_key, fetch, ttl=ttl, stale_while_revalidate=True
                )
                return result.data
            return await RequestCoalescer(active_store).get_or_fetch(cache_key, fetch, ttl)

        return wrapper

    return decorator
