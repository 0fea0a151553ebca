"""Cache layer: key/TTL policy, request coalescing, SWR and bulk helpers.

Key Modules:
    - keys: Cache key builders per resource class
    - ttl: TTL policy table
    - coalescing: Lock-based request coalescing
    - swr: Cache-aside with stale-while-revalidate
    - bulk: Batch reads/writes and invalidation
    - decorator: @cached front-end over the engines

Example:
    from priceguide.cache import CACHE_TTL, cert_key, with_request_coalescing

    cert = await with_request_coalescing(
        cert_key("12345678", "psa"),
        lambda: scrape_psa("12345678"),
        ttl=CACHE_TTL.cert,
    )
"""

from .keys import (
    card_key,
    card_prices_key,
    cert_key,
    lock_key,
    population_key,
    refresh_lock_key,
    search_key,
    set_cards_key,
    trending_key,
)
from .ttl import CACHE_TTL, CardActivity, card_ttl
from .coalescing import RequestCoalescer, with_request_coalescing
from .swr import CacheAside, CacheResult, cache_aside, wait_for_refreshes
from .bulk import (
    cache_many_cards,
    get_cached_cards,
    get_many,
    invalidate_card,
    invalidate_pattern,
    invalidate_set,
)
from .decorator import cached

__all__ = [
    # Key builders
    "card_key",
    "card_prices_key",
    "cert_key",
    "lock_key",
    "population_key",
    "refresh_lock_key",
    "search_key",
    "set_cards_key",
    "trending_key",
    # TTL policy
    "CACHE_TTL",
    "CardActivity",
    "card_ttl",
    # Engines
    "RequestCoalescer",
    "with_request_coalescing",
    "CacheAside",
    "CacheResult",
    "cache_aside",
    "wait_for_refreshes",
    # Bulk & invalidation
    "cache_many_cards",
    "get_cached_cards",
    "get_many",
    "invalidate_card",
    "invalidate_pattern",
    "invalidate_set",
    # Decorator
    "cached",
]
