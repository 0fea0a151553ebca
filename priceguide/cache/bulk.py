"""Batch reads, batch writes and invalidation helpers.

Batch reads return a dict keyed by the identifiers the caller asked for,
not by store keys. Ids with nothing cached are left out of the dict, so a
missing entry always means "not cached" and never "cached None".

Invalidation comes in two shapes:
    - targeted: delete the handful of known keys for one entity
    - broad: scan for a pattern, then delete what matched. This walks the
      whole keyspace and belongs in maintenance jobs and the admin CLI,
      never on a request path.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from priceguide.cache.keys import (
    all_cards_pattern,
    card_key,
    card_prices_key,
    set_cards_key,
)
from priceguide.cache.ttl import CardActivity, card_ttl
from priceguide.redis_client import get_store
from priceguide.store import KeyValueStore

logger = logging.getLogger(__name__)


async def get_many(
    ids: Iterable[str],
    key_fn: Callable[[str], str],
    store: Optional[KeyValueStore] = None,
) -> Dict[str, Any]:
    """
    Read several entries of one resource class in a single MGET.

    Args:
        ids: Identifiers to look up
        key_fn: Key builder for the resource class (e.g. card_key)
        store: Store adapter; defaults to the global Redis pool

    Returns:
        {id: value} for every id that had a cached value
    """
    ids = list(ids)
    if not ids:
        return {}

    if store is None:
        store = get_store()
    values = await store.mget(*(key_fn(i) for i in ids))

    found = {i: value for i, value in zip(ids, values) if value is not None}
    logger.debug(f"Bulk read: {len(found)}/{len(ids)} cached")
    return found


async def get_cached_cards(
    ids: Iterable[str],
    store: Optional[KeyValueStore] = None,
) -> Dict[str, Any]:
    """Cached card records keyed by TCGplayer id; uncached ids are omitted."""
    return await get_many(ids, card_key, store=store)


async def cache_many_cards(
    cards: Mapping[str, Any],
    ttl: Optional[int] = None,
    store: Optional[KeyValueStore] = None,
) -> int:
    """
    Write many card records in one pipeline.

    Args:
        cards: {tcg_player_id: card data}
        ttl: Expiry shared by every card (defaults to the warm tier)
        store: Store adapter; defaults to the global Redis pool

    Returns:
        Number of cards written
    """
    if not cards:
        return 0

    ttl = card_ttl(CardActivity.WARM) if ttl is None else ttl
    if store is None:
        store = get_store()
    count = await store.set_many(
        ((card_key(card_id), data) for card_id, data in cards.items()),
        ex=ttl,
    )
    logger.info(f"Cached {count} cards (ttl={ttl})")
    return count


async def invalidate_card(
    tcg_player_id: str,
    store: Optional[KeyValueStore] = None,
) -> int:
    """
    Drop a card's record and prices.

    Returns:
        Number of keys deleted
    """
    if store is None:
        store = get_store()
    count = await store.delete(card_key(tcg_player_id), card_prices_key(tcg_player_id))
    logger.info(f"Cache invalidated: card {tcg_player_id} (deleted={count})")
    return count


async def invalidate_pattern(
    pattern: str,
    store: Optional[KeyValueStore] = None,
) -> int:
    """
    Delete every key matching a glob pattern.

    Scans the whole keyspace. Maintenance use only.

    Args:
        pattern: Pattern to match (e.g., "search:*")

    Returns:
        Number of keys deleted
    """
    if not pattern:
        raise ValueError("pattern is required")

    if store is None:
        store = get_store()
    keys = await store.keys(pattern)
    if not keys:
        logger.info(f"No keys matched pattern: {pattern}")
        return 0

    count = await store.delete(*keys)
    logger.info(f"Cache invalidated by pattern: {pattern} (deleted={count})")
    return count


async def invalidate_set(
    set_id: str,
    store: Optional[KeyValueStore] = None,
) -> int:
    """
    Drop a set's card list along with every cached card record.

    Card keys carry no set id, so all ``card:*`` entries go, not just the
    set's own cards. Maintenance use only.

    Returns:
        Number of keys deleted
    """
    if store is None:
        store = get_store()
    count = await invalidate_pattern(all_cards_pattern(), store=store)
    count += await store.delete(set_cards_key(set_id))
    logger.info(f"Cache invalidated: set {set_id} (deleted={count})")
    return count
