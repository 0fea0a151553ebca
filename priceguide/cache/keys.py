"""Cache key builders for the price guide's resource classes.

Every cached resource gets a namespaced key built by one of the pure
functions below. The same identifying fields always give the same key, and
two different entities of one class never share a key.

Key Naming Convention:
    - Colons (:) separate namespaces
    - Format: {class}:{identifier}[:{sub}]
    - Examples:
        - card:243172
        - prices:243172
        - cert:psa:12345678
        - set:sv3pt5:cards

Lock keys are derived from the key they protect by appending a suffix, so a
lock can never be confused with a data key of the same class.

Usage:
    from priceguide.cache.keys import cert_key, lock_key

    key = cert_key("12345678", "psa")
    # Returns: "cert:psa:12345678"
"""

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Cache key prefixes for different resource classes
PREFIX_CARD = "card"
PREFIX_PRICES = "prices"
PREFIX_POPULATION = "pop"
PREFIX_CERT = "cert"
PREFIX_SEARCH = "search"
PREFIX_TRENDING = "trending"
PREFIX_SET = "set"

# Suffixes for keys derived from a data key
LOCK_SUFFIX = "lock"
REFRESH_SUFFIX = "refresh"

GRADING_COMPANIES = frozenset({"psa", "bgs", "cgc", "sgc"})


def _require(value: str, name: str) -> str:
    if not value:
        raise ValueError(f"{name} is required")
    return value


# ============================================================================
# Card & Price Keys
# ============================================================================


def card_key(tcg_player_id: str) -> str:
    """
    Build cache key for a card record.

    Example:
        >>> card_key("243172")
        'card:243172'
    """
    return f"{PREFIX_CARD}:{_require(tcg_player_id, 'tcg_player_id')}"


def card_prices_key(tcg_player_id: str) -> str:
    """
    Build cache key for a card's raw and graded prices.

    Example:
        >>> card_prices_key("243172")
        'prices:243172'
    """
    return f"{PREFIX_PRICES}:{_require(tcg_player_id, 'tcg_player_id')}"


def set_cards_key(set_id: str) -> str:
    """
    Build cache key for the card list of a set.

    Example:
        >>> set_cards_key("sv3pt5")
        'set:sv3pt5:cards'
    """
    return f"{PREFIX_SET}:{_require(set_id, 'set_id')}:cards"


# ============================================================================
# Grading Keys
# ============================================================================


def population_key(card_id: str) -> str:
    """
    Build cache key for a card's population report.

    Example:
        >>> population_key("c-42")
        'pop:c-42'
    """
    return f"{PREFIX_POPULATION}:{_require(card_id, 'card_id')}"


def cert_key(cert_number: str, company: str) -> str:
    """
    Build cache key for a grading-company certificate.

    Args:
        cert_number: Certificate number (digits only, already cleaned)
        company: Grading company slug ("psa", "bgs", "cgc", "sgc")

    Raises:
        ValueError: If either field is missing or the company is unknown

    Example:
        >>> cert_key("12345678", "psa")
        'cert:psa:12345678'
    """
    company = _require(company, "company").lower()
    if company not in GRADING_COMPANIES:
        raise ValueError(f"Unknown grading company: {company}")
    return f"{PREFIX_CERT}:{company}:{_require(cert_number, 'cert_number')}"


# ============================================================================
# Search & Trending Keys
# ============================================================================


def search_key(query: str, options: Optional[Dict[str, Any]] = None) -> str:
    """
    Build cache key for a search result page.

    Query and options are encoded as canonical JSON (sorted keys, no
    whitespace), so option order does not change the key.

    Example:
        >>> search_key("charizard", {"page": 1})
        'search:{"options":{"page":1},"query":"charizard"}'
    """
    payload = {"query": query, "options": options or {}}
    return f"{PREFIX_SEARCH}:{json.dumps(payload, sort_keys=True, separators=(',', ':'))}"


def trending_key() -> str:
    """
    Build cache key for the trending cards leaderboard.

    Example:
        >>> trending_key()
        'trending:cards'
    """
    return f"{PREFIX_TRENDING}:cards"


# ============================================================================
# Lock Keys
# ============================================================================


def lock_key(key: str) -> str:
    """
    Build the coalescing lock key for a data key.

    Example:
        >>> lock_key("prices:243172")
        'prices:243172:lock'
    """
    return f"{_require(key, 'key')}:{LOCK_SUFFIX}"


def refresh_lock_key(key: str) -> str:
    """
    Build the background-refresh lock key for a data key.

    Kept apart from lock_key() so a stale refresh never blocks, or is
    blocked by, a cold-miss fetch of the same key.

    Example:
        >>> refresh_lock_key("trending:cards")
        'trending:cards:refresh'
    """
    return f"{_require(key, 'key')}:{REFRESH_SUFFIX}"


# ============================================================================
# Patterns
# ============================================================================


def all_cards_pattern() -> str:
    """Pattern matching every card key: "card:*"."""
    return f"{PREFIX_CARD}:*"


def parse_key(key: str) -> dict:
    """
    Split a cache key into its class and identifier.

    Examples:
        >>> parse_key("cert:psa:12345678")
        {'category': 'cert', 'identifier': 'psa:12345678'}

        >>> parse_key("orphan")
        {'category': None, 'identifier': None}
    """
    category, sep, identifier = key.partition(":")
    if not sep or not category or not identifier:
        logger.warning(f"Invalid cache key format: {key}")
        return {"category": None, "identifier": None}
    return {"category": category, "identifier": identifier}


def validate_key(key: str) -> bool:
    """
    Check that a key (or a scan pattern) belongs to a known resource class.

    Examples:
        >>> validate_key("card:243172")
        True

        >>> validate_key("search:*")
        True

        >>> validate_key("card:")
        False
    """
    if not key or not isinstance(key, str):
        return False

    parsed = parse_key(key)
    return parsed["category"] in {
        PREFIX_CARD,
        PREFIX_PRICES,
        PREFIX_POPULATION,
        PREFIX_CERT,
        PREFIX_SEARCH,
        PREFIX_TRENDING,
        PREFIX_SET,
    }
