"""TTL policy for each cached resource class.

TTLs follow upstream volatility and cost: search results are cheap and
change fast, cert records are expensive to scrape and essentially fixed.
The table is built once at import and never mutated; changing it is a
deploy.
"""

from dataclasses import dataclass
from enum import Enum

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR


class CardActivity(Enum):
    """How often a card is viewed or traded, as judged by the caller."""
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"


@dataclass(frozen=True)
class CardTTL:
    hot: int = 1 * HOUR
    warm: int = 2 * HOUR
    cold: int = 4 * HOUR


@dataclass(frozen=True)
class CacheTTL:
    """TTL in seconds per resource class."""
    card: CardTTL = CardTTL()
    prices: int = 1 * HOUR
    population: int = 1 * DAY
    cert: int = 7 * DAY
    search: int = 5 * MINUTE
    trending: int = 15 * MINUTE
    lock: int = 30
    refresh_lock: int = 60


CACHE_TTL = CacheTTL()


def card_ttl(activity: CardActivity = CardActivity.WARM) -> int:
    """
    TTL for a card record at the given activity tier.

    The tier is the caller's call; nothing here measures access frequency.

    Example:
        >>> card_ttl(CardActivity.HOT)
        3600
    """
    return getattr(CACHE_TTL.card, activity.value)
