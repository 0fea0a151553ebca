"""Exceptions raised by the price guide cache layer.

Store errors are never wrapped: ``redis.exceptions.RedisError`` reaches the
caller as-is, so an outage is never mistaken for a cold cache.
"""


class PriceGuideError(Exception):
    """Base class for price guide errors."""


class StoreNotInitializedError(PriceGuideError, RuntimeError):
    """The Redis pool was used before init_redis_pool() was called."""


class CacheSerializationError(PriceGuideError, ValueError):
    """A value could not be encoded to, or decoded from, the store format."""


class UpstreamFetchError(PriceGuideError):
    """An upstream source (pricing API, scraper) failed."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class CertLookupError(PriceGuideError):
    """A certificate number is malformed or was not found."""

    def __init__(self, cert_number: str, reason: str):
        self.cert_number = cert_number
        self.reason = reason
        super().__init__(f"Cert {cert_number!r}: {reason}")
