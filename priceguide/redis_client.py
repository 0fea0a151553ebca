"""Redis store adapter with connection pooling.

This module is the only place that talks to Redis. It exposes the small set
of primitives the cache engines rely on (get, set with NX/EX, delete, exists,
mget, keys, pipelined batch set, token-checked lock release) and keeps
payload serialization on this side of the boundary.

Architecture:
    - RedisConfig: connection settings read from the environment
    - AsyncRedisClient: adapter over a redis.asyncio client
    - Singleton pool (one per process), created at startup

Store errors are not caught here. A Redis outage must surface as an error,
not as a cache miss, or every request would fall through to the upstream
sources at once.

Usage:
    # At process start (API startup hook, job entry point)
    await init_redis_pool()

    # In application code
    store = get_store()
    await store.set("card:123", {"name": "Charizard"}, ex=3600)
    card = await store.get("card:123")

    # At shutdown
    await close_redis_pool()
"""

import os
import logging
from typing import Any, Iterable, List, Optional, Tuple

from redis import asyncio as aioredis
from dotenv import load_dotenv

from priceguide.serializer import SerializationFormat, dumps, loads
from priceguide.errors import StoreNotInitializedError
from priceguide.store import KeyValueStore

load_dotenv()

logger = logging.getLogger(__name__)

SERIALIZATION_FORMATS = tuple(f.value for f in SerializationFormat)

# Compare-and-delete: only the holder that wrote the token may release
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
  return redis.call("del", KEYS[1])
end
return 0
"""


class RedisConfig:
    """Configuration for the Redis connection pool.

    Loads settings from environment variables with sensible defaults.
    ``REDIS_URL`` wins over the individual host/port/db/password settings,
    which lets hosted stores hand out a single ``rediss://`` URL.
    """

    def __init__(self):
        """Initialize Redis configuration from environment variables."""
        self.url = os.getenv("REDIS_URL") or None
        self.host = os.getenv("REDIS_HOST", "localhost")
        self.port = int(os.getenv("REDIS_PORT", "6379"))
        self.db = int(os.getenv("REDIS_DB", "0"))
        self.password = os.getenv("REDIS_PASSWORD", None)
        self.max_connections = int(os.getenv("REDIS_MAX_CONNECTIONS", "10"))
        self.socket_timeout = int(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))
        self.socket_connect_timeout = int(os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "5"))
        self.retry_on_timeout = os.getenv("REDIS_RETRY_ON_TIMEOUT", "true").lower() == "true"
        self.serialization_format = os.getenv("REDIS_SERIALIZATION_FORMAT", "json").lower()
        self.compress = os.getenv("REDIS_COMPRESS", "false").lower() == "true"

        if self.serialization_format not in SERIALIZATION_FORMATS:
            raise ValueError(
                f"Invalid REDIS_SERIALIZATION_FORMAT: {self.serialization_format}. "
                f"Use one of {SERIALIZATION_FORMATS}"
            )

    def build_url(self) -> str:
        """Return the connection URL (password included, never log it)."""
        if self.url:
            return self.url
        url = "redis://"
        if self.password:
            url += f":{self.password}@"
        url += f"{self.host}:{self.port}/{self.db}"
        return url

    def __repr__(self) -> str:
        """String representation (safe - no password)."""
        target = "url=<set>" if self.url else f"host={self.host}, port={self.port}, db={self.db}"
        return (
            f"RedisConfig({target}, max_connections={self.max_connections}, "
            f"format={self.serialization_format}, compress={self.compress})"
        )


# Global async Redis pool singleton
_redis_pool: Optional[aioredis.Redis] = None
_redis_config: Optional[RedisConfig] = None


class AsyncRedisClient(KeyValueStore):
    """Key-value store adapter used by every cache component.

    Wraps a ``redis.asyncio.Redis`` client created with
    ``decode_responses=True``. Values are serialized on write and
    deserialized on read; keys are plain strings.

    Example:
        store = AsyncRedisClient(get_redis_pool())

        await store.set("prices:123", {"nearMint": 4.25}, ex=3600)
        acquired = await store.set("prices:123:lock", token, ex=30, nx=True)
        values = await store.mget("card:1", "card:2")
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        format: str = "json",
        compress: bool = False,
    ):
        """Initialize the adapter.

        Args:
            redis_client: Async Redis client instance with connection pool
            format: Serialization format for values ("json" or "msgpack")
            compress: Gzip large values before storing them
        """
        self.client = redis_client
        self.format = format
        self.compress = compress

    def _encode(self, value: Any) -> str:
        return dumps(value, format=self.format, compress=self.compress)

    async def ping(self) -> bool:
        """Check if Redis server is reachable.

        Returns:
            True if server responds to ping, False otherwise
        """
        try:
            result = await self.client.ping()
            logger.debug("Redis ping successful")
            return bool(result)
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def get(self, key: str) -> Optional[Any]:
        """Get a value.

        Args:
            key: Cache key

        Returns:
            Deserialized value, or None if the key is absent
        """
        raw = await self.client.get(key)
        if raw is None:
            logger.debug(f"Cache MISS: {key}")
            return None
        logger.debug(f"Cache HIT: {key}")
        return loads(raw)

    async def set(
        self,
        key: str,
        value: Any,
        ex: Optional[int] = None,
        nx: bool = False,
    ) -> bool:
        """Set a value, optionally with expiry and only-if-absent.

        ``nx=True`` is sent as a single ``SET key value NX EX ttl`` command,
        so the check and the write happen atomically on the server. Locks
        depend on this.

        Args:
            key: Cache key
            value: Value to store
            ex: Expiry in seconds (None = no expiration)
            nx: Only set the key if it does not already exist

        Returns:
            True if the write was accepted, False if nx=True and the key existed
        """
        result = await self.client.set(key, self._encode(value), ex=ex, nx=nx)
        accepted = bool(result)
        logger.debug(f"Cache SET: {key} (ttl={ex}, nx={nx}, accepted={accepted})")
        return accepted

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys.

        Returns:
            Number of keys deleted
        """
        if not keys:
            return 0
        count = await self.client.delete(*keys)
        logger.debug(f"Cache DELETE: {keys} (count={count})")
        return count

    async def exists(self, key: str) -> bool:
        """Check whether a key exists."""
        return await self.client.exists(key) > 0

    async def release_lock(self, key: str, token: str) -> bool:
        """Delete a lock only if it still holds ``token``.

        Runs as one Lua script so the compare and the delete are atomic. A
        holder whose lock already expired, and was taken by someone else,
        leaves the new holder's lock alone.

        Returns:
            True if the lock was ours and is now deleted
        """
        released = await self.client.eval(RELEASE_LOCK_SCRIPT, 1, key, self._encode(token))
        logger.debug(f"Lock RELEASE: {key} (released={bool(released)})")
        return bool(released)

    async def mget(self, *keys: str) -> List[Optional[Any]]:
        """Get several values in one round trip.

        Returns:
            List the same length and order as ``keys``; absent keys are None
        """
        if not keys:
            return []
        raws = await self.client.mget(keys)
        return [loads(raw) if raw is not None else None for raw in raws]

    async def keys(self, pattern: str) -> List[str]:
        """Find keys matching a glob pattern.

        Walks the keyspace with SCAN, so the cost is proportional to the
        size of the whole database. Maintenance paths only.

        Args:
            pattern: Pattern to match (e.g., "card:*")
        """
        return [key async for key in self.client.scan_iter(match=pattern)]

    async def set_many(
        self,
        items: Iterable[Tuple[str, Any]],
        ex: Optional[int] = None,
    ) -> int:
        """Write several keys in one pipelined round trip.

        Args:
            items: (key, value) pairs
            ex: Expiry in seconds shared by every key

        Returns:
            Number of keys written
        """
        encoded = [(key, self._encode(value)) for key, value in items]
        if not encoded:
            return 0
        async with self.client.pipeline(transaction=False) as pipe:
            for key, raw in encoded:
                pipe.set(key, raw, ex=ex)
            await pipe.execute()
        logger.debug(f"Cache SET (pipeline): {len(encoded)} keys (ttl={ex})")
        return len(encoded)


async def init_redis_pool() -> aioredis.Redis:
    """Initialize the global async Redis connection pool.

    Should be called once at process start. Safe to call multiple times
    (returns the existing pool if already initialized).

    Returns:
        aioredis.Redis: The initialized Redis client with connection pool

    Raises:
        redis.exceptions.RedisError: If the server cannot be reached
    """
    global _redis_pool, _redis_config

    if _redis_pool is not None:
        logger.info("Redis pool already initialized, returning existing pool")
        return _redis_pool

    _redis_config = RedisConfig()
    logger.info(f"Initializing Redis pool with config: {_redis_config}")

    try:
        pool = await aioredis.from_url(
            _redis_config.build_url(),
            max_connections=_redis_config.max_connections,
            socket_timeout=_redis_config.socket_timeout,
            socket_connect_timeout=_redis_config.socket_connect_timeout,
            retry_on_timeout=_redis_config.retry_on_timeout,
            decode_responses=True,  # Return strings instead of bytes
        )
        await pool.ping()
        _redis_pool = pool
        logger.info(f"✓ Redis pool initialized (max_connections={_redis_config.max_connections})")
        return _redis_pool

    except Exception as e:
        logger.error(f"✗ Failed to initialize Redis pool: {e}", exc_info=True)
        _redis_pool = None
        _redis_config = None
        raise


def get_redis_pool() -> aioredis.Redis:
    """Get the global async Redis connection pool.

    Raises:
        StoreNotInitializedError: If init_redis_pool() has not been called
    """
    if _redis_pool is None:
        raise StoreNotInitializedError(
            "Redis pool has not been initialized. "
            "Call init_redis_pool() during application startup."
        )
    return _redis_pool


def get_store() -> AsyncRedisClient:
    """Get a store adapter bound to the global pool.

    Payload format and compression come from the pool's RedisConfig
    (REDIS_SERIALIZATION_FORMAT, REDIS_COMPRESS).
    """
    pool = get_redis_pool()
    config = _redis_config if _redis_config is not None else RedisConfig()
    return AsyncRedisClient(
        pool,
        format=config.serialization_format,
        compress=config.compress,
    )


async def close_redis_pool():
    """Close the global async Redis connection pool."""
    global _redis_pool, _redis_config

    if _redis_pool is None:
        logger.info("Redis pool is not initialized, nothing to close")
        return

    try:
        await _redis_pool.aclose()
        logger.info("✓ Redis pool closed successfully")
    except Exception as e:
        logger.error(f"Error closing Redis pool: {e}", exc_info=True)
    finally:
        _redis_pool = None
        _redis_config = None


async def check_redis_health() -> dict:
    """
    Check the health and status of the Redis connection pool.

    Returns:
        dict: Redis health status including:
            - status: "healthy", "degraded", or "unavailable"
            - config: Safe config description
            - error: Error message if unhealthy
    """
    if _redis_pool is None:
        return {
            "status": "unavailable",
            "error": "Pool not initialized"
        }

    try:
        await _redis_pool.ping()
        return {
            "status": "healthy",
            "config": repr(_redis_config),
        }

    except Exception as e:
        logger.error(f"Redis health check failed: {e}", exc_info=True)
        return {
            "status": "degraded",
            "error": str(e),
            "config": repr(_redis_config),
        }
