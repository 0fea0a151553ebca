"""Key-value store contract consumed by the cache engines."""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Tuple


class KeyValueStore(ABC):
    """Primitives the coalescing, SWR and bulk helpers are written against.

    Implementations must make ``set(..., nx=True)`` a single atomic
    check-and-set on the store side. Errors are raised, never swallowed.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the value under ``key``, or None if absent."""

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        ex: Optional[int] = None,
        nx: bool = False,
    ) -> bool:
        """Write ``value``; return False only when nx=True and the key exists."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys and return how many existed."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return whether ``key`` exists."""

    @abstractmethod
    async def release_lock(self, key: str, token: str) -> bool:
        """Atomically delete ``key`` only if its value is ``token``."""

    @abstractmethod
    async def mget(self, *keys: str) -> List[Optional[Any]]:
        """Return values in request order, None for absent keys."""

    @abstractmethod
    async def keys(self, pattern: str) -> List[str]:
        """Return every key matching a glob pattern."""

    @abstractmethod
    async def set_many(
        self,
        items: Iterable[Tuple[str, Any]],
        ex: Optional[int] = None,
    ) -> int:
        """Write several keys sharing one expiry; return the count written."""
