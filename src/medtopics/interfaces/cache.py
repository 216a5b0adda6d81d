"""Cache interface for medtopics.

This module defines the Protocol for the read-side cache and the
sentinel distinguishing "not cached" from a cached ``None``.
"""

from typing import Any, Final, Protocol, runtime_checkable

__all__ = [
    "CacheInterface",
    "MISS",
]


class _Miss:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Final = _Miss()
"""Returned by ``CacheInterface.get`` when no valid entry exists."""


@runtime_checkable
class CacheInterface(Protocol):
    """Contract for an epoch-invalidated key/value cache.

    A reader takes ``current_epoch()`` before loading and passes it to
    both ``get`` and ``set``, so a value loaded across an
    ``invalidate()`` is never served under the newer epoch.
    """

    async def current_epoch(self) -> int:
        """Get the epoch reads are currently tagged with."""
        ...

    async def get(self, key: str, epoch: int | None = None) -> Any:
        """Get a cached value.

        Args:
            key: Cache key
            epoch: Epoch observed by the caller (default: current epoch)

        Returns:
            The cached value (possibly None), or MISS
        """
        ...

    async def set(self, key: str, value: Any, ttl: int, epoch: int | None = None) -> None:
        """Cache a value under an epoch.

        Args:
            key: Cache key
            value: JSON-serialisable value, None marks a negative entry
            ttl: Time to live in seconds
            epoch: Epoch observed before the value was loaded; a value
                whose epoch has since been invalidated is never served
        """
        ...

    async def invalidate(self) -> None:
        """Expire every entry at once by advancing the epoch."""
        ...
