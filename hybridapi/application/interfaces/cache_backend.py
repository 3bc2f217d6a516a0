"""Abstract interface (port) for one cache tier."""

from abc import ABC, abstractmethod

from hybridapi.domain.entities import CacheEntry, CacheStats


class CacheBackend(ABC):
    """Port for a cache tier: in-memory, persistent, or a composition of both.

    Every mutation replaces whole entries; readers never observe a partially
    written entry.
    """

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Return the stored entry (fresh or not), or None."""
        ...

    @abstractmethod
    async def set(self, entry: CacheEntry) -> None:
        """Store or replace an entry."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove one entry. Returns True if it existed."""
        ...

    @abstractmethod
    async def delete_tag(self, tag: str) -> int:
        """Remove every entry carrying ``tag``. Returns the number removed."""
        ...

    @abstractmethod
    async def purge_expired(self, now: float) -> int:
        """Evict entries that are no longer fresh at ``now``."""
        ...

    @abstractmethod
    async def stats(self, now: float) -> CacheStats:
        """Count entries, split by freshness at ``now``."""
        ...

    @abstractmethod
    async def clear(self) -> int:
        """Remove everything. Returns the number of entries removed."""
        ...
