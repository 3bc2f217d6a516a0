"""Multi-tier cache: composes an ordered list of tiers (fastest first)."""

import logging

from hybridapi.application.interfaces import CacheBackend
from hybridapi.domain.entities import CacheEntry, CacheStats

logger = logging.getLogger(__name__)


class TieredCacheBackend(CacheBackend):
    """Reads fall through the tiers and back-fill the faster ones.

    Writes and invalidations go to every tier. Statistics come from the
    last (most complete) tier.
    """

    def __init__(self, tiers: list[CacheBackend]):
        if not tiers:
            raise ValueError("TieredCacheBackend needs at least one tier")
        self._tiers = list(tiers)

    @property
    def tiers(self) -> list[CacheBackend]:
        return list(self._tiers)

    async def get(self, key: str) -> CacheEntry | None:
        for index, tier in enumerate(self._tiers):
            entry = await tier.get(key)
            if entry is None:
                continue
            for upper in self._tiers[:index]:
                await upper.set(entry)
            if index:
                logger.debug("Cache tier %d hit for %s, back-filled %d tier(s)", index, key[:12], index)
            return entry
        return None

    async def set(self, entry: CacheEntry) -> None:
        for tier in self._tiers:
            await tier.set(entry)

    async def delete(self, key: str) -> bool:
        results = [await tier.delete(key) for tier in self._tiers]
        return any(results)

    async def delete_tag(self, tag: str) -> int:
        counts = [await tier.delete_tag(tag) for tier in self._tiers]
        return max(counts)

    async def purge_expired(self, now: float) -> int:
        counts = [await tier.purge_expired(now) for tier in self._tiers]
        return max(counts)

    async def stats(self, now: float) -> CacheStats:
        return await self._tiers[-1].stats(now)

    async def clear(self) -> int:
        counts = [await tier.clear() for tier in self._tiers]
        return max(counts)
