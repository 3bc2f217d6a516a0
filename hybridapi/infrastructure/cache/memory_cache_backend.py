"""In-process cache tier: implements the CacheBackend port."""

import threading

from hybridapi.application.interfaces import CacheBackend
from hybridapi.domain.entities import CacheEntry, CacheStats


class MemoryCacheBackend(CacheBackend):
    """Dictionary-backed tier with a tag index.

    A re-entrant lock guards every read and mutation so entries are only
    ever replaced whole, also when the tier is shared across threads.
    """

    def __init__(self, max_entries: int | None = None):
        self._entries: dict[str, CacheEntry] = {}
        self._tags: dict[str, set[str]] = {}
        self._max_entries = max_entries
        self._lock = threading.RLock()

    async def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    async def set(self, entry: CacheEntry) -> None:
        with self._lock:
            self._remove(entry.key)
            if self._max_entries is not None and len(self._entries) >= self._max_entries:
                # Evict the oldest entry (dicts keep insertion order).
                self._remove(next(iter(self._entries)))
            self._entries[entry.key] = entry
            for tag in entry.tags:
                self._tags.setdefault(tag, set()).add(entry.key)

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._remove(key)

    async def delete_tag(self, tag: str) -> int:
        with self._lock:
            keys = list(self._tags.get(tag, ()))
            return sum(1 for key in keys if self._remove(key))

    async def purge_expired(self, now: float) -> int:
        with self._lock:
            expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
            for key in expired:
                self._remove(key)
            return len(expired)

    async def stats(self, now: float) -> CacheStats:
        with self._lock:
            fresh = sum(1 for entry in self._entries.values() if entry.is_fresh(now))
            return CacheStats(
                entries=len(self._entries),
                fresh=fresh,
                expired=len(self._entries) - fresh,
                tags=len(self._tags),
            )

    async def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._tags.clear()
            return count

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            keys = self._tags.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._tags[tag]
        return True
