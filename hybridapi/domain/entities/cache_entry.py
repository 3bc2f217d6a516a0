"""Domain entity for a cached payload with its freshness window and tags."""

from dataclasses import dataclass, field
from typing import Any


def type_tag(entity_type: str) -> str:
    """Tag shared by every cache entry of an entity type."""
    return f"type:{entity_type}"


def identity_tag(entity_type: str, identity: Any) -> str:
    """Tag of the cache entries holding one specific entity."""
    return f"entity:{entity_type}:{identity}"


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload keyed by a deterministic signature.

    ``created_at`` is a POSIX timestamp in seconds. An entry is fresh while
    ``now < created_at + ttl``; from the expiry instant on it is treated as
    absent and may be evicted.
    """

    key: str
    payload: Any
    created_at: float
    ttl: float
    tags: frozenset[str] = field(default_factory=frozenset)

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass
class CacheStats:
    """Snapshot of a cache tier's contents."""

    entries: int = 0
    fresh: int = 0
    expired: int = 0
    tags: int = 0
