"""Read-through cache in front of remote calls, with tag-based invalidation."""

import hashlib
import json
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from hybridapi.application.interfaces import CacheBackend
from hybridapi.config import Settings
from hybridapi.domain.coercion import to_json_safe
from hybridapi.domain.entities import CacheEntry, CacheStats, Entity, identity_tag, type_tag

logger = logging.getLogger(__name__)


class CacheLayer:
    """Keys cached payloads by deterministic signatures and files them under tags.

    TTL precedence: call-site override → entity-type settings → entity class
    ``cache_ttl`` → ``settings.cache_default_ttl``. A non-positive TTL, or a
    disabled cache, bypasses storage entirely.
    """

    def __init__(
        self,
        backend: CacheBackend,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self._backend = backend
        self._settings = settings
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._settings.cache_enabled

    # ── Signatures & TTL ─────────────────────────────────────────────

    def signature_for_query(self, entity_type: str, path: str, params: Mapping[str, str]) -> str:
        return self._digest([self._settings.cache_prefix, entity_type, "query", path, dict(params)])

    def signature_for_identity(self, entity_type: str, identity: Any) -> str:
        return self._digest([self._settings.cache_prefix, entity_type, "identity", str(identity)])

    def resolve_ttl(self, entity_cls: type[Entity], override: float | None = None) -> float:
        if override is not None:
            return float(override)
        configured = self._settings.entity_settings(entity_cls.entity_type).cache_ttl
        if configured is not None:
            return float(configured)
        if entity_cls.cache_ttl is not None:
            return float(entity_cls.cache_ttl)
        return float(self._settings.cache_default_ttl)

    # ── Core operations ──────────────────────────────────────────────

    async def get(self, signature: str) -> Any:
        """Fresh payload for ``signature``, or None."""
        entry = await self._fresh_entry(signature)
        return entry.payload if entry is not None else None

    async def put(self, signature: str, payload: Any, ttl: float, tags: Iterable[str] = ()) -> None:
        if not self.enabled or ttl <= 0:
            return
        entry = CacheEntry(
            key=signature,
            payload=to_json_safe(payload),
            created_at=self._clock(),
            ttl=ttl,
            tags=frozenset(tags),
        )
        await self._backend.set(entry)

    async def invalidate(self, tag_or_signature: str) -> int:
        """Drop every entry carrying the tag, or the single entry with that key."""
        removed = await self._backend.delete_tag(tag_or_signature)
        if await self._backend.delete(tag_or_signature):
            removed += 1
        if removed:
            logger.debug("Invalidated %d cache entr%s for '%s'", removed, "y" if removed == 1 else "ies", tag_or_signature)
        return removed

    async def invalidate_entity(self, entity: Entity) -> int:
        """Invalidate the entity's type, its identity and its related entities."""
        tags = {type_tag(entity.entity_type)}
        if entity.key is not None:
            tags.add(identity_tag(entity.entity_type, entity.key))
            tags.add(self.signature_for_identity(entity.entity_type, entity.key))
        for related in entity.related_entities():
            tags.add(type_tag(related.entity_type))
            if related.key is not None:
                tags.add(identity_tag(related.entity_type, related.key))
        removed = 0
        for tag in sorted(tags):
            removed += await self.invalidate(tag)
        return removed

    async def remember(
        self,
        signature: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: float,
        tags: Iterable[str] = (),
    ) -> Any:
        """Return the fresh cached payload, or fetch, store and return it.

        Concurrent misses for the same signature each fetch; the last write
        wins.
        """
        if self.enabled and ttl > 0:
            entry = await self._fresh_entry(signature)
            if entry is not None:
                logger.debug("Cache hit %s", signature[:12])
                return entry.payload
        payload = await fetch()
        await self.put(signature, payload, ttl, tags)
        return payload

    # ── Maintenance ──────────────────────────────────────────────────

    async def purge_expired(self) -> int:
        removed = await self._backend.purge_expired(self._clock())
        if removed:
            logger.info("Purged %d expired cache entries", removed)
        return removed

    async def stats(self) -> CacheStats:
        return await self._backend.stats(self._clock())

    async def clear(self) -> int:
        removed = await self._backend.clear()
        logger.info("Cleared cache (%d entries)", removed)
        return removed

    async def warm_up(
        self,
        entity_cls: type[Entity],
        raws: Iterable[Mapping[str, Any]],
        ttl: float | None = None,
    ) -> int:
        """Preload single-entity entries from raw API maps. Returns how many were stored."""
        effective_ttl = self.resolve_ttl(entity_cls, ttl)
        if not self.enabled or effective_ttl <= 0:
            return 0
        raw_key = _api_key_for(entity_cls, entity_cls.primary_key)
        stored = 0
        for raw in raws:
            identity = raw.get(raw_key)
            if identity is None:
                continue
            await self.put(
                self.signature_for_identity(entity_cls.entity_type, identity),
                dict(raw),
                effective_ttl,
                {type_tag(entity_cls.entity_type), identity_tag(entity_cls.entity_type, identity)},
            )
            stored += 1
        logger.info("Warmed up %d %s cache entries", stored, entity_cls.entity_type)
        return stored

    # ── Internals ────────────────────────────────────────────────────

    async def _fresh_entry(self, signature: str) -> CacheEntry | None:
        if not self.enabled:
            return None
        entry = await self._backend.get(signature)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            await self._backend.delete(signature)
            return None
        return entry

    @staticmethod
    def _digest(parts: list[Any]) -> str:
        canonical = json.dumps(parts, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _api_key_for(entity_cls: type[Entity], attribute: str) -> str:
    for api_key, mapped in entity_cls.api_field_mapping.items():
        if mapped == attribute:
            return api_key
    return attribute
