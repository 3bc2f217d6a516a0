"""Application service (use case) facade for entity queries and persistence."""

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from hybridapi.application.services.hybrid_router import HybridRouter
from hybridapi.application.services.query_builder import QueryBuilder
from hybridapi.domain.entities import Entity, HybridMode, SyncReport
from hybridapi.domain.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


class EntityService:
    """Entry point for application code. Depends on the hybrid router (DI)."""

    def __init__(self, router: HybridRouter):
        self._router = router

    @property
    def router(self) -> HybridRouter:
        return self._router

    def query(self, entity_cls: type[E]) -> QueryBuilder[E]:
        return QueryBuilder(entity_cls, self._router)

    async def all(self, entity_cls: type[E], *, mode: HybridMode | str | None = None) -> list[E]:
        return await self.query(entity_cls).get(mode=mode)

    async def find(
        self,
        entity_cls: type[E],
        identity: Any,
        *,
        mode: HybridMode | str | None = None,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> E:
        entity = await self.find_or_none(entity_cls, identity, mode=mode, ttl=ttl, timeout=timeout)
        if entity is None:
            raise NotFoundError(entity_cls.entity_type, identity)
        return entity

    async def find_or_none(
        self,
        entity_cls: type[E],
        identity: Any,
        *,
        mode: HybridMode | str | None = None,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> E | None:
        if identity is None or identity == "":
            raise ValidationError("Identity must not be empty", entity_type=entity_cls.entity_type, operation="find")
        return await self._router.find(entity_cls, identity, mode=mode, ttl=ttl, timeout=timeout)

    async def create(
        self,
        entity_cls: type[E],
        attributes: Mapping[str, Any],
        *,
        mode: HybridMode | str | None = None,
        timeout: float | None = None,
    ) -> E:
        entity = entity_cls(attributes)
        return await self._router.save(entity, mode=mode, timeout=timeout)

    async def save(self, entity: E, *, mode: HybridMode | str | None = None, timeout: float | None = None) -> E:
        if entity.exists and not entity.is_dirty():
            logger.debug("Skipping save of unchanged %r", entity)
            return entity
        return await self._router.save(entity, mode=mode, timeout=timeout)

    async def update(
        self,
        entity: E,
        values: Mapping[str, Any],
        *,
        mode: HybridMode | str | None = None,
        timeout: float | None = None,
    ) -> E:
        if not entity.exists:
            raise ValidationError(
                "Cannot update an entity that has not been persisted",
                entity_type=entity.entity_type,
                operation="update",
            )
        entity.fill(values)
        return await self.save(entity, mode=mode, timeout=timeout)

    async def delete(self, entity: Entity, *, mode: HybridMode | str | None = None, timeout: float | None = None) -> bool:
        deleted = await self._router.delete(entity, mode=mode, timeout=timeout)
        entity.mark_deleted()
        return deleted

    async def delete_by_id(
        self,
        entity_cls: type[Entity],
        identity: Any,
        *,
        mode: HybridMode | str | None = None,
        timeout: float | None = None,
    ) -> bool:
        stub = entity_cls()
        stub.set(entity_cls.primary_key, identity)
        return await self.delete(stub, mode=mode, timeout=timeout)

    async def sync_all(
        self,
        entity_cls: type[Entity],
        *,
        create_missing: bool = True,
        remove_orphaned: bool = False,
    ) -> SyncReport:
        report = await self._router.sync_all(
            entity_cls, create_missing=create_missing, remove_orphaned=remove_orphaned
        )
        logger.info(
            "Synced %s: created=%d updated=%d pushed=%d deleted=%d unchanged=%d errors=%d",
            report.entity_type, report.created, report.updated, report.pushed,
            report.deleted, report.unchanged, len(report.errors),
        )
        return report
