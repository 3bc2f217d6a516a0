"""Local path of the hybrid router: entity ⇄ local-record mapping over the LocalStore port."""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from hybridapi.application.interfaces import LocalStore
from hybridapi.application.services import record_filter
from hybridapi.application.services.aggregates import compute_aggregate
from hybridapi.application.services.entity_hydrator import EntityHydrator
from hybridapi.domain.entities import Entity, LocalRecord, Page, RequestDescriptor
from hybridapi.domain.exceptions import HybridApiError, LocalStoreError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)
T = TypeVar("T")


class LocalSource:
    """Reads and writes entities in the local store.

    Records are stored under attribute names (API mapping already applied),
    so hydration from the store skips the key mapping step. Any error from
    the store that is not already part of the engine taxonomy surfaces as
    ``LocalStoreError``.
    """

    def __init__(self, store: LocalStore, hydrator: EntityHydrator):
        self._store = store
        self._hydrator = hydrator

    # ── Reads ────────────────────────────────────────────────────────

    async def fetch_matching(self, entity_cls: type[E], descriptor: RequestDescriptor) -> list[E]:
        """All records matching the descriptor's filters, sorted, without pagination.

        Filtering is the store's job (``LocalStore.query``); only sorting happens here.
        """
        records = await self._call(
            entity_cls.entity_type, "list", lambda: self._store.query(entity_cls.entity_type, descriptor.filters)
        )
        rows = record_filter.sort_records((r.data for r in records), descriptor.sort)
        return self._hydrator.hydrate_many(entity_cls, rows, apply_mapping=False)

    async def fetch_list(self, entity_cls: type[E], descriptor: RequestDescriptor) -> list[E]:
        entities = await self.fetch_matching(entity_cls, descriptor)
        return record_filter.paginate(entities, descriptor.pagination)

    async def fetch_page(self, entity_cls: type[E], descriptor: RequestDescriptor) -> Page:
        entities = await self.fetch_matching(entity_cls, descriptor)
        page, per_page = descriptor.pagination.as_page()
        page = page or 1
        per_page = per_page or max(len(entities), 1)
        return Page(
            items=record_filter.paginate(entities, descriptor.pagination),
            total=len(entities),
            page=page,
            per_page=per_page,
        )

    async def fetch_aggregate(self, entity_cls: type[Entity], descriptor: RequestDescriptor) -> Any:
        entities = await self.fetch_matching(entity_cls, descriptor)
        return compute_aggregate((e.to_storage() for e in entities), descriptor.aggregate)

    async def find(self, entity_cls: type[E], identity: Any) -> E | None:
        record = await self._call(
            entity_cls.entity_type, "find", lambda: self._store.find(entity_cls.entity_type, str(identity))
        )
        if record is None:
            return None
        return self._hydrator.hydrate(entity_cls, record.data, apply_mapping=False)

    async def find_with_timestamp(self, entity_cls: type[E], identity: Any) -> tuple[E | None, datetime | None]:
        record = await self._call(
            entity_cls.entity_type, "find", lambda: self._store.find(entity_cls.entity_type, str(identity))
        )
        if record is None:
            return None, None
        return self._hydrator.hydrate(entity_cls, record.data, apply_mapping=False), record.last_modified

    async def snapshot(self, entity_cls: type[E]) -> dict[str, tuple[E, datetime]]:
        """Every stored entity of a type with its store-level timestamp, keyed by identity."""
        records = await self._call(entity_cls.entity_type, "list", lambda: self._store.query(entity_cls.entity_type))
        snapshot: dict[str, tuple[E, datetime]] = {}
        for record in records:
            entity = self._hydrator.hydrate_many(entity_cls, [record.data], apply_mapping=False)
            if entity:
                snapshot[record.identity] = (entity[0], record.last_modified)
        return snapshot

    async def identities(self, entity_cls: type[Entity]) -> set[str]:
        return await self._call(entity_cls.entity_type, "list", lambda: self._store.identities(entity_cls.entity_type))

    # ── Writes ───────────────────────────────────────────────────────

    async def save(self, entity: E, last_modified: datetime | None = None) -> E:
        """Upsert the entity. ``last_modified`` defaults to the entity's own timestamp, else now."""
        if entity.key is None:
            raise LocalStoreError(
                f"Cannot store {entity.entity_type} without '{entity.primary_key}'",
                entity_type=entity.entity_type,
                operation="save",
            )
        record = LocalRecord(
            entity_type=entity.entity_type,
            identity=str(entity.key),
            data=entity.to_storage(),
            last_modified=last_modified or entity.last_modified() or datetime.now(timezone.utc),
        )
        await self._call(entity.entity_type, "save", lambda: self._store.upsert(record))
        entity.mark_persisted()
        return entity

    async def save_many(self, entities: list[E]) -> int:
        for entity in entities:
            await self.save(entity)
        return len(entities)

    async def delete(self, entity_cls: type[Entity], identity: Any) -> bool:
        return await self._call(
            entity_cls.entity_type, "delete", lambda: self._store.delete(entity_cls.entity_type, str(identity))
        )

    # ── Internals ────────────────────────────────────────────────────

    @staticmethod
    async def _call(entity_type: str, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        try:
            return await func()
        except HybridApiError as exc:
            raise exc.with_context(entity_type=entity_type, operation=operation)
        except Exception as exc:
            raise LocalStoreError(
                f"Local store failed during {operation}: {exc}",
                entity_type=entity_type,
                operation=operation,
            ) from exc
