"""Hybrid router: dispatches each operation to the remote API, the local store, or both.

Mode resolution precedence: per-call override → entity-type settings →
entity class ``hybrid_mode`` → ``settings.default_mode``.

Read dispatch:
    remote_only    remote (cached)
    local_only     local store
    local_first    local store; on miss or local failure, remote (optionally persisted)
    remote_first   remote (cached), mirrored locally; on remote failure, local store
    bidirectional  both, concurrently; diverging identities go to the reconciler

Write dispatch:
    remote_only    remote
    local_only     local store
    local_first    local store (remote untouched)
    remote_first   remote, then mirrored locally
    bidirectional  remote, then local with the authoritative version
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, TypeVar

from hybridapi.application.interfaces import EventSink, NullEventSink, OperationEvent
from hybridapi.application.services import record_filter
from hybridapi.application.services.aggregates import compute_aggregate
from hybridapi.application.services.local_source import LocalSource
from hybridapi.application.services.remote_source import RemoteSource
from hybridapi.application.services.sync_reconciler import SyncReconciler
from hybridapi.config import Settings
from hybridapi.domain.entities import (
    Entity,
    HybridMode,
    Page,
    RequestDescriptor,
    Resolution,
    Side,
    SyncReport,
    type_tag,
)
from hybridapi.domain.exceptions import (
    HybridApiError,
    LocalStoreError,
    RemoteStatusError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)
T = TypeVar("T")

# Errors that mean "the remote path failed" and may trigger a fallback.
REMOTE_FAILURES = (TransportError, RemoteStatusError)


class HybridRouter:
    """Routes reads and writes according to the resolved hybrid mode."""

    def __init__(
        self,
        remote: RemoteSource,
        local: LocalSource | None,
        reconciler: SyncReconciler,
        settings: Settings,
        events: EventSink | None = None,
    ):
        self._remote = remote
        self._local = local
        self._reconciler = reconciler
        self._settings = settings
        self._events = events or NullEventSink()

    @property
    def remote(self) -> RemoteSource:
        return self._remote

    @property
    def reconciler(self) -> SyncReconciler:
        return self._reconciler

    @property
    def settings(self) -> Settings:
        return self._settings

    # ── Mode resolution ──────────────────────────────────────────────

    def resolve_mode(self, entity_cls: type[Entity], override: HybridMode | str | None = None) -> HybridMode:
        if override is not None:
            try:
                mode = HybridMode(override)
            except ValueError:
                raise ValidationError(f"Unknown hybrid mode '{override}'", entity_type=entity_cls.entity_type) from None
            source = "call"
        elif (configured := self._settings.entity_settings(entity_cls.entity_type).mode) is not None:
            mode, source = configured, "settings"
        elif entity_cls.hybrid_mode is not None:
            mode, source = HybridMode(entity_cls.hybrid_mode), "entity"
        else:
            mode, source = self._settings.default_mode, "default"
        if mode.uses_local and self._local is None:
            raise ValidationError(
                f"Mode '{mode.value}' needs a local store but none is configured",
                entity_type=entity_cls.entity_type,
            )
        logger.debug("Resolved mode %s for %s (from %s)", mode.value, entity_cls.entity_type, source)
        return mode

    # ── Reads ────────────────────────────────────────────────────────

    async def fetch_list(
        self,
        entity_cls: type[E],
        descriptor: RequestDescriptor,
        *,
        mode: HybridMode | str | None = None,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> list[E]:
        resolved = self.resolve_mode(entity_cls, mode)

        async def remote_read() -> list[E]:
            return await self._remote.fetch_list(entity_cls, descriptor, ttl=ttl, timeout=timeout)

        async def local_read() -> list[E]:
            return await self._local.fetch_list(entity_cls, descriptor)

        async def dispatch() -> tuple[list[E], str]:
            if resolved is HybridMode.BIDIRECTIONAL:
                return await self._bidirectional_list(entity_cls, descriptor, remote_read, local_read)
            return await self._read(entity_cls, resolved, remote_read, local_read, lambda items: items)

        return await self._run("fetch_list", entity_cls, resolved, dispatch, descriptor=descriptor)

    async def fetch_page(
        self,
        entity_cls: type[E],
        descriptor: RequestDescriptor,
        *,
        mode: HybridMode | str | None = None,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> Page:
        resolved = self.resolve_mode(entity_cls, mode)

        async def remote_read() -> Page:
            return await self._remote.fetch_page(entity_cls, descriptor, ttl=ttl, timeout=timeout)

        async def local_read() -> Page:
            return await self._local.fetch_page(entity_cls, descriptor)

        async def dispatch() -> tuple[Page, str]:
            if resolved is HybridMode.BIDIRECTIONAL:
                async def remote_items() -> list[E]:
                    holder["page"] = await remote_read()
                    return holder["page"].items

                async def local_items() -> list[E]:
                    holder["page"] = await local_read()
                    return holder["page"].items

                holder: dict[str, Page] = {}
                items, source = await self._bidirectional_list(entity_cls, descriptor, remote_items, local_items)
                page = holder["page"]
                return replace(page, items=items, total=max(page.total, len(items))), source
            return await self._read(entity_cls, resolved, remote_read, local_read, lambda page: page.items)

        return await self._run("fetch_page", entity_cls, resolved, dispatch, descriptor=descriptor)

    async def fetch_aggregate(
        self,
        entity_cls: type[Entity],
        descriptor: RequestDescriptor,
        *,
        mode: HybridMode | str | None = None,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> Any:
        if descriptor.aggregate is None:
            raise ValidationError("Descriptor has no aggregate", entity_type=entity_cls.entity_type)
        resolved = self.resolve_mode(entity_cls, mode)

        async def remote_read() -> Any:
            return await self._remote.fetch_aggregate(entity_cls, descriptor, ttl=ttl, timeout=timeout)

        async def local_read() -> tuple[Any, bool]:
            matching = await self._local.fetch_matching(entity_cls, descriptor)
            value = compute_aggregate((e.to_storage() for e in matching), descriptor.aggregate)
            return value, bool(matching)

        async def dispatch() -> tuple[Any, str]:
            if resolved is HybridMode.REMOTE_ONLY:
                return await remote_read(), "remote"
            if resolved is HybridMode.LOCAL_ONLY:
                return await self._local.fetch_aggregate(entity_cls, descriptor), "local"
            if resolved is HybridMode.LOCAL_FIRST:
                try:
                    value, found = await local_read()
                    if found:
                        return value, "local"
                except LocalStoreError as exc:
                    logger.warning("Local aggregate failed for %s, using remote: %s", entity_cls.entity_type, exc)
                return await remote_read(), "remote"
            try:
                return await remote_read(), "remote"
            except REMOTE_FAILURES as remote_exc:
                logger.warning("Remote aggregate failed for %s, using local: %s", entity_cls.entity_type, remote_exc)
                try:
                    value, found = await local_read()
                except LocalStoreError as local_exc:
                    raise remote_exc from local_exc
                if not found and resolved is HybridMode.REMOTE_FIRST:
                    raise
                return value, "local"

        return await self._run("fetch_aggregate", entity_cls, resolved, dispatch, descriptor=descriptor)

    async def find(
        self,
        entity_cls: type[E],
        identity: Any,
        *,
        mode: HybridMode | str | None = None,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> E | None:
        resolved = self.resolve_mode(entity_cls, mode)

        async def remote_read() -> E | None:
            return await self._remote.find(entity_cls, identity, ttl=ttl, timeout=timeout)

        async def local_read() -> E | None:
            return await self._local.find(entity_cls, identity)

        async def dispatch() -> tuple[E | None, str]:
            if resolved is HybridMode.BIDIRECTIONAL:
                return await self._bidirectional_find(entity_cls, identity, remote_read)
            return await self._read(
                entity_cls, resolved, remote_read, local_read, lambda found: [found] if found is not None else []
            )

        return await self._run("find", entity_cls, resolved, dispatch, identity=identity)

    # ── Writes ───────────────────────────────────────────────────────

    async def save(
        self,
        entity: E,
        *,
        mode: HybridMode | str | None = None,
        timeout: float | None = None,
    ) -> E:
        """Create or update, depending on whether the entity already exists."""
        entity_cls = type(entity)
        resolved = self.resolve_mode(entity_cls, mode)
        operation = "update" if entity.exists else "create"

        async def remote_write() -> E:
            if entity.exists:
                return await self._remote.update(entity, timeout=timeout)
            return await self._remote.create(entity, timeout=timeout)

        async def dispatch() -> tuple[E, str]:
            if resolved is HybridMode.REMOTE_ONLY:
                return await remote_write(), "remote"
            if resolved in (HybridMode.LOCAL_ONLY, HybridMode.LOCAL_FIRST):
                return await self._local_write(entity), "local"
            if resolved is HybridMode.REMOTE_FIRST:
                await remote_write()
                await self._mirror(operation, entity_cls, lambda: self._local.save(entity))
                return entity, "remote"

            try:
                await remote_write()
            except REMOTE_FAILURES as remote_exc:
                logger.warning(
                    "Remote %s failed for %s, writing locally only: %s", operation, entity_cls.entity_type, remote_exc
                )
                try:
                    await self._local_write(entity)
                except LocalStoreError as local_exc:
                    raise remote_exc from local_exc
                self._report_partial(operation, entity_cls, Side.REMOTE, remote_exc)
                return entity, "local"
            await self._mirror(operation, entity_cls, lambda: self._local.save(entity))
            return entity, "both"

        return await self._run(operation, entity_cls, resolved, dispatch, identity=entity.key)

    async def delete(
        self,
        entity: Entity,
        *,
        mode: HybridMode | str | None = None,
        timeout: float | None = None,
    ) -> bool:
        entity_cls = type(entity)
        resolved = self.resolve_mode(entity_cls, mode)
        identity = entity.key
        if identity is None:
            raise ValidationError("Cannot delete an entity without identity", entity_type=entity.entity_type)

        async def dispatch() -> tuple[bool, str]:
            if resolved is HybridMode.REMOTE_ONLY:
                return await self._remote.delete(entity, timeout=timeout), "remote"
            if resolved in (HybridMode.LOCAL_ONLY, HybridMode.LOCAL_FIRST):
                return await self._local.delete(entity_cls, identity), "local"
            if resolved is HybridMode.REMOTE_FIRST:
                deleted = await self._remote.delete(entity, timeout=timeout)
                await self._mirror("delete", entity_cls, lambda: self._local.delete(entity_cls, identity))
                return deleted, "remote"

            try:
                deleted = await self._remote.delete(entity, timeout=timeout)
            except REMOTE_FAILURES as remote_exc:
                try:
                    deleted = await self._local.delete(entity_cls, identity)
                except LocalStoreError as local_exc:
                    raise remote_exc from local_exc
                self._report_partial("delete", entity_cls, Side.REMOTE, remote_exc)
                return deleted, "local"
            await self._mirror("delete", entity_cls, lambda: self._local.delete(entity_cls, identity))
            return deleted, "both"

        return await self._run("delete", entity_cls, resolved, dispatch, identity=identity)

    # ── Full synchronisation ─────────────────────────────────────────

    async def sync_all(
        self,
        entity_cls: type[E],
        *,
        create_missing: bool = True,
        remove_orphaned: bool = False,
        strategy: str | None = None,
        timeout: float | None = None,
    ) -> SyncReport:
        """Reconcile every remote record of a type against the local store."""
        if self._local is None:
            raise ValidationError("Synchronisation needs a local store", entity_type=entity_cls.entity_type)
        if not self._settings.entity_settings(entity_cls.entity_type).sync_enabled:
            raise ValidationError("Synchronisation is disabled for this entity type", entity_type=entity_cls.entity_type)
        strategy = strategy or self._strategy_for(entity_cls)

        async def dispatch() -> tuple[SyncReport, str]:
            remote_items = await self._remote.fetch_all(entity_cls, timeout=timeout)
            snapshot = await self._local.snapshot(entity_cls)
            report = SyncReport(entity_type=entity_cls.entity_type)

            for remote_entity in remote_items:
                key = str(remote_entity.key)
                local_entry = snapshot.pop(key, None)
                try:
                    if local_entry is None:
                        if create_missing:
                            await self._local.save(remote_entity)
                            report.created += 1
                        else:
                            report.unchanged += 1
                        continue
                    local_entity, local_modified = local_entry
                    resolution = await self._reconcile(
                        entity_cls, remote_entity.key, local_entity, local_modified, remote_entity, strategy, timeout
                    )
                    if resolution.written_to is Side.LOCAL:
                        report.updated += 1
                    elif resolution.written_to is Side.REMOTE:
                        report.pushed += 1
                    else:
                        report.unchanged += 1
                except HybridApiError as exc:
                    logger.error("Failed to sync %s '%s': %s", entity_cls.entity_type, key, exc)
                    report.errors.append(f"{key}: {exc}")

            for orphan in sorted(snapshot):
                if not remove_orphaned:
                    report.unchanged += 1
                    continue
                try:
                    await self._local.delete(entity_cls, orphan)
                    report.deleted += 1
                except LocalStoreError as exc:
                    logger.error("Failed to remove orphaned %s '%s': %s", entity_cls.entity_type, orphan, exc)
                    report.errors.append(f"{orphan}: {exc}")

            if report.created or report.updated or report.pushed or report.deleted:
                await self._remote.cache.invalidate(type_tag(entity_cls.entity_type))
            return report, "both"

        return await self._run("sync_all", entity_cls, HybridMode.BIDIRECTIONAL, dispatch)

    # ── Dispatch helpers ─────────────────────────────────────────────

    async def _read(
        self,
        entity_cls: type[Entity],
        mode: HybridMode,
        remote_read: Callable[[], Awaitable[T]],
        local_read: Callable[[], Awaitable[T]],
        entities_of: Callable[[T], list[Entity]],
    ) -> tuple[T, str]:
        if mode is HybridMode.REMOTE_ONLY:
            return await remote_read(), "remote"
        if mode is HybridMode.LOCAL_ONLY:
            return await local_read(), "local"

        if mode is HybridMode.LOCAL_FIRST:
            try:
                result = await local_read()
                if entities_of(result):
                    return result, "local"
                logger.debug("Local miss for %s, falling back to remote", entity_cls.entity_type)
            except LocalStoreError as exc:
                logger.warning("Local read failed for %s, falling back to remote: %s", entity_cls.entity_type, exc)
            result = await remote_read()
            if self._persist_fallback(entity_cls):
                await self._mirror_entities("fallback", entity_cls, entities_of(result))
            return result, "remote"

        # remote_first
        try:
            result = await remote_read()
        except REMOTE_FAILURES as remote_exc:
            logger.warning("Remote read failed for %s, falling back to local: %s", entity_cls.entity_type, remote_exc)
            try:
                result = await local_read()
            except LocalStoreError as local_exc:
                raise remote_exc from local_exc
            if not entities_of(result):
                raise
            return result, "local"
        await self._mirror_entities("mirror", entity_cls, entities_of(result))
        return result, "remote"

    async def _bidirectional_list(
        self,
        entity_cls: type[E],
        descriptor: RequestDescriptor,
        remote_read: Callable[[], Awaitable[list[E]]],
        local_read: Callable[[], Awaitable[list[E]]],
    ) -> tuple[list[E], str]:
        remote_result, snapshot = await asyncio.gather(
            remote_read(), self._local.snapshot(entity_cls), return_exceptions=True
        )
        if isinstance(remote_result, BaseException):
            if not isinstance(remote_result, REMOTE_FAILURES):
                raise remote_result
            logger.warning("Remote read failed for %s, using local store: %s", entity_cls.entity_type, remote_result)
            try:
                return await local_read(), "local"
            except LocalStoreError as local_exc:
                raise remote_result from local_exc
        if isinstance(snapshot, BaseException):
            if not isinstance(snapshot, LocalStoreError):
                raise snapshot
            logger.warning("Local read failed for %s, using remote only: %s", entity_cls.entity_type, snapshot)
            return remote_result, "remote"

        strategy = self._strategy_for(entity_cls)
        merged: list[E] = []
        for remote_entity in remote_result:
            local_entry = snapshot.get(str(remote_entity.key))
            if local_entry is None:
                await self._mirror_entities("mirror", entity_cls, [remote_entity])
                merged.append(remote_entity)
                continue
            local_entity, local_modified = local_entry
            resolution = await self._reconcile(
                entity_cls, remote_entity.key, local_entity, local_modified, remote_entity, strategy, None
            )
            merged.append(resolution.winner)

        if descriptor.pagination.is_empty:
            merged = self._with_local_only(merged, snapshot, descriptor)
        return merged, "both"

    @staticmethod
    def _with_local_only(
        merged: list[E],
        snapshot: dict[str, tuple[E, datetime]],
        descriptor: RequestDescriptor,
    ) -> list[E]:
        """Add stored records the remote does not know yet, such as ones created offline.

        Only for unpaginated reads: a remote page window has no place for them.
        """
        seen = {str(entity.key) for entity in merged}
        local_only = [
            entity
            for identity, (entity, _) in snapshot.items()
            if identity not in seen
            and all(record_filter.matches(entity.to_storage(), c) for c in descriptor.filters)
        ]
        if not local_only:
            return merged
        return record_filter.sort_records([*merged, *local_only], descriptor.sort, attributes=_storage_of)

    async def _bidirectional_find(
        self,
        entity_cls: type[E],
        identity: Any,
        remote_read: Callable[[], Awaitable[E | None]],
    ) -> tuple[E | None, str]:
        remote_result, local_result = await asyncio.gather(
            remote_read(), self._local.find_with_timestamp(entity_cls, identity), return_exceptions=True
        )
        if isinstance(remote_result, BaseException):
            if not isinstance(remote_result, REMOTE_FAILURES):
                raise remote_result
            if isinstance(local_result, BaseException):
                raise remote_result from local_result
            return local_result[0], "local"
        if isinstance(local_result, BaseException):
            if not isinstance(local_result, LocalStoreError):
                raise local_result
            logger.warning("Local read failed for %s, using remote only: %s", entity_cls.entity_type, local_result)
            return remote_result, "remote"

        local_entity, local_modified = local_result
        if remote_result is None:
            return local_entity, "local"
        if local_entity is None:
            await self._mirror_entities("mirror", entity_cls, [remote_result])
            return remote_result, "remote"
        resolution = await self._reconcile(
            entity_cls, identity, local_entity, local_modified, remote_result, self._strategy_for(entity_cls), None
        )
        return resolution.winner, "both"

    async def _reconcile(
        self,
        entity_cls: type[E],
        identity: Any,
        local_entity: E,
        local_modified: datetime | None,
        remote_entity: E,
        strategy: str,
        timeout: float | None,
    ) -> Resolution:
        async def write_local(winner: Entity, modified: datetime | None) -> None:
            await self._local.save(winner, modified)

        async def write_remote(winner: Entity, modified: datetime | None) -> None:
            await self._remote.update(winner, timeout=timeout, full=True)
            # Keep the local timestamp so the pair compares equal next time.
            await self._local.save(winner, modified)

        return await self._reconciler.reconcile(
            entity_cls,
            identity,
            local_entity,
            remote_entity,
            local_modified=local_modified,
            remote_modified=remote_entity.last_modified(),
            write_local=write_local,
            write_remote=write_remote,
            strategy=strategy,
        )

    async def _local_write(self, entity: E) -> E:
        """Write to the local store alone, stamping identity and timestamps like a database would."""
        now = datetime.now(timezone.utc)
        if entity.key is None:
            entity.set(entity.primary_key, type(entity).new_identity())
        if not entity.exists and entity.get(entity.created_field) is None:
            entity.set(entity.created_field, now)
        entity.set(entity.timestamp_field, now)
        return await self._local.save(entity, now)

    async def _mirror(self, operation: str, entity_cls: type[Entity], write: Callable[[], Awaitable[Any]]) -> None:
        """Secondary local write whose failure is logged and reported, never raised."""
        try:
            await write()
        except LocalStoreError as exc:
            logger.error("Local mirror of %s failed for %s: %s", operation, entity_cls.entity_type, exc)
            self._report_partial(operation, entity_cls, Side.LOCAL, exc)

    async def _mirror_entities(self, operation: str, entity_cls: type[Entity], entities: list[Entity]) -> None:
        for entity in entities:
            await self._mirror(operation, entity_cls, lambda e=entity: self._local.save(e))

    def _report_partial(self, operation: str, entity_cls: type[Entity], side: Side, exc: BaseException) -> None:
        self._emit(
            "operation_failed",
            OperationEvent(
                operation=f"{operation}:{side.value}",
                entity_type=entity_cls.entity_type,
                source=side.value,
                error=exc,
            ),
        )

    def _persist_fallback(self, entity_cls: type[Entity]) -> bool:
        configured = self._settings.entity_settings(entity_cls.entity_type).persist_fallback_results
        return self._settings.persist_fallback_results if configured is None else configured

    def _strategy_for(self, entity_cls: type[Entity]) -> str:
        configured = self._settings.entity_settings(entity_cls.entity_type).conflict_strategy
        return configured or self._settings.conflict_strategy

    # ── Observability ────────────────────────────────────────────────

    async def _run(
        self,
        operation: str,
        entity_cls: type[Entity],
        mode: HybridMode,
        dispatch: Callable[[], Awaitable[tuple[T, str]]],
        *,
        descriptor: RequestDescriptor | None = None,
        identity: Any = None,
    ) -> T:
        detail: dict[str, Any] = {}
        if descriptor is not None:
            detail["filters"] = len(descriptor.filters)
        if identity is not None:
            detail["identity"] = str(identity)
        event = OperationEvent(operation=operation, entity_type=entity_cls.entity_type, mode=mode.value, detail=detail)
        logger.info("Dispatching %s %s via %s", operation, entity_cls.entity_type, mode.value)
        self._emit("operation_started", event)
        started = time.perf_counter()
        try:
            result, source = await dispatch()
        except HybridApiError as exc:
            exc.with_context(entity_type=entity_cls.entity_type, operation=operation)
            self._emit("operation_failed", replace(event, duration_ms=_elapsed(started), error=exc))
            raise
        except Exception as exc:
            self._emit("operation_failed", replace(event, duration_ms=_elapsed(started), error=exc))
            raise
        self._emit("operation_completed", replace(event, source=source, duration_ms=_elapsed(started)))
        return result

    def _emit(self, name: str, event: OperationEvent) -> None:
        try:
            getattr(self._events, name)(event)
        except Exception:
            logger.warning("Event sink failed on %s for %s", name, event.operation, exc_info=True)


def _elapsed(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _storage_of(entity: Entity) -> dict[str, Any]:
    return entity.to_storage()
