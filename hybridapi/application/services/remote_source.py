"""Remote path of the hybrid router: cached reads and invalidating writes."""

import logging
from typing import Any, TypeVar
from urllib.parse import quote

from hybridapi.application.services.aggregates import coerce_aggregate
from hybridapi.application.services.cache_layer import CacheLayer
from hybridapi.application.services.entity_hydrator import EntityHydrator
from hybridapi.application.services.remote_executor import RemoteExecutor, RemoteRequest
from hybridapi.application.services.response_normalizer import ResponseNormalizer
from hybridapi.application.services.wire_serializer import WireSerializer
from hybridapi.domain.entities import Entity, Page, RequestDescriptor, identity_tag, type_tag
from hybridapi.domain.exceptions import HydrationError, RemoteStatusError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


class RemoteSource:
    """Executes descriptors and entity writes against the remote API."""

    def __init__(
        self,
        executor: RemoteExecutor,
        cache: CacheLayer,
        normalizer: ResponseNormalizer,
        hydrator: EntityHydrator,
        serializer: WireSerializer,
    ):
        self._executor = executor
        self._cache = cache
        self._normalizer = normalizer
        self._hydrator = hydrator
        self._serializer = serializer

    @property
    def cache(self) -> CacheLayer:
        return self._cache

    # ── Reads ────────────────────────────────────────────────────────

    async def fetch_envelope(
        self,
        entity_cls: type[Entity],
        descriptor: RequestDescriptor,
        *,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Raw response body for a descriptor, read through the cache."""
        path = entity_cls.resolve_endpoint()
        params = self._serializer.serialize(descriptor)
        signature = self._cache.signature_for_query(entity_cls.entity_type, path, params)
        request = RemoteRequest(
            method="GET",
            path=path,
            query_params=params,
            timeout=timeout,
            entity_type=entity_cls.entity_type,
            operation="aggregate" if descriptor.aggregate else "list",
        )
        return await self._cache.remember(
            signature,
            lambda: self._executor.execute(request),
            self._cache.resolve_ttl(entity_cls, ttl),
            {type_tag(entity_cls.entity_type)},
        )

    async def fetch_list(
        self,
        entity_cls: type[E],
        descriptor: RequestDescriptor,
        *,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> list[E]:
        envelope = await self.fetch_envelope(entity_cls, descriptor, ttl=ttl, timeout=timeout)
        return self._hydrator.hydrate_many(entity_cls, self._normalizer.normalize(envelope))

    async def fetch_page(
        self,
        entity_cls: type[E],
        descriptor: RequestDescriptor,
        *,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> Page:
        envelope = await self.fetch_envelope(entity_cls, descriptor, ttl=ttl, timeout=timeout)
        raws = self._normalizer.normalize(envelope)
        items = self._hydrator.hydrate_many(entity_cls, raws)
        page, per_page = descriptor.pagination.as_page()
        page = page or 1
        per_page = per_page or max(len(raws), 1)
        total = self._normalizer.extract_total(envelope, fallback=(page - 1) * per_page + len(raws))
        return Page(items=items, total=total, page=page, per_page=per_page)

    async def fetch_aggregate(
        self,
        entity_cls: type[Entity],
        descriptor: RequestDescriptor,
        *,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> Any:
        envelope = await self.fetch_envelope(entity_cls, descriptor, ttl=ttl, timeout=timeout)
        function = descriptor.aggregate.function
        return coerce_aggregate(self._normalizer.extract_aggregate(envelope, function.value), function)

    async def find(
        self,
        entity_cls: type[E],
        identity: Any,
        *,
        ttl: float | None = None,
        timeout: float | None = None,
    ) -> E | None:
        """Single entity by identity, or None when the API reports it missing."""
        request = RemoteRequest(
            method="GET",
            path=self._item_path(entity_cls, identity),
            timeout=timeout,
            entity_type=entity_cls.entity_type,
            operation="find",
        )
        try:
            envelope = await self._cache.remember(
                self._cache.signature_for_identity(entity_cls.entity_type, identity),
                lambda: self._executor.execute(request),
                self._cache.resolve_ttl(entity_cls, ttl),
                {type_tag(entity_cls.entity_type), identity_tag(entity_cls.entity_type, identity)},
            )
        except RemoteStatusError as exc:
            if exc.status_code == 404:
                return None
            raise
        return self._hydrator.hydrate(entity_cls, self._normalizer.normalize_single(envelope))

    # ── Writes ───────────────────────────────────────────────────────

    async def create(self, entity: E, *, timeout: float | None = None) -> E:
        request = RemoteRequest(
            method="POST",
            path=entity.resolve_endpoint(),
            body=entity.to_payload(),
            timeout=timeout,
            entity_type=entity.entity_type,
            operation="create",
        )
        body = await self._executor.execute(request)
        self._apply_write_response(entity, body, "create")
        await self._cache.invalidate_entity(entity)
        return entity

    async def update(self, entity: E, *, timeout: float | None = None, full: bool = False) -> E:
        """PUT the full payload, or PATCH only dirty fields for partial-update types."""
        partial = entity.partial_updates and not full
        method = "PATCH" if partial else "PUT"
        request = RemoteRequest(
            method=method,
            path=self._item_path(type(entity), entity.key),
            body=entity.to_payload(only_dirty=partial),
            timeout=timeout,
            entity_type=entity.entity_type,
            operation="update",
        )
        body = await self._executor.execute(request)
        self._apply_write_response(entity, body, "update")
        await self._cache.invalidate_entity(entity)
        return entity

    async def delete(self, entity: Entity, *, timeout: float | None = None) -> bool:
        """Delete remotely. A 404 counts as already deleted."""
        request = RemoteRequest(
            method="DELETE",
            path=self._item_path(type(entity), entity.key),
            timeout=timeout,
            entity_type=entity.entity_type,
            operation="delete",
        )
        try:
            await self._executor.execute(request)
            deleted = True
        except RemoteStatusError as exc:
            if exc.status_code != 404:
                raise
            deleted = False
        await self._cache.invalidate_entity(entity)
        return deleted

    async def fetch_all(self, entity_cls: type[E], *, timeout: float | None = None) -> list[E]:
        """Every entity the list endpoint returns, bypassing the cache."""
        path = entity_cls.resolve_endpoint()
        body = await self._executor.execute(
            RemoteRequest(
                method="GET",
                path=path,
                timeout=timeout,
                entity_type=entity_cls.entity_type,
                operation="sync",
            )
        )
        return self._hydrator.hydrate_many(entity_cls, self._normalizer.normalize(body))

    # ── Internals ────────────────────────────────────────────────────

    def _apply_write_response(self, entity: Entity, body: Any, operation: str) -> None:
        """Adopt the API's version of the entity after a write."""
        raw = self._normalizer.normalize_single(body)
        if raw is None:
            if entity.key is None:
                raise HydrationError(
                    f"Remote {operation} returned no {entity.entity_type} and the entity has no identity",
                    entity_type=entity.entity_type,
                    operation=operation,
                )
            entity.mark_persisted()
            return
        hydrated = self._hydrator.hydrate(type(entity), raw)
        if hydrated is None:
            entity.mark_persisted()
            return
        merged = {**entity.attributes, **hydrated.attributes}
        entity.replace_attributes(merged)

    @staticmethod
    def _item_path(entity_cls: type[Entity], identity: Any) -> str:
        return f"{entity_cls.resolve_endpoint()}/{quote(str(identity), safe='')}"
