"""Dependency wiring: builds the engine from settings and exposes FastAPI providers."""

import logging
import time
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from functools import lru_cache

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hybridapi.application.interfaces import CacheBackend, EventSink, LocalStore, Transport
from hybridapi.application.services import (
    CacheLayer,
    EntityHydrator,
    EntityService,
    HybridRouter,
    LocalSource,
    RemoteExecutor,
    RemoteSource,
    ResponseNormalizer,
    SyncReconciler,
    WireSerializer,
)
from hybridapi.config import Settings, get_settings
from hybridapi.infrastructure.cache.memory_cache_backend import MemoryCacheBackend
from hybridapi.infrastructure.cache.tiered_cache_backend import TieredCacheBackend
from hybridapi.infrastructure.database.repositories import SQLAlchemyCacheBackend, SQLAlchemyLocalStore
from hybridapi.infrastructure.database.session import create_engine, create_session_factory
from hybridapi.infrastructure.http.auth import build_auth_strategy
from hybridapi.infrastructure.http.httpx_transport import HttpxTransport
from hybridapi.infrastructure.logging.logging_event_sink import LoggingEventSink

logger = logging.getLogger(__name__)


@dataclass
class HybridEngine:
    """Everything one running engine owns. ``aclose`` releases pooled resources."""

    settings: Settings
    service: EntityService
    router: HybridRouter
    cache: CacheLayer
    local_store: LocalStore
    database: AsyncEngine | None = None
    http_client: httpx.AsyncClient | None = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.database is not None:
            await self.database.dispose()


def build_cache_backend(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> CacheBackend:
    """In-memory tier, backed by the ``api_cache`` table when persistence is enabled."""
    memory = MemoryCacheBackend()
    if not settings.cache_persistent or session_factory is None:
        return memory
    return TieredCacheBackend([memory, SQLAlchemyCacheBackend(session_factory)])


def build_engine(
    settings: Settings | None = None,
    *,
    transport: Transport | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    local_store: LocalStore | None = None,
    cache_backend: CacheBackend | None = None,
    events: EventSink | None = None,
    clock: Callable[[], float] = time.time,
) -> HybridEngine:
    """Wire infrastructure adapters into the application services.

    Every collaborator can be injected; whatever is missing is built from
    ``settings``.
    """
    settings = settings or get_settings()

    database: AsyncEngine | None = None
    if session_factory is None and (local_store is None or (cache_backend is None and settings.cache_persistent)):
        database = create_engine(settings.database_url)
        session_factory = create_session_factory(database)

    http_client: httpx.AsyncClient | None = None
    if transport is None:
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.api_timeout, connect=settings.api_connect_timeout),
        )
        transport = HttpxTransport(
            settings.api_base_url,
            timeout=settings.api_timeout,
            connect_timeout=settings.api_connect_timeout,
            http_client=http_client,
        )

    executor = RemoteExecutor(
        transport,
        build_auth_strategy(settings),
        default_headers=settings.api_default_headers,
        default_timeout=settings.api_timeout,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
        retry_max_delay=settings.retry_max_delay,
    )
    cache = CacheLayer(cache_backend or build_cache_backend(settings, session_factory), settings, clock=clock)
    hydrator = EntityHydrator()
    remote = RemoteSource(
        executor,
        cache,
        ResponseNormalizer(settings.list_container_keys),
        hydrator,
        WireSerializer(settings.pagination_style),
    )

    store = local_store or SQLAlchemyLocalStore(session_factory)
    router = HybridRouter(
        remote,
        LocalSource(store, hydrator),
        SyncReconciler(settings.conflict_strategy),
        settings,
        events if events is not None else LoggingEventSink(),
    )
    logger.info(
        "Engine ready: api=%s mode=%s cache=%s",
        settings.api_base_url,
        settings.default_mode.value,
        "tiered" if settings.cache_persistent else "memory",
    )
    return HybridEngine(
        settings=settings,
        service=EntityService(router),
        router=router,
        cache=cache,
        local_store=store,
        database=database,
        http_client=http_client,
    )


# ── FastAPI providers ────────────────────────────────────────────────


@lru_cache
def get_hybrid_engine() -> HybridEngine:
    """Process-wide engine built from settings."""
    return build_engine(get_settings())


async def get_entity_service(
    engine: HybridEngine = Depends(get_hybrid_engine),
) -> AsyncGenerator[EntityService, None]:
    """Provides the EntityService of the running engine."""
    yield engine.service


async def get_cache_layer(
    engine: HybridEngine = Depends(get_hybrid_engine),
) -> AsyncGenerator[CacheLayer, None]:
    """Provides the CacheLayer of the running engine."""
    yield engine.cache
