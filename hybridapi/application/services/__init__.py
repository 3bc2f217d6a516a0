from .cache_layer import CacheLayer
from .entity_hydrator import EntityHydrator
from .entity_service import EntityService
from .hybrid_router import HybridRouter
from .local_source import LocalSource
from .query_builder import QueryBuilder
from .remote_executor import RemoteExecutor, RemoteRequest
from .remote_source import RemoteSource
from .response_normalizer import ResponseNormalizer
from .sync_reconciler import SyncReconciler
from .wire_serializer import WireSerializer

__all__ = [
    "CacheLayer",
    "EntityHydrator",
    "EntityService",
    "HybridRouter",
    "LocalSource",
    "QueryBuilder",
    "RemoteExecutor",
    "RemoteRequest",
    "RemoteSource",
    "ResponseNormalizer",
    "SyncReconciler",
    "WireSerializer",
]
