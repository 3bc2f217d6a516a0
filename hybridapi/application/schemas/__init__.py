from .admin import (
    CacheInvalidationResponse,
    CachePurgeResponse,
    CacheStatsResponse,
    EntityTypeResponse,
    SyncReportResponse,
)

__all__ = [
    "CacheInvalidationResponse",
    "CachePurgeResponse",
    "CacheStatsResponse",
    "EntityTypeResponse",
    "SyncReportResponse",
]
