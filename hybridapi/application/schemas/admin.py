"""Pydantic DTOs for the admin API (cache management, synchronisation, entity types)."""

from pydantic import BaseModel, Field


class CacheStatsResponse(BaseModel):
    """Schema returned by the cache statistics endpoint."""

    enabled: bool
    entries: int
    fresh: int
    expired: int
    tags: int

    model_config = {"from_attributes": True}


class CacheInvalidationResponse(BaseModel):
    tag: str
    removed: int


class CachePurgeResponse(BaseModel):
    removed: int


class SyncReportResponse(BaseModel):
    """Outcome of synchronising one entity type."""

    entity_type: str
    created: int = 0
    updated: int = 0
    pushed: int = 0
    deleted: int = 0
    unchanged: int = 0
    total: int = 0
    errors: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class EntityTypeResponse(BaseModel):
    """A registered entity type and its effective routing settings."""

    entity_type: str
    endpoint: str
    primary_key: str
    mode: str
    cache_ttl: float
    sync_enabled: bool
