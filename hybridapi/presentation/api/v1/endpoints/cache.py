"""Cache management endpoints."""

from fastapi import APIRouter, Depends

from hybridapi.application.schemas import CacheInvalidationResponse, CachePurgeResponse, CacheStatsResponse
from hybridapi.application.services import CacheLayer
from hybridapi.infrastructure.dependencies import get_cache_layer

router = APIRouter(prefix="/cache", tags=["Cache"])


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(cache: CacheLayer = Depends(get_cache_layer)) -> CacheStatsResponse:
    """Entry counts of the cache, split by freshness."""
    stats = await cache.stats()
    return CacheStatsResponse(
        enabled=cache.enabled,
        entries=stats.entries,
        fresh=stats.fresh,
        expired=stats.expired,
        tags=stats.tags,
    )


@router.delete("/tags/{tag:path}", response_model=CacheInvalidationResponse)
async def invalidate_tag(tag: str, cache: CacheLayer = Depends(get_cache_layer)) -> CacheInvalidationResponse:
    """Drop every entry carrying ``tag`` (e.g. ``type:article``)."""
    removed = await cache.invalidate(tag)
    return CacheInvalidationResponse(tag=tag, removed=removed)


@router.post("/purge", response_model=CachePurgeResponse)
async def purge_expired(cache: CacheLayer = Depends(get_cache_layer)) -> CachePurgeResponse:
    """Evict entries that are no longer fresh."""
    return CachePurgeResponse(removed=await cache.purge_expired())


@router.delete("", response_model=CachePurgeResponse)
async def clear_cache(cache: CacheLayer = Depends(get_cache_layer)) -> CachePurgeResponse:
    """Remove every cached entry."""
    return CachePurgeResponse(removed=await cache.clear())
