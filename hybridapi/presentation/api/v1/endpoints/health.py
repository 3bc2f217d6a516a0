"""Liveness probe. Reads settings only, so it answers even when the remote API is down."""

from fastapi import APIRouter

from hybridapi.config import get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "default_mode": settings.default_mode.value,
        "cache_enabled": settings.cache_enabled,
        "remote": settings.api_base_url,
    }
