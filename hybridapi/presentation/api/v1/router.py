"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from hybridapi.presentation.api.v1.endpoints.health import router as health_router
from hybridapi.presentation.api.v1.endpoints.cache import router as cache_router
from hybridapi.presentation.api.v1.endpoints.sync import router as sync_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(cache_router)
router.include_router(sync_router)
