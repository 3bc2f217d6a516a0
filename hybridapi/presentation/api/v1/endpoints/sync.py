"""Synchronisation and entity-type introspection endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from hybridapi.application.schemas import EntityTypeResponse, SyncReportResponse
from hybridapi.application.services import EntityService
from hybridapi.domain.entities import EntityRegistry
from hybridapi.domain.exceptions import HybridApiError, NotFoundError, UnknownEntityTypeError, ValidationError
from hybridapi.infrastructure.dependencies import get_entity_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Sync"])


@router.get("/entities", response_model=list[EntityTypeResponse])
async def list_entity_types(
    service: EntityService = Depends(get_entity_service),
) -> list[EntityTypeResponse]:
    """Registered entity types with their effective mode and cache TTL."""
    router_ = service.router
    results = []
    for entity_type in EntityRegistry.entity_types():
        entity_cls = EntityRegistry.get(entity_type)
        try:
            mode = router_.resolve_mode(entity_cls).value
        except ValidationError:
            mode = "unavailable"
        results.append(
            EntityTypeResponse(
                entity_type=entity_type,
                endpoint=entity_cls.resolve_endpoint(),
                primary_key=entity_cls.primary_key,
                mode=mode,
                cache_ttl=router_.remote.cache.resolve_ttl(entity_cls),
                sync_enabled=router_.settings.entity_settings(entity_type).sync_enabled,
            )
        )
    return results


@router.post("/sync/{entity_type}", response_model=SyncReportResponse)
async def sync_entity_type(
    entity_type: str,
    create_missing: bool = Query(True, description="Store remote records missing locally"),
    remove_orphaned: bool = Query(False, description="Delete local records missing remotely"),
    service: EntityService = Depends(get_entity_service),
) -> SyncReportResponse:
    """Reconcile every remote record of ``entity_type`` against the local store."""
    try:
        entity_cls = EntityRegistry.get(entity_type)
        report = await service.sync_all(
            entity_cls, create_missing=create_missing, remove_orphaned=remove_orphaned
        )
    except (UnknownEntityTypeError, NotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HybridApiError as e:
        logger.error("Sync of %s failed: %s", entity_type, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return SyncReportResponse(
        entity_type=report.entity_type,
        created=report.created,
        updated=report.updated,
        pushed=report.pushed,
        deleted=report.deleted,
        unchanged=report.unchanged,
        total=report.total,
        errors=report.errors,
    )
