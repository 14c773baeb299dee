"""
network/api/territories.py — Реестр территорий.

Конфликт эксклюзивности → 409 с ``details.conflicts[]``
(organizationId, organizationName, overlappingZipCodes).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from network.dependencies import Principal, get_territory_registry
from network.models.territory import TerritoryCreate, TerritoryRead, ZoneAvailability
from network.services.rbac import require_permission
from network.services.territory_registry import TerritoryRegistry

router = APIRouter(prefix="/territories", tags=["territories"])


@router.get("", response_model=list[TerritoryRead], summary="Список территорий")
async def list_territories(
    organization_id: UUID | None = Query(None, alias="organizationId"),
    _: Principal = Depends(require_permission("territory.read")),
    registry: TerritoryRegistry = Depends(get_territory_registry),
):
    return await registry.list_territories(organization_id)


@router.get(
    "/availability",
    response_model=ZoneAvailability,
    summary="Проверить доступность зоны",
)
async def zone_availability(
    zip_codes: list[str] = Query(..., alias="zipCodes", min_length=1),
    _: Principal = Depends(require_permission("territory.read")),
    registry: TerritoryRegistry = Depends(get_territory_registry),
):
    """Свободна ли зона от эксклюзивных территорий других организаций."""
    return await registry.is_zone_available(zip_codes)


@router.post(
    "",
    response_model=TerritoryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Создать территорию",
)
async def create_territory(
    body: TerritoryCreate,
    principal: Principal = Depends(require_permission("territory.create")),
    registry: TerritoryRegistry = Depends(get_territory_registry),
):
    return await registry.create_territory(body, principal.subject)
