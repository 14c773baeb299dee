"""
network/api/organizations.py — Организации сети (дерево головной офис → члены).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from network.dependencies import Principal, get_org_service
from network.models.organization import OrganizationCreate, OrganizationRead, RatesUpdate
from network.services.org_service import OrganizationService
from network.services.rbac import require_permission

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post(
    "",
    response_model=OrganizationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Создать организацию",
)
async def create_org(
    body: OrganizationCreate,
    principal: Principal = Depends(require_permission("org.create")),
    service: OrganizationService = Depends(get_org_service),
):
    """FRANCHISE / SUCCURSALE — только под активным головным офисом."""
    return await service.create_organization(body, principal.subject)


@router.get("/{org_id}", response_model=OrganizationRead, summary="Получить организацию")
async def get_org(
    org_id: UUID,
    _: Principal = Depends(require_permission("org.read")),
    service: OrganizationService = Depends(get_org_service),
):
    return await service.get_organization(org_id)


@router.get(
    "/{org_id}/children",
    response_model=list[OrganizationRead],
    summary="Прямые потомки организации",
)
async def list_children(
    org_id: UUID,
    _: Principal = Depends(require_permission("org.read")),
    service: OrganizationService = Depends(get_org_service),
):
    return await service.list_children(org_id)


@router.put(
    "/{org_id}/rates",
    response_model=OrganizationRead,
    summary="Изменить ставки роялти / lead fee",
)
async def update_rates(
    org_id: UUID,
    body: RatesUpdate,
    principal: Principal = Depends(require_permission("org.update_rates")),
    service: OrganizationService = Depends(get_org_service),
):
    return await service.update_rates(org_id, body, principal.subject)
