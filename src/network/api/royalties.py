"""
network/api/royalties.py — Роялти членов сети.

GET /network/royalties?organizationId=&month=YYYY-MM
GET /network/royalties?organizationId=&month=YYYY-MM&summary=network
    (organizationId — головной офис)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from network.dependencies import Principal, get_royalty_calculator
from network.exceptions import ValidationError
from network.models.royalty import NetworkRoyaltySummary, RoyaltyBreakdown
from network.services.rbac import require_permission
from network.services.royalty_calculator import RoyaltyCalculator

router = APIRouter(prefix="/royalties", tags=["royalties"])


@router.get(
    "",
    response_model=RoyaltyBreakdown | NetworkRoyaltySummary,
    summary="Роялти за месяц",
)
async def get_royalties(
    organization_id: UUID = Query(..., alias="organizationId"),
    month: str = Query(..., description="YYYY-MM"),
    summary: str | None = Query(None, description="'network' — сводка по сети"),
    _: Principal = Depends(require_permission("royalty.read")),
    calculator: RoyaltyCalculator = Depends(get_royalty_calculator),
):
    if summary is None:
        return await calculator.compute_royalties(organization_id, month)
    if summary != "network":
        raise ValidationError(
            f"unsupported summary mode: {summary!r}",
            details={"field": "summary"},
        )
    return await calculator.compute_network_summary(organization_id, month)
