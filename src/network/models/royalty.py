"""
network/models/royalty.py — Расчёт роялти франчайзи за месяц.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from network.models.common import NetworkBase
from network.models.enums import RecordSource


class RoyaltyBucket(NetworkBase):
    """Выручка и сумма к оплате по одному источнику досье."""
    source: RecordSource
    total_revenue: Decimal
    contract_count: int
    rate_applied: Decimal
    amount_due: Decimal


class RoyaltyBreakdown(NetworkBase):
    """Роялти одной организации-члена сети за месяц."""
    organization_id: UUID
    organization_name: str
    parent_id: UUID
    parent_name: str
    month: str
    period_start: datetime
    period_end: datetime
    organic: RoyaltyBucket
    dispatch: RoyaltyBucket
    total_due: Decimal
    total_revenue: Decimal


class NetworkRoyaltySummary(NetworkBase):
    """Сводка роялти по всем членам сети головного офиса."""
    head_office_id: UUID
    month: str
    franchises: list[RoyaltyBreakdown] = Field(default_factory=list)
    total_network_due: Decimal
    total_network_revenue: Decimal
