"""
network/models/organization.py — Доменные модели организации сети.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from network.models.common import NetworkBase
from network.models.enums import NetworkType, OrganizationType


class OrganizationCreate(NetworkBase):
    """Схема для создания организации."""
    name: str = Field(..., min_length=1, max_length=512, examples=["Formatio Lyon"])
    network_type: NetworkType
    parent_id: UUID | None = None
    org_type: OrganizationType | None = None
    siret: str | None = Field(default=None, pattern=r"^\d{14}$")
    royalty_rate: Decimal | None = Field(default=None, ge=0, le=100)
    lead_fee_rate: Decimal | None = Field(default=None, ge=0, le=100)


class OrganizationRead(NetworkBase):
    """Схема для возврата данных организации."""
    org_id: UUID
    name: str
    network_type: NetworkType
    org_type: OrganizationType | None = None
    parent_id: UUID | None = None
    siret: str | None = None
    royalty_rate: Decimal
    lead_fee_rate: Decimal
    is_active: bool = True
    created_at: datetime | None = None


class RatesUpdate(NetworkBase):
    """Изменение ставок роялти / lead fee (в процентах)."""
    royalty_rate: Decimal | None = Field(default=None, ge=0, le=100)
    lead_fee_rate: Decimal | None = Field(default=None, ge=0, le=100)
