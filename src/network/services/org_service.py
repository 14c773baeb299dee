"""
network/services/org_service.py — Сервис управления организациями сети.

Дерево организаций: головной офис (корень) → франчайзи / филиалы.
Инварианты проверяются при записи:
    • корнем может быть только HEAD_OFFICE (или автономная INDEPENDENT);
    • FRANCHISE / SUCCURSALE обязаны иметь активного родителя HEAD_OFFICE;
    • ставки по умолчанию наследуются от родителя.
Родитель нового узла — уже существующая организация, поэтому цикл
в дереве построить нельзя.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from network.config import NetworkSettings
from network.exceptions import InvalidStateError, NotFoundError, ValidationError
from network.models.enums import MEMBER_NETWORK_TYPES, NetworkType
from network.models.organization import OrganizationCreate, OrganizationRead, RatesUpdate
from network.services.audit_logger import NetworkAuditAction, NetworkAuditLogger

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# МАППИНГ БД-СТРОКИ → Pydantic-МОДЕЛЬ
# ═══════════════════════════════════════════════════════════════════════════


def org_row_to_read(row: dict) -> OrganizationRead:
    """Конвертирует строку из БД (dict) → OrganizationRead."""
    return OrganizationRead(
        org_id=row["org_id"],
        name=row["name"],
        network_type=row["network_type"],
        org_type=row.get("org_type"),
        parent_id=row.get("parent_id"),
        siret=row.get("siret"),
        royalty_rate=row["royalty_rate"],
        lead_fee_rate=row["lead_fee_rate"],
        is_active=row.get("is_active", True),
        created_at=row.get("created_at"),
    )


class OrganizationService:
    """CRUD организаций сети."""

    def __init__(self, store, audit: NetworkAuditLogger, settings: NetworkSettings) -> None:
        self._store = store
        self._audit = audit
        self._settings = settings

    async def create_organization(
        self, data: OrganizationCreate, performed_by: str | None = None
    ) -> OrganizationRead:
        """Создаёт организацию, проверяя место в дереве."""
        is_member = data.network_type in MEMBER_NETWORK_TYPES
        async with self._store.unit_of_work() as uow:
            parent = None
            if is_member:
                if data.parent_id is None:
                    raise ValidationError(
                        f"{data.network_type.value} requires a parent organization",
                        details={"field": "parentId"},
                    )
                parent = await uow.organizations.get(data.parent_id)
                if parent is None:
                    raise NotFoundError("Organization", str(data.parent_id))
                if not parent["is_active"]:
                    raise InvalidStateError(
                        "parent organization must be active",
                        details={"parent_id": str(data.parent_id)},
                    )
                if parent["network_type"] != NetworkType.HEAD_OFFICE.value:
                    raise InvalidStateError(
                        f"parent must be HEAD_OFFICE, currently {parent['network_type']}",
                        details={"parent_id": str(data.parent_id)},
                    )
            elif data.parent_id is not None:
                # INDEPENDENT, как и HEAD_OFFICE, всегда корень дерева
                raise ValidationError(
                    f"{data.network_type.value} cannot have a parent organization",
                    details={"field": "parentId"},
                )

            royalty_rate, lead_fee_rate = self._default_rates(parent)
            row = await uow.organizations.create(
                name=data.name,
                network_type=data.network_type.value,
                parent_id=data.parent_id,
                org_type=(
                    data.org_type.value if data.org_type
                    else (parent or {}).get("org_type")
                ),
                siret=data.siret,
                royalty_rate=data.royalty_rate if data.royalty_rate is not None else royalty_rate,
                lead_fee_rate=data.lead_fee_rate if data.lead_fee_rate is not None else lead_fee_rate,
            )
            await self._audit.log(
                NetworkAuditAction.ORG_CREATE,
                "organization",
                row["org_id"],
                organization_id=row["org_id"],
                user_id=performed_by,
                details={"network_type": row["network_type"], "parent_id": row["parent_id"]},
                uow=uow,
            )

        logger.info("Organization %s created (%s)", row["org_id"], row["network_type"])
        return org_row_to_read(row)

    def _default_rates(self, parent: dict | None) -> tuple[Decimal, Decimal]:
        """Ставки родителя, либо значения по умолчанию из настроек."""
        s = self._settings
        if parent is None:
            return s.default_royalty_rate, s.default_lead_fee_rate
        royalty = parent.get("royalty_rate")
        lead_fee = parent.get("lead_fee_rate")
        return (
            royalty if royalty is not None else s.default_royalty_rate,
            lead_fee if lead_fee is not None else s.default_lead_fee_rate,
        )

    async def get_organization(self, org_id: UUID) -> OrganizationRead:
        async with self._store.unit_of_work() as uow:
            row = await uow.organizations.get(org_id)
        if row is None:
            raise NotFoundError("Organization", str(org_id))
        return org_row_to_read(row)

    async def list_children(self, org_id: UUID) -> list[OrganizationRead]:
        """Прямые потомки организации (включая неактивных), по имени."""
        async with self._store.unit_of_work() as uow:
            if await uow.organizations.get(org_id) is None:
                raise NotFoundError("Organization", str(org_id))
            rows = await uow.organizations.list_children(org_id, active_only=False)
        return [org_row_to_read(r) for r in rows]

    async def update_rates(
        self, org_id: UUID, data: RatesUpdate, performed_by: str | None = None
    ) -> OrganizationRead:
        """Меняет ставки роялти / lead fee; не переданные остаются прежними."""
        async with self._store.unit_of_work() as uow:
            current = await uow.organizations.get(org_id)
            if current is None:
                raise NotFoundError("Organization", str(org_id))
            royalty_rate = (
                data.royalty_rate if data.royalty_rate is not None else current["royalty_rate"]
            )
            lead_fee_rate = (
                data.lead_fee_rate if data.lead_fee_rate is not None else current["lead_fee_rate"]
            )
            row = await uow.organizations.update_rates(org_id, royalty_rate, lead_fee_rate)
            await self._audit.log(
                NetworkAuditAction.ORG_UPDATE_RATES,
                "organization",
                org_id,
                organization_id=org_id,
                user_id=performed_by,
                details={
                    "old": {
                        "royalty_rate": current["royalty_rate"],
                        "lead_fee_rate": current["lead_fee_rate"],
                    },
                    "new": {"royalty_rate": royalty_rate, "lead_fee_rate": lead_fee_rate},
                },
                uow=uow,
            )
        return org_row_to_read(row)
