"""
network/services/territory_registry.py — Реестр территорий сети.

Территория — именованный набор префиксов почтовых кодов организации,
опционально эксклюзивный.

Инвариант эксклюзивности: если территория эксклюзивна, ни одна другая
организация не держит активную эксклюзивную территорию с общим
префиксом. Префиксы пересекаются, если один продолжает другой:
``75`` и ``75001`` конфликтуют.

Проверка конфликтов и вставка выполняются в одной единице работы под
блокировкой реестра (``uow.territories.lock_registry()``), поэтому
две параллельные эксклюзивные заявки не могут обе пройти проверку.
"""

from __future__ import annotations

import logging
from uuid import UUID

from network.exceptions import ConflictError, InvalidStateError, NotFoundError
from network.events import EventPublisher
from network.models.territory import (
    TerritoryConflict,
    TerritoryCreate,
    TerritoryRead,
    ZoneAvailability,
    normalize_zip_codes,
    prefixes_overlap,
)
from network.services.audit_logger import NetworkAuditAction, NetworkAuditLogger

logger = logging.getLogger(__name__)


def territory_row_to_read(row: dict) -> TerritoryRead:
    """Конвертирует строку из БД (dict) → TerritoryRead."""
    return TerritoryRead(
        territory_id=row["territory_id"],
        organization_id=row["organization_id"],
        organization_name=row.get("organization_name"),
        name=row["name"],
        zip_codes=list(row["zip_codes"]),
        is_exclusive=row["is_exclusive"],
        is_active=row.get("is_active", True),
        created_at=row.get("created_at"),
    )


def conflict_error(conflicts: list[TerritoryConflict]) -> ConflictError:
    """ConflictError с перечислением организаций и префиксов."""
    summary = "; ".join(
        f"{c.organization_name} ({', '.join(c.overlapping_zip_codes)})" for c in conflicts
    )
    return ConflictError(
        f"Exclusive territory conflict with: {summary}",
        details={
            "conflicts": [c.model_dump(mode="json", by_alias=True) for c in conflicts]
        },
    )


class TerritoryRegistry:
    """Территории и проверка эксклюзивности."""

    def __init__(
        self,
        store,
        audit: NetworkAuditLogger,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._store = store
        self._audit = audit
        self._publisher = publisher

    # ── Конфликты ────────────────────────────────────────────────────────

    async def check_conflicts(
        self, zip_codes: list[str], exclude_org_id: UUID | None = None, *, uow=None
    ) -> list[TerritoryConflict]:
        """
        Организации (кроме ``exclude_org_id``) с активными эксклюзивными
        территориями, пересекающими ``zip_codes``. Без побочных эффектов.
        """
        if uow is None:
            async with self._store.unit_of_work() as own:
                return await self.check_conflicts(zip_codes, exclude_org_id, uow=own)

        wanted = set(normalize_zip_codes(zip_codes))
        if not wanted:
            return []
        rows = await uow.territories.find_exclusive_overlapping(
            sorted(wanted), exclude_org_id
        )

        by_org: dict[UUID, TerritoryConflict] = {}
        for row in rows:
            overlap = {
                w for w in wanted
                if any(prefixes_overlap(w, held) for held in row["zip_codes"])
            }
            if not overlap:
                continue
            entry = by_org.get(row["organization_id"])
            if entry is None:
                entry = TerritoryConflict(
                    organization_id=row["organization_id"],
                    organization_name=row["organization_name"],
                    overlapping_zip_codes=[],
                )
                by_org[row["organization_id"]] = entry
            entry.overlapping_zip_codes = sorted(overlap.union(entry.overlapping_zip_codes))
        return list(by_org.values())

    async def is_zone_available(self, zip_codes: list[str]) -> ZoneAvailability:
        """Свободна ли зона от чужих эксклюзивных территорий."""
        conflicts = await self.check_conflicts(zip_codes)
        return ZoneAvailability(available=not conflicts, conflicts=conflicts)

    # ── Создание ─────────────────────────────────────────────────────────

    async def create_territory(
        self, data: TerritoryCreate, performed_by: str | None = None
    ) -> TerritoryRead:
        """Создаёт территорию в собственной единице работы."""
        async with self._store.unit_of_work() as uow:
            row = await self.create_in(uow, data, performed_by=performed_by)

        logger.info(
            "Territory %s created for org %s (%d prefixes, exclusive=%s)",
            row["territory_id"], row["organization_id"],
            len(row["zip_codes"]), row["is_exclusive"],
        )
        if self._publisher is not None:
            await self._publisher.emit_territory_created(
                territory_id=str(row["territory_id"]),
                org_id=str(row["organization_id"]),
                zip_codes=list(row["zip_codes"]),
                is_exclusive=row["is_exclusive"],
            )
        return territory_row_to_read(row)

    async def create_in(
        self, uow, data: TerritoryCreate, performed_by: str | None = None
    ) -> dict:
        """
        Создаёт территорию внутри переданной единицы работы
        (используется онбордингом). Возвращает строку БД.

        Raises:
            NotFoundError: организации нет.
            InvalidStateError: организация неактивна.
            ConflictError: пересечение с чужой эксклюзивной территорией.
        """
        org = await uow.organizations.get(data.organization_id)
        if org is None:
            raise NotFoundError("Organization", str(data.organization_id))
        if not org["is_active"]:
            raise InvalidStateError(
                "territory owner must be an active organization",
                details={"organization_id": str(data.organization_id)},
            )

        if data.is_exclusive:
            await uow.territories.lock_registry()
            conflicts = await self.check_conflicts(
                data.zip_codes, data.organization_id, uow=uow
            )
            if conflicts:
                logger.info(
                    "Territory '%s' for org %s rejected: %d conflicting organization(s)",
                    data.name, data.organization_id, len(conflicts),
                )
                raise conflict_error(conflicts)

        row = await uow.territories.create(
            organization_id=data.organization_id,
            name=data.name,
            zip_codes=list(data.zip_codes),
            is_exclusive=data.is_exclusive,
        )
        await self._audit.log(
            NetworkAuditAction.TERRITORY_CREATE,
            "territory",
            row["territory_id"],
            organization_id=data.organization_id,
            user_id=performed_by,
            details={"zip_codes": list(data.zip_codes), "is_exclusive": data.is_exclusive},
            uow=uow,
        )
        return row

    # ── Чтение ───────────────────────────────────────────────────────────

    async def list_territories(
        self, organization_id: UUID | None = None
    ) -> list[TerritoryRead]:
        async with self._store.unit_of_work() as uow:
            rows = await uow.territories.list(organization_id)
        return [territory_row_to_read(r) for r in rows]
