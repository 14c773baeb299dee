"""
network/db/repositories/record_repo.py — Досье (records) и договоры (contracts).

Досье создаёт внешний intake; здесь — только смена владельца при
диспетчеризации и чтение договоров для расчёта роялти.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import asyncpg

from network.models.enums import ContractStatus


class RecordRepository:
    """Досье стажёров."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def get(self, record_id: UUID) -> dict | None:
        row = await self._conn.fetchrow(
            "SELECT * FROM records WHERE record_id = $1", record_id
        )
        return dict(row) if row else None

    async def create(
        self,
        *,
        organization_id: UUID,
        postal_code: str | None = None,
        source: str = "ORGANIC",
    ) -> dict:
        """Создать досье (используется intake-слоем и тестовыми данными)."""
        row = await self._conn.fetchrow(
            """
            INSERT INTO records (organization_id, postal_code, source)
            VALUES ($1, $2, $3)
            RETURNING *
            """,
            organization_id, postal_code, source,
        )
        return dict(row)

    async def mark_dispatched(
        self,
        record_id: UUID,
        *,
        target_org_id: UUID,
        dispatched_from_id: UUID,
        postal_code: str,
        dispatched_at: datetime,
        original_lead_date: datetime | None,
    ) -> None:
        """Передать досье члену сети."""
        await self._conn.execute(
            """
            UPDATE records
            SET organization_id = $2,
                source = 'NETWORK_DISPATCH',
                dispatched_at = $5,
                dispatched_from_id = $3,
                postal_code = $4,
                original_lead_date = COALESCE(original_lead_date, $6),
                updated_at = NOW()
            WHERE record_id = $1
            """,
            record_id, target_org_id, dispatched_from_id, postal_code,
            dispatched_at, original_lead_date,
        )

    async def set_postal_code(
        self, record_id: UUID, postal_code: str, original_lead_date: datetime | None
    ) -> None:
        """Запомнить почтовый код без смены владельца (для повторных прогонов)."""
        await self._conn.execute(
            """
            UPDATE records
            SET postal_code = $2,
                original_lead_date = COALESCE(original_lead_date, $3),
                updated_at = NOW()
            WHERE record_id = $1
            """,
            record_id, postal_code, original_lead_date,
        )

    async def list_pending(self, head_office_id: UUID) -> list[dict]:
        """Органические недиспетчеризованные досье головного офиса с известным кодом."""
        rows = await self._conn.fetch(
            """
            SELECT r.*
            FROM records r
            JOIN organizations o ON o.org_id = r.organization_id
            WHERE r.organization_id = $1
              AND o.network_type = 'HEAD_OFFICE'
              AND r.source = 'ORGANIC'
              AND r.dispatched_at IS NULL
              AND r.postal_code IS NOT NULL
            ORDER BY r.created_at, r.record_id
            """,
            head_office_id,
        )
        return [dict(r) for r in rows]


class ContractRepository:
    """Договоры (вход биллинга, только чтение для роялти)."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def create(
        self,
        *,
        record_id: UUID,
        montant_ht: Decimal,
        status: str = ContractStatus.ACTIVE.value,
        is_signed: bool = True,
        date_signature: datetime | None = None,
    ) -> dict:
        row = await self._conn.fetchrow(
            """
            INSERT INTO contracts (record_id, montant_ht, status, is_signed, date_signature)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            record_id, montant_ht, status, is_signed, date_signature,
        )
        return dict(row)

    async def list_signed_for_organization(
        self, organization_id: UUID, start: datetime, end: datetime
    ) -> list[dict]:
        """
        Активные подписанные договоры досье организации, подписанные
        в интервале [start, end]. Каждая строка несёт ``source`` досье.
        """
        rows = await self._conn.fetch(
            """
            SELECT c.contract_id, c.montant_ht, c.date_signature, r.source
            FROM contracts c
            JOIN records r ON r.record_id = c.record_id
            WHERE r.organization_id = $1
              AND c.status = $4
              AND c.is_signed
              AND c.date_signature BETWEEN $2 AND $3
            ORDER BY c.date_signature, c.contract_id
            """,
            organization_id, start, end, ContractStatus.ACTIVE.value,
        )
        return [dict(r) for r in rows]
