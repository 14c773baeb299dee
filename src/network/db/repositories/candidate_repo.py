"""
network/db/repositories/candidate_repo.py — Кандидаты во франчайзи и их таймлайн.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg


class CandidateRepository:
    """Кандидаты во франчайзи."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def get(self, candidate_id: UUID, for_update: bool = False) -> dict | None:
        """Найти кандидата; ``for_update`` блокирует строку до конца транзакции."""
        sql = "SELECT * FROM franchise_candidates WHERE candidate_id = $1"
        if for_update:
            sql += " FOR UPDATE"
        row = await self._conn.fetchrow(sql, candidate_id)
        return dict(row) if row else None

    async def create(self, **fields: Any) -> dict:
        """Создать кандидата из полей CandidateCreate."""
        columns = list(fields)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO franchise_candidates ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING *
            """,
            *fields.values(),
        )
        return dict(row)

    async def list_for_organization(self, organization_id: UUID) -> list[dict]:
        rows = await self._conn.fetch(
            """
            SELECT * FROM franchise_candidates
            WHERE organization_id = $1
            ORDER BY created_at DESC, candidate_id
            """,
            organization_id,
        )
        return [dict(r) for r in rows]

    async def update_status(
        self,
        candidate_id: UUID,
        *,
        status: str,
        motivation_index: int,
        dip_sent_at: datetime | None,
        dip_signed_at: datetime | None,
        contract_signed_at: datetime | None,
    ) -> dict | None:
        """Общий путь обновления: освежает ``updated_at``."""
        row = await self._conn.fetchrow(
            """
            UPDATE franchise_candidates
            SET status = $2, motivation_index = $3,
                dip_sent_at = $4, dip_signed_at = $5, contract_signed_at = $6,
                updated_at = NOW()
            WHERE candidate_id = $1
            RETURNING *
            """,
            candidate_id, status, motivation_index,
            dip_sent_at, dip_signed_at, contract_signed_at,
        )
        return dict(row) if row else None

    async def mark_onboarded(
        self,
        candidate_id: UUID,
        created_org_id: UUID,
        contract_signed_at: datetime,
    ) -> None:
        await self._conn.execute(
            """
            UPDATE franchise_candidates
            SET created_org_id = $2,
                contract_signed_at = COALESCE(contract_signed_at, $3),
                updated_at = NOW()
            WHERE candidate_id = $1 AND created_org_id IS NULL
            """,
            candidate_id, created_org_id, contract_signed_at,
        )

    async def list_inactive(
        self, threshold: datetime, excluded_statuses: list[str]
    ) -> list[dict]:
        """
        Нетерминальные кандидаты с мотивацией > 0, без активности с ``threshold``.

        Активность — более поздняя из ``updated_at`` и ``last_decay_at``.
        """
        rows = await self._conn.fetch(
            """
            SELECT * FROM franchise_candidates
            WHERE status <> ALL($2::text[])
              AND motivation_index > 0
              AND GREATEST(updated_at, COALESCE(last_decay_at, updated_at)) < $1
            ORDER BY updated_at, candidate_id
            """,
            threshold, excluded_statuses,
        )
        return [dict(r) for r in rows]

    async def apply_decay(
        self,
        candidate_id: UUID,
        *,
        expected_index: int,
        new_index: int,
        decayed_at: datetime,
        touch_updated_at: bool,
    ) -> bool:
        """
        Записать новый индекс мотивации.

        Обновление условное (индекс не изменился с момента выборки);
        возвращает False, если строку успел изменить кто-то другой.
        """
        status = await self._conn.execute(
            """
            UPDATE franchise_candidates
            SET motivation_index = $3,
                last_decay_at = $4,
                updated_at = CASE WHEN $5 THEN $4 ELSE updated_at END
            WHERE candidate_id = $1 AND motivation_index = $2
            """,
            candidate_id, expected_index, new_index, decayed_at, touch_updated_at,
        )
        return status.endswith(" 1")


class ActivityRepository:
    """Таймлайн кандидата."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def append(
        self,
        *,
        candidate_id: UUID,
        type: str,
        description: str,
        metadata: dict[str, Any],
        performed_by: str | None = None,
    ) -> dict:
        # Точка сохранения: сбой записи не ломает внешнюю транзакцию
        async with self._conn.transaction():
            row = await self._conn.fetchrow(
                """
                INSERT INTO candidate_activities
                    (candidate_id, type, description, metadata, performed_by)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                candidate_id, type, description, metadata, performed_by,
            )
        return dict(row)

    async def list_for_candidate(self, candidate_id: UUID) -> list[dict]:
        rows = await self._conn.fetch(
            """
            SELECT * FROM candidate_activities
            WHERE candidate_id = $1
            ORDER BY created_at DESC, activity_id
            """,
            candidate_id,
        )
        return [dict(r) for r in rows]
