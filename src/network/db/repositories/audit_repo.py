"""
network/db/repositories/audit_repo.py — Append-only аудит-лог.
"""

from __future__ import annotations

from typing import Any

import asyncpg


class AuditRepository:
    """Запись в audit_log (только INSERT)."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def append(self, record: dict[str, Any]) -> None:
        # Точка сохранения: сбой аудита не ломает внешнюю транзакцию
        async with self._conn.transaction():
            await self._conn.execute(
                """
                INSERT INTO audit_log
                    (action, entity_type, entity_id, organization_id, user_id, details)
                VALUES ($1, $2, $3, $4, $5, $6)
                """,
                record["action"],
                record["entity_type"],
                record["entity_id"],
                record.get("organization_id"),
                record.get("user_id"),
                record.get("details") or {},
            )

    async def list(self, entity_id: str | None = None) -> list[dict]:
        rows = await self._conn.fetch(
            """
            SELECT * FROM audit_log
            WHERE ($1::text IS NULL OR entity_id = $1)
            ORDER BY id
            """,
            entity_id,
        )
        return [dict(r) for r in rows]
