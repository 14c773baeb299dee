"""
network/db/repositories/territory_repo.py — Репозиторий территорий.

Территория — набор префиксов почтовых кодов (TEXT[] + GIN-индекс).
Префикс покрывает код, если код начинается с него (``starts_with``).
"""

from __future__ import annotations

from uuid import UUID

import asyncpg

_SELECT = """
    SELECT t.*, o.name AS organization_name
    FROM territories t
    JOIN organizations o ON o.org_id = t.organization_id
"""


class TerritoryRepository:
    """Территории организаций сети."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def lock_registry(self) -> None:
        """
        Блокировка реестра территорий до конца текущей транзакции.

        Сериализует пары «проверка конфликтов → вставка».
        """
        await self._conn.execute(
            "SELECT pg_advisory_xact_lock(hashtext('network.territory_registry'))"
        )

    async def create(
        self,
        *,
        organization_id: UUID,
        name: str,
        zip_codes: list[str],
        is_exclusive: bool,
    ) -> dict:
        """Создать территорию."""
        row = await self._conn.fetchrow(
            """
            WITH t AS (
                INSERT INTO territories (organization_id, name, zip_codes, is_exclusive)
                VALUES ($1, $2, $3, $4)
                RETURNING *
            )
            SELECT t.*, o.name AS organization_name
            FROM t JOIN organizations o ON o.org_id = t.organization_id
            """,
            organization_id, name, zip_codes, is_exclusive,
        )
        return dict(row)

    async def list(self, organization_id: UUID | None = None) -> list[dict]:
        """Все территории (или территории одной организации), по имени."""
        rows = await self._conn.fetch(
            _SELECT
            + """
            WHERE ($1::uuid IS NULL OR t.organization_id = $1)
            ORDER BY t.name, t.territory_id
            """,
            organization_id,
        )
        return [dict(r) for r in rows]

    async def find_exclusive_overlapping(
        self, zip_codes: list[str], exclude_org_id: UUID | None = None
    ) -> list[dict]:
        """Активные эксклюзивные территории чужих организаций с общими префиксами."""
        rows = await self._conn.fetch(
            _SELECT
            + """
            WHERE t.is_active
              AND t.is_exclusive
              AND EXISTS (
                  SELECT 1
                  FROM unnest(t.zip_codes) AS held, unnest($1::text[]) AS wanted
                  WHERE starts_with(held, wanted) OR starts_with(wanted, held)
              )
              AND ($2::uuid IS NULL OR t.organization_id <> $2)
            ORDER BY o.name, t.created_at, t.territory_id
            """,
            zip_codes, exclude_org_id,
        )
        return [dict(r) for r in rows]

    async def find_covering(
        self,
        parent_id: UUID,
        postal_code: str,
        network_types: tuple[str, ...],
    ) -> list[dict]:
        """
        Активные территории активных прямых потомков ``parent_id``,
        покрывающие почтовый код. Порядок: created_at, затем territory_id.
        """
        rows = await self._conn.fetch(
            _SELECT
            + """
            WHERE t.is_active
              AND o.is_active
              AND o.parent_id = $1
              AND o.network_type = ANY($3::text[])
              AND EXISTS (
                  SELECT 1 FROM unnest(t.zip_codes) AS p(prefix)
                  WHERE starts_with($2, p.prefix)
              )
            ORDER BY t.created_at, t.territory_id
            """,
            parent_id, postal_code, list(network_types),
        )
        return [dict(r) for r in rows]
