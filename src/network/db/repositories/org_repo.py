"""
network/db/repositories/org_repo.py — Репозиторий организаций и площадок.

Дерево организаций хранится плоской таблицей с ``parent_id``:
обход (дети, родитель) — это запрос, а не переход по ссылкам.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

import asyncpg


class OrganizationRepository:
    """Организации сети (головные офисы, франчайзи, филиалы)."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def get(self, org_id: UUID) -> dict | None:
        """Найти организацию по UUID."""
        row = await self._conn.fetchrow(
            "SELECT * FROM organizations WHERE org_id = $1", org_id
        )
        return dict(row) if row else None

    async def create(
        self,
        *,
        name: str,
        network_type: str,
        parent_id: UUID | None,
        org_type: str | None,
        siret: str | None,
        royalty_rate: Decimal,
        lead_fee_rate: Decimal,
        is_active: bool = True,
    ) -> dict:
        """Создать организацию."""
        row = await self._conn.fetchrow(
            """
            INSERT INTO organizations
                (name, network_type, parent_id, org_type, siret,
                 royalty_rate, lead_fee_rate, is_active)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *
            """,
            name, network_type, parent_id, org_type, siret,
            royalty_rate, lead_fee_rate, is_active,
        )
        return dict(row)

    async def list_children(
        self,
        parent_id: UUID,
        network_types: tuple[str, ...] | None = None,
        active_only: bool = True,
    ) -> list[dict]:
        """Прямые потомки организации, по имени."""
        rows = await self._conn.fetch(
            """
            SELECT * FROM organizations
            WHERE parent_id = $1
              AND ($2::text[] IS NULL OR network_type = ANY($2::text[]))
              AND (NOT $3 OR is_active)
            ORDER BY name, org_id
            """,
            parent_id,
            list(network_types) if network_types else None,
            active_only,
        )
        return [dict(r) for r in rows]

    async def update_rates(
        self, org_id: UUID, royalty_rate: Decimal, lead_fee_rate: Decimal
    ) -> dict | None:
        """Обновить ставки роялти / lead fee."""
        row = await self._conn.fetchrow(
            """
            UPDATE organizations
            SET royalty_rate = $2, lead_fee_rate = $3, updated_at = NOW()
            WHERE org_id = $1
            RETURNING *
            """,
            org_id, royalty_rate, lead_fee_rate,
        )
        return dict(row) if row else None


class SiteRepository:
    """Площадки (сайты) организаций."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def create(
        self,
        *,
        organization_id: UUID,
        name: str,
        city: str,
        zip_code: str,
        address: str | None = None,
        is_headquarters: bool = False,
    ) -> dict:
        row = await self._conn.fetchrow(
            """
            INSERT INTO sites (organization_id, name, address, city, zip_code, is_headquarters)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            organization_id, name, address, city, zip_code, is_headquarters,
        )
        return dict(row)

    async def list_for_organization(self, organization_id: UUID) -> list[dict]:
        rows = await self._conn.fetch(
            "SELECT * FROM sites WHERE organization_id = $1 ORDER BY created_at",
            organization_id,
        )
        return [dict(r) for r in rows]
