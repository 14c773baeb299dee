"""
network/db/repositories/user_repo.py — Пользователи и членства (provisioning).

Минимальный примитив создания учётных записей для онбординга франчайзи:
поиск по email, создание с bcrypt-хешем, привязка к организации.
"""

from __future__ import annotations

from uuid import UUID

import asyncpg


class UserRepository:
    """Учётные записи пользователей."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def get_by_email(self, email: str) -> dict | None:
        """Найти пользователя по email."""
        row = await self._conn.fetchrow(
            "SELECT * FROM users WHERE lower(email) = lower($1)", email
        )
        return dict(row) if row else None

    async def create(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
    ) -> dict:
        """Создать пользователя."""
        row = await self._conn.fetchrow(
            """
            INSERT INTO users (email, first_name, last_name, password_hash)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            email, first_name, last_name, password_hash,
        )
        return dict(row)


class MembershipRepository:
    """Привязка пользователей к организациям."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def create(
        self,
        *,
        user_id: UUID,
        organization_id: UUID,
        role: str,
        scope: str,
    ) -> dict:
        """Привязать пользователя к организации."""
        row = await self._conn.fetchrow(
            """
            INSERT INTO memberships (user_id, organization_id, role, scope)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            user_id, organization_id, role, scope,
        )
        return dict(row)

    async def list_for_organization(self, organization_id: UUID) -> list[dict]:
        rows = await self._conn.fetch(
            "SELECT * FROM memberships WHERE organization_id = $1",
            organization_id,
        )
        return [dict(r) for r in rows]
