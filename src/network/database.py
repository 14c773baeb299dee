"""
═══════════════════════════════════════════════════════════════════════════════
Network — Хранилище на PostgreSQL (Database Connection Pool + Unit of Work)
═══════════════════════════════════════════════════════════════════════════════

Пул соединений asyncpg, обёрнутый в явно создаваемый объект ``Database``.
Глобального синглтона нет: экземпляр создаёт точка входа процесса
(``network.main:lifespan``), она же владеет его жизненным циклом
(``connect()`` / ``close()``), а сервисы получают его через конструктор.

Единица работы (unit of work) — ``async with db.unit_of_work() as uow:``:
    • begin — при входе (одно соединение, одна транзакция);
    • commit — при нормальном выходе;
    • rollback — при любом исключении, включая отмену задачи.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import asyncpg

from network.config import NetworkSettings
from network.db.unit_of_work import PgUnitOfWork
from network.exceptions import ConflictError

logger = logging.getLogger(__name__)


async def _init_connection(conn: asyncpg.Connection) -> None:
    """JSONB ↔ dict для audit_log.details и candidate_activities.metadata."""
    await conn.set_type_codec(
        "jsonb",
        encoder=lambda v: json.dumps(v, default=str),
        decoder=json.loads,
        schema="pg_catalog",
    )


class Database:
    """PostgreSQL-хранилище сети."""

    def __init__(self, settings: NetworkSettings) -> None:
        self._settings = settings
        self._pool: asyncpg.Pool | None = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database is not connected")
        return self._pool

    async def connect(self) -> "Database":
        """Создаёт пул соединений с параметрами из NetworkSettings."""
        if self._pool is None:
            s = self._settings
            self._pool = await asyncpg.create_pool(
                dsn=s.database_url,
                min_size=s.database_pool_min,
                max_size=s.database_pool_max,
                command_timeout=s.database_command_timeout,
                init=_init_connection,
            )
            logger.info(
                f"Network DB pool created "
                f"(min={s.database_pool_min}, max={s.database_pool_max})"
            )
        return self

    async def close(self) -> None:
        """Закрывает пул соединений."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Network DB pool closed")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Выдаёт соединение из пула и возвращает его обратно."""
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncGenerator[PgUnitOfWork, None]:
        """
        Транзакционная единица работы.

        Использование::

            async with db.unit_of_work() as uow:
                org = await uow.organizations.get(org_id)
                await uow.records.mark_dispatched(...)
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield PgUnitOfWork(conn)

    @asynccontextmanager
    async def job_lock(self, name: str) -> AsyncGenerator[None, None]:
        """
        Эксклюзивная блокировка периодической задачи (session advisory lock).

        Если задача уже выполняется другим процессом — ConflictError,
        без ожидания.
        """
        async with self.pool.acquire() as conn:
            acquired = await conn.fetchval(
                "SELECT pg_try_advisory_lock(hashtext($1))", name
            )
            if not acquired:
                raise ConflictError(
                    f"Job '{name}' is already running",
                    details={"job": name},
                )
            try:
                yield
            finally:
                await conn.execute("SELECT pg_advisory_unlock(hashtext($1))", name)

    async def check_connection(self) -> bool:
        """Проверяет доступность PostgreSQL (health check)."""
        try:
            async with self.connection() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"Network DB health check failed: {e}")
            return False
