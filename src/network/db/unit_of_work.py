"""
network/db/unit_of_work.py — Набор репозиториев, привязанных к одной транзакции.

Экземпляр создаёт только ``Database.unit_of_work()``; все репозитории
работают через одно соединение, поэтому их записи коммитятся
или откатываются вместе.
"""

from __future__ import annotations

import asyncpg

from network.db.repositories.audit_repo import AuditRepository
from network.db.repositories.candidate_repo import ActivityRepository, CandidateRepository
from network.db.repositories.org_repo import OrganizationRepository, SiteRepository
from network.db.repositories.record_repo import ContractRepository, RecordRepository
from network.db.repositories.territory_repo import TerritoryRepository
from network.db.repositories.user_repo import MembershipRepository, UserRepository


class PgUnitOfWork:
    """Репозитории PostgreSQL поверх одного соединения в транзакции."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self.connection = conn
        self.organizations = OrganizationRepository(conn)
        self.sites = SiteRepository(conn)
        self.users = UserRepository(conn)
        self.memberships = MembershipRepository(conn)
        self.territories = TerritoryRepository(conn)
        self.records = RecordRepository(conn)
        self.contracts = ContractRepository(conn)
        self.candidates = CandidateRepository(conn)
        self.activities = ActivityRepository(conn)
        self.audit = AuditRepository(conn)
