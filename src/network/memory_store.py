"""
═══════════════════════════════════════════════════════════════════════════════
Network — In-Memory хранилище (замена Network DB для локальной разработки)
═══════════════════════════════════════════════════════════════════════════════

``MemoryStore`` повторяет интерфейс ``network.database.Database``:
``unit_of_work()``, ``job_lock()``, ``check_connection()``, ``close()``.
Репозитории зеркалят методы ``network.db.repositories.*`` и возвращают
копии строк (dict), как asyncpg.

Транзакционная семантика:
    • begin — снимок всех таблиц (deepcopy);
    • commit — снимок становится текущим состоянием;
    • rollback — снимок выбрасывается.
Единицы работы сериализуются одним ``asyncio.Lock``.

Используется тестами и при недоступности PostgreSQL на старте
(``network.main:lifespan``).
"""

from __future__ import annotations

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import UUID, uuid4

from network.exceptions import ConflictError
from network.models.enums import ContractStatus
from network.models.territory import prefixes_overlap

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Таблицы
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class MemoryTables:
    organizations: dict[UUID, dict] = field(default_factory=dict)
    sites: dict[UUID, dict] = field(default_factory=dict)
    users: dict[UUID, dict] = field(default_factory=dict)
    memberships: list[dict] = field(default_factory=list)
    territories: dict[UUID, dict] = field(default_factory=dict)
    records: dict[UUID, dict] = field(default_factory=dict)
    contracts: dict[UUID, dict] = field(default_factory=dict)
    candidates: dict[UUID, dict] = field(default_factory=dict)
    activities: list[dict] = field(default_factory=list)
    audit: list[dict] = field(default_factory=list)


class _Clock:
    """Строго возрастающие метки времени (аналог clock_timestamp())."""

    def __init__(self) -> None:
        self._last: datetime | None = None

    def __call__(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last is not None and now <= self._last:
            now = self._last + timedelta(microseconds=1)
        self._last = now
        return now


def _copy(row: dict | None) -> dict | None:
    return copy.deepcopy(row) if row is not None else None


# ═══════════════════════════════════════════════════════════════════════════════
# Репозитории in-memory
# ═══════════════════════════════════════════════════════════════════════════════

class _MemoryRepository:
    def __init__(self, tables: MemoryTables, clock: _Clock) -> None:
        self._t = tables
        self._now = clock


class MemoryOrganizationRepository(_MemoryRepository):

    async def get(self, org_id: UUID) -> dict | None:
        return _copy(self._t.organizations.get(org_id))

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
        now = self._now()
        org = {
            "org_id": uuid4(), "name": name, "network_type": network_type,
            "parent_id": parent_id, "org_type": org_type, "siret": siret,
            "royalty_rate": Decimal(royalty_rate), "lead_fee_rate": Decimal(lead_fee_rate),
            "is_active": is_active, "created_at": now, "updated_at": now,
        }
        self._t.organizations[org["org_id"]] = org
        return _copy(org)

    async def list_children(
        self,
        parent_id: UUID,
        network_types: tuple[str, ...] | None = None,
        active_only: bool = True,
    ) -> list[dict]:
        rows = [
            o for o in self._t.organizations.values()
            if o["parent_id"] == parent_id
            and (not network_types or o["network_type"] in network_types)
            and (not active_only or o["is_active"])
        ]
        rows.sort(key=lambda o: (o["name"], o["org_id"]))
        return [_copy(o) for o in rows]

    async def update_rates(
        self, org_id: UUID, royalty_rate: Decimal, lead_fee_rate: Decimal
    ) -> dict | None:
        org = self._t.organizations.get(org_id)
        if org is None:
            return None
        org["royalty_rate"] = Decimal(royalty_rate)
        org["lead_fee_rate"] = Decimal(lead_fee_rate)
        org["updated_at"] = self._now()
        return _copy(org)


class MemorySiteRepository(_MemoryRepository):

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
        site = {
            "site_id": uuid4(), "organization_id": organization_id, "name": name,
            "address": address, "city": city, "zip_code": zip_code,
            "is_headquarters": is_headquarters, "created_at": self._now(),
        }
        self._t.sites[site["site_id"]] = site
        return _copy(site)

    async def list_for_organization(self, organization_id: UUID) -> list[dict]:
        rows = [s for s in self._t.sites.values() if s["organization_id"] == organization_id]
        rows.sort(key=lambda s: s["created_at"])
        return [_copy(s) for s in rows]


class MemoryUserRepository(_MemoryRepository):

    async def get_by_email(self, email: str) -> dict | None:
        for u in self._t.users.values():
            if u["email"].lower() == email.lower():
                return _copy(u)
        return None

    async def create(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
    ) -> dict:
        if await self.get_by_email(email) is not None:
            raise ValueError(f"duplicate user email: {email}")
        user = {
            "user_id": uuid4(), "email": email, "first_name": first_name,
            "last_name": last_name, "password_hash": password_hash,
            "is_active": True, "created_at": self._now(),
        }
        self._t.users[user["user_id"]] = user
        return _copy(user)


class MemoryMembershipRepository(_MemoryRepository):

    async def create(
        self,
        *,
        user_id: UUID,
        organization_id: UUID,
        role: str,
        scope: str,
    ) -> dict:
        for m in self._t.memberships:
            if m["user_id"] == user_id and m["organization_id"] == organization_id:
                raise ValueError("duplicate membership")
        membership = {
            "user_id": user_id, "organization_id": organization_id,
            "role": role, "scope": scope, "is_active": True,
            "created_at": self._now(),
        }
        self._t.memberships.append(membership)
        return _copy(membership)

    async def list_for_organization(self, organization_id: UUID) -> list[dict]:
        return [
            _copy(m) for m in self._t.memberships
            if m["organization_id"] == organization_id
        ]


class MemoryTerritoryRepository(_MemoryRepository):

    def _with_org_name(self, territory: dict) -> dict:
        row = _copy(territory)
        org = self._t.organizations.get(territory["organization_id"])
        row["organization_name"] = org["name"] if org else None
        return row

    async def lock_registry(self) -> None:
        # Единицы работы и так сериализованы
        return None

    async def create(
        self,
        *,
        organization_id: UUID,
        name: str,
        zip_codes: list[str],
        is_exclusive: bool,
    ) -> dict:
        territory = {
            "territory_id": uuid4(), "organization_id": organization_id,
            "name": name, "zip_codes": list(zip_codes),
            "is_exclusive": is_exclusive, "is_active": True,
            "created_at": self._now(),
        }
        self._t.territories[territory["territory_id"]] = territory
        return self._with_org_name(territory)

    async def list(self, organization_id: UUID | None = None) -> list[dict]:
        rows = [
            t for t in self._t.territories.values()
            if organization_id is None or t["organization_id"] == organization_id
        ]
        rows.sort(key=lambda t: (t["name"], t["territory_id"]))
        return [self._with_org_name(t) for t in rows]

    async def find_exclusive_overlapping(
        self, zip_codes: list[str], exclude_org_id: UUID | None = None
    ) -> list[dict]:
        rows = [
            self._with_org_name(t) for t in self._t.territories.values()
            if t["is_active"]
            and t["is_exclusive"]
            and any(prefixes_overlap(w, h) for w in zip_codes for h in t["zip_codes"])
            and (exclude_org_id is None or t["organization_id"] != exclude_org_id)
        ]
        rows.sort(key=lambda t: (t["organization_name"] or "", t["created_at"], t["territory_id"]))
        return rows

    async def find_covering(
        self,
        parent_id: UUID,
        postal_code: str,
        network_types: tuple[str, ...],
    ) -> list[dict]:
        rows = []
        for t in self._t.territories.values():
            org = self._t.organizations.get(t["organization_id"])
            if (
                t["is_active"]
                and org is not None
                and org["is_active"]
                and org["parent_id"] == parent_id
                and org["network_type"] in network_types
                and any(postal_code.startswith(p) for p in t["zip_codes"])
            ):
                rows.append(self._with_org_name(t))
        rows.sort(key=lambda t: (t["created_at"], t["territory_id"]))
        return rows


class MemoryRecordRepository(_MemoryRepository):

    async def get(self, record_id: UUID) -> dict | None:
        return _copy(self._t.records.get(record_id))

    async def create(
        self,
        *,
        organization_id: UUID,
        postal_code: str | None = None,
        source: str = "ORGANIC",
    ) -> dict:
        now = self._now()
        record = {
            "record_id": uuid4(), "organization_id": organization_id,
            "source": source, "postal_code": postal_code,
            "dispatched_at": None, "dispatched_from_id": None,
            "original_lead_date": None, "created_at": now, "updated_at": now,
        }
        self._t.records[record["record_id"]] = record
        return _copy(record)

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
        record = self._t.records.get(record_id)
        if record is None:
            return
        record.update(
            organization_id=target_org_id,
            source="NETWORK_DISPATCH",
            dispatched_at=dispatched_at,
            dispatched_from_id=dispatched_from_id,
            postal_code=postal_code,
            updated_at=self._now(),
        )
        if record["original_lead_date"] is None:
            record["original_lead_date"] = original_lead_date

    async def set_postal_code(
        self, record_id: UUID, postal_code: str, original_lead_date: datetime | None
    ) -> None:
        record = self._t.records.get(record_id)
        if record is None:
            return
        record["postal_code"] = postal_code
        record["updated_at"] = self._now()
        if record["original_lead_date"] is None:
            record["original_lead_date"] = original_lead_date

    async def list_pending(self, head_office_id: UUID) -> list[dict]:
        org = self._t.organizations.get(head_office_id)
        if org is None or org["network_type"] != "HEAD_OFFICE":
            return []
        rows = [
            r for r in self._t.records.values()
            if r["organization_id"] == head_office_id
            and r["source"] == "ORGANIC"
            and r["dispatched_at"] is None
            and r["postal_code"] is not None
        ]
        rows.sort(key=lambda r: (r["created_at"], r["record_id"]))
        return [_copy(r) for r in rows]


class MemoryContractRepository(_MemoryRepository):

    async def create(
        self,
        *,
        record_id: UUID,
        montant_ht: Decimal,
        status: str = ContractStatus.ACTIVE.value,
        is_signed: bool = True,
        date_signature: datetime | None = None,
    ) -> dict:
        contract = {
            "contract_id": uuid4(), "record_id": record_id,
            "montant_ht": Decimal(montant_ht), "status": status,
            "is_signed": is_signed, "date_signature": date_signature,
            "created_at": self._now(),
        }
        self._t.contracts[contract["contract_id"]] = contract
        return _copy(contract)

    async def list_signed_for_organization(
        self, organization_id: UUID, start: datetime, end: datetime
    ) -> list[dict]:
        rows = []
        for c in self._t.contracts.values():
            record = self._t.records.get(c["record_id"])
            if (
                record is not None
                and record["organization_id"] == organization_id
                and c["status"] == ContractStatus.ACTIVE.value
                and c["is_signed"]
                and c["date_signature"] is not None
                and start <= c["date_signature"] <= end
            ):
                rows.append({
                    "contract_id": c["contract_id"],
                    "montant_ht": c["montant_ht"],
                    "date_signature": c["date_signature"],
                    "source": record["source"],
                })
        rows.sort(key=lambda c: (c["date_signature"], c["contract_id"]))
        return rows


class MemoryCandidateRepository(_MemoryRepository):

    async def get(self, candidate_id: UUID, for_update: bool = False) -> dict | None:
        return _copy(self._t.candidates.get(candidate_id))

    async def create(self, **fields: Any) -> dict:
        now = self._now()
        candidate = {
            "candidate_id": uuid4(),
            "phone": None, "franchise_type": "OF", "target_zone": None,
            "target_zip_codes": [], "investment_budget": None, "notes": None,
            "status": "NEW", "motivation_index": 50,
            "dip_sent_at": None, "dip_signed_at": None, "contract_signed_at": None,
            "created_org_id": None, "last_decay_at": None,
            "qualification_score": None, "financial_score": None, "experience_score": None,
            "geo_score": None, "timing_score": None, "qualification_answers": None,
            "created_at": now, "updated_at": now,
        }
        candidate.update(copy.deepcopy(fields))
        self._t.candidates[candidate["candidate_id"]] = candidate
        return _copy(candidate)

    async def list_for_organization(self, organization_id: UUID) -> list[dict]:
        rows = [
            c for c in self._t.candidates.values()
            if c["organization_id"] == organization_id
        ]
        rows.sort(key=lambda c: c["candidate_id"])
        rows.sort(key=lambda c: c["created_at"], reverse=True)
        return [_copy(c) for c in rows]

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
        candidate = self._t.candidates.get(candidate_id)
        if candidate is None:
            return None
        candidate.update(
            status=status,
            motivation_index=motivation_index,
            dip_sent_at=dip_sent_at,
            dip_signed_at=dip_signed_at,
            contract_signed_at=contract_signed_at,
            updated_at=self._now(),
        )
        return _copy(candidate)

    async def mark_onboarded(
        self,
        candidate_id: UUID,
        created_org_id: UUID,
        contract_signed_at: datetime,
    ) -> None:
        candidate = self._t.candidates.get(candidate_id)
        if candidate is None or candidate["created_org_id"] is not None:
            return
        candidate["created_org_id"] = created_org_id
        if candidate["contract_signed_at"] is None:
            candidate["contract_signed_at"] = contract_signed_at
        candidate["updated_at"] = self._now()

    async def list_inactive(
        self, threshold: datetime, excluded_statuses: list[str]
    ) -> list[dict]:
        rows = []
        for c in self._t.candidates.values():
            last_activity = max(c["updated_at"], c["last_decay_at"] or c["updated_at"])
            if (
                c["status"] not in excluded_statuses
                and c["motivation_index"] > 0
                and last_activity < threshold
            ):
                rows.append(c)
        rows.sort(key=lambda c: (c["updated_at"], c["candidate_id"]))
        return [_copy(c) for c in rows]

    async def apply_decay(
        self,
        candidate_id: UUID,
        *,
        expected_index: int,
        new_index: int,
        decayed_at: datetime,
        touch_updated_at: bool,
    ) -> bool:
        candidate = self._t.candidates.get(candidate_id)
        if candidate is None or candidate["motivation_index"] != expected_index:
            return False
        candidate["motivation_index"] = new_index
        candidate["last_decay_at"] = decayed_at
        if touch_updated_at:
            candidate["updated_at"] = decayed_at
        return True


class MemoryActivityRepository(_MemoryRepository):

    async def append(
        self,
        *,
        candidate_id: UUID,
        type: str,
        description: str,
        metadata: dict[str, Any],
        performed_by: str | None = None,
    ) -> dict:
        activity = {
            "activity_id": uuid4(), "candidate_id": candidate_id, "type": type,
            "description": description, "metadata": copy.deepcopy(metadata),
            "performed_by": performed_by, "created_at": self._now(),
        }
        self._t.activities.append(activity)
        return _copy(activity)

    async def list_for_candidate(self, candidate_id: UUID) -> list[dict]:
        rows = [a for a in self._t.activities if a["candidate_id"] == candidate_id]
        rows.sort(key=lambda a: a["created_at"], reverse=True)
        return [_copy(a) for a in rows]


class MemoryAuditRepository(_MemoryRepository):

    async def append(self, record: dict[str, Any]) -> None:
        entry = copy.deepcopy(record)
        entry["id"] = len(self._t.audit) + 1
        entry.setdefault("details", {})
        entry["created_at"] = self._now()
        self._t.audit.append(entry)

    async def list(self, entity_id: str | None = None) -> list[dict]:
        return [
            _copy(a) for a in self._t.audit
            if entity_id is None or a["entity_id"] == entity_id
        ]


class MemoryUnitOfWork:
    """Репозитории in-memory поверх снимка таблиц."""

    def __init__(self, tables: MemoryTables, clock: _Clock) -> None:
        self.organizations = MemoryOrganizationRepository(tables, clock)
        self.sites = MemorySiteRepository(tables, clock)
        self.users = MemoryUserRepository(tables, clock)
        self.memberships = MemoryMembershipRepository(tables, clock)
        self.territories = MemoryTerritoryRepository(tables, clock)
        self.records = MemoryRecordRepository(tables, clock)
        self.contracts = MemoryContractRepository(tables, clock)
        self.candidates = MemoryCandidateRepository(tables, clock)
        self.activities = MemoryActivityRepository(tables, clock)
        self.audit = MemoryAuditRepository(tables, clock)


# ═══════════════════════════════════════════════════════════════════════════════
# Хранилище
# ═══════════════════════════════════════════════════════════════════════════════

class MemoryStore:
    """In-process хранилище сети с транзакционной семантикой."""

    def __init__(self) -> None:
        self.tables = MemoryTables()
        self._clock = _Clock()
        self._lock = asyncio.Lock()
        self._job_locks: dict[str, asyncio.Lock] = {}

    async def connect(self) -> "MemoryStore":
        logger.warning(
            "🧠 Network memory store ACTIVATED — all data is in-memory (lost on restart)."
        )
        return self

    async def close(self) -> None:
        return None

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncGenerator[MemoryUnitOfWork, None]:
        """Снимок на входе; фиксация только при нормальном выходе."""
        async with self._lock:
            working = copy.deepcopy(self.tables)
            yield MemoryUnitOfWork(working, self._clock)
            self.tables = working

    @asynccontextmanager
    async def job_lock(self, name: str) -> AsyncGenerator[None, None]:
        """Эксклюзивная блокировка задачи; занята — ConflictError без ожидания."""
        lock = self._job_locks.setdefault(name, asyncio.Lock())
        if lock.locked():
            raise ConflictError(
                f"Job '{name}' is already running",
                details={"job": name},
            )
        async with lock:
            yield

    async def check_connection(self) -> bool:
        return True
