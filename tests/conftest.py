"""
Общие фикстуры: MemoryStore, сервисы сети и заполнение тестовыми данными.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from network.config import NetworkSettings
from network.memory_store import MemoryStore
from network.services.container import build_services


class Seed:
    """Прямое заполнение хранилища в обход сервисов."""

    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    async def org(
        self,
        name: str,
        network_type: str = "HEAD_OFFICE",
        parent_id=None,
        royalty_rate: Decimal = Decimal("5.0"),
        lead_fee_rate: Decimal = Decimal("15.0"),
        org_type: str | None = None,
        is_active: bool = True,
    ) -> dict:
        async with self.store.unit_of_work() as uow:
            return await uow.organizations.create(
                name=name,
                network_type=network_type,
                parent_id=parent_id,
                org_type=org_type,
                siret=None,
                royalty_rate=royalty_rate,
                lead_fee_rate=lead_fee_rate,
                is_active=is_active,
            )

    async def territory(
        self, org_id, zip_codes: list[str], name: str = "Zone", is_exclusive: bool = True
    ) -> dict:
        async with self.store.unit_of_work() as uow:
            return await uow.territories.create(
                organization_id=org_id,
                name=name,
                zip_codes=zip_codes,
                is_exclusive=is_exclusive,
            )

    async def record(self, org_id, postal_code: str | None = None, source: str = "ORGANIC") -> dict:
        async with self.store.unit_of_work() as uow:
            return await uow.records.create(
                organization_id=org_id, postal_code=postal_code, source=source
            )

    async def contract(
        self,
        record_id,
        montant_ht: str,
        date_signature: datetime,
        status: str = "ACTIVE",
        is_signed: bool = True,
    ) -> dict:
        async with self.store.unit_of_work() as uow:
            return await uow.contracts.create(
                record_id=record_id,
                montant_ht=Decimal(montant_ht),
                status=status,
                is_signed=is_signed,
                date_signature=date_signature,
            )

    async def candidate(self, org_id, **overrides) -> dict:
        fields = {
            "organization_id": org_id,
            "company_name": "Formatio Conseil",
            "email": "jeanne@formatio.fr",
            "representative_last_name": "Martin",
            "representative_first_name": "Jeanne",
        }
        fields.update(overrides)
        async with self.store.unit_of_work() as uow:
            return await uow.candidates.create(**fields)

    async def user(self, email: str) -> dict:
        async with self.store.unit_of_work() as uow:
            return await uow.users.create(
                email=email, first_name="Existing", last_name="User",
                password_hash="not-a-real-hash",
            )


@pytest.fixture
def settings() -> NetworkSettings:
    return NetworkSettings(
        use_memory_store=True,
        events_enabled=False,
        jwt_secret_key="test-secret",
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def services(store, settings):
    return build_services(store, settings)


@pytest.fixture
def seed(store) -> Seed:
    return Seed(store)


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
