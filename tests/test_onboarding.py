import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from network.exceptions import (
    AlreadyOnboardedError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    TransactionFailure,
)
from network.memory_store import MemorySiteRepository
from network.models.candidate import OnboardRequest
from network.services.auth_service import verify_password

REQUEST = OnboardRequest(
    admin_password="s3cret-pass",
    siret="12345678901234",
    city="Paris",
    zip_code="75001",
    address="1 rue de Rivoli",
)


@pytest.fixture
async def head(seed):
    return await seed.org(
        "Formatio HQ",
        royalty_rate=Decimal("7.0"),
        lead_fee_rate=Decimal("20.0"),
        org_type="CFA",
    )


@pytest.fixture
async def signed(seed, head):
    return await seed.candidate(
        head["org_id"],
        status="SIGNED",
        target_zone="Paris Centre",
        target_zip_codes=["75001", "75002"],
    )


def counts(store) -> dict:
    t = store.tables
    return {
        "organizations": len(t.organizations),
        "sites": len(t.sites),
        "users": len(t.users),
        "memberships": len(t.memberships),
        "territories": len(t.territories),
    }


async def test_onboarding_provisions_the_franchise(services, store, head, signed):
    org = await services.onboarding.onboard(signed["candidate_id"], REQUEST, "admin-1")

    assert org.name == "Franchise Formatio Conseil"
    assert org.network_type.value == "FRANCHISE"
    assert org.parent_id == head["org_id"]
    assert org.org_type.value == "CFA"
    assert org.royalty_rate == Decimal("7.0")
    assert org.lead_fee_rate == Decimal("20.0")
    assert org.siret == "12345678901234"

    t = store.tables
    [site] = [s for s in t.sites.values() if s["organization_id"] == org.org_id]
    assert site["is_headquarters"] is True
    assert site["city"] == "Paris"
    assert site["address"] == "1 rue de Rivoli"

    [user] = t.users.values()
    assert user["email"] == "jeanne@formatio.fr"
    assert user["first_name"] == "Jeanne"
    assert verify_password("s3cret-pass", user["password_hash"])

    [membership] = t.memberships
    assert membership["user_id"] == user["user_id"]
    assert membership["organization_id"] == org.org_id
    assert membership["role"] == "admin"
    assert membership["scope"] == "GLOBAL"

    [territory] = t.territories.values()
    assert territory["organization_id"] == org.org_id
    assert territory["name"] == "Paris Centre"
    assert territory["zip_codes"] == ["75001", "75002"]
    assert territory["is_exclusive"] is True

    candidate = t.candidates[signed["candidate_id"]]
    assert candidate["created_org_id"] == org.org_id
    assert candidate["contract_signed_at"] is not None


async def test_onboarding_is_audited(services, store, head, signed):
    org = await services.onboarding.onboard(signed["candidate_id"], REQUEST)

    [entry] = [a for a in store.tables.audit if a["action"] == "candidate.onboard"]
    assert entry["entity_id"] == str(signed["candidate_id"])
    assert entry["details"]["organization_id"] == str(org.org_id)
    assert entry["details"]["territory_id"] is not None

    activities = await services.candidates.list_activities(signed["candidate_id"])
    assert [a.type.value for a in activities] == ["CONVERSION"]


async def test_second_onboarding_fails_without_side_effects(services, store, signed):
    await services.onboarding.onboard(signed["candidate_id"], REQUEST)
    before = counts(store)

    with pytest.raises(AlreadyOnboardedError) as exc_info:
        await services.onboarding.onboard(signed["candidate_id"], REQUEST)

    assert isinstance(exc_info.value, ConflictError)
    assert exc_info.value.message == "candidate already onboarded"
    assert counts(store) == before


async def test_candidate_must_be_signed(services, store, seed, head):
    candidate = await seed.candidate(head["org_id"], status="QUALIFIED")
    before = counts(store)

    with pytest.raises(InvalidStateError) as exc_info:
        await services.onboarding.onboard(candidate["candidate_id"], REQUEST)

    assert exc_info.value.message == "candidate must be SIGNED, currently QUALIFIED"
    assert counts(store) == before


async def test_unknown_candidate(services):
    with pytest.raises(NotFoundError):
        await services.onboarding.onboard(uuid4(), REQUEST)


async def test_existing_user_is_reused(services, store, seed, signed):
    existing = await seed.user("Jeanne@Formatio.fr")

    org = await services.onboarding.onboard(signed["candidate_id"], REQUEST)

    assert len(store.tables.users) == 1
    [membership] = store.tables.memberships
    assert membership["user_id"] == existing["user_id"]
    assert membership["organization_id"] == org.org_id


async def test_territory_conflict_aborts_everything(services, store, seed, head, signed):
    rival = await seed.org("Formatio Paris", "FRANCHISE", parent_id=head["org_id"])
    await seed.territory(rival["org_id"], ["75002"], name="Paris 2e")
    before = counts(store)

    with pytest.raises(ConflictError) as exc_info:
        await services.onboarding.onboard(signed["candidate_id"], REQUEST)

    assert not isinstance(exc_info.value, AlreadyOnboardedError)
    assert "Formatio Paris" in exc_info.value.message
    assert counts(store) == before
    assert store.tables.candidates[signed["candidate_id"]]["created_org_id"] is None


async def test_site_failure_leaves_no_partial_state(services, store, signed, monkeypatch):
    async def broken(self, **kwargs):
        raise RuntimeError("site table unavailable")

    monkeypatch.setattr(MemorySiteRepository, "create", broken)
    before = counts(store)

    with pytest.raises(TransactionFailure) as exc_info:
        await services.onboarding.onboard(signed["candidate_id"], REQUEST)

    assert exc_info.value.message == "Onboarding failed; no changes were applied"
    assert counts(store) == before
    assert store.tables.candidates[signed["candidate_id"]]["created_org_id"] is None


async def test_no_target_codes_means_no_territory(services, store, seed, head):
    candidate = await seed.candidate(head["org_id"], status="SIGNED", email="paul@ecole.fr")

    org = await services.onboarding.onboard(candidate["candidate_id"], REQUEST)

    assert store.tables.territories == {}
    assert store.tables.candidates[candidate["candidate_id"]]["created_org_id"] == org.org_id


async def test_default_territory_name(services, store, seed, head):
    candidate = await seed.candidate(
        head["org_id"], status="SIGNED", email="paul@ecole.fr", target_zip_codes=["13001"]
    )

    await services.onboarding.onboard(candidate["candidate_id"], REQUEST)

    [territory] = store.tables.territories.values()
    assert territory["name"] == "Zone Formatio Conseil"


async def test_concurrent_onboarding_creates_one_franchise(services, store, signed):
    results = await asyncio.gather(
        services.onboarding.onboard(signed["candidate_id"], REQUEST),
        services.onboarding.onboard(signed["candidate_id"], REQUEST),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    created = [r for r in results if not isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], AlreadyOnboardedError)
    [org] = created
    franchises = [
        o for o in store.tables.organizations.values() if o["network_type"] == "FRANCHISE"
    ]
    assert [o["org_id"] for o in franchises] == [org.org_id]
    assert store.tables.candidates[signed["candidate_id"]]["created_org_id"] == org.org_id


@pytest.mark.parametrize("password", ["x" * 73, "é" * 40])
def test_password_over_bcrypt_limit_is_rejected(password):
    from pydantic import ValidationError

    with pytest.raises(ValidationError, match="72 bytes"):
        OnboardRequest(
            admin_password=password, siret="12345678901234", city="Paris", zip_code="75001"
        )


def test_password_at_the_bcrypt_limit_is_accepted():
    request = OnboardRequest(
        admin_password="é" * 36, siret="12345678901234", city="Paris", zip_code="75001"
    )

    assert len(request.admin_password.encode("utf-8")) == 72
