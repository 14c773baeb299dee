import asyncio

import pytest

from network.exceptions import ConflictError, NotFoundError
from network.models.territory import TerritoryCreate


@pytest.fixture
async def network(seed):
    head = await seed.org("Formatio HQ")
    paris = await seed.org("Formatio Paris", "FRANCHISE", parent_id=head["org_id"])
    lyon = await seed.org("Formatio Lyon", "FRANCHISE", parent_id=head["org_id"])
    await seed.territory(paris["org_id"], ["75001", "75002"], name="Paris Centre")
    return head, paris, lyon


async def test_exclusive_overlap_names_owner_and_prefix(services, network):
    _, paris, lyon = network

    with pytest.raises(ConflictError) as exc_info:
        await services.territories.create_territory(
            TerritoryCreate(organization_id=lyon["org_id"], name="Paris 1er", zip_codes=["75001"])
        )

    err = exc_info.value
    assert "Formatio Paris" in err.message
    assert "75001" in err.message
    assert err.details["conflicts"] == [{
        "organizationId": str(paris["org_id"]),
        "organizationName": "Formatio Paris",
        "overlappingZipCodes": ["75001"],
    }]


async def test_rejected_creation_persists_nothing(services, store, network):
    _, _, lyon = network

    with pytest.raises(ConflictError):
        await services.territories.create_territory(
            TerritoryCreate(organization_id=lyon["org_id"], name="Overlap", zip_codes=["75002", "69001"])
        )

    assert await services.territories.list_territories(lyon["org_id"]) == []
    assert not [a for a in store.tables.audit if a["action"] == "territory.create"]


async def test_owner_may_extend_its_own_zone(services, network):
    _, paris, _ = network

    created = await services.territories.create_territory(
        TerritoryCreate(organization_id=paris["org_id"], name="Paris Est", zip_codes=["75001", "75011"])
    )

    assert created.organization_name == "Formatio Paris"
    assert created.zip_codes == ["75001", "75011"]


async def test_non_exclusive_territory_skips_conflict_check(services, network):
    _, _, lyon = network

    created = await services.territories.create_territory(
        TerritoryCreate(
            organization_id=lyon["org_id"], name="Shared", zip_codes=["75001"], is_exclusive=False
        )
    )

    assert created.is_exclusive is False


async def test_non_exclusive_holdings_do_not_block(services, seed, network):
    _, paris, lyon = network
    await seed.territory(paris["org_id"], ["69001"], name="Shared Lyon", is_exclusive=False)

    created = await services.territories.create_territory(
        TerritoryCreate(organization_id=lyon["org_id"], name="Lyon 1er", zip_codes=["69001"])
    )

    assert created.is_exclusive is True


async def test_check_conflicts_groups_prefixes_per_organization(services, seed, network):
    _, paris, _ = network
    await seed.territory(paris["org_id"], ["75011"], name="Paris Est")

    conflicts = await services.territories.check_conflicts(["75011", "75001", "13001"])

    assert len(conflicts) == 1
    assert conflicts[0].organization_id == paris["org_id"]
    assert conflicts[0].overlapping_zip_codes == ["75001", "75011"]


async def test_check_conflicts_excludes_given_org(services, network):
    _, paris, _ = network

    assert await services.territories.check_conflicts(["75001"], paris["org_id"]) == []


async def test_zone_availability(services, network):
    taken = await services.territories.is_zone_available(["75002"])
    free = await services.territories.is_zone_available(["33000"])

    assert taken.available is False
    assert taken.conflicts[0].organization_name == "Formatio Paris"
    assert free.available is True
    assert free.conflicts == []


async def test_unknown_owner_is_not_found(services, network):
    from uuid import uuid4

    with pytest.raises(NotFoundError):
        await services.territories.create_territory(
            TerritoryCreate(organization_id=uuid4(), name="Ghost", zip_codes=["33000"])
        )


async def test_creation_is_audited(services, store, network):
    _, _, lyon = network

    created = await services.territories.create_territory(
        TerritoryCreate(organization_id=lyon["org_id"], name="Lyon", zip_codes=["69001"])
    )

    entries = [a for a in store.tables.audit if a["action"] == "territory.create"]
    assert [e["entity_id"] for e in entries] == [str(created.territory_id)]


async def test_nested_prefix_blocks_a_finer_exclusive_zone(services, seed, network):
    head, _, lyon = network
    marseille = await seed.org("Formatio Marseille", "FRANCHISE", parent_id=head["org_id"])
    await seed.territory(marseille["org_id"], ["13"], name="Bouches-du-Rhone")

    with pytest.raises(ConflictError) as exc_info:
        await services.territories.create_territory(
            TerritoryCreate(organization_id=lyon["org_id"], name="Marseille 1er", zip_codes=["13001"])
        )

    [conflict] = exc_info.value.details["conflicts"]
    assert conflict["organizationName"] == "Formatio Marseille"
    assert conflict["overlappingZipCodes"] == ["13001"]

    record = await seed.record(head["org_id"])
    result = await services.dispatch.dispatch(record["record_id"], "13001")
    assert result.target_org_id == marseille["org_id"]
    assert await services.territories.list_territories(lyon["org_id"]) == []


async def test_coarse_prefix_over_held_codes_conflicts(services, network):
    _, paris, lyon = network

    with pytest.raises(ConflictError) as exc_info:
        await services.territories.create_territory(
            TerritoryCreate(organization_id=lyon["org_id"], name="Paris", zip_codes=["75"])
        )

    [conflict] = exc_info.value.details["conflicts"]
    assert conflict["organizationId"] == str(paris["org_id"])
    assert conflict["overlappingZipCodes"] == ["75"]


async def test_sibling_prefixes_do_not_conflict(services, network):
    _, _, lyon = network

    assert (await services.territories.is_zone_available(["7501", "75003"])).available is True
    assert (await services.territories.is_zone_available(["750"])).available is False

    created = await services.territories.create_territory(
        TerritoryCreate(organization_id=lyon["org_id"], name="Paris 3e", zip_codes=["75003"])
    )
    assert created.zip_codes == ["75003"]


async def test_concurrent_claims_on_one_zone_admit_a_single_owner(services, store, seed, network):
    head, _, lyon = network
    nice = await seed.org("Formatio Nice", "FRANCHISE", parent_id=head["org_id"])

    results = await asyncio.gather(
        services.territories.create_territory(
            TerritoryCreate(organization_id=lyon["org_id"], name="Bordeaux A", zip_codes=["33000"])
        ),
        services.territories.create_territory(
            TerritoryCreate(organization_id=nice["org_id"], name="Bordeaux B", zip_codes=["33000"])
        ),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], ConflictError)
    holders = [t for t in store.tables.territories.values() if "33000" in t["zip_codes"]]
    assert len(holders) == 1


async def test_audit_sink_failure_does_not_abort_the_operation(
    services, store, network, monkeypatch
):
    from network.memory_store import MemoryAuditRepository

    async def unavailable(self, record):
        raise RuntimeError("audit sink unavailable")

    monkeypatch.setattr(MemoryAuditRepository, "append", unavailable)
    _, _, lyon = network

    created = await services.territories.create_territory(
        TerritoryCreate(organization_id=lyon["org_id"], name="Lyon", zip_codes=["69001"])
    )

    assert created.territory_id in store.tables.territories
    assert store.tables.audit == []


def test_zip_codes_are_normalized():
    from uuid import uuid4

    data = TerritoryCreate(
        organization_id=uuid4(), name="Zone", zip_codes=[" 75001 ", "75001", "2a004"]
    )

    assert data.zip_codes == ["75001", "2A004"]


def test_invalid_prefix_is_rejected():
    from uuid import uuid4

    from pydantic import ValidationError

    with pytest.raises(ValidationError):
        TerritoryCreate(organization_id=uuid4(), name="Zone", zip_codes=["75-001"])
