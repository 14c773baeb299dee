"""
HTTP-уровень: авторизация, маппинг ошибок, camelCase и сквозной сценарий
головной офис → территории → диспетчеризация → роялти.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from network.config import get_settings
from network.events import EventPublisher
from network.main import create_app

API = "/api/v1/network"


def token(role: str = "admin", subject: str = "user-1") -> dict:
    settings = get_settings()
    claims = {
        "sub": subject,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    encoded = jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {encoded}"}


@pytest.fixture
async def client(store):
    app = create_app(store=store, publisher=EventPublisher("nats://unused", enabled=False))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def network(seed):
    head = await seed.org("Formatio HQ")
    paris = await seed.org("Formatio Paris", "FRANCHISE", parent_id=head["org_id"])
    lyon = await seed.org("Formatio Lyon", "FRANCHISE", parent_id=head["org_id"])
    await seed.territory(paris["org_id"], ["75001", "75002"], name="Paris Centre")
    return head, paris, lyon


async def test_health_reports_memory_store(client):
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "memory", "service": "network"}


async def test_missing_token_is_unauthorized(client):
    response = await client.get(f"{API}/territories")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json()["error"]["code"] == "NETWORK_AUTH_ERROR"


async def test_garbage_token_is_unauthorized(client):
    response = await client.get(
        f"{API}/territories", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401


async def test_viewer_cannot_create_territories(client, network):
    _, _, lyon = network

    response = await client.post(
        f"{API}/territories",
        json={"organizationId": str(lyon["org_id"]), "name": "Lyon", "zipCodes": ["69001"]},
        headers=token("viewer"),
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "NETWORK_AUTHZ_ERROR"


async def test_network_scenario(client, store, seed, network):
    head, paris, lyon = network
    admin = token("admin")

    conflict = await client.post(
        f"{API}/territories",
        json={"organizationId": str(lyon["org_id"]), "name": "Paris 2e", "zipCodes": ["75002"]},
        headers=admin,
    )
    assert conflict.status_code == 409
    error = conflict.json()["error"]
    assert error["code"] == "NETWORK_CONFLICT"
    assert error["details"]["conflicts"] == [{
        "organizationId": str(paris["org_id"]),
        "organizationName": "Formatio Paris",
        "overlappingZipCodes": ["75002"],
    }]

    created = await client.post(
        f"{API}/territories",
        json={"organizationId": str(lyon["org_id"]), "name": "Lyon Centre", "zipCodes": ["69001"]},
        headers=admin,
    )
    assert created.status_code == 201
    assert created.json()["organizationName"] == "Formatio Lyon"

    record = await seed.record(head["org_id"])
    dispatched = await client.post(
        f"{API}/dispatch",
        json={"recordId": str(record["record_id"]), "postalCode": "75001"},
        headers=admin,
    )
    assert dispatched.status_code == 200
    body = dispatched.json()
    assert body["matched"] is True
    assert body["targetOrgId"] == str(paris["org_id"])
    assert body["territoryName"] == "Paris Centre"

    await seed.contract(
        record["record_id"], "1000", datetime(2024, 3, 10, tzinfo=timezone.utc)
    )
    royalties = await client.get(
        f"{API}/royalties",
        params={"organizationId": str(paris["org_id"]), "month": "2024-03"},
        headers=token("advisor"),
    )
    assert royalties.status_code == 200
    breakdown = royalties.json()
    assert breakdown["dispatch"]["contractCount"] == 1
    assert Decimal(breakdown["dispatch"]["amountDue"]) == Decimal("150.00")
    assert Decimal(breakdown["totalDue"]) == Decimal("150.00")

    summary = await client.get(
        f"{API}/royalties",
        params={"organizationId": str(head["org_id"]), "month": "2024-03", "summary": "network"},
        headers=token("advisor"),
    )
    assert summary.status_code == 200
    assert [f["organizationName"] for f in summary.json()["franchises"]] == [
        "Formatio Lyon", "Formatio Paris",
    ]


async def test_zone_availability_endpoint(client, network):
    response = await client.get(
        f"{API}/territories/availability",
        params=[("zipCodes", "75001"), ("zipCodes", "13001")],
        headers=token("viewer"),
    )

    assert response.status_code == 200
    assert response.json()["available"] is False


async def test_malformed_month_is_a_validation_error(client, network):
    _, paris, _ = network

    response = await client.get(
        f"{API}/royalties",
        params={"organizationId": str(paris["org_id"]), "month": "2024-13"},
        headers=token("advisor"),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "NETWORK_VALIDATION_ERROR"


async def test_unknown_summary_mode_is_rejected(client, network):
    head, _, _ = network

    response = await client.get(
        f"{API}/royalties",
        params={"organizationId": str(head["org_id"]), "month": "2024-03", "summary": "all"},
        headers=token("advisor"),
    )

    assert response.status_code == 400


ONBOARD_BODY = {
    "adminPassword": "s3cret-pass",
    "siret": "12345678901234",
    "city": "Marseille",
    "zipCode": "13001",
}


async def test_onboarding_endpoint(client, seed, network):
    head, _, _ = network
    candidate = await seed.candidate(
        head["org_id"], status="SIGNED", target_zip_codes=["13001"]
    )
    url = f"{API}/candidates/{candidate['candidate_id']}/onboard"

    first = await client.post(url, json=ONBOARD_BODY, headers=token("admin"))
    assert first.status_code == 201
    assert first.json()["message"] == "Organization 'Franchise Formatio Conseil' created"
    assert first.json()["organization"]["networkType"] == "FRANCHISE"

    second = await client.post(url, json=ONBOARD_BODY, headers=token("admin"))
    assert second.status_code == 400
    assert second.json()["error"]["message"] == "candidate already onboarded"


async def test_onboarding_requires_signed_candidate(client, seed, network):
    head, _, _ = network
    candidate = await seed.candidate(head["org_id"], status="DIP_SIGNED")

    response = await client.post(
        f"{API}/candidates/{candidate['candidate_id']}/onboard",
        json=ONBOARD_BODY,
        headers=token("admin"),
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "candidate must be SIGNED, currently DIP_SIGNED"


async def test_onboarding_territory_conflict_is_409(client, seed, network):
    head, _, _ = network
    candidate = await seed.candidate(
        head["org_id"], status="SIGNED", target_zip_codes=["75001"]
    )

    response = await client.post(
        f"{API}/candidates/{candidate['candidate_id']}/onboard",
        json=ONBOARD_BODY,
        headers=token("admin"),
    )

    assert response.status_code == 409


async def test_candidate_lifecycle_over_http(client, network):
    head, _, _ = network

    created = await client.post(
        f"{API}/candidates",
        json={
            "organizationId": str(head["org_id"]),
            "companyName": "Ecole Sud",
            "email": "paul@ecole-sud.fr",
            "representativeLastName": "Durand",
            "representativeFirstName": "Paul",
        },
        headers=token("admin"),
    )
    assert created.status_code == 201
    candidate_id = created.json()["candidateId"]
    assert created.json()["motivationIndex"] == 50

    moved = await client.post(
        f"{API}/candidates/{candidate_id}/status",
        json={"status": "CONTACTED"},
        headers=token("network_manager"),
    )
    assert moved.status_code == 200
    assert moved.json()["motivationIndex"] == 60

    timeline = await client.get(
        f"{API}/candidates/{candidate_id}/activities", headers=token("viewer")
    )
    assert [a["type"] for a in timeline.json()] == ["STATUS_CHANGE"]


async def test_maintenance_accepts_cron_secret(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "maintenance_secret", "cron-secret")

    response = await client.post(
        f"{API}/maintenance/decay", headers={"Authorization": "Bearer cron-secret"}
    )

    assert response.status_code == 200
    assert response.json() == {"processed": 0, "details": []}


async def test_maintenance_rejects_non_admin(client):
    response = await client.post(f"{API}/maintenance/decay", headers=token("advisor"))

    assert response.status_code == 403


async def test_unknown_organization_is_404(client):
    response = await client.get(
        f"{API}/organizations/00000000-0000-0000-0000-000000000000", headers=token("viewer")
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NETWORK_NOT_FOUND"


async def test_overlong_admin_password_is_422(client, store, seed, network):
    head, _, _ = network
    candidate = await seed.candidate(head["org_id"], status="SIGNED")
    orgs_before = len(store.tables.organizations)

    response = await client.post(
        f"{API}/candidates/{candidate['candidate_id']}/onboard",
        json={**ONBOARD_BODY, "adminPassword": "p" * 100},
        headers=token("admin"),
    )

    assert response.status_code == 422
    assert len(store.tables.organizations) == orgs_before
    assert store.tables.users == {}


async def test_candidate_questionnaire_is_scored(client, network):
    head, _, _ = network

    created = await client.post(
        f"{API}/candidates",
        json={
            "organizationId": str(head["org_id"]),
            "companyName": "Ecole Nord",
            "email": "lea@ecole-nord.fr",
            "representativeLastName": "Petit",
            "representativeFirstName": "Lea",
            "qualification": {
                "investmentCapacity": "50K_100K",
                "hasPedagogicalExp": True,
                "timing": "URGENT",
            },
        },
        headers=token("admin"),
    )

    assert created.status_code == 201
    body = created.json()
    assert body["qualificationScore"] == 43
    assert body["financialScore"] == 70
    assert body["timingScore"] == 100
    assert body["motivationIndex"] == 0
    assert body["qualificationAnswers"]["investmentCapacity"] == "50K_100K"
