from datetime import timedelta
from uuid import uuid4

import pytest

from network.exceptions import InvalidStateError, NotFoundError
from network.models.candidate import CandidateCreate, QualificationAnswers
from network.models.enums import (
    ActivityType,
    CandidateStatus,
    InvestmentCapacity,
    ProjectTiming,
)


@pytest.fixture
async def head(seed):
    return await seed.org("Formatio HQ")


def application(org_id, **overrides) -> CandidateCreate:
    fields = {
        "organization_id": org_id,
        "company_name": "Formatio Conseil",
        "email": "jeanne@formatio.fr",
        "representative_last_name": "Martin",
        "representative_first_name": "Jeanne",
        "target_zip_codes": ["75001", " 75002"],
    }
    fields.update(overrides)
    return CandidateCreate(**fields)


async def test_create_candidate(services, store, head):
    candidate = await services.candidates.create_candidate(application(head["org_id"]), "admin-1")

    assert candidate.status == CandidateStatus.NEW
    assert candidate.motivation_index == 50
    assert candidate.target_zip_codes == ["75001", "75002"]
    assert candidate.franchise_type.value == "OF"
    assert [a["action"] for a in store.tables.audit] == ["candidate.create"]

    assert await services.candidates.list_candidates(head["org_id"]) == [candidate]


async def test_candidates_belong_to_a_head_office(services, seed, head):
    member = await seed.org("Formatio Paris", "FRANCHISE", parent_id=head["org_id"])

    with pytest.raises(InvalidStateError):
        await services.candidates.create_candidate(application(member["org_id"]))

    with pytest.raises(NotFoundError):
        await services.candidates.create_candidate(application(uuid4()))


async def test_forward_steps_raise_motivation(services, seed, head, now):
    candidate = await seed.candidate(head["org_id"])
    cid = candidate["candidate_id"]

    contacted = await services.candidates.update_status(cid, CandidateStatus.CONTACTED, now=now)
    assert contacted.motivation_index == 60

    jumped = await services.candidates.update_status(cid, CandidateStatus.DIP_SENT, now=now)
    assert jumped.motivation_index == 80
    assert jumped.dip_sent_at == now

    back = await services.candidates.update_status(cid, CandidateStatus.QUALIFIED, now=now)
    assert back.motivation_index == 80
    assert back.dip_sent_at == now


async def test_motivation_is_capped(services, seed, head, now):
    candidate = await seed.candidate(head["org_id"], motivation_index=95)

    updated = await services.candidates.update_status(
        candidate["candidate_id"], CandidateStatus.QUALIFIED, now=now
    )

    assert updated.motivation_index == 100


async def test_same_status_is_a_no_op(services, store, seed, head, now):
    candidate = await seed.candidate(head["org_id"])

    unchanged = await services.candidates.update_status(
        candidate["candidate_id"], CandidateStatus.NEW, now=now
    )

    assert unchanged.motivation_index == 50
    assert store.tables.activities == []


async def test_rejection_zeroes_motivation_and_is_final(services, seed, head, now):
    candidate = await seed.candidate(head["org_id"], status="QUALIFIED", motivation_index=70)
    cid = candidate["candidate_id"]

    rejected = await services.candidates.update_status(cid, CandidateStatus.REJECTED, now=now)
    assert rejected.motivation_index == 0

    with pytest.raises(InvalidStateError, match="terminal"):
        await services.candidates.update_status(cid, CandidateStatus.CONTACTED, now=now)


async def test_signature_waits_for_the_doubin_delay(services, seed, head, now):
    candidate = await seed.candidate(
        head["org_id"], status="CONTRACT_SENT", dip_sent_at=now - timedelta(days=19)
    )
    cid = candidate["candidate_id"]

    with pytest.raises(InvalidStateError, match="Loi Doubin"):
        await services.candidates.update_status(cid, CandidateStatus.SIGNED, now=now)

    signed = await services.candidates.update_status(
        cid, CandidateStatus.SIGNED, now=now + timedelta(days=1)
    )
    assert signed.status == CandidateStatus.SIGNED
    assert signed.contract_signed_at == now + timedelta(days=1)


async def test_signature_requires_a_dip(services, seed, head, now):
    candidate = await seed.candidate(head["org_id"], status="CONTRACT_SENT")

    with pytest.raises(InvalidStateError):
        await services.candidates.update_status(
            candidate["candidate_id"], CandidateStatus.SIGNED, now=now
        )


async def test_status_changes_are_in_the_timeline(services, seed, head, now):
    candidate = await seed.candidate(head["org_id"])
    cid = candidate["candidate_id"]
    await services.candidates.update_status(cid, CandidateStatus.CONTACTED, "advisor-1", now=now)
    await services.candidates.update_status(cid, CandidateStatus.QUALIFIED, "advisor-1", now=now)

    activities = await services.candidates.list_activities(cid)

    assert [a.metadata["new_status"] for a in activities] == ["QUALIFIED", "CONTACTED"]
    assert {a.type.value for a in activities} == {"STATUS_CHANGE"}
    assert activities[0].performed_by == "advisor-1"


async def test_unknown_candidate(services):
    with pytest.raises(NotFoundError):
        await services.candidates.update_status(uuid4(), CandidateStatus.CONTACTED)

    with pytest.raises(NotFoundError):
        await services.candidates.list_activities(uuid4())


async def test_questionnaire_sets_scores_and_initial_motivation(services, store, head):
    questionnaire = QualificationAnswers(
        investment_capacity=InvestmentCapacity.FROM_20K_TO_50K,
        has_pedagogical_exp=True,
        has_local=True,
        timing=ProjectTiming.URGENT,
        motivation_choice="Je veux ouvrir un centre de formation a Paris" * 2,
    )

    candidate = await services.candidates.create_candidate(
        application(head["org_id"], qualification=questionnaire), "admin-1"
    )

    assert candidate.financial_score == 40
    assert candidate.experience_score == 40
    assert candidate.geo_score == 100
    assert candidate.timing_score == 100
    assert candidate.motivation_index == 45
    assert candidate.qualification_score == 59
    assert candidate.qualification_answers["investmentCapacity"] == "20K_50K"
    assert candidate.qualification_answers["hasLocal"] is True

    [activity] = await services.candidates.list_activities(candidate.candidate_id)
    assert activity.type == ActivityType.STATUS_CHANGE
    assert activity.performed_by == "admin-1"
    assert activity.metadata["scores"]["global_score"] == 59
    assert [a["action"] for a in store.tables.audit] == ["candidate.create"]


async def test_no_questionnaire_leaves_scores_empty(services, store, head):
    candidate = await services.candidates.create_candidate(application(head["org_id"]))

    assert candidate.qualification_score is None
    assert candidate.qualification_answers is None
    assert store.tables.activities == []
