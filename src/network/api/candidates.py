"""
network/api/candidates.py — Кандидаты во франчайзи и онбординг.

Онбординг: нарушенные предусловия (статус не SIGNED, повторный
онбординг) → 400 ``{error}`` с различающимися сообщениями; конфликт
территории → 409.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from network.dependencies import Principal, get_candidate_service, get_onboarding
from network.exceptions import AlreadyOnboardedError, InvalidStateError
from network.models.candidate import (
    ActivityRead,
    CandidateCreate,
    CandidateRead,
    OnboardRequest,
    OnboardResult,
    StatusUpdate,
)
from network.services.candidate_service import CandidateService
from network.services.onboarding import FranchiseOnboarding
from network.services.rbac import require_permission

router = APIRouter(prefix="/candidates", tags=["candidates"])


@router.post(
    "",
    response_model=CandidateRead,
    status_code=status.HTTP_201_CREATED,
    summary="Зарегистрировать кандидата",
)
async def create_candidate(
    body: CandidateCreate,
    principal: Principal = Depends(require_permission("candidate.create")),
    service: CandidateService = Depends(get_candidate_service),
):
    return await service.create_candidate(body, principal.subject)


@router.get("", response_model=list[CandidateRead], summary="Кандидаты головного офиса")
async def list_candidates(
    organization_id: UUID = Query(..., alias="organizationId"),
    _: Principal = Depends(require_permission("candidate.read")),
    service: CandidateService = Depends(get_candidate_service),
):
    return await service.list_candidates(organization_id)


@router.get("/{candidate_id}", response_model=CandidateRead, summary="Кандидат")
async def get_candidate(
    candidate_id: UUID,
    _: Principal = Depends(require_permission("candidate.read")),
    service: CandidateService = Depends(get_candidate_service),
):
    return await service.get_candidate(candidate_id)


@router.post(
    "/{candidate_id}/status",
    response_model=CandidateRead,
    summary="Сменить статус кандидата",
)
async def update_status(
    candidate_id: UUID,
    body: StatusUpdate,
    principal: Principal = Depends(require_permission("candidate.update")),
    service: CandidateService = Depends(get_candidate_service),
):
    return await service.update_status(candidate_id, body.status, principal.subject)


@router.get(
    "/{candidate_id}/activities",
    response_model=list[ActivityRead],
    summary="Таймлайн кандидата",
)
async def list_activities(
    candidate_id: UUID,
    _: Principal = Depends(require_permission("candidate.read")),
    service: CandidateService = Depends(get_candidate_service),
):
    return await service.list_activities(candidate_id)


@router.post(
    "/{candidate_id}/onboard",
    response_model=OnboardResult,
    status_code=status.HTTP_201_CREATED,
    summary="Превратить подписанного кандидата во франчайзи",
)
async def onboard_candidate(
    candidate_id: UUID,
    body: OnboardRequest,
    principal: Principal = Depends(require_permission("candidate.onboard")),
    onboarding: FranchiseOnboarding = Depends(get_onboarding),
):
    try:
        org = await onboarding.onboard(candidate_id, body, principal.subject)
    except (InvalidStateError, AlreadyOnboardedError) as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=exc.to_payload(),
        )
    return OnboardResult(message=f"Organization '{org.name}' created", organization=org)
