"""
network/models/candidate.py — Кандидаты во франчайзи, онбординг, таймлайн.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import Field, field_validator

from network.models.common import NetworkBase
from network.models.enums import (
    ActivityType,
    CandidateStatus,
    FranchiseType,
    InvestmentCapacity,
    ProjectTiming,
)
from network.models.organization import OrganizationRead
from network.models.territory import ZIP_PREFIX_PATTERN, normalize_zip_codes

BCRYPT_MAX_BYTES = 72


class QualificationAnswers(NetworkBase):
    """Анкета предквалификации, заполненная кандидатом."""
    investment_capacity: InvestmentCapacity | None = None
    total_budget: Decimal | None = Field(default=None, ge=0)
    has_pedagogical_exp: bool = False
    has_management_exp: bool = False
    has_entrepreneurial_exp: bool = False
    target_zone: str | None = None
    has_local: bool = False
    timing: ProjectTiming | None = None
    motivation_choice: str | None = Field(default=None, min_length=10)


class QualificationScores(NetworkBase):
    """Оценки анкеты, каждая 0..100; ``global_score`` взвешенная сумма."""
    global_score: int = Field(ge=0, le=100)
    financial: int = Field(ge=0, le=100)
    experience: int = Field(ge=0, le=100)
    geo: int = Field(ge=0, le=100)
    timing: int = Field(ge=0, le=100)
    motivation: int = Field(ge=0, le=100)


class CandidateCreate(NetworkBase):
    """Схема для регистрации кандидата головным офисом."""
    organization_id: UUID
    company_name: str = Field(..., min_length=2, max_length=255)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", examples=["contact@formatio.fr"])
    phone: str | None = None
    representative_last_name: str = Field(..., min_length=1, max_length=255)
    representative_first_name: str = Field(..., min_length=1, max_length=255)
    franchise_type: FranchiseType = FranchiseType.OF
    target_zone: str | None = Field(default=None, min_length=2, max_length=255)
    target_zip_codes: list[str] = Field(default_factory=list)
    investment_budget: Decimal | None = Field(default=None, gt=0)
    notes: str | None = None
    qualification: QualificationAnswers | None = None

    @field_validator("target_zip_codes")
    @classmethod
    def _normalize(cls, v: list[str]) -> list[str]:
        cleaned = normalize_zip_codes(v)
        for code in cleaned:
            if not re.match(ZIP_PREFIX_PATTERN, code):
                raise ValueError(f"invalid postal-code prefix: {code!r}")
        return cleaned


class CandidateRead(NetworkBase):
    """Схема для возврата кандидата."""
    candidate_id: UUID
    organization_id: UUID
    company_name: str
    email: str
    phone: str | None = None
    representative_last_name: str
    representative_first_name: str
    franchise_type: FranchiseType
    target_zone: str | None = None
    target_zip_codes: list[str] = Field(default_factory=list)
    investment_budget: Decimal | None = None
    notes: str | None = None
    status: CandidateStatus
    motivation_index: int = Field(ge=0, le=100)
    qualification_score: int | None = None
    financial_score: int | None = None
    experience_score: int | None = None
    geo_score: int | None = None
    timing_score: int | None = None
    qualification_answers: dict[str, Any] | None = None
    dip_sent_at: datetime | None = None
    dip_signed_at: datetime | None = None
    contract_signed_at: datetime | None = None
    created_org_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StatusUpdate(NetworkBase):
    """Перевод кандидата в новый статус."""
    status: CandidateStatus


class ActivityRead(NetworkBase):
    """Запись таймлайна кандидата."""
    activity_id: UUID
    candidate_id: UUID
    type: ActivityType
    description: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    performed_by: str | None = None
    created_at: datetime | None = None


class OnboardRequest(NetworkBase):
    """Входные данные онбординга подписанного кандидата."""
    admin_password: str = Field(..., min_length=8, max_length=128)
    siret: str = Field(..., pattern=r"^\d{14}$")
    city: str = Field(..., min_length=1, max_length=255)
    zip_code: str = Field(..., min_length=4, max_length=10)
    address: str | None = None

    @field_validator("admin_password")
    @classmethod
    def _bcrypt_limit(cls, v: str) -> str:
        # bcrypt принимает не больше 72 байт
        if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"password must not exceed {BCRYPT_MAX_BYTES} bytes in UTF-8")
        return v


class OnboardResult(NetworkBase):
    """Ответ API онбординга."""
    message: str
    organization: OrganizationRead


class DecayDetail(NetworkBase):
    """Изменение индекса мотивации одного кандидата."""
    id: UUID
    company: str
    old: int
    new: int


class DecayReport(NetworkBase):
    """Итог прогона затухания мотивации."""
    processed: int
    details: list[DecayDetail] = Field(default_factory=list)
