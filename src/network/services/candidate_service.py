"""
network/services/candidate_service.py — Воронка кандидатов во франчайзи.

NEW → CONTACTED → QUALIFIED → DIP_SENT → DIP_SIGNED → CONTRACT_SENT → SIGNED
(+ REJECTED / WITHDRAWN в любой момент до терминала).

Правила:
    • SIGNED, REJECTED, WITHDRAWN — терминальны, статус больше не меняется;
    • шаг вперёд по воронке: +10 к мотивации за шаг (максимум 100);
    • REJECTED / WITHDRAWN обнуляют мотивацию;
    • SIGNED не раньше ``doubin_delay_days`` дней после отправки DIP
      (Loi Doubin);
    • каждая смена статуса — STATUS_CHANGE в таймлайне;
    • анкета при регистрации задаёт оценки квалификации и начальную
      мотивацию (см. qualification.py).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from network.config import NetworkSettings
from network.exceptions import InvalidStateError, NotFoundError
from network.models.candidate import ActivityRead, CandidateCreate, CandidateRead
from network.models.enums import (
    CANDIDATE_PIPELINE,
    TERMINAL_CANDIDATE_STATUSES,
    ActivityType,
    CandidateStatus,
    NetworkType,
)
from network.services.audit_logger import NetworkAuditAction, NetworkAuditLogger
from network.services.qualification import calculate_candidate_scores

logger = logging.getLogger(__name__)

PIPELINE_STEP_BONUS = 10
MAX_MOTIVATION = 100


def candidate_row_to_read(row: dict) -> CandidateRead:
    """Конвертирует строку из БД (dict) → CandidateRead."""
    return CandidateRead.model_validate({
        name: row[name]
        for name in CandidateRead.model_fields
        if row.get(name) is not None
    })


def activity_row_to_read(row: dict) -> ActivityRead:
    return ActivityRead(
        activity_id=row["activity_id"],
        candidate_id=row["candidate_id"],
        type=row["type"],
        description=row["description"],
        metadata=row.get("metadata") or {},
        performed_by=row.get("performed_by"),
        created_at=row.get("created_at"),
    )


class CandidateService:
    """Регистрация кандидатов и продвижение по воронке."""

    def __init__(self, store, audit: NetworkAuditLogger, settings: NetworkSettings) -> None:
        self._store = store
        self._audit = audit
        self._settings = settings

    async def create_candidate(
        self, data: CandidateCreate, performed_by: str | None = None
    ) -> CandidateRead:
        """Регистрирует кандидата за активным головным офисом."""
        async with self._store.unit_of_work() as uow:
            office = await uow.organizations.get(data.organization_id)
            if office is None:
                raise NotFoundError("Organization", str(data.organization_id))
            if office["network_type"] != NetworkType.HEAD_OFFICE.value or not office["is_active"]:
                raise InvalidStateError(
                    "candidates belong to an active HEAD_OFFICE, "
                    f"got {office['network_type']}",
                    details={"organization_id": str(data.organization_id)},
                )
            fields = data.model_dump(mode="python", exclude={"qualification"})
            fields["franchise_type"] = data.franchise_type.value
            scores = None
            if data.qualification is not None:
                scores = calculate_candidate_scores(data.qualification)
                fields.update(
                    qualification_score=scores.global_score,
                    financial_score=scores.financial,
                    experience_score=scores.experience,
                    geo_score=scores.geo,
                    timing_score=scores.timing,
                    motivation_index=scores.motivation,
                    qualification_answers=data.qualification.model_dump(mode="json", by_alias=True),
                )
            row = await uow.candidates.create(**fields)
            if scores is not None:
                await self._audit.log_candidate_activity(
                    uow,
                    row["candidate_id"],
                    ActivityType.STATUS_CHANGE.value,
                    f"Application received, qualification score {scores.global_score}%",
                    metadata={"scores": scores.model_dump()},
                    performed_by=performed_by,
                )
            await self._audit.log(
                NetworkAuditAction.CANDIDATE_CREATE,
                "candidate",
                row["candidate_id"],
                organization_id=data.organization_id,
                user_id=performed_by,
                details={"company_name": data.company_name},
                uow=uow,
            )
        logger.info("Candidate %s registered for %s", row["candidate_id"], data.organization_id)
        return candidate_row_to_read(row)

    async def get_candidate(self, candidate_id: UUID) -> CandidateRead:
        async with self._store.unit_of_work() as uow:
            row = await uow.candidates.get(candidate_id)
        if row is None:
            raise NotFoundError("Candidate", str(candidate_id))
        return candidate_row_to_read(row)

    async def list_candidates(self, organization_id: UUID) -> list[CandidateRead]:
        """Кандидаты головного офиса, новые первыми."""
        async with self._store.unit_of_work() as uow:
            rows = await uow.candidates.list_for_organization(organization_id)
        return [candidate_row_to_read(r) for r in rows]

    async def list_activities(self, candidate_id: UUID) -> list[ActivityRead]:
        """Таймлайн кандидата, новые записи первыми."""
        async with self._store.unit_of_work() as uow:
            if await uow.candidates.get(candidate_id) is None:
                raise NotFoundError("Candidate", str(candidate_id))
            rows = await uow.activities.list_for_candidate(candidate_id)
        return [activity_row_to_read(r) for r in rows]

    async def update_status(
        self,
        candidate_id: UUID,
        new_status: CandidateStatus,
        performed_by: str | None = None,
        now: datetime | None = None,
    ) -> CandidateRead:
        """
        Переводит кандидата в ``new_status``.

        Raises:
            NotFoundError: кандидата нет.
            InvalidStateError: текущий статус терминален, либо срок
                Loi Doubin для SIGNED не выдержан.
        """
        now = now or datetime.now(timezone.utc)
        async with self._store.unit_of_work() as uow:
            row = await uow.candidates.get(candidate_id, for_update=True)
            if row is None:
                raise NotFoundError("Candidate", str(candidate_id))

            current = CandidateStatus(row["status"])
            if current in TERMINAL_CANDIDATE_STATUSES:
                raise InvalidStateError(
                    f"candidate status {current.value} is terminal and cannot change",
                    details={"current": current.value, "requested": new_status.value},
                )
            if new_status == current:
                return candidate_row_to_read(row)

            motivation = self._next_motivation(row["motivation_index"], current, new_status)
            dip_sent_at = row.get("dip_sent_at")
            dip_signed_at = row.get("dip_signed_at")
            contract_signed_at = row.get("contract_signed_at")

            if new_status == CandidateStatus.DIP_SENT and dip_sent_at is None:
                dip_sent_at = now
            elif new_status == CandidateStatus.DIP_SIGNED and dip_signed_at is None:
                dip_signed_at = now
            elif new_status == CandidateStatus.SIGNED:
                self._check_doubin_delay(dip_sent_at, now)
                contract_signed_at = contract_signed_at or now

            updated = await uow.candidates.update_status(
                candidate_id,
                status=new_status.value,
                motivation_index=motivation,
                dip_sent_at=dip_sent_at,
                dip_signed_at=dip_signed_at,
                contract_signed_at=contract_signed_at,
            )
            metadata = {
                "old_status": current.value,
                "new_status": new_status.value,
                "old_score": row["motivation_index"],
                "new_score": motivation,
            }
            await self._audit.log_candidate_activity(
                uow,
                candidate_id,
                ActivityType.STATUS_CHANGE.value,
                f"Status changed from {current.value} to {new_status.value}",
                metadata=metadata,
                performed_by=performed_by,
            )
            await self._audit.log(
                NetworkAuditAction.CANDIDATE_STATUS_CHANGE,
                "candidate",
                candidate_id,
                organization_id=row["organization_id"],
                user_id=performed_by,
                details=metadata,
                uow=uow,
            )

        logger.info("Candidate %s: %s → %s", candidate_id, current.value, new_status.value)
        return candidate_row_to_read(updated)

    @staticmethod
    def _next_motivation(
        score: int, current: CandidateStatus, new_status: CandidateStatus
    ) -> int:
        if new_status in (CandidateStatus.REJECTED, CandidateStatus.WITHDRAWN):
            return 0
        steps = CANDIDATE_PIPELINE.index(new_status) - CANDIDATE_PIPELINE.index(current)
        if steps <= 0:
            return score
        return min(MAX_MOTIVATION, score + PIPELINE_STEP_BONUS * steps)

    def _check_doubin_delay(self, dip_sent_at: datetime | None, now: datetime) -> None:
        delay = self._settings.doubin_delay_days
        if dip_sent_at is None:
            raise InvalidStateError(
                "candidate cannot be SIGNED before the DIP has been sent",
                details={"required": CandidateStatus.DIP_SENT.value},
            )
        earliest = dip_sent_at + timedelta(days=delay)
        if now < earliest:
            raise InvalidStateError(
                f"Loi Doubin: contract can be signed no earlier than {delay} days "
                f"after the DIP (earliest {earliest.date().isoformat()})",
                details={"dip_sent_at": dip_sent_at.isoformat(),
                         "earliest_signature": earliest.isoformat()},
            )
