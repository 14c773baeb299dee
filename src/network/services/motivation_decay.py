"""
network/services/motivation_decay.py — Периодическое затухание мотивации кандидатов.

Кандидаты вне терминальных статусов с ``motivation_index > 0``, без
активности дольше ``decay_inactivity_days``, теряют ``decay_step`` очков
(не ниже 0) и получают SYSTEM_ALERT в таймлайне.

Активность — более поздняя из ``updated_at`` и ``last_decay_at``.
Прогон пишет только ``last_decay_at``: снижение повторяется раз в
период настоящего бездействия. ``decay_touch_updated_at=True``
дополнительно обновляет ``updated_at`` (прежнее поведение).

Одновременно выполняется не больше одного прогона (``store.job_lock``).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from network.config import NetworkSettings
from network.events import EventPublisher
from network.models.candidate import DecayDetail, DecayReport
from network.models.enums import TERMINAL_CANDIDATE_STATUSES, ActivityType
from network.services.audit_logger import NetworkAuditAction, NetworkAuditLogger

logger = logging.getLogger(__name__)

JOB_NAME = "motivation_decay"
DECAY_REASON = "INACTIVITY_TIMEOUT"


class MotivationDecayJob:
    """Задача обслуживания: затухание индекса мотивации."""

    def __init__(
        self,
        store,
        audit: NetworkAuditLogger,
        settings: NetworkSettings,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._store = store
        self._audit = audit
        self._settings = settings
        self._publisher = publisher

    async def run(self, now: datetime | None = None) -> DecayReport:
        """
        Один прогон затухания.

        Raises:
            ConflictError: другой прогон ещё выполняется.
        """
        now = now or datetime.now(timezone.utc)
        s = self._settings
        threshold = now - timedelta(days=s.decay_inactivity_days)
        excluded = sorted(st.value for st in TERMINAL_CANDIDATE_STATUSES)

        details: list[DecayDetail] = []
        async with self._store.job_lock(JOB_NAME):
            async with self._store.unit_of_work() as uow:
                stale = await uow.candidates.list_inactive(threshold, excluded)
                for candidate in stale:
                    old = candidate["motivation_index"]
                    new = max(0, old - s.decay_step)
                    applied = await uow.candidates.apply_decay(
                        candidate["candidate_id"],
                        expected_index=old,
                        new_index=new,
                        decayed_at=now,
                        touch_updated_at=s.decay_touch_updated_at,
                    )
                    if not applied:
                        logger.info(
                            "Candidate %s changed during decay run, skipped",
                            candidate["candidate_id"],
                        )
                        continue

                    metadata = {"old_score": old, "new_score": new, "reason": DECAY_REASON}
                    await self._audit.log_candidate_activity(
                        uow,
                        candidate["candidate_id"],
                        ActivityType.SYSTEM_ALERT.value,
                        f"Motivation decreased from {old} to {new} (inactivity timeout)",
                        metadata=metadata,
                        performed_by="system",
                    )
                    await self._audit.log(
                        NetworkAuditAction.CANDIDATE_DECAY,
                        "candidate",
                        candidate["candidate_id"],
                        organization_id=candidate["organization_id"],
                        user_id="system",
                        details=metadata,
                        uow=uow,
                    )
                    details.append(DecayDetail(
                        id=candidate["candidate_id"],
                        company=candidate["company_name"],
                        old=old,
                        new=new,
                    ))

        logger.info("Motivation decay run: %d candidate(s) processed", len(details))
        if self._publisher is not None and details:
            await self._publisher.emit_candidates_decayed(len(details))
        return DecayReport(processed=len(details), details=details)
