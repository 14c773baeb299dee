"""
network/services/audit_logger.py — Аудит-лог Network-домена.

Внешний append-only приёмник: записи идут в audit_log через хранилище
и зеркалятся в NATS (``network.audit.<action>``).

Действия домена Network:
    • territory.create
    • record.dispatch
    • candidate.create, candidate.status_change, candidate.onboard,
      candidate.decay
    • org.create, org.update_rates

Запись идёт в единицу работы вызывающего (точка сохранения в
PostgreSQL) и фиксируется вместе с операцией или откатывается с ней.
Сбой самой записи логируется как error и не прерывает основную операцию.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from network.events import EventPublisher

logger = logging.getLogger(__name__)


class NetworkAuditAction(str, Enum):
    """Типы аудируемых действий домена Network."""

    # Territories / dispatch
    TERRITORY_CREATE = "territory.create"
    RECORD_DISPATCH = "record.dispatch"

    # Candidates
    CANDIDATE_CREATE = "candidate.create"
    CANDIDATE_STATUS_CHANGE = "candidate.status_change"
    CANDIDATE_ONBOARD = "candidate.onboard"
    CANDIDATE_DECAY = "candidate.decay"

    # Organizations
    ORG_CREATE = "org.create"
    ORG_UPDATE_RATES = "org.update_rates"


class NetworkAuditLogger:
    """
    Аудит-логгер Network-сервиса.

    Пишет в audit_log единицы работы и публикует событие в NATS.
    """

    def __init__(self, publisher: EventPublisher | None = None) -> None:
        self._publisher = publisher

    async def log(
        self,
        action: NetworkAuditAction | str,
        entity_type: str,
        entity_id: str | UUID,
        *,
        organization_id: UUID | None = None,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
        uow,
    ) -> None:
        """Записать аудит-событие."""
        action_str = action.value if isinstance(action, NetworkAuditAction) else action
        record = {
            "action": action_str,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "organization_id": organization_id,
            "user_id": user_id,
            "details": details or {},
        }

        try:
            await uow.audit.append(record)
        except Exception as e:
            logger.error("Network audit write failed for %s: %s", action_str, e)

        # NATS-публикация (graceful degradation)
        if self._publisher is not None:
            try:
                await self._publisher.publish(
                    f"network.audit.{action_str}",
                    {**record, "created_at": datetime.now(timezone.utc).isoformat()},
                )
            except Exception as e:
                logger.debug("Network audit NATS publish failed: %s", e)

    async def log_candidate_activity(
        self,
        uow,
        candidate_id: UUID,
        activity_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
        performed_by: str | None = None,
    ) -> None:
        """Запись в таймлайн кандидата (best-effort, в транзакции ``uow``)."""
        try:
            await uow.activities.append(
                candidate_id=candidate_id,
                type=activity_type,
                description=description,
                metadata=metadata or {},
                performed_by=performed_by,
            )
        except Exception as e:
            logger.error(
                "Candidate activity write failed for %s (%s): %s",
                candidate_id, activity_type, e,
            )
