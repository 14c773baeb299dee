"""
network/services/dispatch_engine.py — Диспетчеризация досье по почтовому коду.

Досье головного офиса передаётся члену сети (FRANCHISE / SUCCURSALE),
чья активная территория покрывает почтовый код стажёра.

Состояния досье относительно диспетчеризации::

    AT_SOURCE ──match──▶ DISPATCHED(target)   (терминально)
        │
        └──no match──▶ PENDING (владелец не меняется, код запоминается)

Покрытие: префикс территории покрывает код, если код начинается с него.
При нескольких совпадениях выигрывает территория с самым ранним
``created_at``, затем с меньшим ``territory_id``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from network.events import EventPublisher
from network.exceptions import InvalidStateError, NetworkError, NotFoundError, TransactionFailure
from network.models.dispatch import BatchDispatchResult, DispatchResult
from network.models.enums import MEMBER_NETWORK_TYPES, NetworkType, RecordSource
from network.services.audit_logger import NetworkAuditAction, NetworkAuditLogger

logger = logging.getLogger(__name__)

_MEMBER_TYPES = tuple(t.value for t in MEMBER_NETWORK_TYPES)


def _normalize_postal_code(postal_code: str) -> str:
    return postal_code.strip().upper()


class DispatchEngine:
    """Маршрутизация досье от головного офиса к членам сети."""

    def __init__(
        self,
        store,
        audit: NetworkAuditLogger,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._store = store
        self._audit = audit
        self._publisher = publisher

    async def dispatch(
        self, record_id: UUID, postal_code: str, performed_by: str | None = None
    ) -> DispatchResult:
        """
        Диспетчеризует одно досье.

        Raises:
            NotFoundError: досье или его владельца нет.
            InvalidStateError: владелец не HEAD_OFFICE, либо досье уже
                диспетчеризовано.
            TransactionFailure: сбой при передаче владения (всё откачено).
        """
        postal_code = _normalize_postal_code(postal_code)
        try:
            async with self._store.unit_of_work() as uow:
                result, head_office_id = await self._dispatch_in(
                    uow, record_id, postal_code, performed_by
                )
        except NetworkError:
            raise
        except Exception as exc:
            logger.exception("Dispatch of record %s failed: %s", record_id, exc)
            raise TransactionFailure("Dispatch") from exc

        if result.matched:
            logger.info(
                "Record %s dispatched to %s via territory %s",
                record_id, result.target_org_id, result.territory_id,
            )
            if self._publisher is not None:
                await self._publisher.emit_record_dispatched(
                    record_id=str(record_id),
                    from_org_id=str(head_office_id),
                    to_org_id=str(result.target_org_id),
                    territory_id=str(result.territory_id),
                )
        else:
            logger.info("Record %s: no territory covers %s, kept at head office",
                        record_id, postal_code)
        return result

    async def _dispatch_in(
        self, uow, record_id: UUID, postal_code: str, performed_by: str | None
    ) -> tuple[DispatchResult, UUID]:
        # ── Шаг 1: досье и владелец ──
        record = await uow.records.get(record_id)
        if record is None:
            raise NotFoundError("Record", str(record_id))
        owner = await uow.organizations.get(record["organization_id"])
        if owner is None:
            raise NotFoundError("Organization", str(record["organization_id"]))

        # ── Шаг 2: только из головного офиса, только один раз ──
        if owner["network_type"] != NetworkType.HEAD_OFFICE.value:
            raise InvalidStateError(
                "dispatch only originates from a head office",
                details={"organization_id": str(owner["org_id"]),
                         "network_type": owner["network_type"]},
            )
        if record["source"] == RecordSource.NETWORK_DISPATCH.value or record["dispatched_at"]:
            raise InvalidStateError(
                "record has already been dispatched",
                details={"record_id": str(record_id)},
            )

        # ── Шаг 3–4: покрывающие территории, детерминированный выбор ──
        matches = await uow.territories.find_covering(
            owner["org_id"], postal_code, _MEMBER_TYPES
        )
        lead_date = record.get("original_lead_date") or record.get("created_at")

        # ── Шаг 6: совпадений нет ──
        if not matches:
            await uow.records.set_postal_code(record_id, postal_code, lead_date)
            return DispatchResult(
                matched=False,
                record_id=record_id,
                target_org_id=owner["org_id"],
                target_org_name=owner["name"],
            ), owner["org_id"]

        # ── Шаг 5: передача владения ──
        territory = matches[0]
        await uow.records.mark_dispatched(
            record_id,
            target_org_id=territory["organization_id"],
            dispatched_from_id=owner["org_id"],
            postal_code=postal_code,
            dispatched_at=datetime.now(timezone.utc),
            original_lead_date=lead_date,
        )
        await self._audit.log(
            NetworkAuditAction.RECORD_DISPATCH,
            "record",
            record_id,
            organization_id=owner["org_id"],
            user_id=performed_by,
            details={
                "from_org_id": str(owner["org_id"]),
                "to_org_id": str(territory["organization_id"]),
                "territory_id": str(territory["territory_id"]),
                "territory_name": territory["name"],
                "postal_code": postal_code,
                "candidates": len(matches),
            },
            uow=uow,
        )
        return DispatchResult(
            matched=True,
            record_id=record_id,
            target_org_id=territory["organization_id"],
            target_org_name=territory["organization_name"],
            territory_id=territory["territory_id"],
            territory_name=territory["name"],
        ), owner["org_id"]

    async def dispatch_all_pending(
        self, head_office_id: UUID, performed_by: str | None = None
    ) -> BatchDispatchResult:
        """
        Диспетчеризует все ожидающие досье головного офиса последовательно
        (порядок аудит-записей совпадает с порядком досье).
        """
        async with self._store.unit_of_work() as uow:
            office = await uow.organizations.get(head_office_id)
            if office is None:
                raise NotFoundError("Organization", str(head_office_id))
            if office["network_type"] != NetworkType.HEAD_OFFICE.value:
                raise InvalidStateError(
                    f"organization must be HEAD_OFFICE, currently {office['network_type']}",
                    details={"organization_id": str(head_office_id)},
                )
            pending = await uow.records.list_pending(head_office_id)

        results: list[DispatchResult] = []
        for record in pending:
            results.append(
                await self.dispatch(record["record_id"], record["postal_code"], performed_by)
            )

        matched = sum(1 for r in results if r.matched)
        logger.info(
            "Batch dispatch for head office %s: %d/%d matched",
            head_office_id, matched, len(results),
        )
        return BatchDispatchResult(
            head_office_id=head_office_id,
            matched=matched,
            total=len(results),
            results=results,
        )
