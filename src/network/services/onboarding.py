"""
network/services/onboarding.py — Онбординг подписанного кандидата во франчайзи.

Одна атомарная единица работы:
    1. Организация FRANCHISE под головным офисом кандидата
       (тип и ставки наследуются от родителя);
    2. Площадка-штаб с переданным адресом;
    3. Учётная запись администратора (поиск по email кандидата,
       иначе создание с bcrypt-хешем переданного пароля);
    4. Членство admin / GLOBAL;
    5. Эксклюзивная территория из целевых почтовых кодов кандидата
       (через проверку конфликтов реестра территорий);
    6. ``created_org_id`` кандидата — защита от повторной конверсии;
    7. Аудит-запись ``candidate.onboard`` + CONVERSION в таймлайне.

Либо фиксируется всё, либо ничего: организация без площадки или
площадка без администратора никогда не видны снаружи.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from network.config import NetworkSettings
from network.events import EventPublisher
from network.exceptions import (
    AlreadyOnboardedError,
    InvalidStateError,
    NetworkError,
    NotFoundError,
    TransactionFailure,
)
from network.models.candidate import OnboardRequest
from network.models.enums import (
    ActivityType,
    CandidateStatus,
    MembershipRole,
    MembershipScope,
    NetworkType,
)
from network.models.organization import OrganizationRead
from network.models.territory import TerritoryCreate
from network.services.audit_logger import NetworkAuditAction, NetworkAuditLogger
from network.services.auth_service import hash_password
from network.services.org_service import org_row_to_read
from network.services.territory_registry import TerritoryRegistry

logger = logging.getLogger(__name__)


class FranchiseOnboarding:
    """Конверсия кандидата SIGNED в действующего франчайзи."""

    def __init__(
        self,
        store,
        territories: TerritoryRegistry,
        audit: NetworkAuditLogger,
        settings: NetworkSettings,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._store = store
        self._territories = territories
        self._audit = audit
        self._settings = settings
        self._publisher = publisher

    async def onboard(
        self,
        candidate_id: UUID,
        request: OnboardRequest,
        performed_by: str | None = None,
    ) -> OrganizationRead:
        """
        Выполняет онбординг.

        Raises:
            NotFoundError: кандидата (или его головного офиса) нет.
            InvalidStateError: статус кандидата не SIGNED.
            ConflictError: кандидат уже онбордингован, либо целевые коды
                заняты чужой эксклюзивной территорией.
            TransactionFailure: любой другой сбой; ничего не записано.
        """
        try:
            async with self._store.unit_of_work() as uow:
                org, territory = await self._onboard_in(
                    uow, candidate_id, request, performed_by
                )
        except NetworkError:
            raise
        except Exception as exc:
            logger.exception("Onboarding of candidate %s failed: %s", candidate_id, exc)
            raise TransactionFailure("Onboarding") from exc

        logger.info(
            "Candidate %s onboarded as organization %s (territory=%s)",
            candidate_id, org["org_id"],
            territory["territory_id"] if territory else None,
        )
        if self._publisher is not None:
            await self._publisher.emit_franchise_onboarded(
                candidate_id=str(candidate_id),
                org_id=str(org["org_id"]),
                parent_id=str(org["parent_id"]),
                name=org["name"],
            )
        return org_row_to_read(org)

    async def _onboard_in(
        self,
        uow,
        candidate_id: UUID,
        request: OnboardRequest,
        performed_by: str | None,
    ) -> tuple[dict, dict | None]:
        # ── Предусловия (строка кандидата заблокирована) ──
        candidate = await uow.candidates.get(candidate_id, for_update=True)
        if candidate is None:
            raise NotFoundError("Candidate", str(candidate_id))
        if candidate["status"] != CandidateStatus.SIGNED.value:
            raise InvalidStateError(
                f"candidate must be SIGNED, currently {candidate['status']}",
                details={"required": CandidateStatus.SIGNED.value,
                         "current": candidate["status"]},
            )
        if candidate["created_org_id"] is not None:
            raise AlreadyOnboardedError(str(candidate["created_org_id"]))

        parent = await uow.organizations.get(candidate["organization_id"])
        if parent is None:
            raise NotFoundError("Organization", str(candidate["organization_id"]))

        company = candidate["company_name"]

        # ── Шаг 1: организация ──
        s = self._settings
        org = await uow.organizations.create(
            name=f"Franchise {company}",
            network_type=NetworkType.FRANCHISE.value,
            parent_id=parent["org_id"],
            org_type=parent.get("org_type"),
            siret=request.siret,
            royalty_rate=(
                parent["royalty_rate"] if parent.get("royalty_rate") is not None
                else s.default_royalty_rate
            ),
            lead_fee_rate=(
                parent["lead_fee_rate"] if parent.get("lead_fee_rate") is not None
                else s.default_lead_fee_rate
            ),
        )

        # ── Шаг 2: площадка-штаб ──
        site = await uow.sites.create(
            organization_id=org["org_id"],
            name=f"Siège {company}",
            address=request.address,
            city=request.city,
            zip_code=request.zip_code,
            is_headquarters=True,
        )

        # ── Шаг 3: администратор ──
        user = await uow.users.get_by_email(candidate["email"])
        user_created = user is None
        if user is None:
            user = await uow.users.create(
                email=candidate["email"],
                first_name=candidate.get("representative_first_name") or "Admin",
                last_name=candidate.get("representative_last_name") or company,
                password_hash=hash_password(request.admin_password),
            )

        # ── Шаг 4: членство ──
        await uow.memberships.create(
            user_id=user["user_id"],
            organization_id=org["org_id"],
            role=MembershipRole.ADMIN.value,
            scope=MembershipScope.GLOBAL.value,
        )

        # ── Шаг 5: территория ──
        territory = None
        zip_codes = list(candidate.get("target_zip_codes") or [])
        if zip_codes:
            territory = await self._territories.create_in(
                uow,
                TerritoryCreate(
                    organization_id=org["org_id"],
                    name=candidate.get("target_zone") or f"Zone {company}",
                    zip_codes=zip_codes,
                    is_exclusive=True,
                ),
                performed_by=performed_by,
            )

        # ── Шаг 6: кандидат ──
        await uow.candidates.mark_onboarded(
            candidate_id, org["org_id"], datetime.now(timezone.utc)
        )

        # ── Шаг 7: аудит + таймлайн ──
        details = {
            "candidate_id": str(candidate_id),
            "organization_id": str(org["org_id"]),
            "site_id": str(site["site_id"]),
            "user_id": str(user["user_id"]),
            "user_created": user_created,
            "territory_id": str(territory["territory_id"]) if territory else None,
        }
        await self._audit.log(
            NetworkAuditAction.CANDIDATE_ONBOARD,
            "candidate",
            candidate_id,
            organization_id=parent["org_id"],
            user_id=performed_by,
            details=details,
            uow=uow,
        )
        await self._audit.log_candidate_activity(
            uow,
            candidate_id,
            ActivityType.CONVERSION.value,
            f"Converted into franchise organization '{org['name']}'",
            metadata=details,
            performed_by=performed_by,
        )
        return org, territory
