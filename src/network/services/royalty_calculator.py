"""
network/services/royalty_calculator.py — Расчёт роялти членов сети за месяц.

Выручка делится по происхождению досье:
    • ORGANIC           × royalty_rate  (собственные стажёры франчайзи)
    • NETWORK_DISPATCH  × lead_fee_rate (стажёры, переданные головным офисом)

Каждая корзина округляется до 0.01 отдельно (ROUND_HALF_UP), итог —
сумма округлённых корзин. Только чтение: расчёт идемпотентен.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from network.exceptions import InvalidStateError, NotFoundError, ValidationError
from network.models.enums import MEMBER_NETWORK_TYPES, NetworkType, RecordSource
from network.models.royalty import NetworkRoyaltySummary, RoyaltyBreakdown, RoyaltyBucket

logger = logging.getLogger(__name__)

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_CENT = Decimal("0.01")
_MEMBER_TYPES = tuple(t.value for t in MEMBER_NETWORK_TYPES)


def parse_month(month: str) -> tuple[datetime, datetime]:
    """
    ``YYYY-MM`` → включительный интервал [первый день 00:00, последний
    день 23:59:59.999999] в UTC.
    """
    match = _MONTH_RE.match(month or "")
    if not match:
        raise ValidationError(
            f"month must be in YYYY-MM format, got {month!r}",
            details={"field": "month"},
        )
    year, mon = int(match.group(1)), int(match.group(2))
    if not 1 <= mon <= 12 or year < 1:
        raise ValidationError(
            f"month out of range: {month!r}",
            details={"field": "month"},
        )
    last_day = calendar.monthrange(year, mon)[1]
    start = datetime(year, mon, 1, tzinfo=timezone.utc)
    end = datetime(year, mon, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)
    return start, end


def _bucket(source: RecordSource, contracts: list[dict], rate: Decimal) -> RoyaltyBucket:
    revenue = sum((Decimal(c["montant_ht"]) for c in contracts), Decimal("0"))
    amount = (revenue * Decimal(rate) / Decimal(100)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return RoyaltyBucket(
        source=source,
        total_revenue=revenue,
        contract_count=len(contracts),
        rate_applied=Decimal(rate),
        amount_due=amount,
    )


class RoyaltyCalculator:
    """Роялти и lead fee франчайзи / филиалов."""

    def __init__(self, store) -> None:
        self._store = store

    async def compute_royalties(self, organization_id: UUID, month: str) -> RoyaltyBreakdown:
        """
        Роялти одной организации за месяц.

        Raises:
            ValidationError: месяц не в формате YYYY-MM.
            NotFoundError: организации (или её родителя) нет.
            InvalidStateError: организация не член сети.
        """
        start, end = parse_month(month)

        async with self._store.unit_of_work() as uow:
            org = await uow.organizations.get(organization_id)
            if org is None:
                raise NotFoundError("Organization", str(organization_id))
            if org["parent_id"] is None or org["network_type"] not in _MEMBER_TYPES:
                raise InvalidStateError(
                    "royalties only apply to network members (FRANCHISE or SUCCURSALE "
                    f"with a parent), got {org['network_type']}",
                    details={"organization_id": str(organization_id),
                             "network_type": org["network_type"]},
                )
            parent = await uow.organizations.get(org["parent_id"])
            if parent is None:
                raise NotFoundError("Organization", str(org["parent_id"]))
            contracts = await uow.contracts.list_signed_for_organization(
                organization_id, start, end
            )

        organic = _bucket(
            RecordSource.ORGANIC,
            [c for c in contracts if c["source"] == RecordSource.ORGANIC.value],
            org["royalty_rate"],
        )
        dispatch = _bucket(
            RecordSource.NETWORK_DISPATCH,
            [c for c in contracts if c["source"] == RecordSource.NETWORK_DISPATCH.value],
            org["lead_fee_rate"],
        )
        logger.debug(
            "Royalties %s for %s: organic=%s dispatch=%s",
            month, organization_id, organic.amount_due, dispatch.amount_due,
        )
        return RoyaltyBreakdown(
            organization_id=organization_id,
            organization_name=org["name"],
            parent_id=parent["org_id"],
            parent_name=parent["name"],
            month=month,
            period_start=start,
            period_end=end,
            organic=organic,
            dispatch=dispatch,
            total_due=organic.amount_due + dispatch.amount_due,
            total_revenue=organic.total_revenue + dispatch.total_revenue,
        )

    async def compute_network_summary(
        self, head_office_id: UUID, month: str
    ) -> NetworkRoyaltySummary:
        """
        Сводка по всем активным членам сети головного офиса.

        Расчёт последовательный; ошибка по любому члену прерывает сводку.
        """
        parse_month(month)
        async with self._store.unit_of_work() as uow:
            office = await uow.organizations.get(head_office_id)
            if office is None:
                raise NotFoundError("Organization", str(head_office_id))
            if office["network_type"] != NetworkType.HEAD_OFFICE.value:
                raise InvalidStateError(
                    f"network summary requires a HEAD_OFFICE, got {office['network_type']}",
                    details={"organization_id": str(head_office_id)},
                )
            children = await uow.organizations.list_children(
                head_office_id, network_types=_MEMBER_TYPES, active_only=True
            )

        franchises = []
        for child in children:
            franchises.append(await self.compute_royalties(child["org_id"], month))

        return NetworkRoyaltySummary(
            head_office_id=head_office_id,
            month=month,
            franchises=franchises,
            total_network_due=sum((f.total_due for f in franchises), Decimal("0")),
            total_network_revenue=sum((f.total_revenue for f in franchises), Decimal("0")),
        )
