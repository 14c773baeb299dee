"""
network/models/dispatch.py — Запросы и результаты диспетчеризации досье.
"""

from uuid import UUID

from pydantic import Field

from network.models.common import NetworkBase


class DispatchRequest(NetworkBase):
    """Диспетчеризация одного досье по почтовому коду стажёра."""
    record_id: UUID
    postal_code: str = Field(..., min_length=4, max_length=10, pattern=r"^[0-9A-Za-z]+$")


class DispatchResult(NetworkBase):
    """Итог диспетчеризации: куда ушло досье (или осталось в головном офисе)."""
    matched: bool
    record_id: UUID
    target_org_id: UUID
    target_org_name: str
    territory_id: UUID | None = None
    territory_name: str | None = None


class BatchDispatchRequest(NetworkBase):
    """Пакетная диспетчеризация всех ожидающих досье головного офиса."""
    head_office_id: UUID


class BatchDispatchResult(NetworkBase):
    """Агрегированный результат пакетной диспетчеризации."""
    head_office_id: UUID
    matched: int
    total: int
    results: list[DispatchResult] = Field(default_factory=list)
