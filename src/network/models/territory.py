"""
network/models/territory.py — Территории: наборы префиксов почтовых кодов.
"""

import re
from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from network.models.common import NetworkBase

ZIP_PREFIX_PATTERN = r"^[0-9A-Za-z]{2,10}$"


def normalize_zip_codes(values: list[str]) -> list[str]:
    """Убирает пробелы и дубликаты, сохраняя исходный порядок."""
    seen: dict[str, None] = {}
    for v in values:
        seen.setdefault(v.strip().upper(), None)
    return list(seen)


def prefixes_overlap(a: str, b: str) -> bool:
    """Префиксы пересекаются, если один из них продолжает другой (``75`` и ``75001``)."""
    return a.startswith(b) or b.startswith(a)


class TerritoryCreate(NetworkBase):
    """Схема для создания территории."""
    organization_id: UUID
    name: str = Field(..., min_length=2, max_length=255, examples=["Paris Centre"])
    zip_codes: list[str] = Field(..., min_length=1, examples=[["75001", "75002"]])
    is_exclusive: bool = True

    @field_validator("zip_codes")
    @classmethod
    def _normalize(cls, v: list[str]) -> list[str]:
        cleaned = normalize_zip_codes(v)
        for code in cleaned:
            if not re.match(ZIP_PREFIX_PATTERN, code):
                raise ValueError(f"invalid postal-code prefix: {code!r}")
        return cleaned


class TerritoryRead(NetworkBase):
    """Схема для возврата территории."""
    territory_id: UUID
    organization_id: UUID
    organization_name: str | None = None
    name: str
    zip_codes: list[str]
    is_exclusive: bool
    is_active: bool = True
    created_at: datetime | None = None


class TerritoryConflict(NetworkBase):
    """Организация, чья эксклюзивная территория пересекается с запрошенной."""
    organization_id: UUID
    organization_name: str
    overlapping_zip_codes: list[str]


class ZoneAvailability(NetworkBase):
    """Результат проверки доступности зоны."""
    available: bool
    conflicts: list[TerritoryConflict] = Field(default_factory=list)
