"""
network/models/common.py — Базовые типы Network-домена.

Внешний API сети говорит camelCase (``recordId``, ``zipCodes``), внутри
сервиса — snake_case. Алиасы генерируются автоматически, заполнение
по имени поля разрешено.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class NetworkBase(BaseModel):
    """Базовая Pydantic-модель для Network-схем."""

    model_config = {
        "str_strip_whitespace": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }
