"""
network/services/auth_service.py — Пароли и проверка JWT.

Токены выпускает внешний Identity-сервис; здесь только верификация
(подпись + срок действия) общим секретом. Хеширование паролей нужно
онбордингу для создания учётной записи администратора франчайзи.
"""

from __future__ import annotations

import logging
from typing import Any

import bcrypt
from jose import JWTError, jwt

from network.config import get_settings
from network.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# РАБОТА С ПАРОЛЯМИ
# ═══════════════════════════════════════════════════════════════════════════


def hash_password(password: str) -> str:
    """Хеширует пароль с помощью bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Сравнивает открытый пароль с хешем из БД."""
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ═══════════════════════════════════════════════════════════════════════════
# JWT
# ═══════════════════════════════════════════════════════════════════════════


def decode_token(token: str) -> dict[str, Any]:
    """
    Декодирует и проверяет JWT.

    Raises:
        AuthenticationError: подпись неверна, токен истёк или повреждён.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        logger.info("JWT rejected: %s", exc)
        raise AuthenticationError("Invalid or expired token") from exc
