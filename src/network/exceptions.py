"""
═══════════════════════════════════════════════════════════════════════════════
Network — Иерархия доменных ошибок (Custom Exception Hierarchy)
═══════════════════════════════════════════════════════════════════════════════

Базовый класс ``NetworkError``. Каждый компонент возвращает вызывающему
типизированную ошибку; HTTP-маппинг кодов выполняется в
``network.main:network_error_handler``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


class NetworkError(Exception):
    """
    Базовое исключение для всех доменных ошибок сети.

    Атрибуты
    ────────
        message (str):  Описание ошибки. Передаётся клиенту в JSON.
        code (str):     Строковый код. Используется для маппинга на HTTP-статус.
        details (dict): Дополнительные данные (entity, id, conflicts и т.д.).
    """

    def __init__(
        self,
        message: str,
        code: str = "NETWORK_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """Тело JSON-ответа об ошибке."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        }


class AuthenticationError(NetworkError):
    """Ошибка аутентификации: 401 Unauthorized."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="NETWORK_AUTH_ERROR")


class AuthorizationError(NetworkError):
    """Ошибка авторизации: 403 Forbidden."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="NETWORK_AUTHZ_ERROR")


class NotFoundError(NetworkError):
    """Сущность не найдена: 404 Not Found."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code="NETWORK_NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class InvalidStateError(NetworkError):
    """Операция недопустима в текущем статусе / networkType: 400 Bad Request."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="NETWORK_INVALID_STATE", details=details)


class ConflictError(NetworkError):
    """Конфликт с текущим состоянием (территории, повторный онбординг): 409."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="NETWORK_CONFLICT", details=details)


class AlreadyOnboardedError(ConflictError):
    """Кандидат уже превращён в организацию (повторный онбординг)."""

    def __init__(self, created_org_id: str):
        super().__init__(
            "candidate already onboarded",
            details={"created_org_id": created_org_id},
        )


class ValidationError(NetworkError):
    """Некорректные входные данные (формат месяца, ставки): 400 Bad Request."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="NETWORK_VALIDATION_ERROR", details=details)


class TransactionFailure(NetworkError):
    """
    Сбой внутри атомарной единицы работы: всё откачено.

    Клиенту уходит одно верхнеуровневое сообщение, без внутреннего состояния.
    """

    def __init__(self, operation: str):
        super().__init__(
            message=f"{operation} failed; no changes were applied",
            code="NETWORK_TRANSACTION_FAILURE",
            details={"operation": operation},
        )


__all__ = [
    "NetworkError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "InvalidStateError",
    "ConflictError",
    "AlreadyOnboardedError",
    "ValidationError",
    "TransactionFailure",
]
