"""
═══════════════════════════════════════════════════════════════════════════════
Network — Зависимости FastAPI (Dependency Injection)
═══════════════════════════════════════════════════════════════════════════════

    • ``get_current_principal()`` — субъект запроса из JWT (Identity-сервис);
    • ``require_maintenance_access()`` — cron-секрет или permission;
    • геттеры сервисов: экземпляры живут в ``app.state`` и создаются
      фабрикой приложения (``network.main:create_app``).
"""

from __future__ import annotations

import hmac
import logging
from uuid import UUID

from fastapi import Header, Request
from pydantic import BaseModel

from network.config import get_settings
from network.exceptions import AuthenticationError, AuthorizationError
from network.services.auth_service import decode_token

logger = logging.getLogger(__name__)


class Principal(BaseModel):
    """Аутентифицированный субъект запроса."""
    subject: str
    role: str = "viewer"
    organization_id: UUID | None = None


def _bearer_token(authorization: str | None) -> str:
    # ── наличие заголовка ──
    if not authorization:
        raise AuthenticationError("Authorization header is required")
    # ── формат "Bearer <token>" ──
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Authorization header must start with 'Bearer'")
    return authorization[7:].strip()


async def get_current_principal(
    authorization: str | None = Header(None),
) -> Principal:
    """
    Извлекает и валидирует JWT-токен из заголовка ``Authorization``.

    Claims: ``sub`` (обязателен), ``role``, ``org_id``.

    Raises:
        AuthenticationError: токен отсутствует, невалиден или без ``sub``.
    """
    payload = decode_token(_bearer_token(authorization))

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Token payload missing 'sub'")

    org_id = payload.get("org_id")
    try:
        organization_id = UUID(org_id) if org_id else None
    except ValueError as exc:
        raise AuthenticationError("Token claim 'org_id' is not a UUID") from exc

    return Principal(
        subject=str(subject),
        role=payload.get("role") or "viewer",
        organization_id=organization_id,
    )


async def require_maintenance_access(
    authorization: str | None = Header(None),
) -> Principal:
    """
    Доступ к /maintenance/*: ``Bearer <MAINTENANCE_SECRET>`` (cron)
    или JWT с permission ``maintenance.run``.
    """
    from network.services.rbac import has_permission

    token = _bearer_token(authorization)
    secret = get_settings().maintenance_secret
    if secret and hmac.compare_digest(token.encode(), secret.encode()):
        return Principal(subject="cron", role="admin")

    principal = await get_current_principal(authorization)
    if not has_permission(principal, "maintenance.run"):
        logger.warning("Maintenance access denied for %s", principal.subject)
        raise AuthorizationError("Permission 'maintenance.run' required")
    return principal


# ═══════════════════════════════════════════════════════════════════════════════
# Сервисы из app.state
# ═══════════════════════════════════════════════════════════════════════════════

def get_store(request: Request):
    return request.app.state.store


def get_territory_registry(request: Request):
    return request.app.state.services.territories


def get_dispatch_engine(request: Request):
    return request.app.state.services.dispatch


def get_onboarding(request: Request):
    return request.app.state.services.onboarding


def get_royalty_calculator(request: Request):
    return request.app.state.services.royalties


def get_decay_job(request: Request):
    return request.app.state.services.decay


def get_candidate_service(request: Request):
    return request.app.state.services.candidates


def get_org_service(request: Request):
    return request.app.state.services.organizations
