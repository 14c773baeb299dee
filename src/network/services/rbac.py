"""
network/services/rbac.py — RBAC для Network-сервиса.

Роли, иерархия ролей и permissions сети. Роль приходит claim'ом
``role`` в JWT, выпущенном Identity-сервисом.
"""

from __future__ import annotations

import logging
from enum import Enum

from fastapi import Depends

from network.dependencies import Principal, get_current_principal
from network.exceptions import AuthorizationError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Роли и иерархия
# ═══════════════════════════════════════════════════════════════════════════════

class Role(str, Enum):
    ADMIN = "admin"
    NETWORK_MANAGER = "network_manager"
    ADVISOR = "advisor"
    VIEWER = "viewer"


ROLE_HIERARCHY: dict[str, int] = {
    Role.VIEWER: 0,
    Role.ADVISOR: 1,
    Role.NETWORK_MANAGER: 2,
    Role.ADMIN: 3,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Network Permissions
# ═══════════════════════════════════════════════════════════════════════════════

NETWORK_PERMISSIONS: dict[str, str] = {
    "territory.create": "admin",
    "territory.read": "viewer",
    "dispatch.run": "network_manager",
    "royalty.read": "advisor",
    "candidate.create": "admin",
    "candidate.update": "network_manager",
    "candidate.read": "viewer",
    "candidate.onboard": "admin",
    "org.create": "admin",
    "org.read": "viewer",
    "org.update_rates": "admin",
    "maintenance.run": "admin",
}


# ═══════════════════════════════════════════════════════════════════════════════
# Вспомогательные функции
# ═══════════════════════════════════════════════════════════════════════════════

def has_role(principal, required_role: str) -> bool:
    """Проверяет, имеет ли субъект достаточный уровень роли."""
    role = getattr(principal, "role", None) or Role.VIEWER
    user_level = ROLE_HIERARCHY.get(role, 0)
    required_level = ROLE_HIERARCHY.get(required_role, 0)
    return user_level >= required_level


def has_permission(principal, permission: str) -> bool:
    """Проверяет, имеет ли субъект указанное разрешение."""
    required_role = NETWORK_PERMISSIONS.get(permission)
    if required_role is None:
        logger.warning("Unknown permission requested: %s", permission)
        return False
    return has_role(principal, required_role)


def require_permission(permission: str):
    """FastAPI dependency: требует конкретное разрешение, возвращает субъекта."""
    async def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not has_permission(principal, permission):
            logger.warning(
                "RBAC: principal %s denied permission '%s'",
                principal.subject, permission,
            )
            raise AuthorizationError(f"Permission '{permission}' required")
        return principal
    return _check
