"""
network/api/health.py — Health check эндпоинт Network-сервиса.

GET /api/v1/health — проверяет доступность хранилища.
"""

from fastapi import APIRouter, Depends

from network.dependencies import get_store
from network.memory_store import MemoryStore

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check Network-сервиса")
async def health(store=Depends(get_store)):
    """Проверяет доступность Network DB."""
    db_ok = await store.check_connection()
    if isinstance(store, MemoryStore):
        database = "memory"
    else:
        database = "connected" if db_ok else "disconnected"
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": database,
        "service": "network",
    }
