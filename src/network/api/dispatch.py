"""
network/api/dispatch.py — Диспетчеризация досье головного офиса.

POST /network/dispatch          — одно досье по почтовому коду
POST /network/dispatch/pending  — все ожидающие досье головного офиса
"""

from fastapi import APIRouter, Depends

from network.dependencies import Principal, get_dispatch_engine
from network.models.dispatch import (
    BatchDispatchRequest,
    BatchDispatchResult,
    DispatchRequest,
    DispatchResult,
)
from network.services.dispatch_engine import DispatchEngine
from network.services.rbac import require_permission

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


@router.post("", response_model=DispatchResult, summary="Диспетчеризовать досье")
async def dispatch_record(
    body: DispatchRequest,
    principal: Principal = Depends(require_permission("dispatch.run")),
    engine: DispatchEngine = Depends(get_dispatch_engine),
):
    """Передаёт досье члену сети, чья территория покрывает почтовый код."""
    return await engine.dispatch(body.record_id, body.postal_code, principal.subject)


@router.post(
    "/pending",
    response_model=BatchDispatchResult,
    summary="Диспетчеризовать все ожидающие досье",
)
async def dispatch_pending(
    body: BatchDispatchRequest,
    principal: Principal = Depends(require_permission("dispatch.run")),
    engine: DispatchEngine = Depends(get_dispatch_engine),
):
    return await engine.dispatch_all_pending(body.head_office_id, principal.subject)
