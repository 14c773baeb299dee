"""
network/api/maintenance.py — Задачи обслуживания (вызываются cron'ом).

POST /network/maintenance/decay — прогон затухания мотивации.
Доступ: ``Bearer <MAINTENANCE_SECRET>`` или JWT с ``maintenance.run``.
"""

from fastapi import APIRouter, Depends

from network.dependencies import Principal, get_decay_job, require_maintenance_access
from network.models.candidate import DecayReport
from network.services.motivation_decay import MotivationDecayJob

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/decay", response_model=DecayReport, summary="Затухание мотивации")
async def run_decay(
    _: Principal = Depends(require_maintenance_access),
    job: MotivationDecayJob = Depends(get_decay_job),
):
    """Параллельный прогон уже идёт → 409."""
    return await job.run()
