"""
Miscellaneous routes: health check and pipeline status.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from .. import __version__
from ..config import config, get_db, state
from ..database import Database
from ..schemas import RunRecordResponse

router = APIRouter(tags=["misc"])


@router.get("/status")
async def health_check(
    db: Annotated[Database, Depends(get_db)]
) -> dict:
    """API health check with the latest pipeline runs."""
    pipeline = state.pipeline
    last_runs = {}
    if pipeline:
        last_runs = {
            kind: RunRecordResponse.from_record(record).model_dump()
            for kind, record in pipeline.last_runs.items()
        }

    return {
        "status": "ok",
        "version": __version__,
        "total_issues": db.count_issues(),
        "ingestion_in_progress": bool(pipeline and pipeline.is_running),
        "push_enabled": config.has_vapid_keys(),
        "auth_enabled": bool(config.AUTH_API_KEY),
        "scheduler_running": bool(state.scheduler and state.scheduler.running),
        "pending_jobs": state.job_queue.pending if state.job_queue else 0,
        "last_runs": last_runs,
    }
