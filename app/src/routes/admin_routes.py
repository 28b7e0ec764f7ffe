"""
Admin API routes.

All endpoints require a valid ``X-Admin-Key`` header.

Endpoints:
    GET    /api/admin/jobs/stale — jobs stuck in processing
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from commons import limiter
from configs.config import get_config
from security import require_admin_key, safe_error_response
from src.database.job_repository import JobStatusStore
from src.errors import PersistenceError
from src.routes.dependencies import get_job_store
from src.routes.job_routes import _serialize_job

logger = logging.getLogger(__name__)

cfg = get_config()

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/jobs/stale")
@limiter.limit("10/minute")
def list_stale_jobs(
    request: Request,
    older_than_seconds: Optional[int] = Query(default=None, ge=60),
    store: JobStatusStore = Depends(get_job_store),
    _=Depends(require_admin_key),
) -> dict:
    """
    List jobs still marked processing long after any render could finish.

    These are jobs whose final status write was lost after the video was
    already uploaded. They are reported, not repaired.
    """
    threshold = older_than_seconds or cfg.STALE_PROCESSING_SECONDS
    try:
        jobs = store.find_stale_processing(threshold)
    except PersistenceError as exc:
        safe_error_response(exc, context="list_stale_jobs", status_code=503)
    if jobs:
        logger.warning("%d jobs stuck in processing for over %ds", len(jobs), threshold)
    return {
        "jobs": [_serialize_job(job) for job in jobs],
        "total": len(jobs),
        "older_than_seconds": threshold,
    }
