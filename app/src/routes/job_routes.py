"""
Render job API routes.

Endpoints:
    POST   /api/jobs            — create a queued job and enqueue it
    GET    /api/jobs/{job_id}   — poll job status
"""

import logging
from datetime import datetime
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator

from commons import generate_job_id, limiter
from security import safe_error_response, validate_job_id
from src.database.job_repository import JobStatusStore
from src.errors import PersistenceError, StatusTransitionRefused, StorageError
from src.jobs.models import JobStatus, RenderJobMessage, has_path_traversal
from src.jobs.queue import JobPublisher
from src.render.models import Caption, CaptionStyle
from src.routes.dependencies import get_job_publisher, get_job_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["jobs"])


class CreateJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_url: str = Field(default="", alias="videoUrl", max_length=2048)
    captions: List[Caption] = Field(..., max_length=5000)
    style: CaptionStyle
    s3_key: str = Field(..., alias="s3Key", min_length=1, max_length=1024)

    @field_validator("video_url")
    @classmethod
    def _reject_traversal(cls, value: str) -> str:
        if has_path_traversal(value):
            raise ValueError("videoUrl must not contain '..' or '~'")
        return value


def _serialize_job(job: Dict) -> Dict:
    """Shape a stored job document for the API."""
    return {
        "job_id": job["job_id"],
        "status": job["status"],
        "output_url": job.get("output_url"),
        "error": job.get("error"),
        "style": job.get("style"),
        "created_at": _iso(job.get("created_at")),
        "updated_at": _iso(job.get("updated_at")),
    }


def _iso(value):
    return value.isoformat() if isinstance(value, datetime) else value


# ── Create ───────────────────────────────────────────────────────────────


@router.post("/jobs", status_code=202)
@limiter.limit("20/minute")
def create_job_endpoint(
    request: Request,
    body: CreateJobRequest,
    store: JobStatusStore = Depends(get_job_store),
    publisher: JobPublisher = Depends(get_job_publisher),
) -> dict:
    """Record a queued render job and put it on the job queue."""
    job_id = generate_job_id()
    logger.info("Creating render job %s for %s", job_id, body.s3_key)

    try:
        store.create_job(job_id, body.s3_key, body.captions, body.style)
    except PersistenceError as exc:
        safe_error_response(exc, context="create_job", status_code=503)

    message = RenderJobMessage(
        job_id=job_id,
        video_url=body.video_url,
        captions=body.captions,
        style=body.style,
        s3_key=body.s3_key,
    )
    try:
        publisher.publish(message)
    except StorageError as exc:
        logger.error("Job %s could not be enqueued: %s", job_id, exc)
        try:
            store.set_status(job_id, JobStatus.FAILED, error="could not enqueue job")
        except (PersistenceError, StatusTransitionRefused):
            logger.error("Job %s left queued without a queue message", job_id)
        safe_error_response(exc, context="enqueue_job", status_code=503)

    return {"job_id": job_id, "status": JobStatus.QUEUED.value}


# ── Status ───────────────────────────────────────────────────────────────


@router.get("/jobs/{job_id}")
@limiter.limit("120/minute")
def get_status(
    request: Request,
    job_id: str,
    store: JobStatusStore = Depends(get_job_store),
) -> dict:
    """Return the persisted state of a job."""
    validate_job_id(job_id)
    logger.debug("Status check for job %s", job_id)
    try:
        job = store.get_job(job_id)
    except PersistenceError as exc:
        safe_error_response(exc, context="get_job", status_code=503)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return _serialize_job(job)
