"""
Upload API routes.

Endpoints:
    POST   /upload              — store an MP4 under uploads/ and return its key
    POST   /get-presigned-url   — short-lived preview URL for a stored key
"""

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, ConfigDict, Field, field_validator

from commons import limiter
from configs.config import get_config
from security import safe_error_response
from src.errors import StorageError
from src.jobs.models import has_path_traversal
from src.routes.dependencies import get_object_access
from src.storage.media import SNIFF_BYTES, looks_like_mp4
from src.storage.object_access import ObjectAccess

logger = logging.getLogger(__name__)

cfg = get_config()

router = APIRouter(tags=["uploads"])


class PresignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    s3_key: str = Field(..., alias="s3Key", min_length=1, max_length=1024)

    @field_validator("s3_key")
    @classmethod
    def _reject_traversal(cls, value: str) -> str:
        if has_path_traversal(value) or value.startswith("/"):
            raise ValueError("s3Key must be a plain object key")
        return value


def _upload_key() -> str:
    return f"{cfg.UPLOAD_KEY_PREFIX}{uuid.uuid4()}.mp4"


# ── Upload ───────────────────────────────────────────────────────────────


@router.post("/upload")
@limiter.limit("10/minute")
async def upload_video(
    request: Request,
    video: UploadFile = File(...),
    storage: ObjectAccess = Depends(get_object_access),
) -> dict:
    """Store an uploaded MP4 in the bucket and return its key."""
    max_mb = cfg.MAX_UPLOAD_BYTES // (1024 * 1024)
    data = bytearray()
    while True:
        chunk = await video.read(cfg.UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        data.extend(chunk)
        if len(data) > cfg.MAX_UPLOAD_BYTES:
            logger.warning("Rejected upload %r over %d MB", video.filename, max_mb)
            raise HTTPException(
                status_code=413, detail=f"File too large (max {max_mb}MB)"
            )

    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not looks_like_mp4(bytes(data[:SNIFF_BYTES])):
        logger.warning("Rejected upload %r: not an MP4", video.filename)
        raise HTTPException(status_code=400, detail="Only MP4 files are allowed")

    key = _upload_key()
    try:
        await asyncio.to_thread(storage.upload, bytes(data), key, "video/mp4")
    except StorageError as exc:
        safe_error_response(exc, context="upload", status_code=502)

    logger.info("Stored upload %r as %s (%d bytes)", video.filename, key, len(data))
    return {"fileUrl": storage.object_url(key), "s3Key": key}


# ── Preview URL ──────────────────────────────────────────────────────────


@router.post("/get-presigned-url")
@limiter.limit("60/minute")
def presigned_preview_url(
    request: Request,
    body: PresignRequest,
    storage: ObjectAccess = Depends(get_object_access),
) -> dict:
    """Return a GET URL for ``s3Key`` valid for an hour."""
    try:
        url = storage.presign(body.s3_key, cfg.PREVIEW_URL_TTL_SECONDS)
    except StorageError as exc:
        safe_error_response(exc, context="presign", status_code=502)
    return {"url": url}
