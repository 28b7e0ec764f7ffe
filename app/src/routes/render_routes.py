"""
Render service API routes.

Endpoints:
    POST   /render                — render captions over a video
    GET    /download/{filename}   — fetch a rendered video
    GET    /health                — liveness check
"""

import logging
import time
from pathlib import PurePosixPath
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import ValidationError as PydanticValidationError

from commons import limiter
from configs.config import get_config
from security import has_valid_render_key
from src.errors import ValidationError
from src.jobs.models import has_path_traversal
from src.render.engine import RenderEngine
from src.render.models import Caption, CaptionStyle
from src.routes.dependencies import get_render_engine

logger = logging.getLogger(__name__)

cfg = get_config()

router = APIRouter(tags=["render"])


def _failure(status_code: int, error: str, logs: Optional[str] = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "error": error}
    if logs is not None:
        body["logs"] = logs
    return JSONResponse(status_code=status_code, content=body)


# ── Render ───────────────────────────────────────────────────────────────


@router.post("/render")
@limiter.limit("30/minute")
def render_video(
    request: Request,
    payload: Dict[str, Any] = Body(default_factory=dict),
    engine: RenderEngine = Depends(get_render_engine),
):
    """
    Render ``captions`` over ``videoUrl`` into ``outPath``.

    Every check runs before anything touches the disk or spawns a process.
    """
    if not has_valid_render_key(request):
        logger.warning("Render request with invalid or missing API key")
        return _failure(401, "Unauthorized: Invalid or missing API key")

    video_url = payload.get("videoUrl")
    captions = payload.get("captions")
    style = payload.get("style")
    out_path = payload.get("outPath")

    if not video_url or captions is None or not style:
        return _failure(400, "Missing required fields: videoUrl, captions, style")

    if style not in cfg.CAPTION_STYLES:
        logger.warning("Rejected render with invalid style: %r", style)
        return _failure(400, "Invalid style. Must be: bottom, top-bar, or karaoke")

    if not isinstance(captions, list):
        return _failure(400, "Captions must be an array")

    if not isinstance(video_url, str) or has_path_traversal(video_url):
        logger.warning("Rejected render with unsafe videoUrl: %r", video_url)
        return _failure(400, "Invalid videoUrl")

    try:
        parsed_captions = [Caption.model_validate(c) for c in captions]
    except PydanticValidationError:
        return _failure(400, "Invalid caption entry")

    if out_path is None:
        out_path = f"out/video_{int(time.time() * 1000)}.mp4"
    try:
        if not isinstance(out_path, str):
            raise ValidationError(f"Invalid outPath: {out_path!r}")
        output_file = engine.resolve_output_path(out_path)
    except ValidationError as exc:
        logger.warning("Rejected render: %s", exc)
        return _failure(400, "Invalid outPath")

    logger.info(
        "Render requested: %d captions, style=%s, outPath=%s",
        len(parsed_captions), style, out_path,
    )
    result = engine.render(video_url, parsed_captions, CaptionStyle(style), output_file)

    if not result.success:
        return _failure(500, result.error or "Render failed", logs=result.logs)

    return {
        "success": True,
        "outPath": out_path,
        "outUrl": f"/download/{PurePosixPath(out_path).name}",
        "logs": result.logs,
    }


# ── Download ─────────────────────────────────────────────────────────────


@router.get("/download/{filename}")
def download_video(
    filename: str, engine: RenderEngine = Depends(get_render_engine)
):
    """Serve a rendered video file."""
    path = engine.locate_output(filename)
    if path is None:
        logger.warning("Download requested for missing file %r", filename)
        return JSONResponse(status_code=404, content={"error": "File not found"})
    logger.info("Serving rendered file %s", filename)
    return FileResponse(path, media_type="video/mp4", filename=filename)


# ── Health ───────────────────────────────────────────────────────────────


@router.get("/health")
def health() -> dict:
    """Liveness check."""
    return {"status": "ok", "service": "caption-render"}
