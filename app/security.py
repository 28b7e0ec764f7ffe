"""
Request hardening and key checks for the render and job APIs.

The render endpoint answers in its own ``{success, error}`` envelope, so
its key check is a plain predicate; the admin routes use a dependency
that raises ``HTTPException``.
"""

import hmac
import logging
import re
import uuid

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from configs.config import get_config
from src.jobs.models import JOB_ID_REGEX

logger = logging.getLogger(__name__)

cfg = get_config()

JOB_ID_PATTERN = re.compile(JOB_ID_REGEX)

# Responses are JSON or video, never HTML
_RESPONSE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'",
}


# --------------- Middlewares ---------------


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Set fixed security headers; job status responses are never cached."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers.update(_RESPONSE_HEADERS)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=63072000"
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Echo the caller's X-Request-ID, or mint one, and log the outcome."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.debug(
            "%s %s -> %d [%s]",
            request.method, request.url.path, response.status_code, request_id,
        )
        return response


# --------------- Validators ---------------


def validate_job_id(job_id: str) -> str:
    """Return ``job_id`` unchanged, or raise 400 if it is not a job id."""
    if not JOB_ID_PATTERN.match(job_id):
        logger.warning("Rejected invalid job_id: %r", job_id)
        raise HTTPException(status_code=400, detail="Invalid job ID format")
    return job_id


def safe_error_response(
    exc: Exception, context: str = "operation", status_code: int = 500
):
    """
    Log ``exc`` and raise an ``HTTPException`` that does not leak it.

    Development builds include the real error in the detail.
    """
    logger.error("Error in %s: %s", context, exc, exc_info=True)
    if cfg.ENVIRONMENT == "development":
        detail = f"[DEV] {context}: {exc}"
    elif status_code == 503:
        detail = f"Service temporarily unavailable during {context}. Retry later."
    else:
        detail = f"An internal error occurred during {context}."
    raise HTTPException(status_code=status_code, detail=detail)


# --------------- Key Checks ---------------


def _keys_match(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode(), expected.encode())


def has_valid_render_key(request: Request) -> bool:
    """
    True when ``x-api-key`` matches RENDER_API_KEY.

    An empty RENDER_API_KEY turns the check off.
    """
    if not cfg.RENDER_API_KEY:
        return True
    return _keys_match(request.headers.get("x-api-key", ""), cfg.RENDER_API_KEY)


def require_admin_key(request: Request) -> None:
    """Dependency: 403 unless X-Admin-Key matches ADMIN_API_KEY."""
    provided = request.headers.get("X-Admin-Key", "")
    if provided and cfg.ADMIN_API_KEY and _keys_match(provided, cfg.ADMIN_API_KEY):
        return
    logger.warning(
        "Rejected admin request from %s",
        request.client.host if request.client else "unknown",
    )
    raise HTTPException(status_code=403, detail="Forbidden: invalid admin key")
