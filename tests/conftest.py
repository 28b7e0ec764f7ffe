"""Pytest fixtures and fakes for the render pipeline."""

import json
from typing import Dict, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from commons import limiter
from configs.config import get_config
from src.errors import PersistenceError, StatusTransitionRefused
from src.jobs.models import JobStatus
from src.jobs.orchestrator import JobOrchestrator
from src.render.models import RenderResult
from src.routes import admin_routes, job_routes, render_routes, upload_routes

cfg = get_config()


class FakeStatusStore:
    """In-memory status store with the same transition guard as the real one."""

    def __init__(self, fail_on=()):
        self.jobs: Dict[str, Dict] = {}
        self.calls: List[tuple] = []
        self.fail_on = set(fail_on)

    def set_status(self, job_id, status, output_url=None, error=None):
        status = JobStatus(status)
        self.calls.append((job_id, status, output_url, error))
        if status in self.fail_on:
            raise PersistenceError(f"store unavailable while writing {status.value}")
        current = self.jobs.get(job_id, {}).get("status")
        if current is not None and JobStatus(current) not in status.allowed_from:
            raise StatusTransitionRefused(job_id, current, status.value)
        job = self.jobs.setdefault(
            job_id,
            {"job_id": job_id, "status": "queued", "output_url": None, "error": None},
        )
        job["status"] = status.value
        if output_url:
            job["output_url"] = output_url
        if error:
            job["error"] = error

    def statuses(self, job_id: str) -> List[JobStatus]:
        return [call[1] for call in self.calls if call[0] == job_id]


class FakeObjectAccess:
    """Object access double; ``failures`` maps an operation name to an exception."""

    def __init__(self, failures: Optional[Dict[str, Exception]] = None):
        self.failures = failures or {}
        self.presigned: List[tuple] = []
        self.downloaded: List[str] = []
        self.uploaded: List[tuple] = []

    def _maybe_fail(self, operation: str, key: str = "") -> None:
        exc = self.failures.get(operation)
        if exc is not None:
            raise exc

    def presign(self, key, *ttl):
        self.presigned.append((key, *ttl))
        self._maybe_fail("presign_output" if key.startswith("output/") else "presign_input")
        return f"https://bucket.example.com/{key}?X-Amz-Signature=abc"

    def download(self, url):
        self.downloaded.append(url)
        self._maybe_fail("download")
        return b"rendered-video"

    def upload(self, data, key, content_type):
        self.uploaded.append((data, key, content_type))
        self._maybe_fail("upload")
        return key


class FakeRenderClient:
    """Render client double returning a canned result or raising."""

    def __init__(self, result: Optional[RenderResult] = None, exc: Optional[Exception] = None):
        self.result = result or RenderResult(
            success=True,
            out_path="out/video.mp4",
            download_url="http://renderer:3000/download/video.mp4",
        )
        self.exc = exc
        self.calls: List[tuple] = []

    def render(self, source_url, captions, style, destination_path):
        self.calls.append((source_url, list(captions), style, destination_path))
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture
def store() -> FakeStatusStore:
    return FakeStatusStore()


@pytest.fixture
def storage() -> FakeObjectAccess:
    return FakeObjectAccess()


@pytest.fixture
def renderer() -> FakeRenderClient:
    return FakeRenderClient()


@pytest.fixture
def orchestrator(store, storage, renderer) -> JobOrchestrator:
    return JobOrchestrator(store=store, storage=storage, renderer=renderer)


@pytest.fixture
def message_body():
    """Factory for raw queue message bodies."""

    def _make(job_id: str = "j1", **overrides) -> str:
        body = {
            "jobId": job_id,
            "videoUrl": f"uploads/{job_id}.mp4",
            "captions": [{"start": 0, "end": 2, "text": "hi"}],
            "style": "bottom",
            "s3Key": f"input/{job_id}.mp4",
        }
        body.update(overrides)
        return json.dumps(body)

    return _make


@pytest.fixture
def app() -> FastAPI:
    """Application with every router, without host/CORS middleware."""
    limiter.reset()
    application = FastAPI()
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.include_router(render_routes.router)
    application.include_router(job_routes.router)
    application.include_router(admin_routes.router)
    application.include_router(upload_routes.router)
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
