"""
Shared FastAPI dependencies.

Each collaborator is built once on first use; tests swap them through
``app.dependency_overrides``.
"""

from functools import lru_cache

from src.database.job_repository import JobStatusStore
from src.jobs.queue import JobPublisher
from src.render.engine import RenderEngine
from src.storage.object_access import ObjectAccess


@lru_cache(maxsize=1)
def get_job_store() -> JobStatusStore:
    return JobStatusStore()


@lru_cache(maxsize=1)
def get_job_publisher() -> JobPublisher:
    return JobPublisher()


@lru_cache(maxsize=1)
def get_render_engine() -> RenderEngine:
    return RenderEngine()


@lru_cache(maxsize=1)
def get_object_access() -> ObjectAccess:
    return ObjectAccess()
