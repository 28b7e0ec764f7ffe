"""
Shared utility functions and singletons used across multiple modules.
"""

import uuid

from slowapi import Limiter
from slowapi.util import get_remote_address

from configs.config import get_config

cfg = get_config()

# ── Shared rate-limiter instance ─────────────────────────────────────────
# Created here (not in main.py) so that route modules can import it
# without a circular dependency.
limiter = Limiter(key_func=get_remote_address)


def generate_job_id() -> str:
    """Generate a collision-free job ID (e.g., 'job_3f2a9c...')."""
    return f"job_{uuid.uuid4().hex}"


def output_key_for(job_id: str) -> str:
    """Permanent storage key of a job's finished video."""
    return cfg.OUTPUT_KEY_TEMPLATE.format(job_id=job_id)


def render_out_path_for(job_id: str) -> str:
    """Renderer-side output path; unique per job so concurrent renders never collide."""
    return cfg.RENDER_OUT_PATH_TEMPLATE.format(job_id=job_id)
