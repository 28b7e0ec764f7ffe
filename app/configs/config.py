"""
Centralized configuration loader.

Reads the ENVIRONMENT env-var and merges the correct environment module
(config_prod or config_local) into a single settings namespace.

Usage:
    from configs.config import get_config
    cfg = get_config()
    print(cfg.S3_BUCKET)
"""

import os
import importlib
import logging
from types import SimpleNamespace

logger = logging.getLogger(__name__)

# ── Environment detection ────────────────────────────────────────────────
ENVIRONMENT = os.getenv("ENVIRONMENT", "production")

# ── Shared constants (environment-independent) ───────────────────────────

# Status store
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://127.0.0.1:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "caption_render")
JOBS_COLLECTION = os.getenv("JOBS_COLLECTION", "render_jobs")
MONGODB_TIMEOUT_MS = 5000

# Object storage
S3_BUCKET = os.getenv("S3_BUCKET", "")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL") or None
S3_CONNECT_TIMEOUT_SECONDS = 10
S3_READ_TIMEOUT_SECONDS = 120
INPUT_URL_TTL_SECONDS = 3600       # 1 hour, render must finish well inside
OUTPUT_URL_TTL_SECONDS = 86400     # 24 hours
OUTPUT_KEY_TEMPLATE = "output/video_{job_id}.mp4"
OUTPUT_CONTENT_TYPE = "video/mp4"
DOWNLOAD_TIMEOUT_SECONDS = 300

# Uploads
UPLOAD_KEY_PREFIX = "uploads/"
MAX_UPLOAD_BYTES = 200 * 1024 * 1024  # 200 MB
UPLOAD_CHUNK_BYTES = 1024 * 1024
PREVIEW_URL_TTL_SECONDS = 3600

# Render service (client side)
RENDER_SERVICE_URL = os.getenv("RENDER_SERVICE_URL", "http://remotion-service:3000")
RENDER_API_KEY = os.getenv("RENDER_API_KEY", "")
RENDER_TIMEOUT_SECONDS = 600       # 10 minutes
RENDER_CONNECT_TIMEOUT_SECONDS = 10
RENDER_OUT_PATH_TEMPLATE = "out/video_{job_id}.mp4"

# Render service (server side)
RENDER_WORKDIR = os.getenv("RENDER_WORKDIR", os.getcwd())
RENDER_OUTPUT_DIR = os.getenv(
    "RENDER_OUTPUT_DIR", os.path.join(RENDER_WORKDIR, "out")
)
RENDER_COMMAND = os.getenv(
    "RENDER_COMMAND",
    "npx remotion render src/index.tsx CaptionedVideo {output} --props {props}",
)
RENDER_PROCESS_TIMEOUT_SECONDS = 590
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:7070")
CAPTION_STYLES = ("bottom", "top-bar", "karaoke")

# Queue
QUEUE_URL = os.getenv("QUEUE_URL", "")
QUEUE_WAIT_SECONDS = 20
QUEUE_BATCH_SIZE = 10
QUEUE_VISIBILITY_TIMEOUT_SECONDS = 900
WORKER_MAX_CONCURRENCY = int(os.getenv("WORKER_MAX_CONCURRENCY", "1"))

# Operations
STALE_PROCESSING_SECONDS = 3600
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "change-me-in-production")
PORT = int(os.getenv("PORT", "3000"))

CORS_METHODS = ["GET", "POST", "OPTIONS"]
CORS_HEADERS = [
    "Accept",
    "Content-Type",
    "Origin",
    "X-Requested-With",
    "X-Admin-Key",
    "X-Api-Key",
    "X-Request-ID",
]

# Logging
LOG_FILE_APP = "app.log"
LOG_FILE_ERRORS = "errors.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 5


# ── Config loader ────────────────────────────────────────────────────────

_config_cache = None


def get_config() -> SimpleNamespace:
    """
    Return a merged configuration namespace.

    Environment-specific values from config_local or config_prod
    override the shared defaults defined above.
    """
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    # Start with all module-level constants
    base = {
        key: value
        for key, value in globals().items()
        if key.isupper() and not key.startswith("_")
    }

    # Overlay environment-specific settings
    env_module_name = (
        "configs.config_local" if ENVIRONMENT == "development"
        else "configs.config_prod"
    )
    try:
        env_module = importlib.import_module(env_module_name)
        for key in dir(env_module):
            if key.isupper():
                base[key] = getattr(env_module, key)
        logger.info("Loaded configuration from %s", env_module_name)
    except ImportError:
        logger.warning(
            "Environment config '%s' not found; using shared defaults.",
            env_module_name,
        )

    _config_cache = SimpleNamespace(**base)
    return _config_cache
