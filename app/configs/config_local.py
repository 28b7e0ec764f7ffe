"""
Development / local environment configuration overrides.

Only values that DIFFER from production need to be declared here.
The base config.py merges these on top of the production defaults.
"""

# FastAPI docs are enabled in development
DOCS_ENABLED = True

# Relaxed CORS for local development
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:7070",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

ALLOWED_HOSTS = ["*"]

# Surface stuck jobs sooner while developing
STALE_PROCESSING_SECONDS = 900
