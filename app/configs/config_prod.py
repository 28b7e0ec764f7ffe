"""
Production environment configuration.

These are the baseline defaults. Local overrides live in config_local.py.
"""

# FastAPI docs are disabled in production
DOCS_ENABLED = False

CORS_ORIGINS = [
    "https://captions.example.com",
]

# The renderer is reached by service name inside the cluster
ALLOWED_HOSTS = [
    "captions.example.com",
    "remotion-service",
    "localhost",
    "127.0.0.1",
]
