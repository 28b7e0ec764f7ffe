import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from commons import limiter
from configs.config import get_config
from logging_config import setup_logging
from security import RequestIdMiddleware, SecurityHeadersMiddleware
from src.routes import admin_routes, job_routes, render_routes, upload_routes

# ── Logging ──────────────────────────────────────────────────────────────────
setup_logging()
logger = logging.getLogger(__name__)

cfg = get_config()

if not cfg.RENDER_API_KEY:
    logger.warning("RENDER_API_KEY is not set; /render accepts unauthenticated requests")

# ── App Factory ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="Caption Render Service",
    docs_url="/docs" if cfg.DOCS_ENABLED else None,
    redoc_url="/redoc" if cfg.DOCS_ENABLED else None,
    openapi_url="/openapi.json" if cfg.DOCS_ENABLED else None,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── Middleware Stack (order matters – outermost first) ───────────────────────

# 1. Request-ID tracking
app.add_middleware(RequestIdMiddleware)

# 2. Security response headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Trusted hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=cfg.ALLOWED_HOSTS)

# 4. CORS – explicit methods & headers instead of wildcards
app.add_middleware(
    CORSMiddleware,
    allow_origins=cfg.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=cfg.CORS_METHODS,
    allow_headers=cfg.CORS_HEADERS,
)

# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(render_routes.router)
app.include_router(job_routes.router)
app.include_router(admin_routes.router)
app.include_router(upload_routes.router)


def run() -> None:
    """Serve the app with uvicorn; one worker process, renders run in its threadpool."""
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Run the caption render service")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=cfg.PORT, help=f"Port (default: {cfg.PORT})")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()

    logger.info(
        "Caption render service on %s:%d (render timeout %ds, outputs in %s)",
        args.host, args.port, cfg.RENDER_PROCESS_TIMEOUT_SECONDS, cfg.RENDER_OUTPUT_DIR,
    )
    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
        timeout_keep_alive=cfg.RENDER_TIMEOUT_SECONDS,
    )


if __name__ == "__main__":
    run()
