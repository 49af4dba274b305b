# api/memedo/main.py
from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import Base, engine
from .errors import register_error_handlers
from .logging_config import configure_logging
from .responses import ok
from .settings import settings

# --- Routers ---
from .routers import analysis as analysis_router
from .routers import analytics as analytics_router
from .routers import auth as auth_router
from .routers import historical as historical_router
from .routers import subscription as subscription_router
from .routers import watchlist as watchlist_router
from .routers import webhooks as webhooks_router

configure_logging()
logger = structlog.get_logger(__name__)

# --- App init ---
app = FastAPI(title="MemeDo API", version="1.0.0")

# --- CORS for frontend + live site ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


# --- Health Check ---
@app.get("/health")
def health():
    """Lightweight health check for Render."""
    return ok({"status": "ok", "env": settings.ENV})


@app.get("/api/health")
def api_health():
    """Mirror endpoint for dashboard/API checks."""
    return ok({"status": "ok", "env": settings.ENV})


# --- Startup ---
@app.on_event("startup")
def startup():
    # Only auto-create tables locally; use Alembic in production
    if not settings.is_production:
        Base.metadata.create_all(bind=engine)
    logger.info("api started", env=settings.ENV)


# --- Register routers ---
for r in (
    auth_router.router,
    subscription_router.router,
    watchlist_router.router,
    analytics_router.router,
    historical_router.router,
    analysis_router.router,
    webhooks_router.router,
):
    app.include_router(r, prefix="/api")
