from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.router import api_router
from app.core.config import get_settings
from app.core.http import create_http_client, set_http_client
from app.core.logging_config import configure_logging
from app.core.rate_limit import limiter
from app.core.scheduler import start_scheduler, stop_scheduler
from app.db.base import Base
from app.db.session import dispose_engine, get_engine
from app.services.nafath import NafathConfig
from app.services.nafath.jobs import register_nafath_jobs

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # Create database tables
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Setup HTTP client
    client = create_http_client(settings)
    set_http_client(client)

    register_nafath_jobs(settings)
    await start_scheduler()

    if not NafathConfig.from_settings(settings).is_configured:
        logger.warning("Nafath credentials missing; identity verification is disabled")

    # Store settings in app state
    app.state.settings = settings

    try:
        yield
    finally:
        await stop_scheduler()
        await client.aclose()
        set_http_client(None)
        await dispose_engine()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="school jobs api",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
