"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobtrack import __version__
from jobtrack.api.applications import router as applications_router
from jobtrack.api.scan import router as scan_router
from jobtrack.api.stats import router as stats_router
from jobtrack.config import AppConfig, get_config
from jobtrack.database import init_db
from jobtrack.logging_config import setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and the database before serving requests."""
    config: AppConfig = app.state.config
    setup_logging(level=config.log_level, log_file=config.log_file)
    init_db(config)
    logger.info(
        "server_starting",
        host=config.host,
        port=config.port,
        mailbox_configured=config.has_mailbox_credentials,
        llm_provider=config.llm_provider if config.llm_enabled else "disabled",
    )
    yield
    logger.info("server_shutting_down")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the API app; *config* defaults to settings loaded from the environment."""
    config = config or get_config()

    app = FastAPI(
        title="JobTrack",
        description="Turn job-application emails into tracked application records",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in (scan_router, applications_router, stats_router):
        app.include_router(router)

    @app.get("/api/health", tags=["health"])
    def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the module-level app with uvicorn."""
    import uvicorn

    config: AppConfig = app.state.config
    uvicorn.run("jobtrack.main:app", host=config.host, port=config.port)


if __name__ == "__main__":
    run()
