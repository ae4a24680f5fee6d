"""
Main FastAPI application for the log relay.

Exposes the run trigger for schedulers and a health endpoint.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from ..shared.config import Settings, get_settings
from ..shared.exceptions import ConfigError
from .dependencies import RelayRuntime, get_runtime
from .schemas import HealthResponse, RunResultResponse

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, runtime: Optional[RelayRuntime] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to use; defaults to the environment
        runtime: Pre-built runtime (tests inject one with fake components)
    """
    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        app.state.runtime = runtime or RelayRuntime(app_settings)
        await app.state.runtime.start()
        logger.info("Log relay API started", environment=app_settings.monitoring.environment.value)

        yield

        await app.state.runtime.close()
        logger.info("Log relay API stopped")

    app = FastAPI(
        title="Log Relay",
        description="Relays event-source logs to a webhook",
        version=app_settings.app_version,
        lifespan=lifespan,
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent error format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "type": "http_error",
                    "message": exc.detail,
                    "status_code": exc.status_code,
                }
            },
        )

    @app.post("/run", response_model=RunResultResponse, tags=["Relay"])
    async def trigger_run(runtime: RelayRuntime = Depends(get_runtime)) -> RunResultResponse:
        """Run the relay once and return the run result."""
        try:
            orchestrator = runtime.orchestrator()
        except ConfigError as e:
            logger.warning("Run rejected", error=e.message)
            raise HTTPException(status_code=400, detail=e.message)

        result = await orchestrator.run()
        return RunResultResponse.model_validate(result.to_dict())

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(runtime: RelayRuntime = Depends(get_runtime)) -> HealthResponse:
        """Health check endpoint."""
        missing = runtime.settings.missing_settings()
        return HealthResponse(
            status="healthy",
            version=runtime.settings.app_version,
            timestamp=datetime.now(timezone.utc),
            configured=not missing,
            missing_settings=missing,
            credential_cache=runtime.credential_cache.get_stats() if runtime.credential_cache else {},
        )

    return app
