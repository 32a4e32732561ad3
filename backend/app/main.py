"""Flow Runner - FastAPI Application.

Exposes the trigger boundary of the run engine: flows can be created and
listed, and triggering a flow queues a run for the workers.
"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.resources import Resources
from api.router import api_router
from core.exceptions import FlowRunnerException
from core.logging_config import setup_logging
from db.database import init_db

logger = logging.getLogger(__name__)


def setup_exception_handlers(app: FastAPI) -> None:
    """Map the flow runner exception taxonomy onto HTTP responses."""

    @app.exception_handler(FlowRunnerException)
    async def flow_runner_exception_handler(request: Request, exc: FlowRunnerException):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message},
        )


def create_app(resources: Optional[Resources] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        resources: Pre-built resource handles. When omitted they are opened
            at startup and closed at shutdown.
    """
    settings = resources.settings if resources else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings)
        owns_resources = getattr(app.state, "resources", None) is None
        if owns_resources:
            app.state.resources = Resources.open(settings)

        await init_db(app.state.resources.db_engine)
        logger.info(f"[startup] {settings.APP_NAME} ready (queue: {settings.RUN_QUEUE_BACKEND})")

        yield

        if owns_resources:
            await app.state.resources.aclose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    if resources is not None:
        app.state.resources = resources

    setup_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT)
