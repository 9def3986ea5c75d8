"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import get_settings
from shared.exceptions import (
    LifelineError,
    AuthenticationError,
    ExternalServiceError,
)
from modules.session.routes import router as session_router
from modules.otp.routes import router as otp_router
from modules.notifications.routes import router as notifications_router

from .dependencies import get_container
from .models.errors import ErrorResponse
from .routes import health

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Restores the persisted session and starts the background tasks on
    startup; stops them and closes the HTTP clients on shutdown.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting %s on %s:%s", settings.app_name, settings.host, settings.port)
    container = get_container()
    await container.startup()
    yield
    logger.info("Shutting down %s", settings.app_name)
    await container.shutdown()


def _status_for(exc: LifelineError) -> int:
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, ExternalServiceError):
        return 502
    return 500


async def lifeline_error_handler(request: Request, exc: LifelineError) -> JSONResponse:
    """Render domain errors that escape a route as ErrorResponse."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    body = ErrorResponse(error=type(exc).__name__, detail=exc.message, code=exc.code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Session, OTP verification and notification queue core",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.add_exception_handler(LifelineError, lifeline_error_handler)

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(session_router, prefix="/api/session", tags=["session"])
    app.include_router(otp_router, prefix="/api/otp", tags=["otp"])
    app.include_router(notifications_router, prefix="/api/notifications", tags=["notifications"])

    return app


# Application instance for uvicorn
app = create_app()
