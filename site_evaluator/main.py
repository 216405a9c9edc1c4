"""FastAPI application entry point."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from site_evaluator.api.v1.endpoints import health
from site_evaluator.api.v1.router import api_router
from site_evaluator.core.config import Settings, settings as default_settings
from site_evaluator.core.database import init_database
from site_evaluator.core.exceptions import (
    AppError,
    ConcurrencyError,
    NotFoundError,
    NotResolvableError,
    ProviderError,
    RenderError,
    StorageError,
    ValidationError,
)
from site_evaluator.services.container import ServiceContainer, build_container
from site_evaluator.utils.logging import get_logger
from site_evaluator.utils.responses import create_error_detail

LOGGER = get_logger(__name__, level=default_settings.log_level)

# Most specific first
ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Validation Error"),
    (NotResolvableError, status.HTTP_422_UNPROCESSABLE_ENTITY, "Location Not Resolvable"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Not Found"),
    (ConcurrencyError, status.HTTP_409_CONFLICT, "Concurrent Modification"),
    (RenderError, status.HTTP_502_BAD_GATEWAY, "Report Rendering Failed"),
    (ProviderError, status.HTTP_502_BAD_GATEWAY, "Data Provider Error"),
    (StorageError, status.HTTP_502_BAD_GATEWAY, "Report Storage Error"),
)


class RootResponse(BaseModel):
    """Root endpoint response payload."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


def status_for(exc: AppError) -> tuple[int, str]:
    for error_type, status_code, title in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code, title
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code, title = status_for(exc)
    if status_code >= 500:
        LOGGER.error(
            f"Request failed: {exc.message}",
            exc_info=exc,
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
    else:
        LOGGER.info(
            "Request rejected",
            extra={"path": request.url.path, "error_type": type(exc).__name__, "status_code": status_code},
        )
    error_detail = create_error_detail(
        title=title,
        status=status_code,
        detail=exc.message,
        request=request,
    )
    return JSONResponse(status_code=status_code, content=error_detail.model_dump(mode="json"))


def create_app(
    container: Optional[ServiceContainer] = None,
    app_settings: Optional[Settings] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        container: Prebuilt service container; built from settings at startup when omitted
        app_settings: Settings to use instead of the environment-loaded defaults
    """
    app_settings = app_settings or (container.settings if container else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        LOGGER.info(
            "Starting application",
            extra={
                "app_name": app_settings.app_name,
                "version": app_settings.app_version,
                "environment": app_settings.environment,
            },
        )
        if app.state.container is None:
            app.state.container = build_container(app_settings)

        try:
            await asyncio.wait_for(
                init_database(
                    app.state.container.db_client,
                    auto_migrate=app_settings.db.auto_migrate,
                ),
                timeout=app_settings.db_init_timeout,
            )
            LOGGER.info("Database initialized successfully")
        except asyncio.TimeoutError:
            LOGGER.error(f"Database initialization timed out after {app_settings.db_init_timeout}s")
        except Exception as e:
            LOGGER.error(f"Database initialization failed: {e}", exc_info=True)

        yield

        LOGGER.info("Shutting down application")
        try:
            await app.state.container.close()
        except Exception as e:
            LOGGER.error(
                "Error closing database",
                exc_info=True,
                extra={"error": str(e)},
            )

    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.app_version,
        description="Property site evaluation jobs, cached location data and reports",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.container = container

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid4()))
        request.state.correlation_id = correlation_id
        request.state.request_id = correlation_id
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    # CORS middleware - added last to ensure it wraps all other middleware/responses
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    app.add_exception_handler(AppError, app_error_handler)

    app.include_router(api_router, prefix=app_settings.api_v1_prefix)
    app.include_router(health.router, prefix="/health", tags=["Health"])

    @app.get(
        "/",
        response_model=RootResponse,
        tags=["Root"],
        summary="Root endpoint",
        description="Get basic information about the API",
        operation_id="get_public_root_metadata",
    )
    async def root() -> RootResponse:
        """Root endpoint.

        Returns:
            RootResponse: Basic API information
        """
        return RootResponse(
            message="Server is running",
            version=app_settings.app_version,
            docs="/docs",
            health="/health",
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "site_evaluator.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        log_level=default_settings.log_level.lower(),
    )
