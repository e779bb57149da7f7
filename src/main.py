"""Lectern API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.catalog.dependencies import set_catalog_service_getter
from src.catalog.router import router_courses, router_lectures, router_modules
from src.catalog.service import CatalogService
from src.config import get_settings
from src.core.context import get_request_id
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.enrollments.progress import ProgressCalculator
from src.enrollments.router import learning_router
from src.enrollments.router import router as enrollments_router
from src.enrollments.service import EnrollmentService
from src.enrollments.unlock import UnlockEngine, get_unlock_strategy
from src.health import router as health_router


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    catalog_service: CatalogService | None = None
    enrollment_service: EnrollmentService | None = None


app_state = AppState()


def get_catalog_service() -> CatalogService:
    """Get CatalogService instance from app state."""
    if app_state.catalog_service is None:
        msg = "CatalogService not initialized"
        raise RuntimeError(msg)
    return app_state.catalog_service


def build_enrollment_service(
    catalog: CatalogService, session: Any, keyspace: str, strategy: str
) -> EnrollmentService:
    """Wire the enrollment service with its engine and calculator."""
    from src.enrollments.repository import EnrollmentRepository

    return EnrollmentService(
        repository=EnrollmentRepository(session=session, keyspace=keyspace),
        catalog=catalog,
        unlock_engine=UnlockEngine(catalog, get_unlock_strategy(strategy)),
        calculator=ProgressCalculator(catalog),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    from src.core.database import init_async_cassandra, shutdown_async_cassandra

    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        unlock_strategy=settings.unlock_strategy,
    )

    # Initialize Cassandra (async)
    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        app_state.catalog_service = CatalogService(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
        )
        logger.info("catalog_service_initialized")

        app_state.enrollment_service = build_enrollment_service(
            catalog=app_state.catalog_service,
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
            strategy=settings.unlock_strategy,
        )
        # Also set on app.state for dependency injection via request.app.state
        app.state.enrollment_service = app_state.enrollment_service
        logger.info("enrollment_service_initialized")
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug=False keeps Starlette from rendering stack traces; the handlers
    # below log full details and return safe messages.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Learning management API with progressive lecture unlocking",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with field details."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Details are logged; the response only carries a generic message.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers (catalog lectures before learning routes on the same prefix)
    app.include_router(health_router)
    app.include_router(router_courses)
    app.include_router(router_modules)
    app.include_router(router_lectures)
    app.include_router(learning_router)
    app.include_router(enrollments_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Lectern API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


set_catalog_service_getter(get_catalog_service)


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    reload = settings.api_reload and settings.is_development
    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=reload,
        workers=None if reload else settings.api_workers,
    )


if __name__ == "__main__":
    run()
