"""LearnHub API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.certificates.router import router as certificates_router
from src.certificates.service import CertificateService
from src.config import Settings, get_settings
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.courses.router import router as courses_router
from src.courses.service import CourseService
from src.events import EventDispatcher, EventName
from src.health import router as health_router
from src.notifications.router import router as notifications_router
from src.notifications.service import NotificationService
from src.progress.router import router_enrollments, router_progress, router_roster
from src.progress.service import ProgressService
from src.quizzes.router import router as quizzes_router
from src.quizzes.service import QuizService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    event_dispatcher: EventDispatcher | None = None
    course_service: CourseService | None = None
    certificate_service: CertificateService | None = None
    progress_service: ProgressService | None = None
    quiz_service: QuizService | None = None
    notification_service: NotificationService | None = None


app_state = AppState()


def build_services(
    app: FastAPI,
    session: Any,
    settings: Settings,
    dispatcher: EventDispatcher,
    redis_client: Any = None,
) -> None:
    """Create the domain services and expose them on app.state."""
    keyspace = settings.cassandra_keyspace

    app_state.course_service = CourseService(session=session, keyspace=keyspace)
    app_state.certificate_service = CertificateService(
        session=session,
        keyspace=keyspace,
        number_prefix=settings.certificate_number_prefix,
    )
    app_state.progress_service = ProgressService(
        session=session,
        keyspace=keyspace,
        course_service=app_state.course_service,
        certificate_service=app_state.certificate_service,
        dispatcher=dispatcher,
    )
    app_state.quiz_service = QuizService(
        session=session,
        keyspace=keyspace,
        course_service=app_state.course_service,
        progress_service=app_state.progress_service,
        dispatcher=dispatcher,
        single_attempt_default=settings.quiz_single_attempt_default,
        late_policy=settings.quiz_late_submission_policy,
        grace_seconds=settings.quiz_time_limit_grace_seconds,
    )
    app_state.notification_service = NotificationService(
        session=session,
        keyspace=keyspace,
        redis=redis_client,
    )

    # Notification store reacts to grading and completion
    dispatcher.subscribe(EventName.QUIZ_GRADED, app_state.notification_service.handle_event)
    dispatcher.subscribe(
        EventName.COURSE_COMPLETED, app_state.notification_service.handle_event
    )

    app.state.course_service = app_state.course_service
    app.state.certificate_service = app_state.certificate_service
    app.state.progress_service = app_state.progress_service
    app.state.quiz_service = app_state.quiz_service
    app.state.notification_service = app_state.notification_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - events stay in-process",
        )

    app_state.event_dispatcher = EventDispatcher(
        redis=redis_client,
        queue_size=settings.events_queue_size,
        channel_prefix=settings.events_channel_prefix,
    )
    app.state.event_dispatcher = app_state.event_dispatcher

    # Initialize Cassandra (async)
    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        build_services(
            app,
            app_state.cassandra_session,
            settings,
            app_state.event_dispatcher,
            redis_client,
        )
        logger.info("services_initialized", redis_enabled=redis_client is not None)
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    await app_state.event_dispatcher.start()

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await app_state.event_dispatcher.stop()
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Never expose stack traces in responses; handlers below log details
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="LearnHub - course progress, quizzes and certificates API",
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

        # Domain errors carry {"message", "code"}
        code = None
        message = exc.detail
        if isinstance(exc.detail, dict):
            code = exc.detail.get("code")
            message = exc.detail.get("message", "")

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(message)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "code": code,
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
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
                "code": "validation_error",
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

        Full details are logged internally; clients get a generic message.
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
                "code": "internal_error",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(router_roster)
    app.include_router(router_enrollments)
    app.include_router(router_progress)
    app.include_router(quizzes_router)
    app.include_router(certificates_router)
    app.include_router(notifications_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "LearnHub API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
