"""
FastAPI application for the Content Versioning & Scheduled Publishing Engine.

Services are constructed once per application in the lifespan handler
and reached by routers through ``app.state``.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .core import (
    CorrelationIdMiddleware,
    EngineSettings,
    configure_logging,
    get_correlation_id,
    get_logger,
)
from .core.context import CORRELATION_HEADER
from .exceptions import ContentEngineException, MissingFieldsError, UnexpectedError, ValidationError
from .models import utcnow
from .routers import cron, notifications, versions
from .services import (
    CacheService,
    ContentTypeRegistry,
    InMemoryVersionStore,
    MongoVersionStore,
    NotificationDispatcher,
    SchedulingService,
    VersioningService,
    VersionStore,
)
from .services.notifications import (
    InAppNotificationHandler,
    LoggingNotificationHandler,
    WebhookNotificationHandler,
)

configure_logging()
logger = get_logger(__name__)

API_TITLE = "Content Versioning Engine API"
API_DESCRIPTION = """
Tracks every revision of a content item, keeps exactly one revision live,
and promotes scheduled drafts to published when their time comes.
"""

TAGS_METADATA = [
    {"name": "Versions", "description": "Version lifecycle, history, comparison and scheduling."},
    {"name": "Cron", "description": "External trigger for the scheduled-publication sweep."},
    {"name": "Notifications", "description": "In-app notifications for content lifecycle events."},
    {"name": "Health", "description": "Health check for load balancers and monitoring."},
]

# pydantic error types that mean "the client left this field out"
MISSING_ERROR_TYPES = {"missing", "string_too_short"}


@dataclass
class EngineServices:
    """Everything the API layer needs, built once per process"""
    store: VersionStore
    content_types: ContentTypeRegistry
    cache: CacheService
    notifications: NotificationDispatcher
    in_app_notifications: InAppNotificationHandler
    versioning: VersioningService
    scheduling: SchedulingService


def build_store(settings: EngineSettings) -> VersionStore:
    if settings.store_backend == "mongo":
        logger.info(
            "Using MongoDB version store",
            database=settings.mongodb_database,
        )
        return MongoVersionStore.from_uri(
            settings.mongodb_uri,
            settings.mongodb_database,
            timeout_ms=settings.mongodb_timeout_ms,
        )
    logger.info("Using in-memory version store")
    return InMemoryVersionStore()


def build_services(
    settings: EngineSettings,
    store: Optional[VersionStore] = None,
    clock: Callable[[], datetime] = utcnow,
) -> EngineServices:
    """Wire the engine's services together."""
    if store is None:
        store = build_store(settings)
    content_types = ContentTypeRegistry(settings.content_types)
    cache = CacheService()

    dispatcher = NotificationDispatcher(max_queue_size=settings.notification_queue_size)
    in_app = InAppNotificationHandler()
    dispatcher.register_handler("log", LoggingNotificationHandler())
    dispatcher.register_handler("in_app", in_app)
    if settings.notification_webhook_urls:
        dispatcher.register_handler(
            "webhook", WebhookNotificationHandler(settings.notification_webhook_urls)
        )

    versioning = VersioningService(
        store,
        content_types,
        notifications=dispatcher,
        cache=cache,
        clock=clock,
        content_cache_ttl=settings.content_cache_ttl,
    )
    scheduling = SchedulingService(
        store,
        versioning,
        cache=cache,
        notifications=dispatcher,
        clock=clock,
        check_interval=settings.scheduler_interval,
        scheduled_cache_ttl=settings.scheduled_cache_ttl,
    )

    return EngineServices(
        store=store,
        content_types=content_types,
        cache=cache,
        notifications=dispatcher,
        in_app_notifications=in_app,
        versioning=versioning,
        scheduling=scheduling,
    )


# ============================================
# Error responses
# ============================================

def error_response(exc: ContentEngineException, settings: EngineSettings) -> JSONResponse:
    hide_detail = settings.is_production and isinstance(exc, UnexpectedError)
    return JSONResponse(
        status_code=exc.http_status,
        content={
            "error": {
                "code": exc.error_code,
                "message": exc.user_message if hide_detail else exc.message,
                "details": {} if hide_detail else exc.details,
            },
            "userMessage": exc.user_message,
        },
    )


def validation_error_from_request(exc: RequestValidationError) -> ValidationError:
    """Map FastAPI request validation errors onto the engine's 400 errors."""
    missing = []
    field_errors: Dict[str, list] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        name = ".".join(loc) or "body"
        if error.get("type") in MISSING_ERROR_TYPES:
            missing.append(name)
        else:
            field_errors.setdefault(name, []).append(error.get("msg", "Invalid value"))

    if missing and not field_errors:
        return MissingFieldsError(missing)

    for name in missing:
        field_errors.setdefault(name, []).append("This field is required")
    return ValidationError(
        message="Invalid request",
        error_code="V000",
        details={"fields": field_errors},
    )


def register_exception_handlers(app: FastAPI, settings: EngineSettings) -> None:

    @app.exception_handler(ContentEngineException)
    async def engine_exception_handler(request: Request, exc: ContentEngineException):
        if isinstance(exc, UnexpectedError):
            logger.error(
                "Unexpected engine error",
                error_code=exc.error_code,
                error=exc.message,
                details=exc.details,
                cause=str(exc.cause) if exc.cause else None,
            )
        else:
            logger.info(
                "Request rejected",
                error_code=exc.error_code,
                status_code=exc.http_status,
                error=exc.message,
            )
        return error_response(exc, settings)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(validation_error_from_request(exc), settings)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {"code": f"HTTP{exc.status_code}", "message": message, "details": {}},
                "userMessage": message,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", error=str(exc), exc_info=True)

        error: Dict[str, Any] = {
            "code": "U000",
            "message": UnexpectedError.default_user_message,
            "details": {},
        }
        if not settings.is_production:
            error["message"] = str(exc)
            error["details"] = {"type": type(exc).__name__}

        return JSONResponse(
            status_code=500,
            content={"error": error, "userMessage": UnexpectedError.default_user_message},
            headers={CORRELATION_HEADER: get_correlation_id()},
        )


# ============================================
# Application factory
# ============================================

def create_app(
    settings: Optional[EngineSettings] = None,
    store: Optional[VersionStore] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    settings = settings or EngineSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Content Versioning Engine", env=settings.env, version=__version__)

        services = build_services(settings, store=store, clock=clock)
        app.state.services = services
        app.state.versioning = services.versioning
        app.state.scheduling = services.scheduling
        app.state.in_app_notifications = services.in_app_notifications

        if isinstance(services.store, MongoVersionStore):
            try:
                await services.store.ensure_indexes()
            except Exception as e:
                logger.error("Failed to ensure version store indexes", error=str(e))

        await services.notifications.start()
        if settings.scheduler_enabled:
            await services.scheduling.start_scheduler()

        yield

        logger.info("Shutting down Content Versioning Engine")
        await services.scheduling.stop_scheduler()
        await services.notifications.stop()
        await services.store.close()

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=__version__,
        openapi_tags=TAGS_METADATA,
        lifespan=lifespan,
    )
    app.state.settings = settings

    allowed_origins = settings.allowed_origins or ["http://localhost:3000", "http://localhost:8000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins if settings.is_production else ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", CORRELATION_HEADER],
        expose_headers=[CORRELATION_HEADER],
        max_age=86400,
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app, settings)

    app.include_router(versions.router, prefix="/api/versions", tags=["Versions"])
    app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        services: Optional[EngineServices] = getattr(request.app.state, "services", None)
        if services is None:
            return JSONResponse(status_code=503, content={"status": "starting"})

        scheduling = services.scheduling
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "store": settings.store_backend,
            "scheduler": {
                "running": scheduling.is_scheduler_running,
                "checkInterval": scheduling.check_interval,
                "lastSweepAt": scheduling.last_sweep_at.isoformat() if scheduling.last_sweep_at else None,
            },
            "notifications": {
                "pending": services.notifications.pending,
                "dropped": services.notifications.dropped_count,
            },
        }

    return app


app = create_app()
