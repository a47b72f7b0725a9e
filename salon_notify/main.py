from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded

from salon_notify.core.limits import limiter, rate_limit_handler
from salon_notify.core.init_db import init_database
from salon_notify.core.error_handlers import setup_exception_handlers
from salon_notify.core.database import db_manager
from salon_notify.core.middleware import setup_middleware
from salon_notify.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from salon_notify.core.config import (
    validate_config,
    API_V1_PREFIX,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEBUG,
    ENVIRONMENT,
    LOG_LEVEL,
    LOG_FORMAT,
)
from salon_notify.notifications.routers import notifications as notification_routes
from salon_notify.notifications.routers import realtime
from salon_notify.notifications.services.liveness_reaper import LivenessReaper
from salon_notify.notifications.services.notification_service import NotificationHub
from salon_notify.notifications.services.persistence import (
    NotificationGateway,
    StaffDirectory,
)
from salon_notify.notifications.services.push_sender import PushSender
from salon_notify.notifications.services.transport import WebSocketTransport

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


def build_notification_hub() -> NotificationHub:
    return NotificationHub(
        transport=WebSocketTransport(),
        gateway=NotificationGateway(),
        staff_directory=StaffDirectory(),
        push_sender=PushSender(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    try:
        validate_config()
        logger.info("Configuration validated")

        await init_database()
        logger.info("Database initialized")

        hub = build_notification_hub()
        reaper = LivenessReaper(hub.registry, hub.transport, clock=hub.clock)
        app.state.notification_hub = hub
        app.state.liveness_reaper = reaper
        reaper.start()

        log_business_event(
            "application_started",
            "system",
            APP_NAME,
            {"version": APP_VERSION, "environment": ENVIRONMENT},
        )
        logger.info("Application startup completed")

    except Exception as e:
        logger.error(f"Application startup failed: {str(e)}")
        error_tracker.track_error(
            "STARTUP_ERROR",
            str(e),
            {"component": "application_startup", "version": APP_VERSION},
        )
        raise

    yield

    logger.info("Shutting down application...")

    await app.state.liveness_reaper.stop()

    hub = app.state.notification_hub
    for connection in hub.connected_users():
        hub.registry.leave(connection.connection_id, "server shutdown")
        await hub.transport.disconnect(connection.connection_id, "server shutdown")

    await db_manager.close_connections()
    logger.info("Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="Real-time notifications for salon staff",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

setup_middleware(app, {"slow_request_threshold": 2.0})

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

app.include_router(notification_routes.router, prefix=API_V1_PREFIX)
app.include_router(realtime.router)


@app.get("/health")
async def health(request: Request):
    """Liveness probe with a summary of live connections"""
    hub = getattr(request.app.state, "notification_hub", None)
    reaper = getattr(request.app.state, "liveness_reaper", None)

    return {
        "status": "ok",
        "service": APP_NAME,
        "version": APP_VERSION,
        "connections": hub.registry.stats()["total_connections"] if hub else 0,
        "reaper_running": bool(reaper and reaper.running),
        "errors": error_tracker.get_stats()["total_errors"],
    }
