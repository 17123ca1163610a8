"""SafetyHub FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
manages the lifecycle of the backend services (record store, incident
repository, intake, SOS / complaint / counseling services, investigation
trail, broadcasts, analytics, notification channel).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import settings
from src.api.errors import register_exception_handlers
from src.api.router import api_router
from src.services.analytics import AnalyticsService
from src.services.broadcast import BroadcastService
from src.services.complaints import ComplaintService
from src.services.counseling import CounselingService
from src.services.directory import AudienceDirectory, InMemoryDirectory
from src.services.intake import IncidentIntake
from src.services.investigation import InvestigationTrail
from src.services.notifications import NotificationChannel, build_notification_channel
from src.services.repository import IncidentRepository
from src.services.sos import SosService
from src.services.store import RecordStore, open_record_store

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            settings.log_level,
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    *,
    store: RecordStore | None = None,
    directory: AudienceDirectory | None = None,
    notifier: NotificationChannel | None = None,
) -> FastAPI:
    """Build the application.

    Parameters
    ----------
    store:
        Record store to use instead of the configured one (tests).
    directory:
        Audience directory; defaults to an empty in-memory directory.
    notifier:
        Notification channel; defaults to the configured webhook, or the
        logging channel when no webhook is set.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage startup and shutdown of all SafetyHub services.

        On startup:
          1. Open the record store (Redis or in-memory)
          2. Build the incident repository
          3. Build the notification channel and audience directory
          4. Build the incident services
          5. Store everything on ``app.state``

        On shutdown:
          - Close the notification channel and the record store.
        """
        _configure_logging()
        logger.info("app.startup", env=settings.env)

        app.state.start_time = time.time()

        # -- 1. Record store ------------------------------------------------
        record_store = store if store is not None else await open_record_store(
            settings.redis_url or None,
            allow_fallback=not settings.is_production,
        )
        app.state.store = record_store

        # -- 2. Repository --------------------------------------------------
        repository = IncidentRepository(record_store, cas_retries=settings.store_cas_retries)
        app.state.repository = repository

        # -- 3. Collaborators -----------------------------------------------
        channel = notifier if notifier is not None else build_notification_channel(
            settings.notification_webhook_url,
            timeout=settings.notification_timeout_seconds,
            outbox_size=settings.notification_outbox_size,
        )
        app.state.notifier = channel
        app.state.directory = directory if directory is not None else InMemoryDirectory()
        logger.info(
            "app.collaborators_initialised",
            store=type(record_store).__name__,
            notifier=type(channel).__name__,
        )

        # -- 4. Services ----------------------------------------------------
        complaints = ComplaintService(repository)
        app.state.intake = IncidentIntake(repository, channel)
        app.state.sos = SosService(repository)
        app.state.complaints = complaints
        app.state.trail = InvestigationTrail(repository, complaints)
        app.state.counseling = CounselingService(repository)
        app.state.broadcasts = BroadcastService(repository, app.state.directory, channel)
        app.state.analytics = AnalyticsService(
            repository,
            zone_threshold=settings.high_risk_zone_threshold,
            zone_precision=settings.zone_coordinate_precision,
        )
        logger.info("app.startup_complete")

        yield

        # -- Shutdown -------------------------------------------------------
        logger.info("app.shutdown_start")
        await channel.close()
        await record_store.close()
        logger.info("app.shutdown_complete")

    app = FastAPI(
        title="SafetyHub API",
        description=(
            "Campus incident and alert coordination: SOS alerts, complaints "
            "with investigation trails, counseling requests, targeted "
            "broadcasts and safety analytics."
        ),
        version="0.1.0",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    # -- CORS middleware ----------------------------------------------------
    # allow_credentials=True must NOT be combined with allow_origins=["*"].
    actor_headers = ["X-Actor-Ref", "X-Actor-Role", "X-Actor-Department"]
    if settings.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origin_list,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type", "Authorization", *actor_headers],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origin_list,
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
            allow_headers=["Content-Type", "Accept", "Authorization", *actor_headers],
        )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/api", response_class=ORJSONResponse)
    async def api_info() -> dict:
        """API information endpoint."""
        return {
            "name": "SafetyHub API",
            "description": "Campus incident and alert coordination",
            "version": app.version,
            "docs": "/docs",
            "health": "/api/v1/health",
            "endpoints": {
                "sos": "/api/v1/safety/sos",
                "complaints": "/api/v1/safety/complaints",
                "counseling": "/api/v1/safety/counseling",
                "broadcasts": "/api/v1/safety/broadcasts",
                "analytics": "/api/v1/safety/analytics",
                "dashboard": "/api/v1/safety/dashboard",
            },
        }

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn (the ``safetyhub`` console script)."""
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
