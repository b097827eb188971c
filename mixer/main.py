"""Starknet Lightning Mixer - FastAPI Application."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from mixer import __version__
from mixer.api import register_routers
from mixer.api.errors import register_exception_handlers
from mixer.core.config import Settings, get_settings
from mixer.db import MixerStore, close_db, create_engine, create_session_factory, init_db
from mixer.integrations import build_integrations
from mixer.services import EventBroadcaster, MixingService, StepActions, StepScheduler

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory.

    Args:
        settings: Explicit settings (defaults to environment settings)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler.

        Startup: Create tables and wire the store, broadcaster, scheduler and service
        Shutdown: Cancel running pipelines and close database connections
        """
        engine = create_engine(settings)
        await init_db(engine)

        store = MixerStore(create_session_factory(engine))
        broadcaster = EventBroadcaster()
        integrations = build_integrations(settings)
        scheduler = StepScheduler(
            store,
            broadcaster,
            StepActions(integrations, settings.sats_per_token_unit),
            duration_scale=settings.step_duration_scale,
        )

        app.state.settings = settings
        app.state.engine = engine
        app.state.store = store
        app.state.broadcaster = broadcaster
        app.state.integrations = integrations
        app.state.scheduler = scheduler
        app.state.mixing_service = MixingService(
            store, scheduler, broadcaster, integrations.lightning, settings
        )
        logger.info(f"{settings.app_name} started ({settings.environment})")
        yield

        await scheduler.shutdown()
        await close_db(engine)
        logger.info(f"{settings.app_name} stopped")

    app = FastAPI(
        title=settings.app_name,
        description="Privacy mixer: Starknet -> Lightning -> Cashu -> Starknet",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms"
        )
        return response

    register_exception_handlers(app, settings)
    register_routers(app)

    @app.get("/health")
    async def health_check(request: Request) -> dict:
        """Health check with collaborator connectivity."""
        services = await request.app.state.integrations.connectivity()
        try:
            async with request.app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            services["database"] = True
        except Exception:
            logger.exception("[health] database check failed")
            services["database"] = False

        return {
            "status": "healthy" if all(services.values()) else "degraded",
            "version": __version__,
            "environment": settings.environment,
            "services": services,
            "activePipelines": request.app.state.scheduler.running_count,
            "observers": request.app.state.broadcaster.observer_count,
        }

    return app


# Application instance
app = create_app()
