"""FastAPI application factory"""

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from modlink import __version__
from modlink.api.routers import linked_role_router, metadata_router
from modlink.core.config import get_settings
from modlink.core.context import AppContext
from modlink.core.logging import setup_logging
from modlink.shared.database import DatabaseManager
from modlink.shared.migrations.runner import MigrationRunner
from modlink.shared.repositories import AccountRepository

logger = logging.getLogger(__name__)

# Track server start time
_start_time: float = 0.0


async def _sweep_loop(context: AppContext, interval: int) -> None:
    """Periodically drop expired pending links and download stats"""
    while True:
        await asyncio.sleep(interval)
        try:
            context.sweep()
        except Exception as e:
            logger.warning(f"Sweep failed: {type(e).__name__}: {e}")


async def _build_context() -> AppContext:
    settings = get_settings()

    db_manager = DatabaseManager(settings.database_url)
    await asyncio.wait_for(db_manager.connect(), timeout=30)
    logger.info("Database connected")
    await MigrationRunner(db_manager.pool).run_pending()

    context = AppContext.build(
        settings, AccountRepository(db_manager.pool), database=db_manager
    )

    if settings.discord_bot_token:
        try:
            await context.discord.register_metadata_schema(settings.discord_bot_token)
        except Exception as e:
            logger.warning(f"Could not register role metadata schema: {type(e).__name__}: {e}")
    return context


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time
    _start_time = time.time()

    # A context passed to create_app() belongs to the caller
    owns_context = app.state.context is None
    if owns_context:
        app.state.context = await _build_context()
    context: AppContext = app.state.context

    logger.info("Starting modlink auth site")
    logger.info(f"Environment: {context.settings.environment}")
    logger.info(f"Public URL: {context.settings.public_url}")
    for client in (context.discord, context.nexus):
        if not client.is_configured:
            logger.warning(f"{client.name} OAuth credentials are missing, linking will fail")

    sweep_task = asyncio.create_task(
        _sweep_loop(context, context.settings.sweep_interval_seconds)
    )

    yield

    # Shutdown
    logger.info("Shutting down modlink auth site")
    sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweep_task
    if owns_context:
        try:
            await context.close()
        except Exception as e:
            logger.exception(f"Error during shutdown: {e}")


def create_app(context: AppContext | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    settings = context.settings if context else get_settings()

    # Setup logging first
    setup_logging(settings)

    app = FastAPI(
        title="modlink",
        description="Links Discord accounts to Nexus Mods for linked roles",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )
    app.state.context = context

    # Register routers
    app.include_router(linked_role_router.router)
    app.include_router(metadata_router.router)

    @app.get("/")
    async def root():
        """Root endpoint - minimal service info"""
        return {"service": "modlink", "version": __version__, "status": "running"}

    # Liveness probe, no external dependency
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - _start_time) if _start_time else 0,
        }

    # Readiness, includes a database round trip
    @app.get("/status")
    async def status():
        ctx: AppContext | None = app.state.context
        db_ok = False
        if ctx is not None and ctx.database is not None:
            db_ok = await ctx.database.check_health()
        return {
            "service": "modlink",
            "version": __version__,
            "uptime_seconds": int(time.time() - _start_time) if _start_time else 0,
            "db_connected": db_ok,
            "discord_configured": bool(ctx and ctx.discord.is_configured),
            "nexus_configured": bool(ctx and ctx.nexus.is_configured),
            "environment": settings.environment,
        }

    logger.info("FastAPI application configured")

    return app
