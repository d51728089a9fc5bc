"""FastAPI application factory for Versus."""

import logging
import queue
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.config import default_config
from api.middleware.security_headers import SecurityHeadersMiddleware
from api.routers import ai, comparisons, contenders, data, system
from api.services.ai_registry import DbRegistryStore, ProviderRegistry
from api.services.data_mirror import DataMirror
from versus import VersusDb, __version__
from versus.logger import logListenerSetup, logWorkerSetup

log = logging.getLogger(f"versus.{__name__}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: initialize shared state on startup."""
    config = app.state.init_config
    logging_queue = app.state.init_logging_queue

    listener = None
    if app.state.init_log_listener:
        listener = logListenerSetup(logging_queue, config)
    logWorkerSetup(logging_queue)

    # Initialize database
    try:
        dbh = VersusDb(config, init=True)
        dbh.close()
    except Exception as e:
        log.critical(f"Failed to initialize database: {e}", exc_info=True)
        raise

    mirror = app.state.init_mirror or DataMirror()
    registry = ProviderRegistry.load(DbRegistryStore(config, mirror), relay=app.state.init_relay)

    # Set up app state
    app.state.config = config
    app.state.logging_queue = logging_queue
    app.state.mirror = mirror
    app.state.registry = registry
    app.state.sessions = {}

    log.info(f"Versus {__version__} API ready. Active AI provider: {registry.active_provider}")

    yield

    # Cleanup on shutdown
    for session in app.state.sessions.values():
        session.close()
    app.state.sessions.clear()
    log.info("Versus API shutting down.")
    if listener is not None:
        listener.stop()


def create_app(
    config: dict | None = None,
    web_config: dict | None = None,
    logging_queue=None,
    mirror: DataMirror | None = None,
    relay=None,
    start_log_listener: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Versus configuration dict ('__database' etc.)
        web_config: web server configuration (host, port, root, cors_origins)
        logging_queue: queue for log records
        mirror: file mirror; defaults to <data dir>/mirror
        relay: provider relay for adapters; defaults to the in-process relay
        start_log_listener: start the console/file log listener

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Versus",
        description="Structured comparisons with AI-assisted property extraction",
        version=__version__,
        lifespan=lifespan,
    )

    # Store initialization data for lifespan handler
    app.state.init_config = {**default_config(), **(config or {})}
    app.state.init_logging_queue = logging_queue or queue.Queue()
    app.state.init_mirror = mirror
    app.state.init_relay = relay
    app.state.init_log_listener = start_log_listener

    # CORS middleware
    cors_origins = ["*"]
    if web_config:
        configured_origins = web_config.get('cors_origins', [])
        if configured_origins:
            cors_origins = configured_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # Mount API routers under /api/v1
    app.include_router(system.router, prefix="/api/v1")
    app.include_router(comparisons.router, prefix="/api/v1")
    app.include_router(contenders.router, prefix="/api/v1")
    app.include_router(ai.router, prefix="/api/v1")
    app.include_router(data.router, prefix="/api/v1")

    return app
