"""FastAPI dependency injection providers."""

from fastapi import Request

from api.services.ai_registry import ProviderRegistry
from api.services.data_mirror import DataMirror
from versus import VersusDb


def get_config(request: Request) -> dict:
    """Get the Versus configuration from app state."""
    return request.app.state.config


def get_db(request: Request):
    """Create a VersusDb instance per request.

    The SQLite connection is opened in the worker thread that runs the
    endpoint and closed once the response has been produced.
    """
    dbh = VersusDb(request.app.state.config)
    try:
        yield dbh
    finally:
        dbh.close()


def get_registry(request: Request) -> ProviderRegistry:
    """Get the shared provider registry."""
    return request.app.state.registry


def get_mirror(request: Request) -> DataMirror:
    """Get the file mirror."""
    return request.app.state.mirror


def get_sessions(request: Request) -> dict:
    """Get the open analysis sessions, keyed by contender ID."""
    return request.app.state.sessions
