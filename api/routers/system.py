"""System API routes."""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_registry
from api.services.ai_registry import ProviderRegistry
from versus import __version__

log = logging.getLogger(f"versus.{__name__}")

router = APIRouter(tags=["system"])


@router.get("/ping")
def ping() -> list:
    """Health check endpoint."""
    return ["SUCCESS", __version__]


@router.get("/status")
def status(registry: ProviderRegistry = Depends(get_registry)) -> dict:
    """Version and AI availability, for the client's header badge."""
    return {
        "version": __version__,
        "ai_available": registry.is_available(),
        "active_provider": registry.active_provider,
    }
