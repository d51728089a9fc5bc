"""FastAPI application configuration."""

import os

from pydantic import BaseModel

from versus import VersusHelpers


class WebConfig(BaseModel):
    """Web server configuration."""
    host: str = "127.0.0.1"
    port: int = 5001
    root: str = "/"
    cors_origins: list[str] = []


def default_config() -> dict:
    """Core Versus configuration with paths resolved against the data directory."""
    return {
        '_debug': False,
        '__logging': True,
        '__database': os.path.join(VersusHelpers.dataPath(), "versus.db"),
    }
