"""AI provider configuration, relay and analysis routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from api.dependencies import get_registry
from api.models.ai_analysis import (
    ActiveProviderUpdate,
    AnalysisRequest,
    ConnectionTestRequest,
    OllamaModelsRequest,
    ProviderConfig,
    ProviderConfigUpdate,
    RelayRequest,
)
from api.services.ai_registry import ProviderRegistry
from api.services.ai_relay import list_ollama_models, relay_completion

log = logging.getLogger(f"versus.{__name__}")

router = APIRouter(tags=["ai"])


# ── AI Configuration ──────────────────────────────────────────────────────


@router.get("/ai/config")
def get_ai_config(registry: ProviderRegistry = Depends(get_registry)) -> list:
    """Get provider configuration status (no secrets returned)."""
    return ["SUCCESS", {
        "active_provider": registry.active_provider,
        "available": registry.is_available(),
        "providers": [
            {
                "provider": config.provider.value,
                "base_url": config.base_url,
                "model": config.model,
                "enabled": config.enabled,
                "credential_set": bool(config.credential),
            }
            for config in registry.providers
        ],
    }]


@router.put("/ai/config/providers")
def save_provider(body: ProviderConfigUpdate, registry: ProviderRegistry = Depends(get_registry)) -> list:
    """Insert or replace one provider's settings.

    An empty credential keeps the one already stored for that provider.
    """
    config = ProviderConfig.model_validate(body.model_dump())
    existing = registry.get_provider(config.provider)
    if not config.credential and existing is not None:
        config.credential = existing.credential

    try:
        registry.upsert_provider(config)
    except Exception as e:
        log.error(f"Failed to save AI config: {e}")
        return ["ERROR", f"Failed to save AI configuration: {e}"]

    return ["SUCCESS", "AI configuration saved"]


@router.put("/ai/config/active")
def set_active_provider(body: ActiveProviderUpdate, registry: ProviderRegistry = Depends(get_registry)) -> list:
    """Select the active provider, or "none" to switch AI off."""
    try:
        registry.set_active_provider(body.provider)
    except Exception as e:
        log.error(f"Failed to save active provider: {e}")
        return ["ERROR", f"Failed to save AI configuration: {e}"]

    return ["SUCCESS", {"active_provider": registry.active_provider, "available": registry.is_available()}]


@router.post("/ai/config/test")
def test_ai_connection(body: ConnectionTestRequest, registry: ProviderRegistry = Depends(get_registry)) -> list:
    """Test a stored provider with a minimal completion call."""
    if body.provider is None:
        adapter = registry.resolve_adapter()
        if adapter is None:
            return ["ERROR", "No active AI provider is configured"]
    else:
        adapter = registry.adapter_for(body.provider)
        if adapter is None:
            return ["ERROR", f"No configuration stored for {body.provider.value}"]

    if adapter.test_connection():
        return ["SUCCESS", f"Connected to {adapter.provider.value}"]
    return ["ERROR", f"Connection to {adapter.provider.value} failed"]


# ── Relay ─────────────────────────────────────────────────────────────────


@router.post("/ai/relay")
def relay(body: RelayRequest) -> JSONResponse:
    """Forward a completion request to its provider and return the reply verbatim."""
    status, payload = relay_completion(body)
    return JSONResponse(status_code=status, content=payload)


@router.post("/ollama/models")
def ollama_models(body: OllamaModelsRequest) -> JSONResponse:
    """List the models installed on a local Ollama server."""
    status, payload = list_ollama_models(body.base_url)
    return JSONResponse(status_code=status, content=payload)


# ── Analysis ──────────────────────────────────────────────────────────────


@router.post("/ai/analyze")
def analyze(body: AnalysisRequest, registry: ProviderRegistry = Depends(get_registry)) -> dict:
    """Run a single analysis against the active provider."""
    adapter = registry.resolve_adapter()
    if adapter is None:
        raise HTTPException(status_code=409, detail="AI service not configured")

    result = adapter.analyze(body)
    return result.model_dump(exclude_none=True)
