"""Server-side relay to AI provider completion endpoints.

Adapters never talk to a provider directly; they hand a RelayRequest to
relay_completion(), which is also what the /ai/relay route serves. The relay
performs exactly one upstream call and returns the provider's JSON verbatim,
or an error body with a non-2xx status.
"""

import logging
import re

import requests as http_requests

from api.models.ai_analysis import ProviderKind, RelayRequest

log = logging.getLogger(f"versus.{__name__}")

RELAY_TIMEOUT_SECONDS = 120

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"

# Default models per provider, used when the request names none
MODELS = {
    ProviderKind.ANTHROPIC: "claude-sonnet-4-20250514",
    ProviderKind.OPENAI: "gpt-4o-mini",
    ProviderKind.OLLAMA: "qwen3:8b",
}
DOCUMENT_MODEL = "claude-3-5-sonnet-20241022"

# Models able to read binary documents, per provider and media type
DOCUMENT_CAPABLE_MODELS = {
    ProviderKind.ANTHROPIC: {
        "application/pdf": [
            "claude-3-5-sonnet-20241022",
            "claude-3-5-sonnet-20240620",
            "claude-sonnet-4-20250514",
        ],
        "text/plain": [
            "claude-3-5-sonnet-20241022",
            "claude-3-5-sonnet-20240620",
            "claude-sonnet-4-20250514",
        ],
    },
}

_DATA_URL = re.compile(r'^data:([^;,]+)?(?:;[^,]*)?,(.*)$', re.DOTALL)


def parse_data_url(data_url: str) -> tuple[str, str]:
    """Split a data URL into its media type and payload.

    Returns:
        tuple: (media type, base64 payload); media type defaults to application/octet-stream
    """
    match = _DATA_URL.match(data_url or "")
    if not match:
        return "application/octet-stream", ""
    return match.group(1) or "application/octet-stream", match.group(2)


def capable_models(provider: ProviderKind, media_type: str) -> list[str]:
    """Models of a provider that accept a document of the given media type."""
    return list(DOCUMENT_CAPABLE_MODELS.get(provider, {}).get(media_type, []))


def attachment_error(provider: ProviderKind, model: str, media_type: str) -> str | None:
    """Human-readable reason a model cannot read an attachment, or None if it can."""
    supported = capable_models(provider, media_type)
    if model in supported:
        return None
    if supported:
        return (f'Model "{model}" does not support {media_type} files. '
                f'Please use one of: {", ".join(supported)}.')
    return f'Model "{model}" cannot process {media_type} attachments.'


def _anthropic_call(body: RelayRequest):
    headers = {
        "Content-Type": "application/json",
        "x-api-key": body.credential,
        "anthropic-version": "2023-06-01",
        "anthropic-beta": "pdfs-2024-09-25",
    }

    if body.attachment and body.attachment.startswith("data:"):
        media_type, payload = parse_data_url(body.attachment)
        model = body.model or DOCUMENT_MODEL
        log.debug(f"Document relay: media_type={media_type}, payload_chars={len(payload)}, model={model}")

        error = attachment_error(ProviderKind.ANTHROPIC, model, media_type)
        if error:
            return 400, {
                "error": error,
                "supportedModels": capable_models(ProviderKind.ANTHROPIC, media_type),
            }

        content = [
            {
                "type": "document",
                "source": {"type": "base64", "media_type": media_type, "data": payload},
            },
            {"type": "text", "text": body.prompt},
        ]
    else:
        model = body.model or MODELS[ProviderKind.ANTHROPIC]
        content = body.prompt

    return ANTHROPIC_URL, headers, {
        "model": model,
        "max_tokens": body.max_tokens,
        "messages": [{"role": "user", "content": content}],
    }


def _chat_completions_call(url: str, headers: dict, model: str, body: RelayRequest) -> tuple[str, dict, dict]:
    return url, headers, {
        "model": model,
        "messages": [{"role": "user", "content": body.prompt}],
        "max_tokens": body.max_tokens,
    }


def _build_upstream(provider: ProviderKind, body: RelayRequest):
    """Upstream (url, headers, json) for a provider, or (status, error body) to return early."""
    if provider == ProviderKind.ANTHROPIC:
        return _anthropic_call(body)

    if body.attachment and body.attachment.startswith("data:"):
        media_type, _ = parse_data_url(body.attachment)
        model = body.model or MODELS[provider]
        error = attachment_error(provider, model, media_type)
        if error:
            return 400, {"error": error, "supportedModels": capable_models(provider, media_type)}

    if provider == ProviderKind.OPENAI:
        return _chat_completions_call(
            OPENAI_URL,
            {"Content-Type": "application/json", "Authorization": f"Bearer {body.credential}"},
            body.model or MODELS[ProviderKind.OPENAI],
            body,
        )

    return _chat_completions_call(
        f"{body.base_url.rstrip('/')}/v1/chat/completions",
        {"Content-Type": "application/json"},
        body.model or MODELS[ProviderKind.OLLAMA],
        body,
    )


def relay_completion(body: RelayRequest) -> tuple[int, dict]:
    """Forward one completion request to its provider.

    Args:
        body: relay request

    Returns:
        tuple: (HTTP status, JSON body). On success the body is the provider's
        response unchanged; otherwise {error, details?, provider?, model?}.
    """
    log.info(f"Relay request: provider={body.provider}, model={body.model}, "
             f"credential_set={bool(body.credential)}, base_url={body.base_url or '-'}, "
             f"attachment={bool(body.attachment)}")

    if not body.provider:
        return 400, {"error": "Provider required"}

    try:
        provider = ProviderKind(body.provider)
    except ValueError:
        return 400, {"error": "Unsupported provider"}

    if provider != ProviderKind.OLLAMA and not body.credential:
        return 400, {"error": "API key required for this provider"}

    if provider == ProviderKind.OLLAMA and not body.base_url:
        return 400, {"error": "Base URL required for Ollama"}

    try:
        upstream = _build_upstream(provider, body)
        if isinstance(upstream[0], int):
            return upstream

        url, headers, payload = upstream
        resp = http_requests.post(url, headers=headers, json=payload, timeout=RELAY_TIMEOUT_SECONDS)

        if not resp.ok:
            log.error(f"Provider API error: status={resp.status_code}, provider={provider.value}, "
                      f"model={payload.get('model')}, body={resp.text[:500]}")
            return resp.status_code, {
                "error": f"API request failed: {resp.status_code} {resp.reason}",
                "details": resp.text,
                "provider": provider.value,
                "model": payload.get("model"),
            }

        return resp.status_code, resp.json()

    except Exception as e:
        log.error(f"Relay error: {e}", exc_info=True)
        return 500, {"error": "Internal server error", "details": str(e)}


def list_ollama_models(base_url: str) -> tuple[int, dict]:
    """List the models installed on a local Ollama server.

    Returns:
        tuple: (HTTP status, {models: [{name, size, modified, family}]} or {error, details?})
    """
    if not base_url:
        return 400, {"error": "Base URL required"}

    try:
        resp = http_requests.get(
            f"{base_url.rstrip('/')}/api/tags",
            headers={"Content-Type": "application/json"},
            timeout=RELAY_TIMEOUT_SECONDS,
        )
        if not resp.ok:
            return resp.status_code, {
                "error": f"Failed to fetch models: {resp.status_code} {resp.reason}",
            }

        data = resp.json()
        models = [
            {
                "name": model.get("name"),
                "size": model.get("size"),
                "modified": model.get("modified_at"),
                "family": (model.get("details") or {}).get("family") or "unknown",
            }
            for model in (data.get("models") or [])
        ]
        return 200, {"models": models}

    except Exception as e:
        log.error(f"Ollama models API error: {e}")
        return 500, {"error": "Failed to fetch models from Ollama", "details": str(e)}
