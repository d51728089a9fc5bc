from __future__ import annotations

import pytest

from api.models.ai_analysis import RelayRequest
from api.services import ai_relay
from api.services.ai_relay import list_ollama_models, parse_data_url, relay_completion


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: dict | None = None, text: str = "", reason: str = "OK"):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text
        self.reason = reason

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> dict:
        return self._payload


@pytest.fixture
def posts(monkeypatch):
    seen: list[dict] = []
    replies: list = []

    def fake_post(url, headers=None, json=None, timeout=None):
        seen.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        reply = replies.pop(0) if replies else FakeResponse(payload={"id": "resp"})
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(ai_relay.http_requests, "post", fake_post)
    return seen, replies


@pytest.mark.parametrize("body, error", [
    ({"prompt": "hi"}, "Provider required"),
    ({"provider": "anthropic", "prompt": "hi"}, "API key required for this provider"),
    ({"provider": "openai", "prompt": "hi"}, "API key required for this provider"),
    ({"provider": "ollama", "prompt": "hi"}, "Base URL required for Ollama"),
    ({"provider": "gemini", "apiKey": "k", "prompt": "hi"}, "Unsupported provider"),
])
def test_validation_errors_make_no_upstream_call(posts, body, error) -> None:
    seen, _ = posts
    status, payload = relay_completion(RelayRequest.model_validate(body))
    assert status == 400
    assert payload == {"error": error}
    assert seen == []


def test_anthropic_text_request(posts) -> None:
    seen, _ = posts
    status, payload = relay_completion(RelayRequest(
        provider="anthropic", credential="sk-ant", model="claude-sonnet-4-20250514", prompt="hello", max_tokens=10,
    ))

    assert status == 200
    assert payload == {"id": "resp"}
    call = seen[0]
    assert call["url"] == ai_relay.ANTHROPIC_URL
    assert call["headers"]["x-api-key"] == "sk-ant"
    assert call["headers"]["anthropic-version"] == "2023-06-01"
    assert call["headers"]["anthropic-beta"] == "pdfs-2024-09-25"
    assert call["json"] == {
        "model": "claude-sonnet-4-20250514",
        "max_tokens": 10,
        "messages": [{"role": "user", "content": "hello"}],
    }
    assert call["timeout"] == ai_relay.RELAY_TIMEOUT_SECONDS


def test_anthropic_document_request(posts) -> None:
    seen, _ = posts
    relay_completion(RelayRequest.model_validate({
        "provider": "anthropic",
        "apiKey": "sk-ant",
        "model": "claude-3-5-sonnet-20241022",
        "prompt": "extract",
        "maxTokens": 2000,
        "file": "data:application/pdf;base64,JVBERi0=",
    }))

    content = seen[0]["json"]["messages"][0]["content"]
    assert content[0] == {
        "type": "document",
        "source": {"type": "base64", "media_type": "application/pdf", "data": "JVBERi0="},
    }
    assert content[1] == {"type": "text", "text": "extract"}
    assert seen[0]["json"]["max_tokens"] == 2000


def test_document_with_incapable_model_is_rejected(posts) -> None:
    seen, _ = posts
    status, payload = relay_completion(RelayRequest(
        provider="anthropic", credential="k", model="claude-3-haiku-20240307", prompt="x",
        attachment="data:application/pdf;base64,AAAA",
    ))
    assert status == 400
    assert "claude-3-haiku-20240307" in payload["error"]
    assert "claude-3-5-sonnet-20241022" in payload["supportedModels"]
    assert seen == []


def test_openai_and_ollama_urls_and_defaults(posts) -> None:
    seen, _ = posts
    relay_completion(RelayRequest(provider="openai", credential="sk-oa", prompt="x"))
    relay_completion(RelayRequest(provider="ollama", base_url="http://localhost:11434/", prompt="x"))

    assert seen[0]["url"] == ai_relay.OPENAI_URL
    assert seen[0]["headers"]["Authorization"] == "Bearer sk-oa"
    assert seen[0]["json"]["model"] == "gpt-4o-mini"
    assert seen[1]["url"] == "http://localhost:11434/v1/chat/completions"
    assert "Authorization" not in seen[1]["headers"]
    assert seen[1]["json"]["model"] == "qwen3:8b"


def test_upstream_error_is_forwarded(posts) -> None:
    _, replies = posts
    replies.append(FakeResponse(401, text='{"error":{"message":"invalid x-api-key"}}', reason="Unauthorized"))

    status, payload = relay_completion(RelayRequest(provider="anthropic", credential="bad", model="m", prompt="x"))

    assert status == 401
    assert payload["error"] == "API request failed: 401 Unauthorized"
    assert "invalid x-api-key" in payload["details"]
    assert payload["provider"] == "anthropic"
    assert payload["model"] == "m"


def test_transport_failure_is_500(posts) -> None:
    _, replies = posts
    replies.append(ConnectionError("boom"))

    status, payload = relay_completion(RelayRequest(provider="openai", credential="k", prompt="x"))
    assert status == 500
    assert payload == {"error": "Internal server error", "details": "boom"}


def test_credential_never_logged(posts, caplog) -> None:
    caplog.set_level("DEBUG", logger="versus")
    relay_completion(RelayRequest(provider="openai", credential="sk-secret-value", prompt="x"))
    assert "sk-secret-value" not in caplog.text
    assert "credential_set=True" in caplog.text


def test_parse_data_url() -> None:
    assert parse_data_url("data:text/plain;base64,aGk=") == ("text/plain", "aGk=")
    assert parse_data_url("not a data url") == ("application/octet-stream", "")


def test_list_ollama_models(monkeypatch) -> None:
    seen = []

    def fake_get(url, headers=None, timeout=None):
        seen.append(url)
        return FakeResponse(payload={"models": [
            {"name": "qwen3:8b", "size": 5200000000, "modified_at": "2025-05-01T10:00:00Z",
             "details": {"family": "qwen3"}},
            {"name": "mystery", "size": 1, "modified_at": "2025-01-01T00:00:00Z"},
        ]})

    monkeypatch.setattr(ai_relay.http_requests, "get", fake_get)
    status, payload = list_ollama_models("http://localhost:11434")

    assert status == 200
    assert seen == ["http://localhost:11434/api/tags"]
    assert payload["models"] == [
        {"name": "qwen3:8b", "size": 5200000000, "modified": "2025-05-01T10:00:00Z", "family": "qwen3"},
        {"name": "mystery", "size": 1, "modified": "2025-01-01T00:00:00Z", "family": "unknown"},
    ]


def test_list_ollama_models_failures(monkeypatch) -> None:
    assert list_ollama_models("")[0] == 400

    def refuse(url, headers=None, timeout=None):
        raise ConnectionError("refused")

    monkeypatch.setattr(ai_relay.http_requests, "get", refuse)
    status, payload = list_ollama_models("http://localhost:11434")
    assert status == 500
    assert payload["error"] == "Failed to fetch models from Ollama"
