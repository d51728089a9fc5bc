"""Provider adapters: one analyze/test_connection contract over every provider kind.

A ProviderAdapter is bound to a single ProviderConfig and dispatches on its
provider kind wherever providers differ (how the reply text is pulled out of
the response, which models can read documents). Every network call goes
through the relay, exactly once per analysis, with no retry.
"""

import json
import logging
from typing import Callable

from api.models.ai_analysis import (
    AnalysisPhase,
    AnalysisRequest,
    AnalysisResult,
    ProviderConfig,
    ProviderKind,
    RelayRequest,
)
from api.services.ai_normalize import normalize_response
from api.services.ai_prompts import build_prompt
from api.services.ai_relay import attachment_error, capable_models, parse_data_url, relay_completion

log = logging.getLogger(f"versus.{__name__}")

TEXT_MAX_TOKENS = 1000
DOCUMENT_MAX_TOKENS = 2000
TEST_MAX_TOKENS = 10
TEST_PROMPT = "Test connection"

Relay = Callable[[RelayRequest], tuple[int, dict]]
PhaseObserver = Callable[[AnalysisPhase, str], None]


def _response_text(provider: ProviderKind, data: dict) -> str:
    """Pull the generated text out of a provider response."""
    if provider == ProviderKind.ANTHROPIC:
        return data["content"][0]["text"]
    # openai and ollama share the chat completions shape
    return data["choices"][0]["message"]["content"]


def _error_message(status: int, body: dict) -> str:
    """Best human-readable message from a relay error body."""
    message = body.get("error") or f"API request failed: {status}"
    if isinstance(message, dict):
        message = message.get("message") or json.dumps(message)

    details = body.get("details")
    if isinstance(details, str) and details:
        try:
            parsed = json.loads(details)
        except json.JSONDecodeError:
            return details
        if isinstance(parsed, dict):
            upstream = parsed.get("error")
            if isinstance(upstream, dict) and upstream.get("message"):
                return upstream["message"]
            if isinstance(upstream, str) and upstream:
                return upstream
    return message


class ProviderAdapter:
    """Analysis client for one configured provider.

    Args:
        config: provider settings
        relay: callable performing the relayed provider call; defaults to the
               in-process relay service
    """

    def __init__(self, config: ProviderConfig, relay: Relay | None = None) -> None:
        self.config = config
        self.relay = relay or relay_completion

    @property
    def provider(self) -> ProviderKind:
        return self.config.provider

    def is_configured(self) -> bool:
        if not self.config.enabled:
            return False
        if self.config.is_local:
            return bool(self.config.base_url)
        return bool(self.config.credential)

    def _relay_request(self, prompt: str, max_tokens: int, attachment: str | None = None) -> RelayRequest:
        return RelayRequest(
            provider=self.provider.value,
            credential=self.config.credential,
            base_url=self.config.base_url,
            model=self.config.model,
            prompt=prompt,
            max_tokens=max_tokens,
            attachment=attachment,
        )

    def analyze(self, request: AnalysisRequest, notify: PhaseObserver | None = None) -> AnalysisResult:
        """Run one analysis request against the provider.

        Never raises; configuration, capability, transport and parse problems
        come back as failed results.
        """
        def _phase(phase: AnalysisPhase) -> None:
            if notify is None:
                return
            try:
                notify(phase, self.provider.value)
            except Exception as e:
                log.debug(f"Phase observer failed: {e}")

        def _fail(result: AnalysisResult) -> AnalysisResult:
            _phase(AnalysisPhase.ERROR)
            return result

        if not self.is_configured():
            return _fail(AnalysisResult.failure("AI service not configured"))

        _phase(AnalysisPhase.PREPARING)
        prompt = build_prompt(request)
        log.debug(f"Built {request.kind.value} prompt ({len(prompt)} chars) for {self.provider.value}")

        attachment = None
        max_tokens = TEXT_MAX_TOKENS
        if request.is_binary:
            media_type, _ = parse_data_url(request.content)
            error = attachment_error(self.provider, self.config.model, media_type)
            if error:
                return _fail(AnalysisResult.failure(
                    error,
                    supported_models=capable_models(self.provider, media_type),
                ))
            attachment = request.content
            max_tokens = DOCUMENT_MAX_TOKENS

        _phase(AnalysisPhase.CONTACTING)
        try:
            status, body = self.relay(self._relay_request(prompt, max_tokens, attachment))
        except Exception as e:
            log.error(f"{self.provider.value} request failed: {e}")
            return _fail(AnalysisResult.failure(str(e) or "Unknown error"))

        if not 200 <= status < 300:
            return _fail(AnalysisResult.failure(
                _error_message(status, body),
                status_code=status,
                details=json.dumps(body),
            ))

        _phase(AnalysisPhase.PROCESSING)
        try:
            raw_text = _response_text(self.provider, body)
        except (KeyError, IndexError, TypeError) as e:
            log.warning(f"Unexpected {self.provider.value} response shape: {e}")
            return _fail(AnalysisResult.failure("Unexpected response from provider", details=json.dumps(body)))

        result = normalize_response(raw_text, request.kind)
        _phase(AnalysisPhase.DONE if result.success else AnalysisPhase.ERROR)
        return result

    def test_connection(self) -> bool:
        """Cheap round trip to the provider. Never raises."""
        try:
            status, _ = self.relay(self._relay_request(TEST_PROMPT, TEST_MAX_TOKENS))
            return 200 <= status < 300
        except Exception as e:
            log.info(f"Connection test for {self.provider.value} failed: {e}")
            return False
