from __future__ import annotations

import pytest

from api.models.ai_analysis import ProviderConfig, ProviderKind, RelayRequest
from api.services.ai_providers import TEST_PROMPT
from api.services.ai_registry import ProviderRegistry


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Keep the database, secret key and mirror inside the test's tmp dir."""
    path = tmp_path / "data"
    monkeypatch.setenv("VERSUS_DATA", str(path))
    return path


@pytest.fixture
def db_config(data_dir) -> dict:
    return {"__database": str(data_dir / "versus.db"), "__logging": False}


def anthropic_reply(text: str) -> tuple[int, dict]:
    return 200, {"content": [{"type": "text", "text": text}]}


def chat_reply(text: str) -> tuple[int, dict]:
    return 200, {"choices": [{"message": {"role": "assistant", "content": text}}]}


class FakeRelay:
    """Stands in for the provider relay.

    Connection tests are answered according to `reachable`; every other call
    pops the next queued response (a (status, body) tuple or an exception).
    """

    def __init__(self, *responses, reachable: bool = True) -> None:
        self.responses = list(responses)
        self.reachable = reachable
        self.calls: list[RelayRequest] = []
        self.on_call = None

    @property
    def analysis_calls(self) -> list[RelayRequest]:
        return [c for c in self.calls if c.prompt != TEST_PROMPT]

    def __call__(self, body: RelayRequest) -> tuple[int, dict]:
        self.calls.append(body)
        if body.prompt == TEST_PROMPT:
            if self.reachable:
                return 200, {"ok": True}
            raise ConnectionError("connection refused")

        if self.on_call is not None:
            self.on_call(body)

        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def relay() -> FakeRelay:
    return FakeRelay()


@pytest.fixture
def registry(relay) -> ProviderRegistry:
    """In-memory registry with an enabled, active Anthropic provider."""
    reg = ProviderRegistry(relay=relay)
    reg.upsert_provider(ProviderConfig(
        provider=ProviderKind.ANTHROPIC,
        credential="sk-ant-test",
        model="claude-sonnet-4-20250514",
        enabled=True,
    ))
    reg.set_active_provider(ProviderKind.ANTHROPIC)
    return reg
