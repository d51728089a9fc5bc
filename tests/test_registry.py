from __future__ import annotations

import json
import os

from api.models.ai_analysis import NO_PROVIDER, ProviderConfig, ProviderKind
from api.services.ai_registry import REGISTRY_OPT, DbRegistryStore, ProviderRegistry
from api.services.encryption import CredentialCipher, decrypt_api_key, encrypt_api_key
from versus import VersusDb


class MemoryStore:
    def __init__(self, data=None):
        self.data = data
        self.saves = 0

    def load(self):
        return self.data

    def save(self, data):
        self.data = json.loads(json.dumps(data))
        self.saves += 1


class RecordingMirror:
    def __init__(self):
        self.pushed = []

    def push_async(self, data):
        self.pushed.append(data)


def test_new_registry_is_unavailable() -> None:
    registry = ProviderRegistry()
    assert registry.active_provider == NO_PROVIDER
    assert registry.is_available() is False
    assert registry.resolve_adapter() is None


def test_availability_rules() -> None:
    registry = ProviderRegistry()

    # selecting a kind with no stored config is allowed
    registry.set_active_provider(ProviderKind.OPENAI)
    assert registry.active_provider == "openai"
    assert registry.is_available() is False

    registry.upsert_provider(ProviderConfig(provider=ProviderKind.OPENAI, credential="sk", model="gpt-4o-mini"))
    assert registry.is_available() is False  # disabled

    registry.upsert_provider(ProviderConfig(provider=ProviderKind.OPENAI, credential="", model="gpt-4o-mini",
                                            enabled=True))
    assert registry.is_available() is False  # no credential

    registry.upsert_provider(ProviderConfig(provider=ProviderKind.OPENAI, credential="sk", model="gpt-4o-mini",
                                            enabled=True))
    assert registry.is_available() is True
    assert registry.resolve_adapter().provider == ProviderKind.OPENAI

    registry.upsert_provider(ProviderConfig(provider=ProviderKind.OLLAMA, model="qwen3:8b", enabled=True))
    registry.set_active_provider("ollama")
    assert registry.is_available() is False  # no base url

    registry.upsert_provider(ProviderConfig(provider=ProviderKind.OLLAMA, base_url="http://localhost:11434",
                                            model="qwen3:8b", enabled=True))
    assert registry.is_available() is True

    registry.set_active_provider("none")
    assert registry.is_available() is False


def test_upsert_replaces_by_kind() -> None:
    registry = ProviderRegistry()
    registry.upsert_provider(ProviderConfig(provider=ProviderKind.ANTHROPIC, model="a"))
    registry.upsert_provider(ProviderConfig(provider=ProviderKind.OPENAI, model="b"))
    registry.upsert_provider(ProviderConfig(provider=ProviderKind.ANTHROPIC, model="c"))

    assert [p.provider for p in registry.providers] == [ProviderKind.ANTHROPIC, ProviderKind.OPENAI]
    assert registry.get_provider("anthropic").model == "c"


def test_every_mutation_persists() -> None:
    store = MemoryStore()
    registry = ProviderRegistry(store=store)
    registry.upsert_provider(ProviderConfig(provider=ProviderKind.OPENAI, credential="sk", enabled=True))
    registry.set_active_provider(ProviderKind.OPENAI)

    assert store.saves == 2
    assert store.data["active_provider"] == "openai"

    reloaded = ProviderRegistry.load(store)
    assert reloaded.to_dict() == registry.to_dict()
    assert reloaded.is_available() is True


def test_invalid_stored_state_falls_back_to_empty() -> None:
    registry = ProviderRegistry.load(MemoryStore({"providers": [{"provider": "gemini"}], "active_provider": "x"}))
    assert registry.providers == []
    assert registry.active_provider == NO_PROVIDER

    class BrokenStore(MemoryStore):
        def load(self):
            raise ValueError("corrupt")

    registry = ProviderRegistry.load(BrokenStore())
    assert registry.providers == []


def test_db_store_encrypts_credentials(db_config) -> None:
    mirror = RecordingMirror()
    store = DbRegistryStore(db_config, mirror)
    registry = ProviderRegistry(store=store)
    registry.upsert_provider(ProviderConfig(provider=ProviderKind.ANTHROPIC, credential="sk-ant-secret",
                                            model="claude-sonnet-4-20250514", enabled=True))
    registry.set_active_provider(ProviderKind.ANTHROPIC)

    dbh = VersusDb(db_config)
    raw = dbh.configGet()[REGISTRY_OPT]
    dbh.close()
    assert "sk-ant-secret" not in raw

    reloaded = ProviderRegistry.load(DbRegistryStore(db_config))
    assert reloaded.get_provider(ProviderKind.ANTHROPIC).credential == "sk-ant-secret"
    assert reloaded.active_provider == "anthropic"

    assert len(mirror.pushed) == 2
    mirrored = mirror.pushed[-1]["aiConfig"]
    assert mirrored["active_provider"] == "anthropic"
    assert "sk-ant-secret" not in json.dumps(mirrored)


def test_db_store_malformed_json_gives_empty_registry(db_config) -> None:
    dbh = VersusDb(db_config)
    dbh.configSet({REGISTRY_OPT: "{not json"})
    dbh.close()

    registry = ProviderRegistry.load(DbRegistryStore(db_config))
    assert registry.providers == []
    assert registry.active_provider == NO_PROVIDER


def test_encryption_round_trip(data_dir) -> None:
    token = encrypt_api_key("sk-live")
    assert token != "sk-live"
    assert decrypt_api_key(token) == "sk-live"
    assert (data_dir / "secret.key").exists()

    assert encrypt_api_key("") == ""
    assert decrypt_api_key("") == ""
    assert decrypt_api_key("garbage") == ""


def test_cipher_creates_private_key_once(tmp_path) -> None:
    key_path = tmp_path / "keys" / "secret.key"
    cipher = CredentialCipher(str(key_path))
    token = cipher.encrypt("sk-live")

    assert os.stat(key_path).st_mode & 0o777 == 0o600
    assert CredentialCipher(str(key_path)).decrypt(token) == "sk-live"


def test_token_from_another_key_reads_as_blank(tmp_path) -> None:
    token = CredentialCipher(str(tmp_path / "a.key")).encrypt("sk-live")
    assert CredentialCipher(str(tmp_path / "b.key")).decrypt(token) == ""
