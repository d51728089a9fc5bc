"""Provider registry and active-provider selection.

One ProviderRegistry is built at application start-up and shared by
reference with the routes, adapters and analysis sessions. Every mutation
persists the whole registry straight away.
"""

import json
import logging
from typing import Protocol

from api.models.ai_analysis import NO_PROVIDER, ProviderConfig, ProviderKind
from api.services.ai_providers import ProviderAdapter, Relay
from api.services.data_mirror import DataMirror
from api.services.encryption import decrypt_api_key, encrypt_api_key
from versus import VersusDb

log = logging.getLogger(f"versus.{__name__}")

REGISTRY_OPT = "AI:registry"


class RegistryStore(Protocol):
    def load(self) -> dict | None:
        """Return the stored registry dict, or None if nothing is stored."""
        ...

    def save(self, data: dict) -> None:
        """Durably store the registry dict."""
        ...


class ProviderRegistry:
    """Known provider configurations plus the active-provider selector.

    The active selection may point at a missing or disabled provider; that
    only makes the service unavailable, it is never an error.
    """

    def __init__(self, store: RegistryStore | None = None, relay: Relay | None = None) -> None:
        self.providers: list[ProviderConfig] = []
        self.active_provider: str = NO_PROVIDER
        self.store = store
        self.relay = relay

    @classmethod
    def load(cls, store: RegistryStore, relay: Relay | None = None) -> "ProviderRegistry":
        """Build a registry from persisted state, falling back to an empty one."""
        registry = cls(store=store, relay=relay)
        try:
            data = store.load()
        except Exception as e:
            log.error(f"Failed to load AI config: {e}")
            data = None

        if data:
            try:
                registry._apply(data)
            except Exception as e:
                log.error(f"Stored AI config is invalid, starting empty: {e}")
                registry.providers = []
                registry.active_provider = NO_PROVIDER
        return registry

    def _apply(self, data: dict) -> None:
        providers = []
        for item in data.get("providers") or []:
            config = ProviderConfig.model_validate(item)
            # Last entry wins if the stored list ever repeats a kind
            providers = [p for p in providers if p.provider != config.provider]
            providers.append(config)
        active = data.get("active_provider") or NO_PROVIDER
        if active != NO_PROVIDER:
            active = ProviderKind(active).value
        self.providers = providers
        self.active_provider = active

    def to_dict(self) -> dict:
        return {
            "providers": [p.model_dump(mode="json") for p in self.providers],
            "active_provider": self.active_provider,
        }

    def persist(self) -> None:
        if self.store is None:
            return
        self.store.save(self.to_dict())

    def get_provider(self, kind: ProviderKind | str) -> ProviderConfig | None:
        kind = ProviderKind(kind)
        for config in self.providers:
            if config.provider == kind:
                return config
        return None

    def upsert_provider(self, config: ProviderConfig) -> None:
        """Insert or replace the configuration for config.provider."""
        for idx, existing in enumerate(self.providers):
            if existing.provider == config.provider:
                self.providers[idx] = config
                break
        else:
            self.providers.append(config)
        self.persist()

    def set_active_provider(self, kind: ProviderKind | str) -> None:
        """Select the active provider, or "none"."""
        if isinstance(kind, ProviderKind):
            kind = kind.value
        if kind != NO_PROVIDER:
            kind = ProviderKind(kind).value
        self.active_provider = kind
        self.persist()

    def active_config(self) -> ProviderConfig | None:
        if self.active_provider == NO_PROVIDER:
            return None
        return self.get_provider(self.active_provider)

    def is_available(self) -> bool:
        config = self.active_config()
        if config is None or not config.enabled:
            return False
        if config.is_local:
            return bool(config.base_url.strip())
        return bool(config.credential.strip())

    def adapter_for(self, kind: ProviderKind | str) -> ProviderAdapter | None:
        """Adapter for any stored provider, active or not."""
        config = self.get_provider(kind)
        if config is None:
            return None
        return ProviderAdapter(config, relay=self.relay)

    def resolve_adapter(self) -> ProviderAdapter | None:
        """Adapter bound to the active provider, or None when unavailable."""
        if not self.is_available():
            return None
        return ProviderAdapter(self.active_config(), relay=self.relay)


class DbRegistryStore:
    """Registry persistence in the config table, mirrored to the file store.

    Credentials are encrypted before they are written anywhere.
    """

    def __init__(self, config: dict, mirror: DataMirror | None = None) -> None:
        self.config = config
        self.mirror = mirror

    def load(self) -> dict | None:
        dbh = VersusDb(self.config)
        try:
            raw = dbh.configGet().get(REGISTRY_OPT)
        finally:
            dbh.close()
        if not raw:
            return None

        data = json.loads(raw)
        for item in data.get("providers") or []:
            item["credential"] = decrypt_api_key(item.get("credential", ""))
        return data

    def save(self, data: dict) -> None:
        stored = json.loads(json.dumps(data))
        for item in stored.get("providers") or []:
            item["credential"] = encrypt_api_key(item.get("credential", ""))

        dbh = VersusDb(self.config)
        try:
            dbh.configSet({REGISTRY_OPT: json.dumps(stored)})
        finally:
            dbh.close()

        if self.mirror is not None:
            self.mirror.push_async({"aiConfig": stored})
