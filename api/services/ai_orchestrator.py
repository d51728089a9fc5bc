"""AI-assisted property filling for a single contender edit session.

An AnalysisSession validates that analysis can run, checks the active
provider is reachable, runs one analysis per contender source (each
attachment, or the contender's text), merges returned values into the
contender's properties and remembers what changed so the user can undo a
single field or the whole batch.

State: idle -> validating -> running -> merged | failed (idle again on cancel).
"""

import logging
import re
import threading
from copy import deepcopy
from datetime import datetime
from enum import Enum
from typing import Callable

from api.models.ai_analysis import (
    PROVIDER_LABELS,
    AnalysisContext,
    AnalysisKind,
    AnalysisPhase,
    AnalysisRequest,
    AnalysisResult,
    PropertyDefinitionRef,
    ProviderConfig,
)
from api.services.ai_normalize import PARSE_ERROR
from api.services.ai_providers import PhaseObserver
from api.services.ai_registry import ProviderRegistry

log = logging.getLogger(f"versus.{__name__}")

NOT_CONFIGURED = "AI service is not configured. Choose an active provider in AI settings."
NO_PROPERTIES = "This comparison has no properties to fill in"
NO_CONTENT = "Nothing to analyze: add a name, description, link or attachment"
NO_VALUES = "No property values could be extracted"
ALREADY_RUNNING = "An analysis is already running for this contender"

_NUMBER = re.compile(r'-?\d+(?:\.\d+)?')
_MISSING = object()


class SessionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    MERGED = "merged"
    FAILED = "failed"


def _to_number(value) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    match = _NUMBER.search(str(value).replace(",", ""))
    if not match:
        return None
    number = float(match.group(0))
    return int(number) if number.is_integer() else number


def coerce_value(prop_type: str, value) -> str | int | float | None:
    """Convert a provider value to the stored representation for a property type.

    Lists are only accepted for text properties, joined with commas.

    Returns:
        the converted value, or None if it cannot be represented
    """
    if value is None:
        return None

    if isinstance(value, dict):
        return None
    if isinstance(value, list):
        if prop_type != "text":
            return None
        value = ", ".join(str(item).strip() for item in value if item is not None and str(item).strip())

    if prop_type == "number":
        return _to_number(value)

    if prop_type == "rating":
        number = _to_number(value)
        if number is None:
            return None
        return min(5, max(1, int(round(number))))

    if prop_type == "datetime":
        try:
            return datetime.fromisoformat(str(value).strip()).isoformat()
        except ValueError:
            return None

    text = str(value).strip()
    return text or None


def connection_hint(config: ProviderConfig) -> str:
    """User-facing diagnostic for a failed connectivity check."""
    if config.is_local:
        return (f"Could not reach Ollama at {config.base_url}. "
                "Is the local server running and reachable?")
    label = PROVIDER_LABELS.get(config.provider, config.provider.value)
    return f"Could not reach {label}. Check your network connection and API key."


class AnalysisSession:
    """Analysis state for one contender while it is being edited.

    Args:
        registry: shared provider registry
        comparison: comparison dict owning the contender (uses name, properties)
        contender: contender dict; its 'properties' map is updated in place
        save: persists the contender after every change
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        comparison: dict,
        contender: dict,
        save: Callable[[dict], None],
    ) -> None:
        self.registry = registry
        self.comparison = comparison
        self.contender = contender
        self.contender.setdefault("properties", {})
        self.save = save

        self.state = SessionState.IDLE
        self.phase: str | None = None
        self.provider: str | None = None
        self.error: str | None = None
        self.changed: set[str] = set()
        self.snapshot: dict | None = None
        # set when a run starts; the next merge opens a new undo batch
        self._new_batch = False

        self._observers: list[PhaseObserver] = []
        self._lock = threading.Lock()
        self._cancel = threading.Event()

    #
    # Observers
    #

    def add_observer(self, callback: PhaseObserver) -> None:
        self._observers.append(callback)

    def remove_observer(self, callback: PhaseObserver) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify(self, phase: AnalysisPhase, provider: str) -> None:
        self.phase = phase.value
        self.provider = provider
        for callback in list(self._observers):
            try:
                callback(phase, provider)
            except Exception as e:
                log.debug(f"Analysis observer failed: {e}")

    #
    # Validation
    #

    @property
    def definitions(self) -> list[dict]:
        return self.comparison.get("properties") or []

    def has_content(self) -> bool:
        if any(a.get("data") for a in self.contender.get("attachments") or []):
            return True
        if any(self._link_url(h).strip() for h in self.contender.get("hyperlinks") or []):
            return True
        for field in ("name", "description"):
            if (self.contender.get(field) or "").strip():
                return True
        return False

    def validate(self) -> str | None:
        """Reason analysis cannot start, or None when it can."""
        config = self.registry.active_config()
        if config is None or not config.enabled:
            return NOT_CONFIGURED

        if config.is_local:
            if not config.base_url.strip() or not config.model.strip():
                return "Ollama needs a server URL and a model. Update it in AI settings."
        elif not config.credential.strip() or not config.model.strip():
            label = PROVIDER_LABELS.get(config.provider, config.provider.value)
            return f"{label} needs an API key and a model. Update it in AI settings."

        if not self.registry.is_available():
            return NOT_CONFIGURED

        if not self.definitions:
            return NO_PROPERTIES

        if not self.has_content():
            return NO_CONTENT

        return None

    #
    # Running
    #

    @staticmethod
    def _link_url(link) -> str:
        if isinstance(link, dict):
            return link.get("url") or ""
        return str(link or "")

    def _text_content(self) -> str:
        lines = []
        if (self.contender.get("name") or "").strip():
            lines.append(f"Name: {self.contender['name'].strip()}")
        if (self.contender.get("description") or "").strip():
            lines.append(f"Description: {self.contender['description'].strip()}")
        links = [self._link_url(h).strip() for h in self.contender.get("hyperlinks") or []]
        links = [link for link in links if link]
        if links:
            lines.append("Links:")
            lines.extend(f"- {link}" for link in links)
        return "\n".join(lines)

    def _requests(self, kind: AnalysisKind, custom_instructions: str | None) -> list[AnalysisRequest]:
        base_context = dict(
            existing_properties=[PropertyDefinitionRef(name=d["name"], type=d.get("type", "text"))
                                 for d in self.definitions],
            comparison_name=self.comparison.get("name"),
            contender_name=self.contender.get("name"),
            custom_instructions=custom_instructions,
        )

        attachments = [a for a in self.contender.get("attachments") or [] if a.get("data")]
        if attachments:
            return [
                AnalysisRequest(
                    kind=kind,
                    content=attachment["data"],
                    context=AnalysisContext(attachment_type=attachment.get("type"), **base_context),
                )
                for attachment in attachments
            ]

        return [AnalysisRequest(kind=kind, content=self._text_content(), context=AnalysisContext(**base_context))]

    def _matched_values(self, result: AnalysisResult) -> dict:
        """Returned values keyed by property key; names must match a definition exactly."""
        by_name = {d["name"]: d for d in self.definitions}
        pairs = []
        if result.properties:
            pairs = [(p.name, p.value) for p in result.properties]
        elif result.suggestions:
            pairs = [(s.property, s.value) for s in result.suggestions]

        values = {}
        for name, raw in pairs:
            definition = by_name.get(name)
            if definition is None:
                continue
            value = coerce_value(definition.get("type", "text"), raw)
            if value is not None:
                values[definition["key"]] = value
        return values

    def merge(self, result: AnalysisResult) -> dict:
        """Merge an analysis result into the contender and persist it.

        Returns:
            dict: the values that were merged, keyed by property key
        """
        values = self._matched_values(result)
        if not values:
            return values

        properties = self.contender["properties"]
        if self.snapshot is None or self._new_batch:
            self.snapshot = deepcopy(properties)
            self.changed = set()
            self._new_batch = False

        for key, value in values.items():
            properties[key] = value
            if self.snapshot.get(key, _MISSING) != value:
                self.changed.add(key)
            else:
                self.changed.discard(key)

        self.save(self.contender)
        return values

    def _finish(self, state: SessionState, error: str | None = None) -> dict:
        self._new_batch = False
        self.state = state
        self.error = error
        if error:
            log.info(f"Analysis of contender {self.contender.get('id')} {state.value}: {error}")
        return self.status()

    def run(self, kind: AnalysisKind = AnalysisKind.EXTRACT_PROPERTIES,
            custom_instructions: str | None = None) -> dict:
        """Validate, check connectivity, analyze every source and merge the results.

        Returns:
            dict: session status after the run
        """
        if not self.begin():
            return {**self.status(), "error": ALREADY_RUNNING}
        return self.execute(kind, custom_instructions)

    def begin(self) -> bool:
        """Claim the session for a run. False if one is already in progress."""
        with self._lock:
            if self.state in (SessionState.VALIDATING, SessionState.RUNNING):
                return False
            self.state = SessionState.VALIDATING
            self.error = None
            self.phase = None
            # Each run gets its own event so a cancelled run can't be revived by the next one
            self._cancel = threading.Event()
            return True

    def execute(self, kind: AnalysisKind, custom_instructions: str | None = None) -> dict:
        """Body of a run claimed with begin()."""
        cancelled = self._cancel

        reason = self.validate()
        if cancelled.is_set():
            return self.status()
        if reason:
            return self._finish(SessionState.FAILED, reason)

        adapter = self.registry.resolve_adapter()
        with self._lock:
            if cancelled.is_set():
                return self.status()
            self.state = SessionState.RUNNING
        self.provider = adapter.provider.value

        reachable = adapter.test_connection()
        if cancelled.is_set():
            return self.status()
        if not reachable:
            return self._finish(SessionState.FAILED, connection_hint(adapter.config))

        # The previous batch stays undoable until this run merges something
        self._new_batch = True

        merged_any = False
        for request in self._requests(kind, custom_instructions):
            result = adapter.analyze(request, notify=self._notify)
            if cancelled.is_set():
                log.info(f"Analysis of contender {self.contender.get('id')} cancelled")
                return self.status()

            if not result.success:
                error = NO_VALUES if result.error == PARSE_ERROR else result.error
                return self._finish(SessionState.FAILED, error)

            if self.merge(result):
                merged_any = True

        if not merged_any:
            return self._finish(SessionState.FAILED, NO_VALUES)
        return self._finish(SessionState.MERGED)

    def cancel(self) -> dict:
        """Stop waiting for the in-flight call; its result will be discarded."""
        with self._lock:
            if self.state in (SessionState.VALIDATING, SessionState.RUNNING):
                self._cancel.set()
                self.state = SessionState.IDLE
        return self.status()

    def close(self) -> None:
        """End the edit session. Any in-flight result is discarded."""
        self._cancel.set()
        self._observers.clear()
        if self.state in (SessionState.VALIDATING, SessionState.RUNNING):
            self.state = SessionState.IDLE

    #
    # Undo
    #

    def undo_all(self) -> dict:
        """Restore the properties as they were before the last analysis. No-op without a snapshot."""
        if self.snapshot is None:
            return self.status()
        self.contender["properties"] = deepcopy(self.snapshot)
        self.snapshot = None
        self.changed = set()
        self.save(self.contender)
        return self.status()

    def undo_field(self, key: str) -> dict:
        """Restore one analysed field to its previous value."""
        if self.snapshot is None or key not in self.changed:
            return self.status()

        properties = self.contender["properties"]
        if key in self.snapshot:
            properties[key] = deepcopy(self.snapshot[key])
        else:
            properties.pop(key, None)

        self.changed.discard(key)
        if not self.changed:
            self.snapshot = None
        self.save(self.contender)
        return self.status()

    def acknowledge_field(self, key: str) -> dict:
        """Clear the analysis flag on a field the user is editing; its value is kept."""
        self.changed.discard(key)
        return self.status()

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "phase": self.phase,
            "provider": self.provider,
            "error": self.error,
            "changed": sorted(self.changed),
            "can_undo": self.snapshot is not None,
            "properties": dict(self.contender.get("properties") or {}),
        }


def run_session_background(session: AnalysisSession, kind: AnalysisKind = AnalysisKind.EXTRACT_PROPERTIES,
                           custom_instructions: str | None = None) -> threading.Thread | None:
    """Launch an analysis run in a background thread.

    Poll session.status() to follow progress.

    Returns:
        threading.Thread: the worker, or None if a run is already in progress
    """
    if not session.begin():
        return None

    def _worker():
        try:
            session.execute(kind, custom_instructions)
        except Exception as e:
            log.error(f"Analysis of contender {session.contender.get('id')} failed: {e}", exc_info=True)
            session.state = SessionState.FAILED
            session.error = str(e)

    thread = threading.Thread(target=_worker, daemon=True)
    thread.start()
    return thread
