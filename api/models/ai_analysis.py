"""Pydantic models for AI provider configuration and analysis."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ProviderKind(str, Enum):
    """Known AI providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"


NO_PROVIDER = "none"

PROVIDER_LABELS = {
    ProviderKind.ANTHROPIC: "Anthropic",
    ProviderKind.OPENAI: "OpenAI",
    ProviderKind.OLLAMA: "Ollama",
}


class ProviderConfig(BaseModel):
    """Stored settings for one provider. At most one per kind lives in the registry."""
    provider: ProviderKind
    credential: str = ""  # not needed for ollama
    base_url: str = ""    # required for ollama, optional override otherwise
    model: str = ""
    enabled: bool = False

    @property
    def is_local(self) -> bool:
        return self.provider == ProviderKind.OLLAMA


class ProviderConfigUpdate(ProviderConfig):
    """Request body for inserting or replacing a provider's settings."""


class ActiveProviderUpdate(BaseModel):
    """Request body for selecting the active provider."""
    provider: ProviderKind | Literal["none"] = NO_PROVIDER


class ConnectionTestRequest(BaseModel):
    """Request body for testing a provider; empty tests the active one."""
    provider: ProviderKind | None = None


class AnalysisKind(str, Enum):
    EXTRACT_PROPERTIES = "extract_properties"
    EXTRACT_PROPERTIES_BATCH = "extract_properties_batch"
    GENERATE_SUMMARY = "generate_summary"
    SUGGEST_VALUES = "suggest_values"
    ANALYZE_ATTACHMENT = "analyze_attachment"


class AnalysisPhase(str, Enum):
    PREPARING = "preparing"
    CONTACTING = "contacting"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class PropertyDefinitionRef(BaseModel):
    """Name and type of a target property, as shown to the model."""
    name: str
    type: str


class AnalysisContext(BaseModel):
    existing_properties: list[PropertyDefinitionRef] | None = None
    comparison_name: str | None = None
    contender_name: str | None = None
    attachment_type: str | None = None
    custom_instructions: str | None = None
    file_count: int | None = None
    file_names: str | None = None


class AnalysisRequest(BaseModel):
    """A single analysis call.

    content is plain text, or a data URL (data:<media type>;base64,<payload>)
    for binary documents.
    """
    kind: AnalysisKind
    content: str
    context: AnalysisContext | None = None

    @property
    def is_binary(self) -> bool:
        return self.content.startswith("data:")


class PropertyRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    type: str | None = "text"
    # any JSON value; coerce_value() decides what can be stored
    value: Any = None


class Suggestion(BaseModel):
    model_config = ConfigDict(extra="allow")

    property: str
    value: Any = None
    # passed through as given; not interpreted
    confidence: Any = None


class AnalysisResult(BaseModel):
    """Outcome of an analysis call; exactly one payload field is set on success."""
    success: bool
    properties: list[PropertyRecord] | None = None
    summary: str | None = None
    suggestions: list[Suggestion] | None = None
    error: str | None = None
    status_code: int | None = None
    details: str | None = None
    supported_models: list[str] | None = None

    @classmethod
    def failure(cls, error: str, **kwargs) -> "AnalysisResult":
        return cls(success=False, error=error, **kwargs)


class RelayRequest(BaseModel):
    """Request body accepted by the local relay endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    provider: str = ""
    credential: str = Field(default="", alias="apiKey")
    base_url: str = Field(default="", alias="baseUrl")
    model: str = ""
    prompt: str = ""
    max_tokens: int = Field(default=1000, alias="maxTokens")
    attachment: str | None = Field(default=None, alias="file")


class OllamaModelsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field(default="", alias="baseUrl")
