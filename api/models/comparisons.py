"""Pydantic models for comparisons, contenders and contender analysis."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from api.models.ai_analysis import AnalysisKind

PropertyType = Literal["text", "number", "rating", "datetime"]
PropertyValue = str | int | float


class PropertyDefinition(BaseModel):
    """A property every contender of a comparison can have a value for."""
    key: str
    name: str
    type: PropertyType = "text"


class ComparisonCreate(BaseModel):
    name: str
    description: str | None = None
    properties: list[PropertyDefinition] = []


class ComparisonUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    properties: list[PropertyDefinition] | None = None


class Attachment(BaseModel):
    id: str = ""
    name: str
    type: str = "application/octet-stream"
    size: int = 0
    data: str  # data URL
    uploaded_at: str | None = None


class Hyperlink(BaseModel):
    id: str = ""
    url: str
    added_at: str | None = None


class ContenderIn(BaseModel):
    """Request body for creating or updating a contender."""
    name: str
    description: str | None = None
    pros: list[str] = []
    cons: list[str] = []
    properties: dict[str, PropertyValue] = {}
    attachments: list[Attachment] = []
    hyperlinks: list[Hyperlink | str] = []


class AnalysisTrigger(BaseModel):
    """Request body for filling in a contender's properties."""
    kind: AnalysisKind = AnalysisKind.EXTRACT_PROPERTIES
    custom_instructions: str | None = None

    @field_validator("kind")
    @classmethod
    def _property_kinds_only(cls, v: AnalysisKind) -> AnalysisKind:
        if v not in (AnalysisKind.EXTRACT_PROPERTIES, AnalysisKind.SUGGEST_VALUES):
            raise ValueError("kind must be extract_properties or suggest_values")
        return v


class UndoRequest(BaseModel):
    """Undo one field, or everything when key is omitted."""
    key: str | None = None


class AcknowledgeRequest(BaseModel):
    key: str = Field(min_length=1)


class DataMirrorUpdate(BaseModel):
    """Any subset of the mirrored documents."""
    comparisons: list | None = None
    contenders: list | None = None
    aiConfig: dict | None = None
