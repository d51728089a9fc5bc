"""Turn raw provider text into typed analysis results.

Providers are asked for bare JSON but often wrap it in prose or code fences,
so array-shaped results are recovered with a greedy bracket match. This is a
best-effort heuristic and is kept behind normalize_response() so callers do
not depend on how extraction works.
"""

import json
import logging
import re

from pydantic import ValidationError

from api.models.ai_analysis import AnalysisKind, AnalysisResult, PropertyRecord, Suggestion

log = logging.getLogger(f"versus.{__name__}")

PARSE_ERROR = "Could not parse response"

# First "[" through the last "]" in the text
_JSON_ARRAY = re.compile(r'\[[\s\S]*\]')

_ARRAY_KINDS = (
    AnalysisKind.EXTRACT_PROPERTIES,
    AnalysisKind.EXTRACT_PROPERTIES_BATCH,
    AnalysisKind.SUGGEST_VALUES,
)


def extract_json_array(text: str) -> list | None:
    """Parse the first bracketed JSON array embedded in text.

    Returns:
        list, or None when no bracketed substring exists or it is not valid JSON
    """
    match = _JSON_ARRAY.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list):
        return None
    return parsed


def _records(model, items: list) -> list:
    """Validate array elements one by one, dropping the ones that don't fit the model."""
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            log.debug(f"Skipping malformed {model.__name__} element: {e.error_count()} error(s)")
    return records


def normalize_response(raw_text: str, kind: AnalysisKind) -> AnalysisResult:
    """Convert a provider's raw text into an AnalysisResult for the request kind.

    Never raises; any parsing problem becomes a failed result.
    """
    try:
        if kind in _ARRAY_KINDS:
            parsed = extract_json_array(raw_text)
            if parsed is None:
                log.debug(f"No JSON array in provider response ({len(raw_text or '')} chars)")
                return AnalysisResult.failure(PARSE_ERROR)

            if kind == AnalysisKind.SUGGEST_VALUES:
                suggestions = _records(Suggestion, parsed)
                return AnalysisResult(success=True, suggestions=suggestions)

            properties = _records(PropertyRecord, parsed)
            return AnalysisResult(success=True, properties=properties)

        return AnalysisResult(success=True, summary=(raw_text or "").strip())

    except Exception as e:
        log.debug(f"Provider response did not match the expected shape: {e}")
        return AnalysisResult.failure(PARSE_ERROR)
