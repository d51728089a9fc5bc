from __future__ import annotations

from api.models.ai_analysis import AnalysisKind
from api.services.ai_normalize import PARSE_ERROR, extract_json_array, normalize_response


def test_extract_json_array_from_code_fence() -> None:
    text = 'Here you go:\n```json\n[{"name": "Price", "type": "number", "value": 12}]\n```\nDone.'
    assert extract_json_array(text) == [{"name": "Price", "type": "number", "value": 12}]


def test_extract_json_array_rejects_missing_or_broken_arrays() -> None:
    assert extract_json_array("nothing to see") is None
    assert extract_json_array("[not, json]") is None
    assert extract_json_array("") is None


def test_extract_properties_from_prose() -> None:
    raw = 'I found these:\n[{"name": "Weight", "type": "number", "value": 2.5}, ' \
          '{"name": "Brand", "type": "text", "value": "Acme"}]\nHope it helps.'
    result = normalize_response(raw, AnalysisKind.EXTRACT_PROPERTIES)

    assert result.success is True
    assert [p.name for p in result.properties] == ["Weight", "Brand"]
    assert result.properties[0].value == 2.5
    assert result.suggestions is None
    assert result.summary is None


def test_suggestions_for_suggest_kind() -> None:
    raw = '[{"property": "Price", "value": 99, "confidence": 0.9}]'
    result = normalize_response(raw, AnalysisKind.SUGGEST_VALUES)

    assert result.success is True
    assert result.suggestions[0].property == "Price"
    assert result.suggestions[0].confidence == 0.9
    assert result.properties is None


def test_unparseable_response_fails() -> None:
    result = normalize_response("Sorry, I cannot help with that.", AnalysisKind.EXTRACT_PROPERTIES)
    assert result.success is False
    assert result.error == PARSE_ERROR


def test_elements_without_a_name_are_dropped() -> None:
    raw = '[1, "Price", {"value": 3}, {"name": "Brand", "value": "Acme"}]'
    result = normalize_response(raw, AnalysisKind.EXTRACT_PROPERTIES)

    assert result.success is True
    assert [p.name for p in result.properties] == ["Brand"]

    result = normalize_response("[1, 2, 3]", AnalysisKind.EXTRACT_PROPERTIES)
    assert result.success is True
    assert result.properties == []


def test_confidence_is_passed_through_as_given() -> None:
    raw = '[{"property": "Price", "value": 99, "confidence": "high"}, {"property": "Brand", "value": "Acme"}]'
    result = normalize_response(raw, AnalysisKind.SUGGEST_VALUES)

    assert result.success is True
    assert [s.property for s in result.suggestions] == ["Price", "Brand"]
    assert result.suggestions[0].confidence == "high"
    assert result.suggestions[1].confidence is None


def test_list_values_keep_the_rest_of_the_reply() -> None:
    raw = '[{"name": "Price", "type": "number", "value": 10}, ' \
          '{"name": "Ports", "type": "text", "value": ["USB-C", "HDMI"]}]'
    result = normalize_response(raw, AnalysisKind.EXTRACT_PROPERTIES)

    assert result.success is True
    assert result.properties[0].value == 10
    assert result.properties[1].value == ["USB-C", "HDMI"]


def test_empty_array_is_success() -> None:
    result = normalize_response("[]", AnalysisKind.EXTRACT_PROPERTIES_BATCH)
    assert result.success is True
    assert result.properties == []


def test_summary_is_trimmed_text() -> None:
    result = normalize_response("  A short summary.\n", AnalysisKind.GENERATE_SUMMARY)
    assert result.success is True
    assert result.summary == "A short summary."

    result = normalize_response("", AnalysisKind.ANALYZE_ATTACHMENT)
    assert result.success is True
    assert result.summary == ""
