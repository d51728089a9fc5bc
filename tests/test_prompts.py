from __future__ import annotations

import json

from api.models.ai_analysis import AnalysisContext, AnalysisKind, AnalysisRequest, PropertyDefinitionRef
from api.services.ai_prompts import ATTACHED_CONTENT, build_prompt


def _context(**kw) -> AnalysisContext:
    return AnalysisContext(
        existing_properties=[
            PropertyDefinitionRef(name="Price", type="number"),
            PropertyDefinitionRef(name="Warranty", type="text"),
        ],
        **kw,
    )


def test_prompt_is_deterministic() -> None:
    request = AnalysisRequest(
        kind=AnalysisKind.EXTRACT_PROPERTIES,
        content="Panel X, 400W, $250",
        context=_context(comparison_name="Solar panels"),
    )
    assert build_prompt(request) == build_prompt(request.model_copy(deep=True))


def test_extract_prompt_lists_types_names_and_context() -> None:
    request = AnalysisRequest(
        kind=AnalysisKind.EXTRACT_PROPERTIES,
        content="Panel X, 400W, $250",
        context=_context(
            comparison_name="Solar panels",
            contender_name="Panel X",
            custom_instructions="Prices are in EUR",
        ),
    )
    prompt = build_prompt(request)

    assert '"text" | "number" | "rating" | "datetime"' in prompt
    assert '"Price" (number)' in prompt
    assert '"Warranty" (text)' in prompt
    assert "ADDITIONAL INSTRUCTIONS:\nPrices are in EUR" in prompt
    assert "CONTEXT: This is for a comparison about: Solar panels" in prompt
    assert "SOURCE: Document is from: Panel X" in prompt
    assert prompt.endswith("Panel X, 400W, $250")


def test_batch_prompt_mentions_files() -> None:
    request = AnalysisRequest(
        kind=AnalysisKind.EXTRACT_PROPERTIES_BATCH,
        content="a\nb",
        context=AnalysisContext(file_count=2, file_names="a.txt, b.txt"),
    )
    assert "FILES: Content combines 2 files (a.txt, b.txt)" in build_prompt(request)


def test_binary_content_is_not_inlined() -> None:
    data_url = "data:application/pdf;base64,JVBERi0xLjQK"
    request = AnalysisRequest(kind=AnalysisKind.EXTRACT_PROPERTIES, content=data_url)
    prompt = build_prompt(request)

    assert ATTACHED_CONTENT in prompt
    assert "JVBERi0xLjQK" not in prompt


def test_suggest_prompt_embeds_target_template() -> None:
    request = AnalysisRequest(kind=AnalysisKind.SUGGEST_VALUES, content="spec sheet", context=_context())
    prompt = build_prompt(request)

    start = prompt.index("[")
    end = prompt.index("]") + 1
    template = json.loads(prompt[start:end])
    assert template == [
        {"property": "Price", "type": "number", "value": None, "confidence": 0},
        {"property": "Warranty", "type": "text", "value": None, "confidence": 0},
    ]
    assert "between 0 and 1" in prompt


def test_summary_and_attachment_prompts() -> None:
    summary = build_prompt(AnalysisRequest(kind=AnalysisKind.GENERATE_SUMMARY, content="long text"))
    assert "maximum 2-3 sentences" in summary
    assert "long text" in summary

    attachment = build_prompt(AnalysisRequest(
        kind=AnalysisKind.ANALYZE_ATTACHMENT,
        content="csv rows",
        context=AnalysisContext(attachment_type="text/csv"),
    ))
    assert attachment.startswith("Analyze this text/csv content")
