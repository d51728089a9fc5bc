"""Prompt construction for AI analysis requests.

Prompts are plain strings shared by every provider. Building a prompt never
touches the network or any state, so identical requests always produce
identical prompts.
"""

import json

from api.models.ai_analysis import AnalysisKind, AnalysisRequest

ATTACHED_CONTENT = "See the attached document."

EXTRACT_PROMPT = """You are an expert at extracting comparable properties from product pages, \
quotes, datasheets and configuration files.

TASK
Find every property in the content below that could be used to compare this item against \
similar items, and return them as JSON ONLY.

OUTPUT
Return a JSON array. Each element must be an object with exactly these keys:
- name: human-readable string (capitalize words, use spaces instead of dots or underscores, \
e.g. "Inverter Model" not "inverter.model")
- type: one of "text" | "number" | "rating" | "datetime"
- value: the value found in the content

TYPE RULES
1) number: quantities, prices, sizes, weights, capacities and other measurements. Output the \
value as a JSON number without currency symbols or units.
2) rating: scores on a 1-5 scale. Output an integer from 1 to 5.
3) datetime: dates and timestamps. Output an ISO-8601 string (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS).
4) text: everything else, including booleans and lists (join list values with commas).

RULES
- Ignore invoice headers, addresses, company boilerplate and other administrative metadata.
- For duplicates, keep the last effective value.
- If nothing is found, return [].
- Do not include any commentary, code fences, or explanations. JSON only."""


def _content_text(request: AnalysisRequest) -> str:
    # Binary payloads travel separately from the prompt
    return ATTACHED_CONTENT if request.is_binary else request.content


def _extract_prompt(request: AnalysisRequest) -> str:
    context = request.context
    parts = [EXTRACT_PROMPT]

    if context and context.existing_properties:
        wanted = ", ".join(f'"{p.name}" ({p.type})' for p in context.existing_properties)
        parts.append(f"\nPREFERRED PROPERTY NAMES: {wanted}. Use these exact names when the "
                     "content contains a matching value.")

    if context and context.custom_instructions:
        parts.append(f"\nADDITIONAL INSTRUCTIONS:\n{context.custom_instructions}")

    context_lines = []
    if context and context.comparison_name:
        context_lines.append(f"CONTEXT: This is for a comparison about: {context.comparison_name}")
    if context and context.contender_name:
        context_lines.append(f"SOURCE: Document is from: {context.contender_name}")
    if request.kind == AnalysisKind.EXTRACT_PROPERTIES_BATCH and context and context.file_count:
        names = f" ({context.file_names})" if context.file_names else ""
        context_lines.append(f"FILES: Content combines {context.file_count} files{names}")
    if context_lines:
        parts.append("\n" + "\n".join(context_lines))

    parts.append(f"\nFILE CONTENT:\n{_content_text(request)}")

    return "".join(parts)


def _summary_prompt(request: AnalysisRequest) -> str:
    return f"""Generate a concise summary of the following content for use in a comparison tool:

{_content_text(request)}

Return only the summary text, maximum 2-3 sentences."""


def _suggest_prompt(request: AnalysisRequest) -> str:
    existing = []
    if request.context and request.context.existing_properties:
        existing = request.context.existing_properties

    template = json.dumps([
        {"property": p.name, "type": p.type, "value": None, "confidence": 0}
        for p in existing
    ], indent=2)

    return f"""Fill in the "value" field for each property based on the content. \
Return the complete JSON array with all properties:

{template}

EXTRACTION RULES:
- Prioritize tabular data: tables, line items and structured data are the most important source
- Match each property name against any related information in the content
- number properties: output a JSON number without units or currency symbols
- rating properties: output an integer from 1 to 5
- datetime properties: output an ISO-8601 string
- text properties: extract meaningful names, models and specifications
- confidence is a number between 0 and 1; use 0.8-0.9 for clear tabular data
- Only return null if absolutely no related information exists in the content

Content:
{_content_text(request)}"""


def _attachment_prompt(request: AnalysisRequest) -> str:
    attachment_type = "file"
    if request.context and request.context.attachment_type:
        attachment_type = request.context.attachment_type

    return f"""Analyze this {attachment_type} content and extract key information that might be \
useful for comparison purposes:

{_content_text(request)}

Provide a structured analysis with key points that could be used as comparison properties or values."""


_BUILDERS = {
    AnalysisKind.EXTRACT_PROPERTIES: _extract_prompt,
    AnalysisKind.EXTRACT_PROPERTIES_BATCH: _extract_prompt,
    AnalysisKind.GENERATE_SUMMARY: _summary_prompt,
    AnalysisKind.SUGGEST_VALUES: _suggest_prompt,
    AnalysisKind.ANALYZE_ATTACHMENT: _attachment_prompt,
}


def build_prompt(request: AnalysisRequest) -> str:
    """Build the provider-agnostic instruction string for a request.

    Args:
        request: the analysis request

    Returns:
        str: prompt text
    """
    return _BUILDERS[request.kind](request)
