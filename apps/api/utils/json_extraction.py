"""Tolerant JSON extraction from LLM responses.

Handles the output shapes models actually produce:
- Pure JSON
- Markdown code blocks (```json...``` or ```...```)
- A JSON array or object embedded in surrounding prose
"""

import json
import re
from typing import Any

from utils.logging import get_logger

logger = get_logger(__name__)

_JSON_BLOCK = re.compile(r"```json\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_ANY_BLOCK = re.compile(r"```\s*\n?(.*?)\n?```", re.DOTALL)
_EMBEDDED_ARRAY = re.compile(r"\[[^\]]*(?:\{[^\}]*\}[^\]]*)*\]", re.DOTALL)
_EMBEDDED_OBJECT = re.compile(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}", re.DOTALL)


def _try_parse(text: str) -> Any | None:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def extract_json_from_response(
    response: str, context: str = "extraction", expect_list: bool = False
) -> Any | None:
    """Extract JSON from an LLM response.

    Tries, in order: the whole response, a ```json block, an untyped ```
    block, an embedded array, an embedded object.

    Args:
        response: The raw LLM response text
        context: Label used in log messages (e.g., "task_extraction")
        expect_list: Wrap a lone object in a list

    Returns:
        Parsed JSON data, or None if nothing parses
    """
    if not response:
        return None

    text = response.strip()
    result = _try_parse(text)

    if result is None:
        for pattern in (_JSON_BLOCK, _ANY_BLOCK):
            match = pattern.search(text)
            if match:
                result = _try_parse(match.group(1).strip())
                if result is not None:
                    break

    if result is None:
        for pattern in (_EMBEDDED_ARRAY, _EMBEDDED_OBJECT):
            match = pattern.search(text)
            if match:
                result = _try_parse(match.group(0))
                if result is not None:
                    break

    if result is None:
        logger.warning(
            f"Failed to extract JSON for {context}. "
            f"Response length: {len(text)}, first 200 chars: {text[:200]!r}"
        )
        return None

    if expect_list and isinstance(result, dict):
        logger.info(f"Converting single object to list for {context}")
        result = [result]

    return result


def extract_json_or_default(response: str, default: Any) -> Any:
    """Extract JSON from response, returning default on failure."""
    result = extract_json_from_response(response)
    if result is None:
        return default
    return result
