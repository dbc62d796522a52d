"""JSON extraction and repair for LLM responses.

Models frequently wrap their JSON in a markdown code fence or add a sentence
of commentary around it. This module strips an enclosing fence, locates the
outermost JSON object/array, repairs common formatting slips and parses it.
Anything still unparseable raises, and the provider turns that into an
``LLMParseError``.
"""

from __future__ import annotations

import json
import re
from typing import Any

from json_repair import repair_json

_FENCE_OPEN = re.compile(r"^\s*`{3,}[\w-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?[ \t]*`{3,}\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a single leading and trailing code-fence marker if present.

    Handles fences like ``` or ```` optionally followed by a language tag.
    """
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    stripped = _FENCE_OPEN.sub("", stripped, count=1)
    stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


def parse_json_response(text: str) -> Any:
    """Extract and repair JSON content from LLM response text.

    This function:
    1. Strips an enclosing code fence
    2. Locates JSON object delimiters (outermost { and }) or array delimiters
    3. Repairs common JSON formatting issues
    4. Parses and returns the result

    Args:
        text: The response text from an LLM that should contain JSON

    Returns:
        The parsed JSON object (typically a dict or list)

    Raises:
        ValueError: If JSON delimiters are not found or text is invalid
        json.JSONDecodeError: If the repaired text still cannot be parsed

    Example:
        >>> text = "```json\\n{\\"key\\": \\"value\\"}\\n```"
        >>> parse_json_response(text)["key"]
        'value'
    """
    if not isinstance(text, str):
        raise ValueError(f"Expected string input, got {type(text)}")

    text = strip_code_fences(text)

    start_obj = text.find("{")
    start_arr = text.find("[")

    if start_obj == -1 and start_arr == -1:
        raise ValueError("Response text does not contain JSON object or array delimiters.")

    # Choose whichever delimiter appears first in the response text.
    if start_obj == -1 or (start_arr != -1 and start_arr < start_obj):
        start = start_arr
        end_char = "]"
    else:
        start = start_obj
        end_char = "}"

    end = text.rfind(end_char)

    if end == -1 or end <= start:
        raise ValueError("Response text does not contain matching JSON delimiters.")

    json_fragment = text[start : end + 1]

    try:
        return json.loads(json_fragment)
    except json.JSONDecodeError:
        pass

    repaired = repair_json(json_fragment)
    return json.loads(repaired)
