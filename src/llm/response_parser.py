"""Response parsing utilities for LLM output.

Extracts code blocks and JSON objects from raw LLM responses.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from src.core.exceptions import ResponseParseError


def _reject_constant(name: str) -> Any:
    raise ResponseParseError(f"Non-standard JSON constant in response: {name}")


def extract_code_blocks(text: str, language: Optional[str] = None) -> list[str]:
    """Extract fenced code blocks from LLM output.

    Args:
        text: Raw LLM response.
        language: If specified, only return blocks with this language tag.

    Returns:
        List of code block contents (without fences).
    """
    if language:
        pattern = rf"```{re.escape(language)}\s*\n(.*?)```"
    else:
        pattern = r"```(?:\w+)?\s*\n(.*?)```"
    return [m.strip() for m in re.findall(pattern, text, re.DOTALL)]


def find_balanced(text: str, opener: str = "{") -> Optional[str]:
    """Return the first balanced {...} (or [...]) span in text.

    Brackets inside JSON string literals are ignored.
    """
    closer = "}" if opener == "{" else "]"
    start = text.find(opener)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this opener; try the next one.
        start = text.find(opener, start + 1)
    return None


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse the first JSON object in an LLM reply.

    Raises:
        ResponseParseError: If no object is present or it is not valid JSON.
    """
    candidate = find_balanced(text, "{")
    if candidate is None:
        raise ResponseParseError(f"No JSON object found in response: {text[:200]!r}")
    try:
        data = json.loads(candidate, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Invalid JSON in response: {e}") from e
    if not isinstance(data, dict):
        raise ResponseParseError("Top-level JSON value is not an object")
    return data


def parse_json_array(text: str) -> list[Any]:
    """Parse the first JSON array in an LLM reply, or a single object as [obj]."""
    blocks = extract_code_blocks(text, "json")
    source = blocks[0] if blocks else text
    array_at = source.find("[")
    object_at = source.find("{")
    if array_at != -1 and (object_at == -1 or array_at < object_at):
        candidate = find_balanced(source, "[")
        if candidate is not None:
            try:
                data = json.loads(candidate, parse_constant=_reject_constant)
            except json.JSONDecodeError as e:
                raise ResponseParseError(f"Invalid JSON array in response: {e}") from e
            if isinstance(data, list):
                return data
    return [parse_json_object(source)]
