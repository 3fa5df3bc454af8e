"""
Tolerant JSON recovery for LLM output.

Handles the usual ways model output deviates from clean JSON:
- Markdown code fences around the payload
- Prose before or after the JSON structure
- Truncated output (unclosed strings and brackets)
- Literal control characters inside strings
"""
import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json|JSON)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def extract_json(raw: Any) -> Optional[Any]:
    """
    Recover a JSON value from raw LLM output.

    Args:
        raw: Model response; strings are parsed, dicts and lists pass through

    Returns:
        The parsed value, or None if nothing usable could be recovered
    """
    if isinstance(raw, (dict, list)):
        return raw
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return None

    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned)
        cleaned = _FENCE_CLOSE.sub("", cleaned).strip()
    if not cleaned:
        return None

    json_str = extract_json_string(cleaned)

    try:
        return json.loads(json_str)
    except json.JSONDecodeError:
        pass
    except RecursionError:
        logger.warning("LLM output is nested too deeply to decode")
        return None
    # Literal newlines/tabs inside string values
    try:
        return json.loads(json_str, strict=False)
    except json.JSONDecodeError:
        pass
    sanitized = _CONTROL_CHARS.sub(" ", json_str)
    try:
        return json.loads(sanitized)
    except (json.JSONDecodeError, RecursionError) as e:
        logger.warning(f"Failed to recover JSON from LLM output: {e}")
        logger.debug(f"Unparseable output: {json_str[:500]}")
        return None


def extract_json_string(text: str) -> str:
    """
    Extract the outermost JSON object or array from text by bracket counting.

    Args:
        text: Text that contains a JSON structure somewhere

    Returns:
        The JSON substring, repaired if the structure never closes
    """
    brace_pos = text.find("{")
    bracket_pos = text.find("[")
    if brace_pos == -1 and bracket_pos == -1:
        return text

    if bracket_pos != -1 and (brace_pos == -1 or bracket_pos < brace_pos):
        start, open_ch, close_ch = bracket_pos, "[", "]"
    else:
        start, open_ch, close_ch = brace_pos, "{", "}"

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape_next:
            escape_next = False
            continue
        if ch == "\\" and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    # Never balanced: the response was cut off
    return repair_truncated_json(text[start:])


def repair_truncated_json(text: str) -> str:
    """Close an open string and any open brackets, innermost first."""
    stack = []
    in_string = False
    escape_next = False
    for ch in text:
        if escape_next:
            escape_next = False
            continue
        if ch == "\\" and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in ("{", "["):
            stack.append(ch)
        elif ch == "}" and stack and stack[-1] == "{":
            stack.pop()
        elif ch == "]" and stack and stack[-1] == "[":
            stack.pop()

    if in_string:
        text += '"'
    text = text.rstrip().rstrip(",")
    close_map = {"{": "}", "[": "]"}
    for bracket in reversed(stack):
        text += close_map[bracket]
    return text
