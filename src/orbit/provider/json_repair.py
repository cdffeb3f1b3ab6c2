"""
JSON repair utilities for streamed tool input.

Models stream a tool call's input as JSON fragments. The assembled text
is usually valid, but not always:
- Trailing commas
- Python literals (True/False/None)
- Single quotes instead of double quotes
- Code fences around the object
- Truncation when the response hits its token limit

This module repairs such input so a slightly malformed tool call still
reaches the tool, where any real problem surfaces as a tool error the
model can read.

Design Principles:
    - Best effort repair (may not succeed)
    - Bounded attempts to prevent infinite loops
    - Preserve original meaning where possible
    - Return None rather than guess incorrectly
"""

import json
import re
from typing import Any

# Maximum number of repair attempts
MAX_REPAIR_ATTEMPTS = 3


def extract_json(text: str) -> str | None:
    """
    Extract a JSON object or array from mixed text.

    Handles input such as:
        ```json
        {"observation": "...", "toolCall": {...}}
        ```

    Args:
        text: Mixed text potentially containing JSON

    Returns:
        Extracted JSON string, or None if not found
    """
    if not text or not text.strip():
        return None

    text = text.strip()

    code_block_patterns = [
        r"```json\s*([\s\S]*?)\s*```",
        r"```\s*([\s\S]*?)\s*```",
    ]

    for pattern in code_block_patterns:
        match = re.search(pattern, text)
        if match:
            candidate = match.group(1).strip()
            if candidate.startswith(("{", "[")):
                return candidate

    # Find first { or [ and match to its closing bracket
    for start_char, end_char in [("{", "}"), ("[", "]")]:
        start_idx = text.find(start_char)
        if start_idx == -1:
            continue

        depth = 0
        in_string = False
        escape_next = False

        for i, char in enumerate(text[start_idx:], start_idx):
            if escape_next:
                escape_next = False
                continue

            if char == "\\":
                escape_next = True
                continue

            if char == '"':
                in_string = not in_string
                continue

            if in_string:
                continue

            if char == start_char:
                depth += 1
            elif char == end_char:
                depth -= 1
                if depth == 0:
                    return text[start_idx : i + 1]

    return None


def close_truncated(text: str) -> str:
    """
    Close an object cut off mid-stream.

    Terminates an open string and appends the closing brackets still
    pending, e.g. ``{"a": {"b": "x`` becomes ``{"a": {"b": "x"}}``.
    """
    stack: list[str] = []
    in_string = False
    escape_next = False

    for char in text:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack:
            stack.pop()

    closed = text
    if in_string:
        closed += '"'
    closed = re.sub(r"[,:]\s*$", "", closed)
    return closed + "".join(reversed(stack))


def repair_json(text: str) -> str | None:
    """
    Attempt to repair malformed JSON.

    Handles common errors:
    - Trailing commas: {"a": 1,} -> {"a": 1}
    - Single quotes: {'a': 1} -> {"a": 1}
    - Unquoted keys: {a: 1} -> {"a": 1}
    - Python literals: True/False/None -> true/false/null
    - Truncated objects: {"a": "b -> {"a": "b"}

    Args:
        text: Malformed JSON string

    Returns:
        Repaired JSON string, or None if repair failed
    """
    if not text:
        return None

    attempts = 0

    while attempts < MAX_REPAIR_ATTEMPTS:
        attempts += 1

        try:
            json.loads(text)
            return text
        except json.JSONDecodeError:
            pass

        repaired = _apply_repairs(text)

        if repaired == text:
            break

        text = repaired

    try:
        json.loads(text)
        return text
    except json.JSONDecodeError:
        return None


def _apply_repairs(text: str) -> str:
    """Apply a single round of JSON repairs."""
    text = close_truncated(text)

    # Remove trailing commas before } or ]
    text = re.sub(r",\s*([}\]])", r"\1", text)

    # Only swap quotes when there are no double quotes to break
    if '"' not in text and "'" in text:
        text = text.replace("'", '"')

    # Add quotes around unquoted keys
    text = re.sub(r"([{,])\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*:", r'\1"\2":', text)

    text = re.sub(r"\bTrue\b", "true", text)
    text = re.sub(r"\bFalse\b", "false", text)
    text = re.sub(r"\bNone\b", "null", text)

    return text


def parse_json_safely(text: str) -> tuple[Any, str | None]:
    """
    Parse JSON with automatic extraction and repair.

    Args:
        text: Raw JSON text assembled from the stream

    Returns:
        Tuple of (parsed_object, error_message)
        If successful: (object, None)
        If failed: (None, error_description)
    """
    if not text or not text.strip():
        return None, "Empty input"

    try:
        return json.loads(text), None
    except json.JSONDecodeError:
        pass

    extracted = extract_json(text)
    if extracted:
        try:
            return json.loads(extracted), None
        except json.JSONDecodeError:
            repaired = repair_json(extracted)
            if repaired:
                return json.loads(repaired), None

    repaired = repair_json(text)
    if repaired:
        return json.loads(repaired), None

    return None, "No valid JSON found in tool input"


def parse_tool_input(text: str) -> tuple[dict[str, Any], str | None]:
    """
    Parse the streamed input of a tool call.

    Empty input means a call without arguments and yields ``{}``.

    Returns:
        Tuple of (input_object, error_message). On failure the input is
        ``{}`` and the error describes what went wrong.
    """
    if not text or not text.strip():
        return {}, None

    parsed, error = parse_json_safely(text)
    if error:
        return {}, error
    if not isinstance(parsed, dict):
        return {}, f"Expected object, got {type(parsed).__name__}"
    return parsed, None
