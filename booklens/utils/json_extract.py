"""Parse structured (JSON) responses from LLM output.

Models often wrap JSON in markdown code fences or add a sentence
around it. Fences are stripped before parsing; anything that still fails
to parse is a ResponseParseError, which the executor treats as terminal.
"""

import json
import re

from booklens.errors import ResponseParseError

_FENCE_OPEN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def strip_fences(text: str) -> str:
    """Remove surrounding markdown code fences.

    Examples:
        >>> strip_fences('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
    """
    text = text.strip()
    text = _FENCE_OPEN.sub("", text, count=1)
    text = _FENCE_CLOSE.sub("", text, count=1)
    return text.strip()


def find_balanced_json(text: str, start_char: str, end_char: str) -> str | None:
    """Find first balanced JSON structure with given delimiters.

    Scans for matching open/close brackets to extract nested JSON.

    Args:
        text: Text to search
        start_char: Opening bracket ('{' or '[')
        end_char: Closing bracket ('}' or ']')

    Returns:
        Extracted JSON string if found and valid, else None
    """
    start_idx = text.find(start_char)
    if start_idx == -1:
        return None

    depth = 0
    for i, c in enumerate(text[start_idx:], start=start_idx):
        if c == start_char:
            depth += 1
        elif c == end_char:
            depth -= 1
            if depth == 0:
                candidate = text[start_idx : i + 1]
                try:
                    json.loads(candidate)
                    return candidate
                except json.JSONDecodeError:
                    return None

    return None


def parse_structured(text: str) -> dict | list:
    """Parse a structured response.

    Extraction order:
    1. Strip surrounding fences and parse
    2. Parse the first fenced block inside the text
    3. Parse the first balanced {...} or [...] structure

    Args:
        text: Raw LLM response

    Returns:
        Parsed JSON object or array

    Raises:
        ResponseParseError: If no JSON object or array can be parsed
    """
    if not text or not text.strip():
        raise ResponseParseError("Empty structured response", content=text or "")

    candidates = [strip_fences(text)]
    match = _FENCED_BLOCK.search(text)
    if match:
        candidates.append(match.group(1).strip())

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, (dict, list)):
            return parsed

    for start_char, end_char in [("{", "}"), ("[", "]")]:
        found = find_balanced_json(text, start_char, end_char)
        if found:
            return json.loads(found)

    raise ResponseParseError("Failed to parse LLM response as JSON", content=text)


__all__ = ["find_balanced_json", "parse_structured", "strip_fences"]
