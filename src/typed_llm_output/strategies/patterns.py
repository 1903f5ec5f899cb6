"""Locate JSON candidates inside free-form model text."""

import json
import re
from collections.abc import Callable

_JSON_FENCE = re.compile(r"```json\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_OUTPUT_VALUES = re.compile(
    r"##\s*Output values\s*\n+```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL
)
_ANY_FENCE = re.compile(r"```[a-zA-Z]*\s*\n?(.*?)\n?```", re.DOTALL)


def extract_json_fence(text: str) -> str | None:
    """Content of the first ```json fenced block."""
    match = _JSON_FENCE.search(text)
    return match.group(1).strip() if match else None


def extract_output_values_section(text: str) -> str | None:
    """Code block following an ``## Output values`` heading."""
    match = _OUTPUT_VALUES.search(text)
    return match.group(1).strip() if match else None


def extract_generic_fence(text: str) -> str | None:
    """First fenced block of any language whose body looks like JSON."""
    for match in _ANY_FENCE.finditer(text):
        body = match.group(1).strip()
        if body.startswith(("{", "[")):
            return body
    return None


def extract_bare_json(text: str) -> str | None:
    """The whole response, if it is a bare JSON object or array."""
    stripped = text.strip()
    return stripped if stripped.startswith(("{", "[")) else None


PATTERN_EXTRACTORS: tuple[Callable[[str], str | None], ...] = (
    extract_json_fence,
    extract_output_values_section,
    extract_generic_fence,
    extract_bare_json,
)


def first_candidate(text: str | None) -> str | None:
    """Apply each extractor in order and return the first hit."""
    if not text:
        return None
    for extractor in PATTERN_EXTRACTORS:
        candidate = extractor(text)
        if candidate:
            return candidate
    return None


def is_valid_json(text: str) -> bool:
    try:
        json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return False
    return True


def find_balanced_json(text: str) -> list[str]:
    """Find substrings with balanced braces that could be JSON objects.

    Braces inside string literals are ignored.

    Args:
        text: The text to scan

    Returns:
        Candidate strings, in order of appearance
    """
    candidates: list[str] = []
    i = 0
    n = len(text)

    while i < n:
        if text[i] != "{":
            i += 1
            continue

        depth = 0
        in_string = False
        escape_next = False
        end = None

        for j in range(i, n):
            char = text[j]
            if escape_next:
                escape_next = False
                continue
            if char == "\\":
                escape_next = True
                continue
            if char == '"':
                in_string = not in_string
            elif not in_string:
                if char == "{":
                    depth += 1
                elif char == "}":
                    depth -= 1
                    if depth == 0:
                        end = j
                        break

        if end is None:
            i += 1
            continue
        candidates.append(text[i : end + 1])
        i = end + 1

    return candidates
