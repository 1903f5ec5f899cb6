"""Prompt-only structured output that works with any model."""

import json
import logging
from typing import Any

from typed_llm_output.schema.dialects import JSON_SCHEMA
from typed_llm_output.strategies.base import (
    ExtractionContext,
    Response,
    Strategy,
    append_to_last_user_message,
)
from typed_llm_output.strategies.patterns import (
    PATTERN_EXTRACTORS,
    find_balanced_json,
    is_valid_json,
)

logger = logging.getLogger(__name__)

JSON_SYSTEM_MESSAGE = (
    "You are a helpful assistant that always responds with valid JSON when requested."
)

_INSTRUCTIONS = """

IMPORTANT: You must respond with valid JSON that matches this structure:
```json
{example}
```

Required fields: {required}

Ensure your response:
1. Is valid JSON (properly quoted strings, no trailing commas)
2. Includes all required fields
3. Uses the correct data types for each field
4. Is wrapped in ```json``` markdown code blocks
"""

_FORMAT_EXAMPLES = {
    "date": "2024-01-01",
    "date-time": "2024-01-01T00:00:00",
}


def generate_example(
    schema: dict[str, Any], defs: dict[str, Any] | None = None
) -> Any:
    """Generate a representative JSON value for a schema.

    Strings use their description (or a placeholder), integers 42, numbers
    3.14, booleans true; arrays get one item, objects recurse, unions take
    their first non-null branch. Each ``$ref`` is followed once per path.

    Args:
        schema: JSON schema node
        defs: Named definitions; taken from ``schema["$defs"]`` if None

    Returns:
        A JSON-serializable example value
    """
    if defs is None:
        defs = schema.get("$defs", {})
    return _example(schema, defs, frozenset())


def _example(schema: dict[str, Any], defs: dict[str, Any], seen: frozenset[str]) -> Any:
    if "const" in schema:
        return schema["const"]

    if "$ref" in schema:
        name = schema["$ref"].rsplit("/", 1)[-1]
        if name in seen or name not in defs:
            return {}
        return _example(defs[name], defs, seen | {name})

    for keyword in ("oneOf", "anyOf"):
        if keyword in schema:
            branches = [b for b in schema[keyword] if b.get("type") != "null"]
            return _example(branches[0], defs, seen) if branches else None

    if schema.get("enum"):
        return next((v for v in schema["enum"] if v is not None), None)

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        schema_type = next((t for t in schema_type if t != "null"), None)

    match schema_type:
        case "string":
            if schema.get("format") in _FORMAT_EXAMPLES:
                return _FORMAT_EXAMPLES[schema["format"]]
            return schema.get("description") or "example string"
        case "integer":
            return 42
        case "number":
            return 3.14
        case "boolean":
            return True
        case "array":
            items = schema.get("items")
            return [_example(items, defs, seen)] if items else ["example item"]
        case "object":
            properties = schema.get("properties")
            if properties:
                return {
                    name: _example(prop, defs, seen) for name, prop in properties.items()
                }
            additional = schema.get("additionalProperties")
            if isinstance(additional, dict):
                return {"key": _example(additional, defs, seen)}
            return {}
        case _:
            return "example value"


class EnhancedPrompting(Strategy):
    """Asks for JSON in the prompt and extracts it from free text.

    Always available, so it is the last resort for every model.
    """

    name = "enhanced_prompting"
    priority = 50

    def available(self, context: ExtractionContext) -> bool:
        return True

    def prepare(
        self,
        context: ExtractionContext,
        messages: list[dict[str, Any]],
        request_params: dict[str, Any],
    ) -> None:
        compiled = context.compiler.compile_signature(
            context.signature, JSON_SCHEMA, context.provider
        )
        schema = compiled.to_json_schema()
        required = schema.get("required") or []

        append_to_last_user_message(
            messages,
            _INSTRUCTIONS.format(
                example=json.dumps(generate_example(schema), indent=2, default=str),
                required=", ".join(required) if required else "none",
            ),
        )

        if not any(message.get("role") == "system" for message in messages):
            messages.insert(0, {"role": "system", "content": JSON_SYSTEM_MESSAGE})

    def extract(self, response: Response) -> str | None:
        if not response.content:
            return None
        content = response.content.strip()

        for extractor in PATTERN_EXTRACTORS:
            candidate = extractor(content)
            if candidate and is_valid_json(candidate):
                return candidate

        for candidate in find_balanced_json(content):
            if is_valid_json(candidate):
                logger.debug("Recovered JSON by brace scan")
                return candidate
        return None
