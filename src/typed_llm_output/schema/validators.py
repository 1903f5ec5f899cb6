"""Schema compatibility checks for provider structured-output features."""

from enum import Enum
from typing import Any

MAX_RECOMMENDED_DEPTH = 5


class CompatibilityIssue(Enum):
    """Schema features that native structured output handles poorly."""

    DEPTH = "depth"
    PATTERN_PROPERTIES = "pattern_properties"
    CONDITIONAL = "conditional"


class SchemaCompatibilityResult:
    """Result of a compatibility check with per-issue messages."""

    def __init__(
        self,
        issues: list[tuple[CompatibilityIssue, str]] | None = None,
        depth: int = 0,
    ) -> None:
        """Initialize compatibility result.

        Args:
            issues: Detected issues as (category, message) pairs
            depth: Maximum nesting depth found in the schema
        """
        self.issues = issues or []
        self.depth = depth

    @property
    def compatible(self) -> bool:
        return not self.issues

    @property
    def messages(self) -> list[str]:
        return [message for _, message in self.issues]

    @property
    def categories(self) -> set[CompatibilityIssue]:
        return {category for category, _ in self.issues}


class SchemaCompatibilityValidator:
    """Checks a JSON schema against native structured-output limitations.

    Native structured output rejects or degrades on deeply nested schemas,
    ``patternProperties`` and ``if``/``then``/``else`` conditionals. Issues
    are reported, not raised; callers decide whether to log or fall back.
    """

    def __init__(self, max_depth: int = MAX_RECOMMENDED_DEPTH) -> None:
        """Initialize SchemaCompatibilityValidator.

        Args:
            max_depth: Maximum recommended object/array nesting depth
        """
        self.max_depth = max_depth

    def validate_compatibility(
        self, schema: dict[str, Any]
    ) -> SchemaCompatibilityResult:
        """Check a schema for features native structured output may reject.

        Args:
            schema: JSON schema dictionary (``$defs`` included)

        Returns:
            Compatibility result listing every detected issue
        """
        issues: list[tuple[CompatibilityIssue, str]] = []

        depth = self._calculate_depth(schema)
        if depth > self.max_depth:
            issues.append(
                (
                    CompatibilityIssue.DEPTH,
                    f"Schema depth ({depth}) exceeds recommended maximum "
                    f"({self.max_depth}) for structured outputs",
                )
            )

        if self._contains_key(schema, "patternProperties"):
            issues.append(
                (
                    CompatibilityIssue.PATTERN_PROPERTIES,
                    "Pattern properties are not supported in structured outputs",
                )
            )

        if any(self._contains_key(schema, key) for key in ("if", "then", "else")):
            issues.append(
                (
                    CompatibilityIssue.CONDITIONAL,
                    "Conditional schemas (if/then/else) are not supported "
                    "in structured outputs",
                )
            )

        return SchemaCompatibilityResult(issues=issues, depth=depth)

    def _calculate_depth(self, schema: Any, current: int = 0) -> int:
        """Calculate the object/array nesting depth of a schema.

        ``$ref`` nodes are not followed, so recursive schemas terminate.
        """
        if not isinstance(schema, dict):
            return current

        max_depth = current

        for prop in schema.get("properties", {}).values():
            max_depth = max(max_depth, self._calculate_depth(prop, current + 1))

        items = schema.get("items")
        if isinstance(items, dict):
            max_depth = max(max_depth, self._calculate_depth(items, current + 1))

        additional = schema.get("additionalProperties")
        if isinstance(additional, dict):
            max_depth = max(max_depth, self._calculate_depth(additional, current + 1))

        for keyword in ("anyOf", "oneOf", "allOf"):
            for branch in schema.get(keyword, []):
                max_depth = max(max_depth, self._calculate_depth(branch, current))

        for definition in schema.get("$defs", {}).values():
            max_depth = max(max_depth, self._calculate_depth(definition, 0))

        return max_depth

    def _contains_key(self, schema: Any, key: str) -> bool:
        if isinstance(schema, list):
            return any(self._contains_key(value, key) for value in schema)
        if not isinstance(schema, dict):
            return False
        if key in schema:
            return True
        for name, value in schema.items():
            # Keys of these maps are field/definition names, not keywords
            if name in ("properties", "$defs", "patternProperties") and isinstance(
                value, dict
            ):
                if any(self._contains_key(sub, key) for sub in value.values()):
                    return True
            elif self._contains_key(value, key):
                return True
        return False
