"""Provider-specific JSON-schema dialects."""

from dataclasses import dataclass
from enum import Enum


class NullableStyle(Enum):
    """How a dialect expresses a nullable value."""

    TYPE_ARRAY = "type_array"  # {"type": ["string", "null"]}
    ANY_OF = "any_of"  # {"anyOf": [{"type": "string"}, {"type": "null"}]}


@dataclass(frozen=True)
class Dialect:
    """Feature flags of one JSON-schema flavour.

    Args:
        name: Dialect name, used in cache keys and error messages.
        nullable_style: How ``OptionalOf`` is emitted.
        allow_one_of: Whether ``oneOf`` may be emitted; ``anyOf`` otherwise.
        strict_objects: Emit ``additionalProperties: false`` on structs.
        all_fields_required: List every property as required and make
            non-required ones nullable instead.
        require_discriminated_unions: Reject unions whose variants cannot be
            told apart by the discriminator field.
    """

    name: str
    nullable_style: NullableStyle = NullableStyle.TYPE_ARRAY
    allow_one_of: bool = True
    strict_objects: bool = False
    all_fields_required: bool = False
    require_discriminated_unions: bool = True

    def cache_params(self) -> dict[str, str]:
        """Parameters that distinguish this dialect's compiled schemas."""
        return {"dialect": self.name}


JSON_SCHEMA = Dialect(
    name="json_schema",
    require_discriminated_unions=False,
)

OPENAI_STRICT = Dialect(
    name="openai_strict",
    nullable_style=NullableStyle.TYPE_ARRAY,
    allow_one_of=False,
    strict_objects=True,
    all_fields_required=True,
)

GEMINI = Dialect(
    name="gemini",
    nullable_style=NullableStyle.ANY_OF,
    allow_one_of=False,
)

ANTHROPIC_TOOL = Dialect(
    name="anthropic_tool",
    nullable_style=NullableStyle.TYPE_ARRAY,
    allow_one_of=True,
)

_DIALECTS = {
    dialect.name: dialect
    for dialect in (JSON_SCHEMA, OPENAI_STRICT, GEMINI, ANTHROPIC_TOOL)
}


def get_dialect(name: str) -> Dialect:
    """Look up a predefined dialect by name.

    Raises:
        KeyError: If no dialect with that name exists
    """
    try:
        return _DIALECTS[name]
    except KeyError:
        raise KeyError(
            f"Unknown dialect '{name}'. Available: {', '.join(sorted(_DIALECTS))}"
        ) from None


def dialect_for_provider(provider: str) -> Dialect:
    """Get the native dialect for a provider.

    Args:
        provider: Provider name (e.g., 'openai', 'anthropic', 'gemini')

    Returns:
        The provider's dialect, or the permissive JSON-schema dialect
    """
    provider_lower = provider.lower()

    if provider_lower == "openai":
        return OPENAI_STRICT
    elif provider_lower in ("gemini", "google", "vertex_ai"):
        return GEMINI
    elif provider_lower == "anthropic":
        return ANTHROPIC_TOOL
    else:
        return JSON_SCHEMA
