"""Configuration utilities for environment-based setup."""

import os
from collections.abc import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from typed_llm_output.exceptions import ConfigurationException

ENV_PREFIX = "TYPED_OUTPUT_"

STRATEGY_NAMES = (
    "native_structured_output",
    "tool_use",
    "extraction_patterns",
    "enhanced_prompting",
)


class StructuredOutputSettings(BaseModel):
    """Pipeline settings, loadable from ``TYPED_OUTPUT_*`` variables.

    Attributes:
        strategy: Preferred strategy name, tried first when available
        discriminator_field: Reserved field tagging union members
        strict_unions: Raise instead of returning raw JSON for unmatched unions
        schema_ttl: Seconds a compiled schema stays cached
        capability_ttl: Seconds a capability probe stays cached
        structured_outputs_enabled: Allow native structured output
    """

    strategy: str | None = None
    discriminator_field: str = Field(default="_type", min_length=1)
    strict_unions: bool = False
    schema_ttl: float = Field(default=3600, gt=0)
    capability_ttl: float = Field(default=86400, gt=0)
    structured_outputs_enabled: bool = True

    @field_validator("strategy")
    @classmethod
    def _known_strategy(cls, value: str | None) -> str | None:
        if value is not None and value not in STRATEGY_NAMES:
            raise ValueError(
                f"unknown strategy '{value}', expected one of: "
                f"{', '.join(STRATEGY_NAMES)}"
            )
        return value


_ENV_FIELDS = {
    "STRATEGY": "strategy",
    "DISCRIMINATOR_FIELD": "discriminator_field",
    "STRICT_UNIONS": "strict_unions",
    "SCHEMA_TTL": "schema_ttl",
    "CAPABILITY_TTL": "capability_ttl",
    "STRUCTURED_OUTPUTS": "structured_outputs_enabled",
}


def load_environment() -> None:
    """Load environment variables from .env file if it exists."""
    load_dotenv()


def load_settings(environ: Mapping[str, str] | None = None) -> StructuredOutputSettings:
    """Build settings from ``TYPED_OUTPUT_*`` environment variables.

    Args:
        environ: Variables to read (if None, loads .env and uses os.environ)

    Returns:
        Validated settings; unset variables keep their defaults

    Raises:
        ConfigurationException: If a variable holds an invalid value
    """
    if environ is None:
        load_environment()
        environ = os.environ

    raw: dict[str, str] = {}
    for suffix, field_name in _ENV_FIELDS.items():
        value = environ.get(f"{ENV_PREFIX}{suffix}")
        if value is not None and value.strip() != "":
            raw[field_name] = value.strip()

    try:
        return StructuredOutputSettings.model_validate(raw)
    except ValidationError as e:
        error = e.errors()[0]
        field_name = str(error["loc"][0]) if error["loc"] else ""
        env_key = next(
            (f"{ENV_PREFIX}{s}" for s, f in _ENV_FIELDS.items() if f == field_name),
            None,
        )
        raise ConfigurationException(
            f"Invalid value for {env_key or field_name}: {error['msg']}",
            config_key=env_key,
            config_value=raw.get(field_name),
        ) from e


def get_available_providers() -> dict[str, bool]:
    """Check which providers have API keys available.

    Returns:
        Dictionary mapping provider names to availability status
    """
    load_environment()

    return {
        "openai": os.getenv("OPENAI_API_KEY") is not None,
        "anthropic": os.getenv("ANTHROPIC_API_KEY") is not None,
        "gemini": os.getenv("GEMINI_API_KEY") is not None,
    }
