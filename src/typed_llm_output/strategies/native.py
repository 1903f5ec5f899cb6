"""Native structured output via provider response schemas."""

import logging
import re
from typing import Any

from typed_llm_output.exceptions import StrategyRecoverableError
from typed_llm_output.schema.dialects import dialect_for_provider
from typed_llm_output.schema.validators import SchemaCompatibilityValidator
from typed_llm_output.strategies.base import ExtractionContext, Response, Strategy

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "gemini", "google")

_RECOVERABLE_MARKERS = (
    "schema",
    "response_format",
    "generation_config",
    "response_schema",
    "structured output",
)


class NativeStructuredOutput(Strategy):
    """Schema-enforced output for OpenAI and Gemini models.

    OpenAI receives ``response_format`` with a strict ``json_schema``; Gemini
    receives a ``generation_config`` carrying the schema. The reply content
    is the JSON document itself.
    """

    name = "native_structured_output"
    priority = 100

    def __init__(self, validator: SchemaCompatibilityValidator | None = None):
        self.validator = validator or SchemaCompatibilityValidator()

    def available(self, context: ExtractionContext) -> bool:
        if not context.structured_outputs_enabled:
            return False
        if context.provider.lower() not in SUPPORTED_PROVIDERS:
            return False
        return context.capabilities.supports_structured_outputs(
            context.provider, context.model
        )

    def prepare(
        self,
        context: ExtractionContext,
        messages: list[dict[str, Any]],
        request_params: dict[str, Any],
    ) -> None:
        dialect = dialect_for_provider(context.provider)
        compiled = context.compiler.compile_signature(
            context.signature, dialect, context.provider
        )
        schema = compiled.to_json_schema()

        compatibility = self.validator.validate_compatibility(schema)
        for message in compatibility.messages:
            logger.warning("%s: %s", context.signature.name, message)

        if context.provider.lower() == "openai":
            request_params["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": self._generate_schema_name(context.signature.name, schema),
                    "strict": True,
                    "schema": schema,
                },
            }
        else:
            request_params["generation_config"] = {
                "response_mime_type": "application/json",
                "response_json_schema": schema,
            }

    def extract(self, response: Response) -> str | None:
        if response.content is None:
            return None
        content = response.content.strip()
        return content or None

    def handle_error(self, error: Exception) -> bool:
        if super().handle_error(error) or isinstance(error, StrategyRecoverableError):
            return True

        message = str(error).lower()
        if any(marker in message for marker in _RECOVERABLE_MARKERS):
            logger.warning("Native structured output failed: %s", error)
            return True
        return False

    def _generate_schema_name(self, signature_name: str, schema: dict[str, Any]) -> str:
        """Generate a response-format name accepted by the OpenAI API.

        Args:
            signature_name: Name of the signature being extracted
            schema: JSON schema dictionary

        Returns:
            Name made of letters, digits, underscores and dashes
        """
        for candidate in (signature_name, schema.get("title"), schema.get("description")):
            if not candidate:
                continue
            name = re.sub(r"[^A-Za-z0-9_-]", "", candidate.replace(" ", "_"))
            if name:
                return name[:64]
        return "structured_output"
