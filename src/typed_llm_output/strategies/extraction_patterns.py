"""JSON extraction from delimited free text."""

import logging
from typing import Any

from typed_llm_output.exceptions import StrategyRecoverableError
from typed_llm_output.strategies.base import (
    ExtractionContext,
    Response,
    Strategy,
    append_to_last_user_message,
)
from typed_llm_output.strategies.patterns import first_candidate

logger = logging.getLogger(__name__)

FENCED_JSON_HINT = (
    "\n\nRespond with the output values as JSON inside a ```json code block."
)

# Provider rejections that retrying this strategy cannot fix
PERMANENT_ERROR_MARKERS = (
    "invalid schema",
    "invalid_schema",
    "field name",
    "field_name",
    "does not match pattern",
    "invalid_request_error",
    "unsupported parameter",
)


class ExtractionPatterns(Strategy):
    """Pulls JSON out of text for models that delimit it reliably.

    Candidates are tried in order: a fenced json block, a code block under an
    ``## Output values`` heading, any fenced block starting with ``{`` or
    ``[``, and finally the whole trimmed content if it is bare JSON.
    """

    name = "extraction_patterns"
    priority = 90

    def available(self, context: ExtractionContext) -> bool:
        return context.capabilities.emits_delimited_json(
            context.provider, context.model
        )

    def prepare(
        self,
        context: ExtractionContext,
        messages: list[dict[str, Any]],
        request_params: dict[str, Any],
    ) -> None:
        mentions_json = any(
            "json" in str(message.get("content") or "").lower() for message in messages
        )
        if not mentions_json:
            append_to_last_user_message(messages, FENCED_JSON_HINT)

    def extract(self, response: Response) -> str | None:
        return first_candidate(response.content)

    def handle_error(self, error: Exception) -> bool:
        if super().handle_error(error) or isinstance(error, StrategyRecoverableError):
            return True

        message = str(error).lower()
        if any(marker in message for marker in PERMANENT_ERROR_MARKERS):
            logger.warning("Provider rejected extraction request: %s", error)
            return True
        return False
