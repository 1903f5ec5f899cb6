"""Structured output through a forced synthetic tool call."""

import json
import logging
import re
from typing import Any

from typed_llm_output.exceptions import StrategyRecoverableError
from typed_llm_output.schema.dialects import ANTHROPIC_TOOL
from typed_llm_output.strategies.base import ExtractionContext, Response, Strategy

logger = logging.getLogger(__name__)

TOOL_NAME = "json_output"
TOOL_DESCRIPTION = "Output the result in the required JSON format"
TOOL_REMINDER = f"\n\nPlease use the {TOOL_NAME} tool to provide your response."

_TOOL_USE_BLOCK = re.compile(
    r"<tool_use>.*?<input>(.*?)</input>.*?</tool_use>", re.DOTALL
)


class ToolUse(Strategy):
    """Carries the answer as the arguments of a single forced tool call."""

    name = "tool_use"
    priority = 95

    def available(self, context: ExtractionContext) -> bool:
        return context.capabilities.supports_tool_use(context.provider, context.model)

    def prepare(
        self,
        context: ExtractionContext,
        messages: list[dict[str, Any]],
        request_params: dict[str, Any],
    ) -> None:
        compiled = context.compiler.compile_signature(
            context.signature, ANTHROPIC_TOOL, context.provider
        )
        request_params["tools"] = [
            self._create_tool_definition(compiled.to_json_schema())
        ]
        # OpenAI-compatible format; LiteLLM translates it for Anthropic
        request_params["tool_choice"] = {
            "type": "function",
            "function": {"name": TOOL_NAME},
        }

        if messages and messages[-1].get("role") == "user":
            messages[-1]["content"] = f"{messages[-1].get('content') or ''}{TOOL_REMINDER}"

    def extract(self, response: Response) -> str | None:
        for call in response.tool_calls:
            if call.get("name") != TOOL_NAME:
                continue
            arguments = call.get("arguments")
            if isinstance(arguments, str):
                return arguments.strip() or None
            if arguments is not None:
                return json.dumps(arguments)

        if response.content and "<tool_use>" in response.content:
            match = _TOOL_USE_BLOCK.search(response.content)
            if match:
                return match.group(1).strip()

        logger.debug("No %s tool call found in response", TOOL_NAME)
        return None

    def handle_error(self, error: Exception) -> bool:
        if super().handle_error(error) or isinstance(error, StrategyRecoverableError):
            return True

        message = str(error)
        if "tool" in message or "invalid_request_error" in message:
            logger.warning("Tool use failed: %s", message)
            return True
        return False

    def _create_tool_definition(self, schema_dict: dict[str, Any]) -> dict[str, Any]:
        """Create tool definition from JSON schema.

        Args:
            schema_dict: JSON schema dictionary

        Returns:
            Function tool definition whose parameters are the output schema
        """
        return {
            "type": "function",
            "function": {
                "name": TOOL_NAME,
                "description": TOOL_DESCRIPTION,
                "parameters": schema_dict,
            },
        }
