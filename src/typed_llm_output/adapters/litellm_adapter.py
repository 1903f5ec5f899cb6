"""LiteLLM-backed invoker producing normalized responses."""

import logging
from typing import Any

from litellm import completion

from typed_llm_output.strategies.base import Response

logger = logging.getLogger(__name__)


def normalize_response(raw_response: Any) -> Response:
    """Convert a LiteLLM completion response into a ``Response``.

    Args:
        raw_response: LiteLLM ``ModelResponse`` (or compatible object)

    Returns:
        Response with the message content and any tool calls in metadata
    """
    metadata: dict[str, Any] = {}
    if not getattr(raw_response, "choices", None):
        return Response(content=None, metadata=metadata)

    choice = raw_response.choices[0]
    message = choice.message
    metadata["finish_reason"] = getattr(choice, "finish_reason", None)

    tool_calls = getattr(message, "tool_calls", None)
    if tool_calls:
        metadata["tool_calls"] = [
            {
                "id": getattr(tool_call, "id", ""),
                "name": getattr(tool_call.function, "name", None),
                "arguments": getattr(tool_call.function, "arguments", None),
            }
            for tool_call in tool_calls
            if getattr(tool_call, "function", None) is not None
        ]

    return Response(content=getattr(message, "content", None), metadata=metadata)


class LiteLLMInvoker:
    """Issues a prepared request through LiteLLM.

    Strategies write ``response_format``, ``tools``/``tool_choice`` or
    ``generation_config`` into the request parameters; this invoker maps them
    onto ``litellm.completion`` arguments.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        max_tokens: int = 1000,
        **completion_kwargs: Any,
    ):
        """Initialize the invoker.

        Args:
            model: The model name (e.g., 'gpt-4o-mini', 'claude-3-haiku-20240307')
            api_key: The API key; LiteLLM reads provider env vars if None
            max_tokens: Maximum tokens for response (default: 1000)
            **completion_kwargs: Extra arguments forwarded to every call

        Raises:
            ValueError: If model is None
        """
        if model is None:
            raise ValueError("Model is required")

        self.model = model
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.completion_kwargs = completion_kwargs

    def __call__(
        self, messages: list[dict[str, Any]], request_params: dict[str, Any]
    ) -> Response:
        params = self.build_completion_params(request_params)
        logger.debug("Calling %s with parameters %s", self.model, sorted(params))

        raw_response = completion(
            model=self.model,
            messages=messages,
            **params,
        )
        return normalize_response(raw_response)

    def build_completion_params(self, request_params: dict[str, Any]) -> dict[str, Any]:
        """Map strategy request parameters onto ``litellm.completion`` kwargs.

        Args:
            request_params: Parameters written by a strategy's ``prepare``

        Returns:
            Keyword arguments for ``litellm.completion`` (without model/messages)
        """
        params: dict[str, Any] = {"max_tokens": self.max_tokens}
        if self.api_key is not None:
            params["api_key"] = self.api_key
        params.update(self.completion_kwargs)

        request = dict(request_params)
        generation_config = request.pop("generation_config", None)
        if generation_config is not None:
            request["response_format"] = {
                "type": "json_object",
                "response_schema": generation_config.get("response_json_schema"),
            }

        params.update(request)
        if "response_format" in params:
            params.setdefault("allowed_openai_params", ["response_format"])
        return params
