"""Model capability probes for structured-output strategies."""

import logging
from collections.abc import Callable

import litellm

from typed_llm_output.schema.cache import SchemaCache

logger = logging.getLogger(__name__)

STRUCTURED_OUTPUTS = "structured_outputs"
TOOL_USE = "tool_use"

OPENAI_STRUCTURED_OUTPUT_MODELS = frozenset(
    {
        "gpt-4o-mini",
        "gpt-4o-2024-08-06",
        "gpt-4o",
        "gpt-4-turbo",
        "gpt-4-turbo-2024-04-09",
    }
)

GEMINI_STRUCTURED_OUTPUT_PREFIXES = ("gemini-1.5-pro", "gemini-1.5-flash")
GEMINI_STRUCTURED_OUTPUT_MODELS = frozenset(
    {
        "gemini-2.0-flash",
        "gemini-2.5-pro",
        "gemini-2.5-flash",
        "gemini-2.5-flash-lite",
    }
)

_MODEL_PREFIXES = ("openai/", "gemini/", "anthropic/")


def strip_provider_prefix(model: str) -> str:
    """Remove a LiteLLM-style ``provider/`` prefix from a model name."""
    for prefix in _MODEL_PREFIXES:
        if model.startswith(prefix):
            return model[len(prefix) :]
    return model


def get_provider_from_model(model: str) -> str:
    """Determine provider from model name.

    Args:
        model: The model name

    Returns:
        Provider name ('openai', 'anthropic', 'gemini', or 'unknown')
    """
    model_lower = model.lower()

    if model_lower.startswith("openai/") or any(
        prefix in model_lower for prefix in ["gpt", "davinci", "o1-", "o3-"]
    ):
        return "openai"
    elif "claude" in model_lower or model_lower.startswith("anthropic/"):
        return "anthropic"
    elif "gemini" in model_lower:
        return "gemini"
    else:
        return "unknown"


class CapabilityProbe:
    """Answers what a model supports, caching each answer in ``SchemaCache``.

    Known allow-lists are consulted first; anything else falls back to
    LiteLLM's model capability map.
    """

    def __init__(self, cache: SchemaCache | None = None) -> None:
        """Initialize CapabilityProbe.

        Args:
            cache: Cache for probe results; a private one is created if None
        """
        self.cache = cache if cache is not None else SchemaCache()

    def supports_structured_outputs(self, provider: str, model: str) -> bool:
        """Check whether a model accepts a native response schema."""
        return self._probe(
            model,
            STRUCTURED_OUTPUTS,
            lambda: self._check_structured_outputs(provider, model),
        )

    def supports_tool_use(self, provider: str, model: str) -> bool:
        """Check whether a model supports forced function calling."""
        return self._probe(
            model, TOOL_USE, lambda: self._check_tool_use(provider, model)
        )

    def emits_delimited_json(self, provider: str, model: str) -> bool:
        """Whether the model reliably wraps JSON in fenced blocks when asked."""
        return provider.lower() == "anthropic" or "claude" in model.lower()

    def _probe(
        self, model: str, capability: str, check: Callable[[], bool]
    ) -> bool:
        cached = self.cache.get_capability(model, capability)
        if cached is not None:
            return cached

        result = bool(check())
        self.cache.cache_capability(model, capability, result)
        return result

    def _check_structured_outputs(self, provider: str, model: str) -> bool:
        provider_lower = provider.lower()
        name = strip_provider_prefix(model)

        if provider_lower == "openai" and name in OPENAI_STRUCTURED_OUTPUT_MODELS:
            return True
        if provider_lower in ("gemini", "google") and (
            name in GEMINI_STRUCTURED_OUTPUT_MODELS
            or name.startswith(GEMINI_STRUCTURED_OUTPUT_PREFIXES)
        ):
            return True

        try:
            return bool(litellm.supports_response_schema(model=model))
        except Exception as e:
            logger.debug("LiteLLM response-schema probe failed for %s: %s", model, e)
            return False

    def _check_tool_use(self, provider: str, model: str) -> bool:
        if provider.lower() == "anthropic":
            return True

        try:
            return bool(litellm.supports_function_calling(model=model))
        except Exception as e:
            logger.debug("LiteLLM function-calling probe failed for %s: %s", model, e)
            return False
