"""Structured-output pipeline wiring cache, compiler, strategies and resolver."""

import logging
from collections.abc import Sequence
from typing import Any

from typed_llm_output.adapters.litellm_adapter import LiteLLMInvoker
from typed_llm_output.capabilities import CapabilityProbe, get_provider_from_model
from typed_llm_output.resolver import TypeResolver
from typed_llm_output.schema.cache import SchemaCache
from typed_llm_output.schema.compiler import TypeSchemaCompiler
from typed_llm_output.signature.model import Signature
from typed_llm_output.strategies import default_strategies
from typed_llm_output.strategies.base import ExtractionContext, Strategy
from typed_llm_output.strategies.selector import (
    ExtractionResult,
    Invoker,
    StrategySelector,
)
from typed_llm_output.utils.config import StructuredOutputSettings, load_settings

logger = logging.getLogger(__name__)


class StructuredOutputPipeline:
    """Obtain typed values from LLM completions.

    One pipeline owns one ``SchemaCache`` shared by its compiler and
    capability probe. Create it once per application and reuse it.

    Example:
        ```python
        from typed_llm_output import Signature, StructuredOutputPipeline

        signature = Signature.from_types(
            "AnswerQuestion", outputs={"answer": str, "confidence": float}
        )
        pipeline = StructuredOutputPipeline()
        result = pipeline.query("What is 2 + 2?", signature, model="gpt-4o-mini")
        print(result.value.answer, result.strategy)
        ```
    """

    def __init__(
        self,
        settings: StructuredOutputSettings | None = None,
        strategies: Sequence[Strategy] | None = None,
        cache: SchemaCache | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Pipeline settings (defaults if None)
            strategies: Strategies to register (the built-in set if None)
            cache: Cache to share (one is created from settings if None)
        """
        self.settings = settings or StructuredOutputSettings()
        self.cache = cache or SchemaCache(
            schema_ttl=self.settings.schema_ttl,
            capability_ttl=self.settings.capability_ttl,
        )
        self.compiler = TypeSchemaCompiler(
            discriminator_field=self.settings.discriminator_field, cache=self.cache
        )
        self.capabilities = CapabilityProbe(self.cache)
        self.resolver = TypeResolver(
            discriminator_field=self.settings.discriminator_field,
            strict_unions=self.settings.strict_unions,
        )
        self.selector = StrategySelector(
            strategies if strategies is not None else default_strategies(),
            resolver=self.resolver,
            preferred_strategy=self.settings.strategy,
        )

    @classmethod
    def from_environment(cls) -> "StructuredOutputPipeline":
        """Create a pipeline from ``TYPED_OUTPUT_*`` environment variables."""
        return cls(settings=load_settings())

    def context_for(
        self, signature: Signature, model: str, provider: str | None = None
    ) -> ExtractionContext:
        """Build the extraction context for one call."""
        return ExtractionContext(
            signature=signature,
            provider=provider or get_provider_from_model(model),
            model=model,
            compiler=self.compiler,
            capabilities=self.capabilities,
            structured_outputs_enabled=self.settings.structured_outputs_enabled,
        )

    def run(
        self,
        signature: Signature,
        messages: list[dict[str, Any]],
        invoke: Invoker,
        model: str,
        provider: str | None = None,
        request_params: dict[str, Any] | None = None,
    ) -> ExtractionResult:
        """Extract a typed value using any invoker.

        Args:
            signature: Signature describing the expected output
            messages: Chat messages
            invoke: Callable issuing the request and returning a Response
            model: Model name
            provider: Provider name (inferred from the model if None)
            request_params: Base request parameters

        Returns:
            Extraction result with the resolved value and succeeding strategy
        """
        context = self.context_for(signature, model, provider)
        result = self.selector.execute(context, messages, request_params or {}, invoke)
        logger.debug(
            "Extracted %s with %s after %d attempt(s)",
            signature.name,
            result.strategy,
            len(result.attempts),
        )
        return result

    def query(
        self,
        message: str,
        signature: Signature,
        model: str,
        system_message: str | None = None,
        api_key: str | None = None,
        provider: str | None = None,
        max_tokens: int = 1000,
    ) -> ExtractionResult:
        """Send a query through LiteLLM and extract a typed value.

        Args:
            message: The user message to send
            signature: Signature describing the expected output
            model: Model name
            system_message: Optional system message to set context
            api_key: API key (LiteLLM reads provider env vars if None)
            provider: Provider name (inferred from the model if None)
            max_tokens: Maximum tokens for response

        Returns:
            Extraction result with the resolved value and succeeding strategy
        """
        messages: list[dict[str, Any]] = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": message})

        invoker = LiteLLMInvoker(model=model, api_key=api_key, max_tokens=max_tokens)
        return self.run(signature, messages, invoker, model=model, provider=provider)
