"""Shared pytest configuration and fixtures for the test suite."""

from collections.abc import Callable
from typing import Any
from unittest.mock import Mock

import pytest

from typed_llm_output.capabilities import CapabilityProbe
from typed_llm_output.schema.cache import SchemaCache
from typed_llm_output.schema.compiler import TypeSchemaCompiler
from typed_llm_output.signature.model import Signature
from typed_llm_output.strategies.base import ExtractionContext, Response


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticCapabilities(CapabilityProbe):
    """Capability probe with fixed answers; never consults LiteLLM."""

    def __init__(
        self,
        structured_outputs: bool = False,
        tool_use: bool = False,
        delimited_json: bool = False,
    ) -> None:
        super().__init__(SchemaCache())
        self.structured_outputs = structured_outputs
        self.tool_use = tool_use
        self.delimited_json = delimited_json

    def supports_structured_outputs(self, provider: str, model: str) -> bool:
        return self.structured_outputs

    def supports_tool_use(self, provider: str, model: str) -> bool:
        return self.tool_use

    def emits_delimited_json(self, provider: str, model: str) -> bool:
        return self.delimited_json


class ScriptedInvoker:
    """Invoker returning queued responses and recording every request.

    Queued exceptions are raised instead of returned.
    """

    def __init__(self, *replies: Response | Exception) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[list[dict[str, Any]], dict[str, Any]]] = []

    def __call__(
        self, messages: list[dict[str, Any]], request_params: dict[str, Any]
    ) -> Response:
        self.calls.append((messages, request_params))
        if not self.replies:
            raise AssertionError("ScriptedInvoker ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def clock() -> FakeClock:
    """Fake monotonic clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def schema_cache(clock: FakeClock) -> SchemaCache:
    """Schema cache driven by the fake clock."""
    return SchemaCache(clock=clock)


@pytest.fixture
def compiler(schema_cache: SchemaCache) -> TypeSchemaCompiler:
    """Compiler sharing the fake-clock cache."""
    return TypeSchemaCompiler(cache=schema_cache)


@pytest.fixture
def answer_signature() -> Signature:
    """Simple question-answering signature."""
    return Signature.from_types(
        "AnswerQuestion",
        outputs={"answer": str, "confidence": float, "steps": list[str]},
        inputs={"question": str},
        descriptions={"answer": "The final answer"},
    )


@pytest.fixture
def make_context(
    compiler: TypeSchemaCompiler,
) -> Callable[..., ExtractionContext]:
    """Factory for extraction contexts with static capabilities."""

    def _make(
        signature: Signature,
        provider: str = "openai",
        model: str = "gpt-4o-mini",
        structured_outputs: bool = False,
        tool_use: bool = False,
        delimited_json: bool = False,
        structured_outputs_enabled: bool = True,
    ) -> ExtractionContext:
        return ExtractionContext(
            signature=signature,
            provider=provider,
            model=model,
            compiler=compiler,
            capabilities=StaticCapabilities(
                structured_outputs=structured_outputs,
                tool_use=tool_use,
                delimited_json=delimited_json,
            ),
            structured_outputs_enabled=structured_outputs_enabled,
        )

    return _make


@pytest.fixture
def scripted_invoker() -> type[ScriptedInvoker]:
    """The ScriptedInvoker class, for building invokers inside tests."""
    return ScriptedInvoker


@pytest.fixture
def mock_api_response() -> Mock:
    """Mock LiteLLM completion response with plain text content."""
    mock_response = Mock()
    mock_response.choices = [Mock()]
    mock_response.choices[0].message.content = "Test response"
    mock_response.choices[0].message.tool_calls = None
    mock_response.choices[0].finish_reason = "stop"
    return mock_response


# Pytest configuration
pytest_plugins: list[str] = []
