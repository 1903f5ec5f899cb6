"""Unit tests for StrategySelector and the extraction cascade."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pytest

from typed_llm_output.exceptions import (
    DeserializationError,
    ExtractionFailure,
    NoAvailableStrategyError,
    SchemaCompileError,
    UnionMismatchError,
)
from typed_llm_output.resolver import TypedValue, TypeResolver
from typed_llm_output.signature import Signature
from typed_llm_output.strategies import (
    ExtractionCascade,
    ExtractionContext,
    Response,
    Strategy,
    StrategySelector,
)
from typed_llm_output.strategies.selector import (
    FAILED,
    RECOVERED,
    SUCCEEDED,
    Exhausted,
    Recovered,
    Succeeded,
    Trying,
)

ContextFactory = Callable[..., ExtractionContext]

VALID_ANSWER = '{"answer": "4", "confidence": 0.9, "steps": ["add 2 and 2"]}'


@dataclass
class SpawnTask:
    task: str


@dataclass
class CompleteTask:
    task_id: str


class FakeStrategy(Strategy):
    """Strategy that tags the request with its name and returns the content."""

    def __init__(
        self,
        name: str,
        priority: int,
        is_available: bool = True,
        recoverable: bool | None = True,
        prepare_error: Exception | None = None,
    ) -> None:
        self.name = name
        self.priority = priority
        self.is_available = is_available
        self.recoverable = recoverable
        self.prepare_error = prepare_error

    def available(self, context: ExtractionContext) -> bool:
        return self.is_available

    def prepare(
        self,
        context: ExtractionContext,
        messages: list[dict[str, Any]],
        request_params: dict[str, Any],
    ) -> None:
        if self.prepare_error is not None:
            raise self.prepare_error
        messages[-1]["content"] += f" [{self.name}]"
        request_params.setdefault("tags", []).append(self.name)

    def extract(self, response: Response) -> str | None:
        return response.content

    def handle_error(self, error: Exception) -> bool:
        if self.recoverable is None:
            return super().handle_error(error)
        return self.recoverable


def _messages() -> list[dict[str, Any]]:
    return [{"role": "user", "content": "What is 2+2?"}]


@pytest.mark.unit
class TestStrategyOrdering:
    """Test candidate selection and ordering."""

    def test_orders_by_priority(
        self, answer_signature: Signature, make_context: ContextFactory
    ) -> None:
        """Test highest priority first, skipping unavailable strategies."""
        selector = StrategySelector(
            [
                FakeStrategy("low", 50),
                FakeStrategy("high", 100),
                FakeStrategy("off", 99, is_available=False),
                FakeStrategy("mid", 95),
            ],
            resolver=TypeResolver(),
        )

        ordered = selector.select(make_context(answer_signature))

        assert [s.name for s in ordered] == ["high", "mid", "low"]

    def test_ties_keep_registration_order(
        self, answer_signature: Signature, make_context: ContextFactory
    ) -> None:
        """Test equal priorities are tried in registration order."""
        selector = StrategySelector(
            [FakeStrategy("first", 90), FakeStrategy("second", 90)],
            resolver=TypeResolver(),
        )

        ordered = selector.select(make_context(answer_signature))

        assert [s.name for s in ordered] == ["first", "second"]

    def test_preferred_strategy_first(
        self, answer_signature: Signature, make_context: ContextFactory
    ) -> None:
        """Test an available preferred strategy leads."""
        selector = StrategySelector(
            [FakeStrategy("high", 100), FakeStrategy("low", 50)],
            resolver=TypeResolver(),
            preferred_strategy="low",
        )

        ordered = selector.select(make_context(answer_signature))

        assert [s.name for s in ordered] == ["low", "high"]

    def test_unavailable_preferred_strategy(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test an unavailable preferred strategy is ignored with a warning."""
        selector = StrategySelector(
            [FakeStrategy("high", 100), FakeStrategy("low", 50, is_available=False)],
            resolver=TypeResolver(),
            preferred_strategy="low",
        )

        with caplog.at_level(logging.WARNING):
            ordered = selector.select(make_context(answer_signature))

        assert [s.name for s in ordered] == ["high"]
        assert "Preferred strategy low is not available" in caplog.text


@pytest.mark.unit
class TestStrategyExecution:
    """Test the fallback loop."""

    def test_falls_back_until_success(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        scripted_invoker: Any,
    ) -> None:
        """Test two recoverable failures followed by a success."""
        invoke = scripted_invoker(
            RuntimeError("response_format is not supported"),
            RuntimeError("tool_choice is not supported"),
            Response(VALID_ANSWER),
        )
        selector = StrategySelector(
            [FakeStrategy("c", 50), FakeStrategy("a", 100), FakeStrategy("b", 95)],
            resolver=TypeResolver(),
        )

        result = selector.execute(make_context(answer_signature), _messages(), {}, invoke)

        assert result.strategy == "c"
        assert [(a.strategy, a.outcome) for a in result.attempts] == [
            ("a", RECOVERED),
            ("b", RECOVERED),
            ("c", SUCCEEDED),
        ]
        assert isinstance(result.resolved, TypedValue)
        assert result.value.answer == "4"
        assert result.value.confidence == 0.9
        assert result.value.steps == ["add 2 and 2"]
        assert result.is_raw_fallback is False

    def test_each_attempt_gets_fresh_copies(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        scripted_invoker: Any,
    ) -> None:
        """Test attempts never see earlier strategies' changes or mutate inputs."""
        invoke = scripted_invoker(RuntimeError("rejected"), Response(VALID_ANSWER))
        selector = StrategySelector(
            [FakeStrategy("a", 100), FakeStrategy("b", 95)], resolver=TypeResolver()
        )
        messages = _messages()
        params: dict[str, Any] = {"temperature": 0}

        selector.execute(make_context(answer_signature), messages, params, invoke)

        (first_messages, _), (second_messages, second_params) = invoke.calls
        assert first_messages[-1]["content"] == "What is 2+2? [a]"
        assert second_messages[-1]["content"] == "What is 2+2? [b]"
        assert second_params == {"temperature": 0, "tags": ["b"]}
        assert messages == _messages()
        assert params == {"temperature": 0}

    def test_no_candidate_extracted_is_recovered(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        scripted_invoker: Any,
    ) -> None:
        """Test empty extraction and invalid JSON advance the cascade."""
        invoke = scripted_invoker(
            Response(None), Response("{not json"), Response(VALID_ANSWER)
        )
        selector = StrategySelector(
            [
                FakeStrategy("a", 100, recoverable=None),
                FakeStrategy("b", 95, recoverable=None),
                FakeStrategy("c", 90),
            ],
            resolver=TypeResolver(),
        )

        result = selector.execute(make_context(answer_signature), _messages(), {}, invoke)

        assert result.strategy == "c"
        assert isinstance(result.attempts[0].error, ExtractionFailure)
        assert result.attempts[1].raw_candidate == "{not json"

    def test_all_strategies_exhausted(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        scripted_invoker: Any,
    ) -> None:
        """Test exhaustion lists every attempted strategy."""
        invoke = scripted_invoker(RuntimeError("nope"), RuntimeError("nope"))
        selector = StrategySelector(
            [FakeStrategy("a", 100), FakeStrategy("b", 95)], resolver=TypeResolver()
        )

        with pytest.raises(NoAvailableStrategyError) as exc_info:
            selector.execute(make_context(answer_signature), _messages(), {}, invoke)

        assert exc_info.value.attempted_strategies == ["a", "b"]
        assert str(exc_info.value) == (
            "No strategy could extract AnswerQuestion from gpt-4o-mini. "
            "Attempted: a (recovered), b (recovered)"
        )

    def test_no_available_strategies(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        scripted_invoker: Any,
    ) -> None:
        """Test an empty candidate list fails without invoking the model."""
        invoke = scripted_invoker()
        selector = StrategySelector(
            [FakeStrategy("a", 100, is_available=False)], resolver=TypeResolver()
        )

        with pytest.raises(NoAvailableStrategyError) as exc_info:
            selector.execute(make_context(answer_signature), _messages(), {}, invoke)

        assert exc_info.value.attempts == ()
        assert invoke.calls == []

    def test_unhandled_error_is_raised(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        scripted_invoker: Any,
    ) -> None:
        """Test an error the strategy declines stops the cascade."""
        invoke = scripted_invoker(ConnectionError("Connection reset"))
        selector = StrategySelector(
            [FakeStrategy("a", 100, recoverable=False), FakeStrategy("b", 95)],
            resolver=TypeResolver(),
        )

        with pytest.raises(ConnectionError):
            selector.execute(make_context(answer_signature), _messages(), {}, invoke)

        assert len(invoke.calls) == 1

    def test_candidate_that_does_not_fit_moves_on(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        scripted_invoker: Any,
    ) -> None:
        """Test a candidate missing a required field moves to the next strategy."""
        invoke = scripted_invoker(Response('{"answer": "4"}'), Response(VALID_ANSWER))
        selector = StrategySelector(
            [FakeStrategy("a", 100, recoverable=False), FakeStrategy("b", 95)],
            resolver=TypeResolver(),
        )

        result = selector.execute(make_context(answer_signature), _messages(), {}, invoke)

        assert result.strategy == "b"
        assert [(a.strategy, a.outcome) for a in result.attempts] == [
            ("a", RECOVERED),
            ("b", SUCCEEDED),
        ]
        assert isinstance(result.attempts[0].error, DeserializationError)
        assert "confidence" in str(result.attempts[0].error)

    def test_unknown_union_variant_is_not_retried(
        self, make_context: ContextFactory, scripted_invoker: Any
    ) -> None:
        """Test an unknown discriminator is surfaced directly."""
        signature = Signature.from_types(
            "PickAction", outputs={"action": SpawnTask | CompleteTask}
        )
        invoke = scripted_invoker(
            Response('{"action": {"_type": "Archive"}}'), Response(VALID_ANSWER)
        )
        selector = StrategySelector(
            [FakeStrategy("a", 100), FakeStrategy("b", 95)], resolver=TypeResolver()
        )

        with pytest.raises(UnionMismatchError, match="Unknown type: Archive") as exc_info:
            selector.execute(make_context(signature), _messages(), {}, invoke)

        assert exc_info.value.expected == ["SpawnTask", "CompleteTask"]
        assert len(invoke.calls) == 1

    def test_schema_compile_error_is_not_retried(
        self,
        answer_signature: Signature,
        make_context: ContextFactory,
        scripted_invoker: Any,
    ) -> None:
        """Test compile errors propagate without invoking the model."""
        invoke = scripted_invoker(Response(VALID_ANSWER))
        selector = StrategySelector(
            [
                FakeStrategy("a", 100, prepare_error=SchemaCompileError("bad union")),
                FakeStrategy("b", 95),
            ],
            resolver=TypeResolver(),
        )

        with pytest.raises(SchemaCompileError):
            selector.execute(make_context(answer_signature), _messages(), {}, invoke)

        assert invoke.calls == []


@pytest.mark.unit
class TestExtractionCascade:
    """Test the cascade state machine on its own."""

    def test_recover_and_advance(self) -> None:
        """Test Trying -> Recovered -> Trying -> Recovered -> Exhausted."""
        a, b = FakeStrategy("a", 100), FakeStrategy("b", 95)
        error = RuntimeError("rejected")
        cascade = ExtractionCascade([a, b])

        assert cascade.state == Trying(a)

        cascade.recover(error)
        assert cascade.state == Recovered(a, error, b)

        cascade.advance()
        assert cascade.state == Trying(b)

        cascade.recover(error, raw_candidate="{")
        assert cascade.state == Recovered(b, error, None)

        cascade.advance()
        assert isinstance(cascade.state, Exhausted)
        assert [x.strategy for x in cascade.state.attempts] == ["a", "b"]
        assert cascade.done

    def test_succeed(self) -> None:
        """Test success records the attempt and finishes."""
        a = FakeStrategy("a", 100)
        value = TypedValue({"answer": "4"})
        cascade = ExtractionCascade([a])

        cascade.succeed(value, '{"answer": "4"}')

        assert cascade.state == Succeeded(a, value)
        assert cascade.attempts[0].outcome == SUCCEEDED
        assert cascade.done

    def test_fail_records_attempt(self) -> None:
        """Test a fatal failure is recorded without changing state."""
        a = FakeStrategy("a", 100)
        cascade = ExtractionCascade([a])

        cascade.fail(ValueError("boom"))

        assert cascade.attempts[0].outcome == FAILED
        assert cascade.state == Trying(a)

    def test_empty_candidates(self) -> None:
        """Test an empty list starts exhausted."""
        cascade = ExtractionCascade([])

        assert cascade.state == Exhausted(())
        assert cascade.done

    def test_invalid_transitions(self) -> None:
        """Test transitions outside the allowed edges raise."""
        cascade = ExtractionCascade([FakeStrategy("a", 100)])

        with pytest.raises(RuntimeError, match="Cannot advance from state Trying"):
            cascade.advance()

        cascade.succeed(TypedValue(None), None)

        with pytest.raises(RuntimeError, match="Cannot recover from state Succeeded"):
            cascade.recover(RuntimeError("late"))
