"""Strategy ordering and the extraction fallback cascade."""

import copy
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from typed_llm_output.exceptions import (
    DeserializationError,
    ExtractionFailure,
    NoAvailableStrategyError,
    SchemaCompileError,
    UnionMismatchError,
)
from typed_llm_output.resolver import RawFallback, TypedValue, TypeResolver
from typed_llm_output.strategies.base import ExtractionContext, Response, Strategy

logger = logging.getLogger(__name__)

Invoker = Callable[[list[dict[str, Any]], dict[str, Any]], Response]

SUCCEEDED = "succeeded"
RECOVERED = "recovered"
FAILED = "failed"


@dataclass(frozen=True)
class ExtractionAttempt:
    """Diagnostic record of one strategy attempt."""

    strategy: str
    raw_candidate: str | None
    outcome: str
    error: Exception | None = None


@dataclass(frozen=True)
class ExtractionResult:
    """A resolved value and how it was obtained.

    Args:
        resolved: Resolution result (``TypedValue`` or ``RawFallback``).
        strategy: Name of the strategy that succeeded.
        attempts: Every attempt made, in order, including the successful one.
    """

    resolved: TypedValue | RawFallback
    strategy: str
    attempts: tuple[ExtractionAttempt, ...] = ()

    @property
    def value(self) -> Any:
        return self.resolved.unwrap()

    @property
    def is_raw_fallback(self) -> bool:
        return isinstance(self.resolved, RawFallback)


# Cascade states


@dataclass(frozen=True)
class Trying:
    strategy: Strategy


@dataclass(frozen=True)
class Recovered:
    failed: Strategy
    error: Exception
    next: Strategy | None


@dataclass(frozen=True)
class Succeeded:
    strategy: Strategy
    value: TypedValue | RawFallback


@dataclass(frozen=True)
class Exhausted:
    attempts: tuple[ExtractionAttempt, ...]


CascadeState = Trying | Recovered | Succeeded | Exhausted


@dataclass
class ExtractionCascade:
    """Finite-state machine over an ordered list of candidate strategies.

    ``Trying(s)`` moves to ``Succeeded`` or ``Recovered(s, error, next)``;
    ``Recovered`` advances to ``Trying(next)`` or, with no candidates left,
    ``Exhausted``. An empty candidate list starts out ``Exhausted``.
    """

    candidates: Sequence[Strategy]
    attempts: list[ExtractionAttempt] = field(default_factory=list)
    state: CascadeState = field(init=False)
    _index: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.candidates:
            self.state = Trying(self.candidates[0])
        else:
            self.state = Exhausted(())

    @property
    def done(self) -> bool:
        return isinstance(self.state, Succeeded | Exhausted)

    def succeed(
        self, value: TypedValue | RawFallback, raw_candidate: str | None
    ) -> None:
        strategy = self._current("succeed")
        self.attempts.append(ExtractionAttempt(strategy.name, raw_candidate, SUCCEEDED))
        self.state = Succeeded(strategy, value)

    def recover(self, error: Exception, raw_candidate: str | None = None) -> None:
        strategy = self._current("recover")
        self.attempts.append(
            ExtractionAttempt(strategy.name, raw_candidate, RECOVERED, error)
        )
        self._index += 1
        upcoming = (
            self.candidates[self._index]
            if self._index < len(self.candidates)
            else None
        )
        self.state = Recovered(strategy, error, upcoming)

    def fail(self, error: Exception, raw_candidate: str | None = None) -> None:
        """Record a fatal failure; the caller re-raises ``error``."""
        strategy = self._current("fail")
        self.attempts.append(
            ExtractionAttempt(strategy.name, raw_candidate, FAILED, error)
        )

    def advance(self) -> None:
        if not isinstance(self.state, Recovered):
            raise RuntimeError(
                f"Cannot advance from state {type(self.state).__name__}"
            )
        if self.state.next is None:
            self.state = Exhausted(tuple(self.attempts))
        else:
            self.state = Trying(self.state.next)

    def _current(self, action: str) -> Strategy:
        if not isinstance(self.state, Trying):
            raise RuntimeError(f"Cannot {action} from state {type(self.state).__name__}")
        return self.state.strategy


class StrategySelector:
    """Orders available strategies and drives the fallback loop.

    Example:
        ```python
        selector = StrategySelector(
            [NativeStructuredOutput(), ToolUse(), EnhancedPrompting()],
            resolver=TypeResolver(),
        )
        result = selector.execute(context, messages, {}, invoke)
        print(result.strategy, result.value)
        ```
    """

    def __init__(
        self,
        strategies: Sequence[Strategy],
        resolver: TypeResolver,
        preferred_strategy: str | None = None,
    ) -> None:
        """Initialize StrategySelector.

        Args:
            strategies: Registered strategies; registration order breaks
                priority ties
            resolver: Resolver for extracted JSON
            preferred_strategy: Name of a strategy to try first when available
        """
        self.strategies = list(strategies)
        self.resolver = resolver
        self.preferred_strategy = preferred_strategy

    def select(self, context: ExtractionContext) -> list[Strategy]:
        """Available strategies, highest priority first.

        Args:
            context: Extraction context

        Returns:
            Ordered candidates; the preferred strategy leads when available
        """
        # sorted() is stable, so equal priorities keep registration order
        ordered = sorted(
            (s for s in self.strategies if s.available(context)),
            key=lambda s: -s.priority,
        )

        if self.preferred_strategy:
            preferred = next(
                (s for s in ordered if s.name == self.preferred_strategy), None
            )
            if preferred is not None:
                ordered.remove(preferred)
                ordered.insert(0, preferred)
            else:
                logger.warning(
                    "Preferred strategy %s is not available for %s; "
                    "using default ordering",
                    self.preferred_strategy,
                    context.model,
                )

        logger.debug(
            "Selected strategies for %s: %s",
            context.model,
            [s.name for s in ordered],
        )
        return ordered

    def execute(
        self,
        context: ExtractionContext,
        messages: list[dict[str, Any]],
        request_params: dict[str, Any],
        invoke: Invoker,
    ) -> ExtractionResult:
        """Run candidates in order until one yields a resolved value.

        The caller's messages and parameters are never mutated; each attempt
        works on its own copies.

        Args:
            context: Extraction context
            messages: Base chat messages
            request_params: Base request parameters
            invoke: Callable issuing the LM request and returning a Response

        Returns:
            The resolved value with the succeeding strategy and all attempts

        Raises:
            SchemaCompileError: If a strategy cannot compile the signature
            UnionMismatchError: If a union value names an unknown variant, or
                matches none under strict unions
            NoAvailableStrategyError: If every candidate was exhausted
            Exception: Any error a strategy declines to handle
        """
        cascade = ExtractionCascade(self.select(context))

        while not cascade.done:
            match cascade.state:
                case Trying(strategy=strategy):
                    self._attempt(
                        strategy, cascade, context, messages, request_params, invoke
                    )
                case Recovered(failed=failed, error=error):
                    logger.info(
                        "Strategy %s handled error, trying next strategy: %s",
                        failed.name,
                        error,
                    )
                    cascade.advance()

        match cascade.state:
            case Succeeded(strategy=strategy, value=value):
                return ExtractionResult(
                    resolved=value,
                    strategy=strategy.name,
                    attempts=tuple(cascade.attempts),
                )
            case Exhausted(attempts=attempts):
                raise NoAvailableStrategyError(
                    f"No strategy could extract {context.signature.name} "
                    f"from {context.model}.",
                    attempts=attempts,
                )
        raise RuntimeError(f"Unexpected cascade state {cascade.state!r}")

    def _attempt(
        self,
        strategy: Strategy,
        cascade: ExtractionCascade,
        context: ExtractionContext,
        messages: list[dict[str, Any]],
        request_params: dict[str, Any],
        invoke: Invoker,
    ) -> None:
        attempt_messages = copy.deepcopy(messages)
        attempt_params = copy.deepcopy(request_params)
        candidate: str | None = None

        try:
            strategy.prepare(context, attempt_messages, attempt_params)
            response = invoke(attempt_messages, attempt_params)
            candidate = strategy.extract(response)
            if candidate is None:
                raise ExtractionFailure(
                    f"{strategy.name} found no JSON in the response",
                    strategy=strategy.name,
                )
            logger.debug("%s extracted candidate: %s", strategy.name, candidate)

            try:
                data = json.loads(candidate)
            except json.JSONDecodeError as e:
                raise ExtractionFailure(
                    f"{strategy.name} extracted invalid JSON: {e}",
                    strategy=strategy.name,
                    raw_candidate=candidate,
                ) from e

            resolved = self.resolver.resolve(
                data,
                context.signature.output_struct,
                definitions=context.signature.definitions,
            )
        except (SchemaCompileError, UnionMismatchError) as e:
            cascade.fail(e, candidate)
            raise
        except DeserializationError as e:
            # The candidate did not fit; another strategy may extract a better one.
            cascade.recover(e, candidate)
            return
        except Exception as e:
            if strategy.handle_error(e):
                cascade.recover(e, candidate)
                return
            cascade.fail(e, candidate)
            raise

        cascade.succeed(resolved, candidate)
