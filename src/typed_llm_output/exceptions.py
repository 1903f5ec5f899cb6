"""Custom exceptions for the typed LLM output pipeline."""

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Discriminating kind carried by every pipeline exception."""

    UNSPECIFIED = "unspecified"
    SCHEMA_COMPILE = "schema_compile"
    STRATEGY_RECOVERABLE = "strategy_recoverable"
    EXTRACTION_FAILURE = "extraction_failure"
    NO_AVAILABLE_STRATEGY = "no_available_strategy"
    DESERIALIZATION = "deserialization"
    CONFIGURATION = "configuration"


class TypedOutputException(Exception):
    """Base exception for the typed LLM output pipeline.

    All custom exceptions in this package inherit from this base class, so
    callers can catch one type and branch on ``kind``.
    """

    kind: ErrorKind = ErrorKind.UNSPECIFIED


class SchemaCompileError(TypedOutputException):
    """Raised when a type descriptor cannot be compiled for a dialect.

    This error is fatal: it is raised at compile time and never retried.

    Attributes:
        dialect: Name of the dialect being compiled for
    """

    kind = ErrorKind.SCHEMA_COMPILE

    def __init__(self, message: str, dialect: str | None = None):
        super().__init__(message)
        self.dialect = dialect


class DiscriminatorConflictError(SchemaCompileError):
    """Raised when a union member already declares the discriminator field.

    Attributes:
        struct_name: The struct that declares the conflicting field
        field_name: The reserved discriminator field name
    """

    def __init__(
        self,
        struct_name: str,
        field_name: str,
        dialect: str | None = None,
    ):
        super().__init__(
            f"{field_name} field conflict: {struct_name} already has a "
            f"{field_name} field defined. {field_name} is reserved for union "
            "type detection.",
            dialect=dialect,
        )
        self.struct_name = struct_name
        self.field_name = field_name


class UnsupportedSchemaError(SchemaCompileError):
    """Raised when a union cannot be safely disambiguated under a dialect.

    Attributes:
        variant: Description of the variant lacking a discriminator
        recommended_strategy: Strategy that can still handle the signature
    """

    def __init__(
        self,
        message: str,
        variant: str,
        dialect: str | None = None,
        recommended_strategy: str = "enhanced_prompting",
    ):
        super().__init__(
            f"{message} Use the '{recommended_strategy}' strategy for this "
            "signature instead.",
            dialect=dialect,
        )
        self.variant = variant
        self.recommended_strategy = recommended_strategy


class StrategyRecoverableError(TypedOutputException):
    """Raised when a provider rejects a request over a schema/feature mismatch.

    Attributes:
        strategy: Name of the strategy whose request was rejected
        original_error: The provider error that was classified as recoverable
    """

    kind = ErrorKind.STRATEGY_RECOVERABLE

    def __init__(
        self,
        message: str,
        strategy: str | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.strategy = strategy
        self.original_error = original_error


class ExtractionFailure(TypedOutputException):
    """Raised when no JSON candidate could be pulled out of a response.

    This covers both ``extract`` returning ``None`` and a candidate that is
    not parseable JSON. It is always recoverable.

    Attributes:
        strategy: Name of the strategy that failed to extract
        raw_candidate: The candidate text, if one was found
    """

    kind = ErrorKind.EXTRACTION_FAILURE

    def __init__(
        self,
        message: str,
        strategy: str | None = None,
        raw_candidate: str | None = None,
    ):
        super().__init__(message)
        self.strategy = strategy
        self.raw_candidate = raw_candidate


class NoAvailableStrategyError(TypedOutputException):
    """Raised when every candidate strategy was exhausted.

    Attributes:
        attempts: The extraction attempts made, in order
    """

    kind = ErrorKind.NO_AVAILABLE_STRATEGY

    def __init__(self, message: str, attempts: tuple[Any, ...] = ()):
        if attempts:
            tried = ", ".join(
                f"{attempt.strategy} ({attempt.outcome})" for attempt in attempts
            )
            message = f"{message} Attempted: {tried}"
        super().__init__(message)
        self.attempts = attempts

    @property
    def attempted_strategies(self) -> list[str]:
        """Names of the strategies that were tried."""
        return [attempt.strategy for attempt in self.attempts]


class DeserializationError(TypedOutputException):
    """Raised when parsed JSON does not fit the declared type.

    The selector treats it as a bad candidate and moves on to the next
    strategy. ``UnionMismatchError`` is the exception.

    Attributes:
        path: JSON path of the offending value (``$`` is the root)
        value: The offending value
    """

    kind = ErrorKind.DESERIALIZATION

    def __init__(self, message: str, path: str = "$", value: Any = None):
        super().__init__(message)
        self.path = path
        self.value = value


class UnionMismatchError(DeserializationError):
    """Raised when a union value names an unknown variant, or matches none
    under strict unions.

    Surfaced directly to the caller and never retried, since it reflects a
    content problem rather than a format-negotiation problem.

    Attributes:
        expected: Variant names the value could have matched
    """

    def __init__(
        self,
        message: str,
        expected: list[str],
        path: str = "$",
        value: Any = None,
    ):
        super().__init__(message, path=path, value=value)
        self.expected = expected


class ConfigurationException(TypedOutputException):
    """Raised when configuration errors occur.

    This exception is raised when:
    - Invalid configuration values are provided
    - An environment variable cannot be parsed

    Attributes:
        config_key: The configuration key that caused the error
        config_value: The invalid configuration value
    """

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        config_value: str | None = None,
    ):
        super().__init__(message)
        self.config_key = config_key
        self.config_value = config_value
