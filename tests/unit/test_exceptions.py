"""Unit tests for the exception hierarchy."""

import pytest

from typed_llm_output.exceptions import (
    ConfigurationException,
    DeserializationError,
    DiscriminatorConflictError,
    ErrorKind,
    ExtractionFailure,
    NoAvailableStrategyError,
    SchemaCompileError,
    StrategyRecoverableError,
    TypedOutputException,
    UnionMismatchError,
    UnsupportedSchemaError,
)


@pytest.mark.unit
class TestErrorKinds:
    """Test every exception reports the kind callers branch on."""

    def test_base_kind_is_unspecified(self) -> None:
        """Test the base class does not claim a concrete kind."""
        assert TypedOutputException("boom").kind is ErrorKind.UNSPECIFIED

    def test_subclass_without_kind_stays_unspecified(self) -> None:
        """Test a subclass that sets no kind is not mistaken for a compile error."""

        class CustomError(TypedOutputException):
            pass

        assert CustomError("boom").kind is ErrorKind.UNSPECIFIED

    @pytest.mark.parametrize(
        "error, kind",
        [
            (SchemaCompileError("bad"), ErrorKind.SCHEMA_COMPILE),
            (DiscriminatorConflictError("Todo", "_type"), ErrorKind.SCHEMA_COMPILE),
            (
                UnsupportedSchemaError("bad union", variant="string"),
                ErrorKind.SCHEMA_COMPILE,
            ),
            (StrategyRecoverableError("retry"), ErrorKind.STRATEGY_RECOVERABLE),
            (ExtractionFailure("no json"), ErrorKind.EXTRACTION_FAILURE),
            (NoAvailableStrategyError("none"), ErrorKind.NO_AVAILABLE_STRATEGY),
            (DeserializationError("bad value"), ErrorKind.DESERIALIZATION),
            (UnionMismatchError("Unknown type: X", ["A"]), ErrorKind.DESERIALIZATION),
            (ConfigurationException("bad config"), ErrorKind.CONFIGURATION),
        ],
    )
    def test_concrete_kinds(self, error: TypedOutputException, kind: ErrorKind) -> None:
        """Test each concrete exception declares its kind."""
        assert error.kind is kind

    def test_union_mismatch_is_a_deserialization_error(self) -> None:
        """Test union mismatches can still be caught as deserialization errors."""
        error = UnionMismatchError(
            "Unknown type: X", expected=["A", "B"], path="$.action", value={}
        )

        assert isinstance(error, DeserializationError)
        assert error.expected == ["A", "B"]
        assert error.path == "$.action"
