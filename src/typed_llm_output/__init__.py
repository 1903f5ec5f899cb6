"""Typed LLM Output - typed signatures in, typed values out, for any provider."""

__version__ = "0.1.0"

# Adapter layer
from .adapters import LiteLLMInvoker

# Custom exceptions
from .exceptions import (
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

# Pipeline
from .pipeline import StructuredOutputPipeline

# Resolution
from .resolver import RawFallback, ResolutionFailure, TypedValue, TypeResolver

# Schema compilation
from .schema import CompiledSchema, SchemaCache, TypeSchemaCompiler

# Signatures
from .signature import Signature, describe

# Strategies
from .strategies import (
    EnhancedPrompting,
    ExtractionPatterns,
    ExtractionResult,
    NativeStructuredOutput,
    Response,
    Strategy,
    StrategySelector,
    ToolUse,
)

# Configuration utilities
from .utils import (
    StructuredOutputSettings,
    get_available_providers,
    load_environment,
    load_settings,
)

__all__ = [
    "__version__",
    "StructuredOutputPipeline",
    "Signature",
    "describe",
    "TypeSchemaCompiler",
    "CompiledSchema",
    "SchemaCache",
    "TypeResolver",
    "TypedValue",
    "RawFallback",
    "ResolutionFailure",
    "Strategy",
    "Response",
    "NativeStructuredOutput",
    "ToolUse",
    "ExtractionPatterns",
    "EnhancedPrompting",
    "StrategySelector",
    "ExtractionResult",
    "LiteLLMInvoker",
    "StructuredOutputSettings",
    "load_environment",
    "load_settings",
    "get_available_providers",
    # Exceptions
    "ErrorKind",
    "TypedOutputException",
    "SchemaCompileError",
    "DiscriminatorConflictError",
    "UnsupportedSchemaError",
    "StrategyRecoverableError",
    "ExtractionFailure",
    "NoAvailableStrategyError",
    "DeserializationError",
    "UnionMismatchError",
    "ConfigurationException",
]
