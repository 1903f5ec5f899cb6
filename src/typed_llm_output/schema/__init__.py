"""Schema compilation for structured LLM responses.

This module provides:
- Provider-specific JSON-schema dialects
- Compilation of type descriptors into those dialects, with union
  discriminators and ``$defs`` for recursive types
- A TTL cache for compiled schemas and capability probes
- Compatibility checks for native structured-output limitations
"""

from .cache import CacheEntry, SchemaCache
from .compiler import CompiledSchema, TypeSchemaCompiler
from .dialects import (
    ANTHROPIC_TOOL,
    GEMINI,
    JSON_SCHEMA,
    OPENAI_STRICT,
    Dialect,
    NullableStyle,
    dialect_for_provider,
    get_dialect,
)
from .validators import (
    CompatibilityIssue,
    SchemaCompatibilityResult,
    SchemaCompatibilityValidator,
)

__all__ = [
    # Cache
    "CacheEntry",
    "SchemaCache",
    # Compiler
    "CompiledSchema",
    "TypeSchemaCompiler",
    # Dialects
    "Dialect",
    "NullableStyle",
    "JSON_SCHEMA",
    "OPENAI_STRICT",
    "GEMINI",
    "ANTHROPIC_TOOL",
    "dialect_for_provider",
    "get_dialect",
    # Validators
    "CompatibilityIssue",
    "SchemaCompatibilityResult",
    "SchemaCompatibilityValidator",
]
