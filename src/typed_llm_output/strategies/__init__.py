"""Extraction strategies for structured LLM output.

This module provides:
- The ``Strategy`` interface and the normalized ``Response`` it reads
- Native structured output, forced tool use, delimited-JSON extraction and
  enhanced prompting strategies
- ``StrategySelector``, which orders strategies by priority and falls back
  across them
"""

from .base import ExtractionContext, Response, Strategy
from .enhanced_prompting import EnhancedPrompting, generate_example
from .extraction_patterns import ExtractionPatterns
from .native import NativeStructuredOutput
from .patterns import find_balanced_json, first_candidate
from .selector import (
    ExtractionAttempt,
    ExtractionCascade,
    ExtractionResult,
    StrategySelector,
)
from .tool_use import ToolUse


def default_strategies() -> list[Strategy]:
    """One instance of each built-in strategy, in registration order."""
    return [
        NativeStructuredOutput(),
        ToolUse(),
        ExtractionPatterns(),
        EnhancedPrompting(),
    ]


__all__ = [
    # Base
    "ExtractionContext",
    "Response",
    "Strategy",
    # Strategies
    "NativeStructuredOutput",
    "ToolUse",
    "ExtractionPatterns",
    "EnhancedPrompting",
    "default_strategies",
    # Patterns
    "find_balanced_json",
    "first_candidate",
    "generate_example",
    # Selector
    "ExtractionAttempt",
    "ExtractionCascade",
    "ExtractionResult",
    "StrategySelector",
]
