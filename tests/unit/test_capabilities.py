"""Unit tests for model capability probes."""

from typing import Any
from unittest.mock import patch

import pytest

from typed_llm_output.capabilities import (
    STRUCTURED_OUTPUTS,
    TOOL_USE,
    CapabilityProbe,
    get_provider_from_model,
    strip_provider_prefix,
)
from typed_llm_output.schema.cache import SchemaCache


@pytest.mark.unit
class TestProviderHelpers:
    """Test model name helpers."""

    def test_get_provider_from_model(self) -> None:
        """Test provider inference from model names."""
        assert get_provider_from_model("gpt-4o-mini") == "openai"
        assert get_provider_from_model("openai/o1-preview") == "openai"
        assert get_provider_from_model("claude-3-5-sonnet-20241022") == "anthropic"
        assert get_provider_from_model("gemini/gemini-1.5-pro") == "gemini"
        assert get_provider_from_model("llama3") == "unknown"

    def test_strip_provider_prefix(self) -> None:
        """Test LiteLLM provider prefixes are removed."""
        assert strip_provider_prefix("gemini/gemini-2.0-flash") == "gemini-2.0-flash"
        assert strip_provider_prefix("gpt-4o") == "gpt-4o"


@pytest.mark.unit
class TestCapabilityProbe:
    """Test capability probing and caching."""

    @patch("litellm.supports_response_schema")
    def test_allow_listed_models(self, mock_supports: Any) -> None:
        """Test known models are answered without LiteLLM."""
        probe = CapabilityProbe(SchemaCache())

        assert probe.supports_structured_outputs("openai", "gpt-4o-mini") is True
        assert probe.supports_structured_outputs("gemini", "gemini-1.5-pro-002") is True
        assert probe.supports_structured_outputs("gemini", "gemini/gemini-2.5-flash") is True
        mock_supports.assert_not_called()

    @patch("litellm.supports_response_schema")
    def test_falls_back_to_litellm(self, mock_supports: Any) -> None:
        """Test unknown models are looked up in LiteLLM's model map."""
        mock_supports.return_value = False
        probe = CapabilityProbe(SchemaCache())

        assert probe.supports_structured_outputs("openai", "gpt-3.5-turbo") is False
        mock_supports.assert_called_once_with(model="gpt-3.5-turbo")

    @patch("litellm.supports_response_schema")
    def test_litellm_errors_mean_unsupported(self, mock_supports: Any) -> None:
        """Test lookup failures are treated as unsupported."""
        mock_supports.side_effect = Exception("model not mapped")
        probe = CapabilityProbe(SchemaCache())

        assert probe.supports_structured_outputs("ollama", "llama3") is False

    @patch("litellm.supports_response_schema")
    def test_results_are_cached(self, mock_supports: Any) -> None:
        """Test each probe runs once per model and capability."""
        mock_supports.return_value = True
        cache = SchemaCache()
        probe = CapabilityProbe(cache)

        assert probe.supports_structured_outputs("openai", "gpt-5") is True
        assert probe.supports_structured_outputs("openai", "gpt-5") is True

        mock_supports.assert_called_once()
        assert cache.get_capability("gpt-5", STRUCTURED_OUTPUTS) is True

    @patch("litellm.supports_function_calling")
    def test_tool_use(self, mock_supports: Any) -> None:
        """Test Anthropic always supports tools; others ask LiteLLM."""
        mock_supports.return_value = False
        cache = SchemaCache()
        probe = CapabilityProbe(cache)

        assert probe.supports_tool_use("anthropic", "claude-3-haiku-20240307") is True
        assert probe.supports_tool_use("ollama", "llama3") is False
        mock_supports.assert_called_once_with(model="llama3")
        assert cache.get_capability("llama3", TOOL_USE) is False

    def test_emits_delimited_json(self) -> None:
        """Test Claude models are treated as delimiting JSON reliably."""
        probe = CapabilityProbe()

        assert probe.emits_delimited_json("anthropic", "claude-3-5-sonnet-20241022")
        assert probe.emits_delimited_json("bedrock", "anthropic.claude-v2")
        assert not probe.emits_delimited_json("openai", "gpt-4o")
