"""Unit tests for JSON candidate extraction helpers."""

import pytest

from typed_llm_output.strategies.patterns import (
    extract_bare_json,
    extract_generic_fence,
    extract_json_fence,
    extract_output_values_section,
    find_balanced_json,
    first_candidate,
    is_valid_json,
)


@pytest.mark.unit
class TestPatternExtractors:
    """Test each extractor on its own."""

    def test_json_fence(self) -> None:
        """Test the first json fence is returned trimmed."""
        text = 'Sure:\n```json\n{"a": 1}\n```\nand\n```json\n{"b": 2}\n```'

        assert extract_json_fence(text) == '{"a": 1}'

    def test_json_fence_case_insensitive(self) -> None:
        """Test the fence language tag is matched case-insensitively."""
        assert extract_json_fence('```JSON\n{"a": 1}\n```') == '{"a": 1}'

    def test_output_values_section(self) -> None:
        """Test a block under an Output values heading."""
        text = "## Reasoning\nThinking.\n\n## Output values\n```\n{\"answer\": \"4\"}\n```"

        assert extract_output_values_section(text) == '{"answer": "4"}'

    def test_generic_fence_requires_json_body(self) -> None:
        """Test fences whose body is not JSON-like are skipped."""
        text = "```python\nprint(1)\n```\n```text\n[1, 2]\n```"

        assert extract_generic_fence(text) == "[1, 2]"

    def test_bare_json(self) -> None:
        """Test bare JSON is accepted and prose is not."""
        assert extract_bare_json('  {"a": 1}  ') == '{"a": 1}'
        assert extract_bare_json("The answer is 4") is None

    def test_first_candidate_order(self) -> None:
        """Test json fences win over other blocks."""
        text = '```\n{"generic": true}\n```\n```json\n{"fenced": true}\n```'

        assert first_candidate(text) == '{"fenced": true}'
        assert first_candidate("") is None
        assert first_candidate(None) is None
        assert first_candidate("no json here") is None

    def test_is_valid_json(self) -> None:
        """Test JSON validity check."""
        assert is_valid_json('{"a": [1, 2]}') is True
        assert is_valid_json("{'a': 1}") is False


@pytest.mark.unit
class TestFindBalancedJson:
    """Test the brace scanner."""

    def test_objects_in_prose(self) -> None:
        """Test objects are found in order of appearance."""
        text = 'First {"a": 1} then {"b": {"c": 2}} done'

        assert find_balanced_json(text) == ['{"a": 1}', '{"b": {"c": 2}}']

    def test_braces_inside_strings(self) -> None:
        """Test braces inside string literals do not affect depth."""
        text = 'Result: {"text": "a } tricky { value", "n": 1}'

        assert find_balanced_json(text) == ['{"text": "a } tricky { value", "n": 1}']

    def test_escaped_quotes(self) -> None:
        """Test escaped quotes do not end a string."""
        text = '{"quote": "she said \\"}\\" loudly"}'

        assert find_balanced_json(text) == [text]

    def test_unbalanced(self) -> None:
        """Test an unterminated object yields nothing."""
        assert find_balanced_json('{"a": 1') == []
        assert find_balanced_json("no braces") == []

    def test_unbalanced_prefix_does_not_hide_later_objects(self) -> None:
        """Test scanning resumes after an unterminated brace."""
        text = 'Options look like {a, b. Final answer: {"answer": "x"}'

        assert find_balanced_json(text) == ['{"answer": "x"}']
