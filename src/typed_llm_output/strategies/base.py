"""Base strategy interface and shared request/response types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from typed_llm_output.capabilities import CapabilityProbe
from typed_llm_output.exceptions import ExtractionFailure
from typed_llm_output.schema.compiler import TypeSchemaCompiler
from typed_llm_output.signature.model import Signature


@dataclass
class Response:
    """Normalized adapter reply read by strategies.

    ``metadata["tool_calls"]`` holds a list of ``{"name", "arguments"}``
    dicts, where arguments are a JSON string or a mapping.
    """

    content: str | None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def tool_calls(self) -> list[dict[str, Any]]:
        return list(self.metadata.get("tool_calls") or [])


@dataclass
class ExtractionContext:
    """Everything a strategy needs to decide availability and build a request.

    Args:
        signature: Signature whose outputs are being extracted.
        provider: Provider name (e.g., 'openai', 'anthropic', 'gemini').
        model: Model name as passed to the provider.
        compiler: Compiler used to produce dialect schemas.
        capabilities: Probe answering what the model supports.
        structured_outputs_enabled: Global switch for native structured output.
    """

    signature: Signature
    provider: str
    model: str
    compiler: TypeSchemaCompiler
    capabilities: CapabilityProbe
    structured_outputs_enabled: bool = True


class Strategy(ABC):
    """An extraction strategy.

    Subclasses set ``name`` and ``priority`` (higher is tried first), mutate
    the outbound request in ``prepare`` and pull a JSON string out of the
    reply in ``extract``.
    """

    name: str = "base"
    priority: int = 0

    @abstractmethod
    def available(self, context: ExtractionContext) -> bool:
        """Check if this strategy can handle the given context."""
        pass

    @abstractmethod
    def prepare(
        self,
        context: ExtractionContext,
        messages: list[dict[str, Any]],
        request_params: dict[str, Any],
    ) -> None:
        """Mutate messages and request parameters in place.

        Args:
            context: Extraction context
            messages: Chat messages to send
            request_params: Provider request parameters

        Raises:
            SchemaCompileError: If the signature cannot be compiled for the
                strategy's dialect
        """
        pass

    @abstractmethod
    def extract(self, response: Response) -> str | None:
        """Pull a JSON candidate string out of a response.

        Returns:
            The JSON text, or None if nothing could be extracted
        """
        pass

    def handle_error(self, error: Exception) -> bool:
        """Decide whether a failure should advance to the next strategy.

        Returns:
            True if the error was handled and the next strategy should run
        """
        return isinstance(error, ExtractionFailure)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


def last_user_message(messages: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Find the last user message, if any."""
    for message in reversed(messages):
        if message.get("role") == "user":
            return message
    return None


def append_to_last_user_message(messages: list[dict[str, Any]], text: str) -> None:
    """Append text to the last user message, adding one if there is none."""
    message = last_user_message(messages)
    if message is None:
        messages.append({"role": "user", "content": text.lstrip()})
        return
    message["content"] = f"{message.get('content') or ''}{text}"
