"""Signature definition: the typed contract of one LLM call."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from typed_llm_output.signature.descriptors import FieldDescriptor, Struct
from typed_llm_output.signature.registry import describe_field


@dataclass(frozen=True)
class Signature:
    """Typed input/output contract built once at definition time.

    Args:
        name: Signature name; used as the schema name and cache key.
        output_fields: Fields the model must produce.
        input_fields: Fields the caller provides.
        description: Optional task description.
        definitions: Named structs available to ``RecursiveRef`` nodes that
            do not point at an enclosing struct.

    Example:
        ```python
        from typed_llm_output.signature import Signature

        signature = Signature.from_types(
            "AnswerQuestion",
            outputs={"answer": str, "confidence": float, "steps": list[str]},
            inputs={"question": str},
        )
        ```
    """

    name: str
    output_fields: tuple[FieldDescriptor, ...]
    input_fields: tuple[FieldDescriptor, ...] = ()
    description: str | None = None
    definitions: Mapping[str, Struct] = field(default_factory=dict, compare=False)

    @property
    def output_struct(self) -> Struct:
        """The output fields as a root struct named after the signature."""
        return Struct(
            name=self.name,
            fields=self.output_fields,
            description=self.description,
        )

    @property
    def input_struct(self) -> Struct:
        """The input fields as a struct named ``<name>Input``."""
        return Struct(name=f"{self.name}Input", fields=self.input_fields)

    @property
    def signature_id(self) -> str:
        return self.name

    @classmethod
    def from_types(
        cls,
        name: str,
        outputs: Mapping[str, Any],
        inputs: Mapping[str, Any] | None = None,
        description: str | None = None,
        descriptions: Mapping[str, str] | None = None,
    ) -> "Signature":
        """Build a signature from Python type annotations.

        Args:
            name: Signature name
            outputs: Mapping of output field name to Python type
            inputs: Mapping of input field name to Python type
            description: Optional task description
            descriptions: Optional per-field descriptions

        Returns:
            Signature with descriptors registered from the given types
        """
        descriptions = descriptions or {}
        return cls(
            name=name,
            output_fields=tuple(
                describe_field(field_name, tp, description=descriptions.get(field_name))
                for field_name, tp in outputs.items()
            ),
            input_fields=tuple(
                describe_field(field_name, tp, description=descriptions.get(field_name))
                for field_name, tp in (inputs or {}).items()
            ),
            description=description,
        )
