"""Immutable type descriptors for signature inputs and outputs.

A ``TypeDescriptor`` is a closed tagged variant. The compiler, resolver and
serializer all dispatch over it with exhaustive ``match`` statements, so a new
kind is a change every consumer has to handle.
"""

from collections.abc import Iterator
from dataclasses import MISSING, dataclass, field
from enum import Enum
from typing import Any


class PrimitiveKind(Enum):
    """Scalar kinds supported by ``Primitive``."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"


@dataclass(frozen=True)
class Primitive:
    """A scalar value."""

    kind: PrimitiveKind


@dataclass(frozen=True)
class OptionalOf:
    """A value that may be ``null``."""

    inner: "TypeDescriptor"


@dataclass(frozen=True)
class ArrayOf:
    """A homogeneous list."""

    inner: "TypeDescriptor"


@dataclass(frozen=True)
class MapOf:
    """A string-keyed mapping with homogeneous values."""

    value_type: "TypeDescriptor"


@dataclass(frozen=True)
class EnumOf:
    """A closed set of string values.

    Args:
        values: Allowed serialized values, in declaration order.
        name: Optional enum name, used for diagnostics.
        python_type: Optional ``Enum`` class members are resolved into.
    """

    values: tuple[str, ...]
    name: str | None = None
    python_type: type[Enum] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class FieldDescriptor:
    """A named field of a struct or signature.

    Args:
        name: Field name as it appears in JSON.
        type: Descriptor of the field's value.
        optional: Whether the field may be omitted (resolves to ``None``).
        default: Default used when the field is absent.
        description: Human-readable description, copied into schemas.
    """

    name: str
    type: "TypeDescriptor"
    optional: bool = False
    default: Any = field(default_factory=lambda: MISSING)
    description: str | None = None

    @property
    def has_default(self) -> bool:
        """Whether a default value was declared."""
        return self.default is not MISSING

    @property
    def required(self) -> bool:
        """A field is required when it is neither optional nor defaulted."""
        return not self.optional and not self.has_default


@dataclass(frozen=True)
class Struct:
    """A named record.

    Args:
        name: Struct name; also the discriminator constant in unions.
        fields: Declared fields, in order.
        description: Optional description, copied into schemas.
        python_type: Optional class instances are built with. When absent the
            resolver generates a Pydantic model named after the struct.
    """

    name: str
    fields: tuple[FieldDescriptor, ...]
    description: str | None = None
    python_type: type | None = field(default=None, compare=False)

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def required_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.required]

    def get_field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class UnionOf:
    """A tagged union; variants are tried in declaration order."""

    variants: tuple["TypeDescriptor", ...]


@dataclass(frozen=True)
class RecursiveRef:
    """A by-name reference to a struct, used at recursion points."""

    name: str


TypeDescriptor = (
    Primitive | OptionalOf | ArrayOf | MapOf | EnumOf | Struct | UnionOf | RecursiveRef
)

STRING = Primitive(PrimitiveKind.STRING)
INTEGER = Primitive(PrimitiveKind.INTEGER)
NUMBER = Primitive(PrimitiveKind.NUMBER)
BOOLEAN = Primitive(PrimitiveKind.BOOLEAN)
DATE = Primitive(PrimitiveKind.DATE)
DATETIME = Primitive(PrimitiveKind.DATETIME)


def iter_structs(descriptor: TypeDescriptor) -> Iterator[Struct]:
    """Yield every distinct struct reachable from ``descriptor``.

    Structs are visited once by name, so self-referential graphs terminate.
    """
    seen: set[str] = set()
    stack: list[TypeDescriptor] = [descriptor]

    while stack:
        node = stack.pop()
        match node:
            case Struct(name=name, fields=fields):
                if name in seen:
                    continue
                seen.add(name)
                yield node
                stack.extend(f.type for f in reversed(fields))
            case OptionalOf(inner=inner) | ArrayOf(inner=inner):
                stack.append(inner)
            case MapOf(value_type=value_type):
                stack.append(value_type)
            case UnionOf(variants=variants):
                stack.extend(reversed(variants))
            case Primitive() | EnumOf() | RecursiveRef():
                pass


def union_member_names(
    descriptor: TypeDescriptor,
    definitions: dict[str, Struct] | None = None,
) -> set[str]:
    """Collect the names of structs that appear as a direct union variant.

    ``RecursiveRef`` variants count under their referenced name.
    """
    names: set[str] = set()
    roots: list[TypeDescriptor] = [descriptor, *(definitions or {}).values()]
    seen: set[str] = set()

    for root in roots:
        for struct in iter_structs(root):
            if struct.name in seen:
                continue
            seen.add(struct.name)
            for f in struct.fields:
                names.update(_direct_union_members(f.type))
        if not isinstance(root, Struct):
            names.update(_direct_union_members(root))
    return names


def _direct_union_members(node: TypeDescriptor) -> set[str]:
    names: set[str] = set()
    match node:
        case UnionOf(variants=variants):
            for variant in variants:
                match variant:
                    case Struct(name=name) | RecursiveRef(name=name):
                        names.add(name)
                    case _:
                        pass
                names.update(_direct_union_members(variant))
        case OptionalOf(inner=inner) | ArrayOf(inner=inner):
            names.update(_direct_union_members(inner))
        case MapOf(value_type=value_type):
            names.update(_direct_union_members(value_type))
        case _:
            pass
    return names


def describe_kind(node: TypeDescriptor) -> str:
    """Short human-readable label for a descriptor, used in error messages."""
    match node:
        case Primitive(kind=kind):
            return kind.value
        case OptionalOf(inner=inner):
            return f"optional<{describe_kind(inner)}>"
        case ArrayOf(inner=inner):
            return f"array<{describe_kind(inner)}>"
        case MapOf(value_type=value_type):
            return f"map<{describe_kind(value_type)}>"
        case EnumOf(name=name, values=values):
            return name or f"enum{list(values)}"
        case Struct(name=name) | RecursiveRef(name=name):
            return name
        case UnionOf(variants=variants):
            return " | ".join(describe_kind(v) for v in variants)
