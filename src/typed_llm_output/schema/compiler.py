"""Compile type descriptors into provider-specific JSON schemas."""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from typed_llm_output.exceptions import (
    DiscriminatorConflictError,
    SchemaCompileError,
    UnsupportedSchemaError,
)
from typed_llm_output.schema.cache import SchemaCache
from typed_llm_output.schema.dialects import Dialect, NullableStyle
from typed_llm_output.signature.descriptors import (
    ArrayOf,
    EnumOf,
    MapOf,
    OptionalOf,
    Primitive,
    PrimitiveKind,
    RecursiveRef,
    Struct,
    TypeDescriptor,
    UnionOf,
    describe_kind,
    iter_structs,
    union_member_names,
)
from typed_llm_output.signature.model import Signature

logger = logging.getLogger(__name__)

_PRIMITIVE_SCHEMAS: dict[PrimitiveKind, dict[str, str]] = {
    PrimitiveKind.STRING: {"type": "string"},
    PrimitiveKind.INTEGER: {"type": "integer"},
    PrimitiveKind.NUMBER: {"type": "number"},
    PrimitiveKind.BOOLEAN: {"type": "boolean"},
    PrimitiveKind.DATE: {"type": "string", "format": "date"},
    PrimitiveKind.DATETIME: {"type": "string", "format": "date-time"},
}


@dataclass(frozen=True)
class CompiledSchema:
    """A JSON schema compiled for one dialect.

    Instances are shared read-only once cached; use ``to_json_schema()`` to
    get a copy that is safe to hand to a provider or mutate.

    Args:
        dialect: Name of the dialect the schema was compiled for.
        schema: The root schema.
        defs: Named sub-schemas for recursive structs.
    """

    dialect: str
    schema: dict[str, Any]
    defs: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_json_schema(self) -> dict[str, Any]:
        """Return a deep copy of the schema with ``$defs`` embedded."""
        result = copy.deepcopy(self.schema)
        if self.defs:
            result["$defs"] = copy.deepcopy(self.defs)
        return result


@dataclass
class _CompileState:
    dialect: Dialect
    definitions: Mapping[str, Struct]
    union_members: set[str]
    in_progress: list[str] = field(default_factory=list)
    recursive: set[str] = field(default_factory=set)
    defs: dict[str, dict[str, Any]] = field(default_factory=dict)


def _ref(name: str) -> dict[str, str]:
    return {"$ref": f"#/$defs/{name}"}


class TypeSchemaCompiler:
    """Compiles ``TypeDescriptor`` graphs into JSON-schema dialects.

    Compilation is pure and deterministic for a given dialect. Structs that
    appear as union variants anywhere in the tree get a discriminator
    property whose constant is the struct name. Recursive structs are
    emitted once under ``$defs`` and referenced everywhere else.

    Example:
        ```python
        from typed_llm_output.schema import OPENAI_STRICT, TypeSchemaCompiler

        compiler = TypeSchemaCompiler()
        compiled = compiler.compile(signature.output_struct, OPENAI_STRICT)
        schema = compiled.to_json_schema()
        ```
    """

    def __init__(
        self,
        discriminator_field: str = "_type",
        cache: SchemaCache | None = None,
    ) -> None:
        """Initialize TypeSchemaCompiler.

        Args:
            discriminator_field: Reserved field used to tag union members
            cache: Optional cache consulted by ``compile_signature``
        """
        self.discriminator_field = discriminator_field
        self.cache = cache

    def compile(
        self,
        descriptor: TypeDescriptor,
        dialect: Dialect,
        definitions: Mapping[str, Struct] | None = None,
    ) -> CompiledSchema:
        """Compile a descriptor for a dialect.

        Args:
            descriptor: Root descriptor, usually a signature's output struct
            dialect: Target dialect
            definitions: Named structs for ``RecursiveRef`` nodes that do not
                point at an enclosing struct

        Returns:
            The compiled schema

        Raises:
            DiscriminatorConflictError: If a union member declares the
                discriminator field itself
            UnsupportedSchemaError: If the dialect requires discriminated
                unions and a variant cannot carry a discriminator
            SchemaCompileError: If a recursive reference cannot be resolved
        """
        definitions = definitions or {}
        state = _CompileState(
            dialect=dialect,
            definitions=definitions,
            union_members=union_member_names(descriptor, dict(definitions)),
        )
        self._check_discriminator_conflicts(descriptor, state)
        schema = self._compile_node(descriptor, state)
        return CompiledSchema(dialect=dialect.name, schema=schema, defs=state.defs)

    def compile_signature(
        self, signature: Signature, dialect: Dialect, provider: str
    ) -> CompiledSchema:
        """Compile a signature's outputs, going through the cache if present.

        Args:
            signature: Signature to compile
            dialect: Target dialect
            provider: Provider name, part of the cache key

        Returns:
            The compiled (possibly cached) schema
        """
        params = dialect.cache_params()
        if self.cache is not None:
            cached = self.cache.get_schema(signature.signature_id, provider, params)
            if cached is not None:
                return cached

        compiled = self.compile(
            signature.output_struct, dialect, definitions=signature.definitions
        )
        logger.debug(
            "Compiled schema for %s (%s, %s)", signature.name, provider, dialect.name
        )

        if self.cache is not None:
            self.cache.cache_schema(signature.signature_id, provider, compiled, params)
        return compiled

    def _check_discriminator_conflicts(
        self, descriptor: TypeDescriptor, state: _CompileState
    ) -> None:
        roots: list[TypeDescriptor] = [descriptor, *state.definitions.values()]
        for root in roots:
            for struct in iter_structs(root):
                if (
                    struct.name in state.union_members
                    and struct.get_field(self.discriminator_field) is not None
                ):
                    raise DiscriminatorConflictError(
                        struct.name,
                        self.discriminator_field,
                        dialect=state.dialect.name,
                    )

    def _compile_node(
        self, node: TypeDescriptor, state: _CompileState
    ) -> dict[str, Any]:
        match node:
            case Primitive(kind=kind):
                return dict(_PRIMITIVE_SCHEMAS[kind])
            case OptionalOf(inner=inner):
                return self._nullable(self._compile_node(inner, state), state.dialect)
            case ArrayOf(inner=inner):
                return {"type": "array", "items": self._compile_node(inner, state)}
            case MapOf(value_type=value_type):
                return {
                    "type": "object",
                    "additionalProperties": self._compile_node(value_type, state),
                }
            case EnumOf(values=values):
                return {"type": "string", "enum": list(values)}
            case Struct():
                return self._compile_struct(node, state)
            case UnionOf(variants=variants):
                return self._compile_union(variants, state)
            case RecursiveRef(name=name):
                return self._compile_ref(name, state)

    def _compile_struct(self, struct: Struct, state: _CompileState) -> dict[str, Any]:
        name = struct.name
        if name in state.in_progress:
            state.recursive.add(name)
            return _ref(name)
        if name in state.defs:
            return _ref(name)

        dialect = state.dialect
        state.in_progress.append(name)
        try:
            properties: dict[str, Any] = {}
            required: list[str] = []

            if name in state.union_members:
                properties[self.discriminator_field] = {"type": "string", "const": name}
                required.append(self.discriminator_field)

            for f in struct.fields:
                prop = self._compile_node(f.type, state)
                if (
                    dialect.all_fields_required
                    and not f.required
                    and not isinstance(f.type, OptionalOf)
                ):
                    prop = self._nullable(prop, dialect)
                if f.description:
                    prop["description"] = f.description
                properties[f.name] = prop
                if f.required or dialect.all_fields_required:
                    required.append(f.name)
        finally:
            state.in_progress.pop()

        schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
            "required": required,
        }
        if struct.description:
            schema["description"] = struct.description
        if dialect.strict_objects:
            schema["additionalProperties"] = False

        if name in state.recursive:
            state.defs[name] = schema
            return _ref(name)
        return schema

    def _compile_union(
        self, variants: tuple[TypeDescriptor, ...], state: _CompileState
    ) -> dict[str, Any]:
        dialect = state.dialect
        offending = self._undiscriminated_variant(variants)

        if offending is not None and dialect.require_discriminated_unions:
            variant, reason = offending
            raise UnsupportedSchemaError(
                f"Union variant '{describe_kind(variant)}' {reason}, so the "
                f"{dialect.name} dialect cannot disambiguate it.",
                variant=describe_kind(variant),
                dialect=dialect.name,
            )

        branches = [self._compile_node(variant, state) for variant in variants]
        if offending is None and dialect.allow_one_of:
            return {"oneOf": branches}
        return {"anyOf": branches}

    def _undiscriminated_variant(
        self, variants: tuple[TypeDescriptor, ...]
    ) -> tuple[TypeDescriptor, str] | None:
        seen: set[str] = set()
        for variant in variants:
            match variant:
                case Struct(name=name) | RecursiveRef(name=name):
                    if name in seen:
                        return variant, "shares its name with another variant"
                    seen.add(name)
                case _:
                    return (
                        variant,
                        f"is not a struct and cannot carry the "
                        f"'{self.discriminator_field}' discriminator",
                    )
        return None

    def _compile_ref(self, name: str, state: _CompileState) -> dict[str, Any]:
        if name in state.in_progress:
            state.recursive.add(name)
            return _ref(name)
        if name in state.defs:
            return _ref(name)
        if name in state.definitions:
            compiled = self._compile_struct(state.definitions[name], state)
            state.defs.setdefault(name, compiled)
            return _ref(name)
        raise SchemaCompileError(
            f"Unresolved recursive reference '{name}': no enclosing struct or "
            "definition with that name.",
            dialect=state.dialect.name,
        )

    @staticmethod
    def _nullable(schema: dict[str, Any], dialect: Dialect) -> dict[str, Any]:
        schema_type = schema.get("type")
        if dialect.nullable_style is NullableStyle.TYPE_ARRAY and schema_type:
            if isinstance(schema_type, str):
                schema["type"] = [schema_type, "null"]
            elif "null" not in schema_type:
                schema["type"] = [*schema_type, "null"]
            if "enum" in schema and None not in schema["enum"]:
                schema["enum"] = [*schema["enum"], None]
            return schema
        return {"anyOf": [schema, {"type": "null"}]}
