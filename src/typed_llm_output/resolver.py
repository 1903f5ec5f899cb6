"""Resolve parsed JSON back into typed values.

The resolver walks a ``TypeDescriptor`` alongside the JSON value. Union
variants are chosen by the discriminator field when present, otherwise by
structural match (the first variant, in declaration order, whose required
fields are all present). A union value that matches no variant is returned
unchanged and recorded as a fallback path, unless ``strict_unions`` is set.
"""

import copy
import datetime
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError, create_model

from typed_llm_output.exceptions import DeserializationError, UnionMismatchError
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
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypedValue:
    """A fully or partially typed value.

    Args:
        value: The resolved value.
        fallback_paths: JSON paths of nested unions that matched no variant
            and were kept as raw JSON.
    """

    value: Any
    fallback_paths: tuple[str, ...] = ()

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class RawFallback:
    """The root value matched no union variant and is returned as raw JSON."""

    value: Any
    reason: str

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ResolutionFailure:
    """Resolution failed; ``unwrap()`` re-raises the error."""

    error: DeserializationError

    def unwrap(self) -> Any:
        raise self.error


ResolvedValue = TypedValue | RawFallback | ResolutionFailure


@dataclass
class _Walk:
    scope: dict[str, Struct] = field(default_factory=dict)
    fallbacks: list[tuple[str, str]] = field(default_factory=list)

    def enter(self, struct: Struct) -> "_Walk":
        return _Walk(scope={**self.scope, struct.name: struct}, fallbacks=self.fallbacks)


class TypeResolver:
    """Converts parsed JSON into instances of the declared types.

    Example:
        ```python
        resolver = TypeResolver()
        resolved = resolver.resolve(json.loads(text), signature.output_struct)
        print(resolved.unwrap())
        ```
    """

    def __init__(
        self,
        discriminator_field: str = "_type",
        strict_unions: bool = False,
        definitions: Mapping[str, Struct] | None = None,
    ) -> None:
        """Initialize TypeResolver.

        Args:
            discriminator_field: Field carrying a union member's type name
            strict_unions: Raise instead of falling back to raw JSON when a
                union value matches no variant
            definitions: Named structs for references that do not point at
                an enclosing struct
        """
        self.discriminator_field = discriminator_field
        self.strict_unions = strict_unions
        self.definitions = dict(definitions or {})
        self._model_cache: dict[tuple[str, ...], type[BaseModel]] = {}

    def resolve(
        self,
        value: Any,
        descriptor: TypeDescriptor,
        definitions: Mapping[str, Struct] | None = None,
    ) -> TypedValue | RawFallback:
        """Resolve a parsed JSON value against a descriptor.

        Args:
            value: Parsed JSON (dicts, lists, scalars)
            descriptor: Declared type
            definitions: Extra named structs for this call, e.g. a
                signature's definitions

        Returns:
            ``TypedValue`` on success, or ``RawFallback`` when the root is a
            union that matched no variant

        Raises:
            DeserializationError: If the value does not fit the declared type
        """
        walk = _Walk(scope=dict(definitions or {}))
        result = self._resolve(value, descriptor, "$", walk)

        for path, reason in walk.fallbacks:
            if path == "$":
                return RawFallback(value=result, reason=reason)
        return TypedValue(
            value=result, fallback_paths=tuple(path for path, _ in walk.fallbacks)
        )

    def try_resolve(
        self,
        value: Any,
        descriptor: TypeDescriptor,
        definitions: Mapping[str, Struct] | None = None,
    ) -> ResolvedValue:
        """Like ``resolve`` but returns ``ResolutionFailure`` instead of raising."""
        try:
            return self.resolve(value, descriptor, definitions)
        except DeserializationError as e:
            return ResolutionFailure(error=e)

    def serialize(self, value: Any, descriptor: TypeDescriptor) -> Any:
        """Convert a typed value back into JSON-compatible data.

        Union members are tagged with the discriminator field.

        Args:
            value: Typed value (class instances, enums, dates, ...)
            descriptor: Declared type

        Returns:
            JSON-compatible data
        """
        return self._serialize(value, descriptor, _Walk(), tagged=False)

    # Resolution

    def _resolve(
        self, value: Any, node: TypeDescriptor, path: str, walk: _Walk
    ) -> Any:
        match node:
            case OptionalOf(inner=inner):
                if value is None:
                    return None
                return self._resolve(value, inner, path, walk)
            case Primitive(kind=kind):
                return self._coerce(value, kind, path)
            case ArrayOf(inner=inner):
                if not isinstance(value, list):
                    raise DeserializationError(
                        f"Expected array at {path}, got {type(value).__name__}",
                        path=path,
                        value=value,
                    )
                return [
                    self._resolve(item, inner, f"{path}[{i}]", walk)
                    for i, item in enumerate(value)
                ]
            case MapOf(value_type=value_type):
                if not isinstance(value, dict):
                    raise DeserializationError(
                        f"Expected object at {path}, got {type(value).__name__}",
                        path=path,
                        value=value,
                    )
                return {
                    key: self._resolve(item, value_type, f"{path}.{key}", walk)
                    for key, item in value.items()
                }
            case EnumOf():
                return self._resolve_enum(value, node, path)
            case Struct():
                return self._resolve_struct(value, node, path, walk)
            case UnionOf(variants=variants):
                return self._resolve_union(value, variants, path, walk)
            case RecursiveRef(name=name):
                return self._resolve_struct(
                    value, self._lookup(name, walk, path), path, walk
                )

    def _resolve_struct(
        self, value: Any, struct: Struct, path: str, walk: _Walk
    ) -> Any:
        if not isinstance(value, dict):
            raise DeserializationError(
                f"Expected object for {struct.name} at {path}, "
                f"got {type(value).__name__}",
                path=path,
                value=value,
            )

        inner = walk.enter(struct)
        resolved: dict[str, Any] = {}
        fallbacks_before = len(walk.fallbacks)

        for f in struct.fields:
            field_path = f"{path}.{f.name}"
            raw = value.get(f.name)
            absent = f.name not in value or (
                raw is None and not isinstance(f.type, OptionalOf)
            )

            if not absent:
                resolved[f.name] = self._resolve(raw, f.type, field_path, inner)
            elif f.has_default:
                resolved[f.name] = copy.deepcopy(f.default)
            elif f.optional:
                resolved[f.name] = None
            else:
                raise DeserializationError(
                    f"Missing required field '{f.name}' for {struct.name}",
                    path=field_path,
                    value=value,
                )

        return self._instantiate(
            struct, resolved, path, raw_fields=len(walk.fallbacks) > fallbacks_before
        )

    def _resolve_union(
        self,
        value: Any,
        variants: tuple[TypeDescriptor, ...],
        path: str,
        walk: _Walk,
    ) -> Any:
        names = [
            name for name in (self._variant_name(v) for v in variants) if name
        ] or [describe_kind(v) for v in variants]

        if isinstance(value, dict) and self.discriminator_field in value:
            tag = value[self.discriminator_field]
            for variant in variants:
                if self._variant_name(variant) == tag:
                    return self._resolve(value, variant, path, walk)
            raise UnionMismatchError(
                f"Unknown type: {tag}. Expected one of: {', '.join(names)}",
                expected=names,
                path=path,
                value=value,
            )

        first_error: DeserializationError | None = None

        if isinstance(value, dict):
            for variant in variants:
                name = self._variant_name(variant)
                if name is None:
                    continue
                struct = self._lookup(name, walk, path, variant)
                if not all(key in value for key in struct.required_fields()):
                    continue
                try:
                    return self._resolve(value, variant, path, walk)
                except DeserializationError as e:
                    first_error = first_error or e

        if first_error is not None:
            raise first_error

        for variant in variants:
            if self._variant_name(variant) is not None:
                continue
            try:
                return self._resolve(value, variant, path, walk)
            except DeserializationError:
                continue

        reason = f"No union variant matched at {path}. Expected one of: {', '.join(names)}"
        if self.strict_unions:
            raise UnionMismatchError(reason, expected=names, path=path, value=value)

        logger.warning("%s; keeping raw value", reason)
        walk.fallbacks.append((path, reason))
        return value

    def _resolve_enum(self, value: Any, node: EnumOf, path: str) -> Any:
        if not isinstance(value, str) or value not in node.values:
            raise DeserializationError(
                f"Invalid value {value!r} for {describe_kind(node)} at {path}. "
                f"Expected one of: {', '.join(node.values)}",
                path=path,
                value=value,
            )
        if node.python_type is not None:
            for member in node.python_type:
                if str(member.value) == value:
                    return member
        return value

    def _coerce(self, value: Any, kind: PrimitiveKind, path: str) -> Any:
        try:
            match kind:
                case PrimitiveKind.STRING:
                    if isinstance(value, str):
                        return value
                    if isinstance(value, int | float) and not isinstance(value, bool):
                        return str(value)
                case PrimitiveKind.INTEGER:
                    if isinstance(value, bool):
                        pass
                    elif isinstance(value, int):
                        return value
                    elif isinstance(value, float) and value.is_integer():
                        return int(value)
                    elif isinstance(value, str):
                        return int(value.strip())
                case PrimitiveKind.NUMBER:
                    if isinstance(value, bool):
                        pass
                    elif isinstance(value, int | float):
                        return float(value)
                    elif isinstance(value, str):
                        return float(value.strip())
                case PrimitiveKind.BOOLEAN:
                    if isinstance(value, bool):
                        return value
                    if isinstance(value, str) and value.lower() in ("true", "false"):
                        return value.lower() == "true"
                case PrimitiveKind.DATE:
                    if isinstance(value, str):
                        return datetime.date.fromisoformat(value)
                case PrimitiveKind.DATETIME:
                    if isinstance(value, str):
                        return datetime.datetime.fromisoformat(value)
        except ValueError as e:
            raise DeserializationError(
                f"Cannot convert {value!r} to {kind.value} at {path}: {e}",
                path=path,
                value=value,
            ) from e

        raise DeserializationError(
            f"Expected {kind.value} at {path}, got {type(value).__name__}",
            path=path,
            value=value,
        )

    def _instantiate(
        self, struct: Struct, data: dict[str, Any], path: str, raw_fields: bool = False
    ) -> Any:
        target = struct.python_type
        try:
            if target is None:
                return self._model_for(struct)(**data)
            if isinstance(target, type) and issubclass(target, BaseModel):
                # Raw union fallbacks would fail the declared field types.
                if raw_fields:
                    return target.model_construct(**data)
                return target.model_validate(data)
            return target(**data)
        except (ValidationError, TypeError) as e:
            raise DeserializationError(
                f"Cannot build {struct.name} at {path}: {e}", path=path, value=data
            ) from e

    def _model_for(self, struct: Struct) -> type[BaseModel]:
        key = (struct.name, *struct.field_names())
        model = self._model_cache.get(key)
        if model is None:
            field_definitions: dict[str, Any] = {
                f.name: (Any, ...) for f in struct.fields
            }
            model = create_model(struct.name, **field_definitions)  # type: ignore[call-overload]
            self._model_cache[key] = model
        return model

    # Serialization

    def _serialize(
        self, value: Any, node: TypeDescriptor, walk: _Walk, tagged: bool
    ) -> Any:
        match node:
            case OptionalOf(inner=inner):
                if value is None:
                    return None
                return self._serialize(value, inner, walk, tagged)
            case Primitive(kind=kind):
                if kind in (PrimitiveKind.DATE, PrimitiveKind.DATETIME) and isinstance(
                    value, datetime.date
                ):
                    return value.isoformat()
                return value
            case ArrayOf(inner=inner):
                return [self._serialize(item, inner, walk, False) for item in value]
            case MapOf(value_type=value_type):
                return {
                    key: self._serialize(item, value_type, walk, False)
                    for key, item in value.items()
                }
            case EnumOf():
                if isinstance(value, Enum):
                    return str(value.value)
                return value
            case Struct():
                return self._serialize_struct(value, node, walk, tagged)
            case UnionOf(variants=variants):
                return self._serialize_union(value, variants, walk)
            case RecursiveRef(name=name):
                return self._serialize_struct(
                    value, self._lookup(name, walk, "$"), walk, tagged
                )

    def _serialize_struct(
        self, value: Any, struct: Struct, walk: _Walk, tagged: bool
    ) -> dict[str, Any]:
        inner = walk.enter(struct)
        data: dict[str, Any] = {}
        if tagged:
            data[self.discriminator_field] = struct.name
        for f in struct.fields:
            data[f.name] = self._serialize(
                self._field_value(value, f.name), f.type, inner, False
            )
        return data

    def _serialize_union(
        self, value: Any, variants: tuple[TypeDescriptor, ...], walk: _Walk
    ) -> Any:
        for variant in variants:
            name = self._variant_name(variant)
            if name is None:
                continue
            struct = self._lookup(name, walk, "$", variant)
            if self._is_instance_of(value, struct):
                return self._serialize(value, variant, walk, tagged=True)
        for variant in variants:
            if self._variant_name(variant) is None:
                return self._serialize(value, variant, walk, False)
        return value

    def _is_instance_of(self, value: Any, struct: Struct) -> bool:
        if isinstance(value, dict):
            return value.get(self.discriminator_field) == struct.name
        if struct.python_type is not None:
            return isinstance(value, struct.python_type)
        return type(value).__name__ == struct.name

    @staticmethod
    def _field_value(value: Any, name: str) -> Any:
        if isinstance(value, dict):
            return value.get(name)
        if isinstance(value, BaseModel):
            for attr, info in type(value).model_fields.items():
                if (info.alias or attr) == name:
                    return getattr(value, attr)
        return getattr(value, name, None)

    # Helpers

    @staticmethod
    def _variant_name(variant: TypeDescriptor) -> str | None:
        match variant:
            case Struct(name=name) | RecursiveRef(name=name):
                return name
            case _:
                return None

    def _lookup(
        self,
        name: str,
        walk: _Walk,
        path: str,
        variant: TypeDescriptor | None = None,
    ) -> Struct:
        if isinstance(variant, Struct):
            return variant
        struct = walk.scope.get(name) or self.definitions.get(name)
        if struct is None:
            raise DeserializationError(
                f"Unresolved recursive reference '{name}' at {path}", path=path
            )
        return struct
