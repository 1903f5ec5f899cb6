"""Register Python types as ``TypeDescriptor`` graphs.

Supports:
- ``str``, ``int``, ``float``, ``bool``, ``datetime.date``, ``datetime.datetime``
- ``Optional[T]`` / ``T | None``, ``list[T]``, ``tuple[T, ...]``, ``dict[str, T]``
- ``Enum`` subclasses and string ``Literal`` values
- Python ``dataclasses`` and Pydantic ``BaseModel`` subclasses (recommended)
- ``Union`` of records, including self-referential records

Registration happens once, when a signature is defined; the compiler and the
resolver never inspect live classes.
"""

import dataclasses
import datetime
import logging
import types
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, Literal, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel
from pydantic_core import PydanticUndefined

from typed_llm_output.signature.descriptors import (
    BOOLEAN,
    DATE,
    DATETIME,
    INTEGER,
    NUMBER,
    STRING,
    ArrayOf,
    EnumOf,
    FieldDescriptor,
    MapOf,
    OptionalOf,
    RecursiveRef,
    Struct,
    TypeDescriptor,
    UnionOf,
)

logger = logging.getLogger(__name__)

_SCALARS: dict[Any, TypeDescriptor] = {
    str: STRING,
    bool: BOOLEAN,
    int: INTEGER,
    float: NUMBER,
    datetime.datetime: DATETIME,
    datetime.date: DATE,
}


def describe(type_hint: Any) -> TypeDescriptor:
    """Convert a Python type hint into a ``TypeDescriptor``.

    Args:
        type_hint: A Python type or typing construct.

    Returns:
        The equivalent descriptor tree.

    Raises:
        TypeError: If the type cannot be expressed as a descriptor.
    """
    return _describe(type_hint, in_progress=set())


def describe_field(
    name: str,
    type_hint: Any,
    default: Any = dataclasses.MISSING,
    description: str | None = None,
) -> FieldDescriptor:
    """Build a ``FieldDescriptor`` from a name and a Python type hint."""
    return _field(name, type_hint, default, description, in_progress=set())


def _describe(type_hint: Any, in_progress: set[type]) -> TypeDescriptor:
    if type_hint in _SCALARS:
        return _SCALARS[type_hint]

    origin = get_origin(type_hint)
    args = get_args(type_hint)

    if origin is Union or origin is types.UnionType:
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            inner = _describe(non_none[0], in_progress)
        else:
            inner = UnionOf(tuple(_describe(a, in_progress) for a in non_none))
        if len(non_none) < len(args):
            return OptionalOf(inner)
        return inner

    if origin is Literal:
        if not all(isinstance(a, str) for a in args):
            raise TypeError(f"Only string literals are supported: {type_hint!r}")
        return EnumOf(values=tuple(args))

    if origin in (list, set, frozenset, Sequence):
        return ArrayOf(_describe(args[0], in_progress) if args else STRING)

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return ArrayOf(_describe(args[0], in_progress))
        raise TypeError(f"Only homogeneous tuples are supported: {type_hint!r}")

    if origin in (dict, Mapping):
        key_type, value_type = args if args else (str, str)
        if key_type is not str:
            raise TypeError(f"Map keys must be strings: {type_hint!r}")
        return MapOf(_describe(value_type, in_progress))

    if isinstance(type_hint, type):
        if issubclass(type_hint, Enum):
            return EnumOf(
                values=tuple(str(member.value) for member in type_hint),
                name=type_hint.__name__,
                python_type=type_hint,
            )
        if type_hint in in_progress:
            return RecursiveRef(type_hint.__name__)
        if issubclass(type_hint, BaseModel):
            return _model_struct(type_hint, in_progress)
        if dataclasses.is_dataclass(type_hint):
            return _dataclass_struct(type_hint, in_progress)

    raise TypeError(f"Unsupported type for signature field: {type_hint!r}")


def _field(
    name: str,
    type_hint: Any,
    default: Any,
    description: str | None,
    in_progress: set[type],
) -> FieldDescriptor:
    descriptor = _describe(type_hint, in_progress)
    optional = isinstance(descriptor, OptionalOf)
    if optional and default is None:
        default = dataclasses.MISSING
    return FieldDescriptor(
        name=name,
        type=descriptor,
        optional=optional,
        default=default,
        description=description,
    )


def _model_struct(model: type[BaseModel], in_progress: set[type]) -> Struct:
    in_progress.add(model)
    try:
        fields = []
        for field_name, info in model.model_fields.items():
            if info.default_factory is not None:
                default = info.default_factory()  # type: ignore[call-arg]
            elif info.default is PydanticUndefined:
                default = dataclasses.MISSING
            else:
                default = info.default
            fields.append(
                _field(
                    info.alias or field_name,
                    info.annotation,
                    default,
                    info.description,
                    in_progress,
                )
            )
    finally:
        in_progress.discard(model)

    logger.debug("Registered struct %s from Pydantic model", model.__name__)
    return Struct(
        name=model.__name__,
        fields=tuple(fields),
        description=model.__doc__.strip() if model.__doc__ else None,
        python_type=model,
    )


def _dataclass_struct(cls: type, in_progress: set[type]) -> Struct:
    in_progress.add(cls)
    try:
        hints = get_type_hints(cls)
        fields = []
        for dc_field in dataclasses.fields(cls):
            if dc_field.default_factory is not dataclasses.MISSING:
                default = dc_field.default_factory()
            else:
                default = dc_field.default
            fields.append(
                _field(
                    dc_field.name,
                    hints.get(dc_field.name, str),
                    default,
                    dc_field.metadata.get("description"),
                    in_progress,
                )
            )
    finally:
        in_progress.discard(cls)

    doc = cls.__doc__
    # dataclasses synthesize "Name(field: type, ...)" when no docstring exists
    if doc and doc.startswith(f"{cls.__name__}("):
        doc = None

    logger.debug("Registered struct %s from dataclass", cls.__name__)
    return Struct(
        name=cls.__name__,
        fields=tuple(fields),
        description=doc.strip() if doc else None,
        python_type=cls,
    )
