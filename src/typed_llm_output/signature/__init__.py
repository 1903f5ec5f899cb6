"""Typed signatures and the descriptor graph they are built from.

This module provides:
- Immutable ``TypeDescriptor`` variants for every supported shape
- ``Signature`` objects describing the inputs and outputs of one LLM call
- ``describe()`` for registering Python classes and annotations once
"""

from .descriptors import (
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
    Primitive,
    PrimitiveKind,
    RecursiveRef,
    Struct,
    TypeDescriptor,
    UnionOf,
    iter_structs,
    union_member_names,
)
from .model import Signature
from .registry import describe, describe_field

__all__ = [
    # Descriptors
    "PrimitiveKind",
    "Primitive",
    "OptionalOf",
    "ArrayOf",
    "MapOf",
    "EnumOf",
    "FieldDescriptor",
    "Struct",
    "UnionOf",
    "RecursiveRef",
    "TypeDescriptor",
    "STRING",
    "INTEGER",
    "NUMBER",
    "BOOLEAN",
    "DATE",
    "DATETIME",
    "iter_structs",
    "union_member_names",
    # Signature
    "Signature",
    # Registration
    "describe",
    "describe_field",
]
