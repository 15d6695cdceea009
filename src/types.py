"""Type mapping: schema type tokens -> Arrow2 data types and array types."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from .ast import Expr, FnCall, Path, path


class UnsupportedType(Exception):
    """Type token is neither a primitive, the null type, nor a declared struct."""

    def __init__(self, token: str) -> None:
        super().__init__("unsupported type '" + token + "'")
        self.token = token


@dataclass(frozen=True)
class Primitive:
    """Catalogue entry for a primitive token.

    data_type is the DataType variant; array is the concrete Arrow2 array
    the column downcasts to.
    """

    token: str
    data_type: str
    array: str


def _numeric(token: str, data_type: str) -> Primitive:
    return Primitive(token, data_type, "PrimitiveArray<" + token + ">")


PRIMITIVES: dict[str, Primitive] = {
    p.token: p
    for p in (
        _numeric("i8", "Int8"),
        _numeric("u8", "UInt8"),
        _numeric("i16", "Int16"),
        _numeric("u16", "UInt16"),
        _numeric("i32", "Int32"),
        _numeric("u32", "UInt32"),
        _numeric("i64", "Int64"),
        _numeric("u64", "UInt64"),
        _numeric("f32", "Float32"),
        _numeric("f64", "Float64"),
        Primitive("bool", "Boolean", "BooleanArray"),
    )
}

NULL_DATA_TYPE: Path = path("DataType", "Null")
NULL_ARRAY: str = "NullArray"
STRUCT_ARRAY: str = "StructArray"


def is_primitive(ty: str | None) -> bool:
    """True for types written directly as a column (primitives and null)."""
    return ty is None or ty in PRIMITIVES


def check_type(ty: str | None, structs: Collection[str]) -> None:
    """Raise UnsupportedType unless ty is null, a primitive, or in structs."""
    if ty is None or ty in PRIMITIVES or ty in structs:
        return
    raise UnsupportedType(ty)


def data_type(ty: str | None, structs: Collection[str]) -> Expr:
    """DataType expression for a field of type ty.

    Struct types recurse into the nested type's own data_type(version), so
    the layout of a nested struct follows the same version as its parent.
    """
    check_type(ty, structs)
    if ty is None:
        return NULL_DATA_TYPE
    if ty in PRIMITIVES:
        return path("DataType", PRIMITIVES[ty].data_type)
    return FnCall(path(ty, "data_type"), (path("version"),))


def array_type(ty: str | None, structs: Collection[str]) -> str:
    """Arrow2 array type a column of type ty is downcast to."""
    check_type(ty, structs)
    if ty is None:
        return NULL_ARRAY
    if ty in PRIMITIVES:
        return PRIMITIVES[ty].array
    return STRUCT_ARRAY
