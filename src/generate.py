"""Per-struct generators: StructArrayConvertible impls as Rust AST.

For each struct this builds

    use crate::frame::immutable::Name;
    impl StructArrayConvertible for Name {
        fn data_type(version: Version) -> DataType { ... }
        fn into_struct_array(self, version: Version) -> StructArray { ... }
        fn from_struct_array(array: StructArray, version: Version) -> Self { ... }
    }

Arrow2 rejects a StructArray with no fields, so data_type and
into_struct_array fall back to a single null "_dummy" column when no field
is present at the active version.
"""

from __future__ import annotations

from collections.abc import Collection

from . import types
from .ast import (
    Block,
    Closure,
    Decl,
    Expr,
    FieldGet,
    FnCall,
    FnDef,
    If,
    Impl,
    Let,
    Lit,
    MethodCall,
    Param,
    StrLit,
    StructInit,
    Subscript,
    Use,
    VecLit,
    path,
)
from .schema import FieldDef, Schema, StructDef
from .versions import nested_version_ifs, version_check

TRAIT: str = "StructArrayConvertible"
USE_PREFIX: tuple[str, ...] = ("crate", "frame", "immutable")
DUMMY_FIELD: str = "_dummy"
NULL_ARRAY_NEW = path("arrow2", "array", "NullArray", "new")

VERSION_PARAM = Param("version", "Version")


def use_statement(struct: StructDef) -> Use:
    return Use(USE_PREFIX + (struct.name,))


# ── data_type ────────────────────────────────────────────


def arrow_field(f: FieldDef, structs: Collection[str]) -> Expr:
    """Field::new("name", DataType::..., false)"""
    return FnCall(
        path("Field", "new"),
        (StrLit(f.key), types.data_type(f.type, structs), Lit("false")),
    )


def data_type_fn(struct: StructDef, structs: Collection[str]) -> FnDef:
    fields = path("fields")
    pushes = nested_version_ifs(
        lambda f: MethodCall(fields, "push", (arrow_field(f, structs),)),
        struct.fields,
    )
    dummy = FnCall(
        path("Field", "new"),
        (StrLit(DUMMY_FIELD), types.NULL_DATA_TYPE, Lit("true")),
    )
    push_dummy = If(
        MethodCall(fields, "is_empty"),
        Block((MethodCall(fields, "push", (dummy,)),)),
    )
    body = Block(
        (Let("fields", VecLit(), mutable=True),) + pushes.body + (push_dummy,),
        StructInit(path("DataType", "Struct"), ((None, fields),)),
    )
    return FnDef("data_type", (VERSION_PARAM,), "DataType", body)


# ── into_struct_array ────────────────────────────────────


def arrow_values(f: FieldDef, named: bool) -> Expr:
    """Boxed column for one field of self.

    Fields of an unnamed struct are tuple positions, even where a name is given.

    Versioned fields are Option<...> on the Rust side; they are only read
    inside a guard that already established presence, so unwrap is safe.
    """
    target: Expr = FieldGet(path("self"), f.name if named else f.index)
    if f.version is not None:
        target = MethodCall(target, "unwrap")
    if types.is_primitive(f.type):
        return MethodCall(target, "boxed")
    return MethodCall(
        MethodCall(target, "into_struct_array", (path("version"),)),
        "boxed",
    )


def _dummy_len(struct: StructDef) -> Expr:
    if not struct.named:
        return Lit("0")
    # self.validity.as_ref().map_or(0, |b| b.len())
    return MethodCall(
        MethodCall(FieldGet(path("self"), "validity"), "as_ref"),
        "map_or",
        (Lit("0"), Closure(("b",), MethodCall(path("b"), "len"))),
    )


def into_struct_array_fn(struct: StructDef, structs: Collection[str]) -> FnDef:
    values = path("values")
    pushes = nested_version_ifs(
        lambda f: MethodCall(values, "push", (arrow_values(f, struct.named),)),
        struct.fields,
    )
    null_array = MethodCall(
        FnCall(NULL_ARRAY_NEW, (types.NULL_DATA_TYPE, path("len"))),
        "boxed",
    )
    push_dummy = If(
        MethodCall(values, "is_empty"),
        Block(
            (
                Let("len", _dummy_len(struct)),
                MethodCall(values, "push", (null_array,)),
            )
        ),
    )
    validity = FieldGet(path("self"), "validity") if struct.named else path("None")
    struct_new = FnCall(
        path("StructArray", "new"),
        (FnCall(path("Self", "data_type"), (path("version"),)), values, validity),
    )
    body = Block(
        (Let("values", VecLit(), mutable=True),) + pushes.body + (push_dummy,),
        struct_new,
    )
    return FnDef(
        "into_struct_array",
        (Param("self"), VERSION_PARAM),
        "StructArray",
        body,
    )


# ── from_struct_array ────────────────────────────────────


def downcast_clone(target: Expr, array: str) -> Expr:
    """target.as_any().downcast_ref::<array>().unwrap().clone()"""
    downcast = MethodCall(MethodCall(target, "as_any"), "downcast_ref", generics=(array,))
    return MethodCall(MethodCall(downcast, "unwrap"), "clone")


def from_struct_array(f: FieldDef, structs: Collection[str]) -> Expr:
    """Read one field back from values[f.index].

    Every field reads its own declared index and checks its own version. A
    struct whose fields are all versioned carries a dummy null column at
    index 0 on older versions, so grouping reads under shared guards would
    downcast the dummy instead of the field.
    """
    target = Subscript(path("values"), Lit(str(f.index)))
    array = types.array_type(f.type, structs)
    if types.is_primitive(f.type):
        body = downcast_clone(target, array)
    else:
        body = FnCall(
            path(f.type, "from_struct_array"),
            (downcast_clone(target, array), path("version")),
        )
    if f.version is None:
        return body
    return If(
        version_check(f.version),
        Block(value=FnCall(path("Some"), (body,))),
        Block(value=path("None")),
    )


def from_struct_array_fn(struct: StructDef, structs: Collection[str]) -> FnDef:
    named = struct.named
    reads = tuple(
        (f.name if named else None, from_struct_array(f, structs))
        for f in struct.fields
    )
    if named:
        reads = reads + (("validity", path("validity")),)
    pattern = ("_", "values", "validity" if named else "_")
    body = Block(
        (Let(pattern, MethodCall(path("array"), "into_data")),),
        StructInit(path("Self"), reads),
    )
    return FnDef(
        "from_struct_array",
        (Param("array", "StructArray"), VERSION_PARAM),
        "Self",
        body,
    )


# ── per struct / per schema ──────────────────────────────


def struct_impl(struct: StructDef, structs: Collection[str]) -> Impl:
    return Impl(
        TRAIT,
        struct.name,
        (
            data_type_fn(struct, structs),
            into_struct_array_fn(struct, structs),
            from_struct_array_fn(struct, structs),
        ),
    )


def generate(schema: Schema) -> list[Decl]:
    """use + impl for every struct, in schema order."""
    known = schema.names()
    return [
        decl
        for struct in schema.structs
        for decl in (use_statement(struct), struct_impl(struct, known))
    ]
