"""Tests for the per-struct generators (AST level)."""

import pytest

from src.ast import (
    Block,
    FieldGet,
    FnCall,
    If,
    Impl,
    Let,
    Lit,
    MethodCall,
    Path,
    StrLit,
    StructInit,
    Subscript,
    Use,
)
from src.generate import (
    arrow_values,
    data_type_fn,
    from_struct_array,
    from_struct_array_fn,
    generate,
    into_struct_array_fn,
    struct_impl,
    use_statement,
)
from src.schema import Version, load_schema, schema_from_dict

POSITION = '{"Position": {"fields": [{"name": "x", "type": "f32"}, {"name": "y", "type": "f32"}]}}'
END = '{"End": {"fields": [{"name": "latest_finalized_frame", "type": "i32", "version": "3.0"}]}}'
TUPLE = '{"Pair": {"fields": [{"type": "u8"}, {"type": "u16", "version": "1.0"}]}}'
EMPTY = '{"Empty": {"fields": []}}'


def _struct(schema, name):
    return next(s for s in schema.structs if s.name == name)


def _pushes(body: Block, target: str) -> list[MethodCall]:
    """All target.push(...) calls in a body, in order, descending into guards."""
    found: list[MethodCall] = []
    for node in body.body:
        if isinstance(node, MethodCall) and node.obj == Path((target,)) and node.method == "push":
            found.append(node)
        elif isinstance(node, If) and node.cond.method == "gte":
            found.extend(_pushes(node.then, target))
    return found


def _field_names(pushes: list[MethodCall]) -> list[str]:
    return [p.args[0].args[0].value for p in pushes]


def _mentions(node: object, name: str) -> bool:
    """True if any Path or FieldGet in the tree refers to name."""
    if isinstance(node, Path):
        return name in node.segments
    if isinstance(node, FieldGet) and node.field == name:
        return True
    if isinstance(node, Let) and isinstance(node.target, tuple) and name in node.target:
        return True
    if isinstance(node, tuple):
        return any(_mentions(x, name) for x in node)
    if hasattr(node, "__dataclass_fields__"):
        return any(_mentions(getattr(node, f), name) for f in node.__dataclass_fields__)
    return False


# ============================================================
# use / impl
# ============================================================


def test_use_statement(first_struct):
    s, _ = first_struct(POSITION)
    assert use_statement(s) == Use(("crate", "frame", "immutable", "Position"))


def test_struct_impl_has_three_functions(first_struct):
    s, known = first_struct(POSITION)
    impl = struct_impl(s, known)
    assert isinstance(impl, Impl)
    assert impl.trait == "StructArrayConvertible"
    assert impl.target == "Position"
    assert [fn.name for fn in impl.items] == ["data_type", "into_struct_array", "from_struct_array"]


def test_generate_pairs_use_and_impl_in_schema_order():
    schema = schema_from_dict(
        {
            "B": {"fields": [{"name": "x", "type": "u8"}]},
            "A": {"fields": [{"name": "b", "type": "B"}]},
        }
    )
    decls = generate(schema)
    assert [type(d).__name__ for d in decls] == ["Use", "Impl", "Use", "Impl"]
    assert [d.target for d in decls if isinstance(d, Impl)] == ["B", "A"]


def test_generate_builds_fresh_trees():
    schema = schema_from_dict({"A": {"fields": [{"name": "x", "type": "u8"}]}})
    first = generate(schema)
    second = generate(schema)
    assert first == second
    assert first[1] is not second[1]


# ============================================================
# data_type
# ============================================================


def test_data_type_pushes_each_field_in_order(first_struct):
    s, known = first_struct(POSITION)
    fn = data_type_fn(s, known)
    pushes = _pushes(fn.body, "fields")
    assert _field_names(pushes) == ["x", "y"]
    assert pushes[0].args[0] == FnCall(
        Path(("Field", "new")),
        (StrLit("x"), Path(("DataType", "Float32")), Lit("false")),
    )
    assert fn.body.value == StructInit(Path(("DataType", "Struct")), ((None, Path(("fields",))),))


def test_data_type_dummy_fallback(first_struct):
    s, known = first_struct(EMPTY)
    fn = data_type_fn(s, known)
    assert _pushes(fn.body, "fields") == []
    fallback = fn.body.body[-1]
    assert isinstance(fallback, If)
    assert fallback.cond == MethodCall(Path(("fields",)), "is_empty")
    (push,) = fallback.then.body
    assert push.args[0].args == (StrLit("_dummy"), Path(("DataType", "Null")), Lit("true"))


def test_data_type_gated_field_under_guard(first_struct):
    s, known = first_struct(END)
    fn = data_type_fn(s, known)
    guard = fn.body.body[1]
    assert isinstance(guard, If)
    assert guard.cond == MethodCall(Path(("version",)), "gte", (Lit("3"), Lit("0")))
    assert _field_names(_pushes(guard.then, "fields")) == ["latest_finalized_frame"]


def test_data_type_positional_names_are_indices(first_struct):
    s, known = first_struct(TUPLE)
    assert _field_names(_pushes(data_type_fn(s, known).body, "fields")) == ["0", "1"]


def test_data_type_nested_struct_recurses():
    schema = schema_from_dict(
        {
            "Position": {"fields": [{"name": "x", "type": "f32"}]},
            "Frame": {"fields": [{"name": "pos", "type": "Position"}]},
        }
    )
    fn = data_type_fn(_struct(schema, "Frame"), schema.names())
    (push,) = _pushes(fn.body, "fields")
    assert push.args[0].args[1] == FnCall(Path(("Position", "data_type")), (Path(("version",)),))


# ============================================================
# into_struct_array
# ============================================================


def test_arrow_values_primitive(first_struct):
    s, _ = first_struct(POSITION)
    assert arrow_values(s.fields[0], s.named) == MethodCall(FieldGet(Path(("self",)), "x"), "boxed")


def test_arrow_values_versioned_unwraps(first_struct):
    s, _ = first_struct(END)
    assert arrow_values(s.fields[0], s.named) == MethodCall(
        MethodCall(FieldGet(Path(("self",)), "latest_finalized_frame"), "unwrap"), "boxed"
    )


def test_arrow_values_composite():
    schema = schema_from_dict(
        {
            "Position": {"fields": [{"name": "x", "type": "f32"}]},
            "Frame": {"fields": [{"name": "pos", "type": "Position", "version": "2.0"}]},
        }
    )
    (f,) = _struct(schema, "Frame").fields
    assert arrow_values(f, True) == MethodCall(
        MethodCall(
            MethodCall(FieldGet(Path(("self",)), "pos"), "unwrap"),
            "into_struct_array",
            (Path(("version",)),),
        ),
        "boxed",
    )


def test_arrow_values_positional(first_struct):
    s, _ = first_struct(TUPLE)
    assert arrow_values(s.fields[0], s.named).obj == FieldGet(Path(("self",)), 0)


def test_arrow_values_unnamed_struct_ignores_names():
    schema = schema_from_dict({"Mixed": {"fields": [{"name": "a", "type": "u8"}, {"type": "u8"}]}})
    s = _struct(schema, "Mixed")
    assert arrow_values(s.fields[0], s.named).obj == FieldGet(Path(("self",)), 0)


def test_into_struct_array_named_threads_validity(first_struct):
    s, known = first_struct(END)
    fn = into_struct_array_fn(s, known)
    fallback = fn.body.body[-1]
    length = fallback.then.body[0]
    assert length.target == "len"
    assert length.value.method == "map_or"
    assert fn.body.value.args[2] == FieldGet(Path(("self",)), "validity")


def test_into_struct_array_unnamed_never_mentions_validity(first_struct):
    s, known = first_struct(TUPLE)
    fn = into_struct_array_fn(s, known)
    length = fn.body.body[-1].then.body[0]
    assert length == Let("len", Lit("0"))
    assert fn.body.value.args[2] == Path(("None",))
    assert not _mentions(fn, "validity")


def test_into_struct_array_pushes_in_order(first_struct):
    s, known = first_struct(POSITION)
    pushes = _pushes(into_struct_array_fn(s, known).body, "values")
    assert [p.args[0].obj.field for p in pushes] == ["x", "y"]


# ============================================================
# from_struct_array
# ============================================================


def test_from_struct_array_reads_declared_indices(first_struct):
    s, known = first_struct(POSITION)
    fn = from_struct_array_fn(s, known)
    init = fn.body.value
    assert init.path == Path(("Self",))
    assert [name for name, _ in init.fields] == ["x", "y", "validity"]
    for i, (_, read) in enumerate(init.fields[:2]):
        clone = read
        assert clone.method == "clone"
        downcast = clone.obj.obj
        assert downcast.method == "downcast_ref"
        assert downcast.generics == ("PrimitiveArray<f32>",)
        assert downcast.obj.obj == Subscript(Path(("values",)), Lit(str(i)))


def test_from_struct_array_versioned_is_optional(first_struct):
    s, known = first_struct(END)
    read = from_struct_array(s.fields[0], known)
    assert isinstance(read, If)
    assert read.cond == MethodCall(Path(("version",)), "gte", (Lit("3"), Lit("0")))
    some = read.then.value
    assert some.func == Path(("Some",))
    assert read.orelse == Block(value=Path(("None",)))


def test_from_struct_array_all_gated_reads_index_zero(first_struct):
    s, known = first_struct(END)
    read = from_struct_array(s.fields[0], known)
    downcast = read.then.value.args[0].obj.obj
    assert downcast.obj.obj == Subscript(Path(("values",)), Lit("0"))


def test_from_struct_array_each_versioned_field_checks_independently():
    schema = schema_from_dict(
        {
            "A": {
                "fields": [
                    {"name": "a", "type": "u8", "version": "1.0"},
                    {"name": "b", "type": "u8", "version": "1.0"},
                ]
            }
        }
    )
    fn = from_struct_array_fn(_struct(schema, "A"), schema.names())
    reads = [read for name, read in fn.body.value.fields if name != "validity"]
    assert all(isinstance(r, If) for r in reads)
    assert len(reads) == 2


def test_from_struct_array_composite():
    schema = schema_from_dict(
        {
            "Position": {"fields": [{"name": "x", "type": "f32"}]},
            "Frame": {"fields": [{"name": "pos", "type": "Position"}]},
        }
    )
    read = from_struct_array(_struct(schema, "Frame").fields[0], schema.names())
    assert read.func == Path(("Position", "from_struct_array"))
    assert read.args[0].obj.obj.generics == ("StructArray",)
    assert read.args[1] == Path(("version",))


def test_from_struct_array_null_type():
    schema = schema_from_dict({"Pad": {"fields": [{"name": "pad", "type": None}]}})
    read = from_struct_array(_struct(schema, "Pad").fields[0], schema.names())
    assert read.obj.obj.generics == ("NullArray",)


def test_from_struct_array_unnamed_is_positional(first_struct):
    s, known = first_struct(TUPLE)
    fn = from_struct_array_fn(s, known)
    assert [name for name, _ in fn.body.value.fields] == [None, None]
    assert fn.body.body[0].target == ("_", "values", "_")
    assert not _mentions(fn, "validity")


def test_from_struct_array_named_passes_validity(first_struct):
    s, known = first_struct(EMPTY)
    fn = from_struct_array_fn(s, known)
    assert fn.body.body[0].target == ("_", "values", "validity")
    assert fn.body.value.fields == (("validity", Path(("validity",))),)


# ============================================================
# Column alignment between into_struct_array and from_struct_array
# ============================================================


BUNDLED = load_schema()


def _guard_version(cond: MethodCall) -> Version:
    major, minor = cond.args
    return Version(int(major.text), int(minor.text))


def _pushed_at(body: Block, target: str, version: Version) -> list[MethodCall]:
    """target.push(...) calls that run when reading at version."""
    found: list[MethodCall] = []
    for node in body.body:
        if isinstance(node, MethodCall) and node.obj == Path((target,)) and node.method == "push":
            found.append(node)
        elif isinstance(node, If) and node.cond.method == "gte":
            if version >= _guard_version(node.cond):
                found.extend(_pushed_at(node.then, target, version))
    return found


def _pushed_field(push: MethodCall) -> str | int:
    """The self.<field> a values.push(...) call boxes."""
    e = push.args[0]
    while not (isinstance(e, FieldGet) and e.obj == Path(("self",))):
        e = e.obj
    return e.field


def _read_index(node: object) -> int | None:
    """Index of the values[...] subscript inside a field read."""
    if isinstance(node, Subscript) and node.obj == Path(("values",)):
        return int(node.index.text)
    children = node if isinstance(node, tuple) else ()
    if hasattr(node, "__dataclass_fields__"):
        children = tuple(getattr(node, f) for f in node.__dataclass_fields__)
    for child in children:
        found = _read_index(child)
        if found is not None:
            return found
    return None


def _read_indices(struct, known) -> dict:
    """Rust field (name or tuple position) -> column index it is read from."""
    reads = from_struct_array_fn(struct, known).body.value.fields
    return {
        (name if struct.named else i): _read_index(read)
        for i, (name, read) in enumerate(reads)
        if name != "validity"
    }


@pytest.mark.parametrize("name", ["Pre", "Post", "Item", "End"])
@pytest.mark.parametrize(
    "version",
    [Version(0, 1), Version(1, 2), Version(1, 4), Version(2, 0), Version(3, 6), Version(3, 7), Version(3, 11)],
)
def test_reads_match_push_positions(name, version):
    struct = _struct(BUNDLED, name)
    known = BUNDLED.names()
    present = [f for f in struct.fields if f.version is None or f.version <= version]
    pushed = [
        _pushed_field(p)
        for p in _pushed_at(into_struct_array_fn(struct, known).body, "values", version)
    ]
    assert pushed == [f.name for f in present]
    columns = [
        p.args[0].args[0].value
        for p in _pushed_at(data_type_fn(struct, known).body, "fields", version)
    ]
    assert columns == [f.key for f in present]
    read_at = _read_indices(struct, known)
    for position, field in enumerate(pushed):
        assert read_at[field] == position


@pytest.mark.parametrize("version", [Version(0, 9), Version(1, 0)])
def test_unnamed_reads_match_push_positions(first_struct, version):
    s, known = first_struct(TUPLE)
    pushed = [
        _pushed_field(p)
        for p in _pushed_at(into_struct_array_fn(s, known).body, "values", version)
    ]
    read_at = _read_indices(s, known)
    assert pushed == list(range(len(pushed)))
    for position, field in enumerate(pushed):
        assert read_at[field] == position


def test_all_gated_read_sits_at_index_zero_under_its_guard():
    end = _struct(BUNDLED, "End")
    known = BUNDLED.names()
    ((name, read), _) = from_struct_array_fn(end, known).body.value.fields
    assert name == "latest_finalized_frame"
    assert _read_index(read) == 0
    assert isinstance(read, If)
    assert _guard_version(read.cond) == Version(3, 7)
    # Below 3.7 column 0 is the dummy, and the guard keeps it from being read.
    assert _pushed_at(into_struct_array_fn(end, known).body, "values", Version(3, 6)) == []
    assert not Version(3, 6) >= _guard_version(read.cond)
