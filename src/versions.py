"""Version grouping: nest per-field statements under shared version guards.

Fields arrive in declaration order with non-decreasing minimum versions.
Unversioned fields are emitted as-is; the first field with a higher version
opens a guard that holds it, every later field of the same version, and the
guards of all higher versions:

    a            a;
    b @1.2       if version.gte(1, 2) {
    c @1.2  =>       b;
    d @1.4           c;
                     if version.gte(1, 4) {
                         d;
                     }
                 }
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from itertools import takewhile

from .ast import Block, Expr, If, Lit, MethodCall, Node, path
from .schema import FieldDef, SchemaError, Version


def version_check(version: Version) -> Expr:
    """version.gte(major, minor)"""
    return MethodCall(
        path("version"),
        "gte",
        (Lit(str(version.major)), Lit(str(version.minor))),
    )


def _nest(
    emit: Callable[[FieldDef], Node],
    fields: tuple[FieldDef, ...],
    floor: Version | None,
) -> tuple[Node, ...]:
    head = tuple(takewhile(lambda f: f.version == floor, fields))
    rest = fields[len(head) :]
    stmts = tuple(emit(f) for f in head)
    if not rest:
        return stmts
    inner = rest[0].version
    if inner is None or (floor is not None and inner <= floor):
        raise SchemaError("field '" + rest[0].key + "' breaks version order")
    return stmts + (If(version_check(inner), Block(_nest(emit, rest, inner))),)


def nested_version_ifs(
    emit: Callable[[FieldDef], Node], fields: Sequence[FieldDef]
) -> Block:
    """One block with emit(field) for each field, grouped under version guards."""
    return Block(_nest(emit, tuple(fields), None))
