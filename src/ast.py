"""Rust AST: node definitions for generated conversion code.

Nodes are frozen and hold tuples, so a tree built for one function is never
modified afterwards. Every concrete node class is listed in NODE_KINDS; the
emitter must handle each of them.
"""

from __future__ import annotations

from dataclasses import dataclass


# ============================================================
# BASES
# ============================================================


@dataclass(frozen=True)
class Node:
    """Base for all nodes. Abstract."""


@dataclass(frozen=True)
class Expr(Node):
    """Base for expressions. Abstract."""


@dataclass(frozen=True)
class Stmt(Node):
    """Base for statements that are not expressions (let). Abstract."""


@dataclass(frozen=True)
class Decl(Node):
    """Base for top-level and impl-level declarations. Abstract."""


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(frozen=True)
class Lit(Expr):
    """Raw literal token: 0, 3, true, false."""

    text: str


@dataclass(frozen=True)
class StrLit(Expr):
    """String literal. value is unescaped."""

    value: str


@dataclass(frozen=True)
class Path(Expr):
    """Identifier or ::-separated path: version, DataType::Null, Self."""

    segments: tuple[str, ...]


@dataclass(frozen=True)
class FieldGet(Expr):
    """obj.field, where field is a name or a tuple-struct position."""

    obj: Expr
    field: str | int


@dataclass(frozen=True)
class Subscript(Expr):
    """obj[index]."""

    obj: Expr
    index: Expr


@dataclass(frozen=True)
class MethodCall(Expr):
    """obj.method::<generics>(args)."""

    obj: Expr
    method: str
    args: tuple[Expr, ...] = ()
    generics: tuple[str, ...] = ()


@dataclass(frozen=True)
class FnCall(Expr):
    """func(args) where func is a path: Field::new, Some, Pre::data_type."""

    func: Path
    args: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class StructInit(Expr):
    """Struct literal.

    Named fields render as Path { a: x, b: y }. When every name is None the
    literal is positional and renders as Path(x, y), which also covers
    tuple-variant construction such as DataType::Struct(fields).
    """

    path: Path
    fields: tuple[tuple[str | None, Expr], ...]


@dataclass(frozen=True)
class VecLit(Expr):
    """vec![elements]."""

    elements: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class Closure(Expr):
    """|params| body."""

    params: tuple[str, ...]
    body: Expr


# ============================================================
# BLOCKS AND STATEMENTS
# ============================================================


@dataclass(frozen=True)
class Block(Expr):
    """{ body; value }.

    body holds statements and expressions evaluated for effect; value, if
    present, is the block's tail expression.
    """

    body: tuple[Node, ...] = ()
    value: Expr | None = None


@dataclass(frozen=True)
class If(Expr):
    """if cond { then } else { orelse }.

    Used as a statement for version guards and as an expression for
    optional field reads; the expression form needs value-only branches.
    """

    cond: Expr
    then: Block
    orelse: Block | None = None


@dataclass(frozen=True)
class Let(Stmt):
    """let [mut] target = value; target is a name or a tuple pattern."""

    target: str | tuple[str, ...]
    value: Expr
    mutable: bool = False


# ============================================================
# DECLARATIONS
# ============================================================


@dataclass(frozen=True)
class Param:
    """Function parameter. typ is None for self."""

    name: str
    typ: str | None = None


@dataclass(frozen=True)
class FnDef(Decl):
    """fn name(params) -> ret { body }."""

    name: str
    params: tuple[Param, ...]
    ret: str | None
    body: Block


@dataclass(frozen=True)
class Use(Decl):
    """use a::b::c;"""

    path: tuple[str, ...]


@dataclass(frozen=True)
class Impl(Decl):
    """impl trait for target { items }."""

    trait: str
    target: str
    items: tuple[FnDef, ...]


NODE_KINDS: tuple[type[Node], ...] = (
    Lit,
    StrLit,
    Path,
    FieldGet,
    Subscript,
    MethodCall,
    FnCall,
    StructInit,
    VecLit,
    Closure,
    Block,
    If,
    Let,
    FnDef,
    Use,
    Impl,
)


def path(*segments: str) -> Path:
    """Build a Path from segments; path("DataType", "Null")."""
    return Path(tuple(segments))
