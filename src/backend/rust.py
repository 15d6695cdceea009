"""RustBackend: AST -> Rust code.

Expression nodes render to strings through _expr_<Kind>; statements and
declarations write lines through _emit_<Kind>. Every kind in NODE_KINDS must
have one of the two, which is checked when this module is imported.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.ast import (
    NODE_KINDS,
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
    Node,
    Path,
    StrLit,
    StructInit,
    Subscript,
    Use,
    VecLit,
)
from src.backend.util import EmitError, Emitter, escape_string

RUST_RESERVED = frozenset({
    "as", "async", "await", "break", "const", "continue", "crate", "dyn",
    "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in",
    "let", "loop", "match", "mod", "move", "mut", "pub", "ref", "return",
    "self", "Self", "static", "struct", "super", "trait", "true", "type",
    "union", "unsafe", "use", "where", "while", "abstract", "become", "box",
    "do", "final", "macro", "override", "priv", "try", "typeof", "unsized",
    "virtual", "yield",
})

# Keywords that cannot be raw identifiers.
_NO_RAW = frozenset({"crate", "self", "Self", "super"})


def safe_ident(name: str) -> str:
    """Field name usable as a Rust identifier: type -> r#type."""
    if name not in RUST_RESERVED:
        return name
    if name in _NO_RAW:
        return name + "_"
    return "r#" + name


class RustBackend(Emitter):
    """Emit Rust code from a sequence of declarations."""

    def emit(self, decls: Sequence[Decl]) -> str:
        self.lines = []
        self.indent = 0
        for i, decl in enumerate(decls):
            if i > 0:
                self.line("")
            self._emit_decl(decl)
        return self.output() + "\n"

    # ── declarations ─────────────────────────────────────────

    def _emit_decl(self, decl: Node) -> None:
        if not isinstance(decl, Decl):
            raise EmitError(f"Rust decl: {type(decl).__name__}")
        self._dispatch_emit(decl)

    def _dispatch_emit(self, node: Node) -> None:
        handler = getattr(self, "_emit_" + type(node).__name__, None)
        if handler is None:
            raise EmitError(f"Rust stmt: {type(node).__name__}")
        handler(node)

    def _emit_Use(self, d: Use) -> None:
        self.line(f"use {'::'.join(d.path)};")

    def _emit_Impl(self, d: Impl) -> None:
        self.line(f"impl {d.trait} for {d.target} {{")
        self.indent += 1
        for i, item in enumerate(d.items):
            if i > 0:
                self.line("")
            self._emit_decl(item)
        self.indent -= 1
        self.line("}")

    def _emit_FnDef(self, d: FnDef) -> None:
        params = ", ".join(
            p.name if p.typ is None else f"{p.name}: {p.typ}" for p in d.params
        )
        ret = f" -> {d.ret}" if d.ret is not None else ""
        self.line(f"fn {d.name}({params}){ret} {{")
        self._emit_body(d.body)
        self.line("}")

    # ── statements ───────────────────────────────────────────

    def _emit_body(self, block: Block) -> None:
        """Contents of a block, one level deeper, without the braces."""
        self.indent += 1
        for item in block.body:
            self._emit_item(item, tail=False)
        if block.value is not None:
            self._emit_item(block.value, tail=True)
        self.indent -= 1

    def _emit_item(self, node: Node, tail: bool) -> None:
        if isinstance(node, (Let, If, Block)):
            self._dispatch_emit(node)
        elif tail and isinstance(node, StructInit) and _has_names(node):
            self._emit_struct_lines(node)
        elif isinstance(node, Expr):
            end = "" if tail else ";"
            self.line(self._expr(node) + end)
        else:
            raise EmitError(f"Rust block item: {type(node).__name__}")

    def _emit_Block(self, s: Block) -> None:
        self.line("{")
        self._emit_body(s)
        self.line("}")

    def _emit_If(self, s: If) -> None:
        self.line(f"if {self._expr(s.cond)} {{")
        self._emit_body(s.then)
        if s.orelse is not None:
            self.line("} else {")
            self._emit_body(s.orelse)
        self.line("}")

    def _emit_Let(self, s: Let) -> None:
        if isinstance(s.target, tuple):
            target = "(" + ", ".join(s.target) + ")"
        else:
            target = s.target
        mut = "mut " if s.mutable else ""
        self.line(f"let {mut}{target} = {self._expr(s.value)};")

    def _emit_struct_lines(self, e: StructInit) -> None:
        self.line(f"{self._expr(e.path)} {{")
        self.indent += 1
        for name, value in e.fields:
            self.line(f"{safe_ident(name)}: {self._expr(value)},")
        self.indent -= 1
        self.line("}")

    # ── expressions ──────────────────────────────────────────

    def _expr(self, e: Node) -> str:
        handler = getattr(self, "_expr_" + type(e).__name__, None)
        if handler is None:
            raise EmitError(f"Rust expr: {type(e).__name__}")
        return handler(e)

    def _args(self, args: Sequence[Expr]) -> str:
        return ", ".join(self._expr(a) for a in args)

    def _expr_Lit(self, e: Lit) -> str:
        return e.text

    def _expr_StrLit(self, e: StrLit) -> str:
        return f'"{escape_string(e.value)}"'

    def _expr_Path(self, e: Path) -> str:
        return "::".join(e.segments)

    def _expr_FieldGet(self, e: FieldGet) -> str:
        field = e.field if isinstance(e.field, int) else safe_ident(e.field)
        return f"{self._expr(e.obj)}.{field}"

    def _expr_Subscript(self, e: Subscript) -> str:
        return f"{self._expr(e.obj)}[{self._expr(e.index)}]"

    def _expr_MethodCall(self, e: MethodCall) -> str:
        turbofish = f"::<{', '.join(e.generics)}>" if e.generics else ""
        return f"{self._expr(e.obj)}.{e.method}{turbofish}({self._args(e.args)})"

    def _expr_FnCall(self, e: FnCall) -> str:
        return f"{self._expr(e.func)}({self._args(e.args)})"

    def _expr_StructInit(self, e: StructInit) -> str:
        head = self._expr(e.path)
        if not e.fields:
            return f"{head} {{}}"
        if not _has_names(e):
            return f"{head}({self._args([v for _, v in e.fields])})"
        inner = ", ".join(
            f"{safe_ident(name)}: {self._expr(value)}" for name, value in e.fields
        )
        return f"{head} {{ {inner} }}"

    def _expr_VecLit(self, e: VecLit) -> str:
        return f"vec![{self._args(e.elements)}]"

    def _expr_Closure(self, e: Closure) -> str:
        return f"|{', '.join(e.params)}| {self._expr(e.body)}"

    def _expr_Block(self, e: Block) -> str:
        if e.body or e.value is None:
            raise EmitError("Rust expr: Block with statements")
        return f"{{ {self._expr(e.value)} }}"

    def _expr_If(self, e: If) -> str:
        then = self._expr_Block(e.then)
        if e.orelse is None:
            return f"if {self._expr(e.cond)} {then}"
        return f"if {self._expr(e.cond)} {then} else {self._expr_Block(e.orelse)}"


def _has_names(e: StructInit) -> bool:
    names = [name for name, _ in e.fields]
    if all(n is None for n in names):
        return False
    if any(n is None for n in names):
        raise EmitError("Rust expr: StructInit mixes named and positional fields")
    return True


def unhandled_kinds() -> list[str]:
    """Node kinds RustBackend has no emitter for."""
    return [
        k.__name__
        for k in NODE_KINDS
        if not hasattr(RustBackend, "_emit_" + k.__name__)
        and not hasattr(RustBackend, "_expr_" + k.__name__)
    ]


_UNHANDLED = unhandled_kinds()
if _UNHANDLED:
    raise EmitError("Rust backend missing node kinds: " + ", ".join(_UNHANDLED))


def emit_rust(decls: Sequence[Decl]) -> str:
    """Render declarations as Rust source, separated by blank lines."""
    return RustBackend().emit(decls)
