"""cargo_aspect/program.py – read-only typed program tree.

The matcher never talks to a compiler directly.  It sees a program
through the small capability set defined by :class:`TypedProgram`:

* ``iter_items()`` – top-level items in source order;
* ``type_of(expr)`` – canonical type string of an expression, or
  ``None`` when the type could not be resolved.

Everything else (nested functions, statements, sub-expressions, spans,
callee names, receivers) is read off the frozen tagged-variant nodes
below.  :class:`Program` is the in-memory implementation; the loader in
:mod:`cargo_aspect.loader` builds one from an S-expression dump.

Spans are half-open ``[lo, hi)`` ranges of 1-based line / column
positions, matching what the compiler front end reports.

Module layout
-------------
§1  Positions and spans
§2  Expressions
§3  Statements and blocks
§4  Items
§5  Program
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Iterator,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)

# ════════════════════════════════════════════════════════════════════════
# §1  Positions and spans
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, order=True)
class Pos:
    line: int
    col: int

    def __str__(self) -> str:
        return f"{self.line}:{self.col}"


@dataclass(frozen=True, order=True)
class Span:
    """A half-open source range inside one file."""

    file: str
    lo: Pos
    hi: Pos

    @classmethod
    def of(cls, file: str, lo_line: int, lo_col: int, hi_line: int, hi_col: int) -> Span:
        return cls(file, Pos(lo_line, lo_col), Pos(hi_line, hi_col))

    @classmethod
    def point(cls, file: str, pos: Pos) -> Span:
        """A zero-width span, i.e. an insertion point."""
        return cls(file, pos, pos)

    @property
    def is_empty(self) -> bool:
        return self.lo == self.hi

    def contains(self, other: Span) -> bool:
        return self.file == other.file and self.lo <= other.lo and other.hi <= self.hi

    def __str__(self) -> str:
        return f"{self.file}:{self.lo}: {self.hi}"


# ════════════════════════════════════════════════════════════════════════
# §2  Expressions
# ════════════════════════════════════════════════════════════════════════
#
# Every expression carries its span, the canonical type string computed
# by the type checker (``ty``), and optionally its source text.


@dataclass(frozen=True)
class PathExpr:
    """A path used as a value: a local binding, a constant, a function."""

    span: Span
    name: str
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return ()


@dataclass(frozen=True)
class Lit:
    span: Span
    value: str
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return ()


@dataclass(frozen=True)
class Call:
    """``func(args...)``"""

    span: Span
    func: Expr
    args: Tuple[Expr, ...] = ()
    ty: Optional[str] = None
    text: Optional[str] = None

    @property
    def callee_name(self) -> Optional[str]:
        """The callee's path text, or ``None`` for computed callees."""
        if isinstance(self.func, PathExpr):
            return self.func.name
        return None

    @property
    def callee_ident(self) -> Optional[str]:
        """Last identifier of the callee path: ``spawn`` for
        ``std::thread::spawn::<F>``.  ``None`` for computed callees."""
        name = self.callee_name
        if name is None:
            return None
        segments = [s for s in name.split("::") if s and not s.startswith("<")]
        return segments[-1] if segments else None

    def children(self) -> Tuple[Node, ...]:
        return (self.func,) + self.args


@dataclass(frozen=True)
class MethodCall:
    """``receiver.method(args...)``"""

    span: Span
    receiver: Expr
    method: str
    args: Tuple[Expr, ...] = ()
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return (self.receiver,) + self.args


@dataclass(frozen=True)
class BlockExpr:
    span: Span
    block: Block
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return (self.block,)


@dataclass(frozen=True)
class If:
    span: Span
    cond: Expr
    then: Block
    orelse: Optional[Expr] = None
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        if self.orelse is None:
            return (self.cond, self.then)
        return (self.cond, self.then, self.orelse)


@dataclass(frozen=True)
class Loop:
    """``loop``, ``while cond`` and ``for _ in cond`` share one shape."""

    span: Span
    body: Block
    cond: Optional[Expr] = None
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        if self.cond is None:
            return (self.body,)
        return (self.cond, self.body)


@dataclass(frozen=True)
class Arm:
    span: Span
    pattern: str
    body: Expr
    guard: Optional[Expr] = None

    def children(self) -> Tuple[Node, ...]:
        if self.guard is None:
            return (self.body,)
        return (self.guard, self.body)


@dataclass(frozen=True)
class Match:
    span: Span
    scrutinee: Expr
    arms: Tuple[Arm, ...] = ()
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return (self.scrutinee,) + self.arms


@dataclass(frozen=True)
class Return:
    span: Span
    value: Optional[Expr] = None
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return () if self.value is None else (self.value,)


@dataclass(frozen=True)
class Closure:
    """A closure; ``return`` inside it leaves the closure, not the function."""

    span: Span
    body: Expr
    params: Tuple[str, ...] = ()
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return (self.body,)


@dataclass(frozen=True)
class Binary:
    span: Span
    op: str
    lhs: Expr
    rhs: Expr
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return (self.lhs, self.rhs)


@dataclass(frozen=True)
class Unary:
    span: Span
    op: str
    operand: Expr
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


@dataclass(frozen=True)
class Opaque:
    """Any other expression form (field access, index, tuple, cast, macro…).

    The matcher never matches it, but walks into its children.
    """

    span: Span
    tag: str
    operands: Tuple[Expr, ...] = ()
    ty: Optional[str] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return self.operands


Expr = Union[
    PathExpr, Lit, Call, MethodCall, BlockExpr, If, Loop, Match,
    Return, Closure, Binary, Unary, Opaque,
]


# ════════════════════════════════════════════════════════════════════════
# §3  Statements and blocks
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LetStmt:
    span: Span
    pattern: str
    init: Optional[Expr] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return () if self.init is None else (self.init,)


@dataclass(frozen=True)
class ExprStmt:
    """An expression followed by ``;`` (or a block-like expression)."""

    span: Span
    expr: Expr
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return (self.expr,)


@dataclass(frozen=True)
class ItemStmt:
    """An item (e.g. a nested ``fn``) declared inside a block."""

    span: Span
    item: Item
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return (self.item,)


Stmt = Union[LetStmt, ExprStmt, ItemStmt]


@dataclass(frozen=True)
class Block:
    """``{ stmts; tail }`` – *tail* is the block's value expression."""

    span: Span
    stmts: Tuple[Stmt, ...] = ()
    tail: Optional[Expr] = None
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        if self.tail is None:
            return self.stmts
        return self.stmts + (self.tail,)


# ════════════════════════════════════════════════════════════════════════
# §4  Items
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FnDef:
    """A function or method definition with its fully qualified path."""

    span: Span
    name: str
    path: str
    body: Optional[Block] = None
    params: Tuple[str, ...] = ()
    text: Optional[str] = None

    def children(self) -> Tuple[Node, ...]:
        return () if self.body is None else (self.body,)


@dataclass(frozen=True)
class ModDef:
    span: Span
    name: str
    items: Tuple[Item, ...] = ()

    def children(self) -> Tuple[Node, ...]:
        return self.items


@dataclass(frozen=True)
class ImplDef:
    span: Span
    self_ty: str
    items: Tuple[Item, ...] = ()

    def children(self) -> Tuple[Node, ...]:
        return self.items


Item = Union[FnDef, ModDef, ImplDef]

Node = Union[Expr, Arm, Stmt, Block, Item]


# ════════════════════════════════════════════════════════════════════════
# §5  Program
# ════════════════════════════════════════════════════════════════════════


@runtime_checkable
class TypedProgram(Protocol):
    """What the matcher needs from a type-checked program."""

    def iter_items(self) -> Sequence[Item]:
        ...

    def type_of(self, expr: Expr) -> Optional[str]:
        ...


@dataclass(frozen=True)
class Program:
    """In-memory :class:`TypedProgram` whose types live on the nodes."""

    items: Tuple[Item, ...] = ()

    def iter_items(self) -> Sequence[Item]:
        return self.items

    def type_of(self, expr: Expr) -> Optional[str]:
        return getattr(expr, "ty", None)

    def functions(self) -> Iterator[FnDef]:
        """All function definitions, nested ones included, in source order."""
        for item in self.items:
            yield from iter_functions(item)


def iter_functions(node: Node) -> Iterator[FnDef]:
    """Pre-order walk yielding every :class:`FnDef` under *node*."""
    if isinstance(node, FnDef):
        yield node
    for child in node.children():
        yield from iter_functions(child)


__all__ = [
    "Pos", "Span",
    "PathExpr", "Lit", "Call", "MethodCall", "BlockExpr", "If", "Loop",
    "Arm", "Match", "Return", "Closure", "Binary", "Unary", "Opaque", "Expr",
    "LetStmt", "ExprStmt", "ItemStmt", "Stmt", "Block",
    "FnDef", "ModDef", "ImplDef", "Item", "Node",
    "TypedProgram", "Program", "iter_functions",
]
