"""
matcher.py — evaluate a pointcut against a typed program tree
=============================================================

The matcher performs one depth-first walk over a :class:`TypedProgram`
in source order and yields a :class:`MatchSite` for every node that the
pointcut selects.

Insertion points
----------------
Advice may only be inserted where it cannot produce malformed code, so a
hit deep inside an expression is resolved to the innermost enclosing

* statement → the statement's span, or
* block whose value (tail) slot holds the hit → the block's span.

The walk keeps these frames on an explicit stack that belongs to one
``_Walk`` object, so a :class:`Matcher` is reentrant and holds no state
between runs.

Skip policy
-----------
Candidates whose operand types cannot be resolved, and malformed nodes,
are skipped and reported as :class:`MatchWarning` values; they never
abort the pass.  An invalid pointcut fails before traversal begins.

Usage::

    from cargo_aspect.matcher import find_sites
    from cargo_aspect.parser import parse_condition

    result = find_sites(program, parse_condition("call _x.iter() where _x: Vec<i32>"))
    for site in result.sites:
        print(site.span, site.kind.value)
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from . import ast as A
from . import program as P
from .errors import ErrorCode, ErrorCodes, MatchCancelled
from .semantic import validate

logger = logging.getLogger(__name__)


# ===================================================================
#  PART 1 — RESULT TYPES
# ===================================================================

class SiteKind(enum.Enum):
    """What kind of program point a site is; order breaks position ties."""
    CALL = "Call"
    METHOD_CALL = "MethodCall"
    ENTER = "Enter"
    EXIT = "Exit"

    @property
    def priority(self) -> int:
        return _KIND_PRIORITY[self]


_KIND_PRIORITY: Dict[SiteKind, int] = {
    SiteKind.CALL: 0,
    SiteKind.METHOD_CALL: 1,
    SiteKind.ENTER: 2,
    SiteKind.EXIT: 3,
}


@dataclass(frozen=True)
class Binding:
    """The sub-expression a pattern variable was bound to."""
    span: P.Span
    text: Optional[str] = None
    ty: Optional[str] = None


@dataclass(frozen=True)
class MatchSite:
    """One statement-granular insertion point selected by a pointcut."""
    span: P.Span
    kind: SiteKind
    bindings: Tuple[Tuple[str, Binding], ...] = ()
    src: Optional[str] = None

    def bindings_map(self) -> Dict[str, Binding]:
        return dict(self.bindings)

    def sort_key(self) -> Tuple:
        return (self.span.file, self.span.lo, self.kind.priority, self.span.hi)


@dataclass(frozen=True)
class MatchWarning:
    """A candidate that was skipped; never fatal."""
    code: ErrorCode
    message: str
    span: Optional[P.Span] = None

    def __str__(self) -> str:
        where = f"{self.span}: " if self.span is not None else ""
        return f"{where}{self.code}: {self.message}"


@dataclass(frozen=True)
class MatchResult:
    sites: Tuple[MatchSite, ...] = ()
    warnings: Tuple[MatchWarning, ...] = ()

    @property
    def skipped(self) -> int:
        return len(self.warnings)

    def __iter__(self):
        return iter(self.sites)

    def __len__(self) -> int:
        return len(self.sites)


class CancellationToken:
    """Cooperative cancellation, checked between top-level items."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def merge_sites(*site_lists: Iterable[MatchSite]) -> List[MatchSite]:
    """Merge independently produced site lists back into source order."""
    merged = [site for sites in site_lists for site in sites]
    merged.sort(key=MatchSite.sort_key)
    return merged


# ===================================================================
#  PART 2 — TRAVERSAL
# ===================================================================

class _FrameKind(enum.Enum):
    STMT = "stmt"
    BLOCK = "block"


@dataclass
class _Frame:
    kind: _FrameKind
    span: P.Span
    src: Optional[str] = None
    tail: bool = False          # BLOCK only: the tail expression is being visited


class _Walk:
    """State of one matcher run: frame stack, current function, output."""

    def __init__(self, pointcut: A.Pointcut, program: P.TypedProgram):
        self._pc = pointcut
        self._decl = pointcut.decl
        self._program = program
        self._frames: List[_Frame] = []
        # Innermost function whose returns count as exit points; None
        # inside closures and functions that do not match.
        self._fn_stack: List[Optional[P.FnDef]] = []
        self._seen: Set[Tuple[P.Span, SiteKind]] = set()
        self.sites: List[MatchSite] = []
        self.warnings: List[MatchWarning] = []

    # ---- driver ----

    def run(self, items: Sequence[P.Item],
            cancel: Optional[CancellationToken]) -> None:
        for item in items:
            if cancel is not None and cancel.cancelled:
                raise MatchCancelled("matching cancelled between top-level items")
            self._visit_item(item)
        self.sites.sort(key=MatchSite.sort_key)

    # ---- diagnostics and output ----

    def _warn(self, code: ErrorCode, message: str,
              span: Optional[P.Span]) -> None:
        warning = MatchWarning(code, message, span)
        logger.warning("skipped candidate: %s", warning)
        self.warnings.append(warning)

    def _emit(self, site: MatchSite) -> None:
        key = (site.span, site.kind)
        if key in self._seen:
            logger.debug("collapsed duplicate %s site at %s",
                         site.kind.value, site.span)
            return
        self._seen.add(key)
        self.sites.append(site)

    def _insertion_point(self) -> Optional[_Frame]:
        if not self._frames:
            return None
        top = self._frames[-1]
        if top.kind is _FrameKind.STMT or top.tail:
            return top
        return None

    def _emit_resolved(self, kind: SiteKind, hit: P.Span,
                       bindings: Tuple[Tuple[str, Binding], ...] = ()) -> None:
        frame = self._insertion_point()
        if frame is None:
            self._warn(ErrorCodes.NO_INSERTION_POINT,
                       f"{kind.value} match has no enclosing statement or block",
                       hit)
            return
        self._emit(MatchSite(frame.span, kind, bindings, frame.src))

    # ---- items ----

    def _visit_item(self, item: P.Item) -> None:
        if isinstance(item, P.FnDef):
            self._visit_fn(item)
        else:
            for child in item.children():
                self._visit_item(child)

    def _visit_fn(self, fn: P.FnDef) -> None:
        selected = (isinstance(self._decl, (A.EnterDecl, A.ExitDecl))
                    and fn.path == self._decl.path.text)
        if selected and fn.body is None:
            self._warn(ErrorCodes.MALFORMED_NODE,
                       f"function {fn.path} has no body", fn.span)
            return
        if fn.body is None:
            return
        if selected and isinstance(self._decl, A.EnterDecl):
            self._emit(MatchSite(P.Span.point(fn.body.span.file, _entry_pos(fn.body)),
                                 SiteKind.ENTER, (), ""))
        exits = selected and isinstance(self._decl, A.ExitDecl)
        if exits:
            tail = fn.body.tail
            if tail is not None:
                self._emit(MatchSite(tail.span, SiteKind.EXIT, (), tail.text))
        self._fn_stack.append(fn if exits else None)
        # A nested item never sees the enclosing function's frames.
        saved, self._frames = self._frames, []
        try:
            self._visit_block(fn.body)
        finally:
            self._frames = saved
            self._fn_stack.pop()

    # ---- blocks and statements ----

    def _visit_block(self, block: P.Block) -> None:
        frame = _Frame(_FrameKind.BLOCK, block.span, block.text)
        self._frames.append(frame)
        try:
            for stmt in block.stmts:
                self._visit_stmt(stmt)
            if block.tail is not None:
                frame.tail = True
                self._visit_expr(block.tail)
        finally:
            self._frames.pop()

    def _visit_stmt(self, stmt: P.Stmt) -> None:
        if isinstance(stmt, P.ItemStmt):
            self._visit_item(stmt.item)
            return
        self._frames.append(_Frame(_FrameKind.STMT, stmt.span, stmt.text))
        try:
            for child in stmt.children():
                self._visit_expr(child)
        finally:
            self._frames.pop()

    # ---- expressions ----

    def _visit_node(self, node: P.Node) -> None:
        if isinstance(node, P.Block):
            self._visit_block(node)
        elif isinstance(node, P.Arm):
            for child in node.children():
                self._visit_expr(child)
        else:
            self._visit_expr(node)

    def _visit_expr(self, expr: P.Expr) -> None:
        if isinstance(expr, P.Call):
            self._match_call(expr)
        elif isinstance(expr, P.MethodCall):
            self._match_method_call(expr)
        elif isinstance(expr, P.Return):
            fn = self._fn_stack[-1] if self._fn_stack else None
            # A tail return already has its own site.
            if fn is not None and expr is not fn.body.tail:
                self._emit_resolved(SiteKind.EXIT, expr.span)

        if isinstance(expr, P.Closure):
            self._fn_stack.append(None)
            try:
                self._visit_node(expr.body)
            finally:
                self._fn_stack.pop()
            return
        for child in expr.children():
            self._visit_node(child)

    # ---- pattern matching ----

    def _match_call(self, expr: P.Call) -> None:
        decl = self._decl
        if not isinstance(decl, A.CallDecl) or decl.is_method_call:
            return
        bound: List[Tuple[A.Var, P.Expr]] = []
        if isinstance(decl.target, A.Var):
            bound.append((decl.target, expr.func))
        else:
            name = expr.callee_ident
            if name is None:
                self._warn(ErrorCodes.MALFORMED_NODE,
                           "call has no resolvable callee name", expr.span)
                return
            if name != decl.target.name:
                return
        if not self._bind_args(decl.args, expr.args, bound):
            return
        self._finish(SiteKind.CALL, expr, bound)

    def _match_method_call(self, expr: P.MethodCall) -> None:
        decl = self._decl
        if not isinstance(decl, A.CallDecl) or not decl.is_method_call:
            return
        if not expr.method:
            self._warn(ErrorCodes.MALFORMED_NODE,
                       "method call has no method name", expr.span)
            return
        if expr.method != decl.method:
            return
        bound: List[Tuple[A.Var, P.Expr]] = []
        if isinstance(decl.target, A.Var):
            bound.append((decl.target, expr.receiver))
        elif _receiver_text(expr.receiver) != decl.target.name:
            return
        if not self._bind_args(decl.args, expr.args, bound):
            return
        self._finish(SiteKind.METHOD_CALL, expr, bound)

    @staticmethod
    def _bind_args(spec: A.ArgSpec, args: Tuple[P.Expr, ...],
                   bound: List[Tuple[A.Var, P.Expr]]) -> bool:
        if not spec.accepts(len(args)):
            return False
        for name, arg in zip(spec.names, args):
            if isinstance(name, A.Var):
                bound.append((name, arg))
        return True

    def _finish(self, kind: SiteKind, expr: P.Expr,
                bound: List[Tuple[A.Var, P.Expr]]) -> None:
        bindings: List[Tuple[str, Binding]] = []
        bound_names: Set[str] = set()
        for var, operand in bound:
            constraints = self._pc.constraints_for(var)
            ty = self._program.type_of(operand)
            if constraints and ty is None:
                self._warn(ErrorCodes.UNRESOLVED_TYPE,
                           f"type of {var} could not be resolved", operand.span)
                return
            if any(ty != c.path.text for c in constraints):
                return
            # A repeated variable keeps its first binding.
            if var.name not in bound_names:
                bound_names.add(var.name)
                bindings.append((var.name, Binding(operand.span, operand.text, ty)))
        self._emit_resolved(kind, expr.span, tuple(bindings))


def _entry_pos(body: P.Block) -> P.Pos:
    """Position immediately before the first executable code of *body*."""
    if body.stmts:
        return body.stmts[0].span.lo
    if body.tail is not None:
        return body.tail.span.lo
    # Empty body: just inside the closing brace.
    return P.Pos(body.span.hi.line, max(body.span.hi.col - 1, 1))


def _receiver_text(expr: P.Expr) -> Optional[str]:
    if expr.text is not None:
        return expr.text
    if isinstance(expr, P.PathExpr):
        return expr.name
    return None


# ===================================================================
#  PART 3 — PUBLIC API
# ===================================================================

class Matcher:
    """Matches one validated pointcut against typed programs.

    Parameters
    ----------
    pointcut : Pointcut
        A parsed pointcut.  It is validated again here so that an
        unsupported constraint fails before any traversal.
    """

    def __init__(self, pointcut: A.Pointcut):
        self.pointcut = validate(pointcut)

    def match(self, program: P.TypedProgram,
              cancel: Optional[CancellationToken] = None) -> MatchResult:
        """Return every site in *program*, in source order."""
        walk = _Walk(self.pointcut, program)
        walk.run(program.iter_items(), cancel)
        logger.debug("pointcut %s: %d site(s), %d skipped",
                     self.pointcut, len(walk.sites), len(walk.warnings))
        return MatchResult(tuple(walk.sites), tuple(walk.warnings))


def find_sites(program: P.TypedProgram, pointcut: A.Pointcut,
               cancel: Optional[CancellationToken] = None) -> MatchResult:
    """One-shot helper: ``Matcher(pointcut).match(program, cancel)``."""
    return Matcher(pointcut).match(program, cancel)


__all__ = [
    "SiteKind", "Binding", "MatchSite", "MatchWarning", "MatchResult",
    "CancellationToken", "Matcher", "find_sites", "merge_sites",
]
