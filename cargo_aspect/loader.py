"""cargo_aspect/loader.py – S-expression dump → :class:`~cargo_aspect.program.Program`.

The compiler-side helper that type-checks a crate writes its typed tree
as one S-expression.  This module turns that dump into the frozen node
model of :mod:`cargo_aspect.program`.

Design principles
-----------------
* **Head-symbol dispatch** – every list ``(tag ...)`` is dispatched on
  ``tag`` to a dedicated loader registered with ``@_register``.
* **Keyed attributes** – ``(span …)``, ``(type …)``, ``(text …)``,
  ``(args …)``, ``(params …)``, ``(guard …)`` and ``(tail …)`` may appear
  anywhere inside a form; bare atoms are positional; every other list is
  a child node, kept in order.
* **Unknown expression tags are not errors** – they become
  :class:`~cargo_aspect.program.Opaque` nodes, so the matcher still walks
  their children.  Structural problems raise ``ProgramLoadError``.

Dump syntax (overview)
----------------------
::

    (program
      (file "src/main.rs"
        (fn main "crate::main" (span 1 1 4 2)
          (block (span 1 11 4 2)
            (let "v" (span 2 5 2 25) (text "let v = vec![1, 2, 3];")
              (macro (span 2 13 2 24) (type "Vec<i32>")))
            (expr (span 3 5 3 15)
              (method-call iter (span 3 5 3 14)
                (path v (span 3 5 3 6) (type "Vec<i32>") (text "v"))
                (args)
                (type "std::slice::Iter<i32>")))))))

    ;; Items
    (fn <name> <qualified-path> (span …) (params p …)? <block>?)
    (mod <name> (span …) <item> …)
    (impl <self-type> (span …) <item> …)

    ;; Blocks and statements
    (block (span …) <stmt> … (tail <expr>)?)
    (let <pattern> (span …) <expr>?)
    (expr (span …) <expr>)
    <item>                              ;; item statement

    ;; Expressions
    (path <name> (span …))
    (lit <value> (span …))
    (call (span …) <callee-expr> (args <expr> …))
    (method-call <method> (span …) <receiver-expr> (args <expr> …))
    (block …)                           ;; block expression
    (if (span …) <cond> <block> <else-expr>?)
    (loop (span …) <block>)
    (while (span …) <cond> <block>)
    (for (span …) <iter> <block>)
    (match (span …) <scrutinee> (arm <pattern> (span …) (guard <expr>)? <expr>) …)
    (return (span …) <expr>?)
    (closure (span …) (params p …)? <body>)
    (binary <op> (span …) <lhs> <rhs>)
    (unary <op> (span …) <operand>)
    (<any-other-tag> (span …) <expr> …) ;; opaque

A ``(span …)`` holds ``lo_line lo_col hi_line hi_col``, optionally
preceded by a file name; otherwise the enclosing ``(file …)`` applies.

Public API
----------
``load_program(text, filename="<string>") -> Program``
``load_program_file(path) -> Program``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import sexpdata
from sexpdata import Symbol

from . import program as P
from .errors import ProgramLoadError

logger = logging.getLogger(__name__)

Sexp = Any  # Union[list, Symbol, str, int, float]

_ATTR_KEYS = frozenset({"span", "type", "text", "args", "params", "guard", "tail"})


# ═══════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════

def _sym_name(s: Sexp) -> str:
    """Extract the string name from a ``sexpdata.Symbol``."""
    value = getattr(s, "value", None)
    if callable(value):
        return str(value())
    return str(s)


def _atom(s: Sexp) -> str:
    """Coerce an atom (symbol, string or number) to ``str``."""
    if isinstance(s, list):
        raise ProgramLoadError(f"Expected atom, got list: {sexpdata.dumps(s)}")
    if isinstance(s, Symbol):
        return _sym_name(s)
    return str(s)


def _as_int(s: Sexp) -> int:
    if isinstance(s, int) and not isinstance(s, bool):
        return s
    raise ProgramLoadError(f"Expected integer, got {type(s).__name__}: {s!r}")


def _head(s: Sexp) -> str:
    """Return the head symbol name of a list form ``(tag ...)``."""
    if not isinstance(s, list) or not s:
        raise ProgramLoadError(f"Expected a (tag ...) form, got: {s!r}")
    if not isinstance(s[0], Symbol):
        raise ProgramLoadError(f"Form head must be a symbol, got: {s[0]!r}")
    return _sym_name(s[0])


def _is_attr(s: Sexp) -> bool:
    return (isinstance(s, list) and bool(s) and isinstance(s[0], Symbol)
            and _sym_name(s[0]) in _ATTR_KEYS)


@dataclass
class _Parts:
    """A form split into positional atoms, keyed attributes and child nodes."""
    tag: str
    atoms: List[str] = field(default_factory=list)
    attrs: Dict[str, list] = field(default_factory=dict)
    nodes: List[list] = field(default_factory=list)

    def atom(self, index: int, what: str) -> str:
        if index >= len(self.atoms):
            raise ProgramLoadError(f"({self.tag} ...) is missing its {what}")
        return self.atoms[index]

    def node(self, index: int, what: str) -> list:
        if index >= len(self.nodes):
            raise ProgramLoadError(f"({self.tag} ...) is missing its {what}")
        return self.nodes[index]

    def optional_node(self, index: int) -> Optional[list]:
        return self.nodes[index] if index < len(self.nodes) else None

    def scalar(self, key: str) -> Optional[str]:
        values = self.attrs.get(key)
        if not values:
            return None
        return _atom(values[0])


def _split(form: list) -> _Parts:
    parts = _Parts(tag=_head(form))
    for item in form[1:]:
        if _is_attr(item):
            parts.attrs[_sym_name(item[0])] = item[1:]
        elif isinstance(item, list):
            parts.nodes.append(item)
        else:
            parts.atoms.append(_atom(item))
    return parts


# ═══════════════════════════════════════════════════════════════════════
#  Dispatch registry
# ═══════════════════════════════════════════════════════════════════════

_ITEM_DISPATCH: Dict[str, Callable[..., P.Item]] = {}
_STMT_DISPATCH: Dict[str, Callable[..., P.Stmt]] = {}
_EXPR_DISPATCH: Dict[str, Callable[..., P.Expr]] = {}


def _register(table: dict, *tags: str):
    """Decorator: register a loader method under *tags* in *table*."""
    def deco(fn):
        for tag in tags:
            table[tag] = fn
        return fn
    return deco


# ═══════════════════════════════════════════════════════════════════════
#  Loader
# ═══════════════════════════════════════════════════════════════════════

class _Loader:
    """Builds program nodes; tracks the file named by the enclosing ``(file …)``."""

    def __init__(self, filename: str) -> None:
        self._file = filename

    # ---- program / file ----

    def program(self, form: Sexp) -> P.Program:
        if _head(form) != "program":
            raise ProgramLoadError(f"Expected (program ...), got ({_head(form)} ...)")
        items: List[P.Item] = []
        for sub in form[1:]:
            if _head(sub) == "file":
                items.extend(self._file_items(sub))
            else:
                items.append(self.item(sub))
        return P.Program(items=tuple(items))

    def _file_items(self, form: list) -> List[P.Item]:
        if len(form) < 2 or isinstance(form[1], list):
            raise ProgramLoadError("(file ...) needs a file name")
        saved, self._file = self._file, _atom(form[1])
        try:
            return [self.item(sub) for sub in form[2:]]
        finally:
            self._file = saved

    # ---- shared attributes ----

    def span(self, parts: _Parts) -> P.Span:
        values = parts.attrs.get("span")
        if values is None:
            raise ProgramLoadError(f"({parts.tag} ...) has no (span ...)")
        file = self._file
        if len(values) == 5:
            file, values = _atom(values[0]), values[1:]
        if len(values) != 4:
            raise ProgramLoadError(
                f"(span ...) needs lo_line lo_col hi_line hi_col, got {len(values)} value(s)"
            )
        lo_line, lo_col, hi_line, hi_col = (_as_int(v) for v in values)
        return P.Span.of(file, lo_line, lo_col, hi_line, hi_col)

    @staticmethod
    def names(parts: _Parts, key: str) -> Tuple[str, ...]:
        return tuple(_atom(v) for v in parts.attrs.get(key, ()))

    # ---- items ----

    def item(self, form: Sexp) -> P.Item:
        tag = _head(form)
        loader = _ITEM_DISPATCH.get(tag)
        if loader is None:
            raise ProgramLoadError(f"Unknown item form: ({tag} ...)")
        return loader(self, _split(form))

    @_register(_ITEM_DISPATCH, "fn")
    def _fn(self, parts: _Parts) -> P.FnDef:
        name = parts.atom(0, "name")
        path = parts.atoms[1] if len(parts.atoms) > 1 else name
        body_form = parts.optional_node(0)
        body = self.block(body_form) if body_form is not None else None
        return P.FnDef(span=self.span(parts), name=name, path=path, body=body,
                       params=self.names(parts, "params"),
                       text=parts.scalar("text"))

    @_register(_ITEM_DISPATCH, "mod")
    def _mod(self, parts: _Parts) -> P.ModDef:
        return P.ModDef(span=self.span(parts), name=parts.atom(0, "name"),
                        items=tuple(self.item(n) for n in parts.nodes))

    @_register(_ITEM_DISPATCH, "impl")
    def _impl(self, parts: _Parts) -> P.ImplDef:
        return P.ImplDef(span=self.span(parts), self_ty=parts.atom(0, "self type"),
                         items=tuple(self.item(n) for n in parts.nodes))

    # ---- blocks and statements ----

    def block(self, form: Sexp) -> P.Block:
        parts = _split(form)
        if parts.tag != "block":
            raise ProgramLoadError(f"Expected (block ...), got ({parts.tag} ...)")
        return self._block_from_parts(parts)

    def stmt(self, form: Sexp) -> P.Stmt:
        tag = _head(form)
        if tag in _ITEM_DISPATCH:
            item = self.item(form)
            return P.ItemStmt(span=item.span, item=item)
        loader = _STMT_DISPATCH.get(tag)
        if loader is None:
            raise ProgramLoadError(f"Unknown statement form: ({tag} ...)")
        return loader(self, _split(form))

    @_register(_STMT_DISPATCH, "let")
    def _let(self, parts: _Parts) -> P.LetStmt:
        init_form = parts.optional_node(0)
        return P.LetStmt(span=self.span(parts), pattern=parts.atom(0, "pattern"),
                         init=self.expr(init_form) if init_form is not None else None,
                         text=parts.scalar("text"))

    @_register(_STMT_DISPATCH, "expr")
    def _expr_stmt(self, parts: _Parts) -> P.ExprStmt:
        return P.ExprStmt(span=self.span(parts),
                          expr=self.expr(parts.node(0, "expression")),
                          text=parts.scalar("text"))

    # ---- expressions ----

    def expr(self, form: Sexp) -> P.Expr:
        parts = _split(form)
        loader = _EXPR_DISPATCH.get(parts.tag)
        if loader is None:
            return P.Opaque(span=self.span(parts), tag=parts.tag,
                            operands=tuple(self.expr(n) for n in parts.nodes),
                            ty=parts.scalar("type"), text=parts.scalar("text"))
        return loader(self, parts)

    def _args(self, parts: _Parts) -> Tuple[P.Expr, ...]:
        return tuple(self.expr(a) for a in parts.attrs.get("args", ()))

    @_register(_EXPR_DISPATCH, "path")
    def _path(self, parts: _Parts) -> P.PathExpr:
        return P.PathExpr(span=self.span(parts), name=parts.atom(0, "name"),
                          ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "lit")
    def _lit(self, parts: _Parts) -> P.Lit:
        return P.Lit(span=self.span(parts), value=parts.atom(0, "value"),
                     ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "call")
    def _call(self, parts: _Parts) -> P.Call:
        return P.Call(span=self.span(parts),
                      func=self.expr(parts.node(0, "callee")),
                      args=self._args(parts),
                      ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "method-call")
    def _method_call(self, parts: _Parts) -> P.MethodCall:
        return P.MethodCall(span=self.span(parts),
                            receiver=self.expr(parts.node(0, "receiver")),
                            method=parts.atoms[0] if parts.atoms else "",
                            args=self._args(parts),
                            ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "block")
    def _block_expr(self, parts: _Parts) -> P.BlockExpr:
        block = self._block_from_parts(parts)
        return P.BlockExpr(span=block.span, block=block,
                           ty=parts.scalar("type"), text=block.text)

    def _block_from_parts(self, parts: _Parts) -> P.Block:
        tail_values = parts.attrs.get("tail")
        return P.Block(span=self.span(parts),
                       stmts=tuple(self.stmt(n) for n in parts.nodes),
                       tail=self.expr(tail_values[0]) if tail_values else None,
                       text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "if")
    def _if(self, parts: _Parts) -> P.If:
        orelse = parts.optional_node(2)
        return P.If(span=self.span(parts),
                    cond=self.expr(parts.node(0, "condition")),
                    then=self.block(parts.node(1, "then block")),
                    orelse=self.expr(orelse) if orelse is not None else None,
                    ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "loop")
    def _loop(self, parts: _Parts) -> P.Loop:
        return P.Loop(span=self.span(parts), body=self.block(parts.node(0, "body")),
                      ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "while", "for")
    def _while(self, parts: _Parts) -> P.Loop:
        return P.Loop(span=self.span(parts),
                      cond=self.expr(parts.node(0, "condition")),
                      body=self.block(parts.node(1, "body")),
                      ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "match")
    def _match(self, parts: _Parts) -> P.Match:
        scrutinee = self.expr(parts.node(0, "scrutinee"))
        arms = tuple(self._arm(_split(n)) for n in parts.nodes[1:])
        return P.Match(span=self.span(parts), scrutinee=scrutinee, arms=arms,
                       ty=parts.scalar("type"), text=parts.scalar("text"))

    def _arm(self, parts: _Parts) -> P.Arm:
        if parts.tag != "arm":
            raise ProgramLoadError(f"Expected (arm ...) in match, got ({parts.tag} ...)")
        guard = parts.attrs.get("guard")
        return P.Arm(span=self.span(parts), pattern=parts.atom(0, "pattern"),
                     body=self.expr(parts.node(0, "body")),
                     guard=self.expr(guard[0]) if guard else None)

    @_register(_EXPR_DISPATCH, "return")
    def _return(self, parts: _Parts) -> P.Return:
        value = parts.optional_node(0)
        return P.Return(span=self.span(parts),
                        value=self.expr(value) if value is not None else None,
                        ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "closure")
    def _closure(self, parts: _Parts) -> P.Closure:
        return P.Closure(span=self.span(parts),
                         body=self.expr(parts.node(0, "body")),
                         params=self.names(parts, "params"),
                         ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "binary")
    def _binary(self, parts: _Parts) -> P.Binary:
        return P.Binary(span=self.span(parts), op=parts.atom(0, "operator"),
                        lhs=self.expr(parts.node(0, "left operand")),
                        rhs=self.expr(parts.node(1, "right operand")),
                        ty=parts.scalar("type"), text=parts.scalar("text"))

    @_register(_EXPR_DISPATCH, "unary")
    def _unary(self, parts: _Parts) -> P.Unary:
        return P.Unary(span=self.span(parts), op=parts.atom(0, "operator"),
                       operand=self.expr(parts.node(0, "operand")),
                       ty=parts.scalar("type"), text=parts.scalar("text"))


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def load_program(text: str, *, filename: str = "<string>") -> P.Program:
    """Load a typed program from its S-expression dump.

    Parameters
    ----------
    text:
        The dump, a single ``(program ...)`` form.
    filename:
        File name used for spans outside any ``(file ...)`` form.

    Raises
    ------
    ProgramLoadError
        If the dump is not valid S-expression syntax or has the wrong shape.
    """
    # Keep nil / t as plain symbols; the dump has no boolean atoms.
    try:
        raw = sexpdata.loads(text, nil=None, true=None, false=None)
    except Exception as e:
        raise ProgramLoadError(f"S-expression syntax error: {e}") from e

    program = _Loader(filename).program(raw)
    logger.debug("loaded program with %d top-level item(s)", len(program.items))
    return program


def load_program_file(path: Union[str, Path]) -> P.Program:
    """Read and load a program dump file."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ProgramLoadError(f"cannot read program dump {p}: {e}") from e
    return load_program(text, filename=str(p))


__all__ = ["load_program", "load_program_file"]
