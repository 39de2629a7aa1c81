"""cargo_aspect/ast.py – abstract syntax of pointcut conditions.

A condition such as ``call _s.find(_c) where _s: &str && _c: char``
parses into one :class:`Pointcut`, which holds a single pattern
declaration (``PDecl``) and an ordered tuple of :class:`Constraint`.

Design invariants
-----------------
* Every node is a frozen dataclass (immutable after construction).
* Child sequences are tuples, never lists.
* ``str(node)`` renders the node back in condition syntax, so a parsed
  pointcut can be logged in the same form the user wrote it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple, Union


# ════════════════════════════════════════════════════════════════════════
# §1  Names
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Var:
    """A pattern-bound variable; its name always starts with ``_``."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Ident:
    """A literal identifier."""

    name: str

    def __str__(self) -> str:
        return self.name


Name = Union[Var, Ident]


def make_name(text: str) -> Name:
    """Classify *text* as a :class:`Var` or an :class:`Ident`."""
    if text.startswith("_"):
        return Var(text)
    return Ident(text)


# ════════════════════════════════════════════════════════════════════════
# §2  Paths
# ════════════════════════════════════════════════════════════════════════


def _is_word(segment: str) -> bool:
    return bool(segment) and (segment[0].isalnum() or segment[0] == "_")


@dataclass(frozen=True)
class Path:
    """A type or item reference written as a run of path tokens.

    Paths are compared with computed type strings by exact equality of
    :attr:`text`; aliases and generic parameter names are not normalised.
    """

    segments: Tuple[str, ...]

    @property
    def text(self) -> str:
        """Canonical rendering: ``Vec<i32>``, ``&mut Foo``, ``Map<K, V>``."""
        out = []
        prev = ""
        for seg in self.segments:
            if _is_word(seg) and _is_word(prev):
                out.append(" ")
            out.append(seg)
            if seg == ",":
                out.append(" ")
            prev = seg
        return "".join(out)

    def __str__(self) -> str:
        return self.text


# ════════════════════════════════════════════════════════════════════════
# §3  Pattern declarations
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ArgSpec:
    """Argument pattern: the ``*`` wildcard or an ordered list of names."""

    wildcard: bool = False
    names: Tuple[Name, ...] = ()

    def accepts(self, count: int) -> bool:
        """True when a call with *count* arguments satisfies the arity rule."""
        return self.wildcard or count == len(self.names)

    def __str__(self) -> str:
        if self.wildcard:
            return "*"
        return ", ".join(str(n) for n in self.names)


WILDCARD_ARGS = ArgSpec(wildcard=True)


@dataclass(frozen=True)
class CallDecl:
    """``call f(args)`` or ``call recv.method(args)``.

    For a plain call *target* is the callee name; for a method call it is
    the receiver.  The presence of *method* distinguishes the two.
    """

    target: Name
    method: Optional[str] = None
    args: ArgSpec = WILDCARD_ARGS

    @property
    def is_method_call(self) -> bool:
        return self.method is not None

    @property
    def callee(self) -> Optional[Name]:
        return None if self.is_method_call else self.target

    @property
    def receiver(self) -> Optional[Name]:
        return self.target if self.is_method_call else None

    def names(self) -> Iterator[Name]:
        """Yield target then argument names, in declaration order."""
        yield self.target
        yield from self.args.names

    def __str__(self) -> str:
        if self.is_method_call:
            return f"call {self.target}.{self.method}({self.args})"
        return f"call {self.target}({self.args})"


@dataclass(frozen=True)
class EnterDecl:
    """``enter path`` – the first executable position of a function."""

    path: Path

    def names(self) -> Iterator[Name]:
        return iter(())

    def __str__(self) -> str:
        return f"enter {self.path}"


@dataclass(frozen=True)
class ExitDecl:
    """``exit path`` – every return point of a function."""

    path: Path

    def names(self) -> Iterator[Name]:
        return iter(())

    def __str__(self) -> str:
        return f"exit {self.path}"


PDecl = Union[CallDecl, EnterDecl, ExitDecl]


# ════════════════════════════════════════════════════════════════════════
# §4  Constraints and the pointcut root
# ════════════════════════════════════════════════════════════════════════


class ConstraintKind(Enum):
    """How a constraint relates a variable to its path."""

    TYPE_EQUALS = ":"
    IMPLEMENTS = "impl"


@dataclass(frozen=True)
class Constraint:
    var: Var
    kind: ConstraintKind
    path: Path

    def __str__(self) -> str:
        if self.kind is ConstraintKind.TYPE_EQUALS:
            return f"{self.var}: {self.path}"
        return f"{self.var} impl {self.path}"


@dataclass(frozen=True)
class Pointcut:
    """One pattern declaration plus its conjunctive constraints."""

    decl: PDecl
    constraints: Tuple[Constraint, ...] = ()

    def constraints_for(self, var: Var) -> Tuple[Constraint, ...]:
        return tuple(c for c in self.constraints if c.var == var)

    def __str__(self) -> str:
        if not self.constraints:
            return str(self.decl)
        where = " && ".join(str(c) for c in self.constraints)
        return f"{self.decl} where {where}"


__all__ = [
    "Var",
    "Ident",
    "Name",
    "make_name",
    "Path",
    "ArgSpec",
    "WILDCARD_ARGS",
    "CallDecl",
    "EnterDecl",
    "ExitDecl",
    "PDecl",
    "ConstraintKind",
    "Constraint",
    "Pointcut",
]
