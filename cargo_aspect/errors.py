# cargo_aspect/errors.py
"""
Error types for the pointcut pipeline.

Hierarchy
─────────
┌─────────────────────────────────────────────────────────────────────┐
│  AspectError (base)                                                 │
│  ├── PointcutError        - a condition string was rejected         │
│  │   ├── LexError         - malformed token                         │
│  │   ├── ParseError       - grammar violation                       │
│  │   └── ValidationError  - variable cross-reference failures       │
│  │       ├── UnknownVariable                                        │
│  │       ├── UnconstrainedVariable                                  │
│  │       └── UnsupportedConstraintKind                              │
│  ├── MatchCancelled       - cooperative cancellation was requested  │
│  ├── ProgramLoadError     - a typed-program dump could not be read  │
│  ├── RecordFormatError    - a match record stream is malformed      │
│  └── ConfigError          - Aspect.toml is missing or malformed     │
└─────────────────────────────────────────────────────────────────────┘

Error codes follow the pattern ``ASPECT-NNNN``:

  - 0001-0999: Lexical errors
  - 1000-1999: Syntax errors
  - 3000-3999: Semantic (binding) errors
  - 5000-5999: Matching diagnostics
  - 8000-8999: I/O and configuration errors
  - 9000-9999: Internal errors

A ``PointcutError`` is terminal for one pointcut only.  Matching problems
on individual candidates are never raised; they are collected as
``MatchWarning`` values by the matcher.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Any, Dict, Optional


@unique
class ErrorPhase(Enum):
    """Pipeline phase where the error occurred."""

    LEXICAL = "lexical"
    SYNTAX = "syntax"
    SEMANTIC = "semantic"
    MATCH = "match"
    IO = "io"
    INTERNAL = "internal"


class ErrorCode:
    """Structured error code ``ASPECT-NNNN``."""

    __slots__ = ("number", "phase", "slug")

    PREFIX = "ASPECT"

    def __init__(self, number: int, phase: ErrorPhase, slug: str) -> None:
        self.number = number
        self.phase = phase
        self.slug = slug

    @property
    def code(self) -> str:
        return f"{self.PREFIX}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.slug!r})"

    def __hash__(self) -> int:
        return hash(self.number)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ErrorCodes:
    """Predefined error codes."""

    # LEXICAL (0001-0999)
    INVALID_CHARACTER = ErrorCode(1, ErrorPhase.LEXICAL, "invalid-character")

    # SYNTAX (1000-1999)
    UNEXPECTED_TOKEN = ErrorCode(1000, ErrorPhase.SYNTAX, "unexpected-token")
    UNEXPECTED_EOF = ErrorCode(1001, ErrorPhase.SYNTAX, "unexpected-eof")
    TRAILING_INPUT = ErrorCode(1002, ErrorPhase.SYNTAX, "trailing-input")

    # SEMANTIC (3000-3999)
    UNKNOWN_VARIABLE = ErrorCode(3000, ErrorPhase.SEMANTIC, "unknown-variable")
    UNCONSTRAINED_VARIABLE = ErrorCode(
        3001, ErrorPhase.SEMANTIC, "unconstrained-variable"
    )
    UNSUPPORTED_CONSTRAINT = ErrorCode(
        3002, ErrorPhase.SEMANTIC, "unsupported-constraint-kind"
    )

    # MATCH (5000-5999)
    UNRESOLVED_TYPE = ErrorCode(5000, ErrorPhase.MATCH, "unresolved-type")
    MALFORMED_NODE = ErrorCode(5001, ErrorPhase.MATCH, "malformed-node")
    NO_INSERTION_POINT = ErrorCode(5002, ErrorPhase.MATCH, "no-insertion-point")
    CANCELLED = ErrorCode(5003, ErrorPhase.MATCH, "cancelled")

    # IO (8000-8999)
    PROGRAM_LOAD = ErrorCode(8000, ErrorPhase.IO, "program-load")
    RECORD_FORMAT = ErrorCode(8001, ErrorPhase.IO, "record-format")
    CONFIG = ErrorCode(8002, ErrorPhase.IO, "config")

    # INTERNAL (9000-9999)
    INTERNAL = ErrorCode(9000, ErrorPhase.INTERNAL, "internal")


class AspectError(Exception):
    """Base exception for everything raised by cargo_aspect."""

    code: ErrorCode = ErrorCodes.INTERNAL

    def __init__(self, message: str, *, code: Optional[ErrorCode] = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code.code,
            "kind": type(self).__name__,
            "message": self.message,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# POINTCUT ERRORS
# ═══════════════════════════════════════════════════════════════════════════════

class PointcutError(AspectError):
    """A condition string was rejected by the lexer, parser or validator.

    When both *condition* and *position* are known the message carries a
    caret line pointing at the offending column::

        Expected '(' but found 'where'
          call spawn where
                     ^
    """

    def __init__(
        self,
        message: str,
        *,
        condition: str = "",
        position: int = -1,
        code: Optional[ErrorCode] = None,
    ) -> None:
        self.condition = condition
        self.position = position
        self.detail = message
        if position >= 0 and condition:
            pointer = " " * position + "^"
            message = f"{message}\n  {condition}\n  {pointer}"
        super().__init__(message, code=code)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["message"] = self.detail
        if self.position >= 0:
            result["position"] = self.position
        return result


class LexError(PointcutError):
    """A character that can neither begin nor continue a token."""

    code = ErrorCodes.INVALID_CHARACTER

    def __init__(self, position: int, unexpected_char: str, condition: str = "") -> None:
        self.unexpected_char = unexpected_char
        super().__init__(
            f"Unexpected character {unexpected_char!r} at position {position}",
            condition=condition,
            position=position,
        )


class ParseError(PointcutError):
    """The token sequence does not follow the condition grammar."""

    code = ErrorCodes.UNEXPECTED_TOKEN

    def __init__(
        self,
        expected: str,
        found: str,
        position: int,
        condition: str = "",
        *,
        code: Optional[ErrorCode] = None,
    ) -> None:
        self.expected = expected
        self.found = found
        super().__init__(
            f"Expected {expected} but found {found}",
            condition=condition,
            position=position,
            code=code,
        )


class ValidationError(PointcutError):
    """Base for variable cross-reference failures."""

    def __init__(self, var: str, message: str) -> None:
        self.var = var
        super().__init__(message)


class UnknownVariable(ValidationError):
    """A constraint names a variable the pattern never declares."""

    code = ErrorCodes.UNKNOWN_VARIABLE

    def __init__(self, var: str) -> None:
        super().__init__(var, f"Constraint refers to unknown variable {var!r}")


class UnconstrainedVariable(ValidationError):
    """A pattern variable is never referenced by a constraint."""

    code = ErrorCodes.UNCONSTRAINED_VARIABLE

    def __init__(self, var: str) -> None:
        super().__init__(
            var,
            f"Pattern variable {var!r} is not referenced by any constraint",
        )


class UnsupportedConstraintKind(ValidationError):
    """A constraint kind the matcher cannot evaluate (``impl Trait``)."""

    code = ErrorCodes.UNSUPPORTED_CONSTRAINT

    def __init__(self, var: str, kind: str) -> None:
        self.kind = kind
        super().__init__(
            var,
            f"Unsupported constraint kind {kind!r} on variable {var!r}",
        )


# ═══════════════════════════════════════════════════════════════════════════════
# RUNTIME / IO ERRORS
# ═══════════════════════════════════════════════════════════════════════════════

class MatchCancelled(AspectError):
    """Raised when a cancellation token fires between top-level items."""

    code = ErrorCodes.CANCELLED


class ProgramLoadError(AspectError):
    """A typed-program dump could not be turned into a program tree."""

    code = ErrorCodes.PROGRAM_LOAD


class RecordFormatError(AspectError):
    """A ``Found { ... }`` record stream could not be parsed."""

    code = ErrorCodes.RECORD_FORMAT


class ConfigError(AspectError):
    """``Aspect.toml`` is missing, unreadable, or has the wrong shape."""

    code = ErrorCodes.CONFIG


__all__ = [
    "ErrorPhase",
    "ErrorCode",
    "ErrorCodes",
    "AspectError",
    "PointcutError",
    "LexError",
    "ParseError",
    "ValidationError",
    "UnknownVariable",
    "UnconstrainedVariable",
    "UnsupportedConstraintKind",
    "MatchCancelled",
    "ProgramLoadError",
    "RecordFormatError",
    "ConfigError",
]
