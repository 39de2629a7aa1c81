"""
lexer.py — tokeniser for pointcut condition strings
===================================================

Condition strings are short, so the whole input is tokenised eagerly into
a list that ends with an ``EOF`` token.  Calling :func:`tokenise` again on
the same text yields an equal, independent list.

Usage::

    from cargo_aspect.lexer import tokenise

    toks = tokenise("call _x.iter() where _x: Vec<i32>")
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from .errors import LexError

logger = logging.getLogger(__name__)


class TokType(enum.Enum):
    """Lexical token types for pointcut conditions."""
    DOT = "."
    LPAREN = "("
    RPAREN = ")"
    STAR = "*"
    LT = "<"
    GT = ">"
    COLON = ":"
    PATH_SEP = "::"
    AND = "&&"
    AMP = "&"               # reference marker inside a type path
    COMMA = ","
    IMPL = "impl"
    ENTER = "enter"
    EXIT = "exit"
    CALL = "call"
    WHERE = "where"
    NAME = "NAME"           # identifier or pattern variable
    EOF = "EOF"


@dataclass(frozen=True)
class Tok:
    """A lexical token."""
    type: TokType
    value: Any
    pos: int

    @property
    def is_var(self) -> bool:
        return self.type is TokType.NAME and self.value.startswith("_")

    def describe(self) -> str:
        """Human-readable form used in parse errors."""
        if self.type is TokType.EOF:
            return "end of input"
        if self.type is TokType.NAME:
            return f"name {self.value!r}"
        return f"{self.value!r}"

    def __repr__(self):
        return f"Tok({self.type.name}, {self.value!r}, @{self.pos})"


_KEYWORDS: Dict[str, TokType] = {
    "impl": TokType.IMPL,
    "enter": TokType.ENTER,
    "exit": TokType.EXIT,
    "call": TokType.CALL,
    "where": TokType.WHERE,
}

# Two-character operators (checked before single-char: longest match)
_TWO_CHAR_OPS: Dict[str, TokType] = {
    "::": TokType.PATH_SEP,
    "&&": TokType.AND,
}

_ONE_CHAR_OPS: Dict[str, TokType] = {
    ".": TokType.DOT,
    "(": TokType.LPAREN,
    ")": TokType.RPAREN,
    "*": TokType.STAR,
    "<": TokType.LT,
    ">": TokType.GT,
    ":": TokType.COLON,
    "&": TokType.AMP,
    ",": TokType.COMMA,
}


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def tokenise(condition: str) -> List[Tok]:
    """Tokenise a pointcut condition string.

    Parameters
    ----------
    condition : str
        The raw condition text, e.g. ``"call spawn()"``.

    Returns
    -------
    list of Tok
        Token list, ending with an EOF token.

    Raises
    ------
    LexError
        On a character that cannot begin or continue a token.
    """
    tokens: List[Tok] = []
    i = 0
    n = len(condition)

    while i < n:
        ch = condition[i]

        if ch.isspace():
            i += 1
            continue

        if i + 1 < n:
            two = condition[i:i + 2]
            if two in _TWO_CHAR_OPS:
                tokens.append(Tok(_TWO_CHAR_OPS[two], two, i))
                i += 2
                continue

        if ch in _ONE_CHAR_OPS:
            tokens.append(Tok(_ONE_CHAR_OPS[ch], ch, i))
            i += 1
            continue

        if _is_ident_char(ch):
            start = i
            while i < n and _is_ident_char(condition[i]):
                i += 1
            text = condition[start:i]
            tokens.append(Tok(_KEYWORDS.get(text, TokType.NAME), text, start))
            continue

        raise LexError(i, ch, condition)

    tokens.append(Tok(TokType.EOF, None, n))
    logger.debug("tokenised %r into %d tokens", condition, len(tokens) - 1)
    return tokens


__all__ = ["TokType", "Tok", "tokenise"]
