"""cargo_aspect/parser.py – condition string → :class:`~cargo_aspect.ast.Pointcut`.

Design principles
-----------------
* **Recursive descent, one token of lookahead.**  Every alternative is
  disambiguated by its first token (a keyword or a punctuation mark).
* **Fail-fast with position** – ``ParseError`` carries the expected item,
  the token actually found, and its character offset in the condition.
* **No implicit coercions** – anything the grammar does not allow is an
  error, never silently skipped.

Public API
----------
``parse_condition(text: str) -> Pointcut``
    Tokenise and parse a complete condition string.

``parse_tokens(tokens, text="") -> Pointcut``
    Parse an already tokenised condition.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from . import ast as A
from .errors import ErrorCodes, ParseError
from .lexer import Tok, TokType, tokenise

logger = logging.getLogger(__name__)

# Keyword tokens that are ordinary identifiers once inside a path.
_PATH_KEYWORDS = frozenset({TokType.ENTER, TokType.EXIT, TokType.CALL})

_PATH_PUNCT = frozenset({TokType.LT, TokType.GT, TokType.PATH_SEP, TokType.AMP})


class _Parser:
    """Recursive descent parser for pointcut conditions.

    Grammar::

        condition  → pdecl ('where' constraint ('&&' constraint)*)? EOF
        pdecl      → 'call' name '(' args ')'
                   | 'call' name '.' NAME '(' args ')'
                   | 'enter' path
                   | 'exit' path
        constraint → VAR ':' path | VAR 'impl' path
        args       → '*' | name (',' name)* | ε
        path       → (NAME | '<' | '>' | '::' | '&' | ',' within <…>)+
        name       → VAR | NAME
    """

    def __init__(self, tokens: Sequence[Tok], text: str = ""):
        self._tokens = tokens
        self._text = text
        self._pos = 0

    def _peek(self) -> Tok:
        return self._tokens[self._pos]

    def _advance(self) -> Tok:
        tok = self._tokens[self._pos]
        if tok.type is not TokType.EOF:
            self._pos += 1
        return tok

    def _at(self, *types: TokType) -> bool:
        return self._peek().type in types

    def _error(self, expected: str, tok: Optional[Tok] = None) -> ParseError:
        tok = tok or self._peek()
        code = ErrorCodes.UNEXPECTED_EOF if tok.type is TokType.EOF else None
        return ParseError(expected, tok.describe(), tok.pos, self._text, code=code)

    def _expect(self, tt: TokType, expected: Optional[str] = None) -> Tok:
        if not self._at(tt):
            raise self._error(expected or f"{tt.value!r}")
        return self._advance()

    # ---- top level ----

    def parse(self) -> A.Pointcut:
        decl = self._parse_pdecl()
        constraints: List[A.Constraint] = []
        if self._at(TokType.WHERE):
            self._advance()
            constraints.append(self._parse_constraint())
            while self._at(TokType.AND):
                self._advance()
                constraints.append(self._parse_constraint())
        if not self._at(TokType.EOF):
            tok = self._peek()
            expected = "'&&' or end of input" if constraints else "'where' or end of input"
            raise ParseError(expected, tok.describe(), tok.pos, self._text,
                             code=ErrorCodes.TRAILING_INPUT)
        return A.Pointcut(decl=decl, constraints=tuple(constraints))

    def _parse_pdecl(self) -> A.PDecl:
        if self._at(TokType.CALL):
            return self._parse_call()
        if self._at(TokType.ENTER):
            self._advance()
            return A.EnterDecl(path=self._parse_path())
        if self._at(TokType.EXIT):
            self._advance()
            return A.ExitDecl(path=self._parse_path())
        raise self._error("'call', 'enter' or 'exit'")

    def _parse_call(self) -> A.CallDecl:
        """'call' name ('.' NAME)? '(' args ')'"""
        self._expect(TokType.CALL)
        target = self._parse_name()
        method: Optional[str] = None
        if self._at(TokType.DOT):
            self._advance()
            method_tok = self._expect(TokType.NAME, "a method name")
            if method_tok.is_var:
                raise ParseError("a literal method name", method_tok.describe(),
                                 method_tok.pos, self._text)
            method = method_tok.value
        self._expect(TokType.LPAREN)
        args = self._parse_args()
        self._expect(TokType.RPAREN)
        return A.CallDecl(target=target, method=method, args=args)

    def _parse_args(self) -> A.ArgSpec:
        if self._at(TokType.STAR):
            self._advance()
            return A.WILDCARD_ARGS
        if self._at(TokType.RPAREN):
            return A.ArgSpec()
        names = [self._parse_name()]
        while self._at(TokType.COMMA):
            self._advance()
            names.append(self._parse_name())
        return A.ArgSpec(names=tuple(names))

    def _parse_name(self) -> A.Name:
        tok = self._expect(TokType.NAME, "a name")
        return A.make_name(tok.value)

    def _parse_constraint(self) -> A.Constraint:
        """VAR (':' | 'impl') path"""
        tok = self._peek()
        if not tok.is_var:
            raise self._error("a pattern variable ('_name')")
        self._advance()
        var = A.Var(tok.value)
        if self._at(TokType.COLON):
            self._advance()
            kind = A.ConstraintKind.TYPE_EQUALS
        elif self._at(TokType.IMPL):
            self._advance()
            kind = A.ConstraintKind.IMPLEMENTS
        else:
            raise self._error("':' or 'impl'")
        return A.Constraint(var=var, kind=kind, path=self._parse_path())

    def _parse_path(self) -> A.Path:
        segments: List[str] = []
        depth = 0
        while True:
            tok = self._peek()
            if tok.type is TokType.NAME or tok.type in _PATH_KEYWORDS:
                segments.append(tok.value)
            elif tok.type in _PATH_PUNCT:
                if tok.type is TokType.LT:
                    depth += 1
                elif tok.type is TokType.GT:
                    depth -= 1
                segments.append(tok.value)
            elif tok.type is TokType.COMMA and depth > 0:
                segments.append(tok.value)
            else:
                break
            self._advance()
        if not segments:
            raise self._error("a path")
        return A.Path(tuple(segments))


def parse_tokens(tokens: Sequence[Tok], text: str = "") -> A.Pointcut:
    """Parse a token list produced by :func:`~cargo_aspect.lexer.tokenise`."""
    return _Parser(tokens, text).parse()


def parse_condition(text: str) -> A.Pointcut:
    """Parse a pointcut condition string.

    >>> str(parse_condition("call _x.iter() where _x : Vec<i32>"))
    'call _x.iter() where _x: Vec<i32>'

    Raises
    ------
    LexError
        If the text contains a character outside the token set.
    ParseError
        If the tokens do not follow the grammar.
    """
    pointcut = parse_tokens(tokenise(text), text)
    logger.debug("parsed condition %r as %s", text, pointcut)
    return pointcut


__all__ = ["parse_condition", "parse_tokens"]
