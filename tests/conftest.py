# tests/conftest.py
"""
Shared builders and sample inputs for the cargo_aspect test-suite.

Programs are built by hand from the frozen node types, so every span in
a test is visible at the call site.
"""

from cargo_aspect.program import (
    Block,
    Call,
    ExprStmt,
    FnDef,
    LetStmt,
    Lit,
    MethodCall,
    PathExpr,
    Program,
    Span,
)

FILE = "src/main.rs"


# ---------------------------------------------------------------------------
#  Node builders
# ---------------------------------------------------------------------------

def sp(lo_line, lo_col, hi_line, hi_col, file=FILE):
    return Span.of(file, lo_line, lo_col, hi_line, hi_col)


def ident(name, span, ty=None):
    """A local binding used as a value, with its source text."""
    return PathExpr(span, name, ty=ty, text=name)


def lit(value, span, ty="i32"):
    return Lit(span, str(value), ty=ty, text=str(value))


def call(name, span, *args, ty=None):
    return Call(span, PathExpr(span, name), tuple(args), ty=ty)


def method(receiver, name, span, *args, ty=None):
    return MethodCall(span, receiver, name, tuple(args), ty=ty)


def stmt(expr, span=None, text=None):
    return ExprStmt(span or expr.span, expr, text=text)


def let(pattern, span, init=None, text=None):
    return LetStmt(span, pattern, init, text=text)


def block(span, *stmts, tail=None, text=None):
    return Block(span, tuple(stmts), tail, text=text)


def fn(name, span, body, path=None):
    return FnDef(span, name, path or f"crate::{name}", body)


def main_program(*stmts, tail=None):
    """``fn main() { <stmts> <tail> }`` spanning lines 1-20."""
    body = block(sp(1, 11, 20, 2), *stmts, tail=tail)
    return Program((fn("main", sp(1, 1, 20, 2), body),))


# ---------------------------------------------------------------------------
#  Sample programs
# ---------------------------------------------------------------------------

def vec_iter_program():
    """Two ``.iter()`` calls whose receivers differ only in element type.

    ::

        let v = vec![1, 2, 3];          // line 2
        let it = v.iter();              // line 3
        let s = vec![String::new()];    // line 4
        let js = s.iter();              // line 5
    """
    v = ident("v", sp(3, 14, 3, 15), ty="Vec<i32>")
    s = ident("s", sp(5, 14, 5, 15), ty="Vec<String>")
    return main_program(
        let("v", sp(2, 5, 2, 27), lit("vec![1, 2, 3]", sp(2, 13, 2, 26), ty="Vec<i32>"),
            text="let v = vec![1, 2, 3];"),
        let("it", sp(3, 5, 3, 23),
            method(v, "iter", sp(3, 14, 3, 22), ty="std::slice::Iter<i32>"),
            text="let it = v.iter();"),
        let("s", sp(4, 5, 4, 33), lit("vec![String::new()]", sp(4, 13, 4, 32),
                                      ty="Vec<String>"),
            text="let s = vec![String::new()];"),
        let("js", sp(5, 5, 5, 23),
            method(s, "iter", sp(5, 14, 5, 22), ty="std::slice::Iter<String>"),
            text="let js = s.iter();"),
    )


def arity_program():
    """``f();`` ``f(1);`` ``f(1, 2);`` on lines 2, 3 and 4."""
    return main_program(
        stmt(call("f", sp(2, 5, 2, 8)), sp(2, 5, 2, 9), text="f();"),
        stmt(call("f", sp(3, 5, 3, 9), lit(1, sp(3, 7, 3, 8))),
             sp(3, 5, 3, 10), text="f(1);"),
        stmt(call("f", sp(4, 5, 4, 12), lit(1, sp(4, 7, 4, 8)), lit(2, sp(4, 10, 4, 11))),
             sp(4, 5, 4, 13), text="f(1, 2);"),
    )


# ---------------------------------------------------------------------------
#  Conditions
# ---------------------------------------------------------------------------

VEC_I32_ITER = "call _x.iter() where _x: Vec<i32>"
STR_FIND = "call _s.find(_c) where _s: &str && _c: char"
SPAWN = "call spawn()"
ENTER_MAIN = "enter crate::main"
EXIT_MAIN = "exit crate::main"


# ---------------------------------------------------------------------------
#  Dumps and config files
# ---------------------------------------------------------------------------

VEC_ITER_DUMP = '''\
(program
  (file "src/main.rs"
    (fn main "crate::main" (span 1 1 6 2)
      (block (span 1 11 6 2)
        (let "v" (span 2 5 2 27) (text "let v = vec![1, 2, 3];")
          (macro (span 2 13 2 26) (type "Vec<i32>")))
        (let "it" (span 3 5 3 23) (text "let it = v.iter();")
          (method-call iter (span 3 14 3 22)
            (path v (span 3 14 3 15) (type "Vec<i32>") (text "v"))
            (args)
            (type "std::slice::Iter<i32>")))
        (let "s" (span 4 5 4 33) (text "let s = vec![String::new()];")
          (macro (span 4 13 4 32) (type "Vec<String>")))
        (let "js" (span 5 5 5 23) (text "let js = s.iter();")
          (method-call iter (span 5 14 5 22)
            (path s (span 5 14 5 15) (type "Vec<String>") (text "s"))
            (args)))))))
'''

ASPECT_TOML = '''\
name = "trace"

[[pointcuts]]
condition = "call _x.iter() where _x: Vec<i32>"
advice = "println!(\\"iter on {:?}\\", _x);"

[[pointcuts]]
condition = "enter crate::main"
advice = "println!(\\"start\\");"
'''
