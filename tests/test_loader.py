# tests/test_loader.py
"""
Tests for the S-expression program dump loader.
"""

import textwrap

import pytest

from cargo_aspect.errors import ErrorCodes, ProgramLoadError
from cargo_aspect.loader import load_program, load_program_file
from cargo_aspect.matcher import find_sites
from cargo_aspect.parser import parse_condition
from cargo_aspect.program import (
    Block,
    Call,
    Closure,
    FnDef,
    If,
    ImplDef,
    ItemStmt,
    LetStmt,
    Loop,
    Match,
    MethodCall,
    ModDef,
    Opaque,
    PathExpr,
    Return,
    Span,
    TypedProgram,
)
from tests.conftest import VEC_I32_ITER, VEC_ITER_DUMP, sp, vec_iter_program


def load(body):
    return load_program(textwrap.dedent(body))


def main_body(stmts):
    """Wrap statement forms in ``fn main`` inside ``src/main.rs``."""
    return load(f'''\
        (program
          (file "src/main.rs"
            (fn main "crate::main" (span 1 1 20 2)
              (block (span 1 11 20 2)
                {stmts}))))
    ''').items[0].body


class TestItems:

    def test_vec_iter_dump_loads(self):
        program = load_program(VEC_ITER_DUMP)
        assert isinstance(program, TypedProgram)
        main = program.items[0]
        assert isinstance(main, FnDef)
        assert main.name == "main"
        assert main.path == "crate::main"
        assert main.span == sp(1, 1, 6, 2)
        assert [s.pattern for s in main.body.stmts] == ["v", "it", "s", "js"]

    def test_dump_matches_like_handbuilt_program(self):
        pc = parse_condition(VEC_I32_ITER)
        loaded = find_sites(load_program(VEC_ITER_DUMP), pc)
        built = find_sites(vec_iter_program(), pc)
        assert [s.span for s in loaded] == [s.span for s in built]
        assert loaded.sites[0].src == "let it = v.iter();"

    def test_modules_and_impls(self):
        program = load('''\
            (program
              (file "src/lib.rs"
                (mod net (span 1 1 9 2)
                  (impl "Server" (span 2 5 8 6)
                    (fn run "crate::net::Server::run" (span 3 9 7 10) (params self)
                      (block (span 3 25 7 10)))))))
        ''')
        mod = program.items[0]
        assert isinstance(mod, ModDef)
        impl = mod.items[0]
        assert isinstance(impl, ImplDef)
        assert impl.self_ty == "Server"
        run = impl.items[0]
        assert run.params == ("self",)
        assert run.span.file == "src/lib.rs"
        assert [f.path for f in program.functions()] == ["crate::net::Server::run"]

    def test_fn_path_defaults_to_name(self):
        program = load('(program (fn main (span 1 1 1 13)))')
        assert program.items[0].path == "main"
        assert program.items[0].body is None

    def test_default_filename(self):
        program = load_program('(program (fn main (span 1 1 1 13)))', filename="x.rs")
        assert program.items[0].span.file == "x.rs"

    def test_several_files(self):
        program = load('''\
            (program
              (file "src/a.rs" (fn a "crate::a" (span 1 1 1 9)))
              (file "src/b.rs" (fn b "crate::b" (span 1 1 1 9))))
        ''')
        assert [i.span.file for i in program.items] == ["src/a.rs", "src/b.rs"]

    def test_span_with_explicit_file(self):
        program = load('(program (fn m (span "gen.rs" 1 1 2 2)))')
        assert program.items[0].span == Span.of("gen.rs", 1, 1, 2, 2)


class TestStatementsAndExpressions:

    def test_let_without_init(self):
        body = main_body('(let "x" (span 2 5 2 11))')
        assert body.stmts[0] == LetStmt(sp(2, 5, 2, 11), "x")

    def test_call_args(self):
        body = main_body('''\
            (expr (span 2 5 2 13)
              (call (span 2 5 2 12) (path f (span 2 5 2 6))
                (args (lit 1 (span 2 7 2 8) (type i32))
                      (lit 2 (span 2 10 2 11) (type i32)))))''')
        expr = body.stmts[0].expr
        assert isinstance(expr, Call)
        assert expr.callee_name == "f"
        assert [a.value for a in expr.args] == ["1", "2"]
        assert [a.ty for a in expr.args] == ["i32", "i32"]

    def test_method_call(self):
        body = main_body('''\
            (expr (span 2 5 2 14)
              (method-call push (span 2 5 2 13)
                (path v (span 2 5 2 6) (type "Vec<u8>"))
                (args (lit 1 (span 2 11 2 12)))))''')
        expr = body.stmts[0].expr
        assert isinstance(expr, MethodCall)
        assert expr.method == "push"
        assert expr.receiver.ty == "Vec<u8>"
        assert len(expr.args) == 1

    def test_control_flow(self):
        body = main_body('''\
            (expr (span 2 5 4 6)
              (if (span 2 5 4 6) (path c (span 2 8 2 9) (type bool))
                (block (span 2 10 3 6)
                  (expr (span 3 9 3 18) (return (span 3 9 3 17) (lit 1 (span 3 16 3 17)))))
                (block (span 3 12 4 6))))
            (expr (span 5 5 5 20)
              (while (span 5 5 5 20) (path go (span 5 11 5 13)) (block (span 5 14 5 20))))
            (expr (span 6 5 9 6)
              (match (span 6 5 9 6) (path x (span 6 11 6 12))
                (arm "Some(y)" (span 7 9 7 20) (guard (path ok (span 7 17 7 19)))
                  (path y (span 7 23 7 24)))
                (arm "None" (span 8 9 8 18) (lit 0 (span 8 17 8 18)))))
            (tail (closure (span 10 5 10 15) (params a) (path a (span 10 9 10 10))))''')
        if_expr, while_expr, match_expr = (s.expr for s in body.stmts)
        assert isinstance(if_expr, If)
        assert isinstance(if_expr.then.stmts[0].expr, Return)
        assert if_expr.orelse is not None
        assert isinstance(while_expr, Loop)
        assert while_expr.cond.name == "go"
        assert isinstance(match_expr, Match)
        assert [a.pattern for a in match_expr.arms] == ["Some(y)", "None"]
        assert match_expr.arms[0].guard.name == "ok"
        assert match_expr.arms[1].guard is None
        assert isinstance(body.tail, Closure)
        assert body.tail.params == ("a",)

    def test_nested_fn_becomes_item_statement(self):
        body = main_body('(fn inner "crate::main::inner" (span 2 5 2 20) (block (span 2 16 2 20)))')
        assert isinstance(body.stmts[0], ItemStmt)
        assert body.stmts[0].item.path == "crate::main::inner"

    def test_unknown_expression_is_opaque(self):
        body = main_body('''\
            (expr (span 2 5 2 15)
              (field (span 2 5 2 14) (path p (span 2 5 2 6)) (text "p.x")))''')
        expr = body.stmts[0].expr
        assert isinstance(expr, Opaque)
        assert expr.tag == "field"
        assert expr.text == "p.x"
        assert isinstance(expr.operands[0], PathExpr)

    def test_block_expression(self):
        body = main_body('''\
            (let "r" (span 2 5 2 20)
              (block (span 2 13 2 19) (tail (lit 1 (span 2 15 2 16)))))''')
        init = body.stmts[0].init
        assert isinstance(init.block, Block)
        assert init.span == sp(2, 13, 2, 19)


class TestErrors:

    @pytest.mark.parametrize("text", [
        "(program",
        "(module)",
        "(program (fn main))",
        "(program (fn main (span 1 2 3)))",
        "(program (fn main (span a b c d)))",
        "(program (struct S (span 1 1 1 9)))",
        '(program (fn main (span 1 1 2 2) (block (span 1 5 2 2) (bogus (span 1 6 1 7)))))',
        '(program (fn main (span 1 1 2 2) (lit 1 (span 1 5 2 2))))',
    ])
    def test_malformed_dump(self, text):
        with pytest.raises(ProgramLoadError) as exc:
            load_program(text)
        assert exc.value.code == ErrorCodes.PROGRAM_LOAD

    def test_missing_file(self, tmp_path):
        with pytest.raises(ProgramLoadError):
            load_program_file(tmp_path / "absent.sexp")

    def test_load_file(self, tmp_path):
        dump = tmp_path / "typed.sexp"
        dump.write_text(VEC_ITER_DUMP, encoding="utf-8")
        program = load_program_file(dump)
        assert len(program.items) == 1
