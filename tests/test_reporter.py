# tests/test_reporter.py
"""
Tests for the location reporter: MatchSites → records, text and JSON.
"""

import io
import json
import textwrap

import pytest

from cargo_aspect.errors import ErrorCodes, RecordFormatError
from cargo_aspect.matcher import Binding, MatchSite, SiteKind, find_sites
from cargo_aspect.parser import parse_condition
from cargo_aspect.program import Pos, Span
from cargo_aspect.reporter import (
    OUTPUT_FILE_NAME,
    LocationReporter,
    MatchRecord,
    find_record_files,
    group_by_file,
    read_file,
    read_text,
)
from tests.conftest import (
    ENTER_MAIN,
    VEC_I32_ITER,
    call,
    lit,
    main_program,
    sp,
    stmt,
    vec_iter_program,
)


@pytest.fixture
def reporter():
    return LocationReporter()


def iter_sites():
    return find_sites(vec_iter_program(), parse_condition(VEC_I32_ITER)).sites


class TestRecords:

    def test_record_fields(self, reporter):
        [record] = reporter.records(iter_sites())
        assert record == MatchRecord(
            file="src/main.rs",
            start=Pos(3, 5),
            end=Pos(3, 23),
            kind=SiteKind.METHOD_CALL,
            bindings=(("_x", "v"),),
            src="let it = v.iter();",
        )
        assert record.span == sp(3, 5, 3, 23)
        assert record.args == {"_x": "v"}

    def test_order_preserved(self, reporter):
        sites = [
            MatchSite(sp(5, 1, 5, 9), SiteKind.CALL),
            MatchSite(sp(1, 1, 1, 9), SiteKind.CALL),
        ]
        assert [r.start.line for r in reporter.records(sites)] == [5, 1]

    def test_binding_without_text_uses_span(self, reporter):
        site = MatchSite(sp(2, 1, 2, 9), SiteKind.CALL,
                         (("_f", Binding(sp(2, 1, 2, 4))),))
        [record] = reporter.records([site])
        assert record.args == {"_f": "src/main.rs:2:1: 2:4"}

    def test_enter_record_has_empty_src(self, reporter):
        sites = find_sites(vec_iter_program(), parse_condition(ENTER_MAIN)).sites
        [record] = reporter.records(sites)
        assert record.kind is SiteKind.ENTER
        assert record.src == ""
        assert record.start == record.end


class TestTextFormat:

    def test_found_block(self, reporter):
        out = io.StringIO()
        assert reporter.write_text(iter_sites(), out) == 1
        assert out.getvalue() == textwrap.dedent('''\
            Found {
                file: "src/main.rs",
                src: "let it = v.iter();",
                span: src/main.rs:3:5: 3:23,
                kind: MethodCall,
                args: {
                    "_x": "v",
                },
            }
        ''')

    def test_read_back(self, reporter):
        text = reporter.format_text(iter_sites())
        assert read_text(text) == reporter.records(iter_sites())

    def test_quotes_and_newlines_survive(self, reporter):
        site = MatchSite(sp(2, 1, 3, 2), SiteKind.CALL,
                         (("_s", Binding(sp(2, 5, 2, 12), text='"a\\b"')),),
                         src='log("x");\nlog("y");')
        [record] = read_text(reporter.format_text([site]))
        assert record.src == 'log("x");\nlog("y");'
        assert record.args == {"_s": '"a\\b"'}

    def test_several_records(self, reporter):
        sites = [
            MatchSite(sp(1, 1, 1, 5), SiteKind.ENTER),
            MatchSite(Span.of("src/lib.rs", 4, 1, 4, 9), SiteKind.EXIT, src="x"),
        ]
        records = read_text(reporter.format_text(sites))
        assert [r.kind for r in records] == [SiteKind.ENTER, SiteKind.EXIT]
        assert [r.file for r in records] == ["src/main.rs", "src/lib.rs"]

    def test_path_with_spaces(self, reporter):
        span = Span.of("my crate/src/main.rs", 2, 5, 2, 14)
        site = MatchSite(span, SiteKind.CALL, src="spawn();")
        [record] = read_text(reporter.format_text([site]))
        assert record.file == "my crate/src/main.rs"
        assert record.span == span
        assert record.src == "spawn();"

    def test_repeated_variable_is_one_arg(self, reporter):
        program = main_program(
            stmt(call("f", sp(2, 5, 2, 12), lit(1, sp(2, 7, 2, 8)), lit(2, sp(2, 10, 2, 11))),
                 sp(2, 5, 2, 13)),
        )
        result = find_sites(program, parse_condition("call f(_a, _a) where _a: i32"))
        [record] = read_text(reporter.format_text(result.sites))
        assert record.bindings == (("_a", "1"),)

    def test_empty_stream(self):
        assert read_text("") == []
        assert read_text("\n  \n") == []


class TestReadErrors:

    @pytest.mark.parametrize("text", [
        "Found {",
        'Found { file: "a.rs", }',
        'Found { file: "a.rs", src: "", span: a.rs:1:1: 1:2, kind: Around, args: {}, }',
        'Found { file: "a.rs", src: "", span: a.rs:1:x: 1:2, kind: Call, args: {}, }',
        'garbage',
    ])
    def test_malformed(self, text):
        with pytest.raises(RecordFormatError) as exc:
            read_text(text)
        assert exc.value.code == ErrorCodes.RECORD_FORMAT

    def test_span_file_must_agree(self):
        text = 'Found { file: "a.rs", src: "", span: b.rs:1:1: 1:2, kind: Call, args: {}, }'
        with pytest.raises(RecordFormatError):
            read_text(text)

    def test_bad_escape(self):
        text = 'Found { file: "a.rs", src: "\\q", span: a.rs:1:1: 1:2, kind: Call, args: {}, }'
        with pytest.raises(RecordFormatError):
            read_text(text)


class TestJson:

    def test_to_json(self, reporter):
        data = json.loads(reporter.to_json(iter_sites()))
        assert data == [{
            "file": "src/main.rs",
            "start": {"line": 3, "col": 5},
            "end": {"line": 3, "col": 23},
            "kind": "MethodCall",
            "args": {"_x": "v"},
            "src": "let it = v.iter();",
        }]

    def test_no_sites(self, reporter):
        assert json.loads(reporter.to_json([])) == []


class TestGrouping:

    def test_group_by_file_keeps_order(self):
        records = [
            MatchRecord("b.rs", Pos(1, 1), Pos(1, 2), SiteKind.CALL),
            MatchRecord("a.rs", Pos(1, 1), Pos(1, 2), SiteKind.CALL),
            MatchRecord("b.rs", Pos(2, 1), Pos(2, 2), SiteKind.CALL),
        ]
        grouped = group_by_file(records)
        assert list(grouped) == ["b.rs", "a.rs"]
        assert [r.start.line for r in grouped["b.rs"]] == [1, 2]


class TestRecordFiles:

    def test_find_and_read(self, tmp_path, reporter):
        out_dir = tmp_path / "target" / "debug"
        out_dir.mkdir(parents=True)
        path = out_dir / f"main-{OUTPUT_FILE_NAME}"
        path.write_text(reporter.format_text(iter_sites()), encoding="utf-8")
        (out_dir / "other.txt").write_text("x", encoding="utf-8")

        assert find_record_files(tmp_path) == [path]
        assert len(read_file(path)) == 1

    def test_no_target_dir(self, tmp_path):
        assert find_record_files(tmp_path) == []

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(RecordFormatError):
            read_file(tmp_path / "missing.txt")
