"""
cargo_aspect/reporter.py
========================

Turns matcher output into ordered location records and moves those
records across the process boundary to the weaver.

Record stream
-------------
The weaver consumes a plain-text stream of ``Found`` records, one per
insertion point, in source order::

    Found {
        file: "src/main.rs",
        src: "let it = v.iter();",
        span: src/main.rs:3:5: 3:23,
        kind: MethodCall,
        args: {
            "_x": "v",
        },
    }

``LocationReporter`` writes the stream (and an equivalent JSON list);
:func:`read_text` parses it back with a parsimonious PEG grammar.

Usage::

    reporter = LocationReporter()
    reporter.write_text(result.sites, sys.stdout)

    for file, records in group_by_file(read_text(stream_text)).items():
        ...
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, TextIO, Tuple, Union

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from .errors import RecordFormatError
from .matcher import MatchSite, SiteKind
from .program import Pos, Span

logger = logging.getLogger(__name__)

# Name suffix of the record files the inspection pass leaves under target/.
OUTPUT_FILE_NAME = "RUST_ASPECT_OUTPUT.txt"


# ═══════════════════════════════════════════════════════════════════
#  PART 1 — RECORDS
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MatchRecord:
    """Flat, serialisable view of one :class:`MatchSite`."""
    file: str
    start: Pos
    end: Pos
    kind: SiteKind
    bindings: Tuple[Tuple[str, str], ...] = ()
    src: str = ""

    @property
    def span(self) -> Span:
        return Span(self.file, self.start, self.end)

    @property
    def args(self) -> Dict[str, str]:
        return dict(self.bindings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "start": {"line": self.start.line, "col": self.start.col},
            "end": {"line": self.end.line, "col": self.end.col},
            "kind": self.kind.value,
            "args": self.args,
            "src": self.src,
        }

    @classmethod
    def from_site(cls, site: MatchSite) -> "MatchRecord":
        args = tuple(
            (var, binding.text if binding.text is not None else str(binding.span))
            for var, binding in site.bindings
        )
        return cls(file=site.span.file, start=site.span.lo, end=site.span.hi,
                   kind=site.kind, bindings=args, src=site.src or "")


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


# ═══════════════════════════════════════════════════════════════════
#  PART 2 — WRITERS
# ═══════════════════════════════════════════════════════════════════

class LocationReporter:
    """Renders match sites as records, text or JSON.  Holds no state."""

    def records(self, sites: Iterable[MatchSite]) -> List[MatchRecord]:
        """One record per site, order preserved."""
        return [MatchRecord.from_site(site) for site in sites]

    def format_record(self, record: MatchRecord) -> str:
        lines = [
            "Found {",
            f"    file: {_quote(record.file)},",
            f"    src: {_quote(record.src)},",
            f"    span: {record.span},",
            f"    kind: {record.kind.value},",
            "    args: {",
        ]
        for var, value in record.bindings:
            lines.append(f"        {_quote(var)}: {_quote(value)},")
        lines.append("    },")
        lines.append("}")
        return "\n".join(lines) + "\n"

    def format_text(self, sites: Iterable[MatchSite]) -> str:
        return "".join(self.format_record(r) for r in self.records(sites))

    def write_text(self, sites: Iterable[MatchSite], stream: TextIO) -> int:
        """Write the ``Found`` stream for *sites*; return the record count."""
        count = 0
        for record in self.records(sites):
            stream.write(self.format_record(record))
            count += 1
        logger.debug("wrote %d match record(s)", count)
        return count

    def to_json(self, sites: Iterable[MatchSite], indent: int = 2) -> str:
        return json.dumps([r.to_dict() for r in self.records(sites)], indent=indent)


# ═══════════════════════════════════════════════════════════════════
#  PART 3 — READER
# ═══════════════════════════════════════════════════════════════════

RECORD_GRAMMAR = Grammar(r'''
    stream      = _ records _
    records     = record*

    record      = "Found" _ "{" _ file_field src_field span_field kind_field args_field "}" _
    file_field  = "file" _ ":" _ string _ "," _
    src_field   = "src" _ ":" _ string _ "," _
    span_field  = "span" _ ":" _ location _ "," _
    kind_field  = "kind" _ ":" _ kind _ "," _
    args_field  = "args" _ ":" _ "{" _ arg_list "}" _ "," _
    arg_list    = arg*
    arg         = string _ ":" _ string _ "," _

    location    = path ":" number ":" number ":" _ number ":" number
    path        = ~r"[^\n]+?(?=:\d+:\d+:)"
    number      = ~r"\d+"
    kind        = "MethodCall" / "Call" / "Enter" / "Exit"
    string      = ~r'"(?:[^"\\]|\\.)*"'

    _           = ~r"\s*"
''')


class _RecordBuilder(NodeVisitor):
    """Parse tree → list of :class:`MatchRecord`."""

    unwrapped_exceptions = (RecordFormatError,)

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def visit_stream(self, node, visited_children):
        _, records, _ = visited_children
        return records

    def visit_records(self, node, visited_children):
        return list(visited_children)

    def visit_record(self, node, visited_children):
        _, _, _, _, file, src, location, kind, args, _, _ = visited_children
        span_file, start, end = location
        if span_file != file:
            raise RecordFormatError(
                f"record for {file!r} has a span in {span_file!r}"
            )
        return MatchRecord(file=file, start=start, end=end, kind=kind,
                           bindings=args, src=src)

    # Every ``name: value,`` field keeps its value at child index 4.

    def visit_file_field(self, node, visited_children):
        return visited_children[4]

    def visit_src_field(self, node, visited_children):
        return visited_children[4]

    def visit_span_field(self, node, visited_children):
        return visited_children[4]

    def visit_kind_field(self, node, visited_children):
        return visited_children[4]

    def visit_args_field(self, node, visited_children):
        return visited_children[6]

    def visit_arg_list(self, node, visited_children):
        return tuple(visited_children)

    def visit_arg(self, node, visited_children):
        key, _, _, _, value, *_ = visited_children
        return (key, value)

    def visit_location(self, node, visited_children):
        path, _, l1, _, c1, _, _, l2, _, c2 = visited_children
        return path, Pos(l1, c1), Pos(l2, c2)

    def visit_path(self, node, visited_children):
        return node.text

    def visit_number(self, node, visited_children):
        return int(node.text)

    def visit_kind(self, node, visited_children):
        return SiteKind(node.text)

    def visit_string(self, node, visited_children):
        try:
            return json.loads(node.text)
        except ValueError as e:
            raise RecordFormatError(f"bad string literal {node.text}: {e}") from e


def read_text(text: str) -> List[MatchRecord]:
    """Parse a ``Found { ... }`` stream back into records, in stream order.

    Raises
    ------
    RecordFormatError
        If the stream does not follow the record grammar.
    """
    try:
        tree = RECORD_GRAMMAR.parse(text)
    except ParseError as e:
        raise RecordFormatError(
            f"malformed match record at line {e.line()}, column {e.column()}"
        ) from e
    try:
        records = _RecordBuilder().visit(tree)
    except VisitationError as e:
        raise RecordFormatError(f"malformed match record: {e}") from e
    logger.debug("read %d match record(s)", len(records))
    return records


def group_by_file(records: Iterable[MatchRecord]) -> Dict[str, List[MatchRecord]]:
    """Group *records* by file; files and records keep their first-seen order."""
    grouped: Dict[str, List[MatchRecord]] = {}
    for record in records:
        grouped.setdefault(record.file, []).append(record)
    return grouped


def find_record_files(root: Union[str, Path]) -> List[Path]:
    """Every record file under *root*/target, in sorted path order."""
    target = Path(root) / "target"
    if not target.is_dir():
        return []
    return sorted(p for p in target.rglob(f"*{OUTPUT_FILE_NAME}") if p.is_file())


def read_file(path: Union[str, Path]) -> List[MatchRecord]:
    """Read one record file."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise RecordFormatError(f"cannot read record file {p}: {e}") from e
    return read_text(text)


__all__ = [
    "MatchRecord", "LocationReporter", "RECORD_GRAMMAR", "OUTPUT_FILE_NAME",
    "read_text", "read_file", "group_by_file", "find_record_files",
]
