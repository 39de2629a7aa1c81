"""cargo_aspect — pointcut matching over type-checked Rust programs.

This package finds every position in a typed program tree that a
user-written *pointcut* selects, and reports each one as a safe,
statement-granular insertion point for an external advice weaver.

Submodules
----------
errors
    Exception hierarchy and structured error codes (``ASPECT-NNNN``).

lexer, ast, parser
    Pointcut condition front-end: ``call _x.iter() where _x: Vec<i32>``
    → tokens → ``Pointcut``.

semantic
    Variable cross-reference validation (``check`` / ``validate``).

program, loader
    Read-only typed program tree and its S-expression dump loader.

matcher
    Depth-first matcher producing ordered ``MatchSite`` values.

reporter
    ``Found { ... }`` record stream and JSON writers, and the record
    reader used by the weaver.

config, engine
    ``Aspect.toml`` loading and the per-pointcut driver.

Usage
-----
Programmatic::

    from cargo_aspect.engine import compile_pointcut
    from cargo_aspect.loader import load_program_file
    from cargo_aspect.matcher import find_sites
    from cargo_aspect.reporter import LocationReporter

    pointcut = compile_pointcut("call _x.iter() where _x: Vec<i32>")
    result = find_sites(load_program_file("target/typed.sexp"), pointcut)
    LocationReporter().write_text(result.sites, sys.stdout)

"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "errors",
    "lexer",
    "ast",
    "parser",
    "semantic",
    "program",
    "loader",
    "matcher",
    "reporter",
    "config",
    "engine",
]
