"""
cargo_aspect/engine.py
======================

Compiles every pointcut of an :class:`~cargo_aspect.config.AspectConfig`
and runs the matcher once per pointcut.

Each pointcut is compiled on its own: a condition that fails to lex,
parse or validate is recorded on its :class:`CompiledPointcut` and the
remaining pointcuts still run.  The advice string is never inspected; it
is carried through to the result unchanged.

Usage::

    engine = AspectEngine.from_root(crate_root)
    for run in engine.run(load_program_file(dump_path)):
        reporter.write_text(run.result.sites, out)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from . import ast as A
from .config import AspectConfig, PointcutSpec, find_config, load_config
from .errors import PointcutError
from .matcher import CancellationToken, Matcher, MatchResult
from .parser import parse_condition
from .program import TypedProgram
from .semantic import validate

logger = logging.getLogger(__name__)


def compile_pointcut(condition: str) -> A.Pointcut:
    """Lex, parse and validate one condition string.

    Raises
    ------
    LexError, ParseError, ValidationError
    """
    return validate(parse_condition(condition))


@dataclass(frozen=True)
class CompiledPointcut:
    """A config entry together with its compiled pointcut or its error."""
    spec: PointcutSpec
    pointcut: Optional[A.Pointcut] = None
    error: Optional[PointcutError] = None

    @property
    def condition(self) -> str:
        return self.spec.condition

    @property
    def advice(self) -> str:
        return self.spec.advice

    @property
    def ok(self) -> bool:
        return self.pointcut is not None


@dataclass(frozen=True)
class PointcutRun:
    compiled: CompiledPointcut
    result: MatchResult

    @property
    def advice(self) -> str:
        return self.compiled.advice


class AspectEngine:
    """Runs all pointcuts of one configuration against typed programs."""

    def __init__(self, config: AspectConfig):
        self.config = config
        self.compiled: Tuple[CompiledPointcut, ...] = tuple(
            self._compile(spec) for spec in config.pointcuts
        )

    @classmethod
    def from_root(cls, root: Union[str, Path]) -> "AspectEngine":
        """Build an engine from the ``Aspect.toml`` of the crate at *root*."""
        return cls(load_config(find_config(root)))

    @staticmethod
    def _compile(spec: PointcutSpec) -> CompiledPointcut:
        try:
            pointcut = compile_pointcut(spec.condition)
        except PointcutError as e:
            logger.error("rejected pointcut %r: [%s] %s",
                         spec.condition, e.code, e.detail)
            return CompiledPointcut(spec=spec, error=e)
        return CompiledPointcut(spec=spec, pointcut=pointcut)

    @property
    def errors(self) -> List[CompiledPointcut]:
        """Entries whose condition was rejected, in config order."""
        return [c for c in self.compiled if not c.ok]

    def run(self, program: TypedProgram,
            cancel: Optional[CancellationToken] = None) -> List[PointcutRun]:
        """Match every accepted pointcut against *program*, in config order.

        Raises
        ------
        MatchCancelled
            If *cancel* fires; runs completed so far are discarded.
        """
        runs: List[PointcutRun] = []
        for compiled in self.compiled:
            if not compiled.ok:
                continue
            result = Matcher(compiled.pointcut).match(program, cancel)
            logger.info("%s: %r matched %d site(s), skipped %d",
                        self.config.name, compiled.condition,
                        len(result.sites), result.skipped)
            runs.append(PointcutRun(compiled, result))
        return runs


__all__ = [
    "compile_pointcut", "CompiledPointcut", "PointcutRun", "AspectEngine",
]
