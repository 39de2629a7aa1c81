"""
Pointcut semantic validation

Checks variable-reference consistency between a pointcut's pattern and
its constraints.  Works purely on the parsed AST; no program is needed.

1. Collect the pattern variables (receiver/callee and argument names).
2. Every constrained variable must be declared by the pattern.
3. Every declared variable must be referenced by some constraint.
4. ``impl`` constraints are rejected up front: there is no trait
   resolution, so they would otherwise match nothing or everything.

Errors come out in a fixed order (constraints in source order, then
pattern variables in declaration order) so messages are deterministic.
"""

from __future__ import annotations

import logging
from typing import List

from . import ast as A
from .errors import (
    UnconstrainedVariable,
    UnknownVariable,
    UnsupportedConstraintKind,
    ValidationError,
)

logger = logging.getLogger(__name__)


def pattern_variables(decl: A.PDecl) -> List[A.Var]:
    """Distinct pattern variables of *decl* in first-occurrence order."""
    seen: List[A.Var] = []
    for name in decl.names():
        if isinstance(name, A.Var) and name not in seen:
            seen.append(name)
    return seen


def check(pointcut: A.Pointcut) -> List[ValidationError]:
    """Return every validation error in *pointcut* (empty when valid)."""
    declared = pattern_variables(pointcut.decl)
    errors: List[ValidationError] = []

    constrained: List[A.Var] = []
    for constraint in pointcut.constraints:
        if constraint.var not in declared:
            errors.append(UnknownVariable(constraint.var.name))
        if constraint.kind is not A.ConstraintKind.TYPE_EQUALS:
            errors.append(
                UnsupportedConstraintKind(constraint.var.name, constraint.kind.value)
            )
        constrained.append(constraint.var)

    for var in declared:
        if var not in constrained:
            errors.append(UnconstrainedVariable(var.name))

    return errors


def validate(pointcut: A.Pointcut) -> A.Pointcut:
    """Raise the first validation error of *pointcut*, else return it.

    Raises
    ------
    UnknownVariable, UnconstrainedVariable, UnsupportedConstraintKind
    """
    errors = check(pointcut)
    if errors:
        logger.debug("pointcut %s rejected: %d error(s)", pointcut, len(errors))
        raise errors[0]
    return pointcut


__all__ = ["pattern_variables", "check", "validate"]
