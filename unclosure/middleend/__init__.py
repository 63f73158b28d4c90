"""AST passes: scope analysis, risk marking, closure hoisting."""

from ..frontend.ast import Program

from .hoisting import HoistError, HoistResult, hoist_closures
from .marks import RiskMarks, mark_risks
from .scope import ScopeTable, analyze_scope


def transform(program: Program) -> HoistResult:
    """Run all passes in order, rewriting the program in place."""
    scopes = analyze_scope(program)
    marks = mark_risks(program, scopes)
    return hoist_closures(program, scopes, marks)


__all__ = [
    "HoistError",
    "HoistResult",
    "RiskMarks",
    "ScopeTable",
    "analyze_scope",
    "hoist_closures",
    "mark_risks",
    "transform",
]
