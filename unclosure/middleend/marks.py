"""Risk marking: which functions observe an outer `this` or a direct `eval`.

Flags live in a side table keyed by node identity and are fully propagated
before any closure is considered for hoisting.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..frontend.ast import (
    ArrowFn,
    Call,
    Function,
    Identifier,
    Node,
    Program,
    SuperExpr,
    ThisExpr,
    iter_children,
)
from .scope import ScopeTable, analyze_scope


@dataclass
class RiskFlags:
    captures_this: bool = False
    uses_eval: bool = False


class RiskMarks:
    """Side table from function node to its risk flags."""

    def __init__(self) -> None:
        self._flags: dict[Node, RiskFlags] = {}

    def _get(self, node: Node) -> RiskFlags:
        flags = self._flags.get(node)
        if flags is None:
            flags = RiskFlags()
            self._flags[node] = flags
        return flags

    def mark_this(self, node: Node) -> None:
        self._get(node).captures_this = True

    def mark_eval(self, node: Node) -> None:
        self._get(node).uses_eval = True

    def captures_this(self, node: Node) -> bool:
        flags = self._flags.get(node)
        return flags is not None and flags.captures_this

    def uses_eval(self, node: Node) -> bool:
        flags = self._flags.get(node)
        return flags is not None and flags.uses_eval


def _bound_identifiers(table: ScopeTable) -> set[Node]:
    """Every identifier that declares, reads or writes a binding."""
    result: set[Node] = set()
    for binding in table.bindings:
        if binding.ident is not None:
            result.add(binding.ident)
        result.update(binding.sites())
    return result


def _is_this_like(node: Node, bound: set[Node]) -> bool:
    """this, super, and an unbound arguments all resolve through the nearest non-arrow function."""
    if isinstance(node, (ThisExpr, SuperExpr)):
        return True
    return isinstance(node, Identifier) and node.name == "arguments" and node not in bound


def _is_direct_eval(node: Node) -> bool:
    return isinstance(node, Call) and isinstance(node.callee, Identifier) and node.callee.name == "eval"


def _mark_this(ancestors: list[Node], marks: RiskMarks) -> None:
    """Flag enclosing arrows, innermost first, up to the function that binds `this`."""
    i = len(ancestors) - 1
    while i >= 0:
        node = ancestors[i]
        if isinstance(node, ArrowFn):
            marks.mark_this(node)
        elif isinstance(node, Function):
            return
        i -= 1


def _mark_eval(ancestors: list[Node], marks: RiskMarks) -> None:
    for node in ancestors:
        if isinstance(node, Function):
            marks.mark_eval(node)


def mark_risks(program: Program, scopes: ScopeTable | None = None) -> RiskMarks:
    """Single top-down sweep; each risky node flags its ancestors."""
    table = scopes if scopes is not None else analyze_scope(program)
    bound = _bound_identifiers(table)
    marks = RiskMarks()
    stack: list[tuple[Node, int]] = [(program, 0)]
    ancestors: list[Node] = []
    while stack:
        node, depth = stack.pop()
        del ancestors[depth:]
        if _is_this_like(node, bound):
            _mark_this(ancestors, marks)
        elif _is_direct_eval(node):
            _mark_eval(ancestors, marks)
        ancestors.append(node)
        for child in iter_children(node):
            stack.append((child, depth + 1))
    return marks
