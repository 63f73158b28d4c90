"""Closure hoisting: move closures that capture nothing per-activation outward.

Function nodes are visited innermost first, in repeated sweeps until a
sweep moves nothing: a declaration moved outward can lift the ceiling of a
closure visited before it. An eligible closure gets a destination scope:
the outermost scope below the defining scope of each of its free variables,
excluding its immediate container and the root of a classic script. The
closure is then re-declared under a fresh name at the top of that scope,
just before the statement that contains it.

Relocated declarations carry the "hoisted" annotation and are never
reconsidered; once the sweeps settle, running the pass again changes nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..frontend.ast import (
    Assign,
    Block,
    ClassMethod,
    Declarator,
    FnDecl,
    Function,
    Identifier,
    Member,
    Node,
    ObjectMethod,
    Program,
    Property,
    ReturnStmt,
    Stmt,
    contains,
    insert_before,
    iter_children,
    path_to,
    remove_node,
    replace_node,
    statement_list,
    walk,
)
from .marks import RiskMarks, mark_risks
from .scope import Binding, ScopeTable, analyze_scope

HOISTED = "hoisted"
GENERATED = "generated"
COMPACT = "compact"


class HoistError(Exception):
    """Internal invariant violated while relocating a closure."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


@dataclass
class ClosureCandidate:
    """Per-closure decision record, discarded once the closure is handled."""

    node: Function
    scope: int
    free_bindings: list[Binding] = field(default_factory=list)
    eligible: bool = False
    reason: str = ""
    destination: int | None = None


@dataclass
class HoistResult:
    count: int
    relocated: list[FnDecl]


# ============================================================
# TRAVERSAL
# ============================================================


def closures_post_order(program: Program) -> list[Function]:
    """Every function node, children before the functions that contain them."""
    result: list[Function] = []
    stack: list[tuple[Node, bool]] = [(program, False)]
    while stack:
        node, done = stack.pop()
        if done:
            if isinstance(node, Function):
                result.append(node)
            continue
        stack.append((node, True))
        children = list(iter_children(node))
        children.reverse()
        for child in children:
            stack.append((child, False))
    return result


# ============================================================
# ELIGIBILITY
# ============================================================


def classify_closure(
    fn: Function,
    ancestors: list[Node],
    marks: RiskMarks,
    table: ScopeTable,
) -> tuple[bool, str]:
    """Decide whether fn may move at all. Returns (eligible, reason)."""
    if isinstance(fn, (ClassMethod, ObjectMethod)):
        return False, "method"
    if fn.annotations.get(HOISTED):
        return False, "already hoisted"
    if marks.captures_this(fn):
        return False, "captures this"
    if marks.uses_eval(fn):
        return False, "uses eval"
    for node in ancestors:
        if node.annotations.get(GENERATED) or node.annotations.get(COMPACT):
            return False, "inside generated code"
    if isinstance(fn, FnDecl):
        scope = table.scope_of(fn)
        parent = table.parent(scope) if scope is not None else None
        binding = table.lookup(parent, fn.id.name) if parent is not None else None
        if binding is None or binding.declaration is not fn:
            return False, "declaration not bound to itself"
        if binding.mutations:
            return False, "declaration is reassigned"
    return True, ""


# ============================================================
# TARGET RESOLUTION
# ============================================================


def find_free_bindings(fn: Function, scope: int, table: ScopeTable) -> list[Binding]:
    """Bindings visible outside fn that are read or written inside it."""
    parent = table.parent(scope)
    if parent is None:
        return []
    inside = set(walk(fn))
    result: list[Binding] = []
    for binding in table.visible_bindings(parent):
        for site in binding.sites():
            if site in inside:
                result.append(binding)
                break
    return result


def _statement_owner(node: Node) -> Node | None:
    """The node whose child list statement_list() returns."""
    if isinstance(node, Program) or isinstance(node, Block):
        return node
    if isinstance(node, Function) and isinstance(node.body, Block):
        return node.body
    return None


def resolve_destination(
    candidate: ClosureCandidate,
    ancestors: list[Node],
    program: Program,
    table: ScopeTable,
    marks: RiskMarks,
) -> int | None:
    """Outermost legal destination scope for an eligible closure, or None."""
    parent = table.parent(candidate.scope)
    if parent is None:
        return None
    options = table.chain(parent)

    # Free variables set the ceiling; the innermost defining scope wins.
    for binding in candidate.free_bindings:
        if binding.scope in options:
            del options[options.index(binding.scope) + 1 :]

    # Direct eval may add bindings to its function at run time.
    for i, s in enumerate(options):
        node = table.scopes[s].node
        if isinstance(node, Function) and marks.uses_eval(node):
            del options[i + 1 :]
            break

    on_path = set(ancestors)
    remaining: list[int] = []
    for s in options:
        if s == parent:
            continue
        scope = table.scopes[s]
        if scope.kind == "program" and program.source_type != "module":
            continue
        owner = _statement_owner(scope.node)
        if owner is None or owner not in on_path:
            continue
        remaining.append(s)
    if not remaining:
        return None
    return remaining[-1]


# ============================================================
# ATTACHMENT POINT
# ============================================================


def locate_attachment(destination: Node, fn: Function) -> Stmt:
    """The statement of destination's statement list that contains fn."""
    stmts = statement_list(destination)
    if stmts is None:
        raise HoistError("destination has no statement list", fn.pos.line, fn.pos.col)
    for stmt in stmts:
        if contains(stmt, fn):
            return stmt
    raise HoistError("no attachment point for closure", fn.pos.line, fn.pos.col)


# ============================================================
# REWRITING
# ============================================================


def _name_seed(fn: Function, parent: Node) -> str:
    """Base for a relocated expression's new name."""
    if fn.id is not None:
        return fn.id.name
    if isinstance(parent, Declarator) and parent.init is fn:
        return parent.id.name
    if isinstance(parent, Assign) and parent.value is fn:
        if isinstance(parent.target, Identifier):
            return parent.target.name
        if isinstance(parent.target, Member):
            return parent.target.prop
    if isinstance(parent, Property) and parent.value is fn and parent.key.isidentifier():
        return parent.key
    return "ref"


def _normalize_body(fn: Function) -> Block:
    if isinstance(fn.body, Block):
        return fn.body
    return Block(fn.body.pos, [ReturnStmt(fn.body.pos, fn.body)])


def _relocate_declaration(
    fn: FnDecl,
    scope: int,
    destination: int,
    anchor: Stmt,
    container: Node,
    table: ScopeTable,
) -> FnDecl:
    """Named declaration: rename its binding and move the statement itself."""
    binding = table.lookup(table.parent(scope), fn.id.name)
    if binding is None or binding.declaration is not fn:
        raise HoistError("declaration lost its binding", fn.pos.line, fn.pos.col)
    uid = table.generate_uid(fn.id.name, destination)
    table.rename(binding, uid)
    table.move_binding(binding, destination)
    table.reparent(scope, destination)
    fn.annotations[HOISTED] = True
    if not remove_node(container, fn):
        raise HoistError("declaration not found in its container", fn.pos.line, fn.pos.col)
    insert_before(statement_list(table.scopes[destination].node), anchor, [fn])
    return fn


def _relocate_expression(
    fn: Function,
    scope: int,
    destination: int,
    anchor: Stmt,
    container: Node,
    table: ScopeTable,
) -> FnDecl:
    """Function expression or arrow: declare it in the destination, reference it here."""
    uid = table.generate_uid(_name_seed(fn, container), destination)
    decl = FnDecl(
        fn.pos,
        Identifier(fn.pos, uid),
        fn.params,
        _normalize_body(fn),
        fn.is_async,
        fn.is_generator,
    )
    decl.annotations.update(fn.annotations)
    decl.annotations[HOISTED] = True
    replacement = Identifier(fn.pos, uid)
    if not replace_node(container, fn, replacement):
        raise HoistError("closure not found in its container", fn.pos.line, fn.pos.col)
    insert_before(statement_list(table.scopes[destination].node), anchor, [decl])

    binding = table.add_binding(uid, destination, "hoisted", decl.id, decl)
    binding.references.append(replacement)
    if fn.id is not None:
        # The expression's own name now resolves to the new declaration.
        own = table.lookup(scope, fn.id.name)
        if own is not None and own.scope == scope and own.kind == "local":
            for site in own.sites():
                site.name = uid
            binding.references.extend(own.references)
            binding.mutations.extend(own.mutations)
            table.remove_binding(own)
    table.rebind_scope_node(scope, decl)
    table.reparent(scope, destination)
    return decl


# ============================================================
# PUBLIC API
# ============================================================


def consider_closure(
    fn: Function, program: Program, table: ScopeTable, marks: RiskMarks
) -> tuple[ClosureCandidate, list[Node]]:
    """Classify fn and resolve its destination. Returns the candidate and fn's ancestors."""
    scope = table.scope_of(fn)
    if scope is None:
        raise HoistError("closure has no scope", fn.pos.line, fn.pos.col)
    ancestors = path_to(program, fn)
    if ancestors is None:
        raise HoistError("closure is not in the program", fn.pos.line, fn.pos.col)
    candidate = ClosureCandidate(fn, scope)
    candidate.eligible, candidate.reason = classify_closure(fn, ancestors, marks, table)
    if not candidate.eligible:
        return candidate, ancestors
    candidate.free_bindings = find_free_bindings(fn, scope, table)
    candidate.destination = resolve_destination(candidate, ancestors, program, table, marks)
    if candidate.destination is None:
        candidate.reason = "no legal destination"
    return candidate, ancestors


def _hoist_sweep(program: Program, table: ScopeTable, marks: RiskMarks) -> list[FnDecl]:
    """One post-order pass over every function; returns what it relocated."""
    relocated: list[FnDecl] = []
    for fn in closures_post_order(program):
        candidate, ancestors = consider_closure(fn, program, table, marks)
        if candidate.destination is None:
            continue
        destination = candidate.destination
        anchor = locate_attachment(table.scopes[destination].node, fn)
        container = ancestors[-1]
        if isinstance(fn, FnDecl):
            moved = _relocate_declaration(
                fn, candidate.scope, destination, anchor, container, table
            )
        else:
            moved = _relocate_expression(
                fn, candidate.scope, destination, anchor, container, table
            )
        relocated.append(moved)
    return relocated


def hoist_closures(
    program: Program,
    scopes: ScopeTable | None = None,
    marks: RiskMarks | None = None,
) -> HoistResult:
    """Relocate every eligible closure in program, in place."""
    table = scopes if scopes is not None else analyze_scope(program)
    risks = marks if marks is not None else mark_risks(program, table)
    relocated: list[FnDecl] = []
    # Moving a declaration outward lifts the ceiling of closures visited before it.
    while True:
        moved = _hoist_sweep(program, table, risks)
        if not moved:
            break
        relocated.extend(moved)
    return HoistResult(len(relocated), relocated)
