"""Scope analysis: lexical scopes and bindings as an indexed arena.

Scopes and bindings live in flat lists on a ScopeTable. A scope's parent is
an index (None for the program scope) and its names map to binding indices,
so walks up the scope tree chase integers rather than object references.

Scope kinds:
    program   the Program node
    function  any Function node; its body Block shares the scope
    block     a Block that is not a function body or catch body
    for       the header of a for / for-of loop
    catch     a catch clause; its body Block shares the scope
    class     a named class expression, binding its own name

Binding kinds: var, let, const, class, hoisted (function declarations),
param, local (a function or class expression's own name).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..frontend.ast import (
    Assign,
    Block,
    CatchClause,
    ClassDecl,
    ClassExpr,
    Declarator,
    ExportDecl,
    ExportDefault,
    FnDecl,
    FnExpr,
    ForOfStmt,
    ForStmt,
    Function,
    Identifier,
    Node,
    Program,
    Stmt,
    Update,
    VarDecl,
    iter_children,
)


# ============================================================
# ARENA RECORDS
# ============================================================


@dataclass(eq=False)
class Binding:
    """A declared name with its read and write sites."""

    index: int
    name: str
    scope: int
    kind: str
    ident: Identifier | None
    declaration: Node | None
    references: list[Identifier] = field(default_factory=list)
    mutations: list[Identifier] = field(default_factory=list)

    def sites(self) -> list[Identifier]:
        return self.references + self.mutations


@dataclass(eq=False)
class Scope:
    """A lexical scope. parent is an index into ScopeTable.scopes."""

    index: int
    kind: str
    node: Node
    parent: int | None
    names: dict[str, int] = field(default_factory=dict)


class ScopeTable:
    """Arena of scopes and bindings for one program."""

    def __init__(self) -> None:
        self.scopes: list[Scope] = []
        self.bindings: list[Binding] = []
        self.globals: set[str] = set()
        self.used_names: set[str] = set()
        self._node_scope: dict[Node, int] = {}

    # ── Queries ──────────────────────────────────────────────

    def scope_of(self, node: Node) -> int | None:
        """Index of the scope a scope-creating node owns."""
        return self._node_scope.get(node)

    def parent(self, index: int) -> int | None:
        return self.scopes[index].parent

    def chain(self, index: int) -> list[int]:
        """Scope indices from index out to the program scope."""
        result: list[int] = []
        current: int | None = index
        while current is not None:
            result.append(current)
            current = self.scopes[current].parent
        return result

    def lookup(self, index: int, name: str) -> Binding | None:
        for i in self.chain(index):
            b = self.scopes[i].names.get(name)
            if b is not None:
                return self.bindings[b]
        return None

    def bindings_in(self, index: int) -> list[Binding]:
        return [self.bindings[b] for b in self.scopes[index].names.values()]

    def visible_bindings(self, index: int) -> list[Binding]:
        """Every binding visible from index; inner declarations shadow outer ones."""
        seen: set[str] = set()
        result: list[Binding] = []
        for i in self.chain(index):
            for name, b in self.scopes[i].names.items():
                if name in seen:
                    continue
                seen.add(name)
                result.append(self.bindings[b])
        return result

    # ── Mutations ────────────────────────────────────────────

    def add_binding(
        self,
        name: str,
        scope: int,
        kind: str,
        ident: Identifier | None,
        declaration: Node | None,
    ) -> Binding:
        binding = Binding(len(self.bindings), name, scope, kind, ident, declaration)
        self.bindings.append(binding)
        self.scopes[scope].names[name] = binding.index
        self.used_names.add(name)
        return binding

    def remove_binding(self, binding: Binding) -> None:
        """Detach a binding from its scope. Its arena slot stays."""
        names = self.scopes[binding.scope].names
        if names.get(binding.name) == binding.index:
            del names[binding.name]

    def rename(self, binding: Binding, new_name: str) -> None:
        """Rename a binding and every identifier that refers to it."""
        names = self.scopes[binding.scope].names
        if names.get(binding.name) == binding.index:
            del names[binding.name]
        names[new_name] = binding.index
        binding.name = new_name
        if binding.ident is not None:
            binding.ident.name = new_name
        for site in binding.sites():
            site.name = new_name
        self.used_names.add(new_name)

    def move_binding(self, binding: Binding, scope: int) -> None:
        self.remove_binding(binding)
        binding.scope = scope
        self.scopes[scope].names[binding.name] = binding.index

    def reparent(self, scope: int, parent: int) -> None:
        if scope in self.chain(parent):
            raise ValueError("reparenting scope " + str(scope) + " would create a cycle")
        self.scopes[scope].parent = parent

    def rebind_scope_node(self, scope: int, node: Node) -> None:
        """Make node (and its body block) the owner of scope."""
        old = self.scopes[scope].node
        self._node_scope.pop(old, None)
        if isinstance(old, Function) and isinstance(old.body, Block):
            if self._node_scope.get(old.body) == scope:
                del self._node_scope[old.body]
        self.scopes[scope].node = node
        self._node_scope[node] = scope
        if isinstance(node, Function) and isinstance(node.body, Block):
            self._node_scope[node.body] = scope

    def generate_uid(self, seed: str = "temp", scope: int | None = None) -> str:
        """Fresh identifier: _seed, _seed2, _seed3, ...

        Leading underscores and trailing digits are stripped from the seed.
        The result collides with no name declared, referenced or generated
        anywhere in the program.
        """
        base = seed.lstrip("_").rstrip("0123456789")
        if base == "":
            base = "temp"
        i = 1
        while True:
            candidate = "_" + base if i == 1 else "_" + base + str(i)
            taken = candidate in self.used_names or candidate in self.globals
            if not taken and scope is not None and self.lookup(scope, candidate) is not None:
                taken = True
            if not taken:
                self.used_names.add(candidate)
                return candidate
            i += 1

    # ── Construction ─────────────────────────────────────────

    def new_scope(self, kind: str, node: Node, parent: int | None) -> int:
        scope = Scope(len(self.scopes), kind, node, parent)
        self.scopes.append(scope)
        self._node_scope[node] = scope.index
        return scope.index

    def share_scope(self, node: Node, scope: int) -> None:
        self._node_scope[node] = scope


# ============================================================
# DECLARATION SCANNING
# ============================================================


def _declared_stmt(stmt: Stmt) -> Node:
    """Unwrap export wrappers to the statement that declares."""
    if isinstance(stmt, ExportDecl):
        return stmt.declaration
    if isinstance(stmt, ExportDefault) and isinstance(stmt.value, (FnDecl, ClassDecl)):
        return stmt.value
    return stmt


class _ScopeBuilder:
    """Builds a ScopeTable: declarations first per scope, then references."""

    def __init__(self) -> None:
        self.table = ScopeTable()

    def declare(
        self, name: str, scope: int, kind: str, ident: Identifier, declaration: Node
    ) -> None:
        existing = self.table.scopes[scope].names.get(name)
        if existing is not None:
            # Redeclaration; the first declaration keeps the binding.
            self.table.bindings[existing].mutations.append(ident)
            return
        self.table.add_binding(name, scope, kind, ident, declaration)

    def declare_lexical(self, stmts: list[Stmt], scope: int) -> None:
        """let / const / class / function declarations directly in a statement list."""
        for stmt in stmts:
            decl = _declared_stmt(stmt)
            if isinstance(decl, VarDecl) and decl.kind != "var":
                for d in decl.declarators:
                    self.declare(d.id.name, scope, decl.kind, d.id, decl)
            elif isinstance(decl, FnDecl):
                self.declare(decl.id.name, scope, "hoisted", decl.id, decl)
            elif isinstance(decl, ClassDecl):
                self.declare(decl.id.name, scope, "class", decl.id, decl)

    def declare_vars(self, root: Node, scope: int) -> None:
        """var declarations anywhere below root, not crossing function boundaries."""
        stack: list[Node] = list(iter_children(root))
        while stack:
            node = stack.pop()
            if isinstance(node, Function):
                continue
            if isinstance(node, VarDecl) and node.kind == "var":
                for d in node.declarators:
                    names = self.table.scopes[scope].names
                    if d.id.name not in names:
                        self.table.add_binding(d.id.name, scope, "var", d.id, node)
            stack.extend(iter_children(node))

    # ── Reference resolution ─────────────────────────────────

    def reference(self, ident: Identifier, scope: int) -> None:
        self.table.used_names.add(ident.name)
        binding = self.table.lookup(scope, ident.name)
        if binding is None:
            self.table.globals.add(ident.name)
        else:
            binding.references.append(ident)

    def write(self, ident: Identifier, scope: int, also_reads: bool) -> None:
        self.table.used_names.add(ident.name)
        binding = self.table.lookup(scope, ident.name)
        if binding is None:
            self.table.globals.add(ident.name)
            return
        binding.mutations.append(ident)
        if also_reads:
            binding.references.append(ident)

    def visit(self, node: Node, scope: int) -> None:
        if isinstance(node, Identifier):
            self.reference(node, scope)
        elif isinstance(node, Function):
            self.visit_function(node, scope)
        elif isinstance(node, Block):
            inner = self.table.new_scope("block", node, scope)
            self.declare_lexical(node.body, inner)
            for stmt in node.body:
                self.visit(stmt, inner)
        elif isinstance(node, (ForStmt, ForOfStmt)):
            self.visit_loop(node, scope)
        elif isinstance(node, CatchClause):
            inner = self.table.new_scope("catch", node, scope)
            self.table.share_scope(node.body, inner)
            if node.param is not None:
                self.declare(node.param.name, inner, "let", node.param, node)
            self.declare_lexical(node.body.body, inner)
            for stmt in node.body.body:
                self.visit(stmt, inner)
        elif isinstance(node, Declarator):
            binding = self.table.lookup(scope, node.id.name)
            if binding is not None and binding.ident is not node.id and node.init is not None:
                if node.id not in binding.mutations:
                    binding.mutations.append(node.id)
            if node.init is not None:
                self.visit(node.init, scope)
        elif isinstance(node, ClassDecl):
            if node.superclass is not None:
                self.visit(node.superclass, scope)
            for method in node.body:
                self.visit(method, scope)
        elif isinstance(node, ClassExpr):
            inner = scope
            if node.id is not None:
                inner = self.table.new_scope("class", node, scope)
                self.declare(node.id.name, inner, "local", node.id, node)
            if node.superclass is not None:
                self.visit(node.superclass, inner)
            for method in node.body:
                self.visit(method, inner)
        elif isinstance(node, Assign):
            if isinstance(node.target, Identifier):
                self.write(node.target, scope, node.op != "=")
            else:
                self.visit(node.target, scope)
            self.visit(node.value, scope)
        elif isinstance(node, Update):
            if isinstance(node.operand, Identifier):
                self.write(node.operand, scope, True)
            else:
                self.visit(node.operand, scope)
        else:
            for child in iter_children(node):
                self.visit(child, scope)

    def visit_function(self, fn: Function, scope: int) -> None:
        inner = self.table.new_scope("function", fn, scope)
        for p in fn.params:
            self.declare(p.name.name, inner, "param", p.name, p)
        if isinstance(fn.body, Block):
            self.table.share_scope(fn.body, inner)
            self.declare_vars(fn.body, inner)
            self.declare_lexical(fn.body.body, inner)
        if isinstance(fn, FnExpr) and fn.id is not None:
            if fn.id.name not in self.table.scopes[inner].names:
                self.table.add_binding(fn.id.name, inner, "local", fn.id, fn)
        for p in fn.params:
            if p.default is not None:
                self.visit(p.default, inner)
        if isinstance(fn.body, Block):
            for stmt in fn.body.body:
                self.visit(stmt, inner)
        else:
            self.visit(fn.body, inner)

    def visit_loop(self, loop: ForStmt | ForOfStmt, scope: int) -> None:
        inner = self.table.new_scope("for", loop, scope)
        head = loop.init if isinstance(loop, ForStmt) else loop.left
        if isinstance(head, VarDecl) and head.kind != "var":
            for d in head.declarators:
                self.declare(d.id.name, inner, head.kind, d.id, head)
        if isinstance(loop, ForOfStmt) and isinstance(loop.left, Identifier):
            self.write(loop.left, inner, False)
            self.visit(loop.right, inner)
            self.visit(loop.body, inner)
            return
        for child in iter_children(loop):
            self.visit(child, inner)

    def build(self, program: Program) -> ScopeTable:
        root = self.table.new_scope("program", program, None)
        self.declare_vars(program, root)
        self.declare_lexical(program.body, root)
        for stmt in program.body:
            self.visit(stmt, root)
        return self.table


# ============================================================
# PUBLIC API
# ============================================================


def analyze_scope(program: Program) -> ScopeTable:
    """Build the scope and binding arena for a program."""
    return _ScopeBuilder().build(program)


def _scope_label(table: ScopeTable, scope: Scope) -> str:
    node = scope.node
    label = scope.kind
    if isinstance(node, Function) and node.id is not None:
        label += " " + node.id.name
    elif isinstance(node, ClassExpr) and node.id is not None:
        label += " " + node.id.name
    label += " @" + str(node.pos.line) + ":" + str(node.pos.col)
    if scope.parent is not None:
        label += " parent=" + str(scope.parent)
    return label


def format_scopes(table: ScopeTable) -> str:
    """Readable dump of the arena, one scope per header line."""
    lines: list[str] = []
    for scope in table.scopes:
        lines.append("scope " + str(scope.index) + " " + _scope_label(table, scope))
        for name in sorted(scope.names):
            b = table.bindings[scope.names[name]]
            lines.append(
                "    "
                + b.kind
                + " "
                + name
                + " refs="
                + str(len(b.references))
                + " writes="
                + str(len(b.mutations))
            )
    if table.globals:
        lines.append("globals " + " ".join(sorted(table.globals)))
    return "\n".join(lines) + "\n"
