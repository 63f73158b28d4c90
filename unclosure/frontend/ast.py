"""JavaScript AST: node definitions and tree utilities.

Nodes compare and hash by identity (``eq=False``) so passes can key side
tables on them and locate them in statement lists without structural
comparisons.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Iterator


# ============================================================
# ANNOTATIONS
# ============================================================

Ann = dict[str, bool | int | str]


# ============================================================
# POSITION
# ============================================================


@dataclass
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


# ============================================================
# BASES
# ============================================================


@dataclass(eq=False)
class Node:
    """Base for all syntax nodes."""

    pos: Pos
    annotations: Ann = field(default_factory=dict, kw_only=True)


@dataclass(eq=False)
class Stmt(Node):
    """Base for all statements."""


@dataclass(eq=False)
class Expr(Node):
    """Base for all expressions."""


# ============================================================
# PROGRAM
# ============================================================


@dataclass(eq=False)
class Program(Node):
    """Top-level program. source_type is "script" or "module"."""

    body: list[Stmt]
    source_type: str


# ============================================================
# FUNCTIONS
# ============================================================


@dataclass(eq=False)
class Param(Node):
    """Function parameter: name, name = default, or ...name."""

    name: Identifier
    default: Expr | None
    rest: bool


@dataclass(eq=False)
class Function(Node):
    """Base for every function form."""

    id: Identifier | None
    params: list[Param]
    body: Block | Expr
    is_async: bool
    is_generator: bool


@dataclass(eq=False)
class FnDecl(Function, Stmt):
    """function name(params) { body }."""


@dataclass(eq=False)
class FnExpr(Function, Expr):
    """function name?(params) { body } in expression position."""


@dataclass(eq=False)
class ArrowFn(Function, Expr):
    """(params) => body. Inherits this/arguments from its lexical environment."""


@dataclass(eq=False)
class ClassMethod(Function):
    """Method inside a class body. kind is "constructor" or "method"."""

    key: str
    kind: str
    is_static: bool


@dataclass(eq=False)
class ObjectMethod(Function):
    """Shorthand method inside an object literal: { key() { ... } }."""

    key: str
    quoted: bool


# ============================================================
# CLASSES
# ============================================================


@dataclass(eq=False)
class ClassDecl(Stmt):
    """class Name extends Super { methods }."""

    id: Identifier
    superclass: Expr | None
    body: list[ClassMethod]


@dataclass(eq=False)
class ClassExpr(Expr):
    """class Name? extends Super { methods } in expression position."""

    id: Identifier | None
    superclass: Expr | None
    body: list[ClassMethod]


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(eq=False)
class Declarator(Node):
    """name = init inside a var/let/const."""

    id: Identifier
    init: Expr | None


@dataclass(eq=False)
class VarDecl(Stmt):
    """var/let/const declarators."""

    kind: str
    declarators: list[Declarator]


@dataclass(eq=False)
class Block(Stmt):
    """{ statements }."""

    body: list[Stmt]


@dataclass(eq=False)
class ExprStmt(Stmt):
    """Bare expression as statement."""

    expr: Expr


@dataclass(eq=False)
class EmptyStmt(Stmt):
    """Lone semicolon."""


@dataclass(eq=False)
class ReturnStmt(Stmt):
    """return expr?."""

    value: Expr | None


@dataclass(eq=False)
class IfStmt(Stmt):
    """if (test) consequent else alternate."""

    test: Expr
    consequent: Stmt
    alternate: Stmt | None


@dataclass(eq=False)
class ForStmt(Stmt):
    """for (init; test; update) body."""

    init: VarDecl | Expr | None
    test: Expr | None
    update: Expr | None
    body: Stmt


@dataclass(eq=False)
class ForOfStmt(Stmt):
    """for (left of right) body. left is a VarDecl or an assignable expression."""

    left: VarDecl | Expr
    right: Expr
    body: Stmt


@dataclass(eq=False)
class WhileStmt(Stmt):
    """while (test) body."""

    test: Expr
    body: Stmt


@dataclass(eq=False)
class BreakStmt(Stmt):
    """break."""


@dataclass(eq=False)
class ContinueStmt(Stmt):
    """continue."""


@dataclass(eq=False)
class ThrowStmt(Stmt):
    """throw expr."""

    value: Expr


@dataclass(eq=False)
class CatchClause(Node):
    """catch (param?) { body }."""

    param: Identifier | None
    body: Block


@dataclass(eq=False)
class TryStmt(Stmt):
    """try { ... } catch ... finally { ... }."""

    block: Block
    handler: CatchClause | None
    finalizer: Block | None


@dataclass(eq=False)
class ExportDecl(Stmt):
    """export <declaration>."""

    declaration: Stmt


@dataclass(eq=False)
class ExportDefault(Stmt):
    """export default <expr | named function | named class>."""

    value: Node


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(eq=False)
class Identifier(Expr):
    """Name reference or declaration site."""

    name: str


@dataclass(eq=False)
class ThisExpr(Expr):
    """this."""


@dataclass(eq=False)
class SuperExpr(Expr):
    """super, as a callee or member object."""


@dataclass(eq=False)
class NumLit(Expr):
    """Numeric literal."""

    value: int | float
    raw: str


@dataclass(eq=False)
class StrLit(Expr):
    """String literal with escapes resolved."""

    value: str


@dataclass(eq=False)
class BoolLit(Expr):
    """true or false."""

    value: bool


@dataclass(eq=False)
class NullLit(Expr):
    """null."""


@dataclass(eq=False)
class ArrayLit(Expr):
    """[elements]."""

    elements: list[Expr]


@dataclass(eq=False)
class Property(Node):
    """key: value inside an object literal. shorthand for { name }."""

    key: str
    value: Expr
    quoted: bool
    shorthand: bool


@dataclass(eq=False)
class ObjectLit(Expr):
    """{ properties }."""

    properties: list[Property | ObjectMethod | Spread]


@dataclass(eq=False)
class Member(Expr):
    """obj.prop."""

    obj: Expr
    prop: str


@dataclass(eq=False)
class Index(Expr):
    """obj[index]."""

    obj: Expr
    index: Expr


@dataclass(eq=False)
class Call(Expr):
    """callee(args)."""

    callee: Expr
    args: list[Expr]


@dataclass(eq=False)
class New(Expr):
    """new callee(args)."""

    callee: Expr
    args: list[Expr]


@dataclass(eq=False)
class Spread(Expr):
    """...arg in calls and array/object literals."""

    arg: Expr


@dataclass(eq=False)
class Unary(Expr):
    """op operand: ! - + ~ typeof void delete."""

    op: str
    operand: Expr


@dataclass(eq=False)
class Update(Expr):
    """++x, x++, --x, x--."""

    op: str
    prefix: bool
    operand: Expr


@dataclass(eq=False)
class Binary(Expr):
    """left op right."""

    op: str
    left: Expr
    right: Expr


@dataclass(eq=False)
class Logical(Expr):
    """left && right, left || right, left ?? right."""

    op: str
    left: Expr
    right: Expr


@dataclass(eq=False)
class Conditional(Expr):
    """test ? then_expr : else_expr."""

    test: Expr
    then_expr: Expr
    else_expr: Expr


@dataclass(eq=False)
class Assign(Expr):
    """target op value, op is = or a compound assignment operator."""

    op: str
    target: Expr
    value: Expr


@dataclass(eq=False)
class Sequence(Expr):
    """a, b, c."""

    exprs: list[Expr]


@dataclass(eq=False)
class Yield(Expr):
    """yield arg? / yield* arg."""

    arg: Expr | None
    delegate: bool


@dataclass(eq=False)
class Await(Expr):
    """await arg."""

    arg: Expr


# ============================================================
# TREE UTILITIES
# ============================================================


def iter_children(node: Node) -> Iterator[Node]:
    """Yield direct child nodes in source order."""
    for f in fields(node):
        if f.name == "pos" or f.name == "annotations":
            continue
        value = getattr(node, f.name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, Node):
                    yield item


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal of node and all its descendants."""
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        children = list(iter_children(current))
        children.reverse()
        stack.extend(children)


def contains(root: Node, target: Node) -> bool:
    """True if target is root or lies inside root's subtree."""
    for n in walk(root):
        if n is target:
            return True
    return False


def path_to(root: Node, target: Node) -> list[Node] | None:
    """Ancestors of target from root down to its parent; None if absent."""
    stack: list[tuple[Node, int]] = [(root, 0)]
    path: list[Node] = []
    while stack:
        current, depth = stack.pop()
        del path[depth:]
        if current is target:
            return path
        path.append(current)
        children = list(iter_children(current))
        children.reverse()
        for child in children:
            stack.append((child, depth + 1))
    return None


def statement_list(node: Node) -> list[Stmt] | None:
    """The statement list a node owns, if any."""
    if isinstance(node, Program) or isinstance(node, Block):
        return node.body
    if isinstance(node, Function) and isinstance(node.body, Block):
        return node.body.body
    return None


def index_of(items: list, node: Node) -> int:
    """Identity-based index; -1 if absent."""
    for i, item in enumerate(items):
        if item is node:
            return i
    return -1


def insert_before(stmts: list[Stmt], anchor: Stmt, new: list[Stmt]) -> None:
    """Insert new statements immediately before anchor."""
    idx = index_of(stmts, anchor)
    if idx == -1:
        raise ValueError("anchor is not in the statement list")
    stmts[idx:idx] = new


def replace_node(root: Node, old: Node, new: Node | None) -> bool:
    """Replace old with new wherever it is held; None removes it.

    Removing a node held by a single-node field leaves an EmptyStmt there.
    Returns False if old is not in the tree.
    """
    for parent in walk(root):
        for f in fields(parent):
            if f.name == "pos" or f.name == "annotations":
                continue
            value = getattr(parent, f.name)
            if value is old:
                setattr(parent, f.name, new if new is not None else EmptyStmt(old.pos))
                return True
            if isinstance(value, list):
                idx = index_of(value, old)
                if idx != -1:
                    if new is None:
                        del value[idx]
                    else:
                        value[idx] = new
                    return True
    return False


def remove_node(root: Node, old: Node) -> bool:
    """Remove old from its parent."""
    return replace_node(root, old, None)
