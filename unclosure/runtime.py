"""JavaScript runtime: evaluate a parsed program.

A tree-walking interpreter for the subset the frontend accepts, used to
check that a transformed program behaves exactly like its input. It
models what closure hoisting can disturb: lexical closures, `this`
binding (method calls, `new`, arrows), `arguments`, classes and `super`,
declaration hoisting, and direct `eval` in the caller's scope.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Callable

from .frontend.ast import (
    ArrayLit,
    ArrowFn,
    Assign,
    Await,
    Binary,
    Block,
    BoolLit,
    BreakStmt,
    Call,
    ClassDecl,
    ClassExpr,
    ClassMethod,
    Conditional,
    ContinueStmt,
    EmptyStmt,
    ExportDecl,
    ExportDefault,
    Expr,
    ExprStmt,
    FnDecl,
    FnExpr,
    ForOfStmt,
    ForStmt,
    Function,
    Identifier,
    IfStmt,
    Index,
    Logical,
    Member,
    New,
    Node,
    NullLit,
    NumLit,
    ObjectLit,
    ObjectMethod,
    Pos,
    Program,
    Property,
    ReturnStmt,
    Sequence,
    Spread,
    Stmt,
    StrLit,
    SuperExpr,
    ThisExpr,
    ThrowStmt,
    TryStmt,
    Unary,
    Update,
    VarDecl,
    WhileStmt,
    Yield,
    iter_children,
)
from .frontend.parse import ParseError, parse
from .frontend.tokens import TokenizeError


# ============================================================
# Diagnostics
# ============================================================


class RuntimeFault(Exception):
    """Unsupported construct or internal fault while evaluating."""

    def __init__(self, msg: str, pos: Pos | None = None):
        if pos is None:
            super().__init__(msg)
        else:
            super().__init__(f"{msg} at line {pos.line} col {pos.col}")
        self.msg = msg
        self.pos = pos


class JSThrow(Exception):
    """A JavaScript exception nobody caught."""

    def __init__(self, value: object):
        super().__init__("uncaught " + to_display(value))
        self.value = value


# ============================================================
# Values
# ============================================================


class _Undefined:
    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"


UNDEFINED = _Undefined()


class JSObject:
    def __init__(self, proto: JSObject | None = None):
        self.props: dict[str, object] = {}
        self.proto: JSObject | None = proto

    def lookup(self, key: str) -> tuple[bool, object]:
        obj: JSObject | None = self
        while obj is not None:
            if key in obj.props:
                return True, obj.props[key]
            obj = obj.proto
        return False, UNDEFINED


class JSError(JSObject):
    pass


class JSArray(JSObject):
    def __init__(self, items: list[object]):
        super().__init__(None)
        self.items = items


class JSFunction(JSObject):
    """User function, method, arrow, or class constructor."""

    def __init__(
        self,
        node: Function | None,
        closure: _Env,
        name: str,
        *,
        home: JSObject | None = None,
        is_class: bool = False,
    ):
        super().__init__(None)
        self.node = node
        self.closure = closure
        self.name = name
        self.home = home
        self.is_class = is_class
        self.parent_class: JSObject | None = None

    @property
    def is_arrow(self) -> bool:
        return isinstance(self.node, ArrowFn)


class NativeFunction(JSObject):
    def __init__(
        self,
        name: str,
        impl: Callable[[Interpreter, object, list[object]], object],
        construct: Callable[[Interpreter, list[object]], object] | None = None,
    ):
        super().__init__(None)
        self.name = name
        self.impl = impl
        self.construct = construct


# ============================================================
# Control flow signals (internal)
# ============================================================


class _Signal(Exception):
    pass


@dataclass
class _Return(_Signal):
    value: object


class _Break(_Signal):
    pass


class _Continue(_Signal):
    pass


@dataclass
class _Throw(_Signal):
    value: object


# ============================================================
# Environments
# ============================================================


class _Env:
    """One lexical environment. Function-level envs receive `var`s."""

    def __init__(self, parent: _Env | None, function_level: bool = False):
        self.parent = parent
        self.function_level = function_level
        self.vars: dict[str, object] = {}

    def declare(self, name: str, value: object) -> None:
        self.vars[name] = value

    def find(self, name: str) -> _Env | None:
        env: _Env | None = self
        while env is not None:
            if name in env.vars:
                return env
            env = env.parent
        return None

    def function_env(self) -> _Env:
        env = self
        while not env.function_level and env.parent is not None:
            env = env.parent
        return env


@dataclass
class RunResult:
    value: object
    output: list[str] = field(default_factory=list)
    exports: dict[str, object] = field(default_factory=dict)


# ============================================================
# Conversions
# ============================================================


def _is_number(v: object) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _num_to_string(n: float) -> str:
    if math.isnan(n):
        return "NaN"
    if math.isinf(n):
        return "Infinity" if n > 0 else "-Infinity"
    if float(n).is_integer() and abs(n) < 1e21:
        return str(int(n))
    return repr(float(n))


def to_string(v: object) -> str:
    if v is UNDEFINED:
        return "undefined"
    if v is None:
        return "null"
    if v is True:
        return "true"
    if v is False:
        return "false"
    if _is_number(v):
        return _num_to_string(v)
    if isinstance(v, str):
        return v
    if isinstance(v, JSArray):
        return ",".join("" if x is UNDEFINED or x is None else to_string(x) for x in v.items)
    if isinstance(v, (JSFunction, NativeFunction)):
        return "function " + v.name + "() { [native code] }"
    if isinstance(v, JSError):
        _, name = v.lookup("name")
        _, message = v.lookup("message")
        if message == "":
            return to_string(name)
        return to_string(name) + ": " + to_string(message)
    if isinstance(v, JSObject):
        return "[object Object]"
    raise RuntimeFault("cannot convert value to string")


def to_number(v: object) -> float:
    if v is UNDEFINED:
        return math.nan
    if v is None or v is False:
        return 0.0
    if v is True:
        return 1.0
    if _is_number(v):
        return float(v)
    if isinstance(v, str):
        text = v.strip()
        if text == "":
            return 0.0
        try:
            if text.startswith("0x") or text.startswith("0X"):
                return float(int(text, 16))
            return float(text)
        except ValueError:
            return math.nan
    if isinstance(v, JSArray):
        return to_number(to_string(v))
    return math.nan


def _to_int32(v: object) -> int:
    n = to_number(v)
    if math.isnan(n) or math.isinf(n):
        return 0
    i = int(n) & 0xFFFFFFFF
    return i - 0x100000000 if i >= 0x80000000 else i


def truthy(v: object) -> bool:
    if v is UNDEFINED or v is None or v is False:
        return False
    if v is True:
        return True
    if _is_number(v):
        return not (v == 0 or math.isnan(v))
    if isinstance(v, str):
        return v != ""
    return True


def type_of(v: object) -> str:
    if v is UNDEFINED:
        return "undefined"
    if isinstance(v, bool):
        return "boolean"
    if _is_number(v):
        return "number"
    if isinstance(v, str):
        return "string"
    if isinstance(v, (JSFunction, NativeFunction)):
        return "function"
    return "object"


def strict_equals(a: object, b: object) -> bool:
    if _is_number(a) and _is_number(b):
        return float(a) == float(b)
    if isinstance(a, bool) or isinstance(b, bool):
        return a is b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def loose_equals(a: object, b: object) -> bool:
    if (a is None or a is UNDEFINED) and (b is None or b is UNDEFINED):
        return True
    if a is None or a is UNDEFINED or b is None or b is UNDEFINED:
        return False
    if type_of(a) == type_of(b):
        return strict_equals(a, b)
    if isinstance(a, JSObject) and not isinstance(b, JSObject):
        return loose_equals(to_string(a), b)
    if isinstance(b, JSObject) and not isinstance(a, JSObject):
        return loose_equals(a, to_string(b))
    return to_number(a) == to_number(b)


def to_display(v: object) -> str:
    """Render a value the way a REPL shows it."""
    if isinstance(v, str):
        return '"' + v.replace("\\", "\\\\").replace('"', '\\"') + '"'
    if isinstance(v, JSArray):
        return "[" + ", ".join(to_display(x) for x in v.items) + "]"
    if isinstance(v, (JSFunction, NativeFunction)):
        if isinstance(v, JSFunction) and v.is_class:
            return "[class " + (v.name or "(anonymous)") + "]"
        return "[Function " + (v.name or "(anonymous)") + "]"
    if isinstance(v, JSError):
        return to_string(v)
    if isinstance(v, JSObject):
        parts = [k + ": " + to_display(val) for k, val in v.props.items()]
        if not parts:
            return "{}"
        return "{ " + ", ".join(parts) + " }"
    return to_string(v)


def _log_string(v: object) -> str:
    if isinstance(v, str):
        return v
    return to_display(v)


# ============================================================
# Public API
# ============================================================


def run(program: Program) -> RunResult:
    """Evaluate a program. Uncaught JavaScript exceptions raise JSThrow."""
    interp = Interpreter()
    return interp.run_program(program)


def display(value: object) -> str:
    return to_display(value)


# ============================================================
# Interpreter
# ============================================================


def _var_names(root: Node) -> list[str]:
    """Names declared with `var` below root, not crossing function boundaries."""
    names: list[str] = []
    stack: list[Node] = list(iter_children(root))
    while stack:
        node = stack.pop()
        if isinstance(node, Function):
            continue
        if isinstance(node, VarDecl) and node.kind == "var":
            for d in node.declarators:
                names.append(d.id.name)
        stack.extend(iter_children(node))
    return names


def _unwrap_export(stmt: Stmt) -> Node:
    if isinstance(stmt, ExportDecl):
        return stmt.declaration
    if isinstance(stmt, ExportDefault) and isinstance(stmt.value, FnDecl):
        return stmt.value
    return stmt


class Interpreter:
    def __init__(self) -> None:
        self.output: list[str] = []
        self.exports: dict[str, object] = {}
        self.object_proto = JSObject(None)
        self.error_proto = JSObject(self.object_proto)
        self.error_proto.props["name"] = "Error"
        self.error_proto.props["message"] = ""
        self.globals = _Env(None, function_level=True)
        self._install_globals()

    # ---- Errors / throwing -------------------------------------------------

    def make_error(self, name: str, message: str) -> JSObject:
        err = JSError(self.error_proto)
        err.props["name"] = name
        err.props["message"] = message
        return err

    def throw(self, name: str, message: str) -> _Throw:
        return _Throw(self.make_error(name, message))

    # ---- Running -----------------------------------------------------------

    def run_program(self, program: Program) -> RunResult:
        env = _Env(self.globals, function_level=True)
        env.declare("this", UNDEFINED)
        self.hoist(program.body, env, function_level=True, root=program)
        try:
            value = self.exec_body(program.body, env, top_level=True)
        except _Throw as t:
            raise JSThrow(t.value) from None
        except (_Break, _Continue):
            raise RuntimeFault("break or continue outside a loop") from None
        except _Return:
            raise RuntimeFault("return outside a function") from None
        return RunResult(value, self.output, self.exports)

    def hoist(
        self, stmts: list[Stmt], env: _Env, *, function_level: bool, root: Node | None = None
    ) -> None:
        """Declare vars (at function level) and instantiate function declarations."""
        if function_level and root is not None:
            for name in _var_names(root):
                if name not in env.vars:
                    env.declare(name, UNDEFINED)
        for stmt in stmts:
            decl = _unwrap_export(stmt)
            if isinstance(decl, FnDecl):
                env.declare(decl.id.name, self.make_function(decl, env))

    def exec_body(self, stmts: list[Stmt], env: _Env, *, top_level: bool = False) -> object:
        """Run statements; returns the completion value of the last expression statement."""
        value: object = UNDEFINED
        for stmt in stmts:
            result = self.exec_stmt(stmt, env)
            if top_level and isinstance(stmt, ExprStmt):
                value = result
            if top_level:
                self._record_export(stmt, env)
        return value

    def _record_export(self, stmt: Stmt, env: _Env) -> None:
        if isinstance(stmt, ExportDecl):
            decl = stmt.declaration
            if isinstance(decl, VarDecl):
                for d in decl.declarators:
                    self.exports[d.id.name] = self.get_var(d.id.name, env, d.pos)
            elif isinstance(decl, (FnDecl, ClassDecl)):
                self.exports[decl.id.name] = self.get_var(decl.id.name, env, decl.pos)

    # ---- Variables ---------------------------------------------------------

    def get_var(self, name: str, env: _Env, pos: Pos) -> object:
        found = env.find(name)
        if found is None:
            raise self.throw("ReferenceError", name + " is not defined")
        return found.vars[name]

    def set_var(self, name: str, value: object, env: _Env) -> None:
        found = env.find(name)
        if found is None:
            # Sloppy-mode implicit global.
            self.globals.declare(name, value)
        else:
            found.vars[name] = value

    # ---- Functions ---------------------------------------------------------

    def make_function(
        self, node: Function, env: _Env, home: JSObject | None = None
    ) -> JSFunction:
        name = node.id.name if node.id is not None else ""
        if isinstance(node, (ClassMethod, ObjectMethod)):
            name = node.key
        closure = env
        if isinstance(node, FnExpr) and node.id is not None:
            closure = _Env(env)
            fn = JSFunction(node, closure, name, home=home)
            closure.declare(node.id.name, fn)
            return fn
        return JSFunction(node, closure, name, home=home)

    def call(self, fn: object, this: object, args: list[object], pos: Pos | None = None) -> object:
        if isinstance(fn, NativeFunction):
            return fn.impl(self, this, args)
        if not isinstance(fn, JSFunction):
            raise self.throw("TypeError", to_display(fn) + " is not a function")
        if fn.is_class:
            raise self.throw("TypeError", "Class constructor " + fn.name + " cannot be invoked without 'new'")
        return self.invoke(fn, this, args)

    def invoke(self, fn: JSFunction, this: object, args: list[object]) -> object:
        node = fn.node
        if node is None:
            return UNDEFINED
        if node.is_generator or node.is_async:
            raise RuntimeFault("generators and async functions are not executed", node.pos)
        env = _Env(fn.closure, function_level=True)
        if not isinstance(node, ArrowFn):
            env.declare("this", this)
            env.declare("arguments", JSArray(list(args)))
            env.declare("%fn", fn)
        for i, p in enumerate(node.params):
            if p.rest:
                env.declare(p.name.name, JSArray(list(args[i:])))
                break
            value = args[i] if i < len(args) else UNDEFINED
            if value is UNDEFINED and p.default is not None:
                value = self.eval_expr(p.default, env)
            env.declare(p.name.name, value)
        if not isinstance(node.body, Block):
            return self.eval_expr(node.body, env)
        self.hoist(node.body.body, env, function_level=True, root=node.body)
        try:
            self.exec_body(node.body.body, env)
        except _Return as r:
            return r.value
        return UNDEFINED

    def construct(self, ctor: object, args: list[object]) -> object:
        if isinstance(ctor, NativeFunction):
            if ctor.construct is None:
                raise self.throw("TypeError", ctor.name + " is not a constructor")
            return ctor.construct(self, args)
        if not isinstance(ctor, JSFunction) or ctor.is_arrow:
            raise self.throw("TypeError", to_display(ctor) + " is not a constructor")
        proto = self.get_property(ctor, "prototype")
        obj = JSObject(proto if isinstance(proto, JSObject) else self.object_proto)
        result = self.init_instance(ctor, obj, args)
        if isinstance(result, JSObject):
            return result
        return obj

    def init_instance(self, ctor: JSFunction, obj: JSObject, args: list[object]) -> object:
        """Run ctor's body against an already-allocated instance."""
        if ctor.is_class and ctor.node is None:
            self.init_from_parent(ctor.parent_class, obj, args)
            return UNDEFINED
        return self.invoke(ctor, obj, args)

    def init_from_parent(self, parent: JSObject | None, obj: JSObject, args: list[object]) -> None:
        if isinstance(parent, JSFunction):
            self.init_instance(parent, obj, args)
        elif isinstance(parent, NativeFunction) and parent.construct is not None:
            made = parent.construct(self, args)
            if isinstance(made, JSObject):
                obj.props.update(made.props)

    def make_class(self, node: ClassDecl | ClassExpr, env: _Env) -> JSFunction:
        name = node.id.name if node.id is not None else ""
        parent: object = None
        if node.superclass is not None:
            parent = self.eval_expr(node.superclass, env)
            if not isinstance(parent, (JSFunction, NativeFunction)):
                raise self.throw("TypeError", "Class extends value " + to_display(parent) + " is not a constructor")
        class_env = _Env(env)
        ctor_node: ClassMethod | None = None
        for m in node.body:
            if m.kind == "constructor":
                ctor_node = m
        proto_parent = self.object_proto
        if parent is not None:
            pp = self.get_property(parent, "prototype")
            if isinstance(pp, JSObject):
                proto_parent = pp
        proto = JSObject(proto_parent)
        cls = JSFunction(ctor_node, class_env, name, home=proto, is_class=True)
        cls.parent_class = parent if isinstance(parent, JSObject) else None
        if isinstance(parent, JSObject):
            cls.proto = parent
        cls.props["prototype"] = proto
        proto.props["constructor"] = cls
        for m in node.body:
            if m.kind == "constructor":
                continue
            target: JSObject = cls if m.is_static else proto
            method = self.make_function(m, class_env, home=target)
            target.props[m.key] = method
        if node.id is not None:
            class_env.declare(node.id.name, cls)
        return cls

    # ---- Statements --------------------------------------------------------

    def exec_block(self, stmts: list[Stmt], env: _Env) -> None:
        inner = _Env(env)
        self.hoist(stmts, inner, function_level=False)
        self.exec_body(stmts, inner)

    def exec_stmt(self, st: Stmt, env: _Env) -> object:
        if isinstance(st, ExprStmt):
            return self.eval_expr(st.expr, env)
        if isinstance(st, VarDecl):
            self.exec_var_decl(st, env)
            return UNDEFINED
        if isinstance(st, FnDecl):
            return UNDEFINED
        if isinstance(st, ClassDecl):
            env.declare(st.id.name, self.make_class(st, env))
            return UNDEFINED
        if isinstance(st, ReturnStmt):
            value = self.eval_expr(st.value, env) if st.value is not None else UNDEFINED
            raise _Return(value)
        if isinstance(st, IfStmt):
            if truthy(self.eval_expr(st.test, env)):
                self.exec_stmt(st.consequent, env)
            elif st.alternate is not None:
                self.exec_stmt(st.alternate, env)
            return UNDEFINED
        if isinstance(st, Block):
            self.exec_block(st.body, env)
            return UNDEFINED
        if isinstance(st, WhileStmt):
            while truthy(self.eval_expr(st.test, env)):
                try:
                    self.exec_stmt(st.body, env)
                except _Break:
                    break
                except _Continue:
                    continue
            return UNDEFINED
        if isinstance(st, ForStmt):
            self.exec_for(st, env)
            return UNDEFINED
        if isinstance(st, ForOfStmt):
            self.exec_for_of(st, env)
            return UNDEFINED
        if isinstance(st, BreakStmt):
            raise _Break()
        if isinstance(st, ContinueStmt):
            raise _Continue()
        if isinstance(st, ThrowStmt):
            raise _Throw(self.eval_expr(st.value, env))
        if isinstance(st, TryStmt):
            self.exec_try(st, env)
            return UNDEFINED
        if isinstance(st, EmptyStmt):
            return UNDEFINED
        if isinstance(st, ExportDecl):
            return self.exec_stmt(st.declaration, env)
        if isinstance(st, ExportDefault):
            if isinstance(st.value, FnDecl):
                self.exports["default"] = self.get_var(st.value.id.name, env, st.pos)
            elif isinstance(st.value, ClassDecl):
                self.exec_stmt(st.value, env)
                self.exports["default"] = self.get_var(st.value.id.name, env, st.pos)
            elif isinstance(st.value, Expr):
                self.exports["default"] = self.eval_expr(st.value, env)
            return UNDEFINED
        raise RuntimeFault("unsupported statement " + type(st).__name__, st.pos)

    def exec_var_decl(self, st: VarDecl, env: _Env) -> None:
        for d in st.declarators:
            if st.kind == "var":
                if d.init is not None:
                    self.set_var(d.id.name, self.eval_expr(d.init, env), env)
                continue
            value = self.eval_expr(d.init, env) if d.init is not None else UNDEFINED
            env.declare(d.id.name, value)

    def exec_for(self, st: ForStmt, env: _Env) -> None:
        current = _Env(env)
        if isinstance(st.init, VarDecl):
            self.exec_var_decl(st.init, current)
        elif st.init is not None:
            self.eval_expr(st.init, current)
        while True:
            if st.test is not None and not truthy(self.eval_expr(st.test, current)):
                break
            try:
                self.exec_stmt(st.body, current)
            except _Break:
                break
            except _Continue:
                pass
            # Fresh per-iteration copies of let/const bindings.
            nxt = _Env(env)
            nxt.vars.update(current.vars)
            current = nxt
            if st.update is not None:
                self.eval_expr(st.update, current)

    def exec_for_of(self, st: ForOfStmt, env: _Env) -> None:
        iterable = self.eval_expr(st.right, env)
        if isinstance(iterable, JSArray):
            items = list(iterable.items)
        elif isinstance(iterable, str):
            items = list(iterable)
        else:
            raise self.throw("TypeError", to_display(iterable) + " is not iterable")
        for item in items:
            inner = _Env(env)
            if isinstance(st.left, VarDecl):
                name = st.left.declarators[0].id.name
                if st.left.kind == "var":
                    self.set_var(name, item, env)
                else:
                    inner.declare(name, item)
            else:
                self.assign_to(st.left, item, env)
            try:
                self.exec_stmt(st.body, inner)
            except _Break:
                break
            except _Continue:
                continue

    def exec_try(self, st: TryStmt, env: _Env) -> None:
        try:
            try:
                self.exec_block(st.block.body, env)
            except _Throw as t:
                if st.handler is None:
                    raise
                catch_env = _Env(env)
                if st.handler.param is not None:
                    catch_env.declare(st.handler.param.name, t.value)
                self.exec_block(st.handler.body.body, catch_env)
        finally:
            if st.finalizer is not None:
                self.exec_block(st.finalizer.body, env)

    # ---- Expressions -------------------------------------------------------

    def eval_expr(self, e: Expr, env: _Env) -> object:
        if isinstance(e, NumLit):
            return float(e.value)
        if isinstance(e, StrLit):
            return e.value
        if isinstance(e, BoolLit):
            return e.value
        if isinstance(e, NullLit):
            return None
        if isinstance(e, Identifier):
            return self.get_var(e.name, env, e.pos)
        if isinstance(e, ThisExpr):
            return self.get_var("this", env, e.pos)
        if isinstance(e, ArrayLit):
            return JSArray(self.eval_list(e.elements, env))
        if isinstance(e, ObjectLit):
            return self.eval_object(e, env)
        if isinstance(e, (FnExpr, ArrowFn)):
            return self.make_function(e, env)
        if isinstance(e, ClassExpr):
            return self.make_class(e, env)
        if isinstance(e, Member):
            if isinstance(e.obj, SuperExpr):
                return self.super_property(e.prop, env, e.pos)
            return self.get_property(self.eval_expr(e.obj, env), e.prop)
        if isinstance(e, Index):
            obj = self.eval_expr(e.obj, env)
            key = self.eval_expr(e.index, env)
            return self.get_property(obj, self.property_key(key))
        if isinstance(e, Call):
            return self.eval_call(e, env)
        if isinstance(e, New):
            ctor = self.eval_expr(e.callee, env)
            return self.construct(ctor, self.eval_list(e.args, env))
        if isinstance(e, Unary):
            return self.eval_unary(e, env)
        if isinstance(e, Update):
            old = to_number(self.eval_expr(e.operand, env))
            new = old + 1 if e.op == "++" else old - 1
            self.assign_to(e.operand, new, env)
            return new if e.prefix else old
        if isinstance(e, Binary):
            left = self.eval_expr(e.left, env)
            right = self.eval_expr(e.right, env)
            return self.binary(e.op, left, right)
        if isinstance(e, Logical):
            left = self.eval_expr(e.left, env)
            if e.op == "&&":
                return self.eval_expr(e.right, env) if truthy(left) else left
            if e.op == "||":
                return left if truthy(left) else self.eval_expr(e.right, env)
            return self.eval_expr(e.right, env) if left is None or left is UNDEFINED else left
        if isinstance(e, Conditional):
            if truthy(self.eval_expr(e.test, env)):
                return self.eval_expr(e.then_expr, env)
            return self.eval_expr(e.else_expr, env)
        if isinstance(e, Assign):
            return self.eval_assign(e, env)
        if isinstance(e, Sequence):
            value: object = UNDEFINED
            for sub in e.exprs:
                value = self.eval_expr(sub, env)
            return value
        if isinstance(e, (Yield, Await)):
            raise RuntimeFault(type(e).__name__.lower() + " is not executed", e.pos)
        if isinstance(e, Spread):
            raise RuntimeFault("spread outside a call or literal", e.pos)
        raise RuntimeFault("unsupported expression " + type(e).__name__, e.pos)

    def eval_list(self, exprs: list[Expr], env: _Env) -> list[object]:
        values: list[object] = []
        for x in exprs:
            if isinstance(x, Spread):
                spread = self.eval_expr(x.arg, env)
                if isinstance(spread, JSArray):
                    values.extend(spread.items)
                elif isinstance(spread, str):
                    values.extend(spread)
                else:
                    raise self.throw("TypeError", to_display(spread) + " is not iterable")
            else:
                values.append(self.eval_expr(x, env))
        return values

    def eval_object(self, e: ObjectLit, env: _Env) -> JSObject:
        obj = JSObject(self.object_proto)
        for p in e.properties:
            if isinstance(p, Property):
                obj.props[p.key] = self.eval_expr(p.value, env)
            elif isinstance(p, ObjectMethod):
                obj.props[p.key] = self.make_function(p, env, home=obj)
            elif isinstance(p, Spread):
                src = self.eval_expr(p.arg, env)
                if isinstance(src, JSArray):
                    for i, item in enumerate(src.items):
                        obj.props[str(i)] = item
                elif isinstance(src, JSObject):
                    obj.props.update(src.props)
        return obj

    def eval_call(self, e: Call, env: _Env) -> object:
        callee = e.callee
        if isinstance(callee, SuperExpr):
            return self.super_call(e, env)
        if isinstance(callee, Member):
            if isinstance(callee.obj, SuperExpr):
                this = self.get_var("this", env, e.pos)
                fn = self.super_property(callee.prop, env, e.pos)
            else:
                this = self.eval_expr(callee.obj, env)
                fn = self.get_property(this, callee.prop)
        elif isinstance(callee, Index):
            this = self.eval_expr(callee.obj, env)
            fn = self.get_property(this, self.property_key(self.eval_expr(callee.index, env)))
        else:
            this = UNDEFINED
            fn = self.eval_expr(callee, env)
        args = self.eval_list(e.args, env)
        if isinstance(callee, Identifier) and callee.name == "eval" and fn is self._eval_fn:
            return self.direct_eval(args, env)
        return self.call(fn, this, args, e.pos)

    def super_call(self, e: Call, env: _Env) -> object:
        found = env.find("%fn")
        cls = found.vars["%fn"] if found is not None else None
        if not isinstance(cls, JSFunction) or not cls.is_class:
            raise self.throw("SyntaxError", "'super' keyword unexpected here")
        this = self.get_var("this", env, e.pos)
        args = self.eval_list(e.args, env)
        if isinstance(this, JSObject):
            self.init_from_parent(cls.parent_class, this, args)
        return UNDEFINED

    def super_property(self, prop: str, env: _Env, pos: Pos) -> object:
        found = env.find("%fn")
        fn = found.vars["%fn"] if found is not None else None
        if not isinstance(fn, JSFunction) or fn.home is None:
            raise self.throw("SyntaxError", "'super' keyword unexpected here")
        base = fn.home.proto
        if base is None:
            return UNDEFINED
        _, value = base.lookup(prop)
        return value

    def direct_eval(self, args: list[object], env: _Env) -> object:
        """Evaluate source text in the caller's environment."""
        if not args or not isinstance(args[0], str):
            return args[0] if args else UNDEFINED
        try:
            program = parse(args[0], source_type="script")
        except (ParseError, TokenizeError) as err:
            raise self.throw("SyntaxError", str(err)) from None
        fenv = env.function_env()
        for name in _var_names(program):
            if name not in fenv.vars:
                fenv.declare(name, UNDEFINED)
        self.hoist(program.body, env, function_level=False)
        return self.exec_body(program.body, env, top_level=True)

    def eval_unary(self, e: Unary, env: _Env) -> object:
        if e.op == "typeof":
            if isinstance(e.operand, Identifier) and env.find(e.operand.name) is None:
                return "undefined"
            return type_of(self.eval_expr(e.operand, env))
        if e.op == "delete":
            if isinstance(e.operand, (Member, Index)):
                obj = self.eval_expr(e.operand.obj, env)
                if isinstance(e.operand, Member):
                    key = e.operand.prop
                else:
                    key = self.property_key(self.eval_expr(e.operand.index, env))
                if isinstance(obj, JSObject):
                    obj.props.pop(key, None)
            return True
        value = self.eval_expr(e.operand, env)
        if e.op == "!":
            return not truthy(value)
        if e.op == "-":
            return -to_number(value)
        if e.op == "+":
            return to_number(value)
        if e.op == "~":
            return float(~_to_int32(value))
        if e.op == "void":
            return UNDEFINED
        raise RuntimeFault("unknown unary operator " + e.op, e.pos)

    def eval_assign(self, e: Assign, env: _Env) -> object:
        if e.op == "=":
            value = self.eval_expr(e.value, env)
            self.assign_to(e.target, value, env)
            return value
        current = self.eval_expr(e.target, env)
        if e.op == "&&=":
            if not truthy(current):
                return current
            value = self.eval_expr(e.value, env)
        elif e.op == "||=":
            if truthy(current):
                return current
            value = self.eval_expr(e.value, env)
        elif e.op == "??=":
            if current is not None and current is not UNDEFINED:
                return current
            value = self.eval_expr(e.value, env)
        else:
            value = self.binary(e.op[:-1], current, self.eval_expr(e.value, env))
        self.assign_to(e.target, value, env)
        return value

    def assign_to(self, target: Expr, value: object, env: _Env) -> None:
        if isinstance(target, Identifier):
            self.set_var(target.name, value, env)
        elif isinstance(target, Member):
            self.set_property(self.eval_expr(target.obj, env), target.prop, value)
        elif isinstance(target, Index):
            obj = self.eval_expr(target.obj, env)
            key = self.property_key(self.eval_expr(target.index, env))
            self.set_property(obj, key, value)
        else:
            raise RuntimeFault("invalid assignment target", target.pos)

    # ---- Operators ---------------------------------------------------------

    def binary(self, op: str, left: object, right: object) -> object:
        if op == "+":
            if isinstance(left, JSObject):
                left = to_string(left)
            if isinstance(right, JSObject):
                right = to_string(right)
            if isinstance(left, str) or isinstance(right, str):
                return to_string(left) + to_string(right)
            return to_number(left) + to_number(right)
        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        if op == "==":
            return loose_equals(left, right)
        if op == "!=":
            return not loose_equals(left, right)
        if op in ("<", ">", "<=", ">="):
            if isinstance(left, str) and isinstance(right, str):
                a: object = left
                b: object = right
            else:
                a = to_number(left)
                b = to_number(right)
                if math.isnan(a) or math.isnan(b):
                    return False
            if op == "<":
                return a < b
            if op == ">":
                return a > b
            if op == "<=":
                return a <= b
            return a >= b
        if op == "instanceof":
            return self.instance_of(left, right)
        if op == "in":
            if not isinstance(right, JSObject):
                raise self.throw("TypeError", "cannot use 'in' on " + to_display(right))
            key = self.property_key(left)
            if isinstance(right, JSArray) and key.isdigit():
                return int(key) < len(right.items)
            found, _ = right.lookup(key)
            return found
        a_num = to_number(left)
        b_num = to_number(right)
        if op == "-":
            return a_num - b_num
        if op == "*":
            return a_num * b_num
        if op == "/":
            if b_num == 0:
                if a_num == 0 or math.isnan(a_num):
                    return math.nan
                return math.copysign(math.inf, a_num) * math.copysign(1, b_num)
            return a_num / b_num
        if op == "%":
            if b_num == 0 or math.isinf(a_num) or math.isnan(a_num) or math.isnan(b_num):
                return math.nan
            return math.fmod(a_num, b_num)
        if op == "**":
            try:
                return a_num**b_num
            except OverflowError:
                return math.inf
        if op == "&":
            return float(_to_int32(left) & _to_int32(right))
        if op == "|":
            return float(_to_int32(left) | _to_int32(right))
        if op == "^":
            return float(_to_int32(left) ^ _to_int32(right))
        if op == "<<":
            return float(_to_int32(_to_int32(left) << (_to_int32(right) & 31)))
        if op == ">>":
            return float(_to_int32(left) >> (_to_int32(right) & 31))
        if op == ">>>":
            return float((_to_int32(left) & 0xFFFFFFFF) >> (_to_int32(right) & 31))
        raise RuntimeFault("unknown binary operator " + op)

    def instance_of(self, value: object, ctor: object) -> bool:
        if not isinstance(ctor, (JSFunction, NativeFunction)):
            raise self.throw("TypeError", "right-hand side of 'instanceof' is not callable")
        if not isinstance(value, JSObject):
            return False
        proto = self.get_property(ctor, "prototype")
        obj = value.proto
        while obj is not None:
            if obj is proto:
                return True
            obj = obj.proto
        return False

    # ---- Properties --------------------------------------------------------

    def property_key(self, key: object) -> str:
        return to_string(key)

    def get_property(self, obj: object, key: str) -> object:
        if obj is UNDEFINED or obj is None:
            raise self.throw("TypeError", "Cannot read properties of " + to_string(obj) + " (reading '" + key + "')")
        if isinstance(obj, JSArray):
            if key == "length":
                return float(len(obj.items))
            if key.isdigit():
                i = int(key)
                return obj.items[i] if i < len(obj.items) else UNDEFINED
            if key in obj.props:
                return obj.props[key]
            return self.array_methods.get(key, UNDEFINED)
        if isinstance(obj, str):
            if key == "length":
                return float(len(obj))
            if key.isdigit():
                i = int(key)
                return obj[i] if i < len(obj) else UNDEFINED
            return self.string_methods.get(key, UNDEFINED)
        if isinstance(obj, (JSFunction, NativeFunction)):
            found, value = obj.lookup(key)
            if found:
                return value
            if key == "prototype" and isinstance(obj, JSFunction) and not obj.is_arrow:
                proto = JSObject(self.object_proto)
                proto.props["constructor"] = obj
                obj.props["prototype"] = proto
                return proto
            if key == "name":
                return obj.name
            return self.function_methods.get(key, UNDEFINED)
        if isinstance(obj, JSObject):
            _, value = obj.lookup(key)
            return value
        return UNDEFINED

    def set_property(self, obj: object, key: str, value: object) -> None:
        if isinstance(obj, JSArray):
            if key.isdigit():
                i = int(key)
                while len(obj.items) <= i:
                    obj.items.append(UNDEFINED)
                obj.items[i] = value
                return
            if key == "length":
                del obj.items[int(to_number(value)) :]
                return
        if isinstance(obj, JSObject):
            obj.props[key] = value
            return
        if obj is UNDEFINED or obj is None:
            raise self.throw("TypeError", "Cannot set properties of " + to_string(obj) + " (setting '" + key + "')")

    # ---- Globals -----------------------------------------------------------

    def _install_globals(self) -> None:
        g = self.globals
        g.declare("this", UNDEFINED)
        g.declare("undefined", UNDEFINED)
        g.declare("NaN", math.nan)
        g.declare("Infinity", math.inf)
        self._eval_fn = NativeFunction("eval", _bi_indirect_eval)
        g.declare("eval", self._eval_fn)

        console = JSObject(self.object_proto)
        console.props["log"] = NativeFunction("log", _bi_console_log)
        g.declare("console", console)

        math_obj = JSObject(self.object_proto)
        math_obj.props["PI"] = math.pi
        for name, impl in _MATH_FUNCS.items():
            math_obj.props[name] = NativeFunction(name, impl)
        g.declare("Math", math_obj)

        object_ctor = NativeFunction("Object", _bi_object, _bi_new_object)
        object_ctor.props["prototype"] = self.object_proto
        object_ctor.props["keys"] = NativeFunction("keys", _bi_object_keys)
        g.declare("Object", object_ctor)

        array_ctor = NativeFunction("Array", _bi_array, _bi_new_array)
        array_ctor.props["isArray"] = NativeFunction("isArray", _bi_is_array)
        g.declare("Array", array_ctor)

        g.declare("String", NativeFunction("String", _bi_string))
        g.declare("Number", NativeFunction("Number", _bi_number))
        g.declare("Boolean", NativeFunction("Boolean", _bi_boolean))
        g.declare("parseInt", NativeFunction("parseInt", _bi_parse_int))

        for name in ("Error", "TypeError", "ReferenceError", "RangeError", "SyntaxError"):
            ctor = NativeFunction(name, _error_factory(name), _error_constructor(name))
            ctor.props["prototype"] = self.error_proto
            g.declare(name, ctor)

        self.array_methods = {n: NativeFunction(n, f) for n, f in _ARRAY_METHODS.items()}
        self.string_methods = {n: NativeFunction(n, f) for n, f in _STRING_METHODS.items()}
        self.function_methods = {n: NativeFunction(n, f) for n, f in _FUNCTION_METHODS.items()}


# ============================================================
# Builtins
# ============================================================


def _arg(args: list[object], i: int) -> object:
    return args[i] if i < len(args) else UNDEFINED


def _bi_console_log(rt: Interpreter, this: object, args: list[object]) -> object:
    rt.output.append(" ".join(_log_string(a) for a in args))
    return UNDEFINED


def _bi_indirect_eval(rt: Interpreter, this: object, args: list[object]) -> object:
    return rt.direct_eval(args, _Env(rt.globals, function_level=True))


def _math_unary(f: Callable[[float], float]) -> Callable[[Interpreter, object, list[object]], object]:
    def impl(rt: Interpreter, this: object, args: list[object]) -> object:
        x = to_number(_arg(args, 0))
        if math.isnan(x) or math.isinf(x):
            return x
        return float(f(x))

    return impl


def _bi_math_max(rt: Interpreter, this: object, args: list[object]) -> object:
    nums = [to_number(a) for a in args]
    if any(math.isnan(n) for n in nums):
        return math.nan
    return max(nums) if nums else -math.inf


def _bi_math_min(rt: Interpreter, this: object, args: list[object]) -> object:
    nums = [to_number(a) for a in args]
    if any(math.isnan(n) for n in nums):
        return math.nan
    return min(nums) if nums else math.inf


def _bi_math_sqrt(rt: Interpreter, this: object, args: list[object]) -> object:
    x = to_number(_arg(args, 0))
    return math.sqrt(x) if x >= 0 else math.nan


_MATH_FUNCS: dict[str, Callable[[Interpreter, object, list[object]], object]] = {
    "floor": _math_unary(math.floor),
    "ceil": _math_unary(math.ceil),
    "abs": _math_unary(abs),
    "round": _math_unary(lambda x: math.floor(x + 0.5)),
    "max": _bi_math_max,
    "min": _bi_math_min,
    "sqrt": _bi_math_sqrt,
}


def _bi_object(rt: Interpreter, this: object, args: list[object]) -> object:
    value = _arg(args, 0)
    return value if isinstance(value, JSObject) else JSObject(rt.object_proto)


def _bi_new_object(rt: Interpreter, args: list[object]) -> object:
    return _bi_object(rt, UNDEFINED, args)


def _bi_object_keys(rt: Interpreter, this: object, args: list[object]) -> object:
    obj = _arg(args, 0)
    if isinstance(obj, JSArray):
        return JSArray([str(i) for i in range(len(obj.items))])
    if isinstance(obj, JSObject):
        return JSArray(list(obj.props.keys()))
    if isinstance(obj, str):
        return JSArray([str(i) for i in range(len(obj))])
    raise rt.throw("TypeError", "Cannot convert " + to_string(obj) + " to object")


def _bi_array(rt: Interpreter, this: object, args: list[object]) -> object:
    return JSArray(list(args))


def _bi_new_array(rt: Interpreter, args: list[object]) -> object:
    return JSArray(list(args))


def _bi_is_array(rt: Interpreter, this: object, args: list[object]) -> object:
    return isinstance(_arg(args, 0), JSArray)


def _bi_string(rt: Interpreter, this: object, args: list[object]) -> object:
    return to_string(_arg(args, 0)) if args else ""


def _bi_number(rt: Interpreter, this: object, args: list[object]) -> object:
    return to_number(_arg(args, 0)) if args else 0.0


def _bi_boolean(rt: Interpreter, this: object, args: list[object]) -> object:
    return truthy(_arg(args, 0))


def _bi_parse_int(rt: Interpreter, this: object, args: list[object]) -> object:
    text = to_string(_arg(args, 0)).strip()
    digits = ""
    for i, c in enumerate(text):
        if c.isdigit() or (i == 0 and c in "+-"):
            digits += c
        else:
            break
    try:
        return float(int(digits))
    except ValueError:
        return math.nan


def _error_factory(name: str) -> Callable[[Interpreter, object, list[object]], object]:
    def impl(rt: Interpreter, this: object, args: list[object]) -> object:
        message = _arg(args, 0)
        return rt.make_error(name, "" if message is UNDEFINED else to_string(message))

    return impl


def _error_constructor(name: str) -> Callable[[Interpreter, list[object]], object]:
    def construct(rt: Interpreter, args: list[object]) -> object:
        message = _arg(args, 0)
        return rt.make_error(name, "" if message is UNDEFINED else to_string(message))

    return construct


def _this_array(rt: Interpreter, this: object, method: str) -> JSArray:
    if not isinstance(this, JSArray):
        raise rt.throw("TypeError", "Array.prototype." + method + " called on non-array")
    return this


def _bi_push(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "push")
    arr.items.extend(args)
    return float(len(arr.items))


def _bi_pop(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "pop")
    return arr.items.pop() if arr.items else UNDEFINED


def _bi_map(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "map")
    fn = _arg(args, 0)
    return JSArray([rt.call(fn, UNDEFINED, [x, float(i), arr]) for i, x in enumerate(list(arr.items))])


def _bi_filter(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "filter")
    fn = _arg(args, 0)
    return JSArray(
        [x for i, x in enumerate(list(arr.items)) if truthy(rt.call(fn, UNDEFINED, [x, float(i), arr]))]
    )


def _bi_for_each(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "forEach")
    fn = _arg(args, 0)
    for i, x in enumerate(list(arr.items)):
        rt.call(fn, UNDEFINED, [x, float(i), arr])
    return UNDEFINED


def _bi_reduce(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "reduce")
    fn = _arg(args, 0)
    items = list(arr.items)
    if len(args) > 1:
        acc = args[1]
        start = 0
    else:
        if not items:
            raise rt.throw("TypeError", "Reduce of empty array with no initial value")
        acc = items[0]
        start = 1
    for i in range(start, len(items)):
        acc = rt.call(fn, UNDEFINED, [acc, items[i], float(i), arr])
    return acc


def _bi_join(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "join")
    sep = "," if _arg(args, 0) is UNDEFINED else to_string(args[0])
    return sep.join("" if x is UNDEFINED or x is None else to_string(x) for x in arr.items)


def _bi_array_index_of(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "indexOf")
    target = _arg(args, 0)
    for i, x in enumerate(arr.items):
        if strict_equals(x, target):
            return float(i)
    return -1.0


def _bi_array_includes(rt: Interpreter, this: object, args: list[object]) -> object:
    return _bi_array_index_of(rt, this, args) != -1.0


def _slice_bounds(length: int, args: list[object]) -> tuple[int, int]:
    def norm(v: object, default: int) -> int:
        if v is UNDEFINED:
            return default
        n = int(to_number(v))
        if n < 0:
            n += length
        return max(0, min(n, length))

    return norm(_arg(args, 0), 0), norm(_arg(args, 1), length)


def _bi_array_slice(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "slice")
    lo, hi = _slice_bounds(len(arr.items), args)
    return JSArray(arr.items[lo:hi])


def _bi_concat(rt: Interpreter, this: object, args: list[object]) -> object:
    arr = _this_array(rt, this, "concat")
    items = list(arr.items)
    for a in args:
        if isinstance(a, JSArray):
            items.extend(a.items)
        else:
            items.append(a)
    return JSArray(items)


_ARRAY_METHODS: dict[str, Callable[[Interpreter, object, list[object]], object]] = {
    "push": _bi_push,
    "pop": _bi_pop,
    "map": _bi_map,
    "filter": _bi_filter,
    "forEach": _bi_for_each,
    "reduce": _bi_reduce,
    "join": _bi_join,
    "indexOf": _bi_array_index_of,
    "includes": _bi_array_includes,
    "slice": _bi_array_slice,
    "concat": _bi_concat,
}


def _this_string(rt: Interpreter, this: object) -> str:
    if not isinstance(this, str):
        raise rt.throw("TypeError", "String.prototype method called on non-string")
    return this


def _bi_upper(rt: Interpreter, this: object, args: list[object]) -> object:
    return _this_string(rt, this).upper()


def _bi_lower(rt: Interpreter, this: object, args: list[object]) -> object:
    return _this_string(rt, this).lower()


def _bi_string_index_of(rt: Interpreter, this: object, args: list[object]) -> object:
    return float(_this_string(rt, this).find(to_string(_arg(args, 0))))


def _bi_string_includes(rt: Interpreter, this: object, args: list[object]) -> object:
    return to_string(_arg(args, 0)) in _this_string(rt, this)


def _bi_string_slice(rt: Interpreter, this: object, args: list[object]) -> object:
    s = _this_string(rt, this)
    lo, hi = _slice_bounds(len(s), args)
    return s[lo:hi]


def _bi_split(rt: Interpreter, this: object, args: list[object]) -> object:
    s = _this_string(rt, this)
    sep = _arg(args, 0)
    if sep is UNDEFINED:
        return JSArray([s])
    sep_str = to_string(sep)
    if sep_str == "":
        return JSArray(list(s))
    return JSArray(list(s.split(sep_str)))


def _bi_char_at(rt: Interpreter, this: object, args: list[object]) -> object:
    s = _this_string(rt, this)
    i = int(to_number(_arg(args, 0))) if args else 0
    return s[i] if 0 <= i < len(s) else ""


def _bi_trim(rt: Interpreter, this: object, args: list[object]) -> object:
    return _this_string(rt, this).strip()


_STRING_METHODS: dict[str, Callable[[Interpreter, object, list[object]], object]] = {
    "toUpperCase": _bi_upper,
    "toLowerCase": _bi_lower,
    "indexOf": _bi_string_index_of,
    "includes": _bi_string_includes,
    "slice": _bi_string_slice,
    "split": _bi_split,
    "charAt": _bi_char_at,
    "trim": _bi_trim,
}


def _bi_call(rt: Interpreter, this: object, args: list[object]) -> object:
    return rt.call(this, _arg(args, 0), list(args[1:]))


def _bi_apply(rt: Interpreter, this: object, args: list[object]) -> object:
    arg_list = _arg(args, 1)
    items = list(arg_list.items) if isinstance(arg_list, JSArray) else []
    return rt.call(this, _arg(args, 0), items)


def _bi_bind(rt: Interpreter, this: object, args: list[object]) -> object:
    target = this
    bound_this = _arg(args, 0)
    bound_args = list(args[1:])

    def impl(rt2: Interpreter, _this: object, more: list[object]) -> object:
        return rt2.call(target, bound_this, bound_args + more)

    name = target.name if isinstance(target, (JSFunction, NativeFunction)) else ""
    return NativeFunction("bound " + name, impl)


_FUNCTION_METHODS: dict[str, Callable[[Interpreter, object, list[object]], object]] = {
    "call": _bi_call,
    "apply": _bi_apply,
    "bind": _bi_bind,
}
