"""JavaScript backend: AST → JavaScript source.

Output is deterministic: four-space indentation, explicit semicolons,
braces on every compound statement body, and only the parentheses the
precedence table requires.
"""

from __future__ import annotations

import re

from ..frontend.ast import (
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
    NullLit,
    NumLit,
    ObjectLit,
    ObjectMethod,
    Param,
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
)

INDENT = "    "

PREC_SEQUENCE = 1
PREC_ASSIGN = 2
PREC_CONDITIONAL = 3
PREC_UNARY = 15
PREC_POSTFIX = 16
PREC_CALL = 17
PREC_PRIMARY = 18

_NEEDS_STMT_PARENS = re.compile(r"^(/\* @generated \*/ )?(\{|function\b|class\b|async\s+function\b|let\s*\[)")


def emit(program: Program) -> str:
    """Print a Program as JavaScript source."""
    return JavaScriptBackend().emit(program)


class JavaScriptBackend:
    """Source printer for the JavaScript subset."""

    def __init__(self) -> None:
        self.indent = 0
        self.lines: list[str] = []

    def emit(self, program: Program) -> str:
        self.indent = 0
        self.lines = []
        if program.annotations.get("generated"):
            self._line("// @generated")
        if program.annotations.get("compact"):
            self._line("// @compact")
        for stmt in program.body:
            self._emit_stmt(stmt)
        return "\n".join(self.lines) + "\n"

    def _line(self, text: str = "") -> None:
        if text:
            self.lines.append(INDENT * self.indent + text)
        else:
            self.lines.append("")

    def _prefix_last_emitted(self, start: int, prefix: str) -> None:
        """Prepend prefix to the first line emitted since start."""
        pad = INDENT * self.indent
        self.lines[start] = pad + prefix + self.lines[start][len(pad) :]

    # --- Statements ---

    def _emit_stmt(self, stmt: Stmt) -> None:
        match stmt:
            case ExprStmt(expr=expr):
                text = self._expr(expr, 0)
                if _NEEDS_STMT_PARENS.match(text):
                    text = "(" + text + ")"
                self._line(text + ";")
            case VarDecl():
                self._line(self._var_decl_inline(stmt) + ";")
            case FnDecl():
                self._line(self._fn_head(stmt) + " " + self._body(stmt.body))
            case ClassDecl():
                self._line(self._class(stmt.id, stmt.superclass, stmt.body))
            case Block(body=body):
                if not body:
                    self._line("{}")
                    return
                self._line("{")
                self._emit_block_body(body)
                self._line("}")
            case ReturnStmt(value=value):
                if value is None:
                    self._line("return;")
                else:
                    self._line("return " + self._expr(value, 0) + ";")
            case IfStmt():
                self._line(self._if_text(stmt))
            case ForStmt(init=init, test=test, update=update, body=body):
                init_str = ""
                if isinstance(init, VarDecl):
                    init_str = self._var_decl_inline(init)
                elif init is not None:
                    init_str = self._expr(init, 0)
                test_str = " " + self._expr(test, 0) if test is not None else ""
                update_str = " " + self._expr(update, 0) if update is not None else ""
                self._line(f"for ({init_str};{test_str};{update_str}) " + self._stmt_body(body))
            case ForOfStmt(left=left, right=right, body=body):
                if isinstance(left, VarDecl):
                    left_str = self._var_decl_inline(left)
                else:
                    left_str = self._expr(left, PREC_CALL)
                right_str = self._expr(right, PREC_ASSIGN)
                self._line(f"for ({left_str} of {right_str}) " + self._stmt_body(body))
            case WhileStmt(test=test, body=body):
                self._line(f"while ({self._expr(test, 0)}) " + self._stmt_body(body))
            case BreakStmt():
                self._line("break;")
            case ContinueStmt():
                self._line("continue;")
            case ThrowStmt(value=value):
                self._line("throw " + self._expr(value, 0) + ";")
            case TryStmt(block=block, handler=handler, finalizer=finalizer):
                text = "try " + self._body(block)
                if handler is not None:
                    if handler.param is None:
                        text += " catch " + self._body(handler.body)
                    else:
                        text += f" catch ({handler.param.name}) " + self._body(handler.body)
                if finalizer is not None:
                    text += " finally " + self._body(finalizer)
                self._line(text)
            case EmptyStmt():
                self._line(";")
            case ExportDecl(declaration=declaration):
                start = len(self.lines)
                self._emit_stmt(declaration)
                self._prefix_last_emitted(start, "export ")
            case ExportDefault(value=value):
                if isinstance(value, (FnDecl, ClassDecl)):
                    start = len(self.lines)
                    self._emit_stmt(value)
                    self._prefix_last_emitted(start, "export default ")
                elif isinstance(value, Expr):
                    self._line("export default " + self._expr(value, PREC_ASSIGN) + ";")
            case _:
                raise NotImplementedError("cannot print " + type(stmt).__name__)

    def _emit_block_body(self, body: list[Stmt]) -> None:
        self.indent += 1
        for s in body:
            self._emit_stmt(s)
        self.indent -= 1

    def _if_text(self, stmt: IfStmt) -> str:
        text = f"if ({self._expr(stmt.test, 0)}) " + self._stmt_body(stmt.consequent)
        alt = stmt.alternate
        if alt is None:
            return text
        if isinstance(alt, IfStmt):
            return text + " else " + self._if_text(alt)
        return text + " else " + self._stmt_body(alt)

    def _stmt_body(self, body: Stmt) -> str:
        """Render a compound statement body, always braced."""
        if isinstance(body, Block):
            return self._body(body)
        return self._render_block([body])

    def _body(self, block: Block) -> str:
        return self._render_block(block.body)

    def _render_block(self, stmts: list[Stmt]) -> str:
        """Render `{ ... }` as a string whose inner lines carry full indentation."""
        if not stmts:
            return "{}"
        saved = self.lines
        self.lines = []
        self._emit_block_body(stmts)
        inner = self.lines
        self.lines = saved
        return "{\n" + "\n".join(inner) + "\n" + INDENT * self.indent + "}"

    def _var_decl_inline(self, decl: VarDecl) -> str:
        parts: list[str] = []
        for d in decl.declarators:
            if d.init is None:
                parts.append(d.id.name)
            else:
                parts.append(d.id.name + " = " + self._expr(d.init, PREC_ASSIGN))
        return decl.kind + " " + ", ".join(parts)

    # --- Functions and classes ---

    def _fn_head(self, fn: Function) -> str:
        head = ""
        if fn.annotations.get("generated"):
            head += "/* @generated */ "
        if fn.is_async:
            head += "async "
        head += "function"
        if fn.is_generator:
            head += "*"
        if fn.id is not None:
            head += " " + fn.id.name
        elif not fn.is_generator:
            head += " "
        return head + "(" + self._params(fn.params) + ")"

    def _params(self, params: list[Param]) -> str:
        parts: list[str] = []
        for p in params:
            if p.rest:
                parts.append("..." + p.name.name)
            elif p.default is not None:
                parts.append(p.name.name + " = " + self._expr(p.default, PREC_ASSIGN))
            else:
                parts.append(p.name.name)
        return ", ".join(parts)

    def _method(self, m: ClassMethod | ObjectMethod) -> str:
        head = ""
        if m.annotations.get("generated"):
            head += "/* @generated */ "
        if isinstance(m, ClassMethod) and m.is_static:
            head += "static "
        if m.is_async:
            head += "async "
        if m.is_generator:
            head += "*"
        quoted = m.quoted if isinstance(m, ObjectMethod) else not _is_identifier(m.key)
        head += _property_key(m.key, quoted)
        body = m.body if isinstance(m.body, Block) else Block(m.pos, [ReturnStmt(m.pos, m.body)])
        return head + "(" + self._params(m.params) + ") " + self._body(body)

    def _class(self, ident: Identifier | None, superclass: Expr | None, body: list[ClassMethod]) -> str:
        head = "class"
        if ident is not None:
            head += " " + ident.name
        if superclass is not None:
            head += " extends " + self._expr(superclass, PREC_CALL)
        if not body:
            return head + " {}"
        self.indent += 1
        members = [INDENT * self.indent + self._method(m) for m in body]
        self.indent -= 1
        return head + " {\n" + "\n".join(members) + "\n" + INDENT * self.indent + "}"

    def _arrow(self, fn: ArrowFn) -> str:
        head = "async " if fn.is_async else ""
        head += "(" + self._params(fn.params) + ") => "
        if isinstance(fn.body, Block):
            return head + self._body(fn.body)
        body = self._expr(fn.body, PREC_ASSIGN)
        if body.startswith("{"):
            body = "(" + body + ")"
        return head + body

    # --- Expressions ---

    def _expr(self, expr: Expr, min_prec: int) -> str:
        """Render expr, parenthesized if it binds looser than min_prec."""
        text, prec = self._expr_prec(expr)
        if prec < min_prec:
            return "(" + text + ")"
        return text

    def _expr_prec(self, expr: Expr) -> tuple[str, int]:
        match expr:
            case Identifier(name=name):
                return name, PREC_PRIMARY
            case NumLit(raw=raw):
                return raw, PREC_PRIMARY
            case StrLit(value=value):
                return _quote(value), PREC_PRIMARY
            case BoolLit(value=value):
                return ("true" if value else "false"), PREC_PRIMARY
            case NullLit():
                return "null", PREC_PRIMARY
            case ThisExpr():
                return "this", PREC_PRIMARY
            case SuperExpr():
                return "super", PREC_PRIMARY
            case ArrayLit(elements=elements):
                return "[" + ", ".join(self._expr(e, PREC_ASSIGN) for e in elements) + "]", PREC_PRIMARY
            case ObjectLit():
                return self._object(expr), PREC_PRIMARY
            case FnExpr():
                return self._fn_head(expr) + " " + self._body(expr.body), PREC_PRIMARY
            case ArrowFn():
                return self._arrow(expr), PREC_ASSIGN
            case ClassExpr(id=ident, superclass=superclass, body=body):
                return self._class(ident, superclass, body), PREC_PRIMARY
            case Member(obj=obj, prop=prop):
                obj_str = self._expr(obj, PREC_CALL)
                if isinstance(obj, NumLit) and _is_integer_literal(obj.raw):
                    obj_str = "(" + obj_str + ")"
                return obj_str + "." + prop, PREC_CALL
            case Index(obj=obj, index=index):
                return self._expr(obj, PREC_CALL) + "[" + self._expr(index, 0) + "]", PREC_CALL
            case Call(callee=callee, args=args):
                return self._expr(callee, PREC_CALL) + "(" + self._args(args) + ")", PREC_CALL
            case New(callee=callee, args=args):
                callee_str = self._expr(callee, PREC_CALL)
                if _contains_call_head(callee):
                    callee_str = "(" + callee_str + ")"
                return "new " + callee_str + "(" + self._args(args) + ")", PREC_CALL
            case Spread(arg=arg):
                return "..." + self._expr(arg, PREC_ASSIGN), PREC_ASSIGN
            case Unary(op=op, operand=operand):
                operand_str = self._expr(operand, PREC_UNARY)
                if op.isalpha():
                    return op + " " + operand_str, PREC_UNARY
                if op in ("+", "-") and operand_str.startswith(op):
                    return op + " " + operand_str, PREC_UNARY
                return op + operand_str, PREC_UNARY
            case Update(op=op, prefix=prefix, operand=operand):
                if prefix:
                    return op + self._expr(operand, PREC_UNARY), PREC_UNARY
                return self._expr(operand, PREC_CALL) + op, PREC_POSTFIX
            case Await(arg=arg):
                return "await " + self._expr(arg, PREC_UNARY), PREC_UNARY
            case Binary(op=op, left=left, right=right) | Logical(op=op, left=left, right=right):
                return self._binary(op, left, right), _op_precedence(op)
            case Conditional(test=test, then_expr=then_expr, else_expr=else_expr):
                test_str = self._expr(test, PREC_CONDITIONAL + 1)
                then_str = self._expr(then_expr, PREC_ASSIGN)
                else_str = self._expr(else_expr, PREC_ASSIGN)
                return f"{test_str} ? {then_str} : {else_str}", PREC_CONDITIONAL
            case Assign(op=op, target=target, value=value):
                return f"{self._expr(target, PREC_CALL)} {op} {self._expr(value, PREC_ASSIGN)}", PREC_ASSIGN
            case Yield(arg=arg, delegate=delegate):
                keyword = "yield*" if delegate else "yield"
                if arg is None:
                    return keyword, PREC_ASSIGN
                return keyword + " " + self._expr(arg, PREC_ASSIGN), PREC_ASSIGN
            case Sequence(exprs=exprs):
                return ", ".join(self._expr(e, PREC_ASSIGN) for e in exprs), PREC_SEQUENCE
            case _:
                raise NotImplementedError("cannot print " + type(expr).__name__)

    def _binary(self, op: str, left: Expr, right: Expr) -> str:
        prec = _op_precedence(op)
        if op == "**":
            left_str = self._expr(left, PREC_POSTFIX)
            right_str = self._expr(right, prec)
        else:
            left_str = self._expr(left, prec)
            right_str = self._expr(right, prec + 1)
        # `??` cannot mix with `||`/`&&` without parentheses.
        if _mixes_nullish(op, left) and not left_str.startswith("("):
            left_str = "(" + left_str + ")"
        if _mixes_nullish(op, right) and not right_str.startswith("("):
            right_str = "(" + right_str + ")"
        return f"{left_str} {op} {right_str}"

    def _args(self, args: list[Expr]) -> str:
        return ", ".join(self._expr(a, PREC_ASSIGN) for a in args)

    def _object(self, obj: ObjectLit) -> str:
        if not obj.properties:
            return "{}"
        multiline = any(
            isinstance(p, ObjectMethod)
            or (isinstance(p, Property) and isinstance(p.value, (Function, ClassExpr)))
            for p in obj.properties
        )
        if not multiline:
            return "{ " + ", ".join(self._member(p) for p in obj.properties) + " }"
        self.indent += 1
        members = [INDENT * self.indent + self._member(p) for p in obj.properties]
        self.indent -= 1
        return "{\n" + ",\n".join(members) + "\n" + INDENT * self.indent + "}"

    def _member(self, p: Property | ObjectMethod | Spread) -> str:
        if isinstance(p, ObjectMethod):
            return self._method(p)
        if isinstance(p, Spread):
            return "..." + self._expr(p.arg, PREC_ASSIGN)
        if p.shorthand and isinstance(p.value, Identifier) and p.value.name == p.key:
            return p.key
        return _property_key(p.key, p.quoted) + ": " + self._expr(p.value, PREC_ASSIGN)


def _op_precedence(op: str) -> int:
    """Return precedence level for binary operator (higher = binds tighter)."""
    match op:
        case "??" | "||":
            return 4
        case "&&":
            return 5
        case "|":
            return 6
        case "^":
            return 7
        case "&":
            return 8
        case "==" | "!=" | "===" | "!==":
            return 9
        case "<" | ">" | "<=" | ">=" | "instanceof" | "in":
            return 10
        case "<<" | ">>" | ">>>":
            return 11
        case "+" | "-":
            return 12
        case "*" | "/" | "%":
            return 13
        case _:
            return 14


def _mixes_nullish(op: str, child: Expr) -> bool:
    if not isinstance(child, Logical):
        return False
    if op == "??":
        return child.op != "??"
    return op in ("||", "&&") and child.op == "??"


def _contains_call_head(expr: Expr) -> bool:
    """True if a call sits at the head of a member chain (needs parens after `new`)."""
    while isinstance(expr, (Member, Index)):
        expr = expr.obj
    return isinstance(expr, Call)


def _is_identifier(name: str) -> bool:
    return re.fullmatch(r"[A-Za-z_$][A-Za-z0-9_$]*", name) is not None


def _is_integer_literal(raw: str) -> bool:
    return raw.isdigit()


def _property_key(key: str, quoted: bool) -> str:
    return _quote(key) if quoted else key


def _quote(value: str) -> str:
    out = ['"']
    for c in value:
        if c == '"':
            out.append('\\"')
        elif c == "\\":
            out.append("\\\\")
        elif c == "\n":
            out.append("\\n")
        elif c == "\r":
            out.append("\\r")
        elif c == "\t":
            out.append("\\t")
        elif ord(c) < 0x20:
            out.append("\\x%02x" % ord(c))
        else:
            out.append(c)
    out.append('"')
    return "".join(out)
