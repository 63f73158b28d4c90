"""JavaScript parser: recursive descent, one method per grammar production."""

from __future__ import annotations

from .ast import (
    ArrayLit,
    ArrowFn,
    Assign,
    Await,
    Binary,
    Block,
    BoolLit,
    BreakStmt,
    Call,
    CatchClause,
    ClassDecl,
    ClassExpr,
    ClassMethod,
    Conditional,
    ContinueStmt,
    Declarator,
    EmptyStmt,
    ExportDecl,
    ExportDefault,
    Expr,
    ExprStmt,
    FnDecl,
    FnExpr,
    ForOfStmt,
    ForStmt,
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
    Param,
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
)
from .tokens import TK_EOF, TK_IDENT, TK_NUM, TK_OP, TK_STRING, Token, tokenize

ASSIGN_OPS: set[str] = {
    "=",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "**=",
    "<<=",
    ">>=",
    ">>>=",
    "&=",
    "|=",
    "^=",
    "&&=",
    "||=",
    "??=",
}

# Binary operator precedence (higher binds tighter). Logical operators are
# listed here too and split into Logical nodes when built.
BINARY_PREC: dict[str, int] = {
    "??": 1,
    "||": 2,
    "&&": 3,
    "|": 4,
    "^": 5,
    "&": 6,
    "==": 7,
    "!=": 7,
    "===": 7,
    "!==": 7,
    "<": 8,
    ">": 8,
    "<=": 8,
    ">=": 8,
    "instanceof": 8,
    "in": 8,
    "<<": 9,
    ">>": 9,
    ">>>": 9,
    "+": 10,
    "-": 10,
    "*": 11,
    "/": 11,
    "%": 11,
}

LOGICAL_OPS: set[str] = {"&&", "||", "??"}

UNARY_OPS: set[str] = {"!", "-", "+", "~", "typeof", "void", "delete"}

GENERATED_MARKER = "@generated"
COMPACT_MARKER = "@compact"


class ParseError(Exception):
    """Parse error with location info."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


def _extract_pragmas(source: str) -> tuple[bool, bool]:
    """Scan leading comment lines for pragmas. Returns (generated, compact)."""
    generated = False
    compact = False
    for line in source.split("\n"):
        stripped = line.strip()
        if stripped == "":
            continue
        if not stripped.startswith("//"):
            break
        body = stripped[2:].strip()
        if body == GENERATED_MARKER:
            generated = True
        elif body == COMPACT_MARKER:
            compact = True
    return generated, compact


def parse(source: str, source_type: str = "module", compact: bool = False) -> Program:
    """Parse JavaScript source into a Program AST."""
    if source_type != "script" and source_type != "module":
        raise ValueError("source_type must be 'script' or 'module'")
    generated, compact_pragma = _extract_pragmas(source)
    parser = Parser(tokenize(source))
    program = parser.parse_program(source_type)
    if generated:
        program.annotations["generated"] = True
    if compact or compact_pragma:
        program.annotations["compact"] = True
    return program


class Parser:
    """Recursive descent parser for the JavaScript subset."""

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0
        self.in_async: bool = False
        self.in_generator: bool = False
        self.saw_export: bool = False

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[len(self.tokens) - 1]
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type != TK_EOF:
            self.pos += 1
        return tok

    def at(self, value: str) -> bool:
        tok = self.current()
        return tok.value == value and tok.type != TK_STRING

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def at_ident(self, name: str | None = None) -> bool:
        tok = self.current()
        if tok.type != TK_IDENT:
            return False
        return name is None or tok.value == name

    def expect(self, value: str) -> Token:
        if not self.at(value):
            raise self.error("expected '" + value + "', got '" + self.current().value + "'")
        return self.advance()

    def expect_ident(self) -> Token:
        tok = self.current()
        if tok.type != TK_IDENT:
            raise self.error("expected identifier, got '" + tok.value + "'")
        return self.advance()

    def error(self, msg: str) -> ParseError:
        tok = self.current()
        return ParseError(msg, tok.line, tok.col)

    def _pos(self) -> Pos:
        tok = self.current()
        return Pos(tok.line, tok.col)

    def _tok_pos(self, tok: Token) -> Pos:
        return Pos(tok.line, tok.col)

    def consume_semicolon(self) -> None:
        """Automatic semicolon insertion: `;`, before `}`, at EOF, or after a newline."""
        if self.at(";"):
            self.advance()
            return
        tok = self.current()
        if tok.type == TK_EOF or self.at("}") or tok.nl_before:
            return
        raise self.error("expected ';', got '" + tok.value + "'")

    def _property_name(self) -> tuple[str, bool]:
        """Object/class key. Returns (key, quoted)."""
        tok = self.current()
        if tok.type == TK_STRING:
            self.advance()
            return tok.value, True
        if tok.type == TK_NUM:
            self.advance()
            return tok.value, False
        if tok.type == TK_IDENT or (tok.type == tok.value and tok.value.isalpha()):
            self.advance()
            return tok.value, False
        raise self.error("expected property name, got '" + tok.value + "'")

    def _mark_generated(self, node: Node, tok: Token) -> None:
        if GENERATED_MARKER in tok.comment_before:
            node.annotations["generated"] = True

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self, source_type: str = "module") -> Program:
        pos = self._pos()
        body: list[Stmt] = []
        while not self.at_type(TK_EOF):
            body.append(self.parse_stmt(top_level=True))
        if self.saw_export:
            source_type = "module"
        return Program(pos, body, source_type)

    # ── Statements ───────────────────────────────────────────

    def parse_stmt(self, top_level: bool = False) -> Stmt:
        tok = self.current()
        if tok.type == TK_OP:
            if tok.value == "{":
                return self.parse_block()
            if tok.value == ";":
                self.advance()
                return EmptyStmt(self._tok_pos(tok))
        if tok.value in ("var", "let", "const") and tok.type != TK_STRING:
            decl = self.parse_var_decl()
            self.consume_semicolon()
            return decl
        if tok.value == "function" and tok.type != TK_STRING:
            return self.parse_fn_decl()
        if self._at_async_function():
            return self.parse_fn_decl()
        if tok.value == "class" and tok.type != TK_STRING:
            return self.parse_class_decl()
        if tok.value == "if" and tok.type != TK_STRING:
            return self.parse_if_stmt()
        if tok.value == "for" and tok.type != TK_STRING:
            return self.parse_for_stmt()
        if tok.value == "while" and tok.type != TK_STRING:
            return self.parse_while_stmt()
        if tok.value == "return" and tok.type != TK_STRING:
            return self.parse_return_stmt()
        if tok.value == "break" and tok.type != TK_STRING:
            self.advance()
            self.consume_semicolon()
            return BreakStmt(self._tok_pos(tok))
        if tok.value == "continue" and tok.type != TK_STRING:
            self.advance()
            self.consume_semicolon()
            return ContinueStmt(self._tok_pos(tok))
        if tok.value == "throw" and tok.type != TK_STRING:
            return self.parse_throw_stmt()
        if tok.value == "try" and tok.type != TK_STRING:
            return self.parse_try_stmt()
        if tok.value == "export" and tok.type != TK_STRING:
            if not top_level:
                raise self.error("export is only allowed at the top level")
            return self.parse_export()
        return self.parse_expr_stmt()

    def _at_async_function(self) -> bool:
        nxt = self.peek(1)
        return self.at_ident("async") and nxt.value == "function" and not nxt.nl_before

    def parse_block(self) -> Block:
        pos = self._pos()
        self.expect("{")
        stmts: list[Stmt] = []
        while not self.at("}"):
            if self.at_type(TK_EOF):
                raise self.error("unterminated block")
            stmts.append(self.parse_stmt())
        self.expect("}")
        return Block(pos, stmts)

    def parse_var_decl(self) -> VarDecl:
        pos = self._pos()
        kind = self.advance().value
        declarators: list[Declarator] = [self.parse_declarator(kind)]
        while self.at(","):
            self.advance()
            declarators.append(self.parse_declarator(kind))
        return VarDecl(pos, kind, declarators)

    def parse_declarator(self, kind: str) -> Declarator:
        pos = self._pos()
        name_tok = self.expect_ident()
        ident = Identifier(self._tok_pos(name_tok), name_tok.value)
        init: Expr | None = None
        if self.at("="):
            self.advance()
            init = self.parse_assign()
        elif kind == "const" and not self.at_ident("of"):
            raise self.error("missing initializer in const declaration")
        return Declarator(pos, ident, init)

    def parse_fn_decl(self) -> FnDecl:
        start = self.current()
        pos = self._pos()
        is_async = False
        if self.at_ident("async"):
            self.advance()
            is_async = True
        self.expect("function")
        is_generator = False
        if self.at("*"):
            self.advance()
            is_generator = True
        name_tok = self.expect_ident()
        ident = Identifier(self._tok_pos(name_tok), name_tok.value)
        params, body = self.parse_fn_rest(is_async, is_generator)
        node = FnDecl(pos, ident, params, body, is_async, is_generator)
        self._mark_generated(node, start)
        return node

    def parse_fn_rest(self, is_async: bool, is_generator: bool) -> tuple[list[Param], Block]:
        """Parameter list and body of a non-arrow function."""
        saved = (self.in_async, self.in_generator)
        self.in_async = is_async
        self.in_generator = is_generator
        try:
            params = self.parse_params()
            body = self.parse_block()
        finally:
            self.in_async, self.in_generator = saved
        return params, body

    def parse_params(self) -> list[Param]:
        """ParamList = '(' ( Param ( ',' Param )* ','? )? ')'"""
        self.expect("(")
        params: list[Param] = []
        while not self.at(")"):
            pos = self._pos()
            rest = False
            if self.at("..."):
                self.advance()
                rest = True
            name_tok = self.expect_ident()
            default: Expr | None = None
            if not rest and self.at("="):
                self.advance()
                default = self.parse_assign()
            params.append(
                Param(pos, Identifier(self._tok_pos(name_tok), name_tok.value), default, rest)
            )
            if rest and not self.at(")"):
                raise self.error("rest parameter must be last")
            if not self.at(")"):
                self.expect(",")
        self.expect(")")
        return params

    def parse_class_decl(self) -> ClassDecl:
        pos = self._pos()
        self.expect("class")
        name_tok = self.expect_ident()
        superclass, body = self.parse_class_tail()
        return ClassDecl(pos, Identifier(self._tok_pos(name_tok), name_tok.value), superclass, body)

    def parse_class_tail(self) -> tuple[Expr | None, list[ClassMethod]]:
        superclass: Expr | None = None
        if self.at("extends"):
            self.advance()
            superclass = self.parse_lhs()
        self.expect("{")
        methods: list[ClassMethod] = []
        while not self.at("}"):
            if self.at(";"):
                self.advance()
                continue
            methods.append(self.parse_class_method())
        self.expect("}")
        return superclass, methods

    def parse_class_method(self) -> ClassMethod:
        start = self.current()
        pos = self._pos()
        is_static = False
        if self.at_ident("static") and self.peek(1).value != "(":
            self.advance()
            is_static = True
        is_async = False
        if self.at_ident("async") and self.peek(1).value != "(" and not self.peek(1).nl_before:
            self.advance()
            is_async = True
        is_generator = False
        if self.at("*"):
            self.advance()
            is_generator = True
        key, _ = self._property_name()
        kind = "constructor" if key == "constructor" and not is_static else "method"
        params, body = self.parse_fn_rest(is_async, is_generator)
        node = ClassMethod(pos, None, params, body, is_async, is_generator, key, kind, is_static)
        self._mark_generated(node, start)
        return node

    def parse_if_stmt(self) -> IfStmt:
        pos = self._pos()
        self.expect("if")
        self.expect("(")
        test = self.parse_expr()
        self.expect(")")
        consequent = self.parse_stmt()
        alternate: Stmt | None = None
        if self.at("else"):
            self.advance()
            alternate = self.parse_stmt()
        return IfStmt(pos, test, consequent, alternate)

    def parse_for_stmt(self) -> Stmt:
        pos = self._pos()
        self.expect("for")
        self.expect("(")
        init: VarDecl | Expr | None = None
        if self.at("var") or self.at("let") or self.at("const"):
            decl_pos = self._pos()
            kind = self.advance().value
            first = self.parse_declarator(kind)
            if first.init is None and self.at_ident("of"):
                self.advance()
                right = self.parse_assign()
                self.expect(")")
                body = self.parse_stmt()
                return ForOfStmt(pos, VarDecl(decl_pos, kind, [first]), right, body)
            declarators = [first]
            while self.at(","):
                self.advance()
                declarators.append(self.parse_declarator(kind))
            init = VarDecl(decl_pos, kind, declarators)
        elif not self.at(";"):
            left = self.parse_expr()
            if self.at_ident("of"):
                if not isinstance(left, (Identifier, Member, Index)):
                    raise self.error("invalid for-of target")
                self.advance()
                right = self.parse_assign()
                self.expect(")")
                body = self.parse_stmt()
                return ForOfStmt(pos, left, right, body)
            init = left
        self.expect(";")
        test: Expr | None = None
        if not self.at(";"):
            test = self.parse_expr()
        self.expect(";")
        update: Expr | None = None
        if not self.at(")"):
            update = self.parse_expr()
        self.expect(")")
        body = self.parse_stmt()
        return ForStmt(pos, init, test, update, body)

    def parse_while_stmt(self) -> WhileStmt:
        pos = self._pos()
        self.expect("while")
        self.expect("(")
        test = self.parse_expr()
        self.expect(")")
        body = self.parse_stmt()
        return WhileStmt(pos, test, body)

    def parse_return_stmt(self) -> ReturnStmt:
        pos = self._pos()
        self.expect("return")
        value: Expr | None = None
        tok = self.current()
        if not (tok.nl_before or tok.type == TK_EOF or self.at(";") or self.at("}")):
            value = self.parse_expr()
        self.consume_semicolon()
        return ReturnStmt(pos, value)

    def parse_throw_stmt(self) -> ThrowStmt:
        pos = self._pos()
        self.expect("throw")
        if self.current().nl_before:
            raise self.error("illegal newline after throw")
        value = self.parse_expr()
        self.consume_semicolon()
        return ThrowStmt(pos, value)

    def parse_try_stmt(self) -> TryStmt:
        pos = self._pos()
        self.expect("try")
        block = self.parse_block()
        handler: CatchClause | None = None
        finalizer: Block | None = None
        if self.at("catch"):
            catch_pos = self._pos()
            self.advance()
            param: Identifier | None = None
            if self.at("("):
                self.advance()
                name_tok = self.expect_ident()
                param = Identifier(self._tok_pos(name_tok), name_tok.value)
                self.expect(")")
            handler = CatchClause(catch_pos, param, self.parse_block())
        if self.at("finally"):
            self.advance()
            finalizer = self.parse_block()
        if handler is None and finalizer is None:
            raise ParseError("try must have catch or finally", pos.line, pos.col)
        return TryStmt(pos, block, handler, finalizer)

    def parse_export(self) -> Stmt:
        pos = self._pos()
        self.expect("export")
        self.saw_export = True
        if self.at("default"):
            self.advance()
            if (self.at("function") or self._at_async_function()) and self._named_after_function():
                return ExportDefault(pos, self.parse_fn_decl())
            if self.at("class") and self.peek(1).type == TK_IDENT:
                return ExportDefault(pos, self.parse_class_decl())
            value = self.parse_assign()
            self.consume_semicolon()
            return ExportDefault(pos, value)
        if self.at("var") or self.at("let") or self.at("const"):
            decl = self.parse_var_decl()
            self.consume_semicolon()
            return ExportDecl(pos, decl)
        if self.at("function") or self._at_async_function():
            return ExportDecl(pos, self.parse_fn_decl())
        if self.at("class"):
            return ExportDecl(pos, self.parse_class_decl())
        raise self.error("unsupported export form")

    def _named_after_function(self) -> bool:
        """After `export default`, check whether the function has a name."""
        i = 1
        if self.at_ident("async"):
            i += 1
        if self.peek(i).value == "*":
            i += 1
        return self.peek(i).type == TK_IDENT

    def parse_expr_stmt(self) -> ExprStmt:
        pos = self._pos()
        expr = self.parse_expr()
        self.consume_semicolon()
        return ExprStmt(pos, expr)

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> Expr:
        """Expr = Assign ( ',' Assign )*"""
        first = self.parse_assign()
        if not self.at(","):
            return first
        exprs: list[Expr] = [first]
        while self.at(","):
            self.advance()
            exprs.append(self.parse_assign())
        return Sequence(first.pos, exprs)

    def parse_assign(self) -> Expr:
        """Assign = Arrow | Yield | Conditional ( AssignOp Assign )?"""
        if self.at("yield") and self.in_generator:
            return self.parse_yield()
        if self._is_arrow():
            return self.parse_arrow()
        target = self.parse_conditional()
        tok = self.current()
        if tok.type == TK_OP and tok.value in ASSIGN_OPS:
            if not isinstance(target, (Identifier, Member, Index)):
                raise self.error("invalid assignment target")
            op = self.advance().value
            value = self.parse_assign()
            return Assign(target.pos, op, target, value)
        return target

    def parse_yield(self) -> Yield:
        pos = self._pos()
        self.expect("yield")
        delegate = False
        if self.at("*"):
            self.advance()
            delegate = True
        arg: Expr | None = None
        tok = self.current()
        if delegate or not (
            tok.nl_before or tok.type == TK_EOF or tok.value in (")", "]", "}", ",", ";", ":")
        ):
            arg = self.parse_assign()
        return Yield(pos, arg, delegate)

    def _is_arrow(self) -> bool:
        """Lookahead: IDENT '=>', '(' ... ')' '=>', or the async forms of both."""
        offset = 0
        if self.at_ident("async") and not self.peek(1).nl_before:
            nxt = self.peek(1)
            if nxt.type == TK_IDENT and self.peek(2).value == "=>":
                return True
            if nxt.value == "(" and nxt.type == TK_OP:
                offset = 1
        tok = self.peek(offset)
        if offset == 0 and tok.type == TK_IDENT:
            arrow = self.peek(1)
            return arrow.value == "=>" and not arrow.nl_before
        if tok.value != "(" or tok.type != TK_OP:
            return False
        depth = 0
        i = self.pos + offset
        num_tokens = len(self.tokens)
        while i < num_tokens:
            t = self.tokens[i]
            if t.type == TK_OP and t.value in ("(", "[", "{"):
                depth += 1
            elif t.type == TK_OP and t.value in (")", "]", "}"):
                depth -= 1
                if depth == 0:
                    return (
                        i + 1 < num_tokens
                        and self.tokens[i + 1].value == "=>"
                        and not self.tokens[i + 1].nl_before
                    )
            elif t.type == TK_EOF:
                return False
            i += 1
        return False

    def parse_arrow(self) -> ArrowFn:
        """Arrow = 'async'? ( IDENT | ParamList ) '=>' ( Block | Assign )"""
        start = self.current()
        pos = self._pos()
        is_async = False
        if self.at_ident("async") and self.peek(1).value != "=>":
            self.advance()
            is_async = True
        if self.at_ident():
            name_tok = self.advance()
            params = [
                Param(
                    self._tok_pos(name_tok),
                    Identifier(self._tok_pos(name_tok), name_tok.value),
                    None,
                    False,
                )
            ]
        else:
            params = self.parse_params()
        self.expect("=>")
        saved = (self.in_async, self.in_generator)
        self.in_async = is_async
        self.in_generator = False
        try:
            if self.at("{"):
                body: Block | Expr = self.parse_block()
            else:
                body = self.parse_assign()
        finally:
            self.in_async, self.in_generator = saved
        node = ArrowFn(pos, None, params, body, is_async, False)
        self._mark_generated(node, start)
        return node

    def parse_conditional(self) -> Expr:
        """Conditional = Binary ( '?' Assign ':' Assign )?"""
        test = self.parse_binary(1)
        if self.at("?"):
            self.advance()
            then_expr = self.parse_assign()
            self.expect(":")
            else_expr = self.parse_assign()
            return Conditional(test.pos, test, then_expr, else_expr)
        return test

    def parse_binary(self, min_prec: int) -> Expr:
        """Precedence climbing over BINARY_PREC; all binary operators are left-associative."""
        left = self.parse_exponent()
        while True:
            tok = self.current()
            if tok.type == TK_STRING or tok.value not in BINARY_PREC:
                break
            if tok.type != TK_OP and tok.value not in ("instanceof", "in"):
                break
            prec = BINARY_PREC[tok.value]
            if prec < min_prec:
                break
            op = self.advance().value
            right = self.parse_binary(prec + 1)
            if op in LOGICAL_OPS:
                left = Logical(left.pos, op, left, right)
            else:
                left = Binary(left.pos, op, left, right)
        return left

    def parse_exponent(self) -> Expr:
        """Exponent = Unary ( '**' Exponent )?, right-associative."""
        base = self.parse_unary()
        if self.at("**"):
            self.advance()
            exponent = self.parse_exponent()
            return Binary(base.pos, "**", base, exponent)
        return base

    def parse_unary(self) -> Expr:
        """Unary = ( UnaryOp | 'await' ) Unary | ( '++' | '--' ) Unary | Postfix"""
        tok = self.current()
        pos = self._pos()
        if tok.type != TK_STRING and tok.value in UNARY_OPS:
            op = self.advance().value
            operand = self.parse_unary()
            return Unary(pos, op, operand)
        if tok.type == TK_OP and (tok.value == "++" or tok.value == "--"):
            op = self.advance().value
            operand = self.parse_unary()
            if not isinstance(operand, (Identifier, Member, Index)):
                raise self.error("invalid update target")
            return Update(pos, op, True, operand)
        if self.at_ident("await") and self.in_async:
            self.advance()
            return Await(pos, self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        """Postfix = LHS ( '++' | '--' )?, with no newline before the operator."""
        expr = self.parse_lhs()
        tok = self.current()
        if tok.type == TK_OP and (tok.value == "++" or tok.value == "--") and not tok.nl_before:
            if not isinstance(expr, (Identifier, Member, Index)):
                raise self.error("invalid update target")
            self.advance()
            return Update(expr.pos, tok.value, False, expr)
        return expr

    def parse_lhs(self) -> Expr:
        """LHS = ( 'new' NewExpr | Primary ) ( '.' Name | '[' Expr ']' | Args )*"""
        if self.at("new"):
            expr = self.parse_new()
        else:
            expr = self.parse_primary()
        return self.parse_suffixes(expr, allow_call=True)

    def parse_new(self) -> Expr:
        pos = self._pos()
        self.expect("new")
        if self.at("new"):
            callee = self.parse_new()
        else:
            callee = self.parse_suffixes(self.parse_primary(), allow_call=False)
        args: list[Expr] = []
        if self.at("("):
            args = self.parse_args()
        return New(pos, callee, args)

    def parse_suffixes(self, expr: Expr, allow_call: bool) -> Expr:
        while True:
            if self.at("."):
                self.advance()
                tok = self.current()
                if tok.type == TK_IDENT or (tok.type == tok.value and tok.value.isalpha()):
                    self.advance()
                    expr = Member(expr.pos, expr, tok.value)
                else:
                    raise self.error("expected property name after '.'")
            elif self.at("["):
                self.advance()
                index = self.parse_expr()
                self.expect("]")
                expr = Index(expr.pos, expr, index)
            elif self.at("(") and allow_call:
                args = self.parse_args()
                expr = Call(expr.pos, expr, args)
            else:
                break
        return expr

    def parse_args(self) -> list[Expr]:
        """Args = '(' ( Arg ( ',' Arg )* ','? )? ')'"""
        self.expect("(")
        args: list[Expr] = []
        while not self.at(")"):
            args.append(self.parse_spread_or_assign())
            if not self.at(")"):
                self.expect(",")
        self.expect(")")
        return args

    def parse_spread_or_assign(self) -> Expr:
        if self.at("..."):
            pos = self._pos()
            self.advance()
            return Spread(pos, self.parse_assign())
        return self.parse_assign()

    def parse_primary(self) -> Expr:
        """Parse a primary expression."""
        tok = self.current()
        pos = self._pos()

        if tok.type == TK_NUM:
            self.advance()
            return NumLit(pos, _number_value(tok.value), tok.value)
        if tok.type == TK_STRING:
            self.advance()
            return StrLit(pos, tok.value)
        if tok.type == TK_IDENT:
            if self._at_async_function():
                return self.parse_fn_expr()
            self.advance()
            return Identifier(pos, tok.value)

        if tok.value == "true":
            self.advance()
            return BoolLit(pos, True)
        if tok.value == "false":
            self.advance()
            return BoolLit(pos, False)
        if tok.value == "null":
            self.advance()
            return NullLit(pos)
        if tok.value == "this":
            self.advance()
            return ThisExpr(pos)
        if tok.value == "super":
            self.advance()
            if not (self.at("(") or self.at(".") or self.at("[")):
                raise self.error("'super' must be called or accessed")
            return SuperExpr(pos)
        if tok.value == "function":
            return self.parse_fn_expr()
        if tok.value == "class":
            self.advance()
            ident: Identifier | None = None
            if self.at_ident():
                name_tok = self.advance()
                ident = Identifier(self._tok_pos(name_tok), name_tok.value)
            superclass, body = self.parse_class_tail()
            return ClassExpr(pos, ident, superclass, body)

        if tok.value == "(" and tok.type == TK_OP:
            self.advance()
            expr = self.parse_expr()
            self.expect(")")
            return expr
        if tok.value == "[" and tok.type == TK_OP:
            return self.parse_array_lit()
        if tok.value == "{" and tok.type == TK_OP:
            return self.parse_object_lit()

        raise self.error("expected expression, got '" + tok.value + "'")

    def parse_fn_expr(self) -> FnExpr:
        start = self.current()
        pos = self._pos()
        is_async = False
        if self.at_ident("async"):
            self.advance()
            is_async = True
        self.expect("function")
        is_generator = False
        if self.at("*"):
            self.advance()
            is_generator = True
        ident: Identifier | None = None
        if self.at_ident():
            name_tok = self.advance()
            ident = Identifier(self._tok_pos(name_tok), name_tok.value)
        params, body = self.parse_fn_rest(is_async, is_generator)
        node = FnExpr(pos, ident, params, body, is_async, is_generator)
        self._mark_generated(node, start)
        return node

    def parse_array_lit(self) -> ArrayLit:
        pos = self._pos()
        self.expect("[")
        elements: list[Expr] = []
        while not self.at("]"):
            elements.append(self.parse_spread_or_assign())
            if not self.at("]"):
                self.expect(",")
        self.expect("]")
        return ArrayLit(pos, elements)

    def parse_object_lit(self) -> ObjectLit:
        pos = self._pos()
        self.expect("{")
        props: list[Property | ObjectMethod | Spread] = []
        while not self.at("}"):
            props.append(self.parse_object_member())
            if not self.at("}"):
                self.expect(",")
        self.expect("}")
        return ObjectLit(pos, props)

    def parse_object_member(self) -> Property | ObjectMethod | Spread:
        start = self.current()
        pos = self._pos()
        if self.at("..."):
            self.advance()
            return Spread(pos, self.parse_assign())
        is_async = False
        nxt = self.peek(1)
        if self.at_ident("async") and nxt.value not in ("(", ":", ",", "}") and not nxt.nl_before:
            self.advance()
            is_async = True
        is_generator = False
        if self.at("*"):
            self.advance()
            is_generator = True
        key_tok = self.current()
        key, quoted = self._property_name()
        if self.at("("):
            params, body = self.parse_fn_rest(is_async, is_generator)
            node = ObjectMethod(pos, None, params, body, is_async, is_generator, key, quoted)
            self._mark_generated(node, start)
            return node
        if is_async or is_generator:
            raise self.error("expected '(' after method name")
        if self.at(":"):
            self.advance()
            value = self.parse_assign()
            return Property(pos, key, value, quoted, False)
        if key_tok.type != TK_IDENT:
            raise self.error("expected ':' after property name")
        return Property(pos, key, Identifier(self._tok_pos(key_tok), key), False, True)


def _number_value(raw: str) -> int | float:
    if raw.startswith("0x") or raw.startswith("0X"):
        return int(raw, 16)
    if "." in raw or "e" in raw or "E" in raw:
        return float(raw)
    return int(raw)
