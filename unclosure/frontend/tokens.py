"""JavaScript tokenizer: source text to a flat token list."""

from __future__ import annotations


# Token type constants
TK_NUM = "NUM"
TK_STRING = "STRING"
TK_IDENT = "IDENT"
TK_OP = "OP"
TK_EOF = "EOF"

KEYWORDS: set[str] = {
    "break",
    "catch",
    "class",
    "const",
    "continue",
    "default",
    "delete",
    "else",
    "export",
    "extends",
    "false",
    "finally",
    "for",
    "function",
    "if",
    "in",
    "instanceof",
    "let",
    "new",
    "null",
    "return",
    "super",
    "this",
    "throw",
    "true",
    "try",
    "typeof",
    "var",
    "void",
    "while",
    "yield",
}

# Multi-character operators, sorted by length descending for greedy matching
MULTI_OPS: list[str] = [
    ">>>=",
    "===",
    "!==",
    "**=",
    "<<=",
    ">>=",
    ">>>",
    "...",
    "&&=",
    "||=",
    "??=",
    "=>",
    "==",
    "!=",
    "<=",
    ">=",
    "&&",
    "||",
    "??",
    "++",
    "--",
    "**",
    "<<",
    ">>",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "&=",
    "|=",
    "^=",
]

SINGLE_OPS: set[str] = {
    "+",
    "-",
    "*",
    "/",
    "%",
    "&",
    "|",
    "^",
    "~",
    "!",
    "<",
    ">",
    "=",
    "(",
    ")",
    "[",
    "]",
    "{",
    "}",
    ",",
    ":",
    ";",
    ".",
    "?",
}

ESCAPE_MAP: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "0": "\0",
}


class TokenizeError(Exception):
    """Error during tokenization."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


class Token:
    """A token with type, value, position, and whether a newline precedes it."""

    def __init__(self, type_: str, value: str, line: int, col: int):
        self.type: str = type_
        self.value: str = value
        self.line: int = line
        self.col: int = col
        self.nl_before: bool = False
        self.comment_before: str = ""

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.value)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_hex(c: str) -> bool:
    return (c >= "0" and c <= "9") or (c >= "a" and c <= "f") or (c >= "A" and c <= "F")


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_" or c == "$"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def _process_escape(src: str, pos: int, line: int, col: int) -> tuple[str, int]:
    """Process escape after backslash. Returns (resolved_char, new_pos)."""
    if pos >= len(src):
        raise TokenizeError("unexpected end of string in escape", line, col)
    c = src[pos]
    if c in ESCAPE_MAP:
        return ESCAPE_MAP[c], pos + 1
    if c == "x":
        digits = src[pos + 1 : pos + 3]
        if len(digits) != 2 or not all(_is_hex(h) for h in digits):
            raise TokenizeError("invalid hex escape", line, col)
        return chr(int(digits, 16)), pos + 3
    if c == "u":
        digits = src[pos + 1 : pos + 5]
        if len(digits) != 4 or not all(_is_hex(h) for h in digits):
            raise TokenizeError("invalid unicode escape", line, col)
        return chr(int(digits, 16)), pos + 5
    if c == "\n":
        # Line continuation
        return "", pos + 1
    return c, pos + 1


def tokenize(source: str) -> list[Token]:
    """Tokenize JavaScript source into a flat list ending with TK_EOF."""
    tokens: list[Token] = []
    pos = 0
    line = 1
    col = 1
    length = len(source)
    nl_before = False
    comment = ""

    while pos < length:
        c = source[pos]

        # Newlines
        if c == "\n":
            pos += 1
            line += 1
            col = 1
            nl_before = True
            continue

        # Whitespace
        if c == " " or c == "\t" or c == "\r":
            pos += 1
            col += 1
            continue

        # Line comment
        if c == "/" and pos + 1 < length and source[pos + 1] == "/":
            while pos < length and source[pos] != "\n":
                pos += 1
            continue

        # Block comment
        if c == "/" and pos + 1 < length and source[pos + 1] == "*":
            end = source.find("*/", pos + 2)
            if end == -1:
                raise TokenizeError("unterminated comment", line, col)
            text = source[pos + 2 : end]
            comment = text.strip()
            newlines = text.count("\n")
            if newlines:
                line += newlines
                col = len(text) - text.rfind("\n") + 2
                nl_before = True
            else:
                col += end + 2 - pos
            pos = end + 2
            continue

        start_pos = pos
        start_line = line
        start_col = col
        tok: Token | None = None

        # Number: hex, int, fraction, exponent
        if _is_digit(c) or (c == "." and pos + 1 < length and _is_digit(source[pos + 1])):
            if (
                c == "0"
                and pos + 1 < length
                and (source[pos + 1] == "x" or source[pos + 1] == "X")
            ):
                pos += 2
                while pos < length and _is_hex(source[pos]):
                    pos += 1
                if pos == start_pos + 2:
                    raise TokenizeError("missing hex digits", start_line, start_col)
            else:
                while pos < length and _is_digit(source[pos]):
                    pos += 1
                if pos < length and source[pos] == ".":
                    pos += 1
                    while pos < length and _is_digit(source[pos]):
                        pos += 1
                if pos < length and (source[pos] == "e" or source[pos] == "E"):
                    pos += 1
                    if pos < length and (source[pos] == "+" or source[pos] == "-"):
                        pos += 1
                    if pos >= length or not _is_digit(source[pos]):
                        raise TokenizeError(
                            "invalid number exponent", start_line, start_col
                        )
                    while pos < length and _is_digit(source[pos]):
                        pos += 1
            if pos < length and _is_alpha(source[pos]):
                raise TokenizeError(
                    "identifier directly after number", start_line, start_col
                )
            col += pos - start_pos
            tok = Token(TK_NUM, source[start_pos:pos], start_line, start_col)

        # String literal: '...' or "..."
        elif c == '"' or c == "'":
            quote = c
            pos += 1
            col += 1
            chars: list[str] = []
            while pos < length and source[pos] != quote:
                if source[pos] == "\n":
                    raise TokenizeError(
                        "unterminated string literal", start_line, start_col
                    )
                if source[pos] == "\\":
                    pos += 1
                    col += 1
                    ch, new_pos = _process_escape(source, pos, start_line, col)
                    if source[pos] == "\n":
                        line += 1
                        col = 0
                    col += new_pos - pos
                    pos = new_pos
                    chars.append(ch)
                else:
                    chars.append(source[pos])
                    pos += 1
                    col += 1
            if pos >= length:
                raise TokenizeError(
                    "unterminated string literal", start_line, start_col
                )
            pos += 1  # skip closing quote
            col += 1
            tok = Token(TK_STRING, "".join(chars), start_line, start_col)

        # Identifier or keyword
        elif _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
            col += pos - start_pos
            word = source[start_pos:pos]
            if word in KEYWORDS:
                tok = Token(word, word, start_line, start_col)
            else:
                tok = Token(TK_IDENT, word, start_line, start_col)

        else:
            # Multi-character operators
            for op in MULTI_OPS:
                op_len = len(op)
                if source[pos : pos + op_len] == op:
                    tok = Token(TK_OP, op, start_line, start_col)
                    pos += op_len
                    col += op_len
                    break
            # Single-character operators
            if tok is None and c in SINGLE_OPS:
                tok = Token(TK_OP, c, start_line, start_col)
                pos += 1
                col += 1
            if tok is None:
                raise TokenizeError("unexpected character: " + repr(c), line, col)

        tok.nl_before = nl_before
        tok.comment_before = comment
        nl_before = False
        comment = ""
        tokens.append(tok)

    eof = Token(TK_EOF, "", line, col)
    eof.nl_before = True
    tokens.append(eof)
    return tokens
