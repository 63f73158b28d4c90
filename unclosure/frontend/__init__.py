"""Frontend package - converts JavaScript source to an AST."""

from .ast import Program
from .parse import ParseError, parse
from .tokens import TokenizeError, tokenize

__all__ = [
    "ParseError",
    "Program",
    "TokenizeError",
    "parse",
    "tokenize",
]
