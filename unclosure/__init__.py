"""unclosure - hoist closures that capture nothing out of their enclosing functions."""

from .backend import emit
from .frontend import ParseError, TokenizeError, parse
from .middleend import HoistError, HoistResult, transform
from .runtime import JSThrow, RunResult, RuntimeFault, display, run


def hoist(source: str, source_type: str = "module", compact: bool = False) -> str:
    """Source in, transformed source out."""
    program = parse(source, source_type=source_type, compact=compact)
    transform(program)
    return emit(program)


__all__ = [
    "HoistError",
    "HoistResult",
    "JSThrow",
    "ParseError",
    "RunResult",
    "RuntimeFault",
    "TokenizeError",
    "display",
    "emit",
    "hoist",
    "parse",
    "run",
    "transform",
]
