"""Code generation backends."""

from .javascript import JavaScriptBackend, emit

__all__ = ["JavaScriptBackend", "emit"]
