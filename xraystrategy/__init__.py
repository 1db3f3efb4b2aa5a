"""Sampling, context-missing and exception formatting strategies for tracing."""

__version__ = "0.1.0"
__all__ = ["ctxmissing", "exception", "sampling"]