"""Strategies for handling a missing segment context."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

RUNTIME_ERROR = "RUNTIME_ERROR"
LOG_ERROR = "LOG_ERROR"
IGNORE_ERROR = "IGNORE_ERROR"

_logger = logging.getLogger("xraystrategy")


class ContextMissingError(RuntimeError):
    """Raised when a subsegment is created without a parent segment."""

    def __init__(self, value: Any) -> None:
        super().__init__(value)
        self.value = value

    def __str__(self) -> str:
        return str(self.value)


class ContextMissingStrategy(ABC):
    """Decides what happens when the segment context is missing."""

    @abstractmethod
    def context_missing(self, value: Any) -> None:
        """React to a missing context described by ``value``."""


class RuntimeErrorStrategy(ContextMissingStrategy):
    """Raises ``ContextMissingError`` when the context is missing."""

    def context_missing(self, value: Any) -> None:
        raise ContextMissingError(value)


class LogErrorStrategy(ContextMissingStrategy):
    """Logs an error when the context is missing."""

    def context_missing(self, value: Any) -> None:
        _logger.error("Suppressing AWS X-Ray context missing panic: %s", value)


class IgnoreErrorStrategy(ContextMissingStrategy):
    """Silently ignores a missing context."""

    def context_missing(self, value: Any) -> None:
        return None


_STRATEGIES = {
    RUNTIME_ERROR: RuntimeErrorStrategy,
    LOG_ERROR: LogErrorStrategy,
    IGNORE_ERROR: IgnoreErrorStrategy,
}


def strategy_for(name: str) -> ContextMissingStrategy:
    """Return the strategy selected by an AWS_XRAY_CONTEXT_MISSING value."""
    try:
        return _STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"unknown context missing strategy: {name!r}") from None