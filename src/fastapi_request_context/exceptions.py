"""ContextError hierarchy for lifecycle and dispatch misuse."""

from __future__ import annotations


class ContextError(Exception):
    """Base for all request context exceptions."""


class ContextUsageError(ContextError):
    """A context operation was invoked outside its lifecycle contract."""

    def __init__(self, detail: str, *, operation: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.operation = operation


class AsyncDispatchError(ContextUsageError):
    """Async dispatch strategy misuse, e.g. delivering a result twice."""
