"""Typed failures raised by the ticket search pipeline.

Every failure surfaces as a single error for the whole ``search`` call;
nothing is retried or partially returned.
"""

from __future__ import annotations

from typing import Any


class SearchError(Exception):
    """Base class for search pipeline failures."""


class UnsupportedBackendError(SearchError):
    """Raised when no statement compiler exists for the requested backend."""

    def __init__(self, backend: Any) -> None:
        self.backend = backend
        super().__init__(f"Unsupported search backend: {backend!r}")


class StatementExecutionError(SearchError):
    """Raised when the storage engine fails to execute a search statement.

    The engine's native exception is kept on ``original`` (and ``__cause__``).
    """

    def __init__(self, message: str, original: BaseException | None = None) -> None:
        self.original = original
        super().__init__(message)


class RowDecodeError(SearchError):
    """Raised when a result row holds a malformed identifier, timestamp or number."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)
