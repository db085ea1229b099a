from __future__ import annotations

"""Sidebar exception classes.

Every failure raised by the core derives from :class:`SidebarError` so that
command front-ends can report problems uniformly. Core modules raise; the
service boundary decides which errors degrade into user-visible notices.
"""

from typing import Optional


__all__ = [
    "SidebarError",
    "QueryError",
    "StaleReferenceError",
    "SourceGoneError",
    "ConflictError",
    "ConfigurationError",
    "NoEntryAtLineError",
]


class SidebarError(Exception):
    """Base exception for all sidebar errors.

    Carries the name of the buffer involved (when known) and the underlying
    exception that triggered it.
    """

    def __init__(self, message: str, buffer_name: Optional[str] = None,
                 cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.buffer_name = buffer_name
        self.cause = cause

    def __str__(self) -> str:
        if self.buffer_name:
            return f"[Buffer: {self.buffer_name}] {super().__str__()}"
        return super().__str__()


class QueryError(SidebarError):
    """Raised when a predicate, sort key or query action is malformed.

    Surfaced to the caller as-is; queries are never retried.
    """

    def __init__(self, message: str, predicate: object = None,
                 buffer_name: Optional[str] = None,
                 cause: Optional[BaseException] = None) -> None:
        super().__init__(message, buffer_name, cause)
        self.predicate = predicate


class StaleReferenceError(SidebarError):
    """Raised when a marker points into a buffer that no longer exists."""
    pass


class SourceGoneError(SidebarError):
    """Raised when a view session's source buffer has been killed."""
    pass


class ConflictError(SidebarError):
    """Raised when a mirror would overwrite an unrelated buffer of the same name."""
    pass


class ConfigurationError(SidebarError):
    """Raised for invalid grouping specifications or settings.

    This includes views declaring both a key function and super-group rules,
    unknown rule keys and invalid configuration values.
    """

    def __init__(self, message: str, errors: Optional[list[str]] = None,
                 buffer_name: Optional[str] = None,
                 cause: Optional[BaseException] = None) -> None:
        super().__init__(message, buffer_name, cause)
        self.errors = errors or []


class NoEntryAtLineError(SidebarError, LookupError):
    """Raised when a sidebar line carries no back-reference to an entry."""

    def __init__(self, line: int, buffer_name: Optional[str] = None) -> None:
        super().__init__(f"No entry at line {line}", buffer_name)
        self.line = line
