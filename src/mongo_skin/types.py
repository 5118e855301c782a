"""
Type definitions for mongo-skin.

Provides the exception hierarchy raised by the lazy handles and a few
type aliases shared across modules. Errors raised by the underlying
driver are not wrapped and reach the caller unchanged.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

# Type aliases for clarity
Document = Mapping[str, Any]
MutableDocument = dict[str, Any]
Filter = Mapping[str, Any]
Update = Mapping[str, Any]
Projection = Mapping[str, Any] | Sequence[str] | None
Sort = list[tuple[str, int]] | None


class MongoError(Exception):
    """Base exception for mongo-skin operations."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConnectionOpenFailed(MongoError):
    """Error raised when a handle could not be bound to a live connection."""

    pass


class InvalidIdentifier(MongoError):
    """Error raised when a value cannot be coerced to a document _id."""

    def __init__(self, value: Any) -> None:
        super().__init__(f"Cannot use {value!r} as a document _id")
        self.value = value


class AlreadyConsumed(MongoError):
    """Error raised when a cursor is consumed a second time."""

    pass
