"""
Helpers for by-id operations.
"""

from __future__ import annotations

import uuid
from typing import Any

from bson import ObjectId

from .types import InvalidIdentifier

__all__ = ["id_filter", "to_object_id"]


def to_object_id(value: Any) -> Any:
    """
    Coerce a value to the canonical _id representation.

    24-character hex strings and 12-byte values become ObjectIds. Other
    strings, integers and UUIDs are custom primary keys and are returned
    unchanged.

    Args:
        value: An ObjectId, or a string, bytes or numeric form of an _id.

    Returns:
        The value to use under ``_id`` in a filter.

    Raises:
        InvalidIdentifier: If the value cannot be used as an _id.
    """
    if isinstance(value, ObjectId):
        return value

    if isinstance(value, str):
        if len(value) != 24:
            return value
        if not ObjectId.is_valid(value):
            raise InvalidIdentifier(value)
        return ObjectId(value)

    if isinstance(value, bytes) and len(value) == 12:
        return ObjectId(value)

    # bool is an int subclass but never a sensible key
    if isinstance(value, (int, uuid.UUID)) and not isinstance(value, bool):
        return value

    raise InvalidIdentifier(value)


def id_filter(value: Any) -> dict[str, Any]:
    """Build the ``{"_id": ...}`` filter for a by-id operation."""
    return {"_id": to_object_id(value)}
