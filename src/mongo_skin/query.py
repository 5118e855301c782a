"""
Query argument normalization for find-like calls.

find() and find_one() accept several positional shapes:

    find(filter)
    find(filter, projection)
    find(filter, options)
    find(filter, projection, options)

normalize_find_args() resolves these into one canonical
(filter, options) pair, where projection, if any, lives under the
``projection`` key of options. Whether a lone second argument is a
projection or an options mapping is decided by FIND_OPTION_NAMES:
if any of its keys is a known option name it is taken as options.

driver_options() turns those options into keyword arguments PyMongo's
find() accepts.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from pymongo import CursorType, ReadPreference

from .types import MongoError

__all__ = [
    "FIND_OPTION_NAMES",
    "CallShape",
    "QueryArgs",
    "driver_options",
    "normalize_find_args",
    "read_preference",
]

FIND_OPTION_NAMES = frozenset(
    {
        # Legacy driver option names
        "limit",
        "sort",
        "fields",
        "skip",
        "hint",
        "explain",
        "snapshot",
        "timeout",
        "tailable",
        "tailableRetryInterval",
        "numberOfRetries",
        "awaitdata",
        "awaitData",
        "exhaust",
        "batchSize",
        "returnKey",
        "maxScan",
        "min",
        "max",
        "showDiskLoc",
        "comment",
        "raw",
        "readPreference",
        "partial",
        "read",
        "dbName",
        "oplogReplay",
        "connection",
        "maxTimeMS",
        "transforms",
        "collation",
        "noCursorTimeout",
        # PyMongo find() keywords
        "projection",
        "no_cursor_timeout",
        "cursor_type",
        "allow_partial_results",
        "oplog_replay",
        "batch_size",
        "max_time_ms",
        "return_key",
        "show_record_id",
        "session",
        "allow_disk_use",
        "let",
    }
)

# Legacy names with a direct PyMongo equivalent
_OPTION_ALIASES = {
    "fields": "projection",
    "batchSize": "batch_size",
    "maxTimeMS": "max_time_ms",
    "noCursorTimeout": "no_cursor_timeout",
    "timeout": "no_cursor_timeout",
    "returnKey": "return_key",
    "showDiskLoc": "show_record_id",
    "oplogReplay": "oplog_replay",
    "partial": "allow_partial_results",
    "maxScan": "max_scan",
    "readPreference": "read_preference",
    "read": "read_preference",
}

# Folded into cursor_type
_CURSOR_FLAGS = frozenset({"tailable", "awaitData", "awaitdata", "exhaust"})

# Retry tuning for tailable cursors; PyMongo leaves retrying to the caller
_IGNORED_OPTIONS = frozenset({"numberOfRetries", "tailableRetryInterval"})

_UNSUPPORTED_OPTIONS = frozenset({"explain", "raw", "dbName", "connection", "transforms"})

_READ_PREFERENCES = {
    "primary": ReadPreference.PRIMARY,
    "primarypreferred": ReadPreference.PRIMARY_PREFERRED,
    "secondary": ReadPreference.SECONDARY,
    "secondarypreferred": ReadPreference.SECONDARY_PREFERRED,
    "nearest": ReadPreference.NEAREST,
}


class CallShape(enum.Enum):
    """The positional shape a find-like call was made with."""

    FILTER_ONLY = "filter"
    FILTER_AND_PROJECTION = "filter+projection"
    FILTER_AND_OPTIONS = "filter+options"
    FILTER_PROJECTION_OPTIONS = "filter+projection+options"


@dataclass(frozen=True)
class QueryArgs:
    """
    Canonical arguments of a find-like call.

    Attributes:
        filter: Query filter, or None when the call had no arguments.
        options: Find options. Always a dict, possibly empty.
        callback: Trailing callable of the call, if there was one.
        shape: The positional shape the call was made with.
    """

    filter: Any = None
    options: dict[str, Any] = field(default_factory=dict)
    callback: Callable[..., Any] | None = None
    shape: CallShape = CallShape.FILTER_ONLY

    def as_args(self) -> tuple[Any, ...]:
        """Return the canonical positional form ``(filter, options[, callback])``."""
        if self.callback is None:
            return (self.filter, self.options)
        return (self.filter, self.options, self.callback)


def _looks_like_options(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    return any(key in FIND_OPTION_NAMES for key in value)


def normalize_find_args(args: Sequence[Any]) -> QueryArgs:
    """
    Normalize the positional arguments of a find-like call.

    Args:
        args: Positional arguments as passed by the caller, optionally
              ending with a callable.

    Returns:
        QueryArgs with a canonical filter and options mapping.
    """
    args = list(args)
    callback = None
    if args and callable(args[-1]):
        callback = args.pop()

    if len(args) <= 1:
        return QueryArgs(args[0] if args else None, {}, callback)

    query, second = args[0], args[1]

    if len(args) >= 3:
        options: dict[str, Any] = {}
        if second is not None:
            options["projection"] = second
        options.update(args[2] or {})
        return QueryArgs(query, options, callback, CallShape.FILTER_PROJECTION_OPTIONS)

    if second is None:
        return QueryArgs(query, {}, callback)

    if _looks_like_options(second):
        return QueryArgs(query, dict(second), callback, CallShape.FILTER_AND_OPTIONS)

    return QueryArgs(query, {"projection": second}, callback, CallShape.FILTER_AND_PROJECTION)


def read_preference(value: Any) -> Any:
    """
    Resolve a read preference given by name or as a PyMongo read preference.

    Names are matched case-insensitively, with or without underscores
    (``"secondaryPreferred"``, ``"secondary_preferred"``).

    Raises:
        MongoError: If the name is not a known read preference mode.
    """
    if not isinstance(value, str):
        return value
    mode = _READ_PREFERENCES.get(value.replace("_", "").lower())
    if mode is None:
        raise MongoError(f"Unknown read preference {value!r}")
    return mode


def _cursor_type(options: Mapping[str, Any]) -> int | None:
    if options.get("exhaust"):
        return CursorType.EXHAUST
    if options.get("tailable"):
        if options.get("awaitData", options.get("awaitdata")):
            return CursorType.TAILABLE_AWAIT
        return CursorType.TAILABLE
    return None


def driver_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """
    Translate find options to PyMongo keyword arguments.

    Legacy names are renamed (``batchSize`` to ``batch_size``, ...). If both
    a legacy name and its PyMongo name are present, the PyMongo one wins.
    ``timeout: False`` becomes ``no_cursor_timeout=True``, and the
    ``tailable``/``awaitData``/``exhaust`` flags become a ``cursor_type``.
    Retry tuning for tailable cursors is dropped.

    ``readPreference``/``read`` come back as a resolved ``read_preference``
    entry. PyMongo's find() does not take it, so callers apply it to the
    collection with ``with_options()`` before querying.

    Raises:
        MongoError: If an option has no PyMongo counterpart (``explain``,
            ``raw``, ``dbName``, ``connection``, ``transforms``) or names an
            unknown read preference.
    """
    translated = {}
    for key, value in options.items():
        if key in _UNSUPPORTED_OPTIONS:
            raise MongoError(f"Find option {key!r} is not supported by PyMongo")
        if key in _IGNORED_OPTIONS or key in _CURSOR_FLAGS:
            continue
        name = _OPTION_ALIASES.get(key, key)
        if name != key and name in options:
            continue
        if key == "timeout":
            value = not value
        elif name == "read_preference":
            value = read_preference(value)
        translated[name] = value

    if "cursor_type" not in translated:
        cursor_type = _cursor_type(options)
        if cursor_type is not None:
            translated["cursor_type"] = cursor_type
    return translated
