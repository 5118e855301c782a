"""
Result shaping for driver responses.

Reduces the driver's result objects to the plain values callers of
the convenience methods want.
"""

from __future__ import annotations

import inspect
from typing import Any, Mapping

__all__ = ["materialize", "removed_count", "unwrap_update"]


def unwrap_update(result: Any) -> Any:
    """
    Reduce an update result to its inner raw result.

    Args:
        result: A driver UpdateResult, a mapping envelope with a
                ``result`` key, or None.

    Returns:
        The raw server result (e.g. ``{"n": 1, "nModified": 1, "ok": 1.0}``),
        or None if there was no result.
    """
    if result is None:
        return None
    if hasattr(result, "raw_result"):
        return result.raw_result
    if isinstance(result, Mapping) and "result" in result:
        return result["result"]
    return result


def removed_count(result: Any) -> int:
    """Return the number of documents affected by a remove."""
    raw = unwrap_update(result)
    if not isinstance(raw, Mapping):
        return 0
    return int(raw.get("n", 0))


async def materialize(result: Any) -> Any:
    """Drain a cursor-like result into a list; other results pass through."""
    to_list = getattr(result, "to_list", None)
    if to_list is None:
        return result

    items = to_list(None)
    if inspect.isawaitable(items):
        items = await items
    return items
