"""
Cursor - Lazy find continuation.

A Cursor records a find query against a Collection without running it.
Query shaping methods return new cursors; the query only reaches the
driver when a terminal method is used, and each Cursor can be consumed
once.
"""

from __future__ import annotations

import inspect
from contextlib import aclosing
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Generator, Generic, TypeVar

from .types import AlreadyConsumed

if TYPE_CHECKING:
    from .collection import Collection
    from .types import Projection

T = TypeVar("T", bound=dict[str, Any])

__all__ = ["Cursor"]


class Cursor(Generic[T]):
    """
    Lazy, single-use find continuation.

    Example:
        cursor = users.find({"status": "active"}).sort("name").limit(10)

        # Materialize as a list
        docs = await cursor.to_list()

        # Or stream
        async for doc in users.find({"status": "active"}):
            print(doc)

        # Or get the driver's own cursor
        native = await users.find({"status": "active"})
    """

    __slots__ = ("_collection", "_filter", "_options", "_consumed")

    def __init__(
        self,
        collection: Collection[T],
        filter: Any = None,
        options: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize a cursor.

        Args:
            collection: The owning collection handle.
            filter: Query filter.
            options: Canonical find options.
        """
        self._collection = collection
        self._filter = filter
        self._options: dict[str, Any] = dict(options or {})
        self._consumed = False

    @property
    def collection(self) -> Collection[T]:
        """Get the owning collection."""
        return self._collection

    @property
    def filter(self) -> Any:
        """Get the query filter."""
        return self._filter

    @property
    def options(self) -> dict[str, Any]:
        """Get a copy of the find options."""
        return dict(self._options)

    @property
    def consumed(self) -> bool:
        """Check if a terminal method has already been used."""
        return self._consumed

    def _derive(self, **options: Any) -> Cursor[T]:
        merged = dict(self._options)
        merged.update(options)
        return Cursor(self._collection, self._filter, merged)

    def sort(self, key_or_list: str | list[tuple[str, int]], direction: int = 1) -> Cursor[T]:
        """
        Sort the results.

        Args:
            key_or_list: Field name or list of (field, direction) tuples.
            direction: Sort direction (1 for ascending, -1 for descending).
                       Only used if key_or_list is a string.

        Returns:
            A new cursor.
        """
        if isinstance(key_or_list, str):
            return self._derive(sort=[(key_or_list, direction)])
        return self._derive(sort=list(key_or_list))

    def limit(self, limit: int) -> Cursor[T]:
        """Return a new cursor returning at most ``limit`` documents."""
        return self._derive(limit=limit)

    def skip(self, skip: int) -> Cursor[T]:
        """Return a new cursor skipping the first ``skip`` documents."""
        return self._derive(skip=skip)

    def batch_size(self, size: int) -> Cursor[T]:
        return self._derive(batch_size=size)

    def project(self, projection: Projection) -> Cursor[T]:
        return self._derive(projection=projection)

    def hint(self, index: str | list[tuple[str, int]]) -> Cursor[T]:
        return self._derive(hint=index)

    def max_time_ms(self, max_time_ms: int) -> Cursor[T]:
        return self._derive(max_time_ms=max_time_ms)

    def clone(self) -> Cursor[T]:
        """Return an unconsumed copy of this cursor."""
        return self._derive()

    async def _materialize(self) -> Any:
        if self._consumed:
            raise AlreadyConsumed("Cursor has already been consumed; use clone() to run it again")
        self._consumed = True
        return await self._collection._find_native("find", self._filter, self._options)

    def __await__(self) -> Generator[Any, None, Any]:
        """Run the query and return the driver's cursor."""
        return self._materialize().__await__()

    async def to_list(self, length: int | None = None) -> list[T]:
        """
        Run the query and return the matching documents.

        Args:
            length: Maximum number of documents to return.
                    If None, returns all documents.

        Raises:
            AlreadyConsumed: If this cursor was already consumed.
        """
        cursor = await self._materialize()
        return await cursor.to_list(length)

    async def each(self, callback: Callable[[T], Any]) -> int:
        """
        Run the query and call ``callback`` for every document.

        Async callbacks are awaited before moving to the next document.

        Returns:
            The number of documents visited.

        Raises:
            AlreadyConsumed: If this cursor was already consumed.
        """
        count = 0
        async with aclosing(self._iterate()) as documents:
            async for doc in documents:
                result = callback(doc)
                if inspect.isawaitable(result):
                    await result
                count += 1
        return count

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        cursor = await self._materialize()
        try:
            async for doc in cursor:
                yield doc
        finally:
            await cursor.close()

    def __repr__(self) -> str:
        return f"Cursor({self._collection.full_name!r}, {self._filter!r}, {self._options!r})"
