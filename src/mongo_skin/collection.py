"""
Collection - Lazy collection handle.

Provides a collection that can be used before its database connection
exists, with convenience methods layered over the native async
collection: list and per-document find variants, by-id operations and
unwrapped write results.
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Callable, Generic, Mapping, TypeVar

from .cursor import Cursor
from .helper import id_filter
from .proxy import LazyProxy
from .query import QueryArgs, driver_options, normalize_find_args
from .results import materialize, removed_count, unwrap_update

if TYPE_CHECKING:
    from .database import Database
    from .types import Update

T = TypeVar("T", bound=dict[str, Any])

__all__ = ["Collection"]


class Collection(LazyProxy, Generic[T]):
    """
    Lazily bound collection.

    Any method of the native collection is available through this handle
    and is deferred until the connection is open. On top of that, find-like
    methods accept ``(filter, projection)`` as well as ``(filter, options)``
    and ``(filter, projection, options)``.

    Example:
        users = db["users"]

        # No connection needed yet
        cursor = users.find({"status": "active"}, {"name": 1})

        docs = await users.find_items({"status": "active"})
        await users.find_each({"status": "active"}, print)

        user = await users.find_by_id("5f1d7a3c9b1e8a2d4c6b8e0f")
        raw = await users.update_by_id(user["_id"], {"$set": {"vip": True}})
        removed = await users.remove_by_id(user["_id"])

        # Plain driver methods are proxied
        await users.update_many({"status": "active"}, {"$set": {"seen": True}})

        # Per-instance extensions
        users.bind({
            "by_email": lambda self, email: self.find_one({"email": email}),
        })
        alice = await users.by_email("alice@example.com")
    """

    __slots__ = ("_database", "_name", "_full_name", "_collection_options")

    def __init__(
        self,
        database: Database,
        name: str,
        **collection_options: Any,
    ) -> None:
        """
        Initialize a collection.

        Args:
            database: Parent database handle.
            name: Collection name.
            **collection_options: Passed to the native ``get_collection()``
                (codec_options, read_preference, ...).
        """
        super().__init__()
        self._database = database
        self._name = name
        self._full_name = f"{database.name}.{name}"
        self._collection_options = collection_options

    @property
    def name(self) -> str:
        """Get the collection name."""
        return self._name

    @property
    def full_name(self) -> str:
        """Get the full collection name (database.collection)."""
        return self._full_name

    @property
    def database(self) -> Database:
        """Get the parent database."""
        return self._database

    async def _open(self) -> Any:
        native_db = await self._database.open()
        native = native_db.get_collection(self._name, **self._collection_options)
        if inspect.isawaitable(native):
            native = await native
        return native

    def __getattr__(self, name: str) -> Callable[..., Any]:
        """
        Proxy a native collection method.

        Example:
            count = await users.count_documents({"status": "active"})
        """
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

        async def method(*args: Any, **kwargs: Any) -> Any:
            return await self._dispatch(name, *args, **kwargs)

        method.__name__ = name
        method.__qualname__ = f"{type(self).__name__}.{name}"
        return method

    def bind(self, extensions: Mapping[str, Any]) -> Collection[T]:
        """
        Attach extension methods and values to this collection.

        Functions receive the collection as their first argument. An
        extension replaces a built-in method of the same name on this
        instance only.

        Args:
            extensions: Mapping of attribute name to function or value.

        Returns:
            Self for chaining.

        Example:
            articles.bind({
                "by_author": lambda self, author_id: self.find_items({"author_id": author_id}),
                "page_size": 20,
            })
        """
        self._extend(extensions)
        return self

    def _query(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> QueryArgs:
        # find(filter=...) as in PyMongo
        if "filter" in kwargs and all(callable(arg) for arg in args):
            args = (kwargs.pop("filter"), *args)
        query = normalize_find_args(args)
        if kwargs:
            query.options.update(kwargs)
        return query

    async def _find_native(self, method: str, filter: Any, options: Mapping[str, Any]) -> Any:
        """Run a native find-like method, applying any read preference first."""
        kwargs = driver_options(options)
        read_preference = kwargs.pop("read_preference", None)
        if read_preference is None:
            return await self._dispatch(method, filter, **kwargs)

        native = await self._dispatch("with_options", read_preference=read_preference)
        result = getattr(native, method)(filter, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def find(self, *args: Any, **kwargs: Any) -> Cursor[T]:
        """
        Find documents matching the filter.

        Accepts ``(filter)``, ``(filter, projection)``, ``(filter, options)``
        and ``(filter, projection, options)``. Keyword arguments are find
        options and override positional ones.

        Returns:
            An unexecuted Cursor.

        Raises:
            TypeError: If a callback is passed. Use find_each() instead.

        Example:
            docs = await users.find({"age": {"$gt": 30}}, {"name": 1}).sort("name").to_list()
        """
        query = self._query(args, kwargs)
        if query.callback is not None:
            raise TypeError("find() does not take a callback; use find_each()")
        return Cursor(self, query.filter, query.options)

    async def find_items(self, *args: Any, **kwargs: Any) -> list[T]:
        """
        Find documents and return them as a list.

        Same arguments as find().
        """
        return await self.find(*args, **kwargs).to_list()

    async def find_each(self, *args: Any, **kwargs: Any) -> int:
        """
        Find documents and call the trailing callback for each one.

        Same arguments as find(), followed by the callback.

        Returns:
            The number of documents visited.

        Raises:
            TypeError: If no callback is passed.

        Example:
            await users.find_each({"status": "active"}, {"name": 1}, print)
        """
        query = self._query(args, kwargs)
        if query.callback is None:
            raise TypeError("find_each() requires a callback as its last argument")
        return await Cursor(self, query.filter, query.options).each(query.callback)

    async def find_one(self, *args: Any, **kwargs: Any) -> T | None:
        """
        Find a single document.

        Same arguments as find().

        Returns:
            The matching document, or None if not found.

        Raises:
            TypeError: If a callback is passed.
        """
        query = self._query(args, kwargs)
        if query.callback is not None:
            raise TypeError("find_one() does not take a callback; await its result")
        return await self._find_native("find_one", query.filter, query.options)

    async def find_by_id(self, id: Any, *args: Any, **kwargs: Any) -> T | None:
        """
        Find a document by _id.

        Args:
            id: ObjectId, hex string or custom key.
            *args: Projection and/or options, as for find().

        Raises:
            InvalidIdentifier: If id cannot be used as an _id.
        """
        return await self.find_one(id_filter(id), *args, **kwargs)

    async def update_by_id(self, id: Any, update: Update, **kwargs: Any) -> dict[str, Any] | None:
        """
        Update a document by _id.

        Args:
            id: ObjectId, hex string or custom key.
            update: Update operations ($set, $unset, $inc, etc.).
            **kwargs: Passed to the native update_one() (upsert, ...).

        Returns:
            The raw server result, e.g. ``{"n": 1, "nModified": 1, "ok": 1.0}``.

        Raises:
            InvalidIdentifier: If id cannot be used as an _id.
        """
        result = await self._dispatch("update_one", id_filter(id), update, **kwargs)
        return unwrap_update(result)

    async def remove_by_id(self, id: Any, **kwargs: Any) -> int:
        """
        Remove a document by _id.

        Returns:
            The number of documents removed.

        Raises:
            InvalidIdentifier: If id cannot be used as an _id.
        """
        result = await self._dispatch("delete_one", id_filter(id), **kwargs)
        return removed_count(result)

    async def insert_one(
        self,
        document: T,
        options: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Insert a single document.

        Client-side key checking is always off: a ``check_keys`` option is
        dropped, and nothing else is added to the driver call.

        Args:
            document: The document to insert.
            options: Options for the native insert_one().
            **kwargs: More options, overriding ``options``.

        Returns:
            The driver's InsertOneResult.
        """
        opts = dict(options or {})
        opts.update(kwargs)
        opts.pop("check_keys", None)
        opts.pop("checkKeys", None)
        return await self._dispatch("insert_one", document, **opts)

    async def aggregate(self, pipeline: list[dict[str, Any]], **kwargs: Any) -> Any:
        """
        Run an aggregation pipeline.

        Returns:
            List of aggregation results when the driver returns a cursor,
            otherwise the driver's result unchanged.
        """
        result = await self._dispatch("aggregate", pipeline, **kwargs)
        return await materialize(result)

    def __repr__(self) -> str:
        return f"Collection({self._full_name!r})"
