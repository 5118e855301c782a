"""
MongoClient - Lazy client for the async PyMongo driver.

The native client is only created, and the server only contacted, when
the first operation needs it.
"""

from __future__ import annotations

import asyncio
import logging
import os
from types import TracebackType
from typing import Any, Callable
from urllib.parse import urlsplit

from pymongo import AsyncMongoClient

from .database import Database
from .proxy import LazyProxy

logger = logging.getLogger(__name__)

__all__ = ["MongoClient", "connect"]

DEFAULT_URI = "mongodb://localhost:27017"


class MongoClient(LazyProxy):
    """
    Lazily connected MongoDB client.

    Databases can be accessed using either attribute access or subscript
    notation; nothing touches the network until an operation is awaited.

    Example:
        # Create client
        client = MongoClient("mongodb://localhost:27017/myapp")

        # Access databases
        db = client["myapp"]
        db = client.myapp
        db = client.get_default_database()

        # First awaited operation opens the connection
        names = await client.list_database_names()

        # Close connection
        await client.close()

        # Or use as async context manager
        async with MongoClient("mongodb://localhost:27017") as client:
            db = client["myapp"]
            ...
    """

    __slots__ = ("_uri", "_client_class", "_options", "_databases")

    def __init__(
        self,
        uri: str | None = None,
        client_class: Callable[..., Any] | None = None,
        **options: Any,
    ) -> None:
        """
        Initialize the MongoDB client.

        Args:
            uri: Connection URI (e.g., "mongodb://localhost:27017/myapp").
                 If not provided, uses MONGO_URL environment variable.
            client_class: Factory for the native client
                          (default: pymongo.AsyncMongoClient).
            **options: Additional options for the native client
                       (serverSelectionTimeoutMS, tz_aware, ...).
        """
        super().__init__()
        self._uri = uri or os.environ.get("MONGO_URL", DEFAULT_URI)
        self._client_class = client_class or AsyncMongoClient
        self._options = options
        self._databases: dict[str, Database] = {}

    @property
    def uri(self) -> str:
        """Get the connection URI."""
        return self._uri

    @property
    def is_connected(self) -> bool:
        """Check if the client is connected."""
        return self.is_open

    async def _open(self) -> Any:
        native = self._client_class(self._uri, **self._options)
        try:
            await native.admin.command("ping")
        except Exception:
            logger.warning("Ping failed for %s, closing native client", self._redacted_uri())
            await native.close()
            raise
        return native

    async def connect(self) -> MongoClient:
        """
        Connect to the MongoDB server now instead of on first use.

        Returns:
            Self for chaining.

        Raises:
            ConnectionOpenFailed: If connection fails.
        """
        await self.open()
        return self

    async def close(self) -> None:
        """
        Close the native client, if one was opened.

        An open still in progress is waited for first, so its client is
        closed too.
        """
        if self._resolver is not None and not self._resolver.done():
            # Open errors belong to the operations that triggered the open
            await asyncio.wait([self._resolver])
        if self._native is not None:
            await self._native.close()

    def __getitem__(self, name: str) -> Database:
        """
        Get a database by name using subscript notation.

        Example:
            db = client["myapp"]
        """
        if name not in self._databases:
            self._databases[name] = Database(self, name)
        return self._databases[name]

    def __getattr__(self, name: str) -> Database:
        """
        Get a database by name using attribute access.

        Example:
            db = client.myapp
        """
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

        return self[name]

    def get_database(self, name: str) -> Database:
        """Get a database by name."""
        return self[name]

    def get_default_database(self) -> Database:
        """
        Get the database named in the connection URI.

        Raises:
            ValueError: If the URI does not name a database.
        """
        name = urlsplit(self._uri).path.lstrip("/")
        if not name:
            raise ValueError(f"No default database in {self._redacted_uri()}")
        return self[name]

    async def list_database_names(self) -> list[str]:
        """List all database names."""
        return await self._dispatch("list_database_names")

    async def drop_database(self, name: str) -> None:
        """
        Drop a database.

        Args:
            name: Name of the database to drop.
        """
        await self._dispatch("drop_database", name)
        self._databases.pop(name, None)

    async def server_info(self) -> dict[str, Any]:
        """Get server information."""
        return await self._dispatch("server_info")

    def _redacted_uri(self) -> str:
        parts = urlsplit(self._uri)
        if "@" not in parts.netloc:
            return self._uri
        return parts._replace(netloc="***@" + parts.netloc.rsplit("@", 1)[1]).geturl()

    async def __aenter__(self) -> MongoClient:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        status = "connected" if self.is_open else self._state.value
        return f"MongoClient({self._redacted_uri()!r}, {status})"


def connect(uri: str | None = None, **options: Any) -> Database:
    """
    Get the default database of a new lazy client.

    No I/O happens until an operation on the database or one of its
    collections is awaited.

    Example:
        db = connect("mongodb://localhost:27017/blog")
        posts = await db.posts.find_items({"published": True})
    """
    return MongoClient(uri, **options).get_default_database()
