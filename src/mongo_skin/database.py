"""
Database - Lazy database handle.

Hands out lazy Collection handles and defers database-level commands
until the client connection is open.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, TypeVar

from .collection import Collection
from .proxy import LazyProxy

if TYPE_CHECKING:
    from .client import MongoClient

T = TypeVar("T", bound=dict[str, Any])

__all__ = ["Database"]


class Database(LazyProxy):
    """
    Lazily bound database.

    Collections can be accessed using either attribute access or subscript
    notation, before or after the connection is open.

    Example:
        db = client["myapp"]

        # Access collections
        users = db.users
        orders = db["orders"]

        # Collection with extensions, reachable as db.articles
        db.bind("articles", {
            "latest": lambda self: self.find({}).sort("created_at", -1).limit(10).to_list(),
        })
        recent = await db.articles.latest()

        # List collections
        names = await db.list_collection_names()
    """

    __slots__ = ("_client", "_name", "_collections")

    def __init__(self, client: MongoClient, name: str) -> None:
        """
        Initialize a database.

        Args:
            client: Parent MongoClient instance.
            name: Database name.
        """
        super().__init__()
        self._client = client
        self._name = name
        self._collections: dict[str, Collection[Any]] = {}

    @property
    def name(self) -> str:
        """Get the database name."""
        return self._name

    @property
    def client(self) -> MongoClient:
        """Get the parent client."""
        return self._client

    async def _open(self) -> Any:
        native_client = await self._client.open()
        return native_client.get_database(self._name)

    def collection(self, name: str, **options: Any) -> Collection[Any]:
        """
        Get a collection handle.

        Handles without options are cached per name. Passing options always
        creates a new handle, which resolves on its own.

        Args:
            name: Collection name.
            **options: Passed to the native ``get_collection()``.
        """
        if options:
            return Collection(self, name, **options)
        if name not in self._collections:
            self._collections[name] = Collection(self, name)
        return self._collections[name]

    def __getitem__(self, name: str) -> Collection[Any]:
        """
        Get a collection by name using subscript notation.

        Example:
            users = db["users"]
        """
        return self.collection(name)

    def __getattr__(self, name: str) -> Collection[Any]:
        """
        Get a collection by name using attribute access.

        Example:
            users = db.users
        """
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

        return self.collection(name)

    def get_collection(
        self,
        name: str,
        document_class: type[T] | None = None,
    ) -> Collection[T]:
        """
        Get a typed collection.

        Args:
            name: Collection name.
            document_class: Optional document type for type hints.

        Example:
            class User(TypedDict):
                _id: str
                name: str

            users = db.get_collection("users", User)
            user: User | None = await users.find_one({"name": "Alice"})
        """
        return self.collection(name)  # type: ignore

    def bind(
        self,
        name: str,
        extensions: Mapping[str, Any] | None = None,
    ) -> Collection[Any]:
        """
        Get a collection and attach extensions to it.

        Args:
            name: Collection name.
            extensions: Optional mapping passed to Collection.bind().

        Returns:
            The collection, also reachable as ``db.<name>``.
        """
        collection = self.collection(name)
        if extensions:
            collection.bind(extensions)
        return collection

    async def list_collection_names(self, filter: dict[str, Any] | None = None) -> list[str]:
        """
        List all collection names in the database.

        Args:
            filter: Optional filter for collection names.
        """
        return await self._dispatch("list_collection_names", filter=filter)

    async def drop_collection(self, name: str) -> None:
        """
        Drop a collection.

        Args:
            name: Name of the collection to drop.
        """
        await self._dispatch("drop_collection", name)
        self._collections.pop(name, None)

    async def command(
        self,
        command: str | dict[str, Any],
        value: Any = 1,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Run a database command.

        Args:
            command: Command name or command document.
            value: Command value (default 1).
            **kwargs: Additional command options.
        """
        return await self._dispatch("command", command, value, **kwargs)

    def __repr__(self) -> str:
        return f"Database({self._name!r})"
