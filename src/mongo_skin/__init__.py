"""
mongo-skin - Lazy, convenient collections on top of the async PyMongo driver.

This package wraps PyMongo's async client so that:
- Clients, databases and collections can be used before a connection exists
- Concurrent first operations share a single connection open
- find() accepts (filter, projection), (filter, options) and
  (filter, projection, options) call shapes
- Results come back simplified (lists of documents, unwrapped update
  results, removed counts)
- Collections can be extended per instance with bind()

Example usage:
    from mongo_skin import connect

    async def main():
        # No I/O happens here
        db = connect("mongodb://localhost:27017/blog")
        posts = db.posts

        # First awaited operation opens the connection
        await posts.insert_one({"title": "Hello", "tags": ["intro"]})

        # Find documents as a list, with a projection shorthand
        titles = await posts.find_items({"tags": "intro"}, {"title": 1})

        # Visit documents one by one
        await posts.find_each({}, print)

        # By-id helpers
        post = await posts.find_by_id("5f1d7a3c9b1e8a2d4c6b8e0f")
        raw = await posts.update_by_id(post["_id"], {"$set": {"draft": False}})
        removed = await posts.remove_by_id(post["_id"])

        await db.client.close()

    import asyncio
    asyncio.run(main())
"""

from __future__ import annotations

__version__ = "0.1.0"

from .client import MongoClient, connect
from .collection import Collection
from .cursor import Cursor
from .database import Database
from .helper import id_filter, to_object_id
from .proxy import ConnectionState, LazyProxy
from .query import FIND_OPTION_NAMES, CallShape, QueryArgs, normalize_find_args
from .types import (
    AlreadyConsumed,
    ConnectionOpenFailed,
    InvalidIdentifier,
    MongoError,
)

__all__ = [
    # Main classes
    "MongoClient",
    "Database",
    "Collection",
    "Cursor",
    "connect",
    # Lazy binding
    "LazyProxy",
    "ConnectionState",
    # Query normalization
    "CallShape",
    "QueryArgs",
    "FIND_OPTION_NAMES",
    "normalize_find_args",
    # Identifiers
    "to_object_id",
    "id_filter",
    # Exceptions
    "MongoError",
    "ConnectionOpenFailed",
    "InvalidIdentifier",
    "AlreadyConsumed",
    # Version
    "__version__",
]
