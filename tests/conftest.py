"""
Pytest fixtures for mongo-skin tests.

Provides an in-memory stand-in for the async PyMongo client, so the lazy
handles can be exercised without a MongoDB server.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

import pytest
from pymongo.asynchronous.cursor import AsyncCursor
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError
from pymongo.results import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult

# Keywords the real find() accepts
CURSOR_KEYWORDS = frozenset(inspect.signature(AsyncCursor.__init__).parameters) - {"self", "collection"}


def _check_find_keywords(kwargs: dict[str, Any]) -> None:
    unknown = sorted(set(kwargs) - CURSOR_KEYWORDS)
    if unknown:
        raise TypeError(f"find() got unexpected keyword arguments {unknown}")


class FakeCursor:
    """Async cursor over a fixed list of documents."""

    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = list(docs)
        self._position = 0
        self.closed = False

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        docs = self._docs[self._position:]
        if length:
            docs = docs[:length]
        self._position += len(docs)
        return docs

    def __aiter__(self) -> FakeCursor:
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._position >= len(self._docs):
            raise StopAsyncIteration
        doc = self._docs[self._position]
        self._position += 1
        return doc

    async def close(self) -> None:
        self.closed = True


class FakeNativeCollection:
    """In-memory collection with the async PyMongo method signatures."""

    def __init__(self, database: FakeNativeDatabase, name: str, options: dict[str, Any]) -> None:
        self.database = database
        self.name = name
        self.options = options

    def with_options(self, **options: Any) -> FakeNativeCollection:
        self._record("with_options", **options)
        return FakeNativeCollection(self.database, self.name, {**self.options, **options})

    @property
    def _data(self) -> list[dict[str, Any]]:
        return self.database.client.data.setdefault(self.database.name, {}).setdefault(self.name, [])

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.database.client.factory.log.append((self.name, method, args, kwargs))

    def _query(
        self,
        filter: dict[str, Any] | None,
        projection: dict[str, Any] | None = None,
        skip: int = 0,
        limit: int = 0,
        sort: list[tuple[str, int]] | None = None,
    ) -> list[dict[str, Any]]:
        results = [doc for doc in self._data if _matches(doc, filter or {})]

        if sort:
            for field, direction in reversed(sort):
                results.sort(key=lambda x: x.get(field, ""), reverse=(direction == -1))

        if skip:
            results = results[skip:]

        if limit:
            results = results[:limit]

        if projection:
            results = [_project(doc, projection) for doc in results]

        return [dict(doc) for doc in results]

    def find(
        self,
        filter: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
        skip: int = 0,
        limit: int = 0,
        sort: list[tuple[str, int]] | None = None,
        **kwargs: Any,
    ) -> FakeCursor:
        _check_find_keywords(kwargs)
        self._record(
            "find", filter, projection=projection, skip=skip, limit=limit, sort=sort, **kwargs
        )
        cursor = FakeCursor(self._query(filter, projection, skip, limit, sort))
        self.database.client.factory.cursors.append(cursor)
        return cursor

    async def find_one(self, filter: dict[str, Any] | None = None, **kwargs: Any) -> dict[str, Any] | None:
        _check_find_keywords(kwargs)
        self._record("find_one", filter, **kwargs)
        docs = self._query(filter, kwargs.get("projection"), kwargs.get("skip", 0), 1, kwargs.get("sort"))
        return docs[0] if docs else None

    async def insert_one(self, document: dict[str, Any], **kwargs: Any) -> InsertOneResult:
        self._record("insert_one", document, **kwargs)
        doc = dict(document)
        doc.setdefault("_id", f"{self.name}-{len(self._data) + 1}")
        if any(existing["_id"] == doc["_id"] for existing in self._data):
            raise DuplicateKeyError("E11000 duplicate key error")
        self._data.append(doc)
        return InsertOneResult(doc["_id"], True)

    async def insert_many(self, documents: list[dict[str, Any]], **kwargs: Any) -> InsertManyResult:
        self._record("insert_many", documents, **kwargs)
        ids = []
        for document in documents:
            doc = dict(document)
            doc.setdefault("_id", f"{self.name}-{len(self._data) + 1}")
            self._data.append(doc)
            ids.append(doc["_id"])
        return InsertManyResult(ids, True)

    async def update_one(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
        **kwargs: Any,
    ) -> UpdateResult:
        self._record("update_one", filter, update, upsert=upsert, **kwargs)
        matched = modified = 0
        for doc in self._data:
            if _matches(doc, filter):
                matched = 1
                modified = int(_apply_update(doc, update))
                break
        raw: dict[str, Any] = {"n": matched, "nModified": modified, "ok": 1.0}
        if not matched and upsert:
            doc = dict(filter)
            _apply_update(doc, update)
            self._data.append(doc)
            raw["n"] = 1
            raw["upserted"] = doc.get("_id")
        return UpdateResult(raw, True)

    async def update_many(self, filter: dict[str, Any], update: dict[str, Any], **kwargs: Any) -> UpdateResult:
        self._record("update_many", filter, update, **kwargs)
        matched = modified = 0
        for doc in self._data:
            if _matches(doc, filter):
                matched += 1
                modified += int(_apply_update(doc, update))
        return UpdateResult({"n": matched, "nModified": modified, "ok": 1.0}, True)

    async def delete_one(self, filter: dict[str, Any], **kwargs: Any) -> DeleteResult:
        self._record("delete_one", filter, **kwargs)
        for i, doc in enumerate(self._data):
            if _matches(doc, filter):
                del self._data[i]
                return DeleteResult({"n": 1, "ok": 1.0}, True)
        return DeleteResult({"n": 0, "ok": 1.0}, True)

    async def count_documents(self, filter: dict[str, Any], **kwargs: Any) -> int:
        self._record("count_documents", filter, **kwargs)
        return len(self._query(filter))

    async def aggregate(self, pipeline: list[dict[str, Any]], **kwargs: Any) -> FakeCursor:
        """Supports $match, $sort and $limit stages only."""
        self._record("aggregate", pipeline, **kwargs)
        docs = [dict(doc) for doc in self._data]
        for stage in pipeline:
            if "$match" in stage:
                docs = [doc for doc in docs if _matches(doc, stage["$match"])]
            elif "$sort" in stage:
                for field, direction in reversed(list(stage["$sort"].items())):
                    docs.sort(key=lambda x: x.get(field, ""), reverse=(direction == -1))
            elif "$limit" in stage:
                docs = docs[: stage["$limit"]]
        return FakeCursor(docs)


class FakeNativeDatabase:
    """In-memory database with the async PyMongo method signatures."""

    def __init__(self, client: FakeNativeClient, name: str) -> None:
        self.client = client
        self.name = name
        self.collections: dict[str, FakeNativeCollection] = {}

    def get_collection(self, name: str, **options: Any) -> FakeNativeCollection:
        self.client.factory.log.append((name, "get_collection", (), options))
        if options:
            return FakeNativeCollection(self, name, options)
        if name not in self.collections:
            self.collections[name] = FakeNativeCollection(self, name, {})
        return self.collections[name]

    async def list_collection_names(self, filter: dict[str, Any] | None = None) -> list[str]:
        return list(self.client.data.get(self.name, {}).keys())

    async def drop_collection(self, name: str) -> None:
        self.client.data.get(self.name, {}).pop(name, None)

    async def command(self, command: Any, value: Any = 1, **kwargs: Any) -> dict[str, Any]:
        return {"ok": 1.0, "command": command}


class FakeAdmin:
    def __init__(self, factory: FakeClientFactory) -> None:
        self.factory = factory

    async def command(self, command: str) -> dict[str, Any]:
        self.factory.pings += 1
        # Hold the open across a scheduling point so callers can pile up
        await asyncio.sleep(0)
        if self.factory.failures > 0:
            self.factory.failures -= 1
            raise ServerSelectionTimeoutError("No servers found yet")
        return {"ok": 1.0}


class FakeNativeClient:
    """In-memory stand-in for pymongo.AsyncMongoClient."""

    def __init__(self, factory: FakeClientFactory, uri: str, options: dict[str, Any]) -> None:
        self.factory = factory
        self.uri = uri
        self.options = options
        self.admin = FakeAdmin(factory)
        self.data = factory.data
        self.closed = False
        self._databases: dict[str, FakeNativeDatabase] = {}

    def get_database(self, name: str) -> FakeNativeDatabase:
        if name not in self._databases:
            self._databases[name] = FakeNativeDatabase(self, name)
        return self._databases[name]

    async def list_database_names(self) -> list[str]:
        return list(self.data.keys())

    async def drop_database(self, name: str) -> None:
        self.data.pop(name, None)

    async def server_info(self) -> dict[str, Any]:
        return {"version": "7.0.0", "ok": 1.0}

    async def close(self) -> None:
        self.closed = True


class FakeClientFactory:
    """
    Callable used as ``client_class``.

    Attributes:
        instances: Native clients created so far.
        pings: Number of open attempts that reached the server.
        failures: Number of upcoming pings that should fail.
        log: (collection, method, args, kwargs) for every native call.
        cursors: Native cursors returned by find().
    """

    def __init__(self) -> None:
        self.instances: list[FakeNativeClient] = []
        self.pings = 0
        self.failures = 0
        self.log: list[tuple[str, str, tuple[Any, ...], dict[str, Any]]] = []
        self.cursors: list[FakeCursor] = []
        self.data: dict[str, dict[str, list[dict[str, Any]]]] = {}

    def __call__(self, uri: str, **options: Any) -> FakeNativeClient:
        client = FakeNativeClient(self, uri, options)
        self.instances.append(client)
        return client

    def calls(self, method: str) -> list[tuple[str, tuple[Any, ...], dict[str, Any]]]:
        """Return (collection, args, kwargs) of every native call to ``method``."""
        return [(name, args, kwargs) for name, m, args, kwargs in self.log if m == method]


def _matches(doc: dict[str, Any], filter: dict[str, Any]) -> bool:
    """Check if document matches filter."""
    for key, value in filter.items():
        if key == "$and":
            if not all(_matches(doc, f) for f in value):
                return False
            continue
        if key == "$or":
            if not any(_matches(doc, f) for f in value):
                return False
            continue

        doc_value = doc.get(key)

        if isinstance(value, dict):
            for op, op_value in value.items():
                if op == "$eq" and doc_value != op_value:
                    return False
                if op == "$ne" and doc_value == op_value:
                    return False
                if op == "$gt" and (doc_value is None or doc_value <= op_value):
                    return False
                if op == "$gte" and (doc_value is None or doc_value < op_value):
                    return False
                if op == "$lt" and (doc_value is None or doc_value >= op_value):
                    return False
                if op == "$in" and doc_value not in op_value:
                    return False
        elif doc_value != value:
            return False

    return True


def _apply_update(doc: dict[str, Any], update: dict[str, Any]) -> bool:
    """Apply $set, $unset and $inc to a document."""
    modified = False

    for op, fields in update.items():
        if op == "$set":
            for key, value in fields.items():
                if doc.get(key) != value:
                    doc[key] = value
                    modified = True
        elif op == "$unset":
            for key in fields:
                if key in doc:
                    del doc[key]
                    modified = True
        elif op == "$inc":
            for key, value in fields.items():
                doc[key] = doc.get(key, 0) + value
                modified = True

    return modified


def _project(doc: dict[str, Any], projection: Any) -> dict[str, Any]:
    """Apply an inclusion or exclusion projection to a document."""
    if isinstance(projection, (list, tuple)):
        projection = {field: 1 for field in projection}

    if any(v for k, v in projection.items() if k != "_id"):
        result = {k: doc[k] for k, include in projection.items() if include and k in doc}
        if "_id" in doc and projection.get("_id", 1):
            result["_id"] = doc["_id"]
        return result

    return {k: v for k, v in doc.items() if projection.get(k, 1)}


@pytest.fixture
def client_factory() -> FakeClientFactory:
    """Create a fake native client factory."""
    return FakeClientFactory()


@pytest.fixture
def client(client_factory: FakeClientFactory):
    """Create a lazy MongoClient backed by the fake driver."""
    from mongo_skin import MongoClient

    return MongoClient("mongodb://test.local:27017/testdb", client_class=client_factory)


@pytest.fixture
def database(client):
    """Create a database."""
    return client["testdb"]


@pytest.fixture
def collection(database):
    """Create a collection."""
    return database["testcollection"]
