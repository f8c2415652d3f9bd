from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from tender_digest.engine.store import MongoTenderStore
from tender_digest.errors import PersistenceError

NOW = datetime(2025, 9, 10, 12, 0, tzinfo=timezone.utc)

_OPS = {
    "$gte": lambda value, bound: value >= bound,
    "$lte": lambda value, bound: value <= bound,
    "$lt": lambda value, bound: value < bound,
}


def _matches(document: dict, query: dict) -> bool:
    for field, condition in query.items():
        value = document.get(field)
        if isinstance(condition, dict):
            if not all(_OPS[op](value, bound) for op, bound in condition.items()):
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, documents: list[dict]) -> None:
        self.documents = documents

    def sort(self, keys):
        for field, direction in reversed(keys):
            self.documents.sort(
                key=lambda doc: doc.get(field) or datetime.min.replace(tzinfo=timezone.utc),
                reverse=direction < 0,
            )
        return self

    async def to_list(self, length=None):
        return list(self.documents)


class FakeCollection:
    """In-memory collection honouring the unique (id, emprendimiento) index."""

    def __init__(self) -> None:
        self.documents: list[dict] = []
        self.indexes: list[str] = []

    async def create_index(self, keys, unique=False, name=None):
        self.indexes.append(name)
        return name

    async def insert_one(self, document: dict):
        key = (document["id"], document["emprendimiento"])
        if any((doc["id"], doc["emprendimiento"]) == key for doc in self.documents):
            raise DuplicateKeyError("E11000 duplicate key error")
        self.documents.append(dict(document))
        return SimpleNamespace(inserted_id=len(self.documents))

    def find(self, query: dict, projection=None):
        return FakeCursor([dict(doc) for doc in self.documents if _matches(doc, query)])

    async def count_documents(self, query: dict) -> int:
        return sum(1 for doc in self.documents if _matches(doc, query))

    async def find_one(self, query: dict, projection=None, sort=None):
        cursor = self.find(query)
        if sort:
            cursor.sort(sort)
        return cursor.documents[0] if cursor.documents else None

    async def delete_many(self, query: dict):
        kept = [doc for doc in self.documents if not _matches(doc, query)]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return SimpleNamespace(deleted_count=deleted)


class FakeClient:
    def __init__(self, uri: str, collection: FakeCollection, ping_error: Exception | None = None, **kwargs) -> None:
        self.uri = uri
        self.kwargs = kwargs
        self.collection = collection
        self.ping_error = ping_error
        self.closed = False
        self.admin = SimpleNamespace(command=self._command)

    async def _command(self, name: str):
        if self.ping_error is not None:
            raise self.ping_error
        return {"ok": 1}

    def __getitem__(self, name: str):
        return {"ofertas": self.collection}

    async def close(self) -> None:
        self.closed = True


def _store(collection: FakeCollection, ping_error: Exception | None = None):
    clients: list[FakeClient] = []

    def factory(uri, **kwargs):
        client = FakeClient(uri, collection, ping_error, **kwargs)
        clients.append(client)
        return client

    return MongoTenderStore("mongodb://localhost:27017", "chile-compra", client_factory=factory), clients


def test_connect_pings_and_creates_indexes() -> None:
    collection = FakeCollection()
    store, clients = _store(collection)

    asyncio.run(store.connect())

    assert store.is_connected
    assert clients[0].kwargs == {"tz_aware": True}
    assert collection.indexes == ["unique_oferta_emprendimiento", "fecha_extraccion_desc", "emprendimiento_index"]

    asyncio.run(store.close())
    assert clients[0].closed
    assert not store.is_connected


def test_connect_failure_maps_to_persistence_error() -> None:
    store, _ = _store(FakeCollection(), ping_error=ServerSelectionTimeoutError("no servers"))

    with pytest.raises(PersistenceError, match="Cannot connect"):
        asyncio.run(store.connect())
    assert not store.is_connected


def test_duplicate_key_is_counted_not_raised(make_stored) -> None:
    collection = FakeCollection()
    store, _ = _store(collection)

    async def scenario():
        await store.connect()
        first = await store.insert_batch([make_stored(1), make_stored(2)])
        second = await store.insert_batch([make_stored(2), make_stored(3)])
        return first, second

    first, second = asyncio.run(scenario())

    assert first.inserted_ids == [1, 2]
    assert second.inserted_ids == [3]
    assert second.duplicate_ids == [2]
    assert collection.documents[0]["emprendimiento"] == "transporte"
    assert collection.documents[0]["codigo"] == "1234-1-COT25"


def test_query_stats_and_purge(make_stored) -> None:
    collection = FakeCollection()
    store, _ = _store(collection)

    async def scenario():
        await store.connect()
        await store.insert_batch(
            [
                make_stored(1, extracted_at=NOW - timedelta(days=120)),
                make_stored(2, extracted_at=NOW - timedelta(days=90)),
                make_stored(3, extracted_at=NOW),
                make_stored(4, business_line_id="software", extracted_at=NOW),
            ]
        )
        records = await store.query_by_business_line("transporte")
        stats = await store.stats_for("transporte", NOW.replace(hour=0))
        deleted = await store.purge_older_than(90, now=NOW)
        return records, stats, deleted

    records, stats, deleted = asyncio.run(scenario())

    assert [record.id for record in records] == [3, 2, 1]
    assert stats.total == 3
    assert stats.today == 1
    assert stats.last_extraction == NOW
    assert deleted == 1
    assert sorted(doc["id"] for doc in collection.documents) == [2, 3, 4]
