"""MongoDB tender store using pymongo's asyncio client."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

import structlog
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from ...errors import DuplicateRecordError, PersistenceError
from ...models import StoredTenderRecord
from .base import LineStats, TenderStore, utc

LINE_FIELD = "emprendimiento"
EXTRACTED_FIELD = "fecha_extraccion"
PUBLISHED_FIELD = "fecha_publicacion"


class MongoTenderStore(TenderStore):
    """Write tenders into a MongoDB collection with a unique compound index."""

    def __init__(
        self,
        uri: str,
        database: str,
        collection: str = "ofertas",
        client_factory: Callable[..., Any] = AsyncMongoClient,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        super().__init__(logger)
        self.uri = uri
        self.database = database
        self.collection_name = collection
        self._client_factory = client_factory
        self._client: Any = None
        self._collection: Any = None

    async def connect(self) -> None:
        try:
            self._client = self._client_factory(self.uri, tz_aware=True)
            await self._client.admin.command("ping")
            self._collection = self._client[self.database][self.collection_name]
            await self._create_indexes()
        except PyMongoError as exc:
            self._client = None
            self._collection = None
            raise PersistenceError(f"Cannot connect to MongoDB: {exc}") from exc
        self._connected = True
        self.logger.info("store_connected", backend="mongodb", database=self.database)

    async def _create_indexes(self) -> None:
        await self._collection.create_index(
            [("id", ASCENDING), (LINE_FIELD, ASCENDING)],
            unique=True,
            name="unique_oferta_emprendimiento",
        )
        await self._collection.create_index([(EXTRACTED_FIELD, DESCENDING)], name="fecha_extraccion_desc")
        await self._collection.create_index([(LINE_FIELD, ASCENDING)], name="emprendimiento_index")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
        self._client = None
        self._collection = None
        self._connected = False
        self.logger.info("store_disconnected", backend="mongodb")

    async def _insert_one(self, record: StoredTenderRecord) -> None:
        try:
            await self._collection.insert_one(record.to_document())
        except DuplicateKeyError as exc:
            raise DuplicateRecordError(record.id, record.business_line_id) from exc
        except PyMongoError as exc:
            raise PersistenceError(f"Insert of tender {record.id} failed: {exc}") from exc

    async def _find(
        self, business_line_id: str, date_from: datetime | None, date_to: datetime | None
    ) -> list[StoredTenderRecord]:
        query: dict[str, Any] = {LINE_FIELD: business_line_id}
        if date_from or date_to:
            window: dict[str, datetime] = {}
            if date_from:
                window["$gte"] = date_from
            if date_to:
                window["$lte"] = date_to
            query[EXTRACTED_FIELD] = window
        try:
            cursor = self._collection.find(query, {"_id": 0}).sort(
                [(EXTRACTED_FIELD, DESCENDING), (PUBLISHED_FIELD, DESCENDING)]
            )
            documents = await cursor.to_list(None)
        except PyMongoError as exc:
            raise PersistenceError(f"Query for {business_line_id} failed: {exc}") from exc
        return [StoredTenderRecord.from_document(doc) for doc in documents]

    async def _stats(self, business_line_id: str, today_start: datetime) -> LineStats:
        try:
            total = await self._collection.count_documents({LINE_FIELD: business_line_id})
            today = await self._collection.count_documents(
                {LINE_FIELD: business_line_id, EXTRACTED_FIELD: {"$gte": today_start}}
            )
            latest = await self._collection.find_one(
                {LINE_FIELD: business_line_id},
                {EXTRACTED_FIELD: 1},
                sort=[(EXTRACTED_FIELD, DESCENDING)],
            )
        except PyMongoError as exc:
            raise PersistenceError(f"Stats for {business_line_id} failed: {exc}") from exc
        last = latest.get(EXTRACTED_FIELD) if latest else None
        return LineStats(total=total, today=today, last_extraction=utc(last) if last else None)

    async def _delete_before(self, cutoff: datetime) -> int:
        try:
            result = await self._collection.delete_many({EXTRACTED_FIELD: {"$lt": cutoff}})
        except PyMongoError as exc:
            raise PersistenceError(f"Purge failed: {exc}") from exc
        return result.deleted_count


__all__ = ["MongoTenderStore"]
