"""Persistence gateway contract shared by every storage backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

import structlog

from ...errors import DuplicateRecordError, NotConnectedError
from ...models import StoredTenderRecord


@dataclass(slots=True)
class InsertOutcome:
    """Which records of a batch were new and which were already stored."""

    inserted_ids: list[int] = field(default_factory=list)
    duplicate_ids: list[int] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicate_ids)


@dataclass(slots=True)
class LineStats:
    total: int
    today: int
    last_extraction: datetime | None


def utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TenderStore(ABC):
    """Uniform gateway contract: unique (id, business line) records.

    Backends implement the single-record primitives; the batch insert,
    connection guard and retention cutoff live here.
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("tender_digest.store")
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise NotConnectedError()

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and create indexes."""

    @abstractmethod
    async def close(self) -> None:
        """Release underlying resources."""

    @abstractmethod
    async def _insert_one(self, record: StoredTenderRecord) -> None:
        """Insert one record or raise DuplicateRecordError / PersistenceError."""

    @abstractmethod
    async def _find(
        self, business_line_id: str, date_from: datetime | None, date_to: datetime | None
    ) -> list[StoredTenderRecord]:
        """Return matching records newest extraction first."""

    @abstractmethod
    async def _stats(self, business_line_id: str, today_start: datetime) -> LineStats:
        ...

    @abstractmethod
    async def _delete_before(self, cutoff: datetime) -> int:
        """Delete records whose extraction timestamp is strictly before cutoff."""

    async def insert_batch(self, records: Iterable[StoredTenderRecord]) -> InsertOutcome:
        self._ensure_connected()
        outcome = InsertOutcome()
        for record in records:
            try:
                await self._insert_one(record)
            except DuplicateRecordError:
                outcome.duplicate_ids.append(record.id)
            else:
                outcome.inserted_ids.append(record.id)
        if outcome.inserted_count or outcome.duplicate_count:
            self.logger.info(
                "insert_batch_completed",
                inserted=outcome.inserted_count,
                duplicates=outcome.duplicate_count,
            )
        return outcome

    async def query_by_business_line(
        self,
        business_line_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[StoredTenderRecord]:
        self._ensure_connected()
        return await self._find(
            business_line_id,
            utc(date_from) if date_from else None,
            utc(date_to) if date_to else None,
        )

    async def stats_for(self, business_line_id: str, today_start: datetime) -> LineStats:
        """Totals for a line; ``today_start`` is local midnight of the current day."""

        self._ensure_connected()
        return await self._stats(business_line_id, utc(today_start))

    async def purge_older_than(self, age_days: int, now: datetime | None = None) -> int:
        self._ensure_connected()
        cutoff = utc(now or datetime.now(timezone.utc)) - timedelta(days=age_days)
        deleted = await self._delete_before(cutoff)
        self.logger.info("purge_completed", deleted=deleted, age_days=age_days, cutoff=cutoff.isoformat())
        return deleted


__all__ = ["InsertOutcome", "LineStats", "TenderStore", "utc"]
