"""SQLite backed tender store for local runs and tests."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import structlog

from ...errors import DuplicateRecordError, NotConnectedError, PersistenceError
from ...infra.storage import SQLiteManager
from ...models import StoredTenderRecord
from .base import LineStats, TenderStore

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _ts(value: datetime | None) -> str | None:
    # Fixed-width text so lexical order matches chronological order.
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(_TS_FORMAT)


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


class SQLiteTenderStore(TenderStore):
    """Persist tenders as JSON payloads keyed by (tender_id, business_line)."""

    def __init__(
        self,
        path: Path,
        manager: SQLiteManager | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        super().__init__(logger)
        self.path = path
        self.manager = manager or SQLiteManager()
        self._conn: sqlite3.Connection | None = None

    async def connect(self) -> None:
        try:
            self._conn = self.manager.connect(self.path)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open SQLite store {self.path}: {exc}") from exc
        self._connected = True
        self.logger.info("store_connected", backend="sqlite", path=str(self.path))

    async def close(self) -> None:
        if self._conn is not None:
            self.manager.close(self.path)
            self._conn = None
        self._connected = False
        self.logger.info("store_disconnected", backend="sqlite")

    @property
    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotConnectedError()
        return self._conn

    async def _insert_one(self, record: StoredTenderRecord) -> None:
        try:
            cursor = self._connection.execute(
                """
                INSERT INTO tenders (tender_id, business_line, query_name, extracted_at, published_at, payload)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (tender_id, business_line) DO NOTHING
                """,
                (
                    record.id,
                    record.business_line_id,
                    record.query_name,
                    _ts(record.extracted_at),
                    _ts(record.published_at),
                    record.model_dump_json(by_alias=True),
                ),
            )
            self._connection.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Insert of tender {record.id} failed: {exc}") from exc
        if cursor.rowcount == 0:
            raise DuplicateRecordError(record.id, record.business_line_id)

    async def _find(
        self, business_line_id: str, date_from: datetime | None, date_to: datetime | None
    ) -> list[StoredTenderRecord]:
        clauses = ["business_line = ?"]
        params: list[object] = [business_line_id]
        if date_from is not None:
            clauses.append("extracted_at >= ?")
            params.append(_ts(date_from))
        if date_to is not None:
            clauses.append("extracted_at <= ?")
            params.append(_ts(date_to))
        sql = (
            "SELECT payload FROM tenders WHERE "
            + " AND ".join(clauses)
            + " ORDER BY extracted_at DESC, published_at DESC"
        )
        try:
            rows = self._connection.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Query for {business_line_id} failed: {exc}") from exc
        return [StoredTenderRecord.model_validate_json(row["payload"]) for row in rows]

    async def _stats(self, business_line_id: str, today_start: datetime) -> LineStats:
        try:
            row = self._connection.execute(
                """
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN extracted_at >= ? THEN 1 ELSE 0 END) AS today,
                       MAX(extracted_at) AS last_extraction
                FROM tenders WHERE business_line = ?
                """,
                (_ts(today_start), business_line_id),
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Stats for {business_line_id} failed: {exc}") from exc
        return LineStats(
            total=row["total"] or 0,
            today=row["today"] or 0,
            last_extraction=_parse_ts(row["last_extraction"]),
        )

    async def _delete_before(self, cutoff: datetime) -> int:
        try:
            cursor = self._connection.execute("DELETE FROM tenders WHERE extracted_at < ?", (_ts(cutoff),))
            self._connection.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Purge failed: {exc}") from exc
        return cursor.rowcount


__all__ = ["SQLiteTenderStore"]
