"""SQLite connection management for the local tender store."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Dict


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path not in self._connections:
            conn = sqlite3.connect(path)
            conn.row_factory = sqlite3.Row
            self._connections[path] = conn
            self._ensure_schema(conn)
        return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS tenders (
                tender_id INTEGER NOT NULL,
                business_line TEXT NOT NULL,
                query_name TEXT NOT NULL,
                extracted_at TEXT NOT NULL,
                published_at TEXT,
                payload TEXT NOT NULL,
                CONSTRAINT unique_tender_business_line UNIQUE (tender_id, business_line)
            );
            CREATE INDEX IF NOT EXISTS business_line_index ON tenders (business_line);
            CREATE INDEX IF NOT EXISTS extracted_at_desc ON tenders (extracted_at DESC);
            """
        )
        conn.commit()

    def close(self, path: Path) -> None:
        conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()


__all__ = ["SQLiteManager"]
