"""Persistence gateway SPI and implementations."""

from __future__ import annotations

from pathlib import Path

from ...config import DatabaseConfig
from .base import InsertOutcome, LineStats, TenderStore
from .mongo_store import MongoTenderStore
from .sqlite_store import SQLiteTenderStore


def create_store(config: DatabaseConfig, base_dir: Path | None = None) -> TenderStore:
    """Pick the backend from the URI scheme; relative SQLite paths resolve under ``base_dir``."""

    if config.is_sqlite:
        path = Path(config.uri[len("sqlite:///"):])
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        return SQLiteTenderStore(path)
    return MongoTenderStore(config.uri, config.name, config.collection)


__all__ = [
    "InsertOutcome",
    "LineStats",
    "MongoTenderStore",
    "SQLiteTenderStore",
    "TenderStore",
    "create_store",
]
