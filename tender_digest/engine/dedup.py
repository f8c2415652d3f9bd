"""In-run deduplication of tenders gathered from overlapping queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models import TenderRecord


@dataclass(slots=True)
class SourcedTender:
    """A fetched tender tagged with the query that produced it."""

    record: TenderRecord
    query_name: str


@dataclass
class DeduplicationResult:
    unique: list[SourcedTender]
    dropped: int

    @property
    def total(self) -> int:
        return len(self.unique) + self.dropped


def dedupe_sourced(items: Iterable[SourcedTender]) -> DeduplicationResult:
    """Stable dedup by tender id: the first occurrence wins."""

    seen: set[int] = set()
    unique: list[SourcedTender] = []
    dropped = 0
    for item in items:
        if item.record.id in seen:
            dropped += 1
            continue
        seen.add(item.record.id)
        unique.append(item)
    return DeduplicationResult(unique=unique, dropped=dropped)


__all__ = ["DeduplicationResult", "SourcedTender", "dedupe_sourced"]
