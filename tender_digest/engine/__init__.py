"""Engine components: fetch → paginate → dedup → store."""

from .dedup import DeduplicationResult, SourcedTender, dedupe_sourced
from .fetcher import QueryStats, SourceClient, SourcePage, TenderQuery
from .pagination import PaginatedFetcher

__all__ = [
    "DeduplicationResult",
    "PaginatedFetcher",
    "QueryStats",
    "SourceClient",
    "SourcePage",
    "SourcedTender",
    "TenderQuery",
    "dedupe_sourced",
]
