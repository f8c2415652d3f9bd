"""Drive the source client across every page of a query."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import structlog

from ..config import QueryConfig
from ..errors import FetchError
from ..models import DateRange, TenderRecord
from .fetcher import SourceClient, TenderQuery

Sleeper = Callable[[float], Awaitable[Any]]

PROGRESS_EVERY = 10


class PaginatedFetcher:
    """Sequential, paced pagination with partial-result salvage.

    Page 1 is requested immediately; every later page waits ``page_delay``
    seconds first. A failure stops pagination: whatever was collected is
    returned, or the error propagates when nothing was collected.
    """

    def __init__(
        self,
        client: SourceClient,
        page_delay: float = 2.0,
        sleep: Sleeper = asyncio.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.client = client
        self.page_delay = page_delay
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("tender_digest.pagination")

    async def fetch_all(
        self,
        query: QueryConfig,
        date_from: Any = None,
        date_to: Any = None,
    ) -> list[TenderRecord]:
        """Return every record matching ``query`` within the date bounds.

        Date bounds are required and validated before any request.
        """

        tender_query = TenderQuery.from_config(query, DateRange.parse(date_from, date_to))
        log = self.logger.bind(
            date_from=tender_query.date_range.start.isoformat(),
            date_to=tender_query.date_range.end.isoformat(),
        )
        records: list[TenderRecord] = []
        page_number = 1
        page_count = 1
        try:
            first = await self.client.fetch_page(tender_query, page_number)
            page_count = first.page_count
            records.extend(first.records)
            log.info("pagination_started", page_count=page_count, result_count=first.result_count)

            for page_number in range(2, page_count + 1):
                await self._sleep(self.page_delay)
                page = await self.client.fetch_page(tender_query, page_number)
                records.extend(page.records)
                if page_number % PROGRESS_EVERY == 0:
                    log.info("pagination_progress", page=page_number, page_count=page_count)
        except FetchError as exc:
            log.error(
                "pagination_failed",
                page=page_number,
                page_count=page_count,
                collected=len(records),
                error=str(exc),
            )
            if records:
                log.warning("pagination_partial_result", records=len(records))
                return records
            raise

        log.info("pagination_completed", records=len(records), page_count=page_count)
        return records


__all__ = ["PaginatedFetcher", "Sleeper"]
