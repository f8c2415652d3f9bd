"""HTTP client for one page of the Compra Agil search API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..config import QueryConfig, SourceApiConfig
from ..errors import FetchError
from ..models import DateRange, TenderRecord


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    result_count: int = Field(alias="resultCount")
    page_count: int = Field(alias="pageCount")
    page: int
    page_size: int = Field(alias="pageSize")
    records: list[TenderRecord] = Field(alias="resultados")


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: str
    payload: _Payload | None = None


@dataclass(slots=True)
class TenderQuery:
    """Input for the source client: filters plus the run's date range."""

    date_range: DateRange
    filters: dict[str, Any] = field(default_factory=lambda: {"order_by": "recent", "status": 2})

    @classmethod
    def from_config(cls, query: QueryConfig, date_range: DateRange) -> "TenderQuery":
        return cls(date_range=date_range, filters=query.filters())

    def params(self, page_number: int) -> dict[str, Any]:
        return {**self.date_range.as_params(), **self.filters, "page_number": page_number}


@dataclass(slots=True)
class SourcePage:
    """One decoded page of results."""

    page: int
    page_count: int
    result_count: int
    page_size: int
    records: list[TenderRecord] = field(default_factory=list)


@dataclass(slots=True)
class QueryStats:
    total_results: int
    page_count: int
    page_size: int


class SourceClient:
    """Fetch single result pages; knows nothing about business lines."""

    def __init__(
        self,
        config: SourceApiConfig,
        client: httpx.AsyncClient | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("tender_digest.source")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.request_timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
        }

    async def fetch_page(self, query: TenderQuery, page_number: int) -> SourcePage:
        params = query.params(page_number)
        self.logger.debug("page_request", page=page_number, params=params)
        try:
            response = await self._client.get(
                self.config.url,
                params=params,
                headers=self._headers(),
                timeout=self.config.request_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise FetchError(f"Timeout requesting page {page_number}", page=page_number) from exc
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            raise FetchError(f"Request for page {page_number} failed: {exc}", page=page_number) from exc

        if not response.is_success:
            raise FetchError(
                f"Unexpected status {response.status_code} for page {page_number}",
                page=page_number,
            )
        try:
            envelope = _Envelope.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise FetchError(f"Malformed payload for page {page_number}: {exc}", page=page_number) from exc
        if envelope.success != "OK":
            raise FetchError(f"API answered with error: {envelope.success}", page=page_number)
        if envelope.payload is None:
            raise FetchError(f"Missing payload for page {page_number}", page=page_number)

        payload = envelope.payload
        self.logger.debug("page_received", page=page_number, records=len(payload.records))
        return SourcePage(
            page=payload.page,
            page_count=payload.page_count,
            result_count=payload.result_count,
            page_size=payload.page_size,
            records=list(payload.records),
        )

    async def query_stats(self, query: TenderQuery) -> QueryStats:
        """Read page 1 only and report the size of the full result set."""

        first = await self.fetch_page(query, 1)
        return QueryStats(
            total_results=first.result_count,
            page_count=first.page_count,
            page_size=first.page_size,
        )

    async def probe(self, day: date | None = None) -> bool:
        """Return True when the API answers a one-day query."""

        query = TenderQuery(date_range=DateRange.single_day(day or date.today()))
        try:
            await self.fetch_page(query, 1)
        except FetchError as exc:
            self.logger.warning("probe_failed", error=str(exc))
            return False
        self.logger.info("probe_ok")
        return True


__all__ = ["QueryStats", "SourceClient", "SourcePage", "TenderQuery"]
