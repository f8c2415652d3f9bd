"""Extraction orchestrator: fetch, merge, dedup, persist and notify per business line."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import structlog

from .config import AppConfig, BusinessLineConfig, NewRecordSelection
from .engine.dedup import SourcedTender, dedupe_sourced
from .engine.pagination import PaginatedFetcher
from .engine.store import InsertOutcome, LineStats, TenderStore
from .errors import PersistenceError, TenderDigestError
from .logging_conf import line_logger
from .models import DateRange, ExtractionSummary, RunMode, StoredTenderRecord
from .notify import EmailNotifier


class ExtractionOrchestrator:
    """Central coordinator for one extraction run across all business lines.

    Lines, queries and pages are processed strictly in sequence. Failures
    are contained at the smallest boundary that keeps the run moving:
    a failed query is skipped, a failed business line yields a zero-valued
    summary plus an error report, and the caller always receives one
    summary per configured line.
    """

    def __init__(
        self,
        config: AppConfig,
        fetcher: PaginatedFetcher,
        store: TenderStore,
        notifier: EmailNotifier,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
        line_logger_factory: Callable[[str], structlog.BoundLogger] = line_logger,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.store = store
        self.notifier = notifier
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._line_logger = line_logger_factory
        self.logger = logger or structlog.get_logger("tender_digest").bind(component="orchestrator")

    # ------------------------------------------------------------------
    def _local_now(self) -> datetime:
        return self._clock().astimezone(self.config.scheduler.tzinfo)

    def date_range_for(self, mode: RunMode) -> DateRange:
        today = self._local_now().date()
        if mode is RunMode.BACKFILL:
            return DateRange(self.config.extraction.backfill_start, today)
        return DateRange.single_day(today)

    async def ensure_connected(self) -> None:
        if not self.store.is_connected:
            self.logger.info("store_connecting")
            await self.store.connect()

    # ------------------------------------------------------------------
    async def run_routine(self) -> list[ExtractionSummary]:
        return await self.run_extraction(RunMode.ROUTINE)

    async def run_backfill(self) -> list[ExtractionSummary]:
        return await self.run_extraction(RunMode.BACKFILL)

    async def run_extraction(self, mode: RunMode = RunMode.ROUTINE) -> list[ExtractionSummary]:
        started = time.monotonic()
        date_range = self.date_range_for(mode)
        self.logger.info(
            "extraction_started",
            mode=mode.value,
            date_from=date_range.start.isoformat(),
            date_to=date_range.end.isoformat(),
            business_lines=len(self.config.business_lines),
        )

        connect_error: PersistenceError | None = None
        try:
            await self.ensure_connected()
        except PersistenceError as exc:
            self.logger.error("store_unavailable", error=str(exc))
            connect_error = exc

        summaries: list[ExtractionSummary] = []
        for line in self.config.business_lines:
            if connect_error is not None:
                log = self._line_logger(line.id)
                summaries.append(await self._fail_line(line, connect_error, log))
                continue
            summaries.append(await self._process_line(line, date_range))

        self.logger.info(
            "extraction_finished",
            mode=mode.value,
            duration_seconds=round(time.monotonic() - started, 2),
            total_found=sum(s.total_found for s in summaries),
            total_new=sum(s.new_records for s in summaries),
            failed_lines=[s.business_line_id for s in summaries if s.failed],
        )
        return summaries

    # ------------------------------------------------------------------
    async def _process_line(self, line: BusinessLineConfig, date_range: DateRange) -> ExtractionSummary:
        log = self._line_logger(line.id)
        log.info("business_line_started", name=line.name, queries=len(line.queries))
        try:
            sourced = await self._collect(line, date_range, log)
            dedup = dedupe_sourced(sourced)
            log.info(
                "dedup_completed",
                fetched=dedup.total,
                unique=len(dedup.unique),
                dropped=dedup.dropped,
            )

            run_at = self._clock()
            batch = [self._to_stored(item, line, run_at) for item in dedup.unique]
            outcome = await self.store.insert_batch(batch)
            new_records = self._select_new(batch, outcome)
            await self._notify(line, new_records, date_range, log)

            summary = ExtractionSummary(
                business_line_id=line.id,
                business_line=line.name,
                total_found=len(batch),
                new_records=outcome.inserted_count,
                run_at=run_at,
                queries=[query.name for query in line.queries],
            )
        except Exception as exc:  # noqa: BLE001 - business line boundary
            log.error(
                "business_line_failed",
                error=str(exc),
                error_kind=getattr(getattr(exc, "kind", None), "value", None),
                exc_info=True,
            )
            return await self._fail_line(line, exc, log)

        log.info("business_line_completed", total=summary.total_found, new=summary.new_records)
        return summary

    async def _collect(
        self, line: BusinessLineConfig, date_range: DateRange, log: structlog.BoundLogger
    ) -> list[SourcedTender]:
        sourced: list[SourcedTender] = []
        last_index = len(line.queries) - 1
        for index, query in enumerate(line.queries):
            try:
                records = await self.fetcher.fetch_all(query, date_range.start, date_range.end)
            except Exception as exc:  # noqa: BLE001 - query boundary
                log.warning(
                    "query_failed",
                    query=query.name,
                    error=str(exc),
                    error_kind=getattr(getattr(exc, "kind", None), "value", None),
                    exc_info=not isinstance(exc, TenderDigestError),
                )
            else:
                sourced.extend(SourcedTender(record, query.name) for record in records)
                log.info("query_completed", query=query.name, records=len(records))
            if index < last_index:
                await self._sleep(self.config.extraction.query_pause_seconds)
        return sourced

    def _to_stored(
        self, item: SourcedTender, line: BusinessLineConfig, run_at: datetime
    ) -> StoredTenderRecord:
        return StoredTenderRecord.from_tender(
            item.record,
            business_line_id=line.id,
            query_name=item.query_name,
            extracted_at=run_at,
            public_link=self.config.extraction.public_link(item.record.code),
        )

    def _select_new(
        self, batch: list[StoredTenderRecord], outcome: InsertOutcome
    ) -> list[StoredTenderRecord]:
        if self.config.extraction.new_record_selection is NewRecordSelection.POSITION:
            return batch[: outcome.inserted_count]
        inserted = set(outcome.inserted_ids)
        return [record for record in batch if record.id in inserted]

    async def _notify(
        self,
        line: BusinessLineConfig,
        records: list[StoredTenderRecord],
        date_range: DateRange,
        log: structlog.BoundLogger,
    ) -> None:
        if not line.recipients:
            log.warning("notification_skipped", reason="no_recipients")
            return
        sent = await self.notifier.send_report(records, line.name, line.recipients, date_range.label)
        if not sent:
            log.warning("notification_failed", records=len(records))

    async def _fail_line(
        self, line: BusinessLineConfig, error: BaseException, log: structlog.BoundLogger
    ) -> ExtractionSummary:
        if line.recipients:
            sent = await self.notifier.send_error_report(error, line.name, line.recipients)
            if not sent:
                log.warning("error_notification_failed")
        return ExtractionSummary.failure(line.id, line.name, self._clock(), error)

    # ------------------------------------------------------------------
    async def purge_older_than(self, days: int | None = None) -> int:
        """Retention sweep by extraction timestamp."""

        age = days if days is not None else self.config.scheduler.retention_days
        await self.ensure_connected()
        return await self.store.purge_older_than(age, now=self._clock())

    async def system_stats(self) -> list[tuple[BusinessLineConfig, LineStats]]:
        await self.ensure_connected()
        today_start = self._local_now().replace(hour=0, minute=0, second=0, microsecond=0)
        results = []
        for line in self.config.business_lines:
            results.append((line, await self.store.stats_for(line.id, today_start)))
        return results

    async def records_for(
        self,
        business_line_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[StoredTenderRecord]:
        self.config.business_line(business_line_id)
        await self.ensure_connected()
        return await self.store.query_by_business_line(business_line_id, date_from, date_to)


__all__ = ["ExtractionOrchestrator"]
