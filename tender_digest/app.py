"""Typer CLI entrypoint for tender-digest."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table
from typer import BadParameter

from .config import AppConfig, ConfigRepository, require_api_key
from .engine import TenderQuery
from .logging_conf import available_line_logs, configure_logging, log_dir, tail_log
from .models import DateRange, ExtractionSummary, RunMode, StoredTenderRecord
from .runtime import Runtime, run_with_runtime
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="tender-digest command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(
    name="config",
    help="Configuration commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Log viewing commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: AppConfig

    @property
    def base_dir(self) -> Path | None:
        return self.repository.locator.project_root


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    try:
        config = repository.load()
    except ValueError as exc:
        console.print(str(exc), style="red", markup=False)
        raise typer.Exit(code=2) from exc
    return AppState(repository=repository, config=config)


def build_scheduler(state: AppState) -> APSchedulerAdapter:
    def _extract(mode: RunMode) -> list[ExtractionSummary]:
        return run_with_runtime(
            state.config, lambda rt: rt.orchestrator.run_extraction(mode), state.base_dir
        )

    def _cleanup(days: int) -> int:
        return run_with_runtime(
            state.config, lambda rt: rt.orchestrator.purge_older_than(days), state.base_dir
        )

    return APSchedulerAdapter(state.config.scheduler, _extract, _cleanup)


def _wait_for_interrupt() -> None:
    while True:
        time.sleep(1)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _require_api_key(state: AppState) -> None:
    try:
        require_api_key(state.config)
    except ValueError as exc:
        console.print(str(exc), style="red", markup=False)
        raise typer.Exit(code=2) from exc


def _parse_datetime_option(value: Optional[str], option_name: str, config: AppConfig) -> datetime | None:
    if value is None:
        return None
    text = value.strip()
    if not text:
        raise BadParameter(f"{option_name} must not be empty.")
    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        candidate = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise BadParameter(
            f"{option_name} expects an ISO8601 value, e.g. 2025-08-01 or 2025-08-01T20:00-04:00."
        ) from exc
    if candidate.tzinfo is None:
        candidate = candidate.replace(tzinfo=config.scheduler.tzinfo)
    return candidate


def _run(state: AppState, action) -> object:
    return run_with_runtime(state.config, action, state.base_dir)


def _render_summaries_table(summaries: Sequence[ExtractionSummary], title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("Business line", style="cyan", no_wrap=True)
    table.add_column("Found", justify="right")
    table.add_column("New", justify="right", style="green")
    table.add_column("Status", style="magenta", overflow="fold")
    for summary in summaries:
        status = f"failed: {summary.error}" if summary.failed else "ok"
        table.add_row(
            summary.business_line,
            str(summary.total_found),
            str(summary.new_records),
            status,
        )
    table.add_row(
        "Total",
        str(sum(s.total_found for s in summaries)),
        str(sum(s.new_records for s in summaries)),
        "errors present" if any(s.failed for s in summaries) else "all completed",
    )
    return table


def _render_jobs_table(jobs: Iterable[dict]) -> Table:
    table = Table(title="Scheduled jobs", box=box.SIMPLE_HEAD)
    table.add_column("Job ID", style="cyan", no_wrap=True)
    table.add_column("Next run", style="green")
    table.add_column("Trigger", style="magenta", overflow="fold")
    for job in jobs:
        table.add_row(
            str(job.get("id", "-")),
            str(job.get("next_run_time", "-")),
            str(job.get("trigger", "-")),
        )
    return table


def _render_records_table(records: Sequence[StoredTenderRecord], title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Title", overflow="fold")
    table.add_column("Organization", overflow="fold")
    table.add_column("Closes", style="yellow")
    table.add_column("Amount CLP", justify="right")
    table.add_column("Extracted", style="green")
    for record in records:
        table.add_row(
            record.code,
            record.title,
            record.organization,
            record.closes_at.strftime("%Y-%m-%d %H:%M") if record.closes_at else "-",
            f"{record.amount_clp:,.0f}" if record.amount_clp is not None else "-",
            record.extracted_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


def _finish_run(summaries: Sequence[ExtractionSummary], title: str) -> None:
    console.print(_render_summaries_table(summaries, title))
    if any(summary.failed for summary in summaries):
        raise typer.Exit(code=1)


app.add_typer(config_app, name="config", help="Inspect the effective configuration")
app.add_typer(log_app, name="log", help="List or tail log files")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Run the routine extraction for today.")
def run_routine(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    _require_api_key(state)
    summaries = _run(state, lambda rt: rt.orchestrator.run_extraction(RunMode.ROUTINE))
    _finish_run(summaries, "Routine extraction")


@app.command("backfill", help="Run the historical extraction from the configured start date.")
def run_backfill(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    _require_api_key(state)
    start = state.config.extraction.backfill_start
    console.print(f"Backfilling from {start.isoformat()} to today.", style="dim")
    summaries = _run(state, lambda rt: rt.orchestrator.run_extraction(RunMode.BACKFILL))
    _finish_run(summaries, "Backfill extraction")


@app.command("purge", help="Delete records extracted more than N days ago.")
def purge(
    ctx: typer.Context,
    days: Optional[int] = typer.Option(
        None, "--days", min=1, help="Age threshold in days (defaults to scheduler.retention_days)."
    ),
) -> None:
    state = _get_state(ctx)
    effective = days if days is not None else state.config.scheduler.retention_days
    deleted = _run(state, lambda rt: rt.orchestrator.purge_older_than(effective))
    console.print(f"Deleted {deleted} records older than {effective} days.", style="green")


@app.command("stats", help="Show stored record counts per business line.")
def stats(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    rows: list[tuple] = _run(state, lambda rt: rt.orchestrator.system_stats())
    table = Table(title="Stored records", box=box.SIMPLE_HEAD)
    table.add_column("Business line", style="cyan", no_wrap=True)
    table.add_column("Total", justify="right")
    table.add_column("Today", justify="right", style="green")
    table.add_column("Last extraction", style="yellow")
    for line, line_stats in rows:
        last = line_stats.last_extraction
        table.add_row(
            line.name,
            str(line_stats.total),
            str(line_stats.today),
            last.astimezone(state.config.scheduler.tzinfo).strftime("%Y-%m-%d %H:%M") if last else "-",
        )
    console.print(table)


@app.command("lines", help="List configured business lines.")
def lines(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    table = Table(
        title=f"Business lines · {len(state.config.business_lines)} configured",
        box=box.SIMPLE_HEAD,
    )
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Queries", justify="right")
    table.add_column("Recipients", style="green", overflow="fold")
    for line in state.config.business_lines:
        table.add_row(
            line.id,
            line.name,
            str(len(line.queries)),
            ", ".join(line.recipients) or "-",
        )
    console.print(table)


@app.command("records", help="List stored records for one business line.")
def records(
    ctx: typer.Context,
    business_line: str = typer.Argument(..., help="Business line id."),
    since: Optional[str] = typer.Option(None, "--since", help="Extracted at or after (ISO8601)."),
    until: Optional[str] = typer.Option(None, "--until", help="Extracted at or before (ISO8601)."),
    limit: int = typer.Option(50, "--limit", min=1, help="Show at most N rows."),
) -> None:
    state = _get_state(ctx)
    try:
        line = state.config.business_line(business_line)
    except KeyError:
        known = ", ".join(item.id for item in state.config.business_lines)
        console.print(f"Unknown business line `{business_line}`. Known: {known}", style="red")
        raise typer.Exit(code=1)
    date_from = _parse_datetime_option(since, "--since", state.config)
    date_to = _parse_datetime_option(until, "--until", state.config)
    if date_from and date_to and date_to < date_from:
        raise BadParameter("--until must not be earlier than --since.")
    rows = _run(state, lambda rt: rt.orchestrator.records_for(line.id, date_from, date_to))
    if not rows:
        console.print("No stored records.", style="dim")
        return
    console.print(_render_records_table(rows[:limit], f"{line.name} · {len(rows)} records"))


async def _probe(runtime: Runtime, day: date, with_stats: bool) -> tuple[bool, list[tuple[str, str, int]]]:
    ok = await runtime.client.probe(day)
    counts: list[tuple[str, str, int]] = []
    if ok and with_stats:
        date_range = DateRange.single_day(day)
        for line in runtime.config.business_lines:
            for query in line.queries:
                result = await runtime.client.query_stats(TenderQuery.from_config(query, date_range))
                counts.append((line.name, query.name, result.total_results))
    return ok, counts


@app.command("probe", help="Check that the remote API answers, optionally counting results per query.")
def probe(
    ctx: typer.Context,
    day: Optional[str] = typer.Option(None, "--day", help="Day to query (YYYY-MM-DD, defaults to today)."),
    with_stats: bool = typer.Option(False, "--stats", help="Report result counts per query.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    _require_api_key(state)
    if day:
        try:
            target = date.fromisoformat(day)
        except ValueError as exc:
            raise BadParameter("--day expects YYYY-MM-DD.") from exc
    else:
        target = datetime.now(state.config.scheduler.tzinfo).date()
    ok, counts = _run(state, lambda rt: _probe(rt, target, with_stats))
    if not ok:
        console.print("Remote API did not answer successfully.", style="red")
        raise typer.Exit(code=1)
    console.print(f"Remote API reachable ({target.isoformat()}).", style="green")
    if counts:
        table = Table(title="Results per query", box=box.SIMPLE_HEAD)
        table.add_column("Business line", style="cyan")
        table.add_column("Query", style="magenta")
        table.add_column("Results", justify="right")
        for line_name, query_name, total in counts:
            table.add_row(line_name, query_name, str(total))
        console.print(table)


@app.command("schedule", help="Run the scheduler in the foreground until interrupted.")
def schedule(
    ctx: typer.Context,
    once: Optional[str] = typer.Option(None, "--once", help="Schedule a single run at this ISO8601 time instead."),
    mode: RunMode = typer.Option(RunMode.ROUTINE, "--mode", help="Run mode for --once."),
) -> None:
    state = _get_state(ctx)
    _require_api_key(state)
    scheduler = build_scheduler(state)
    if once:
        run_at = _parse_datetime_option(once, "--once", state.config)
        try:
            scheduler.schedule_once(run_at, mode)
        except ValueError as exc:
            raise BadParameter(str(exc)) from exc
    else:
        scheduler.register_default_jobs()
    scheduler.start()
    console.print(_render_jobs_table(scheduler.list_jobs()))
    console.print("Scheduler running, press Ctrl+C to stop.", style="dim")
    try:
        _wait_for_interrupt()
    except KeyboardInterrupt:
        console.print("Stopping scheduler.", style="yellow")
    finally:
        scheduler.shutdown()


@config_app.command("show", help="Print the effective configuration as YAML.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    payload = state.config.model_dump(mode="json")
    if payload["source"].get("api_key"):
        payload["source"]["api_key"] = "***"
    console.print(f"# {state.repository.locator.config_path()}", style="dim")
    console.print(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False), markup=False)


@log_app.command("list", help="List per business line log files.")
def log_list() -> None:
    logs = list(available_line_logs())
    console.print("Log files:", style="cyan")
    if not logs:
        console.print("No business line logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    line: Optional[str] = typer.Option(None, "--line", help="Business line id (application log when omitted)."),
    tail: int = typer.Option(100, "--tail", min=1, help="Show the last N lines."),
) -> None:
    base_dir = log_dir()
    path = base_dir / "lines" / f"{line}.log" if line else base_dir / "app.log"
    entries = tail_log(path, tail)
    if not entries:
        console.print("No log entries yet.", style="dim")
        return
    header = f"{'Business line log' if line else 'Application log'} · last {len(entries)} lines"
    console.print(header, style="cyan")
    console.print("".join(entries), markup=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
