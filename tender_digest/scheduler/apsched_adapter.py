"""APScheduler wrapper registering extraction and retention jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from ..config import SchedulerConfig
from ..logging_conf import configure_logging
from ..models import RunMode

EXTRACTION_JOB_ID = "extraction::daily"
CLEANUP_JOB_ID = "maintenance::cleanup"


class APSchedulerAdapter:
    """Timer front-end: every job is a plain call into the run entry points."""

    def __init__(
        self,
        config: SchedulerConfig,
        run_extraction: Callable[[RunMode], Any],
        run_cleanup: Callable[[int], Any],
    ) -> None:
        self.config = config
        self.run_extraction = run_extraction
        self.run_cleanup = run_cleanup
        self.scheduler = BackgroundScheduler(timezone=config.tzinfo)
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def register_default_jobs(self) -> None:
        self.schedule_extraction()
        self.schedule_cleanup()

    def schedule_extraction(self, cron: str | None = None) -> None:
        expression = cron or self.config.extraction_cron
        self.scheduler.add_job(
            self._run_job,
            trigger=self._cron(expression),
            id=EXTRACTION_JOB_ID,
            args=["extraction", self.run_extraction, RunMode.ROUTINE],
            replace_existing=True,
        )
        self.logger.info("job_scheduled", job=EXTRACTION_JOB_ID, cron=expression)

    def schedule_cleanup(self, cron: str | None = None, days: int | None = None) -> None:
        expression = cron or self.config.cleanup_cron
        age = days if days is not None else self.config.retention_days
        self.scheduler.add_job(
            self._run_job,
            trigger=self._cron(expression),
            id=CLEANUP_JOB_ID,
            args=["cleanup", self.run_cleanup, age],
            replace_existing=True,
        )
        self.logger.info("job_scheduled", job=CLEANUP_JOB_ID, cron=expression, retention_days=age)

    def schedule_once(self, run_at: datetime, mode: RunMode = RunMode.ROUTINE) -> str:
        if run_at.tzinfo is None:
            run_at = run_at.replace(tzinfo=self.config.tzinfo)
        if run_at <= datetime.now(self.config.tzinfo):
            raise ValueError("One-time execution must be scheduled in the future")
        job_id = f"extraction::once::{run_at.isoformat()}"
        self.scheduler.add_job(
            self._run_job,
            trigger=DateTrigger(run_date=run_at),
            id=job_id,
            args=["extraction-once", self.run_extraction, mode],
            replace_existing=True,
        )
        self.logger.info("job_scheduled", job=job_id, mode=mode.value)
        return job_id

    def remove_job(self, job_id: str) -> None:
        try:
            self.scheduler.remove_job(job_id)
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", job=job_id)

    def _cron(self, expression: str) -> CronTrigger:
        return CronTrigger.from_crontab(expression, timezone=self.config.tzinfo)

    def _run_job(self, name: str, func: Callable[[Any], Any], arg: Any) -> Any:
        self.logger.info("job_started", job=name)
        try:
            result = func(arg)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("job_failed", job=name, error=str(exc), exc_info=True)
            return None
        self.logger.info("job_finished", job=name)
        return result

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs

    def status(self) -> dict[str, Any]:
        jobs = {job["id"]: job for job in self.list_jobs()}
        return {
            "running": self.started,
            "extraction_active": EXTRACTION_JOB_ID in jobs,
            "cleanup_active": CLEANUP_JOB_ID in jobs,
            "next_extraction": jobs.get(EXTRACTION_JOB_ID, {}).get("next_run_time"),
        }


__all__ = ["APSchedulerAdapter", "CLEANUP_JOB_ID", "EXTRACTION_JOB_ID"]
