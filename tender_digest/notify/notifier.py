"""E-mail delivery through the HTTP send endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Sequence
from zoneinfo import ZoneInfo

import httpx
import structlog

from ..config import EmailConfig
from ..errors import NotificationError
from ..models import StoredTenderRecord
from .render import error_subject, render_error, render_report, report_subject


class EmailNotifier:
    """Render digests and POST them as ``{to, subject, html}``.

    Public methods never raise: every failure is logged and reported as
    ``False`` so a broken mail service cannot abort an extraction run.
    """

    def __init__(
        self,
        config: EmailConfig,
        client: httpx.AsyncClient | None = None,
        tz: ZoneInfo | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.tz = tz or ZoneInfo("UTC")
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logger or structlog.get_logger("tender_digest.notify")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _local_now(self) -> datetime:
        return self._clock().astimezone(self.tz)

    async def send_report(
        self,
        records: Sequence[StoredTenderRecord],
        business_line_name: str,
        recipients: Sequence[str],
        period_label: str | None = None,
    ) -> bool:
        try:
            now = self._local_now()
            period = period_label or now.strftime("%d-%m-%Y")
            html = render_report(records, business_line_name, period, now)
            self.logger.info(
                "report_sending",
                business_line=business_line_name,
                recipients=list(recipients),
                records=len(records),
            )
            await self._deliver(recipients, report_subject(business_line_name, period), html)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("report_failed", business_line=business_line_name, error=str(exc))
            return False
        self.logger.info("report_sent", business_line=business_line_name)
        return True

    async def send_error_report(
        self,
        error: BaseException,
        business_line_name: str,
        recipients: Sequence[str],
    ) -> bool:
        try:
            html = render_error(error, business_line_name, self._local_now())
            await self._deliver(recipients, error_subject(business_line_name), html)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("error_report_failed", business_line=business_line_name, error=str(exc))
            return False
        self.logger.info("error_report_sent", business_line=business_line_name)
        return True

    async def _deliver(self, recipients: Sequence[str], subject: str, html: str) -> None:
        if not recipients:
            raise NotificationError("No recipients configured")
        try:
            response = await self._client.post(
                self.config.service_url,
                json={"to": list(recipients), "subject": subject, "html": html},
                headers={"Content-Type": "application/json"},
                timeout=self.config.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise NotificationError(f"Mail service unreachable: {exc}") from exc
        if response.status_code != 200:
            raise NotificationError(
                f"Mail service answered {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )


__all__ = ["EmailNotifier"]
