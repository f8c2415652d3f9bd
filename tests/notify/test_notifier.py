from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import httpx

from tender_digest.config import EmailConfig
from tender_digest.notify import EmailNotifier

CLOCK = datetime(2025, 9, 2, 0, 30, tzinfo=timezone.utc)


def _notifier(handler) -> EmailNotifier:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmailNotifier(
        EmailConfig(service_url="https://mail.example.cl/api/email/send"),
        client=http,
        tz=ZoneInfo("America/Santiago"),
        clock=lambda: CLOCK,
    )


def test_send_report_posts_rendered_digest(make_stored) -> None:
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    notifier = _notifier(handler)
    sent = asyncio.run(
        notifier.send_report(
            [make_stored(1), make_stored(2)],
            "Transporte",
            ["ops@example.cl", "sales@example.cl"],
            "2025-09-01 - 2025-09-01",
        )
    )

    assert sent is True
    body = captured[0]
    assert body["to"] == ["ops@example.cl", "sales@example.cl"]
    assert body["subject"] == "Reporte de Ofertas - Transporte (2025-09-01 - 2025-09-01)"
    assert "1234-2-COT25" in body["html"]


def test_default_period_uses_local_date() -> None:
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200)

    asyncio.run(_notifier(handler).send_report([], "Software", ["ops@example.cl"]))

    # 00:30 UTC is still the previous evening in Santiago.
    assert captured[0]["subject"] == "Reporte de Ofertas - Software (01-09-2025)"


def test_non_200_answer_is_reported_as_false(make_stored) -> None:
    notifier = _notifier(lambda request: httpx.Response(502, text="bad gateway"))
    assert asyncio.run(notifier.send_report([make_stored(1)], "Transporte", ["ops@example.cl"])) is False

    created = _notifier(lambda request: httpx.Response(201))
    assert asyncio.run(created.send_report([], "Transporte", ["ops@example.cl"])) is False


def test_unreachable_service_is_reported_as_false() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    notifier = _notifier(handler)
    assert asyncio.run(notifier.send_error_report(RuntimeError("db down"), "Transporte", ["ops@example.cl"])) is False


def test_no_recipients_is_reported_as_false() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    assert asyncio.run(_notifier(handler).send_report([], "Transporte", [])) is False
    assert calls == []


def test_error_report_subject_and_body() -> None:
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200)

    sent = asyncio.run(
        _notifier(handler).send_error_report(ValueError("<broken> payload"), "Software", ["ops@example.cl"])
    )

    assert sent is True
    assert captured[0]["subject"] == "Error en Monitoreo - Software"
    assert "ValueError" in captured[0]["html"]
    assert "&lt;broken&gt; payload" in captured[0]["html"]
