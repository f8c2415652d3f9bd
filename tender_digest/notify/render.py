"""HTML rendering for tender digests and error reports."""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Sequence

from ..models import StoredTenderRecord

_STYLE = (
    "body{font-family:Arial,sans-serif;line-height:1.6;color:#333;margin:0;padding:20px;background:#f4f4f4;}"
    ".container{max-width:800px;margin:0 auto;background:#fff;padding:20px;border-radius:10px;}"
    ".header{background:#2c3e50;color:#fff;padding:20px;border-radius:5px;text-align:center;}"
    ".stats{display:flex;justify-content:space-around;margin:20px 0;}"
    ".stats-number{font-size:24px;font-weight:bold;color:#2c3e50;}"
    "table{width:100%;border-collapse:collapse;margin-top:20px;}"
    "th,td{padding:8px;border-bottom:1px solid #ecf0f1;text-align:left;font-size:13px;}"
    ".empty{text-align:center;padding:40px;color:#7f8c8d;font-size:18px;}"
    ".error{background:#fdecea;border-left:4px solid #e74c3c;padding:12px;}"
    ".footer{margin-top:30px;border-top:1px solid #ecf0f1;text-align:center;color:#7f8c8d;font-size:12px;}"
)


def format_clp(amount: float | None) -> str:
    if amount is None:
        return "-"
    return "$" + f"{round(amount):,}".replace(",", ".")


def _format_ts(value: datetime | None) -> str:
    return value.strftime("%d-%m-%Y %H:%M") if value else "-"


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html lang='es'><head><meta charset='UTF-8'>"
        f"<title>{escape(title)}</title><style>{_STYLE}</style></head>"
        f"<body><div class='container'>{body}</div></body></html>"
    )


def _footer(generated_at: datetime) -> str:
    return (
        "<div class='footer'><p>Sistema de Monitoreo de Ofertas Chile Compra</p>"
        f"<p>Generado automáticamente el {escape(_format_ts(generated_at))}</p></div>"
    )


def report_subject(business_line: str, period_label: str) -> str:
    return f"Reporte de Ofertas - {business_line} ({period_label})"


def error_subject(business_line: str) -> str:
    return f"Error en Monitoreo - {business_line}"


def render_report(
    records: Sequence[StoredTenderRecord],
    business_line: str,
    period_label: str,
    generated_at: datetime,
) -> str:
    header = (
        "<div class='header'><h1>Reporte de Ofertas</h1>"
        f"<h2>{escape(business_line)}</h2><p>Periodo: {escape(period_label)}</p></div>"
    )
    title = f"Reporte de Ofertas - {business_line}"
    if not records:
        body = (
            header
            + "<div class='empty'><p>No se encontraron ofertas nuevas para este periodo.</p></div>"
            + _footer(generated_at)
        )
        return _page(title, body)

    total_clp = sum(record.amount_clp or 0 for record in records)
    stats = (
        "<div class='stats'>"
        f"<div><div class='stats-number'>{len(records)}</div><div>Ofertas Encontradas</div></div>"
        f"<div><div class='stats-number'>{format_clp(total_clp)}</div><div>Monto Total (CLP)</div></div>"
        "</div>"
    )
    rows = []
    for record in records:
        amount = format_clp(record.amount)
        if record.currency and record.currency != "CLP":
            amount = f"{amount} {escape(record.currency)}"
        rows.append(
            "<tr>"
            f"<td><a href='{escape(record.public_link, quote=True)}'>{escape(record.title)}</a>"
            f"<br><small>{escape(record.code)}</small></td>"
            f"<td>{escape(record.organization)}<br><small>{escape(record.unit)}</small></td>"
            f"<td>{escape(_format_ts(record.closes_at))}</td>"
            f"<td>{amount}</td>"
            f"<td>{record.supplier_count}</td>"
            "</tr>"
        )
    table = (
        "<table><thead><tr><th>Oferta</th><th>Organismo</th><th>Cierre</th>"
        "<th>Monto</th><th>Proveedores cotizando</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
    )
    return _page(title, header + stats + table + _footer(generated_at))


def render_error(error: BaseException, business_line: str, generated_at: datetime) -> str:
    body = (
        "<div class='header'><h1>Error en Monitoreo</h1>"
        f"<h2>{escape(business_line)}</h2></div>"
        "<p>Se ha producido un error durante el proceso de monitoreo de ofertas:</p>"
        "<div class='error'>"
        f"<p><strong>Tipo:</strong> {escape(type(error).__name__)}</p>"
        f"<p><strong>Mensaje:</strong> {escape(str(error))}</p>"
        f"<p><strong>Fecha y Hora:</strong> {escape(_format_ts(generated_at))}</p>"
        "</div><p>Por favor, revisa los logs del sistema para más información.</p>"
        + _footer(generated_at)
    )
    return _page(error_subject(business_line), body)


__all__ = ["error_subject", "format_clp", "render_error", "render_report", "report_subject"]
