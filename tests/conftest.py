"""Pytest configuration providing shared builders and fakes."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest
import structlog

from tender_digest.config import AppConfig, BusinessLineConfig, ConfigLocator, ConfigRepository
from tender_digest.config.loader import ENV_OVERRIDES
from tender_digest.engine.store import SQLiteTenderStore
from tender_digest.models import StoredTenderRecord, TenderRecord


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("TENDER_DIGEST_HOME", str(tmp_path))
    for var in [*ENV_OVERRIDES, "EMAIL_TO"]:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def tender_payload() -> Callable[..., dict[str, Any]]:
    def _builder(tender_id: int = 1, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": tender_id,
            "codigo": f"1234-{tender_id}-COT25",
            "nombre": f"Servicio de transporte {tender_id}",
            "fecha_publicacion": "2025-09-01T10:00:00",
            "fecha_cierre": "2025-09-05T15:00:00",
            "organismo": "Municipalidad de Valparaíso",
            "unidad": "Dirección de Compras",
            "id_estado": 2,
            "estado": "Publicada",
            "monto_disponible": 1500000,
            "moneda": "CLP",
            "monto_disponible_CLP": 1500000,
            "cantidad_proveedores_cotizando": 3,
        }
        payload.update(overrides)
        return payload

    return _builder


@pytest.fixture
def make_tender(tender_payload) -> Callable[..., TenderRecord]:
    def _builder(tender_id: int = 1, **overrides: Any) -> TenderRecord:
        return TenderRecord.model_validate(tender_payload(tender_id, **overrides))

    return _builder


@pytest.fixture
def make_stored(make_tender) -> Callable[..., StoredTenderRecord]:
    def _builder(
        tender_id: int = 1,
        business_line_id: str = "transporte",
        extracted_at: datetime | None = None,
        query_name: str = "servicios-transporte",
        **overrides: Any,
    ) -> StoredTenderRecord:
        record = make_tender(tender_id, **overrides)
        return StoredTenderRecord.from_tender(
            record,
            business_line_id=business_line_id,
            query_name=query_name,
            extracted_at=extracted_at or datetime(2025, 9, 1, 23, 0, tzinfo=timezone.utc),
            public_link=f"https://buscador.mercadopublico.cl/ficha?code={record.code}",
        )

    return _builder


@pytest.fixture
def make_line() -> Callable[..., BusinessLineConfig]:
    def _builder(**overrides: Any) -> BusinessLineConfig:
        base: dict[str, Any] = {
            "id": "transporte",
            "name": "Transporte",
            "queries": [{"name": "servicios-transporte", "category": "78100000"}],
            "recipients": ["ops@example.cl"],
        }
        base.update(overrides)
        return BusinessLineConfig.model_validate(base)

    return _builder


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., AppConfig]:
    def _builder(
        business_lines: Sequence[BusinessLineConfig | dict] = (), **sections: Any
    ) -> AppConfig:
        payload: dict[str, Any] = {
            "source": {"api_key": "test-key", "page_delay_seconds": 0},
            "database": {"uri": f"sqlite:///{tmp_path / 'tenders.db'}"},
            "scheduler": {"timezone": "America/Santiago"},
            "extraction": {"query_pause_seconds": 0},
        }
        for section, values in sections.items():
            payload.setdefault(section, {}).update(values)
        payload["business_lines"] = [
            line.model_dump() if isinstance(line, BusinessLineConfig) else line for line in business_lines
        ]
        return AppConfig.model_validate(payload)

    return _builder


@pytest.fixture
def sqlite_store(tmp_path: Path) -> Iterable[SQLiteTenderStore]:
    store = SQLiteTenderStore(tmp_path / "store" / "tenders.db")
    asyncio.run(store.connect())
    yield store
    asyncio.run(store.close())


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> ConfigRepository:
    return ConfigRepository(ConfigLocator(project_root=tmp_path), environ={})


@pytest.fixture
def quiet_logger_factory() -> Callable[[str], structlog.BoundLogger]:
    def _factory(business_line_id: str) -> structlog.BoundLogger:
        return structlog.get_logger("tests").bind(business_line=business_line_id)

    return _factory


class RecordingNotifier:
    """Stand-in notifier capturing every delivery request."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.reports: list[dict[str, Any]] = []
        self.errors: list[dict[str, Any]] = []

    async def send_report(self, records, business_line_name, recipients, period_label=None) -> bool:
        self.reports.append(
            {
                "records": list(records),
                "business_line": business_line_name,
                "recipients": list(recipients),
                "period": period_label,
            }
        )
        return self.succeed

    async def send_error_report(self, error, business_line_name, recipients) -> bool:
        self.errors.append(
            {"error": error, "business_line": business_line_name, "recipients": list(recipients)}
        )
        return self.succeed

    async def aclose(self) -> None:
        return None


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()
