from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from tender_digest.errors import ErrorKind, ValidationError
from tender_digest.models import DateRange, ExtractionSummary, StoredTenderRecord, TenderRecord


def test_tender_record_reads_source_field_names(tender_payload) -> None:
    record = TenderRecord.model_validate(tender_payload(42))

    assert record.id == 42
    assert record.code == "1234-42-COT25"
    assert record.organization == "Municipalidad de Valparaíso"
    assert record.amount_clp == 1500000
    assert record.published_at == datetime(2025, 9, 1, 10, 0)


def test_tender_record_tolerates_missing_values(tender_payload) -> None:
    record = TenderRecord.model_validate(
        tender_payload(
            7,
            organismo=None,
            fecha_cierre="",
            monto_disponible_CLP=None,
            cantidad_proveedores_cotizando=None,
            campo_nuevo="ignored",
        )
    )

    assert record.organization == ""
    assert record.closes_at is None
    assert record.amount_clp is None
    assert record.supplier_count == 0


def test_stored_record_document_uses_source_names(make_tender) -> None:
    stored = StoredTenderRecord.from_tender(
        make_tender(9),
        business_line_id="transporte",
        query_name="region-v",
        extracted_at=datetime(2025, 9, 1, 20, 0),
        public_link="https://buscador.mercadopublico.cl/ficha?code=1234-9-COT25",
    )

    assert stored.extracted_at.tzinfo is timezone.utc
    document = stored.to_document()
    assert document["emprendimiento"] == "transporte"
    assert document["endpoint_name"] == "region-v"
    assert document["enlace_ficha"].endswith("1234-9-COT25")
    assert document["codigo"] == "1234-9-COT25"
    assert StoredTenderRecord.from_document(document) == stored


def test_date_range_parse_accepts_iso_strings_and_dates() -> None:
    parsed = DateRange.parse("2025-08-01", date(2025, 8, 31))

    assert parsed == DateRange(date(2025, 8, 1), date(2025, 8, 31))
    assert parsed.as_params() == {"date_from": "2025-08-01", "date_to": "2025-08-31"}
    assert parsed.label == "2025-08-01 - 2025-08-31"
    assert DateRange.single_day(date(2025, 8, 5)).start == date(2025, 8, 5)


@pytest.mark.parametrize(
    ("date_from", "date_to"),
    [
        (None, "2025-08-01"),
        ("2025-08-01", ""),
        ("01-08-2025", "2025-08-02"),
        ("2025-02-30", "2025-03-01"),
        ("2025-08-10", "2025-08-01"),
    ],
)
def test_date_range_rejects_invalid_input(date_from, date_to) -> None:
    with pytest.raises(ValidationError) as excinfo:
        DateRange.parse(date_from, date_to)
    assert excinfo.value.kind is ErrorKind.VALIDATION


def test_failure_summary_is_zero_valued() -> None:
    run_at = datetime(2025, 9, 1, tzinfo=timezone.utc)
    summary = ExtractionSummary.failure("software", "Software", run_at, RuntimeError("boom"))

    assert summary.failed
    assert summary.total_found == 0
    assert summary.new_records == 0
    assert summary.error == "boom"
