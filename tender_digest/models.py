"""Domain records exchanged between fetcher, store, notifier and orchestrator."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class RunMode(str, Enum):
    """Extraction flavours; they only differ in the date range."""

    ROUTINE = "routine"
    BACKFILL = "backfill"


class TenderRecord(BaseModel):
    """One procurement opportunity exactly as reported by the source."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    code: str = Field(alias="codigo")
    title: str = Field(alias="nombre")
    published_at: datetime | None = Field(default=None, alias="fecha_publicacion")
    closes_at: datetime | None = Field(default=None, alias="fecha_cierre")
    organization: str = Field(default="", alias="organismo")
    unit: str = Field(default="", alias="unidad")
    status_id: int | None = Field(default=None, alias="id_estado")
    status: str = Field(default="", alias="estado")
    amount: float | None = Field(default=None, alias="monto_disponible")
    currency: str = Field(default="", alias="moneda")
    amount_clp: float | None = Field(default=None, alias="monto_disponible_CLP")
    supplier_count: int = Field(default=0, alias="cantidad_proveedores_cotizando")

    @field_validator("organization", "unit", "status", "currency", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("published_at", "closes_at", mode="before")
    @classmethod
    def _blank_timestamp(cls, value: Any) -> Any:
        return None if value == "" else value

    @field_validator("supplier_count", mode="before")
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class StoredTenderRecord(TenderRecord):
    """A tender plus the metadata attached when a business line stores it.

    Documents use the same field names as the source payload, with the
    extraction metadata under ``emprendimiento``, ``endpoint_name``,
    ``fecha_extraccion`` and ``enlace_ficha``.
    """

    business_line_id: str = Field(alias="emprendimiento")
    query_name: str = Field(alias="endpoint_name")
    extracted_at: datetime = Field(alias="fecha_extraccion")
    public_link: str = Field(alias="enlace_ficha")

    @field_validator("extracted_at")
    @classmethod
    def _aware_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def from_tender(
        cls,
        record: TenderRecord,
        *,
        business_line_id: str,
        query_name: str,
        extracted_at: datetime,
        public_link: str,
    ) -> "StoredTenderRecord":
        payload = record.model_dump()
        payload.update(
            business_line_id=business_line_id,
            query_name=query_name,
            extracted_at=extracted_at,
            public_link=public_link,
        )
        return cls.model_validate(payload)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "StoredTenderRecord":
        return cls.model_validate(document)


def _coerce_date(value: Any, label: str) -> date:
    if value is None or value == "":
        raise ValidationError(f"{label} is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not _ISO_DATE.match(text):
        raise ValidationError(f"{label} must use YYYY-MM-DD format, got {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"{label} is not a valid calendar date: {value!r}") from exc


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar-date window submitted with every query."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValidationError(
                f"date_from ({self.start.isoformat()}) cannot be after date_to ({self.end.isoformat()})"
            )

    @classmethod
    def parse(cls, date_from: Any, date_to: Any) -> "DateRange":
        return cls(_coerce_date(date_from, "date_from"), _coerce_date(date_to, "date_to"))

    @classmethod
    def single_day(cls, day: date) -> "DateRange":
        return cls(day, day)

    def as_params(self) -> dict[str, str]:
        return {"date_from": self.start.isoformat(), "date_to": self.end.isoformat()}

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


@dataclass(slots=True)
class ExtractionSummary:
    """Per business line outcome of a single run."""

    business_line_id: str
    business_line: str
    total_found: int
    new_records: int
    run_at: datetime
    queries: list[str] = field(default_factory=list)
    failed: bool = False
    error: str | None = None

    @classmethod
    def failure(
        cls, business_line_id: str, business_line: str, run_at: datetime, error: BaseException
    ) -> "ExtractionSummary":
        return cls(
            business_line_id=business_line_id,
            business_line=business_line,
            total_found=0,
            new_records=0,
            run_at=run_at,
            failed=True,
            error=str(error),
        )


__all__ = ["DateRange", "ExtractionSummary", "RunMode", "StoredTenderRecord", "TenderRecord"]
