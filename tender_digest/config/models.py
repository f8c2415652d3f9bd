"""Pydantic models describing the immutable application configuration."""

from __future__ import annotations

import re
from datetime import date
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATABASE_SCHEMES = ("mongodb://", "mongodb+srv://", "sqlite:///")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class NewRecordSelection(str, Enum):
    """How the orchestrator decides which stored records are new."""

    INSERTED_IDS = "inserted_ids"
    POSITION = "position"


class QueryConfig(_Frozen):
    """Named filter submitted to the remote source (date range injected per run)."""

    name: str
    description: str = ""
    keywords: str | None = None
    category: str | None = None
    region: str | None = None
    status: int = 2
    order_by: str = "recent"

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Query name cannot be empty")
        return value

    @field_validator("category", "region", "keywords", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        return str(value)

    def filters(self) -> dict[str, Any]:
        """Query parameters contributed by this configuration."""

        params: dict[str, Any] = {"order_by": self.order_by, "status": self.status}
        if self.category:
            params["category"] = self.category
        if self.region:
            params["region"] = self.region
        if self.keywords:
            params["keywords"] = self.keywords
        return params


class BusinessLineConfig(_Frozen):
    """A business line with its queries and digest recipients."""

    id: str
    name: str
    description: str = ""
    queries: tuple[QueryConfig, ...] = Field(min_length=1)
    recipients: tuple[str, ...] = ()

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        if not re.fullmatch(r"[A-Za-z0-9_-]+", value):
            raise ValueError("Business line id may only contain letters, digits, '-' and '_'")
        return value

    @field_validator("recipients", mode="before")
    @classmethod
    def _validate_recipients(cls, value: Any) -> tuple[str, ...]:
        if value in (None, ""):
            return ()
        if isinstance(value, str):
            value = [value]
        cleaned = tuple(str(item).strip() for item in value if str(item).strip())
        for address in cleaned:
            if not _EMAIL_PATTERN.match(address):
                raise ValueError(f"Invalid e-mail address: {address}")
        return cleaned

    @model_validator(mode="after")
    def _unique_query_names(self) -> "BusinessLineConfig":
        names = [query.name for query in self.queries]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate query names in business line {self.id}")
        return self


class SourceApiConfig(_Frozen):
    """Remote procurement API access."""

    base_url: str = "https://api.buscador.mercadopublico.cl"
    endpoint: str = "compra-agil"
    api_key: str = ""
    page_delay_seconds: float = Field(default=2.0, ge=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:142.0) Gecko/20100101 Firefox/142.0"
    )

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.endpoint.lstrip('/')}"


class DatabaseConfig(_Frozen):
    uri: str = "mongodb://localhost:27017/chile-compra"
    name: str = "chile-compra"
    collection: str = "ofertas"

    @field_validator("uri")
    @classmethod
    def _validate_uri(cls, value: str) -> str:
        if not value.startswith(DATABASE_SCHEMES):
            raise ValueError(f"Database URI must start with one of {', '.join(DATABASE_SCHEMES)}")
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite:///")


class EmailConfig(_Frozen):
    service_url: str = "https://noreply.neurox.cl/api/email/send"
    timeout_seconds: float = Field(default=30.0, gt=0)


class SchedulerConfig(_Frozen):
    extraction_cron: str = "0 20 * * *"
    cleanup_cron: str = "0 2 * * 0"
    timezone: str = "America/Santiago"
    retention_days: int = Field(default=90, ge=1)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {value}") from exc
        return value

    @field_validator("extraction_cron", "cleanup_cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        if len(value.split()) != 5:
            raise ValueError(f"Cron expression needs five fields: {value!r}")
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class ExtractionConfig(_Frozen):
    backfill_start: date = date(2025, 8, 1)
    query_pause_seconds: float = Field(default=1.0, ge=0)
    new_record_selection: NewRecordSelection = NewRecordSelection.INSERTED_IDS
    ficha_base_url: str = "https://buscador.mercadopublico.cl/ficha?code="

    def public_link(self, code: str) -> str:
        return f"{self.ficha_base_url}{code}"


class AppConfig(_Frozen):
    """Root configuration, built once at start-up and passed explicitly."""

    source: SourceApiConfig = Field(default_factory=SourceApiConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    business_lines: tuple[BusinessLineConfig, ...] = ()

    @model_validator(mode="after")
    def _unique_line_ids(self) -> "AppConfig":
        ids = [line.id for line in self.business_lines]
        if len(ids) != len(set(ids)):
            raise ValueError("Business line ids must be unique")
        return self

    def business_line(self, line_id: str) -> BusinessLineConfig:
        for line in self.business_lines:
            if line.id == line_id:
                return line
        raise KeyError(f"Unknown business line: {line_id}")


__all__ = [
    "AppConfig",
    "BusinessLineConfig",
    "DATABASE_SCHEMES",
    "DatabaseConfig",
    "EmailConfig",
    "ExtractionConfig",
    "NewRecordSelection",
    "QueryConfig",
    "SchedulerConfig",
    "SourceApiConfig",
]
