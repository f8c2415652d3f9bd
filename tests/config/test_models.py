from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from tender_digest.config import (
    AppConfig,
    BusinessLineConfig,
    DatabaseConfig,
    QueryConfig,
    SchedulerConfig,
    SourceApiConfig,
)


def test_query_filters_only_include_set_values() -> None:
    query = QueryConfig(name="region-v", category="78111800", region=5)

    assert query.region == "5"
    assert query.filters() == {
        "order_by": "recent",
        "status": 2,
        "category": "78111800",
        "region": "5",
    }
    assert QueryConfig(name="kw", keywords="software").filters()["keywords"] == "software"


def test_query_name_is_required() -> None:
    with pytest.raises(PydanticValidationError):
        QueryConfig(name="   ")


def test_business_line_validation(make_line) -> None:
    line = make_line(recipients="ops@example.cl")
    assert line.recipients == ("ops@example.cl",)

    with pytest.raises(PydanticValidationError):
        make_line(id="has space")
    with pytest.raises(PydanticValidationError):
        make_line(recipients=["not-an-email"])
    with pytest.raises(PydanticValidationError):
        make_line(queries=[])
    with pytest.raises(PydanticValidationError):
        make_line(queries=[{"name": "dup"}, {"name": "dup"}])


def test_configuration_is_immutable(make_line) -> None:
    line = make_line()
    with pytest.raises(PydanticValidationError):
        line.name = "other"


def test_app_config_rejects_duplicate_line_ids(make_line) -> None:
    line = make_line()
    with pytest.raises(PydanticValidationError):
        AppConfig(business_lines=(line, line))


def test_business_line_lookup(make_config, make_line) -> None:
    config = make_config([make_line(), make_line(id="software", name="Software")])
    assert config.business_line("software").name == "Software"
    with pytest.raises(KeyError):
        config.business_line("missing")


def test_scheduler_validation() -> None:
    config = SchedulerConfig()
    assert config.tzinfo.key == "America/Santiago"

    with pytest.raises(PydanticValidationError):
        SchedulerConfig(timezone="Mars/Olympus")
    with pytest.raises(PydanticValidationError):
        SchedulerConfig(extraction_cron="0 20 * *")
    with pytest.raises(PydanticValidationError):
        SchedulerConfig(retention_days=0)


def test_database_uri_schemes() -> None:
    assert DatabaseConfig(uri="sqlite:///data/tenders.db").is_sqlite
    assert not DatabaseConfig(uri="mongodb+srv://cluster.example.net").is_sqlite
    with pytest.raises(PydanticValidationError):
        DatabaseConfig(uri="postgres://localhost/db")


def test_source_url_joins_base_and_endpoint() -> None:
    config = SourceApiConfig(base_url="https://api.example.cl/", endpoint="/compra-agil")
    assert config.url == "https://api.example.cl/compra-agil"


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(PydanticValidationError):
        AppConfig.model_validate({"source": {"apikey": "typo"}})
