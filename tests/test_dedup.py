from __future__ import annotations

from tender_digest.engine.dedup import SourcedTender, dedupe_sourced


def test_dedupe_sourced_keeps_first_seen_occurrence(make_tender) -> None:
    items = [
        SourcedTender(make_tender(1), "query-a"),
        SourcedTender(make_tender(2), "query-a"),
        SourcedTender(make_tender(2, nombre="copy"), "query-b"),
        SourcedTender(make_tender(3), "query-b"),
    ]

    result = dedupe_sourced(items)

    assert [item.record.id for item in result.unique] == [1, 2, 3]
    assert result.unique[1].query_name == "query-a"
    assert result.unique[1].record.title == "Servicio de transporte 2"
    assert result.dropped == 1
    assert result.total == 4


def test_dedupe_sourced_empty_input() -> None:
    result = dedupe_sourced([])
    assert result.unique == []
    assert result.dropped == 0
