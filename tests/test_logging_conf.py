from __future__ import annotations

from pathlib import Path

from tender_digest.logging_conf import available_line_logs, line_logger, log_dir, tail_log


def test_log_dir_follows_home(tmp_path: Path) -> None:
    assert log_dir() == tmp_path.resolve() / "logs"


def test_line_logger_creates_per_line_file(tmp_path: Path) -> None:
    logger = line_logger("transporte")
    logger.info("business_line_started", queries=2)

    paths = list(available_line_logs())
    assert [path.name for path in paths] == ["transporte.log"]


def test_line_logger_is_reused_per_business_line(monkeypatch) -> None:
    first = line_logger("software")

    def fail(verbose: bool = False):
        raise AssertionError("logging configured twice")

    monkeypatch.setattr("tender_digest.logging_conf.configure_logging", fail)

    assert line_logger("software") is first


def test_tail_log_returns_last_lines(tmp_path: Path) -> None:
    path = tmp_path / "sample.log"
    path.write_text("".join(f"line {i}\n" for i in range(10)), encoding="utf-8")

    assert tail_log(path, 3) == ["line 7\n", "line 8\n", "line 9\n"]
    assert tail_log(tmp_path / "missing.log") == []
