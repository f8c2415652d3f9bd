"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Iterable

import structlog

_LOGGING_INITIALISED = False
_LINE_LOGGERS: dict[Path, structlog.BoundLogger] = {}


def _default_log_dir() -> Path:
    env_root = os.environ.get("TENDER_DIGEST_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    error_log = log_dir / "error.log"
    app_log = log_dir / "app.log"
    lines_dir = log_dir / "lines"
    lines_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    app_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "app_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(app_log),
                        "formatter": "plain",
                        "encoding": "utf-8",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                        "encoding": "utf-8",
                    },
                },
                "loggers": {
                    "tender_digest": {
                        "handlers": ["console", "app_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("tender_digest")


def line_logger(business_line_id: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to one business line with its own log file."""

    line_log_path = _default_log_dir() / "lines" / f"{business_line_id}.log"
    cached = _LINE_LOGGERS.get(line_log_path)
    if cached is not None:
        return cached

    configure_logging(verbose)
    line_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"tender_digest.line.{business_line_id}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(line_log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(line_log_path, encoding="utf-8")
        global_logger = logging.getLogger("tender_digest")
        if global_logger.handlers:
            file_handler.setFormatter(global_logger.handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    logger = structlog.get_logger(logger_name).bind(business_line=business_line_id)
    _LINE_LOGGERS[line_log_path] = logger
    return logger


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def log_dir() -> Path:
    return _default_log_dir()


def available_line_logs() -> Iterable[Path]:
    """Yield available per business line log file paths."""

    lines_dir = _default_log_dir() / "lines"
    if not lines_dir.exists():
        return []
    return sorted(p for p in lines_dir.glob("*.log"))


__all__ = ["available_line_logs", "configure_logging", "line_logger", "log_dir", "tail_log"]
