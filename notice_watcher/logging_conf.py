"""Logging configuration: structlog events rendered as JSON by stdlib handlers."""

from __future__ import annotations

import logging
import logging.config
import logging.handlers
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import structlog

ROOT_LOGGER = "notice_watcher"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

# third-party loggers that are chatty at INFO; httpx also logs full request
# URLs, which carry the bot token
QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler")

_BOT_TOKEN = re.compile(r"/bot\d+:[\w-]+")
_LOGGING_INITIALISED = False


@dataclass(slots=True, frozen=True)
class LogPaths:
    root: Path
    main: Path
    errors: Path
    sources: Path

    def source(self, source_kind: str) -> Path:
        return self.sources / f"{source_kind}.log"


def log_paths() -> LogPaths:
    env_root = os.environ.get("NOTICE_WATCHER_HOME")
    if env_root:
        root = Path(env_root).expanduser().resolve() / "logs"
    else:
        root = Path(__file__).resolve().parents[1] / "logs"
    return LogPaths(root=root, main=root / "watcher.log", errors=root / "error.log", sources=root / "sources")


def redact_tokens(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask Telegram bot tokens embedded in any string value."""

    for key, value in event_dict.items():
        if isinstance(value, str) and "/bot" in value:
            event_dict[key] = _BOT_TOKEN.sub("/bot***", value)
    return event_dict


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": LOG_BACKUPS,
        "encoding": "utf-8",
        "formatter": "json",
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Set up handlers once per process and return the application logger.

    Console output follows ``verbose``; ``watcher.log`` keeps INFO and above,
    ``error.log`` only errors. Later calls reuse the first configuration.
    """

    global _LOGGING_INITIALISED
    paths = log_paths()
    paths.sources.mkdir(parents=True, exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
                    "main_file": _file_handler(paths.main, "INFO"),
                    "error_file": _file_handler(paths.errors, "ERROR"),
                },
                "loggers": {
                    ROOT_LOGGER: {
                        "handlers": ["console", "main_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                    **{name: {"level": "WARNING"} for name in QUIET_LOGGERS},
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                redact_tokens,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def source_logger(source_kind: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to one monitored source, also writing ``logs/sources/<kind>.log``."""

    configure_logging(verbose)
    path = log_paths().source(source_kind)
    py_logger = logging.getLogger(f"{ROOT_LOGGER}.source.{source_kind}")
    attached = any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(path)
        for handler in py_logger.handlers
    )
    if not attached:
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        )
        main_handlers = logging.getLogger(ROOT_LOGGER).handlers
        if main_handlers:
            handler.setFormatter(main_handlers[0].formatter)
        handler.setLevel(logging.INFO)
        py_logger.addHandler(handler)
    return structlog.get_logger(py_logger.name).bind(source=source_kind)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last ``line_count`` lines of a log file, or ``[]`` if it does not exist."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def main_log_path() -> Path:
    return log_paths().main


def available_source_logs() -> Iterable[Path]:
    sources_dir = log_paths().sources
    if not sources_dir.exists():
        return []
    return sorted(sources_dir.glob("*.log"))


__all__ = [
    "LogPaths",
    "available_source_logs",
    "configure_logging",
    "log_paths",
    "main_log_path",
    "redact_tokens",
    "source_logger",
    "tail_log",
]
