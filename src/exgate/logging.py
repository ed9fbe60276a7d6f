from __future__ import annotations

import logging
import logging.handlers
import os
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

# third-party loggers that are too chatty at DEBUG
QUIET_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


class MillisecondFormatter(logging.Formatter):
    """Timestamps with milliseconds; polling cycles are sub-second apart."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        created = datetime.fromtimestamp(record.created)
        return f"{created.strftime(datefmt or '%Y-%m-%d %H:%M:%S')}.{int(record.msecs):03d}"


def _rotating(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def resolve_level(level: str | int | None = None) -> int:
    """Explicit level, else ``EXGATE_LOG_LEVEL``, else INFO."""
    if isinstance(level, int):
        return level
    name = (level or os.environ.get("EXGATE_LOG_LEVEL", "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def configure_logging(log_dir: Path | None = None, level: str | int | None = None) -> None:
    """Configure console logging plus rotating files under ``log_dir``.

    ``exgate.log`` receives everything; ``diagnostics.log`` only the
    per-exchange diagnostic events, so vendor failures can be read apart from
    the polling chatter.
    """
    level = resolve_level(level)
    formatter = MillisecondFormatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    diagnostics_logger = logging.getLogger("exgate.diagnostics")
    for handler in diagnostics_logger.handlers[:]:
        diagnostics_logger.removeHandler(handler)
        handler.close()

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_rotating(log_dir / "exgate.log", level, formatter))
        diagnostics_logger.addHandler(_rotating(log_dir / "diagnostics.log", logging.INFO, formatter))

    quiet_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(quiet_level, level))
