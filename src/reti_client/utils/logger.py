"""
Logging for the staking client.

Modules log through ``get_logger(__name__)``. ``configure_logging`` attaches
the console, file and event handlers a client was configured with; each
committed group is also written as one JSON line by ``log_group_event``.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_SIZE_MB = 10
BACKUP_COUNT = 5

EVENTS_LOGGER_NAME = "reti_client.events"

_loggers: Dict[str, logging.Logger] = {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying the group event fields."""

    EXTRA_FIELDS = ("event_type", "operation", "fee", "txn_count", "tx_ids", "app_id")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for field_name in self.EXTRA_FIELDS:
            if hasattr(record, field_name):
                log_data[field_name] = getattr(record, field_name)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get or create a logger."""
    if name in _loggers:
        return _loggers[name]
    logger = logging.getLogger(name)
    logger.setLevel(level)
    _loggers[name] = logger
    return logger


def _has_file_handler(logger: logging.Logger, path: Path) -> bool:
    target = str(path.resolve())
    return any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == target
        for handler in logger.handlers
    )


def _rotating_handler(path: Path, formatter: logging.Formatter) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        str(path),
        maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_file_logging(path: Path, level: int = logging.INFO) -> None:
    """Send root logging to a rotating file; a second call for the same file is a no-op."""
    root_logger = logging.getLogger()
    if _has_file_handler(root_logger, path):
        return

    handler = _rotating_handler(path, logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.setLevel(level)
    root_logger.addHandler(handler)


def setup_console_logging(level: int = logging.INFO) -> None:
    """Send root logging to stdout, once."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and handler.stream == sys.stdout:
            return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root_logger.addHandler(console_handler)


def setup_json_logging(path: Path) -> logging.Logger:
    """Write group events to a JSON-lines file instead of the root handlers."""
    events_logger = logging.getLogger(EVENTS_LOGGER_NAME)
    events_logger.setLevel(logging.INFO)
    events_logger.propagate = False

    if not _has_file_handler(events_logger, path):
        events_logger.addHandler(_rotating_handler(path, JSONFormatter()))
    return events_logger


def configure_logging(
    level: str = "INFO",
    console: bool = True,
    file: Optional[str] = None,
    events_file: Optional[str] = None,
    directory: Union[str, Path] = "logs",
) -> None:
    """Apply a client's logging settings.

    Args:
        level: Level name for the root logger and every client logger
        console: Whether to log to stdout
        file: Log file name under ``directory``, or None for no file
        events_file: JSON-lines file for group events under ``directory``
        directory: Where log files are written
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.getLogger().setLevel(numeric_level)
    for logger in _loggers.values():
        logger.setLevel(numeric_level)

    if console:
        setup_console_logging(numeric_level)
    if file:
        setup_file_logging(Path(directory) / file, numeric_level)
    if events_file:
        setup_json_logging(Path(directory) / events_file)


def log_group_event(
    operation: str,
    fee: int,
    txn_count: int,
    tx_ids: Optional[list] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Log a committed atomic group as a structured event.

    Without ``setup_json_logging`` the event propagates to the root handlers.
    """
    events_logger = logging.getLogger(EVENTS_LOGGER_NAME)
    record = events_logger.makeRecord(
        name=EVENTS_LOGGER_NAME,
        level=logging.INFO,
        fn="", lno=0,
        msg=f"{operation}: {txn_count} txns committed (fee={fee:,} µA)",
        args=(), exc_info=None,
    )
    record.event_type = "GROUP_COMMITTED"
    record.operation = operation
    record.fee = fee
    record.txn_count = txn_count
    record.tx_ids = list(tx_ids or [])
    if extra:
        for key, value in extra.items():
            setattr(record, key, value)
    events_logger.handle(record)
