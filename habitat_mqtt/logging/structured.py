"""
JSON-line logging on top of the standard logging module.

StructuredLogger attaches an event name, its component and optional
metadata to an ordinary LogRecord; JsonLineFormatter turns that record
into one JSON object per line. Because the payload travels as record
attributes, any other handler (file, pytest's caplog) sees the same
fields.

    >>> log = create_logger("sync")
    >>> log.info(LogEvent.SYNC_DELIVERED, "Delivered record", {'record_id': 'a1b2'})
    {"timestamp": "2025-10-24T15:30:45.123+00:00", "level": "INFO", "component": "sync",
     "event": "sync.delivery.success", "message": "Delivered record",
     "metadata": {"record_id": "a1b2"}}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .events import LogEvent

LOGGER_PREFIX = "habitat_mqtt"

Metadata = Optional[Dict[str, Any]]


class JsonLineFormatter(logging.Formatter):
    """Render a record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            'level': record.levelname,
            'component': getattr(record, 'component', record.name),
            'event': getattr(record, 'event', None),
            'message': record.getMessage(),
        }
        metadata = getattr(record, 'metadata', None)
        if metadata:
            entry['metadata'] = metadata
        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry['exception'] = {'type': type(error).__name__, 'message': str(error)}
            if record.levelno >= logging.ERROR:
                entry['traceback'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class StructuredLogger:
    """Event-typed facade over `logging.getLogger("habitat_mqtt.<component>")`."""

    def __init__(self, component: str, level: int = logging.INFO, logger_name: Optional[str] = None):
        self.component = component
        self.logger = logging.getLogger(logger_name or f"{LOGGER_PREFIX}.{component}")
        self.logger.setLevel(level)

        if not any(isinstance(h.formatter, JsonLineFormatter) for h in self.logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(JsonLineFormatter())
            self.logger.addHandler(handler)

    def _log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={'component': self.component, 'event': event.value, 'metadata': metadata},
        )

    def debug(self, event: LogEvent, message: str, metadata: Metadata = None) -> None:
        self._log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Metadata = None) -> None:
        self._log(logging.INFO, event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        self._log(logging.WARNING, event, message, metadata, exc_info)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """Log at ERROR; a passed exception adds its type, message and traceback."""
        self._log(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


def create_logger(component: str, level: int = logging.INFO) -> StructuredLogger:
    return StructuredLogger(component=component, level=level)
