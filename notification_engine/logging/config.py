"""Logging configuration for the notification engine."""

import json
import logging
import sys
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal

from .context import get_log_context

LogFormat = Literal["json", "key-value"]

SERVICE_NAME = "notification-engine"

# Attributes every LogRecord carries; anything else is an extra field
_RECORD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "asctime",
    "exc_info", "exc_text", "stack_info", "taskName",
}


class ContextualFilter(logging.Filter):
    """Filter that enriches log records with static metadata and active context.

    Merges, in order of precedence:
    1. Fields passed explicitly through ``extra``
    2. Active log context (run_id, event_type, reference_id, recipient_id, ...)
    3. Static fields (service, environment)
    """

    def __init__(self, service: str = SERVICE_NAME, environment: str = "local"):
        super().__init__()
        self.service = service
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        record.environment = self.environment

        for key, value in get_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)

        return True


def _jsonable(value: Any) -> Any:
    """Coerce an extra field into something json.dumps accepts."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (str, int, float, bool, type(None))):
        return value
    if isinstance(value, (set, frozenset, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


class JSONFormatter(logging.Formatter):
    """JSON formatter producing one object per line with stable field names."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                log_obj[key] = _jsonable(value)

        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, ensure_ascii=False)

    def _format_timestamp(self, created: float) -> str:
        """Format a record timestamp as ISO-8601 UTC with millisecond precision."""
        dt = datetime.fromtimestamp(created, tz=timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class KeyValueFormatter(logging.Formatter):
    """Human-readable formatter.

    Produces ``timestamp [level] logger: message key1=value1 key2=value2``.
    """

    SKIP_ATTRS = _RECORD_ATTRS | {"service", "environment"}

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)

        extras = []
        for key, value in sorted(record.__dict__.items()):
            if key in self.SKIP_ATTRS or key.startswith("_"):
                continue
            extras.append(f"{key}={self._format_value(value)}")

        if extras:
            return f"{base} {' '.join(extras)}"
        return base

    @staticmethod
    def _format_value(value: Any) -> str:
        value = _jsonable(value)
        if isinstance(value, str):
            if " " in value or "=" in value or "," in value:
                return f'"{value}"'
            return value
        if isinstance(value, bool):
            return str(value).lower()
        if value is None:
            return "null"
        if isinstance(value, (list, dict)):
            return json.dumps(value, ensure_ascii=False)
        return str(value)


def configure_logging(
    level: str = "INFO",
    format_type: LogFormat = "key-value",
    environment: str = "local",
) -> None:
    """Configure the root logger with the specified level and format.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'json' for JSON logs or 'key-value' for human-readable logs
        environment: Environment label (production, staging, local)

    Raises:
        ValueError: If level or format_type is invalid
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    if format_type not in ("json", "key-value"):
        raise ValueError(f"Invalid log format: {format_type}. Must be 'json' or 'key-value'")

    handler = logging.StreamHandler(sys.stdout)

    if format_type == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            KeyValueFormatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    handler.addFilter(ContextualFilter(service=SERVICE_NAME, environment=environment))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # SQLAlchemy engine logging is noisy below WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "event": "logging.configured",
            "component": "logging",
            "log_level": level.upper(),
            "log_format": format_type,
        },
    )
