"""
Structured Logging for Keyspace Operations

One JSON object per line, carrying:
- the message, level and logger name
- fields bound to a StructuredLogger (bucket, region, prefix)
- fields of the enclosing ``StructuredLogger.context(...)`` block
- a serialized KeyspaceStoreError when one is logged

Keys and values are bytes; they are rendered as lowercase hex so log
lines stay valid JSON.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Iterator, Optional, TextIO, Union

from s3keyspace.core.errors import KeyspaceStoreError


class LogLevel(IntEnum):
    """Log levels accepted by setup_logging."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


# Fields added by StructuredLogger.context(), visible to every record
# emitted inside the block (including from other tasks it spawns).
_scope_fields: ContextVar[Dict[str, Any]] = ContextVar("s3keyspace_log_scope", default={})

# Attributes every logging.LogRecord has; anything else came in via extra=.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime",
}

# Transport libraries that log every HTTP request at DEBUG.
_TRANSPORT_LOGGERS = ("botocore", "aiobotocore", "aioboto3", "urllib3", "asyncio")


def _encode(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, KeyspaceStoreError):
        return value.to_dict()
    return str(value)


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "@timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_scope_fields.get())
        payload.update(
            (name, value) for name, value in vars(record).items()
            if name not in _RECORD_ATTRS
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_encode)


class StructuredLogger:
    """
    Logger with bound fields.

    Usage:
        log = StructuredLogger("s3keyspace.store").with_extra(bucket="b")
        with StructuredLogger.context(operation="bootstrap"):
            log.info("Bucket created")
    """

    __slots__ = ("_logger", "_fields")

    def __init__(self, name: str, fields: Optional[Dict[str, Any]] = None) -> None:
        self._logger = logging.getLogger(name)
        self._fields: Dict[str, Any] = dict(fields or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def with_extra(self, **fields: Any) -> StructuredLogger:
        """Copy of this logger with additional bound fields."""
        return StructuredLogger(self._logger.name, {**self._fields, **fields})

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def failure(self, message: str, error: KeyspaceStoreError, **fields: Any) -> None:
        """Log error at ERROR level with its code, id and context attached."""
        self._emit(logging.ERROR, f"{message}: {error.message}", {**fields, "error": error})

    def _emit(self, level: int, message: str, fields: Dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, message, extra={**self._fields, **fields})

    @staticmethod
    @contextmanager
    def context(**fields: Any) -> Iterator[None]:
        """Attach fields to every record logged inside the block."""
        token = _scope_fields.set({**_scope_fields.get(), **fields})
        try:
            yield
        finally:
            _scope_fields.reset(token)


def setup_logging(
    level: Union[LogLevel, str] = LogLevel.INFO,
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Install one stderr (or stream) handler on the root logger.

    Args:
        level: LogLevel or its name ("DEBUG", "info", ...).
        json_output: JSON lines when True, a readable single-line format otherwise.
        stream: Destination; defaults to stderr.
    """
    if isinstance(level, str):
        level = LogLevel[level.upper()]

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        ))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
