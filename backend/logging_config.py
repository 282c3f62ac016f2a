"""Application logging configuration helpers."""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

from settings import settings

_FILE_HANDLER_NAME = "kitreg.file"
_STREAM_HANDLER_NAME = "kitreg.stdout"

_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_TRACE_ID_CTX: ContextVar[str | None] = ContextVar("trace_id", default=None)

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_LOG_RECORD_ATTRS = set(logging.makeLogRecord({}).__dict__) | {
    "asctime",
    "message",
    "request_id",
    "trace_id",
}


@dataclass
class RequestContextTokens:
    """Handles the lifecycle of context variables used for logging."""

    request: Token[str | None]
    trace: Token[str | None]


class RequestContextFilter(logging.Filter):
    """Inject request context information into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.request_id = _REQUEST_ID_CTX.get()
        record.trace_id = _TRACE_ID_CTX.get()
        return True


class JSONLogFormatter(logging.Formatter):
    """Render log records as JSON for log aggregation stacks."""

    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        log_payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "func": record.funcName,
        }

        request_id = getattr(record, "request_id", None)
        if request_id:
            log_payload["request_id"] = request_id

        trace_id = getattr(record, "trace_id", None)
        if trace_id:
            log_payload["trace_id"] = trace_id

        if record.exc_info:
            log_payload["exc_info"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_payload["stack"] = self.formatStack(record.stack_info)

        extra = self._collect_extra(record)
        if extra:
            log_payload["extra"] = extra

        return json.dumps(log_payload, ensure_ascii=False, default=str)

    @staticmethod
    def _collect_extra(record: logging.LogRecord) -> Dict[str, Any]:
        extra: Dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key not in _STANDARD_LOG_RECORD_ATTRS and not key.startswith("_"):
                extra[key] = value
        return extra


def bind_request_context(request_id: str, trace_id: str | None = None) -> RequestContextTokens:
    """Store the identifiers that should accompany subsequent log records."""

    request_token = _REQUEST_ID_CTX.set(request_id)
    trace_token = _TRACE_ID_CTX.set(trace_id or request_id)
    return RequestContextTokens(request=request_token, trace=trace_token)


def reset_request_context(tokens: RequestContextTokens) -> None:
    """Reset request-specific context after the request is complete."""

    _REQUEST_ID_CTX.reset(tokens.request)
    _TRACE_ID_CTX.reset(tokens.trace)


def get_request_id() -> str | None:
    """Return the currently bound request identifier, if any."""

    return _REQUEST_ID_CTX.get()


def build_logging_config(level: str) -> Dict[str, Any]:
    """Return a ``dictConfig`` mapping that routes gunicorn logs through the JSON formatter."""

    level_name = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_context": {"()": RequestContextFilter},
        },
        "formatters": {
            "json": {"()": JSONLogFormatter},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "json",
                "filters": ["request_context"],
            },
        },
        "loggers": {
            "gunicorn.error": {"handlers": ["stdout"], "level": level_name, "propagate": False},
            "gunicorn.access": {"handlers": ["stdout"], "level": level_name, "propagate": False},
        },
        "root": {"handlers": ["stdout"], "level": level_name},
    }


def _attach_handler(
    root_logger: logging.Logger,
    handler: logging.Handler,
    name: str,
    level: int,
) -> None:
    if any(getattr(existing, "name", "") == name for existing in root_logger.handlers):
        handler.close()
        return
    handler.name = name
    handler.setLevel(level)
    handler.setFormatter(JSONLogFormatter())
    handler.addFilter(RequestContextFilter())
    root_logger.addHandler(handler)


def setup_logging() -> logging.Logger:
    """Configure JSON logging with both file rotation and stdout output.

    Safe to call repeatedly: handlers are looked up by name so that reloading
    the app module (tests, gunicorn preload) never duplicates output.
    """

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    _attach_handler(
        root_logger,
        RotatingFileHandler(
            log_dir / "application.log",
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        ),
        _FILE_HANDLER_NAME,
        log_level,
    )
    _attach_handler(
        root_logger,
        logging.StreamHandler(stream=sys.stdout),
        _STREAM_HANDLER_NAME,
        log_level,
    )

    return logging.getLogger("kitreg")


__all__ = [
    "JSONLogFormatter",
    "RequestContextFilter",
    "bind_request_context",
    "build_logging_config",
    "get_request_id",
    "reset_request_context",
    "setup_logging",
]
