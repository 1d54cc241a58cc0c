"""
Logging infrastructure for Keygate.

Provides structured logging with JSON formatting, per-request ids and
redaction of credential material.
"""

import logging
import logging.handlers
import json
import sys
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Id of the request being served, set by RequestIDMiddleware
request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

REDACTED = "***REDACTED***"

# Form, JSON and header spellings of OAuth credential fields
_CREDENTIAL_FIELDS = r'(?:password|client_secret|access_token|refresh_token)'


class SensitiveDataFilter(logging.Filter):
    """Redact credentials from log messages before they reach a handler."""

    PATTERNS = [
        (re.compile(r'(Authorization:\s+)(?:Basic\s+|Bearer\s+)?\S+', re.IGNORECASE), rf'\1{REDACTED}'),
        (
            re.compile(rf'(\b{_CREDENTIAL_FIELDS}["\']?\s*[:=]\s*["\']?)[^\s&"\',]+', re.IGNORECASE),
            rf'\1{REDACTED}',
        ),
        (re.compile(r'(\bcode=)[^\s&]+', re.IGNORECASE), rf'\1{REDACTED}'),
    ]

    def redact(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = self.redact(record.msg)
        return True


class RequestIdFilter(logging.Filter):
    """Stamp each record with the current request id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }

        req_id = getattr(record, "request_id", None) or request_id.get()
        if req_id and req_id != "-":
            log_data["request_id"] = req_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    def __init__(self):
        fmt = "%(asctime)s [%(levelname)s] %(name)s (%(request_id)s): %(message)s"
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")


def _make_handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    log_file: Optional[str] = None,
    rotation_size: str = "10MB",
    rotation_count: int = 5,
    module_levels: Optional[Dict[str, str]] = None
) -> None:
    """
    Configure Keygate logging.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format ("json" or "text")
        log_file: Optional file path for log output
        rotation_size: Size limit for log rotation (e.g., "10MB")
        rotation_count: Number of rotated log files to keep
        module_levels: Optional dict of module-specific log levels
                      e.g., {"keygate.oauth.tokens": "DEBUG"}
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    formatter = JSONFormatter() if format_type == "json" else TextFormatter()
    root_logger.addHandler(_make_handler(logging.StreamHandler(sys.stdout), formatter))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=_parse_size(rotation_size),
            backupCount=rotation_count,
            encoding='utf-8'
        )
        root_logger.addHandler(_make_handler(file_handler, formatter))
        root_logger.info(f"Logging to file: {log_file} (rotation: {rotation_size}, count: {rotation_count})")

    for module_name, module_level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(getattr(logging, module_level.upper()))
        root_logger.info(f"Module '{module_name}' log level set to {module_level}")

    root_logger.info(f"Logging configured: level={level}, format={format_type}")


def _parse_size(size_str: str) -> int:
    """Parse a size such as "10MB" or "1GB" to bytes."""
    size_str = size_str.upper().strip()

    # Longer suffixes first so 'B' does not match 'MB'
    for suffix, multiplier in (('GB', 1024 ** 3), ('MB', 1024 ** 2), ('KB', 1024), ('B', 1)):
        if size_str.endswith(suffix):
            return int(float(size_str[:-len(suffix)].strip()) * multiplier)

    return int(size_str)


def set_request_id(req_id: str) -> None:
    request_id.set(req_id)


def get_request_id() -> Optional[str]:
    return request_id.get()


def clear_request_id() -> None:
    request_id.set(None)
