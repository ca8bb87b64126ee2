"""
Structured Logging Module

Provides JSON-formatted logging for the Corio Scan client.

Features:
- JSON log formatting for machine-readable logs
- Operation context tracking (request ID, submission ID, tracking ID)
- stdout and/or file output
- Sensitive data masking (tokens, image payloads)
- API call timing

Usage:
    from corio_client.structured_logging import configure_logging, get_logger, LogContext

    configure_logging()  # once, in the host application
    logger = get_logger(__name__)

    with LogContext(submission_id="abc123"):
        logger.info("Uploading image", extra={"image_index": 0})

Configuration (environment variables):
    LOG_FORMAT: "json" or "text" (default: "json")
    LOG_OUTPUT: "stdout", "file", "all" (default: "stdout")
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: "INFO")
    LOG_FILE: path used by the file output
"""

import json
import logging
import socket
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from corio_client import config

# Context variables for operation tracking
_log_context: ContextVar[Dict[str, Any]] = ContextVar('log_context', default={})


# =============================================================================
# LOG CONTEXT MANAGEMENT
# =============================================================================

class LogContext:
    """
    Context manager for adding contextual information to logs.

    Usage:
        with LogContext(submission_id="abc", tracking_id="t-1"):
            logger.info("Processing")  # Will include both ids
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        current = _log_context.get().copy()
        current.update(self.context)
        self._token = _log_context.set(current)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token:
            _log_context.reset(self._token)
        return False


def get_context() -> Dict[str, Any]:
    """Get current logging context."""
    return _log_context.get().copy()


def clear_context():
    """Clear the current logging context."""
    _log_context.set({})


# =============================================================================
# JSON LOG FORMATTER
# =============================================================================

class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON, one object per line.

    Output format:
    {
        "timestamp": "2025-01-15T10:30:45.123+00:00",
        "level": "INFO",
        "logger": "corio_client.upload_client",
        "message": "Image uploaded",
        "service": "corio-client",
        "environment": "production",
        "host": "laptop-01",
        "request_id": "abc123",
        "extra": {...}
    }
    """

    STANDARD_FIELDS = {
        'timestamp', 'level', 'logger', 'message', 'service',
        'environment', 'host', 'request_id', 'submission_id', 'tracking_id'
    }

    SENSITIVE_FIELDS = {
        'password', 'token', 'secret', 'api_key', 'authorization',
        'access_token', 'refresh_token', 'base64'
    }

    # Attributes every LogRecord carries; anything else came in via `extra`
    _RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

    def __init__(
        self,
        service_name: str = config.SERVICE_NAME,
        environment: str = None,
        include_extra: bool = True,
        mask_sensitive: bool = True
    ):
        super().__init__()
        self.service_name = service_name
        self.environment = environment or config.ENVIRONMENT
        self.include_extra = include_extra
        self.mask_sensitive = mask_sensitive
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        context = get_context()

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "host": self.hostname,
        }

        for key in ['request_id', 'submission_id', 'tracking_id']:
            if key in context:
                log_entry[key] = context[key]

        if record.levelno >= logging.ERROR:
            log_entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName
            }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stacktrace": ''.join(traceback.format_exception(*record.exc_info))
            }

        if self.include_extra:
            extra = {}
            for key, value in record.__dict__.items():
                if key in self._RECORD_ATTRS or key.startswith('_') or key in self.STANDARD_FIELDS:
                    continue
                if self.mask_sensitive and self._is_sensitive(key):
                    extra[key] = "***MASKED***"
                else:
                    extra[key] = self._serialize_value(value)

            for key, value in context.items():
                if key not in log_entry and key not in extra:
                    extra[key] = self._serialize_value(value)

            if extra:
                log_entry["extra"] = extra

        return json.dumps(log_entry, default=str, ensure_ascii=False)

    def _is_sensitive(self, key: str) -> bool:
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in self.SENSITIVE_FIELDS)

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, (str, int, float, bool, type(None))):
            return value
        elif isinstance(value, datetime):
            return value.isoformat()
        elif isinstance(value, (list, tuple)):
            return [self._serialize_value(v) for v in value]
        elif isinstance(value, dict):
            return {k: self._serialize_value(v) for k, v in value.items()}
        else:
            return str(value)


# =============================================================================
# LOGGER FACTORY
# =============================================================================

# Silent by default; output is opt-in through configure_logging()
logging.getLogger("corio_client").addHandler(logging.NullHandler())


def configure_logging(
    level: str = None,
    format: str = None,
    output: str = None,
    service_name: str = config.SERVICE_NAME,
    log_file: str = None
):
    """
    Configure structured logging for the client.

    Only the "corio_client" logger tree is touched so that host applications
    keep control of their own root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format ("json" or "text")
        output: Output destination ("stdout", "file", "all")
        service_name: Service name for log entries
        log_file: Path to log file (for file output)
    """
    level = level or config.LOG_LEVEL
    format = format or config.LOG_FORMAT
    output = output or config.LOG_OUTPUT
    log_file = log_file or config.LOG_FILE

    package_logger = logging.getLogger("corio_client")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers.clear()

    if format.lower() == "json":
        formatter = JSONFormatter(service_name=service_name)
    else:
        formatter = logging.Formatter(
            '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    outputs = [out.strip() for out in output.lower().split(",")]

    for out in outputs:
        if out in ("stdout", "all"):
            stdout_handler = logging.StreamHandler(sys.stdout)
            stdout_handler.setFormatter(formatter)
            package_logger.addHandler(stdout_handler)

        if out in ("file", "all"):
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)

    package_logger.debug(
        "Logging configured",
        extra={
            "log_level": level,
            "log_format": format,
            "log_output": output,
        }
    )


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger in the "corio_client" tree.

    Nothing is printed until the host calls ``configure_logging()`` or
    attaches its own handlers.
    """
    return logging.getLogger(name or "corio_client")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def log_api_call(
    method: str,
    path: str,
    status_code: Optional[int],
    duration_ms: float,
    timeout_class: str = "default",
    error: str = None,
    **extra
):
    """Log one backend API call in structured format."""
    logger = get_logger("corio_client.http")

    log_data = {
        "http_method": method,
        "http_path": path,
        "http_status": status_code,
        "duration_ms": round(duration_ms, 2),
        "timeout_class": timeout_class,
        **extra
    }

    if error:
        log_data["error"] = error
        logger.warning("API call failed at transport level", extra=log_data)
    elif status_code is not None and status_code >= 500:
        logger.error("API call failed", extra=log_data)
    elif status_code is not None and status_code >= 400:
        logger.warning("API call rejected", extra=log_data)
    else:
        logger.info("API call completed", extra=log_data)


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())[:12]
