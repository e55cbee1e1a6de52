"""Logging configuration with per-target context tracking."""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import Settings


# Name of the target being polled by the current thread
target_var: ContextVar[Optional[str]] = ContextVar("target", default=None)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, tagged with the polled target."""

    def __init__(self, include_location: bool = False):
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        target = target_var.get()
        if target:
            entry["target"] = target

        extra = getattr(record, "extra_fields", None)
        if extra:
            entry.update(extra)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_location:
            entry["location"] = f"{record.pathname}:{record.lineno} ({record.funcName})"

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``time LEVEL [target] logger: message``"""

    def format(self, record: logging.LogRecord) -> str:
        target = target_var.get()
        tag = f"[{target}] " if target else ""
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{stamp} {record.levelname:<7} {tag}{record.name}: {record.getMessage()}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class SensitiveDataFilter(logging.Filter):
    """Redact credentials from log messages (auth payloads, bearer tokens)."""

    SENSITIVE_KEYS = (
        "access_token",
        "api_key",
        "authorization",
        "password",
        "secret",
        "token",
    )

    _BEARER = re.compile(r"(bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        lowered = message.lower()
        if not any(key in lowered for key in self.SENSITIVE_KEYS):
            return True

        redacted = self._BEARER.sub(r"\1[REDACTED]", message)
        for key in self.SENSITIVE_KEYS:
            redacted = self._redact_key(redacted, key)
        record.msg = redacted
        record.args = None
        return True

    @staticmethod
    def _redact_key(text: str, key: str) -> str:
        # key=value (form bodies, query strings) and 'key': value / "key": value
        for pattern in (
            rf"(\b{key}\s*[=:]\s*)[^\s,&}}\]]+",
            rf"(['\"]{key}['\"]\s*:\s*)[^\s,}}\]]+",
        ):
            text = re.sub(pattern, r"\1[REDACTED]", text, flags=re.IGNORECASE)
        return text


def setup_logging(settings: Settings) -> None:
    """Route all records to stderr; stdout is reserved for the report."""
    level = logging.getLevelName(settings.log_level)

    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if settings.log_format == "json":
        handler.setFormatter(
            StructuredFormatter(include_location=settings.log_level == "DEBUG")
        )
    else:
        handler.setFormatter(TextFormatter())
    handler.addFilter(SensitiveDataFilter())
    root.addHandler(handler)

    # Per-request chatter from the transport libraries
    for noisy in ("httpx", "httpcore", "urllib3", "docker"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``readiness`` namespace."""
    return logging.getLogger(f"readiness.{name}")
