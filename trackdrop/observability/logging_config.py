"""Structured JSON logging configuration with secret redaction."""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

# Bot API URLs embed the token: https://api.telegram.org/bot<id>:<secret>/...
BOT_TOKEN_PATTERN = re.compile(r"bot\d+:[A-Za-z0-9_-]+")
REDACTED = "[REDACTED]"


class SecretRedactionFilter(logging.Filter):
    """Masks bot tokens and configured secrets before a record is emitted."""

    def __init__(self, secrets: Iterable[Optional[str]] = ()):
        super().__init__()
        # Longest first so a secret containing another is masked whole
        self.secrets = sorted({s for s in secrets if s}, key=len, reverse=True)

    def redact(self, text: str) -> str:
        text = BOT_TOKEN_PATTERN.sub(f"bot{REDACTED}", text)
        for secret in self.secrets:
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self.redact(record.exc_text)
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_obj["exception"] = record.exc_text or self.formatException(record.exc_info)
        if record.pathname:
            log_obj["module"] = record.module
            log_obj["lineno"] = record.lineno
        if self.include_extra and hasattr(record, "extra") and record.extra:
            log_obj["extra"] = record.extra
        return json.dumps(log_obj, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    secrets: Iterable[Optional[str]] = (),
) -> None:
    """
    Configure application logging.

    Every handler masks Telegram bot tokens and the given secrets.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    for h in root.handlers[:]:
        root.removeHandler(h)

    if json_format:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(log_format)
    redaction = SecretRedactionFilter(secrets)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(redaction)
    root.addHandler(handler)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        fh.addFilter(redaction)
        root.addHandler(fh)

    # python-telegram-bot polls constantly; keep its request logging quiet
    logging.getLogger("httpx").setLevel(logging.WARNING)
