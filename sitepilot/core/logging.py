"""JSON logging for the workflow engine.

Log lines carry the workflow identifiers passed through ``extra=`` and never
carry credentials: key/value pairs with sensitive keys and anything shaped
like a GitHub, Vercel or Anthropic token are masked before output.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

REDACTED = "***REDACTED***"

SENSITIVE_KEY = re.compile(r"api[_-]?key|token|secret|password|credential|authorization", re.IGNORECASE)

# "token=abc", "api_key: abc", "Authorization Bearer abc"
_KEY_VALUE = re.compile(
    r"(api[_-]?key|token|secret|password|credential|authorization|bearer)(\s*[=:]\s*|\s+)\S+",
    re.IGNORECASE,
)
# Bare credentials by shape
_TOKEN_SHAPES = re.compile(r"\b(ghp_|gho_|ghs_|github_pat_|sk-ant-)[A-Za-z0-9_\-]+")

CONTEXT_FIELDS = ("site_id", "change_id", "branch", "repo", "user_id", "model")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with workflow context promoted to keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_sensitive(record.getMessage()),
        }
        entry.update(
            (name, getattr(record, name)) for name in CONTEXT_FIELDS if hasattr(record, name)
        )
        if record.exc_info:
            entry["exception"] = redact_sensitive(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def redact_sensitive(data: Any) -> Any:
    """Mask credentials in a string, or in every value of a dict/list."""
    if isinstance(data, str):
        masked = _KEY_VALUE.sub(rf"\1={REDACTED}", data)
        return _TOKEN_SHAPES.sub(REDACTED, masked)
    if isinstance(data, dict):
        return {key: redact_value(key, value) for key, value in data.items()}
    if isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    return data


def redact_value(key: str, value: Any) -> Any:
    if SENSITIVE_KEY.search(str(key)):
        return REDACTED
    return redact_sensitive(value) if isinstance(value, (dict, list)) else value


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def setup_logging(level: str = "INFO", structured: bool = True) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Level name; unknown names fall back to INFO
        structured: JSON lines when true, plain text otherwise
    """
    handler = logging.StreamHandler()
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Client libraries log every request at INFO
    for noisy in ("httpx", "httpcore", "anthropic", "google.auth"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
