"""Logging configuration with secret redaction.

Two output formats:
- console: human-readable lines on stderr
- jsonl: one JSON object per line under the artifacts directory (plus a
  console handler so interactive runs still see progress)

Prompts sent to the generative oracle embed project data and the oracle
client is constructed with an API key, so every record is passed through
RedactionConfig before it is written anywhere.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

REDACTED = "***REDACTED***"
JSONL_LOG_NAME = "pm-insights.log.jsonl"

# Keys whose values are never logged verbatim
SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "openai_api_key",
        "authorization",
        "auth_header",
        "token",
        "access_token",
        "password",
        "secret",
    }
)

# Attributes every LogRecord has; anything else came in via extra=
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

SECRET_PATTERNS = (
    # OpenAI keys: sk-..., sk-proj-...
    re.compile(r"sk-[A-Za-z0-9_\-]{16,}"),
    re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
)


@dataclass
class RedactionConfig:
    """Which keys and value patterns count as secrets."""

    sensitive_keys: frozenset[str] = SENSITIVE_KEYS
    patterns: tuple[re.Pattern[str], ...] = SECRET_PATTERNS

    def should_redact_key(self, key: str) -> bool:
        return key.lower() in self.sensitive_keys

    def redact_value(self, value: str) -> str:
        for pattern in self.patterns:
            value = pattern.sub(REDACTED, value)
        return value


class RedactingFormatter(logging.Formatter):
    """Formatter that scrubs secrets from the fully formatted message."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        redaction: RedactionConfig | None = None,
    ) -> None:
        super().__init__(fmt, datefmt)
        self.redaction = redaction or RedactionConfig()

    def format(self, record: logging.LogRecord) -> str:
        return self.redaction.redact_value(super().format(record))


class JsonlHandler(logging.Handler):
    """Append structured log records to a .jsonl file."""

    def __init__(self, log_file: Path, redaction: RedactionConfig | None = None):
        super().__init__()
        self.log_file = log_file
        self.redaction = redaction or RedactionConfig()
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(
                    record.created, tz=timezone.utc
                ).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": self.redaction.redact_value(record.getMessage()),
            }
            extra = {
                key: REDACTED if self.redaction.should_redact_key(key) else value
                for key, value in record.__dict__.items()
                if key not in _STANDARD_ATTRS
            }
            if extra:
                entry["extra"] = extra
            if record.exc_info:
                entry["exception"] = self.redaction.redact_value(
                    logging.Formatter().formatException(record.exc_info)
                )
            with self.log_file.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except Exception:
            self.handleError(record)


@dataclass
class LoggingConfig:
    """Logging settings resolved from CLI flags."""

    format: str = "console"
    level: str = "INFO"
    artifacts_dir: Path = field(default_factory=lambda: Path("run_artifacts"))
    log_file: Path | None = None


def setup_logging(config: LoggingConfig) -> None:
    """Install handlers on the root logger, replacing any existing ones."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(config.level.upper())

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        RedactingFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    root.addHandler(console)

    if config.format == "jsonl":
        log_file = config.log_file or config.artifacts_dir / JSONL_LOG_NAME
        root.addHandler(JsonlHandler(log_file))

    # The OpenAI SDK logs full request bodies at DEBUG
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
