"""Logging configuration for vlclient.

The library itself only creates module loggers and never configures
handlers. Applications (and the ``vl`` CLI) call configure_logging() once at
startup.

Logging Levels:
- DEBUG: Per-request exchange details, skipped stream records
- INFO: Retry attempts
- WARNING: Retries exhausted, streams that failed mid-way
- ERROR: Reserved for applications

Guidelines:
- Events are short snake_case names with details in ``extra``
- Never log image payloads or credentials; API keys are redacted anyway
"""

import logging
import os
import re
from dataclasses import dataclass, field

DEFAULT_LOG_LEVEL = "WARNING"

# Default patterns for secret detection and redaction
DEFAULT_REDACT_PATTERNS: list[str] = [
    # JWT-shaped API keys (header.payload.signature)
    r"\b(eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,})",
    # Credential header values
    r"X-Moondream-Auth['\"]?\s*[:=]\s*['\"]?([^\s'\",}]{8,})",
    # ENV-style assignments: VL_API_KEY=secret or API_KEY: secret
    r"\b[A-Z0-9_]+(?:KEY|TOKEN|SECRET|PASSWORD)\s*[=:]\s*([^\s\"']{8,})",
    # Bearer tokens in headers
    r"\bBearer\s+([A-Za-z0-9._\-+=]{20,})\b",
]


@dataclass
class SecretRedactor:
    """Redacts credentials from log messages.

    Matches are replaced with partially masked versions so that different
    keys can still be told apart while debugging.
    """

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.patterns:
            self.patterns = [
                re.compile(p, re.IGNORECASE) for p in DEFAULT_REDACT_PATTERNS
            ]

    def redact(self, text: str) -> str:
        """Redact secrets from text, preserving partial info for debugging."""
        if not self.enabled or not text:
            return text
        result = text
        for pattern in self.patterns:
            result = pattern.sub(self._mask_match, result)
        return result

    def _mask_match(self, match: re.Match[str]) -> str:
        full = match.group(0)
        token = match.group(1) if match.lastindex else full

        # Skip if already redacted
        if "..." in token:
            return full

        if len(token) < 12:
            return full.replace(token, "***") if token != full else "***"

        masked = f"{token[:4]}...{token[-4:]}"
        return full.replace(token, masked) if token != full else masked


class RedactingFilter(logging.Filter):
    """Logging filter that rewrites records with secrets redacted."""

    def __init__(self, redactor: SecretRedactor | None = None):
        super().__init__()
        self.redactor = redactor or SecretRedactor()

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self.redactor.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class ComponentFormatter(logging.Formatter):
    """Formatter that extracts component name from logger path.

    - vlclient.transport -> transport
    - vlclient.cli.app -> cli
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = record.name.split(".")
        if len(parts) >= 2 and parts[0] == "vlclient":
            record.component = parts[1]
        else:
            record.component = parts[0]
        return super().format(record)


# Third-party loggers that are too noisy at INFO level
NOISY_LOGGERS = [
    "httpx",
    "httpcore",
]


def configure_logging(level: str | None = None, use_rich: bool = False) -> None:
    """Configure logging for applications using vlclient.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
            If None, uses VL_LOG_LEVEL env var or WARNING.
        use_rich: Use Rich handler for colorful terminal output.
    """
    if level is None:
        level = os.environ.get("VL_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    level = level.upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level = DEFAULT_LOG_LEVEL

    log_level = getattr(logging, level)

    if use_rich:
        from rich.console import Console
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=False,
            show_path=False,
            show_time=True,
            markup=False,
        )
        handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(
            ComponentFormatter(
                "%(asctime)s | %(levelname)-8s | %(component)s | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    handler.addFilter(RedactingFilter())

    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    # Suppress noisy third-party loggers
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
