"""Logging setup with credential scrubbing.

Fetch and stream errors captured by resources are logged with their message,
and API clients routinely put tokens or keys into exception text. Every handler
installed by :func:`setup_logging` therefore runs records through
:class:`CredentialScrubbingFilter` unless scrubbing is disabled.
"""

import logging
import re
from typing import ClassVar

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CredentialScrubbingFilter(logging.Filter):
    """Logging filter that redacts credentials from log messages."""

    PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = [
        # "token": "...", "api_key": "...", "password": "...", ...
        (
            re.compile(
                r'"(token|access_token|refresh_token|api_key|private_key|password|secret)"'
                r'\s*:\s*"[^"]*"',
                re.IGNORECASE,
            ),
            r'"\1": "[REDACTED]"',
        ),
        (re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE), "[REDACTED]"),
        (
            re.compile(r"\b(token|api_key|password|secret)=[^\s&,]+", re.IGNORECASE),
            r"\1=[REDACTED]",
        ),
        # long base64 blobs inside quotes
        (re.compile(r'"[A-Za-z0-9+/]{40,}={0,2}"'), '"[REDACTED_BASE64]"'),
    ]

    @classmethod
    def scrub(cls, text: str) -> str:
        """Redact credentials from a string.

        Args:
            text: Text that may contain credentials

        Returns:
            Text with credentials replaced by placeholders
        """
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        """Scrub the record in place and let it through.

        Args:
            record: Log record to scrub

        Returns:
            Always True
        """
        if isinstance(record.msg, str):
            record.msg = self.scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                self.scrub(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    enable_credential_scrubbing: bool = True,
) -> None:
    """Configure the root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path; logs go to stderr when omitted
        enable_credential_scrubbing: Attach CredentialScrubbingFilter to handlers
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Replace handlers from a previous call
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    if enable_credential_scrubbing:
        handler.addFilter(CredentialScrubbingFilter())

    root_logger.addHandler(handler)


def setup_logging_from_config() -> None:
    """Configure logging from the global Tether configuration."""
    from tether.config import get_config

    config = get_config()
    setup_logging(
        level=config.log_level,
        log_file=config.log_file,
        enable_credential_scrubbing=config.enable_credential_scrubbing,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name, usually __name__

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
