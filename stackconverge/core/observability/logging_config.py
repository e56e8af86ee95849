"""
Logging configuration for the CLI entrypoint.

main.py calls setup_logging() once, before the configuration is loaded,
and register_secret() once the database password is known. Every module
that does ``logger = logging.getLogger(__name__)`` inherits this setup.

Level precedence:
    CLI flag  >  STACKCONVERGE_LOG_LEVEL  >  WARNING

A log file is added when STACKCONVERGE_LOG_FILE is set; its level comes
from STACKCONVERGE_LOG_FILE_LEVEL and falls back to the console level.

MySQL echoes the offending statement back in its error output, and that
output travels into receipts and log lines. Every handler installed here
carries a SecretRedactor that masks registered secrets before anything
is written.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LOG_LEVEL = "STACKCONVERGE_LOG_LEVEL"
ENV_LOG_FILE = "STACKCONVERGE_LOG_FILE"
ENV_LOG_FILE_LEVEL = "STACKCONVERGE_LOG_FILE_LEVEL"

MASK = "********"

# Console format by threshold, most verbose first.
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Library loggers muted below DEBUG.
_NOISY_LOGGERS = ("urllib3", "yaml")


class SecretRedactor(logging.Filter):
    """Replace every registered secret in a record's rendered message."""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: set[str] = set()

    def add(self, secret: str | None) -> None:
        if secret:
            self._secrets.add(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self._secrets:
            redacted = redacted.replace(secret, MASK)
        if redacted != message:
            record.msg, record.args = redacted, None
        return True


_redactor = SecretRedactor()


def register_secret(secret: str | None) -> None:
    """Mask ``secret`` in every log line written from now on."""
    _redactor.add(secret)


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Install console (and optional file) handlers on the root logger.

    Args:
        level: Console level name. None falls back to the environment.
        log_file: Log file path. None falls back to the environment.
        log_file_level: File level name; defaults to the console level.
        quiet_third_party: Hold library loggers at WARNING unless
            the console runs at DEBUG.
    """
    console_level = _parse_level(level or os.environ.get(ENV_LOG_LEVEL))
    log_file = log_file or os.environ.get(ENV_LOG_FILE)
    log_file_level = log_file_level or os.environ.get(ENV_LOG_FILE_LEVEL)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_file_handler(log_file, file_level))
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _CONSOLE_DEFAULT, None
    for threshold, candidate, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            fmt, datefmt = candidate, candidate_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.addFilter(_redactor)
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    handler.addFilter(_redactor)
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; unknown names mean WARNING."""
    numeric = getattr(logging, (level or "WARNING").upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
