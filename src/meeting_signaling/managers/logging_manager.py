"""
Centralized logging manager for the application.

Every module obtains its logger through `get_logger()`, optionally with a
prefix such as "[WebRTC-Manager]" that is prepended to each message.

Handlers:
- Console (stdout) StreamHandler, always.
- FileHandler when `LOG_FILE` is configured.
- LokiLoggerHandler when `LOKI_URL` is configured. Logs emitted while Loki is
  unreachable are not resent; rely on the console/file handlers or a log
  shipper for delivery guarantees.

Usage:
    logger = get_logger(prefix="[WebRTC-Router]")
    logger.info("Room %s created", room_id, extra={"room_id": room_id})
"""

import logging
import os
import sys

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler

from meeting_signaling.config import settings

LOG_LEVEL: str = os.getenv("LOG_LEVEL", settings.LOG_LEVEL).upper()
LOKI_TAGS: dict[str, str] = {
    "app": settings.APP_NAME,
    "env": settings.ENV,
}
LOG_FORMAT: str = "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"


class PrefixFilter(logging.Filter):
    """Prepend a fixed prefix to every record passing through a logger."""

    def __init__(self, prefix: str):
        super().__init__()
        self.prefix = prefix

    def filter(self, record: logging.LogRecord) -> bool:
        if self.prefix and not getattr(record, "_prefix_applied", False):
            record.msg = f"{self.prefix} {record.msg}"
            record._prefix_applied = True
        return True


def _ensure_console_handler(logger: logging.Logger, formatter: logging.Formatter) -> bool:
    """
    Ensure logger has a StreamHandler for console output.

    Returns:
        bool: True if a new StreamHandler was added, False if one already existed
    """
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stdout:
            return False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logger.level)
    logger.addHandler(console_handler)
    return True


def _ensure_file_handler(logger: logging.Logger, formatter: logging.Formatter, log_file: str) -> None:
    log_path = os.path.abspath(log_file)
    if any(
        isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == log_path for h in logger.handlers
    ):
        return
    directory = os.path.dirname(log_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def _ensure_loki_handler(logger: logging.Logger, loki_url: str) -> None:
    if any(isinstance(h, LokiLoggerHandler) for h in logger.handlers):
        return
    try:
        loki_handler = LokiLoggerHandler(url=loki_url, labels=LOKI_TAGS, compressed=True)
        logger.addHandler(loki_handler)
        logger.info("[LoggingManager] LokiLoggerHandler attached (url=%s, labels=%s)", loki_url, LOKI_TAGS)
    except (ValueError, OSError) as e:
        logger.error("[LoggingManager] Failed to attach LokiLoggerHandler: %s", e, exc_info=True)


def get_logger(name: str = "MeetingSignaling", prefix: str = "") -> logging.Logger:
    """
    Return a configured logger.

    Loggers are keyed by name and prefix so that prefixed loggers for
    different components do not share filters.
    """
    logger_name = f"{name}.{prefix.strip('[]')}" if prefix else name
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT)
    _ensure_console_handler(logger, formatter)

    if settings.LOG_FILE:
        _ensure_file_handler(logger, formatter, settings.LOG_FILE)

    if settings.LOKI_URL:
        _ensure_loki_handler(logger, settings.LOKI_URL)

    if prefix and not any(isinstance(f, PrefixFilter) for f in logger.filters):
        logger.addFilter(PrefixFilter(prefix))

    return logger
