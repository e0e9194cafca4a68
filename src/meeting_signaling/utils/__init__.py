"""Utility modules for the meeting signaling service."""

from .logging_utils import RequestLoggingMiddleware, log_application_lifecycle, log_error_with_context

__all__ = [
    "RequestLoggingMiddleware",
    "log_application_lifecycle",
    "log_error_with_context",
]
