"""Logging utilities for request tracing and application lifecycle events."""

from datetime import datetime, timezone
import os
import time
import traceback
from typing import Any, Callable, Dict, Optional
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from meeting_signaling.managers.logging_manager import get_logger

SENSITIVE_KEYS = {"password", "token", "secret", "key", "auth", "credential", "sdp"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request/response logging middleware.

    Logs every request and response with timing and status code. Request
    bodies are never logged; they carry SDP and ICE data.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = get_logger(name="MeetingSignaling_Requests", prefix="[REQUEST]")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        client_ip = self._get_client_ip(request)
        method = request.method
        path = str(request.url.path)

        self.logger.info(
            {
                "event": "request_received",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "request_id": request_id,
                "method": method,
                "path": path,
                "client_ip": client_ip,
                "user_id": request.headers.get("x-user-id"),
                "process": os.getpid(),
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                {
                    "event": "request_error",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "duration": time.time() - start_time,
                    "exception": str(e),
                    "stack_trace": traceback.format_exc(),
                }
            )
            raise

        duration = time.time() - start_time
        response_log = {
            "event": "response_sent",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration": duration,
            "client_ip": client_ip,
        }
        self.logger.info(response_log)

        if duration > 1.0:
            self.logger.warning({**response_log, "event": "slow_request"})

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP address from request headers."""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return getattr(request.client, "host", "unknown")


def log_application_lifecycle(event: str, details: Optional[Dict[str, Any]] = None):
    """
    Log application lifecycle events (startup, shutdown, etc.).

    Args:
        event: Lifecycle event name
        details: Additional event details
    """
    logger = get_logger(name="MeetingSignaling_Lifecycle", prefix="[LIFECYCLE]")

    event_data = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat()}
    if details:
        event_data.update(details)

    logger.info("APPLICATION LIFECYCLE: %s - %s", event, event_data)


def log_error_with_context(error: Exception, context: Optional[Dict[str, Any]] = None, operation: Optional[str] = None):
    """
    Log errors with full context and stack trace.

    Args:
        error: The exception that occurred
        context: Additional context information
        operation: Name of the operation that failed
    """
    logger = get_logger(name="MeetingSignaling_Errors", prefix="[ERROR]")

    error_data = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "stack_trace": traceback.format_exc(),
    }
    if operation:
        error_data["operation"] = operation
    if context:
        error_data["context"] = _sanitize(context)

    logger.error("ERROR OCCURRED: %s", error_data)


def _sanitize(values: Dict[str, Any]) -> Dict[str, Any]:
    """Redact sensitive keys and truncate long values."""
    sanitized = {}
    for key, value in values.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "<REDACTED>"
        else:
            str_value = str(value)
            sanitized[key] = str_value[:100] + ("..." if len(str_value) > 100 else "")
    return sanitized
