"""
WebRTC Error Handling

Error codes and structured error responses for room and signaling operations.
Every error carries a machine-readable code, a short message and the HTTP
status it is surfaced with.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class WebRtcErrorCode(str, Enum):
    """Standard error codes for WebRTC operations."""

    # Input (400)
    BAD_REQUEST = "bad_request"
    VALIDATION_ERROR = "validation_error"

    # Authentication & Authorization (401, 403)
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"

    # Missing resources (404)
    ROOM_NOT_FOUND = "room_not_found"
    MEETING_NOT_FOUND = "meeting_not_found"
    USER_NOT_IN_ROOM = "user_not_in_room"

    # General (500)
    INTERNAL_ERROR = "internal_error"


class WebRtcErrorResponse(BaseModel):
    """Structured error response for WebRTC operations."""

    error_code: WebRtcErrorCode = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_code": "user_not_in_room",
                "message": "Target user is not in the meeting",
                "details": {"room_id": "665f1c2ab1e4-1718000000000", "target_user_id": "parent-1"},
            }
        }
    )


class WebRtcError(Exception):
    """Base exception for WebRTC errors."""

    def __init__(
        self,
        error_code: WebRtcErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.status_code = status_code if status_code is not None else get_error_status_code(error_code)
        super().__init__(message)

    def to_response(self) -> WebRtcErrorResponse:
        """Convert exception to error response model."""
        return WebRtcErrorResponse(
            error_code=self.error_code,
            message=self.message,
            details=self.details or None,
        )

    def to_dict(self) -> dict:
        """Convert exception to dictionary."""
        return self.to_response().model_dump(mode="json", exclude_none=True)


# Specific error classes for common scenarios


class BadRequestError(WebRtcError):
    """Missing or malformed input."""

    def __init__(self, message: str = "Missing required parameters", missing: Optional[list[str]] = None):
        details = {"missing": missing} if missing else None
        super().__init__(error_code=WebRtcErrorCode.BAD_REQUEST, message=message, details=details)


class UnauthenticatedError(WebRtcError):
    """No resolvable caller identity."""

    def __init__(self, reason: str = "Not authenticated"):
        super().__init__(error_code=WebRtcErrorCode.UNAUTHENTICATED, message=reason)


class UnauthorizedError(WebRtcError):
    """Identity resolved but lacks the permission for this action."""

    def __init__(self, action: str, message: Optional[str] = None):
        super().__init__(
            error_code=WebRtcErrorCode.UNAUTHORIZED,
            message=message or f"Permission denied: {action}",
            details={"action": action},
        )


class RoomNotFoundError(WebRtcError):
    """Room not found error."""

    def __init__(self, room_id: str):
        super().__init__(
            error_code=WebRtcErrorCode.ROOM_NOT_FOUND,
            message="Meeting room does not exist or has ended",
            details={"room_id": room_id},
        )


class MeetingNotFoundError(WebRtcError):
    """Meeting record not found in the Meeting Store."""

    def __init__(self, meeting_id: str):
        super().__init__(
            error_code=WebRtcErrorCode.MEETING_NOT_FOUND,
            message="Meeting does not exist",
            details={"meeting_id": meeting_id},
        )


class TargetNotInRoomError(WebRtcError):
    """Signaling target is not a participant of the room."""

    def __init__(self, room_id: str, target_user_id: str):
        super().__init__(
            error_code=WebRtcErrorCode.USER_NOT_IN_ROOM,
            message="Target user is not in the meeting",
            details={"room_id": room_id, "target_user_id": target_user_id},
        )


class InternalError(WebRtcError):
    """Collaborator/persistence failure; keeps the underlying message, never a traceback."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        details: Dict[str, Any] = {"operation": operation}
        if cause is not None:
            details["reason"] = str(cause) or type(cause).__name__
        super().__init__(
            error_code=WebRtcErrorCode.INTERNAL_ERROR,
            message=f"Internal error during {operation}",
            details=details,
        )


# HTTP status code mapping
ERROR_STATUS_CODES = {
    WebRtcErrorCode.BAD_REQUEST: 400,
    WebRtcErrorCode.VALIDATION_ERROR: 400,
    WebRtcErrorCode.UNAUTHENTICATED: 401,
    WebRtcErrorCode.UNAUTHORIZED: 403,
    WebRtcErrorCode.ROOM_NOT_FOUND: 404,
    WebRtcErrorCode.MEETING_NOT_FOUND: 404,
    WebRtcErrorCode.USER_NOT_IN_ROOM: 404,
    WebRtcErrorCode.INTERNAL_ERROR: 500,
}


def get_error_status_code(error_code: WebRtcErrorCode) -> int:
    """Get HTTP status code for an error code."""
    return ERROR_STATUS_CODES.get(error_code, 500)
