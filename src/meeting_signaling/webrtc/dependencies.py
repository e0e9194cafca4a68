"""
WebRTC Authentication Dependencies

Resolves the caller's identity and role for every room and signaling call.

Two credential sources are accepted, in order:
1. `Authorization: Bearer <jwt>` when SECRET_KEY is configured. The token is
   decoded with python-jose; identity comes from `sub` (or `user_id`) and the
   role from `role`.
2. `X-User-Id` / `X-User-Role` headers forwarded by the API gateway.

Meeting- and room-specific authorization is performed by the manager, not here.
"""

from typing import Callable, Optional

from fastapi import Depends, Request
from jose import JWTError, jwt

from meeting_signaling.config import settings
from meeting_signaling.managers.logging_manager import get_logger
from meeting_signaling.webrtc.errors import BadRequestError, UnauthenticatedError, UnauthorizedError
from meeting_signaling.webrtc.schemas import CurrentUser

logger = get_logger(prefix="[WebRTC-Auth]")

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"


def _bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _user_from_token(token: str) -> CurrentUser:
    secret_key = settings.SECRET_KEY.get_secret_value()
    try:
        payload = jwt.decode(token, secret_key, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise UnauthenticatedError("Invalid or expired token") from e

    user_id = payload.get("sub") or payload.get("user_id")
    role = payload.get("role")
    if not user_id or not role:
        raise UnauthenticatedError("Token does not carry an identity and role")
    return CurrentUser(user_id=str(user_id), role=str(role))


async def get_current_user(request: Request) -> CurrentUser:
    """
    Resolve the caller for a request.

    Returns:
        CurrentUser with user_id and role

    Raises:
        UnauthenticatedError: no usable credentials were presented
    """
    if settings.SECRET_KEY.get_secret_value():
        token = _bearer_token(request)
        if token:
            return _user_from_token(token)

    user_id = request.headers.get(USER_ID_HEADER)
    role = request.headers.get(USER_ROLE_HEADER)
    if not user_id or not role:
        logger.debug(
            "Request without resolvable identity",
            extra={"path": request.url.path, "client": request.client.host if request.client else None},
        )
        raise UnauthenticatedError()
    return CurrentUser(user_id=user_id, role=role)


def require_roles(*roles: str) -> Callable:
    """
    Dependency factory restricting an endpoint to the given roles.

    Usage:
        @router.get("/rooms", dependencies=[Depends(require_roles("admin"))])
    """
    allowed = set(roles)

    async def _check_role(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            logger.warning(
                f"User {current_user.user_id} with role {current_user.role} denied",
                extra={"user_id": current_user.user_id, "role": current_user.role, "allowed": sorted(allowed)},
            )
            raise UnauthorizedError("role_check", "Insufficient permissions")
        return current_user

    return _check_role


def validate_room_id(room_id: str) -> str:
    """Path parameter check for room ids."""
    room_id = room_id.strip()
    if not room_id:
        raise BadRequestError(missing=["roomId"])
    return room_id
