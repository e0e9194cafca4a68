"""
WebRTC Router

REST endpoints for video-meeting rooms and the polling-based signaling relay.
All routes require an authenticated caller; listing active rooms is admin-only.
"""

from fastapi import APIRouter, Depends, status

from meeting_signaling.config import settings
from meeting_signaling.managers.logging_manager import get_logger
from meeting_signaling.webrtc.connection_manager import WebRtcManager, get_webrtc_manager
from meeting_signaling.webrtc.dependencies import get_current_user, require_roles, validate_room_id
from meeting_signaling.webrtc.errors import InternalError, WebRtcError
from meeting_signaling.webrtc.schemas import (
    AckResponse,
    AnswerSignalRequest,
    CreateRoomRequest,
    CreateRoomResponse,
    CurrentUser,
    IceCandidateSignalRequest,
    IceServerConfig,
    JoinRoomResponse,
    MessagesResponse,
    OfferSignalRequest,
    RoomListResponse,
    WebRtcConfig,
)

logger = get_logger(prefix="[WebRTC-Router]")

router = APIRouter(prefix=settings.API_PREFIX, tags=["Video Meetings"])


def _unexpected(operation: str, error: Exception) -> InternalError:
    logger.error(f"Unexpected error in {operation}: {error}", extra={"operation": operation}, exc_info=True)
    return InternalError(operation, error)


@router.post("/rooms", response_model=CreateRoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    request: CreateRoomRequest,
    current_user: CurrentUser = Depends(get_current_user),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    """
    Create a meeting room for a scheduled meeting.

    The caller must be the meeting's teacher, parent or student. The meeting is
    marked confirmed and its link points at the new room.
    """
    try:
        room = await manager.create_room(request.meeting_id, request.name, current_user.user_id)
    except WebRtcError:
        raise
    except Exception as e:
        raise _unexpected("create_room", e) from e
    return CreateRoomResponse(message="Meeting room created", room=room)


@router.get("/join/{room_id}", response_model=JoinRoomResponse)
async def join_room(
    room_id: str = Depends(validate_room_id),
    current_user: CurrentUser = Depends(get_current_user),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    """Join a room; repeated joins by the same user are harmless."""
    try:
        room = await manager.join_room(room_id, current_user.user_id)
    except WebRtcError:
        raise
    except Exception as e:
        raise _unexpected("join_room", e) from e
    return JoinRoomResponse(message="Joined meeting room", room=room)


@router.post("/signal/offer", response_model=AckResponse)
async def send_offer(
    request: OfferSignalRequest,
    current_user: CurrentUser = Depends(get_current_user),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    try:
        await manager.send_offer(request.room_id, request.target_user_id, request.offer, current_user.user_id)
    except WebRtcError:
        raise
    except Exception as e:
        raise _unexpected("send_offer", e) from e
    return AckResponse(message="Offer sent")


@router.post("/signal/answer", response_model=AckResponse)
async def send_answer(
    request: AnswerSignalRequest,
    current_user: CurrentUser = Depends(get_current_user),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    try:
        await manager.send_answer(request.room_id, request.target_user_id, request.answer, current_user.user_id)
    except WebRtcError:
        raise
    except Exception as e:
        raise _unexpected("send_answer", e) from e
    return AckResponse(message="Answer sent")


@router.post("/signal/ice-candidate", response_model=AckResponse)
async def send_ice_candidate(
    request: IceCandidateSignalRequest,
    current_user: CurrentUser = Depends(get_current_user),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    try:
        await manager.send_ice_candidate(
            request.room_id, request.target_user_id, request.candidate, current_user.user_id
        )
    except WebRtcError:
        raise
    except Exception as e:
        raise _unexpected("send_ice_candidate", e) from e
    return AckResponse(message="ICE candidate sent")


@router.get("/signal/messages", response_model=MessagesResponse)
async def poll_messages(
    current_user: CurrentUser = Depends(get_current_user),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    """
    Drain the caller's pending signaling messages.

    Messages are returned oldest first and are never returned twice.
    """
    return MessagesResponse(messages=manager.poll_messages(current_user.user_id))


@router.post("/leave/{room_id}", response_model=AckResponse)
async def leave_room(
    room_id: str = Depends(validate_room_id),
    current_user: CurrentUser = Depends(get_current_user),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    """Leave a room. The last participant leaving closes the room and completes the meeting."""
    try:
        await manager.leave_room(room_id, current_user.user_id)
    except WebRtcError:
        raise
    except Exception as e:
        raise _unexpected("leave_room", e) from e
    return AckResponse(message="Left meeting room")


@router.post("/end/{room_id}", response_model=AckResponse)
async def end_room(
    room_id: str = Depends(validate_room_id),
    current_user: CurrentUser = Depends(get_current_user),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    """End a room for every participant. Restricted to the room creator and admins."""
    try:
        await manager.end_room(room_id, current_user.user_id, current_user.role)
    except WebRtcError:
        raise
    except Exception as e:
        raise _unexpected("end_room", e) from e
    return AckResponse(message="Meeting ended")


@router.get("/rooms", response_model=RoomListResponse)
async def list_active_rooms(
    current_user: CurrentUser = Depends(require_roles(settings.ADMIN_ROLE)),
    manager: WebRtcManager = Depends(get_webrtc_manager),
):
    """List every active room (admin only)."""
    return RoomListResponse(rooms=manager.list_active_rooms())


@router.get("/config", response_model=WebRtcConfig)
async def get_webrtc_config(current_user: CurrentUser = Depends(get_current_user)):
    """
    Get WebRTC configuration including STUN/TURN servers.

    Clients may call this before a room exists; room views carry the same list.
    """
    return WebRtcConfig(
        ice_servers=[IceServerConfig(**server) for server in settings.get_ice_servers()],
        ice_transport_policy=settings.WEBRTC_ICE_TRANSPORT_POLICY,
    )
