"""
WebRTC Connection Manager

Single coordinator for room lifecycle and signaling relay. It exclusively owns
the room registry, the user-to-room mapping and the mailbox store; callers only
ever receive pydantic views and wire dicts.

Every mutation of a room runs under that room's lock, including the Meeting
Store calls made on its behalf, so unrelated rooms proceed concurrently while
operations on the same room are serialized.
"""

import asyncio
import contextlib
import secrets
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from meeting_signaling.config import settings
from meeting_signaling.managers.logging_manager import get_logger
from meeting_signaling.webrtc.errors import (
    BadRequestError,
    InternalError,
    MeetingNotFoundError,
    RoomNotFoundError,
    TargetNotInRoomError,
    UnauthorizedError,
)
from meeting_signaling.webrtc.lifecycle import MeetingLifecycleBridge
from meeting_signaling.webrtc.mailbox import MailboxStore
from meeting_signaling.webrtc.rooms import Room, RoomRegistry
from meeting_signaling.webrtc.schemas import (
    PAYLOAD_SPECS,
    JoinedRoomView,
    MessageType,
    RoomSummary,
    RoomView,
    SignalingMessage,
)

logger = get_logger(prefix="[WebRTC-Manager]")


def _missing(**fields: Any) -> List[str]:
    return [name for name, value in fields.items() if value is None or value == ""]


class WebRtcManager:
    """
    In-process room and signaling coordinator.

    Provides methods for:
    - Creating, joining, leaving and ending rooms
    - Relaying offer/answer/ICE candidate messages into mailboxes
    - Draining a user's mailbox
    - Reaping rooms that have been idle for too long
    """

    def __init__(self, lifecycle: Optional[MeetingLifecycleBridge] = None):
        """Initialize the WebRTC manager."""
        self.lifecycle = lifecycle or MeetingLifecycleBridge()

        self._rooms = RoomRegistry()
        self._user_rooms: Dict[str, str] = {}
        self._mailboxes = MailboxStore()
        self._issued_room_ids: set[str] = set()

        logger.info("WebRTC manager initialized with in-process room registry")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_room_id(self, meeting_id: str) -> str:
        room_id = f"{meeting_id}-{int(time.time() * 1000)}"
        while room_id in self._issued_room_ids:
            room_id = f"{meeting_id}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"
        self._issued_room_ids.add(room_id)
        return room_id

    def _get_room(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    @staticmethod
    def _ensure_open(room: Room) -> None:
        # A waiter may acquire the lock of a room torn down while it waited
        if room.closed:
            raise RoomNotFoundError(room.id)

    def _close_room(self, room: Room, notify: bool) -> None:
        """Remove a room from every in-memory structure. Caller holds the room lock."""
        room.closed = True
        for user_id in list(room.participants):
            if notify:
                self._mailboxes.enqueue(user_id, SignalingMessage.create_meeting_ended(room.id))
            if self._user_rooms.get(user_id) == room.id:
                del self._user_rooms[user_id]
        self._rooms.remove(room.id)

    def _meeting_hosted_elsewhere(self, room: Room) -> bool:
        return any(
            other is not room and other.meeting_id == room.meeting_id and not other.closed for other in self._rooms
        )

    async def _complete_meeting(self, room: Room) -> None:
        """Mark the room's meeting completed unless another active room still hosts it."""
        if self._meeting_hosted_elsewhere(room):
            logger.info(
                f"Meeting {room.meeting_id} still has an active room; leaving its status as is",
                extra={"room_id": room.id, "meeting_id": room.meeting_id},
            )
            return
        await self.lifecycle.mark_completed(room.meeting_id)

    @staticmethod
    def meeting_link(room_id: str) -> str:
        return f"{settings.MEETING_LINK_PREFIX}/{room_id}"

    @staticmethod
    def join_url(room_id: str) -> str:
        return f"{settings.API_PREFIX}/join/{room_id}"

    # ------------------------------------------------------------------
    # Room lifecycle
    # ------------------------------------------------------------------

    async def create_room(self, meeting_id: Optional[str], name: Optional[str], caller_id: str) -> RoomView:
        """
        Create a room for a meeting and mark the meeting confirmed.

        Args:
            meeting_id: Meeting Store record the room belongs to
            name: Display label
            caller_id: Must be the meeting's teacher, parent or student

        Returns:
            Public view with the join URL and ICE servers

        Raises:
            BadRequestError, MeetingNotFoundError, UnauthorizedError, InternalError
        """
        missing = _missing(meetingId=meeting_id, name=name)
        if missing:
            raise BadRequestError(missing=missing)

        meeting = await self.lifecycle.get_meeting(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(meeting_id)
        if not meeting.is_participant(caller_id):
            raise UnauthorizedError("create_room", "Not authorized to create a room for this meeting")

        room = Room(
            room_id=self._new_room_id(meeting_id),
            name=name,
            meeting_id=meeting_id,
            created_by=caller_id,
            ice_servers=settings.get_ice_servers(),
        )
        self._rooms.add(room)

        async with room.lock:
            try:
                await self.lifecycle.mark_confirmed(meeting_id, self.meeting_link(room.id))
            except InternalError:
                self._close_room(room, notify=False)
                logger.error(
                    f"Rolled back room {room.id} after failing to confirm meeting {meeting_id}",
                    extra={"room_id": room.id, "meeting_id": meeting_id},
                )
                raise

        logger.info(
            f"Room {room.id} created for meeting {meeting_id} by {caller_id}",
            extra={"room_id": room.id, "meeting_id": meeting_id, "created_by": caller_id},
        )
        return room.to_created_view(self.join_url(room.id))

    async def join_room(self, room_id: Optional[str], caller_id: str) -> JoinedRoomView:
        """
        Add the caller to a room. Joining twice is a no-op; joining a different
        room first leaves the one the caller is currently mapped to.

        The target and the previous room are locked together, so the caller is
        never taken out of the previous room for a target that closed meanwhile.
        """
        if not room_id:
            raise BadRequestError(missing=["roomId"])

        room = self._get_room(room_id)
        meeting = await self.lifecycle.get_meeting(room.meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(room.meeting_id)
        if not meeting.is_participant(caller_id):
            raise UnauthorizedError("join_room", "Not authorized to join this meeting")

        previous: Optional[Room] = None
        previous_room_id = self._user_rooms.get(caller_id)
        if previous_room_id and previous_room_id != room.id:
            previous = self._rooms.get(previous_room_id)
            if previous is None:
                logger.debug(
                    f"Previous room {previous_room_id} of {caller_id} already gone",
                    extra={"room_id": previous_room_id, "user_id": caller_id},
                )

        async with contextlib.AsyncExitStack() as stack:
            # Locks are always taken in room id order
            for locked in sorted(filter(None, (room, previous)), key=lambda r: r.id):
                await stack.enter_async_context(locked.lock)

            self._ensure_open(room)
            if previous is not None and not previous.closed:
                await self._leave_locked(previous, caller_id)

            added = room.add_participant(caller_id)
            self._user_rooms[caller_id] = room.id
            room.touch()
            view = room.to_joined_view()

        if added:
            logger.info(
                f"User {caller_id} joined room {room_id}",
                extra={"room_id": room_id, "user_id": caller_id, "participant_count": len(view.participants)},
            )
        return view

    async def leave_room(self, room_id: Optional[str], caller_id: str) -> bool:
        """
        Remove the caller from a room, tearing the room down when it becomes empty.

        The caller's room mapping is cleared only if it still points at this
        room. A caller who already moved to another room keeps that mapping;
        this intentionally differs from clearing it unconditionally.

        Returns:
            True if the leave emptied and removed the room

        Raises:
            RoomNotFoundError: room absent (leaving is not a no-op)
            InternalError: the Meeting Store could not be marked completed; the
                room is removed regardless
        """
        if not room_id:
            raise BadRequestError(missing=["roomId"])

        room = self._get_room(room_id)
        async with room.lock:
            self._ensure_open(room)
            return await self._leave_locked(room, caller_id)

    async def _leave_locked(self, room: Room, caller_id: str) -> bool:
        room.remove_participant(caller_id)
        if self._user_rooms.get(caller_id) == room.id:
            del self._user_rooms[caller_id]
        room.touch()

        if room.participants:
            logger.info(
                f"User {caller_id} left room {room.id}",
                extra={"room_id": room.id, "user_id": caller_id, "participant_count": len(room.participants)},
            )
            return False

        try:
            await self._complete_meeting(room)
        finally:
            self._close_room(room, notify=False)
            logger.info(
                f"Room {room.id} closed after last participant left",
                extra={"room_id": room.id, "meeting_id": room.meeting_id},
            )
        return True

    async def end_room(self, room_id: Optional[str], caller_id: str, caller_role: Optional[str]) -> None:
        """
        End a room for everyone. Only the creator or an admin may do this.

        Every participant present at the moment of the call receives exactly one
        meeting-ended message.
        """
        if not room_id:
            raise BadRequestError(missing=["roomId"])

        room = self._get_room(room_id)
        async with room.lock:
            self._ensure_open(room)
            if caller_id != room.created_by and caller_role != settings.ADMIN_ROLE:
                raise UnauthorizedError("end_room", "Only the room creator or an admin can end the meeting")
            await self._end_locked(room)

        logger.info(
            f"Room {room_id} ended by {caller_id}",
            extra={"room_id": room_id, "meeting_id": room.meeting_id, "ended_by": caller_id},
        )

    async def _end_locked(self, room: Room) -> None:
        try:
            await self._complete_meeting(room)
        finally:
            self._close_room(room, notify=True)

    def list_active_rooms(self) -> List[RoomSummary]:
        return [room.to_summary() for room in self._rooms]

    def get_participants(self, room_id: str) -> List[str]:
        return list(self._get_room(room_id).participants)

    def get_user_room(self, user_id: str) -> Optional[str]:
        """Room the user is currently mapped to, if any."""
        return self._user_rooms.get(user_id)

    # ------------------------------------------------------------------
    # Signaling relay
    # ------------------------------------------------------------------

    async def send_signal(
        self,
        message_type: MessageType,
        room_id: Optional[str],
        target_user_id: Optional[str],
        payload: Any,
        sender_id: str,
    ) -> None:
        """
        Relay a signaling payload to a participant's mailbox.

        The sender's own membership is not checked; it is established by a
        prior join. The payload is only validated once the target is known to
        be in the room.
        """
        payload_key, _ = PAYLOAD_SPECS[message_type]
        missing = _missing(roomId=room_id, targetUserId=target_user_id, **{payload_key: payload})
        if missing:
            raise BadRequestError(missing=missing)

        room = self._get_room(room_id)
        async with room.lock:
            self._ensure_open(room)
            if not room.has_participant(target_user_id):
                raise TargetNotInRoomError(room_id, target_user_id)

            try:
                message = SignalingMessage.create_signal(message_type, sender_id, room_id, payload)
            except ValidationError as e:
                raise BadRequestError(f"Invalid {payload_key} payload") from e

            pending = self._mailboxes.enqueue(target_user_id, message)
            room.touch()

        logger.debug(
            f"Relayed {message_type.value} from {sender_id} to {target_user_id} in room {room_id}",
            extra={
                "room_id": room_id,
                "message_type": message_type.value,
                "sender_id": sender_id,
                "target_user_id": target_user_id,
                "pending": pending,
            },
        )

    async def send_offer(self, room_id: Optional[str], target_user_id: Optional[str], offer: Any, sender_id: str) -> None:
        await self.send_signal(MessageType.OFFER, room_id, target_user_id, offer, sender_id)

    async def send_answer(self, room_id: Optional[str], target_user_id: Optional[str], answer: Any, sender_id: str) -> None:
        await self.send_signal(MessageType.ANSWER, room_id, target_user_id, answer, sender_id)

    async def send_ice_candidate(
        self, room_id: Optional[str], target_user_id: Optional[str], candidate: Any, sender_id: str
    ) -> None:
        await self.send_signal(MessageType.ICE_CANDIDATE, room_id, target_user_id, candidate, sender_id)

    def poll_messages(self, user_id: str) -> List[Dict[str, Any]]:
        """Drain the caller's mailbox; each message is delivered at most once."""
        return [message.to_wire() for message in self._mailboxes.drain(user_id)]

    # ------------------------------------------------------------------
    # Idle room reaping
    # ------------------------------------------------------------------

    async def reap_idle_rooms(self, idle_timeout: float) -> List[str]:
        """
        End every room idle for longer than `idle_timeout` seconds.

        Reaped rooms are ended exactly like EndRoom, without the caller check.

        Returns:
            Ids of the rooms that were ended
        """
        reaped: List[str] = []
        for room in self._rooms:
            if room.idle_for() <= idle_timeout:
                continue
            async with room.lock:
                # Re-check under the lock; activity may have happened while waiting
                if room.closed or room.idle_for() <= idle_timeout:
                    continue
                try:
                    await self._end_locked(room)
                except InternalError as e:
                    logger.error(
                        f"Reaped room {room.id} but failed to mark meeting {room.meeting_id} completed: {e.details}",
                        extra={"room_id": room.id, "meeting_id": room.meeting_id},
                    )
                reaped.append(room.id)

            logger.info(
                f"Reaped idle room {room.id}",
                extra={"room_id": room.id, "meeting_id": room.meeting_id, "idle_timeout": idle_timeout},
            )
        return reaped

    async def run_idle_reaper(
        self, idle_timeout: Optional[float] = None, interval: Optional[float] = None
    ) -> None:
        """Background loop sweeping idle rooms until cancelled."""
        idle_timeout = idle_timeout if idle_timeout is not None else settings.WEBRTC_ROOM_IDLE_TIMEOUT_SECONDS
        interval = interval if interval is not None else settings.WEBRTC_ROOM_REAPER_INTERVAL_SECONDS
        logger.info(
            f"Idle room reaper started (timeout={idle_timeout}s, interval={interval}s)",
            extra={"idle_timeout": idle_timeout, "interval": interval},
        )
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    await self.reap_idle_rooms(idle_timeout)
                except Exception as e:
                    logger.error(f"Idle room sweep failed: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Idle room reaper stopped")
            raise


# Global WebRTC manager instance
webrtc_manager = WebRtcManager()


def get_webrtc_manager() -> WebRtcManager:
    """FastAPI dependency returning the process-wide manager."""
    return webrtc_manager
