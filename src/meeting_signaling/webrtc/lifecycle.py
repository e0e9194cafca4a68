"""
Meeting Lifecycle Bridge

Translates room events into Meeting Store status changes:
room created -> confirmed (with the room link), room emptied or ended -> completed.
"""

from typing import Optional

from meeting_signaling.managers.logging_manager import get_logger
from meeting_signaling.webrtc.errors import InternalError
from meeting_signaling.webrtc.persistence import Meeting, MeetingStatus, MeetingStore

logger = get_logger(prefix="[WebRTC-Lifecycle]")


class MeetingLifecycleBridge:
    """Wraps the Meeting Store; any store failure surfaces as InternalError."""

    def __init__(self, store: Optional[MeetingStore] = None):
        self.store = store or MeetingStore()

    async def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        try:
            return await self.store.find_by_id(meeting_id)
        except Exception as e:
            logger.error(
                f"Failed to load meeting {meeting_id}: {e}",
                extra={"meeting_id": meeting_id, "error": str(e)},
                exc_info=True,
            )
            raise InternalError("get_meeting", e) from e

    async def mark_confirmed(self, meeting_id: str, meeting_link: str) -> None:
        """
        Set the meeting to confirmed and record the room link.

        A meeting that disappeared since it was checked is logged and skipped.
        """
        await self._transition(meeting_id, MeetingStatus.CONFIRMED, meeting_link=meeting_link)

    async def mark_completed(self, meeting_id: str) -> None:
        """Set the meeting to completed; the stored link is left as is."""
        await self._transition(meeting_id, MeetingStatus.COMPLETED)

    async def _transition(self, meeting_id: str, status: MeetingStatus, meeting_link: Optional[str] = None) -> None:
        operation = f"mark_{status.value}"
        try:
            meeting = await self.store.find_by_id(meeting_id)
            if meeting is None:
                logger.warning(
                    f"Meeting {meeting_id} not found while marking it {status.value}",
                    extra={"meeting_id": meeting_id, "status": status.value},
                )
                return

            meeting.status = status
            if meeting_link is not None:
                meeting.meeting_link = meeting_link
            await self.store.save(meeting)
        except Exception as e:
            logger.error(
                f"Failed to mark meeting {meeting_id} {status.value}: {e}",
                extra={"meeting_id": meeting_id, "status": status.value, "error": str(e)},
                exc_info=True,
            )
            raise InternalError(operation, e) from e

        logger.info(
            f"Meeting {meeting_id} marked {status.value}",
            extra={"meeting_id": meeting_id, "status": status.value},
        )
