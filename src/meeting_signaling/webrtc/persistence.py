"""
WebRTC MongoDB Persistence

Meeting Store adapter. Meetings are owned by the scheduling side of the
platform; this service only reads them and writes back `status`,
`meeting_link` and `updated_at`.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import BaseModel, Field

from meeting_signaling.config import settings
from meeting_signaling.database import db_manager
from meeting_signaling.managers.logging_manager import get_logger

logger = get_logger(prefix="[WebRTC-Persistence]")


class MeetingStatus(str, Enum):
    """Meeting status as stored on the record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Meeting(BaseModel):
    """Meeting document from the Meeting Store."""

    id: str = Field(..., description="Meeting identifier (string form of _id)")
    teacher_id: Optional[str] = Field(None, description="Teacher participant")
    parent_id: Optional[str] = Field(None, description="Parent participant")
    student_id: Optional[str] = Field(None, description="Student participant")
    status: MeetingStatus = Field(MeetingStatus.PENDING, description="Meeting status")
    meeting_link: Optional[str] = Field(None, description="Link to the live room")
    updated_at: Optional[datetime] = Field(None, description="Last status change")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Meeting":
        def _str(value: Any) -> Optional[str]:
            return str(value) if value is not None else None

        return cls(
            id=str(document["_id"]),
            teacher_id=_str(document.get("teacher_id")),
            parent_id=_str(document.get("parent_id")),
            student_id=_str(document.get("student_id")),
            status=document.get("status", MeetingStatus.PENDING),
            meeting_link=document.get("meeting_link"),
            updated_at=document.get("updated_at"),
        )

    def to_update(self) -> Dict[str, Any]:
        """Fields this service is allowed to write back."""
        return {
            "status": self.status.value,
            "meeting_link": self.meeting_link,
            "updated_at": self.updated_at,
        }

    def is_participant(self, user_id: str) -> bool:
        """True when the user is the meeting's teacher, parent or student."""
        return user_id in (self.teacher_id, self.parent_id, self.student_id)


def _id_filter(meeting_id: str) -> Dict[str, Any]:
    if ObjectId.is_valid(meeting_id):
        return {"_id": ObjectId(meeting_id)}
    return {"_id": meeting_id}


class MeetingStore:
    """Reads and writes meeting records in MongoDB."""

    def __init__(self, collection_getter: Optional[Callable[[], AsyncIOMotorCollection]] = None):
        self._collection_getter = collection_getter or (
            lambda: db_manager.get_collection(settings.MEETINGS_COLLECTION)
        )

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection_getter()

    async def find_by_id(self, meeting_id: str) -> Optional[Meeting]:
        """
        Load a meeting by id.

        Args:
            meeting_id: Hex ObjectId or plain string id

        Returns:
            The meeting, or None if no record exists
        """
        document = await self.collection.find_one(_id_filter(meeting_id))
        if document is None:
            return None
        return Meeting.from_document(document)

    async def save(self, meeting: Meeting) -> None:
        """Persist the writable fields of a meeting."""
        meeting.updated_at = datetime.now(timezone.utc)
        await self.collection.update_one(_id_filter(meeting.id), {"$set": meeting.to_update()})
        logger.debug(
            f"Saved meeting {meeting.id} with status {meeting.status.value}",
            extra={"meeting_id": meeting.id, "status": meeting.status.value},
        )
