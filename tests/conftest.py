"""
Pytest configuration for the meeting signaling tests.

Provides an in-memory Meeting Store, a fresh WebRtcManager per test and a
TestClient wired to that manager through dependency overrides.
"""

import asyncio
import os
import sys
from typing import Dict, List, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from fastapi.testclient import TestClient  # noqa: E402

from meeting_signaling.main import app  # noqa: E402
from meeting_signaling.webrtc.connection_manager import WebRtcManager, get_webrtc_manager  # noqa: E402
from meeting_signaling.webrtc.lifecycle import MeetingLifecycleBridge  # noqa: E402
from meeting_signaling.webrtc.persistence import Meeting, MeetingStatus  # noqa: E402

TEACHER = "teacher-1"
PARENT = "parent-1"
STUDENT = "student-1"
OUTSIDER = "outsider-1"
ADMIN = "admin-1"
MEETING_ID = "meeting-1"


class FakeMeetingStore:
    """In-memory stand-in for MeetingStore with the same find_by_id/save contract."""

    def __init__(self):
        self.meetings: Dict[str, Meeting] = {}
        self.saved: List[Meeting] = []
        self.save_error: Optional[Exception] = None
        self.find_error: Optional[Exception] = None
        self.save_delay: float = 0.0

    def add(self, meeting: Meeting) -> Meeting:
        self.meetings[meeting.id] = meeting.model_copy()
        return meeting

    async def find_by_id(self, meeting_id: str) -> Optional[Meeting]:
        if self.find_error is not None:
            raise self.find_error
        meeting = self.meetings.get(meeting_id)
        return meeting.model_copy() if meeting is not None else None

    async def save(self, meeting: Meeting) -> None:
        if self.save_delay:
            await asyncio.sleep(self.save_delay)
        if self.save_error is not None:
            raise self.save_error
        self.meetings[meeting.id] = meeting.model_copy()
        self.saved.append(meeting.model_copy())

    def status_of(self, meeting_id: str) -> MeetingStatus:
        return self.meetings[meeting_id].status

    def saves_with_status(self, status: MeetingStatus) -> int:
        return sum(1 for meeting in self.saved if meeting.status == status)


def make_meeting(meeting_id: str = MEETING_ID, **overrides) -> Meeting:
    fields = {
        "id": meeting_id,
        "teacher_id": TEACHER,
        "parent_id": PARENT,
        "student_id": STUDENT,
        "status": MeetingStatus.PENDING,
    }
    fields.update(overrides)
    return Meeting(**fields)


def auth_headers(user_id: str, role: str) -> Dict[str, str]:
    return {"X-User-Id": user_id, "X-User-Role": role}


@pytest.fixture
def meeting_store():
    store = FakeMeetingStore()
    store.add(make_meeting())
    return store


@pytest.fixture
def lifecycle(meeting_store):
    return MeetingLifecycleBridge(store=meeting_store)


@pytest.fixture
def manager(lifecycle):
    return WebRtcManager(lifecycle=lifecycle)


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_webrtc_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def teacher_headers():
    return auth_headers(TEACHER, "teacher")


@pytest.fixture
def parent_headers():
    return auth_headers(PARENT, "parent")


@pytest.fixture
def student_headers():
    return auth_headers(STUDENT, "student")


@pytest.fixture
def outsider_headers():
    return auth_headers(OUTSIDER, "parent")


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN, "admin")
