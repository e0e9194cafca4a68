"""
WebRTC Room Registry

In-process registry of active rooms. Each room carries its own asyncio lock,
held by the manager across every mutation of that room including the Meeting
Store calls made on its behalf, and a `closed` flag set once it is torn down.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from meeting_signaling.webrtc.schemas import IceServerConfig, JoinedRoomView, RoomSummary, RoomView


class Room:
    """A live meeting room. Only `WebRtcManager` mutates it."""

    def __init__(
        self,
        room_id: str,
        name: str,
        meeting_id: str,
        created_by: str,
        ice_servers: List[Dict[str, Any]],
    ):
        self.id = room_id
        self.name = name
        self.meeting_id = meeting_id
        self.created_by = created_by
        self.ice_servers = ice_servers
        self.participants: List[str] = []
        self.created_at = datetime.now(timezone.utc)
        self.last_activity_at = time.monotonic()
        self.closed = False
        self.lock = asyncio.Lock()

    def add_participant(self, user_id: str) -> bool:
        """Add a participant; returns False if already present."""
        if user_id in self.participants:
            return False
        self.participants.append(user_id)
        return True

    def remove_participant(self, user_id: str) -> bool:
        """Remove a participant; returns False if absent."""
        if user_id not in self.participants:
            return False
        self.participants.remove(user_id)
        return True

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def touch(self) -> None:
        self.last_activity_at = time.monotonic()

    def idle_for(self, now: Optional[float] = None) -> float:
        """Seconds since the last create/join/leave/signal on this room."""
        return (now if now is not None else time.monotonic()) - self.last_activity_at

    def _ice_server_models(self) -> List[IceServerConfig]:
        return [IceServerConfig(**server) for server in self.ice_servers]

    def to_created_view(self, join_url: str) -> RoomView:
        return RoomView(
            id=self.id,
            name=self.name,
            meeting_id=self.meeting_id,
            join_url=join_url,
            ice_servers=self._ice_server_models(),
        )

    def to_joined_view(self) -> JoinedRoomView:
        return JoinedRoomView(
            id=self.id,
            name=self.name,
            meeting_id=self.meeting_id,
            participants=list(self.participants),
            ice_servers=self._ice_server_models(),
        )

    def to_summary(self) -> RoomSummary:
        return RoomSummary(
            id=self.id,
            name=self.name,
            meeting_id=self.meeting_id,
            participant_count=len(self.participants),
            created_at=self.created_at,
        )


class RoomRegistry:
    """Map of room id to active Room."""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def add(self, room: Room) -> None:
        if room.id in self._rooms:
            raise ValueError(f"Room {room.id} already registered")
        self._rooms[room.id] = room

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def remove(self, room_id: str) -> Optional[Room]:
        return self._rooms.pop(room_id, None)

    def list(self) -> List[Room]:
        return list(self._rooms.values())

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __len__(self) -> int:
        return len(self._rooms)
