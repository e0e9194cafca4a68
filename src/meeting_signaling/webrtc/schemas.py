"""
WebRTC Signaling Schemas

Pydantic models for the signaling protocol (typed offer/answer/ICE payloads),
the HTTP request bodies and the public room views. Wire names are camelCase.
"""

import copy
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageType(str, Enum):
    """Signaling message types delivered through mailboxes."""

    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    MEETING_ENDED = "meeting-ended"


# ============================================================================
# Signaling payloads (tagged by MessageType)
# ============================================================================


class SdpPayload(BaseModel):
    """Session Description Protocol payload; extra client fields are kept verbatim."""

    model_config = ConfigDict(extra="allow")

    sdp: str = Field(..., description="SDP string containing session information")
    type: Optional[str] = Field(None, description="SDP type as reported by the browser")


class OfferPayload(SdpPayload):
    """RTCSessionDescription of type 'offer'."""


class AnswerPayload(SdpPayload):
    """RTCSessionDescription of type 'answer'."""


class IceCandidatePayload(BaseModel):
    """ICE candidate payload for network negotiation."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    candidate: str = Field(..., description="ICE candidate string")
    sdp_mid: Optional[str] = Field(None, alias="sdpMid", description="Media stream ID")
    sdp_m_line_index: Optional[int] = Field(None, alias="sdpMLineIndex", description="Media line index")
    username_fragment: Optional[str] = Field(None, alias="usernameFragment", description="ICE ufrag")


SignalingPayload = Union[OfferPayload, AnswerPayload, IceCandidatePayload]

# Message type -> (wire key of the payload, payload model)
PAYLOAD_SPECS: Dict[MessageType, tuple[str, type[BaseModel]]] = {
    MessageType.OFFER: ("offer", OfferPayload),
    MessageType.ANSWER: ("answer", AnswerPayload),
    MessageType.ICE_CANDIDATE: ("candidate", IceCandidatePayload),
}


class SignalingMessage(BaseModel):
    """A message waiting in a recipient's mailbox."""

    type: MessageType = Field(..., description="Type of the message")
    room_id: str = Field(..., description="Room the message pertains to")
    sender_id: Optional[str] = Field(None, description="Sender identity; absent for server-originated messages")
    payload: Optional[SignalingPayload] = Field(None, description="Typed signaling payload")
    raw_payload: Optional[Dict[str, Any]] = Field(
        None, exclude=True, description="Payload exactly as the sender submitted it; this is what is relayed"
    )

    @classmethod
    def create_signal(cls, message_type: MessageType, sender_id: str, room_id: str, raw_payload: Any) -> "SignalingMessage":
        """
        Build an offer/answer/ice-candidate message.

        The payload must validate against the model for its type, but the
        recipient gets the submitted object unchanged: no coercion, no dropped
        nulls.
        """
        _, payload_model = PAYLOAD_SPECS[message_type]
        payload = payload_model.model_validate(raw_payload)
        return cls(
            type=message_type,
            sender_id=sender_id,
            room_id=room_id,
            payload=payload,
            raw_payload=copy.deepcopy(raw_payload),
        )

    @classmethod
    def create_meeting_ended(cls, room_id: str) -> "SignalingMessage":
        return cls(type=MessageType.MEETING_ENDED, room_id=room_id)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize as delivered to clients: {type, from?, <payload key>?, roomId}."""
        wire: Dict[str, Any] = {"type": self.type.value}
        if self.sender_id is not None:
            wire["from"] = self.sender_id
        if self.payload is not None:
            key, _ = PAYLOAD_SPECS[self.type]
            wire[key] = copy.deepcopy(self.raw_payload)
        wire["roomId"] = self.room_id
        return wire


# ============================================================================
# Identity
# ============================================================================


class CurrentUser(BaseModel):
    """Caller identity resolved by the access control gate."""

    user_id: str
    role: str


# ============================================================================
# Request bodies
# ============================================================================


class CreateRoomRequest(CamelModel):
    """Body of the create-room call; fields are checked by the manager so that gaps surface as 400."""

    meeting_id: Optional[str] = Field(None, description="Meeting Store record id")
    name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("name", "roomName"),
        description="Display label for the room",
    )


class SignalRequest(CamelModel):
    room_id: Optional[str] = Field(None, description="Room the signal belongs to")
    target_user_id: Optional[str] = Field(None, description="Recipient identity")


class OfferSignalRequest(SignalRequest):
    offer: Optional[Any] = Field(None, description="RTCSessionDescription (offer)")


class AnswerSignalRequest(SignalRequest):
    answer: Optional[Any] = Field(None, description="RTCSessionDescription (answer)")


class IceCandidateSignalRequest(SignalRequest):
    candidate: Optional[Any] = Field(None, description="RTCIceCandidate")


# ============================================================================
# Views and responses
# ============================================================================


class IceServerConfig(BaseModel):
    """ICE server configuration for STUN/TURN."""

    urls: list[str] = Field(..., description="List of server URLs")
    username: Optional[str] = Field(None, description="Username for TURN authentication")
    credential: Optional[str] = Field(None, description="Credential for TURN authentication")


class WebRtcConfig(CamelModel):
    """WebRTC configuration response."""

    ice_servers: list[IceServerConfig] = Field(..., description="List of ICE servers (STUN/TURN)")
    ice_transport_policy: str = Field(default="all", description="ICE transport policy: 'all' or 'relay'")


class RoomView(CamelModel):
    """Public view returned by room creation."""

    id: str
    name: str
    meeting_id: str
    join_url: str
    ice_servers: list[IceServerConfig]


class JoinedRoomView(CamelModel):
    """Public view returned by joining a room."""

    id: str
    name: str
    meeting_id: str
    participants: list[str]
    ice_servers: list[IceServerConfig]


class RoomSummary(CamelModel):
    """Operator-facing summary of an active room."""

    id: str
    name: str
    meeting_id: str
    participant_count: int
    created_at: datetime


class CreateRoomResponse(CamelModel):
    message: str
    room: RoomView


class JoinRoomResponse(CamelModel):
    message: str
    room: JoinedRoomView


class AckResponse(CamelModel):
    message: str


class MessagesResponse(CamelModel):
    messages: list[Dict[str, Any]]


class RoomListResponse(CamelModel):
    rooms: list[RoomSummary]
