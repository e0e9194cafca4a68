"""
WebRTC Module

Video-meeting rooms and a polling-based signaling relay backed by in-process
state, with meeting status kept in sync through the Meeting Store.
"""

from meeting_signaling.webrtc.connection_manager import WebRtcManager, get_webrtc_manager, webrtc_manager
from meeting_signaling.webrtc.router import router
from meeting_signaling.webrtc.schemas import IceServerConfig, MessageType, SignalingMessage, WebRtcConfig

__all__ = [
    "router",
    "SignalingMessage",
    "WebRtcConfig",
    "IceServerConfig",
    "MessageType",
    "WebRtcManager",
    "get_webrtc_manager",
    "webrtc_manager",
]
