"""
Meeting Signaling

WebRTC signaling relay and room lifecycle service for scheduled
teacher/parent/student video meetings.
"""

__version__ = "1.0.0"
