"""
WebRTC Mailbox Store

Per-recipient FIFO queues of pending signaling messages. Mailboxes are created
lazily on first enqueue, are unbounded and are never persisted.
"""

from collections import deque
from typing import Deque, Dict, List

from meeting_signaling.managers.logging_manager import get_logger
from meeting_signaling.webrtc.schemas import SignalingMessage

logger = get_logger(prefix="[WebRTC-Mailbox]")


class MailboxStore:
    """In-process mailboxes keyed by recipient user id."""

    def __init__(self):
        self._mailboxes: Dict[str, Deque[SignalingMessage]] = {}

    def enqueue(self, recipient_id: str, message: SignalingMessage) -> int:
        """
        Append a message to the recipient's mailbox.

        Args:
            recipient_id: User the message is addressed to
            message: The signaling message

        Returns:
            Number of messages now pending for the recipient
        """
        mailbox = self._mailboxes.setdefault(recipient_id, deque())
        mailbox.append(message)

        logger.debug(
            f"Queued {message.type.value} for {recipient_id}",
            extra={"recipient_id": recipient_id, "room_id": message.room_id, "pending": len(mailbox)},
        )
        return len(mailbox)

    def drain(self, recipient_id: str) -> List[SignalingMessage]:
        """
        Return and remove every pending message for the recipient, oldest first.

        The mailbox is swapped out in one step with no await in between, so a
        message enqueued concurrently lands either in this batch or the next.
        """
        mailbox = self._mailboxes.pop(recipient_id, None)
        if not mailbox:
            return []
        return list(mailbox)

    def pending_count(self, recipient_id: str) -> int:
        mailbox = self._mailboxes.get(recipient_id)
        return len(mailbox) if mailbox else 0
