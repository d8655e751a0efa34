"""
lib/connection/events.py

Platform-agnostic chat event structure.

Connections decode their wire format once, at the edge, into ChatEvent
objects. Nothing past the connection looks at raw frames.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventKind(Enum):
    """Where a chat message was sent."""

    BROADCAST = "broadcast"
    WHISPER = "whisper"


@dataclass(frozen=True)
class ChatEvent:
    """
    Inbound chat message.

    Attributes:
        kind: Broadcast (public chat) or whisper (private message to the bot)
        sender: Chat name of who sent it
        text: Message text
        timestamp: Platform timestamp in milliseconds, if provided

    Example:
        event = ChatEvent(EventKind.WHISPER, sender='alice', text='2')
    """

    kind: EventKind
    sender: str
    text: str
    timestamp: Optional[int] = None

    @property
    def is_whisper(self) -> bool:
        return self.kind is EventKind.WHISPER

    @property
    def is_broadcast(self) -> bool:
        return self.kind is EventKind.BROADCAST
