"""
Connection adapters for chat platforms.

This module provides the abstract interface, the decoded chat event type
and the concrete strims.gg implementation the bot connects with.
"""

from .adapter import ConnectionAdapter
from .errors import (
    AuthenticationError,
    ConnectionError,
    NotConnectedError,
    ProtocolError,
    SendError,
)
from .events import ChatEvent, EventKind
from .strims import StrimsConnection

__all__ = [
    'ConnectionAdapter',
    'StrimsConnection',
    'ChatEvent',
    'EventKind',
    'ConnectionError',
    'AuthenticationError',
    'NotConnectedError',
    'SendError',
    'ProtocolError',
]
