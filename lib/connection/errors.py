"""
Connection-specific exceptions.

This module defines the exception hierarchy for connection-related errors.
All exceptions inherit from ConnectionError for easy catching.
"""


class ConnectionError(Exception):
    """
    Base exception for connection errors.

    All connection-related exceptions inherit from this class,
    allowing catch-all exception handling when needed.
    """
    pass


class AuthenticationError(ConnectionError):
    """
    Authentication failed.

    Raised when the chat server rejects the credential presented
    during the websocket handshake.
    """
    pass


class NotConnectedError(ConnectionError):
    """
    Operation requires active connection.

    Raised when attempting to send messages or read events
    without an established connection.
    """
    pass


class SendError(ConnectionError):
    """
    Failed to send message or data.

    Raised when an outbound chat message or whisper can't be written
    to the connection. The message is lost; callers decide whether
    that matters.
    """
    pass


class ProtocolError(ConnectionError):
    """
    Platform protocol violation.

    Raised when the chat server sends a frame that can't be decoded.
    """
    pass
