"""
Abstract connection adapter for chat platforms.

This module defines the ConnectionAdapter abstract base class that all
platform connection implementations must inherit from. It provides a
platform-agnostic interface the trivia round controller talks to.
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from .events import ChatEvent


class ConnectionAdapter(ABC):
    """
    Abstract interface for platform connections.

    This interface defines the contract that all connection implementations
    must follow. It abstracts platform-specific details so the bot logic
    only ever sees ChatEvent objects coming in and plain text going out.

    The adapter pattern allows swapping connection implementations without
    changing bot business logic, and makes testing with mock connections
    straightforward.

    Attributes:
        logger: Logger instance for connection events
        is_connected: Connection status flag

    Example:
        >>> class MyConnection(ConnectionAdapter):
        ...     async def connect(self):
        ...         # Platform-specific connection logic
        ...         self._is_connected = True
        ...     # ... implement other methods
        >>> conn = MyConnection()
        >>> await conn.connect()
        >>> await conn.send_message("Hello world")
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize connection adapter.

        Args:
            logger: Optional logger instance. If None, creates default logger
                    named after the class.
        """
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self._is_connected = False

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to platform.

        This method should:
        1. Establish network connection
        2. Perform authentication
        3. Set _is_connected = True

        Raises:
            ConnectionError: If connection fails
            AuthenticationError: If login fails
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close connection gracefully.

        This method should not raise exceptions - it should make best
        effort to clean up even if errors occur.
        """
        pass

    @abstractmethod
    async def send_message(self, content: str) -> None:
        """
        Broadcast message to the chat.

        Args:
            content: Message text to send

        Raises:
            NotConnectedError: If not connected
            SendError: If message fails to send
        """
        pass

    @abstractmethod
    async def send_pm(self, user: str, content: str) -> None:
        """
        Whisper a private message to a user.

        Args:
            user: Username to send message to
            content: Message text

        Raises:
            NotConnectedError: If not connected
            SendError: If PM fails to send
        """
        pass

    @abstractmethod
    def recv_events(self) -> AsyncIterator[ChatEvent]:
        """
        Async iterator yielding decoded chat events.

        Yields:
            ChatEvent for each broadcast or whisper received

        Raises:
            NotConnectedError: If not connected
            ConnectionError: If the connection drops

        Example:
            >>> async for event in conn.recv_events():
            ...     print(f"{event.sender}: {event.text}")
        """
        pass

    @property
    def is_connected(self) -> bool:
        """
        Check if connection is active.

        Returns:
            True if connected, False otherwise
        """
        return self._is_connected
