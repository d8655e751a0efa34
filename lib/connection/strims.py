"""
Strims chat connection implementation using websockets.

This module provides a concrete implementation of ConnectionAdapter
for strims.gg chat. Frames are a command word followed by a JSON body:

    MSG {"nick": "alice", "data": "!trivia", "timestamp": 1600000000000}
    PRIVMSG {"nick": "alice", "data": "2", "messageid": 12}
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from .adapter import ConnectionAdapter
from .errors import (
    AuthenticationError,
    ConnectionError,
    NotConnectedError,
    ProtocolError,
    SendError,
)
from .events import ChatEvent, EventKind


@dataclass
class ConnectionStats:
    """Statistics for monitoring connection health."""
    messages_sent: int = 0
    messages_received: int = 0
    frames_skipped: int = 0
    last_error: Optional[str] = None
    connected_since: Optional[float] = None


class StrimsConnection(ConnectionAdapter):
    """
    Strims chat connection.

    Authenticates with a JWT cookie during the websocket handshake and
    decodes MSG/PRIVMSG frames into ChatEvent objects. Other frame types
    (NAMES, JOIN, QUIT, PING, ...) are skipped.

    Attributes:
        url: Chat websocket URL
        websocket: Open websocket (None when disconnected)
        stats: Connection statistics

    Example:
        >>> conn = StrimsConnection('wss://chat2.strims.gg/ws', token)
        >>> await conn.connect()
        >>> await conn.send_message("Hello!")
        >>> await conn.disconnect()
    """

    DEFAULT_URL = 'wss://chat2.strims.gg/ws'

    CMD_MESSAGE = 'MSG'
    CMD_PRIVATE = 'PRIVMSG'
    CMD_ERROR = 'ERR'

    INBOUND_KINDS = {
        CMD_MESSAGE: EventKind.BROADCAST,
        CMD_PRIVATE: EventKind.WHISPER,
    }

    def __init__(self,
                 url: str = DEFAULT_URL,
                 token: Optional[str] = None,
                 connect_func: Optional[Callable] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize Strims connection.

        Args:
            url: Chat websocket URL
            token: JWT used as the 'jwt' cookie (None connects anonymously)
            connect_func: websocket connect function (default: websockets.connect)
            logger: Logger instance
        """
        super().__init__(logger)

        self.url = url
        self.token = token

        # Dependency injection
        self.connect_func = connect_func or websockets.connect

        self.websocket = None
        self.stats = ConnectionStats()

    async def connect(self) -> None:
        """
        Open the websocket and authenticate.

        Raises:
            AuthenticationError: If the server rejects the token
            ConnectionError: If the connection can't be established
        """
        if self._is_connected:
            self.logger.warning("Already connected")
            return

        headers = {}
        if self.token:
            headers['Cookie'] = f'jwt={self.token}'

        self.logger.info(f"Connecting to {self.url}")
        try:
            self.websocket = await self.connect_func(
                self.url,
                additional_headers=headers
            )
        except InvalidStatus as e:
            status = e.response.status_code
            self.stats.last_error = str(e)
            if status in (401, 403):
                raise AuthenticationError(
                    f"Chat server rejected credentials (HTTP {status})"
                ) from e
            raise ConnectionError(f"Handshake failed (HTTP {status})") from e
        except (OSError, WebSocketException) as e:
            self.stats.last_error = str(e)
            raise ConnectionError(f"Failed to connect to {self.url}: {e}") from e

        self._is_connected = True
        self.stats.connected_since = time.time()
        self.logger.info(f"Connected to chat ({self.url})")

    async def disconnect(self) -> None:
        """
        Close connection gracefully.

        Does not raise exceptions - makes best effort to clean up.
        """
        if not self._is_connected:
            return

        try:
            if self.websocket:
                await self.websocket.close()
        except Exception as e:
            self.logger.warning(f"Error during disconnect: {e}")
        finally:
            self.websocket = None
            self._is_connected = False
            self.stats.connected_since = None
            self.logger.info("Disconnected")

    async def send_message(self, content: str) -> None:
        """
        Broadcast a chat message.

        Raises:
            NotConnectedError: If not connected
            SendError: If message fails to send
        """
        await self._send_frame(self.CMD_MESSAGE, {'data': content})

    async def send_pm(self, user: str, content: str) -> None:
        """
        Whisper a user.

        Raises:
            NotConnectedError: If not connected
            SendError: If PM fails to send
        """
        await self._send_frame(self.CMD_PRIVATE, {'nick': user, 'data': content})

    async def recv_events(self) -> AsyncIterator[ChatEvent]:  # type: ignore[override]
        """
        Async iterator yielding decoded chat events.

        Raises:
            NotConnectedError: If not connected
            ConnectionError: If the connection closes while reading
        """
        self._ensure_connected()

        while self._is_connected:
            try:
                raw = await self.websocket.recv()
            except ConnectionClosed as e:
                self._is_connected = False
                self.stats.last_error = str(e)
                raise ConnectionError(f"Chat connection closed: {e}") from e

            try:
                event = self.decode_frame(raw)
            except ProtocolError as e:
                self.stats.frames_skipped += 1
                self.logger.warning(f"Skipping bad frame: {e}")
                continue

            if event is None:
                self.stats.frames_skipped += 1
                continue

            self.stats.messages_received += 1
            yield event

    def decode_frame(self, raw) -> Optional[ChatEvent]:
        """
        Decode a raw frame into a ChatEvent.

        Args:
            raw: Frame as received (str or bytes)

        Returns:
            ChatEvent for MSG/PRIVMSG frames, None for other frame types

        Raises:
            ProtocolError: If a MSG/PRIVMSG frame has a malformed body
        """
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8', errors='replace')

        command, _, body = raw.partition(' ')

        if command == self.CMD_ERROR:
            self.logger.warning(f"Chat server error: {body}")
            return None

        kind = self.INBOUND_KINDS.get(command)
        if kind is None:
            return None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Invalid {command} body: {body!r}") from e

        if not isinstance(payload, dict):
            raise ProtocolError(f"Invalid {command} body: {body!r}")

        sender = payload.get('nick')
        text = payload.get('data')
        if not isinstance(sender, str) or not isinstance(text, str):
            raise ProtocolError(f"{command} frame missing nick/data: {body!r}")

        return ChatEvent(
            kind=kind,
            sender=sender,
            text=text,
            timestamp=payload.get('timestamp'),
        )

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()
        return False

    # Private methods

    def _ensure_connected(self) -> None:
        """Validate connection state, raise if not connected."""
        if not self._is_connected or not self.websocket:
            raise NotConnectedError(
                f"Not connected to {self.url}. Call connect() first."
            )

    async def _send_frame(self, command: str, payload: dict) -> None:
        """Encode and write an outbound frame."""
        self._ensure_connected()

        frame = f"{command} {json.dumps(payload)}"
        self.logger.debug(f"Sending: {frame}")
        try:
            await self.websocket.send(frame)
            self.stats.messages_sent += 1
        except (OSError, WebSocketException) as e:
            self.stats.last_error = str(e)
            raise SendError(f"Failed to send {command}: {e}") from e
