"""
Trivia round events over NATS.

Publishes round lifecycle events so other services (overlays, stats
collectors) can follow the game. Publishing is best effort: a failed
publish is logged and never affects the round.

Subjects:
    trivia.round.started - Question asked
    trivia.answer.submitted - Answer recorded
    trivia.round.resolved - Round closed (winner or no winner)
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import nats
from nats.aio.client import Client as NATS

logger = logging.getLogger(__name__)


class RoundEventPublisher:
    """Publishes trivia round events to NATS."""

    EVENT_ROUND_STARTED = "trivia.round.started"
    EVENT_ANSWER_SUBMITTED = "trivia.answer.submitted"
    EVENT_ROUND_RESOLVED = "trivia.round.resolved"

    def __init__(self, nats_client: NATS):
        """
        Args:
            nats_client: Connected NATS client
        """
        self.nats = nats_client
        self.logger = logging.getLogger(f"{__name__}.RoundEventPublisher")

    @classmethod
    async def connect(cls, url: str) -> "RoundEventPublisher":
        """Connect to a NATS server and wrap the client."""
        client = await nats.connect(url)
        logger.info(f"Connected to NATS at {url}")
        return cls(client)

    async def emit(self, event_type: str, data: Dict[str, Any]) -> None:
        """
        Publish an event.

        Args:
            event_type: Event subject (e.g. trivia.round.started)
            data: JSON-serializable payload
        """
        event_data = {
            "event": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **data,
        }
        try:
            await self.nats.publish(event_type, json.dumps(event_data).encode())
        except Exception as e:
            self.logger.debug(f"Could not publish event {event_type}: {e}")

    async def close(self) -> None:
        """Flush pending events and close the connection."""
        try:
            await self.nats.drain()
        except Exception as e:
            self.logger.warning(f"Error closing NATS connection: {e}")


async def maybe_connect(url: Optional[str]) -> Optional[RoundEventPublisher]:
    """Connect a publisher if a NATS url is configured."""
    if not url:
        return None
    return await RoundEventPublisher.connect(url)
