#!/usr/bin/env python3
"""
Trivia Bot - strims chat trivia orchestrator

Wires the pieces together and nothing more:
- Chat connection (lib.connection.StrimsConnection)
- Question provider (plugins.trivia.OpenTDBProvider)
- Round controller (plugins.trivia.RoundController)
- Optional NATS round events

All trivia behavior lives in plugins/trivia.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from common.config import get_config
from lib.connection import StrimsConnection
from lib.connection.errors import ConnectionError as ChatConnectionError
from plugins.trivia import (
    OpenTDBProvider,
    RoundConfig,
    RoundController,
    RoundEventPublisher,
    StaleQuestionFilter,
)
from plugins.trivia.events import maybe_connect


logger = logging.getLogger(__name__)


def build_round_config(trivia: Dict[str, Any]) -> RoundConfig:
    """Round settings from the config 'trivia' section."""
    return RoundConfig(
        command=trivia['command'],
        round_duration=float(trivia['round_duration']),
        emotes=tuple(trivia['emotes']),
        announce_provider_errors=trivia['announce_provider_errors'],
    )


def build_provider(trivia: Dict[str, Any]) -> OpenTDBProvider:
    """Question provider from the config 'trivia' section."""
    stale = trivia['stale_filter']
    return OpenTDBProvider(
        batch_size=int(trivia['batch_size']),
        timeout=float(trivia['timeout']),
        stale_filter=StaleQuestionFilter(
            pattern=stale['pattern'],
            categories=frozenset(stale['categories']),
        ),
        question_type=trivia.get('question_type'),
    )


class TriviaBot:
    """
    Trivia Bot Orchestrator

    Responsibilities:
    1. Start the provider session, event publisher and chat connection
    2. Pump chat events into the round controller
    3. Coordinate graceful shutdown
    """

    def __init__(self, conf: Dict[str, Any], url: str, token: str):
        self.conf = conf
        self.connection = StrimsConnection(url=url, token=token)
        self.provider = build_provider(conf['trivia'])
        self.events: Optional[RoundEventPublisher] = None
        self.controller: Optional[RoundController] = None
        self._controller_task: Optional[asyncio.Task] = None

    async def start(self):
        """Start all components in correct order"""
        try:
            # 1. Provider session token (required before the first round)
            logger.info("Requesting trivia session token...")
            await self.provider.get_session_token()

            # 2. Optional round events
            self.events = await maybe_connect(self.conf['events'].get('nats_url'))

            # 3. Round controller consumer
            self.controller = RoundController(
                connection=self.connection,
                provider=self.provider,
                config=build_round_config(self.conf['trivia']),
                events=self.events,
            )
            self._controller_task = asyncio.create_task(self.controller.run())

            # 4. Chat connection
            await self.connection.connect()
            logger.info(f"✅ Connected to chat... ({self.connection.url})")

        except Exception as e:
            logger.error(f"Failed to start trivia bot: {e}", exc_info=True)
            await self.stop()
            raise

    async def run(self):
        """Feed chat events to the controller until the connection drops"""
        async for event in self.connection.recv_events():
            self.controller.enqueue(event)

    async def stop(self):
        """Stop all components in reverse order"""
        logger.info("Shutting down trivia bot...")

        await self.connection.disconnect()

        if self._controller_task:
            self._controller_task.cancel()
            try:
                await self._controller_task
            except asyncio.CancelledError:
                pass
            self._controller_task = None

        if self.controller:
            await self.controller.stop()
        if self.events:
            await self.events.close()
            self.events = None
        await self.provider.close()

        logger.info("✅ Trivia bot stopped")


async def main():
    """Entry point"""
    conf, params = get_config()

    bot = TriviaBot(conf, **params)

    try:
        await bot.start()
        await bot.run()
    except ChatConnectionError as e:
        logger.error(f"Chat connection lost: {e}")
        raise SystemExit(1)
    finally:
        await bot.stop()


def run():
    """Console script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")


if __name__ == "__main__":
    run()
