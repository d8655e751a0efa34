"""
Test fixtures for trivia plugin tests.
"""

import random
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from plugins.trivia.controller import RoundConfig, RoundController
from plugins.trivia.question import Difficulty, Question

from fakes import FakeClock, FakeProvider


@pytest.fixture
def sample_question():
    """Three-choice question, correct answer shown as choice 1."""
    return Question(
        category="Geography",
        prompt="What is the capital of France?",
        choices=("Paris", "Lyon", "Nice"),
        correct_index=0,
        difficulty=Difficulty.EASY,
    )


@pytest.fixture
def second_question():
    """Four-choice question, correct answer shown as choice 3."""
    return Question(
        category="Science: Computers",
        prompt="What does CPU stand for?",
        choices=(
            "Central Process Unit",
            "Computer Personal Unit",
            "Central Processing Unit",
            "Central Processor Unit",
        ),
        correct_index=2,
        difficulty=Difficulty.MEDIUM,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_connection():
    """Mock chat connection recording outbound messages."""
    connection = MagicMock()
    connection.send_message = AsyncMock()
    connection.send_pm = AsyncMock()
    return connection


@pytest.fixture
def round_config():
    """Round config with a single emote so prompts are predictable."""
    return RoundConfig(
        command="!trivia",
        round_duration=20.0,
        emotes=("POGGERS",),
    )


@pytest.fixture
def provider(sample_question):
    return FakeProvider([sample_question])


@pytest_asyncio.fixture
async def controller(mock_connection, provider, round_config, clock):
    """Controller wired to fakes; timers cancelled after each test."""
    controller = RoundController(
        connection=mock_connection,
        provider=provider,
        config=round_config,
        clock=clock,
        rng=random.Random(1),
    )
    yield controller
    await controller.stop()


@pytest.fixture
def mock_nats():
    """Mock NATS client."""
    nats = AsyncMock()
    nats.publish = AsyncMock()
    nats.drain = AsyncMock()
    return nats


@pytest.fixture
def opentdb_batch():
    """Sample OpenTDB batch response."""
    return {
        "response_code": 0,
        "results": [
            {
                "category": "Entertainment: Music",
                "type": "multiple",
                "difficulty": "easy",
                "question": "Which band released &quot;Abbey Road&quot; in 1969?",
                "correct_answer": "The Beatles",
                "incorrect_answers": ["The Who", "The Kinks", "The Rolling Stones"],
            },
            {
                "category": "Science &amp; Nature",
                "type": "multiple",
                "difficulty": "medium",
                "question": "What is H&lt;sub&gt;2&lt;/sub&gt;O?",
                "correct_answer": "Water",
                "incorrect_answers": ["Salt", "Sugar", "Air"],
            },
        ],
    }
