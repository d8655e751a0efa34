"""
Tests for the trivia round state machine.
"""

import asyncio
import json
import random

import pytest

from lib.connection.errors import NotConnectedError, SendError
from plugins.trivia.controller import (
    RoundConfig,
    RoundController,
    RoundDeadline,
    RoundState,
    format_latency,
)
from plugins.trivia.errors import ProviderError
from plugins.trivia.events import RoundEventPublisher

from fakes import FakeProvider, broadcast, whisper


PROMPT = (
    "POGGERS Trivia time answer is in 20s, whisper me the number! "
    "(Geography) Question: `What is the capital of France?`... "
    "Possible answers: `1` Paris `2` Lyon `3` Nice"
)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.01)


class TestRoundConfig:
    """Test RoundConfig defaults."""

    def test_default_values(self):
        config = RoundConfig()
        assert config.command == "!trivia"
        assert config.round_duration == 20.0
        assert config.announce_provider_errors is True
        assert "POGGERS" in config.emotes


class TestStartRound:
    """Test IDLE + start command."""

    @pytest.mark.asyncio
    async def test_initial_state(self, controller):
        assert controller.state is RoundState.IDLE
        assert controller.question is None
        assert controller.registry is None
        assert controller.round_number == 0

    @pytest.mark.asyncio
    async def test_start_publishes_prompt(self, controller, mock_connection, sample_question, clock):
        await controller.handle(broadcast("bob", "!trivia"))

        assert controller.state is RoundState.ACTIVE
        assert controller.question == sample_question
        assert controller.registry is not None
        assert controller.registry.started_at == clock.now
        assert controller.round_number == 1
        mock_connection.send_message.assert_awaited_once_with(PROMPT)

    @pytest.mark.asyncio
    async def test_command_with_trailing_text(self, controller, provider):
        await controller.handle(broadcast("bob", "!trivia music please"))

        assert provider.fetch_count == 1
        assert controller.state is RoundState.ACTIVE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["!triviastats", "hello !trivia", "trivia", ""])
    async def test_non_commands_ignored(self, controller, provider, mock_connection, text):
        await controller.handle(broadcast("bob", text))

        assert provider.fetch_count == 0
        assert controller.state is RoundState.IDLE
        mock_connection.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_whispered_command_ignored(self, controller, provider):
        await controller.handle(whisper("bob", "!trivia"))

        assert provider.fetch_count == 0
        assert controller.state is RoundState.IDLE

    @pytest.mark.asyncio
    async def test_start_ignored_while_active(self, controller, provider, mock_connection):
        await controller.handle(broadcast("bob", "!trivia"))
        question, registry = controller.question, controller.registry
        await controller.handle(whisper("alice", "2"))

        await controller.handle(broadcast("carol", "!trivia"))

        assert provider.fetch_count == 1
        assert controller.question is question
        assert controller.registry is registry
        assert len(registry) == 1
        assert mock_connection.send_message.await_count == 1

    @pytest.mark.asyncio
    async def test_start_ignored_while_resolving(self, controller, provider):
        await controller.handle(broadcast("bob", "!trivia"))
        controller._state = RoundState.RESOLVING

        await controller.handle(broadcast("carol", "!trivia"))

        assert provider.fetch_count == 1

    @pytest.mark.asyncio
    async def test_provider_error_stays_idle(self, mock_connection, round_config, clock, sample_question):
        provider = FakeProvider([ProviderError("down"), sample_question])
        controller = RoundController(mock_connection, provider, round_config, clock=clock)
        try:
            await controller.handle(broadcast("bob", "!trivia"))

            assert controller.state is RoundState.IDLE
            assert controller.round_number == 0
            mock_connection.send_message.assert_awaited_once_with(
                RoundController.MSG_PROVIDER_ERROR
            )

            # Next start gets a fresh attempt
            await controller.handle(broadcast("bob", "!trivia"))
            assert provider.fetch_count == 2
            assert controller.state is RoundState.ACTIVE
        finally:
            await controller.stop()

    @pytest.mark.asyncio
    async def test_provider_error_not_announced(self, mock_connection, clock):
        provider = FakeProvider([ProviderError("down")])
        config = RoundConfig(announce_provider_errors=False)
        controller = RoundController(mock_connection, provider, config, clock=clock)

        await controller.handle(broadcast("bob", "!trivia"))

        assert controller.state is RoundState.IDLE
        mock_connection.send_message.assert_not_called()


class TestAnswers:
    """Test ACTIVE + whisper."""

    @pytest.mark.asyncio
    async def test_whisper_while_idle_ignored(self, controller, mock_connection):
        await controller.handle(whisper("alice", "1"))

        assert controller.registry is None
        mock_connection.send_pm.assert_not_called()

    @pytest.mark.asyncio
    async def test_answer_recorded(self, controller, mock_connection, clock):
        await controller.handle(broadcast("bob", "!trivia"))
        clock.advance(2.5)

        await controller.handle(whisper("alice", "2"))

        submission = list(controller.registry)[0]
        assert submission.participant == "alice"
        assert submission.choice_index == 2
        assert submission.latency == 2.5
        mock_connection.send_pm.assert_not_called()

    @pytest.mark.asyncio
    async def test_unparseable_answer(self, controller, mock_connection):
        await controller.handle(broadcast("bob", "!trivia"))

        await controller.handle(whisper("alice", "Paris"))

        assert len(controller.registry) == 0
        assert controller.state is RoundState.ACTIVE
        mock_connection.send_pm.assert_awaited_once_with(
            "alice", RoundController.MSG_UNPARSEABLE
        )

    @pytest.mark.asyncio
    async def test_duplicate_answer(self, controller, mock_connection):
        await controller.handle(broadcast("bob", "!trivia"))
        await controller.handle(whisper("alice", "2"))

        await controller.handle(whisper("alice", "1"))

        assert len(controller.registry) == 1
        assert list(controller.registry)[0].choice_index == 2
        mock_connection.send_pm.assert_awaited_once_with(
            "alice", RoundController.MSG_ALREADY_ANSWERED
        )

    @pytest.mark.asyncio
    async def test_whisper_send_failure_ignored(self, controller, mock_connection):
        mock_connection.send_pm.side_effect = SendError("gone")
        await controller.handle(broadcast("bob", "!trivia"))

        await controller.handle(whisper("alice", "nope"))

        assert controller.state is RoundState.ACTIVE

    @pytest.mark.asyncio
    async def test_broadcast_text_is_not_an_answer(self, controller):
        await controller.handle(broadcast("bob", "!trivia"))

        await controller.handle(broadcast("alice", "1"))

        assert len(controller.registry) == 0


class TestResolveRound:
    """Test ACTIVE + deadline."""

    @pytest.mark.asyncio
    async def test_full_round_with_winner(self, controller, mock_connection, clock):
        """X answers right at 2s, Y at 5s, X's retry at 6s is rejected."""
        await controller.handle(broadcast("bob", "!trivia"))

        clock.advance(2)
        await controller.handle(whisper("X", "1"))
        clock.advance(3)
        await controller.handle(whisper("Y", "1"))
        clock.advance(1)
        await controller.handle(whisper("X", "1"))
        clock.advance(14)

        result = await controller.handle(RoundDeadline(1))

        assert result.winner.participant == "X"
        assert result.winner.latency == pytest.approx(2.0)
        assert result.total_answers == 2
        mock_connection.send_pm.assert_awaited_once_with(
            "X", RoundController.MSG_ALREADY_ANSWERED
        )
        mock_connection.send_message.assert_awaited_with(
            "The correct answer is: 1 Paris. X won this round. They answered in 2.00s"
        )
        assert controller.state is RoundState.IDLE
        assert controller.question is None
        assert controller.registry is None

    @pytest.mark.asyncio
    async def test_earliest_correct_arrival_wins(self, controller, mock_connection, clock):
        await controller.handle(broadcast("bob", "!trivia"))
        await controller.handle(whisper("A", "2"))
        await controller.handle(whisper("B", "1"))
        await controller.handle(whisper("C", "1"))

        result = await controller.handle(RoundDeadline(1))

        assert result.winner.participant == "B"

    @pytest.mark.asyncio
    async def test_no_winner(self, controller, mock_connection):
        await controller.handle(broadcast("bob", "!trivia"))
        await controller.handle(whisper("A", "2"))

        result = await controller.handle(RoundDeadline(1))

        assert result.winner is None
        mock_connection.send_message.assert_awaited_with(
            "The correct answer is: 1 Paris. No one answered correctly PepeLaugh"
        )
        assert controller.state is RoundState.IDLE

    @pytest.mark.asyncio
    async def test_no_answers_at_all(self, controller, mock_connection):
        await controller.handle(broadcast("bob", "!trivia"))

        result = await controller.handle(RoundDeadline(1))

        assert result.total_answers == 0
        assert "No one answered correctly" in mock_connection.send_message.await_args[0][0]

    @pytest.mark.asyncio
    async def test_stale_deadline_ignored(self, controller):
        assert await controller.handle(RoundDeadline(1)) is None

        await controller.handle(broadcast("bob", "!trivia"))
        assert await controller.handle(RoundDeadline(7)) is None
        assert controller.state is RoundState.ACTIVE

    @pytest.mark.asyncio
    async def test_round_rearms(self, mock_connection, round_config, clock, sample_question, second_question):
        provider = FakeProvider([sample_question, second_question])
        controller = RoundController(mock_connection, provider, round_config, clock=clock)
        try:
            await controller.handle(broadcast("bob", "!trivia"))
            await controller.handle(whisper("alice", "1"))
            await controller.handle(RoundDeadline(1))

            await controller.handle(broadcast("bob", "!trivia"))
            assert controller.round_number == 2
            assert controller.question == second_question
            # Fresh registry: alice may answer again
            await controller.handle(whisper("alice", "3"))
            assert len(controller.registry) == 1

            result = await controller.handle(RoundDeadline(2))
            assert result.winner.participant == "alice"
            assert "Central Processing Unit" in mock_connection.send_message.await_args[0][0]
        finally:
            await controller.stop()

    @pytest.mark.asyncio
    async def test_send_failure_does_not_roll_back(self, controller, mock_connection):
        mock_connection.send_message.side_effect = NotConnectedError("offline")

        await controller.handle(broadcast("bob", "!trivia"))
        assert controller.state is RoundState.ACTIVE

        await controller.handle(whisper("alice", "1"))
        result = await controller.handle(RoundDeadline(1))

        assert result.winner.participant == "alice"
        assert controller.state is RoundState.IDLE
        assert mock_connection.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_stop_drops_round_silently(self, controller, mock_connection):
        await controller.handle(broadcast("bob", "!trivia"))
        timer = controller._timer_task

        await controller.stop()

        assert controller.state is RoundState.IDLE
        assert controller.registry is None
        assert timer.cancelled()
        assert mock_connection.send_message.await_count == 1


class TestRunLoop:
    """Test the queue consumer and timer together."""

    @pytest.mark.asyncio
    async def test_timer_resolves_round(self, mock_connection, provider, clock):
        config = RoundConfig(round_duration=0.05, emotes=("POGGERS",))
        controller = RoundController(mock_connection, provider, config, clock=clock)
        task = asyncio.create_task(controller.run())
        try:
            controller.enqueue(broadcast("bob", "!trivia"))
            controller.enqueue(whisper("alice", "1"))

            await wait_until(lambda: mock_connection.send_message.await_count == 2)

            assert controller.state is RoundState.IDLE
            mock_connection.send_message.assert_awaited_with(
                "The correct answer is: 1 Paris. alice won this round. They answered in 0.00s"
            )
        finally:
            task.cancel()
            await controller.stop()

    @pytest.mark.asyncio
    async def test_events_during_fetch_are_queued(self, mock_connection, sample_question, round_config, clock):
        release = asyncio.Event()

        class SlowProvider(FakeProvider):
            async def fetch_question(self):
                await release.wait()
                return await super().fetch_question()

        provider = SlowProvider([sample_question])
        controller = RoundController(mock_connection, provider, round_config, clock=clock)
        task = asyncio.create_task(controller.run())
        try:
            controller.enqueue(broadcast("bob", "!trivia"))
            await wait_until(lambda: provider.fetch_count == 0 and controller._queue.empty())

            controller.enqueue(broadcast("carol", "!trivia"))
            controller.enqueue(whisper("alice", "1"))
            await asyncio.sleep(0.02)
            assert controller.state is RoundState.IDLE

            release.set()
            await wait_until(lambda: controller._queue.empty() and controller.registry is not None
                             and len(controller.registry) == 1)

            assert provider.fetch_count == 1
            assert list(controller.registry)[0].participant == "alice"
        finally:
            task.cancel()
            await controller.stop()

    @pytest.mark.asyncio
    async def test_unexpected_error_keeps_loop_alive(self, mock_connection, sample_question, round_config, clock):
        provider = FakeProvider([RuntimeError("bug"), sample_question])
        controller = RoundController(mock_connection, provider, round_config, clock=clock)
        task = asyncio.create_task(controller.run())
        try:
            controller.enqueue(broadcast("bob", "!trivia"))
            controller.enqueue(broadcast("bob", "!trivia"))

            await wait_until(lambda: controller.state is RoundState.ACTIVE)
            assert provider.fetch_count == 2
        finally:
            task.cancel()
            await controller.stop()


class TestRoundEvents:
    """Test optional NATS round events."""

    @pytest.mark.asyncio
    async def test_round_events_published(self, mock_connection, provider, round_config, clock, mock_nats):
        controller = RoundController(
            mock_connection, provider, round_config,
            clock=clock, events=RoundEventPublisher(mock_nats),
        )
        try:
            await controller.handle(broadcast("bob", "!trivia"))
            clock.advance(3)
            await controller.handle(whisper("alice", "1"))
            await controller.handle(RoundDeadline(1))
        finally:
            await controller.stop()

        subjects = [call[0][0] for call in mock_nats.publish.call_args_list]
        assert subjects == [
            "trivia.round.started",
            "trivia.answer.submitted",
            "trivia.round.resolved",
        ]

        started = json.loads(mock_nats.publish.call_args_list[0][0][1].decode())
        assert started["started_by"] == "bob"
        assert started["category"] == "Geography"
        assert started["difficulty"] == "easy"

        resolved = json.loads(mock_nats.publish.call_args_list[2][0][1].decode())
        assert resolved["winner"] == "alice"
        assert resolved["latency"] == 3
        assert resolved["correct_answer"] == "Paris"


class TestFormatting:
    """Test outbound message formatting."""

    def test_format_latency(self):
        assert format_latency(2.0374) == "2.04s"
        assert format_latency(0) == "0.00s"

    @pytest.mark.asyncio
    async def test_prompt_uses_configured_emotes(self, mock_connection, provider, sample_question):
        config = RoundConfig(emotes=("PepoG", "SOY"))
        controller = RoundController(mock_connection, provider, config, rng=random.Random(0))

        prompt = controller.format_prompt(sample_question)

        assert prompt.split(" ", 1)[0] in ("PepoG", "SOY")

    @pytest.mark.asyncio
    async def test_prompt_without_emotes(self, mock_connection, provider, sample_question):
        controller = RoundController(mock_connection, provider, RoundConfig(emotes=()))

        assert controller.format_prompt(sample_question).startswith("Trivia time")

    @pytest.mark.asyncio
    async def test_result_keeps_answer_text_quote_safe(self, mock_connection, provider):
        from plugins.trivia.question import Question

        question = Question.from_answers(
            category="Film",
            prompt="Which?",
            correct_answer='The "Shining"',
            incorrect_answers=["Psycho"],
            rng=random.Random(0),
        )
        controller = RoundController(mock_connection, provider, RoundConfig())

        message = controller.format_result(question, None)

        assert "The 'Shining'" in message
        assert '"' not in message
