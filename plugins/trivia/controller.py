"""
Trivia Round State Machine

Runs one trivia round at a time: start command, question fetch, prompt,
answer collection, deadline, result announcement, back to idle.

All state transitions happen on a single consumer coroutine that drains
one queue. Chat events and round deadlines both arrive on that queue, so
the answer registry is only ever touched from one place and needs no
locking. The per-round timer task only signals; it never resolves the
round itself.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Union

from lib.connection import ChatEvent, ConnectionAdapter
from lib.connection.errors import ConnectionError as ChatConnectionError

from .errors import DuplicateSubmission, ParseError, ProviderError
from .events import RoundEventPublisher
from .providers.base import QuestionProvider
from .question import Question
from .registry import AnswerRegistry, Submission

logger = logging.getLogger(__name__)


DEFAULT_EMOTES = ("POGGERS", "SOY", "PepoGood", "PepoG", "PepoHmm")


class RoundState(Enum):
    """Round state enumeration."""

    IDLE = "idle"
    ACTIVE = "active"
    RESOLVING = "resolving"


@dataclass
class RoundConfig:
    """
    Configuration for trivia rounds.

    Attributes:
        command: Broadcast command that starts a round
        round_duration: Seconds answers are accepted for
        emotes: Emotes picked at random to open the prompt
        announce_provider_errors: Tell chat when a question couldn't be fetched
    """

    command: str = "!trivia"
    round_duration: float = 20.0
    emotes: Sequence[str] = DEFAULT_EMOTES
    announce_provider_errors: bool = True


@dataclass(frozen=True)
class RoundDeadline:
    """Signal that a round's answer window has closed."""

    round_number: int


@dataclass(frozen=True)
class RoundResult:
    """
    Outcome of a resolved round.

    Attributes:
        round_number: Which round this was (1-based, per process)
        question: The question that was asked
        winner: Earliest correct submission, None if nobody got it
        total_answers: Number of recorded submissions
    """

    round_number: int
    question: Question
    winner: Optional[Submission]
    total_answers: int


QueueItem = Union[ChatEvent, RoundDeadline]


class RoundController:
    """
    Owns the trivia round lifecycle.

    States cycle IDLE -> ACTIVE -> RESOLVING -> IDLE. Only one round can
    exist at a time: start commands are ignored unless the controller is
    idle. Whispers during an active round are answers; the earliest
    correct answer wins when the deadline fires.

    Dependencies are injected so tests can drive the controller with a
    fake connection, provider and clock.
    """

    MSG_PROMPT = (
        "{emote} Trivia time answer is in {seconds}s, whisper me the number! "
        "({category}) Question: `{prompt}`... Possible answers: {choices}"
    )
    MSG_RESULT = "The correct answer is: {number} {answer}. {outcome}"
    MSG_WINNER = "{user} won this round. They answered in {latency}"
    MSG_NO_WINNER = "No one answered correctly PepeLaugh"
    MSG_ALREADY_ANSWERED = "You have already answered! MiyanoBird"
    MSG_UNPARSEABLE = "I could not determine your answer FeelsPepoMan"
    MSG_PROVIDER_ERROR = "Couldn't fetch a trivia question, try again later."

    def __init__(
        self,
        connection: ConnectionAdapter,
        provider: QuestionProvider,
        config: Optional[RoundConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        events: Optional[RoundEventPublisher] = None,
    ):
        """
        Initialize the round controller.

        Args:
            connection: Chat connection used for outbound messages
            provider: Source of questions
            config: Round configuration (defaults if None)
            clock: Returns the current time in seconds
            rng: Random source for emote selection
            events: Optional NATS publisher for round events
        """
        self.connection = connection
        self.provider = provider
        self.config = config or RoundConfig()
        self.events = events
        self._clock = clock
        self._rng = rng or random.Random()
        self.logger = logging.getLogger(f"{__name__}.RoundController")

        self._queue: "asyncio.Queue[QueueItem]" = asyncio.Queue()

        # Round state
        self._state = RoundState.IDLE
        self._round_number = 0
        self._question: Optional[Question] = None
        self._registry: Optional[AnswerRegistry] = None
        self._timer_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> RoundState:
        """Current round state."""
        return self._state

    @property
    def round_number(self) -> int:
        """Number of rounds started so far."""
        return self._round_number

    @property
    def question(self) -> Optional[Question]:
        """Question of the active round."""
        return self._question

    @property
    def registry(self) -> Optional[AnswerRegistry]:
        """Answers of the active round."""
        return self._registry

    # =========================================================================
    # Event loop
    # =========================================================================

    def enqueue(self, item: QueueItem) -> None:
        """Queue a chat event or deadline for the consumer."""
        self._queue.put_nowait(item)

    async def run(self) -> None:
        """
        Consume queued items until cancelled.

        Every state transition happens here, one item at a time.
        """
        self.logger.info(f"Round controller running (command: {self.config.command})")
        while True:
            item = await self._queue.get()
            try:
                await self.handle(item)
            except Exception as e:
                self.logger.error(f"Error handling {item!r}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def handle(self, item: QueueItem) -> Optional[RoundResult]:
        """
        Process one queued item.

        Returns:
            RoundResult when the item resolved a round, else None
        """
        if isinstance(item, RoundDeadline):
            return await self._resolve_round(item)

        if item.is_broadcast and self._is_start_command(item.text):
            await self._start_round(item)
        elif item.is_whisper and self._state is RoundState.ACTIVE:
            await self._handle_answer(item)
        return None

    async def stop(self) -> None:
        """
        Drop any active round without announcing it.

        Used on shutdown only; rounds have no user-facing cancel.
        """
        await self._cancel_timer()
        if self._state is not RoundState.IDLE:
            self.logger.info(f"Dropping round {self._round_number} on shutdown")
        self._clear_round()

    # =========================================================================
    # Transitions
    # =========================================================================

    def _is_start_command(self, text: str) -> bool:
        parts = text.split(maxsplit=1)
        return bool(parts) and parts[0] == self.config.command

    async def _start_round(self, event: ChatEvent) -> None:
        """IDLE + start command -> ACTIVE."""
        if self._state is not RoundState.IDLE:
            self.logger.debug(
                f"Ignoring start from {event.sender}: round is {self._state.value}"
            )
            return

        self.logger.info(f"Starting trivia round for {event.sender}. Requesting question")
        try:
            question = await self.provider.fetch_question()
        except ProviderError as e:
            self.logger.error(f"Failed to fetch question: {e}")
            if self.config.announce_provider_errors:
                await self._broadcast(self.MSG_PROVIDER_ERROR)
            return

        self._round_number += 1
        self._question = question
        self._registry = AnswerRegistry(started_at=self._clock())
        self._state = RoundState.ACTIVE
        self._timer_task = asyncio.create_task(
            self._deadline_timer(self._round_number, self.config.round_duration)
        )

        await self._broadcast(self.format_prompt(question))
        await self._emit(RoundEventPublisher.EVENT_ROUND_STARTED, {
            "round": self._round_number,
            "started_by": event.sender,
            "category": question.category,
            "difficulty": question.difficulty.value if question.difficulty else None,
            "choices": len(question.choices),
            "duration": self.config.round_duration,
        })

    async def _handle_answer(self, event: ChatEvent) -> None:
        """ACTIVE + whisper -> record answer or tell the sender why not."""
        try:
            submission = self._registry.submit(event.sender, event.text, self._clock())
        except DuplicateSubmission:
            await self._whisper(event.sender, self.MSG_ALREADY_ANSWERED)
            return
        except ParseError:
            await self._whisper(event.sender, self.MSG_UNPARSEABLE)
            return

        self.logger.info(f"{submission.participant} is playing with {submission.choice_index}")
        await self._emit(RoundEventPublisher.EVENT_ANSWER_SUBMITTED, {
            "round": self._round_number,
            "user": submission.participant,
            "arrival_order": submission.arrival_order,
            "latency": submission.latency,
        })

    async def _resolve_round(self, deadline: RoundDeadline) -> Optional[RoundResult]:
        """ACTIVE + deadline -> RESOLVING -> IDLE."""
        if (self._state is not RoundState.ACTIVE
                or deadline.round_number != self._round_number):
            self.logger.debug(f"Ignoring stale deadline for round {deadline.round_number}")
            return None

        self._state = RoundState.RESOLVING
        self.logger.info(f"Determining winner of round {self._round_number}")

        question, registry = self._question, self._registry
        try:
            winner = registry.winner(question.correct_choice)
            result = RoundResult(
                round_number=self._round_number,
                question=question,
                winner=winner,
                total_answers=len(registry),
            )

            await self._broadcast(self.format_result(question, winner))
            await self._emit(RoundEventPublisher.EVENT_ROUND_RESOLVED, {
                "round": result.round_number,
                "correct_answer": question.correct_answer,
                "winner": winner.participant if winner else None,
                "latency": winner.latency if winner else None,
                "total_answers": result.total_answers,
            })
        finally:
            await self._cancel_timer()
            self._clear_round()

        return result

    async def _deadline_timer(self, round_number: int, duration: float) -> None:
        """Sleep for the answer window, then signal the consumer."""
        await asyncio.sleep(duration)
        self.enqueue(RoundDeadline(round_number))

    async def _cancel_timer(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _clear_round(self) -> None:
        self._question = None
        self._registry = None
        self._state = RoundState.IDLE

    # =========================================================================
    # Formatting
    # =========================================================================

    def format_prompt(self, question: Question) -> str:
        """Build the round-opening broadcast."""
        emote = self._rng.choice(list(self.config.emotes)) if self.config.emotes else ""
        return self.MSG_PROMPT.format(
            emote=emote,
            seconds=f"{self.config.round_duration:g}",
            category=question.category,
            prompt=question.prompt,
            choices=question.format_choices(),
        ).strip()

    def format_result(self, question: Question, winner: Optional[Submission]) -> str:
        """Build the round-closing broadcast."""
        if winner:
            outcome = self.MSG_WINNER.format(
                user=winner.participant,
                latency=format_latency(winner.latency),
            )
        else:
            outcome = self.MSG_NO_WINNER

        return self.MSG_RESULT.format(
            number=question.correct_choice,
            answer=question.correct_answer,
            outcome=outcome,
        )

    # =========================================================================
    # Helper Methods
    # =========================================================================

    async def _broadcast(self, message: str) -> None:
        """Send to chat; a failed send is logged, never retried."""
        try:
            await self.connection.send_message(message)
        except ChatConnectionError as e:
            self.logger.error(f"Error sending message: {e}")

    async def _whisper(self, user: str, message: str) -> None:
        """Whisper a user; a failed send is logged, never retried."""
        try:
            await self.connection.send_pm(user, message)
        except ChatConnectionError as e:
            self.logger.error(f"Error whispering {user}: {e}")

    async def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.events:
            await self.events.emit(event_type, data)


def format_latency(seconds: float) -> str:
    """
    Format a response time for chat.

    Example:
        >>> format_latency(2.0374)
        '2.04s'
    """
    return f"{seconds:.2f}s"
