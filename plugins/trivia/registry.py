"""
Answer Registry

Round-scoped collection of whispered answers. One registry exists per
active round; it is discarded when the round resolves.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .errors import DuplicateSubmission, ParseError


@dataclass(frozen=True)
class Submission:
    """
    A participant's answer for one round.

    Attributes:
        participant: Chat name of who answered
        choice_index: The 1-based choice number they sent
        arrival_order: 1-based position among this round's submissions
        latency: Seconds between round start and the submission
    """

    participant: str
    choice_index: int
    arrival_order: int
    latency: float


class AnswerRegistry:
    """
    Collects answers for a single round.

    Enforces one submission per participant and keeps submissions in
    arrival order, which is the only ranking used to pick a winner.

    Example:
        >>> registry = AnswerRegistry(started_at=100.0)
        >>> registry.submit("alice", "2", now=102.5)
        Submission(participant='alice', choice_index=2, arrival_order=1, latency=2.5)
        >>> registry.winner(2).participant
        'alice'
    """

    # Plain base-10 integer, optional sign
    ANSWER_PATTERN = re.compile(r"^[+-]?[0-9]+$")

    def __init__(self, started_at: float):
        self.started_at = started_at
        self._by_participant: Dict[str, Submission] = {}
        self._ordered: List[Submission] = []

    def __len__(self) -> int:
        return len(self._ordered)

    def __iter__(self) -> Iterator[Submission]:
        return iter(self._ordered)

    def has_answered(self, participant: str) -> bool:
        """Whether participant already has a submission this round."""
        return participant in self._by_participant

    def submit(self, participant: str, text: str, now: float) -> Submission:
        """
        Record a participant's answer.

        Args:
            participant: Chat name of who answered
            text: Raw whisper text, expected to be a choice number
            now: Current clock reading (same clock as started_at)

        Returns:
            The recorded Submission

        Raises:
            DuplicateSubmission: Participant already answered (nothing changes)
            ParseError: Text is not an integer (nothing recorded, may retry)
        """
        if participant in self._by_participant:
            raise DuplicateSubmission(participant)

        stripped = text.strip()
        if not self.ANSWER_PATTERN.match(stripped):
            raise ParseError(text)

        submission = Submission(
            participant=participant,
            choice_index=int(stripped),
            arrival_order=len(self._ordered) + 1,
            latency=now - self.started_at,
        )

        self._by_participant[participant] = submission
        self._ordered.append(submission)
        return submission

    def winner(self, correct_choice: int) -> Optional[Submission]:
        """
        Find the earliest correct submission.

        Args:
            correct_choice: 1-based number of the correct choice

        Returns:
            First submission in arrival order with the correct choice,
            or None if nobody got it right
        """
        for submission in self._ordered:
            if submission.choice_index == correct_choice:
                return submission
        return None
