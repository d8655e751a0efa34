"""
Trivia Question Models

Data model for a single multiple-choice round question, plus the helpers
that turn raw provider text into transport-safe, shuffled choices.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple
import html
import random


class Difficulty(Enum):
    """Question difficulty level."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def sanitize_text(text: str) -> str:
    """
    Make provider text safe for an outbound chat message.

    Decodes HTML entities and rewrites double quotes to single quotes so
    the text can't break the quoting of the message that carries it.

    Example:
        >>> sanitize_text("Who sang &quot;Thriller&quot;?")
        "Who sang 'Thriller'?"
    """
    return html.unescape(text).replace('"', "'")


def shuffle_choices(
    correct_answer: str,
    incorrect_answers: Sequence[str],
    rng: Optional[random.Random] = None,
) -> Tuple[Tuple[str, ...], int]:
    """
    Combine and shuffle answer choices.

    Args:
        correct_answer: The correct answer text
        incorrect_answers: The wrong answers
        rng: Random source (seed it for reproducible order)

    Returns:
        Tuple of (shuffled choices, index of the correct answer in them)
    """
    rng = rng or random.Random()

    choices: List[str] = [correct_answer] + list(incorrect_answers)
    rng.shuffle(choices)

    return tuple(choices), choices.index(correct_answer)


@dataclass(frozen=True)
class Question:
    """
    A trivia question ready to be asked.

    Attributes:
        category: Category/topic of the question
        prompt: The question text
        choices: Answer choices, already shuffled
        correct_index: 0-based position of the correct answer in choices
        difficulty: Difficulty reported by the provider, if any
    """

    category: str
    prompt: str
    choices: Tuple[str, ...]
    correct_index: int
    difficulty: Optional[Difficulty] = None

    def __post_init__(self) -> None:
        # Lists are accepted but stored as a tuple
        object.__setattr__(self, "choices", tuple(self.choices))

        if len(self.choices) < 2:
            raise ValueError("A question needs at least two choices")

        if len(set(self.choices)) != len(self.choices):
            raise ValueError(f"Duplicate choices: {self.choices}")

        if not 0 <= self.correct_index < len(self.choices):
            raise ValueError(
                f"correct_index {self.correct_index} out of range "
                f"for {len(self.choices)} choices"
            )

    @classmethod
    def from_answers(
        cls,
        category: str,
        prompt: str,
        correct_answer: str,
        incorrect_answers: Sequence[str],
        difficulty: Optional[Difficulty] = None,
        rng: Optional[random.Random] = None,
    ) -> "Question":
        """
        Build a question from unshuffled answers.

        All text is sanitized before shuffling. Raises ValueError when the
        answers don't form at least two distinct choices.
        """
        choices, correct_index = shuffle_choices(
            sanitize_text(correct_answer),
            [sanitize_text(a) for a in incorrect_answers],
            rng,
        )
        return cls(
            category=sanitize_text(category),
            prompt=sanitize_text(prompt),
            choices=choices,
            correct_index=correct_index,
            difficulty=difficulty,
        )

    @property
    def correct_answer(self) -> str:
        """Text of the correct choice."""
        return self.choices[self.correct_index]

    @property
    def correct_choice(self) -> int:
        """1-based number of the correct choice, as shown in chat."""
        return self.correct_index + 1

    def format_choices(self) -> str:
        """
        Enumerate choices for chat display.

        Returns:
            String like "`1` Paris `2` Lyon `3` Nice"
        """
        return " ".join(
            f"`{number}` {choice}"
            for number, choice in enumerate(self.choices, start=1)
        )
