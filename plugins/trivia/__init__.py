"""
Trivia Plugin Package

Timed multiple-choice trivia rounds for strims chat, using the Open
Trivia Database.

Commands:
    !trivia - Start a round (broadcast). Answers are whispered as the
              choice number, e.g. /w triviabot 2
"""

from .question import Difficulty, Question, sanitize_text, shuffle_choices
from .registry import AnswerRegistry, Submission
from .errors import DuplicateSubmission, ParseError, ProviderError, TriviaError
from .controller import RoundConfig, RoundController, RoundDeadline, RoundResult, RoundState
from .events import RoundEventPublisher
from .providers.base import QuestionProvider
from .providers.opentdb import OpenTDBProvider, StaleQuestionFilter

__all__ = [
    # Question module
    "Difficulty",
    "Question",
    "sanitize_text",
    "shuffle_choices",
    # Registry module
    "AnswerRegistry",
    "Submission",
    # Errors
    "TriviaError",
    "ProviderError",
    "ParseError",
    "DuplicateSubmission",
    # Controller module
    "RoundConfig",
    "RoundController",
    "RoundDeadline",
    "RoundResult",
    "RoundState",
    # Events
    "RoundEventPublisher",
    # Providers
    "QuestionProvider",
    "OpenTDBProvider",
    "StaleQuestionFilter",
]
