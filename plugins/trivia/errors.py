"""
plugins/trivia/errors.py

Trivia-specific exceptions.
"""

from typing import Optional


class TriviaError(Exception):
    """Base exception for trivia errors."""
    pass


class ProviderError(TriviaError):
    """
    Question provider failed.

    Raised when the provider cannot be reached, returns something that
    cannot be parsed, reports an error code, or has nothing usable left
    after filtering.
    """

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class ParseError(TriviaError):
    """Submitted answer text is not a choice number."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Could not parse answer {text!r}")


class DuplicateSubmission(TriviaError):
    """Participant already answered in this round."""

    def __init__(self, participant: str):
        self.participant = participant
        super().__init__(f"{participant} has already answered")
