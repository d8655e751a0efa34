"""Trivia question providers package."""

from .base import QuestionProvider
from .opentdb import OpenTDBProvider, StaleQuestionFilter

__all__ = ["QuestionProvider", "OpenTDBProvider", "StaleQuestionFilter"]
