"""
Base Question Provider Interface

Abstract base class for trivia question providers.
"""

from abc import ABC, abstractmethod

from ..question import Question


class QuestionProvider(ABC):
    """
    Base class for question providers.

    Providers fetch trivia questions from some source (an API, a local
    file, ...) and hand back one ready-to-ask Question per round.
    """

    @abstractmethod
    async def fetch_question(self) -> Question:
        """
        Fetch one question for a round.

        Returns:
            Question with choices already shuffled

        Raises:
            ProviderError: If no usable question could be fetched
        """
        ...

    async def close(self) -> None:
        """
        Close any resources used by the provider.

        Override this in subclasses that need cleanup.
        """
        pass
