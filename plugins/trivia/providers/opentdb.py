"""
Open Trivia Database Provider

Fetches trivia questions from the Open Trivia Database API.
https://opentdb.com/
"""

import logging
import random
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

import httpx

from .base import QuestionProvider
from ..errors import ProviderError
from ..question import Difficulty, Question

logger = logging.getLogger(__name__)


# OpenTDB response codes
RESPONSE_SUCCESS = 0
RESPONSE_NO_RESULTS = 1
RESPONSE_INVALID_PARAMETER = 2
RESPONSE_TOKEN_NOT_FOUND = 3
RESPONSE_TOKEN_EMPTY = 4

RESPONSE_MESSAGES = {
    RESPONSE_SUCCESS: "Success",
    RESPONSE_NO_RESULTS: "No results available for query",
    RESPONSE_INVALID_PARAMETER: "Invalid parameter",
    RESPONSE_TOKEN_NOT_FOUND: "Session token not found",
    RESPONSE_TOKEN_EMPTY: "Token has exhausted all questions",
}


@dataclass
class StaleQuestionFilter:
    """
    Drops questions known to be miscategorized or out of date.

    A candidate is rejected when its text matches ``pattern`` and its
    category is one of ``categories``. The defaults catch music questions
    that hinge on a 1900s year.

    Attributes:
        pattern: Regex searched in the question text
        categories: Categories the pattern applies to
    """

    pattern: str = r"19[0-9]\d"
    categories: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"Entertainment: Music"})
    )

    def __post_init__(self) -> None:
        self.categories = frozenset(self.categories)
        self._regex = re.compile(self.pattern)

    def is_stale(self, record: Dict[str, Any]) -> bool:
        """Whether a raw provider record should be skipped."""
        category = record.get("category")
        question = record.get("question")
        # Malformed records are left for the parser to reject
        if not isinstance(category, str) or not isinstance(question, str):
            return False
        return category in self.categories and bool(self._regex.search(question))


class OpenTDBProvider(QuestionProvider):
    """
    Open Trivia Database provider.

    API Documentation: https://opentdb.com/api_config.php

    Features:
    - Session token handshake (prevents repeated questions)
    - Batch fetch with a stale-content filter
    - Uniform random pick from the batch, shuffled choices
    - HTML entity decoding and quote normalization
    """

    BASE_URL = "https://opentdb.com/api.php"
    TOKEN_URL = "https://opentdb.com/api_token.php"

    DEFAULT_TIMEOUT = 10.0
    DEFAULT_BATCH_SIZE = 10

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        stale_filter: Optional[StaleQuestionFilter] = None,
        question_type: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize OpenTDB provider.

        Args:
            batch_size: Questions requested per fetch (1-50)
            timeout: HTTP request timeout in seconds
            stale_filter: Filter for unsuitable questions (default filter if None)
            question_type: "multiple" or "boolean" to restrict type, None for any
            rng: Random source for picking and shuffling
        """
        self.batch_size = min(50, max(1, batch_size))
        self.stale_filter = stale_filter or StaleQuestionFilter()
        self.question_type = question_type
        self._timeout = timeout
        self._rng = rng or random.Random()
        self._client: Optional[httpx.AsyncClient] = None
        self._session_token: Optional[str] = None
        self.logger = logging.getLogger(f"{__name__}.OpenTDBProvider")

    @property
    def session_token(self) -> Optional[str]:
        """Current session token, if one has been requested."""
        return self._session_token

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET a URL and decode its JSON body, wrapping failures in ProviderError."""
        client = await self._get_client()

        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {url} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from {url}: {e}") from e

        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response from {url}: {data!r}")
        return data

    async def get_session_token(self) -> str:
        """
        Request a session token to prevent duplicate questions.

        Returns:
            Session token string

        Raises:
            ProviderError: If the token request fails
        """
        data = await self._get_json(self.TOKEN_URL, {"command": "request"})

        code = data.get("response_code")
        token = data.get("token")
        if code != RESPONSE_SUCCESS or not token:
            raise ProviderError("Failed to get session token", code=code)

        self._session_token = token
        self.logger.debug(f"Got session token: {token[:8]}...")
        return token

    async def fetch_batch(self) -> List[Dict[str, Any]]:
        """
        Fetch a batch of raw question records.

        Returns:
            List of record dicts as returned by the API

        Raises:
            ProviderError: If the request fails or the API reports an error
        """
        if not self._session_token:
            await self.get_session_token()

        params: Dict[str, Any] = {
            "amount": self.batch_size,
            "token": self._session_token,
        }
        if self.question_type:
            params["type"] = self.question_type

        self.logger.debug(f"Fetching {self.batch_size} questions")
        data = await self._get_json(self.BASE_URL, params)

        code = data.get("response_code", RESPONSE_SUCCESS)
        if code != RESPONSE_SUCCESS:
            if code in (RESPONSE_TOKEN_NOT_FOUND, RESPONSE_TOKEN_EMPTY):
                # Next fetch starts a fresh session
                self._session_token = None
            message = RESPONSE_MESSAGES.get(code, "Unknown error")
            raise ProviderError(f"OpenTDB error {code}: {message}", code=code)

        results = data.get("results")
        if not isinstance(results, list):
            raise ProviderError("OpenTDB response has no results list")
        return results

    def _parse_record(self, record: Dict[str, Any]) -> Question:
        """
        Turn a raw record into a Question.

        Raises:
            KeyError, TypeError, ValueError: If the record is unusable
        """
        for key in ("category", "question", "correct_answer"):
            if not isinstance(record[key], str):
                raise TypeError(f"{key} must be a string, got {record[key]!r}")

        incorrect = record["incorrect_answers"]
        if not isinstance(incorrect, list) or not all(isinstance(a, str) for a in incorrect):
            raise TypeError(f"incorrect_answers must be a list of strings, got {incorrect!r}")

        return Question.from_answers(
            category=record["category"],
            prompt=record["question"],
            correct_answer=record["correct_answer"],
            incorrect_answers=incorrect,
            difficulty=self._parse_difficulty(record.get("difficulty")),
            rng=self._rng,
        )

    def _parse_difficulty(self, value: Any) -> Optional[Difficulty]:
        """Map a raw difficulty to Difficulty; unknown values become None."""
        try:
            return Difficulty(value)
        except ValueError:
            if value:
                self.logger.debug(f"Ignoring unknown difficulty: {value!r}")
            return None

    async def fetch_question(self) -> Question:
        """
        Fetch a batch, drop unsuitable records, and pick one at random.

        Returns:
            Question with shuffled choices

        Raises:
            ProviderError: If fetching fails or nothing usable is left
        """
        records = await self.fetch_batch()

        candidates: List[Question] = []
        for record in records:
            if not isinstance(record, dict):
                self.logger.warning(f"Skipping malformed record: {record!r}")
                continue

            try:
                if self.stale_filter.is_stale(record):
                    self.logger.debug(f"Filtered stale question: {record.get('question')}")
                    continue
                candidates.append(self._parse_record(record))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Skipping unusable record: {e}")

        if not candidates:
            raise ProviderError(
                f"No usable questions in batch of {len(records)}"
            )

        question = self._rng.choice(candidates)
        self.logger.debug(
            f"Picked question from {len(candidates)} candidates: {question.prompt}"
        )
        return question

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
        self._session_token = None
