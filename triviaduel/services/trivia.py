import html
import random
from typing import List, Optional

import httpx
from pydantic import BaseModel

from triviaduel.config import get_settings

settings = get_settings()


class TriviaQuestion(BaseModel):
    """One multiple-choice question as both players see it"""
    question: str
    correct_answer: str
    answers: List[str]  # correct + incorrect, already shuffled


class TriviaSourceError(Exception):
    """The question source could not produce a question set."""


class OpenTriviaService:
    """Service for the Open Trivia DB public API"""

    # Open Trivia DB response code for success
    RESPONSE_OK = 0

    def __init__(
        self,
        base_url: Optional[str] = None,
        rng: Optional[random.Random] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.trivia_api_base
        self.rng = rng or random.Random()
        self.transport = transport

    def format_question(self, raw: dict) -> TriviaQuestion:
        """Decode HTML entities and shuffle the answer options once."""
        correct = html.unescape(raw["correct_answer"])
        answers = [html.unescape(a) for a in raw.get("incorrect_answers", [])] + [correct]
        self.rng.shuffle(answers)
        return TriviaQuestion(
            question=html.unescape(raw["question"]),
            correct_answer=correct,
            answers=answers,
        )

    async def fetch_questions(
        self,
        category: str,
        difficulty: str,
        amount: Optional[int] = None,
    ) -> List[TriviaQuestion]:
        """
        Fetch an ordered question set for a category/difficulty.
        Raises TriviaSourceError if the API is unreachable or has no questions.
        """
        params = {
            "amount": amount or settings.questions_per_quiz,
            "category": category,
            "difficulty": difficulty,
            "type": "multiple",
        }
        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.get(self.base_url, params=params, timeout=10.0)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise TriviaSourceError(f"Trivia API returned {e.response.status_code}")
            except httpx.RequestError:
                raise TriviaSourceError("Failed to connect to Open Trivia DB")

        if data.get("response_code") != self.RESPONSE_OK or not data.get("results"):
            raise TriviaSourceError(
                f"No questions for category={category} difficulty={difficulty}"
            )

        return [self.format_question(q) for q in data["results"]]


# Singleton
trivia_service = OpenTriviaService()
