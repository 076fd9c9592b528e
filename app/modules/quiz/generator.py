"""LLM-backed quiz generation.

Provides ``QuizGenerator.generate(...)`` which prompts the configured model
through pydantic-ai, validates the structured output, and retries with a
linearly increasing delay when the model fails or returns a malformed quiz.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Protocol

from pydantic import BaseModel, Field
from pydantic_ai import Agent

from app.core.config import settings
from app.core.logging import get_logger
from app.modules.quiz.models import (
    OPTION_LABELS,
    Difficulty,
    Question,
    QuestionOptions,
)

logger = get_logger(__name__)


class GeneratedQuestion(BaseModel):
    """Loosely typed so that validation errors can be reported per question."""

    question_id: Optional[int] = None
    question_text: Optional[str] = None
    options: dict[str, str] = Field(default_factory=dict)
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


class GeneratedQuiz(BaseModel):
    """Structured output requested from the model."""

    quiz_title: Optional[str] = None
    topic: Optional[str] = None
    difficulty: Optional[str] = None
    total_questions: Optional[int] = None
    questions: list[GeneratedQuestion] = Field(default_factory=list)


class QuizDraft(BaseModel):
    """Validated generator result, ready to persist."""

    quiz_title: str
    topic: str
    difficulty: Difficulty
    questions: list[Question]


class QuizGenerationError(RuntimeError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = details or {}


class _Runner(Protocol):
    async def run(self, prompt: str) -> Any: ...


def _build_google_model():
    """Build Google Gemini model for pydantic-ai (lazy import)."""
    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    provider = GoogleProvider(api_key=settings.llm.gemini_api_key)
    return GoogleModel(settings.llm.gemini_model, provider=provider)


def _build_openai_compatible_model(api_key: Optional[str], base_url: str, model_name: str, env_name: str):
    """Build an OpenAI-compatible chat model (OpenRouter, Groq) (lazy import)."""
    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.openai import OpenAIProvider

    if not api_key:
        raise QuizGenerationError(
            "LLM API key is not configured",
            {"hint": f"Set {env_name} in your environment"},
        )
    provider = OpenAIProvider(api_key=api_key, base_url=base_url)
    return OpenAIChatModel(model_name, provider=provider)


def _build_model_by_settings():
    provider = (settings.llm.provider or "groq").lower()
    if provider == "openrouter":
        return _build_openai_compatible_model(
            settings.llm.openrouter_api_key,
            "https://openrouter.ai/api/v1",
            settings.llm.openrouter_model,
            "OPENROUTER_API_KEY",
        )
    if provider == "groq":
        return _build_openai_compatible_model(
            settings.llm.groq_api_key,
            settings.llm.groq_api_url,
            settings.llm.groq_model,
            "GROK_API_KEY",
        )
    return _build_google_model()


SYSTEM_PROMPT = (
    "You are an expert examination question generator for competitive exams "
    "and professional certifications. You always return valid JSON that "
    "validates as GeneratedQuiz: {quiz_title, topic, difficulty, "
    "total_questions, questions}. Each question has: {question_id, "
    "question_text, options: {A, B, C, D}, correct_answer, explanation}. "
    "Avoid markdown; do not include code fences."
)

DIFFICULTY_INSTRUCTIONS: dict[Difficulty, str] = {
    Difficulty.EASY: (
        "- Questions should test fundamental concepts and basic understanding\n"
        "- Use straightforward language and common terminology\n"
        "- Focus on recall and recognition\n"
        "- Avoid complex scenarios or multi-step reasoning\n"
        "- Suitable for beginners or introductory level"
    ),
    Difficulty.MEDIUM: (
        "- Questions should require understanding and application of concepts\n"
        "- Include some scenario-based questions\n"
        "- Test analytical thinking and problem-solving\n"
        "- Mix conceptual and practical questions\n"
        "- Suitable for intermediate learners"
    ),
    Difficulty.DIFFICULT: (
        "- Questions should demand deep understanding and critical thinking\n"
        "- Include complex scenarios requiring multi-step reasoning\n"
        "- Test synthesis, evaluation, and advanced application\n"
        "- Use professional/technical terminology\n"
        "- Suitable for advanced learners or professionals"
    ),
    Difficulty.EXTREME: (
        "- Questions should challenge expert-level knowledge\n"
        "- Include edge cases, rare scenarios, and advanced theoretical concepts\n"
        "- Require comprehensive understanding across multiple domains\n"
        "- Test mastery and expert judgment\n"
        "- Suitable only for experts and specialists"
    ),
}


def build_quiz_prompt(
    topic: str,
    difficulty: Difficulty,
    number_of_questions: int,
    additional_description: Optional[str] = None,
) -> str:
    n = int(number_of_questions)
    extra = (
        f"ADDITIONAL CONTEXT/REQUIREMENTS:\n{additional_description.strip()}\n\n"
        if additional_description and additional_description.strip()
        else ""
    )
    return (
        f'TASK: Generate exactly {n} high-quality, exam-grade multiple-choice '
        f'questions on the topic: "{topic}"\n\n'
        f"DIFFICULTY LEVEL: {difficulty.value.upper()}\n"
        f"{DIFFICULTY_INSTRUCTIONS[difficulty]}\n\n"
        "CRITICAL REQUIREMENTS:\n"
        f"1. Generate EXACTLY {n} questions - no more, no less\n"
        "2. Each question must have EXACTLY 4 options (A, B, C, D)\n"
        "3. Each question must have EXACTLY ONE correct answer\n"
        "4. Questions must be factually accurate and professionally written\n"
        "5. Avoid ambiguous or trick questions\n"
        "6. No duplicate or very similar questions\n"
        "7. Options should be plausible and of similar length\n"
        "8. Explanations must justify the correct answer\n"
        "9. question_id values are sequential (1, 2, 3, ...)\n\n"
        f"{extra}"
        f'Use topic "{topic}", difficulty "{difficulty.value}" and '
        f"total_questions {n}. Auto-generate an engaging, descriptive quiz_title."
    )


def validate_generated_quiz(quiz: GeneratedQuiz, expected_questions: int) -> list[str]:
    """Return a list of problems; empty when the quiz is usable."""
    errors: list[str] = []
    if not quiz.quiz_title:
        errors.append("Missing quiz_title")
    if not quiz.topic:
        errors.append("Missing topic")
    if not quiz.questions:
        errors.append("Missing questions array")
        return errors

    if len(quiz.questions) != expected_questions:
        errors.append(
            f"Expected {expected_questions} questions, got {len(quiz.questions)}"
        )

    for index, q in enumerate(quiz.questions, start=1):
        if not q.question_text:
            errors.append(f"Q{index}: Missing question_text")
        if not q.explanation:
            errors.append(f"Q{index}: Missing explanation")
        for label in OPTION_LABELS:
            if not (q.options.get(label) or "").strip():
                errors.append(f"Q{index}: Missing option {label}")
        answer = (q.correct_answer or "").strip().upper()
        if not answer:
            errors.append(f"Q{index}: Missing correct_answer")
        elif answer not in OPTION_LABELS:
            errors.append(f"Q{index}: correct_answer must be A, B, C, or D")
    return errors


def to_draft(quiz: GeneratedQuiz, difficulty: Difficulty, topic: str) -> QuizDraft:
    """Convert a validated quiz, renumbering question ids to 1..N."""
    questions = [
        Question(
            question_id=index,
            question_text=(q.question_text or "").strip(),
            options=QuestionOptions(
                **{label: q.options[label].strip() for label in OPTION_LABELS}
            ),
            correct_answer=(q.correct_answer or "").strip().upper(),
            explanation=(q.explanation or "").strip(),
        )
        for index, q in enumerate(quiz.questions, start=1)
    ]
    return QuizDraft(
        quiz_title=(quiz.quiz_title or "").strip(),
        topic=(quiz.topic or topic).strip(),
        difficulty=difficulty,
        questions=questions,
    )


class QuizGenerator:
    """Generates quizzes with bounded retries.

    ``agent`` is anything with an async ``run(prompt)`` returning an object
    whose ``output`` is a :class:`GeneratedQuiz`; when omitted a pydantic-ai
    agent for the configured provider is built on first use.
    """

    def __init__(
        self,
        *,
        agent: Optional[_Runner] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._agent = agent
        self.max_retries = max(1, int(max_retries or settings.llm.max_retries))
        self.backoff_seconds = (
            settings.llm.backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._sleep = sleep

    def _get_agent(self) -> _Runner:
        if self._agent is None:
            self._agent = Agent[None, GeneratedQuiz](
                model=_build_model_by_settings(),
                output_type=GeneratedQuiz,
                system_prompt=SYSTEM_PROMPT,
                retries=1,
            )
        return self._agent

    async def generate(
        self,
        *,
        topic: str,
        difficulty: Difficulty,
        number_of_questions: int,
        additional_description: Optional[str] = None,
    ) -> QuizDraft:
        prompt = build_quiz_prompt(
            topic, difficulty, number_of_questions, additional_description
        )
        logger.info(
            "Generating quiz topic=%s difficulty=%s questions=%d",
            topic,
            difficulty.value,
            number_of_questions,
        )

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                res = await self._get_agent().run(prompt)
                quiz: GeneratedQuiz = res.output
                errors = validate_generated_quiz(quiz, number_of_questions)
                if errors:
                    raise QuizGenerationError(
                        "Generated quiz failed validation", {"errors": errors}
                    )
                return to_draft(quiz, difficulty, topic)
            except Exception as e:
                last_error = e
                logger.warning("Quiz generation attempt %d failed: %s", attempt, e)
                if attempt < self.max_retries:
                    await self._sleep(attempt * self.backoff_seconds)

        details: dict[str, Any] = {"original_error": str(last_error)}
        if isinstance(last_error, QuizGenerationError):
            details.update(last_error.details)
        raise QuizGenerationError(
            f"Failed to generate quiz after {self.max_retries} attempts: {last_error}",
            details,
        )
