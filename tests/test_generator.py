from types import SimpleNamespace

import pytest

from app.modules.quiz.generator import (
    GeneratedQuestion,
    GeneratedQuiz,
    QuizGenerationError,
    QuizGenerator,
    build_quiz_prompt,
    validate_generated_quiz,
)
from app.modules.quiz.models import Difficulty


def generated_quiz(n: int, **overrides) -> GeneratedQuiz:
    data = dict(
        quiz_title="Networking basics",
        topic="Networking",
        difficulty="easy",
        total_questions=n,
        questions=[
            GeneratedQuestion(
                question_id=i * 10,
                question_text=f"Question {i}",
                options={"A": "one", "B": "two", "C": "three", "D": "four"},
                correct_answer="b",
                explanation="Two is right.",
            )
            for i in range(1, n + 1)
        ],
    )
    data.update(overrides)
    return GeneratedQuiz(**data)


class FakeAgent:
    def __init__(self, *results):
        self.results = list(results)
        self.prompts: list[str] = []

    async def run(self, prompt: str):
        self.prompts.append(prompt)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return SimpleNamespace(output=result)


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


async def test_generate_returns_renumbered_draft():
    agent = FakeAgent(generated_quiz(3))
    generator = QuizGenerator(agent=agent, max_retries=3, backoff_seconds=2)

    draft = await generator.generate(
        topic="Networking", difficulty=Difficulty.EASY, number_of_questions=3
    )

    assert [q.question_id for q in draft.questions] == [1, 2, 3]
    assert all(q.correct_answer == "B" for q in draft.questions)
    assert draft.difficulty == Difficulty.EASY
    assert "Networking" in agent.prompts[0]


async def test_retries_with_linear_backoff_then_succeeds():
    sleep = RecordingSleep()
    agent = FakeAgent(RuntimeError("timeout"), generated_quiz(2, questions=[]), generated_quiz(2))
    generator = QuizGenerator(agent=agent, max_retries=3, backoff_seconds=2, sleep=sleep)

    draft = await generator.generate(
        topic="Networking", difficulty=Difficulty.MEDIUM, number_of_questions=2
    )

    assert len(draft.questions) == 2
    assert sleep.delays == [2, 4]


async def test_gives_up_after_max_retries():
    sleep = RecordingSleep()
    agent = FakeAgent(generated_quiz(1), generated_quiz(1), generated_quiz(1))
    generator = QuizGenerator(agent=agent, max_retries=3, backoff_seconds=1.5, sleep=sleep)

    with pytest.raises(QuizGenerationError) as excinfo:
        await generator.generate(
            topic="Networking", difficulty=Difficulty.EASY, number_of_questions=5
        )

    assert sleep.delays == [1.5, 3.0]
    assert "Expected 5 questions, got 1" in excinfo.value.details["errors"]


def test_validation_reports_each_problem():
    quiz = generated_quiz(1)
    quiz.questions[0].options = {"A": "one", "B": "", "C": "three"}
    quiz.questions[0].correct_answer = "E"

    errors = validate_generated_quiz(quiz, 2)

    assert "Expected 2 questions, got 1" in errors
    assert "Q1: Missing option B" in errors
    assert "Q1: Missing option D" in errors
    assert "Q1: correct_answer must be A, B, C, or D" in errors


def test_validation_passes_clean_quiz():
    assert validate_generated_quiz(generated_quiz(4), 4) == []


def test_prompt_mentions_difficulty_and_description():
    prompt = build_quiz_prompt("Chemistry", Difficulty.EXTREME, 10, "Organic reactions only")

    assert "Chemistry" in prompt
    assert "10" in prompt
    assert "expert" in prompt.lower()
    assert "Organic reactions only" in prompt
