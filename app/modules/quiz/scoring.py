"""Attempt scoring and grade derivation.

Scoring never raises. Every scored answer lands in exactly one bucket;
answers that reference a question id the quiz does not have count as wrong,
and quiz questions with no answer entry count as unattempted. Only the first
answer for a question id is scored; repeats are ignored.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from app.modules.quiz.models import Question, Score, UserAnswer


GRADE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (90, "A+"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
)


def score(questions: Sequence[Question], answers: Iterable[UserAnswer]) -> Score:
    """Score ``answers`` against ``questions`` and set ``is_correct`` on each answer."""
    by_id = {q.question_id: q for q in questions}
    seen: set[int] = set()
    correct = wrong = unattempted = 0

    for answer in answers:
        if answer.question_id in seen:
            answer.is_correct = False
            continue
        seen.add(answer.question_id)
        question = by_id.get(answer.question_id)
        if not answer.selected_answer:
            unattempted += 1
            answer.is_correct = False
        elif question is not None and answer.selected_answer == question.correct_answer:
            correct += 1
            answer.is_correct = True
        else:
            wrong += 1
            answer.is_correct = False

    # Questions the payload left out entirely are unattempted too.
    unattempted += sum(1 for qid in by_id if qid not in seen)

    total = len(questions)
    percentage = round(correct / total * 100, 2) if total > 0 else 0.0
    return Score(
        total=total,
        correct=correct,
        wrong=wrong,
        unattempted=unattempted,
        percentage=percentage,
    )


def grade(percentage: float) -> str:
    for threshold, letter in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return letter
    return "F"
