from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from app.core.config import settings
from app.schemas.lesson import QuizQuestion


@dataclass(frozen=True)
class QuizGrade:
    score: float
    correct_answers: int
    total_questions: int
    passed: bool


def grade_quiz(
    questions: Sequence[QuizQuestion],
    answers: Sequence[Optional[int]],
    pass_score: Optional[float] = None,
) -> QuizGrade:
    """Score = share of positionally matching answers, as a percentage with two decimals."""
    threshold = settings.QUIZ_PASS_SCORE if pass_score is None else pass_score
    total = len(questions)
    correct = sum(
        1
        for index, question in enumerate(questions)
        if index < len(answers) and answers[index] == question.correct_answer_index
    )
    raw = Decimal(100 * correct) / Decimal(total) if total else Decimal(0)
    score = float(raw.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    # pass/fail is decided on the unrounded score
    return QuizGrade(
        score=score,
        correct_answers=correct,
        total_questions=total,
        passed=raw >= Decimal(str(threshold)),
    )
