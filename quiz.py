from typing import Literal

from pydantic import BaseModel

from progression import InvalidAmount

Grade = Literal["excellent", "good", "keep_practicing"]


class QuizResult(BaseModel):
    score: int
    total: int
    percentage: int
    grade: Grade


def grade_quiz(score: int, total: int) -> QuizResult:
    if total < 1:
        raise InvalidAmount(f"quiz must have at least one question, got {total}")
    if not 0 <= score <= total:
        raise InvalidAmount(f"score must be between 0 and {total}, got {score}")
    # round half up
    percentage = (score * 200 + total) // (total * 2)
    if percentage >= 80:
        grade = "excellent"
    elif percentage >= 60:
        grade = "good"
    else:
        grade = "keep_practicing"
    return QuizResult(score=score, total=total, percentage=percentage, grade=grade)
