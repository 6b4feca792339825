"""
Automatic grading.

Pure functions: nothing here touches the database or the request. Questions
are anything with ``question_type``, ``correct_answer`` and ``points``
attributes (the ``Question`` model in practice).

Rules:
- multiple_choice: the submitted option index must equal the correct index
- true_false: trimmed, case-insensitive comparison with "true"/"false"
- short_answer: trimmed, case-folded exact comparison, no partial credit
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Sequence

QUESTION_TYPE_ALIASES = {
    'multiple-choice': 'multiple_choice',
    'true-false': 'true_false',
    'short-answer': 'short_answer',
}


@dataclass(frozen=True)
class GradedAnswer:
    question_index: int
    answer: Any
    is_correct: bool
    points_earned: Decimal


@dataclass
class ScoreResult:
    answers: list = field(default_factory=list)
    score: Decimal = Decimal('0')
    total_points: Decimal = Decimal('0')
    percentage: int = 0


def normalize_question_type(question_type: str) -> str:
    value = (question_type or '').strip().lower()
    return QUESTION_TYPE_ALIASES.get(value, value)


def round_half_up(value) -> int:
    """Round to the nearest integer with halves going up (40.5 -> 41)."""
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def percentage_of(score, total_points) -> int:
    total = Decimal(str(total_points))
    if total <= 0:
        return 0
    return round_half_up(Decimal(str(score)) * 100 / total)


def coerce_option_index(answer) -> Optional[int]:
    """Interpret a submitted multiple-choice answer as an option index, or None."""
    if isinstance(answer, bool) or answer is None:
        return None
    if isinstance(answer, int):
        return answer
    if isinstance(answer, float):
        return int(answer) if answer.is_integer() else None
    if isinstance(answer, str):
        text = answer.strip()
        if text.lstrip('-').isdigit():
            return int(text)
    return None


def _normalize_boolean_text(value) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value).strip().lower()


def _is_correct(question, answer) -> bool:
    if answer is None:
        return False

    question_type = normalize_question_type(question.question_type)

    if question_type == 'multiple_choice':
        submitted = coerce_option_index(answer)
        correct = coerce_option_index(question.correct_answer)
        return submitted is not None and submitted == correct

    if question_type == 'true_false':
        return _normalize_boolean_text(answer) == _normalize_boolean_text(question.correct_answer)

    if question_type == 'short_answer':
        if isinstance(answer, (dict, list)):
            return False
        return str(answer).strip().casefold() == str(question.correct_answer or '').strip().casefold()

    return False


def grade_answer(question, answer, question_index: int) -> GradedAnswer:
    """Grade one answer. Never raises: anything unrecognised is simply wrong."""
    is_correct = _is_correct(question, answer)
    points = Decimal(str(question.points)) if is_correct else Decimal('0')
    return GradedAnswer(
        question_index=question_index,
        answer=answer,
        is_correct=is_correct,
        points_earned=points,
    )


def grade_submission(questions: Sequence, answers: Mapping[int, Any]) -> ScoreResult:
    """
    Grade every question of a quiz against the recorded answers.

    Unanswered questions are graded as wrong and stay in the denominator.
    ``answers`` maps a question's stable index to the submitted answer.
    """
    result = ScoreResult()
    for position, question in enumerate(questions):
        index = getattr(question, 'order_index', position)
        graded = grade_answer(question, answers.get(index), index)
        result.answers.append(graded)
        result.score += graded.points_earned
        result.total_points += Decimal(str(question.points))

    result.percentage = percentage_of(result.score, result.total_points)
    return result


def is_passing(passing_score, percentage) -> Optional[bool]:
    """Pass/fail verdict, or None when the quiz has no passing score."""
    if passing_score is None:
        return None
    return Decimal(str(percentage)) >= Decimal(str(passing_score))
