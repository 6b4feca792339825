"""
Results analytics for teachers.

Everything is recomputed from the stored submissions on each call; there is
no cached aggregate to keep in step with new submissions.
"""
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Optional

from quizlink.quiz.grading import is_passing, round_half_up


@dataclass
class QuestionStats:
    question_index: int
    answered: int = 0
    correct: int = 0
    correct_rate: int = 0


@dataclass
class QuizAnalytics:
    total_submissions: int = 0
    average_percentage: int = 0
    highest_percentage: int = 0
    lowest_percentage: int = 0
    pass_rate: Optional[int] = None
    question_stats: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def summarize(submissions, passing_score=None, question_count: int = 0) -> QuizAnalytics:
    """
    Summary statistics over a quiz's submissions.

    ``pass_rate`` is None unless a passing score is configured; with a passing
    score and no submissions it is 0. ``question_count`` adds per-question
    correctness for the teacher's results page.
    """
    submissions = list(submissions)
    percentages = [s.percentage for s in submissions]

    analytics = QuizAnalytics(total_submissions=len(submissions))
    if percentages:
        analytics.average_percentage = round_half_up(Decimal(sum(percentages)) / len(percentages))
        analytics.highest_percentage = max(percentages)
        analytics.lowest_percentage = min(percentages)

    if passing_score is not None:
        if percentages:
            passed = sum(1 for p in percentages if is_passing(passing_score, p))
            analytics.pass_rate = round_half_up(Decimal(passed) * 100 / len(percentages))
        else:
            analytics.pass_rate = 0

    if question_count:
        stats = {i: QuestionStats(question_index=i) for i in range(question_count)}
        for submission in submissions:
            for answer in submission.answers:
                item = stats.get(answer.question_index)
                if item is None:
                    continue
                if answer.answer is not None:
                    item.answered += 1
                if answer.is_correct:
                    item.correct += 1
        for item in stats.values():
            item.correct_rate = round_half_up(Decimal(item.correct) * 100 / len(submissions)) if submissions else 0
        analytics.question_stats = [stats[i] for i in range(question_count)]

    return analytics


def summarize_quiz(quiz) -> QuizAnalytics:
    return summarize(quiz.submissions.all(), quiz.passing_score, quiz.get_question_count())
