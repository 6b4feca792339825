"""
Attempt Ledger.

Attempts are never stored separately: the count is read straight from the
submissions table, so it always agrees with what was actually persisted.
"""
from quizlink import db
from quizlink.quiz.models import Submission


class AttemptLedger:

    def previous_attempts(self, quiz_id: int, taker_id: str) -> int:
        return (
            db.session.query(Submission.id)
            .filter_by(quiz_id=quiz_id, taker_id=str(taker_id))
            .count()
        )
