"""
Session Controller: one taker's timed attempt, from start to finalize.

    not_started --start--> in_progress --submit/auto_submit--> submitted | auto_submitted

Session state is not kept on the server between requests. It travels in a
signed, timestamped token that the taker's browser sends back with every call,
so an abandoned session leaves nothing behind. The only write is finalize, and
finalize is idempotent: racing or retried calls for one session store exactly
one Submission, guarded by a per-session lock in this process and by the
unique ``session_id`` column across processes.
"""
import secrets
import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from quizlink import db
from quizlink.quiz.errors import (
    AlreadySubmitted,
    AttemptsExceeded,
    InvalidSessionToken,
    LoginRequired,
    NotFound,
    SessionExpired,
    ValidationError,
)
from quizlink.quiz.grading import grade_submission, is_passing
from quizlink.quiz.ledger import AttemptLedger
from quizlink.quiz.models import (
    FINALIZED_AUTO_SUBMITTED,
    FINALIZED_SUBMITTED,
    Quiz,
    Submission,
    SubmissionAnswer,
)
from quizlink.quiz.store import QuizStore
from quizlink.security.input_validator import InputValidator, sanitize_input
from quizlink.security.security_logger import SecurityLogger

STATE_IN_PROGRESS = 'in_progress'
FINALIZED_STATES = (FINALIZED_SUBMITTED, FINALIZED_AUTO_SUBMITTED)

MAX_ANSWER_LENGTH = 5000


@dataclass
class TakingSession:
    session_id: str
    quiz_id: int
    quiz_link: str
    taker_id: str
    taker_name: str
    authenticated: bool
    started_at: datetime
    question_count: int
    deadline_at: Optional[datetime] = None
    time_limit_seconds: Optional[int] = None
    answers: dict = field(default_factory=dict)
    state: str = STATE_IN_PROGRESS
    submission_id: Optional[int] = None

    @property
    def is_finalized(self) -> bool:
        return self.state in FINALIZED_STATES

    def is_past_deadline(self, now: datetime, grace_seconds: int = 0) -> bool:
        if self.deadline_at is None:
            return False
        return now > self.deadline_at + timedelta(seconds=grace_seconds)

    def seconds_remaining(self, now: datetime) -> Optional[int]:
        if self.deadline_at is None:
            return None
        return max(int((self.deadline_at - now).total_seconds()), 0)

    def to_payload(self) -> dict:
        return {
            'sid': self.session_id,
            'qid': self.quiz_id,
            'link': self.quiz_link,
            'tid': self.taker_id,
            'name': self.taker_name,
            'auth': self.authenticated,
            'start': self.started_at.isoformat(),
            'qc': self.question_count,
            'deadline': self.deadline_at.isoformat() if self.deadline_at else None,
            'limit': self.time_limit_seconds,
            'answers': {str(k): v for k, v in self.answers.items()},
            'state': self.state,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "TakingSession":
        return cls(
            session_id=payload['sid'],
            quiz_id=int(payload['qid']),
            quiz_link=payload['link'],
            taker_id=payload['tid'],
            taker_name=payload['name'],
            authenticated=bool(payload['auth']),
            started_at=datetime.fromisoformat(payload['start']),
            question_count=int(payload['qc']),
            deadline_at=datetime.fromisoformat(payload['deadline']) if payload.get('deadline') else None,
            time_limit_seconds=payload.get('limit'),
            answers={int(k): v for k, v in (payload.get('answers') or {}).items()},
            state=payload.get('state', STATE_IN_PROGRESS),
        )

    def to_dict(self, now: datetime = None) -> dict:
        """Public view of the session for the taker UI."""
        now = now or datetime.utcnow()
        return {
            'session_id': self.session_id,
            'taker_name': self.taker_name,
            'started_at': self.started_at.isoformat(),
            'deadline_at': self.deadline_at.isoformat() if self.deadline_at else None,
            'seconds_remaining': self.seconds_remaining(now),
            'answered': sorted(self.answers),
            'state': self.state,
        }


class SessionTokenSerializer:
    """Signs taking sessions so the browser can carry them without tampering."""

    salt = 'quizlink-taking-session'

    def __init__(self, secret_key: str, max_age_seconds: int):
        self._serializer = URLSafeTimedSerializer(secret_key, salt=self.salt)
        self.max_age_seconds = max_age_seconds

    @classmethod
    def from_app(cls) -> "SessionTokenSerializer":
        return cls(
            current_app.config['SECRET_KEY'],
            current_app.config.get('SESSION_TOKEN_MAX_AGE_SECONDS', 24 * 3600),
        )

    def dumps(self, session: TakingSession) -> str:
        return self._serializer.dumps(session.to_payload())

    def loads(self, token: str) -> TakingSession:
        if not token or not isinstance(token, str):
            raise InvalidSessionToken("session_token is required")
        try:
            payload = self._serializer.loads(token, max_age=self.max_age_seconds)
        except SignatureExpired:
            SecurityLogger.log_invalid_session_token("expired")
            raise InvalidSessionToken("Session token has expired")
        except BadSignature:
            SecurityLogger.log_invalid_session_token("bad signature")
            raise InvalidSessionToken()
        try:
            return TakingSession.from_payload(payload)
        except (KeyError, TypeError, ValueError):
            SecurityLogger.log_invalid_session_token("malformed payload")
            raise InvalidSessionToken()


@dataclass
class SubmissionResult:
    """Outcome of finalize, shaped for the taker according to the quiz settings."""
    quiz: Quiz
    submission: Submission
    created: bool

    def to_response(self) -> dict:
        quiz = self.quiz
        submission = self.submission
        data = {
            'submitted': True,
            'already_submitted': not self.created,
            'finalized_by': submission.finalized_by,
            'time_spent_seconds': submission.time_spent_seconds,
            'submitted_at': submission.submitted_at.isoformat() if submission.submitted_at else None,
        }
        if quiz.show_score_immediately:
            data['score'] = float(submission.score)
            data['total_points'] = float(submission.total_points)
            data['percentage'] = submission.percentage
        if quiz.passing_score is not None:
            data['passed'] = is_passing(quiz.passing_score, submission.percentage)
        if quiz.show_correct_answers:
            graded = {a.question_index: a for a in submission.answers}
            data['correct_answers'] = [
                {
                    'question_index': q.order_index,
                    'correct_answer': q.get_correct_answer(),
                    'explanation': q.explanation,
                    'your_answer': graded[q.order_index].answer if q.order_index in graded else None,
                    'is_correct': graded[q.order_index].is_correct if q.order_index in graded else False,
                }
                for q in quiz.questions
            ]
        return data


class _SessionLocks:
    """One lock per session id, dropped once nobody holds a reference."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def get(self, session_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock


_finalize_locks = _SessionLocks()


def _normalize_answers(answers) -> dict:
    """Accept [{'question_index': i, 'answer': a}, ...] or {i: a} and return {i: a}."""
    if answers is None:
        return {}
    if isinstance(answers, dict):
        items = answers.items()
    elif isinstance(answers, list):
        items = []
        for entry in answers:
            if not isinstance(entry, dict) or 'question_index' not in entry:
                raise ValidationError("Each answer needs a question_index")
            items.append((entry['question_index'], entry.get('answer')))
    else:
        raise ValidationError("answers must be a list or an object")

    normalized = {}
    for key, value in items:
        try:
            index = int(key)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid question_index: {key!r}")
        normalized[index] = value
    return normalized


def _check_answer_value(value):
    if value is not None and not isinstance(value, (str, int, float, bool)):
        raise ValidationError("Answers must be a string, number or boolean")
    if isinstance(value, str) and len(value) > MAX_ANSWER_LENGTH:
        raise ValidationError(f"Answers must be at most {MAX_ANSWER_LENGTH} characters")


class SessionController:
    """
    Drives taking sessions against the Quiz Store and the Attempt Ledger.

    ``clock`` returns naive UTC datetimes; tests pass their own.
    """

    def __init__(self, store: QuizStore = None, ledger: AttemptLedger = None,
                 clock: Callable[[], datetime] = None, grace_seconds: int = None):
        self.store = store or QuizStore()
        self.ledger = ledger or AttemptLedger()
        self.clock = clock or datetime.utcnow
        self._grace_seconds = grace_seconds

    @property
    def grace_seconds(self) -> int:
        if self._grace_seconds is None:
            return int(current_app.config.get('TIME_LIMIT_GRACE_SECONDS', 0))
        return self._grace_seconds

    # -- start ----------------------------------------------------------------

    def start(self, link: str, identity=None, guest_name: str = None) -> TakingSession:
        """
        Start a session for ``identity`` (an authenticated user) or a named guest.

        Raises NotFound/NotAvailable for a bad link, LoginRequired when the quiz
        needs an account, AttemptsExceeded when the taker has used up the quiz's
        attempts. Nothing is written either way.
        """
        now = self.clock()
        quiz = self.store.resolve_active(link, now)

        if identity is not None and getattr(identity, 'is_authenticated', False):
            taker_id = str(identity.id)
            taker_name = getattr(identity, 'display_name', None) or 'Anonymous User'
            authenticated = True
        elif quiz.require_login:
            raise LoginRequired()
        else:
            taker_name = sanitize_input(guest_name)
            if not InputValidator.validate_display_name(taker_name):
                raise ValidationError("Please enter your name to start this quiz")
            taker_id = f"guest_{secrets.token_hex(8)}"
            authenticated = False

        previous = self.ledger.previous_attempts(quiz.id, taker_id)
        if previous >= quiz.max_attempts:
            SecurityLogger.log_attempts_exceeded(quiz.id, taker_id, previous)
            raise AttemptsExceeded(f"Maximum attempts ({quiz.max_attempts}) reached for this quiz")

        time_limit_seconds = quiz.time_limit_minutes * 60 if quiz.time_limit_minutes else None
        session = TakingSession(
            session_id=secrets.token_urlsafe(16),
            quiz_id=quiz.id,
            quiz_link=quiz.shareable_link,
            taker_id=taker_id,
            taker_name=taker_name,
            authenticated=authenticated,
            started_at=now,
            question_count=quiz.get_question_count(),
            deadline_at=now + timedelta(seconds=time_limit_seconds) if time_limit_seconds else None,
            time_limit_seconds=time_limit_seconds,
        )
        current_app.logger.info(
            f"Quiz session started: quiz={quiz.id}, taker={taker_id}, "
            f"attempt={previous + 1}/{quiz.max_attempts}, session={session.session_id}"
        )
        return session

    # -- in progress ------------------------------------------------------------

    def record_answer(self, session: TakingSession, question_index, answer) -> TakingSession:
        """Record (or overwrite) one answer. Touches nothing but the session."""
        if session.is_finalized:
            raise AlreadySubmitted()
        if session.is_past_deadline(self.clock(), self.grace_seconds):
            raise SessionExpired()
        try:
            index = int(question_index)
        except (TypeError, ValueError):
            raise ValidationError("question_index must be an integer")
        if not 0 <= index < session.question_count:
            raise ValidationError(f"question_index {index} is out of range")
        _check_answer_value(answer)
        session.answers[index] = answer
        return session

    # -- finalize ---------------------------------------------------------------

    def submit(self, session: TakingSession, answers=None, time_spent_seconds=None,
               ip_address: str = None) -> SubmissionResult:
        """User-initiated finalize."""
        return self.finalize(session, FINALIZED_SUBMITTED, answers, time_spent_seconds, ip_address)

    def auto_submit(self, session: TakingSession, answers=None, time_spent_seconds=None,
                    ip_address: str = None) -> SubmissionResult:
        """Deadline-triggered finalize, sent by the taker's countdown."""
        return self.finalize(session, FINALIZED_AUTO_SUBMITTED, answers, time_spent_seconds, ip_address)

    def finalize(self, session: TakingSession, path: str, answers=None, time_spent_seconds=None,
                 ip_address: str = None) -> SubmissionResult:
        """
        Grade the session and store it as exactly one Submission.

        Safe to call any number of times for the same session: after the first
        success every call returns the stored submission with ``created=False``.
        """
        incoming = _normalize_answers(answers)

        with _finalize_locks.get(session.session_id):
            existing = self.store.find_submission(session.session_id)
            if existing is not None:
                session.state = existing.finalized_by
                session.submission_id = existing.id
                return SubmissionResult(quiz=existing.quiz, submission=existing, created=False)

            quiz = db.session.get(Quiz, session.quiz_id)
            if quiz is None or not quiz.is_active or quiz.shareable_link != session.quiz_link:
                raise NotFound()

            now = self.clock()
            late = session.is_past_deadline(now, self.grace_seconds)

            # After the deadline only answers already recorded in the token count
            if late and incoming:
                current_app.logger.info(
                    f"Ignoring {len(incoming)} late answers for session {session.session_id}"
                )
            else:
                for index, value in incoming.items():
                    if not 0 <= index < quiz.get_question_count():
                        raise ValidationError(f"question_index {index} is out of range")
                    _check_answer_value(value)
                session.answers.update(incoming)

            previous = self.ledger.previous_attempts(quiz.id, session.taker_id)
            if previous >= quiz.max_attempts:
                SecurityLogger.log_attempts_exceeded(quiz.id, session.taker_id, previous)
                raise AttemptsExceeded(f"Maximum attempts ({quiz.max_attempts}) reached for this quiz")

            finalized_by = FINALIZED_AUTO_SUBMITTED if late else path

            result = grade_submission(quiz.questions, session.answers)
            submission = Submission(
                quiz_id=quiz.id,
                session_id=session.session_id,
                taker_id=session.taker_id,
                taker_name=session.taker_name,
                score=result.score,
                total_points=result.total_points,
                percentage=result.percentage,
                time_spent_seconds=self._time_spent(session, now, time_spent_seconds),
                finalized_by=finalized_by,
                ip_address=ip_address,
                started_at=session.started_at,
                submitted_at=now,
            )
            for graded in result.answers:
                submission.answers.append(SubmissionAnswer(
                    question_index=graded.question_index,
                    answer=graded.answer,
                    is_correct=graded.is_correct,
                    points_earned=graded.points_earned,
                ))

            stored, created = self.store.append_submission(submission)
            session.state = stored.finalized_by
            session.submission_id = stored.id

        if created:
            current_app.logger.info(
                f"Quiz session finalized: quiz={quiz.id}, taker={session.taker_id}, "
                f"session={session.session_id}, by={stored.finalized_by}, "
                f"score={stored.score}/{stored.total_points} ({stored.percentage}%)"
            )
        return SubmissionResult(quiz=stored.quiz, submission=stored, created=created)

    @staticmethod
    def _time_spent(session: TakingSession, now: datetime, reported) -> int:
        """
        Seconds spent, never more than the server measured and never more
        than the time limit. A client-reported figure can only lower it.
        """
        elapsed = max(int((now - session.started_at).total_seconds()), 0)
        spent = elapsed
        if reported is not None and not isinstance(reported, bool):
            try:
                spent = min(max(int(reported), 0), elapsed)
            except (TypeError, ValueError, OverflowError):
                spent = elapsed
        if session.time_limit_seconds:
            spent = min(spent, session.time_limit_seconds)
        return spent
