"""
Database models for quiz functionality.

Supports multiple question types:
- multiple_choice: Multiple choice questions with ordered options
- true_false: True/False questions
- short_answer: Short text answer questions
"""
from datetime import datetime
from decimal import Decimal

from quizlink import db


QUESTION_TYPES = ('multiple_choice', 'true_false', 'short_answer')

FINALIZED_SUBMITTED = 'submitted'
FINALIZED_AUTO_SUBMITTED = 'auto_submitted'


class Quiz(db.Model):
    """
    Model for a shareable quiz.

    The integer id is internal; takers only ever see ``shareable_link``.
    Settings live as columns on the quiz row.
    """
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    class_id = db.Column(db.String(64), nullable=True, index=True)  # Optional external class reference

    # Owning teacher as reported by the auth service
    teacher_id = db.Column(db.String(128), nullable=False, index=True)
    teacher_name = db.Column(db.String(255), nullable=False)
    teacher_email = db.Column(db.String(255), nullable=True)

    # Settings
    time_limit_minutes = db.Column(db.Integer, nullable=True)  # None means untimed
    max_attempts = db.Column(db.Integer, nullable=False, default=1)
    show_correct_answers = db.Column(db.Boolean, nullable=False, default=True)
    show_score_immediately = db.Column(db.Boolean, nullable=False, default=True)
    randomize_questions = db.Column(db.Boolean, nullable=False, default=False)
    require_login = db.Column(db.Boolean, nullable=False, default=True)
    available_from = db.Column(db.DateTime, nullable=True)
    available_until = db.Column(db.DateTime, nullable=True)
    passing_score = db.Column(db.Numeric(5, 2), nullable=True)  # Passing percentage

    shareable_link = db.Column(db.String(64), nullable=False, unique=True, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    questions = db.relationship(
        "Question", backref="quiz", cascade="all, delete-orphan", order_by="Question.order_index"
    )
    submissions = db.relationship(
        "Submission", backref="quiz", lazy="dynamic", cascade="all, delete-orphan", order_by="Submission.id"
    )

    __table_args__ = (
        db.Index('ix_quizzes_teacher_active', 'teacher_id', 'is_active'),
    )

    def __repr__(self) -> str:
        return f"<Quiz {self.id}: {self.title}>"

    def get_total_points(self) -> Decimal:
        """Calculate total points for all questions."""
        return sum((Decimal(q.points) for q in self.questions), Decimal('0'))

    def get_question_count(self) -> int:
        return len(self.questions)

    def get_submission_count(self) -> int:
        return self.submissions.count()

    def availability_error(self, now: datetime = None):
        """Return a reason string if the quiz cannot be started at ``now``, else None."""
        now = now or datetime.utcnow()
        if self.available_from and now < self.available_from:
            return "Quiz is not yet available"
        if self.available_until and now > self.available_until:
            return "Quiz is no longer available"
        return None

    def settings_dict(self) -> dict:
        return {
            'time_limit_minutes': self.time_limit_minutes,
            'max_attempts': self.max_attempts,
            'show_correct_answers': self.show_correct_answers,
            'show_score_immediately': self.show_score_immediately,
            'randomize_questions': self.randomize_questions,
            'require_login': self.require_login,
            'available_from': self.available_from.isoformat() if self.available_from else None,
            'available_until': self.available_until.isoformat() if self.available_until else None,
            'passing_score': float(self.passing_score) if self.passing_score is not None else None,
        }


class Question(db.Model):
    """
    Model for quiz questions.

    ``order_index`` is the question's stable position in the quiz and is the
    key every stored answer refers to, whatever order a taker saw.
    """
    __tablename__ = "quiz_questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    question_type = db.Column(db.String(50), nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    points = db.Column(db.Numeric(6, 2), nullable=False, default=1)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    # For multiple_choice: index into options, stored as text
    # For true_false: "true" or "false"
    # For short_answer: the expected answer
    correct_answer = db.Column(db.Text, nullable=False)
    explanation = db.Column(db.Text, nullable=True)

    options = db.relationship(
        "QuestionOption", backref="question", cascade="all, delete-orphan", order_by="QuestionOption.order_index"
    )

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'order_index', name='uq_quiz_question_order'),
    )

    def __repr__(self) -> str:
        return f"<Question {self.id}: {self.question_type}>"

    @property
    def option_texts(self) -> list:
        return [opt.option_text for opt in self.options]

    def get_correct_answer(self):
        """Correct answer in the shape the taker submits it (index for multiple choice)."""
        if self.question_type == 'multiple_choice':
            return int(self.correct_answer)
        return self.correct_answer


class QuestionOption(db.Model):
    """
    Model for multiple choice question options.
    Only used for multiple_choice questions.
    """
    __tablename__ = "quiz_question_options"

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey("quiz_questions.id", ondelete='CASCADE'), nullable=False, index=True)
    option_text = db.Column(db.Text, nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<QuestionOption {self.id}: {self.option_text[:50]}>"


class Submission(db.Model):
    """
    One finalized taking session. Append-only: never updated once written.

    ``session_id`` is the idempotency key of the session that produced it;
    the unique constraint is what makes finalize write at most once.
    """
    __tablename__ = "quiz_submissions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    session_id = db.Column(db.String(64), nullable=False, unique=True)
    taker_id = db.Column(db.String(128), nullable=False)
    taker_name = db.Column(db.String(255), nullable=False)
    score = db.Column(db.Numeric(8, 2), nullable=False)
    total_points = db.Column(db.Numeric(8, 2), nullable=False)
    percentage = db.Column(db.Integer, nullable=False)
    time_spent_seconds = db.Column(db.Integer, nullable=False, default=0)
    finalized_by = db.Column(db.String(20), nullable=False, default=FINALIZED_SUBMITTED)
    ip_address = db.Column(db.String(45), nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    answers = db.relationship(
        "SubmissionAnswer", backref="submission", cascade="all, delete-orphan", order_by="SubmissionAnswer.question_index"
    )

    __table_args__ = (
        db.Index('ix_quiz_submissions_quiz_taker', 'quiz_id', 'taker_id'),
    )

    def __repr__(self) -> str:
        return f"<Submission {self.id}: Taker {self.taker_id}, Quiz {self.quiz_id}>"

    def to_dict(self, include_answers: bool = True) -> dict:
        data = {
            'id': self.id,
            'taker_id': self.taker_id,
            'taker_name': self.taker_name,
            'score': float(self.score),
            'total_points': float(self.total_points),
            'percentage': self.percentage,
            'time_spent_seconds': self.time_spent_seconds,
            'finalized_by': self.finalized_by,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
        }
        if include_answers:
            data['answers'] = [a.to_dict() for a in self.answers]
        return data


class SubmissionAnswer(db.Model):
    """
    A graded answer inside a submission, keyed by the question's stable index.
    """
    __tablename__ = "quiz_submission_answers"

    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(db.Integer, db.ForeignKey("quiz_submissions.id", ondelete='CASCADE'), nullable=False, index=True)
    question_index = db.Column(db.Integer, nullable=False)
    answer = db.Column(db.JSON, nullable=True)  # None when the question was left unanswered
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    points_earned = db.Column(db.Numeric(6, 2), nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('submission_id', 'question_index', name='uq_submission_question'),
    )

    def __repr__(self) -> str:
        return f"<SubmissionAnswer {self.id}: Question {self.question_index}>"

    def to_dict(self) -> dict:
        return {
            'question_index': self.question_index,
            'answer': self.answer,
            'is_correct': self.is_correct,
            'points_earned': float(self.points_earned),
        }
