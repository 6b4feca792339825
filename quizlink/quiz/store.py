"""
Quiz Store: persistence of quiz definitions and their submissions.

All reads and writes of quiz rows go through ``QuizStore`` so the answer key
stripping, ownership checks and the conditional submission insert live in
one place.
"""
import random
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from quizlink import db
from quizlink.quiz.errors import Forbidden, LinkIssueError, NotAvailable, NotFound, ValidationError
from quizlink.quiz.grading import coerce_option_index, normalize_question_type, round_half_up
from quizlink.quiz.links import LinkIssuer
from quizlink.quiz.models import QUESTION_TYPES, Question, QuestionOption, Quiz, Submission
from quizlink.security.input_validator import InputValidator, sanitize_input
from quizlink.security.security_logger import SecurityLogger

SETTING_FIELDS = (
    'time_limit_minutes', 'max_attempts', 'show_correct_answers', 'show_score_immediately',
    'randomize_questions', 'require_login', 'available_from', 'available_until', 'passing_score',
)

# How often to retry creation when two creators race on the same fresh token
LINK_INSERT_RETRIES = 3


def _parse_bool(value, field_name, errors):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    errors.append(f"{field_name} must be a boolean")
    return None


def _parse_int(value, field_name, errors, minimum=1):
    if isinstance(value, bool):
        errors.append(f"{field_name} must be an integer")
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        errors.append(f"{field_name} must be an integer")
        return None
    if isinstance(value, float) and not value.is_integer():
        errors.append(f"{field_name} must be an integer")
        return None
    if number < minimum:
        errors.append(f"{field_name} must be at least {minimum}")
        return None
    return number


def _parse_decimal(value, field_name, errors):
    if isinstance(value, bool):
        errors.append(f"{field_name} must be a number")
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors.append(f"{field_name} must be a number")
        return None
    if not number.is_finite():
        errors.append(f"{field_name} must be a number")
        return None
    return number


def _parse_datetime(value, field_name, errors):
    """Parse an ISO 8601 instant into a naive UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            errors.append(f"{field_name} must be an ISO 8601 date-time")
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def validate_settings(data: dict, errors: list) -> dict:
    """
    Validate the settings keys present in ``data``.

    Only keys that are present are returned, so the same routine serves
    creation (after defaults are applied) and partial updates.
    """
    cleaned = {}
    if 'attempts_allowed' in data and 'max_attempts' not in data:
        data = dict(data, max_attempts=data['attempts_allowed'])

    for key in ('show_correct_answers', 'show_score_immediately', 'randomize_questions', 'require_login'):
        if key in data:
            cleaned[key] = _parse_bool(data[key], key, errors)

    if 'max_attempts' in data:
        cleaned['max_attempts'] = _parse_int(data['max_attempts'], 'max_attempts', errors)

    if 'time_limit_minutes' in data:
        value = data['time_limit_minutes']
        cleaned['time_limit_minutes'] = (
            None if value in (None, '') else _parse_int(value, 'time_limit_minutes', errors)
        )

    if 'passing_score' in data:
        value = data['passing_score']
        if value in (None, ''):
            cleaned['passing_score'] = None
        else:
            score = _parse_decimal(value, 'passing_score', errors)
            if score is not None and not (Decimal('0') <= score <= Decimal('100')):
                errors.append("passing_score must be between 0 and 100")
                score = None
            cleaned['passing_score'] = score

    for key in ('available_from', 'available_until'):
        if key in data:
            value = data[key]
            cleaned[key] = None if value in (None, '') else _parse_datetime(value, key, errors)

    return cleaned


def _validate_window(available_from, available_until, errors):
    if available_from and available_until and available_from >= available_until:
        errors.append("available_from must be before available_until")


def validate_question(raw, position: int, errors: list):
    """Validate one question definition; returns a cleaned dict or None."""
    label = f"Question {position + 1}"
    if not isinstance(raw, dict):
        errors.append(f"{label}: must be an object")
        return None

    text = sanitize_input(raw.get('question_text') or raw.get('question') or raw.get('text'))
    if not text:
        errors.append(f"{label}: question text is required")

    question_type = normalize_question_type(raw.get('question_type') or raw.get('type'))
    if question_type not in QUESTION_TYPES:
        errors.append(f"{label}: question type must be one of {', '.join(QUESTION_TYPES)}")
        return None

    points = Decimal('1')
    if raw.get('points') is not None:
        points = _parse_decimal(raw.get('points'), f"{label}: points", errors)
        if points is not None and points <= 0:
            errors.append(f"{label}: points must be positive")
            points = None

    options = []
    correct = raw.get('correct_answer', raw.get('correctAnswer'))
    if question_type == 'multiple_choice':
        raw_options = raw.get('options') or []
        if not isinstance(raw_options, list):
            raw_options = []
        options = [sanitize_input(opt) for opt in raw_options]
        if len(options) < 2 or any(not opt for opt in options):
            errors.append(f"{label}: multiple_choice questions require at least 2 non-empty options")
        index = coerce_option_index(correct)
        if index is None or not (0 <= index < len(options)):
            errors.append(f"{label}: correct_answer must be a valid option index")
        correct = None if index is None else str(index)
    elif question_type == 'true_false':
        if isinstance(correct, bool):
            correct = 'true' if correct else 'false'
        elif isinstance(correct, str):
            correct = correct.strip().lower()
        else:
            correct = ''
        if correct not in ('true', 'false'):
            errors.append(f"{label}: correct_answer must be 'true' or 'false'")
    else:
        correct = sanitize_input(correct)
        if not correct:
            errors.append(f"{label}: correct_answer is required")

    return {
        'question_text': text,
        'question_type': question_type,
        'options': options,
        'correct_answer': correct,
        'points': points,
        'explanation': sanitize_input(raw.get('explanation')) or None,
    }


def validate_definition(definition: dict) -> dict:
    """Validate a whole quiz definition or raise ValidationError listing every problem."""
    if not isinstance(definition, dict):
        raise ValidationError("Quiz definition must be an object")

    errors = []
    title = sanitize_input(definition.get('title'))
    if not title:
        errors.append("Quiz title is required")
    elif not InputValidator.validate_length(title, 1, 255):
        errors.append("Quiz title must be at most 255 characters")

    raw_questions = definition.get('questions') or []
    if not isinstance(raw_questions, list) or not raw_questions:
        errors.append("A quiz needs at least one question")
        raw_questions = []
    questions = [validate_question(q, i, errors) for i, q in enumerate(raw_questions)]

    raw_settings = definition.get('settings') or {}
    if not isinstance(raw_settings, dict):
        errors.append("settings must be an object")
        raw_settings = {}
    settings = {
        'time_limit_minutes': None,
        'max_attempts': 1,
        'show_correct_answers': True,
        'show_score_immediately': True,
        'randomize_questions': False,
        'require_login': True,
        'available_from': None,
        'available_until': None,
        'passing_score': None,
    }
    settings.update(validate_settings(raw_settings, errors))
    _validate_window(settings['available_from'], settings['available_until'], errors)

    if errors:
        raise ValidationError(errors=errors)

    return {
        'title': title,
        'description': sanitize_input(definition.get('description')) or None,
        'class_id': sanitize_input(definition.get('class_id')) or None,
        'questions': questions,
        'settings': settings,
    }


def build_taker_view(quiz: Quiz, rng: random.Random = None) -> dict:
    """
    The quiz as a taker may see it: no correct answers, no explanations.

    With randomize_questions the presentation order is shuffled; every
    question still carries its stable ``question_index``.
    """
    questions = []
    for question in quiz.questions:
        item = {
            'question_index': question.order_index,
            'question_text': question.question_text,
            'question_type': question.question_type,
            'points': float(question.points),
        }
        if question.question_type == 'multiple_choice':
            item['options'] = question.option_texts
        questions.append(item)

    if quiz.randomize_questions:
        (rng or random.Random()).shuffle(questions)

    return {
        'shareable_link': quiz.shareable_link,
        'title': quiz.title,
        'description': quiz.description,
        'teacher': quiz.teacher_name,
        'question_count': len(questions),
        'total_points': float(quiz.get_total_points()),
        'settings': {
            'time_limit_minutes': quiz.time_limit_minutes,
            'max_attempts': quiz.max_attempts,
            'randomize_questions': quiz.randomize_questions,
            'require_login': quiz.require_login,
        },
        'questions': questions,
    }


class QuizStore:
    """
    Durable record of quizzes, their settings and accumulated submissions.

    ``policy`` is the injected AccessPolicy; when omitted the one registered
    on the current app is used.
    """

    def __init__(self, policy=None):
        self._policy = policy

    @property
    def policy(self):
        if self._policy is None:
            from quizlink.auth.identity import get_access_policy
            self._policy = get_access_policy()
        return self._policy

    # -- links --------------------------------------------------------------

    def link_exists(self, token: str) -> bool:
        return db.session.query(Quiz.id).filter_by(shareable_link=token).first() is not None

    # -- teacher operations -------------------------------------------------

    def create_quiz(self, definition: dict, teacher) -> Quiz:
        """
        Validate and persist a new quiz with a freshly issued shareable link.

        ``teacher`` is the authenticated identity (id, display_name, email).
        """
        cleaned = validate_definition(definition)
        issuer = LinkIssuer.from_config(self.link_exists)

        for attempt in range(1, LINK_INSERT_RETRIES + 1):
            quiz = Quiz(
                title=cleaned['title'],
                description=cleaned['description'],
                class_id=cleaned['class_id'],
                teacher_id=str(teacher.id),
                teacher_name=getattr(teacher, 'display_name', None) or 'Teacher',
                teacher_email=getattr(teacher, 'email', None),
                shareable_link=issuer.issue(),
                is_active=True,
                **cleaned['settings'],
            )
            for index, q in enumerate(cleaned['questions']):
                question = Question(
                    question_type=q['question_type'],
                    question_text=q['question_text'],
                    points=q['points'],
                    order_index=index,
                    correct_answer=q['correct_answer'],
                    explanation=q['explanation'],
                )
                for opt_index, option_text in enumerate(q['options']):
                    question.options.append(QuestionOption(option_text=option_text, order_index=opt_index))
                quiz.questions.append(question)

            db.session.add(quiz)
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                current_app.logger.warning(
                    f"Shareable link rejected by unique constraint (attempt {attempt}), reissuing"
                )
                continue

            current_app.logger.info(
                f"Quiz created: ID={quiz.id}, Teacher={quiz.teacher_id}, "
                f"Questions={len(cleaned['questions'])}"
            )
            return quiz

        raise LinkIssueError()

    def get_quiz_for_owner(self, quiz_id: int, owner_id) -> Quiz:
        """Full record including answer keys and submissions, for its teacher only."""
        quiz = db.session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFound("Quiz not found")
        if not self.policy.can_read_results(quiz, owner_id):
            SecurityLogger.log_unauthorized_access(f"quiz:{quiz_id}", owner_id)
            raise Forbidden()
        return quiz

    def _get_quiz_for_modification(self, quiz_id: int, owner_id) -> Quiz:
        quiz = db.session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFound("Quiz not found")
        if not self.policy.can_modify(quiz, owner_id):
            SecurityLogger.log_unauthorized_access(f"quiz:{quiz_id}:modify", owner_id)
            raise Forbidden()
        return quiz

    def update_settings(self, quiz_id: int, owner_id, changes: dict) -> Quiz:
        """Owner edits of title, description and settings. Questions stay fixed."""
        quiz = self._get_quiz_for_modification(quiz_id, owner_id)
        if not isinstance(changes, dict):
            raise ValidationError("Update must be an object")

        errors = []
        updates = {}
        if 'title' in changes:
            title = sanitize_input(changes.get('title'))
            if not title or len(title) > 255:
                errors.append("Quiz title is required and must be at most 255 characters")
            updates['title'] = title
        if 'description' in changes:
            updates['description'] = sanitize_input(changes.get('description')) or None
        if 'class_id' in changes:
            updates['class_id'] = sanitize_input(changes.get('class_id')) or None
        if 'questions' in changes or 'shareable_link' in changes:
            errors.append("Questions and the shareable link cannot be changed after creation")

        settings_source = changes.get('settings', changes)
        if not isinstance(settings_source, dict):
            errors.append("settings must be an object")
            settings_source = {}
        updates.update(validate_settings(settings_source, errors))

        _validate_window(
            updates.get('available_from', quiz.available_from),
            updates.get('available_until', quiz.available_until),
            errors,
        )
        if errors:
            raise ValidationError(errors=errors)

        for key, value in updates.items():
            setattr(quiz, key, value)
        db.session.commit()
        current_app.logger.info(f"Quiz updated: ID={quiz.id}, Fields={sorted(updates)}")
        return quiz

    def deactivate(self, quiz_id: int, owner_id) -> Quiz:
        """Soft delete: the link stops resolving, results stay readable."""
        quiz = self._get_quiz_for_modification(quiz_id, owner_id)
        if quiz.is_active:
            quiz.is_active = False
            db.session.commit()
            current_app.logger.info(f"Quiz deactivated: ID={quiz.id}")
        return quiz

    def list_for_teacher(self, teacher_id) -> list:
        return (
            Quiz.query.filter_by(teacher_id=str(teacher_id), is_active=True)
            .order_by(Quiz.created_at.desc(), Quiz.id.desc())
            .all()
        )

    def submission_stats(self, quiz_ids) -> dict:
        """Map quiz id -> (submission count, rounded average percentage)."""
        if not quiz_ids:
            return {}
        rows = (
            db.session.query(Submission.quiz_id, func.count(Submission.id), func.avg(Submission.percentage))
            .filter(Submission.quiz_id.in_(list(quiz_ids)))
            .group_by(Submission.quiz_id)
            .all()
        )
        return {
            quiz_id: (count, round_half_up(avg) if avg is not None else 0)
            for quiz_id, count, avg in rows
        }

    # -- taker operations ---------------------------------------------------

    def resolve_active(self, link: str, now: datetime = None) -> Quiz:
        """The active quiz behind ``link``, checked against its availability window."""
        quiz = None
        if link and len(link) <= 64:
            quiz = Quiz.query.filter_by(shareable_link=link, is_active=True).first()
        if quiz is None:
            SecurityLogger.log_unknown_link(link or "")
            raise NotFound()
        reason = quiz.availability_error(now)
        if reason:
            raise NotAvailable(reason)
        return quiz

    def get_quiz_for_taker(self, link: str, now: datetime = None, rng: random.Random = None) -> dict:
        return build_taker_view(self.resolve_active(link, now), rng)

    # -- submissions ----------------------------------------------------------

    def find_submission(self, session_id: str):
        return Submission.query.filter_by(session_id=session_id).first()

    def append_submission(self, submission: Submission):
        """
        Conditionally insert a submission keyed by its session id.

        Returns ``(submission, created)``. When another finalize for the same
        session got there first, the unique constraint rejects this insert
        and the stored submission is returned with ``created=False``.
        """
        db.session.add(submission)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            existing = self.find_submission(submission.session_id)
            if existing is None:
                raise
            current_app.logger.info(
                f"Duplicate finalize ignored: session={submission.session_id}, submission={existing.id}"
            )
            return existing, False
        return submission, True
