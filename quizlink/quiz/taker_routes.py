"""
Taker routes for quiz functionality.

Anyone holding a shareable link can:
- View the quiz (without answers)
- Start a timed session (as themselves, or as a named guest if allowed)
- Save answers as they go
- Submit, or have their countdown submit for them when time runs out

Session state travels in a signed ``session_token`` returned by start and
answer; nothing is stored until submit.
"""
from flask import current_app, jsonify, request
from flask_login import current_user

from quizlink.quiz import quiz_bp
from quizlink.quiz.errors import Forbidden, InvalidSessionToken, ValidationError
from quizlink.quiz.sessions import SessionController, SessionTokenSerializer
from quizlink.quiz.store import QuizStore
from quizlink.security.rate_limiter import rate_limit

SUBMIT_REASONS = ('submit', 'timeout')


def _current_identity():
    return current_user if current_user.is_authenticated else None


def _load_session(link: str, token: str):
    """Verify the token, its quiz and, for signed-in takers, its owner."""
    session = SessionTokenSerializer.from_app().loads(token)
    if session.quiz_link != link:
        raise InvalidSessionToken("Session token does not belong to this quiz")
    if session.authenticated:
        if not current_user.is_authenticated or str(current_user.id) != session.taker_id:
            raise Forbidden("This quiz session belongs to another user")
    return session


@quiz_bp.route('/api/take/<link>', methods=['GET'])
@rate_limit()
def resolve_quiz(link):
    """
    Resolve a shareable link to the taker view of the quiz.
    Correct answers and explanations are never included.
    """
    view = QuizStore().get_quiz_for_taker(link)
    return jsonify({
        'success': True,
        'quiz': view,
    }), 200


@quiz_bp.route('/api/take/<link>/start', methods=['POST'])
@rate_limit()
def start_session(link):
    """
    Start a quiz session.

    Request body (guests only): {"guest_name": "Ada"}
    """
    data = request.get_json(silent=True) or {}
    controller = SessionController()
    session = controller.start(link, _current_identity(), data.get('guest_name'))
    view = QuizStore().get_quiz_for_taker(link)

    return jsonify({
        'success': True,
        'message': 'Quiz session started',
        'session_token': SessionTokenSerializer.from_app().dumps(session),
        'session': session.to_dict(controller.clock()),
        'quiz': view,
    }), 201


@quiz_bp.route('/api/take/<link>/answer', methods=['POST'])
@rate_limit()
def save_answer(link):
    """
    Save or replace the answer to one question.

    Request body: {"session_token": "...", "question_index": 0, "answer": 1}
    Returns a refreshed session_token carrying the answer.
    """
    data = request.get_json(silent=True) or {}
    if 'question_index' not in data:
        raise ValidationError("question_index is required")

    controller = SessionController()
    session = _load_session(link, data.get('session_token'))
    controller.record_answer(session, data.get('question_index'), data.get('answer'))

    return jsonify({
        'success': True,
        'message': 'Answer saved',
        'session_token': SessionTokenSerializer.from_app().dumps(session),
        'session': session.to_dict(controller.clock()),
    }), 200


@quiz_bp.route('/api/take/<link>/submit', methods=['POST'])
@rate_limit()
def submit_session(link):
    """
    Finalize a quiz session and grade it.

    Request body:
    {
        "session_token": "...",
        "answers": [{"question_index": 0, "answer": 1}, ...],
        "time_spent_seconds": 312,
        "reason": "submit"  // or "timeout" when the countdown ran out
    }

    Retrying with the same session_token is safe: the stored result is
    returned with "already_submitted": true.
    """
    data = request.get_json(silent=True) or {}
    reason = data.get('reason') or 'submit'
    if reason not in SUBMIT_REASONS:
        raise ValidationError(f"reason must be one of {', '.join(SUBMIT_REASONS)}")

    controller = SessionController()
    session = _load_session(link, data.get('session_token'))
    finalize = controller.auto_submit if reason == 'timeout' else controller.submit
    result = finalize(
        session,
        answers=data.get('answers'),
        time_spent_seconds=data.get('time_spent_seconds'),
        ip_address=request.remote_addr,
    )

    if not result.created:
        current_app.logger.info(f"Repeated submit for session {session.session_id}")

    return jsonify({
        'success': True,
        'result': result.to_response(),
    }), 200
