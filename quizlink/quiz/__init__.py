"""
Quiz module for creating, sharing and taking quizzes.

Teachers create quizzes and read results; takers open a quiz through its
shareable link, complete a timed session and get graded automatically.
"""
from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from quizlink import db
from quizlink.quiz.errors import QuizError

quiz_bp = Blueprint('quiz', __name__)


@quiz_bp.errorhandler(QuizError)
def handle_quiz_error(error):
    """Engine errors become the JSON error envelope with their own status."""
    db.session.rollback()
    current_app.logger.info(f"{error.code}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@quiz_bp.errorhandler(SQLAlchemyError)
def handle_database_error(error):
    db.session.rollback()
    current_app.logger.exception(f"Database error: {str(error)}")
    return jsonify({'success': False, 'error': 'Internal server error', 'code': 'ServerError'}), 500


from quizlink.quiz import teacher_routes  # noqa: E402,F401
from quizlink.quiz import taker_routes  # noqa: E402,F401
