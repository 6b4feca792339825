"""
Teacher routes for quiz management.

Teachers can:
- Create quizzes and get a shareable link
- List their quizzes with submission counts and average scores
- Edit settings and deactivate quizzes
- View results and analytics
"""
from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from quizlink.quiz import quiz_bp
from quizlink.quiz.analytics import summarize_quiz
from quizlink.quiz.links import public_url
from quizlink.quiz.store import QuizStore


def _quiz_summary(quiz, submission_count: int = None, average_score: int = None) -> dict:
    data = {
        'id': quiz.id,
        'title': quiz.title,
        'description': quiz.description,
        'class_id': quiz.class_id,
        'shareable_link': quiz.shareable_link,
        'share_url': public_url(quiz.shareable_link),
        'is_active': quiz.is_active,
        'question_count': quiz.get_question_count(),
        'total_points': float(quiz.get_total_points()),
        'settings': quiz.settings_dict(),
        'created_at': quiz.created_at.isoformat() if quiz.created_at else None,
        'updated_at': quiz.updated_at.isoformat() if quiz.updated_at else None,
    }
    if submission_count is not None:
        data['submission_count'] = submission_count
        data['average_score'] = average_score
    return data


def _quiz_detail(quiz) -> dict:
    """Owner view: everything including the answer key."""
    data = _quiz_summary(quiz)
    data['teacher'] = {
        'id': quiz.teacher_id,
        'name': quiz.teacher_name,
        'email': quiz.teacher_email,
    }
    questions = []
    for question in quiz.questions:
        question_data = {
            'question_index': question.order_index,
            'question_type': question.question_type,
            'question_text': question.question_text,
            'points': float(question.points),
            'correct_answer': question.get_correct_answer(),
            'explanation': question.explanation,
        }
        if question.question_type == 'multiple_choice':
            question_data['options'] = question.option_texts
        questions.append(question_data)
    data['questions'] = questions
    return data


@quiz_bp.route('/api/quizzes', methods=['POST'])
@login_required
def create_quiz():
    """
    Create a new quiz and issue its shareable link.

    Request body:
    {
        "title": "Quiz Title",
        "description": "Optional description",
        "class_id": "optional external class id",
        "questions": [
            {"question_text": "...", "question_type": "multiple_choice",
             "options": ["a", "b"], "correct_answer": 1, "points": 2,
             "explanation": "optional"}
        ],
        "settings": {
            "time_limit_minutes": 30,  // Optional
            "max_attempts": 1,
            "show_correct_answers": true,
            "show_score_immediately": true,
            "randomize_questions": false,
            "require_login": true,
            "available_from": "2026-01-01T09:00:00Z",  // Optional
            "available_until": null,  // Optional
            "passing_score": 60  // Optional
        }
    }
    """
    data = request.get_json(silent=True) or {}
    quiz = QuizStore().create_quiz(data, current_user)

    return jsonify({
        'success': True,
        'message': 'Quiz created successfully',
        'quiz_id': quiz.id,
        'shareable_link': quiz.shareable_link,
        'share_url': public_url(quiz.shareable_link),
        'quiz': _quiz_summary(quiz),
    }), 201


@quiz_bp.route('/api/quizzes', methods=['GET'])
@login_required
def list_quizzes():
    """
    List the current teacher's active quizzes, newest first.
    Includes submission counts and average score, never raw submissions.
    """
    store = QuizStore()
    quizzes = store.list_for_teacher(current_user.id)
    stats = store.submission_stats([q.id for q in quizzes])

    quizzes_data = []
    for quiz in quizzes:
        count, average = stats.get(quiz.id, (0, 0))
        quizzes_data.append(_quiz_summary(quiz, count, average))

    current_app.logger.debug(f"list_quizzes: teacher={current_user.id}, found={len(quizzes_data)}")

    return jsonify({
        'success': True,
        'quizzes': quizzes_data,
    }), 200


@quiz_bp.route('/api/quizzes/<int:quiz_id>', methods=['GET'])
@login_required
def get_quiz(quiz_id):
    """Get quiz details including questions and answer keys."""
    quiz = QuizStore().get_quiz_for_owner(quiz_id, current_user.id)
    return jsonify({
        'success': True,
        'quiz': _quiz_detail(quiz),
    }), 200


@quiz_bp.route('/api/quizzes/<int:quiz_id>', methods=['PUT', 'PATCH'])
@login_required
def update_quiz(quiz_id):
    """
    Update title, description or settings of a quiz.
    Questions and the shareable link cannot change after creation.
    """
    data = request.get_json(silent=True) or {}
    quiz = QuizStore().update_settings(quiz_id, current_user.id, data)
    return jsonify({
        'success': True,
        'message': 'Quiz updated successfully',
        'quiz': _quiz_summary(quiz),
    }), 200


@quiz_bp.route('/api/quizzes/<int:quiz_id>', methods=['DELETE'])
@login_required
def delete_quiz(quiz_id):
    """
    Deactivate a quiz. The link stops working; results remain available.
    """
    QuizStore().deactivate(quiz_id, current_user.id)
    return jsonify({
        'success': True,
        'message': 'Quiz deactivated successfully'
    }), 200


@quiz_bp.route('/api/quizzes/<int:quiz_id>/results', methods=['GET'])
@login_required
def get_quiz_results(quiz_id):
    """
    Get all submissions for a quiz, newest first, with analytics.
    Works for deactivated quizzes too.
    """
    quiz = QuizStore().get_quiz_for_owner(quiz_id, current_user.id)
    submissions = sorted(quiz.submissions.all(), key=lambda s: (s.submitted_at, s.id), reverse=True)
    analytics = summarize_quiz(quiz)

    return jsonify({
        'success': True,
        'quiz': _quiz_detail(quiz),
        'submissions': [s.to_dict() for s in submissions],
        'analytics': analytics.to_dict(),
    }), 200
