"""
Pytest configuration and fixtures for testing.
Runs the app against an in-memory SQLite database.
"""
import os

import pytest

# Set test environment variables BEFORE quizlink is imported
os.environ['FLASK_ENV'] = 'testing'
os.environ['SECRET_KEY'] = 'sfndsfojoriwew09rjfjndsknfkj'
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['QUIZ_URL_PREFIX'] = '/quiz'
os.environ['APP_BASE_URL'] = 'https://campus.test'
os.environ['ADMIN_USER_IDS'] = 'admin-1'
os.environ['RATE_LIMIT_TAKER_REQUESTS'] = '10000'
os.environ['RATE_LIMIT_TAKER_WINDOW_SECONDS'] = '60'

from quizlink import create_app, db  # noqa: E402


@pytest.fixture(scope='function')
def app():
    """
    Create a fresh application and schema for each test.

    No app context stays pushed, so each client request gets its own
    context and its own Flask-Login user.
    """
    app = create_app()
    app.config['TESTING'] = True

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def app_context(app):
    """App context for tests that call the services directly."""
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


def identity_headers(user_id, name='Test User', email=None):
    headers = {'X-User-Id': user_id, 'X-User-Name': name}
    if email:
        headers['X-User-Email'] = email
    return headers


@pytest.fixture
def teacher_headers():
    return identity_headers('teacher-1', 'Grace Hopper', 'grace@campus.test')


@pytest.fixture
def other_teacher_headers():
    return identity_headers('teacher-2', 'Alan Turing')


@pytest.fixture
def admin_headers():
    return identity_headers('admin-1', 'Platform Admin')


@pytest.fixture
def student_headers():
    return identity_headers('student-1', 'Ada Lovelace')


def two_question_quiz(**settings):
    """Two multiple-choice questions worth 2 and 3 points, correct indices 1 and 0."""
    definition = {
        'title': 'Binary Basics',
        'description': 'Warm-up quiz',
        'questions': [
            {
                'question_text': 'What is 1 + 1 in binary?',
                'question_type': 'multiple_choice',
                'options': ['1', '10', '11'],
                'correct_answer': 1,
                'points': 2,
                'explanation': '1 + 1 = 2, written 10',
            },
            {
                'question_text': 'Which digit is not binary?',
                'question_type': 'multiple_choice',
                'options': ['2', '0', '1'],
                'correct_answer': 0,
                'points': 3,
            },
        ],
        'settings': {'passing_score': 60},
    }
    definition['settings'].update(settings)
    return definition


def mixed_quiz(**settings):
    """One question of each type, one point each."""
    return {
        'title': 'Mixed Bag',
        'questions': [
            {'question_text': 'Pick B', 'question_type': 'multiple_choice',
             'options': ['A', 'B'], 'correct_answer': 1},
            {'question_text': 'The sky is blue', 'question_type': 'true_false',
             'correct_answer': 'true'},
            {'question_text': 'Capital of France?', 'question_type': 'short_answer',
             'correct_answer': 'Paris', 'explanation': 'It is Paris'},
        ],
        'settings': dict(settings),
    }


@pytest.fixture
def teacher(app):
    """Identity of the default teacher, for tests that call services directly."""
    from quizlink.auth import Identity
    return Identity('teacher-1', 'Grace Hopper', 'grace@campus.test')


@pytest.fixture
def student(app):
    from quizlink.auth import Identity
    return Identity('student-1', 'Ada Lovelace')


@pytest.fixture
def create_quiz(client, teacher_headers):
    """Create a quiz through the API and return the response body."""
    def _create(definition=None, headers=None):
        response = client.post(
            '/quiz/api/quizzes',
            json=definition or two_question_quiz(),
            headers=headers or teacher_headers,
        )
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _create
