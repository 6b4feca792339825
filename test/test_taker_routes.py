"""
Test cases for taker routes: resolving links, sessions and submission.
"""
from datetime import datetime, timedelta

from conftest import identity_headers, mixed_quiz, two_question_quiz


def start(client, link, headers=None, **body):
    return client.post(f'/quiz/api/take/{link}/start', json=body, headers=headers or {})


def submit(client, link, token, headers=None, **body):
    body['session_token'] = token
    return client.post(f'/quiz/api/take/{link}/submit', json=body, headers=headers or {})


class TestResolveQuiz:
    """Test resolving a shareable link."""

    def test_taker_view_has_no_answers(self, client, create_quiz):
        link = create_quiz(mixed_quiz())['shareable_link']
        response = client.get(f'/quiz/api/take/{link}')
        assert response.status_code == 200

        quiz = response.get_json()['quiz']
        assert quiz['title'] == 'Mixed Bag'
        assert quiz['teacher'] == 'Grace Hopper'
        assert len(quiz['questions']) == 3
        for question in quiz['questions']:
            assert 'correct_answer' not in question
            assert 'explanation' not in question
        assert b'Paris' not in response.data

    def test_unknown_link(self, client):
        response = client.get('/quiz/api/take/notarealtoken')
        assert response.status_code == 404
        assert response.get_json() == {
            'success': False,
            'error': 'Quiz not found or no longer available',
            'code': 'NotFound',
        }

    def test_available_until_in_the_past(self, client, create_quiz):
        yesterday = (datetime.utcnow() - timedelta(days=1)).isoformat() + 'Z'
        link = create_quiz(two_question_quiz(available_until=yesterday))['shareable_link']
        response = client.get(f'/quiz/api/take/{link}')
        assert response.status_code == 410
        assert response.get_json()['code'] == 'NotAvailable'

    def test_security_headers(self, client, create_quiz):
        link = create_quiz()['shareable_link']
        response = client.get(f'/quiz/api/take/{link}')
        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-Frame-Options'] == 'DENY'
        assert 'X-RateLimit-Limit' in response.headers


class TestStartSession:
    """Test starting sessions over HTTP."""

    def test_login_required(self, client, create_quiz):
        link = create_quiz()['shareable_link']
        response = start(client, link, guest_name='Bob')
        assert response.status_code == 401
        assert response.get_json()['code'] == 'LoginRequired'

    def test_authenticated_start(self, client, create_quiz, student_headers):
        link = create_quiz(two_question_quiz(time_limit_minutes=15))['shareable_link']
        response = start(client, link, student_headers)
        assert response.status_code == 201

        data = response.get_json()
        assert data['session_token']
        assert data['session']['taker_name'] == 'Ada Lovelace'
        assert 899 <= data['session']['seconds_remaining'] <= 900
        assert data['session']['answered'] == []
        assert 'correct_answer' not in data['quiz']['questions'][0]

    def test_guest_start(self, client, create_quiz):
        link = create_quiz(two_question_quiz(require_login=False))['shareable_link']
        response = start(client, link, guest_name='Bob')
        assert response.status_code == 201
        assert response.get_json()['session']['taker_name'] == 'Bob'

    def test_guest_without_name(self, client, create_quiz):
        link = create_quiz(two_question_quiz(require_login=False))['shareable_link']
        response = start(client, link)
        assert response.status_code == 400


class TestAnswerAndSubmit:
    """Test saving answers and submitting."""

    def test_partial_score_scenario(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']

        response = submit(client, link, token, student_headers, answers=[
            {'question_index': 0, 'answer': 1},
            {'question_index': 1, 'answer': 2},
        ])
        assert response.status_code == 200

        result = response.get_json()['result']
        assert result['score'] == 2
        assert result['total_points'] == 5
        assert result['percentage'] == 40
        assert result['passed'] is False
        assert result['already_submitted'] is False
        assert result['finalized_by'] == 'submitted'

    def test_full_score_scenario(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']
        result = submit(client, link, token, student_headers, answers=[
            {'question_index': 0, 'answer': 1},
            {'question_index': 1, 'answer': 0},
        ]).get_json()['result']
        assert result['score'] == 5
        assert result['percentage'] == 100
        assert result['passed'] is True

    def test_answers_travel_in_the_token(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']

        response = client.post(f'/quiz/api/take/{link}/answer', json={
            'session_token': token, 'question_index': 0, 'answer': 1,
        }, headers=student_headers)
        assert response.status_code == 200
        data = response.get_json()
        assert data['session']['answered'] == [0]

        result = submit(client, link, data['session_token'], student_headers).get_json()['result']
        assert result['percentage'] == 40

    def test_answer_requires_question_index(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']
        response = client.post(f'/quiz/api/take/{link}/answer', json={
            'session_token': token, 'answer': 1,
        }, headers=student_headers)
        assert response.status_code == 400

    def test_repeated_submit_returns_stored_result(self, client, create_quiz, student_headers, teacher_headers):
        quiz = create_quiz(two_question_quiz(max_attempts=3))
        link = quiz['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']

        first = submit(client, link, token, student_headers, answers={'0': 1}).get_json()['result']
        second = submit(client, link, token, student_headers, answers={'0': 1, '1': 0},
                        reason='timeout').get_json()['result']

        assert first['percentage'] == second['percentage'] == 40
        assert second['already_submitted'] is True
        results = client.get(f"/quiz/api/quizzes/{quiz['quiz_id']}/results", headers=teacher_headers)
        assert results.get_json()['analytics']['total_submissions'] == 1

    def test_attempts_exceeded_scenario(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']
        submit(client, link, token, student_headers, answers={'0': 1})

        response = start(client, link, student_headers)
        assert response.status_code == 409
        assert response.get_json()['code'] == 'AttemptsExceeded'

    def test_timeout_reason_marks_auto_submitted(self, client, create_quiz, student_headers):
        link = create_quiz(two_question_quiz(time_limit_minutes=1))['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']
        result = submit(client, link, token, student_headers, reason='timeout',
                        time_spent_seconds=500).get_json()['result']
        assert result['finalized_by'] == 'auto_submitted'
        assert result['time_spent_seconds'] <= 60

    def test_unknown_reason(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']
        response = submit(client, link, token, student_headers, reason='gave_up')
        assert response.status_code == 400
        assert response.get_json()['code'] == 'ValidationError'

    def test_hidden_score(self, client, create_quiz, student_headers):
        link = create_quiz(two_question_quiz(show_score_immediately=False,
                                             show_correct_answers=False))['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']
        result = submit(client, link, token, student_headers, answers={'0': 1}).get_json()['result']
        assert result['submitted'] is True
        assert 'score' not in result
        assert 'percentage' not in result
        assert 'correct_answers' not in result


class TestSessionTokenChecks:
    """Test that session tokens cannot be forged or reused elsewhere."""

    def test_garbage_token(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        response = submit(client, link, 'not-a-token', student_headers)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'InvalidSessionToken'

    def test_missing_token(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        response = client.post(f'/quiz/api/take/{link}/submit', json={}, headers=student_headers)
        assert response.status_code == 400

    def test_token_for_another_quiz(self, client, create_quiz, student_headers):
        first = create_quiz()['shareable_link']
        second = create_quiz()['shareable_link']
        token = start(client, first, student_headers).get_json()['session_token']
        response = submit(client, second, token, student_headers)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'InvalidSessionToken'

    def test_token_of_another_user(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']
        response = submit(client, link, token, identity_headers('student-9', 'Mallory'))
        assert response.status_code == 403

    def test_signed_in_token_used_anonymously(self, client, create_quiz, student_headers):
        link = create_quiz()['shareable_link']
        token = start(client, link, student_headers).get_json()['session_token']
        response = submit(client, link, token)
        assert response.status_code == 403


class TestRateLimit:
    """Test rate limiting of taker endpoints."""

    def test_too_many_requests(self, app, client):
        app.config['RATE_LIMIT_TAKER_REQUESTS'] = 2
        client.get('/quiz/api/take/aaaaaaaaaaaa')
        client.get('/quiz/api/take/bbbbbbbbbbbb')
        response = client.get('/quiz/api/take/cccccccccccc')

        assert response.status_code == 429
        assert response.get_json()['code'] == 'RateLimited'
        assert response.headers['Retry-After'] == '60'
