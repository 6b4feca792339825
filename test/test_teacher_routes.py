"""
Test cases for teacher quiz management routes.
"""
from conftest import mixed_quiz, two_question_quiz


class TestCreateQuiz:
    """Test quiz creation endpoint."""

    def test_requires_login(self, client):
        response = client.post('/quiz/api/quizzes', json=two_question_quiz())
        assert response.status_code == 401
        assert response.get_json()['code'] == 'LoginRequired'

    def test_create(self, client, teacher_headers):
        response = client.post('/quiz/api/quizzes', json=two_question_quiz(), headers=teacher_headers)
        assert response.status_code == 201

        data = response.get_json()
        assert data['success'] is True
        assert len(data['shareable_link']) == 12
        assert data['share_url'] == f"https://campus.test/quiz/{data['shareable_link']}"
        assert data['quiz']['question_count'] == 2
        assert data['quiz']['total_points'] == 5
        assert data['quiz']['settings']['passing_score'] == 60

    def test_validation_errors(self, client, teacher_headers):
        response = client.post('/quiz/api/quizzes', json={'title': '', 'questions': []},
                               headers=teacher_headers)
        assert response.status_code == 400

        data = response.get_json()
        assert data['success'] is False
        assert data['code'] == 'ValidationError'
        assert "Quiz title is required" in data['errors']
        assert "A quiz needs at least one question" in data['errors']

    def test_non_json_body(self, client, teacher_headers):
        response = client.post('/quiz/api/quizzes', data='not json', headers=teacher_headers)
        assert response.status_code == 400


class TestListAndDetail:
    """Test listing and reading quizzes."""

    def test_list_has_counts_not_submissions(self, client, create_quiz, teacher_headers, student_headers):
        quiz = create_quiz()
        link = quiz['shareable_link']
        start = client.post(f'/quiz/api/take/{link}/start', headers=student_headers).get_json()
        client.post(f'/quiz/api/take/{link}/submit', json={
            'session_token': start['session_token'], 'answers': {'0': 1, '1': 2},
        }, headers=student_headers)

        response = client.get('/quiz/api/quizzes', headers=teacher_headers)
        assert response.status_code == 200

        quizzes = response.get_json()['quizzes']
        assert len(quizzes) == 1
        assert quizzes[0]['submission_count'] == 1
        assert quizzes[0]['average_score'] == 40
        assert 'submissions' not in quizzes[0]
        assert 'questions' not in quizzes[0]

    def test_list_only_own_quizzes(self, client, create_quiz, other_teacher_headers):
        create_quiz()
        response = client.get('/quiz/api/quizzes', headers=other_teacher_headers)
        assert response.get_json()['quizzes'] == []

    def test_each_request_uses_its_own_identity(self, client, create_quiz, teacher_headers,
                                                other_teacher_headers):
        create_quiz()
        assert client.get('/quiz/api/quizzes').status_code == 401
        assert client.get('/quiz/api/quizzes', headers=other_teacher_headers).get_json()['quizzes'] == []
        assert len(client.get('/quiz/api/quizzes', headers=teacher_headers).get_json()['quizzes']) == 1
        assert client.get('/quiz/api/quizzes').status_code == 401

    def test_detail_includes_answer_key(self, client, create_quiz, teacher_headers):
        quiz_id = create_quiz(mixed_quiz())['quiz_id']
        response = client.get(f'/quiz/api/quizzes/{quiz_id}', headers=teacher_headers)
        assert response.status_code == 200

        questions = response.get_json()['quiz']['questions']
        assert [q['correct_answer'] for q in questions] == [1, 'true', 'Paris']
        assert questions[2]['explanation'] == 'It is Paris'

    def test_detail_forbidden_for_other_teacher(self, client, create_quiz, other_teacher_headers):
        quiz_id = create_quiz()['quiz_id']
        response = client.get(f'/quiz/api/quizzes/{quiz_id}', headers=other_teacher_headers)
        assert response.status_code == 403
        assert response.get_json()['code'] == 'Forbidden'

    def test_missing_quiz(self, client, teacher_headers):
        response = client.get('/quiz/api/quizzes/424242', headers=teacher_headers)
        assert response.status_code == 404
        assert response.get_json()['code'] == 'NotFound'


class TestUpdateAndDelete:
    """Test quiz edits and deactivation."""

    def test_patch_settings(self, client, create_quiz, teacher_headers):
        quiz_id = create_quiz()['quiz_id']
        response = client.patch(f'/quiz/api/quizzes/{quiz_id}', json={
            'description': 'Updated',
            'settings': {'max_attempts': 2, 'randomize_questions': True},
        }, headers=teacher_headers)
        assert response.status_code == 200

        quiz = response.get_json()['quiz']
        assert quiz['description'] == 'Updated'
        assert quiz['settings']['max_attempts'] == 2
        assert quiz['settings']['randomize_questions'] is True

    def test_put_rejects_question_changes(self, client, create_quiz, teacher_headers):
        quiz_id = create_quiz()['quiz_id']
        response = client.put(f'/quiz/api/quizzes/{quiz_id}', json={'questions': []},
                              headers=teacher_headers)
        assert response.status_code == 400

    def test_update_forbidden_for_other_teacher(self, client, create_quiz, other_teacher_headers):
        quiz_id = create_quiz()['quiz_id']
        response = client.patch(f'/quiz/api/quizzes/{quiz_id}', json={'title': 'Mine now'},
                                headers=other_teacher_headers)
        assert response.status_code == 403

    def test_delete_deactivates(self, client, create_quiz, teacher_headers):
        quiz = create_quiz()
        response = client.delete(f"/quiz/api/quizzes/{quiz['quiz_id']}", headers=teacher_headers)
        assert response.status_code == 200

        assert client.get(f"/quiz/api/take/{quiz['shareable_link']}").status_code == 404
        assert client.get('/quiz/api/quizzes', headers=teacher_headers).get_json()['quizzes'] == []
        results = client.get(f"/quiz/api/quizzes/{quiz['quiz_id']}/results", headers=teacher_headers)
        assert results.status_code == 200
        assert results.get_json()['quiz']['is_active'] is False


class TestResults:
    """Test the results endpoint."""

    def _take(self, client, link, headers, answers):
        start = client.post(f'/quiz/api/take/{link}/start', headers=headers).get_json()
        return client.post(f'/quiz/api/take/{link}/submit', json={
            'session_token': start['session_token'], 'answers': answers,
        }, headers=headers)

    def test_results_with_analytics(self, client, create_quiz, teacher_headers):
        from conftest import identity_headers
        quiz = create_quiz()
        link = quiz['shareable_link']
        self._take(client, link, identity_headers('s1', 'First'), [
            {'question_index': 0, 'answer': 1}, {'question_index': 1, 'answer': 2},
        ])
        self._take(client, link, identity_headers('s2', 'Second'), [
            {'question_index': 0, 'answer': 1}, {'question_index': 1, 'answer': 0},
        ])

        response = client.get(f"/quiz/api/quizzes/{quiz['quiz_id']}/results", headers=teacher_headers)
        assert response.status_code == 200

        data = response.get_json()
        assert [s['taker_name'] for s in data['submissions']] == ['Second', 'First']
        assert data['submissions'][1]['answers'][1] == {
            'question_index': 1, 'answer': 2, 'is_correct': False, 'points_earned': 0.0,
        }
        assert data['analytics']['total_submissions'] == 2
        assert data['analytics']['average_percentage'] == 70
        assert data['analytics']['highest_percentage'] == 100
        assert data['analytics']['lowest_percentage'] == 40
        assert data['analytics']['pass_rate'] == 50

    def test_empty_results(self, client, create_quiz, teacher_headers):
        quiz_id = create_quiz(mixed_quiz())['quiz_id']
        analytics = client.get(f'/quiz/api/quizzes/{quiz_id}/results',
                               headers=teacher_headers).get_json()['analytics']
        assert analytics['total_submissions'] == 0
        assert analytics['average_percentage'] == 0
        assert analytics['pass_rate'] is None

    def test_results_forbidden_for_other_teacher(self, client, create_quiz, other_teacher_headers):
        quiz_id = create_quiz()['quiz_id']
        response = client.get(f'/quiz/api/quizzes/{quiz_id}/results', headers=other_teacher_headers)
        assert response.status_code == 403

    def test_admin_can_read_results(self, client, create_quiz, admin_headers):
        quiz_id = create_quiz()['quiz_id']
        response = client.get(f'/quiz/api/quizzes/{quiz_id}/results', headers=admin_headers)
        assert response.status_code == 200
