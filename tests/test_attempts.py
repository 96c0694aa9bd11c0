"""
Tests for the attempt lifecycle: admission, delivery, draft answers, submission and results.
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from exam_portal import db
from exam_portal.models import Answer, User, TestAttempt as AttemptModel
from exam_portal.utils import attempts as attempt_lifecycle
from exam_portal.utils.dates import utcnow

from conftest import create_exam, create_question_set


def start(client, exam_id):
    return client.post('/attempts', json={'testId': exam_id})


def answers_for(question_ids, values):
    return {str(qid): value for qid, value in zip(question_ids, values)}


class TestAdmission:
    """Tests for POST /attempts."""

    def test_start_returns_questions_without_answer_keys(self, participant_client, exam_id, question_set):
        response = start(participant_client, exam_id)

        assert response.status_code == 200
        data = response.get_json()
        assert data['testId'] == exam_id
        assert data['duration'] == 30
        assert data['totalQuestions'] == 4
        assert data['endTime'].endswith('Z')
        assert [q['id'] for q in data['questions']] == question_set['question_ids']
        for question in data['questions']:
            assert 'correctAnswer' not in question
            assert 'explanation' not in question
            assert {o['id'] for o in question['options']} == {'a', 'b'}

    def test_second_admission_resumes_same_attempt(self, participant_client, exam_id):
        first = start(participant_client, exam_id).get_json()
        second = start(participant_client, exam_id).get_json()

        assert second['attemptId'] == first['attemptId']
        assert second['startTime'] == first['startTime']
        assert second['resumed'] is True

    def test_resume_keeps_start_time_in_store(self, app, participant_client, exam_id):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        with app.app_context():
            original = db.session.get(AttemptModel, attempt_id).start_time

        start(participant_client, exam_id)

        with app.app_context():
            assert db.session.get(AttemptModel, attempt_id).start_time == original
            assert AttemptModel.query.filter_by(test_id=exam_id, status='IN_PROGRESS').count() == 1

    def test_inactive_test_is_refused(self, app, participant_client, admin_id, question_set):
        exam_id = create_exam(app, question_set['id'], admin_id, is_active=False)

        response = start(participant_client, exam_id)

        assert response.status_code == 403
        assert response.get_json()['error'] == 'forbidden'

    def test_test_outside_window_is_refused(self, app, participant_client, admin_id, question_set):
        now = utcnow()
        future = create_exam(app, question_set['id'], admin_id,
                             start_time=now + timedelta(hours=1), end_time=now + timedelta(hours=2))
        past = create_exam(app, question_set['id'], admin_id,
                           start_time=now - timedelta(hours=2), end_time=now - timedelta(hours=1))

        assert start(participant_client, future).status_code == 403
        assert start(participant_client, past).status_code == 403

    def test_unknown_test(self, participant_client):
        response = start(participant_client, 9999)

        assert response.status_code == 404
        assert response.get_json()['error'] == 'not_found'

    def test_anonymous_is_rejected(self, anonymous_client, exam_id):
        response = start(anonymous_client, exam_id)

        assert response.status_code == 401
        assert response.get_json()['error'] == 'unauthenticated'

    def test_admin_cannot_take_tests(self, admin_client, exam_id):
        assert start(admin_client, exam_id).status_code == 403

    def test_missing_test_id(self, participant_client):
        response = participant_client.post('/attempts', json={})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'invalid_input'

    def test_new_attempt_allowed_after_submission(self, participant_client, exam_id):
        first = start(participant_client, exam_id).get_json()
        participant_client.post(f"/attempts/{first['attemptId']}/submit", json={'answers': {}})

        second = start(participant_client, exam_id)

        assert second.status_code == 200
        assert second.get_json()['attemptId'] != first['attemptId']

    def test_randomized_order_is_stable(self, app, participant_client, admin_id):
        question_set = create_question_set(app, admin_id, count=8)
        exam_id = create_exam(app, question_set['id'], admin_id, randomize_questions=True)

        first = start(participant_client, exam_id).get_json()
        second = start(participant_client, exam_id).get_json()
        detail = participant_client.get(f"/attempts/{first['attemptId']}").get_json()

        order = [q['id'] for q in first['questions']]
        assert sorted(order) == sorted(question_set['question_ids'])
        assert [q['id'] for q in second['questions']] == order
        assert [q['id'] for q in detail['questions']] == order

    def test_store_rejects_second_unfinished_attempt(self, app, participant_client, participant_id, exam_id):
        start(participant_client, exam_id)

        with app.app_context():
            db.session.add(AttemptModel(user_id=participant_id, test_id=exam_id,
                                        status='IN_PROGRESS', start_time=utcnow()))
            with pytest.raises(IntegrityError):
                db.session.commit()
            db.session.rollback()

    def test_concurrent_admission_reuses_winning_attempt(self, app, monkeypatch, participant_client,
                                                          participant_id, exam_id):
        existing_id = start(participant_client, exam_id).get_json()['attemptId']

        real_lookup = attempt_lifecycle.find_in_progress
        calls = []

        def lookup_missing_the_race(user_id, test_id):
            calls.append(test_id)
            return None if len(calls) == 1 else real_lookup(user_id, test_id)

        monkeypatch.setattr(attempt_lifecycle, 'find_in_progress', lookup_missing_the_race)

        with app.app_context():
            user = db.session.get(User, participant_id)
            attempt, created = attempt_lifecycle.admit_participant(user, exam_id)

            assert created is False
            assert attempt.id == existing_id
            assert AttemptModel.query.filter_by(test_id=exam_id, status='IN_PROGRESS').count() == 1
        assert len(calls) == 2


class TestSubmission:
    """Tests for POST /attempts/<id>/submit."""

    def test_three_of_four_passes(self, participant_client, exam_id, question_set):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        answers = answers_for(question_set['question_ids'], ['a', 'a', 'a', 'b'])

        response = participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': answers})

        assert response.status_code == 200
        data = response.get_json()
        assert data['score'] == 75
        assert data['status'] == 'PASSED'
        assert data['passed'] is True
        assert data['endTime'] is not None

    def test_two_correct_two_skipped_fails(self, participant_client, exam_id, question_set):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        answers = answers_for(question_set['question_ids'][:2], ['a', 'a'])

        data = participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': answers}).get_json()
        result = participant_client.get(f'/attempts/{attempt_id}/result').get_json()

        assert data['score'] == 50
        assert data['status'] == 'FAILED'
        assert result['skippedQuestions'] == 2
        assert result['answeredQuestions'] == 2
        assert result['correctAnswers'] == 2

    def test_option_grading(self, app, participant_client, exam_id, question_set):
        first, second = question_set['question_ids'][:2]
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']

        participant_client.post(f'/attempts/{attempt_id}/submit',
                                json={'answers': {str(first): 'a', str(second): 'b'}})

        with app.app_context():
            graded = {a.question_id: a.is_correct for a in Answer.query.filter_by(test_attempt_id=attempt_id)}
        assert graded == {first: True, second: False}

    def test_no_passing_score_completes(self, app, participant_client, admin_id, question_set):
        exam_id = create_exam(app, question_set['id'], admin_id, passing_score=None)
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']

        data = participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': {}}).get_json()

        assert data['score'] == 0
        assert data['status'] == 'COMPLETED'

    def test_second_submission_conflicts(self, app, participant_client, exam_id, question_set):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        answers = answers_for(question_set['question_ids'], ['a', 'a', 'a', 'a'])
        participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': answers})

        response = participant_client.post(f'/attempts/{attempt_id}/submit',
                                           json={'answers': answers_for(question_set['question_ids'], ['b'] * 4)})

        assert response.status_code == 409
        assert response.get_json()['error'] == 'conflict'
        with app.app_context():
            attempt = db.session.get(AttemptModel, attempt_id)
            assert attempt.status == 'PASSED'
            assert attempt.score == 100

    def test_other_participant_cannot_submit(self, participant_client, other_participant_client, exam_id):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']

        response = other_participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': {}})

        assert response.status_code == 403

    def test_foreign_question_ids_are_ignored(self, app, participant_client, admin_id, exam_id, question_set):
        other_set = create_question_set(app, admin_id, count=1)
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        answers = answers_for(question_set['question_ids'], ['a', 'a', 'a', 'a'])
        answers[str(other_set['question_ids'][0])] = 'a'

        data = participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': answers}).get_json()

        assert data['score'] == 100
        with app.app_context():
            assert Answer.query.filter_by(test_attempt_id=attempt_id).count() == 4

    def test_essay_is_never_correct(self, app, participant_client, admin_id, question_set):
        from exam_portal.models import Question
        with app.app_context():
            essay = Question(text='Explain photosynthesis', type='ESSAY', subject='Biology',
                             correct_answer='light', question_set_id=question_set['id'])
            db.session.add(essay)
            db.session.commit()
            essay_id = essay.id
        exam_id = create_exam(app, question_set['id'], admin_id)
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        answers = answers_for(question_set['question_ids'], ['a', 'a', 'a', 'a'])
        answers[str(essay_id)] = 'light'

        data = participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': answers}).get_json()

        # 4 of 5
        assert data['score'] == 80

    def test_invalid_answers_payload(self, participant_client, exam_id):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']

        response = participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': ['a']})

        assert response.status_code == 400


class TestDraftAnswers:
    """Tests for PUT /attempts/<id>/answers."""

    def test_drafts_are_graded_on_submit(self, participant_client, exam_id, question_set):
        ids = question_set['question_ids']
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']

        saved = participant_client.put(f'/attempts/{attempt_id}/answers',
                                       json={'answers': answers_for(ids[:2], ['a', 'b'])})
        assert saved.status_code == 200
        assert saved.get_json()['saved'] == 2

        # Overwrite one draft and add two more on submission
        data = participant_client.post(f'/attempts/{attempt_id}/submit',
                                       json={'answers': answers_for(ids[1:], ['a', 'a', 'b'])}).get_json()
        assert data['score'] == 75

    def test_drafts_returned_on_resume(self, participant_client, exam_id, question_set):
        ids = question_set['question_ids']
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        participant_client.put(f'/attempts/{attempt_id}/answers', json={'answers': {str(ids[0]): 'b'}})

        resumed = start(participant_client, exam_id).get_json()

        assert resumed['answers'] == {str(ids[0]): 'b'}

    def test_cannot_save_after_submission(self, participant_client, exam_id, question_set):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': {}})

        response = participant_client.put(f'/attempts/{attempt_id}/answers',
                                          json={'answers': {str(question_set['question_ids'][0]): 'a'}})

        assert response.status_code == 409


class TestResults:
    """Tests for result and listing endpoints."""

    def test_result_reveals_keys_after_submission(self, participant_client, exam_id, question_set):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        participant_client.post(f'/attempts/{attempt_id}/submit',
                                json={'answers': answers_for(question_set['question_ids'][:3], ['a', 'b', 'a'])})

        result = participant_client.get(f'/attempts/{attempt_id}/result').get_json()

        assert result['totalQuestions'] == 4
        assert result['correctAnswers'] == 2
        assert result['incorrectAnswers'] == 1
        assert result['answeredQuestions'] + result['skippedQuestions'] == result['totalQuestions']
        assert result['test']['passingScore'] == 75
        assert result['questions'][0]['correctAnswer'] == 'a'
        assert result['questions'][1]['isCorrect'] is False
        assert result['questions'][3]['answer'] is None

    def test_result_hides_keys_while_in_progress(self, participant_client, exam_id):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']

        result = participant_client.get(f'/attempts/{attempt_id}/result').get_json()

        assert all('correctAnswer' not in q for q in result['questions'])

    def test_finished_result_hides_keys_during_retake(self, participant_client, admin_client, exam_id):
        first_id = start(participant_client, exam_id).get_json()['attemptId']
        participant_client.post(f'/attempts/{first_id}/submit', json={'answers': {}})
        start(participant_client, exam_id)

        own = participant_client.get(f'/attempts/{first_id}/result').get_json()
        reviewed = admin_client.get(f'/attempts/{first_id}/result').get_json()

        assert all('correctAnswer' not in q for q in own['questions'])
        assert all(q['correctAnswer'] == 'a' for q in reviewed['questions'])

    def test_result_is_private(self, participant_client, other_participant_client, admin_client, exam_id):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']

        assert other_participant_client.get(f'/attempts/{attempt_id}/result').status_code == 403
        assert admin_client.get(f'/attempts/{attempt_id}/result').status_code == 200

    def test_unknown_attempt(self, participant_client):
        assert participant_client.get('/attempts/4242/result').status_code == 404

    def test_listing_is_scoped_to_owner(self, participant_client, other_participant_client, admin_client, exam_id):
        start(participant_client, exam_id)
        start(other_participant_client, exam_id)

        own = participant_client.get('/attempts').get_json()
        everything = admin_client.get('/attempts').get_json()

        assert own['total'] == 1
        assert own['data'][0]['userName'] == 'Bob Participant'
        assert everything['total'] == 2

    def test_my_results_metrics(self, participant_client, exam_id, question_set):
        ids = question_set['question_ids']
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': answers_for(ids, ['a'] * 4)})
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        participant_client.post(f'/attempts/{attempt_id}/submit', json={'answers': answers_for(ids, ['a', 'a'])})

        data = participant_client.get('/attempts/results').get_json()

        assert data['metrics'] == {'totalAttempts': 2, 'averageScore': 75, 'highestScore': 100, 'passRate': 50}


class TestAttemptDeletion:
    """Tests for DELETE /attempts/<id>."""

    def test_admin_deletes_attempt_with_answers(self, app, participant_client, admin_client, exam_id, question_set):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']
        participant_client.put(f'/attempts/{attempt_id}/answers',
                               json={'answers': {str(question_set['question_ids'][0]): 'a'}})

        response = admin_client.delete(f'/attempts/{attempt_id}')

        assert response.status_code == 200
        with app.app_context():
            assert db.session.get(AttemptModel, attempt_id) is None
            assert Answer.query.filter_by(test_attempt_id=attempt_id).count() == 0

    def test_participant_cannot_delete(self, participant_client, exam_id):
        attempt_id = start(participant_client, exam_id).get_json()['attemptId']

        assert participant_client.delete(f'/attempts/{attempt_id}').status_code == 403

    def test_role_is_checked_before_lookup(self, participant_client, admin_client):
        assert participant_client.delete('/attempts/4242').status_code == 403
        assert admin_client.post('/attempts/4242/submit', json={'answers': {}}).status_code == 403
