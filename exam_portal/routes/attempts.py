# exam_portal/routes/attempts.py
"""
Attempt routes
Admission and resume, question delivery, draft answers, submission and results
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from flask_babel import _
from exam_portal import db
from exam_portal.errors import NotFound, InvalidInput
from exam_portal.models.attempt import TestAttempt, ATTEMPT_STATUSES, TERMINAL_STATUSES, STATUS_PASSED
from exam_portal.utils.attempts import (admit_participant, find_in_progress, ordered_questions,
                                        save_answers, submit_attempt)
from exam_portal.utils.auth import authorize, permission_required
from exam_portal.utils.dates import utcnow, isoformat
from exam_portal.utils.pagination import paginate
from exam_portal.utils.scoring import summarize_result, summarize_scores
from exam_portal.utils.validation import get_json_body, require_int

bp = Blueprint('attempts', __name__)


def _get_attempt(attempt_id):
    attempt = db.session.get(TestAttempt, attempt_id)
    if attempt is None:
        raise NotFound(_('Attempt not found'))
    return attempt


def _delivery_payload(attempt):
    """Attempt as shown while taking the test: no answer keys, stored order"""
    test = attempt.test
    questions = ordered_questions(attempt)
    return {
        'attemptId': attempt.id,
        'testId': test.id,
        'title': test.title,
        'description': test.description,
        'duration': test.duration,
        'status': attempt.status,
        'startTime': isoformat(attempt.start_time),
        'endTime': isoformat(test.end_time),
        'deadline': isoformat(test.deadline_for(attempt)),
        'totalQuestions': len(questions),
        'questions': [q.to_dict(include_answer=False) for q in questions],
        'answers': {str(a.question_id): a.answer for a in attempt.answers},
    }


@bp.route('', methods=['POST'])
@login_required
def start_attempt():
    """
    Start or resume an attempt: repeated calls return the same unfinished attempt
    """
    data = get_json_body()
    test_id = require_int(data, 'testId')
    attempt, created = admit_participant(current_user, test_id)
    payload = _delivery_payload(attempt)
    payload['resumed'] = not created
    return jsonify(payload)


@bp.route('', methods=['GET'])
@login_required
def list_attempts():
    """
    Participants see their own attempts, admins may filter by user
    """
    query = TestAttempt.query
    if current_user.has_permission('view_all_results'):
        user_id = request.args.get('userId', type=int)
        if user_id:
            query = query.filter(TestAttempt.user_id == user_id)
    else:
        query = query.filter(TestAttempt.user_id == current_user.id)

    status = request.args.get('status')
    if status:
        if status not in ATTEMPT_STATUSES:
            raise InvalidInput(_('Unknown status: %(status)s', status=status))
        query = query.filter(TestAttempt.status == status)
    test_id = request.args.get('testId', type=int)
    if test_id:
        query = query.filter(TestAttempt.test_id == test_id)

    query = query.order_by(TestAttempt.start_time.desc())
    return jsonify(paginate(query, TestAttempt.to_dict))


@bp.route('/results', methods=['GET'])
@login_required
def my_results():
    """Own finished attempts with average, best score and pass rate"""
    attempts = TestAttempt.query.filter(
        TestAttempt.user_id == current_user.id,
        TestAttempt.status.in_(TERMINAL_STATUSES)
    ).order_by(TestAttempt.end_time.desc()).all()
    return jsonify({
        'data': [a.to_dict() for a in attempts],
        'metrics': summarize_scores(attempts),
    })


@bp.route('/<int:attempt_id>', methods=['GET'])
@login_required
def get_attempt(attempt_id):
    attempt = _get_attempt(attempt_id)
    authorize(current_user, 'attempt.view', attempt)
    if not attempt.is_finished and attempt.user_id == current_user.id:
        return jsonify(_delivery_payload(attempt))
    return jsonify(attempt.to_dict())


@bp.route('/<int:attempt_id>/answers', methods=['PUT'])
@login_required
@permission_required('attempt.answer')
def save_draft(attempt_id):
    """Save answers without submitting"""
    attempt = _get_attempt(attempt_id)
    data = get_json_body()
    stored = save_answers(current_user, attempt, data.get('answers'))
    return jsonify({'attemptId': attempt.id, 'saved': stored})


@bp.route('/<int:attempt_id>/submit', methods=['POST'])
@login_required
@permission_required('attempt.answer')
def submit(attempt_id):
    """Grade the attempt; submitting twice is refused"""
    attempt = _get_attempt(attempt_id)
    data = get_json_body()
    attempt = submit_attempt(current_user, attempt, data.get('answers'))
    return jsonify({
        'attemptId': attempt.id,
        'score': attempt.score,
        'status': attempt.status,
        'passed': attempt.status == STATUS_PASSED,
        'endTime': isoformat(attempt.end_time),
    })


@bp.route('/<int:attempt_id>/result', methods=['GET'])
@login_required
def result(attempt_id):
    """
    Detailed result: counters, timings and every question with the given answer.
    Answer keys stay hidden from the participant until the attempt is finished
    and while a newer attempt at the same test is in progress.
    """
    attempt = _get_attempt(attempt_id)
    authorize(current_user, 'attempt.view', attempt)

    questions = ordered_questions(attempt)
    answers = attempt.answer_map()
    reveal = current_user.has_permission('view_all_results') or (
        attempt.is_finished and find_in_progress(attempt.user_id, attempt.test_id) is None)

    data = summarize_result(len(questions), [a.is_correct for a in attempt.answers],
                            attempt.start_time, attempt.end_time, utcnow())
    data['attempt'] = attempt.to_dict()
    data['test'] = {
        'id': attempt.test.id,
        'title': attempt.test.title,
        'passingScore': attempt.test.passing_score,
    }

    rows = []
    for question in questions:
        row = question.to_dict(include_answer=reveal)
        answer = answers.get(question.id)
        row['answer'] = answer.answer if answer else None
        row['isCorrect'] = bool(answer.is_correct) if answer else False
        rows.append(row)
    data['questions'] = rows
    return jsonify(data)


@bp.route('/<int:attempt_id>', methods=['DELETE'])
@login_required
@permission_required('attempt.delete')
def delete_attempt(attempt_id):
    attempt = _get_attempt(attempt_id)
    db.session.delete(attempt)
    db.session.commit()
    current_app.logger.info(f"Attempt {attempt_id} deleted by user {current_user.id}")
    return jsonify({'message': _('Attempt deleted')})
