# exam_portal/routes/tests.py
"""
Test catalog routes
Scheduling of tests, derived display status and tests available to a participant
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from flask_babel import _
from sqlalchemy import and_, select
from exam_portal import db
from exam_portal.errors import InvalidInput, Forbidden, NotFound
from exam_portal.models.question_set import QuestionSet
from exam_portal.models.test import Test
from exam_portal.models.attempt import TestAttempt, STATUS_IN_PROGRESS
from exam_portal.utils.auth import authorize, permission_required
from exam_portal.utils.dates import (utcnow, parse_datetime, isoformat,
                                     STATUS_DRAFT, STATUS_ACTIVE, STATUS_COMPLETED, STATUS_SCHEDULED)
from exam_portal.utils.pagination import paginate, apply_sorting
from exam_portal.utils.validation import (get_json_body, require_string, optional_string,
                                          require_int, optional_bool)

bp = Blueprint('tests', __name__)

# Fields that stay editable once participants have started the test
EDITABLE_AFTER_ATTEMPTS = {'title', 'description', 'isActive'}


def _get_test(test_id):
    test = db.session.get(Test, test_id)
    if test is None:
        raise NotFound(_('Test not found'))
    return test


def _status_filter(status, now):
    """SQL condition matching derive_test_status()"""
    conditions = {
        STATUS_DRAFT: Test.is_active.is_(False),
        STATUS_ACTIVE: and_(Test.is_active.is_(True), Test.start_time <= now, Test.end_time >= now),
        STATUS_COMPLETED: and_(Test.is_active.is_(True), Test.end_time < now),
        STATUS_SCHEDULED: and_(Test.is_active.is_(True), Test.start_time > now),
    }
    if status not in conditions:
        raise InvalidInput(_('Unknown status: %(status)s', status=status))
    return conditions[status]


def _parse_passing_score(data):
    if 'passingScore' not in data:
        return current_app.config.get('DEFAULT_PASSING_SCORE', 60)
    if data['passingScore'] is None:
        return None
    return require_int(data, 'passingScore', minimum=0, maximum=100)


def _parse_window(start_raw, end_raw):
    start_time = parse_datetime(start_raw, 'startTime')
    end_time = parse_datetime(end_raw, 'endTime')
    if start_time >= end_time:
        raise InvalidInput(_('End time must be after start time'))
    return start_time, end_time


def _get_usable_question_set(set_id):
    question_set = db.session.get(QuestionSet, set_id)
    if question_set is None:
        raise NotFound(_('Question set not found'))
    if not question_set.questions:
        raise InvalidInput(_('Question set has no questions'))
    return question_set


@bp.route('', methods=['GET'])
@login_required
def list_tests():
    """
    Admins: every test with derived status, question and participant counts.
    Participants: published tests that have not ended yet.
    """
    now = utcnow()
    query = Test.query

    if current_user.has_permission('manage_tests'):
        status = request.args.get('status')
        if status:
            query = query.filter(_status_filter(status, now))
    else:
        query = query.filter(Test.is_active.is_(True), Test.end_time >= now)

    subject = request.args.get('subject')
    if subject:
        query = query.filter(Test.subject == subject)

    sort_fields = {'title': Test.title, 'start': Test.start_time, 'date': Test.created_at}
    query = apply_sorting(query, sort_fields, Test.start_time)
    return jsonify(paginate(query, lambda t: t.to_dict(now)))


@bp.route('', methods=['POST'])
@login_required
def create_test():
    authorize(current_user, 'test.create')
    data = get_json_body()

    title = require_string(data, 'title', 3)
    subject = require_string(data, 'subject', 2)
    duration = require_int(data, 'duration', minimum=1)
    start_time, end_time = _parse_window(data.get('startTime'), data.get('endTime'))
    passing_score = _parse_passing_score(data)
    question_set = _get_usable_question_set(require_int(data, 'questionSetId'))

    test = Test(
        title=title,
        subject=subject,
        description=optional_string(data, 'description'),
        duration=duration,
        start_time=start_time,
        end_time=end_time,
        passing_score=passing_score,
        is_active=optional_bool(data, 'isActive', True),
        randomize_questions=optional_bool(data, 'randomizeQuestions', False),
        question_set_id=question_set.id,
        created_by_id=current_user.id
    )
    db.session.add(test)
    db.session.commit()
    current_app.logger.info(f"Test {test.id} created by user {current_user.id}")
    return jsonify(test.to_dict()), 201


@bp.route('/available', methods=['GET'])
@login_required
def available_tests():
    """
    Tests the participant can take right now: published, inside the window
    and not already finished by this participant
    """
    authorize(current_user, 'attempt.take')
    now = utcnow()

    finished = select(TestAttempt.test_id).where(
        TestAttempt.user_id == current_user.id,
        TestAttempt.status != STATUS_IN_PROGRESS
    )
    tests = Test.query.filter(
        Test.is_active.is_(True),
        Test.start_time <= now,
        Test.end_time >= now,
        Test.id.notin_(finished)
    ).order_by(Test.end_time.asc()).all()

    in_progress = {
        a.test_id: a for a in TestAttempt.query.filter_by(
            user_id=current_user.id, status=STATUS_IN_PROGRESS).all()
    }

    data = []
    for test in tests:
        row = test.to_dict(now)
        attempt = in_progress.get(test.id)
        row['attemptId'] = attempt.id if attempt else None
        row['attemptStartTime'] = isoformat(attempt.start_time) if attempt else None
        data.append(row)
    return jsonify({'data': data})


@bp.route('/<int:test_id>', methods=['GET'])
@login_required
def get_test(test_id):
    """Admins see the full test with answer keys; participants see open or attempted tests"""
    test = _get_test(test_id)
    now = utcnow()

    if current_user.has_permission('manage_tests'):
        data = test.to_dict(now)
        data['questionSet'] = test.question_set.to_dict(include_questions=True)
        return jsonify(data)

    attempted = TestAttempt.query.filter_by(user_id=current_user.id, test_id=test.id).first() is not None
    if not attempted and not test.accepts_attempts(now):
        raise Forbidden(_('Test is not available'))
    return jsonify(test.to_dict(now))


@bp.route('/<int:test_id>', methods=['PUT'])
@login_required
@permission_required('test.update')
def update_test(test_id):
    """Update a test; once attempts exist only title, description and activation may change"""
    test = _get_test(test_id)
    authorize(current_user, 'test.update', test)
    data = get_json_body()

    if test.attempts:
        locked = set(data) - EDITABLE_AFTER_ATTEMPTS
        if locked:
            raise InvalidInput(_('Test already has attempts; cannot change: %(fields)s',
                                 fields=', '.join(sorted(locked))))

    if 'title' in data:
        test.title = require_string(data, 'title', 3)
    if 'description' in data:
        test.description = optional_string(data, 'description')
    if 'isActive' in data:
        test.is_active = optional_bool(data, 'isActive', test.is_active)
    if 'subject' in data:
        test.subject = require_string(data, 'subject', 2)
    if 'duration' in data:
        test.duration = require_int(data, 'duration', minimum=1)
    if 'passingScore' in data:
        test.passing_score = _parse_passing_score(data)
    if 'randomizeQuestions' in data:
        test.randomize_questions = optional_bool(data, 'randomizeQuestions', test.randomize_questions)
    if 'startTime' in data or 'endTime' in data:
        test.start_time, test.end_time = _parse_window(
            data.get('startTime', isoformat(test.start_time)),
            data.get('endTime', isoformat(test.end_time)))
    if 'questionSetId' in data:
        test.question_set_id = _get_usable_question_set(require_int(data, 'questionSetId')).id

    db.session.commit()
    current_app.logger.info(f"Test {test.id} updated by user {current_user.id}")
    return jsonify(test.to_dict())


@bp.route('/<int:test_id>', methods=['DELETE'])
@login_required
@permission_required('test.delete')
def delete_test(test_id):
    """Delete a test with its attempts, answers and requests"""
    test = _get_test(test_id)

    db.session.delete(test)
    db.session.commit()
    current_app.logger.info(f"Test {test_id} deleted by user {current_user.id}")
    return jsonify({'message': _('Test deleted')})
