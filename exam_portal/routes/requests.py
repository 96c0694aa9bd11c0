# exam_portal/routes/requests.py
"""
Test request routes
Participants file retake / extra time / application requests, administrators review them once
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from flask_babel import _
from sqlalchemy import or_
from exam_portal import db
from exam_portal.errors import NotFound, InvalidInput, Conflict
from exam_portal.models.user import User
from exam_portal.models.test import Test
from exam_portal.models.attempt import TestAttempt
from exam_portal.models.test_request import (TestRequest, REQUEST_TYPES, REQUEST_STATUSES,
                                             STATUS_APPROVED, STATUS_DENIED, STATUS_PENDING)
from exam_portal.utils.auth import authorize
from exam_portal.utils.dates import utcnow
from exam_portal.utils.pagination import paginate
from exam_portal.utils.validation import get_json_body, require_string, require_int, require_choice, optional_string

bp = Blueprint('requests', __name__)

REVIEW_ACTIONS = {
    'approve': STATUS_APPROVED,
    'deny': STATUS_DENIED,
}


def _get_request(request_id):
    test_request = db.session.get(TestRequest, request_id)
    if test_request is None:
        raise NotFound(_('Test request not found'))
    return test_request


@bp.route('', methods=['GET'])
@login_required
def list_requests():
    """
    Participants see their own requests, administrators see all of them.

    Query args:
        status: PENDING, APPROVED or DENIED
        type: RETAKE, EXTRA_TIME or APPLICATION
        search: participant name/email or test title (administrators)
    """
    query = TestRequest.query
    if not current_user.has_permission('review_requests'):
        query = query.filter(TestRequest.user_id == current_user.id)
    else:
        search = (request.args.get('search') or '').strip()
        if search:
            pattern = f'%{search}%'
            query = query.join(User, TestRequest.user_id == User.id) \
                .join(Test, TestRequest.test_id == Test.id) \
                .filter(or_(User.name.ilike(pattern), User.email.ilike(pattern), Test.title.ilike(pattern)))

    status = request.args.get('status')
    if status:
        if status not in REQUEST_STATUSES:
            raise InvalidInput(_('Unknown status: %(status)s', status=status))
        query = query.filter(TestRequest.status == status)

    request_type = request.args.get('type')
    if request_type:
        if request_type not in REQUEST_TYPES:
            raise InvalidInput(_('Unknown request type: %(type)s', type=request_type))
        query = query.filter(TestRequest.type == request_type)

    query = query.order_by(TestRequest.created_at.desc(), TestRequest.id.desc())
    return jsonify(paginate(query, TestRequest.to_dict))


@bp.route('', methods=['POST'])
@login_required
def create_request():
    """File a request; the participant's latest score and attempt count are recorded with it"""
    authorize(current_user, 'request.create')
    data = get_json_body()
    test_id = require_int(data, 'testId')
    request_type = require_choice(data, 'type', REQUEST_TYPES)
    reason = require_string(data, 'reason', 3)

    test = db.session.get(Test, test_id)
    if test is None:
        raise NotFound(_('Test not found'))

    attempts = TestAttempt.query.filter_by(user_id=current_user.id, test_id=test.id) \
        .order_by(TestAttempt.start_time.desc(), TestAttempt.id.desc()).all()

    test_request = TestRequest(
        user_id=current_user.id,
        test_id=test.id,
        type=request_type,
        reason=reason,
        status=STATUS_PENDING,
        previous_score=attempts[0].score if attempts else None,
        previous_attempts=len(attempts)
    )
    db.session.add(test_request)
    db.session.commit()
    current_app.logger.info(f"Test request {test_request.id} ({request_type}) filed by user {current_user.id}")
    return jsonify(test_request.to_dict()), 201


@bp.route('/<int:request_id>', methods=['GET'])
@login_required
def get_request(request_id):
    test_request = _get_request(request_id)
    authorize(current_user, 'request.view', test_request)
    return jsonify(test_request.to_dict())


@bp.route('/review', methods=['PUT'])
@login_required
def review_request():
    """
    Approve or deny a pending request. A request is reviewed once:
    later reviews are refused and the first decision stays.
    """
    authorize(current_user, 'request.review')
    data = get_json_body()
    request_id = require_int(data, 'requestId')
    action = data.get('action')
    if action not in REVIEW_ACTIONS:
        raise InvalidInput(_('Action must be approve or deny'))

    test_request = _get_request(request_id)
    if not test_request.is_pending:
        raise Conflict(_('Test request has already been reviewed'))

    feedback = optional_string(data, 'feedback') or (
        _('Request approved') if action == 'approve' else _('Request denied'))
    # Conditional update: a concurrent review of the same request matches no row
    updated = TestRequest.query.filter_by(id=test_request.id, status=STATUS_PENDING).update({
        'status': REVIEW_ACTIONS[action],
        'feedback': str(feedback),
        'reviewed_by_id': current_user.id,
        'reviewed_at': utcnow(),
        'updated_at': utcnow(),
    }, synchronize_session=False)
    if not updated:
        db.session.rollback()
        raise Conflict(_('Test request has already been reviewed'))
    db.session.commit()

    current_app.logger.info(f"Test request {test_request.id} {test_request.status} by admin {current_user.id}")
    return jsonify(test_request.to_dict())
