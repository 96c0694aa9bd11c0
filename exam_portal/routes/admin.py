# exam_portal/routes/admin.py
"""
Administrator routes
User management with attempt statistics
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from flask_babel import _
from exam_portal import db
from exam_portal.errors import InvalidInput, Conflict, NotFound
from exam_portal.models.user import User, ROLES, ROLE_PARTICIPANT
from exam_portal.models.question_set import QuestionSet
from exam_portal.models.test import Test
from exam_portal.models.attempt import TestAttempt, TERMINAL_STATUSES
from exam_portal.utils.auth import permission_required
from exam_portal.utils.pagination import paginate, apply_sorting
from exam_portal.utils.scoring import summarize_scores
from exam_portal.utils.validation import get_json_body, require_string, optional_string, require_choice

bp = Blueprint('admin', __name__)


def _get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound(_('User not found'))
    return user


@bp.route('/users', methods=['GET'])
@login_required
@permission_required('user.manage')
def users():
    """All users, optionally filtered by role"""
    query = User.query
    role = request.args.get('role')
    if role:
        query = query.filter(User.role == role)

    sort_fields = {
        'name': User.name,
        'email': User.email,
        'role': User.role,
        'date': User.created_at,
    }
    query = apply_sorting(query, sort_fields, User.created_at)
    return jsonify(paginate(query, User.to_dict))


@bp.route('/users', methods=['POST'])
@login_required
@permission_required('user.manage')
def create_user():
    """Create a user of any role"""
    data = get_json_body()
    name = require_string(data, 'name', 2)
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    role = require_choice(data, 'role', ROLES, default=ROLE_PARTICIPANT)

    if not User.is_valid_email(email):
        raise InvalidInput(_('Invalid email format'))
    min_length = current_app.config.get('MIN_PASSWORD_LENGTH', 8)
    if len(password) < min_length:
        raise InvalidInput(_('Password must be at least %(n)s characters', n=min_length))
    if User.query.filter_by(email=email).first():
        raise Conflict(_('A user with this email already exists'))

    user = User(
        name=name,
        email=email,
        role=role,
        university_name=optional_string(data, 'universityName'),
        major=optional_string(data, 'major')
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"User {email} ({role}) created by admin {current_user.id}")
    return jsonify(user.to_dict()), 201


@bp.route('/users/<int:user_id>', methods=['GET'])
@login_required
@permission_required('user.manage')
def get_user(user_id):
    """User with attempt history and metrics"""
    user = _get_user(user_id)
    attempts = TestAttempt.query.filter_by(user_id=user.id) \
        .order_by(TestAttempt.start_time.desc()).all()
    finished = [a for a in attempts if a.status in TERMINAL_STATUSES]

    data = user.to_dict()
    data['attempts'] = [a.to_dict() for a in attempts]
    data['statistics'] = summarize_scores(finished)
    return jsonify(data)


@bp.route('/users/<int:user_id>', methods=['PUT'])
@login_required
@permission_required('user.manage')
def update_user(user_id):
    """Update name, role, university and major of a user"""
    user = _get_user(user_id)
    data = get_json_body()

    if 'name' in data:
        user.name = require_string(data, 'name', 2)
    if 'role' in data:
        role = require_choice(data, 'role', ROLES)
        if user.id == current_user.id and role != user.role:
            raise Conflict(_('You cannot change your own role'))
        user.role = role
    if 'universityName' in data:
        user.university_name = optional_string(data, 'universityName')
    if 'major' in data:
        user.major = optional_string(data, 'major')

    db.session.commit()
    current_app.logger.info(f"User {user.id} updated by admin {current_user.id}")
    return jsonify(user.to_dict())


@bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required
@permission_required('user.manage')
def delete_user(user_id):
    """Delete a user together with their attempts and requests"""
    user = _get_user(user_id)
    if user.id == current_user.id:
        raise Conflict(_('You cannot delete your own account'))

    owns_content = QuestionSet.query.filter_by(created_by_id=user.id).first() is not None \
        or Test.query.filter_by(created_by_id=user.id).first() is not None
    if owns_content:
        raise Conflict(_('User still owns question sets or tests'))

    db.session.delete(user)
    db.session.commit()
    current_app.logger.info(f"User {user_id} deleted by admin {current_user.id}")
    return jsonify({'message': _('User deleted')})
