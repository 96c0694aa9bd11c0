# exam_portal/routes/main.py
"""
Main routes
Service index, own profile and password change
"""
from flask import Blueprint, jsonify, current_app, session
from flask_login import login_required, current_user
from flask_babel import _
from exam_portal import db
from exam_portal.errors import InvalidInput
from exam_portal.models.attempt import TestAttempt, TERMINAL_STATUSES
from exam_portal.utils.scoring import round_half_up
from exam_portal.utils.validation import get_json_body

bp = Blueprint('main', __name__)


@bp.route('/')
def index():
    """Service description and the current user, if any"""
    return jsonify({
        'name': current_app.config.get('APP_NAME'),
        'user': current_user.to_dict() if current_user.is_authenticated else None,
    })


@bp.route('/change_language/<language>', methods=['POST'])
def change_language(language):
    """Language of error messages for this session"""
    if language not in current_app.config.get('LANGUAGES', {}):
        raise InvalidInput(_('Unsupported language'))
    session['language'] = language
    return jsonify({'language': language})


@bp.route('/profile', methods=['GET'])
@login_required
def profile():
    """
    Own profile with attempt statistics
    """
    scores = [
        a.score for a in TestAttempt.query.filter(
            TestAttempt.user_id == current_user.id,
            TestAttempt.status.in_(TERMINAL_STATUSES)
        ).all()
        if a.score is not None
    ]
    data = current_user.to_dict()
    data['testsTaken'] = len(scores)
    data['averageScore'] = round_half_up(sum(scores) / len(scores)) if scores else 0
    return jsonify(data)


@bp.route('/profile', methods=['PUT'])
@login_required
def update_profile():
    """
    Update name, university and major; email and role cannot be changed here
    """
    data = get_json_body()
    changes = {}

    if 'name' in data:
        name = data.get('name')
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput(_('Name cannot be empty'))
        changes['name'] = name.strip()

    for field, key in (('university_name', 'universityName'), ('major', 'major')):
        if key in data:
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise InvalidInput(_('%(field)s must be a string', field=key))
            changes[field] = value.strip() if value else None

    current_user.update_profile(**changes)
    db.session.commit()
    current_app.logger.info(f"Profile updated: user {current_user.id}")
    return jsonify(current_user.to_dict())


@bp.route('/profile/password', methods=['PUT'])
@login_required
def change_password():
    """
    Change own password; the current one must be confirmed
    """
    data = get_json_body()
    current_password = data.get('currentPassword') or ''
    new_password = data.get('newPassword') or ''
    confirm_password = data.get('confirmPassword') or ''

    if not current_user.check_password(current_password):
        raise InvalidInput(_('Current password is incorrect'))

    min_length = current_app.config.get('MIN_PASSWORD_LENGTH', 8)
    if len(new_password) < min_length:
        raise InvalidInput(_('Password must be at least %(n)s characters', n=min_length))

    if new_password != confirm_password:
        raise InvalidInput(_('Passwords do not match'))

    current_user.set_password(new_password)
    db.session.commit()
    current_app.logger.info(f"Password changed: user {current_user.id}")
    return jsonify({'message': _('Password updated')})
