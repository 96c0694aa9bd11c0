# exam_portal/routes/auth.py
"""
Authentication routes
Login, registration and logout of users
"""
from flask import Blueprint, jsonify, session, current_app
from flask_login import login_user, logout_user, login_required, current_user
from flask_babel import _
from exam_portal import db
from exam_portal.errors import InvalidInput, Unauthenticated, Conflict
from exam_portal.models.user import User, ROLE_PARTICIPANT
from exam_portal.utils.validation import get_json_body, require_string, optional_string

bp = Blueprint('auth', __name__)


@bp.route('/login', methods=['POST'])
def login():
    """Log in with email and password"""
    data = get_json_body()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        current_app.logger.info(f"Failed login for {email!r}")
        raise Unauthenticated(_('Invalid credentials'))

    login_user(user, remember=bool(data.get('remember')))
    session.permanent = True
    return jsonify({'user': user.to_dict()})


@bp.route('/register', methods=['POST'])
def register():
    """Register a new participant"""
    data = get_json_body()
    name = require_string(data, 'name', 2)
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not User.is_valid_email(email):
        raise InvalidInput(_('Invalid email format'))

    min_length = current_app.config.get('MIN_PASSWORD_LENGTH', 8)
    if len(password) < min_length:
        raise InvalidInput(_('Password must be at least %(n)s characters', n=min_length))

    if User.query.filter_by(email=email).first():
        raise Conflict(_('A user with this email already exists'))

    new_user = User(
        name=name,
        email=email,
        role=ROLE_PARTICIPANT,
        university_name=optional_string(data, 'universityName'),
        major=optional_string(data, 'major')
    )
    new_user.set_password(password)
    db.session.add(new_user)
    db.session.commit()
    current_app.logger.info(f"Participant registered: {email}")

    return jsonify({'user': new_user.to_dict()}), 201


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    session.clear()
    return jsonify({'message': _('Logged out')})


@bp.route('/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})
