# exam_portal/routes/users.py
"""
User directory: search across users
"""
from flask import Blueprint, jsonify, request
from flask_login import login_required
from sqlalchemy import or_
from exam_portal.models.user import User
from exam_portal.utils.auth import permission_required
from exam_portal.utils.pagination import paginate

bp = Blueprint('users', __name__)


@bp.route('/search')
@login_required
@permission_required('user.search')
def search():
    """
    Search users by free text, role, university and major

    Query args:
        q: Substring of name or email, case-insensitive
        role: Exact role
        university: Substring of the university name
        major: Substring of the major
    """
    query = User.query

    text = (request.args.get('q') or '').strip()
    if text:
        pattern = f'%{text}%'
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    role = request.args.get('role')
    if role:
        query = query.filter(User.role == role)

    university = (request.args.get('university') or '').strip()
    if university:
        query = query.filter(User.university_name.ilike(f'%{university}%'))

    major = (request.args.get('major') or '').strip()
    if major:
        query = query.filter(User.major.ilike(f'%{major}%'))

    query = query.order_by(User.name.asc())
    return jsonify(paginate(query, User.to_dict))
