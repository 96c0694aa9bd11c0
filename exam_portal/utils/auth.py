# exam_portal/utils/auth.py
"""
Authorization gate
Checks run in two stages: authorize(principal, action) checks the role before the
store is queried, authorize(principal, action, resource) adds the ownership check
once the resource is loaded
"""
from functools import wraps
from flask import current_app
from flask_babel import _
from flask_login import current_user

from exam_portal.errors import Unauthenticated, Forbidden


def _owns(principal, resource):
    return resource is not None and resource.user_id == principal.id


def _owns_question_set(principal, question_set):
    return question_set is not None and question_set.created_by_id == principal.id


# action -> (role permission, ownership check or None)
RULES = {
    'user.search': ('search_users', None),
    'user.manage': ('manage_users', None),
    'question_set.create': ('manage_question_bank', None),
    'question_set.modify': ('manage_question_bank', _owns_question_set),
    'question.modify': ('manage_question_bank', lambda p, q: _owns_question_set(p, q.question_set)),
    'test.create': ('manage_tests', None),
    'test.update': ('manage_tests', lambda p, t: t.created_by_id == p.id),
    'test.delete': ('manage_tests', None),
    'attempt.take': ('take_tests', None),
    'attempt.answer': ('take_tests', _owns),
    'attempt.delete': ('view_all_results', None),
    'request.create': ('create_requests', None),
    'request.review': ('review_requests', None),
}

# Readable by the owner, or by anyone holding the permission
READ_RULES = {
    'attempt.view': 'view_all_results',
    'request.view': 'review_requests',
}


def is_allowed(principal, action, resource=None):
    """
    Decide whether the principal may perform the action

    Args:
        principal: Authenticated user (or anonymous user)
        action (str): Action name, e.g. 'question_set.modify'
        resource: Object the action applies to; None checks the role only

    Returns:
        bool: True if allowed
    """
    if principal is None or not principal.is_authenticated:
        return False
    if action in READ_RULES:
        return _owns(principal, resource) or principal.has_permission(READ_RULES[action])
    permission, ownership = RULES[action]
    if not principal.has_permission(permission):
        return False
    if ownership is None or resource is None:
        return True
    return ownership(principal, resource)


def authorize(principal, action, resource=None):
    """
    Raise unless the principal may perform the action

    Raises:
        Unauthenticated: No authenticated principal
        Forbidden: Role or ownership check failed
    """
    if principal is None or not principal.is_authenticated:
        raise Unauthenticated()
    if not is_allowed(principal, action, resource):
        current_app.logger.warning(f"Access denied: user {principal.id} -> {action}")
        raise Forbidden(_('You are not allowed to perform this action'))


def permission_required(action):
    """Decorator form of the role stage of authorize(), run before the view touches the store"""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            authorize(current_user, action)
            return view(*args, **kwargs)
        return wrapped
    return decorator
