# exam_portal/utils/validation.py
"""
Request body helpers
Each helper raises InvalidInput with a readable message
"""
from flask import request
from flask_babel import _

from exam_portal.errors import InvalidInput


def get_json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput(_('Request body must be a JSON object'))
    return data


def require_string(data, field, min_length=1):
    """
    Required string field, stripped

    Args:
        data (dict): Request body
        field (str): Field name
        min_length (int): Minimal length after stripping

    Returns:
        str: Value
    """
    value = data.get(field)
    if not isinstance(value, str) or len(value.strip()) < min_length:
        raise InvalidInput(_('%(field)s must be at least %(n)s characters', field=field, n=min_length))
    return value.strip()


def optional_string(data, field):
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput(_('%(field)s must be a string', field=field))
    return value.strip() or None


def require_int(data, field, minimum=None, maximum=None):
    value = data.get(field)
    if isinstance(value, bool):
        value = None
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(_('%(field)s must be an integer', field=field))
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        raise InvalidInput(_('%(field)s is out of range', field=field))
    return value


def optional_bool(data, field, default):
    value = data.get(field, default)
    if not isinstance(value, bool):
        raise InvalidInput(_('%(field)s must be a boolean', field=field))
    return value


def require_choice(data, field, choices, default=None):
    value = data.get(field, default)
    if value not in choices:
        raise InvalidInput(_('%(field)s must be one of: %(choices)s', field=field, choices=', '.join(choices)))
    return value
