# exam_portal/utils/dates.py
"""
Date helpers: everything is stored as naive UTC and sent as ISO-8601 with a 'Z' suffix
"""
from datetime import datetime, timezone
from flask_babel import _

from exam_portal.errors import InvalidInput

STATUS_DRAFT = 'draft'
STATUS_ACTIVE = 'active'
STATUS_COMPLETED = 'completed'
STATUS_SCHEDULED = 'scheduled'


def utcnow():
    """Current moment as naive UTC datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value):
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    """
    Serialize a stored datetime for the wire

    Args:
        value (datetime|None): Naive UTC datetime

    Returns:
        str|None: '2025-01-31T09:00:00Z' or None
    """
    if value is None:
        return None
    return to_naive_utc(value).isoformat(timespec='seconds') + 'Z'


def parse_datetime(value, field='date'):
    """
    Parse an ISO-8601 string coming from a request body

    Args:
        value (str): Date string, with or without offset
        field (str): Field name used in the error message

    Returns:
        datetime: Naive UTC datetime

    Raises:
        InvalidInput: If the value is missing or malformed
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(_('%(field)s is required', field=field))
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidInput(_('%(field)s is not a valid ISO-8601 date', field=field))
    return to_naive_utc(parsed)


def is_within_window(start_time, end_time, now):
    return start_time <= now <= end_time


def derive_test_status(is_active, start_time, end_time, now):
    """
    Display status of a test

    Args:
        is_active (bool): Activation flag set by the admin
        start_time (datetime): Window opening
        end_time (datetime): Window closing
        now (datetime): Reference moment

    Returns:
        str: 'draft', 'active', 'completed' or 'scheduled'
    """
    if not is_active:
        return STATUS_DRAFT
    if is_within_window(start_time, end_time, now):
        return STATUS_ACTIVE
    if end_time < now:
        return STATUS_COMPLETED
    return STATUS_SCHEDULED
