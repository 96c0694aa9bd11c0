# exam_portal/utils/__init__.py
"""
Helpers of the examination portal
Only the request-independent ones are re-exported here
"""
from .dates import utcnow, isoformat, parse_datetime, derive_test_status
from .scoring import round_half_up, is_answer_correct, calculate_score, determine_status, summarize_result

__all__ = [
    'utcnow', 'isoformat', 'parse_datetime', 'derive_test_status',
    'round_half_up', 'is_answer_correct', 'calculate_score', 'determine_status', 'summarize_result'
]
