# exam_portal/models/__init__.py
"""
Data models of the examination portal
All models gathered in one place
"""
from .user import User
from .question_set import QuestionSet
from .question import Question
from .test import Test
from .attempt import TestAttempt, Answer
from .test_request import TestRequest

__all__ = ['User', 'QuestionSet', 'Question', 'Test', 'TestAttempt', 'Answer', 'TestRequest']
