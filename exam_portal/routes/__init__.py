# exam_portal/routes/__init__.py
"""
Application routes
Every module defines one blueprint named bp
"""

__all__ = ['auth', 'main', 'users', 'admin', 'questions', 'tests', 'attempts', 'requests']
