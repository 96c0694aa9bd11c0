# exam_portal/errors.py
"""
Error taxonomy of the examination portal
Every error carries an HTTP status and a machine-readable kind
"""
from flask import jsonify, current_app
from flask_babel import lazy_gettext as _l
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import SQLAlchemyError


class PortalError(Exception):
    """
    Base class of all errors raised by request handlers

    Attributes:
        status_code (int): HTTP status returned to the client
        kind (str): Stable error identifier placed in the 'error' field
        message (str): Human-readable description
    """
    status_code = 500
    kind = 'internal'
    default_message = _l('Internal server error')

    def __init__(self, message=None):
        self.message = message or str(self.default_message)
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.kind, 'message': self.message}


class Unauthenticated(PortalError):
    status_code = 401
    kind = 'unauthenticated'
    default_message = _l('Authentication required')


class Forbidden(PortalError):
    status_code = 403
    kind = 'forbidden'
    default_message = _l('Access denied')


class NotFound(PortalError):
    status_code = 404
    kind = 'not_found'
    default_message = _l('Resource not found')


class InvalidInput(PortalError):
    status_code = 400
    kind = 'invalid_input'
    default_message = _l('Invalid input')


class Conflict(PortalError):
    status_code = 409
    kind = 'conflict'
    default_message = _l('Conflict with the current state of the resource')


class InternalError(PortalError):
    pass


_HTTP_KINDS = {
    400: 'invalid_input',
    401: 'unauthenticated',
    403: 'forbidden',
    404: 'not_found',
    409: 'conflict',
}


def register_error_handlers(app):
    """
    Register JSON error handlers on the application

    Args:
        app: Flask application instance
    """

    @app.errorhandler(PortalError)
    def handle_portal_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        # Routing redirects are not errors
        if error.code is None or error.code < 400:
            return error
        kind = _HTTP_KINDS.get(error.code, 'internal' if error.code >= 500 else 'invalid_input')
        return jsonify({'error': kind, 'message': error.description}), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        from exam_portal import db
        db.session.rollback()
        current_app.logger.exception("Database error")
        return jsonify(InternalError().to_dict()), 500
