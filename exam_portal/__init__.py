# exam_portal/__init__.py
"""
Flask application of the online examination portal
Creates the application instance and initializes extensions
"""
from flask import Flask, session, request, has_request_context
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_babel import Babel
from sqlalchemy.exc import SQLAlchemyError
from config import Config


# Flask extensions (created before create_app)
db = SQLAlchemy()
login_manager = LoginManager()


def create_app(config_class=Config):
    """
    Create and configure a Flask application instance

    Args:
        config_class: Application configuration class

    Returns:
        app: Configured Flask application
    """
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(app)
    # === Foreign keys are off by default in SQLite ===
    if 'sqlite' in app.config.get('SQLALCHEMY_DATABASE_URI'):
        from sqlalchemy import event
        from sqlalchemy.engine import Engine

        @event.listens_for(Engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def unauthorized():
        from exam_portal.errors import Unauthenticated
        raise Unauthenticated()

    # === Babel: locale of error messages ===
    def get_locale():
        if not has_request_context():
            return app.config.get('BABEL_DEFAULT_LOCALE', 'en')
        lang = session.get('language')
        if lang in app.config.get('LANGUAGES', {}):
            return lang
        return request.accept_languages.best_match(list(app.config.get('LANGUAGES', {}).keys())) \
            or app.config.get('BABEL_DEFAULT_LOCALE', 'en')

    Babel(app, locale_selector=get_locale)

    from exam_portal.errors import register_error_handlers
    register_error_handlers(app)

    # === Blueprints ===
    from exam_portal.routes.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from exam_portal.routes.main import bp as main_bp
    app.register_blueprint(main_bp)

    from exam_portal.routes.users import bp as users_bp
    app.register_blueprint(users_bp, url_prefix='/users')

    from exam_portal.routes.admin import bp as admin_bp
    app.register_blueprint(admin_bp, url_prefix='/admin')

    from exam_portal.routes.questions import bp as questions_bp
    app.register_blueprint(questions_bp)

    from exam_portal.routes.tests import bp as tests_bp
    app.register_blueprint(tests_bp, url_prefix='/tests')

    from exam_portal.routes.attempts import bp as attempts_bp
    app.register_blueprint(attempts_bp, url_prefix='/attempts')

    from exam_portal.routes.requests import bp as requests_bp
    app.register_blueprint(requests_bp, url_prefix='/test-requests')

    # === Database initialization ===
    with app.app_context():
        # Models must be imported for create_all to see them
        from exam_portal.models import User

        db.create_all()

        # === Default administrator ===
        admin_email = app.config.get('DEFAULT_ADMIN_EMAIL')
        if admin_email and not User.query.filter_by(email=admin_email).first():
            admin_user = User(
                name=app.config.get('DEFAULT_ADMIN_NAME', 'Administrator'),
                email=admin_email,
                role='ADMIN'
            )
            admin_user.set_password(app.config['DEFAULT_ADMIN_PASSWORD'])
            db.session.add(admin_user)
            try:
                db.session.commit()
                app.logger.info(f"Default administrator created: {admin_email}")
            except SQLAlchemyError as e:
                db.session.rollback()
                app.logger.error(f"Failed to create default administrator: {e}")

    return app


# User loader for Flask-Login
@login_manager.user_loader
def load_user(user_id):
    from exam_portal.models.user import User
    if user_id is None:
        return None
    try:
        return db.session.get(User, int(user_id))
    except (ValueError, TypeError):
        return None
