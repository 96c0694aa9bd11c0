"""
Shared fixtures: an application on an in-memory database, users, logged-in clients
and a question bank with one open test.
"""
from datetime import timedelta

import pytest

from config import Config
from exam_portal import create_app, db
from exam_portal.models import User, QuestionSet, Question, Test as ExamModel
from exam_portal.utils.dates import utcnow

PASSWORD = 'password123'


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    DEFAULT_ADMIN_EMAIL = None
    LOG_LEVEL = 'WARNING'


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


def create_user(app, name, email, role='PARTICIPANT', **extra):
    with app.app_context():
        user = User(name=name, email=email, role=role, **extra)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user.id


def login(client, email, password=PASSWORD):
    response = client.post('/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return client


def create_question_set(app, owner_id, count=4, subject='Mathematics'):
    """Set of multiple-choice questions with options a/b, correct answer 'a'"""
    with app.app_context():
        question_set = QuestionSet(title='Algebra basics', subject=subject, created_by_id=owner_id)
        db.session.add(question_set)
        db.session.flush()
        for index in range(count):
            question = Question(
                text=f'Question number {index + 1}?',
                type='MULTIPLE_CHOICE',
                subject=subject,
                correct_answer='a',
                explanation='Because a is right',
                question_set_id=question_set.id
            )
            question.options = {'a': 'X', 'b': 'Y'}
            db.session.add(question)
        db.session.commit()
        return {'id': question_set.id, 'question_ids': [q.id for q in question_set.questions]}


def create_exam(app, question_set_id, creator_id, **overrides):
    """Test open from an hour ago to an hour from now unless overridden"""
    now = utcnow()
    fields = {
        'title': 'Midterm exam',
        'subject': 'Mathematics',
        'duration': 30,
        'start_time': now - timedelta(hours=1),
        'end_time': now + timedelta(hours=1),
        'passing_score': 75,
        'is_active': True,
        'randomize_questions': False,
    }
    fields.update(overrides)
    with app.app_context():
        test = ExamModel(question_set_id=question_set_id, created_by_id=creator_id, **fields)
        db.session.add(test)
        db.session.commit()
        return test.id


@pytest.fixture
def admin_id(app):
    return create_user(app, 'Alice Admin', 'admin@test.io', role='ADMIN')


@pytest.fixture
def participant_id(app):
    return create_user(app, 'Bob Participant', 'bob@test.io',
                       university_name='State University', major='Physics')


@pytest.fixture
def other_participant_id(app):
    return create_user(app, 'Carol Student', 'carol@test.io',
                       university_name='Tech Institute', major='Chemistry')


@pytest.fixture
def admin_client(app, admin_id):
    return login(app.test_client(), 'admin@test.io')


@pytest.fixture
def participant_client(app, participant_id):
    return login(app.test_client(), 'bob@test.io')


@pytest.fixture
def other_participant_client(app, other_participant_id):
    return login(app.test_client(), 'carol@test.io')


@pytest.fixture
def anonymous_client(app):
    return app.test_client()


@pytest.fixture
def question_set(app, admin_id):
    return create_question_set(app, admin_id)


@pytest.fixture
def exam_id(app, admin_id, question_set):
    return create_exam(app, question_set['id'], admin_id)
