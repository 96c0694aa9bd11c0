# exam_portal/models/attempt.py
"""
Test attempt and answer models
An attempt is one participant's run through a test, from admission to scoring
"""
from exam_portal import db
from exam_portal.utils.dates import utcnow, isoformat
from sqlalchemy import String, Integer, Text, DateTime, Boolean, ForeignKey, Index, UniqueConstraint, text
from exam_portal.utils.scoring import STATUS_COMPLETED, STATUS_PASSED, STATUS_FAILED
import json

STATUS_IN_PROGRESS = 'IN_PROGRESS'
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_PASSED, STATUS_FAILED)
ATTEMPT_STATUSES = (STATUS_IN_PROGRESS,) + TERMINAL_STATUSES


class TestAttempt(db.Model):
    """
    Test attempt

    Attributes:
        id (int): Unique identifier
        user_id (int): Participant
        test_id (int): Test taken
        status (str): 'IN_PROGRESS', 'COMPLETED', 'PASSED' or 'FAILED'
        score (int): Percentage in [0, 100], set on submission
        start_time (datetime): Admission moment, never changed on resume
        end_time (datetime): Submission moment
        question_order (str): JSON list of question ids fixed at creation
        answers (relationship): Answers, deleted with the attempt
    """

    __tablename__ = 'test_attempts'
    # At most one unfinished attempt per participant and test
    __table_args__ = (
        Index('uq_attempt_in_progress', 'user_id', 'test_id', unique=True,
              sqlite_where=text("status = 'IN_PROGRESS'"),
              postgresql_where=text("status = 'IN_PROGRESS'")),
    )

    id = db.Column(Integer, primary_key=True)
    user_id = db.Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    test_id = db.Column(Integer, ForeignKey('tests.id', ondelete='CASCADE'), nullable=False)
    status = db.Column(String(20), nullable=False, default=STATUS_IN_PROGRESS)
    score = db.Column(Integer)
    start_time = db.Column(DateTime, nullable=False, default=utcnow)
    end_time = db.Column(DateTime)
    question_order = db.Column(Text, default='[]')
    created_at = db.Column(DateTime, default=utcnow)
    updated_at = db.Column(DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship('User', back_populates='attempts')
    test = db.relationship('Test', back_populates='attempts')
    answers = db.relationship('Answer', back_populates='attempt', order_by='Answer.id',
                              cascade='all, delete-orphan', passive_deletes=True)

    def __repr__(self):
        return f'<TestAttempt {self.id} user={self.user_id} test={self.test_id} {self.status}>'

    @property
    def question_ids(self):
        try:
            return [int(qid) for qid in json.loads(self.question_order or '[]')]
        except (TypeError, ValueError):
            return []

    @question_ids.setter
    def question_ids(self, value):
        self.question_order = json.dumps(list(value))

    @property
    def is_finished(self):
        return self.status in TERMINAL_STATUSES

    def answer_map(self):
        return {a.question_id: a for a in self.answers}

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'userName': self.user.name if self.user else None,
            'testId': self.test_id,
            'testTitle': self.test.title if self.test else None,
            'status': self.status,
            'score': self.score,
            'passed': self.status == STATUS_PASSED,
            'startTime': isoformat(self.start_time),
            'endTime': isoformat(self.end_time),
        }


class Answer(db.Model):
    """
    Answer given within an attempt

    Attributes:
        id (int): Unique identifier
        test_attempt_id (int): Attempt
        question_id (int): Question answered
        answer (str): Raw answer (option id or essay text)
        is_correct (bool): None until the attempt is graded
    """

    __tablename__ = 'answers'
    __table_args__ = (
        UniqueConstraint('test_attempt_id', 'question_id', name='uq_answer_attempt_question'),
    )

    id = db.Column(Integer, primary_key=True)
    test_attempt_id = db.Column(Integer, ForeignKey('test_attempts.id', ondelete='CASCADE'), nullable=False)
    question_id = db.Column(Integer, ForeignKey('questions.id', ondelete='CASCADE'), nullable=False)
    answer = db.Column(Text, nullable=False, default='')
    is_correct = db.Column(Boolean, nullable=True)
    created_at = db.Column(DateTime, default=utcnow)
    updated_at = db.Column(DateTime, default=utcnow, onupdate=utcnow)

    attempt = db.relationship('TestAttempt', back_populates='answers')
    question = db.relationship('Question', back_populates='answers')

    def __repr__(self):
        return f'<Answer attempt={self.test_attempt_id} question={self.question_id}>'
