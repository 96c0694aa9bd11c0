# exam_portal/models/test.py
"""
Test model: a scheduled, time-windowed assignment of one question set
"""
from datetime import timedelta
from exam_portal import db
from exam_portal.utils.dates import utcnow, isoformat, is_within_window, derive_test_status
from sqlalchemy import String, Integer, Text, DateTime, Boolean, ForeignKey


class Test(db.Model):
    """
    Test

    Attributes:
        id (int): Unique identifier
        title (str): Title
        description (str): Optional description
        subject (str): Subject
        duration (int): Time allowed for one attempt, minutes
        start_time (datetime): Admission window opening (UTC)
        end_time (datetime): Admission window closing (UTC), after start_time
        passing_score (int): Threshold in [0, 100]; None means no pass/fail grading
        is_active (bool): Unpublished tests never admit participants
        randomize_questions (bool): Shuffle question order once per attempt
        question_set_id (int): Question set the test is built on
        created_by_id (int): Author
        attempts (relationship): Attempts, deleted with the test
        requests (relationship): Test requests, deleted with the test
    """

    __tablename__ = 'tests'

    id = db.Column(Integer, primary_key=True)
    title = db.Column(String(200), nullable=False)
    description = db.Column(Text)
    subject = db.Column(String(100), nullable=False)
    duration = db.Column(Integer, nullable=False)
    start_time = db.Column(DateTime, nullable=False)
    end_time = db.Column(DateTime, nullable=False)
    passing_score = db.Column(Integer, nullable=True, default=60)
    is_active = db.Column(Boolean, nullable=False, default=True)
    randomize_questions = db.Column(Boolean, nullable=False, default=False)
    question_set_id = db.Column(Integer, ForeignKey('question_sets.id'), nullable=False)
    created_by_id = db.Column(Integer, ForeignKey('users.id'), nullable=False)
    created_at = db.Column(DateTime, default=utcnow)
    updated_at = db.Column(DateTime, default=utcnow, onupdate=utcnow)

    question_set = db.relationship('QuestionSet', back_populates='tests')
    creator = db.relationship('User', foreign_keys=[created_by_id])
    attempts = db.relationship('TestAttempt', back_populates='test', lazy=True,
                               cascade='all, delete-orphan', passive_deletes=True)
    requests = db.relationship('TestRequest', back_populates='test', lazy=True,
                               cascade='all, delete-orphan', passive_deletes=True)

    def __repr__(self):
        return f'<Test {self.id}: {self.title}>'

    def accepts_attempts(self, now):
        """
        Whether a participant may start or resume an attempt at the given moment

        Args:
            now (datetime): Naive UTC moment

        Returns:
            bool: True if active and inside [start_time, end_time]
        """
        return bool(self.is_active) and is_within_window(self.start_time, self.end_time, now)

    def display_status(self, now=None):
        return derive_test_status(self.is_active, self.start_time, self.end_time, now or utcnow())

    def deadline_for(self, attempt):
        """Moment an attempt runs out of time: duration or window end, whichever comes first"""
        return min(attempt.start_time + timedelta(minutes=self.duration), self.end_time)

    def to_dict(self, now=None):
        questions = self.question_set.questions if self.question_set else []
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'subject': self.subject,
            'duration': self.duration,
            'startTime': isoformat(self.start_time),
            'endTime': isoformat(self.end_time),
            'passingScore': self.passing_score,
            'isActive': self.is_active,
            'randomizeQuestions': self.randomize_questions,
            'questionSetId': self.question_set_id,
            'createdById': self.created_by_id,
            'status': self.display_status(now),
            'questions': len(questions),
            'participants': len(self.attempts),
            'createdAt': isoformat(self.created_at),
        }
