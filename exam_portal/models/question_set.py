# exam_portal/models/question_set.py
"""
Question set model: a reusable bank of questions authored by one administrator
"""
from exam_portal import db
from exam_portal.utils.dates import utcnow, isoformat
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey


class QuestionSet(db.Model):
    """
    Question set

    Attributes:
        id (int): Unique identifier
        title (str): Title
        description (str): Optional description
        subject (str): Subject
        created_by_id (int): Owner, fixed at creation
        created_at (datetime): Creation date
        updated_at (datetime): Last modification date
        questions (relationship): Questions in creation order (deleted with the set)
        tests (relationship): Tests built on this set
    """

    __tablename__ = 'question_sets'

    id = db.Column(Integer, primary_key=True)
    title = db.Column(String(200), nullable=False)
    description = db.Column(Text)
    subject = db.Column(String(100), nullable=False)
    created_by_id = db.Column(Integer, ForeignKey('users.id'), nullable=False)
    created_at = db.Column(DateTime, default=utcnow)
    updated_at = db.Column(DateTime, default=utcnow, onupdate=utcnow)

    creator = db.relationship('User', back_populates='question_sets')
    questions = db.relationship('Question', back_populates='question_set', order_by='Question.id',
                                cascade='all, delete-orphan', passive_deletes=True)
    tests = db.relationship('Test', back_populates='question_set', lazy=True)

    def __repr__(self):
        return f'<QuestionSet {self.id}: {self.title}>'

    def to_dict(self, include_questions=False, include_answers=True):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'subject': self.subject,
            'createdById': self.created_by_id,
            'questionCount': len(self.questions),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }
        if include_questions:
            data['questions'] = [q.to_dict(include_answer=include_answers) for q in self.questions]
        return data
