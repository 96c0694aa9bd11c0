# exam_portal/models/question.py
"""
Question model of the examination portal
Multiple-choice questions carry their options as JSON text
"""
from exam_portal import db
from exam_portal.utils.dates import utcnow, isoformat
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey
import json

TYPE_MULTIPLE_CHOICE = 'MULTIPLE_CHOICE'
TYPE_ESSAY = 'ESSAY'
QUESTION_TYPES = (TYPE_MULTIPLE_CHOICE, TYPE_ESSAY)

DIFFICULTIES = ('EASY', 'MEDIUM', 'HARD')


class Question(db.Model):
    """
    Question

    Attributes:
        id (int): Unique identifier
        text (str): Question text
        type (str): 'MULTIPLE_CHOICE' or 'ESSAY'
        subject (str): Subject
        difficulty (str): 'EASY', 'MEDIUM' or 'HARD'
        options_json (str): JSON object {option id: option text}, MULTIPLE_CHOICE only
        correct_answer (str): Answer key; for MULTIPLE_CHOICE an option id
        explanation (str): Shown with results
        points (int): Weight, positive
        question_set_id (int): Owning set, fixed at creation
        created_at (datetime): Creation date
        updated_at (datetime): Last modification date
    """

    __tablename__ = 'questions'

    id = db.Column(Integer, primary_key=True)
    text = db.Column(Text, nullable=False)
    type = db.Column(String(20), nullable=False, default=TYPE_MULTIPLE_CHOICE)
    subject = db.Column(String(100), nullable=False)
    difficulty = db.Column(String(10), nullable=False, default='MEDIUM')
    # SQLite has no native JSON column in older versions: keep serialized text
    options_json = db.Column(Text, default='{}')
    correct_answer = db.Column(Text)
    explanation = db.Column(Text)
    points = db.Column(Integer, nullable=False, default=1)
    question_set_id = db.Column(Integer, ForeignKey('question_sets.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(DateTime, default=utcnow)
    updated_at = db.Column(DateTime, default=utcnow, onupdate=utcnow)

    question_set = db.relationship('QuestionSet', back_populates='questions')
    answers = db.relationship('Answer', back_populates='question', lazy=True,
                              cascade='all, delete-orphan', passive_deletes=True)

    def __repr__(self):
        return f'<Question {self.type}: {self.text[:50]}...>'

    @property
    def options(self):
        """
        Options of a multiple-choice question

        Returns:
            dict: {option id: option text}, empty for essays
        """
        try:
            value = json.loads(self.options_json) if self.options_json else {}
        except (TypeError, ValueError):
            return {}
        return value if isinstance(value, dict) else {}

    @options.setter
    def options(self, value):
        self.options_json = json.dumps(value or {}, ensure_ascii=False)

    def options_list(self):
        return [{'id': key, 'text': text} for key, text in self.options.items()]

    def to_dict(self, include_answer=True):
        """
        Serialize the question

        Args:
            include_answer (bool): Include answer key and explanation

        Returns:
            dict: Question representation
        """
        data = {
            'id': self.id,
            'text': self.text,
            'type': self.type,
            'subject': self.subject,
            'difficulty': self.difficulty,
            'options': self.options_list(),
            'points': self.points,
            'questionSetId': self.question_set_id,
            'createdAt': isoformat(self.created_at),
        }
        if include_answer:
            data['correctAnswer'] = self.correct_answer
            data['explanation'] = self.explanation
        return data
