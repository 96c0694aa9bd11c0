# exam_portal/models/user.py
"""
User model of the examination portal
Holds administrators and participants
"""
from flask_login import UserMixin
from exam_portal import db
from exam_portal.utils.dates import utcnow, isoformat
from sqlalchemy import String, Integer, DateTime
import re
from werkzeug.security import generate_password_hash, check_password_hash

ROLE_ADMIN = 'ADMIN'
ROLE_PARTICIPANT = 'PARTICIPANT'
ROLES = (ROLE_ADMIN, ROLE_PARTICIPANT)

# Role-level permissions; ownership is checked separately in utils/auth.py
ROLE_PERMISSIONS = {
    ROLE_ADMIN: {
        'manage_users', 'manage_question_bank', 'manage_tests',
        'review_requests', 'view_all_results', 'search_users',
    },
    ROLE_PARTICIPANT: {
        'take_tests', 'create_requests', 'search_users',
    },
}


class User(UserMixin, db.Model):
    """
    User of the system

    Attributes:
        id (int): Unique user identifier
        name (str): Display name
        email (str): Login, unique
        password_hash (str): One-way password hash
        role (str): 'ADMIN' or 'PARTICIPANT'
        university_name (str): University (participants)
        major (str): Field of study (participants)
        image (str): Avatar URL
        created_at (datetime): Creation date
        updated_at (datetime): Last modification date
    """

    __tablename__ = 'users'

    id = db.Column(Integer, primary_key=True)
    name = db.Column(String(120), nullable=False)
    email = db.Column(String(120), unique=True, nullable=False)
    password_hash = db.Column(String(256), nullable=False)
    role = db.Column(String(20), nullable=False, default=ROLE_PARTICIPANT)
    university_name = db.Column(String(200))
    major = db.Column(String(200))
    image = db.Column(String(255))
    created_at = db.Column(DateTime, default=utcnow)
    updated_at = db.Column(DateTime, default=utcnow, onupdate=utcnow)

    attempts = db.relationship('TestAttempt', back_populates='user', lazy=True,
                               cascade='all, delete-orphan', passive_deletes=True)
    question_sets = db.relationship('QuestionSet', back_populates='creator', lazy=True)
    test_requests = db.relationship('TestRequest', back_populates='user', lazy=True,
                                    foreign_keys='TestRequest.user_id',
                                    cascade='all, delete-orphan', passive_deletes=True)

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def has_permission(self, required_permission):
        """
        Check a role-level permission

        Args:
            required_permission (str): Permission name

        Returns:
            bool: True if the role grants the permission
        """
        return required_permission in ROLE_PERMISSIONS.get(self.role, set())

    def update_profile(self, **kwargs):
        """
        Update editable profile fields; everything else is ignored

        Args:
            **kwargs: Profile fields to update
        """
        allowed_fields = {'name', 'university_name', 'major'}
        for field, value in kwargs.items():
            if field in allowed_fields:
                setattr(self, field, value)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'universityName': self.university_name,
            'major': self.major,
            'image': self.image,
            'createdAt': isoformat(self.created_at),
        }

    @staticmethod
    def is_valid_email(email):
        """
        Check the email format

        Args:
            email (str): Address to check

        Returns:
            bool: True if the format is valid
        """
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return re.match(pattern, email or '') is not None
