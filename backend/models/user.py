"""
User Model for CUBIS Academy
Handles authentication and role-based access
"""
import re

from app import db
from sqlalchemy.orm import validates
from werkzeug.security import generate_password_hash, check_password_hash

from models.base import BaseModel, utcnow

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

ROLES = ('student', 'teacher', 'admin')


class User(BaseModel):
    __tablename__ = 'users'

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    email_verified_at = db.Column(db.DateTime, nullable=True, index=True)
    phone = db.Column(db.String(50), nullable=True)
    photo = db.Column(db.String(500), nullable=True)

    role = db.Column(db.String(20), nullable=False, default='student', index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # ----------------- RELATIONSHIPS -----------------
    student = db.relationship('Student', backref='user', uselist=False,
                              cascade='all, delete-orphan')
    teacher = db.relationship('Teacher', backref='user', uselist=False,
                              cascade='all, delete-orphan')
    sessions = db.relationship('UserSession', backref='user', lazy='dynamic',
                               cascade='all, delete-orphan')

    # ----------------- VALIDATIONS -----------------
    @validates('role')
    def validate_role(self, key, role):
        if role not in ROLES:
            raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
        return role

    @validates('email')
    def validate_email(self, key, email):
        if not email or not EMAIL_PATTERN.match(email.strip()):
            raise ValueError('Invalid email')
        return email.strip().lower()

    # ----------------- PASSWORD METHODS -----------------
    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    # ----------------- STATUS METHODS -----------------
    @property
    def is_email_verified(self):
        return self.email_verified_at is not None

    def mark_email_verified(self):
        self.email_verified_at = utcnow()

    def deactivate(self):
        self.is_active = False

    # ----------------- SERIALIZATION -----------------
    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'photo': self.photo,
            'role': self.role,
            'is_active': self.is_active,
            'email_verified': self.is_email_verified,
            'email_verified_at': self.email_verified_at.isoformat() if self.email_verified_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'
