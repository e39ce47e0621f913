"""
Student Model for CUBIS Academy
Profile data for users with the student role
"""
from app import db
from sqlalchemy.orm import validates

from models.base import utcnow, serialize_value

GENDERS = ('male', 'female', 'other')


class Student(db.Model):
    __tablename__ = 'students'

    # ============ CORE IDENTIFIERS ============
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        primary_key=True)

    # System-generated student id, e.g. STU-2025-000042
    suid = db.Column(db.String(20), unique=True, nullable=False)

    # ============ BIO DATA ============
    dob = db.Column(db.Date, nullable=True)
    gender = db.Column(db.String(20), nullable=True, index=True)
    address = db.Column(db.Text, nullable=True)
    photo = db.Column(db.String(500), nullable=True)

    # ============ PLATFORM TRACKING ============
    enrolled_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    onboarding_completed = db.Column(db.Boolean, default=False, nullable=False)

    # ============ RELATIONSHIPS ============
    enrollments = db.relationship('Enrollment', backref='student', lazy=True,
                                  cascade='all, delete-orphan')
    payments = db.relationship('Payment', backref='student', lazy=True,
                               cascade='all, delete-orphan')

    # ============ VALIDATION ============
    @validates('gender')
    def validate_gender(self, key, value):
        if value and value.lower() not in GENDERS:
            raise ValueError(f"Gender must be one of: {', '.join(GENDERS)}")
        return value.lower() if value else value

    @property
    def id(self):
        return self.user_id

    def to_dict(self, include_user=True):
        data = {
            'user_id': self.user_id,
            'suid': self.suid,
            'dob': serialize_value(self.dob),
            'gender': self.gender,
            'address': self.address,
            'photo': self.photo,
            'enrolled_at': serialize_value(self.enrolled_at),
            'onboarding_completed': self.onboarding_completed,
        }
        if include_user and self.user:
            data.update({
                'name': self.user.name,
                'email': self.user.email,
                'phone': self.user.phone,
                'is_active': self.user.is_active,
                'email_verified': self.user.is_email_verified,
            })
        return data

    def __repr__(self):
        return f'<Student {self.suid}>'
