"""
Score and Attendance Models for CUBIS Academy
Both hang off an enrollment and are recorded by the course teacher
"""
import math

from app import db
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import validates

from models.base import BaseModel, serialize_value

ATTENDANCE_STATUSES = ('present', 'absent', 'late', 'excused')


class Score(BaseModel):
    __tablename__ = 'scores'

    enrollment_id = db.Column(db.String(36), db.ForeignKey('enrollments.id', ondelete='CASCADE'),
                              nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    score = db.Column(db.Numeric(6, 2), nullable=False)
    max_score = db.Column(db.Numeric(6, 2), nullable=False, default=100)
    remarks = db.Column(db.Text, nullable=True)

    @validates('max_score')
    def validate_max_score(self, key, value):
        if value is None or not math.isfinite(float(value)) or float(value) <= 0:
            raise ValueError('max_score must be greater than zero')
        if self.score is not None and float(self.score) > float(value):
            raise ValueError('score cannot exceed max_score')
        return value

    @validates('score')
    def validate_score(self, key, value):
        if value is None or not math.isfinite(float(value)):
            raise ValueError('score must be a finite number')
        if float(value) < 0:
            raise ValueError('score cannot be negative')
        if self.max_score is not None and float(value) > float(self.max_score):
            raise ValueError('score cannot exceed max_score')
        return value

    @property
    def percentage(self):
        if not self.max_score:
            return 0
        return round(float(self.score) / float(self.max_score) * 100, 2)

    def to_dict(self):
        data = super().to_dict()
        data['percentage'] = self.percentage
        return data


class Attendance(BaseModel):
    __tablename__ = 'attendances'

    enrollment_id = db.Column(db.String(36), db.ForeignKey('enrollments.id', ondelete='CASCADE'),
                              nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default='present')
    notes = db.Column(db.Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('enrollment_id', 'date', name='uq_attendance_enrollment_date'),
    )

    @validates('status')
    def validate_status(self, key, value):
        if value not in ATTENDANCE_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(ATTENDANCE_STATUSES)}")
        return value

    @property
    def counts_as_attended(self):
        return self.status in ('present', 'late')

    def to_dict(self):
        return {
            'id': self.id,
            'enrollment_id': self.enrollment_id,
            'date': serialize_value(self.date),
            'status': self.status,
            'notes': self.notes,
        }
