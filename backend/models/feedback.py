"""
Course Feedback Model for CUBIS Academy
"""
from app import db
from sqlalchemy.orm import validates

from models.base import BaseModel, serialize_value


class CourseFeedback(BaseModel):
    __tablename__ = 'course_feedback'

    # One review per enrollment
    enrollment_id = db.Column(db.String(36), db.ForeignKey('enrollments.id', ondelete='CASCADE'),
                              unique=True, nullable=False)
    student_id = db.Column(db.String(36), db.ForeignKey('students.user_id', ondelete='CASCADE'),
                           nullable=False, index=True)
    course_id = db.Column(db.String(36), db.ForeignKey('courses.id', ondelete='CASCADE'),
                          nullable=False, index=True)

    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    is_anonymous = db.Column(db.Boolean, default=False, nullable=False)

    student = db.relationship('Student', lazy=True)

    @validates('rating')
    def validate_rating(self, key, value):
        value = int(value)
        if value < 1 or value > 5:
            raise ValueError('Rating must be between 1 and 5')
        return value

    def to_dict(self):
        if self.is_anonymous or not self.student or not self.student.user:
            student_name = 'Anonymous'
        else:
            student_name = self.student.user.name
        return {
            'id': self.id,
            'course_id': self.course_id,
            'rating': self.rating,
            'comment': self.comment,
            'is_anonymous': self.is_anonymous,
            'student_name': student_name,
            'created_at': serialize_value(self.created_at),
        }
