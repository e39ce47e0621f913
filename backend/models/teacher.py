"""
Teacher Model for CUBIS Academy
Profile data for users with the teacher role
"""
from app import db
from sqlalchemy import UniqueConstraint

from models.base import BaseModel, utcnow, serialize_value


class Teacher(db.Model):
    __tablename__ = 'teachers'

    # ============ CORE IDENTIFIERS ============
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        primary_key=True)

    # ============ PROFILE ============
    bio = db.Column(db.Text, nullable=True)
    spec = db.Column(db.String(255), nullable=True, index=True)  # specialisation
    schedule = db.Column(db.Text, nullable=True)
    photo = db.Column(db.String(500), nullable=True)

    # ============ RELATIONSHIPS ============
    # Course.teacher_id -> Teacher.user_id
    courses = db.relationship('Course', backref='teacher', lazy=True)
    assignments = db.relationship('TeacherCourse', backref='teacher', lazy=True,
                                  cascade='all, delete-orphan')

    @property
    def id(self):
        return self.user_id

    @property
    def name(self):
        return self.user.name if self.user else None

    def to_dict(self, include_user=True):
        data = {
            'user_id': self.user_id,
            'bio': self.bio,
            'spec': self.spec,
            'schedule': self.schedule,
            'photo': self.photo,
        }
        if include_user and self.user:
            data.update({
                'name': self.user.name,
                'email': self.user.email,
                'phone': self.user.phone,
                'is_active': self.user.is_active,
            })
        return data

    def __repr__(self):
        return f'<Teacher {self.user_id}>'


class TeacherCourse(BaseModel):
    """Assignment of a teacher to a course they may teach"""
    __tablename__ = 'teacher_courses'

    teacher_id = db.Column(db.String(36), db.ForeignKey('teachers.user_id', ondelete='CASCADE'),
                           nullable=False, index=True)
    course_id = db.Column(db.String(36), db.ForeignKey('courses.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    assigned_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('teacher_id', 'course_id', name='uq_teacher_course'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'teacher_id': self.teacher_id,
            'course_id': self.course_id,
            'assigned_at': serialize_value(self.assigned_at),
        }
