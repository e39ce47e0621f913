"""
Course Models for CUBIS Academy
Catalog entries, their categories and weekly class schedules
"""
import re

from app import db
from sqlalchemy.orm import validates

from models.base import BaseModel, serialize_value

LEVELS = ('beginner', 'intermediate', 'advanced')
DELIVERY_MODES = ('online', 'face_to_face', 'hybrid')
DAYS_OF_WEEK = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


class CourseCategory(BaseModel):
    __tablename__ = 'course_categories'

    name = db.Column(db.String(100), unique=True, nullable=False, index=True)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    icon = db.Column(db.String(50), nullable=True)
    color = db.Column(db.String(20), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    courses = db.relationship('Course', backref='category', lazy=True)

    @validates('slug')
    def validate_slug(self, key, slug):
        """Ensure slug is URL-friendly"""
        if not slug or not SLUG_PATTERN.match(slug):
            raise ValueError('Slug must contain only lowercase letters, numbers, and hyphens')
        return slug

    def __repr__(self):
        return f'<CourseCategory {self.slug}>'


class Course(BaseModel):
    __tablename__ = 'courses'

    # ============ CORE IDENTITY ============
    title = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    category_id = db.Column(db.String(36),
                            db.ForeignKey('course_categories.id', ondelete='SET NULL'),
                            nullable=True, index=True)
    teacher_id = db.Column(db.String(36),
                           db.ForeignKey('teachers.user_id', ondelete='SET NULL'),
                           nullable=True, index=True)

    # ============ OFFERING ============
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    duration = db.Column(db.Integer, nullable=True)  # hours
    level = db.Column(db.String(20), nullable=False, default='beginner', index=True)
    delivery_mode = db.Column(db.String(20), nullable=False, default='online', index=True)
    location = db.Column(db.Text, nullable=True)

    # ============ MEDIA ============
    cover_image = db.Column(db.String(500), nullable=True)
    youtube_url = db.Column(db.String(500), nullable=True)
    zoom_url = db.Column(db.String(500), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    # ============ RELATIONSHIPS ============
    schedules = db.relationship('ClassSchedule', backref='course', lazy=True,
                                cascade='all, delete-orphan',
                                order_by='ClassSchedule.day_of_week')
    enrollments = db.relationship('Enrollment', backref='course', lazy=True,
                                  cascade='all, delete-orphan')
    assignments = db.relationship('TeacherCourse', backref='course', lazy=True,
                                  cascade='all, delete-orphan')

    # ============ VALIDATION ============
    @validates('level')
    def validate_level(self, key, value):
        if value not in LEVELS:
            raise ValueError(f"Level must be one of: {', '.join(LEVELS)}")
        return value

    @validates('delivery_mode')
    def validate_delivery_mode(self, key, value):
        if value not in DELIVERY_MODES:
            raise ValueError(f"Delivery mode must be one of: {', '.join(DELIVERY_MODES)}")
        return value

    @validates('price')
    def validate_price(self, key, value):
        if value is not None and float(value) < 0:
            raise ValueError('Price cannot be negative')
        return value

    @validates('title')
    def validate_title(self, key, value):
        if not value or not value.strip():
            raise ValueError('Title is required')
        return value.strip()

    def to_dict(self, include_relations=False):
        data = super().to_dict()
        data['category'] = self.category.name if self.category else None
        data['category_slug'] = self.category.slug if self.category else None
        data['teacher_name'] = self.teacher.name if self.teacher else None
        if include_relations:
            data['schedules'] = [s.to_dict() for s in self.schedules if s.is_active]
            data['teacher'] = self.teacher.to_dict() if self.teacher else None
        return data

    def __repr__(self):
        return f'<Course {self.title}>'


class ClassSchedule(BaseModel):
    __tablename__ = 'class_schedules'

    course_id = db.Column(db.String(36), db.ForeignKey('courses.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    day_of_week = db.Column(db.String(10), nullable=False, index=True)
    start_time = db.Column(db.String(5), nullable=False)  # HH:MM
    end_time = db.Column(db.String(5), nullable=False)  # HH:MM
    location = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    @validates('day_of_week')
    def validate_day(self, key, value):
        value = (value or '').lower()
        if value not in DAYS_OF_WEEK:
            raise ValueError(f"Day must be one of: {', '.join(DAYS_OF_WEEK)}")
        return value

    @validates('start_time', 'end_time')
    def validate_time(self, key, value):
        if not value or not TIME_PATTERN.match(value):
            raise ValueError(f'{key} must be in HH:MM format')
        if key == 'end_time' and self.start_time and value <= self.start_time:
            raise ValueError('end_time must be after start_time')
        return value

    def to_dict(self):
        return {
            'id': self.id,
            'course_id': self.course_id,
            'day_of_week': self.day_of_week,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'location': self.location,
            'notes': self.notes,
            'is_active': self.is_active,
            'created_at': serialize_value(self.created_at),
        }
