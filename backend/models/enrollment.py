"""
Enrollment Model for CUBIS Academy
Links a student to a course with status, progress and payment tracking
"""
from decimal import Decimal

from app import db
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import validates

from errors import InvalidStatusTransition
from models.base import BaseModel, utcnow, serialize_value

ENROLLMENT_STATUSES = ('active', 'completed', 'dropped', 'suspended')

# current status -> statuses it may move to
ENROLLMENT_TRANSITIONS = {
    'active': ('completed', 'dropped', 'suspended'),
    'suspended': ('active', 'dropped'),
    'dropped': ('active',),
    'completed': (),
}


def to_decimal(value):
    if value is None:
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def payment_progress(total_amount, paid_amount):
    """Whole-number percentage of the total that has been paid"""
    total = to_decimal(total_amount)
    if total == 0:
        return 0
    return int(round(to_decimal(paid_amount) / total * 100))


def remaining_balance(total_amount, paid_amount):
    return max(Decimal('0'), to_decimal(total_amount) - to_decimal(paid_amount))


class Enrollment(BaseModel):
    __tablename__ = 'enrollments'

    student_id = db.Column(db.String(36), db.ForeignKey('students.user_id', ondelete='CASCADE'),
                           nullable=False, index=True)
    course_id = db.Column(db.String(36), db.ForeignKey('courses.id', ondelete='CASCADE'),
                          nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default='active', index=True)
    progress = db.Column(db.Integer, nullable=False, default=0)

    # Course price at enrollment time and running total of approved payments
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    enrolled_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    completed_at = db.Column(db.DateTime, nullable=True, index=True)

    # ============ RELATIONSHIPS ============
    scores = db.relationship('Score', backref='enrollment', lazy=True,
                             cascade='all, delete-orphan')
    attendances = db.relationship('Attendance', backref='enrollment', lazy=True,
                                  cascade='all, delete-orphan')
    payments = db.relationship('Payment', backref='enrollment', lazy=True,
                               cascade='all, delete-orphan')
    feedback = db.relationship('CourseFeedback', backref='enrollment', uselist=False,
                               cascade='all, delete-orphan')

    __table_args__ = (
        UniqueConstraint('student_id', 'course_id', name='uq_enrollment_student_course'),
    )

    # ============ VALIDATION ============
    @validates('status')
    def validate_status(self, key, value):
        if value not in ENROLLMENT_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(ENROLLMENT_STATUSES)}")
        return value

    @validates('progress')
    def validate_progress(self, key, value):
        value = int(value)
        if value < 0 or value > 100:
            raise ValueError('Progress must be between 0 and 100')
        return value

    # ============ STATUS METHODS ============
    def can_transition_to(self, target):
        return target in ENROLLMENT_TRANSITIONS.get(self.status, ())

    def transition_to(self, target):
        """Move to a new status, enforcing the allowed transitions"""
        if target not in ENROLLMENT_STATUSES or not self.can_transition_to(target):
            raise InvalidStatusTransition('enrollment', self.status, target)

        self.status = target
        if target == 'completed':
            self.completed_at = utcnow()
            self.progress = 100
        return self

    # ============ PAYMENT HELPERS ============
    def record_payment(self, amount):
        self.paid_amount = to_decimal(self.paid_amount) + to_decimal(amount)

    def reverse_payment(self, amount):
        self.paid_amount = max(Decimal('0'), to_decimal(self.paid_amount) - to_decimal(amount))

    @property
    def payment_progress(self):
        return payment_progress(self.total_amount, self.paid_amount)

    @property
    def remaining_balance(self):
        return remaining_balance(self.total_amount, self.paid_amount)

    @property
    def is_fully_paid(self):
        return to_decimal(self.paid_amount) >= to_decimal(self.total_amount)

    def to_dict(self, include_course=False, include_student=False):
        data = {
            'id': self.id,
            'student_id': self.student_id,
            'course_id': self.course_id,
            'status': self.status,
            'progress': self.progress,
            'total_amount': serialize_value(to_decimal(self.total_amount)),
            'paid_amount': serialize_value(to_decimal(self.paid_amount)),
            'remaining_balance': serialize_value(self.remaining_balance),
            'payment_progress': self.payment_progress,
            'enrolled_at': serialize_value(self.enrolled_at),
            'completed_at': serialize_value(self.completed_at),
        }
        if include_course and self.course:
            data['course'] = self.course.to_dict()
        if include_student and self.student:
            data['student'] = self.student.to_dict()
        return data

    def __repr__(self):
        return f'<Enrollment {self.student_id} -> {self.course_id} ({self.status})>'
