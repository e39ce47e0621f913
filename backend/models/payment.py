"""
Payment Model for CUBIS Academy
Every payment belongs to an enrollment
"""
from app import db
from sqlalchemy.orm import validates

from errors import InvalidStatusTransition
from models.base import utcnow, serialize_value, BaseModel
from models.enrollment import to_decimal

PAYMENT_STATUSES = ('pending', 'completed', 'failed', 'refunded')

PAYMENT_TRANSITIONS = {
    'pending': ('completed', 'failed'),
    'completed': ('refunded',),
    'failed': (),
    'refunded': (),
}


class Payment(BaseModel):
    __tablename__ = 'payments'

    student_id = db.Column(db.String(36), db.ForeignKey('students.user_id', ondelete='CASCADE'),
                           nullable=False, index=True)
    enrollment_id = db.Column(db.String(36), db.ForeignKey('enrollments.id', ondelete='CASCADE'),
                              nullable=False, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    method = db.Column(db.String(100), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    txn_id = db.Column(db.String(255), unique=True, nullable=True)
    proof_url = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_at = db.Column(db.DateTime, nullable=True)

    @validates('amount')
    def validate_amount(self, key, value):
        if value is None or to_decimal(value) <= 0:
            raise ValueError('Amount must be greater than zero')
        return value

    @validates('status')
    def validate_status(self, key, value):
        if value not in PAYMENT_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(PAYMENT_STATUSES)}")
        return value

    # ============ STATUS METHODS ============
    def _transition(self, target):
        if target not in PAYMENT_TRANSITIONS.get(self.status, ()):
            raise InvalidStatusTransition('payment', self.status, target)
        self.status = target

    def approve(self):
        """Mark completed and credit the enrollment"""
        self._transition('completed')
        self.approved_at = utcnow()
        self.enrollment.record_payment(self.amount)
        return self

    def reject(self, reason=None):
        self._transition('failed')
        self.rejected_at = utcnow()
        if reason:
            self.notes = f"{self.notes}\n{reason}" if self.notes else reason
        return self

    def refund(self):
        """Mark refunded and take the amount back off the enrollment"""
        self._transition('refunded')
        self.enrollment.reverse_payment(self.amount)
        return self

    def to_dict(self, include_enrollment=False):
        data = {
            'id': self.id,
            'student_id': self.student_id,
            'enrollment_id': self.enrollment_id,
            'amount': serialize_value(to_decimal(self.amount)),
            'method': self.method,
            'status': self.status,
            'txn_id': self.txn_id,
            'proof_url': self.proof_url,
            'notes': self.notes,
            'created_at': serialize_value(self.created_at),
            'approved_at': serialize_value(self.approved_at),
            'rejected_at': serialize_value(self.rejected_at),
        }
        if include_enrollment and self.enrollment:
            data['enrollment'] = self.enrollment.to_dict(include_course=True)
        return data

    def __repr__(self):
        return f'<Payment {self.id} {self.amount} ({self.status})>'
