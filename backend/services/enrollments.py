"""
Enrollment and payment workflows
Routes call these so status changes, money updates and cache invalidation
always happen together.
"""
import logging

from app import db
from errors import (
    ConflictError, InvalidStatusTransition, NotFoundError, PermissionDeniedError, ValidationError,
)
from models.course import Course
from models.enrollment import Enrollment, to_decimal
from models.payment import Payment
from services.cache import CacheInvalidator
from services.email import EmailDeliveryError, send_payment_status_email

logger = logging.getLogger(__name__)


def _invalidate(enrollment):
    CacheInvalidator.invalidate_student(enrollment.student_id)
    CacheInvalidator.invalidate_course(enrollment.course_id)
    if enrollment.course and enrollment.course.teacher_id:
        CacheInvalidator.invalidate_teacher(enrollment.course.teacher_id)
    CacheInvalidator.invalidate_analytics()


def enroll_student(student, course_id):
    """Create an active enrollment priced at the course's current price"""
    if not student.user.is_email_verified:
        raise PermissionDeniedError('Please verify your email before enrolling',
                                    code='EMAIL_NOT_VERIFIED')

    course = db.session.get(Course, course_id)
    if not course or not course.is_active:
        raise NotFoundError('Course', course_id)

    existing = Enrollment.query.filter_by(student_id=student.user_id, course_id=course.id).first()
    if existing:
        raise ConflictError('Already enrolled in this course', details={'enrollment_id': existing.id})

    enrollment = Enrollment(
        student_id=student.user_id,
        course_id=course.id,
        status='active',
        progress=0,
        total_amount=to_decimal(course.price),
        paid_amount=to_decimal(0),
    )
    db.session.add(enrollment)
    db.session.commit()

    _invalidate(enrollment)
    logger.info("Student %s enrolled in course %s", student.user_id, course.id)
    return enrollment


def update_enrollment(enrollment, status=None, progress=None):
    """
    Apply a status and/or progress change in a single commit.
    Everything is checked before the enrollment is touched.
    """
    target = status or enrollment.status
    if progress is not None and target != 'active':
        raise ConflictError('Progress can only change on active enrollments')
    if status is not None and not enrollment.can_transition_to(status):
        raise InvalidStatusTransition('enrollment', enrollment.status, status)

    if progress is not None:
        enrollment.progress = progress
    if status is not None:
        enrollment.transition_to(status)

    db.session.commit()
    _invalidate(enrollment)
    if status is not None:
        logger.info("Enrollment %s moved to %s", enrollment.id, status)
    return enrollment


def delete_enrollment(enrollment):
    # Invalidate first; the instance is detached once the delete commits
    _invalidate(enrollment)
    db.session.delete(enrollment)
    db.session.commit()


def enrollment_payment_details(enrollment):
    payments = sorted(enrollment.payments, key=lambda p: p.created_at, reverse=True)
    return {
        'enrollment': enrollment.to_dict(include_course=True),
        'total_amount': float(to_decimal(enrollment.total_amount)),
        'paid_amount': float(to_decimal(enrollment.paid_amount)),
        'remaining_balance': float(enrollment.remaining_balance),
        'payment_progress': enrollment.payment_progress,
        'is_fully_paid': enrollment.is_fully_paid,
        'pending_amount': float(sum(to_decimal(p.amount) for p in payments if p.status == 'pending')),
        'payments': [p.to_dict() for p in payments],
    }


def submit_payment(student, enrollment_id, amount, method=None, txn_id=None,
                   proof_url=None, notes=None):
    """Record a pending payment against one of the student's enrollments"""
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment or enrollment.student_id != student.user_id:
        raise NotFoundError('Enrollment', enrollment_id)

    try:
        amount = to_decimal(amount)
    except ArithmeticError:
        raise ValidationError('amount must be a number')
    if not amount.is_finite():
        raise ValidationError('amount must be a number')
    if amount <= 0:
        raise ValidationError('amount must be greater than zero')
    if amount > enrollment.remaining_balance:
        raise ValidationError('amount exceeds the remaining balance',
                              details={'remaining_balance': float(enrollment.remaining_balance)})

    if txn_id and Payment.query.filter_by(txn_id=txn_id).first():
        raise ConflictError('A payment with this transaction id already exists')

    payment = Payment(
        student_id=student.user_id,
        enrollment_id=enrollment.id,
        amount=amount,
        method=method,
        txn_id=txn_id,
        proof_url=proof_url,
        notes=notes,
        status='pending',
    )
    db.session.add(payment)
    db.session.commit()

    CacheInvalidator.invalidate_student(student.user_id)
    CacheInvalidator.invalidate_analytics()
    logger.info("Payment %s submitted for enrollment %s", payment.id, enrollment.id)
    return payment


def _notify_payment(payment):
    """Email the student; delivery problems never undo the status change"""
    student = payment.student
    if not student or not student.user:
        return False
    try:
        send_payment_status_email(student.user.email, student.user.name, payment,
                                  payment.enrollment.course.title)
        return True
    except EmailDeliveryError as e:
        logger.warning("Payment %s status email failed: %s", payment.id, e)
        return False


def approve_payment(payment):
    payment.approve()
    db.session.commit()
    _invalidate(payment.enrollment)
    logger.info("Payment %s approved", payment.id)
    _notify_payment(payment)
    return payment


def reject_payment(payment, reason=None):
    payment.reject(reason)
    db.session.commit()
    _invalidate(payment.enrollment)
    logger.info("Payment %s rejected", payment.id)
    _notify_payment(payment)
    return payment


def refund_payment(payment):
    payment.refund()
    db.session.commit()
    _invalidate(payment.enrollment)
    logger.info("Payment %s refunded", payment.id)
    _notify_payment(payment)
    return payment
