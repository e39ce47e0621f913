#!/usr/bin/env python
"""
Tests for the enrollment, payment, grade and schedule models
"""
from decimal import Decimal

import pytest

from app import db
from errors import InvalidStatusTransition
from models.course import ClassSchedule, Course
from models.enrollment import Enrollment, payment_progress, remaining_balance
from models.grade import Attendance, Score
from models.payment import Payment


class TestPaymentMath:
    """Derived money values"""

    def test_progress_rounds_to_whole_percent(self):
        assert payment_progress(300, 100) == 33
        assert payment_progress(300, 200) == 67
        assert payment_progress(100, 100) == 100

    def test_progress_is_zero_for_free_courses(self):
        assert payment_progress(0, 0) == 0
        assert payment_progress(None, 50) == 0

    def test_remaining_balance_never_negative(self):
        assert remaining_balance(100, 40) == Decimal('60')
        assert remaining_balance(100, 150) == Decimal('0')


class TestEnrollmentModel:

    @pytest.fixture
    def enrollment_id(self, make_user, make_course, make_enrollment):
        student = make_user('student')
        course_id = make_course(price=200)
        return make_enrollment(student['id'], course_id)

    def test_allowed_transitions(self, app, enrollment_id):
        with app.app_context():
            enrollment = db.session.get(Enrollment, enrollment_id)
            enrollment.transition_to('suspended')
            enrollment.transition_to('active')
            enrollment.transition_to('dropped')
            enrollment.transition_to('active')
            assert enrollment.status == 'active'

    def test_completion_sets_progress_and_timestamp(self, app, enrollment_id):
        with app.app_context():
            enrollment = db.session.get(Enrollment, enrollment_id)
            enrollment.transition_to('completed')
            assert enrollment.progress == 100
            assert enrollment.completed_at is not None

    def test_completed_is_terminal(self, app, enrollment_id):
        with app.app_context():
            enrollment = db.session.get(Enrollment, enrollment_id)
            enrollment.transition_to('completed')
            with pytest.raises(InvalidStatusTransition):
                enrollment.transition_to('active')

    def test_unknown_status_is_rejected(self, app, enrollment_id):
        with app.app_context():
            enrollment = db.session.get(Enrollment, enrollment_id)
            with pytest.raises(InvalidStatusTransition):
                enrollment.transition_to('archived')

    def test_progress_bounds(self, app, enrollment_id):
        with app.app_context():
            enrollment = db.session.get(Enrollment, enrollment_id)
            with pytest.raises(ValueError):
                enrollment.progress = 101
            with pytest.raises(ValueError):
                enrollment.progress = -1

    def test_reverse_payment_floors_at_zero(self, app, enrollment_id):
        with app.app_context():
            enrollment = db.session.get(Enrollment, enrollment_id)
            enrollment.record_payment(50)
            enrollment.reverse_payment(80)
            assert enrollment.paid_amount == Decimal('0')


class TestPaymentModel:

    @pytest.fixture
    def payment_id(self, app, make_user, make_course, make_enrollment):
        student = make_user('student')
        course_id = make_course(price=300)
        enrollment_id = make_enrollment(student['id'], course_id)
        with app.app_context():
            payment = Payment(student_id=student['id'], enrollment_id=enrollment_id,
                              amount=Decimal('100.00'), method='bank_transfer')
            db.session.add(payment)
            db.session.commit()
            return payment.id

    def test_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            Payment(amount=0)
        with pytest.raises(ValueError):
            Payment(amount=-5)

    def test_approve_credits_enrollment(self, app, payment_id):
        with app.app_context():
            payment = db.session.get(Payment, payment_id)
            payment.approve()
            db.session.commit()

            assert payment.status == 'completed'
            assert payment.approved_at is not None
            assert payment.enrollment.paid_amount == Decimal('100.00')
            assert payment.enrollment.payment_progress == 33

    def test_reject_records_reason(self, app, payment_id):
        with app.app_context():
            payment = db.session.get(Payment, payment_id)
            payment.reject('Proof unreadable')

            assert payment.status == 'failed'
            assert payment.rejected_at is not None
            assert 'Proof unreadable' in payment.notes
            assert payment.enrollment.paid_amount == Decimal('0')

    def test_refund_reverses_credit(self, app, payment_id):
        with app.app_context():
            payment = db.session.get(Payment, payment_id)
            payment.approve()
            payment.refund()

            assert payment.status == 'refunded'
            assert payment.enrollment.paid_amount == Decimal('0')

    def test_pending_cannot_be_refunded(self, app, payment_id):
        with app.app_context():
            payment = db.session.get(Payment, payment_id)
            with pytest.raises(InvalidStatusTransition):
                payment.refund()

    def test_failed_is_terminal(self, app, payment_id):
        with app.app_context():
            payment = db.session.get(Payment, payment_id)
            payment.reject()
            with pytest.raises(InvalidStatusTransition):
                payment.approve()


class TestGradeModels:

    def test_score_within_max(self):
        score = Score(title='Quiz 1', max_score=20, score=15)
        assert score.percentage == 75.0

    def test_score_above_max_is_rejected(self):
        with pytest.raises(ValueError):
            Score(title='Quiz 1', max_score=20, score=25)

    def test_negative_score_is_rejected(self):
        with pytest.raises(ValueError):
            Score(title='Quiz 1', score=-1)

    @pytest.mark.parametrize('field', ['score', 'max_score'])
    def test_non_finite_values_are_rejected(self, field):
        score = Score(title='Quiz 1')
        with pytest.raises(ValueError):
            setattr(score, field, float('nan'))

    def test_attendance_status(self):
        assert Attendance(status='late').counts_as_attended
        assert not Attendance(status='absent').counts_as_attended
        with pytest.raises(ValueError):
            Attendance(status='sleeping')


class TestScheduleModel:

    def test_time_format(self):
        with pytest.raises(ValueError):
            ClassSchedule(day_of_week='monday', start_time='9am')

    def test_end_after_start(self):
        with pytest.raises(ValueError):
            ClassSchedule(day_of_week='monday', start_time='10:00', end_time='09:00')

    def test_day_of_week(self):
        with pytest.raises(ValueError):
            ClassSchedule(day_of_week='someday')

    def test_course_price_cannot_be_negative(self):
        with pytest.raises(ValueError):
            Course(title='Broken', price=-1)
