#!/usr/bin/env python
"""
Tests for the enrollment and payment workflows through the API
"""
from unittest.mock import patch

import pytest

from app import db
from models.enrollment import Enrollment
from services.email import EmailDeliveryError


@pytest.fixture
def student(make_user):
    return make_user('student')


@pytest.fixture
def student_headers(student, login):
    return login(student)


@pytest.fixture
def course_id(make_course):
    return make_course(title='Web Development', price=300)


def enroll(client, headers, course_id):
    return client.post('/api/enrollments', headers=headers, json={'course_id': course_id})


def pay(client, headers, enrollment_id, amount, **fields):
    return client.post('/api/payments', headers=headers, json={
        'enrollment_id': enrollment_id, 'amount': amount, **fields,
    })


class TestEnrollment:

    def test_enroll_snapshots_course_price(self, app, client, student_headers, course_id):
        response = enroll(client, student_headers, course_id)

        assert response.status_code == 201
        enrollment = response.get_json()['enrollment']
        assert enrollment['status'] == 'active'
        assert enrollment['total_amount'] == 300
        assert enrollment['paid_amount'] == 0
        assert enrollment['course']['title'] == 'Web Development'

    def test_enroll_twice_conflicts(self, client, student_headers, course_id):
        enroll(client, student_headers, course_id)
        response = enroll(client, student_headers, course_id)
        assert response.status_code == 409

    def test_inactive_course(self, client, student_headers, make_course):
        hidden = make_course(title='Retired', is_active=False)
        assert enroll(client, student_headers, hidden).status_code == 404

    def test_only_students_enroll(self, client, make_user, login, course_id):
        teacher = login(make_user('teacher'))
        assert enroll(client, teacher, course_id).status_code == 403

    def test_list_own_enrollments(self, client, student_headers, course_id, make_user,
                                  make_enrollment):
        enroll(client, student_headers, course_id)
        someone_else = make_user('student')
        make_enrollment(someone_else['id'], course_id)

        body = client.get('/api/enrollments', headers=student_headers).get_json()
        assert body['total'] == 1

    def test_other_students_enrollment_is_hidden(self, client, student_headers, course_id,
                                                 make_user, make_enrollment):
        other = make_user('student')
        enrollment_id = make_enrollment(other['id'], course_id)
        response = client.get(f'/api/enrollments/{enrollment_id}', headers=student_headers)
        assert response.status_code == 404

    def test_admin_lists_everything(self, client, admin_headers, course_id, make_user,
                                    make_enrollment):
        for _ in range(3):
            make_enrollment(make_user('student')['id'], course_id)

        body = client.get('/api/enrollments?per_page=2', headers=admin_headers).get_json()
        assert body['total'] == 3
        assert len(body['enrollments']) == 2
        assert body['enrollments'][0]['student']


class TestStatusChanges:

    @pytest.fixture
    def enrollment_id(self, student, course_id, make_enrollment):
        return make_enrollment(student['id'], course_id)

    def status(self, client, headers, enrollment_id, **body):
        return client.patch(f'/api/enrollments/{enrollment_id}/status', headers=headers, json=body)

    def test_admin_completes(self, client, admin_headers, enrollment_id):
        response = self.status(client, admin_headers, enrollment_id, status='completed')
        assert response.status_code == 200
        enrollment = response.get_json()['enrollment']
        assert enrollment['status'] == 'completed'
        assert enrollment['progress'] == 100
        assert enrollment['completed_at']

    def test_completed_cannot_reopen(self, client, admin_headers, enrollment_id):
        self.status(client, admin_headers, enrollment_id, status='completed')
        response = self.status(client, admin_headers, enrollment_id, status='active')
        assert response.status_code == 409
        assert response.get_json()['code'] == 'INVALID_STATUS_TRANSITION'

    def test_student_may_only_drop(self, client, student_headers, enrollment_id):
        assert self.status(client, student_headers, enrollment_id,
                           status='completed').status_code == 403
        assert self.status(client, student_headers, enrollment_id,
                           status='dropped').status_code == 200

    def test_progress_update(self, client, admin_headers, enrollment_id):
        response = self.status(client, admin_headers, enrollment_id, progress=40)
        assert response.get_json()['enrollment']['progress'] == 40

        response = self.status(client, admin_headers, enrollment_id, progress=140)
        assert response.status_code == 400

    def test_progress_with_completion_changes_nothing(self, app, client, admin_headers,
                                                      enrollment_id):
        response = self.status(client, admin_headers, enrollment_id,
                               status='completed', progress=50)
        assert response.status_code == 409

        with app.app_context():
            enrollment = db.session.get(Enrollment, enrollment_id)
            assert enrollment.status == 'active'
            assert enrollment.completed_at is None
            assert enrollment.progress == 0

    def test_status_and_progress_together(self, client, admin_headers, enrollment_id):
        self.status(client, admin_headers, enrollment_id, status='suspended')
        response = self.status(client, admin_headers, enrollment_id, status='active', progress=30)
        assert response.status_code == 200
        enrollment = response.get_json()['enrollment']
        assert enrollment['status'] == 'active'
        assert enrollment['progress'] == 30

    def test_invalid_transition_keeps_progress(self, app, client, admin_headers, enrollment_id):
        response = self.status(client, admin_headers, enrollment_id, status='active', progress=60)
        assert response.status_code == 409
        with app.app_context():
            assert db.session.get(Enrollment, enrollment_id).progress == 0

    def test_unrelated_teacher_is_denied(self, client, make_user, login, enrollment_id):
        teacher = login(make_user('teacher'))
        assert self.status(client, teacher, enrollment_id, status='suspended').status_code == 403

    def test_admin_delete(self, app, client, admin_headers, enrollment_id):
        response = client.delete(f'/api/enrollments/{enrollment_id}', headers=admin_headers)
        assert response.status_code == 200
        with app.app_context():
            assert db.session.get(Enrollment, enrollment_id) is None


class TestPayments:

    @pytest.fixture
    def enrollment_id(self, client, student_headers, course_id):
        return enroll(client, student_headers, course_id).get_json()['enrollment']['id']

    def test_submit_is_pending(self, client, student_headers, enrollment_id):
        response = pay(client, student_headers, enrollment_id, 100, method='mobile_money',
                       txn_id='TXN-1')
        assert response.status_code == 201
        assert response.get_json()['payment']['status'] == 'pending'

        details = client.get(f'/api/enrollments/{enrollment_id}/payment-details',
                             headers=student_headers).get_json()
        assert details['paid_amount'] == 0
        assert details['pending_amount'] == 100
        assert details['remaining_balance'] == 300

    def test_amount_validation(self, client, student_headers, enrollment_id):
        assert pay(client, student_headers, enrollment_id, 0).status_code == 400
        assert pay(client, student_headers, enrollment_id, 'abc').status_code == 400
        assert pay(client, student_headers, enrollment_id, 'NaN').status_code == 400
        assert pay(client, student_headers, enrollment_id, 'Infinity').status_code == 400
        response = pay(client, student_headers, enrollment_id, 301)
        assert response.status_code == 400
        assert response.get_json()['details']['remaining_balance'] == 300

    def test_duplicate_transaction_id(self, client, student_headers, enrollment_id):
        pay(client, student_headers, enrollment_id, 50, txn_id='TXN-9')
        assert pay(client, student_headers, enrollment_id, 50, txn_id='TXN-9').status_code == 409

    def test_cannot_pay_someone_elses_enrollment(self, client, make_user, login, enrollment_id):
        other = login(make_user('student'))
        assert pay(client, other, enrollment_id, 50).status_code == 404

    @patch('services.enrollments.send_payment_status_email')
    def test_approve_updates_balance_and_notifies(self, send_mail, client, student_headers,
                                                  admin_headers, enrollment_id):
        payment_id = pay(client, student_headers, enrollment_id, 150).get_json()['payment']['id']

        response = client.post(f'/api/payments/{payment_id}/approve', headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()['payment']['status'] == 'completed'
        send_mail.assert_called_once()

        details = client.get(f'/api/enrollments/{enrollment_id}/payment-details',
                             headers=student_headers).get_json()
        assert details['paid_amount'] == 150
        assert details['payment_progress'] == 50
        assert details['is_fully_paid'] is False

    def test_reject_then_approve_conflicts(self, client, student_headers, admin_headers,
                                           enrollment_id):
        payment_id = pay(client, student_headers, enrollment_id, 100).get_json()['payment']['id']

        response = client.post(f'/api/payments/{payment_id}/reject', headers=admin_headers,
                               json={'reason': 'Receipt does not match'})
        assert response.get_json()['payment']['status'] == 'failed'

        response = client.post(f'/api/payments/{payment_id}/approve', headers=admin_headers)
        assert response.status_code == 409

    def test_refund_restores_balance(self, client, student_headers, admin_headers, enrollment_id):
        payment_id = pay(client, student_headers, enrollment_id, 300).get_json()['payment']['id']
        client.post(f'/api/payments/{payment_id}/approve', headers=admin_headers)

        response = client.post(f'/api/payments/{payment_id}/refund', headers=admin_headers)
        assert response.get_json()['payment']['status'] == 'refunded'

        details = client.get(f'/api/enrollments/{enrollment_id}/payment-details',
                             headers=student_headers).get_json()
        assert details['paid_amount'] == 0

    def test_email_failure_does_not_undo_approval(self, client, student_headers, admin_headers,
                                                  enrollment_id):
        payment_id = pay(client, student_headers, enrollment_id, 100).get_json()['payment']['id']
        with patch('services.enrollments.send_payment_status_email',
                   side_effect=EmailDeliveryError('down')):
            response = client.post(f'/api/payments/{payment_id}/approve', headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['payment']['status'] == 'completed'

    def test_admin_list_includes_stats(self, client, student_headers, admin_headers,
                                       enrollment_id):
        pay(client, student_headers, enrollment_id, 100)
        body = client.get('/api/payments', headers=admin_headers).get_json()
        assert body['total'] == 1
        assert body['stats']['pending_payments'] == 1
        assert body['payments'][0]['student_email']

    def test_students_cannot_approve(self, client, student_headers, enrollment_id):
        payment_id = pay(client, student_headers, enrollment_id, 100).get_json()['payment']['id']
        response = client.post(f'/api/payments/{payment_id}/approve', headers=student_headers)
        assert response.status_code == 403
