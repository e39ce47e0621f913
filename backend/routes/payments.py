# routes/payments.py
from flask import Blueprint, g, jsonify, request

from app import db
from errors import NotFoundError, PermissionDeniedError, ValidationError, require_fields
from models.payment import PAYMENT_STATUSES, Payment
from services import enrollments as workflow
from services.analytics import payment_stats
from utils.auth import require_auth, require_role

payments_bp = Blueprint('payments', __name__)


def get_payment_or_404(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError('Payment', payment_id)
    return payment


@payments_bp.route('', methods=['POST'])
@require_role('student')
def create_payment():
    """
    Submit a payment against one of the student's enrollments.
    Payments start pending until an admin approves them.
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ['enrollment_id', 'amount'])

    payment = workflow.submit_payment(
        g.current_user.student,
        data['enrollment_id'],
        data['amount'],
        method=data.get('method'),
        txn_id=data.get('txn_id') or None,
        proof_url=data.get('proof_url'),
        notes=data.get('notes'),
    )
    return jsonify({'message': 'Payment submitted successfully', 'payment': payment.to_dict()}), 201


@payments_bp.route('', methods=['GET'])
@require_auth
def list_payments():
    """
    Students see their own payments; admins see all of them plus totals
    """
    user = g.current_user
    status = request.args.get('status')
    if status and status not in PAYMENT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PAYMENT_STATUSES)}")

    if user.role == 'student':
        query = Payment.query.filter_by(student_id=user.id)
        if status:
            query = query.filter_by(status=status)
        payments = query.order_by(Payment.created_at.desc()).all()
        return jsonify({
            'payments': [p.to_dict(include_enrollment=True) for p in payments],
            'total': len(payments),
        })

    if user.role != 'admin':
        raise PermissionDeniedError()

    query = Payment.query
    if status:
        query = query.filter_by(status=status)
    if request.args.get('enrollment_id'):
        query = query.filter_by(enrollment_id=request.args['enrollment_id'])
    if request.args.get('student_id'):
        query = query.filter_by(student_id=request.args['student_id'])

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 30, type=int)
    paginated = query.order_by(Payment.created_at.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )

    payments = []
    for payment in paginated.items:
        data = payment.to_dict(include_enrollment=True)
        if payment.student and payment.student.user:
            data['student_name'] = payment.student.user.name
            data['student_email'] = payment.student.user.email
        payments.append(data)

    return jsonify({
        'payments': payments,
        'total': paginated.total,
        'page': paginated.page,
        'per_page': paginated.per_page,
        'pages': paginated.pages,
        'stats': payment_stats(),
    })


@payments_bp.route('/<payment_id>', methods=['GET'])
@require_auth
def get_payment(payment_id):
    payment = get_payment_or_404(payment_id)
    user = g.current_user
    if user.role != 'admin' and payment.student_id != user.id:
        raise NotFoundError('Payment', payment_id)
    return jsonify(payment.to_dict(include_enrollment=True))


@payments_bp.route('/<payment_id>/approve', methods=['POST'])
@require_role('admin')
def approve_payment(payment_id):
    payment = workflow.approve_payment(get_payment_or_404(payment_id))
    return jsonify({
        'message': 'Payment approved successfully',
        'payment': payment.to_dict(include_enrollment=True),
    })


@payments_bp.route('/<payment_id>/reject', methods=['POST'])
@require_role('admin')
def reject_payment(payment_id):
    data = request.get_json(silent=True) or {}
    payment = workflow.reject_payment(get_payment_or_404(payment_id), data.get('reason'))
    return jsonify({
        'message': 'Payment rejected',
        'payment': payment.to_dict(include_enrollment=True),
    })


@payments_bp.route('/<payment_id>/refund', methods=['POST'])
@require_role('admin')
def refund_payment(payment_id):
    payment = workflow.refund_payment(get_payment_or_404(payment_id))
    return jsonify({
        'message': 'Payment refunded',
        'payment': payment.to_dict(include_enrollment=True),
    })
