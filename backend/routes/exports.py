#routes/exports.py
from flask import Blueprint, request

from errors import ValidationError
from models.enrollment import ENROLLMENT_STATUSES
from models.payment import PAYMENT_STATUSES
from models.user import ROLES
from services import exports
from utils.auth import require_role

exports_bp = Blueprint('exports', __name__)


def export_format():
    return request.args.get('format', 'csv')


def status_arg(allowed):
    status = request.args.get('status')
    if status and status not in allowed:
        raise ValidationError(f"status must be one of: {', '.join(allowed)}")
    return status


# -------------------------------
# USERS
# -------------------------------
@exports_bp.route('/users/export', methods=['GET'])
@require_role('admin')
def export_users():
    """
    Download users as CSV or Excel (?format=csv|xlsx, optional ?role=)
    """
    role = request.args.get('role')
    if role and role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    return exports.export_users(role=role, export_format=export_format())


@exports_bp.route('/users/export-unverified', methods=['GET'])
@require_role('admin')
def export_unverified_users():
    return exports.export_users(unverified_only=True, export_format=export_format())


# -------------------------------
# PAYMENTS & ENROLLMENTS
# -------------------------------
@exports_bp.route('/payments/export', methods=['GET'])
@require_role('admin')
def export_payments():
    return exports.export_payments(status=status_arg(PAYMENT_STATUSES),
                                   export_format=export_format())


@exports_bp.route('/enrollments/export', methods=['GET'])
@require_role('admin')
def export_enrollments():
    return exports.export_enrollments(
        status=status_arg(ENROLLMENT_STATUSES),
        course_id=request.args.get('course_id'),
        export_format=export_format(),
    )
