"""
CSV and Excel exports for the admin portal
"""
import csv
import io
import logging

from flask import Response
from openpyxl import Workbook
from openpyxl.styles import Font

from errors import ValidationError
from models.base import serialize_value, utcnow
from models.enrollment import Enrollment
from models.payment import Payment
from models.user import User

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ('csv', 'xlsx')

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

USER_COLUMNS = [
    ('ID', 'id'), ('Name', 'name'), ('Email', 'email'), ('Phone', 'phone'),
    ('Role', 'role'), ('Active', 'is_active'), ('Email Verified', 'email_verified'),
    ('Created At', 'created_at'),
]

ENROLLMENT_COLUMNS = [
    ('ID', 'id'), ('Student', 'student_name'), ('Student Email', 'student_email'),
    ('SUID', 'suid'), ('Course', 'course_title'), ('Status', 'status'),
    ('Progress', 'progress'), ('Total Amount', 'total_amount'), ('Paid Amount', 'paid_amount'),
    ('Remaining', 'remaining_balance'), ('Enrolled At', 'enrolled_at'),
    ('Completed At', 'completed_at'),
]

PAYMENT_COLUMNS = [
    ('ID', 'id'), ('Student', 'student_name'), ('Student Email', 'student_email'),
    ('Course', 'course_title'), ('Amount', 'amount'), ('Method', 'method'),
    ('Status', 'status'), ('Transaction ID', 'txn_id'), ('Created At', 'created_at'),
    ('Approved At', 'approved_at'), ('Rejected At', 'rejected_at'),
]


def user_rows(users):
    for user in users:
        data = user.to_dict()
        yield [data.get(key) for _, key in USER_COLUMNS]


def _student_fields(student):
    user = student.user if student else None
    return {
        'student_name': user.name if user else None,
        'student_email': user.email if user else None,
        'suid': student.suid if student else None,
    }


def enrollment_rows(enrollments):
    for enrollment in enrollments:
        data = enrollment.to_dict()
        data.update(_student_fields(enrollment.student))
        data['course_title'] = enrollment.course.title if enrollment.course else None
        yield [data.get(key) for _, key in ENROLLMENT_COLUMNS]


def payment_rows(payments):
    for payment in payments:
        data = payment.to_dict()
        data.update(_student_fields(payment.student))
        course = payment.enrollment.course if payment.enrollment else None
        data['course_title'] = course.title if course else None
        yield [data.get(key) for _, key in PAYMENT_COLUMNS]


def render_csv(headers, rows):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(['' if v is None else serialize_value(v) for v in row])
    return buffer.getvalue().encode('utf-8')


def render_xlsx(headers, rows, title='Export'):
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title[:31]

    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = Font(bold=True)

    for row in rows:
        sheet.append([serialize_value(v) for v in row])

    for column in sheet.columns:
        width = max(len(str(c.value)) if c.value is not None else 0 for c in column)
        sheet.column_dimensions[column[0].column_letter].width = min(width + 2, 50)

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def export_response(name, columns, rows, export_format='csv'):
    """Render rows as a file download"""
    export_format = (export_format or 'csv').lower()
    if export_format not in EXPORT_FORMATS:
        raise ValidationError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")

    headers = [label for label, _ in columns]
    filename = f"{name}-{utcnow().strftime('%Y%m%d-%H%M%S')}.{export_format}"

    if export_format == 'xlsx':
        body = render_xlsx(headers, rows, title=name.replace('-', ' ').title())
        mimetype = XLSX_MIMETYPE
    else:
        body = render_csv(headers, rows)
        mimetype = 'text/csv'

    logger.info("Exported %s as %s (%d bytes)", name, export_format, len(body))
    return Response(
        body,
        mimetype=mimetype,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


def export_users(role=None, unverified_only=False, export_format='csv'):
    query = User.query
    if role:
        query = query.filter_by(role=role)
    if unverified_only:
        query = query.filter(User.email_verified_at.is_(None))
    users = query.order_by(User.created_at.desc()).all()

    name = 'unverified-users' if unverified_only else 'users'
    return export_response(name, USER_COLUMNS, user_rows(users), export_format)


def export_enrollments(status=None, course_id=None, export_format='csv'):
    query = Enrollment.query
    if status:
        query = query.filter_by(status=status)
    if course_id:
        query = query.filter_by(course_id=course_id)
    enrollments = query.order_by(Enrollment.enrolled_at.desc()).all()
    return export_response('enrollments', ENROLLMENT_COLUMNS, enrollment_rows(enrollments),
                           export_format)


def export_payments(status=None, export_format='csv'):
    query = Payment.query
    if status:
        query = query.filter_by(status=status)
    payments = query.order_by(Payment.created_at.desc()).all()
    return export_response('payments', PAYMENT_COLUMNS, payment_rows(payments), export_format)
