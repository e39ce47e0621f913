# routes/students.py
from flask import Blueprint, jsonify, request

from app import db
from errors import NotFoundError, require_fields
from models.student import Student
from models.user import User
from routes.profile import parse_date
from services.accounts import create_account, email_password, reset_password
from services.cache import CacheInvalidator
from utils.auth import require_role
from utils.helpers import parse_bool

students_bp = Blueprint('students', __name__)

UPDATABLE_USER_FIELDS = ['name', 'phone', 'photo', 'is_active']
UPDATABLE_STUDENT_FIELDS = ['gender', 'address', 'photo', 'onboarding_completed']


def get_student_or_404(student_id):
    student = db.session.get(Student, student_id)
    if not student:
        raise NotFoundError('Student', student_id)
    return student


@students_bp.route('/students', methods=['GET'])
@require_role('admin')
def get_students():
    """
    Get all students with filtering
    """
    search = request.args.get('search')
    gender = request.args.get('gender')
    verified = request.args.get('verified')
    active_only = parse_bool(request.args.get('active_only'), default=False)

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 30, type=int)

    query = Student.query.join(User, Student.user_id == User.id)

    if gender:
        query = query.filter(Student.gender == gender.lower())

    if active_only:
        query = query.filter(User.is_active.is_(True))

    if verified is not None:
        if parse_bool(verified):
            query = query.filter(User.email_verified_at.isnot(None))
        else:
            query = query.filter(User.email_verified_at.is_(None))

    if search:
        query = query.filter(
            db.or_(
                User.name.ilike(f'%{search}%'),
                User.email.ilike(f'%{search}%'),
                User.phone.ilike(f'%{search}%'),
                Student.suid.ilike(f'%{search}%'),
            )
        )

    paginated = query.order_by(Student.enrolled_at.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )

    return jsonify({
        'students': [s.to_dict() for s in paginated.items],
        'total': paginated.total,
        'page': paginated.page,
        'per_page': paginated.per_page,
        'pages': paginated.pages,
    })


@students_bp.route('/students/<student_id>', methods=['GET'])
@require_role('admin')
def get_student(student_id):
    student = get_student_or_404(student_id)

    data = student.to_dict()
    data['enrollments'] = [e.to_dict(include_course=True) for e in student.enrollments]
    data['payments'] = [p.to_dict() for p in student.payments]
    return jsonify(data)


@students_bp.route('/students', methods=['POST'])
@require_role('admin')
def create_student():
    """
    Create a student account. A password is generated when none is given
    and optionally emailed to the student.
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ['name', 'email'])

    user, password = create_account(
        'student',
        name=data['name'],
        email=data['email'],
        phone=data.get('phone'),
        password=data.get('password'),
        dob=parse_date(data.get('dob')),
        gender=data.get('gender'),
        address=data.get('address'),
    )
    CacheInvalidator.invalidate_analytics()

    email_sent = email_password(user, password) if parse_bool(data.get('send_email')) else False

    return jsonify({
        'message': 'Student created successfully',
        'student': user.student.to_dict(),
        'password': password,
        'email_sent': email_sent,
    }), 201


@students_bp.route('/students/<student_id>', methods=['PUT'])
@require_role('admin')
def update_student(student_id):
    student = get_student_or_404(student_id)
    data = request.get_json(silent=True) or {}

    for field in UPDATABLE_USER_FIELDS:
        if field in data:
            setattr(student.user, field, data[field])

    for field in UPDATABLE_STUDENT_FIELDS:
        if field in data:
            setattr(student, field, data[field])

    if 'dob' in data:
        student.dob = parse_date(data['dob'])

    db.session.commit()
    CacheInvalidator.invalidate_student(student.user_id)

    return jsonify({
        'message': 'Student updated successfully',
        'student': student.to_dict(),
    })


@students_bp.route('/students/<student_id>', methods=['DELETE'])
@require_role('admin')
def delete_student(student_id):
    student = get_student_or_404(student_id)
    user = student.user

    CacheInvalidator.invalidate_student(student.user_id)
    db.session.delete(user)
    db.session.commit()
    CacheInvalidator.invalidate_analytics()

    return jsonify({'message': 'Student deleted successfully'})


@students_bp.route('/students/<student_id>/reset-password', methods=['POST'])
@require_role('admin')
def reset_student_password(student_id):
    """
    Generate a new password, sign the student out everywhere and return it
    """
    student = get_student_or_404(student_id)
    password = reset_password(student.user)
    email_sent = email_password(student.user, password, is_reset=True)

    return jsonify({
        'message': 'Password reset successfully',
        'password': password,
        'email_sent': email_sent,
    })


@students_bp.route('/students/<student_id>/send-password', methods=['POST'])
@require_role('admin')
def send_student_password(student_id):
    student = get_student_or_404(student_id)
    password = reset_password(student.user)
    email_sent = email_password(student.user, password)

    if not email_sent:
        return jsonify({
            'message': 'Password was reset but the email could not be sent',
            'password': password,
            'email_sent': False,
        }), 502

    return jsonify({'message': f'New password sent to {student.user.email}', 'email_sent': True})
