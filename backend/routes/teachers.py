# routes/teachers.py
from flask import Blueprint, jsonify, request

from app import db
from errors import NotFoundError, ValidationError, require_fields
from models.course import Course
from models.teacher import Teacher, TeacherCourse
from models.user import User
from services.accounts import change_email, create_account, email_password, reset_password
from services.cache import CacheInvalidator
from utils.auth import require_role
from utils.helpers import parse_bool

teachers_bp = Blueprint('teachers', __name__)

UPDATABLE_USER_FIELDS = ['name', 'phone', 'is_active']
UPDATABLE_TEACHER_FIELDS = ['bio', 'spec', 'schedule', 'photo']


def get_teacher_or_404(teacher_id):
    teacher = db.session.get(Teacher, teacher_id)
    if not teacher:
        raise NotFoundError('Teacher', teacher_id)
    return teacher


def teacher_detail(teacher):
    data = teacher.to_dict()
    data['courses'] = [c.to_dict() for c in teacher.courses]
    data['assigned_course_ids'] = [a.course_id for a in teacher.assignments]
    data['email_verified'] = teacher.user.is_email_verified
    return data


@teachers_bp.route('/teachers', methods=['GET'])
@require_role('admin')
def get_teachers():
    """
    Get all teachers with filtering
    """
    search = request.args.get('search')
    active_only = parse_bool(request.args.get('active_only'), default=False)

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)

    query = Teacher.query.join(User, Teacher.user_id == User.id)

    if active_only:
        query = query.filter(User.is_active.is_(True))

    if search:
        query = query.filter(
            db.or_(
                User.name.ilike(f'%{search}%'),
                User.email.ilike(f'%{search}%'),
                Teacher.spec.ilike(f'%{search}%'),
            )
        )

    paginated = query.order_by(User.created_at.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )

    return jsonify({
        'teachers': [teacher.to_dict() for teacher in paginated.items],
        'total': paginated.total,
        'page': paginated.page,
        'per_page': paginated.per_page,
        'pages': paginated.pages,
    })


@teachers_bp.route('/teachers/<teacher_id>', methods=['GET'])
@require_role('admin')
def get_teacher(teacher_id):
    return jsonify(teacher_detail(get_teacher_or_404(teacher_id)))


@teachers_bp.route('/teachers', methods=['POST'])
@require_role('admin')
def create_teacher():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['name', 'email'])

    user, password = create_account(
        'teacher',
        name=data['name'],
        email=data['email'],
        phone=data.get('phone'),
        password=data.get('password'),
        bio=data.get('bio'),
        spec=data.get('spec'),
        schedule=data.get('schedule'),
        photo=data.get('photo'),
    )
    CacheInvalidator.invalidate_analytics()

    email_sent = email_password(user, password) if parse_bool(data.get('send_email')) else False

    return jsonify({
        'message': 'Teacher created successfully',
        'teacher': user.teacher.to_dict(),
        'password': password,
        'email_sent': email_sent,
    }), 201


@teachers_bp.route('/teachers/<teacher_id>', methods=['PUT'])
@require_role('admin')
def update_teacher(teacher_id):
    teacher = get_teacher_or_404(teacher_id)
    data = request.get_json(silent=True) or {}

    for field in UPDATABLE_USER_FIELDS:
        if field in data:
            setattr(teacher.user, field, data[field])

    for field in UPDATABLE_TEACHER_FIELDS:
        if field in data:
            setattr(teacher, field, data[field])

    db.session.commit()
    CacheInvalidator.invalidate_teacher(teacher.user_id)

    return jsonify({
        'message': 'Teacher updated successfully',
        'teacher': teacher.to_dict(),
    })


@teachers_bp.route('/teachers/<teacher_id>', methods=['DELETE'])
@require_role('admin')
def delete_teacher(teacher_id):
    """
    Delete a teacher. Their courses stay in the catalog without a teacher.
    """
    teacher = get_teacher_or_404(teacher_id)

    CacheInvalidator.invalidate_teacher(teacher.user_id)
    for course in teacher.courses:
        course.teacher_id = None
        CacheInvalidator.invalidate_course(course.id)

    db.session.delete(teacher.user)
    db.session.commit()
    CacheInvalidator.invalidate_analytics()

    return jsonify({'message': 'Teacher deleted successfully'})


@teachers_bp.route('/teachers/<teacher_id>/reset-password', methods=['POST'])
@require_role('admin')
def reset_teacher_password(teacher_id):
    teacher = get_teacher_or_404(teacher_id)
    password = reset_password(teacher.user)
    email_sent = email_password(teacher.user, password, is_reset=True)

    return jsonify({
        'message': 'Password reset successfully',
        'password': password,
        'email_sent': email_sent,
    })


@teachers_bp.route('/teachers/<teacher_id>/send-password', methods=['POST'])
@require_role('admin')
def send_teacher_password(teacher_id):
    teacher = get_teacher_or_404(teacher_id)
    password = reset_password(teacher.user)
    email_sent = email_password(teacher.user, password)

    if not email_sent:
        return jsonify({
            'message': 'Password was reset but the email could not be sent',
            'password': password,
            'email_sent': False,
        }), 502

    return jsonify({'message': f'New password sent to {teacher.user.email}', 'email_sent': True})


@teachers_bp.route('/teachers/<teacher_id>/assign-courses', methods=['POST'])
@require_role('admin')
def assign_courses(teacher_id):
    """
    Replace the set of courses a teacher is assigned to.
    Body: {"course_ids": [...], "set_primary": true}
    set_primary also makes the teacher the owner (course.teacher_id) of each course.
    """
    teacher = get_teacher_or_404(teacher_id)
    data = request.get_json(silent=True) or {}

    course_ids = data.get('course_ids')
    if not isinstance(course_ids, list):
        raise ValidationError('course_ids must be a list')

    courses = Course.query.filter(Course.id.in_(course_ids)).all() if course_ids else []
    missing = set(course_ids) - {c.id for c in courses}
    if missing:
        raise NotFoundError('Course', sorted(missing)[0])

    TeacherCourse.query.filter_by(teacher_id=teacher.user_id).delete(synchronize_session=False)
    for course in courses:
        db.session.add(TeacherCourse(teacher_id=teacher.user_id, course_id=course.id))
        if parse_bool(data.get('set_primary'), default=True):
            course.teacher_id = teacher.user_id
        CacheInvalidator.invalidate_course(course.id)

    db.session.commit()
    db.session.refresh(teacher)
    CacheInvalidator.invalidate_teacher(teacher.user_id)

    return jsonify({
        'message': f'{len(courses)} courses assigned',
        'teacher': teacher_detail(teacher),
    })


@teachers_bp.route('/teachers/<teacher_id>/change-email', methods=['POST'])
@require_role('admin')
def change_teacher_email(teacher_id):
    teacher = get_teacher_or_404(teacher_id)
    data = request.get_json(silent=True) or {}
    require_fields(data, ['email'])

    change_email(teacher.user, data['email'])
    CacheInvalidator.invalidate_teacher(teacher.user_id)

    return jsonify({'message': 'Email updated successfully', 'teacher': teacher.to_dict()})
