# routes/enrollments.py
from flask import Blueprint, g, jsonify, request

from app import db
from errors import NotFoundError, PermissionDeniedError, ValidationError, require_fields
from models.enrollment import ENROLLMENT_STATUSES, Enrollment
from services import enrollments as workflow
from services.cache import CacheKeys, CacheService, CacheTTL
from utils.auth import require_auth, require_role

enrollments_bp = Blueprint('enrollments', __name__)


def get_visible_enrollment(enrollment_id):
    """
    Students see their own enrollments, teachers those in their courses,
    admins everything
    """
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError('Enrollment', enrollment_id)

    user = g.current_user
    if user.role == 'student' and enrollment.student_id != user.id:
        raise NotFoundError('Enrollment', enrollment_id)
    if user.role == 'teacher' and enrollment.course.teacher_id != user.id:
        raise PermissionDeniedError()
    return enrollment


@enrollments_bp.route('', methods=['POST'])
@require_role('student')
def create_enrollment():
    """
    Enroll the signed-in student in a course (email must be verified)
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ['course_id'])

    enrollment = workflow.enroll_student(g.current_user.student, data['course_id'])
    return jsonify({
        'message': 'Enrolled successfully',
        'enrollment': enrollment.to_dict(include_course=True),
    }), 201


@enrollments_bp.route('', methods=['GET'])
@require_auth
def list_enrollments():
    """
    Students get their own enrollments; admins can list and filter all of them
    """
    user = g.current_user
    status = request.args.get('status')

    if user.role == 'student':
        cache_key = CacheKeys.student_enrollments(user.id)
        data = None if status else CacheService.get(cache_key)
        if data is None:
            query = Enrollment.query.filter_by(student_id=user.id)
            if status:
                query = query.filter_by(status=status)
            enrollments = query.order_by(Enrollment.enrolled_at.desc()).all()
            data = [e.to_dict(include_course=True) for e in enrollments]
            if not status:
                CacheService.set(cache_key, data, CacheTTL.SHORT)
        return jsonify({'enrollments': data, 'total': len(data)})

    if user.role != 'admin':
        raise PermissionDeniedError()

    query = Enrollment.query
    if status:
        query = query.filter_by(status=status)
    if request.args.get('course_id'):
        query = query.filter_by(course_id=request.args['course_id'])
    if request.args.get('student_id'):
        query = query.filter_by(student_id=request.args['student_id'])

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 30, type=int)
    paginated = query.order_by(Enrollment.enrolled_at.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )
    return jsonify({
        'enrollments': [e.to_dict(include_course=True, include_student=True) for e in paginated.items],
        'total': paginated.total,
        'page': paginated.page,
        'per_page': paginated.per_page,
        'pages': paginated.pages,
    })


@enrollments_bp.route('/<enrollment_id>', methods=['GET'])
@require_auth
def get_enrollment(enrollment_id):
    enrollment = get_visible_enrollment(enrollment_id)

    data = enrollment.to_dict(include_course=True, include_student=g.current_user.role != 'student')
    data['scores'] = [s.to_dict() for s in sorted(enrollment.scores, key=lambda s: s.created_at)]
    data['attendance'] = [a.to_dict() for a in sorted(enrollment.attendances, key=lambda a: a.date)]
    data['feedback'] = enrollment.feedback.to_dict() if enrollment.feedback else None
    return jsonify(data)


@enrollments_bp.route('/<enrollment_id>/payment-details', methods=['GET'])
@require_auth
def get_payment_details(enrollment_id):
    enrollment = get_visible_enrollment(enrollment_id)
    return jsonify(workflow.enrollment_payment_details(enrollment))


@enrollments_bp.route('/<enrollment_id>/status', methods=['PATCH'])
@require_role('admin', 'teacher', 'student')
def update_status(enrollment_id):
    """
    Change status (admins and course teachers) or progress (course teachers).
    Students may only drop their own enrollment.
    """
    enrollment = get_visible_enrollment(enrollment_id)
    data = request.get_json(silent=True) or {}
    user = g.current_user

    status = data.get('status')
    progress = data.get('progress')
    if status is None and progress is None:
        raise ValidationError('status or progress is required')

    if status is not None:
        if status not in ENROLLMENT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ENROLLMENT_STATUSES)}")
        if user.role == 'student' and status != 'dropped':
            raise PermissionDeniedError('Students can only drop an enrollment')

    if progress is not None:
        if user.role == 'student':
            raise PermissionDeniedError('Students cannot change progress')
        try:
            progress = int(progress)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError('progress must be a whole number')
        if not 0 <= progress <= 100:
            raise ValidationError('progress must be between 0 and 100')

    workflow.update_enrollment(enrollment, status=status, progress=progress)

    return jsonify({
        'message': 'Enrollment updated successfully',
        'enrollment': enrollment.to_dict(include_course=True),
    })


@enrollments_bp.route('/<enrollment_id>', methods=['DELETE'])
@require_role('admin')
def delete_enrollment(enrollment_id):
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError('Enrollment', enrollment_id)

    workflow.delete_enrollment(enrollment)
    return jsonify({'message': 'Enrollment deleted successfully'})
