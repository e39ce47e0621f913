# routes/courses.py
import math

from flask import Blueprint, g, jsonify, request

from app import db
from errors import NotFoundError, PermissionDeniedError, ValidationError, require_fields
from models.course import Course, CourseCategory
from models.enrollment import Enrollment
from models.feedback import CourseFeedback
from models.teacher import Teacher
from services.analytics import course_stats
from services.cache import CacheInvalidator, CacheKeys, CacheService, CacheTTL, cached
from utils.auth import require_role
from utils.helpers import parse_bool

courses_bp = Blueprint('courses', __name__)

COURSE_FIELDS = [
    'title', 'description', 'category_id', 'price', 'duration', 'level',
    'delivery_mode', 'location', 'cover_image', 'youtube_url', 'zoom_url',
]


def get_course_or_404(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFoundError('Course', course_id)
    return course


def course_values(data, admin=False):
    """Pick and check the writable course fields from a request body"""
    values = {f: data[f] for f in COURSE_FIELDS if f in data}

    if 'price' in values:
        try:
            values['price'] = float(values['price'] or 0)
        except (TypeError, ValueError):
            raise ValidationError('price must be a number')
        if not math.isfinite(values['price']):
            raise ValidationError('price must be a number')

    if values.get('duration') is not None:
        try:
            values['duration'] = int(values['duration'])
        except (TypeError, ValueError, OverflowError):
            raise ValidationError('duration must be a whole number of hours')

    if values.get('category_id') and not db.session.get(CourseCategory, values['category_id']):
        raise NotFoundError('Category', values['category_id'])

    if 'is_active' in data:
        values['is_active'] = parse_bool(data['is_active'])

    if admin and 'teacher_id' in data:
        if data['teacher_id'] and not db.session.get(Teacher, data['teacher_id']):
            raise NotFoundError('Teacher', data['teacher_id'])
        values['teacher_id'] = data['teacher_id'] or None

    return values


def invalidate_course(course, previous_teacher_id=None):
    CacheInvalidator.invalidate_course(course.id)
    for teacher_id in {course.teacher_id, previous_teacher_id} - {None}:
        CacheInvalidator.invalidate_teacher(teacher_id)
    CacheInvalidator.invalidate_analytics()


def rating_summary(course_id):
    average, count = (
        db.session.query(db.func.avg(CourseFeedback.rating), db.func.count(CourseFeedback.id))
        .filter(CourseFeedback.course_id == course_id)
        .one()
    )
    return {'average': round(float(average or 0), 1), 'count': count}


@cached(lambda: CacheKeys.active_courses(), CacheTTL.MEDIUM)
def active_course_catalog():
    courses = Course.query.filter_by(is_active=True).order_by(Course.created_at.desc()).all()
    return [c.to_dict() for c in courses]


@cached(lambda course_id: CacheKeys.course_details(course_id), CacheTTL.MEDIUM)
def course_detail(course_id):
    course = db.session.get(Course, course_id)
    if not course or not course.is_active:
        return None
    data = course.to_dict(include_relations=True)
    data['stats'] = course_stats(course_id)
    data['rating'] = rating_summary(course_id)
    return data


# ================= PUBLIC CATALOG =================
@courses_bp.route('/courses', methods=['GET'])
def list_courses():
    """
    Active courses, optionally filtered by category slug, level or delivery mode
    """
    category = request.args.get('category')
    level = request.args.get('level')
    delivery_mode = request.args.get('delivery_mode')

    if not (category or level or delivery_mode):
        courses = active_course_catalog()
        return jsonify({'courses': courses, 'total': len(courses)})

    query = Course.query.filter(Course.is_active.is_(True))
    if category:
        query = query.join(CourseCategory, Course.category_id == CourseCategory.id)\
            .filter(CourseCategory.slug == category)
    if level:
        query = query.filter(Course.level == level)
    if delivery_mode:
        query = query.filter(Course.delivery_mode == delivery_mode)

    courses = [c.to_dict() for c in query.order_by(Course.created_at.desc()).all()]
    return jsonify({'courses': courses, 'total': len(courses)})


@courses_bp.route('/courses/<course_id>', methods=['GET'])
def get_course(course_id):
    data = course_detail(course_id)
    if data is None:
        raise NotFoundError('Course', course_id)
    return jsonify(data)


# ================= ADMIN =================
@courses_bp.route('/admin/courses', methods=['GET'])
@require_role('admin')
def admin_list_courses():
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 30, type=int)
    search = request.args.get('search')

    query = Course.query
    if search:
        query = query.filter(Course.title.ilike(f'%{search}%'))
    if request.args.get('is_active') is not None:
        query = query.filter(Course.is_active.is_(parse_bool(request.args['is_active'])))

    paginated = query.order_by(Course.created_at.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )
    return jsonify({
        'courses': [c.to_dict() for c in paginated.items],
        'total': paginated.total,
        'page': paginated.page,
        'per_page': paginated.per_page,
        'pages': paginated.pages,
    })


@courses_bp.route('/admin/courses', methods=['POST'])
@require_role('admin')
def admin_create_course():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['title'])

    course = Course(**course_values(data, admin=True))
    db.session.add(course)
    db.session.commit()
    invalidate_course(course)

    return jsonify({'message': 'Course created successfully', 'course': course.to_dict()}), 201


@courses_bp.route('/admin/courses/<course_id>', methods=['PUT'])
@require_role('admin')
def admin_update_course(course_id):
    course = get_course_or_404(course_id)
    previous_teacher_id = course.teacher_id

    course.update(**course_values(request.get_json(silent=True) or {}, admin=True))
    db.session.commit()
    invalidate_course(course, previous_teacher_id)

    return jsonify({'message': 'Course updated successfully', 'course': course.to_dict()})


@courses_bp.route('/admin/courses/<course_id>', methods=['DELETE'])
@require_role('admin')
def admin_delete_course(course_id):
    """
    Courses with enrollments are deactivated instead of deleted
    """
    course = get_course_or_404(course_id)
    invalidate_course(course)

    if Enrollment.query.filter_by(course_id=course.id).count():
        course.is_active = False
        db.session.commit()
        return jsonify({'message': 'Course has enrollments and was deactivated', 'deactivated': True})

    db.session.delete(course)
    db.session.commit()
    return jsonify({'message': 'Course deleted successfully', 'deactivated': False})


# ================= TEACHER (OWN COURSES) =================
def get_own_course(course_id):
    course = get_course_or_404(course_id)
    if course.teacher_id != g.current_user.id:
        raise PermissionDeniedError('You can only manage your own courses')
    return course


@courses_bp.route('/teacher/courses', methods=['GET'])
@require_role('teacher')
def teacher_list_courses():
    cache_key = CacheKeys.teacher_courses(g.current_user.id)
    cached_courses = CacheService.get(cache_key)
    if cached_courses is None:
        courses = Course.query.filter_by(teacher_id=g.current_user.id)\
            .order_by(Course.created_at.desc()).all()
        cached_courses = [
            {**c.to_dict(), 'enrollment_count': len(c.enrollments)} for c in courses
        ]
        CacheService.set(cache_key, cached_courses, CacheTTL.MEDIUM)
    return jsonify({'courses': cached_courses, 'total': len(cached_courses)})


@courses_bp.route('/teacher/courses', methods=['POST'])
@require_role('teacher')
def teacher_create_course():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['title'])

    course = Course(teacher_id=g.current_user.id, **course_values(data))
    db.session.add(course)
    db.session.commit()
    invalidate_course(course)

    return jsonify({'message': 'Course created successfully', 'course': course.to_dict()}), 201


@courses_bp.route('/teacher/courses/<course_id>', methods=['GET'])
@require_role('teacher')
def teacher_get_course(course_id):
    course = get_own_course(course_id)
    data = course.to_dict(include_relations=True)
    data['enrollments'] = [e.to_dict(include_student=True) for e in course.enrollments]
    return jsonify(data)


@courses_bp.route('/teacher/courses/<course_id>', methods=['PUT'])
@require_role('teacher')
def teacher_update_course(course_id):
    course = get_own_course(course_id)
    course.update(**course_values(request.get_json(silent=True) or {}))
    db.session.commit()
    invalidate_course(course)

    return jsonify({'message': 'Course updated successfully', 'course': course.to_dict()})


@courses_bp.route('/teacher/courses/<course_id>', methods=['DELETE'])
@require_role('teacher')
def teacher_delete_course(course_id):
    course = get_own_course(course_id)
    invalidate_course(course)

    if Enrollment.query.filter_by(course_id=course.id).count():
        course.is_active = False
        db.session.commit()
        return jsonify({'message': 'Course has enrollments and was deactivated', 'deactivated': True})

    db.session.delete(course)
    db.session.commit()
    return jsonify({'message': 'Course deleted successfully', 'deactivated': False})
