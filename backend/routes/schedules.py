# routes/schedules.py
from flask import Blueprint, g, jsonify, request

from app import db
from errors import NotFoundError, PermissionDeniedError, ValidationError, require_fields
from models.course import ClassSchedule, Course
from services.cache import CacheInvalidator
from utils.auth import require_role
from utils.helpers import parse_bool

schedules_bp = Blueprint('schedules', __name__)

SCHEDULE_FIELDS = ['day_of_week', 'start_time', 'end_time', 'location', 'notes']


def check_course_access(course):
    """Admins manage every course, teachers only their own"""
    user = g.current_user
    if user.role == 'teacher' and course.teacher_id != user.id:
        raise PermissionDeniedError('You can only manage schedules of your own courses')


def check_times(start_time, end_time):
    if start_time and end_time and end_time <= start_time:
        raise ValidationError('end_time must be after start_time')


@schedules_bp.route('/courses/<course_id>/schedules', methods=['GET'])
def list_schedules(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFoundError('Course', course_id)

    include_inactive = parse_bool(request.args.get('include_inactive'))
    schedules = [s for s in course.schedules if include_inactive or s.is_active]
    return jsonify({'schedules': [s.to_dict() for s in schedules], 'total': len(schedules)})


@schedules_bp.route('/courses/<course_id>/schedules', methods=['POST'])
@require_role('admin', 'teacher')
def create_schedule(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFoundError('Course', course_id)
    check_course_access(course)

    data = request.get_json(silent=True) or {}
    require_fields(data, ['day_of_week', 'start_time', 'end_time'])
    check_times(data['start_time'], data['end_time'])

    schedule = ClassSchedule(
        course_id=course.id,
        day_of_week=data['day_of_week'],
        start_time=data['start_time'],
        end_time=data['end_time'],
        location=data.get('location'),
        notes=data.get('notes'),
        is_active=parse_bool(data.get('is_active'), default=True),
    )
    db.session.add(schedule)
    db.session.commit()
    CacheInvalidator.invalidate_course(course.id)

    return jsonify({'message': 'Schedule created successfully', 'schedule': schedule.to_dict()}), 201


@schedules_bp.route('/schedules/<schedule_id>', methods=['PUT'])
@require_role('admin', 'teacher')
def update_schedule(schedule_id):
    schedule = db.session.get(ClassSchedule, schedule_id)
    if not schedule:
        raise NotFoundError('Schedule', schedule_id)
    check_course_access(schedule.course)

    data = request.get_json(silent=True) or {}
    values = {f: data[f] for f in SCHEDULE_FIELDS if f in data}
    if 'is_active' in data:
        values['is_active'] = parse_bool(data['is_active'])

    start_time = values.pop('start_time', schedule.start_time)
    end_time = values.pop('end_time', schedule.end_time)
    check_times(start_time, end_time)

    # end_time is checked against start_time, so set start first
    schedule.start_time = start_time
    schedule.end_time = end_time
    schedule.update(**values)
    db.session.commit()
    CacheInvalidator.invalidate_course(schedule.course_id)

    return jsonify({'message': 'Schedule updated successfully', 'schedule': schedule.to_dict()})


@schedules_bp.route('/schedules/<schedule_id>', methods=['DELETE'])
@require_role('admin', 'teacher')
def delete_schedule(schedule_id):
    schedule = db.session.get(ClassSchedule, schedule_id)
    if not schedule:
        raise NotFoundError('Schedule', schedule_id)
    check_course_access(schedule.course)

    course_id = schedule.course_id
    db.session.delete(schedule)
    db.session.commit()
    CacheInvalidator.invalidate_course(course_id)

    return jsonify({'message': 'Schedule deleted successfully'})
