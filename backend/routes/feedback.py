# routes/feedback.py
from flask import Blueprint, g, jsonify, request

from app import db
from errors import ConflictError, NotFoundError, ValidationError, require_fields
from models.course import Course
from models.enrollment import Enrollment
from models.feedback import CourseFeedback
from services.cache import CacheInvalidator
from utils.auth import require_role
from utils.helpers import parse_bool

feedback_bp = Blueprint('feedback', __name__)


@feedback_bp.route('', methods=['POST'])
@require_role('student')
def create_feedback():
    """
    Rate a course the student is enrolled in; one review per enrollment
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ['course_id', 'rating'])

    enrollment = Enrollment.query.filter_by(
        student_id=g.current_user.id, course_id=data['course_id']
    ).first()
    if not enrollment:
        raise NotFoundError('Enrollment', data['course_id'])
    if enrollment.status == 'dropped':
        raise ValidationError('Dropped enrollments cannot leave feedback')
    if enrollment.feedback:
        raise ConflictError('You have already reviewed this course')

    try:
        rating = int(data['rating'])
    except (TypeError, ValueError, OverflowError):
        raise ValidationError('rating must be a whole number between 1 and 5')

    feedback = CourseFeedback(
        enrollment_id=enrollment.id,
        student_id=enrollment.student_id,
        course_id=enrollment.course_id,
        rating=rating,
        comment=data.get('comment'),
        is_anonymous=parse_bool(data.get('is_anonymous')),
    )
    db.session.add(feedback)
    db.session.commit()
    CacheInvalidator.invalidate_course(enrollment.course_id)

    return jsonify({'message': 'Thank you for your feedback', 'feedback': feedback.to_dict()}), 201


@feedback_bp.route('', methods=['GET'])
def list_feedback():
    """
    Public reviews for a course with the average rating
    """
    course_id = request.args.get('course_id')
    if not course_id:
        raise ValidationError('course_id is required')
    if not db.session.get(Course, course_id):
        raise NotFoundError('Course', course_id)

    feedback = CourseFeedback.query.filter_by(course_id=course_id)\
        .order_by(CourseFeedback.created_at.desc()).all()
    average = round(sum(f.rating for f in feedback) / len(feedback), 1) if feedback else 0

    return jsonify({
        'feedback': [f.to_dict() for f in feedback],
        'total': len(feedback),
        'average_rating': average,
    })
