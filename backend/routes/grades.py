# routes/grades.py
import math
from datetime import datetime

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import IntegrityError

from app import db
from errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError, require_fields
from models.enrollment import Enrollment
from models.grade import Attendance, Score
from services.cache import CacheInvalidator
from utils.auth import require_role

grades_bp = Blueprint('grades', __name__)


def get_teaching_enrollment(enrollment_id):
    """The enrollment must belong to one of the signed-in teacher's courses"""
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError('Enrollment', enrollment_id)
    if enrollment.course.teacher_id != g.current_user.id:
        raise PermissionDeniedError('You can only grade students in your own courses')
    return enrollment


def get_own_score(score_id):
    score = db.session.get(Score, score_id)
    if not score:
        raise NotFoundError('Score', score_id)
    get_teaching_enrollment(score.enrollment_id)
    return score


def parse_number(value, field):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a number')
    if not math.isfinite(number):
        raise ValidationError(f'{field} must be a finite number')
    return number


def invalidate_grades(enrollment):
    CacheInvalidator.invalidate_student(enrollment.student_id)
    CacheInvalidator.invalidate_teacher(g.current_user.id)


# ================= SCORES =================
@grades_bp.route('/scores', methods=['POST'])
@require_role('teacher')
def create_score():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['enrollment_id', 'title', 'score'])

    enrollment = get_teaching_enrollment(data['enrollment_id'])

    # max_score first so the score is checked against it
    score = Score(enrollment_id=enrollment.id, title=data['title'].strip())
    score.max_score = parse_number(data.get('max_score', 100), 'max_score')
    score.score = parse_number(data['score'], 'score')
    score.remarks = data.get('remarks')

    db.session.add(score)
    db.session.commit()
    invalidate_grades(enrollment)

    return jsonify({'message': 'Score recorded successfully', 'score': score.to_dict()}), 201


@grades_bp.route('/scores/<score_id>', methods=['PUT'])
@require_role('teacher')
def update_score(score_id):
    score = get_own_score(score_id)
    data = request.get_json(silent=True) or {}

    new_max = parse_number(data['max_score'], 'max_score') if 'max_score' in data else None
    new_score = parse_number(data['score'], 'score') if 'score' in data else None

    # Raising the ceiling before the score (or lowering the score first)
    # keeps each intermediate value valid
    if new_max is not None and new_score is not None:
        if new_max >= float(score.max_score):
            score.max_score = new_max
            score.score = new_score
        else:
            score.score = new_score
            score.max_score = new_max
    elif new_max is not None:
        score.max_score = new_max
    elif new_score is not None:
        score.score = new_score

    if 'title' in data:
        score.title = data['title']
    if 'remarks' in data:
        score.remarks = data['remarks']

    db.session.commit()
    invalidate_grades(score.enrollment)

    return jsonify({'message': 'Score updated successfully', 'score': score.to_dict()})


@grades_bp.route('/scores/<score_id>', methods=['DELETE'])
@require_role('teacher')
def delete_score(score_id):
    score = get_own_score(score_id)
    enrollment = score.enrollment

    db.session.delete(score)
    db.session.commit()
    invalidate_grades(enrollment)

    return jsonify({'message': 'Score deleted successfully'})


@grades_bp.route('/enrollments/<enrollment_id>/scores', methods=['GET'])
@require_role('teacher')
def list_scores(enrollment_id):
    enrollment = get_teaching_enrollment(enrollment_id)
    scores = sorted(enrollment.scores, key=lambda s: s.created_at)
    return jsonify({'scores': [s.to_dict() for s in scores], 'total': len(scores)})


# ================= ATTENDANCE =================
@grades_bp.route('/attendance', methods=['POST'])
@require_role('teacher')
def record_attendance():
    """
    Record attendance for one enrollment and date.
    Recording the same date again updates the existing entry.
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ['enrollment_id', 'date', 'status'])

    enrollment = get_teaching_enrollment(data['enrollment_id'])
    try:
        date = datetime.strptime(data['date'], '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError('date must be in YYYY-MM-DD format')

    attendance = Attendance.query.filter_by(enrollment_id=enrollment.id, date=date).first()
    created = attendance is None
    if created:
        attendance = Attendance(enrollment_id=enrollment.id, date=date)
        db.session.add(attendance)

    attendance.status = data['status']
    attendance.notes = data.get('notes')

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('Attendance for this date was recorded concurrently')
    invalidate_grades(enrollment)

    return jsonify({
        'message': 'Attendance recorded successfully',
        'attendance': attendance.to_dict(),
    }), 201 if created else 200


@grades_bp.route('/enrollments/<enrollment_id>/attendance', methods=['GET'])
@require_role('teacher')
def list_attendance(enrollment_id):
    enrollment = get_teaching_enrollment(enrollment_id)
    records = sorted(enrollment.attendances, key=lambda a: a.date)
    attended = sum(1 for a in records if a.counts_as_attended)
    return jsonify({
        'attendance': [a.to_dict() for a in records],
        'total': len(records),
        'attendance_rate': int(round(attended / len(records) * 100)) if records else 0,
    })
