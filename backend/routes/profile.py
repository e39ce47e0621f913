# routes/profile.py
import logging
from datetime import date

from flask import Blueprint, g, jsonify, request

from app import db
from errors import AuthenticationError, ConflictError, ValidationError, require_fields
from models.user import EMAIL_PATTERN, User
from routes.auth import validate_password
from services.cache import CacheInvalidator
from services.email import EmailDeliveryError, send_email_change_code
from services.sessions import revoke_all_user_sessions
from services.verification import consume_code, describe_lifetime, issue_code
from utils.auth import require_auth, require_role

logger = logging.getLogger(__name__)

profile_bp = Blueprint('profile', __name__)

USER_FIELDS = ['name', 'phone', 'photo']
STUDENT_FIELDS = ['dob', 'gender', 'address', 'photo']
TEACHER_FIELDS = ['bio', 'spec', 'schedule', 'photo']


def parse_date(value, field='dob'):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a date in YYYY-MM-DD format')


def profile_payload(user):
    data = {'user': user.to_dict()}
    if user.student:
        data['student'] = user.student.to_dict(include_user=False)
    if user.teacher:
        data['teacher'] = user.teacher.to_dict(include_user=False)
    return data


def invalidate_profile(user):
    if user.role == 'student':
        CacheInvalidator.invalidate_student(user.id)
    elif user.role == 'teacher':
        CacheInvalidator.invalidate_teacher(user.id)


def apply_profile_fields(user, data):
    for field in USER_FIELDS:
        if field in data:
            setattr(user, field, data[field])

    if user.student:
        for field in STUDENT_FIELDS:
            if field in data:
                value = parse_date(data[field]) if field == 'dob' else data[field]
                setattr(user.student, field, value)

    if user.teacher:
        for field in TEACHER_FIELDS:
            if field in data:
                setattr(user.teacher, field, data[field])


@profile_bp.route('/profile', methods=['GET'])
@require_auth
def get_profile():
    return jsonify(profile_payload(g.current_user))


@profile_bp.route('/profile', methods=['PUT'])
@require_auth
def update_profile():
    data = request.get_json(silent=True) or {}
    user = g.current_user

    if 'name' in data and not (data['name'] or '').strip():
        raise ValidationError('name cannot be empty')

    apply_profile_fields(user, data)
    db.session.commit()
    invalidate_profile(user)

    return jsonify({'message': 'Profile updated successfully', **profile_payload(user)})


@profile_bp.route('/profile/password', methods=['PUT'])
@require_auth
def change_password():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['current_password', 'new_password'])

    user = g.current_user
    if not user.check_password(data['current_password']):
        raise AuthenticationError('Current password is incorrect', code='INVALID_PASSWORD')
    validate_password(data['new_password'])

    user.set_password(data['new_password'])
    db.session.commit()

    # Other devices must sign in again
    revoked = revoke_all_user_sessions(user.id, except_token=g.session_token)
    return jsonify({'message': 'Password changed successfully', 'sessions_revoked': revoked})


@profile_bp.route('/profile/request-email-change', methods=['POST'])
@require_auth
def request_email_change():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['new_email'])

    new_email = data['new_email'].strip().lower()
    if not EMAIL_PATTERN.match(new_email):
        raise ValidationError('Invalid email format')
    if new_email == g.current_user.email:
        raise ValidationError('New email is the same as the current email')
    if User.query.filter_by(email=new_email).first():
        raise ConflictError('Email already registered')

    record = issue_code(g.current_user, new_email, purpose='change')
    try:
        send_email_change_code(new_email, g.current_user.name, record.code, describe_lifetime())
        email_sent = True
    except EmailDeliveryError as e:
        logger.warning("Email change code to %s failed: %s", new_email, e)
        email_sent = False

    return jsonify({
        'message': f'A verification code has been sent to {new_email}',
        'email_sent': email_sent,
    })


@profile_bp.route('/profile/verify-email-change', methods=['POST'])
@require_auth
def verify_email_change():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['code'])

    user = g.current_user
    record = consume_code(user, data['code'], purpose='change')

    if User.query.filter(User.email == record.email, User.id != user.id).first():
        raise ConflictError('Email already registered')

    user.email = record.email
    user.mark_email_verified()
    db.session.commit()
    invalidate_profile(user)
    logger.info("User %s changed email", user.id)

    return jsonify({'message': 'Email updated successfully', 'user': user.to_dict()})


@profile_bp.route('/student/profile/setup', methods=['POST'])
@require_role('student')
def setup_student_profile():
    """
    First-login onboarding for students
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ['dob', 'gender'])

    user = g.current_user
    apply_profile_fields(user, data)
    user.student.onboarding_completed = True
    db.session.commit()
    invalidate_profile(user)

    return jsonify({'message': 'Profile setup complete', **profile_payload(user)})
