# routes/auth.py
import logging

from flask import Blueprint, g, jsonify, request

from app import db
from errors import (
    AuthenticationError, ConflictError, PermissionDeniedError, ValidationError, require_fields,
)
from models.student import Student
from models.user import EMAIL_PATTERN, User
from services.email import EmailDeliveryError, send_verification_email, send_welcome_email
from services.sessions import create_session, revoke_session
from services.verification import consume_code, describe_lifetime, issue_code
from utils.auth import encode_token, get_current_user, require_auth
from utils.helpers import generate_suid

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

MIN_PASSWORD_LENGTH = 8


def validate_password(password):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')


def send_code(user, email, purpose='verify'):
    """Issue a code and email it; returns whether the email went out"""
    record = issue_code(user, email, purpose)
    try:
        send_verification_email(email, user.name, record.code, describe_lifetime())
        return True
    except EmailDeliveryError as e:
        logger.warning("Verification email to %s failed: %s", email, e)
        return False


# ================= STUDENT REGISTRATION =================
@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Register a student account and send a verification code
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ['name', 'email', 'password'])

    email = data['email'].strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('Invalid email format')
    validate_password(data['password'])

    if User.query.filter_by(email=email).first():
        raise ConflictError('Email already registered')

    user = User(
        name=data['name'].strip(),
        email=email,
        phone=data.get('phone'),
        role='student',
    )
    user.set_password(data['password'])
    user.student = Student(suid=generate_suid())

    db.session.add(user)
    db.session.commit()
    logger.info("Registered student %s (%s)", user.id, user.student.suid)

    email_sent = send_code(user, user.email)

    return jsonify({
        'message': 'Registration successful. Please check your email for a verification code.',
        'user': user.to_dict(),
        'student': user.student.to_dict(include_user=False),
        'email_sent': email_sent,
    }), 201


# ================= LOGIN / LOGOUT =================
@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    if not data.get('email') or not data.get('password'):
        raise ValidationError('Email and password required')

    user = User.query.filter_by(email=data['email'].strip().lower()).first()
    if not user or not user.check_password(data['password']):
        raise AuthenticationError('Invalid credentials', code='INVALID_CREDENTIALS')

    if not user.is_active:
        raise PermissionDeniedError('Account is not active. Please contact administrator.',
                                    code='ACCOUNT_INACTIVE')

    session = create_session(
        user,
        ip_address=request.headers.get('X-Forwarded-For', request.remote_addr),
        user_agent=request.headers.get('User-Agent'),
    )
    token = encode_token(user, session.session_token, session.expires_at)

    return jsonify({
        'message': 'Login successful',
        'user': user.to_dict(),
        'token': token,
        'expires_at': session.expires_at.isoformat(),
    })


@auth_bp.route('/logout', methods=['POST'])
@require_auth
def logout():
    revoke_session(g.session_token)
    return jsonify({'message': 'Logged out successfully'})


# ================= EMAIL VERIFICATION =================
@auth_bp.route('/send-verification', methods=['POST'])
def send_verification():
    """
    Send a fresh verification code.
    Signed-in users get one for their own email; otherwise pass {"email": ...}.
    """
    user = get_current_user()
    if not user:
        data = request.get_json(silent=True) or {}
        require_fields(data, ['email'])
        user = User.query.filter_by(email=data['email'].strip().lower()).first()
        if not user:
            # Same response either way so addresses cannot be enumerated
            return jsonify({'message': 'If the account exists, a verification code has been sent'})

    if user.is_email_verified:
        return jsonify({'message': 'Email already verified', 'already_verified': True})

    email_sent = send_code(user, user.email)
    return jsonify({
        'message': 'Verification code sent' if email_sent else 'Could not send verification email',
        'email_sent': email_sent,
    })


@auth_bp.route('/verify-email', methods=['POST'])
def verify_email():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['code'])

    user = get_current_user()
    if not user:
        require_fields(data, ['email'])
        user = User.query.filter_by(email=data['email'].strip().lower()).first()
        if not user:
            raise ValidationError('Invalid verification code', code='INVALID_CODE')

    if user.is_email_verified:
        return jsonify({'message': 'Email already verified', 'user': user.to_dict()})

    consume_code(user, data['code'], purpose='verify')
    user.mark_email_verified()
    db.session.commit()
    logger.info("Email verified for user %s", user.id)

    try:
        send_welcome_email(user.email, user.name, user.role)
    except EmailDeliveryError as e:
        logger.warning("Welcome email to %s failed: %s", user.email, e)

    return jsonify({'message': 'Email verified successfully', 'user': user.to_dict()})
