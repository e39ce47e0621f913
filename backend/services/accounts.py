"""
Admin-side account management shared by the student and teacher routes
"""
import logging

from app import db
from errors import ConflictError, ValidationError
from models.base import utcnow
from models.student import Student
from models.teacher import Teacher
from models.user import EMAIL_PATTERN, User
from services.email import EmailDeliveryError, send_password_email
from services.sessions import revoke_all_user_sessions
from utils.helpers import generate_password, generate_suid

logger = logging.getLogger(__name__)


def normalize_email(email):
    email = (email or '').strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('Invalid email format')
    return email


def ensure_email_available(email, exclude_user_id=None):
    query = User.query.filter(User.email == email)
    if exclude_user_id:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ConflictError('Email already registered')


def create_account(role, name, email, phone=None, password=None, verified=True, **profile):
    """
    Create a student or teacher account.
    Returns (user, plain_password); a readable password is generated when none is given.
    """
    email = normalize_email(email)
    ensure_email_available(email)

    password = password or generate_password()
    user = User(name=name.strip(), email=email, phone=phone, role=role)
    user.set_password(password)
    if verified:
        # Admin-created accounts are trusted
        user.email_verified_at = utcnow()

    if role == 'student':
        user.student = Student(suid=generate_suid(), **profile)
    elif role == 'teacher':
        user.teacher = Teacher(**profile)

    db.session.add(user)
    db.session.commit()
    logger.info("Created %s account %s", role, user.id)
    return user, password


def email_password(user, password, is_reset=False):
    """Email credentials; returns whether the message went out"""
    try:
        return send_password_email(user.email, user.name, password, is_reset=is_reset) is not None
    except EmailDeliveryError as e:
        logger.warning("Password email to %s failed: %s", user.email, e)
        return False


def reset_password(user):
    """Set a new generated password and sign the user out everywhere"""
    password = generate_password()
    user.set_password(password)
    db.session.commit()
    revoke_all_user_sessions(user.id)
    logger.info("Password reset for user %s", user.id)
    return password


def change_email(user, new_email):
    new_email = normalize_email(new_email)
    ensure_email_available(new_email, exclude_user_id=user.id)
    user.email = new_email
    user.email_verified_at = utcnow()
    db.session.commit()
    return user
