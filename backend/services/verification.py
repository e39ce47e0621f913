"""
Email verification codes (account verification and email change)
"""
import logging
from datetime import timedelta

from flask import current_app

from app import db
from errors import ValidationError
from models.base import utcnow
from models.session import EmailVerificationCode
from utils.helpers import generate_verification_code

logger = logging.getLogger(__name__)


def code_lifetime():
    return timedelta(minutes=current_app.config.get('VERIFICATION_CODE_TTL_MINUTES', 24 * 60))


def describe_lifetime():
    minutes = int(code_lifetime().total_seconds() // 60)
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f'{minutes} minutes'


def issue_code(user, email, purpose='verify'):
    """Replace any outstanding code for this purpose with a fresh one"""
    EmailVerificationCode.query.filter_by(
        user_id=user.id, purpose=purpose, verified=False
    ).delete(synchronize_session=False)

    record = EmailVerificationCode(
        user_id=user.id,
        email=email.strip().lower(),
        code=generate_verification_code(),
        purpose=purpose,
        expires_at=utcnow() + code_lifetime(),
    )
    db.session.add(record)
    db.session.commit()
    logger.info("Issued %s code for user %s", purpose, user.id)
    return record


def consume_code(user, code, purpose='verify'):
    """Mark a matching, unexpired code as used and return it"""
    record = (
        EmailVerificationCode.query.filter_by(
            user_id=user.id, code=str(code).strip(), purpose=purpose, verified=False
        )
        .order_by(EmailVerificationCode.created_at.desc())
        .first()
    )
    if not record:
        raise ValidationError('Invalid verification code', code='INVALID_CODE')
    if record.is_expired:
        raise ValidationError('Verification code has expired', code='CODE_EXPIRED')

    record.verified = True
    return record
