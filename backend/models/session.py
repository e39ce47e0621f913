"""
Session Models for CUBIS Academy
Login sessions and email verification codes
"""
from app import db
from sqlalchemy.orm import validates

from models.base import BaseModel, utcnow, serialize_value

CODE_PURPOSES = ('verify', 'change')


class UserSession(BaseModel):
    __tablename__ = 'user_sessions'

    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    session_token = db.Column(db.String(255), unique=True, nullable=False, index=True)

    # ============ CLIENT INFO ============
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    device = db.Column(db.String(50), nullable=True)
    browser = db.Column(db.String(50), nullable=True)
    os = db.Column(db.String(50), nullable=True)
    login_method = db.Column(db.String(20), nullable=False, default='credentials')

    # ============ LIFECYCLE ============
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    last_activity = db.Column(db.DateTime, default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    @property
    def is_expired(self):
        return self.expires_at <= utcnow()

    @property
    def is_valid(self):
        return self.is_active and not self.is_expired

    def to_dict(self, current_token=None):
        return {
            'id': self.id,
            'ip_address': self.ip_address,
            'device': self.device,
            'browser': self.browser,
            'os': self.os,
            'login_method': self.login_method,
            'is_active': self.is_active,
            'is_current': current_token is not None and current_token == self.session_token,
            'last_activity': serialize_value(self.last_activity),
            'expires_at': serialize_value(self.expires_at),
            'created_at': serialize_value(self.created_at),
        }


class EmailVerificationCode(BaseModel):
    __tablename__ = 'email_verification_codes'

    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False, index=True)
    code = db.Column(db.String(6), nullable=False)
    purpose = db.Column(db.String(20), nullable=False, default='verify')
    expires_at = db.Column(db.DateTime, nullable=False)
    verified = db.Column(db.Boolean, default=False, nullable=False)

    @validates('purpose')
    def validate_purpose(self, key, value):
        if value not in CODE_PURPOSES:
            raise ValueError(f"Purpose must be one of: {', '.join(CODE_PURPOSES)}")
        return value

    @property
    def is_expired(self):
        return self.expires_at <= utcnow()
