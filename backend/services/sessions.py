"""
Session store
Sessions live in the user_sessions table and are cached in Redis under
session:<token> for the rest of their lifetime.
"""
import logging
import re
from datetime import datetime, timedelta

from flask import current_app

from app import db
from models.base import utcnow, serialize_value
from models.session import UserSession
from models.user import User
from services.cache import CacheKeys, CacheService
from utils.helpers import generate_session_token

logger = logging.getLogger(__name__)

# Checked in order; first match wins
BROWSER_PATTERNS = [
    ('Edge', re.compile(r'Edg(?:e|A|iOS)?/([\d.]+)')),
    ('Opera', re.compile(r'(?:OPR|Opera)/([\d.]+)')),
    ('Chrome', re.compile(r'(?:Chrome|CriOS)/([\d.]+)')),
    ('Firefox', re.compile(r'(?:Firefox|FxiOS)/([\d.]+)')),
    ('Safari', re.compile(r'Version/([\d.]+).*Safari/')),
]

OS_PATTERNS = [
    ('Windows', re.compile(r'Windows NT ([\d.]+)')),
    ('iOS', re.compile(r'(?:iPhone|iPad|iPod).*? OS ([\d_]+)')),
    ('Android', re.compile(r'Android ([\d.]+)')),
    ('Mac OS', re.compile(r'Mac OS X ([\d_.]+)')),
    ('Linux', re.compile(r'Linux()')),
]


def parse_user_agent(user_agent):
    """Summarise a User-Agent header into (device, browser, os)"""
    if not user_agent:
        return None, None, None

    if re.search(r'iPad|Tablet', user_agent):
        device = 'tablet'
    elif re.search(r'Mobi|iPhone|Android', user_agent):
        device = 'mobile'
    else:
        device = 'desktop'

    browser = None
    for name, pattern in BROWSER_PATTERNS:
        match = pattern.search(user_agent)
        if match:
            browser = f'{name} {match.group(1).split(".")[0]}'
            break

    os_name = None
    for name, pattern in OS_PATTERNS:
        match = pattern.search(user_agent)
        if match:
            version = match.group(1).replace('_', '.')
            os_name = f'{name} {version}'.strip()
            break

    return device, browser, os_name


def _session_payload(session):
    return {
        'id': session.id,
        'user_id': session.user_id,
        'session_token': session.session_token,
        'device': session.device,
        'browser': session.browser,
        'os': session.os,
        'is_active': session.is_active,
        'last_activity': serialize_value(session.last_activity),
        'expires_at': serialize_value(session.expires_at),
    }


def _remaining_seconds(expires_at):
    return int((expires_at - utcnow()).total_seconds())


def _cache_session(session):
    ttl = _remaining_seconds(session.expires_at)
    if ttl > 0:
        CacheService.set(CacheKeys.session(session.session_token), _session_payload(session), ttl)


def session_lifetime():
    return timedelta(days=current_app.config.get('JWT_EXPIRES_DAYS', 30))


def create_session(user, ip_address=None, user_agent=None, login_method='credentials'):
    device, browser, os_name = parse_user_agent(user_agent)
    session = UserSession(
        user_id=user.id,
        session_token=generate_session_token(),
        ip_address=ip_address,
        user_agent=user_agent,
        device=device,
        browser=browser,
        os=os_name,
        login_method=login_method,
        is_active=True,
        last_activity=utcnow(),
        expires_at=utcnow() + session_lifetime(),
    )
    db.session.add(session)
    db.session.commit()

    _cache_session(session)
    logger.info("[Session] Created session for user %s (%s, %s)", user.id, device, browser)
    return session


def get_session(session_token):
    """Active, unexpired session as a dict; cache first, then the database"""
    cached = CacheService.get(CacheKeys.session(session_token))
    if cached and cached.get('is_active'):
        if datetime.fromisoformat(cached['expires_at']) > utcnow():
            return cached

    session = UserSession.query.filter(
        UserSession.session_token == session_token,
        UserSession.is_active.is_(True),
        UserSession.expires_at > utcnow(),
    ).first()
    if not session:
        return None

    _cache_session(session)
    return _session_payload(session)


def touch_session(session_token):
    """Record activity on a session"""
    session = UserSession.query.filter_by(session_token=session_token).first()
    if not session:
        return
    session.last_activity = utcnow()
    db.session.commit()
    _cache_session(session)


def revoke_session(session_token):
    updated = UserSession.query.filter_by(session_token=session_token).update(
        {'is_active': False}, synchronize_session=False
    )
    db.session.commit()
    CacheService.delete(CacheKeys.session(session_token))
    logger.info("[Session] Revoked session %s...", session_token[:10])
    return updated > 0


def revoke_all_user_sessions(user_id, except_token=None):
    """Revoke every active session of a user, optionally keeping one. Returns the count."""
    query = UserSession.query.filter(
        UserSession.user_id == user_id,
        UserSession.is_active.is_(True),
    )
    if except_token:
        query = query.filter(UserSession.session_token != except_token)

    sessions = query.all()
    for session in sessions:
        session.is_active = False
    db.session.commit()

    for session in sessions:
        CacheService.delete(CacheKeys.session(session.session_token))

    logger.info("[Session] Revoked %d sessions for user %s", len(sessions), user_id)
    return len(sessions)


def get_user_sessions(user_id):
    return (
        UserSession.query.filter(
            UserSession.user_id == user_id,
            UserSession.is_active.is_(True),
            UserSession.expires_at > utcnow(),
        )
        .order_by(UserSession.last_activity.desc())
        .all()
    )


def cleanup_expired_sessions():
    """Deactivate sessions past their expiry. Returns how many were cleaned."""
    expired = UserSession.query.filter(
        UserSession.is_active.is_(True),
        UserSession.expires_at <= utcnow(),
    ).all()

    for session in expired:
        session.is_active = False
    db.session.commit()

    for session in expired:
        CacheService.delete(CacheKeys.session(session.session_token))

    if expired:
        logger.info("[Session] Cleaned up %d expired sessions", len(expired))
    return len(expired)


def validate_session(session_token):
    """Check a session and its user; returns {'valid': bool, 'user_id'?, 'reason'?}"""
    session = get_session(session_token)
    if not session:
        return {'valid': False, 'reason': 'Session not found or expired'}

    user = db.session.get(User, session['user_id'])
    if not user:
        revoke_session(session_token)
        return {'valid': False, 'reason': 'User not found'}

    if not user.is_active:
        revoke_session(session_token)
        return {'valid': False, 'reason': 'User is inactive'}

    touch_session(session_token)
    return {'valid': True, 'user_id': user.id}
