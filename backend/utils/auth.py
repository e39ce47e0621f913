# utils/auth.py
"""
Bearer token authentication
Tokens are HS256 JWTs signed with SECRET_KEY carrying user_id, role and the
session id (sid). A token is only accepted while its session is still active.
"""
from functools import wraps

import jwt
from flask import current_app, g, request

from app import db
from errors import AuthenticationError, PermissionDeniedError
from models.base import utcnow
from models.user import User


def encode_token(user, session_token, expires_at):
    payload = {
        'user_id': user.id,
        'role': user.role,
        'sid': session_token,
        'iat': utcnow(),
        'exp': expires_at,
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'],
                      algorithm=current_app.config.get('JWT_ALGORITHM', 'HS256'))


def decode_token(token):
    """Return the payload, or None for a bad or expired token"""
    try:
        return jwt.decode(token, current_app.config['SECRET_KEY'],
                          algorithms=[current_app.config.get('JWT_ALGORITHM', 'HS256')])
    except jwt.InvalidTokenError:
        return None


def get_bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    return auth_header.split(' ', 1)[1].strip() or None


def get_current_user():
    """
    Resolve the user for this request from the Authorization header.
    The result is memoised on flask.g; returns None when unauthenticated.
    """
    if 'current_user' in g:
        return g.current_user

    from services.sessions import get_session

    g.current_user = None
    g.session_token = None

    token = get_bearer_token()
    payload = decode_token(token) if token else None
    if not payload or not payload.get('sid'):
        return None

    session = get_session(payload['sid'])
    if not session or session.get('user_id') != payload.get('user_id'):
        return None

    user = db.session.get(User, payload['user_id'])
    if not user or not user.is_active:
        return None

    g.current_user = user
    g.session_token = payload['sid']
    return user


def require_auth(f):
    """
    Decorator to require a signed-in user.

    Usage:
    @enrollments_bp.route('', methods=['GET'])
    @require_auth
    def list_enrollments():
        user = g.current_user
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_current_user():
            raise AuthenticationError()
        return f(*args, **kwargs)
    return decorated_function


def require_role(*allowed_roles):
    """
    Decorator to require one of the given roles.

    Usage:
    @courses_bp.route('/admin/courses', methods=['POST'])
    @require_role('admin')
    def create_course():
        ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = get_current_user()
            if not user:
                raise AuthenticationError()
            if user.role not in allowed_roles:
                raise PermissionDeniedError(
                    f"Role {user.role} not allowed. Required: {', '.join(allowed_roles)}"
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator
