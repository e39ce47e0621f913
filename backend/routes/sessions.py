# routes/sessions.py
from flask import Blueprint, g, jsonify, request

from errors import NotFoundError
from models.session import UserSession
from services.sessions import (
    cleanup_expired_sessions, get_user_sessions, revoke_all_user_sessions, revoke_session,
    validate_session,
)
from utils.auth import get_bearer_token, decode_token, require_auth, require_role

sessions_bp = Blueprint('sessions', __name__)


@sessions_bp.route('', methods=['GET'])
@require_auth
def list_sessions():
    """
    Active sessions of the signed-in user, newest activity first
    """
    sessions = get_user_sessions(g.current_user.id)
    return jsonify({
        'sessions': [s.to_dict(current_token=g.session_token) for s in sessions],
        'total': len(sessions),
    })


@sessions_bp.route('/<session_id>/revoke', methods=['POST'])
@require_auth
def revoke(session_id):
    session = UserSession.query.filter_by(id=session_id, user_id=g.current_user.id).first()
    if not session:
        raise NotFoundError('Session', session_id)

    revoke_session(session.session_token)
    return jsonify({
        'message': 'Session revoked',
        'was_current': session.session_token == g.session_token,
    })


@sessions_bp.route('/revoke-all', methods=['POST'])
@require_auth
def revoke_all():
    """
    Sign out everywhere. Keeps the current session unless include_current is true.
    """
    data = request.get_json(silent=True) or {}
    keep = None if data.get('include_current') else g.session_token
    count = revoke_all_user_sessions(g.current_user.id, except_token=keep)
    return jsonify({'message': f'{count} sessions revoked', 'revoked': count})


@sessions_bp.route('/validate', methods=['GET'])
def validate():
    token = get_bearer_token()
    payload = decode_token(token) if token else None
    if not payload or not payload.get('sid'):
        return jsonify({'valid': False, 'reason': 'Invalid or expired token'}), 401

    result = validate_session(payload['sid'])
    return jsonify(result), (200 if result['valid'] else 401)


@sessions_bp.route('/cleanup', methods=['POST'])
@require_role('admin')
def cleanup():
    count = cleanup_expired_sessions()
    return jsonify({'message': f'Cleaned up {count} expired sessions', 'cleaned': count})
