#routes/users.py
from flask import Blueprint, jsonify, request

from app import db
from errors import NotFoundError, ValidationError
from models.base import utcnow
from models.user import ROLES, User
from services.cache import CacheInvalidator
from utils.auth import require_role

users_bp = Blueprint('users', __name__)


# -------------------------------
# MANUAL EMAIL VERIFICATION
# -------------------------------
@users_bp.route('/users/<user_id>/verify', methods=['POST'])
@require_role('admin')
def verify_user(user_id):
    """
    Mark a user's email as verified (or unverified with {"verified": false})
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User', user_id)

    data = request.get_json(silent=True) or {}
    if data.get('verified', True):
        user.mark_email_verified()
    else:
        user.email_verified_at = None
    db.session.commit()
    CacheInvalidator.invalidate_analytics()

    return jsonify({
        'success': True,
        'message': 'User verified' if user.is_email_verified else 'User marked unverified',
        'user': user.to_dict(),
    })


@users_bp.route('/users/bulk-verify', methods=['POST'])
@require_role('admin')
def bulk_verify():
    data = request.get_json(silent=True) or {}
    user_ids = data.get('user_ids')
    if not isinstance(user_ids, list) or not user_ids:
        raise ValidationError('user_ids must be a non-empty list')

    updated = (
        User.query.filter(User.id.in_(user_ids), User.email_verified_at.is_(None))
        .update({'email_verified_at': utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    CacheInvalidator.invalidate_analytics()

    return jsonify({'success': True, 'message': f'{updated} users verified', 'count': updated})


# -------------------------------
# VERIFICATION STATS
# -------------------------------
@users_bp.route('/stats/verification', methods=['GET'])
@require_role('admin')
def verification_stats():
    by_role = {}
    for role in ROLES:
        total = User.query.filter_by(role=role).count()
        verified = User.query.filter(User.role == role, User.email_verified_at.isnot(None)).count()
        by_role[role] = {'total': total, 'verified': verified, 'unverified': total - verified}

    total = sum(r['total'] for r in by_role.values())
    verified = sum(r['verified'] for r in by_role.values())

    return jsonify({
        'success': True,
        'total': total,
        'verified': verified,
        'unverified': total - verified,
        'verification_rate': int(round(verified / total * 100)) if total else 0,
        'by_role': by_role,
    })
