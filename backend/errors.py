"""
API errors for CUBIS Academy
Raised by services and routes, rendered as JSON by the handlers in app.py
"""
from datetime import datetime, timezone


class APIError(Exception):
    """Base error with an HTTP status and a machine-readable code"""
    status_code = 500
    code = 'INTERNAL_ERROR'

    def __init__(self, message, status_code=None, code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self):
        result = {
            'success': False,
            'error': self.message,
            'code': self.code,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }
        if self.details:
            result['details'] = self.details
        return result


class ValidationError(APIError):
    status_code = 400
    code = 'VALIDATION_ERROR'


class AuthenticationError(APIError):
    status_code = 401
    code = 'AUTH_REQUIRED'

    def __init__(self, message='Authentication required', **kwargs):
        super().__init__(message, **kwargs)


class PermissionDeniedError(APIError):
    status_code = 403
    code = 'PERMISSION_DENIED'

    def __init__(self, message='You do not have permission to perform this action', **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(APIError):
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, resource, resource_id=None):
        message = f'{resource} not found'
        details = {'id': resource_id} if resource_id else None
        super().__init__(message, details=details)


class ConflictError(APIError):
    status_code = 409
    code = 'CONFLICT'


class InvalidStatusTransition(ConflictError):
    code = 'INVALID_STATUS_TRANSITION'

    def __init__(self, entity, current, target):
        super().__init__(
            f'Cannot change {entity} status from {current} to {target}',
            details={'current': current, 'target': target},
        )


def require_fields(data, fields):
    """Raise ValidationError naming the first missing field"""
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f'{field} is required', details={'field': field})
