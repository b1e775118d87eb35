from functools import wraps
from flask import jsonify
from flask_login import current_user, login_required

SUPERVISOR_ROLES = ('supervisor', 'manager', 'admin')
MANAGER_ROLES = ('manager', 'admin')


def role_required(*roles):
    """login_required plus a role check; 403 for other roles"""
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if not current_user.has_role(*roles):
                return jsonify({'message': 'Access denied'}), 403
            return view(*args, **kwargs)
        return wrapped
    return decorator
