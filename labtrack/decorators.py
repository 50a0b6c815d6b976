"""Route guards based on the signed-in user kept in the Flask session."""

from functools import wraps

from flask import jsonify, session

from labtrack.modules.identity_resolver import Role, User


def current_user():
    """Return the signed-in User, or None."""
    data = session.get('user')
    if not data:
        return None
    try:
        return User.from_dict(data)
    except (KeyError, ValueError):
        session.pop('user', None)
        return None


def login_required(f):
    """Decorator to require a signed-in user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user() is None:
            return jsonify({'success': False, 'error': 'Please sign in to access this page.'}), 401
        return f(*args, **kwargs)
    return decorated_function


def role_required(role):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = current_user()
            if user is None:
                return jsonify({'success': False, 'error': 'Please sign in to access this page.'}), 401
            if user.role != role:
                return jsonify({'success': False, 'error': f'{role.value.capitalize()} privileges required.'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = role_required(Role.ADMIN)
professor_required = role_required(Role.PROFESSOR)
