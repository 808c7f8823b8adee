# neigh/security.py
from functools import wraps

from flask import abort
from flask_login import current_user

from .errors import UnauthorizedError


def session_user():
    """The signed-in user, or None when the request is anonymous."""
    if not getattr(current_user, "is_authenticated", False):
        return None
    return current_user._get_current_object()


def require_user():
    user = session_user()
    if user is None:
        raise UnauthorizedError("Unauthorized")
    return user


def roles_required(*roles):
    """Route decorator: 401 for anonymous users, 403 for the wrong role."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            user = session_user()
            if user is None:
                abort(401)
            if roles and user.role not in roles:
                abort(403)
            return view(*args, **kwargs)
        return wrapped
    return decorator
