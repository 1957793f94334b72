"""
Custom route decorators for access control.

- superadmin_required: ensures user is logged in AND has is_superadmin=True.
  Anonymous callers get a JSON 401, signed-in non-superadmins a JSON 403.
"""

from functools import wraps

from flask import abort
from flask_login import current_user, login_required


def superadmin_required(f):
    """Require login + is_superadmin flag."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not current_user.is_superadmin:
            abort(403)
        return f(*args, **kwargs)

    return decorated
