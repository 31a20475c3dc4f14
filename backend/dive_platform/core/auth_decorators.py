"""
Authentication helpers for the API.

Every API request authenticates with ``Authorization: Bearer <access token>``.
Flask-Login's request_loader (registered in create_app) turns the token into
a ``User`` row, so controllers use ``flask_login.login_required`` and
``current_user`` directly. The decorators here layer role checks on top.

DECORATOR GUIDE:
- @login_required: any authenticated, active user
- @roles_required("center_owner"): user must hold one of the roles (admin always passes)
- @adult_required: user must not be a minor

Examples:
    @trips_bp.route("/center/<center_id>", methods=["POST"])
    @login_required
    @roles_required("center_owner")
    @adult_required
    def create_trip(center_id):
        ...
"""

from functools import wraps
from typing import Any, Optional

from flask import current_app, g
from flask_login import current_user

from dive_platform.core.exceptions import ForbiddenError
from dive_platform.domain.enums import UserRole
from dive_platform.utils.date_utils import is_minor


def get_current_user() -> Optional[Any]:
    """Return the authenticated user, or None for anonymous requests."""
    if current_user and getattr(current_user, "is_authenticated", False):
        return current_user._get_current_object()
    return None


def get_auth_error() -> str:
    """Reason recorded by the request loader for the last rejected token."""
    return g.get("auth_error") or "No token provided"


def roles_required(*roles: str):
    """Require the current user to hold one of ``roles``. Admins always pass."""

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = get_current_user()
            if user is None:
                return current_app.login_manager.unauthorized()
            if user.role != UserRole.ADMIN.value and user.role not in roles:
                raise ForbiddenError("Insufficient permissions")
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def adult_required(f):
    """Reject minors (users under 18 with a known date of birth)."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if user is None:
            return current_app.login_manager.unauthorized()
        if is_minor(user.date_of_birth):
            raise ForbiddenError("This action requires an adult account")
        return f(*args, **kwargs)

    return decorated_function
