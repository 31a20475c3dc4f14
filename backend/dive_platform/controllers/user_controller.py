"""
Account self-service (``/users/me``) and admin user lookup.
"""

from flask import Blueprint
from flask_login import login_required

from dive_platform.core.api_utils import api_response, get_json_body
from dive_platform.core.auth_decorators import get_current_user, roles_required
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import UserRole
from dive_platform.schemas.auth import UserResponse, UserUpdateRequest
from dive_platform.services.container import build_user_service

user_bp = Blueprint("users", __name__, url_prefix="/users")


@user_bp.route("/me", methods=["GET"])
@login_required
def get_me():
    db = SessionLocal()
    try:
        user = build_user_service(db).get_user(get_current_user().id)
        return api_response(UserResponse.from_domain(user).to_dict())
    finally:
        db.close()


@user_bp.route("/me", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_me():
    payload = UserUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        user = build_user_service(db).update_me(get_current_user().id, payload.changes)
        return api_response(UserResponse.from_domain(user).to_dict(), "Profile updated")
    finally:
        db.close()


@user_bp.route("/me", methods=["DELETE"])
@login_required
def deactivate_me():
    """Deactivate the caller's account and revoke every refresh token."""
    db = SessionLocal()
    try:
        build_user_service(db).deactivate(get_current_user().id)
        return api_response(message="Account deactivated")
    finally:
        db.close()


@user_bp.route("/<user_id>", methods=["GET"])
@login_required
@roles_required(UserRole.ADMIN.value)
def get_user(user_id):
    db = SessionLocal()
    try:
        user = build_user_service(db).get_user(user_id)
        return api_response(UserResponse.from_domain(user).to_dict())
    finally:
        db.close()
