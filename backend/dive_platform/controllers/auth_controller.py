"""
Auth controller: registration, login, token refresh and account recovery.
"""

import logging

from flask import Blueprint, request
from flask_login import login_required

from dive_platform.core.api_utils import api_response, client_ip, get_json_body
from dive_platform.core.auth_decorators import get_current_user
from dive_platform.core.limiter_config import AUTH_LIMIT, limiter
from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.db.session import SessionLocal
from dive_platform.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    require_token,
)
from dive_platform.services.container import build_auth_service

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _session_payload(user, tokens) -> dict:
    return {"user": UserResponse.from_domain(user).to_dict(), "tokens": tokens.to_dict()}


@auth_bp.route("/register", methods=["POST"])
@limiter.limit(AUTH_LIMIT)
def register():
    """Create an account and return it with a token pair."""
    payload = RegisterRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        user, tokens = build_auth_service(db).register(
            payload, client_ip(), request.headers.get("User-Agent")
        )
        return api_response(
            _session_payload(user, tokens), "Registration successful", status_code=201
        )
    finally:
        db.close()


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(AUTH_LIMIT)
def login():
    payload = LoginRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        user, tokens = build_auth_service(db).login(
            payload, client_ip(), request.headers.get("User-Agent")
        )
        return api_response(_session_payload(user, tokens), "Login successful")
    finally:
        db.close()


@auth_bp.route("/refresh", methods=["POST"])
@limiter.limit(AUTH_LIMIT)
def refresh():
    token = require_token(get_json_body(), "refresh_token")
    db = SessionLocal()
    try:
        user, tokens = build_auth_service(db).refresh(
            token, client_ip(), request.headers.get("User-Agent")
        )
        return api_response(_session_payload(user, tokens))
    finally:
        db.close()


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    token = require_token(get_json_body(), "refresh_token")
    db = SessionLocal()
    try:
        build_auth_service(db).logout(token)
        return api_response(message="Logged out")
    finally:
        db.close()


@auth_bp.route("/logout-all", methods=["POST"])
@login_required
def logout_all():
    user = get_current_user()
    db = SessionLocal()
    try:
        revoked = build_auth_service(db).logout_all(user.id)
        return api_response({"revoked": revoked}, "Logged out from all devices")
    finally:
        db.close()


@auth_bp.route("/verify-email", methods=["POST"])
@limiter.limit(AUTH_LIMIT)
def verify_email():
    token = require_token(get_json_body(), "token")
    db = SessionLocal()
    try:
        user = build_auth_service(db).verify_email(token)
        return api_response(UserResponse.from_domain(user).to_dict(), "Email verified")
    finally:
        db.close()


@auth_bp.route("/forgot-password", methods=["POST"])
@limiter.limit(AUTH_LIMIT)
def forgot_password():
    """Responds 200 whether or not the email is registered."""
    result = ValidationResult()
    email = Validator.email(get_json_body().get("email"), "email", result, required=True)
    result.raise_if_invalid()
    db = SessionLocal()
    try:
        build_auth_service(db).forgot_password(email)
        return api_response(
            message="If the email is registered, a password reset link has been sent"
        )
    finally:
        db.close()


@auth_bp.route("/reset-password", methods=["POST"])
@limiter.limit(AUTH_LIMIT)
def reset_password():
    payload = ResetPasswordRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        build_auth_service(db).reset_password(payload)
        return api_response(message="Password has been reset")
    finally:
        db.close()


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    user = get_current_user()
    db = SessionLocal()
    try:
        fresh = build_auth_service(db).get_user(user.id)
        return api_response(UserResponse.from_domain(fresh).to_dict())
    finally:
        db.close()
