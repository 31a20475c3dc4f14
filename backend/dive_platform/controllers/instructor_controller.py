"""
Instructor directory and dive-site reference endpoints.
"""

from flask import Blueprint, request
from flask_login import login_required

from dive_platform.core.api_utils import api_response, get_json_body, page_params, paginated_response
from dive_platform.core.auth_decorators import get_current_user, roles_required
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import UserRole
from dive_platform.schemas.instructors import (
    InstructorResponse,
    InstructorUpdateRequest,
    ScheduleUpdateRequest,
    SiteCreateRequest,
    SiteResponse,
)
from dive_platform.services.container import build_instructor_service, build_site_service

instructor_bp = Blueprint("instructors", __name__, url_prefix="/instructors")
site_bp = Blueprint("sites", __name__, url_prefix="/sites")


def _instructor(profile) -> dict:
    return InstructorResponse.from_domain(profile).to_dict()


@instructor_bp.route("", methods=["GET"])
def list_instructors():
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_instructor_service(db).list_instructors(
            request.args.get("specialty"), request.args.get("language"), page, limit
        )
        return paginated_response(result, _instructor)
    finally:
        db.close()


@instructor_bp.route("/<user_id>", methods=["GET"])
def get_instructor(user_id):
    db = SessionLocal()
    try:
        return api_response(_instructor(build_instructor_service(db).get_instructor(user_id)))
    finally:
        db.close()


@instructor_bp.route("/<user_id>", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_instructor(user_id):
    payload = InstructorUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        profile = build_instructor_service(db).update_profile(
            user_id, get_current_user(), payload.changes
        )
        return api_response(_instructor(profile), "Instructor profile updated")
    finally:
        db.close()


@instructor_bp.route("/<user_id>/schedule", methods=["GET"])
def get_schedule(user_id):
    db = SessionLocal()
    try:
        calendar = build_instructor_service(db).get_schedule(user_id)
        return api_response({"availability_calendar": calendar})
    finally:
        db.close()


@instructor_bp.route("/<user_id>/schedule", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_schedule(user_id):
    payload = ScheduleUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        calendar = build_instructor_service(db).update_schedule(
            user_id, get_current_user(), payload.calendar
        )
        return api_response({"availability_calendar": calendar}, "Schedule updated")
    finally:
        db.close()


@instructor_bp.route("/<user_id>/verify", methods=["POST"])
@login_required
@roles_required(UserRole.ADMIN.value)
def verify_instructor(user_id):
    db = SessionLocal()
    try:
        profile = build_instructor_service(db).verify(user_id)
        return api_response(_instructor(profile), "Instructor verified")
    finally:
        db.close()


# ------------------- Dive sites -------------------


@site_bp.route("", methods=["GET"])
def list_sites():
    db = SessionLocal()
    try:
        sites = build_site_service(db).list_sites()
        return api_response([SiteResponse.from_domain(site).to_dict() for site in sites])
    finally:
        db.close()


@site_bp.route("/<site_id>", methods=["GET"])
def get_site(site_id):
    db = SessionLocal()
    try:
        site = build_site_service(db).get_site(site_id)
        return api_response(SiteResponse.from_domain(site).to_dict())
    finally:
        db.close()


@site_bp.route("", methods=["POST"])
@login_required
@roles_required(UserRole.ADMIN.value)
def create_site():
    payload = SiteCreateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        site = build_site_service(db).create_site(payload.values)
        return api_response(SiteResponse.from_domain(site).to_dict(), "Dive site created", status_code=201)
    finally:
        db.close()
