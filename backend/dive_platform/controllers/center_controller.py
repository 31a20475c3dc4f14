"""
Center controller: diving centers, their vessels and staff.

HTTP concerns only; access rules live in CenterService.
"""

from flask import Blueprint, request
from flask_login import login_required

from dive_platform.core.api_utils import api_response, get_json_body, page_params, paginated_response
from dive_platform.core.auth_decorators import adult_required, get_current_user, roles_required
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import UserRole
from dive_platform.schemas.centers import (
    CenterCreateRequest,
    CenterResponse,
    CenterStatusRequest,
    CenterUpdateRequest,
    StaffAddRequest,
    StaffResponse,
    StaffUpdateRequest,
    VesselCreateRequest,
    VesselResponse,
    VesselUpdateRequest,
)
from dive_platform.services.container import build_center_service

center_bp = Blueprint("centers", __name__, url_prefix="/centers")


def _center(center) -> dict:
    return CenterResponse.from_domain(center).to_dict()


def _vessel(vessel) -> dict:
    return VesselResponse.from_domain(vessel).to_dict()


def _staff(staff) -> dict:
    return StaffResponse.from_domain(staff).to_dict()


# ------------------- Centers -------------------


@center_bp.route("", methods=["GET"])
def list_centers():
    """Active centers, best rated first."""
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_center_service(db).list_centers(request.args.get("city"), page, limit)
        return paginated_response(result, _center)
    finally:
        db.close()


@center_bp.route("/<center_id>", methods=["GET"])
def get_center(center_id):
    db = SessionLocal()
    try:
        return api_response(_center(build_center_service(db).get_center(center_id)))
    finally:
        db.close()


@center_bp.route("", methods=["POST"])
@login_required
@adult_required
@limiter.limit(WRITE_LIMIT)
def create_center():
    payload = CenterCreateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        center = build_center_service(db).create_center(get_current_user(), payload.values)
        return api_response(_center(center), "Diving center created", status_code=201)
    finally:
        db.close()


@center_bp.route("/<center_id>", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_center(center_id):
    payload = CenterUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        center = build_center_service(db).update_center(
            center_id, get_current_user(), payload.changes
        )
        return api_response(_center(center), "Diving center updated")
    finally:
        db.close()


@center_bp.route("/<center_id>", methods=["DELETE"])
@login_required
def deactivate_center(center_id):
    db = SessionLocal()
    try:
        center = build_center_service(db).deactivate_center(center_id, get_current_user())
        return api_response(_center(center), "Diving center deactivated")
    finally:
        db.close()


@center_bp.route("/<center_id>/status", methods=["PATCH"])
@login_required
@roles_required(UserRole.ADMIN.value)
def set_center_status(center_id):
    payload = CenterStatusRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        center = build_center_service(db).set_status(center_id, payload.status, payload.reason)
        return api_response(_center(center), "Center status updated")
    finally:
        db.close()


# ------------------- Vessels -------------------


@center_bp.route("/<center_id>/vessels", methods=["GET"])
def list_vessels(center_id):
    db = SessionLocal()
    try:
        vessels = build_center_service(db).list_vessels(center_id)
        return api_response([_vessel(v) for v in vessels])
    finally:
        db.close()


@center_bp.route("/<center_id>/vessels/<vessel_id>", methods=["GET"])
def get_vessel(center_id, vessel_id):
    db = SessionLocal()
    try:
        return api_response(_vessel(build_center_service(db).get_vessel(center_id, vessel_id)))
    finally:
        db.close()


@center_bp.route("/<center_id>/vessels", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def create_vessel(center_id):
    payload = VesselCreateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        vessel = build_center_service(db).create_vessel(
            center_id, get_current_user(), payload.values
        )
        return api_response(_vessel(vessel), "Vessel created", status_code=201)
    finally:
        db.close()


@center_bp.route("/<center_id>/vessels/<vessel_id>", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_vessel(center_id, vessel_id):
    payload = VesselUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        vessel = build_center_service(db).update_vessel(
            center_id, vessel_id, get_current_user(), payload.changes
        )
        return api_response(_vessel(vessel), "Vessel updated")
    finally:
        db.close()


@center_bp.route("/<center_id>/vessels/<vessel_id>", methods=["DELETE"])
@login_required
def delete_vessel(center_id, vessel_id):
    db = SessionLocal()
    try:
        build_center_service(db).delete_vessel(center_id, vessel_id, get_current_user())
        return api_response(message="Vessel deactivated")
    finally:
        db.close()


# ------------------- Staff -------------------


@center_bp.route("/<center_id>/staff", methods=["GET"])
@login_required
def list_staff(center_id):
    db = SessionLocal()
    try:
        staff = build_center_service(db).list_staff(center_id, get_current_user())
        return api_response([_staff(s) for s in staff])
    finally:
        db.close()


@center_bp.route("/<center_id>/staff", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def add_staff(center_id):
    payload = StaffAddRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        staff = build_center_service(db).add_staff(
            center_id, get_current_user(), payload.user_email, payload.values
        )
        return api_response(_staff(staff), "Staff member added", status_code=201)
    finally:
        db.close()


@center_bp.route("/<center_id>/staff/<staff_id>", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_staff(center_id, staff_id):
    payload = StaffUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        staff = build_center_service(db).update_staff(
            center_id, staff_id, get_current_user(), payload.changes
        )
        return api_response(_staff(staff), "Staff member updated")
    finally:
        db.close()


@center_bp.route("/<center_id>/staff/<staff_id>", methods=["DELETE"])
@login_required
def remove_staff(center_id, staff_id):
    db = SessionLocal()
    try:
        build_center_service(db).remove_staff(center_id, staff_id, get_current_user())
        return api_response(message="Staff member removed")
    finally:
        db.close()
