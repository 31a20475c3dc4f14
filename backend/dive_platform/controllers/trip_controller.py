"""
Trip controller: trip CRUD and lifecycle, trip instructors, and the
per-trip booking, price, eligibility and waiting-list endpoints.
"""

import logging
from dataclasses import asdict

from flask import Blueprint, request
from flask_login import login_required

from dive_platform.core.api_utils import api_response, get_json_body, page_params, paginated_response
from dive_platform.core.auth_decorators import adult_required, get_current_user, roles_required
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import BookingStatus, UserRole
from dive_platform.repositories.trip_repository import TripFilters
from dive_platform.schemas.bookings import (
    BookingCreateRequest,
    BookingResponse,
    PriceQuoteRequest,
    WaitingListResponse,
    WaitlistJoinRequest,
)
from dive_platform.schemas.trips import (
    TripCreateRequest,
    TripInstructorRequest,
    TripInstructorResponse,
    TripQuery,
    TripResponse,
    TripUpdateRequest,
)
from dive_platform.services.container import build_booking_service, build_trip_service

logger = logging.getLogger(__name__)

trip_bp = Blueprint("trips", __name__, url_prefix="/trips")


def _trip(trip) -> dict:
    return TripResponse.from_domain(trip).to_dict()


def booking_status_arg():
    """Optional ``?status=`` filter for booking lists."""
    result = ValidationResult()
    status = Validator.string(
        request.args.get("status"), "status", result, choices=BookingStatus.values()
    )
    result.raise_if_invalid("Invalid query parameters")
    return status


# ------------------- Trips -------------------


@trip_bp.route("", methods=["GET"])
def list_trips():
    query = TripQuery.from_args(request.args)
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_trip_service(db).list_trips(TripFilters(**asdict(query)), page, limit)
        return paginated_response(result, _trip)
    finally:
        db.close()


@trip_bp.route("/<trip_id>", methods=["GET"])
def get_trip(trip_id):
    db = SessionLocal()
    try:
        return api_response(_trip(build_trip_service(db).get_trip(trip_id)))
    finally:
        db.close()


@trip_bp.route("/center/<center_id>", methods=["POST"])
@login_required
@roles_required(UserRole.CENTER_OWNER.value)
@adult_required
@limiter.limit(WRITE_LIMIT)
def create_trip(center_id):
    payload = TripCreateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        trip = build_trip_service(db).create_trip(center_id, get_current_user(), payload.values)
        return api_response(_trip(trip), "Trip created", status_code=201)
    finally:
        db.close()


@trip_bp.route("/<trip_id>", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_trip(trip_id):
    payload = TripUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        trip = build_trip_service(db).update_trip(trip_id, get_current_user(), payload.changes)
        return api_response(_trip(trip), "Trip updated")
    finally:
        db.close()


@trip_bp.route("/<trip_id>/publish", methods=["POST"])
@login_required
@roles_required(UserRole.CENTER_OWNER.value)
def publish_trip(trip_id):
    db = SessionLocal()
    try:
        trip = build_trip_service(db).publish_trip(trip_id, get_current_user())
        return api_response(_trip(trip), "Trip published")
    finally:
        db.close()


@trip_bp.route("/<trip_id>/cancel", methods=["POST"])
@login_required
@roles_required(UserRole.CENTER_OWNER.value)
def cancel_trip(trip_id):
    db = SessionLocal()
    try:
        trip = build_trip_service(db).cancel_trip(trip_id, get_current_user())
        return api_response(_trip(trip), "Trip cancelled")
    finally:
        db.close()


@trip_bp.route("/<trip_id>", methods=["DELETE"])
@login_required
@roles_required(UserRole.CENTER_OWNER.value)
def delete_trip(trip_id):
    db = SessionLocal()
    try:
        build_trip_service(db).delete_trip(trip_id, get_current_user())
        return api_response(message="Trip deleted")
    finally:
        db.close()


# ------------------- Trip instructors -------------------


@trip_bp.route("/<trip_id>/instructors", methods=["GET"])
def list_trip_instructors(trip_id):
    db = SessionLocal()
    try:
        assignments = build_trip_service(db).list_instructors(trip_id)
        return api_response([TripInstructorResponse.from_domain(a).to_dict() for a in assignments])
    finally:
        db.close()


@trip_bp.route("/<trip_id>/instructors", methods=["POST"])
@login_required
@roles_required(UserRole.CENTER_OWNER.value)
def add_trip_instructor(trip_id):
    payload = TripInstructorRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        assignment = build_trip_service(db).add_instructor(
            trip_id, get_current_user(), payload.instructor_id, payload.role
        )
        return api_response(
            TripInstructorResponse.from_domain(assignment).to_dict(),
            "Instructor assigned",
            status_code=201,
        )
    finally:
        db.close()


@trip_bp.route("/<trip_id>/instructors/<instructor_id>", methods=["DELETE"])
@login_required
@roles_required(UserRole.CENTER_OWNER.value)
def remove_trip_instructor(trip_id, instructor_id):
    db = SessionLocal()
    try:
        build_trip_service(db).remove_instructor(trip_id, get_current_user(), instructor_id)
        return api_response(message="Instructor removed")
    finally:
        db.close()


# ------------------- Bookings on a trip -------------------


@trip_bp.route("/<trip_id>/bookings", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def create_booking(trip_id):
    """Book spots, or join the waiting list when the trip is full (202)."""
    payload = BookingCreateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        outcome = build_booking_service(db).create_booking(trip_id, get_current_user(), payload)
        if outcome.waitlisted:
            entry = outcome.waitlist_entry
            return api_response(
                {
                    "waiting_list": True,
                    "position": entry.position,
                    "entry": WaitingListResponse.from_domain(entry).to_dict(),
                },
                "Trip is full. You have been added to the waiting list",
                status_code=202,
            )
        return api_response(
            BookingResponse.from_domain(outcome.booking).to_dict(),
            "Booking created",
            status_code=201,
        )
    finally:
        db.close()


@trip_bp.route("/<trip_id>/bookings", methods=["GET"])
@login_required
def list_trip_bookings(trip_id):
    status = booking_status_arg()
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_booking_service(db).trip_bookings(
            trip_id, get_current_user(), status, page, limit
        )
        return paginated_response(result, lambda b: BookingResponse.from_domain(b).to_dict())
    finally:
        db.close()


@trip_bp.route("/<trip_id>/price", methods=["POST"])
def price_quote(trip_id):
    payload = PriceQuoteRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        breakdown = build_booking_service(db).price_quote(
            trip_id, payload.number_of_divers, payload.needs_equipment
        )
        return api_response(breakdown.to_dict())
    finally:
        db.close()


@trip_bp.route("/<trip_id>/eligibility", methods=["GET"])
@login_required
def check_eligibility(trip_id):
    db = SessionLocal()
    try:
        result = build_booking_service(db).check_eligibility(trip_id, get_current_user().id)
        return api_response(result.to_dict())
    finally:
        db.close()


# ------------------- Waiting list -------------------


@trip_bp.route("/<trip_id>/waitlist", methods=["POST"])
@login_required
def join_waitlist(trip_id):
    payload = WaitlistJoinRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        entry = build_booking_service(db).join_waitlist(
            trip_id, get_current_user(), payload.number_of_divers
        )
        return api_response(
            WaitingListResponse.from_domain(entry).to_dict(),
            "Added to the waiting list",
            status_code=201,
        )
    finally:
        db.close()


@trip_bp.route("/<trip_id>/waitlist", methods=["DELETE"])
@login_required
def leave_waitlist(trip_id):
    db = SessionLocal()
    try:
        build_booking_service(db).leave_waitlist(trip_id, get_current_user())
        return api_response(message="Removed from the waiting list")
    finally:
        db.close()


@trip_bp.route("/<trip_id>/waitlist", methods=["GET"])
@login_required
def get_waitlist(trip_id):
    db = SessionLocal()
    try:
        entries = build_booking_service(db).get_waitlist(trip_id, get_current_user())
        return api_response([WaitingListResponse.from_domain(e).to_dict() for e in entries])
    finally:
        db.close()
