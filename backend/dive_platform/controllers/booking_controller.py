"""
Booking controller: a diver's own bookings and per-booking actions
(update, confirm, cancel, check-in, waiver).
"""

from flask import Blueprint
from flask_login import login_required

from dive_platform.controllers.trip_controller import booking_status_arg
from dive_platform.core.api_utils import (
    api_response,
    client_ip,
    get_json_body,
    page_params,
    paginated_response,
)
from dive_platform.core.auth_decorators import get_current_user
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.db.session import SessionLocal
from dive_platform.schemas.bookings import (
    BookingResponse,
    BookingUpdateRequest,
    CancelBookingRequest,
    WaiverRequest,
)
from dive_platform.schemas.common import to_json_value
from dive_platform.services.container import build_booking_service

booking_bp = Blueprint("bookings", __name__, url_prefix="/trips/bookings")


def _booking(booking) -> dict:
    return BookingResponse.from_domain(booking).to_dict()


@booking_bp.route("/my", methods=["GET"])
@login_required
def my_bookings():
    """The current user's bookings, latest departure first."""
    status = booking_status_arg()
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_booking_service(db).my_bookings(get_current_user().id, status, page, limit)
        return paginated_response(result, _booking)
    finally:
        db.close()


@booking_bp.route("/<booking_id>", methods=["GET"])
@login_required
def get_booking(booking_id):
    db = SessionLocal()
    try:
        return api_response(_booking(build_booking_service(db).get_booking(booking_id, get_current_user())))
    finally:
        db.close()


@booking_bp.route("/<booking_id>", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_booking(booking_id):
    payload = BookingUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        booking = build_booking_service(db).update_booking(
            booking_id, get_current_user(), payload.changes
        )
        return api_response(_booking(booking), "Booking updated")
    finally:
        db.close()


@booking_bp.route("/<booking_id>/confirm", methods=["POST"])
@login_required
def confirm_booking(booking_id):
    db = SessionLocal()
    try:
        booking = build_booking_service(db).confirm_booking(booking_id, get_current_user())
        return api_response(_booking(booking), "Booking confirmed")
    finally:
        db.close()


@booking_bp.route("/<booking_id>/cancel", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def cancel_booking(booking_id):
    payload = CancelBookingRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        result = build_booking_service(db).cancel_booking(
            booking_id, get_current_user(), payload.reason
        )
        return api_response(
            {
                "booking": _booking(result["booking"]),
                "refund_amount": to_json_value(result["refund_amount"]),
            },
            "Booking cancelled",
        )
    finally:
        db.close()


@booking_bp.route("/<booking_id>/check-in", methods=["POST"])
@login_required
def check_in(booking_id):
    db = SessionLocal()
    try:
        booking = build_booking_service(db).check_in(booking_id, get_current_user())
        return api_response(_booking(booking), "Diver checked in")
    finally:
        db.close()


@booking_bp.route("/<booking_id>/waiver", methods=["POST"])
@login_required
def sign_waiver(booking_id):
    WaiverRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        booking = build_booking_service(db).sign_waiver(
            booking_id, get_current_user(), client_ip()
        )
        return api_response(_booking(booking), "Waiver signed")
    finally:
        db.close()
