"""
Payment controller: HyperPay checkout, status polling, webhook and refunds.
"""

import logging
from dataclasses import asdict

from flask import Blueprint, request
from flask_login import login_required

from dive_platform.core.api_utils import (
    api_response,
    client_ip,
    get_json_body,
    page_params,
    paginated_response,
)
from dive_platform.core.auth_decorators import get_current_user, roles_required
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import UserRole
from dive_platform.repositories.payment_repository import PaymentFilters
from dive_platform.schemas.common import to_json_value
from dive_platform.schemas.payments import (
    CheckoutRequest,
    PaymentQuery,
    PaymentResponse,
    RefundRequest,
)
from dive_platform.services.container import build_payment_service

logger = logging.getLogger(__name__)

payment_bp = Blueprint("payments", __name__, url_prefix="/payments")

SIGNATURE_HEADERS = ("X-Webhook-Signature", "X-Signature")


def _payment(payment) -> dict:
    return PaymentResponse.from_domain(payment).to_dict()


@payment_bp.route("/checkout", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def initiate_checkout():
    payload = CheckoutRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        checkout = build_payment_service(db).initiate_checkout(
            get_current_user(), payload, client_ip(), request.headers.get("User-Agent")
        )
        return api_response(to_json_value(checkout), "Checkout prepared", status_code=201)
    finally:
        db.close()


@payment_bp.route("/status/<checkout_id>", methods=["GET"])
@login_required
def payment_status(checkout_id):
    """Poll the gateway for a checkout and apply the outcome."""
    db = SessionLocal()
    try:
        payment = build_payment_service(db).check_status(
            checkout_id, request.args.get("resourcePath")
        )
        return api_response(_payment(payment))
    finally:
        db.close()


@payment_bp.route("/webhook", methods=["POST"])
def payment_webhook():
    signature = next(
        (request.headers.get(name) for name in SIGNATURE_HEADERS if request.headers.get(name)),
        None,
    )
    raw_body = request.get_data()
    db = SessionLocal()
    try:
        payment = build_payment_service(db).handle_webhook(raw_body, signature, get_json_body())
        logger.info(
            "Payment webhook processed",
            extra={"context": {"payment_id": payment.id if payment else None}},
        )
        return api_response({"received": True})
    finally:
        db.close()


@payment_bp.route("/<payment_id>/refund", methods=["POST"])
@login_required
@roles_required(UserRole.CENTER_OWNER.value)
def refund_payment(payment_id):
    payload = RefundRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        payment = build_payment_service(db).refund(payment_id, get_current_user(), payload)
        return api_response(_payment(payment), "Refund processed")
    finally:
        db.close()


@payment_bp.route("/my", methods=["GET"])
@login_required
def my_payments():
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_payment_service(db).my_payments(get_current_user().id, page, limit)
        return paginated_response(result, _payment)
    finally:
        db.close()


@payment_bp.route("/booking/<booking_id>", methods=["GET"])
@login_required
def booking_payments(booking_id):
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_payment_service(db).payments_for_booking(
            booking_id, get_current_user(), page, limit
        )
        return paginated_response(result, _payment)
    finally:
        db.close()


@payment_bp.route("", methods=["GET"])
@login_required
@roles_required(UserRole.ADMIN.value)
def list_payments():
    query = PaymentQuery.from_args(request.args)
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_payment_service(db).list_payments(
            PaymentFilters(**asdict(query)), page, limit
        )
        return paginated_response(result, _payment)
    finally:
        db.close()


@payment_bp.route("/<payment_id>", methods=["GET"])
@login_required
def get_payment(payment_id):
    db = SessionLocal()
    try:
        return api_response(_payment(build_payment_service(db).get_payment(payment_id, get_current_user())))
    finally:
        db.close()
