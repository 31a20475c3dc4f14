"""
Admin notification endpoints: direct, bulk and topic sends, the delivery
log and retries of failed deliveries.
"""

from dataclasses import asdict

from flask import Blueprint, request
from flask_login import login_required

from dive_platform.core.api_utils import api_response, get_json_body, page_params, paginated_response
from dive_platform.core.auth_decorators import roles_required
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.db.session import SessionLocal
from dive_platform.domain.entities import NotificationRequest
from dive_platform.domain.enums import UserRole
from dive_platform.repositories.notification_repository import NotificationFilters
from dive_platform.schemas.notifications import (
    BulkNotificationRequest,
    NotificationQuery,
    NotificationResponse,
    SendNotificationRequest,
    TopicNotificationRequest,
)
from dive_platform.services.container import build_notification_service

notification_bp = Blueprint("notifications", __name__, url_prefix="/notifications")


def _notification(row) -> dict:
    return NotificationResponse.from_domain(row).to_dict()


@notification_bp.route("/send", methods=["POST"])
@login_required
@roles_required(UserRole.ADMIN.value)
@limiter.limit(WRITE_LIMIT)
def send_notification():
    payload = SendNotificationRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        rows = build_notification_service(db).send(NotificationRequest(**asdict(payload)))
        return api_response(
            [_notification(row) for row in rows], "Notification sent", status_code=201
        )
    finally:
        db.close()


@notification_bp.route("/bulk", methods=["POST"])
@login_required
@roles_required(UserRole.ADMIN.value)
@limiter.limit(WRITE_LIMIT)
def send_bulk():
    payload = BulkNotificationRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        outcome = build_notification_service(db).send_bulk(
            payload.user_ids,
            payload.type,
            payload.title,
            payload.body,
            data=payload.data,
            channels=payload.channels,
            priority=payload.priority,
        )
        return api_response(outcome, "Bulk notification processed")
    finally:
        db.close()


@notification_bp.route("/topic", methods=["POST"])
@login_required
@roles_required(UserRole.ADMIN.value)
@limiter.limit(WRITE_LIMIT)
def send_to_topic():
    """Broadcast to every active user subscribed to a topic."""
    payload = TopicNotificationRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        outcome = build_notification_service(db).send_to_topic(
            payload.topic,
            payload.type,
            payload.title,
            payload.body,
            data=payload.data,
            channels=payload.channels,
            priority=payload.priority,
        )
        return api_response(outcome, "Topic notification processed")
    finally:
        db.close()


@notification_bp.route("", methods=["GET"])
@login_required
@roles_required(UserRole.ADMIN.value)
def list_notifications():
    query = NotificationQuery.from_args(request.args)
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_notification_service(db).list_notifications(
            NotificationFilters(**asdict(query)), page, limit
        )
        return paginated_response(result, _notification)
    finally:
        db.close()


@notification_bp.route("/<notification_id>/retry", methods=["POST"])
@login_required
@roles_required(UserRole.ADMIN.value)
def retry_notification(notification_id):
    db = SessionLocal()
    try:
        row = build_notification_service(db).retry(notification_id)
        return api_response(_notification(row), "Notification retried")
    finally:
        db.close()
