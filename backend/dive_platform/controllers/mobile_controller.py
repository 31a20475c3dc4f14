"""
Mobile controller: device registration, the in-app notification inbox,
notification preferences and offline sync.

Every route acts on the authenticated user's own data.
"""

import logging

from flask import Blueprint, request
from flask_login import login_required

from dive_platform.core.api_utils import (
    api_response,
    get_json_body,
    page_params,
    paginated_response,
    query_bool,
    query_int,
)
from dive_platform.core.auth_decorators import get_current_user
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import NotificationType, SyncStatus
from dive_platform.schemas.common import to_json_value
from dive_platform.schemas.mobile import (
    DeviceRegisterRequest,
    DeviceResponse,
    DeviceUpdateRequest,
    PreferenceResponse,
    PreferenceUpdateRequest,
    SyncConfirmRequest,
    SyncQueueItemResponse,
    SyncSubmitRequest,
)
from dive_platform.schemas.notifications import NotificationResponse
from dive_platform.services.container import (
    build_device_service,
    build_notification_service,
    build_preference_service,
    build_sync_service,
)
from dive_platform.services.sync_service import DEFAULT_DELTA_LIMIT

logger = logging.getLogger(__name__)

mobile_bp = Blueprint("mobile", __name__, url_prefix="/mobile")


def _device(device) -> dict:
    return DeviceResponse.from_domain(device).to_dict()


def _notification(row) -> dict:
    return NotificationResponse.from_domain(row).to_dict()


def _preference(preference) -> dict:
    return PreferenceResponse.from_domain(preference).to_dict()


# ------------------- Devices -------------------


@mobile_bp.route("/devices", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def register_device():
    """Register a device, or refresh it when the identifier is already known."""
    payload = DeviceRegisterRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        device = build_device_service(db).register(get_current_user().id, payload)
        return api_response(_device(device), "Device registered", status_code=201)
    finally:
        db.close()


@mobile_bp.route("/devices", methods=["GET"])
@login_required
def list_devices():
    db = SessionLocal()
    try:
        devices = build_device_service(db).list_devices(get_current_user().id)
        return api_response([_device(d) for d in devices])
    finally:
        db.close()


@mobile_bp.route("/devices/<device_id>", methods=["GET"])
@login_required
def get_device(device_id):
    db = SessionLocal()
    try:
        return api_response(_device(build_device_service(db).get_device(get_current_user().id, device_id)))
    finally:
        db.close()


@mobile_bp.route("/devices/<device_id>", methods=["PATCH"])
@login_required
def update_device(device_id):
    payload = DeviceUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        device = build_device_service(db).update_device(
            get_current_user().id, device_id, payload.changes
        )
        return api_response(_device(device), "Device updated")
    finally:
        db.close()


@mobile_bp.route("/devices/<device_id>", methods=["DELETE"])
@login_required
def deactivate_device(device_id):
    db = SessionLocal()
    try:
        build_device_service(db).deactivate(get_current_user().id, device_id)
        return api_response(message="Device deactivated")
    finally:
        db.close()


# ------------------- Notification inbox -------------------


@mobile_bp.route("/notifications", methods=["GET"])
@login_required
def list_my_notifications():
    result = ValidationResult()
    notification_type = Validator.string(
        request.args.get("type"), "type", result, choices=NotificationType.values()
    )
    result.raise_if_invalid("Invalid query parameters")
    page, limit = page_params()
    db = SessionLocal()
    try:
        rows = build_notification_service(db).list_for_user(
            get_current_user().id, notification_type, query_bool("read"), page, limit
        )
        return paginated_response(rows, _notification)
    finally:
        db.close()


@mobile_bp.route("/notifications/unread-count", methods=["GET"])
@login_required
def unread_count():
    db = SessionLocal()
    try:
        count = build_notification_service(db).unread_count(get_current_user().id)
        return api_response({"unread_count": count})
    finally:
        db.close()


@mobile_bp.route("/notifications/<notification_id>/read", methods=["PATCH"])
@login_required
def mark_read(notification_id):
    db = SessionLocal()
    try:
        row = build_notification_service(db).mark_read(get_current_user().id, notification_id)
        return api_response(_notification(row), "Notification marked as read")
    finally:
        db.close()


@mobile_bp.route("/notifications/mark-all-read", methods=["POST"])
@login_required
def mark_all_read():
    db = SessionLocal()
    try:
        updated = build_notification_service(db).mark_all_read(get_current_user().id)
        return api_response({"updated": updated}, "All notifications marked as read")
    finally:
        db.close()


@mobile_bp.route("/notifications/<notification_id>", methods=["DELETE"])
@login_required
def delete_notification(notification_id):
    db = SessionLocal()
    try:
        build_notification_service(db).delete(get_current_user().id, notification_id)
        return api_response(message="Notification deleted")
    finally:
        db.close()


# ------------------- Preferences -------------------


@mobile_bp.route("/preferences", methods=["GET"])
@login_required
def get_preferences():
    db = SessionLocal()
    try:
        return api_response(_preference(build_preference_service(db).get_or_create(get_current_user().id)))
    finally:
        db.close()


@mobile_bp.route("/preferences", methods=["PATCH"])
@login_required
def update_preferences():
    payload = PreferenceUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        preference = build_preference_service(db).update(get_current_user().id, payload.changes)
        return api_response(_preference(preference), "Preferences updated")
    finally:
        db.close()


@mobile_bp.route("/preferences/reset", methods=["POST"])
@login_required
def reset_preferences():
    db = SessionLocal()
    try:
        preference = build_preference_service(db).reset(get_current_user().id)
        return api_response(_preference(preference), "Preferences reset to defaults")
    finally:
        db.close()


# ------------------- Offline sync -------------------


@mobile_bp.route("/sync/queue", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def submit_sync():
    """Apply a batch of offline changes; each item reports its own outcome."""
    payload = SyncSubmitRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        outcome = build_sync_service(db).submit(get_current_user().id, payload)
        return api_response(to_json_value(outcome), "Sync batch processed")
    finally:
        db.close()


@mobile_bp.route("/sync/status", methods=["GET"])
@login_required
def sync_status():
    result = ValidationResult()
    status = Validator.string(request.args.get("status"), "status", result, choices=SyncStatus.values())
    result.raise_if_invalid("Invalid query parameters")
    page, limit = page_params()
    db = SessionLocal()
    try:
        summary = build_sync_service(db).status(
            get_current_user().id, request.args.get("device_id"), status, page, limit
        )
        items = summary["items"]
        return api_response(
            {
                "pending": summary["pending"],
                "failed": summary["failed"],
                "conflict": summary["conflict"],
                "items": [SyncQueueItemResponse.from_domain(i).to_dict() for i in items["data"]],
            },
            pagination=items["pagination"],
        )
    finally:
        db.close()


@mobile_bp.route("/sync/confirm", methods=["POST"])
@login_required
def confirm_sync():
    payload = SyncConfirmRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        confirmed = build_sync_service(db).confirm(get_current_user().id, payload.client_ids)
        return api_response({"confirmed": confirmed}, "Sync items confirmed")
    finally:
        db.close()


@mobile_bp.route("/sync/delta/<entity_type>", methods=["GET"])
@login_required
def sync_delta(entity_type):
    """Rows changed after the ``?since=&after_id=`` cursor plus ids deleted since then."""
    result = ValidationResult()
    since = Validator.datetime_value(request.args.get("since"), "since", result)
    result.raise_if_invalid("Invalid query parameters")
    db = SessionLocal()
    try:
        delta = build_sync_service(db).delta(
            get_current_user().id,
            entity_type,
            since,
            limit=query_int("limit", DEFAULT_DELTA_LIMIT),
            device_id=request.args.get("device_id"),
            after_id=request.args.get("after_id") or None,
        )
        return api_response(to_json_value(delta))
    finally:
        db.close()


@mobile_bp.route("/sync/init/<entity_type>", methods=["GET"])
@login_required
def sync_initial(entity_type):
    db = SessionLocal()
    try:
        snapshot = build_sync_service(db).initial(
            get_current_user().id, entity_type, request.args.get("device_id")
        )
        return api_response(to_json_value(snapshot))
    finally:
        db.close()
