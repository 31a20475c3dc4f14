"""DTOs for devices, notification preferences and offline sync."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dive_platform.core.validation import HHMM_RE, ValidationResult, Validator
from dive_platform.domain.enums import (
    DeviceType,
    FavoriteTarget,
    PushTokenType,
    SyncAction,
    SyncEntityType,
)
from dive_platform.schemas.common import (
    FieldParser,
    ResponseDTO,
    collect_fields,
    text_field,
    to_float,
    to_json_value,
)
from dive_platform.schemas.divers import CERTIFICATION_FIELDS

MAX_SYNC_BATCH = 100

DEVICE_DETAIL_FIELDS: Dict[str, FieldParser] = {
    "device_name": text_field("device_name", 100),
    "os_version": text_field("os_version", 50),
    "app_version": text_field("app_version", 50),
    "model": text_field("model", 100),
    "push_token": text_field("push_token", 500),
    "push_token_type": lambda v, r: Validator.string(
        v, "push_token_type", r, choices=PushTokenType.values()
    ),
    "push_enabled": lambda v, r: Validator.boolean(v, "push_enabled", r),
}


def _check_push_token(values: Dict[str, Any], current_type: Optional[str] = None) -> None:
    if values.get("push_token") and not (values.get("push_token_type") or current_type):
        result = ValidationResult()
        result.add_error("push_token_type", "push_token_type is required with push_token")
        result.raise_if_invalid()


@dataclass
class DeviceRegisterRequest:
    device_identifier: str
    device_type: str
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceRegisterRequest":
        result = ValidationResult()
        identifier = Validator.string(
            data.get("device_identifier"), "device_identifier", result, max_length=255, required=True
        )
        device_type = Validator.string(
            data.get("device_type"), "device_type", result, required=True, choices=DeviceType.values()
        )
        result.raise_if_invalid()
        # Null fields keep whatever the device registered with before
        details = collect_fields(data, DEVICE_DETAIL_FIELDS, partial=True)
        _check_push_token(details)
        return cls(device_identifier=identifier, device_type=device_type, details=details)


@dataclass
class DeviceUpdateRequest:
    changes: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceUpdateRequest":
        return cls(changes=collect_fields(data, DEVICE_DETAIL_FIELDS, partial=True))


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


@dataclass
class PreferenceUpdateRequest:
    changes: Dict[str, Any]

    TOGGLES = ("push_enabled", "email_enabled", "sms_enabled", "in_app_enabled")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreferenceUpdateRequest":
        result = ValidationResult()
        changes: Dict[str, Any] = {}
        for toggle in cls.TOGGLES:
            if data.get(toggle) is not None:
                changes[toggle] = Validator.boolean(data.get(toggle), toggle, result)

        if "notification_types" in data:
            types = Validator.mapping(data.get("notification_types"), "notification_types", result)
            if types is not None:
                if not all(isinstance(v, bool) for v in types.values()):
                    result.add_error("notification_types", "notification_types values must be booleans")
                else:
                    changes["notification_types"] = types

        if "quiet_hours_start" in data or "quiet_hours_end" in data:
            start = data.get("quiet_hours_start")
            end = data.get("quiet_hours_end")
            if (start is None) != (end is None):
                result.add_error(
                    "quiet_hours_start", "quiet_hours_start and quiet_hours_end must be set together"
                )
            else:
                for name, value in (("quiet_hours_start", start), ("quiet_hours_end", end)):
                    if value is not None and not (isinstance(value, str) and HHMM_RE.match(value)):
                        result.add_error(name, f"{name} must be in HH:MM format")
                changes["quiet_hours_start"] = start
                changes["quiet_hours_end"] = end

        if data.get("timezone") is not None:
            tz_name = data.get("timezone")
            if not isinstance(tz_name, str) or not is_valid_timezone(tz_name):
                result.add_error("timezone", "timezone must be a valid IANA timezone")
            else:
                changes["timezone"] = tz_name

        result.raise_if_invalid()
        return cls(changes=changes)


@dataclass
class SyncItemRequest:
    client_id: str
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncSubmitRequest:
    items: List[SyncItemRequest]
    device_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncSubmitRequest":
        result = ValidationResult()
        device_id = Validator.string(data.get("device_id"), "device_id", result, max_length=36)
        raw_items = data.get("items")
        if not isinstance(raw_items, list) or not (1 <= len(raw_items) <= MAX_SYNC_BATCH):
            result.add_error("items", f"items must be a list of 1 to {MAX_SYNC_BATCH} changes")
            result.raise_if_invalid()

        items = []
        for index, raw in enumerate(raw_items):
            prefix = f"items[{index}]"
            if not isinstance(raw, dict):
                result.add_error(prefix, "Each item must be an object")
                continue
            client_id = Validator.string(
                raw.get("client_id"),
                f"{prefix}.client_id",
                result,
                min_length=1,
                max_length=100,
                required=True,
            )
            action = Validator.string(
                raw.get("action"), f"{prefix}.action", result, required=True, choices=SyncAction.values()
            )
            entity_type = Validator.string(
                raw.get("entity_type"),
                f"{prefix}.entity_type",
                result,
                required=True,
                choices=SyncEntityType.values(),
            )
            entity_id = Validator.string(
                raw.get("entity_id"), f"{prefix}.entity_id", result, max_length=36
            )
            if action in (SyncAction.UPDATE.value, SyncAction.DELETE.value) and not entity_id:
                result.add_error(f"{prefix}.entity_id", f"entity_id is required for {action}")
            payload = Validator.mapping(raw.get("payload"), f"{prefix}.payload", result)
            items.append(
                SyncItemRequest(
                    client_id=client_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    payload=payload or {},
                )
            )
        result.raise_if_invalid()
        return cls(items=items, device_id=device_id)


@dataclass
class SyncConfirmRequest:
    client_ids: List[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncConfirmRequest":
        result = ValidationResult()
        client_ids = Validator.string_list(
            data.get("client_ids"), "client_ids", result, max_items=MAX_SYNC_BATCH
        )
        if not client_ids and "client_ids" not in result.errors:
            result.add_error("client_ids", "client_ids must contain at least one id")
        result.raise_if_invalid()
        return cls(client_ids=client_ids)


@dataclass
class DeviceResponse(ResponseDTO):
    id: str
    device_identifier: str
    device_type: str
    device_name: Optional[str]
    os_version: Optional[str]
    app_version: Optional[str]
    model: Optional[str]
    push_token_type: Optional[str]
    has_push_token: bool
    push_enabled: bool
    is_active: bool
    last_used_at: Optional[datetime]
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, device) -> "DeviceResponse":
        return cls(
            id=device.id,
            device_identifier=device.device_identifier,
            device_type=device.device_type,
            device_name=device.device_name,
            os_version=device.os_version,
            app_version=device.app_version,
            model=device.model,
            push_token_type=device.push_token_type,
            has_push_token=bool(device.push_token),
            push_enabled=device.push_enabled,
            is_active=device.is_active,
            last_used_at=device.last_used_at,
            created_at=device.created_at,
        )


@dataclass
class PreferenceResponse(ResponseDTO):
    push_enabled: bool
    email_enabled: bool
    sms_enabled: bool
    in_app_enabled: bool
    notification_types: Dict[str, Any]
    quiet_hours_start: Optional[str]
    quiet_hours_end: Optional[str]
    timezone: str
    updated_at: Optional[datetime]

    @classmethod
    def from_domain(cls, preference) -> "PreferenceResponse":
        return cls(
            push_enabled=preference.push_enabled,
            email_enabled=preference.email_enabled,
            sms_enabled=preference.sms_enabled,
            in_app_enabled=preference.in_app_enabled,
            notification_types=dict(preference.notification_types or {}),
            quiet_hours_start=preference.quiet_hours_start,
            quiet_hours_end=preference.quiet_hours_end,
            timezone=preference.timezone,
            updated_at=preference.updated_at,
        )


@dataclass
class SyncQueueItemResponse(ResponseDTO):
    id: str
    client_id: str
    device_id: Optional[str]
    action: str
    entity_type: str
    entity_id: Optional[str]
    status: str
    server_entity_id: Optional[str]
    error_message: Optional[str]
    retry_count: int
    synced_at: Optional[datetime]
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, item) -> "SyncQueueItemResponse":
        return cls(
            id=item.id,
            client_id=item.client_id,
            device_id=item.device_id,
            action=item.action,
            entity_type=item.entity_type,
            entity_id=item.entity_id,
            status=item.status,
            server_entity_id=item.server_entity_id,
            error_message=item.error_message,
            retry_count=item.retry_count or 0,
            synced_at=item.synced_at,
            created_at=item.created_at,
        )


def _sync_decimal(name: str, low: str, high: str) -> FieldParser:
    return lambda v, r: to_float(
        Validator.decimal(v, name, r, min_value=Decimal(low), max_value=Decimal(high))
    )


# Client-writable columns per sync entity; ownership and verification stay server-side
SYNC_ENTITY_FIELDS: Dict[str, Dict[str, FieldParser]] = {
    SyncEntityType.DIVE_LOGS.value: {
        "dive_date": lambda v, r: Validator.date_value(v, "dive_date", r, required=True),
        "site_name": text_field("site_name", 200),
        "trip_id": text_field("trip_id", 36),
        "max_depth_m": _sync_decimal("max_depth_m", "0", "350"),
        "duration_min": lambda v, r: Validator.integer(
            v, "duration_min", r, min_value=0, max_value=1440
        ),
        "water_temp_c": _sync_decimal("water_temp_c", "-5", "50"),
        "visibility_m": _sync_decimal("visibility_m", "0", "100"),
        "buddy_name": text_field("buddy_name", 100),
        "notes": text_field("notes", 5000),
    },
    SyncEntityType.CERTIFICATIONS.value: CERTIFICATION_FIELDS,
    SyncEntityType.FAVORITES.value: {
        "target_type": lambda v, r: Validator.string(
            v, "target_type", r, required=True, choices=FavoriteTarget.values()
        ),
        "target_id": text_field("target_id", 36, required=True),
    },
}


def serialize_entity(row) -> Dict[str, Any]:
    """Column values of a synced row, JSON-safe."""
    return {
        column.name: to_json_value(getattr(row, column.key, None))
        for column in row.__table__.columns
    }
