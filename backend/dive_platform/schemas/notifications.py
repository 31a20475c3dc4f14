"""DTOs for the admin notification endpoints and the user inbox."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.domain.enums import (
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationTopic,
    NotificationType,
)
from dive_platform.schemas.common import ResponseDTO

MAX_BULK_RECIPIENTS = 1000


def _parse_message(data: Dict[str, Any], result: ValidationResult) -> Dict[str, Any]:
    message = {
        "type": Validator.string(
            data.get("type"), "type", result, required=True, choices=NotificationType.values()
        ),
        "title": Validator.string(
            data.get("title"), "title", result, min_length=1, max_length=255, required=True
        ),
        "body": Validator.string(
            data.get("body"), "body", result, min_length=1, max_length=5000, required=True
        ),
        "data": Validator.mapping(data.get("data"), "data", result) or {},
        "priority": Validator.string(
            data.get("priority"), "priority", result, choices=NotificationPriority.values()
        )
        or NotificationPriority.NORMAL.value,
        "channels": None,
    }
    channels = Validator.string_list(data.get("channels"), "channels", result, max_items=4)
    if channels is not None:
        unknown = [c for c in channels if c not in NotificationChannel.values()]
        if unknown or not channels:
            result.add_error(
                "channels",
                f"channels must be a non-empty subset of: {', '.join(NotificationChannel.values())}",
            )
        else:
            message["channels"] = list(dict.fromkeys(channels))
    return message


@dataclass
class SendNotificationRequest:
    user_id: str
    type: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    channels: Optional[List[str]] = None
    priority: str = NotificationPriority.NORMAL.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SendNotificationRequest":
        result = ValidationResult()
        user_id = Validator.string(data.get("user_id"), "user_id", result, required=True)
        message = _parse_message(data, result)
        result.raise_if_invalid()
        return cls(user_id=user_id, **message)


@dataclass
class BulkNotificationRequest:
    user_ids: List[str]
    type: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    channels: Optional[List[str]] = None
    priority: str = NotificationPriority.NORMAL.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BulkNotificationRequest":
        result = ValidationResult()
        user_ids = Validator.string_list(
            data.get("user_ids"), "user_ids", result, max_items=MAX_BULK_RECIPIENTS
        )
        if not user_ids and "user_ids" not in result.errors:
            result.add_error("user_ids", "user_ids must contain at least one id")
        message = _parse_message(data, result)
        result.raise_if_invalid()
        return cls(user_ids=list(dict.fromkeys(user_ids)), **message)


@dataclass
class TopicNotificationRequest:
    topic: str
    type: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    channels: Optional[List[str]] = None
    priority: str = NotificationPriority.NORMAL.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopicNotificationRequest":
        result = ValidationResult()
        topic = Validator.string(
            data.get("topic"), "topic", result, required=True, choices=NotificationTopic.values()
        )
        message = _parse_message(data, result)
        result.raise_if_invalid()
        return cls(topic=topic, **message)


@dataclass
class NotificationQuery:
    user_id: Optional[str] = None
    type: Optional[str] = None
    channel: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    read: Optional[bool] = None

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "NotificationQuery":
        result = ValidationResult()
        query = cls(
            user_id=args.get("user_id") or None,
            type=Validator.string(args.get("type"), "type", result, choices=NotificationType.values()),
            channel=Validator.string(
                args.get("channel"), "channel", result, choices=NotificationChannel.values()
            ),
            status=Validator.string(
                args.get("status"), "status", result, choices=NotificationStatus.values()
            ),
            priority=Validator.string(
                args.get("priority"), "priority", result, choices=NotificationPriority.values()
            ),
            date_from=Validator.datetime_value(args.get("from"), "from", result),
            date_to=Validator.datetime_value(args.get("to"), "to", result),
        )
        read = args.get("read")
        if read:
            query.read = read.lower() in ("true", "1", "yes")
        result.raise_if_invalid("Invalid query parameters")
        return query


@dataclass
class NotificationResponse(ResponseDTO):
    id: str
    user_id: str
    type: str
    channel: str
    priority: str
    title: str
    body: str
    data: Dict[str, Any]
    status: str
    sent_at: Optional[datetime]
    delivered_at: Optional[datetime]
    read_at: Optional[datetime]
    error_message: Optional[str]
    retry_count: int
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            user_id=notification.user_id,
            type=notification.type,
            channel=notification.channel,
            priority=notification.priority,
            title=notification.title,
            body=notification.body,
            data=dict(notification.data or {}),
            status=notification.status,
            sent_at=notification.sent_at,
            delivered_at=notification.delivered_at,
            read_at=notification.read_at,
            error_message=notification.error_message,
            retry_count=notification.retry_count or 0,
            created_at=notification.created_at,
        )
