"""
Notification fan-out: one stored row per user and channel.

``send`` raises for caller errors (unknown user) but never for delivery
problems: a provider failure marks the row failed with its error message.
Other services call ``notify``, which additionally logs and absorbs application
and database errors so a notification can never undo the business operation
that triggered it. Programming errors still propagate.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests
from sqlalchemy.exc import SQLAlchemyError

from dive_platform.core.exceptions import AppError, ForbiddenError, NotFoundError, ValidationError
from dive_platform.db.base import Notification
from dive_platform.domain.entities import DeliveryResult, NotificationRequest
from dive_platform.domain.enums import (
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationTopic,
    NotificationType,
    UserRole,
)
from dive_platform.domain.interfaces import INotificationProvider, INotificationRepository, IUserRepository
from dive_platform.repositories.mobile_repository import DeviceRepository
from dive_platform.repositories.notification_repository import NotificationFilters
from dive_platform.services.notification_templates import render_notification
from dive_platform.services.preference_service import PreferenceService
from dive_platform.utils.date_utils import utcnow
from dive_platform.utils.pagination import offset_for, paginate

logger = logging.getLogger(__name__)

MAX_RETRIES = 3

EMAIL = NotificationChannel.EMAIL.value
SMS = NotificationChannel.SMS.value
PUSH = NotificationChannel.PUSH.value
IN_APP = NotificationChannel.IN_APP.value

DEFAULT_CHANNELS: Dict[str, List[str]] = {
    NotificationType.EMAIL_VERIFICATION.value: [EMAIL],
    NotificationType.PASSWORD_RESET.value: [EMAIL, SMS],
    NotificationType.BOOKING_CONFIRMATION.value: [EMAIL, PUSH, IN_APP],
    NotificationType.BOOKING_REMINDER.value: [PUSH, SMS],
    NotificationType.BOOKING_CANCELLED.value: [EMAIL, PUSH, IN_APP],
    NotificationType.PAYMENT_SUCCESSFUL.value: [EMAIL, PUSH],
    NotificationType.PAYMENT_FAILED.value: [EMAIL, PUSH],
    NotificationType.TRIP_CANCELLED.value: [EMAIL, PUSH, SMS],
    NotificationType.SYSTEM_ANNOUNCEMENT.value: [EMAIL, PUSH, IN_APP],
}

TOPIC_ROLES: Dict[str, Optional[List[str]]] = {
    NotificationTopic.ALL_USERS.value: None,
    NotificationTopic.DIVERS.value: [UserRole.DIVER.value],
    NotificationTopic.INSTRUCTORS.value: [UserRole.INSTRUCTOR.value],
    NotificationTopic.CENTER_OWNERS.value: [UserRole.CENTER_OWNER.value],
    NotificationTopic.ADMINS.value: [UserRole.ADMIN.value],
}


def default_channels(notification_type: str) -> List[str]:
    return list(DEFAULT_CHANNELS.get(notification_type, [IN_APP]))


class NotificationService:
    def __init__(
        self,
        notification_repo: INotificationRepository,
        user_repo: IUserRepository,
        device_repo: DeviceRepository,
        preference_service: PreferenceService,
        providers: Dict[str, INotificationProvider],
    ):
        self.notification_repo = notification_repo
        self.user_repo = user_repo
        self.device_repo = device_repo
        self.preference_service = preference_service
        self.providers = providers

    # ------------------- Sending -------------------

    def send(self, request: NotificationRequest) -> List[Notification]:
        user = self.user_repo.get_by_id(request.user_id)
        if user is None:
            raise NotFoundError("User")

        requested = request.channels or default_channels(request.type)
        channels = [
            channel
            for channel in requested
            if self.preference_service.should_send(user.id, request.type, channel)
        ]
        if not channels:
            logger.info(
                "Notification suppressed by preferences",
                extra={"context": {"user_id": user.id, "type": request.type}},
            )
            return []

        context = dict(request.data or {})
        context.update(first_name=user.first_name, last_name=user.last_name, email=user.email)
        title, body = render_notification(request.type, request.title, request.body, context)

        rows = []
        for channel in channels:
            row = self.notification_repo.create(
                Notification(
                    user_id=user.id,
                    type=request.type,
                    channel=channel,
                    priority=request.priority or NotificationPriority.NORMAL.value,
                    title=title,
                    body=body,
                    data=dict(request.data or {}),
                    status=NotificationStatus.PENDING.value,
                    retry_count=0,
                )
            )
            rows.append(self._deliver(row, user))
        return rows

    def notify(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        channels: Optional[List[str]] = None,
        priority: str = NotificationPriority.NORMAL.value,
    ) -> List[Notification]:
        """Best-effort ``send`` for side-effect notifications."""
        try:
            return self.send(
                NotificationRequest(
                    user_id=user_id,
                    type=notification_type,
                    title=title,
                    body=body,
                    data=data or {},
                    channels=channels,
                    priority=priority,
                )
            )
        except (AppError, SQLAlchemyError):
            logger.error(
                "Failed to send notification",
                extra={"context": {"user_id": user_id, "type": notification_type}},
                exc_info=True,
            )
            try:
                self.notification_repo.rollback()
            except SQLAlchemyError:
                logger.error("Rollback after notification failure failed", exc_info=True)
            return []

    def _dispatch(self, row: Notification, user) -> DeliveryResult:
        if row.channel == IN_APP:
            return DeliveryResult(success=True)
        if row.channel == EMAIL:
            return self.providers[EMAIL].send(user.email, row.title, row.body, row.data)
        if row.channel == SMS:
            if not user.phone_number:
                return DeliveryResult(success=False, error="No phone number")
            return self.providers[SMS].send(user.phone_number, row.title, row.body, row.data)
        if row.channel == PUSH:
            tokens = self.device_repo.list_push_tokens(user.id)
            if not tokens:
                return DeliveryResult(success=False, error="No push tokens")
            result = self.providers[PUSH].send(tokens, row.title, row.body, row.data)
            if result.invalid_tokens:
                self.device_repo.clear_push_tokens(result.invalid_tokens)
            return result
        return DeliveryResult(success=False, error=f"Unsupported channel {row.channel}")

    def _deliver(self, row: Notification, user) -> Notification:
        try:
            result = self._dispatch(row, user)
        except (requests.RequestException, OSError, AppError) as e:
            logger.error(
                "Notification provider raised",
                extra={"context": {"notification_id": row.id, "channel": row.channel}},
                exc_info=True,
            )
            result = DeliveryResult(success=False, error=str(e)[:500])

        now = utcnow()
        if result.success:
            row.sent_at = now
            row.error_message = None
            if row.channel == IN_APP:
                row.status = NotificationStatus.DELIVERED.value
                row.delivered_at = now
            else:
                row.status = NotificationStatus.SENT.value
        else:
            row.status = NotificationStatus.FAILED.value
            row.error_message = (result.error or "Delivery failed")[:500]
            logger.warning(
                "Notification delivery failed",
                extra={
                    "context": {
                        "notification_id": row.id,
                        "channel": row.channel,
                        "error": row.error_message,
                    }
                },
            )
        return self.notification_repo.save(row)

    def send_bulk(
        self,
        user_ids: Iterable[str],
        notification_type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        channels: Optional[List[str]] = None,
        priority: str = NotificationPriority.NORMAL.value,
    ) -> Dict[str, int]:
        sent = failed = 0
        for user_id in user_ids:
            try:
                self.send(
                    NotificationRequest(
                        user_id=user_id,
                        type=notification_type,
                        title=title,
                        body=body,
                        data=data or {},
                        channels=channels,
                        priority=priority,
                    )
                )
                sent += 1
            except NotFoundError:
                failed += 1
                logger.info("Bulk notification skipped unknown user", extra={"context": {"user_id": user_id}})
        logger.info(
            "Bulk notification finished",
            extra={"context": {"type": notification_type, "sent": sent, "failed": failed}},
        )
        return {"sent": sent, "failed": failed}

    def send_to_topic(self, topic: str, notification_type: str, title: str, body: str, **kwargs) -> Dict[str, int]:
        if topic not in TOPIC_ROLES:
            raise ValidationError("Invalid topic", {"topic": f"Unknown topic {topic}"})
        user_ids = self.user_repo.list_active_ids(TOPIC_ROLES[topic])
        outcome = self.send_bulk(user_ids, notification_type, title, body, **kwargs)
        outcome["recipients"] = len(user_ids)
        return outcome

    def retry(self, notification_id: str) -> Notification:
        row = self.notification_repo.get_by_id(notification_id)
        if row is None:
            raise NotFoundError("Notification")
        if row.status != NotificationStatus.FAILED.value:
            raise ValidationError("Only failed notifications can be retried")
        if (row.retry_count or 0) >= MAX_RETRIES:
            raise ValidationError("Maximum retry attempts reached")
        user = self.user_repo.get_by_id(row.user_id)
        if user is None:
            raise NotFoundError("User")
        row.retry_count = (row.retry_count or 0) + 1
        logger.info(
            "Retrying notification",
            extra={"context": {"notification_id": row.id, "attempt": row.retry_count}},
        )
        return self._deliver(row, user)

    # ------------------- Listing & inbox -------------------

    def list_notifications(self, filters: NotificationFilters, page: int, limit: int):
        items, total = self.notification_repo.search(filters, offset_for(page, limit), limit)
        return paginate(items, total, page, limit)

    def list_for_user(
        self,
        user_id: str,
        notification_type: Optional[str],
        read: Optional[bool],
        page: int,
        limit: int,
    ):
        filters = NotificationFilters(user_id=user_id, type=notification_type, read=read)
        return self.list_notifications(filters, page, limit)

    def unread_count(self, user_id: str) -> int:
        return self.notification_repo.count_unread(user_id)

    def _get_owned(self, user_id: str, notification_id: str) -> Notification:
        row = self.notification_repo.get_by_id(notification_id)
        if row is None:
            raise NotFoundError("Notification")
        if row.user_id != user_id:
            raise ForbiddenError("Not authorized to access this notification")
        return row

    def mark_read(self, user_id: str, notification_id: str) -> Notification:
        row = self._get_owned(user_id, notification_id)
        if row.read_at is None:
            now = utcnow()
            row.read_at = now
            row.status = NotificationStatus.READ.value
            row = self.notification_repo.save(row)
        return row

    def mark_all_read(self, user_id: str) -> int:
        return self.notification_repo.mark_read(user_id)

    def delete(self, user_id: str, notification_id: str) -> None:
        row = self._get_owned(user_id, notification_id)
        self.notification_repo.delete(row)
