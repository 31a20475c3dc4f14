from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from dive_platform.db.base import Notification
from dive_platform.domain.enums import NotificationChannel, NotificationStatus
from dive_platform.domain.interfaces import INotificationRepository
from dive_platform.utils.date_utils import utcnow


@dataclass
class NotificationFilters:
    user_id: Optional[str] = None
    type: Optional[str] = None
    channel: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    read: Optional[bool] = None


class NotificationRepository(INotificationRepository):
    """Repository for notification rows (one row per user and channel)."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, notification_id: str) -> Optional[Notification]:
        return self.db.get(Notification, notification_id)

    def create(self, notification: Notification) -> Notification:
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def save(self, notification: Notification) -> Notification:
        self.db.add(notification)
        self.db.commit()
        return notification

    def rollback(self) -> None:
        self.db.rollback()

    def search(
        self, filters: NotificationFilters, offset: int, limit: int
    ) -> Tuple[List[Notification], int]:
        conditions = []
        if filters.user_id:
            conditions.append(Notification.user_id == filters.user_id)
        if filters.type:
            conditions.append(Notification.type == filters.type)
        if filters.channel:
            conditions.append(Notification.channel == filters.channel)
        if filters.status:
            conditions.append(Notification.status == filters.status)
        if filters.priority:
            conditions.append(Notification.priority == filters.priority)
        if filters.date_from:
            conditions.append(Notification.created_at >= filters.date_from)
        if filters.date_to:
            conditions.append(Notification.created_at <= filters.date_to)
        if filters.read is True:
            conditions.append(Notification.read_at.is_not(None))
        elif filters.read is False:
            conditions.append(Notification.read_at.is_(None))

        total = self.db.execute(
            select(func.count()).select_from(Notification).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

    def count_unread(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id,
            Notification.channel == NotificationChannel.IN_APP.value,
            Notification.read_at.is_(None),
        )
        return self.db.execute(stmt).scalar_one()

    def mark_read(self, user_id: str, notification_ids: Optional[Iterable[str]] = None) -> int:
        """Mark the user's unread notifications read; all of them when ids is None."""
        now = utcnow()
        stmt = update(Notification).where(
            Notification.user_id == user_id, Notification.read_at.is_(None)
        )
        if notification_ids is not None:
            stmt = stmt.where(Notification.id.in_(list(notification_ids)))
        result = self.db.execute(
            stmt.values(read_at=now, status=NotificationStatus.READ.value, updated_at=now)
        )
        self.db.commit()
        return result.rowcount

    def delete(self, notification: Notification) -> None:
        self.db.execute(delete(Notification).where(Notification.id == notification.id))
        self.db.commit()
