from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Type

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session

from dive_platform.db.base import (
    Booking,
    Certification,
    DiveLog,
    Favorite,
    MobileDevice,
    NotificationPreference,
    SyncCheckpoint,
    SyncQueueItem,
    SyncTombstone,
)
from dive_platform.domain.enums import SyncEntityType, SyncStatus
from dive_platform.utils.date_utils import utcnow

# Every sync entity is owned through a ``user_id`` column
SYNC_ENTITY_MODELS: Dict[str, Type] = {
    SyncEntityType.DIVE_LOGS.value: DiveLog,
    SyncEntityType.CERTIFICATIONS.value: Certification,
    SyncEntityType.FAVORITES.value: Favorite,
    SyncEntityType.BOOKINGS.value: Booking,
}


class DeviceRepository:
    """Repository for registered mobile devices."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, device_id: str) -> Optional[MobileDevice]:
        return self.db.get(MobileDevice, device_id)

    def get_by_identifier(self, user_id: str, identifier: str) -> Optional[MobileDevice]:
        stmt = select(MobileDevice).where(
            MobileDevice.user_id == user_id,
            MobileDevice.device_identifier == identifier,
        )
        return self.db.execute(stmt).scalars().first()

    def list_active(self, user_id: str) -> List[MobileDevice]:
        stmt = (
            select(MobileDevice)
            .where(MobileDevice.user_id == user_id, MobileDevice.is_active.is_(True))
            .order_by(MobileDevice.last_used_at.desc(), MobileDevice.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_push_tokens(self, user_id: str) -> List[str]:
        stmt = select(MobileDevice.push_token).where(
            MobileDevice.user_id == user_id,
            MobileDevice.is_active.is_(True),
            MobileDevice.push_enabled.is_(True),
            MobileDevice.push_token.is_not(None),
        )
        return [token for token in self.db.execute(stmt).scalars().all() if token]

    def save(self, device: MobileDevice) -> MobileDevice:
        self.db.add(device)
        self.db.commit()
        self.db.refresh(device)
        return device

    def clear_push_tokens(self, tokens: Iterable[str]) -> int:
        """Drop tokens the push service reported as unregistered."""
        tokens = list(tokens)
        if not tokens:
            return 0
        result = self.db.execute(
            update(MobileDevice)
            .where(MobileDevice.push_token.in_(tokens))
            .values(push_token=None, updated_at=utcnow())
        )
        self.db.commit()
        return result.rowcount


class PreferenceRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_for_user(self, user_id: str) -> Optional[NotificationPreference]:
        stmt = select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        return self.db.execute(stmt).scalars().first()

    def save(self, preference: NotificationPreference) -> NotificationPreference:
        self.db.add(preference)
        self.db.commit()
        self.db.refresh(preference)
        return preference


class SyncRepository:
    """Sync queue, checkpoints and tombstones plus owner-scoped entity access.

    Entity writes only flush; ``SyncService`` commits the entity change and
    its queue row together.
    """

    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ------------------- Queue -------------------

    def get_queue_item(self, user_id: str, client_id: str) -> Optional[SyncQueueItem]:
        stmt = select(SyncQueueItem).where(
            SyncQueueItem.user_id == user_id, SyncQueueItem.client_id == client_id
        )
        return self.db.execute(stmt).scalars().first()

    def add_queue_item(self, item: SyncQueueItem) -> SyncQueueItem:
        self.db.add(item)
        self.db.flush()
        return item

    def save_queue_item(self, item: SyncQueueItem) -> SyncQueueItem:
        self.db.add(item)
        self.db.commit()
        return item

    def list_queue(
        self,
        user_id: str,
        device_id: Optional[str],
        status: Optional[str],
        offset: int,
        limit: int,
    ) -> Tuple[List[SyncQueueItem], int]:
        conditions = [SyncQueueItem.user_id == user_id]
        if device_id:
            conditions.append(SyncQueueItem.device_id == device_id)
        if status:
            conditions.append(SyncQueueItem.status == status)
        total = self.db.execute(
            select(func.count()).select_from(SyncQueueItem).where(*conditions)
        ).scalar_one()
        stmt = (
            select(SyncQueueItem)
            .where(*conditions)
            .order_by(SyncQueueItem.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

    def count_by_status(self, user_id: str, device_id: Optional[str]) -> Dict[str, int]:
        stmt = (
            select(SyncQueueItem.status, func.count())
            .where(SyncQueueItem.user_id == user_id)
            .group_by(SyncQueueItem.status)
        )
        if device_id:
            stmt = stmt.where(SyncQueueItem.device_id == device_id)
        counts = {status: 0 for status in SyncStatus.values()}
        for status, count in self.db.execute(stmt).all():
            counts[status] = count
        return counts

    def delete_synced(self, user_id: str, client_ids: Iterable[str]) -> int:
        result = self.db.execute(
            delete(SyncQueueItem).where(
                SyncQueueItem.user_id == user_id,
                SyncQueueItem.client_id.in_(list(client_ids)),
                SyncQueueItem.status == SyncStatus.SYNCED.value,
            )
        )
        self.db.commit()
        return result.rowcount

    # ------------------- Entities -------------------

    def get_entity(self, entity_type: str, user_id: str, entity_id: str):
        model = SYNC_ENTITY_MODELS[entity_type]
        stmt = select(model).where(model.id == entity_id, model.user_id == user_id)
        return self.db.execute(stmt).scalars().unique().first()

    def add_entity(self, row):
        self.db.add(row)
        self.db.flush()
        return row

    def delete_entity(self, entity_type: str, row) -> None:
        self.db.add(
            SyncTombstone(user_id=row.user_id, entity_type=entity_type, entity_id=row.id)
        )
        self.db.delete(row)
        self.db.flush()

    def list_changed(
        self,
        entity_type: str,
        user_id: str,
        since: Optional[datetime],
        limit: int,
        after_id: Optional[str] = None,
    ) -> List:
        """Rows after the ``(since, after_id)`` cursor in ``(updated_at, id)`` order."""
        model = SYNC_ENTITY_MODELS[entity_type]
        stmt = select(model).where(model.user_id == user_id)
        if since is not None and after_id:
            stmt = stmt.where(
                or_(
                    model.updated_at > since,
                    and_(model.updated_at == since, model.id > after_id),
                )
            )
        elif since is not None:
            stmt = stmt.where(model.updated_at > since)
        stmt = stmt.order_by(model.updated_at.asc(), model.id.asc()).limit(limit)
        return list(self.db.execute(stmt).scalars().unique().all())

    def list_all(self, entity_type: str, user_id: str) -> List:
        model = SYNC_ENTITY_MODELS[entity_type]
        stmt = (
            select(model)
            .where(model.user_id == user_id)
            .order_by(model.updated_at.asc(), model.id.asc())
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def list_deleted_ids(
        self, entity_type: str, user_id: str, since: Optional[datetime]
    ) -> List[str]:
        stmt = select(SyncTombstone.entity_id).where(
            SyncTombstone.user_id == user_id, SyncTombstone.entity_type == entity_type
        )
        if since is not None:
            stmt = stmt.where(SyncTombstone.deleted_at > since)
        return list(self.db.execute(stmt.order_by(SyncTombstone.deleted_at.asc())).scalars().all())

    # ------------------- Checkpoints -------------------

    def upsert_checkpoint(
        self, user_id: str, device_id: str, entity_type: str, synced_at: datetime
    ) -> SyncCheckpoint:
        stmt = select(SyncCheckpoint).where(
            SyncCheckpoint.user_id == user_id,
            SyncCheckpoint.device_id == device_id,
            SyncCheckpoint.entity_type == entity_type,
        )
        checkpoint = self.db.execute(stmt).scalars().first()
        if checkpoint is None:
            checkpoint = SyncCheckpoint(
                user_id=user_id, device_id=device_id, entity_type=entity_type
            )
        checkpoint.last_synced_at = synced_at
        self.db.add(checkpoint)
        self.db.commit()
        return checkpoint
