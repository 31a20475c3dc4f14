"""
Offline sync for the mobile app.

Clients queue changes while offline and submit them in batches. Every item
is recorded in ``sync_queue`` under its client-generated ``client_id``; an
item that already synced is answered from the queue instead of being applied
twice. Reads go the other way: ``delta`` returns rows changed since a
checkpoint plus ids deleted since then (from tombstones).
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from dive_platform.core.exceptions import AppError, NotFoundError, ValidationError
from dive_platform.core.validation import ValidationResult, Validator
from dive_platform.db.base import SyncQueueItem
from dive_platform.domain.enums import (
    WRITABLE_SYNC_ENTITIES,
    SyncAction,
    SyncEntityType,
    SyncStatus,
)
from dive_platform.repositories.mobile_repository import SYNC_ENTITY_MODELS, SyncRepository
from dive_platform.repositories.user_repository import UserRepository
from dive_platform.schemas.common import collect_fields
from dive_platform.schemas.mobile import (
    SYNC_ENTITY_FIELDS,
    SyncItemRequest,
    SyncSubmitRequest,
    serialize_entity,
)
from dive_platform.utils.date_utils import ensure_aware, utcnow
from dive_platform.utils.pagination import offset_for, paginate
from dive_platform.utils.text_utils import camel_to_snake

logger = logging.getLogger(__name__)

DEFAULT_DELTA_LIMIT = 100
MAX_DELTA_LIMIT = 500


def normalize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Accept camelCase or snake_case keys from the client."""
    return {camel_to_snake(key): value for key, value in (payload or {}).items()}


def _describe(error: AppError) -> str:
    if isinstance(error, ValidationError) and error.errors:
        details = "; ".join(f"{field}: {message}" for field, message in error.errors.items())
        return f"{error.message}: {details}"[:500]
    return error.message[:500]


class SyncService:
    def __init__(self, sync_repo: SyncRepository, user_repo: UserRepository):
        self.sync_repo = sync_repo
        self.user_repo = user_repo

    # ------------------- Submit -------------------

    def submit(self, user_id: str, request: SyncSubmitRequest) -> Dict[str, Any]:
        results = [self._submit_item(user_id, item, request.device_id) for item in request.items]
        summary = {status: 0 for status in SyncStatus.values()}
        for result in results:
            summary[result["status"]] += 1
        logger.info(
            "Sync batch processed",
            extra={"context": {"user_id": user_id, "device_id": request.device_id, **summary}},
        )
        return {
            "results": results,
            "synced": summary[SyncStatus.SYNCED.value],
            "failed": summary[SyncStatus.FAILED.value],
            "conflicts": summary[SyncStatus.CONFLICT.value],
        }

    @staticmethod
    def _result(queue_item: SyncQueueItem, **extra) -> Dict[str, Any]:
        result: Dict[str, Any] = {"client_id": queue_item.client_id, "status": queue_item.status}
        if queue_item.server_entity_id:
            result["server_entity_id"] = queue_item.server_entity_id
        if queue_item.error_message:
            result["error"] = queue_item.error_message
        result.update(extra)
        return result

    def _record(
        self,
        user_id: str,
        item: SyncItemRequest,
        device_id: Optional[str],
        queue_item: Optional[SyncQueueItem],
    ) -> SyncQueueItem:
        if queue_item is None:
            queue_item = SyncQueueItem(user_id=user_id, client_id=item.client_id, retry_count=0)
        else:
            queue_item.retry_count = (queue_item.retry_count or 0) + 1
        queue_item.device_id = device_id
        queue_item.action = item.action
        queue_item.entity_type = item.entity_type
        queue_item.entity_id = item.entity_id
        queue_item.payload = item.payload
        queue_item.status = SyncStatus.PENDING.value
        return self.sync_repo.add_queue_item(queue_item)

    def _submit_item(
        self, user_id: str, item: SyncItemRequest, device_id: Optional[str]
    ) -> Dict[str, Any]:
        existing = self.sync_repo.get_queue_item(user_id, item.client_id)
        if existing is not None and existing.status == SyncStatus.SYNCED.value:
            return self._result(existing)

        queue_item = self._record(user_id, item, device_id, existing)
        try:
            status, row = self._apply(user_id, item)
        except AppError as e:
            return self._fail(queue_item, _describe(e))
        except SQLAlchemyError as e:
            logger.error(
                "Sync item failed to persist",
                extra={"context": {"client_id": item.client_id, "entity_type": item.entity_type}},
                exc_info=True,
            )
            self.sync_repo.rollback()
            queue_item = self._record(
                user_id, item, device_id, self.sync_repo.get_queue_item(user_id, item.client_id)
            )
            return self._fail(queue_item, f"Database error: {e.__class__.__name__}")

        queue_item.server_entity_id = row.id if row is not None else item.entity_id
        queue_item.entity_id = queue_item.server_entity_id
        if status == SyncStatus.CONFLICT.value:
            queue_item.status = SyncStatus.CONFLICT.value
            queue_item.error_message = "Server version is newer"
            self.sync_repo.save_queue_item(queue_item)
            return self._result(queue_item, server_version=serialize_entity(row))

        queue_item.status = SyncStatus.SYNCED.value
        queue_item.error_message = None
        queue_item.synced_at = utcnow()
        self.sync_repo.save_queue_item(queue_item)
        return self._result(queue_item)

    def _fail(self, queue_item: SyncQueueItem, message: str) -> Dict[str, Any]:
        queue_item.status = SyncStatus.FAILED.value
        queue_item.error_message = message
        self.sync_repo.save_queue_item(queue_item)
        return self._result(queue_item)

    def _apply(self, user_id: str, item: SyncItemRequest) -> Tuple[str, Any]:
        """Apply one change; returns the resulting status and the affected row."""
        if item.entity_type not in WRITABLE_SYNC_ENTITIES:
            raise ValidationError(f"Entity type {item.entity_type} is read-only")

        parsers = SYNC_ENTITY_FIELDS[item.entity_type]
        payload = normalize_payload(item.payload)
        is_dive_log = item.entity_type == SyncEntityType.DIVE_LOGS.value

        if item.action == SyncAction.CREATE.value:
            values = collect_fields(payload, parsers, partial=False)
            model = SYNC_ENTITY_MODELS[item.entity_type]
            row = model(user_id=user_id, **{k: v for k, v in values.items() if v is not None})
            row = self.sync_repo.add_entity(row)
            if is_dive_log:
                self.user_repo.adjust_logged_dives(user_id, 1)
            return SyncStatus.SYNCED.value, row

        row = self.sync_repo.get_entity(item.entity_type, user_id, item.entity_id)
        if row is None:
            raise NotFoundError("Entity")

        if item.action == SyncAction.DELETE.value:
            self.sync_repo.delete_entity(item.entity_type, row)
            if is_dive_log:
                self.user_repo.adjust_logged_dives(user_id, -1)
            return SyncStatus.SYNCED.value, None

        client_updated_at = self._client_updated_at(payload)
        server_updated_at = ensure_aware(row.updated_at)
        if client_updated_at and server_updated_at and client_updated_at < server_updated_at:
            return SyncStatus.CONFLICT.value, row

        changes = collect_fields(payload, parsers, partial=True)
        for key, value in changes.items():
            setattr(row, key, value)
        if changes and item.entity_type == SyncEntityType.CERTIFICATIONS.value:
            row.reset_verification()
        row.updated_at = utcnow()
        return SyncStatus.SYNCED.value, self.sync_repo.add_entity(row)

    @staticmethod
    def _client_updated_at(payload: Dict[str, Any]) -> Optional[datetime]:
        result = ValidationResult()
        value = Validator.datetime_value(payload.get("updated_at"), "updated_at", result)
        result.raise_if_invalid()
        return value

    # ------------------- Queue status -------------------

    def status(
        self, user_id: str, device_id: Optional[str], status: Optional[str], page: int, limit: int
    ) -> Dict[str, Any]:
        counts = self.sync_repo.count_by_status(user_id, device_id)
        items, total = self.sync_repo.list_queue(
            user_id, device_id, status, offset_for(page, limit), limit
        )
        return {
            "pending": counts[SyncStatus.PENDING.value],
            "failed": counts[SyncStatus.FAILED.value],
            "conflict": counts[SyncStatus.CONFLICT.value],
            "items": paginate(items, total, page, limit),
        }

    def confirm(self, user_id: str, client_ids: List[str]) -> int:
        confirmed = self.sync_repo.delete_synced(user_id, client_ids)
        logger.info("Sync items confirmed", extra={"context": {"user_id": user_id, "count": confirmed}})
        return confirmed

    # ------------------- Pull -------------------

    @staticmethod
    def _check_entity_type(entity_type: str) -> None:
        if entity_type not in SYNC_ENTITY_MODELS:
            raise ValidationError(
                "Invalid entity type",
                {"entity_type": f"entity_type must be one of: {', '.join(SYNC_ENTITY_MODELS)}"},
            )

    def delta(
        self,
        user_id: str,
        entity_type: str,
        since: Optional[datetime],
        limit: int = DEFAULT_DELTA_LIMIT,
        device_id: Optional[str] = None,
        after_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Changes after the ``(since, after_id)`` cursor.

        Rows are paged in ``(updated_at, id)`` order. When ``has_more`` is set
        the caller passes ``checkpoint`` and ``last_id`` back, so rows sharing
        the boundary timestamp are neither skipped nor repeated.
        """
        self._check_entity_type(entity_type)
        if not 1 <= limit <= MAX_DELTA_LIMIT:
            raise ValidationError(
                "Invalid query parameters", {"limit": f"limit must be between 1 and {MAX_DELTA_LIMIT}"}
            )

        now = utcnow()
        since = ensure_aware(since)
        rows = self.sync_repo.list_changed(entity_type, user_id, since, limit + 1, after_id)
        has_more = len(rows) > limit
        rows = rows[:limit]
        deleted = self.sync_repo.list_deleted_ids(entity_type, user_id, since)
        # With more pages pending, the next call resumes after the last row returned
        checkpoint = ensure_aware(rows[-1].updated_at) if has_more else now
        last_id = rows[-1].id if has_more else None
        if device_id:
            self.sync_repo.upsert_checkpoint(user_id, device_id, entity_type, checkpoint)
        return {
            "items": [serialize_entity(row) for row in rows],
            "deleted": deleted,
            "checkpoint": checkpoint,
            "last_id": last_id,
            "has_more": has_more,
        }

    def initial(self, user_id: str, entity_type: str, device_id: Optional[str] = None) -> Dict[str, Any]:
        self._check_entity_type(entity_type)
        checkpoint = utcnow()
        rows = self.sync_repo.list_all(entity_type, user_id)
        if device_id:
            self.sync_repo.upsert_checkpoint(user_id, device_id, entity_type, checkpoint)
        return {
            "items": [serialize_entity(row) for row in rows],
            "checkpoint": checkpoint,
            "total_count": len(rows),
        }
