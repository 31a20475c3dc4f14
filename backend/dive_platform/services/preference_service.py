"""Per-user notification preferences and the quiet-hours rule."""

import logging
from datetime import datetime, time
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from dive_platform.db.base import NotificationPreference
from dive_platform.domain.enums import NotificationChannel
from dive_platform.repositories.mobile_repository import PreferenceRepository
from dive_platform.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Riyadh"
DEFAULT_NOTIFICATION_TYPES = {
    "booking_confirmed": True,
    "trip_reminder": True,
    "payment_received": True,
    "new_message": True,
    "review_response": True,
}
QUIET_HOURS_CHANNELS = (NotificationChannel.PUSH.value, NotificationChannel.SMS.value)
CHANNEL_TOGGLES = {
    NotificationChannel.PUSH.value: "push_enabled",
    NotificationChannel.EMAIL.value: "email_enabled",
    NotificationChannel.SMS.value: "sms_enabled",
    NotificationChannel.IN_APP.value: "in_app_enabled",
}


def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def in_quiet_hours(preference, now: Optional[datetime] = None) -> bool:
    """True when ``now`` falls inside the preference's quiet window (may wrap midnight)."""
    if not preference.quiet_hours_start or not preference.quiet_hours_end:
        return False
    start = _parse_hhmm(preference.quiet_hours_start)
    end = _parse_hhmm(preference.quiet_hours_end)
    if start == end:
        return False
    local = (now or utcnow()).astimezone(ZoneInfo(preference.timezone or DEFAULT_TIMEZONE))
    current = local.time().replace(second=0, microsecond=0)
    if start < end:
        return start <= current < end
    return current >= start or current < end


class PreferenceService:
    def __init__(self, preference_repo: PreferenceRepository):
        self.preference_repo = preference_repo

    @staticmethod
    def _defaults(user_id: str) -> NotificationPreference:
        return NotificationPreference(
            user_id=user_id,
            push_enabled=True,
            email_enabled=True,
            sms_enabled=False,
            in_app_enabled=True,
            notification_types=dict(DEFAULT_NOTIFICATION_TYPES),
            quiet_hours_start=None,
            quiet_hours_end=None,
            timezone=DEFAULT_TIMEZONE,
        )

    def get_or_create(self, user_id: str) -> NotificationPreference:
        preference = self.preference_repo.get_for_user(user_id)
        if preference is None:
            preference = self.preference_repo.save(self._defaults(user_id))
            logger.info("Created default notification preferences", extra={"context": {"user_id": user_id}})
        return preference

    def update(self, user_id: str, changes: Dict[str, Any]) -> NotificationPreference:
        preference = self.get_or_create(user_id)
        for key, value in changes.items():
            if key == "notification_types":
                merged = dict(preference.notification_types or {})
                merged.update(value)
                preference.notification_types = merged
            else:
                setattr(preference, key, value)
        return self.preference_repo.save(preference)

    def reset(self, user_id: str) -> NotificationPreference:
        preference = self.get_or_create(user_id)
        defaults = self._defaults(user_id)
        for attr in (
            "push_enabled",
            "email_enabled",
            "sms_enabled",
            "in_app_enabled",
            "quiet_hours_start",
            "quiet_hours_end",
            "timezone",
        ):
            setattr(preference, attr, getattr(defaults, attr))
        preference.notification_types = dict(DEFAULT_NOTIFICATION_TYPES)
        return self.preference_repo.save(preference)

    def should_send(
        self,
        user_id: str,
        notification_type: str,
        channel: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """Apply channel toggles, per-type opt-outs and quiet hours.

        Users without stored preferences get everything except SMS.
        """
        preference = self.preference_repo.get_for_user(user_id)
        if preference is None:
            return channel != NotificationChannel.SMS.value

        toggle = CHANNEL_TOGGLES.get(channel)
        if toggle and not getattr(preference, toggle):
            return False
        if (preference.notification_types or {}).get(notification_type) is False:
            return False
        if channel in QUIET_HOURS_CHANNELS and in_quiet_hours(preference, now):
            return False
        return True
