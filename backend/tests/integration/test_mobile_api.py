"""Devices, notification inbox, preferences and offline sync over HTTP."""

from datetime import date, timedelta

import pytest

from dive_platform.db.base import DiveLog, Notification
from dive_platform.domain.enums import NotificationStatus, NotificationType
from dive_platform.utils.date_utils import utcnow
from tests.factories.model_factories import create_user


@pytest.fixture
def diver(db_session):
    return create_user(db_session)


@pytest.fixture
def headers(diver, auth_headers):
    return auth_headers(diver)


def _inbox_row(db_session, user, title="Spot available"):
    row = Notification(
        user_id=user.id,
        type=NotificationType.WAITLIST_AVAILABLE.value,
        channel="in_app",
        priority="normal",
        title=title,
        body="A spot opened up.",
        data={},
        status=NotificationStatus.DELIVERED.value,
        retry_count=0,
    )
    db_session.add(row)
    db_session.commit()
    return row


class TestDevices:
    def test_register_is_idempotent(self, client, api_prefix, db_session, headers, response_helper):
        payload = {
            "device_identifier": "iphone-15-abc",
            "device_type": "ios",
            "push_token": "apn-token",
            "push_token_type": "apn",
        }

        first = response_helper.assert_json_response(
            client.post(f"{api_prefix}/mobile/devices", json=payload, headers=headers), 201
        )["data"]
        second = response_helper.assert_json_response(
            client.post(
                f"{api_prefix}/mobile/devices",
                json={**payload, "app_version": "2.1.0"},
                headers=headers,
            ),
            201,
        )["data"]

        assert first["id"] == second["id"]
        assert second["app_version"] == "2.1.0"
        assert second["has_push_token"] is True
        listed = response_helper.assert_json_response(
            client.get(f"{api_prefix}/mobile/devices", headers=headers)
        )["data"]
        assert len(listed) == 1

    def test_push_token_needs_type(self, client, api_prefix, db_session, headers, response_helper):
        response = client.post(
            f"{api_prefix}/mobile/devices",
            json={"device_identifier": "pixel", "device_type": "android", "push_token": "fcm"},
            headers=headers,
        )

        error = response_helper.assert_error(response, 400, "VALIDATION_ERROR")
        assert "push_token_type" in error["details"]

    def test_other_users_device_forbidden(
        self, client, api_prefix, db_session, headers, auth_headers, response_helper
    ):
        device_id = response_helper.assert_json_response(
            client.post(
                f"{api_prefix}/mobile/devices",
                json={"device_identifier": "pixel", "device_type": "android"},
                headers=headers,
            ),
            201,
        )["data"]["id"]
        stranger = create_user(db_session)

        response = client.get(
            f"{api_prefix}/mobile/devices/{device_id}", headers=auth_headers(stranger)
        )

        response_helper.assert_error(response, 403)


class TestInbox:
    def test_unread_count_and_mark_read(
        self, client, api_prefix, db_session, diver, headers, response_helper
    ):
        first = _inbox_row(db_session, diver)
        _inbox_row(db_session, diver, title="Trip tomorrow")

        count = response_helper.assert_json_response(
            client.get(f"{api_prefix}/mobile/notifications/unread-count", headers=headers)
        )["data"]
        assert count == {"unread_count": 2}

        read = response_helper.assert_json_response(
            client.patch(f"{api_prefix}/mobile/notifications/{first.id}/read", headers=headers)
        )["data"]
        assert read["status"] == "read"

        unread = response_helper.assert_json_response(
            client.get(f"{api_prefix}/mobile/notifications?read=false", headers=headers)
        )
        assert [row["title"] for row in unread["data"]] == ["Trip tomorrow"]

        updated = response_helper.assert_json_response(
            client.post(f"{api_prefix}/mobile/notifications/mark-all-read", headers=headers)
        )["data"]
        assert updated == {"updated": 1}

    def test_delete_someone_elses_notification(
        self, client, api_prefix, db_session, headers, response_helper
    ):
        row = _inbox_row(db_session, create_user(db_session))

        response = client.delete(f"{api_prefix}/mobile/notifications/{row.id}", headers=headers)

        response_helper.assert_error(response, 403)


class TestPreferences:
    def test_defaults_then_update(self, client, api_prefix, db_session, headers, response_helper):
        defaults = response_helper.assert_json_response(
            client.get(f"{api_prefix}/mobile/preferences", headers=headers)
        )["data"]
        assert defaults["sms_enabled"] is False
        assert defaults["timezone"] == "Asia/Riyadh"

        updated = response_helper.assert_json_response(
            client.patch(
                f"{api_prefix}/mobile/preferences",
                json={
                    "sms_enabled": True,
                    "quiet_hours_start": "22:00",
                    "quiet_hours_end": "07:00",
                    "notification_types": {"trip_reminder": False},
                },
                headers=headers,
            )
        )["data"]
        assert updated["sms_enabled"] is True
        assert updated["quiet_hours_start"] == "22:00"
        assert updated["notification_types"]["trip_reminder"] is False
        assert updated["notification_types"]["payment_received"] is True

        reset = response_helper.assert_json_response(
            client.post(f"{api_prefix}/mobile/preferences/reset", headers=headers)
        )["data"]
        assert reset["quiet_hours_start"] is None

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"quiet_hours_start": "22:00"}, "quiet_hours_start"),
            ({"quiet_hours_start": "25:00", "quiet_hours_end": "07:00"}, "quiet_hours_start"),
            ({"timezone": "Mars/Olympus"}, "timezone"),
            ({"notification_types": {"trip_reminder": "no"}}, "notification_types"),
        ],
    )
    def test_invalid_updates(
        self, client, api_prefix, db_session, headers, response_helper, payload, field
    ):
        response = client.patch(f"{api_prefix}/mobile/preferences", json=payload, headers=headers)

        error = response_helper.assert_error(response, 400, "VALIDATION_ERROR")
        assert field in error["details"]


class TestSync:
    def test_submit_then_pull(self, client, api_prefix, db_session, diver, headers, response_helper):
        batch = {
            "device_id": "device-1",
            "items": [
                {
                    "client_id": "offline-1",
                    "action": "create",
                    "entity_type": "dive_logs",
                    "payload": {"diveDate": "2025-02-14", "siteName": "Seven Sisters", "maxDepthM": 22.5},
                }
            ],
        }

        outcome = response_helper.assert_json_response(
            client.post(f"{api_prefix}/mobile/sync/queue", json=batch, headers=headers)
        )["data"]
        assert outcome["synced"] == 1
        server_id = outcome["results"][0]["server_entity_id"]

        replay = response_helper.assert_json_response(
            client.post(f"{api_prefix}/mobile/sync/queue", json=batch, headers=headers)
        )["data"]
        assert replay["results"][0]["server_entity_id"] == server_id

        snapshot = response_helper.assert_json_response(
            client.get(f"{api_prefix}/mobile/sync/init/dive_logs", headers=headers)
        )["data"]
        assert snapshot["total_count"] == 1
        assert snapshot["items"][0]["site_name"] == "Seven Sisters"

        delta = response_helper.assert_json_response(
            client.get(
                f"{api_prefix}/mobile/sync/delta/dive_logs",
                query_string={"since": snapshot["checkpoint"]},
                headers=headers,
            )
        )["data"]
        assert delta["items"] == []
        assert delta["has_more"] is False

    def test_batch_validation(self, client, api_prefix, db_session, headers, response_helper):
        response = client.post(
            f"{api_prefix}/mobile/sync/queue",
            json={"items": [{"client_id": "x", "action": "update", "entity_type": "dive_logs"}]},
            headers=headers,
        )

        error = response_helper.assert_error(response, 400, "VALIDATION_ERROR")
        assert "items[0].entity_id" in error["details"]

    def test_unknown_entity_type(self, client, api_prefix, db_session, headers, response_helper):
        response = client.get(f"{api_prefix}/mobile/sync/delta/sharks", headers=headers)

        response_helper.assert_error(response, 400)

    def test_delta_pages_through_shared_timestamp(
        self, client, api_prefix, db_session, diver, headers, response_helper
    ):
        stamp = utcnow().replace(microsecond=0) - timedelta(hours=1)
        for site in ("Abu Galawa", "Shaab Suadi", "Jumna Reef"):
            db_session.add(
                DiveLog(
                    user_id=diver.id,
                    dive_date=date(2025, 3, 1),
                    site_name=site,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
        db_session.commit()

        seen = []
        query = {"since": (stamp - timedelta(minutes=1)).isoformat(), "limit": 1}
        while True:
            page = response_helper.assert_json_response(
                client.get(f"{api_prefix}/mobile/sync/delta/dive_logs", query_string=query, headers=headers)
            )["data"]
            seen.extend(item["id"] for item in page["items"])
            if not page["has_more"]:
                break
            query = {"since": page["checkpoint"], "after_id": page["last_id"], "limit": 1}

        expected = sorted(row.id for row in db_session.query(DiveLog).filter_by(user_id=diver.id))
        assert seen == expected
