"""Scheduler job wrappers: return counts, absorb failures."""

import logging
from unittest.mock import MagicMock, patch

from dive_platform.services import jobs


@patch("dive_platform.services.jobs.SessionLocal", new_callable=MagicMock)
@patch("dive_platform.services.jobs.build_booking_service")
def test_waitlist_expiry_returns_count(mock_build, mock_session_local):
    mock_build.return_value.expire_waitlist_offers.return_value = 2

    assert jobs.expire_waitlist_offers_job() == 2
    mock_build.assert_called_once_with(mock_session_local.return_value.__enter__.return_value)


@patch("dive_platform.services.jobs.SessionLocal", new_callable=MagicMock)
@patch("dive_platform.services.jobs.build_trip_service")
def test_run_is_timed(mock_build, _session_local, caplog):
    mock_build.return_value.complete_finished_trips.return_value = 3

    with caplog.at_level(logging.INFO, logger="dive_platform.performance"):
        jobs.complete_finished_trips_job()

    record = next(r for r in caplog.records if r.name == "dive_platform.performance")
    assert record.context["function"] == "trip_completion"
    assert record.context["completed"] == 3
    assert record.context["duration_ms"] >= 0


@patch("dive_platform.services.jobs.SessionLocal", new_callable=MagicMock)
@patch("dive_platform.services.jobs.build_booking_service")
def test_reminder_failure_is_absorbed(mock_build, _session_local):
    mock_build.return_value.send_trip_reminders.side_effect = RuntimeError("db down")

    assert jobs.send_trip_reminders_job() is None


@patch("dive_platform.services.jobs.SessionLocal", new_callable=MagicMock)
@patch("dive_platform.services.jobs.build_trip_service")
def test_trip_completion(mock_build, _session_local):
    mock_build.return_value.complete_finished_trips.return_value = 0

    assert jobs.complete_finished_trips_job() == 0


def test_scheduler_registers_every_job():
    scheduler = jobs.create_scheduler()

    assert {job.id for job in scheduler.get_jobs()} == {
        "waitlist_expiry",
        "trip_reminders",
        "trip_completion",
    }
