"""
Background jobs run by APScheduler inside the API process.

Each job opens its own session, builds the service it needs and logs a
timed summary. A job failure is logged and the scheduler keeps running.
"""

import time
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dive_platform.core.logging_config import get_logger, log_performance
from dive_platform.db.session import SessionLocal
from dive_platform.services.container import build_booking_service, build_trip_service

logger = get_logger(__name__)


def expire_waitlist_offers_job() -> Optional[int]:
    """Drop waiting-list offers nobody took and pass the spot to the next diver."""
    started = time.perf_counter()
    try:
        with SessionLocal() as db:
            expired = build_booking_service(db).expire_waitlist_offers()
        log_performance(
            "waitlist_expiry", (time.perf_counter() - started) * 1000, expired=expired
        )
        return expired
    except Exception as e:
        logger.error(
            "Error in waitlist offer expiry",
            extra={"context": {"job": "waitlist_expiry", "error": str(e)}},
            exc_info=True,
        )
        return None


def send_trip_reminders_job() -> Optional[int]:
    started = time.perf_counter()
    try:
        with SessionLocal() as db:
            sent = build_booking_service(db).send_trip_reminders()
        log_performance("trip_reminders", (time.perf_counter() - started) * 1000, sent=sent)
        return sent
    except Exception as e:
        logger.error(
            "Error sending trip reminders",
            extra={"context": {"job": "trip_reminders", "error": str(e)}},
            exc_info=True,
        )
        return None


def complete_finished_trips_job() -> Optional[int]:
    started = time.perf_counter()
    try:
        with SessionLocal() as db:
            completed = build_trip_service(db).complete_finished_trips()
        log_performance(
            "trip_completion", (time.perf_counter() - started) * 1000, completed=completed
        )
        return completed
    except Exception as e:
        logger.error(
            "Error completing finished trips",
            extra={"context": {"job": "trip_completion", "error": str(e)}},
            exc_info=True,
        )
        return None


def create_scheduler() -> BackgroundScheduler:
    """Build the scheduler with every job registered; the caller starts it."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        expire_waitlist_offers_job,
        trigger=IntervalTrigger(minutes=15),
        id="waitlist_expiry",
        name="Expire unanswered waiting-list offers",
        replace_existing=True,
    )
    scheduler.add_job(
        send_trip_reminders_job,
        trigger=IntervalTrigger(hours=1),
        id="trip_reminders",
        name="Send reminders for trips departing tomorrow",
        replace_existing=True,
    )
    scheduler.add_job(
        complete_finished_trips_job,
        trigger=IntervalTrigger(hours=1),
        id="trip_completion",
        name="Complete trips that have returned",
        replace_existing=True,
    )
    return scheduler


def start_scheduler() -> BackgroundScheduler:
    scheduler = create_scheduler()
    scheduler.start()
    logger.info(
        "Background scheduler started",
        extra={"context": {"jobs": [job.id for job in scheduler.get_jobs()]}},
    )
    return scheduler
