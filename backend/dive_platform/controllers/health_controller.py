"""
Health controller - health check endpoints for monitoring.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func, select, text

from dive_platform.core.api_utils import error_response, verify_health_token
from dive_platform.core.limiter_config import limiter
from dive_platform.db.base import Booking, DivingCenter, Payment, Trip, User
from dive_platform.db.session import SessionLocal
from dive_platform.utils.date_utils import isoformat, utcnow

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/health")

COUNTED_MODELS = {
    "users": User,
    "centers": DivingCenter,
    "trips": Trip,
    "bookings": Booking,
    "payments": Payment,
}


def _database_ok(db) -> bool:
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(
            "Health check DB error",
            extra={"context": {"error": str(e)}},
            exc_info=True,
        )
        return False


def _scheduler_state() -> dict:
    scheduler = current_app.config.get("SCHEDULER")
    if scheduler is None:
        return {"running": False, "jobs": []}
    return {
        "running": bool(scheduler.running),
        "jobs": [
            {
                "id": job.id,
                "next_run_time": isoformat(job.next_run_time) if job.next_run_time else None,
            }
            for job in scheduler.get_jobs()
        ],
    }


@health_bp.route("", methods=["GET"])
@limiter.exempt
def health_check():
    """Liveness plus a database round trip (no auth required)."""
    with SessionLocal() as db:
        database_ok = _database_ok(db)
    body = {
        "status": "healthy" if database_ok else "unhealthy",
        "database": "connected" if database_ok else "unreachable",
        "timestamp": isoformat(utcnow()),
    }
    return jsonify(body), 200 if database_ok else 503


@health_bp.route("/detailed", methods=["GET"])
@limiter.exempt
def detailed_health():
    """
    Internal health check with row counts and scheduler state.

    Requires the ``X-Health-Token`` header to match HEALTH_CHECK_TOKEN;
    when no token is configured the endpoint always refuses.
    """
    if not verify_health_token():
        return error_response("UNAUTHORIZED", "Invalid health check token", 401)

    logger.info(
        "Detailed health check",
        extra={"context": {"remote_addr": request.remote_addr}},
    )

    with SessionLocal() as db:
        if not _database_ok(db):
            return (
                jsonify({"status": "unhealthy", "database": "unreachable"}),
                503,
            )
        counts = {
            name: db.scalar(select(func.count()).select_from(model))
            for name, model in COUNTED_MODELS.items()
        }

    return (
        jsonify(
            {
                "status": "healthy",
                "database": "connected",
                "timestamp": isoformat(utcnow()),
                "counts": counts,
                "scheduler": _scheduler_state(),
            }
        ),
        200,
    )
