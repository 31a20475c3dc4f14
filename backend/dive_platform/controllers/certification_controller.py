"""
Diver certification cards and the admin verification queue.
"""

from flask import Blueprint
from flask_login import login_required

from dive_platform.core.api_utils import api_response, get_json_body, page_params, paginated_response
from dive_platform.core.auth_decorators import get_current_user, roles_required
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import UserRole, VerificationStatus
from dive_platform.schemas.divers import (
    CertificationRequest,
    CertificationResponse,
    VerifyCertificationRequest,
)
from dive_platform.services.container import build_certification_service

certification_bp = Blueprint("certifications", __name__, url_prefix="/certifications")


def _certification(cert) -> dict:
    return CertificationResponse.from_domain(cert).to_dict()


@certification_bp.route("", methods=["GET"])
@login_required
def list_certifications():
    db = SessionLocal()
    try:
        certs = build_certification_service(db).list_own(get_current_user().id)
        return api_response([_certification(cert) for cert in certs])
    finally:
        db.close()


@certification_bp.route("", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def add_certification():
    """Record a card; it stays ``pending`` until an admin reviews it."""
    payload = CertificationRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        cert = build_certification_service(db).add(get_current_user().id, payload.values)
        return api_response(_certification(cert), "Certification submitted", status_code=201)
    finally:
        db.close()


@certification_bp.route("/<cert_id>", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_certification(cert_id):
    payload = CertificationRequest.from_dict(get_json_body(), partial=True)
    db = SessionLocal()
    try:
        cert = build_certification_service(db).update(
            get_current_user().id, cert_id, payload.values
        )
        return api_response(_certification(cert), "Certification updated")
    finally:
        db.close()


@certification_bp.route("/<cert_id>", methods=["DELETE"])
@login_required
def delete_certification(cert_id):
    db = SessionLocal()
    try:
        build_certification_service(db).delete(get_current_user().id, cert_id)
        return api_response(message="Certification deleted")
    finally:
        db.close()


@certification_bp.route("/pending", methods=["GET"])
@login_required
@roles_required(UserRole.ADMIN.value)
def list_pending_certifications():
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_certification_service(db).list_by_status(
            VerificationStatus.PENDING.value, page, limit
        )
        return paginated_response(result, _certification)
    finally:
        db.close()


@certification_bp.route("/<cert_id>/verify", methods=["POST"])
@login_required
@roles_required(UserRole.ADMIN.value)
def verify_certification(cert_id):
    payload = VerifyCertificationRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        cert = build_certification_service(db).verify(cert_id, get_current_user().id, payload)
        return api_response(_certification(cert), "Certification reviewed")
    finally:
        db.close()
