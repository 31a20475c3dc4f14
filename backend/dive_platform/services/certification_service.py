"""
Diver certifications.

Divers record their cards as ``pending``; only an admin decision moves one to
``verified`` or ``rejected``. Booking eligibility reads verified levels only,
so any edit to a card sends it back to ``pending``.
"""

import logging
from typing import Any, Dict, List

from dive_platform.core.exceptions import NotFoundError
from dive_platform.db.base import Certification
from dive_platform.domain.enums import NotificationType, VerificationStatus
from dive_platform.repositories.instructor_repository import CertificationRepository
from dive_platform.schemas.divers import VerifyCertificationRequest
from dive_platform.services.notification_service import NotificationService
from dive_platform.utils.date_utils import utcnow
from dive_platform.utils.pagination import offset_for, paginate

logger = logging.getLogger(__name__)


class CertificationService:
    def __init__(self, certification_repo: CertificationRepository, notifications: NotificationService):
        self.certification_repo = certification_repo
        self.notifications = notifications

    def list_own(self, user_id: str) -> List[Certification]:
        return self.certification_repo.list_for_user(user_id)

    def _get_own(self, user_id: str, cert_id: str) -> Certification:
        cert = self.certification_repo.get(cert_id)
        # Someone else's card is reported as missing
        if cert is None or cert.user_id != user_id:
            raise NotFoundError("Certification")
        return cert

    def add(self, user_id: str, values: Dict[str, Any]) -> Certification:
        cert = Certification(
            user_id=user_id, verification_status=VerificationStatus.PENDING.value, **values
        )
        cert = self.certification_repo.save(cert)
        logger.info(
            "Certification submitted",
            extra={"context": {"user_id": user_id, "certification_id": cert.id}},
        )
        return cert

    def update(self, user_id: str, cert_id: str, changes: Dict[str, Any]) -> Certification:
        cert = self._get_own(user_id, cert_id)
        if not changes:
            return cert
        for key, value in changes.items():
            setattr(cert, key, value)
        cert.reset_verification()
        return self.certification_repo.save(cert)

    def delete(self, user_id: str, cert_id: str) -> None:
        cert = self._get_own(user_id, cert_id)
        self.certification_repo.delete(cert)
        logger.info(
            "Certification deleted",
            extra={"context": {"user_id": user_id, "certification_id": cert_id}},
        )

    # ------------------- Admin review -------------------

    def list_by_status(self, status: str, page: int, limit: int) -> Dict[str, Any]:
        items, total = self.certification_repo.list_by_status(
            status, offset_for(page, limit), limit
        )
        return paginate(items, total, page, limit)

    def verify(self, cert_id: str, admin_id: str, decision: VerifyCertificationRequest) -> Certification:
        cert = self.certification_repo.get(cert_id)
        if cert is None:
            raise NotFoundError("Certification")
        previous = cert.verification_status
        cert.verification_status = decision.status
        cert.verified_by = admin_id
        cert.verified_at = utcnow()
        cert.verification_notes = decision.notes
        cert = self.certification_repo.save(cert)
        logger.info(
            "Certification reviewed",
            extra={
                "context": {
                    "certification_id": cert.id,
                    "admin_id": admin_id,
                    "status": decision.status,
                    "previous_status": previous,
                }
            },
        )

        verified = decision.status == VerificationStatus.VERIFIED.value
        self.notifications.notify(
            cert.user_id,
            NotificationType.CERTIFICATION_VERIFIED.value
            if verified
            else NotificationType.CERTIFICATION_REJECTED.value,
            "Certification verified" if verified else "Certification rejected",
            f"Your {cert.agency} {cert.certification_level} card was "
            f"{'verified' if verified else 'rejected'}.",
            data={"certification_id": cert.id, "status": decision.status},
        )
        return cert
