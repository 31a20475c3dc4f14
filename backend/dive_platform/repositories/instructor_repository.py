from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dive_platform.db.base import Certification, DiveSite, InstructorProfile, SyncTombstone
from dive_platform.domain.enums import SyncEntityType, VerificationStatus


class InstructorRepository:
    """Repository for instructor profiles."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_user_id(self, user_id: str) -> Optional[InstructorProfile]:
        stmt = select(InstructorProfile).where(InstructorProfile.user_id == user_id)
        return self.db.execute(stmt).scalars().first()

    def list_verified(
        self,
        specialty: Optional[str],
        language: Optional[str],
        offset: int,
        limit: int,
    ) -> Tuple[List[InstructorProfile], int]:
        stmt = (
            select(InstructorProfile)
            .where(InstructorProfile.verified_at.is_not(None))
            .order_by(
                InstructorProfile.rating_average.desc(),
                InstructorProfile.total_reviews.desc(),
            )
        )
        profiles = list(self.db.execute(stmt).scalars().unique().all())
        # JSON list membership differs per dialect; filter in Python
        if specialty:
            profiles = [p for p in profiles if specialty in (p.specialties or [])]
        if language:
            profiles = [p for p in profiles if language in (p.languages_spoken or [])]
        return profiles[offset : offset + limit], len(profiles)

    def create(self, profile: InstructorProfile) -> InstructorProfile:
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def save(self, profile: InstructorProfile) -> InstructorProfile:
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        return profile


class SiteRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, site_id: str) -> Optional[DiveSite]:
        return self.db.get(DiveSite, site_id)

    def get_by_code(self, code: str) -> Optional[DiveSite]:
        stmt = select(DiveSite).where(DiveSite.srsa_site_code == code)
        return self.db.execute(stmt).scalars().first()

    def list_active(self) -> List[DiveSite]:
        stmt = (
            select(DiveSite)
            .where(DiveSite.is_active.is_(True))
            .order_by(DiveSite.name_en.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def create(self, site: DiveSite) -> DiveSite:
        self.db.add(site)
        self.db.commit()
        self.db.refresh(site)
        return site


class CertificationRepository:
    """Diver certifications and the admin verification queue."""

    def __init__(self, db: Session):
        self.db = db

    def verified_levels(self, user_id: str) -> List[str]:
        stmt = select(Certification.certification_level).where(
            Certification.user_id == user_id,
            Certification.verification_status == VerificationStatus.VERIFIED.value,
        )
        return list(self.db.execute(stmt).scalars().all())

    def get(self, cert_id: str) -> Optional[Certification]:
        return self.db.get(Certification, cert_id)

    def list_for_user(self, user_id: str) -> List[Certification]:
        stmt = (
            select(Certification)
            .where(Certification.user_id == user_id)
            .order_by(Certification.issue_date.desc(), Certification.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def list_by_status(
        self, status: str, offset: int, limit: int
    ) -> Tuple[List[Certification], int]:
        total = self.db.execute(
            select(func.count())
            .select_from(Certification)
            .where(Certification.verification_status == status)
        ).scalar_one()
        stmt = (
            select(Certification)
            .where(Certification.verification_status == status)
            .order_by(Certification.created_at.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().unique().all()), total

    def save(self, cert: Certification) -> Certification:
        self.db.add(cert)
        self.db.commit()
        self.db.refresh(cert)
        return cert

    def delete(self, cert: Certification) -> None:
        # Offline clients learn about the removal through delta sync
        self.db.add(
            SyncTombstone(
                user_id=cert.user_id,
                entity_type=SyncEntityType.CERTIFICATIONS.value,
                entity_id=cert.id,
            )
        )
        self.db.delete(cert)
        self.db.commit()
