import logging
from typing import Any, Dict, List, Optional

from dive_platform.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from dive_platform.db.base import DiveSite, InstructorProfile
from dive_platform.domain.enums import UserRole
from dive_platform.repositories.instructor_repository import InstructorRepository, SiteRepository
from dive_platform.utils.date_utils import utcnow
from dive_platform.utils.pagination import offset_for, paginate

logger = logging.getLogger(__name__)


class InstructorService:
    """Instructor directory, profile edits, availability and verification."""

    def __init__(self, instructor_repo: InstructorRepository):
        self.instructor_repo = instructor_repo

    def list_instructors(
        self, specialty: Optional[str], language: Optional[str], page: int, limit: int
    ) -> Dict[str, Any]:
        items, total = self.instructor_repo.list_verified(
            specialty, language, offset_for(page, limit), limit
        )
        return paginate(items, total, page, limit)

    def get_instructor(self, user_id: str) -> InstructorProfile:
        profile = self.instructor_repo.get_by_user_id(user_id)
        if profile is None:
            raise NotFoundError("Instructor")
        return profile

    @staticmethod
    def _check_self_or_admin(user_id: str, actor) -> None:
        if actor.id != user_id and actor.role != UserRole.ADMIN.value:
            raise ForbiddenError("Not authorized to update this instructor")

    def update_profile(self, user_id: str, actor, changes: Dict[str, Any]) -> InstructorProfile:
        self._check_self_or_admin(user_id, actor)
        profile = self.get_instructor(user_id)
        for key, value in changes.items():
            setattr(profile, key, value)
        return self.instructor_repo.save(profile)

    def get_schedule(self, user_id: str) -> Dict[str, List[Dict[str, str]]]:
        return dict(self.get_instructor(user_id).availability_calendar or {})

    def update_schedule(
        self, user_id: str, actor, calendar: Dict[str, List[Dict[str, str]]]
    ) -> Dict[str, List[Dict[str, str]]]:
        self._check_self_or_admin(user_id, actor)
        profile = self.get_instructor(user_id)
        profile.availability_calendar = calendar
        profile = self.instructor_repo.save(profile)
        return dict(profile.availability_calendar or {})

    def verify(self, user_id: str) -> InstructorProfile:
        profile = self.get_instructor(user_id)
        profile.verified_at = utcnow()
        profile = self.instructor_repo.save(profile)
        logger.info("Instructor verified", extra={"context": {"user_id": user_id}})
        return profile


class SiteService:
    def __init__(self, site_repo: SiteRepository):
        self.site_repo = site_repo

    def list_sites(self) -> List[DiveSite]:
        return self.site_repo.list_active()

    def get_site(self, site_id: str) -> DiveSite:
        site = self.site_repo.get(site_id)
        if site is None:
            raise NotFoundError("Dive site")
        return site

    def create_site(self, values: Dict[str, Any]) -> DiveSite:
        if self.site_repo.get_by_code(values["srsa_site_code"]):
            raise ConflictError("Dive site code already exists")
        site = self.site_repo.create(DiveSite(is_active=True, **values))
        logger.info("Dive site created", extra={"context": {"site_id": site.id}})
        return site
