"""Diving centers, their vessels and staff memberships."""

import logging
from typing import Any, Dict, List, Optional

from dive_platform.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from dive_platform.db.base import CenterStaff, DivingCenter, Vessel
from dive_platform.domain.enums import (
    CenterStatus,
    NotificationType,
    UserRole,
    VesselStatus,
)
from dive_platform.domain.interfaces import ICenterRepository, IUserRepository
from dive_platform.repositories.center_repository import StaffRepository, VesselRepository
from dive_platform.schemas.centers import check_diver_capacity
from dive_platform.services.notification_service import NotificationService
from dive_platform.utils.date_utils import utcnow
from dive_platform.utils.pagination import offset_for, paginate
from dive_platform.utils.text_utils import generate_slug

logger = logging.getLogger(__name__)

NOT_CENTER_MANAGER = "Not authorized to manage this center"


def is_admin(actor) -> bool:
    return actor is not None and actor.role == UserRole.ADMIN.value


class CenterService:
    def __init__(
        self,
        center_repo: ICenterRepository,
        vessel_repo: VesselRepository,
        staff_repo: StaffRepository,
        user_repo: IUserRepository,
        notification_service: NotificationService,
    ):
        self.center_repo = center_repo
        self.vessel_repo = vessel_repo
        self.staff_repo = staff_repo
        self.user_repo = user_repo
        self.notifications = notification_service

    # ------------------- Access control -------------------

    def get_center(self, center_id: str) -> DivingCenter:
        center = self.center_repo.get_by_id(center_id)
        if center is None:
            raise NotFoundError("Diving center")
        return center

    def verify_ownership(self, center_id: str, actor) -> DivingCenter:
        """Return the center when ``actor`` owns it or is an admin."""
        center = self.get_center(center_id)
        if center.owner_user_id != actor.id and not is_admin(actor):
            raise ForbiddenError(NOT_CENTER_MANAGER)
        return center

    def verify_center_access(self, center_id: str, actor) -> DivingCenter:
        """Owner, admin, or an active staff member of the center."""
        center = self.get_center(center_id)
        if center.owner_user_id == actor.id or is_admin(actor):
            return center
        if self.staff_repo.is_active_member(center_id, actor.id):
            return center
        raise ForbiddenError("Not authorized to access this center")

    def has_center_access(self, center_id: str, actor) -> bool:
        try:
            self.verify_center_access(center_id, actor)
        except ForbiddenError:
            return False
        return True

    # ------------------- Centers -------------------

    def _unique_slug(self, name: str, exclude_id: Optional[str] = None) -> str:
        base = generate_slug(name) or "center"
        slug, suffix = base, 2
        while self.center_repo.slug_exists(slug, exclude_id):
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def list_centers(self, city: Optional[str], page: int, limit: int) -> Dict[str, Any]:
        items, total = self.center_repo.list_active(city, offset_for(page, limit), limit)
        return paginate(items, total, page, limit)

    def create_center(self, actor, values: Dict[str, Any]) -> DivingCenter:
        center = DivingCenter(**values)
        center.owner_user_id = actor.id
        center.slug = self._unique_slug(values["name_en"])
        center.status = CenterStatus.PENDING_VERIFICATION.value
        center = self.center_repo.create(center)

        if actor.role not in (UserRole.ADMIN.value, UserRole.CENTER_OWNER.value):
            user = self.user_repo.get_by_id(actor.id)
            if user is not None:
                user.role = UserRole.CENTER_OWNER.value
                self.user_repo.save(user)
        logger.info(
            "Diving center created",
            extra={"context": {"center_id": center.id, "owner_id": actor.id}},
        )
        return center

    def update_center(self, center_id: str, actor, changes: Dict[str, Any]) -> DivingCenter:
        center = self.verify_ownership(center_id, actor)
        for key, value in changes.items():
            setattr(center, key, value)
        if "name_en" in changes:
            center.slug = self._unique_slug(changes["name_en"], exclude_id=center.id)
        return self.center_repo.save(center)

    def deactivate_center(self, center_id: str, actor) -> DivingCenter:
        center = self.verify_ownership(center_id, actor)
        center.status = CenterStatus.DEACTIVATED.value
        center = self.center_repo.save(center)
        logger.info("Diving center deactivated", extra={"context": {"center_id": center.id}})
        return center

    def set_status(self, center_id: str, status: str, reason: Optional[str] = None) -> DivingCenter:
        center = self.get_center(center_id)
        previous = center.status
        center.status = status
        center = self.center_repo.save(center)
        logger.info(
            "Diving center status changed",
            extra={"context": {"center_id": center.id, "from": previous, "to": status}},
        )

        data = {"center_id": center.id, "center_name": center.name_en, "reason": reason or ""}
        if status == CenterStatus.ACTIVE.value and previous != status:
            self.notifications.notify(
                center.owner_user_id,
                NotificationType.CENTER_VERIFIED.value,
                "Your center is verified",
                f"{center.name_en} is now live on the platform.",
                data=data,
            )
        elif status == CenterStatus.SUSPENDED.value and previous != status:
            self.notifications.notify(
                center.owner_user_id,
                NotificationType.CENTER_REJECTED.value,
                "Your center was not approved",
                f"{center.name_en} was suspended. {reason or ''}".strip(),
                data=data,
            )
        return center

    # ------------------- Vessels -------------------

    def list_vessels(self, center_id: str) -> List[Vessel]:
        self.get_center(center_id)
        return self.vessel_repo.list_for_center(center_id)

    def get_vessel(self, center_id: str, vessel_id: str) -> Vessel:
        vessel = self.vessel_repo.get(center_id, vessel_id)
        if vessel is None:
            raise NotFoundError("Vessel")
        return vessel

    def create_vessel(self, center_id: str, actor, values: Dict[str, Any]) -> Vessel:
        self.verify_ownership(center_id, actor)
        vessel = Vessel(center_id=center_id, **values)
        return self.vessel_repo.create(vessel)

    def update_vessel(
        self, center_id: str, vessel_id: str, actor, changes: Dict[str, Any]
    ) -> Vessel:
        self.verify_ownership(center_id, actor)
        vessel = self.get_vessel(center_id, vessel_id)
        check_diver_capacity(
            changes.get("capacity", vessel.capacity),
            changes.get("diver_capacity", vessel.diver_capacity),
        )
        for key, value in changes.items():
            setattr(vessel, key, value)
        return self.vessel_repo.save(vessel)

    def delete_vessel(self, center_id: str, vessel_id: str, actor) -> Vessel:
        self.verify_ownership(center_id, actor)
        vessel = self.get_vessel(center_id, vessel_id)
        vessel.status = VesselStatus.DEACTIVATED.value
        return self.vessel_repo.save(vessel)

    # ------------------- Staff -------------------

    def list_staff(self, center_id: str, actor) -> List[CenterStaff]:
        self.verify_center_access(center_id, actor)
        return self.staff_repo.list_active(center_id)

    def get_staff(self, center_id: str, staff_id: str) -> CenterStaff:
        staff = self.staff_repo.get(center_id, staff_id)
        if staff is None:
            raise NotFoundError("Staff member")
        return staff

    def add_staff(self, center_id: str, actor, user_email: str, values: Dict[str, Any]) -> CenterStaff:
        self.verify_ownership(center_id, actor)
        user = self.user_repo.get_by_email(user_email.lower())
        if user is None:
            raise NotFoundError("User with this email")

        membership = self.staff_repo.get_membership(center_id, user.id)
        if membership is not None and membership.is_active:
            raise ConflictError("User is already a staff member")
        if membership is None:
            membership = CenterStaff(center_id=center_id, user_id=user.id)
        for key, value in values.items():
            setattr(membership, key, value)
        membership.is_active = True
        membership.hired_at = utcnow()
        membership.terminated_at = None
        membership = self.staff_repo.save(membership)

        if user.role == UserRole.DIVER.value:
            user.role = UserRole.CENTER_STAFF.value
            self.user_repo.save(user)
        logger.info(
            "Staff member added",
            extra={"context": {"center_id": center_id, "user_id": user.id, "role": membership.role}},
        )
        return membership

    def update_staff(
        self, center_id: str, staff_id: str, actor, changes: Dict[str, Any]
    ) -> CenterStaff:
        self.verify_ownership(center_id, actor)
        staff = self.get_staff(center_id, staff_id)
        for key, value in changes.items():
            setattr(staff, key, value)
        if changes.get("is_active") is False and staff.terminated_at is None:
            staff.terminated_at = utcnow()
        elif changes.get("is_active") is True:
            staff.terminated_at = None
        return self.staff_repo.save(staff)

    def remove_staff(self, center_id: str, staff_id: str, actor) -> CenterStaff:
        self.verify_ownership(center_id, actor)
        staff = self.get_staff(center_id, staff_id)
        staff.is_active = False
        staff.terminated_at = utcnow()
        return self.staff_repo.save(staff)
