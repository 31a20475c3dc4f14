from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dive_platform.db.base import CenterStaff, DivingCenter, Vessel
from dive_platform.domain.enums import CenterStatus, VesselStatus
from dive_platform.domain.interfaces import ICenterRepository


class CenterRepository(ICenterRepository):
    """Repository for diving centers."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, center_id: str) -> Optional[DivingCenter]:
        return self.db.get(DivingCenter, center_id)

    def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(DivingCenter.id).where(DivingCenter.slug == slug)
        if exclude_id:
            stmt = stmt.where(DivingCenter.id != exclude_id)
        return self.db.execute(stmt).first() is not None

    def list_active(
        self, city: Optional[str], offset: int, limit: int
    ) -> Tuple[List[DivingCenter], int]:
        conditions = [DivingCenter.status == CenterStatus.ACTIVE.value]
        if city:
            conditions.append(func.lower(DivingCenter.city) == city.strip().lower())
        total = self.db.execute(
            select(func.count()).select_from(DivingCenter).where(*conditions)
        ).scalar_one()
        stmt = (
            select(DivingCenter)
            .where(*conditions)
            .order_by(
                DivingCenter.rating_average.desc(),
                DivingCenter.total_reviews.desc(),
                DivingCenter.name_en.asc(),
            )
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

    def list_owned_by(self, user_id: str) -> List[DivingCenter]:
        stmt = select(DivingCenter).where(DivingCenter.owner_user_id == user_id)
        return list(self.db.execute(stmt).scalars().all())

    def create(self, center: DivingCenter) -> DivingCenter:
        self.db.add(center)
        self.db.commit()
        self.db.refresh(center)
        return center

    def save(self, center: DivingCenter) -> DivingCenter:
        self.db.add(center)
        self.db.commit()
        self.db.refresh(center)
        return center


class VesselRepository:
    """Repository for vessels; every lookup is scoped to a center."""

    def __init__(self, db: Session):
        self.db = db

    def list_for_center(self, center_id: str) -> List[Vessel]:
        stmt = (
            select(Vessel)
            .where(
                Vessel.center_id == center_id,
                Vessel.status != VesselStatus.DEACTIVATED.value,
            )
            .order_by(Vessel.name.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get(self, center_id: str, vessel_id: str) -> Optional[Vessel]:
        stmt = select(Vessel).where(Vessel.id == vessel_id, Vessel.center_id == center_id)
        return self.db.execute(stmt).scalars().first()

    def create(self, vessel: Vessel) -> Vessel:
        self.db.add(vessel)
        self.db.commit()
        self.db.refresh(vessel)
        return vessel

    def save(self, vessel: Vessel) -> Vessel:
        self.db.add(vessel)
        self.db.commit()
        self.db.refresh(vessel)
        return vessel


class StaffRepository:
    """Repository for center staff memberships."""

    def __init__(self, db: Session):
        self.db = db

    def list_active(self, center_id: str) -> List[CenterStaff]:
        stmt = (
            select(CenterStaff)
            .where(CenterStaff.center_id == center_id, CenterStaff.is_active.is_(True))
            .order_by(CenterStaff.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def get(self, center_id: str, staff_id: str) -> Optional[CenterStaff]:
        stmt = select(CenterStaff).where(
            CenterStaff.id == staff_id, CenterStaff.center_id == center_id
        )
        return self.db.execute(stmt).scalars().first()

    def get_membership(self, center_id: str, user_id: str) -> Optional[CenterStaff]:
        stmt = select(CenterStaff).where(
            CenterStaff.center_id == center_id, CenterStaff.user_id == user_id
        )
        return self.db.execute(stmt).scalars().first()

    def is_active_member(self, center_id: str, user_id: str) -> bool:
        membership = self.get_membership(center_id, user_id)
        return bool(membership and membership.is_active)

    def save(self, staff: CenterStaff) -> CenterStaff:
        self.db.add(staff)
        self.db.commit()
        self.db.refresh(staff)
        return staff
