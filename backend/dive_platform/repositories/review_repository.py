from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dive_platform.db.base import Review
from dive_platform.domain.enums import ReviewStatus

RATING_PLACES = Decimal("0.01")


class ReviewRepository:
    """Reviews plus the rating aggregates cached on centers and instructors."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, review_id: str) -> Optional[Review]:
        return self.db.get(Review, review_id)

    def exists(self, user_id: str, booking_id: str, reviewable_type: str, reviewable_id: str) -> bool:
        stmt = select(Review.id).where(
            Review.user_id == user_id,
            Review.booking_id == booking_id,
            Review.reviewable_type == reviewable_type,
            Review.reviewable_id == reviewable_id,
        )
        return self.db.execute(stmt).first() is not None

    def list_for_target(
        self,
        reviewable_type: str,
        reviewable_id: str,
        rating: Optional[int],
        offset: int,
        limit: int,
    ) -> Tuple[List[Review], int]:
        conditions = [
            Review.reviewable_type == reviewable_type,
            Review.reviewable_id == reviewable_id,
            Review.status == ReviewStatus.PUBLISHED.value,
        ]
        if rating is not None:
            conditions.append(Review.rating == rating)

        total = self.db.execute(
            select(func.count()).select_from(Review).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Review)
            .where(*conditions)
            .order_by(Review.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().unique().all()), total

    def list_for_user(self, user_id: str, offset: int, limit: int) -> Tuple[List[Review], int]:
        total = self.db.execute(
            select(func.count()).select_from(Review).where(Review.user_id == user_id)
        ).scalar_one()
        stmt = (
            select(Review)
            .where(Review.user_id == user_id)
            .order_by(Review.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().unique().all()), total

    def rating_stats(self, reviewable_type: str, reviewable_id: str) -> Tuple[Decimal, int]:
        """Average and count over published reviews; ``(0, 0)`` when there are none."""
        stmt = select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.reviewable_type == reviewable_type,
            Review.reviewable_id == reviewable_id,
            Review.status == ReviewStatus.PUBLISHED.value,
        )
        average, count = self.db.execute(stmt).one()
        if not count:
            return Decimal("0"), 0
        return Decimal(str(average)).quantize(RATING_PLACES, rounding=ROUND_HALF_UP), count

    def save_with_rating(self, review: Review, target, delete: bool = False) -> Review:
        """Write (or delete) ``review`` and refresh ``target``'s cached rating in one commit."""
        if delete:
            self.db.delete(review)
        else:
            self.db.add(review)
        self.db.flush()
        target.rating_average, target.total_reviews = self.rating_stats(
            review.reviewable_type, review.reviewable_id
        )
        self.db.add(target)
        self.db.commit()
        if not delete:
            self.db.refresh(review)
        return review
