"""
Reviews of diving centers and instructors.

A diver reviews a center or the trip's lead instructor once per completed
booking. Every write recomputes the target's ``rating_average`` and
``total_reviews`` from published reviews in the same commit.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from dive_platform.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from dive_platform.db.base import Review
from dive_platform.domain.enums import BookingStatus, ReviewableType, ReviewStatus
from dive_platform.repositories.booking_repository import BookingRepository
from dive_platform.repositories.center_repository import CenterRepository
from dive_platform.repositories.instructor_repository import InstructorRepository
from dive_platform.repositories.review_repository import ReviewRepository
from dive_platform.schemas.reviews import ReviewCreateRequest
from dive_platform.utils.date_utils import ensure_aware, utcnow
from dive_platform.utils.pagination import offset_for, paginate

logger = logging.getLogger(__name__)

EDIT_WINDOW = timedelta(days=7)


class ReviewService:
    def __init__(
        self,
        review_repo: ReviewRepository,
        booking_repo: BookingRepository,
        center_repo: CenterRepository,
        instructor_repo: InstructorRepository,
    ):
        self.review_repo = review_repo
        self.booking_repo = booking_repo
        self.center_repo = center_repo
        self.instructor_repo = instructor_repo

    def _target(self, reviewable_type: str, reviewable_id: str):
        """The center or instructor profile carrying the cached rating."""
        if reviewable_type == ReviewableType.CENTER.value:
            target = self.center_repo.get_by_id(reviewable_id)
            if target is None:
                raise NotFoundError("Diving center")
        else:
            target = self.instructor_repo.get_by_user_id(reviewable_id)
            if target is None:
                raise NotFoundError("Instructor")
        return target

    def _get_own(self, user_id: str, review_id: str) -> Review:
        review = self.review_repo.get(review_id)
        if review is None:
            raise NotFoundError("Review")
        if review.user_id != user_id:
            raise ForbiddenError("You can only change your own reviews")
        return review

    def create_review(self, user_id: str, request: ReviewCreateRequest) -> Review:
        booking = self.booking_repo.get_by_id(request.booking_id)
        if booking is None:
            raise NotFoundError("Booking")
        if booking.user_id != user_id:
            raise ForbiddenError("You can only review your own bookings")
        if booking.status != BookingStatus.COMPLETED.value:
            raise ValidationError("You can only review completed bookings")

        if request.reviewable_type == ReviewableType.CENTER.value:
            if booking.center_id != request.reviewable_id:
                raise ValidationError("This center is not associated with your booking")
        elif booking.trip.lead_instructor_id != request.reviewable_id:
            raise ValidationError("This instructor was not part of your trip")

        if self.review_repo.exists(
            user_id, booking.id, request.reviewable_type, request.reviewable_id
        ):
            raise ConflictError("You have already reviewed this for this booking")

        target = self._target(request.reviewable_type, request.reviewable_id)
        review = Review(
            user_id=user_id,
            booking_id=booking.id,
            reviewable_type=request.reviewable_type,
            reviewable_id=request.reviewable_id,
            rating=request.rating,
            title=request.title,
            content=request.content,
            status=ReviewStatus.PUBLISHED.value,
        )
        review = self.review_repo.save_with_rating(review, target)
        logger.info(
            "Review created",
            extra={
                "context": {
                    "review_id": review.id,
                    "reviewable_type": review.reviewable_type,
                    "reviewable_id": review.reviewable_id,
                    "rating": review.rating,
                }
            },
        )
        return review

    def list_for_target(
        self, reviewable_type: str, reviewable_id: str, rating: Optional[int], page: int, limit: int
    ) -> Dict[str, Any]:
        self._target(reviewable_type, reviewable_id)
        items, total = self.review_repo.list_for_target(
            reviewable_type, reviewable_id, rating, offset_for(page, limit), limit
        )
        return paginate(items, total, page, limit)

    def list_mine(self, user_id: str, page: int, limit: int) -> Dict[str, Any]:
        items, total = self.review_repo.list_for_user(user_id, offset_for(page, limit), limit)
        return paginate(items, total, page, limit)

    def update_review(self, user_id: str, review_id: str, changes: Dict[str, Any]) -> Review:
        review = self._get_own(user_id, review_id)
        if ensure_aware(review.created_at) < utcnow() - EDIT_WINDOW:
            raise ValidationError("Reviews can only be edited within 7 days of creation")
        for key, value in changes.items():
            setattr(review, key, value)
        target = self._target(review.reviewable_type, review.reviewable_id)
        return self.review_repo.save_with_rating(review, target)

    def delete_review(self, user_id: str, review_id: str) -> None:
        review = self._get_own(user_id, review_id)
        target = self._target(review.reviewable_type, review.reviewable_id)
        self.review_repo.save_with_rating(review, target, delete=True)
        logger.info("Review deleted", extra={"context": {"review_id": review_id}})
