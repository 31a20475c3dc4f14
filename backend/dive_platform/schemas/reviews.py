"""DTOs for center and instructor reviews."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from dive_platform.core.exceptions import ValidationError
from dive_platform.core.validation import Validator
from dive_platform.domain.enums import ReviewableType
from dive_platform.schemas.common import FieldParser, ResponseDTO, collect_fields, text_field

REVIEW_CONTENT_FIELDS: Dict[str, FieldParser] = {
    "rating": lambda v, r: Validator.integer(v, "rating", r, min_value=1, max_value=5, required=True),
    "title": text_field("title", 200, min_length=3),
    "content": text_field("content", 2000, min_length=10),
}


@dataclass
class ReviewCreateRequest:
    booking_id: str
    reviewable_type: str
    reviewable_id: str
    rating: int
    title: Optional[str] = None
    content: Optional[str] = None

    PARSERS = {
        "booking_id": text_field("booking_id", 36, required=True),
        "reviewable_type": lambda v, r: Validator.string(
            v, "reviewable_type", r, required=True, choices=ReviewableType.values()
        ),
        "reviewable_id": text_field("reviewable_id", 36, required=True),
        **REVIEW_CONTENT_FIELDS,
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewCreateRequest":
        return cls(**collect_fields(data, cls.PARSERS, partial=False))


@dataclass
class ReviewUpdateRequest:
    changes: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewUpdateRequest":
        changes = collect_fields(data, REVIEW_CONTENT_FIELDS, partial=True)
        if not changes:
            raise ValidationError("At least one field must be provided for update")
        return cls(changes=changes)


@dataclass
class ReviewResponse(ResponseDTO):
    id: str
    user_id: str
    reviewer_name: Optional[str]
    booking_id: str
    reviewable_type: str
    reviewable_id: str
    rating: int
    title: Optional[str]
    content: Optional[str]
    status: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_domain(cls, review) -> "ReviewResponse":
        return cls(
            id=review.id,
            user_id=review.user_id,
            reviewer_name=review.user.full_name if review.user else None,
            booking_id=review.booking_id,
            reviewable_type=review.reviewable_type,
            reviewable_id=review.reviewable_id,
            rating=review.rating,
            title=review.title,
            content=review.content,
            status=review.status,
            created_at=review.created_at,
            updated_at=review.updated_at,
        )
