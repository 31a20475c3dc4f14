"""
Center and instructor reviews. Reading is public; writing needs a completed booking.
"""

from flask import Blueprint
from flask_login import login_required

from dive_platform.core.api_utils import (
    api_response,
    get_json_body,
    page_params,
    paginated_response,
    query_int,
)
from dive_platform.core.auth_decorators import get_current_user
from dive_platform.core.limiter_config import WRITE_LIMIT, limiter
from dive_platform.db.session import SessionLocal
from dive_platform.domain.enums import ReviewableType
from dive_platform.schemas.reviews import ReviewCreateRequest, ReviewResponse, ReviewUpdateRequest
from dive_platform.services.container import build_review_service

review_bp = Blueprint("reviews", __name__, url_prefix="/reviews")


def _review(review) -> dict:
    return ReviewResponse.from_domain(review).to_dict()


def _list_for(reviewable_type: str, reviewable_id: str):
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_review_service(db).list_for_target(
            reviewable_type, reviewable_id, query_int("rating"), page, limit
        )
        return paginated_response(result, _review)
    finally:
        db.close()


@review_bp.route("/centers/<center_id>", methods=["GET"])
def list_center_reviews(center_id):
    return _list_for(ReviewableType.CENTER.value, center_id)


@review_bp.route("/instructors/<user_id>", methods=["GET"])
def list_instructor_reviews(user_id):
    return _list_for(ReviewableType.INSTRUCTOR.value, user_id)


@review_bp.route("/mine", methods=["GET"])
@login_required
def list_my_reviews():
    page, limit = page_params()
    db = SessionLocal()
    try:
        result = build_review_service(db).list_mine(get_current_user().id, page, limit)
        return paginated_response(result, _review)
    finally:
        db.close()


@review_bp.route("", methods=["POST"])
@login_required
@limiter.limit(WRITE_LIMIT)
def create_review():
    payload = ReviewCreateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        review = build_review_service(db).create_review(get_current_user().id, payload)
        return api_response(_review(review), "Review created", status_code=201)
    finally:
        db.close()


@review_bp.route("/<review_id>", methods=["PATCH"])
@login_required
@limiter.limit(WRITE_LIMIT)
def update_review(review_id):
    payload = ReviewUpdateRequest.from_dict(get_json_body())
    db = SessionLocal()
    try:
        review = build_review_service(db).update_review(
            get_current_user().id, review_id, payload.changes
        )
        return api_response(_review(review), "Review updated")
    finally:
        db.close()


@review_bp.route("/<review_id>", methods=["DELETE"])
@login_required
def delete_review(review_id):
    db = SessionLocal()
    try:
        build_review_service(db).delete_review(get_current_user().id, review_id)
        return api_response(message="Review deleted")
    finally:
        db.close()
