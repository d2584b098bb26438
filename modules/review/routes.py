"""
Review Routes
===============
Product reviews: list with filters, statistics, eligibility, submit.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import REVIEWS_PER_PAGE
from common.identity import Authenticated, Identity
from modules.auth.deps import get_identity, require_login
from modules.review.service import review_service

router = APIRouter(prefix="/api/products/{product_id}/reviews", tags=["reviews"])


def serialize_review(review) -> dict:
    return {
        "id": review.id,
        "product_id": review.product_id,
        "author": review.author_name,
        "rating": review.rating,
        "comment": review.comment,
        "pros": review.pros,
        "cons": review.cons,
        "is_verified_purchase": review.is_verified_purchase,
        "is_approved": review.is_approved,
        "created_at": review.created_at.isoformat() if review.created_at else None,
    }


@router.get("")
async def list_reviews(
    product_id: int,
    rating: Optional[int] = Query(None, ge=1, le=5),
    verified_only: bool = False,
    sort: str = "latest",
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
):
    reviews, total = review_service.get_filtered_reviews(
        db, product_id, rating=rating, verified_only=verified_only, sort=sort, page=page,
    )
    return {
        "reviews": [serialize_review(r) for r in reviews],
        "total": total,
        "page": page,
        "per_page": REVIEWS_PER_PAGE,
    }


@router.get("/stats")
async def review_stats(product_id: int, db: Session = Depends(get_db)):
    stats = review_service.get_review_statistics(db, product_id)
    return {
        **stats,
        "average_rating": str(stats["average_rating"]),
        "ratings_percentage": review_service.get_ratings_percentage(db, product_id),
        "latest": [serialize_review(r) for r in review_service.get_latest_reviews(db, product_id)],
    }


@router.get("/eligibility")
async def review_eligibility(
    product_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    return review_service.can_review(db, identity, product_id)


@router.post("", status_code=201)
async def create_review(
    product_id: int,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user=Depends(require_login),
):
    try:
        review = review_service.create_review(db, Authenticated(user.id), product_id, data)
        db.commit()
    except Exception:
        db.rollback()
        raise

    message = "Thank you for your review!"
    if not review.is_approved:
        message += " It will appear once a moderator approves it."
    return {"status": "success", "message": message, "review": serialize_review(review)}
