"""
Review Service - Business Logic
==================================
Create reviews, keep the product's rating aggregate current, and answer
the read-side questions a product page asks (statistics, latest, filtered).

Only approved reviews are shown or counted. A verified purchase is
approved on creation; anything else waits for a moderator.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func as sa_func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from config.settings import LATEST_REVIEWS_LIMIT, REVIEWS_PER_PAGE
from common.exceptions import AlreadyReviewedError, ForbiddenError, NotFoundError
from common.identity import Identity
from modules.catalog.models import Product
from modules.catalog.service import catalog_service
from modules.order.models import Order, OrderItem, OrderStatus, PaymentStatus
from modules.pricing.calculator import round_money
from modules.review.models import Review
from modules.review.schemas import parse_review_data

logger = logging.getLogger("brewleaf.review")

# An order counts as a purchase once it is paid; cancelled orders never do.
PURCHASED_STATUSES = (OrderStatus.PAID.value, OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value)

SORT_ORDERS = {
    "latest": (Review.created_at.desc(), Review.id.desc()),
    "oldest": (Review.created_at.asc(), Review.id.asc()),
    "highest_rating": (Review.rating.desc(), Review.created_at.desc()),
    "lowest_rating": (Review.rating.asc(), Review.created_at.desc()),
}


class ReviewService:

    def has_purchased(self, db: Session, user_id: int, product_id: int) -> bool:
        return db.query(OrderItem.id).join(Order).filter(
            Order.user_id == user_id,
            Order.status.in_(PURCHASED_STATUSES),
            Order.payment_status == PaymentStatus.PAID.value,
            OrderItem.product_id == product_id,
        ).first() is not None

    def can_review(self, db: Session, identity: Identity, product_id: int) -> dict:
        """{"can_review", "reason", "is_verified_purchase"} for the product page."""
        user_id = identity.user_id_or_none
        if user_id is None:
            return {"can_review": False, "reason": "Log in to leave a review.", "is_verified_purchase": False}
        if self._existing(db, user_id, product_id):
            return {
                "can_review": False,
                "reason": "You have already reviewed this product.",
                "is_verified_purchase": False,
            }
        return {
            "can_review": True,
            "reason": None,
            "is_verified_purchase": self.has_purchased(db, user_id, product_id),
        }

    # ------------------------------------------
    # Create
    # ------------------------------------------

    def create_review(self, db: Session, identity: Identity, product_id: int, data) -> Review:
        """
        One review per customer and product. Raises ForbiddenError for guests,
        NotFoundError, ValidationFailedError, AlreadyReviewedError.
        """
        user_id = identity.user_id_or_none
        if user_id is None:
            raise ForbiddenError("Log in to leave a review.")

        product = catalog_service.get_by_id(db, product_id)
        if not product or product.deleted_at is not None:
            raise NotFoundError(f"Product #{product_id} not found.")

        fields = parse_review_data(data)
        if self._existing(db, user_id, product_id):
            raise AlreadyReviewedError(product_id)

        verified = self.has_purchased(db, user_id, product_id)
        review = Review(
            product_id=product_id,
            user_id=user_id,
            rating=fields.rating,
            comment=fields.comment,
            pros=fields.pros,
            cons=fields.cons,
            is_verified_purchase=verified,
            is_approved=verified,
        )
        try:
            with db.begin_nested():
                db.add(review)
        except IntegrityError as e:
            # Same customer submitting twice at once
            message = str(e.orig)
            if "reviews.product_id" not in message and "uq_review_product_user" not in message:
                raise
            raise AlreadyReviewedError(product_id)

        if review.is_approved:
            self.update_product_rating(db, product_id)

        logger.info(
            f"Review #{review.id} by user {user_id} on product {product_id}: "
            f"{review.rating} stars" + ("" if verified else " (awaiting moderation)")
        )
        return review

    def update_product_rating(self, db: Session, product_id: int) -> Optional[Product]:
        """Recompute the product's average rating and review count from approved reviews."""
        count, avg = db.query(
            sa_func.count(Review.id), sa_func.avg(Review.rating),
        ).filter(Review.product_id == product_id, Review.is_approved == True).first()

        product = catalog_service.get_by_id(db, product_id)
        if not product:
            return None
        product.reviews_count = count or 0
        product.rating = round_money(avg) if count else round_money(0)
        db.flush()
        return product

    # ------------------------------------------
    # Query
    # ------------------------------------------

    def get_review_statistics(self, db: Session, product_id: int) -> dict:
        rows = (
            db.query(Review.rating, Review.is_verified_purchase, sa_func.count(Review.id))
            .filter(Review.product_id == product_id, Review.is_approved == True)
            .group_by(Review.rating, Review.is_verified_purchase)
            .all()
        )
        distribution = {stars: 0 for stars in range(5, 0, -1)}
        total = verified = stars_sum = 0
        for rating, is_verified, count in rows:
            distribution[rating] += count
            total += count
            stars_sum += rating * count
            if is_verified:
                verified += count

        return {
            "total": total,
            "average_rating": round_money(Decimal(stars_sum) / total) if total else round_money(0),
            "ratings_distribution": distribution,
            "verified_count": verified,
        }

    def get_ratings_percentage(self, db: Session, product_id: int) -> dict:
        """Share of approved reviews per star count, one decimal."""
        stats = self.get_review_statistics(db, product_id)
        total = stats["total"]
        return {
            stars: round(count * 100 / total, 1) if total else 0
            for stars, count in stats["ratings_distribution"].items()
        }

    def get_latest_reviews(self, db: Session, product_id: int, limit: int = LATEST_REVIEWS_LIMIT) -> List[Review]:
        return (
            self._approved(db, product_id)
            .order_by(*SORT_ORDERS["latest"])
            .limit(limit)
            .all()
        )

    def get_filtered_reviews(
        self,
        db: Session,
        product_id: int,
        rating: Optional[int] = None,
        verified_only: bool = False,
        sort: str = "latest",
        page: int = 1,
        per_page: int = REVIEWS_PER_PAGE,
    ) -> Tuple[List[Review], int]:
        """Approved reviews, optionally one star count or verified only. Unknown sort = latest."""
        q = self._approved(db, product_id)
        if rating:
            q = q.filter(Review.rating == rating)
        if verified_only:
            q = q.filter(Review.is_verified_purchase == True)

        total = q.count()
        page = max(page, 1)
        reviews = (
            q.order_by(*SORT_ORDERS.get(sort, SORT_ORDERS["latest"]))
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return reviews, total

    # ------------------------------------------
    # Private Helpers
    # ------------------------------------------

    def _existing(self, db: Session, user_id: int, product_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.product_id == product_id, Review.user_id == user_id).first()

    def _approved(self, db: Session, product_id: int):
        return (
            db.query(Review)
            .options(joinedload(Review.user))
            .filter(Review.product_id == product_id, Review.is_approved == True)
        )


# Singleton
review_service = ReviewService()
