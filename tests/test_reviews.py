"""Tests for product reviews and rating aggregates."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from common.exceptions import (
    AlreadyReviewedError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from common.identity import Authenticated
from modules.cart.service import cart_service
from modules.catalog.models import Product
from modules.order.service import order_service
from modules.review.models import Review
from modules.review.service import review_service

D = Decimal

REVIEW = {"rating": 5, "comment": "Bright, fruity and very fresh."}


@pytest.fixture
def buy(db, checkout_form):
    """Check out one unit of `product` for `identity`; paid unless told otherwise."""

    def _buy(identity, product, paid=True):
        cart_service.add_item(db, identity, product.id, 1)
        order = order_service.checkout(db, identity, checkout_form())
        if paid:
            order_service.mark_as_paid(db, order)
        db.commit()
        return order

    return _buy


@pytest.fixture
def add_review(db):
    """Review row as a moderator would have left it."""

    def _add(product, user, rating, verified=False, approved=True, created_at=None):
        review = Review(
            product_id=product.id,
            user_id=user.id,
            rating=rating,
            comment="Seeded review text.",
            is_verified_purchase=verified,
            is_approved=approved,
            created_at=created_at or datetime.now(timezone.utc),
        )
        db.add(review)
        db.commit()
        return review

    return _add


def product_of(db, product):
    db.expire_all()
    return db.get(Product, product.id)


class TestCreate:
    def test_verified_purchase_is_published(self, db, make_product, customer, buy):
        product = make_product()
        buy(customer, product)

        review = review_service.create_review(db, customer, product.id, {**REVIEW, "pros": "  Aroma ", "cons": " "})
        db.commit()

        assert review.is_verified_purchase is True
        assert review.is_approved is True
        assert review.pros == "Aroma"
        assert review.cons is None
        stored = product_of(db, product)
        assert stored.rating == D("5.00")
        assert stored.reviews_count == 1

    def test_without_purchase_waits_for_moderation(self, db, make_product, customer):
        product = make_product()

        review = review_service.create_review(db, customer, product.id, REVIEW)
        db.commit()

        assert review.is_verified_purchase is False
        assert review.is_approved is False
        stored = product_of(db, product)
        assert stored.rating == D("0.00")
        assert stored.reviews_count == 0

    def test_unpaid_order_is_not_a_purchase(self, db, make_product, customer, buy):
        product = make_product()
        buy(customer, product, paid=False)

        assert review_service.has_purchased(db, customer.user_id, product.id) is False

    def test_cancelled_order_is_not_a_purchase(self, db, make_product, customer, buy):
        product = make_product()
        order = buy(customer, product)
        order_service.cancel_order(db, order)
        db.commit()

        assert review_service.has_purchased(db, customer.user_id, product.id) is False

    def test_guest_cannot_review(self, db, make_product, guest):
        with pytest.raises(ForbiddenError):
            review_service.create_review(db, guest, make_product().id, REVIEW)

    def test_unknown_or_deleted_product(self, db, make_product, customer):
        with pytest.raises(NotFoundError):
            review_service.create_review(db, customer, 9999, REVIEW)
        with pytest.raises(NotFoundError):
            review_service.create_review(db, customer, make_product(deleted=True).id, REVIEW)

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"rating": 0}, "rating"),
            ({"rating": 6}, "rating"),
            ({"comment": "  too short "}, "comment"),
            ({"comment": "x" * 1001}, "comment"),
            ({"pros": "x" * 501}, "pros"),
        ],
    )
    def test_field_errors(self, db, make_product, customer, overrides, field):
        with pytest.raises(ValidationFailedError) as exc:
            review_service.create_review(db, customer, make_product().id, {**REVIEW, **overrides})
        assert field in exc.value.errors

    def test_one_review_per_product(self, db, make_product, customer):
        product = make_product()
        review_service.create_review(db, customer, product.id, REVIEW)
        db.commit()

        with pytest.raises(AlreadyReviewedError) as exc:
            review_service.create_review(db, customer, product.id, {**REVIEW, "rating": 1})

        assert exc.value.status_code == 409
        assert db.query(Review).count() == 1

    def test_unique_constraint_catches_a_simultaneous_duplicate(self, db, make_product, customer, monkeypatch):
        product = make_product()
        first = review_service.create_review(db, customer, product.id, REVIEW)
        monkeypatch.setattr(review_service, "_existing", lambda db, user_id, product_id: None)

        with pytest.raises(AlreadyReviewedError):
            review_service.create_review(db, customer, product.id, REVIEW)

        db.commit()
        assert [r.id for r in db.query(Review).all()] == [first.id]


class TestRatingAggregate:
    def test_average_of_approved_reviews(self, db, make_user, make_product, add_review):
        product = make_product()
        for rating in (5, 4, 4):
            add_review(product, make_user(), rating)
        add_review(product, make_user(), 1, approved=False)

        review_service.update_product_rating(db, product.id)
        db.commit()

        stored = product_of(db, product)
        assert stored.rating == D("4.33")
        assert stored.reviews_count == 3

    def test_resets_when_nothing_is_approved(self, db, make_user, make_product, add_review):
        product = make_product()
        review = add_review(product, make_user(), 5)
        review_service.update_product_rating(db, product.id)
        review.is_approved = False
        db.commit()

        review_service.update_product_rating(db, product.id)

        assert product.rating == D("0.00")
        assert product.reviews_count == 0

    def test_verified_reviews_from_two_buyers(self, db, make_user, make_product, buy):
        product = make_product()
        for rating in (5, 4):
            buyer = Authenticated(make_user().id)
            buy(buyer, product)
            review_service.create_review(db, buyer, product.id, {**REVIEW, "rating": rating})
            db.commit()

        stored = product_of(db, product)
        assert stored.rating == D("4.50")
        assert stored.reviews_count == 2


class TestStatistics:
    def test_counts_only_approved(self, db, make_user, make_product, add_review):
        product = make_product()
        add_review(product, make_user(), 5, verified=True)
        add_review(product, make_user(), 5)
        add_review(product, make_user(), 4, verified=True)
        add_review(product, make_user(), 2, approved=False)

        stats = review_service.get_review_statistics(db, product.id)

        assert stats == {
            "total": 3,
            "average_rating": D("4.67"),
            "ratings_distribution": {5: 2, 4: 1, 3: 0, 2: 0, 1: 0},
            "verified_count": 2,
        }
        assert list(stats["ratings_distribution"]) == [5, 4, 3, 2, 1]

    def test_percentages(self, db, make_user, make_product, add_review):
        product = make_product()
        for rating in (5, 5, 4):
            add_review(product, make_user(), rating)

        assert review_service.get_ratings_percentage(db, product.id) == {5: 66.7, 4: 33.3, 3: 0, 2: 0, 1: 0}

    def test_no_reviews(self, db, make_product):
        product = make_product()

        stats = review_service.get_review_statistics(db, product.id)

        assert stats["total"] == 0
        assert stats["average_rating"] == D("0.00")
        assert review_service.get_ratings_percentage(db, product.id) == {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}


class TestQueries:
    @pytest.fixture
    def reviews(self, make_user, make_product, add_review):
        product = make_product()
        start = datetime(2026, 3, 1, tzinfo=timezone.utc)
        rows = [
            add_review(product, make_user(), rating, verified=verified, created_at=start + timedelta(days=i))
            for i, (rating, verified) in enumerate([(3, False), (5, True), (1, False), (4, True)])
        ]
        add_review(product, make_user(), 5, approved=False, created_at=start + timedelta(days=10))
        return product, rows

    def test_latest(self, db, reviews):
        product, rows = reviews

        latest = review_service.get_latest_reviews(db, product.id, limit=2)

        assert [r.id for r in latest] == [rows[3].id, rows[2].id]

    @pytest.mark.parametrize(
        "sort, expected",
        [
            ("latest", [4, 1, 5, 3]),
            ("oldest", [3, 5, 1, 4]),
            ("highest_rating", [5, 4, 3, 1]),
            ("lowest_rating", [1, 3, 4, 5]),
            ("bogus", [4, 1, 5, 3]),
        ],
    )
    def test_sorting(self, db, reviews, sort, expected):
        product, _ = reviews

        found, total = review_service.get_filtered_reviews(db, product.id, sort=sort)

        assert [r.rating for r in found] == expected
        assert total == 4

    def test_filters(self, db, reviews):
        product, rows = reviews

        by_rating, _ = review_service.get_filtered_reviews(db, product.id, rating=5)
        verified, total = review_service.get_filtered_reviews(db, product.id, verified_only=True)

        assert [r.id for r in by_rating] == [rows[1].id]
        assert {r.id for r in verified} == {rows[1].id, rows[3].id}
        assert total == 2

    def test_pagination(self, db, reviews):
        product, rows = reviews

        page, total = review_service.get_filtered_reviews(db, product.id, sort="oldest", page=2, per_page=3)

        assert total == 4
        assert [r.id for r in page] == [rows[3].id]


class TestCanReview:
    def test_guest(self, db, make_product, guest):
        result = review_service.can_review(db, guest, make_product().id)
        assert result["can_review"] is False
        assert "Log in" in result["reason"]

    def test_buyer_then_reviewed(self, db, make_product, customer, buy):
        product = make_product()
        buy(customer, product)

        assert review_service.can_review(db, customer, product.id) == {
            "can_review": True, "reason": None, "is_verified_purchase": True,
        }

        review_service.create_review(db, customer, product.id, REVIEW)
        db.commit()

        assert review_service.can_review(db, customer, product.id)["can_review"] is False


class TestReviewRoutes:
    def test_guest_must_log_in(self, client, make_product):
        response = client.post(f"/api/products/{make_product().id}/reviews", json=REVIEW)
        assert response.status_code == 401

    def test_submit_list_and_stats(self, client, db, login, make_user, make_product, buy):
        product = make_product()
        user = make_user()
        buy(Authenticated(user.id), product)
        login(user)

        assert client.get(f"/api/products/{product.id}/reviews/eligibility").json()["is_verified_purchase"] is True

        created = client.post(f"/api/products/{product.id}/reviews", json={**REVIEW, "rating": 4})
        assert created.status_code == 201
        assert created.json()["review"]["is_approved"] is True
        assert created.json()["review"]["author"] == "Jane Doe"

        again = client.post(f"/api/products/{product.id}/reviews", json=REVIEW)
        assert again.status_code == 409
        assert again.json()["code"] == "AlreadyReviewed"

        listed = client.get(f"/api/products/{product.id}/reviews", params={"verified_only": True}).json()
        assert listed["total"] == 1
        assert listed["reviews"][0]["rating"] == 4

        stats = client.get(f"/api/products/{product.id}/reviews/stats").json()
        assert stats["average_rating"] == "4.00"
        assert stats["ratings_distribution"]["4"] == 1
        assert stats["ratings_percentage"]["4"] == 100.0
        assert len(stats["latest"]) == 1

    def test_unapproved_review_is_hidden(self, client, login, make_user, make_product):
        product = make_product()
        login(make_user())

        created = client.post(f"/api/products/{product.id}/reviews", json=REVIEW).json()

        assert created["review"]["is_approved"] is False
        assert "moderator" in created["message"]
        assert client.get(f"/api/products/{product.id}/reviews").json()["total"] == 0

    def test_bad_input(self, client, login, make_user, make_product):
        login(make_user())
        response = client.post(f"/api/products/{make_product().id}/reviews", json={"rating": 9, "comment": "ok"})

        assert response.status_code == 422
        assert set(response.json()["errors"]) == {"rating", "comment"}
