"""Tests for order number allocation."""

import pytest

from common.exceptions import NumberAllocationConflictError
from common.helpers import now_utc
from common.identity import Guest
from modules.cart.service import cart_service
from modules.catalog.models import Product
from modules.order.models import Order
from modules.order.numbering import (
    format_order_number,
    order_number_allocator,
    parse_order_number,
)
from modules.order.service import order_service


class TestFormat:
    def test_format(self):
        assert format_order_number(2026, 1) == "ORD-2026-00001"
        assert format_order_number(2026, 12345) == "ORD-2026-12345"

    def test_parse(self):
        assert parse_order_number("ORD-2026-00042") == (2026, 42)

    @pytest.mark.parametrize("number", ["", None, "ORD-26-00001", "INV-2026-00001", "ORD-2026-1"])
    def test_parse_rejects_foreign_numbers(self, number):
        assert parse_order_number(number) is None


class TestAllocator:
    def test_first_of_year(self, db):
        assert order_number_allocator.next_order_number(db, year=2026) == "ORD-2026-00001"

    def test_sequence(self, db, make_order):
        make_order("ORD-2026-00001")
        assert order_number_allocator.next_order_number(db, year=2026) == "ORD-2026-00002"

        make_order("ORD-2026-00002")
        assert order_number_allocator.next_order_number(db, year=2026) == "ORD-2026-00003"

    def test_restarts_each_year(self, db, make_order):
        make_order("ORD-2025-00041")
        make_order("ORD-2025-00042")

        assert order_number_allocator.next_order_number(db, year=2026) == "ORD-2026-00001"
        assert order_number_allocator.next_order_number(db, year=2025) == "ORD-2025-00043"

    def test_defaults_to_current_year(self, db):
        year = now_utc().year
        assert order_number_allocator.next_order_number(db) == f"ORD-{year}-00001"


class TestCheckoutNumbering:
    def test_consecutive_checkouts(self, db, make_product, checkout_form):
        product = make_product(stock=10)
        year = now_utc().year
        numbers = []
        for token in ("guest-a", "guest-b"):
            identity = Guest(token)
            cart_service.add_item(db, identity, product.id, 1)
            db.commit()
            numbers.append(order_service.checkout(db, identity, checkout_form()).order_number)
            db.commit()

        assert numbers == [f"ORD-{year}-00001", f"ORD-{year}-00002"]

    def test_collision_retries_with_fresh_number(self, db, make_product, make_order, guest, checkout_form, monkeypatch):
        year = now_utc().year
        make_order(f"ORD-{year}-00001")
        product = make_product(stock=5)
        cart_service.add_item(db, guest, product.id, 1)
        db.commit()

        handed_out = iter([f"ORD-{year}-00001", f"ORD-{year}-00002"])
        monkeypatch.setattr(order_number_allocator, "next_order_number", lambda db, year=None: next(handed_out))

        order = order_service.checkout(db, guest, checkout_form())
        db.commit()

        assert order.order_number == f"ORD-{year}-00002"
        assert db.query(Order).count() == 2
        assert db.get(Product, product.id).stock == 4

    def test_gives_up_after_max_attempts(self, db, make_product, make_order, guest, checkout_form, monkeypatch):
        year = now_utc().year
        make_order(f"ORD-{year}-00001")
        product = make_product(stock=5)
        cart_service.add_item(db, guest, product.id, 1)
        db.commit()

        taken = f"ORD-{year}-00001"
        monkeypatch.setattr(order_number_allocator, "next_order_number", lambda db, year=None: taken)

        with pytest.raises(NumberAllocationConflictError):
            order_service.checkout(db, guest, checkout_form())

        assert db.query(Order).count() == 1
        assert db.get(Product, product.id).stock == 5
        assert cart_service.count_items(db, guest) == 1
