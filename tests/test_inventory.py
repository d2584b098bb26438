"""Tests for stock bookkeeping."""

import pytest

from common.exceptions import InsufficientStockError
from modules.inventory.service import inventory_service


class TestDecrement:
    def test_takes_stock(self, db, make_product):
        product = make_product(stock=5)

        assert inventory_service.decrement(db, product.id, 3) == 2
        # The cached row reloads after the bulk UPDATE
        assert product.stock == 2

    def test_exact_stock(self, db, make_product):
        product = make_product(stock=2)
        assert inventory_service.decrement(db, product.id, 2) == 0

    def test_refuses_when_short(self, db, make_product):
        product = make_product(name="Earl Grey", stock=2)

        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.decrement(db, product.id, 3, product.name)

        assert exc.value.available == 2
        assert exc.value.requested == 3
        assert "Earl Grey" in exc.value.message
        assert inventory_service.available_stock(db, product.id) == 2

    def test_missing_product(self, db):
        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.decrement(db, 424242, 1)
        assert exc.value.available == 0

    def test_quantity_must_be_positive(self, db, make_product):
        product = make_product()
        with pytest.raises(ValueError):
            inventory_service.decrement(db, product.id, 0)


class TestRestore:
    def test_puts_stock_back(self, db, make_product):
        product = make_product(stock=1)

        assert inventory_service.restore(db, product.id, 4) is True
        assert product.stock == 5

    def test_unlinked_product(self, db):
        assert inventory_service.restore(db, None, 2) is False

    def test_missing_product(self, db):
        assert inventory_service.restore(db, 424242, 2) is False


class TestLockProducts:
    def test_returns_found_rows_by_id(self, db, make_product):
        a, b = make_product(), make_product()

        locked = inventory_service.lock_products(db, [b.id, a.id, b.id, 424242])

        assert sorted(locked) == [a.id, b.id]
        assert locked[a.id] is a

    def test_no_ids(self, db):
        assert inventory_service.lock_products(db, []) == {}
