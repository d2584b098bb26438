"""
Inventory Module - Service Layer
==================================
Product stock bookkeeping for orders: row locks, guarded decrement, restore.

Stock is only ever changed with single UPDATE statements so the sufficiency
check and the write cannot be split by a concurrent transaction.
"""

import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from common.exceptions import InsufficientStockError
from modules.catalog.models import Product

logger = logging.getLogger("brewleaf.inventory")


class InventoryService:

    # ==========================================
    # Query
    # ==========================================

    def available_stock(self, db: Session, product_id: int) -> int:
        stock = db.query(Product.stock).filter(Product.id == product_id).scalar()
        return int(stock or 0)

    def lock_products(self, db: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
        """
        SELECT ... FOR UPDATE the given products, in id order to avoid deadlocks
        between two checkouts sharing products. Returns {id: Product}; missing
        ids are simply absent.
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        rows = (
            db.query(Product)
            .filter(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .populate_existing()
            .all()
        )
        return {p.id: p for p in rows}

    # ==========================================
    # Mutations
    # ==========================================

    def decrement(self, db: Session, product_id: int, quantity: int, product_name: str = "") -> int:
        """
        Take `quantity` units off stock, only if that many are there.
        Returns the new stock. Raises InsufficientStockError otherwise.
        """
        if quantity < 1:
            raise ValueError("quantity must be positive")

        result = db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = self.available_stock(db, product_id)
            logger.warning(
                f"Stock decrement refused for product #{product_id}: "
                f"requested {quantity}, available {available}"
            )
            raise InsufficientStockError(product_id, available, quantity, product_name)

        self._expire_product(db, product_id)
        return self.available_stock(db, product_id)

    def restore(self, db: Session, product_id: Optional[int], quantity: int) -> bool:
        """Put `quantity` units back. Returns False if the product is gone."""
        if product_id is None:
            logger.info(f"Skipped restoring {quantity} units: product no longer linked")
            return False

        result = db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(f"Skipped restoring {quantity} units: product #{product_id} not found")
            return False

        self._expire_product(db, product_id)
        return True

    # ==========================================
    # Private helpers
    # ==========================================

    def _expire_product(self, db: Session, product_id: int):
        """Make the identity-map copy reload `stock` after a bulk UPDATE."""
        for obj in list(db.identity_map.values()):
            if isinstance(obj, Product) and obj.id == product_id:
                db.expire(obj, ["stock"])


# Singleton
inventory_service = InventoryService()
