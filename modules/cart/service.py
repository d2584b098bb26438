"""
Cart Module - Service Layer
==============================
Cart management for logged-in users and guests: add/update/remove lines,
availability checks, price sync, guest-cart merge after login.

Every method takes the owner identity explicitly and only flushes;
committing is the caller's job.
"""

import logging
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from config.settings import CART_MAX_QUANTITY, PRICE_SYNC_EPSILON
from common.exceptions import (
    NotFoundError, InsufficientStockError, ValidationFailedError,
)
from common.identity import Identity, Authenticated, Guest
from modules.cart.models import CartItem
from modules.catalog.service import catalog_service
from modules.pricing.calculator import calculate_subtotal, describe_price_change

logger = logging.getLogger("brewleaf.cart")


def owner_filter(identity: Identity):
    """SQL criterion selecting the cart lines of `identity`."""
    if isinstance(identity, Authenticated):
        return CartItem.user_id == identity.user_id
    if isinstance(identity, Guest):
        return CartItem.session_id == identity.session_token
    raise TypeError(f"Unsupported identity: {identity!r}")


def owner_columns(identity: Identity) -> dict:
    if isinstance(identity, Authenticated):
        return {"user_id": identity.user_id, "session_id": None}
    return {"user_id": None, "session_id": identity.session_token}


def validate_quantity(quantity: int):
    if not isinstance(quantity, int) or quantity < 1:
        raise ValidationFailedError({"quantity": "Quantity must be at least 1."})
    if quantity > CART_MAX_QUANTITY:
        raise ValidationFailedError({"quantity": f"Quantity cannot exceed {CART_MAX_QUANTITY}."})


class CartService:

    # ==========================================
    # Query
    # ==========================================

    def get_line_items(self, db: Session, identity: Identity) -> List[CartItem]:
        """Cart lines in the order they were added."""
        return (
            db.query(CartItem)
            .filter(owner_filter(identity))
            .order_by(CartItem.id)
            .all()
        )

    def is_empty(self, db: Session, identity: Identity) -> bool:
        return not db.query(CartItem.id).filter(owner_filter(identity)).first()

    def count_items(self, db: Session, identity: Identity) -> int:
        """Number of distinct lines."""
        return db.query(CartItem).filter(owner_filter(identity)).count()

    def count_quantity(self, db: Session, identity: Identity) -> int:
        """Total units across all lines."""
        return sum(item.quantity for item in self.get_line_items(db, identity))

    def get_total(self, db: Session, identity: Identity) -> Decimal:
        return calculate_subtotal(self.get_line_items(db, identity))

    # ==========================================
    # Mutations
    # ==========================================

    def add_item(self, db: Session, identity: Identity, product_id: int, quantity: int = 1) -> CartItem:
        """
        Add `quantity` of a product. An existing line for the same product is
        incremented instead of duplicated; the combined quantity is checked
        against stock again.
        """
        validate_quantity(quantity)
        product = catalog_service.get_orderable(db, product_id)

        item = self._find_line(db, identity, product_id)
        new_qty = quantity + (item.quantity if item else 0)
        self._check_stock(product, new_qty)

        if item:
            item.quantity = new_qty
            db.flush()
            return item

        item = CartItem(product_id=product.id, quantity=new_qty, price=product.price, **owner_columns(identity))
        try:
            with db.begin_nested():
                db.add(item)
        except IntegrityError:
            # A parallel request created the line first; fold into it.
            item = self._find_line(db, identity, product_id)
            if item is None:
                raise
            new_qty = item.quantity + quantity
            self._check_stock(product, new_qty)
            item.quantity = new_qty
            db.flush()
        return item

    def update_item(self, db: Session, identity: Identity, item_id: int, quantity: int) -> CartItem:
        """Set a line's quantity. Removal goes through remove_item()."""
        validate_quantity(quantity)
        item = self._get_owned(db, identity, item_id)
        product = catalog_service.get_orderable(db, item.product_id)
        self._check_stock(product, quantity)
        item.quantity = quantity
        db.flush()
        return item

    def remove_item(self, db: Session, identity: Identity, item_id: int) -> bool:
        """Delete a line. Removing a missing line is not an error; returns whether a row went."""
        deleted = db.query(CartItem).filter(
            CartItem.id == item_id,
            owner_filter(identity),
        ).delete(synchronize_session="fetch")
        db.flush()
        return bool(deleted)

    def clear(self, db: Session, identity: Identity) -> int:
        """Remove all lines. Returns how many were removed."""
        deleted = db.query(CartItem).filter(owner_filter(identity)).delete(synchronize_session="fetch")
        db.flush()
        return deleted

    # ==========================================
    # Availability / Prices
    # ==========================================

    def check_availability(self, db: Session, identity: Identity) -> dict:
        """
        Check every line against its product: still exists, not deleted,
        switched on, enough stock. Read-only.
        """
        unavailable = []
        for item in self.get_line_items(db, identity):
            product = item.product
            reason = None
            available = 0
            if product is None:
                reason = "not_found"
            elif not product.is_orderable:
                reason = "unavailable"
            elif product.stock < item.quantity:
                reason = "insufficient_stock"
                available = product.stock
            else:
                continue

            unavailable.append({
                "cart_item_id": item.id,
                "product_id": item.product_id,
                "product_name": product.name if product else None,
                "requested": item.quantity,
                "available": available,
                "reason": reason,
            })

        return {"available": not unavailable, "unavailable_items": unavailable}

    def sync_prices(self, db: Session, identity: Identity) -> int:
        """Replace captured prices that drifted from the live product price. Returns changed count."""
        changed = 0
        for item in self.get_line_items(db, identity):
            product = item.product
            if product is None:
                continue
            if abs(Decimal(product.price) - Decimal(item.price)) >= PRICE_SYNC_EPSILON:
                logger.info(
                    f"Cart {identity} product #{product.id}: "
                    f"{describe_price_change(item.price, product.price)}"
                )
                item.price = product.price
                changed += 1
        if changed:
            db.flush()
        return changed

    # ==========================================
    # Guest -> User
    # ==========================================

    def merge_guest_cart(self, db: Session, session_token: str, user_id: int) -> int:
        """
        Move a guest cart onto a user after login. Lines for products the user
        already has are added together (capped at the max quantity); the rest
        change owner. Returns the number of guest lines processed.
        """
        guest = Guest(session_token)
        user = Authenticated(user_id)
        guest_items = self.get_line_items(db, guest)
        if not guest_items:
            return 0

        for guest_item in guest_items:
            user_item = self._find_line(db, user, guest_item.product_id)
            if user_item:
                user_item.quantity = min(user_item.quantity + guest_item.quantity, CART_MAX_QUANTITY)
                db.delete(guest_item)
            else:
                guest_item.user_id = user_id
                guest_item.session_id = None
        db.flush()

        logger.info(f"Merged {len(guest_items)} guest cart lines into user #{user_id}")
        return len(guest_items)

    # ==========================================
    # Private helpers
    # ==========================================

    def _find_line(self, db: Session, identity: Identity, product_id: int):
        return db.query(CartItem).filter(
            owner_filter(identity),
            CartItem.product_id == product_id,
        ).first()

    def _get_owned(self, db: Session, identity: Identity, item_id: int) -> CartItem:
        item = db.query(CartItem).filter(
            CartItem.id == item_id,
            owner_filter(identity),
        ).first()
        if not item:
            raise NotFoundError("Cart item not found.")
        return item

    def _check_stock(self, product, quantity: int):
        if quantity > CART_MAX_QUANTITY:
            raise ValidationFailedError({"quantity": f"Quantity cannot exceed {CART_MAX_QUANTITY}."})
        if quantity > product.stock:
            raise InsufficientStockError(product.id, product.stock, quantity, product.name)


# Singleton
cart_service = CartService()
