"""
Order Module - Service Layer
===============================
Checkout (cart -> order in one transaction), cancellation with stock
restore, payment status, admin status transitions, reorder.

Methods flush but never commit: the route commits once after the service
returns. When a checkout or cancellation fails the session is rolled back
before the error propagates, so no partial order, stock change or cart
clearing survives.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import desc

from config.settings import ORDER_NUMBER_MAX_ATTEMPTS, STORE_PICKUP_ADDRESS
from common.exceptions import (
    StorefrontError, EmptyCartError, ItemsUnavailableError, NotFoundError,
    ForbiddenError, NotCancellableError, InvalidTransitionError,
    NumberAllocationConflictError, ValidationFailedError,
)
from common.helpers import now_utc
from common.identity import Identity, Authenticated
from modules.cart.service import cart_service
from modules.customer.address_models import CustomerAddress, format_address
from modules.inventory.service import inventory_service
from modules.order.models import (
    Order, OrderItem, OrderStatus, PaymentStatus, DeliveryMethod,
)
from modules.order.numbering import order_number_allocator
from modules.order.schemas import CheckoutData, parse_checkout_data
from modules.pricing.calculator import quote, line_total
from modules.user.models import User

logger = logging.getLogger("brewleaf.order")


# Admin-driven moves. Paying goes through mark_as_paid(), cancelling through cancel_order().
STATUS_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.PROCESSING.value},
    OrderStatus.PROCESSING.value: {OrderStatus.SHIPPED.value},
    OrderStatus.PAID.value: {OrderStatus.SHIPPED.value},
    OrderStatus.SHIPPED.value: {OrderStatus.DELIVERED.value},
}

PAYABLE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value, OrderStatus.PAID.value)


class OrderService:

    # ==========================================
    # Checkout
    # ==========================================

    def checkout(self, db: Session, identity: Identity, checkout_data) -> Order:
        """
        Turn the identity's cart into a pending order:
        1. Fail on an empty cart
        2. Lock the products (SELECT FOR UPDATE) and re-check availability
        3. Price the cart for the chosen delivery method
        4. Allocate an order number and insert the order (retry on collision)
        5. Snapshot one OrderItem per cart line
        6. Take the stock (guarded UPDATE, aborts everything if short)
        7. Clear the cart

        checkout_data: CheckoutData or dict with name, email, phone,
        delivery_method, payment_method, address_id | new_address |
        delivery_address, comment.

        Raises EmptyCartError, ItemsUnavailableError, ValidationFailedError,
        InsufficientStockError, NumberAllocationConflictError.
        """
        data = parse_checkout_data(checkout_data)
        try:
            return self._create_order(db, identity, data)
        except Exception:
            db.rollback()
            raise

    def _create_order(self, db: Session, identity: Identity, data: CheckoutData) -> Order:
        items = cart_service.get_line_items(db, identity)
        if not items:
            raise EmptyCartError()

        inventory_service.lock_products(db, [it.product_id for it in items])
        availability = cart_service.check_availability(db, identity)
        if not availability["available"]:
            raise ItemsUnavailableError(availability["unavailable_items"])

        user = None
        if isinstance(identity, Authenticated):
            user = db.query(User).filter(User.id == identity.user_id).first()

        price = quote(items, data.delivery_method.value, customer=user)
        delivery_address = self._resolve_delivery_address(db, identity, data)

        order = self._insert_with_number(db, dict(
            user_id=identity.user_id_or_none,
            customer_name=data.name,
            customer_email=data.email,
            customer_phone=data.phone,
            delivery_address=delivery_address,
            delivery_method=data.delivery_method.value,
            payment_method=data.payment_method.value,
            subtotal=price.subtotal,
            delivery_cost=price.delivery_cost,
            discount=price.discount,
            total=price.total,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            notes=(data.comment or "").strip() or None,
        ))

        for item in items:
            order.items.append(OrderItem(
                product_id=item.product_id,
                product_name=item.product.name,
                quantity=item.quantity,
                price=item.price,
                total=line_total(item.price, item.quantity),
            ))
        db.flush()

        for item in items:
            inventory_service.decrement(db, item.product_id, item.quantity, item.product.name)

        if isinstance(identity, Authenticated) and data.new_address and not data.address_id:
            self._save_address(db, identity.user_id, data)

        cart_service.clear(db, identity)
        db.flush()

        logger.info(
            f"Order {order.order_number} created for {identity}: "
            f"{len(items)} lines, total {order.total}"
        )
        return order

    def _insert_with_number(self, db: Session, fields: dict) -> Order:
        """Insert the order under a SAVEPOINT, re-allocating the number on a UNIQUE collision."""
        for attempt in range(1, ORDER_NUMBER_MAX_ATTEMPTS + 1):
            order = Order(order_number=order_number_allocator.next_order_number(db), **fields)
            try:
                with db.begin_nested():
                    db.add(order)
                return order
            except IntegrityError as e:
                if "order_number" not in str(e.orig):
                    raise
                logger.warning(
                    f"Order number {order.order_number} already taken "
                    f"(attempt {attempt}/{ORDER_NUMBER_MAX_ATTEMPTS}), retrying"
                )
        raise NumberAllocationConflictError(ORDER_NUMBER_MAX_ATTEMPTS)

    def _resolve_delivery_address(self, db: Session, identity: Identity, data: CheckoutData) -> str:
        if data.delivery_method == DeliveryMethod.PICKUP:
            return STORE_PICKUP_ADDRESS

        if data.address_id:
            address = db.query(CustomerAddress).filter(CustomerAddress.id == data.address_id).first()
            owner = identity.user_id_or_none
            if not address or owner is None or address.user_id != owner:
                raise ValidationFailedError({"address_id": "Selected address does not belong to you"})
            return address.full_address

        if data.new_address:
            a = data.new_address
            return format_address(a.city, a.street, a.house, a.apartment, a.postal_code)

        return data.delivery_address.strip()

    def _save_address(self, db: Session, user_id: int, data: CheckoutData):
        a = data.new_address
        has_default = db.query(CustomerAddress.id).filter(
            CustomerAddress.user_id == user_id,
            CustomerAddress.is_default == True,
        ).first()
        db.add(CustomerAddress(
            user_id=user_id,
            city=a.city,
            street=a.street,
            house=a.house,
            apartment=a.apartment,
            postal_code=a.postal_code,
            is_default=not has_default,
        ))

    # ==========================================
    # Cancel
    # ==========================================

    def cancel_order(self, db: Session, order: Order, reason: Optional[str] = None) -> Order:
        """
        Cancel a pending/processing/paid order and put its stock back.
        Raises NotCancellableError for shipped, delivered or already cancelled orders.
        """
        try:
            order = self._lock_order(db, order.id)
            if not order.can_be_cancelled:
                raise NotCancellableError(self._not_cancellable_message(order))

            inventory_service.lock_products(db, [oi.product_id for oi in order.items if oi.product_id])
            for oi in order.items:
                inventory_service.restore(db, oi.product_id, oi.quantity)

            order.status = OrderStatus.CANCELLED.value
            order.cancelled_at = now_utc()
            if reason:
                order.cancellation_reason = reason[:255]
                note = f"Cancellation reason: {reason}"
                order.admin_notes = f"{order.admin_notes}\n{note}" if order.admin_notes else note
            db.flush()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Order {order.order_number} cancelled" + (f" ({reason})" if reason else ""))
        return order

    def cancel_order_for(self, db: Session, order_id: int, identity: Identity, reason: Optional[str] = None) -> Order:
        """Customer-initiated cancel: NotFound / Forbidden / NotCancellable."""
        order = self.get_owned_order(db, order_id, identity)
        return self.cancel_order(db, order, reason)

    # ==========================================
    # Payment status
    # ==========================================

    def mark_as_paid(self, db: Session, order: Order) -> Order:
        """Confirm payment. Stock was already taken at checkout."""
        order = self._lock_order(db, order.id)
        if order.payment_status == PaymentStatus.PAID.value and order.status == OrderStatus.PAID.value:
            return order
        if order.status not in PAYABLE_STATUSES:
            raise InvalidTransitionError(f"Order {order.order_number} is {order.status_label.lower()} and cannot be paid.")

        order.status = OrderStatus.PAID.value
        order.payment_status = PaymentStatus.PAID.value
        order.paid_at = now_utc()
        db.flush()

        logger.info(f"Order {order.order_number} paid")
        return order

    def mark_payment_failed(self, db: Session, order: Order) -> Order:
        order = self._lock_order(db, order.id)
        if order.payment_status == PaymentStatus.PAID.value:
            raise InvalidTransitionError(f"Order {order.order_number} is already paid.")
        order.payment_status = PaymentStatus.FAILED.value
        db.flush()
        logger.warning(f"Payment failed for order {order.order_number}")
        return order

    # ==========================================
    # Admin status transitions
    # ==========================================

    def update_status(self, db: Session, order: Order, new_status: str) -> Order:
        """Move along pending -> processing -> (paid) -> shipped -> delivered."""
        if new_status == OrderStatus.PAID.value:
            return self.mark_as_paid(db, order)
        if new_status == OrderStatus.CANCELLED.value:
            return self.cancel_order(db, order, reason="Cancelled by staff")

        order = self._lock_order(db, order.id)
        allowed = STATUS_TRANSITIONS.get(order.status, set())
        if new_status not in allowed:
            raise InvalidTransitionError(
                f"Cannot move order {order.order_number} from {order.status} to {new_status}."
            )

        order.status = new_status
        if new_status == OrderStatus.SHIPPED.value:
            order.shipped_at = now_utc()
        elif new_status == OrderStatus.DELIVERED.value:
            order.delivered_at = now_utc()
        db.flush()

        logger.info(f"Order {order.order_number} -> {new_status}")
        return order

    # ==========================================
    # Reorder
    # ==========================================

    def reorder(self, db: Session, order_id: int, identity: Identity) -> dict:
        """
        Put a past order's items back into the current cart. Items that can't
        be added (gone, switched off, not enough stock) are skipped and
        reported by name.
        """
        order = self.get_owned_order(db, order_id, identity)

        added = 0
        unavailable = []
        for oi in order.items:
            product = oi.product
            if product is None or not product.is_orderable:
                unavailable.append(oi.product_name)
                continue
            try:
                with db.begin_nested():
                    cart_service.add_item(db, identity, oi.product_id, oi.quantity)
                added += 1
            except StorefrontError as e:
                logger.info(f"Reorder of {order.order_number}: skipped {oi.product_name}: {e.message}")
                unavailable.append(oi.product_name)

        return {"added_count": added, "unavailable_products": unavailable}

    # ==========================================
    # Query
    # ==========================================

    def get_order_by_id(self, db: Session, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).first()

    def get_order_by_number(self, db: Session, order_number: str) -> Optional[Order]:
        return db.query(Order).filter(Order.order_number == order_number).first()

    def get_user_orders(self, db: Session, user_id: int, status: str = None) -> List[Order]:
        q = db.query(Order).filter(Order.user_id == user_id)
        if status:
            q = q.filter(Order.status == status)
        return q.order_by(desc(Order.created_at), desc(Order.id)).all()

    def get_owned_order(self, db: Session, order_id: int, identity: Identity) -> Order:
        """Order belonging to a logged-in requester. Guest orders carry no owner to match."""
        order = self.get_order_by_id(db, order_id)
        if not order:
            raise NotFoundError(f"Order #{order_id} not found.")
        owner = identity.user_id_or_none
        if owner is None or order.user_id != owner:
            raise ForbiddenError("You do not have access to this order.")
        return order

    # ==========================================
    # Private Helpers
    # ==========================================

    def _lock_order(self, db: Session, order_id: int) -> Order:
        order = (
            db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not order:
            raise NotFoundError(f"Order #{order_id} not found.")
        return order

    def _not_cancellable_message(self, order: Order) -> str:
        if order.is_cancelled:
            return f"Order {order.order_number} is already cancelled."
        if order.status in (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value):
            return f"Order {order.order_number} has already been {order.status} and can no longer be cancelled."
        return f"Order {order.order_number} cannot be cancelled."


# Singleton
order_service = OrderService()
