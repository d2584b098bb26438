"""
Order Module - Models
======================
Order with contact, address and price snapshot; one OrderItem per product.
Nothing here links back to live catalog prices or user profiles.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Text,
    ForeignKey, DateTime, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class DeliveryMethod(str, enum.Enum):
    PICKUP = "pickup"
    COURIER = "courier"
    POST = "post"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"        # card on delivery
    ONLINE = "online"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


CANCELLABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.PAID)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(20), unique=True, nullable=False, index=True)  # ORD-2026-00001
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Customer snapshot
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)

    # Delivery / payment
    delivery_address = Column(Text, nullable=False, default="")
    delivery_method = Column(String, default=DeliveryMethod.COURIER.value, nullable=False)
    payment_method = Column(String, default=PaymentMethod.CASH.value, nullable=False)

    # Amounts (fixed at creation)
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_cost = Column(Numeric(10, 2), default=0, nullable=False)
    discount = Column(Numeric(10, 2), default=0, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    # Status
    status = Column(String, default=OrderStatus.PENDING.value, nullable=False, index=True)
    payment_status = Column(String, default=PaymentStatus.PENDING.value, nullable=False, index=True)

    notes = Column(Text, nullable=True)         # customer comment
    admin_notes = Column(Text, nullable=True)
    cancellation_reason = Column(String, nullable=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.id",
    )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    @property
    def can_be_cancelled(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    @property
    def status_label(self) -> str:
        labels = {
            OrderStatus.PENDING.value: "Awaiting processing",
            OrderStatus.PROCESSING.value: "Processing",
            OrderStatus.PAID.value: "Paid",
            OrderStatus.SHIPPED.value: "Shipped",
            OrderStatus.DELIVERED.value: "Delivered",
            OrderStatus.CANCELLED.value: "Cancelled",
        }
        return labels.get(self.status, self.status)

    @property
    def payment_status_label(self) -> str:
        labels = {
            PaymentStatus.PENDING.value: "Awaiting payment",
            PaymentStatus.PAID.value: "Paid",
            PaymentStatus.FAILED.value: "Payment failed",
        }
        return labels.get(self.payment_status, self.payment_status)

    @property
    def delivery_method_label(self) -> str:
        labels = {
            DeliveryMethod.PICKUP.value: "Store pickup",
            DeliveryMethod.COURIER.value: "Courier",
            DeliveryMethod.POST.value: "Post",
        }
        return labels.get(self.delivery_method, "-")

    @property
    def payment_method_label(self) -> str:
        labels = {
            PaymentMethod.CASH.value: "Cash on delivery",
            PaymentMethod.CARD.value: "Card on delivery",
            PaymentMethod.ONLINE.value: "Online payment",
        }
        return labels.get(self.payment_method, "-")

    def __repr__(self):
        return f"<Order {self.order_number} {self.status}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    # Snapshot at time of purchase
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_qty"),
    )
