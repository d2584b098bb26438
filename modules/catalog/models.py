"""
Catalog Module - Models
========================
Product: the priced, stocked item sold by the shop.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, CheckConstraint,
)
from sqlalchemy.sql import func
from config.database import Base


# ==========================================
# 📦 Product
# ==========================================

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)  # soft delete

    # Aggregate of approved reviews, kept current by ReviewService
    rating = Column(Numeric(3, 2), default=0, nullable=False)
    reviews_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock"),
        CheckConstraint("price >= 0", name="ck_product_price"),
    )

    @property
    def is_orderable(self) -> bool:
        """Not soft-deleted and switched on. Stock is checked separately."""
        return self.deleted_at is None and bool(self.is_available)

    def __repr__(self):
        return f"<Product {self.name} ({self.price})>"
