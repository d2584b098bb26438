"""
Review Module - Models
========================
Product reviews: one per customer and product, 1-5 stars with a comment.
A review from someone who bought and paid for the product is marked as a
verified purchase and published at once; the rest wait for moderation.
"""

from sqlalchemy import (
    Column, Integer, Boolean, DateTime, ForeignKey, Text,
    CheckConstraint, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)  # 1-5
    comment = Column(Text, nullable=False)
    pros = Column(Text, nullable=True)
    cons = Column(Text, nullable=True)
    is_verified_purchase = Column(Boolean, default=False, nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    product = relationship("Product", foreign_keys=[product_id])
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("product_id", "user_id", name="uq_review_product_user"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating"),
        Index("ix_review_product_approved", "product_id", "is_approved"),
        Index("ix_review_user", "user_id"),
    )

    @property
    def author_name(self) -> str:
        return self.user.name if self.user else "Customer"

    def __repr__(self):
        return f"<Review product={self.product_id} user={self.user_id} rating={self.rating}>"
