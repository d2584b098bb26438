"""
Customer Module - Address Models
==================================
CustomerAddress: saved delivery addresses. Orders copy `full_address` as text.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


def format_address(city=None, street=None, house=None, apartment=None, postal_code=None) -> str:
    """Join the non-empty address parts into one line."""
    parts = []
    if city:
        parts.append(city)
    if street:
        parts.append(f"st. {street}")
    if house:
        parts.append(f"bld. {house}")
    if apartment:
        parts.append(f"apt. {apartment}")
    if postal_code:
        parts.append(f"postcode {postal_code}")
    return ", ".join(parts)


class CustomerAddress(Base):
    __tablename__ = "customer_addresses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    city = Column(String(100), nullable=False)
    street = Column(String(255), nullable=False)
    house = Column(String(20), nullable=False)
    apartment = Column(String(20), nullable=True)
    postal_code = Column(String(10), nullable=True)
    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="addresses")

    @property
    def full_address(self) -> str:
        return format_address(
            city=self.city,
            street=self.street,
            house=self.house,
            apartment=self.apartment,
            postal_code=self.postal_code,
        )
