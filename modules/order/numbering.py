"""
Order Module - Order Numbers
==============================
Human-facing numbers `ORD-<year>-<5-digit sequence>`, restarting every year.

The number is derived from the highest one already stored for the year, so
two concurrent checkouts can compute the same value. The UNIQUE constraint
on orders.order_number is the backstop: OrderService inserts inside a
SAVEPOINT and asks for a fresh number when the insert collides.
"""

import re
from typing import Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from common.helpers import now_utc
from modules.order.models import Order

PREFIX = "ORD"
SEQUENCE_DIGITS = 5

_NUMBER_RE = re.compile(rf"^{PREFIX}-(\d{{4}})-(\d{{{SEQUENCE_DIGITS}}})$")


def format_order_number(year: int, sequence: int) -> str:
    return f"{PREFIX}-{year}-{sequence:0{SEQUENCE_DIGITS}d}"


def parse_order_number(number: str) -> Optional[tuple]:
    """Returns (year, sequence) or None for anything not in our format."""
    match = _NUMBER_RE.match(number or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class OrderNumberAllocator:

    def next_order_number(self, db: Session, year: Optional[int] = None) -> str:
        """Highest sequence stored for `year` (default: current year) plus one."""
        year = year or now_utc().year
        prefix = f"{PREFIX}-{year}-"

        # Zero-padded, so the lexical maximum is the numeric maximum.
        last = (
            db.query(Order.order_number)
            .filter(Order.order_number.like(f"{prefix}%"))
            .order_by(desc(Order.order_number))
            .first()
        )
        sequence = 1
        if last:
            parsed = parse_order_number(last[0])
            if parsed:
                sequence = parsed[1] + 1
        return format_order_number(year, sequence)


# Singleton
order_number_allocator = OrderNumberAllocator()
