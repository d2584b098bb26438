"""
Brew & Leaf - Shared Helpers
=============================
Pure utility functions with NO database or module dependencies.
"""

import re
import secrets
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def safe_int(value: Optional[str]) -> Optional[int]:
    """Safely convert a string to int. Returns None on failure."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def to_decimal(value) -> Decimal:
    """Coerce numbers/strings to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")


def format_money(value) -> str:
    """Format an amount with thousands separators and two decimals."""
    if value is None:
        return "0.00"
    try:
        return "{:,.2f}".format(to_decimal(value))
    except ValueError:
        return str(value)


_PHONE_NOISE = re.compile(r"[\s()+\-]")


def normalize_phone(value: str) -> str:
    """Strip spaces, brackets, plus and dashes from a phone number."""
    return _PHONE_NOISE.sub("", value or "")


def generate_session_token(nbytes: int = 24) -> str:
    """Random URL-safe token used to key guest carts."""
    return secrets.token_urlsafe(nbytes)
