"""
Brew & Leaf - Security Utilities
==================================
JWT auth tokens and the guest cart-session cookie.

Login itself lives outside this service; it issues the `auth_token`
cookie with create_token({"sub": str(user_id)}).
"""

import logging
from datetime import timedelta
from typing import Optional

from jose import jwt, JWTError

from config.settings import (
    SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES,
    COOKIE_SECURE, COOKIE_SAMESITE, CART_SESSION_MAX_AGE,
    PAYMENT_TOKEN_EXPIRE_MINUTES,
)
from common.helpers import now_utc, safe_int

logger = logging.getLogger("brewleaf.security")


# ==========================================
# JWT Tokens
# ==========================================

def create_token(data: dict, expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    to_encode["exp"] = now_utc() + timedelta(minutes=expire_minutes)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected auth token: {e}")
        return None


def user_id_from_token(token: Optional[str]) -> Optional[int]:
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    return safe_int(payload.get("sub"))


def create_payment_token(order_id: int) -> str:
    """Short-lived token that opens the payment page of one order."""
    return create_token({"order": order_id, "scope": "payment"}, expire_minutes=PAYMENT_TOKEN_EXPIRE_MINUTES)


def order_id_from_payment_token(token: Optional[str]) -> Optional[int]:
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("scope") != "payment":
        return None
    return safe_int(payload.get("order"))


# ==========================================
# Cookie Helpers
# ==========================================

def get_cookie_kwargs(max_age: int = ACCESS_TOKEN_EXPIRE_MINUTES * 60) -> dict:
    return dict(
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        max_age=max_age,
    )


def cart_cookie_kwargs() -> dict:
    return get_cookie_kwargs(max_age=CART_SESSION_MAX_AGE)
