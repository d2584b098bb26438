"""
Auth Module - Dependencies
===========================
FastAPI dependencies resolving who owns the cart/orders of a request.
These are injected into route handlers via Depends().

A valid `auth_token` cookie means an Authenticated identity; otherwise the
request is a guest keyed by the `cart_session` cookie (issued on demand).
"""

from fastapi import Request, Response, Depends, HTTPException, status
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import CART_SESSION_COOKIE
from common.helpers import generate_session_token
from common.identity import Identity, Authenticated, Guest
from common.security import user_id_from_token, cart_cookie_kwargs
from modules.cart.service import cart_service
from modules.user.models import User


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Identify the current user from the auth_token cookie.
    Returns User object or None.
    """
    user_id = user_id_from_token(request.cookies.get("auth_token"))
    if not user_id:
        return None
    return db.query(User).filter(User.id == user_id, User.is_active == True).first()


def get_identity(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
) -> Identity:
    """
    Authenticated(user.id) for logged-in users, Guest(token) otherwise.
    A guest cart left in the same browser is folded into the user's cart
    the first time they show up logged in.
    """
    session_token = request.cookies.get(CART_SESSION_COOKIE)

    if user:
        if session_token:
            cart_service.merge_guest_cart(db, session_token, user.id)
            db.commit()
            response.delete_cookie(CART_SESSION_COOKIE)
        return Authenticated(user.id)

    if not session_token:
        session_token = generate_session_token()
        response.set_cookie(CART_SESSION_COOKIE, session_token, **cart_cookie_kwargs())
    return Guest(session_token)


def require_login(user=Depends(get_current_user)):
    """Require an authenticated active user. Raises 401 if not logged in."""
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="login_required")
    return user


def require_admin(user=Depends(get_current_user)):
    """Only allow staff users. Raises 403 otherwise."""
    if not user or not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return user
