"""
Cart Routes
=============
JSON API for the cart: view, add/update/remove lines, clear, price sync,
delivery quotes. Errors are raised as StorefrontError and rendered by the
app-level handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import NotFoundError
from common.identity import Identity
from modules.auth.deps import get_identity
from modules.cart.service import cart_service
from modules.order.models import DeliveryMethod
from modules.pricing.calculator import quote, quote_all_methods

router = APIRouter(prefix="/api/cart", tags=["cart"])


# ==========================================
# Schemas
# ==========================================

class AddItemRequest(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1, le=100)


class UpdateItemRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=100)


def serialize_item(item) -> dict:
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": product.name if product else None,
        "quantity": item.quantity,
        "price": str(item.price),
        "current_price": str(product.price) if product else None,
        "line_total": str(item.line_total),
        "stock": product.stock if product else 0,
    }


def cart_payload(db: Session, identity: Identity) -> dict:
    items = cart_service.get_line_items(db, identity)
    return {
        "items": [serialize_item(it) for it in items],
        "items_count": len(items),
        "total_quantity": sum(it.quantity for it in items),
        "subtotal": str(cart_service.get_total(db, identity)),
    }


# ==========================================
# 🛒 View Cart
# ==========================================

@router.get("")
async def view_cart(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    payload = cart_payload(db, identity)
    payload["availability"] = cart_service.check_availability(db, identity)
    return payload


# ==========================================
# ➕ Add / ✏️ Update / ➖ Remove
# ==========================================

@router.post("/items", status_code=201)
async def add_item(
    body: AddItemRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    try:
        item = cart_service.add_item(db, identity, body.product_id, body.quantity)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"status": "success", "item": serialize_item(item), **cart_payload(db, identity)}


@router.patch("/items/{item_id}")
async def update_item(
    item_id: int,
    body: UpdateItemRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    try:
        item = cart_service.update_item(db, identity, item_id, body.quantity)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"status": "success", "item": serialize_item(item), **cart_payload(db, identity)}


@router.delete("/items/{item_id}")
async def remove_item(
    item_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    removed = cart_service.remove_item(db, identity, item_id)
    db.commit()
    if not removed:
        # Not an error for the cart; the caller still hears about it.
        raise NotFoundError("Cart item not found.")
    return {"status": "success", **cart_payload(db, identity)}


@router.delete("")
async def clear_cart(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    removed = cart_service.clear(db, identity)
    db.commit()
    return {"status": "success", "removed": removed, **cart_payload(db, identity)}


# ==========================================
# 💱 Prices / Quote
# ==========================================

@router.post("/sync-prices")
async def sync_prices(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    changed = cart_service.sync_prices(db, identity)
    db.commit()
    return {"status": "success", "changed": changed, **cart_payload(db, identity)}


@router.get("/quote")
async def quote_cart(
    delivery_method: Optional[DeliveryMethod] = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    """One delivery method when given, otherwise every method (checkout preview)."""
    items = cart_service.get_line_items(db, identity)
    if delivery_method is not None:
        return {"delivery_method": delivery_method.value, **quote(items, delivery_method.value).as_dict()}
    return {
        "quotes": {method: q.as_dict() for method, q in quote_all_methods(items).items()},
    }


@router.get("/count")
async def cart_count(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    return {
        "items_count": cart_service.count_items(db, identity),
        "total_quantity": cart_service.count_quantity(db, identity),
    }
