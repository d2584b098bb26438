"""
Checkout & Order Routes
=========================
Checkout, my orders, order detail, cancel, reorder.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.identity import Identity
from modules.auth.deps import get_identity, require_login
from modules.order.hooks import after_checkout
from modules.order.service import order_service

router = APIRouter(prefix="/api", tags=["orders"])


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


def serialize_order(order, with_items: bool = True) -> dict:
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "status_label": order.status_label,
        "payment_status": order.payment_status,
        "payment_status_label": order.payment_status_label,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "delivery_method": order.delivery_method,
        "delivery_address": order.delivery_address,
        "payment_method": order.payment_method,
        "subtotal": str(order.subtotal),
        "delivery_cost": str(order.delivery_cost),
        "discount": str(order.discount),
        "total": str(order.total),
        "notes": order.notes,
        "can_be_cancelled": order.can_be_cancelled,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "paid_at": order.paid_at.isoformat() if order.paid_at else None,
        "cancelled_at": order.cancelled_at.isoformat() if order.cancelled_at else None,
    }
    if with_items:
        data["items"] = [
            {
                "product_id": oi.product_id,
                "product_name": oi.product_name,
                "quantity": oi.quantity,
                "price": str(oi.price),
                "total": str(oi.total),
            }
            for oi in order.items
        ]
    return data


# ==========================================
# ✅ Checkout
# ==========================================

@router.post("/checkout", status_code=201)
async def checkout(
    background_tasks: BackgroundTasks,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    order = order_service.checkout(db, identity, data)
    db.commit()
    db.refresh(order)

    result = after_checkout(order, background_tasks)
    payment = result["payment"] or {}
    return {
        "status": "success",
        "order": serialize_order(order),
        "payment_url": payment.get("payment_url"),
        "message": payment.get("message") or f"Order {order.order_number} placed.",
        "warnings": result["warnings"],
    }


# ==========================================
# 📋 My Orders
# ==========================================

@router.get("/orders")
async def my_orders(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user=Depends(require_login),
):
    orders = order_service.get_user_orders(db, user.id, status=status)
    return {"orders": [serialize_order(o, with_items=False) for o in orders]}


@router.get("/orders/{order_id}")
async def order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    order = order_service.get_owned_order(db, order_id, identity)
    return {"order": serialize_order(order)}


# ==========================================
# ❌ Cancel / 🔁 Reorder
# ==========================================

@router.post("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    body: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    reason = (body.reason if body else None) or "Cancelled by customer"
    order = order_service.cancel_order_for(db, order_id, identity, reason=reason)
    db.commit()
    return {"status": "success", "order": serialize_order(order)}


@router.post("/orders/{order_id}/reorder")
async def reorder(
    order_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    try:
        result = order_service.reorder(db, order_id, identity)
        db.commit()
    except Exception:
        db.rollback()
        raise

    message = f"Added to cart: {result['added_count']}"
    if result["unavailable_products"]:
        message += ". Unavailable: " + ", ".join(result["unavailable_products"])
    return {"status": "success", "message": message, **result}
