"""
Order Admin Routes
====================
Staff-side order handling: list, status moves, mark paid, cancel.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import desc
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import NotFoundError
from modules.auth.deps import require_admin
from modules.order.models import Order, OrderStatus
from modules.order.routes import serialize_order
from modules.order.service import order_service

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


class StatusUpdate(BaseModel):
    status: OrderStatus


class AdminCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


def _get_order(db: Session, order_id: int) -> Order:
    order = order_service.get_order_by_id(db, order_id)
    if not order:
        raise NotFoundError(f"Order #{order_id} not found.")
    return order


@router.get("")
async def list_orders(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    q = db.query(Order).order_by(desc(Order.id))
    if status:
        q = q.filter(Order.status == status)
    return {"orders": [serialize_order(o, with_items=False) for o in q.all()]}


@router.post("/{order_id}/status")
async def update_status(
    order_id: int,
    body: StatusUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    order = order_service.update_status(db, _get_order(db, order_id), body.status.value)
    db.commit()
    return {"status": "success", "order": serialize_order(order)}


@router.post("/{order_id}/mark-paid")
async def mark_paid(
    order_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    order = order_service.mark_as_paid(db, _get_order(db, order_id))
    db.commit()
    return {"status": "success", "order": serialize_order(order)}


@router.post("/{order_id}/cancel")
async def cancel(
    order_id: int,
    body: AdminCancel,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    order = order_service.cancel_order(db, _get_order(db, order_id), reason=body.reason or "Cancelled by staff")
    db.commit()
    return {"status": "success", "order": serialize_order(order)}
