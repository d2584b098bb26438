"""
Payment Routes
================
Simulated online payment: the page a customer is redirected to after
checkout, and the callback the gateway posts its verdict to.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import PAYMENT_CALLBACK_HEADER
from modules.order.routes import serialize_order
from modules.payment.service import payment_service

router = APIRouter(prefix="/payment", tags=["payment"])


class CallbackBody(BaseModel):
    success: bool
    ref: Optional[str] = Field(None, max_length=100)


@router.get("/{order_id}")
async def payment_page(order_id: int, token: Optional[str] = None, db: Session = Depends(get_db)):
    return payment_service.get_payment_page(db, order_id, token)


@router.post("/{order_id}/callback")
async def payment_callback(
    order_id: int,
    body: CallbackBody,
    db: Session = Depends(get_db),
    secret: Optional[str] = Header(None, alias=PAYMENT_CALLBACK_HEADER),
):
    payment_service.verify_callback_secret(secret)
    try:
        order = payment_service.handle_callback(db, order_id, body.success, body.ref or "")
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"status": "success" if body.success else "failed", "order": serialize_order(order)}
