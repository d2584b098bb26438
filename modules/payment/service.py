"""
Payment Service
=================
Payment hand-off after checkout. Cash and card are settled on delivery;
online payment returns a redirect target. No real gateway is wired in:
the redirect points at our own simulated payment page, which reports back
through handle_callback().

The payment page is opened with a signed, short-lived token bound to one
order. The callback is server-to-server and must carry the shared
PAYMENT_CALLBACK_SECRET in the X-Payment-Secret header.
"""

import hmac
import logging
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from config.settings import BASE_URL, PAYMENT_CALLBACK_SECRET
from common.exceptions import ForbiddenError, NotFoundError, PaymentError
from common.security import create_payment_token, order_id_from_payment_token
from modules.order.models import Order, PaymentMethod
from modules.order.service import order_service

logger = logging.getLogger("brewleaf.payment")


class PaymentService:

    # ==========================================
    # 💳 Start payment
    # ==========================================

    def process_payment(self, order: Order) -> Dict[str, Any]:
        """
        Returns {"success", "payment_url", "message"}.
        payment_url is only set for online payment.
        """
        if order.payment_method in (PaymentMethod.CASH.value, PaymentMethod.CARD.value):
            return {
                "success": True,
                "payment_url": None,
                "message": "Payment will be collected on delivery.",
            }

        if order.payment_method == PaymentMethod.ONLINE.value:
            logger.info(f"Online payment started for order {order.order_number}")
            return {
                "success": True,
                "payment_url": f"{BASE_URL}/payment/{order.id}?token={create_payment_token(order.id)}",
                "message": "Redirecting to the payment page.",
            }

        raise PaymentError(f"Unsupported payment method: {order.payment_method}")

    # ==========================================
    # 🧾 Payment page
    # ==========================================

    def get_payment_page(self, db: Session, order_id: int, token: Optional[str]) -> Dict[str, Any]:
        """What the simulated gateway shows before the customer confirms."""
        if order_id_from_payment_token(token) != order_id:
            raise ForbiddenError("This payment link is invalid or has expired.")

        order = self._get_online_order(db, order_id)
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "total": str(order.total),
            "payment_status": order.payment_status,
            "is_paid": order.is_paid,
            "callback_url": f"{BASE_URL}/payment/{order.id}/callback",
        }

    # ==========================================
    # 🔁 Gateway callback
    # ==========================================

    def verify_callback_secret(self, provided: Optional[str]):
        """Reject callbacks that don't carry the shared secret. No secret configured = no callbacks."""
        if not PAYMENT_CALLBACK_SECRET:
            logger.error("Payment callback refused: PAYMENT_CALLBACK_SECRET is not configured")
            raise ForbiddenError("Payment callbacks are disabled.")
        if not provided or not hmac.compare_digest(provided.encode(), PAYMENT_CALLBACK_SECRET.encode()):
            logger.warning("Payment callback refused: bad or missing secret")
            raise ForbiddenError("Invalid payment callback signature.")

    def handle_callback(self, db: Session, order_id: int, success: bool, ref: str = "") -> Order:
        """Record the gateway verdict on the order."""
        order = self._get_online_order(db, order_id)

        if success:
            logger.info(f"Payment confirmed for order {order.order_number} ref={ref or '-'}")
            return order_service.mark_as_paid(db, order)
        return order_service.mark_payment_failed(db, order)

    def _get_online_order(self, db: Session, order_id: int) -> Order:
        order = order_service.get_order_by_id(db, order_id)
        if not order:
            raise NotFoundError(f"Order #{order_id} not found.")
        if order.payment_method != PaymentMethod.ONLINE.value:
            raise PaymentError(f"Order {order.order_number} is not paid online.")
        return order


# Singleton
payment_service = PaymentService()
