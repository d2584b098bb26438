"""
Order Module - Post-Commit Hooks
==================================
Side effects that run only after the checkout transaction committed.
Their failures are logged and reported as warnings; the order stands.
"""

import logging
from typing import Optional

from fastapi import BackgroundTasks

from common.notifications import build_confirmation_payload, send_order_confirmation
from modules.order.models import Order
from modules.payment.service import payment_service

logger = logging.getLogger("brewleaf.order")


def _send_confirmation_quietly(payload: dict):
    try:
        send_order_confirmation(payload)
    except Exception as e:
        logger.warning(f"Confirmation for {payload.get('order_number')} failed: {e}")


def after_checkout(order: Order, background_tasks: Optional[BackgroundTasks] = None) -> dict:
    """
    Queue the confirmation email (inline when no BackgroundTasks is given)
    and start payment. Returns {"payment": {...} | None, "warnings": [...]}.
    """
    warnings = []

    try:
        payload = build_confirmation_payload(order)
        if background_tasks is not None:
            background_tasks.add_task(_send_confirmation_quietly, payload)
        elif not send_order_confirmation(payload):
            warnings.append("Order confirmation email could not be sent.")
    except Exception as e:
        logger.warning(f"Confirmation for {order.order_number} not queued: {e}")
        warnings.append("Order confirmation email could not be sent.")

    payment = None
    try:
        payment = payment_service.process_payment(order)
        if not payment.get("success"):
            warnings.append(payment.get("message") or "Payment could not be started.")
    except Exception as e:
        logger.warning(f"Payment start for {order.order_number} failed: {e}")
        warnings.append("Payment could not be started; you can pay later from your order page.")

    return {"payment": payment, "warnings": warnings}
