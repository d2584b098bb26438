"""
Brew & Leaf - Order Notification Helper
=========================================
Sends order confirmation emails through an HTTP mail API.
In dev mode (no MAIL_API_URL), logs only.
"""

import logging

from config.settings import MAIL_API_URL, MAIL_API_KEY, MAIL_FROM
from common.helpers import format_money

logger = logging.getLogger("brewleaf.notifications")


def build_confirmation_payload(order) -> dict:
    """
    Plain-data copy of what the email needs, taken while the order is still
    attached to its session (the send may run after the request finished).
    """
    return {
        "order_number": order.order_number,
        "email": order.customer_email,
        "name": order.customer_name,
        "items": [
            {
                "name": oi.product_name,
                "quantity": oi.quantity,
                "price": format_money(oi.price),
                "total": format_money(oi.total),
            }
            for oi in order.items
        ],
        "subtotal": format_money(order.subtotal),
        "delivery_cost": format_money(order.delivery_cost),
        "discount": format_money(order.discount),
        "total": format_money(order.total),
        "delivery_method": order.delivery_method_label,
        "delivery_address": order.delivery_address,
        "payment_method": order.payment_method_label,
    }


def send_order_confirmation(payload: dict) -> bool:
    """
    Email the order confirmation.

    Args:
        payload: dict from build_confirmation_payload()

    Returns:
        True if the mail API accepted it, False otherwise (never raises)
    """
    number = payload.get("order_number")
    recipient = payload.get("email")

    if not MAIL_API_URL:
        logger.info(f"Confirmation for {number} skipped (no mail API): {recipient} total={payload.get('total')}")
        return False

    try:
        import requests

        response = requests.post(
            MAIL_API_URL,
            json={
                "from": MAIL_FROM,
                "to": recipient,
                "subject": f"Your order {number}",
                "template": "order_confirmation",
                "data": payload,
            },
            headers={"Authorization": f"Bearer {MAIL_API_KEY}"} if MAIL_API_KEY else {},
            timeout=5,
        )

        if response.status_code in (200, 201, 202):
            logger.info(f"Order confirmation {number} sent to {recipient}")
            return True
        else:
            logger.warning(f"Mail API error for {number}: {response.status_code} - {response.text}")
            return False

    except Exception as e:
        logger.warning(f"Order confirmation {number} failed: {e}")
        return False
