"""
Pricing Module - Calculator
=============================
Cart/order money arithmetic. Pure functions, no database access.

Every intermediate amount is rounded half-up to 2 decimals before it is
used in the next step, so stored fields always add up exactly:
    total == subtotal + delivery_cost - discount
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping, Optional

from config.settings import (
    FREE_COURIER_THRESHOLD, COURIER_COST, POST_COST,
    DISCOUNT_THRESHOLD, DISCOUNT_RATE,
)
from common.helpers import to_decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

DELIVERY_METHODS = ("pickup", "courier", "post")


def round_money(value) -> Decimal:
    """Round half-up to 2 decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(price, quantity) -> Decimal:
    return round_money(to_decimal(price) * int(quantity))


def _field(item, name):
    if isinstance(item, Mapping):
        return item[name]
    return getattr(item, name)


def calculate_subtotal(items: Iterable) -> Decimal:
    """
    Sum of per-line totals.

    Items may be ORM rows or mappings; each needs `price` and `quantity`.
    """
    total = ZERO
    for item in items:
        total += line_total(_field(item, "price"), _field(item, "quantity"))
    return round_money(total)


def calculate_delivery_cost(method: str, subtotal) -> Decimal:
    """
    pickup  -> free
    courier -> free from FREE_COURIER_THRESHOLD (inclusive), else COURIER_COST
    post    -> flat POST_COST
    anything else -> free (policy default, not an error)
    """
    subtotal = round_money(subtotal)
    if method == "pickup":
        return ZERO
    if method == "courier":
        return ZERO if subtotal >= FREE_COURIER_THRESHOLD else round_money(COURIER_COST)
    if method == "post":
        return round_money(POST_COST)
    return ZERO


def calculate_discount(subtotal, customer=None) -> Decimal:
    """
    Flat DISCOUNT_RATE off orders from DISCOUNT_THRESHOLD (inclusive).

    `customer` is accepted for promo codes / loyalty tiers; no rule reads it yet.
    """
    subtotal = round_money(subtotal)
    if subtotal >= DISCOUNT_THRESHOLD:
        return round_money(subtotal * DISCOUNT_RATE)
    return ZERO


def calculate_total(subtotal, delivery_cost, discount) -> Decimal:
    return round_money(round_money(subtotal) + round_money(delivery_cost) - round_money(discount))


@dataclass(frozen=True)
class PriceQuote:
    subtotal: Decimal
    delivery_cost: Decimal
    discount: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {k: str(v) for k, v in asdict(self).items()}


def quote(items: Iterable, method: str, customer=None) -> PriceQuote:
    """Price a set of lines for one delivery method."""
    subtotal = calculate_subtotal(items)
    delivery_cost = calculate_delivery_cost(method, subtotal)
    discount = calculate_discount(subtotal, customer)
    return PriceQuote(
        subtotal=subtotal,
        delivery_cost=delivery_cost,
        discount=discount,
        total=calculate_total(subtotal, delivery_cost, discount),
    )


def quote_all_methods(items: Iterable, customer=None) -> dict:
    """Checkout preview: one quote per delivery method."""
    items = list(items)
    return {method: quote(items, method, customer) for method in DELIVERY_METHODS}


def describe_price_change(old_price, new_price) -> Optional[str]:
    old_price, new_price = round_money(old_price), round_money(new_price)
    if old_price == new_price:
        return None
    direction = "up" if new_price > old_price else "down"
    return f"price went {direction} from {old_price} to {new_price}"
