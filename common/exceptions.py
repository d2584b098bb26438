"""
Brew & Leaf - Custom Exceptions
================================
Business-level exceptions that can be caught and converted to HTTP responses.
Every error carries the HTTP status it maps to; extra payload goes in `details()`.
"""

from typing import List, Optional


class StorefrontError(Exception):
    """Base exception for all business logic errors."""
    status_code = 400

    def __init__(self, message: str = "Something went wrong."):
        self.message = message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__.removesuffix("Error")

    def details(self) -> dict:
        return {}


class EmptyCartError(StorefrontError):
    """Raised when checkout is attempted on an empty cart."""
    def __init__(self):
        super().__init__("Your cart is empty.")


class ItemsUnavailableError(StorefrontError):
    """Raised when one or more cart lines cannot be ordered."""
    status_code = 409

    def __init__(self, items: List[dict]):
        self.items = items
        names = ", ".join(it.get("product_name") or f"#{it.get('product_id')}" for it in items)
        super().__init__(f"Some items are unavailable or out of stock: {names}")

    def details(self) -> dict:
        return {"unavailable_items": self.items}


class InsufficientStockError(StorefrontError):
    """Raised when product stock is not enough."""
    status_code = 409

    def __init__(self, product_id: int, available: int, requested: int, product_name: str = ""):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        label = f"«{product_name}»" if product_name else f"product #{product_id}"
        super().__init__(f"Only {available} of {label} in stock (requested {requested}).")

    def details(self) -> dict:
        return {
            "product_id": self.product_id,
            "available": self.available,
            "requested": self.requested,
        }


class ProductUnavailableError(StorefrontError):
    """Raised when a product is deleted or switched off."""
    status_code = 409

    def __init__(self, product_id: int, product_name: str = ""):
        self.product_id = product_id
        label = f"«{product_name}»" if product_name else f"Product #{product_id}"
        super().__init__(f"{label} is not available for ordering.")


class NotFoundError(StorefrontError):
    """Raised when a requested resource doesn't exist."""
    status_code = 404


class ForbiddenError(StorefrontError):
    """Raised when the requester does not own the resource."""
    status_code = 403

    def __init__(self, message: str = "You do not have access to this resource."):
        super().__init__(message)


class NotCancellableError(StorefrontError):
    """Raised when an order's status does not allow cancellation."""
    status_code = 409


class InvalidTransitionError(StorefrontError):
    """Raised for order status changes outside the state machine."""
    status_code = 409


class ValidationFailedError(StorefrontError):
    """Raised for field-level input errors."""
    status_code = 422

    def __init__(self, errors: dict, message: Optional[str] = None):
        self.errors = errors
        super().__init__(message or "Please correct the highlighted fields.")

    def details(self) -> dict:
        return {"errors": self.errors}


class NumberAllocationConflictError(StorefrontError):
    """Raised only when order-number retries are exhausted."""
    status_code = 503

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__("Could not allocate an order number, please try again.")


class PaymentError(StorefrontError):
    """Raised for payment processing errors."""
    status_code = 402


class AlreadyReviewedError(StorefrontError):
    """Raised when a customer reviews the same product twice."""
    status_code = 409

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__("You have already reviewed this product.")
