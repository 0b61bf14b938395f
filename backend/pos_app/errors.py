# Overview: Error taxonomy for checkout, cancellation and inventory operations.

"""
Every failure the order core can report carries a stable, machine-usable
``code`` and an English message naming the offending identifier. Services
raise these; ``pos_app.api`` and the routes turn them into result payloads.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for order core errors."""
    code = "POS_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PosError):
    """Malformed input (bad quantity, unknown payment method, etc.)."""
    code = "VALIDATION_ERROR"
    http_status = 400


class EmptyCart(PosError):
    code = "EMPTY_CART"
    http_status = 400

    def __init__(self, message: str = "Cart is empty", details: dict | None = None):
        super().__init__(message, details)


class ProductNotFound(PosError):
    code = "PRODUCT_NOT_FOUND"
    http_status = 404

    def __init__(self, product_id, message: str | None = None):
        super().__init__(
            message or f"Product not found: {product_id}",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class OrderNotFound(PosError):
    code = "ORDER_NOT_FOUND"
    http_status = 404

    def __init__(self, order_id):
        super().__init__(f"Order not found: {order_id}", details={"order_id": order_id})
        self.order_id = order_id


class InsufficientStock(PosError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_id, sku: str | None, requested: int, on_hand: int | None):
        label = sku or product_id
        super().__init__(
            f"Insufficient stock for product: {label}",
            details={
                "product_id": product_id,
                "sku": sku,
                "requested_quantity": requested,
                "on_hand": on_hand,
            },
        )
        self.product_id = product_id


class ConstraintViolation(PosError):
    """Applying a ledger entry would drive quantity_on_hand negative."""
    code = "CONSTRAINT_VIOLATION"
    http_status = 409

    def __init__(self, product_id, quantity_change: int, message: str | None = None):
        super().__init__(
            message or f"Quantity on hand for product {product_id} cannot go negative",
            details={"product_id": product_id, "quantity_change": quantity_change},
        )
        self.product_id = product_id
        self.quantity_change = quantity_change


class InvalidStateTransition(PosError):
    code = "INVALID_STATE_TRANSITION"
    http_status = 409

    def __init__(self, order_id, current: str, target: str):
        super().__init__(
            f"Cannot change order {order_id} from {current} to {target}",
            details={"order_id": order_id, "current_status": current, "target_status": target},
        )


class PersistenceFailure(PosError):
    """Transient storage failure; callers must re-fetch order state before retrying."""
    code = "PERSISTENCE_FAILURE"
    http_status = 503


class OrderNumberConflict(PosError):
    """Generated order number already exists. Retryable with a fresh number."""
    code = "ORDER_NUMBER_CONFLICT"
    http_status = 503

    def __init__(self, order_number: str):
        super().__init__(
            f"Order number {order_number} already exists",
            details={"order_number": order_number},
        )
        self.order_number = order_number


class ConflictError(PosError):
    """Business rule conflict such as a duplicate SKU or category name."""
    code = "CONFLICT"
    http_status = 409
