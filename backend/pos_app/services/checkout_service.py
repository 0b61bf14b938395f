"""
Checkout Service - cart to completed order in one unit of work

States:
    VALIDATING -> RESERVING -> COMMITTED
    VALIDATING -> REJECTED      (empty cart, unknown product, short stock)
    RESERVING  -> ROLLED_BACK   (commit-time stock race, storage failure)

WHY: the validation read and the stock decrement are separated in time.
Stock is re-checked by the conditional UPDATE in the ledger at commit time,
so two checkouts racing for the last units cannot both succeed. A lost race
is reported as InsufficientStock, the same error a caller gets when the
validation read already saw short stock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    ConstraintViolation,
    EmptyCart,
    InsufficientStock,
    OrderNumberConflict,
    PersistenceFailure,
    PosError,
    ValidationError,
)
from ..extensions import db
from ..models import Order
from ..models.inventory import REF_ORDER, TX_SALE
from ..models.orders import PAYMENT_METHODS
from ..money import line_amounts, order_totals
from . import order_service
from .catalog_service import get_product
from .concurrency import begin_write, run_with_retry
from .inventory_service import record_transaction
from .order_service import PricedLine

logger = logging.getLogger(__name__)

VALIDATING = "VALIDATING"
RESERVING = "RESERVING"
COMMITTED = "COMMITTED"
REJECTED = "REJECTED"
ROLLED_BACK = "ROLLED_BACK"


@dataclass(frozen=True)
class CartLine:
    """
    Client-supplied cart line. The product snapshot is what the register
    displayed; it is never used for price, tax or availability.
    """
    product_id: int
    quantity: int
    snapshot: dict = field(default_factory=dict)


def _coerce_positive_int(value, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a positive integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer", details={name: value})
    return value


def parse_cart(raw_lines) -> list[CartLine]:
    """
    Normalize cart input: CartLine objects, or dicts with product_id,
    quantity and an optional 'product' snapshot.
    """
    if not raw_lines:
        raise EmptyCart()
    cart = []
    for raw in raw_lines:
        if isinstance(raw, CartLine):
            line = raw
        elif isinstance(raw, dict):
            line = CartLine(
                product_id=raw.get("product_id"),
                quantity=raw.get("quantity"),
                snapshot=raw.get("product") or {},
            )
        else:
            raise ValidationError("Cart lines must be objects with product_id and quantity")
        cart.append(CartLine(
            product_id=_coerce_positive_int(line.product_id, "product_id"),
            quantity=_coerce_positive_int(line.quantity, "quantity"),
            snapshot=line.snapshot,
        ))
    return cart


def _validate_request(principal_id, cart_lines, payment_method) -> list[CartLine]:
    """Input checks that need no I/O."""
    if not cart_lines:
        raise EmptyCart()
    if not principal_id:
        raise ValidationError("principal_id required")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}",
            details={"allowed": list(PAYMENT_METHODS)},
        )
    return parse_cart(cart_lines)


def _price_lines(cart: list[CartLine]) -> list[PricedLine]:
    """
    VALIDATING: live lookup for every line, aggregated stock check,
    price/tax snapshot and per-line rounding.
    """
    requested: dict[int, int] = {}
    for line in cart:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    products = {}
    for product_id in requested:
        products[product_id] = get_product(product_id, lock=True)

    for product_id, qty in requested.items():
        product = products[product_id]
        if product.quantity_on_hand < qty:
            raise InsufficientStock(product.id, product.sku, qty, product.quantity_on_hand)

    priced = []
    for line in cart:
        product = products[line.product_id]
        shown_price = line.snapshot.get("price_cents")
        if shown_price is not None and shown_price != product.price_cents:
            logger.info(
                "Cart price for %s was %s, charging live price %s",
                product.sku, shown_price, product.price_cents,
            )
        priced.append(PricedLine(
            product_id=product.id,
            quantity=line.quantity,
            unit_price_cents=product.price_cents,
            tax_rate_bps=product.tax_rate_bps,
            amounts=line_amounts(product.price_cents, line.quantity, product.tax_rate_bps),
            sku=product.sku,
        ))
    return priced


def _reserve(principal_id: str, priced: list[PricedLine], payment_method: str, notes: str | None) -> Order:
    """RESERVING: header, lines and sale entries in the open transaction."""
    totals = order_totals(line.amounts for line in priced)
    order = order_service.create_order(
        principal_id=principal_id,
        lines=priced,
        payment_method=payment_method,
        totals=totals,
        notes=notes,
    )

    requested: dict[int, int] = {}
    for line in priced:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    for line in priced:
        try:
            record_transaction(
                product_id=line.product_id,
                transaction_type=TX_SALE,
                quantity_change=-line.quantity,
                principal_id=principal_id,
                reference_id=order.id,
                reference_type=REF_ORDER,
                notes=f"Sale {order.order_number}",
            )
        except ConstraintViolation:
            # Report what the stock check compared: the cart's total for the product
            raise InsufficientStock(line.product_id, line.sku, requested[line.product_id], None)

    return order


def place_order(
    principal_id: str,
    cart_lines,
    payment_method: str,
    notes: str | None = None,
) -> Order:
    """
    Validate the cart and commit order + lines + inventory decrements
    atomically. Raises a PosError subclass on failure; nothing from a
    failed attempt is left in the database.

    Only the work before COMMIT is retried. A failure raised by the COMMIT
    itself is ambiguous (the transaction may already be durable), so it is
    reported as PersistenceFailure and never re-run.
    """
    state = VALIDATING
    cart = _validate_request(principal_id, cart_lines, payment_method)
    attempts = current_app.config.get("ORDER_NUMBER_ATTEMPTS", 3)

    def _op():
        nonlocal state
        state = VALIDATING
        begin_write()
        priced = _price_lines(cart)
        state = RESERVING
        return _reserve(str(principal_id), priced, payment_method, notes)

    try:
        order = run_with_retry(_op, attempts=attempts)
    except OrderNumberConflict as exc:
        db.session.rollback()
        logger.error("Checkout rolled back: no unique order number after %d attempts", attempts)
        raise PersistenceFailure(
            "Could not allocate a unique order number",
            details={"attempts": attempts, "order_number": exc.order_number},
        )
    except PosError as exc:
        db.session.rollback()
        final = REJECTED if state == VALIDATING else ROLLED_BACK
        logger.info("Checkout %s for %s: %s", final, principal_id, exc.message)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Checkout rolled back after storage failure")
        raise PersistenceFailure("Storage failure during checkout", details={"reason": str(exc)})

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Checkout commit failed for %s; outcome unknown, not retried", principal_id)
        raise PersistenceFailure(
            "Storage failure while committing checkout; re-fetch orders before retrying",
            details={"reason": str(exc), "committed": "unknown"},
        )
    state = COMMITTED

    logger.info(
        "Checkout %s: order %s total %d cents by %s",
        state, order.order_number, order.total_cents, principal_id,
    )
    return order
