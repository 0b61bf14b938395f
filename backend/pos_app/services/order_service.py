# Overview: Service-layer operations for order headers and lines; owns order numbering and lifecycle status.

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..errors import InvalidStateTransition, OrderNotFound, OrderNumberConflict, ValidationError
from ..extensions import db
from ..models import Order, OrderLine
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PENDING,
    ORDER_STATUSES,
    PAYMENT_METHODS,
)
from ..money import LineAmounts, OrderTotals
from ..time_utils import utcnow
from .concurrency import lock_for_update

"""
Order Store Invariants (authoritative)

- An order and its lines are inserted in one flush inside the caller's
  transaction; this module never commits.
- Line price and tax rate are snapshots taken at sale time.
- Status transitions: completed -> cancelled only. cancelled is terminal.
  pending is accepted by the schema but nothing here produces it.
- order_number is unique. Numbers carry a random suffix, so a collision is
  possible; it surfaces as OrderNumberConflict and the caller retries the
  whole unit of work with a fresh number.
"""

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ORD"

ALLOWED_TRANSITIONS = {
    ORDER_STATUS_PENDING: set(),
    ORDER_STATUS_COMPLETED: {ORDER_STATUS_CANCELLED},
    ORDER_STATUS_CANCELLED: set(),
}


@dataclass(frozen=True)
class PricedLine:
    """A cart line after live lookup: what gets written as an OrderLine."""
    product_id: int
    quantity: int
    unit_price_cents: int
    tax_rate_bps: int
    amounts: LineAmounts
    sku: str | None = None


def generate_order_number(now: datetime | None = None) -> str:
    """ORD-YYYYMMDD-HHMMSS-XXXX with a random four digit suffix."""
    now = now or utcnow()
    suffix = f"{secrets.randbelow(10_000):04d}"
    return f"{ORDER_NUMBER_PREFIX}-{now:%Y%m%d}-{now:%H%M%S}-{suffix}"


def _is_order_number_conflict(exc: IntegrityError) -> bool:
    msg = str(getattr(exc, "orig", exc))
    return "order_number" in msg or "uq_orders_order_number" in msg


def create_order(
    *,
    principal_id: str,
    lines: list[PricedLine],
    payment_method: str,
    totals: OrderTotals,
    notes: str | None = None,
    order_number: str | None = None,
) -> Order:
    """
    Insert the order header (status completed) and its lines.

    Raises:
        ValidationError: no lines / bad payment method
        OrderNumberConflict: order_number already taken (retryable)
    """
    if not lines:
        raise ValidationError("Cannot create an order with no lines")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}",
            details={"allowed": list(PAYMENT_METHODS)},
        )

    order_number = order_number or generate_order_number()

    # Cheap pre-check; the unique constraint below is authoritative
    taken = db.session.query(Order.id).filter_by(order_number=order_number).first()
    if taken is not None:
        raise OrderNumberConflict(order_number)

    order = Order(
        cashier_id=str(principal_id),
        order_number=order_number,
        status=ORDER_STATUS_COMPLETED,
        subtotal_cents=totals.subtotal_cents,
        tax_total_cents=totals.tax_total_cents,
        total_cents=totals.total_cents,
        payment_method=payment_method,
        notes=notes,
    )
    db.session.add(order)
    try:
        db.session.flush()
    except IntegrityError as exc:
        if _is_order_number_conflict(exc):
            raise OrderNumberConflict(order_number)
        raise

    for line in lines:
        db.session.add(OrderLine(
            order_id=order.id,
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            tax_rate_bps=line.tax_rate_bps,
            line_subtotal_cents=line.amounts.subtotal_cents,
            line_tax_cents=line.amounts.tax_cents,
            line_total_cents=line.amounts.total_cents,
        ))
    db.session.flush()
    return order


def get_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).options(selectinload(Order.lines)).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise OrderNotFound(order_id)
    return order


def get_order_lines(order_id: int) -> list[OrderLine]:
    return (
        db.session.query(OrderLine)
        .filter_by(order_id=order_id)
        .order_by(OrderLine.id.asc())
        .all()
    )


def _newest_first(query):
    return query.order_by(Order.created_at.desc(), Order.id.desc())


def list_by_principal(principal_id: str, limit: int = 50) -> list[Order]:
    """A cashier's completed orders, newest first."""
    q = db.session.query(Order).options(selectinload(Order.lines)).filter(
        Order.cashier_id == str(principal_id),
        Order.status == ORDER_STATUS_COMPLETED,
    )
    return _newest_first(q).limit(limit).all()


def list_all(limit: int = 100, status: str | None = ORDER_STATUS_COMPLETED) -> list[Order]:
    """All orders newest first; status=None includes every status."""
    q = db.session.query(Order).options(selectinload(Order.lines))
    if status is not None:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid order status: {status}")
        q = q.filter(Order.status == status)
    return _newest_first(q).limit(limit).all()


def list_by_date_range(start: datetime, end: datetime) -> list[Order]:
    """Completed orders with start <= created_at <= end, newest first."""
    if start is None or end is None:
        raise ValidationError("start and end are required")
    if start > end:
        raise ValidationError("start must not be after end")
    q = db.session.query(Order).filter(
        Order.status == ORDER_STATUS_COMPLETED,
        Order.created_at >= start,
        Order.created_at <= end,
    )
    return _newest_first(q).all()


def set_status(
    order: Order,
    status: str,
    *,
    principal_id: str | None = None,
    reason: str | None = None,
) -> Order:
    """
    The only mutation path after creation. Flushes, never commits.

    Raises InvalidStateTransition for anything but the allowed transitions.
    """
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status: {status}")
    if status not in ALLOWED_TRANSITIONS.get(order.status, set()):
        raise InvalidStateTransition(order.id, order.status, status)

    order.status = status
    if status == ORDER_STATUS_CANCELLED:
        order.cancelled_at = utcnow()
        order.cancelled_by = str(principal_id) if principal_id is not None else None
        order.cancel_reason = reason
    db.session.flush()
    logger.info("Order %s status -> %s", order.order_number, status)
    return order
