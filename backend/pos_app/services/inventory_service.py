# Overview: Service-layer operations for the inventory ledger; encapsulates stock mutation and audit queries.

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.util import identity_key

from ..errors import ConstraintViolation, PersistenceFailure, PosError, ProductNotFound, ValidationError
from ..extensions import db
from ..models import InventoryLogEntry, Product
from ..models.inventory import (
    REF_MANUAL,
    REF_ORDER,
    REFERENCE_TYPES,
    TRANSACTION_TYPES,
    TX_ADJUSTMENT,
    TX_RETURN,
    TX_SALE,
    TX_STOCK_IN,
)
from ..time_utils import utcnow
from .concurrency import begin_write, run_with_retry

"""
Inventory Ledger Invariants (authoritative)

- inventory_log is append-only: no updates, no deletes.
- Every change to Product.quantity_on_hand is written by record_transaction,
  together with its log row, inside the caller's DB transaction.
- The stock change is a conditional UPDATE guarded by
  quantity_on_hand + change >= 0, evaluated by the database at write time.
  A zero-row update means the change would oversell: ConstraintViolation.
- Sign rules: sale < 0, stock_in > 0, return > 0, adjustment != 0.
- Conservation: quantity_on_hand == SUM(quantity_change) over the product's log
  (opening stock is itself a stock_in entry).
- Reads order newest-first by (created_at, id).
"""

logger = logging.getLogger(__name__)

MANUAL_TRANSACTION_TYPES = (TX_STOCK_IN, TX_ADJUSTMENT, TX_RETURN)


def _validate_change(transaction_type: str, quantity_change) -> None:
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"Invalid transaction type: {transaction_type}",
            details={"allowed": list(TRANSACTION_TYPES)},
        )
    if not isinstance(quantity_change, int) or isinstance(quantity_change, bool):
        raise ValidationError("quantity_change must be an integer")
    if quantity_change == 0:
        raise ValidationError("quantity_change cannot be zero")
    if transaction_type == TX_SALE and quantity_change > 0:
        raise ValidationError("sale entries must have a negative quantity_change")
    if transaction_type in (TX_STOCK_IN, TX_RETURN) and quantity_change < 0:
        raise ValidationError(f"{transaction_type} entries must have a positive quantity_change")


def _expire_cached_product(product_id: int) -> None:
    """Drop stale attribute state after a Core-level stock UPDATE."""
    product = db.session.identity_map.get(identity_key(Product, product_id))
    if product is not None:
        db.session.expire(product, ["quantity_on_hand", "updated_at"])


def record_transaction(
    *,
    product_id: int,
    transaction_type: str,
    quantity_change: int,
    principal_id: str,
    reference_id: int | None = None,
    reference_type: str | None = None,
    notes: str | None = None,
) -> InventoryLogEntry:
    """
    Append a ledger entry and apply its quantity change to the product.

    Participates in the caller's transaction: flushes, never commits.

    Raises:
        ValidationError: bad type/sign, missing principal
        ProductNotFound: product does not exist
        ConstraintViolation: the change would drive quantity_on_hand negative
    """
    _validate_change(transaction_type, quantity_change)
    if not principal_id:
        raise ValidationError("principal_id required for inventory transactions")
    if reference_type is not None and reference_type not in REFERENCE_TYPES:
        raise ValidationError(f"Invalid reference type: {reference_type}")

    products = Product.__table__
    result = db.session.execute(
        update(products)
        .where(
            products.c.id == product_id,
            products.c.quantity_on_hand + quantity_change >= 0,
        )
        .values(
            quantity_on_hand=products.c.quantity_on_hand + quantity_change,
            updated_at=utcnow(),
        )
    )
    if result.rowcount == 0:
        exists = db.session.query(Product.id).filter_by(id=product_id).first()
        if exists is None:
            raise ProductNotFound(product_id)
        logger.warning(
            "Rejected %s of %d for product %s: stock would go negative",
            transaction_type, quantity_change, product_id,
        )
        raise ConstraintViolation(product_id, quantity_change)

    _expire_cached_product(product_id)

    entry = InventoryLogEntry(
        product_id=product_id,
        transaction_type=transaction_type,
        quantity_change=quantity_change,
        reference_id=reference_id,
        reference_type=reference_type,
        notes=notes,
        created_by=str(principal_id),
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def update_stock(
    *,
    product_id: int,
    quantity_change: int,
    transaction_type: str,
    principal_id: str,
    notes: str | None = None,
) -> tuple[Product, InventoryLogEntry]:
    """
    Manual stock movement (receiving, count adjustment, walk-in return).

    Runs as its own committed unit of work.
    """
    if transaction_type not in MANUAL_TRANSACTION_TYPES:
        raise ValidationError(
            f"Invalid transaction type for manual stock update: {transaction_type}",
            details={"allowed": list(MANUAL_TRANSACTION_TYPES)},
        )

    def _op():
        begin_write()
        product = db.session.query(Product).filter_by(id=product_id).first()
        if product is None or not product.is_active:
            raise ProductNotFound(product_id)

        entry = record_transaction(
            product_id=product_id,
            transaction_type=transaction_type,
            quantity_change=quantity_change,
            principal_id=principal_id,
            reference_type=REF_MANUAL,
            notes=notes,
        )
        return product, entry

    try:
        product, entry = run_with_retry(_op)
    except PosError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Stock update for product %s rolled back after storage failure", product_id)
        raise PersistenceFailure("Storage failure during stock update", details={"reason": str(exc)})

    # A failed COMMIT may still have applied the change; it is not retried
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Stock update commit for product %s failed; outcome unknown", product_id)
        raise PersistenceFailure(
            "Storage failure while committing stock update; re-fetch the product before retrying",
            details={"reason": str(exc), "committed": "unknown"},
        )
    db.session.refresh(product)

    logger.info(
        "Stock %s of %+d recorded for product %s by %s",
        transaction_type, quantity_change, product_id, principal_id,
    )
    return product, entry


def list_transactions(product_id: int, limit: int | None = None) -> list[InventoryLogEntry]:
    """Ledger entries for a product, newest first."""
    q = (
        db.session.query(InventoryLogEntry)
        .filter(InventoryLogEntry.product_id == product_id)
        .order_by(InventoryLogEntry.created_at.desc(), InventoryLogEntry.id.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def list_transactions_for_order(order_id: int) -> list[InventoryLogEntry]:
    """Sale and compensating entries that reference an order, oldest first."""
    return (
        db.session.query(InventoryLogEntry)
        .filter(
            InventoryLogEntry.reference_type == REF_ORDER,
            InventoryLogEntry.reference_id == order_id,
        )
        .order_by(InventoryLogEntry.created_at.asc(), InventoryLogEntry.id.asc())
        .all()
    )


def net_change_for_order(order_id: int) -> int:
    q = db.session.query(
        func.coalesce(func.sum(InventoryLogEntry.quantity_change), 0)
    ).filter(
        InventoryLogEntry.reference_type == REF_ORDER,
        InventoryLogEntry.reference_id == order_id,
    )
    return int(q.scalar() or 0)


def total_value() -> int:
    """Inventory value at cost, in cents, over active products."""
    q = db.session.query(
        func.coalesce(func.sum(Product.quantity_on_hand * Product.cost_cents), 0)
    ).filter(Product.is_active.is_(True))
    return int(q.scalar() or 0)


def reconcile_quantity(product_id: int, as_of: datetime | None = None) -> int:
    """
    Recompute quantity on hand from the ledger alone.

    As-of filtering is inclusive: created_at <= as_of.
    """
    q = db.session.query(
        func.coalesce(func.sum(InventoryLogEntry.quantity_change), 0)
    ).filter(InventoryLogEntry.product_id == product_id)
    if as_of is not None:
        q = q.filter(InventoryLogEntry.created_at <= as_of)
    return int(q.scalar() or 0)


def find_discrepancies() -> list[dict]:
    """Products whose live counter disagrees with the sum of their ledger."""
    ledger = (
        db.session.query(
            InventoryLogEntry.product_id.label("product_id"),
            func.sum(InventoryLogEntry.quantity_change).label("ledger_quantity"),
        )
        .group_by(InventoryLogEntry.product_id)
        .subquery()
    )
    rows = (
        db.session.query(Product, func.coalesce(ledger.c.ledger_quantity, 0))
        .outerjoin(ledger, ledger.c.product_id == Product.id)
        .order_by(Product.id.asc())
        .all()
    )
    out = []
    for product, ledger_quantity in rows:
        ledger_quantity = int(ledger_quantity or 0)
        if product.quantity_on_hand != ledger_quantity:
            out.append({
                "product_id": product.id,
                "sku": product.sku,
                "quantity_on_hand": product.quantity_on_hand,
                "ledger_quantity": ledger_quantity,
                "difference": product.quantity_on_hand - ledger_quantity,
            })
    return out
