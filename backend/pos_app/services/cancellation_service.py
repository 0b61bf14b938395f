"""
Cancellation Service - reverse a completed order

Cancelling never deletes anything: each order line gets a compensating
'return' ledger entry for its original quantity, and the order moves to
'cancelled'. Afterwards the ledger entries that reference the order net to
zero and every product is back at its pre-sale level for this order.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..errors import InvalidStateTransition, PersistenceFailure, PosError, ValidationError
from ..extensions import db
from ..models import Order
from ..models.inventory import REF_ORDER, TX_RETURN
from ..models.orders import ORDER_STATUS_CANCELLED, ORDER_STATUS_COMPLETED
from . import order_service
from .concurrency import begin_write, run_with_retry
from .inventory_service import record_transaction

logger = logging.getLogger(__name__)


def cancel_order(order_id: int, principal_id: str, reason: str | None = None) -> Order:
    """
    Restore inventory and mark the order cancelled, as one unit of work.

    Raises:
        OrderNotFound: unknown order
        InvalidStateTransition: order is not 'completed'
        PersistenceFailure: storage failure before COMMIT (nothing was changed),
            or a failed COMMIT whose outcome is unknown (never retried)
    """
    if not principal_id:
        raise ValidationError("principal_id required")

    def _op():
        begin_write()
        order = order_service.get_order(order_id, lock=True)
        if order.status != ORDER_STATUS_COMPLETED:
            raise InvalidStateTransition(order.id, order.status, ORDER_STATUS_CANCELLED)

        lines = order_service.get_order_lines(order.id)
        for line in lines:
            record_transaction(
                product_id=line.product_id,
                transaction_type=TX_RETURN,
                quantity_change=line.quantity,
                principal_id=principal_id,
                reference_id=order.id,
                reference_type=REF_ORDER,
                notes=f"Order {order.order_number} cancelled - inventory restored",
            )

        order_service.set_status(
            order,
            ORDER_STATUS_CANCELLED,
            principal_id=principal_id,
            reason=reason,
        )
        return order

    try:
        order = run_with_retry(_op)
    except PosError as exc:
        db.session.rollback()
        logger.info("Cancellation of order %s rejected: %s", order_id, exc.message)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Cancellation of order %s rolled back after storage failure", order_id)
        raise PersistenceFailure("Storage failure during cancellation", details={"reason": str(exc)})

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Commit of cancellation for order %s failed; outcome unknown, not retried", order_id)
        raise PersistenceFailure(
            "Storage failure while committing cancellation; re-fetch the order before retrying",
            details={"reason": str(exc), "committed": "unknown"},
        )

    logger.info("Order %s cancelled by %s", order.order_number, principal_id)
    return order
