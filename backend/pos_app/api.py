# Overview: Result-returning entry points for the order core; the boundary used by routes and callers.

"""
Every function here returns a Success or Failure instead of raising for
business failures. Storage errors that escape the services are rolled back
and reported as PERSISTENCE_FAILURE. Anything else (programming errors)
still propagates; routes log it and answer 500.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps

from sqlalchemy.exc import SQLAlchemyError

from .errors import PersistenceFailure, PosError
from .extensions import db
from .results import Failure, Result, Success
from .services import (
    cancellation_service,
    catalog_service,
    checkout_service,
    inventory_service,
    order_service,
)

logger = logging.getLogger(__name__)


def _as_result(func):
    @wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return func(*args, **kwargs)
        except PosError as exc:
            return Failure.from_exception(exc)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Storage failure in %s", func.__name__)
            return Failure.from_exception(
                PersistenceFailure("Storage failure", details={"reason": str(exc)})
            )
    return wrapper


@_as_result
def checkout(principal_id: str, cart_lines, payment_method: str, notes: str | None = None) -> Result:
    order = checkout_service.place_order(principal_id, cart_lines, payment_method, notes)
    return Success(order, message=f"Order {order.order_number} created successfully")


@_as_result
def cancel_order(order_id: int, principal_id: str, reason: str | None = None) -> Result:
    order = cancellation_service.cancel_order(order_id, principal_id, reason)
    return Success(order, message=f"Order {order.order_number} cancelled and inventory restored")


@_as_result
def get_order(order_id: int) -> Result:
    return Success(order_service.get_order(order_id))


@_as_result
def list_orders_by_principal(principal_id: str, limit: int = 50) -> Result:
    return Success(order_service.list_by_principal(principal_id, limit))


@_as_result
def list_all_orders(limit: int = 100, status: str | None = "completed") -> Result:
    return Success(order_service.list_all(limit, status=status))


@_as_result
def list_orders_by_date_range(start: datetime, end: datetime) -> Result:
    return Success(order_service.list_by_date_range(start, end))


@_as_result
def get_product(product_id: int) -> Result:
    return Success(catalog_service.get_product(product_id))


@_as_result
def update_stock(
    product_id: int,
    quantity_change: int,
    transaction_type: str,
    principal_id: str,
    notes: str | None = None,
) -> Result:
    product, entry = inventory_service.update_stock(
        product_id=product_id,
        quantity_change=quantity_change,
        transaction_type=transaction_type,
        principal_id=principal_id,
        notes=notes,
    )
    return Success({"product": product, "log": entry}, message="Stock updated successfully")


@_as_result
def list_transactions(product_id: int, limit: int | None = None) -> Result:
    catalog_service.get_product(product_id, require_active=False)
    return Success(inventory_service.list_transactions(product_id, limit))


@_as_result
def inventory_value() -> Result:
    return Success(inventory_service.total_value())
