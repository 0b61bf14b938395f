# Overview: Flask API routes for checkout, cancellation and order history; parses input and returns JSON responses.

# backend/pos_app/routes/orders.py
"""Order API routes. The acting principal comes from X-Principal-Id."""

from flask import Blueprint, request, g, current_app

from .. import api
from ..decorators import require_principal
from ..errors import ValidationError
from ..results import Failure
from ..time_utils import end_of_day, parse_iso_datetime

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_with_lines(order) -> dict:
    return order.to_dict(include_lines=True)


def _order_list(orders) -> list[dict]:
    return [o.to_dict(include_lines=True) for o in orders]


def _parse_range_bound(value: str | None, *, is_end: bool):
    if value is None:
        return None
    dt = parse_iso_datetime(value)
    # A bare date as the end bound covers the whole day
    if is_end and dt is not None and len(value.strip()) == 10:
        dt = end_of_day(dt.date())
    return dt


@orders_bp.post("/checkout")
@require_principal
def checkout_route():
    """
    Check out a cart.

    Body: {"items": [{"product_id": 1, "quantity": 2}], "payment_method": "cash", "notes": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = api.checkout(
            g.principal_id,
            data.get("items") or [],
            data.get("payment_method"),
            data.get("notes"),
        )
        return result.to_response(_order_with_lines, status=201)

    except Exception:
        current_app.logger.exception("Failed to check out cart")
        return {"success": False, "error": "INTERNAL_ERROR", "message": "Internal server error"}, 500


@orders_bp.post("/<int:order_id>/cancel")
@require_principal
def cancel_order_route(order_id: int):
    """Cancel a completed order and restore its inventory."""
    try:
        data = request.get_json(silent=True) or {}
        result = api.cancel_order(order_id, g.principal_id, data.get("reason"))
        return result.to_response(_order_with_lines)

    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return {"success": False, "error": "INTERNAL_ERROR", "message": "Internal server error"}, 500


@orders_bp.get("/<int:order_id>")
@require_principal
def get_order_route(order_id: int):
    return api.get_order(order_id).to_response(_order_with_lines)


@orders_bp.get("")
@require_principal
def list_orders_route():
    """
    Query params (first match wins):
    - start, end: ISO dates/datetimes -> completed orders in range
    - principal_id: that cashier's completed orders ("me" for the caller)
    - otherwise all orders; status=all includes cancelled ones
    - limit: max rows
    """
    limit = request.args.get("limit", type=int)
    start = request.args.get("start")
    end = request.args.get("end")
    principal_id = request.args.get("principal_id")

    try:
        if start or end:
            start_dt = _parse_range_bound(start, is_end=False)
            end_dt = _parse_range_bound(end, is_end=True)
            result = api.list_orders_by_date_range(start_dt, end_dt)
        elif principal_id:
            if principal_id == "me":
                principal_id = g.principal_id
            result = api.list_orders_by_principal(
                principal_id,
                limit or current_app.config["DEFAULT_PRINCIPAL_ORDER_LIMIT"],
            )
        else:
            status = request.args.get("status", "completed")
            result = api.list_all_orders(
                limit or current_app.config["DEFAULT_ORDER_LIMIT"],
                status=None if status == "all" else status,
            )
    except ValueError:
        result = Failure.from_exception(ValidationError("start and end must be ISO-8601 dates"))

    return result.to_response(_order_list)
