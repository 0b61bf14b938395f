# Overview: Flask API routes for the inventory ledger; parses input and returns JSON responses.

# backend/pos_app/routes/inventory.py
"""Inventory ledger routes: history, manual stock movements, valuation, reconciliation."""

from flask import Blueprint, request, g, current_app

from .. import api
from ..decorators import require_principal
from ..money import cents_to_decimal
from ..services import catalog_service, inventory_service

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _log_list(entries) -> list[dict]:
    return [e.to_dict() for e in entries]


def _stock_update(data: dict) -> dict:
    return {"product": data["product"].to_dict(), "log": data["log"].to_dict()}


@inventory_bp.get("/products/<int:product_id>/logs")
@require_principal
def list_logs_route(product_id: int):
    limit = request.args.get("limit", type=int)
    return api.list_transactions(product_id, limit).to_response(_log_list)


@inventory_bp.post("/products/<int:product_id>/stock")
@require_principal
def update_stock_route(product_id: int):
    """
    Record a stock movement.

    Body: {"quantity_change": 24, "transaction_type": "stock_in", "notes": "Delivery #88"}
    transaction_type: stock_in | adjustment | return
    """
    try:
        data = request.get_json(silent=True) or {}
        result = api.update_stock(
            product_id,
            data.get("quantity_change"),
            data.get("transaction_type"),
            g.principal_id,
            data.get("notes"),
        )
        return result.to_response(_stock_update, status=201)

    except Exception:
        current_app.logger.exception("Failed to update stock")
        return {"success": False, "error": "INTERNAL_ERROR", "message": "Internal server error"}, 500


@inventory_bp.get("/value")
@require_principal
def inventory_value_route():
    result = api.inventory_value()
    return result.to_response(lambda cents: {"value_cents": cents, "value": cents_to_decimal(cents)})


@inventory_bp.get("/low-stock")
@require_principal
def low_stock_route():
    products = catalog_service.list_low_stock()
    return {"success": True, "data": [p.to_dict() for p in products]}


@inventory_bp.get("/reconcile")
@require_principal
def reconcile_route():
    """Products whose quantity_on_hand disagrees with the sum of their ledger."""
    discrepancies = inventory_service.find_discrepancies()
    return {
        "success": True,
        "data": {"balanced": not discrepancies, "discrepancies": discrepancies},
    }
