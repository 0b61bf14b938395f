# Overview: Flask API routes for the product catalog and categories; parses input and returns JSON responses.

# backend/pos_app/routes/products.py
"""
Catalog routes.

Products are soft-deleted so order lines and ledger history keep their
references. Stock cannot be edited here; use /api/inventory.
"""
from flask import Blueprint, request, g

from .. import api
from ..decorators import require_principal
from ..errors import PosError
from ..results import Failure, Success
from ..services import catalog_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


def _error(exc: PosError):
    return Failure.from_exception(exc).to_response()


@products_bp.get("")
@require_principal
def list_products():
    """
    Query params:
    - category_id: int (optional) - products in one category
    - include_inactive: "true" to include deactivated products
    """
    category_id = request.args.get("category_id", type=int)
    if category_id is not None:
        products = catalog_service.list_products_by_category(category_id)
    else:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        products = catalog_service.list_products(include_inactive=include_inactive)
    return {"success": True, "data": [p.to_dict() for p in products]}


@products_bp.get("/search")
@require_principal
def search_products():
    products = catalog_service.search_products(request.args.get("q", ""))
    return {"success": True, "data": [p.to_dict() for p in products]}


@products_bp.post("")
@require_principal
def create_product():
    """
    Body: product fields (sku, name, price or price_cents, cost, tax_rate, ...)
    plus optional opening_quantity.
    """
    data = request.get_json(silent=True) or {}
    opening_quantity = data.pop("opening_quantity", 0)
    try:
        product = catalog_service.create_product(
            patch=data,
            principal_id=g.principal_id,
            opening_quantity=opening_quantity,
        )
    except PosError as e:
        return _error(e)
    return Success(product, message="Product created successfully").to_response(
        lambda p: p.to_dict(), status=201
    )


@products_bp.get("/<int:product_id>")
@require_principal
def get_product(product_id: int):
    return api.get_product(product_id).to_response(lambda p: p.to_dict())


@products_bp.patch("/<int:product_id>")
@require_principal
def update_product(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(product_id, data)
    except PosError as e:
        return _error(e)
    return Success(product, message="Product updated successfully").to_response(lambda p: p.to_dict())


@products_bp.delete("/<int:product_id>")
@require_principal
def delete_product(product_id: int):
    try:
        catalog_service.deactivate_product(product_id)
    except PosError as e:
        return _error(e)
    return {"success": True, "data": None, "message": "Product deleted successfully"}


@categories_bp.get("")
@require_principal
def list_categories():
    categories = catalog_service.list_categories()
    return {"success": True, "data": [c.to_dict() for c in categories]}


@categories_bp.post("")
@require_principal
def create_category():
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(
            data.get("name"),
            data.get("description"),
            data.get("icon"),
        )
    except PosError as e:
        return _error(e)
    return Success(category, message="Category created successfully").to_response(
        lambda c: c.to_dict(), status=201
    )


@categories_bp.patch("/<int:category_id>")
@require_principal
def update_category(category_id: int):
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.update_category(category_id, data)
    except PosError as e:
        return _error(e)
    return Success(category, message="Category updated successfully").to_response(lambda c: c.to_dict())
