# backend/pos_app/services/catalog_service.py
"""
Catalog Service

Read side: get_product is the live lookup used by checkout. It always reads
the committed row from the database (no cache) so stock checks see the
latest quantity_on_hand.

Write side: product and category maintenance. Stock is never set here;
opening stock goes through the inventory ledger as a stock_in entry.
"""
from __future__ import annotations

import logging
import re

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, PosError, ProductNotFound, ValidationError
from ..extensions import db
from ..models import Category, Product
from ..models.inventory import REF_MANUAL, TX_STOCK_IN
from ..money import MAX_PRICE_CENTS, percent_to_bps, to_cents
from .concurrency import lock_for_update
from .inventory_service import record_transaction

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "category_id", "sku", "name", "description", "price_cents", "cost_cents",
    "tax_rate_bps", "reorder_level", "is_active", "image_url",
}
CATEGORY_MUTABLE_FIELDS = {"name", "description", "icon", "is_active"}

SKU_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9_-]{1,63}$")


def get_product(product_id: int, *, lock: bool = False, require_active: bool = True) -> Product:
    """
    Live product lookup.

    Raises ProductNotFound when the product is missing, or inactive and
    require_active is set.
    """
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFound(product_id)
    if require_active and not product.is_active:
        raise ProductNotFound(product_id, message=f"Product is inactive: {product_id}")
    return product


def list_products(include_inactive: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def list_products_by_category(category_id: int) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.category_id == category_id, Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def search_products(query: str, limit: int = 50) -> list[Product]:
    """Case-insensitive match on name or SKU, active products only."""
    term = (query or "").strip()
    if not term:
        return []
    pattern = f"%{term}%"
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)),
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .limit(limit)
        .all()
    )


def list_low_stock() -> list[Product]:
    """Active products at or below their reorder level, emptiest first."""
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.quantity_on_hand <= Product.reorder_level,
        )
        .order_by(Product.quantity_on_hand.asc(), Product.name.asc())
        .all()
    )


def _coerce_money_fields(patch: dict) -> dict:
    """Accept decimal 'price'/'cost'/'tax_rate' as well as cents/bps fields."""
    out = dict(patch)
    try:
        if "price" in out:
            out["price_cents"] = to_cents(out.pop("price"))
        if "cost" in out:
            out["cost_cents"] = to_cents(out.pop("cost"))
        if "tax_rate" in out:
            out["tax_rate_bps"] = percent_to_bps(out.pop("tax_rate"))
    except ValueError as exc:
        raise ValidationError(str(exc))
    return out


def _validate_product_patch(patch: dict, *, creating: bool) -> dict:
    patch = _coerce_money_fields(patch)
    unknown = set(patch) - PRODUCT_MUTABLE_FIELDS - {"quantity_on_hand"}
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    if "quantity_on_hand" in patch:
        raise ValidationError("quantity_on_hand can only change through inventory transactions")

    if creating:
        missing = [f for f in ("sku", "name", "price_cents") if patch.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if "sku" in patch:
        sku = str(patch["sku"]).strip().upper()
        if not SKU_PATTERN.match(sku):
            raise ValidationError("Invalid SKU format")
        patch["sku"] = sku

    if "name" in patch:
        name = (patch["name"] or "").strip()
        if not name:
            raise ValidationError("Product name is required")
        patch["name"] = name

    for key in ("price_cents", "cost_cents"):
        if key in patch:
            value = patch[key]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError("Price and cost must be non-negative numbers")
            if value > MAX_PRICE_CENTS:
                raise ValidationError(f"{key} exceeds maximum of {MAX_PRICE_CENTS}")

    for key in ("tax_rate_bps", "reorder_level"):
        if key in patch:
            value = patch[key]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(f"{key} must be a non-negative integer")

    if patch.get("category_id") is not None:
        category = db.session.query(Category).filter_by(id=patch["category_id"]).first()
        if category is None:
            raise ValidationError(f"Category not found: {patch['category_id']}")

    return patch


def create_product(*, patch: dict, principal_id: str, opening_quantity: int = 0) -> Product:
    """
    Create a product; opening stock is recorded as a stock_in ledger entry
    so the ledger alone reproduces quantity_on_hand.

    Raises:
        ValidationError: invalid fields
        ConflictError: SKU already exists
    """
    clean = _validate_product_patch(patch, creating=True)
    if not isinstance(opening_quantity, int) or isinstance(opening_quantity, bool) or opening_quantity < 0:
        raise ValidationError("opening_quantity must be a non-negative integer")

    try:
        product = Product(quantity_on_hand=0, **clean)
        db.session.add(product)
        db.session.flush()

        if opening_quantity > 0:
            record_transaction(
                product_id=product.id,
                transaction_type=TX_STOCK_IN,
                quantity_change=opening_quantity,
                principal_id=principal_id,
                reference_type=REF_MANUAL,
                notes="Opening stock",
            )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"SKU already exists: {clean['sku']}", details={"sku": clean["sku"]})
    except PosError:
        db.session.rollback()
        raise

    db.session.refresh(product)
    logger.info("Created product %s (%s)", product.id, product.sku)
    return product


def update_product(product_id: int, patch: dict) -> Product:
    product = get_product(product_id, require_active=False)
    clean = _validate_product_patch(patch, creating=False)
    for k, v in clean.items():
        setattr(product, k, v)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"SKU already exists: {clean.get('sku')}", details={"sku": clean.get("sku")})
    return product


def deactivate_product(product_id: int) -> Product:
    """Soft delete; order lines and ledger history keep referencing the row."""
    product = get_product(product_id, require_active=False)
    product.is_active = False
    db.session.commit()
    return product


def list_categories(include_inactive: bool = False) -> list[Category]:
    q = db.session.query(Category)
    if not include_inactive:
        q = q.filter(Category.is_active.is_(True))
    return q.order_by(Category.name.asc()).all()


def create_category(name: str, description: str | None = None, icon: str | None = None) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    category = Category(name=name, description=description, icon=icon)
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Category already exists: {name}", details={"name": name})
    return category


def update_category(category_id: int, patch: dict) -> Category:
    category = db.session.query(Category).filter_by(id=category_id).first()
    if category is None:
        raise ValidationError(f"Category not found: {category_id}")
    for k, v in patch.items():
        if k not in CATEGORY_MUTABLE_FIELDS:
            continue
        if k == "name":
            v = (v or "").strip()
            if not v:
                raise ValidationError("Category name is required")
        setattr(category, k, v)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Category already exists: {patch.get('name')}")
    return category
