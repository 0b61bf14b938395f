import pytest

from conftest import make_product
from pos_app.errors import ConflictError, ProductNotFound, ValidationError
from pos_app.services import catalog_service, inventory_service


def test_create_product_converts_decimal_fields(db_session, coffee):
    assert coffee.sku == "COFFEE-001"
    assert coffee.price_cents == 1299
    assert coffee.cost_cents == 650
    assert coffee.tax_rate_bps == 1000


def test_opening_stock_is_a_ledger_entry(db_session, coffee):
    [entry] = inventory_service.list_transactions(coffee.id)
    assert entry.transaction_type == "stock_in"
    assert entry.quantity_change == 20
    assert entry.notes == "Opening stock"
    assert coffee.quantity_on_hand == 20


def test_product_without_opening_stock_has_no_entries(db_session):
    product = make_product("EMPTY-1", "1.00")
    assert product.quantity_on_hand == 0
    assert inventory_service.list_transactions(product.id) == []


def test_sku_is_normalized_to_upper_case(db_session):
    product = make_product("tea-01", "2.00")
    assert product.sku == "TEA-01"


def test_duplicate_sku_conflicts(db_session, coffee):
    with pytest.raises(ConflictError):
        make_product("COFFEE-001", "1.00")
    assert len(catalog_service.list_products()) == 1


@pytest.mark.parametrize(
    "patch",
    [
        {"name": "No SKU", "price": "1.00"},
        {"sku": "NO-PRICE", "name": "No price"},
        {"sku": "BAD SKU", "name": "x", "price": "1.00"},
        {"sku": "NEG-1", "name": "x", "price": "-1.00"},
        {"sku": "QTY-1", "name": "x", "price": "1.00", "quantity_on_hand": 5},
        {"sku": "CAT-1", "name": "x", "price": "1.00", "category_id": 999},
    ],
)
def test_create_product_rejects_invalid_input(db_session, patch):
    with pytest.raises(ValidationError):
        catalog_service.create_product(patch=patch, principal_id="admin-1")


def test_get_product_respects_active_flag(db_session, coffee):
    catalog_service.deactivate_product(coffee.id)

    with pytest.raises(ProductNotFound):
        catalog_service.get_product(coffee.id)
    assert catalog_service.get_product(coffee.id, require_active=False).is_active is False


def test_get_product_unknown(db_session):
    with pytest.raises(ProductNotFound) as exc_info:
        catalog_service.get_product(424242)
    assert "424242" in exc_info.value.message


def test_update_product_cannot_touch_stock(db_session, coffee):
    with pytest.raises(ValidationError):
        catalog_service.update_product(coffee.id, {"quantity_on_hand": 999})

    updated = catalog_service.update_product(coffee.id, {"price": "13.49"})
    assert updated.price_cents == 1349
    assert updated.quantity_on_hand == 20


def test_search_and_low_stock(db_session, coffee, croissant):
    assert [p.sku for p in catalog_service.search_products("coffee")] == ["COFFEE-001"]
    assert [p.sku for p in catalog_service.search_products("bak")] == ["BAK-001"]
    assert catalog_service.search_products("   ") == []

    low = make_product("LOW-1", "1.00", quantity=2, reorder_level=5)
    assert [p.id for p in catalog_service.list_low_stock()] == [low.id]


def test_list_products_by_category(db_session, coffee, croissant, beverages):
    assert [p.sku for p in catalog_service.list_products_by_category(beverages.id)] == ["COFFEE-001"]


def test_categories(db_session):
    category = catalog_service.create_category("Snacks", "Chips and bars", "🍿")
    with pytest.raises(ConflictError):
        catalog_service.create_category("Snacks")
    with pytest.raises(ValidationError):
        catalog_service.create_category("  ")

    catalog_service.update_category(category.id, {"is_active": False})
    assert catalog_service.list_categories() == []
    assert len(catalog_service.list_categories(include_inactive=True)) == 1
