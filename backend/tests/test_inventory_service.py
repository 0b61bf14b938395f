"""
Inventory ledger tests.

Verifies:
- record_transaction applies the change and appends exactly one entry
- sign rules and the non-negative stock guard
- conservation: the ledger alone reproduces quantity_on_hand
- read side: newest-first history, inventory value
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import ADMIN, make_product
from pos_app import api
from pos_app.errors import ConstraintViolation, PersistenceFailure, ProductNotFound, ValidationError
from pos_app.extensions import db
from pos_app.models import InventoryLogEntry, Product
from pos_app.services import inventory_service
from pos_app.time_utils import utcnow


class TestRecordTransaction:

    def test_applies_change_and_appends_entry(self, db_session, coffee):
        entry = inventory_service.record_transaction(
            product_id=coffee.id,
            transaction_type="stock_in",
            quantity_change=5,
            principal_id=ADMIN,
            notes="Delivery",
        )
        db_session.commit()

        assert entry.id is not None
        assert db_session.get(Product, coffee.id).quantity_on_hand == 25
        assert entry.created_by == ADMIN
        assert entry.notes == "Delivery"

    def test_rejects_change_that_would_go_negative(self, db_session, coffee):
        with pytest.raises(ConstraintViolation):
            inventory_service.record_transaction(
                product_id=coffee.id,
                transaction_type="adjustment",
                quantity_change=-21,
                principal_id=ADMIN,
            )
        db_session.rollback()

        assert db_session.get(Product, coffee.id).quantity_on_hand == 20
        assert db_session.query(InventoryLogEntry).filter_by(product_id=coffee.id).count() == 1

    def test_drain_to_exactly_zero_is_allowed(self, db_session, coffee):
        inventory_service.record_transaction(
            product_id=coffee.id,
            transaction_type="sale",
            quantity_change=-20,
            principal_id=ADMIN,
        )
        db_session.commit()
        assert db_session.get(Product, coffee.id).quantity_on_hand == 0

    @pytest.mark.parametrize(
        "tx_type,change",
        [("sale", 3), ("stock_in", -3), ("return", -1), ("adjustment", 0), ("gift", 1)],
    )
    def test_sign_rules(self, db_session, coffee, tx_type, change):
        with pytest.raises(ValidationError):
            inventory_service.record_transaction(
                product_id=coffee.id,
                transaction_type=tx_type,
                quantity_change=change,
                principal_id=ADMIN,
            )

    def test_requires_principal(self, db_session, coffee):
        with pytest.raises(ValidationError):
            inventory_service.record_transaction(
                product_id=coffee.id,
                transaction_type="stock_in",
                quantity_change=1,
                principal_id="",
            )

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            inventory_service.record_transaction(
                product_id=9999,
                transaction_type="stock_in",
                quantity_change=1,
                principal_id=ADMIN,
            )


class TestUpdateStock:

    def test_stock_in_commits(self, db_session, coffee):
        product, entry = inventory_service.update_stock(
            product_id=coffee.id,
            quantity_change=12,
            transaction_type="stock_in",
            principal_id=ADMIN,
            notes="PO 42",
        )
        assert product.quantity_on_hand == 32
        assert entry.reference_type == "manual"

        db_session.expire_all()
        assert db_session.get(Product, coffee.id).quantity_on_hand == 32

    def test_negative_adjustment(self, db_session, coffee):
        product, _ = inventory_service.update_stock(
            product_id=coffee.id,
            quantity_change=-4,
            transaction_type="adjustment",
            principal_id=ADMIN,
            notes="Shrinkage",
        )
        assert product.quantity_on_hand == 16

    def test_sale_type_not_allowed_manually(self, db_session, coffee):
        with pytest.raises(ValidationError):
            inventory_service.update_stock(
                product_id=coffee.id,
                quantity_change=-1,
                transaction_type="sale",
                principal_id=ADMIN,
            )

    def test_over_adjustment_rolls_back(self, db_session, coffee):
        with pytest.raises(ConstraintViolation):
            inventory_service.update_stock(
                product_id=coffee.id,
                quantity_change=-50,
                transaction_type="adjustment",
                principal_id=ADMIN,
            )
        db_session.expire_all()
        assert db_session.get(Product, coffee.id).quantity_on_hand == 20
        assert len(inventory_service.list_transactions(coffee.id)) == 1

    def test_storage_failure_rolls_back_and_reports(self, db_session, coffee):
        broken = IntegrityError("INSERT INTO inventory_log", {}, Exception("disk I/O error"))

        with patch.object(inventory_service, "record_transaction", side_effect=broken):
            with pytest.raises(PersistenceFailure):
                inventory_service.update_stock(
                    product_id=coffee.id,
                    quantity_change=5,
                    transaction_type="stock_in",
                    principal_id=ADMIN,
                )
            result = api.update_stock(coffee.id, 5, "stock_in", ADMIN)

        assert result.error == "PERSISTENCE_FAILURE"
        db_session.expire_all()
        assert db_session.get(Product, coffee.id).quantity_on_hand == 20
        assert len(inventory_service.list_transactions(coffee.id)) == 1


class TestLedgerReads:

    def test_history_is_newest_first(self, db_session, coffee):
        for qty in (1, 2, 3):
            inventory_service.update_stock(
                product_id=coffee.id,
                quantity_change=qty,
                transaction_type="stock_in",
                principal_id=ADMIN,
            )
        changes = [e.quantity_change for e in inventory_service.list_transactions(coffee.id)]
        assert changes == [3, 2, 1, 20]
        assert len(inventory_service.list_transactions(coffee.id, limit=2)) == 2

    def test_reconcile_matches_counter(self, db_session, coffee, croissant):
        inventory_service.update_stock(
            product_id=coffee.id, quantity_change=-3,
            transaction_type="adjustment", principal_id=ADMIN,
        )
        inventory_service.update_stock(
            product_id=croissant.id, quantity_change=4,
            transaction_type="return", principal_id=ADMIN,
        )
        db_session.expire_all()
        for product in db_session.query(Product).all():
            assert inventory_service.reconcile_quantity(product.id) == product.quantity_on_hand
        assert inventory_service.find_discrepancies() == []

    def test_reconcile_as_of_excludes_later_entries(self, db_session, coffee):
        before = utcnow()
        inventory_service.update_stock(
            product_id=coffee.id, quantity_change=7,
            transaction_type="stock_in", principal_id=ADMIN,
        )
        assert inventory_service.reconcile_quantity(coffee.id, as_of=before) == 20
        assert inventory_service.reconcile_quantity(coffee.id, as_of=utcnow() + timedelta(seconds=1)) == 27

    def test_discrepancy_reported_when_counter_is_tampered(self, db_session, coffee):
        db.session.execute(
            Product.__table__.update()
            .where(Product.__table__.c.id == coffee.id)
            .values(quantity_on_hand=5)
        )
        db_session.commit()

        [row] = inventory_service.find_discrepancies()
        assert row["sku"] == "COFFEE-001"
        assert row["ledger_quantity"] == 20
        assert row["difference"] == -15

    def test_total_value_uses_cost_of_active_products(self, db_session, coffee, croissant):
        # 20 x 6.50 + 10 x 0.90
        assert inventory_service.total_value() == 20 * 650 + 10 * 90

        retired = make_product("OLD-001", "1.00", quantity=100, cost="1.00")
        retired.is_active = False
        db_session.commit()
        assert inventory_service.total_value() == 20 * 650 + 10 * 90
