from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import ADMIN, CASHIER
from pos_app import api
from pos_app.errors import InvalidStateTransition, OrderNotFound, PersistenceFailure, ValidationError
from pos_app.extensions import db
from pos_app.models import Order, Product
from pos_app.services import cancellation_service, checkout_service, inventory_service, order_service


@pytest.fixture
def sold(db_session, coffee, croissant):
    """A completed order: 2 x COFFEE-001 and 3 x BAK-001."""
    return checkout_service.place_order(
        CASHIER,
        [{"product_id": coffee.id, "quantity": 2}, {"product_id": croissant.id, "quantity": 3}],
        "cash",
    )


def test_cancel_restores_stock(db_session, sold, coffee, croissant):
    order = cancellation_service.cancel_order(sold.id, ADMIN, reason="Customer changed mind")

    assert order.status == "cancelled"
    assert order.cancelled_by == ADMIN
    assert order.cancel_reason == "Customer changed mind"
    assert order.cancelled_at is not None

    db_session.expire_all()
    assert db_session.get(Product, coffee.id).quantity_on_hand == 20
    assert db_session.get(Product, croissant.id).quantity_on_hand == 10


def test_cancel_appends_compensating_entries(db_session, sold, coffee, croissant):
    cancellation_service.cancel_order(sold.id, ADMIN)

    entries = inventory_service.list_transactions_for_order(sold.id)
    assert [(e.transaction_type, e.product_id, e.quantity_change) for e in entries] == [
        ("sale", coffee.id, -2),
        ("sale", croissant.id, -3),
        ("return", coffee.id, 2),
        ("return", croissant.id, 3),
    ]
    returns = [e for e in entries if e.transaction_type == "return"]
    assert all(e.notes == f"Order {sold.order_number} cancelled - inventory restored" for e in returns)
    assert inventory_service.net_change_for_order(sold.id) == 0
    assert inventory_service.find_discrepancies() == []


def test_cancel_keeps_lines_and_totals(db_session, sold):
    total = sold.total_cents
    cancellation_service.cancel_order(sold.id, ADMIN)

    order = order_service.get_order(sold.id)
    assert order.total_cents == total
    assert len(order.lines) == 2


def test_second_cancel_is_rejected(db_session, sold, coffee):
    cancellation_service.cancel_order(sold.id, ADMIN)

    with pytest.raises(InvalidStateTransition):
        cancellation_service.cancel_order(sold.id, ADMIN)

    db_session.expire_all()
    assert db_session.get(Product, coffee.id).quantity_on_hand == 20
    assert len(inventory_service.list_transactions_for_order(sold.id)) == 4


def test_pending_order_cannot_be_cancelled(db_session, sold):
    db.session.execute(
        Order.__table__.update().where(Order.__table__.c.id == sold.id).values(status="pending")
    )
    db_session.commit()

    with pytest.raises(InvalidStateTransition) as exc_info:
        cancellation_service.cancel_order(sold.id, ADMIN)
    assert exc_info.value.details["current_status"] == "pending"


def test_unknown_order(db_session):
    with pytest.raises(OrderNotFound):
        cancellation_service.cancel_order(31337, ADMIN)


def test_principal_required(db_session, sold):
    with pytest.raises(ValidationError):
        cancellation_service.cancel_order(sold.id, "")


def test_cancelled_orders_leave_default_listings(db_session, sold):
    cancellation_service.cancel_order(sold.id, ADMIN)

    assert api.list_all_orders().data == []
    assert [o.id for o in api.list_all_orders(status=None).data] == [sold.id]
    assert api.list_orders_by_principal(CASHIER).data == []


def test_result_boundary(db_session, sold):
    result = api.cancel_order(sold.id, ADMIN)
    assert result.success is True
    assert result.message == f"Order {sold.order_number} cancelled and inventory restored"

    again = api.cancel_order(sold.id, ADMIN)
    assert again.success is False
    assert again.error == "INVALID_STATE_TRANSITION"
    assert again.http_status == 409


def _assert_untouched(db_session, sold, coffee, croissant):
    db_session.expire_all()
    assert order_service.get_order(sold.id).status == "completed"
    assert db_session.get(Product, coffee.id).quantity_on_hand == 18
    assert db_session.get(Product, croissant.id).quantity_on_hand == 7
    entries = inventory_service.list_transactions_for_order(sold.id)
    assert [e.transaction_type for e in entries] == ["sale", "sale"]
    assert inventory_service.find_discrepancies() == []


def test_storage_failure_after_first_return_leaves_nothing(db_session, sold, coffee, croissant):
    real_record = cancellation_service.record_transaction
    calls = []

    def _fail_second(**kwargs):
        calls.append(kwargs["product_id"])
        if len(calls) == 2:
            raise IntegrityError("INSERT INTO inventory_log", {}, Exception("disk I/O error"))
        return real_record(**kwargs)

    with patch.object(cancellation_service, "record_transaction", _fail_second):
        with pytest.raises(PersistenceFailure) as exc_info:
            cancellation_service.cancel_order(sold.id, ADMIN)

    assert exc_info.value.code == "PERSISTENCE_FAILURE"
    _assert_untouched(db_session, sold, coffee, croissant)


def test_storage_failure_at_status_change_leaves_nothing(db_session, sold, coffee, croissant):
    locked = OperationalError("UPDATE orders", {}, Exception("database is locked"))

    with patch.object(order_service, "set_status", side_effect=locked) as set_status:
        with pytest.raises(PersistenceFailure):
            cancellation_service.cancel_order(sold.id, ADMIN)

    # Lock errors before COMMIT are retried, then reported
    assert set_status.call_count == 3
    _assert_untouched(db_session, sold, coffee, croissant)


def test_commit_error_is_not_retried(db_session, sold, coffee, croissant):
    session = db.session()

    def _commit_then_fail():
        session.commit()
        raise OperationalError("COMMIT", {}, Exception("connection lost"))

    with patch.object(db.session, "commit", side_effect=_commit_then_fail) as commit:
        with pytest.raises(PersistenceFailure) as exc_info:
            cancellation_service.cancel_order(sold.id, ADMIN)

    assert commit.call_count == 1
    assert exc_info.value.details["committed"] == "unknown"

    db_session.expire_all()
    assert order_service.get_order(sold.id).status == "cancelled"
    assert db_session.get(Product, coffee.id).quantity_on_hand == 20
    assert db_session.get(Product, croissant.id).quantity_on_hand == 10
    assert inventory_service.net_change_for_order(sold.id) == 0
