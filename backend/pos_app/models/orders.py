from __future__ import annotations

from ..extensions import db
from ..money import bps_to_percent, cents_to_decimal
from ..time_utils import to_utc_z, utcnow

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED)

PAYMENT_METHODS = ("cash", "card", "mobile")


class Order(db.Model):
    """
    Order header.

    LIFECYCLE: checkout writes orders directly as 'completed'. The only later
    mutation is completed -> cancelled (terminal). 'pending' is a legal stored
    value that no workflow in this service produces.

    Totals are stored in cents and equal the sums of the line values.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.CheckConstraint("subtotal_cents >= 0", name="ck_orders_subtotal_nonneg"),
        db.CheckConstraint("tax_total_cents >= 0", name="ck_orders_tax_nonneg"),
        db.CheckConstraint("total_cents >= 0", name="ck_orders_total_nonneg"),
        db.CheckConstraint(
            "status IN ('pending', 'completed', 'cancelled')", name="ck_orders_status"
        ),
        db.CheckConstraint(
            "payment_method IN ('cash', 'card', 'mobile')", name="ck_orders_payment_method"
        ),
        # Per-cashier history and date range reports are both status-filtered
        db.Index("ix_orders_cashier_status_created", "cashier_id", "status", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Opaque principal id of the cashier/admin who rang the sale
    cashier_id = db.Column(db.String(64), nullable=False, index=True)

    # Human-readable number, e.g. "ORD-20261018-143005-0421"
    order_number = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_COMPLETED)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # Cancellation audit trail
    cancelled_by = db.Column(db.String(64), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.id",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        out = {
            "id": self.id,
            "cashier_id": self.cashier_id,
            "order_number": self.order_number,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "tax_total_cents": self.tax_total_cents,
            "total_cents": self.total_cents,
            "subtotal": cents_to_decimal(self.subtotal_cents),
            "tax_total": cents_to_decimal(self.tax_total_cents),
            "total": cents_to_decimal(self.total_cents),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "cancelled_by": self.cancelled_by,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            out["items"] = [line.to_dict() for line in self.lines]
        return out


class OrderLine(db.Model):
    """
    Line item with the price and tax rate captured at sale time.

    Snapshot columns never follow later catalog edits; lines are never updated.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_lines_qty_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_order_lines_price_nonneg"),
        db.CheckConstraint("line_total_cents >= 0", name="ck_order_lines_total_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    line_subtotal_cents = db.Column(db.Integer, nullable=False)
    line_tax_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now()
    )

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "sku": self.product.sku if self.product else None,
            "name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_price": cents_to_decimal(self.unit_price_cents),
            "tax_rate_bps": self.tax_rate_bps,
            "tax_rate": bps_to_percent(self.tax_rate_bps),
            "line_subtotal_cents": self.line_subtotal_cents,
            "line_tax_cents": self.line_tax_cents,
            "line_total_cents": self.line_total_cents,
            "line_total": cents_to_decimal(self.line_total_cents),
            "created_at": to_utc_z(self.created_at),
        }
