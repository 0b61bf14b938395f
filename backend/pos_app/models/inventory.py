from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

TX_SALE = "sale"
TX_STOCK_IN = "stock_in"
TX_ADJUSTMENT = "adjustment"
TX_RETURN = "return"
TRANSACTION_TYPES = (TX_SALE, TX_STOCK_IN, TX_ADJUSTMENT, TX_RETURN)

REF_ORDER = "order"
REF_MANUAL = "manual"
REF_RETURN = "return"
REFERENCE_TYPES = (REF_ORDER, REF_MANUAL, REF_RETURN)


class InventoryLogEntry(db.Model):
    """
    Append-only inventory ledger.

    Every change to Product.quantity_on_hand has exactly one row here, written
    in the same DB transaction. Rows are never updated or deleted; a
    cancelled sale is recorded as a compensating 'return' row.

    Ordering: (created_at, id). created_at is assigned by the application
    clock at insert so ties within the database's timestamp resolution are
    broken by id.
    """
    __tablename__ = "inventory_log"
    __table_args__ = (
        db.CheckConstraint(
            "transaction_type IN ('sale', 'stock_in', 'adjustment', 'return')",
            name="ck_inventory_log_type",
        ),
        db.CheckConstraint("quantity_change <> 0", name="ck_inventory_log_nonzero"),
        db.Index("ix_inventory_log_product_created", "product_id", "created_at"),
        db.Index("ix_inventory_log_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)

    # Originating document (orders.id for sales and cancellations)
    reference_id = db.Column(db.Integer, nullable=True)
    reference_type = db.Column(db.String(16), nullable=True)

    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(64), nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product", backref=db.backref("inventory_log", lazy="dynamic"))

    def __repr__(self) -> str:
        return (
            f"<InventoryLogEntry id={self.id} product_id={self.product_id} "
            f"type={self.transaction_type} change={self.quantity_change}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "transaction_type": self.transaction_type,
            "quantity_change": self.quantity_change,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
