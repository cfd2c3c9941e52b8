from __future__ import annotations

from ..extensions import db
from salesledger.money import money_str
from salesledger.time_utils import to_utc_z


class Sale(db.Model):
    """
    One line item of a sales transaction. The only persisted ledger unit.

    Lines created by one checkout share a transaction_id; the transaction
    itself is never stored and is rebuilt by grouping on that id.

    SNAPSHOTS: unit_price, total and utility are fixed when the line is
    written and do not follow later product price changes.

    UNIQUENESS: (transaction_id, line_number) is unique. Two concurrent
    checkouts that drew the same transaction id both insert line 1, so the
    second one fails at insert time and regenerates its id.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "line_number", name="uq_sales_transaction_line"),
        db.Index("ix_sales_user_created", "user_id", "created_at"),
        db.Index("ix_sales_user_transaction", "user_id", "transaction_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    transaction_id = db.Column(db.String(64), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    # Products may be deleted later; read paths tolerate a dangling id
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    utility = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "total": money_str(self.total),
            "utility": money_str(self.utility),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
