from __future__ import annotations

from ..extensions import db
from salesledger.money import money_str
from salesledger.time_utils import to_utc_z


class Product(db.Model):
    """
    Product in a tenant's private catalog.

    OWNERSHIP: owner_user_id is assigned from the actor at creation and is
    never writable afterwards. Every read and write is scoped by it.

    Prices are fixed-point (Numeric 12,2) and read back as Decimal.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_owner_created", "owner_user_id", "created_at"),
        db.Index("ix_products_owner_name", "owner_user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(255), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)
    bulk_cost = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship("User", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} owner_user_id={self.owner_user_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "name": self.name,
            "brand": self.brand,
            "price": money_str(self.price),
            "unit_cost": money_str(self.unit_cost),
            "bulk_cost": money_str(self.bulk_cost),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
