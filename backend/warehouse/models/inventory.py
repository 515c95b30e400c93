from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data plus its stock snapshot.

    quantity/total_weight are a denormalized snapshot of the ledger
    (stock_transactions). Every mutation path rewrites both together, so
    total_weight == weight(unit, quantity) holds for every committed row.

    unit is fixed at creation: changing it would re-price every historical
    transaction weight.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_company_name", "company", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    # Free-text grouping key used by reports
    company = db.Column(db.String(255), nullable=False, index=True)

    unit = db.Column(db.String(16), nullable=False)
    box_weight = db.Column(db.Float, nullable=True)
    pallet_weight = db.Column(db.Float, nullable=True)
    # Informational only; never part of the weight formula
    boxes_per_pallet = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Float, nullable=False, default=0)
    total_weight = db.Column(db.Float, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} unit={self.unit} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "company": self.company,
            "unit": self.unit,
            "box_weight": self.box_weight,
            "pallet_weight": self.pallet_weight,
            "boxes_per_pallet": self.boxes_per_pallet,
            "quantity": self.quantity,
            "total_weight": self.total_weight,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransaction(db.Model):
    """
    Append-only stock ledger. One row per movement; rows are never updated or deleted.

    total_weight is priced with the product's weight parameters at the time
    of recording and is not recomputed later.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stock_transactions_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # "in" or "out"
    type = db.Column(db.String(8), nullable=False, index=True)

    # Always positive; direction comes from type
    quantity = db.Column(db.Float, nullable=False)
    total_weight = db.Column(db.Float, nullable=False)

    note = db.Column(db.String(255), nullable=True)

    # Client-supplied submission key; a repeated key returns the original row
    request_id = db.Column(db.String(64), nullable=True, unique=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<StockTransaction id={self.id} product_id={self.product_id} {self.type} {self.quantity}>"

    @property
    def signed_quantity(self) -> float:
        return self.quantity if self.type == "in" else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "total_weight": self.total_weight,
            "note": self.note,
            "request_id": self.request_id,
            "created_by_user_id": self.created_by_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }
