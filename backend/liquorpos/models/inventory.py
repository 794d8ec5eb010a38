from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z

LOCATION_KINDS = ("floor", "backroom", "warehouse")

TRANSACTION_KINDS = ("receiving", "sale", "transfer", "adjustment", "cycle_count")


class InventoryLocation(db.Model):
    """One of the three fixed stock locations (floor, backroom, warehouse)."""
    __tablename__ = "inventory_locations"
    __table_args__ = (
        db.CheckConstraint("type IN ('floor', 'backroom', 'warehouse')", name="ck_inventory_locations_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<InventoryLocation id={self.id} name={self.name!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "type": self.type}


class StockLevel(db.Model):
    """
    Current quantity of one variant at one location, per lot.

    The null lot is untracked stock and is its own key: the unique index
    below coalesces lot_number so (variant, location, NULL) can exist once
    alongside any number of named lots. Rows are never deleted; a fully
    consumed lot stays at zero.

    Only services/stock_service.py writes quantity.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stock_levels_quantity_nonnegative"),
        db.Index("ix_stock_levels_variant_location", "variant_id", "location_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
    )
    location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=False, index=True)
    lot_number = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    expiry_date = db.Column(db.Date, nullable=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variant = db.relationship("ProductVariant", back_populates="stock_levels")
    location = db.relationship("InventoryLocation")

    def __repr__(self) -> str:
        return (
            f"<StockLevel variant_id={self.variant_id} location_id={self.location_id} "
            f"lot={self.lot_number!r} qty={self.quantity}>"
        )

    def to_dict(self, include_cost: bool = False) -> dict:
        data = {
            "id": self.id,
            "variant_id": self.variant_id,
            "location_id": self.location_id,
            "location": self.location.name if self.location else None,
            "location_type": self.location.type if self.location else None,
            "lot_number": self.lot_number,
            "quantity": self.quantity,
            "expiry_date": to_iso_date(self.expiry_date),
            "updated_at": to_utc_z(self.updated_at),
        }
        if self.variant is not None:
            data["variant"] = self.variant.to_dict(include_cost=include_cost)
        return data


# Null lot participates in uniqueness as ''.
db.Index(
    "uq_stock_levels_variant_location_lot",
    StockLevel.variant_id,
    StockLevel.location_id,
    db.func.coalesce(StockLevel.lot_number, ""),
    unique=True,
)


class InventoryTransaction(db.Model):
    """Append-only audit row for every quantity change."""
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.CheckConstraint(
            "transaction_type IN ('receiving', 'sale', 'transfer', 'adjustment', 'cycle_count')",
            name="ck_inventory_transactions_type",
        ),
        db.Index("ix_invtx_variant_location_created", "variant_id", "location_id", "created_at"),
        db.Index("ix_invtx_type_created", "transaction_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False)
    quantity_change = db.Column(db.Integer, nullable=False)
    lot_number = db.Column(db.String(64), nullable=True)

    # Sale id, receiving session id, ... depending on transaction_type
    reference_id = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    variant = db.relationship("ProductVariant", back_populates="transactions")
    location = db.relationship("InventoryLocation")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "variant": self.variant.display_name if self.variant else None,
            "location_id": self.location_id,
            "location": self.location.name if self.location else None,
            "transaction_type": self.transaction_type,
            "quantity_change": self.quantity_change,
            "lot_number": self.lot_number,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
