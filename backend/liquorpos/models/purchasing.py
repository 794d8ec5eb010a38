from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z

PO_STATUSES = ("draft", "sent", "received", "cancelled")


class Distributor(db.Model):
    __tablename__ = "distributors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseOrder(db.Model):
    """
    Order placed with a distributor.

    Status moves draft -> sent -> received, or to cancelled from draft/sent.
    The sent -> received step is driven by receiving-session completion,
    see purchase_order_service.refresh_purchase_order_receipt.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft', 'sent', 'received', 'cancelled')",
            name="ck_purchase_orders_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(32), nullable=False, unique=True)
    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    distributor = db.relationship("Distributor", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship(
        "POItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="POItem.id",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} po_number={self.po_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "po_number": self.po_number,
            "distributor_id": self.distributor_id,
            "distributor": self.distributor.name if self.distributor else None,
            "status": self.status,
            "total_amount": money_str(self.total_amount),
            "notes": self.notes,
            "created_by": self.created_by,
            "sent_at": to_utc_z(self.sent_at),
            "received_at": to_utc_z(self.received_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class POItem(db.Model):
    __tablename__ = "po_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_po_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    purchase_order = db.relationship("PurchaseOrder", back_populates="items")
    variant = db.relationship("ProductVariant", back_populates="po_items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_id": self.po_id,
            "variant_id": self.variant_id,
            "variant": self.variant.display_name if self.variant else None,
            "upc": self.variant.upc if self.variant else None,
            "quantity": self.quantity,
            "unit_cost": money_str(self.unit_cost),
        }


class ReceivingSession(db.Model):
    """A batch of goods received, optionally against a purchase order."""
    __tablename__ = "receiving_sessions"
    __table_args__ = (
        db.CheckConstraint("status IN ('in_progress', 'completed')", name="ck_receiving_sessions_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, index=True)
    received_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="in_progress", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    purchase_order = db.relationship("PurchaseOrder", backref=db.backref("receiving_sessions", lazy=True))
    items = db.relationship(
        "ReceivedItem",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ReceivedItem.id",
        lazy=True,
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "po_id": self.po_id,
            "po_number": self.purchase_order.po_number if self.purchase_order else None,
            "received_by": self.received_by,
            "status": self.status,
            "item_count": len(self.items),
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReceivedItem(db.Model):
    __tablename__ = "received_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_received_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer,
        db.ForeignKey("receiving_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    lot_number = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    session = db.relationship("ReceivingSession", back_populates="items")
    variant = db.relationship("ProductVariant", back_populates="received_items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "variant_id": self.variant_id,
            "variant": self.variant.display_name if self.variant else None,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "lot_number": self.lot_number,
            "expiry_date": to_iso_date(self.expiry_date),
            "created_at": to_utc_z(self.created_at),
        }
