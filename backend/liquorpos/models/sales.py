from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z

PAYMENT_METHODS = ("cash", "mpesa")


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True, index=True)
    date_of_birth = db.Column(db.Date, nullable=True)

    # High-value regulars get flagged on the customers page
    is_whale = db.Column(db.Boolean, nullable=False, default=False)
    total_spent = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "date_of_birth": to_iso_date(self.date_of_birth),
            "is_whale": self.is_whale,
            "total_spent": money_str(self.total_spent),
            "created_at": to_utc_z(self.created_at),
        }


class Tab(db.Model):
    """
    A running customer balance. Tab items carry no stock effect; cash-out
    turns them into a Sale and decrements floor stock.
    """
    __tablename__ = "tabs"
    __table_args__ = (
        db.CheckConstraint("status IN ('open', 'closed')", name="ck_tabs_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tab_number = db.Column(db.String(32), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="open", index=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    opened_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    closed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("tabs", lazy=True))
    items = db.relationship(
        "TabItem",
        back_populates="tab",
        cascade="all, delete-orphan",
        order_by="TabItem.id",
        lazy=True,
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "tab_number": self.tab_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "status": self.status,
            "total_amount": money_str(self.total_amount),
            "opened_by": self.opened_by,
            "closed_by": self.closed_by,
            "created_at": to_utc_z(self.created_at),
            "closed_at": to_utc_z(self.closed_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TabItem(db.Model):
    __tablename__ = "tab_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_tab_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tab_id = db.Column(db.Integer, db.ForeignKey("tabs.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    added_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tab = db.relationship("Tab", back_populates="items")
    variant = db.relationship("ProductVariant", back_populates="tab_items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tab_id": self.tab_id,
            "variant_id": self.variant_id,
            "variant": self.variant.display_name if self.variant else None,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "added_by": self.added_by,
            "created_at": to_utc_z(self.created_at),
        }


class Sale(db.Model):
    """A completed sale. Immutable once written."""
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("payment_method IN ('cash', 'mpesa')", name="ck_sales_payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_number = db.Column(db.String(40), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    tab_id = db.Column(db.Integer, db.ForeignKey("tabs.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    excise_tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    received_amount = db.Column(db.Numeric(12, 2), nullable=True)
    change_given = db.Column(db.Numeric(12, 2), nullable=True)

    sold_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    age_verified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    tab = db.relationship("Tab", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} sale_number={self.sale_number!r} total={self.total_amount}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "tab_id": self.tab_id,
            "total_amount": money_str(self.total_amount),
            "tax_amount": money_str(self.tax_amount),
            "excise_tax": money_str(self.excise_tax),
            "payment_method": self.payment_method,
            "received_amount": money_str(self.received_amount),
            "change_given": money_str(self.change_given),
            "sold_by": self.sold_by,
            "age_verified": self.age_verified,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    # POS sales are not lot-tracked
    lot_number = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    variant = db.relationship("ProductVariant", back_populates="sale_items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "variant_id": self.variant_id,
            "variant": self.variant.display_name if self.variant else None,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "lot_number": self.lot_number,
        }
