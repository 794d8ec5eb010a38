from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Brand(db.Model):
    __tablename__ = "brands"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Product(db.Model):
    """
    A catalog entry (brand + name + category). Sizes and prices live on
    ProductVariant; a product without variants cannot be sold.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    product_type = db.Column(db.String(32), nullable=False, default="liquor")
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    brand = db.relationship("Brand", backref=db.backref("products", lazy=True))
    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self, include_variants: bool = False, include_cost: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "brand": self.brand.name if self.brand else None,
            "category": self.category.name if self.category else None,
            "product_type": self.product_type,
            "description": self.description,
            "image_url": self.image_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict(include_cost=include_cost) for v in self.variants]
        return data


class ProductVariant(db.Model):
    """
    A sellable unit: one size of a product.

    SKU is required and unique. UPC is optional; when present it is unique
    and is the barcode lookup key for every scanning workflow.
    Deleting a variant removes its stock rows and sale/receipt history.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_product_variants_sku"),
        db.UniqueConstraint("upc", name="uq_product_variants_upc"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    size_ml = db.Column(db.Integer, nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    upc = db.Column(db.String(64), nullable=True, index=True)

    cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    price = db.Column(db.Numeric(12, 2), nullable=False)

    allocation_only = db.Column(db.Boolean, nullable=False, default=False)
    collectible = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="variants")

    stock_levels = db.relationship("StockLevel", back_populates="variant", cascade="all, delete-orphan", lazy=True)
    transactions = db.relationship("InventoryTransaction", back_populates="variant", cascade="all, delete-orphan", lazy=True)
    po_items = db.relationship("POItem", back_populates="variant", cascade="all, delete-orphan", lazy=True)
    received_items = db.relationship("ReceivedItem", back_populates="variant", cascade="all, delete-orphan", lazy=True)
    tab_items = db.relationship("TabItem", back_populates="variant", cascade="all, delete-orphan", lazy=True)
    sale_items = db.relationship("SaleItem", back_populates="variant", cascade="all, delete-orphan", lazy=True)

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} sku={self.sku!r} upc={self.upc!r}>"

    @property
    def display_name(self) -> str:
        brand = self.product.brand.name if self.product and self.product.brand else ""
        name = self.product.name if self.product else ""
        label = f"{brand} {name}".strip() if brand and brand not in name else name
        return f"{label} ({self.size_ml}ml)"

    @property
    def category_name(self) -> str | None:
        if self.product and self.product.category:
            return self.product.category.name
        return None

    def to_dict(self, include_cost: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.display_name,
            "brand": self.product.brand.name if self.product and self.product.brand else None,
            "category": self.category_name,
            "product_type": self.product.product_type if self.product else None,
            "size_ml": self.size_ml,
            "sku": self.sku,
            "upc": self.upc,
            "price": money_str(self.price),
            "allocation_only": self.allocation_only,
            "collectible": self.collectible,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_cost:
            data["cost"] = money_str(self.cost)
        return data
