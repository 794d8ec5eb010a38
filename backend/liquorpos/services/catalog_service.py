# Overview: Service-layer operations for the product catalog (products, variants, barcode lookup).

"""
Catalog Service

Variants are the sellable unit. SKU is required and unique; UPC is
optional, trimmed, and unique when present. Barcode lookups go through the
query cache (variant id keyed by UPC) and every write that can change the
result of a lookup invalidates the affected keys.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from ..extensions import db
from ..models import Brand, Category, Product, ProductVariant
from ..money import to_money
from ..validation import optional_str, require_int, require_str, to_bool
from .query_cache import QueryCache, resolve_cache, variant_key, variant_ttl

PRODUCT_TYPES = ("liquor", "beverage")

VARIANT_MUTABLE_FIELDS = {"size_ml", "sku", "upc", "cost", "price", "allocation_only", "collectible"}


def normalize_upc(upc) -> str | None:
    return optional_str(upc, max_length=64, field="upc")


def _resolve_brand(name: str) -> Brand:
    name = require_str(name, "brand", max_length=120)
    brand = db.session.query(Brand).filter(Brand.name == name).first()
    if brand is None:
        brand = Brand(name=name)
        db.session.add(brand)
        db.session.flush()
    return brand


def _resolve_category(name: str) -> Category:
    name = require_str(name, "category", max_length=120)
    category = db.session.query(Category).filter(Category.name == name).first()
    if category is None:
        category = Category(name=name)
        db.session.add(category)
        db.session.flush()
    return category


def _check_sku_available(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(ProductVariant.id).filter(ProductVariant.sku == sku)
    if exclude_id is not None:
        query = query.filter(ProductVariant.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"SKU {sku!r} already exists", details={"field": "sku"})


def _check_upc_available(upc: str | None, exclude_id: int | None = None) -> None:
    if upc is None:
        return
    query = db.session.query(ProductVariant.id).filter(ProductVariant.upc == upc)
    if exclude_id is not None:
        query = query.filter(ProductVariant.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"UPC {upc!r} is already assigned to another product", details={"field": "upc"})


def generate_sku(brand_name: str, size_ml: int) -> str:
    """BRAND-SIZE, suffixed -2, -3, ... while taken."""
    base = f"{''.join(brand_name.upper().split())}-{size_ml}"
    candidate = base
    suffix = 2
    while db.session.query(ProductVariant.id).filter(ProductVariant.sku == candidate).first() is not None:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def _validated_variant_fields(data: dict, brand_name: str) -> dict:
    size_ml = require_int(data.get("size_ml"), "size_ml", minimum=1)

    price = to_money(data.get("price"), "price")
    if price <= 0:
        raise ValidationError("price must be greater than zero")
    cost = to_money(data.get("cost") if data.get("cost") is not None else 0, "cost")
    if cost < 0:
        raise ValidationError("cost cannot be negative")

    upc = normalize_upc(data.get("upc"))
    sku = optional_str(data.get("sku"), max_length=64, field="sku") or generate_sku(brand_name, size_ml)

    _check_sku_available(sku)
    _check_upc_available(upc)

    return {
        "size_ml": size_ml,
        "sku": sku,
        "upc": upc,
        "price": price,
        "cost": cost,
        "allocation_only": to_bool(data.get("allocation_only")),
        "collectible": to_bool(data.get("collectible")),
    }


def create_product(
    *,
    brand: str,
    category: str,
    name: str | None = None,
    product_type: str = "liquor",
    description: str | None = None,
    image_url: str | None = None,
    variants: list[dict] | None = None,
    cache: QueryCache | None = None,
) -> Product:
    """Create a product with its variants in one commit."""
    cache = resolve_cache(cache)
    product_type = (product_type or "liquor").strip().lower()
    if product_type not in PRODUCT_TYPES:
        raise ValidationError(f"product_type must be one of {', '.join(PRODUCT_TYPES)}")

    brand_obj = _resolve_brand(brand)
    category_obj = _resolve_category(category)
    product = Product(
        name=optional_str(name, max_length=255, field="name") or brand_obj.name,
        brand=brand_obj,
        category=category_obj,
        product_type=product_type,
        description=optional_str(description),
        image_url=optional_str(image_url, max_length=512, field="image_url"),
    )
    db.session.add(product)
    db.session.flush()

    created = []
    for data in variants or []:
        fields = _validated_variant_fields(data, brand_obj.name)
        variant = ProductVariant(product_id=product.id, **fields)
        db.session.add(variant)
        db.session.flush()
        created.append(variant)

    db.session.commit()
    for variant in created:
        if variant.upc:
            cache.invalidate(variant_key(variant.upc))
    return product


def quick_add_variant(
    *,
    upc: str,
    brand: str,
    category: str,
    size_ml,
    price,
    cost=0,
    sku: str | None = None,
    product_type: str = "liquor",
    name: str | None = None,
    cache: QueryCache | None = None,
) -> ProductVariant:
    """Create product + single variant at a barcode the POS could not resolve."""
    upc = normalize_upc(upc)
    if upc is None:
        raise ValidationError("UPC is required")
    product = create_product(
        brand=brand,
        category=category,
        name=name,
        product_type=product_type,
        variants=[{"upc": upc, "size_ml": size_ml, "price": price, "cost": cost, "sku": sku}],
        cache=cache,
    )
    return product.variants[0]


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def add_variant(product_id: int, data: dict, cache: QueryCache | None = None) -> ProductVariant:
    cache = resolve_cache(cache)
    product = get_product(product_id)
    fields = _validated_variant_fields(data, product.brand.name)
    variant = ProductVariant(product_id=product.id, **fields)
    db.session.add(variant)
    db.session.commit()
    if variant.upc:
        cache.invalidate(variant_key(variant.upc))
    return variant


def get_variant(variant_id: int) -> ProductVariant:
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None:
        raise NotFoundError(f"Variant {variant_id} not found")
    return variant


def update_variant(variant_id: int, patch: dict, cache: QueryCache | None = None) -> ProductVariant:
    """
    Apply a partial edit. Cached barcode lookups for the old and new UPC
    are dropped after commit.
    """
    cache = resolve_cache(cache)
    variant = get_variant(variant_id)
    old_upc = variant.upc

    for key, value in patch.items():
        if key not in VARIANT_MUTABLE_FIELDS:
            continue
        if key == "size_ml":
            variant.size_ml = require_int(value, "size_ml", minimum=1)
        elif key == "price":
            price = to_money(value, "price")
            if price <= 0:
                raise ValidationError("price must be greater than zero")
            variant.price = price
        elif key == "cost":
            cost = to_money(value, "cost")
            if cost < 0:
                raise ValidationError("cost cannot be negative")
            variant.cost = cost
        elif key == "sku":
            sku = require_str(value, "sku", max_length=64)
            _check_sku_available(sku, exclude_id=variant.id)
            variant.sku = sku
        elif key == "upc":
            upc = normalize_upc(value)
            _check_upc_available(upc, exclude_id=variant.id)
            variant.upc = upc
        else:
            setattr(variant, key, to_bool(value))

    db.session.commit()

    for upc in {old_upc, variant.upc}:
        if upc:
            cache.invalidate(variant_key(upc))
    return variant


def update_product(product_id: int, patch: dict) -> Product:
    product = get_product(product_id)
    if "name" in patch:
        product.name = require_str(patch["name"], "name", max_length=255)
    if "brand" in patch:
        product.brand = _resolve_brand(patch["brand"])
    if "category" in patch:
        product.category = _resolve_category(patch["category"])
    if "product_type" in patch:
        product_type = (patch["product_type"] or "").strip().lower()
        if product_type not in PRODUCT_TYPES:
            raise ValidationError(f"product_type must be one of {', '.join(PRODUCT_TYPES)}")
        product.product_type = product_type
    if "description" in patch:
        product.description = optional_str(patch["description"])
    if "image_url" in patch:
        product.image_url = optional_str(patch["image_url"], max_length=512, field="image_url")
    db.session.commit()
    return product


def delete_variant(variant_id: int, cache: QueryCache | None = None) -> None:
    """Delete a variant along with its stock rows and sale/receipt history."""
    cache = resolve_cache(cache)
    variant = get_variant(variant_id)
    upc = variant.upc
    db.session.delete(variant)
    db.session.commit()
    if upc:
        cache.invalidate(variant_key(upc))


def search_variants_query(search: str | None = None):
    query = (
        db.session.query(ProductVariant)
        .join(Product, Product.id == ProductVariant.product_id)
        .join(Brand, Brand.id == Product.brand_id)
    )
    term = (search or "").strip()
    if term:
        like = f"%{term}%"
        query = query.filter(or_(
            Product.name.ilike(like),
            Brand.name.ilike(like),
            ProductVariant.sku.ilike(like),
            ProductVariant.upc.ilike(like),
        ))
    return query.order_by(Brand.name.asc(), Product.name.asc(), ProductVariant.size_ml.asc())


def list_variants(search: str | None = None, limit: int | None = None) -> list[ProductVariant]:
    query = search_variants_query(search)
    if limit:
        query = query.limit(limit)
    return query.all()


def find_variant_by_upc(upc, cache: QueryCache | None = None) -> ProductVariant | None:
    """
    Barcode lookup. The UPC is trimmed; the matched variant id is cached for
    the variant TTL. Misses are not cached.
    """
    upc = normalize_upc(upc)
    if upc is None:
        return None
    cache = resolve_cache(cache)
    key = variant_key(upc)

    cached_id = cache.get(key)
    if cached_id is not None:
        variant = db.session.get(ProductVariant, cached_id)
        if variant is not None and variant.upc == upc:
            return variant
        cache.invalidate(key)

    variant = db.session.query(ProductVariant).filter(ProductVariant.upc == upc).first()
    if variant is not None:
        cache.set(key, variant.id, ttl=variant_ttl())
    return variant


def lookup_variant_by_upc(upc, cache: QueryCache | None = None) -> ProductVariant:
    if normalize_upc(upc) is None:
        raise ValidationError("UPC is required")
    variant = find_variant_by_upc(upc, cache=cache)
    if variant is None:
        raise NotFoundError(
            f"No product found for barcode {normalize_upc(upc)}",
            details={"upc": normalize_upc(upc), "quick_add": True},
        )
    return variant


def require_sellable(variant: ProductVariant) -> None:
    """A variant must carry a positive price and size before it can be rung up."""
    if variant.price is None or Decimal(variant.price) <= 0:
        raise PreconditionError(f"{variant.display_name} has no selling price")
    if not variant.size_ml or variant.size_ml <= 0:
        raise PreconditionError(f"{variant.display_name} has no size")


def list_brands() -> list[Brand]:
    return db.session.query(Brand).order_by(Brand.name.asc()).all()


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()
