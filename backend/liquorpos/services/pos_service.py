# Overview: Service-layer operations for point-of-sale (cart scanning, quoting, checkout).

"""
POS Service

The cart lives on the client and is sent back with every call as a list of
{"variant_id", "quantity"} objects. Scanning checks floor stock before a
unit goes into the cart; checkout re-verifies every line and then writes
the Sale, its SaleItems and the floor decrements in a single database
transaction. If anything fails, the rollback leaves no Sale behind.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, ProductVariant, Sale, SaleItem
from ..models.sales import PAYMENT_METHODS
from ..money import money_str, quantize, to_money
from ..tax_utils import TaxBreakdown, compute_taxes
from ..time_utils import utcnow
from ..validation import coerce_int, require_int
from .catalog_service import get_variant, lookup_variant_by_upc, require_sellable
from .concurrency import begin_immediate, run_with_retry
from .location_service import get_location_by_kind
from .query_cache import QueryCache
from .stock_service import consume_stock, total_stock


@dataclass
class CartLine:
    variant: ProductVariant
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return quantize(self.unit_price * self.quantity)

    def tax_input(self) -> tuple:
        return (self.unit_price, self.quantity, self.variant.category_name, self.variant.size_ml)

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant.id,
            "name": self.variant.display_name,
            "upc": self.variant.upc,
            "sku": self.variant.sku,
            "size_ml": self.variant.size_ml,
            "category": self.variant.category_name,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "line_total": money_str(self.line_total),
        }


def load_cart(raw) -> list[CartLine]:
    """
    Rebuild cart lines from the client payload with current variant prices.
    Duplicate variant entries are merged.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("cart must be a list")

    merged: dict[int, CartLine] = {}
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("cart entries must be objects")
        variant_id = require_int(entry.get("variant_id"), "variant_id")
        quantity = require_int(entry.get("quantity", 1), "quantity", minimum=1)
        if variant_id in merged:
            merged[variant_id].quantity += quantity
            continue
        variant = get_variant(variant_id)
        merged[variant_id] = CartLine(variant=variant, quantity=quantity, unit_price=Decimal(variant.price))
    return list(merged.values())


def _floor_available(variant_id: int, cache: QueryCache | None = None) -> int:
    floor = get_location_by_kind("floor", cache=cache)
    return total_stock(variant_id, floor.id)


def floor_shortage_error(variant: ProductVariant, requested: int, available: int, location_id: int | None = None):
    if available <= 0:
        message = f"{variant.display_name} is out of stock on the floor"
    else:
        message = f"Only {available} of {variant.display_name} available on the floor"
    return InsufficientStockError(
        message,
        variant_id=variant.id,
        location_id=location_id,
        requested=requested,
        available=available,
    )


def scan_into_cart(cart: list[CartLine], upc, cache: QueryCache | None = None) -> CartLine:
    """
    Add one unit of the scanned barcode to the cart.

    Raises NotFoundError (quick-add prompt) for an unknown UPC and
    InsufficientStockError when the floor cannot cover one more unit.
    """
    variant = lookup_variant_by_upc(upc, cache=cache)
    require_sellable(variant)

    floor = get_location_by_kind("floor", cache=cache)
    available = total_stock(variant.id, floor.id)

    line = next((l for l in cart if l.variant.id == variant.id), None)
    in_cart = line.quantity if line is not None else 0
    if available <= 0 or in_cart + 1 > available:
        raise floor_shortage_error(variant, in_cart + 1, available, floor.id)

    if line is None:
        line = CartLine(variant=variant, quantity=1, unit_price=Decimal(variant.price))
        cart.append(line)
    else:
        line.quantity += 1
    return line


def update_cart_quantity(
    cart: list[CartLine],
    variant_id,
    quantity,
    cache: QueryCache | None = None,
) -> list[CartLine]:
    """Set a line's quantity; zero or less removes it."""
    variant_id = coerce_int(variant_id, "variant_id")
    quantity = coerce_int(quantity, "quantity")
    line = next((l for l in cart if l.variant.id == variant_id), None)
    if line is None:
        raise NotFoundError(f"Variant {variant_id} is not in the cart")
    if quantity <= 0:
        return remove_from_cart(cart, variant_id)

    available = _floor_available(variant_id, cache=cache)
    if quantity > available:
        raise floor_shortage_error(line.variant, quantity, available)
    line.quantity = quantity
    return cart


def remove_from_cart(cart: list[CartLine], variant_id) -> list[CartLine]:
    variant_id = coerce_int(variant_id, "variant_id")
    return [l for l in cart if l.variant.id != variant_id]


def quote_cart(cart: list[CartLine]) -> TaxBreakdown:
    return compute_taxes(line.tax_input() for line in cart)


def cart_payload(cart: list[CartLine]) -> dict:
    return {
        "items": [line.to_dict() for line in cart],
        "item_count": sum(line.quantity for line in cart),
        "totals": quote_cart(cart).to_dict(),
    }


def next_sale_number(now=None) -> str:
    """SALE-<yyyymmddHHMMSS>-<seq>, seq counting sales within the same second."""
    stamp = (now or utcnow()).strftime("%Y%m%d%H%M%S")
    prefix = f"SALE-{stamp}-"
    taken = db.session.query(Sale.id).filter(Sale.sale_number.like(f"{prefix}%")).count()
    return f"{prefix}{taken + 1:03d}"


def _validate_payment(payment_method: str, received_amount, total: Decimal) -> tuple[Decimal | None, Decimal | None]:
    method = (payment_method or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    if method != "cash":
        return None, None
    received = to_money(received_amount, "received_amount")
    if received < total:
        raise ValidationError(
            f"Received amount {money_str(received)} is less than total {money_str(total)}",
            details={"total": money_str(total), "received_amount": money_str(received)},
        )
    return received, quantize(received - total)


def record_sale(
    lines: list[CartLine],
    *,
    payment_method: str,
    received_amount=None,
    sold_by: int | None = None,
    customer_id: int | None = None,
    tab_id: int | None = None,
    age_verified: bool = False,
    cache: QueryCache | None = None,
) -> Sale:
    """
    Verify floor stock, write Sale + SaleItems and decrement the floor.
    Runs inside the caller's transaction; never commits.
    """
    if not lines:
        raise ValidationError("Cart is empty")

    floor = get_location_by_kind("floor", cache=cache)
    for line in lines:
        available = total_stock(line.variant.id, floor.id)
        if available < line.quantity:
            raise floor_shortage_error(line.variant, line.quantity, available, floor.id)

    taxes = quote_cart(lines)
    received, change = _validate_payment(payment_method, received_amount, taxes.total)

    customer = None
    if customer_id is not None:
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")

    now = utcnow()
    sale = Sale(
        sale_number=next_sale_number(now),
        customer_id=customer.id if customer else None,
        tab_id=tab_id,
        total_amount=taxes.total,
        tax_amount=taxes.vat,
        excise_tax=taxes.excise_tax,
        payment_method=payment_method.strip().lower(),
        received_amount=received,
        change_given=change,
        sold_by=sold_by,
        age_verified=bool(age_verified),
        created_at=now,
    )
    db.session.add(sale)
    db.session.flush()

    for line in lines:
        db.session.add(SaleItem(
            sale_id=sale.id,
            variant_id=line.variant.id,
            quantity=line.quantity,
            unit_price=quantize(line.unit_price),
            lot_number=None,
            created_at=now,
        ))
    db.session.flush()

    for line in lines:
        consume_stock(
            line.variant.id,
            floor.id,
            line.quantity,
            "sale",
            actor_id=sold_by,
            note=f"Sale {sale.sale_number}",
            reference_id=sale.id,
        )

    if customer is not None:
        customer.total_spent = quantize(Decimal(customer.total_spent or 0) + taxes.total)
    return sale


def checkout(
    cart_payload_items,
    *,
    payment_method: str,
    received_amount=None,
    sold_by: int | None = None,
    customer_id: int | None = None,
    age_verified: bool = False,
    cache: QueryCache | None = None,
) -> Sale:
    """Complete a POS sale from the client cart. Commits on success."""
    def _op():
        begin_immediate()
        try:
            lines = load_cart(cart_payload_items)
            sale = record_sale(
                lines,
                payment_method=payment_method,
                received_amount=received_amount,
                sold_by=sold_by,
                customer_id=customer_id,
                age_verified=age_verified,
                cache=cache,
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(limit: int = 50) -> list[Sale]:
    return (
        db.session.query(Sale)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
