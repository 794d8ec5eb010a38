# Overview: Service-layer operations for customer tabs (open, add items, cash out).

"""
Tab Service

Items added to a tab are a promise, not a sale: they do not touch stock.
Adding is still refused when the floor could not cover everything on the
tab. Cash-out turns the items into a Sale (same path as POS checkout),
decrements the floor and closes the tab, all in one transaction.
"""
from __future__ import annotations

from decimal import Decimal

from ..errors import NotFoundError, PreconditionError, ValidationError
from ..extensions import db
from ..models import Customer, Tab, TabItem
from ..money import quantize
from ..time_utils import utcnow
from ..validation import optional_str, require_int
from .catalog_service import get_variant, lookup_variant_by_upc, require_sellable
from .concurrency import begin_immediate, run_with_retry
from .location_service import get_location_by_kind
from .pos_service import CartLine, floor_shortage_error, record_sale
from .query_cache import QueryCache
from .stock_service import total_stock

TAB_OPEN = "open"
TAB_CLOSED = "closed"


def next_tab_number(now=None) -> str:
    prefix = f"TAB-{(now or utcnow()).strftime('%Y%m%d')}-"
    taken = db.session.query(Tab.id).filter(Tab.tab_number.like(f"{prefix}%")).count()
    return f"{prefix}{taken + 1:03d}"


def get_tab(tab_id: int) -> Tab:
    tab = db.session.get(Tab, tab_id)
    if tab is None:
        raise NotFoundError(f"Tab {tab_id} not found")
    return tab


def _require_open(tab: Tab) -> None:
    if tab.status != TAB_OPEN:
        raise PreconditionError("This tab is closed")


def list_tabs(status: str | None = None) -> list[Tab]:
    query = db.session.query(Tab)
    if status:
        query = query.filter(Tab.status == status)
    return query.order_by(Tab.created_at.desc(), Tab.id.desc()).all()


def open_tab(*, customer_id: int | None = None, customer_name: str | None = None, opened_by: int | None = None) -> Tab:
    name = optional_str(customer_name, max_length=255, field="customer_name")
    customer = None
    if customer_id is not None:
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        name = name or customer.full_name
    if not name:
        raise ValidationError("Customer name is required")

    now = utcnow()
    tab = Tab(
        tab_number=next_tab_number(now),
        customer_id=customer.id if customer else None,
        customer_name=name,
        status=TAB_OPEN,
        total_amount=Decimal("0.00"),
        opened_by=opened_by,
        created_at=now,
    )
    db.session.add(tab)
    db.session.commit()
    return tab


def _recompute_total(tab: Tab) -> None:
    tab.total_amount = quantize(sum(
        (Decimal(item.unit_price) * item.quantity for item in tab.items),
        Decimal(0),
    ))


def _tab_quantity(tab: Tab, variant_id: int) -> int:
    return sum(item.quantity for item in tab.items if item.variant_id == variant_id)


def add_tab_items(tab_id: int, lines: list[dict], *, added_by: int | None = None, cache: QueryCache | None = None) -> Tab:
    """
    lines: [{"variant_id" | "upc", "quantity"}]. Each variant is checked
    against floor stock including what the tab already holds.
    """
    if not lines:
        raise ValidationError("Cart is empty")

    tab = get_tab(tab_id)
    _require_open(tab)
    floor = get_location_by_kind("floor", cache=cache)

    pending: dict[int, int] = {}
    variants = {}
    for line in lines:
        if not isinstance(line, dict):
            raise ValidationError("items must be objects")
        if line.get("variant_id") is not None:
            variant = get_variant(require_int(line["variant_id"], "variant_id"))
        else:
            variant = lookup_variant_by_upc(line.get("upc"), cache=cache)
        require_sellable(variant)
        quantity = require_int(line.get("quantity", 1), "quantity", minimum=1)
        variants[variant.id] = variant
        pending[variant.id] = pending.get(variant.id, 0) + quantity

    for variant_id, quantity in pending.items():
        wanted = _tab_quantity(tab, variant_id) + quantity
        available = total_stock(variant_id, floor.id)
        if wanted > available:
            raise floor_shortage_error(variants[variant_id], wanted, available, floor.id)

    now = utcnow()
    for variant_id, quantity in pending.items():
        tab.items.append(TabItem(
            variant_id=variant_id,
            quantity=quantity,
            unit_price=quantize(Decimal(variants[variant_id].price)),
            added_by=added_by,
            created_at=now,
        ))
    _recompute_total(tab)
    db.session.commit()
    return tab


def remove_tab_item(tab_id: int, item_id: int) -> Tab:
    tab = get_tab(tab_id)
    _require_open(tab)
    item = next((i for i in tab.items if i.id == item_id), None)
    if item is None:
        raise NotFoundError(f"Tab item {item_id} not found")
    tab.items.remove(item)
    _recompute_total(tab)
    db.session.commit()
    return tab


def cash_out_tab(
    tab_id: int,
    *,
    payment_method: str,
    received_amount=None,
    closed_by: int | None = None,
    age_verified: bool = False,
    cache: QueryCache | None = None,
):
    """Settle the tab: Sale + SaleItems + floor decrements, then close. Returns the Sale."""
    def _op():
        begin_immediate()
        try:
            tab = get_tab(tab_id)
            _require_open(tab)
            if not tab.items:
                raise ValidationError("Tab has no items to cash out")

            merged: dict[tuple, CartLine] = {}
            for item in tab.items:
                key = (item.variant_id, Decimal(item.unit_price))
                if key in merged:
                    merged[key].quantity += item.quantity
                else:
                    merged[key] = CartLine(variant=item.variant, quantity=item.quantity, unit_price=Decimal(item.unit_price))

            sale = record_sale(
                list(merged.values()),
                payment_method=payment_method,
                received_amount=received_amount,
                sold_by=closed_by,
                customer_id=tab.customer_id,
                tab_id=tab.id,
                age_verified=age_verified,
                cache=cache,
            )
            tab.status = TAB_CLOSED
            tab.closed_by = closed_by
            tab.closed_at = utcnow()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return sale

    return run_with_retry(_op)
