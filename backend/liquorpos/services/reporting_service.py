# Overview: Service-layer operations for dashboard and reports (read-only aggregation).

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, select

from ..extensions import db
from ..models import (
    InventoryLocation,
    InventoryTransaction,
    ProductVariant,
    PurchaseOrder,
    Sale,
    SaleItem,
    StockLevel,
)
from ..models.sales import PAYMENT_METHODS
from ..money import ZERO, money_str, quantize
from ..time_utils import day_bounds, to_iso_date, to_utc_z, utcnow
from .purchase_order_service import received_quantities


def _config(name: str, default):
    return current_app.config.get(name, default)


def _sales_between(start: datetime, end: datetime) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(Sale.created_at >= start, Sale.created_at < end)
        .order_by(Sale.created_at.asc())
        .all()
    )


def _money_sum(values) -> Decimal:
    return quantize(sum((Decimal(v or 0) for v in values), Decimal(0)))


def top_movers(days: int = 7, limit: int = 5, now: datetime | None = None) -> list[dict]:
    since = (now or utcnow()) - timedelta(days=days)
    rows = (
        db.session.query(SaleItem.variant_id, func.sum(SaleItem.quantity).label("qty"))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.created_at >= since)
        .group_by(SaleItem.variant_id)
        .order_by(func.sum(SaleItem.quantity).desc(), SaleItem.variant_id.asc())
        .limit(limit)
        .all()
    )
    movers = []
    for variant_id, qty in rows:
        variant = db.session.get(ProductVariant, variant_id)
        movers.append({
            "variant_id": variant_id,
            "name": variant.display_name if variant else None,
            "quantity_sold": int(qty or 0),
        })
    return movers


def low_stock(threshold: int | None = None, limit: int = 50) -> list[dict]:
    """Stock rows under the threshold, emptiest first."""
    if threshold is None:
        threshold = _config("LOW_STOCK_THRESHOLD", 10)
    levels = (
        db.session.query(StockLevel)
        .filter(StockLevel.quantity < threshold)
        .order_by(StockLevel.quantity.asc(), StockLevel.variant_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "variant_id": level.variant_id,
            "name": level.variant.display_name,
            "location": level.location.name,
            "lot_number": level.lot_number,
            "quantity": level.quantity,
        }
        for level in levels
    ]


def receiving_queue(limit: int = 5) -> list[dict]:
    """Sent purchase orders still awaiting delivery, oldest send first."""
    orders = (
        db.session.query(PurchaseOrder)
        .filter(PurchaseOrder.status == "sent")
        .order_by(PurchaseOrder.sent_at.asc(), PurchaseOrder.id.asc())
        .limit(limit)
        .all()
    )
    queue = []
    for po in orders:
        received = received_quantities(po.id)
        entry = po.to_dict()
        entry["outstanding_units"] = sum(
            max(item.quantity - received.get(item.variant_id, 0), 0) for item in po.items
        )
        queue.append(entry)
    return queue


def dashboard(now: datetime | None = None) -> dict:
    now = now or utcnow()
    start, end = day_bounds(now.date())
    todays = _sales_between(start, end)

    return {
        "date": to_iso_date(now.date()),
        "today_sales": {
            "count": len(todays),
            "total": money_str(_money_sum(s.total_amount for s in todays)),
        },
        "low_stock": low_stock(),
        "receiving_queue": receiving_queue(),
        "top_movers": top_movers(days=7, now=now),
    }


def sales_summary(days: int = 30, now: datetime | None = None) -> dict:
    now = now or utcnow()
    start = now - timedelta(days=days)
    sales = _sales_between(start, now + timedelta(seconds=1))

    by_method = {
        method: {"count": 0, "total": ZERO}
        for method in PAYMENT_METHODS
    }
    for sale in sales:
        bucket = by_method.setdefault(sale.payment_method, {"count": 0, "total": ZERO})
        bucket["count"] += 1
        bucket["total"] = quantize(bucket["total"] + Decimal(sale.total_amount))

    total = _money_sum(s.total_amount for s in sales)
    return {
        "days": days,
        "start": to_utc_z(start),
        "end": to_utc_z(now),
        "sale_count": len(sales),
        "total": money_str(total),
        "vat": money_str(_money_sum(s.tax_amount for s in sales)),
        "excise_tax": money_str(_money_sum(s.excise_tax for s in sales)),
        "average_sale": money_str(total / len(sales)) if sales else money_str(ZERO),
        "by_payment_method": {
            method: {"count": v["count"], "total": money_str(v["total"])}
            for method, v in by_method.items()
        },
    }


def revenue_by_day(days: int = 30, now: datetime | None = None) -> list[dict]:
    """One entry per calendar day, oldest first, zero-filled."""
    now = now or utcnow()
    first_day = now.date() - timedelta(days=days - 1)
    start, _ = day_bounds(first_day)
    _, end = day_bounds(now.date())

    buckets: dict[date, dict] = {}
    for offset in range(days):
        buckets[first_day + timedelta(days=offset)] = {"count": 0, "total": ZERO}
    for sale in _sales_between(start, end):
        bucket = buckets.get(sale.created_at.date())
        if bucket is None:
            continue
        bucket["count"] += 1
        bucket["total"] = quantize(bucket["total"] + Decimal(sale.total_amount))

    return [
        {"date": to_iso_date(day), "count": b["count"], "total": money_str(b["total"])}
        for day, b in buckets.items()
    ]


def dead_stock(now: datetime | None = None, days: int | None = None, min_age_days: int | None = None) -> list[dict]:
    """
    Rows holding stock whose variant has not sold in `days` and has been in
    the catalog longer than `min_age_days`.
    """
    now = now or utcnow()
    days = days if days is not None else _config("DEAD_STOCK_DAYS", 90)
    min_age_days = min_age_days if min_age_days is not None else _config("DEAD_STOCK_MIN_AGE_DAYS", 30)
    sold_since = now - timedelta(days=days)
    created_before = now - timedelta(days=min_age_days)

    recently_sold = (
        select(SaleItem.variant_id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .where(Sale.created_at >= sold_since)
        .distinct()
    )
    last_sale = dict(
        db.session.query(SaleItem.variant_id, func.max(Sale.created_at))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .group_by(SaleItem.variant_id)
        .all()
    )

    levels = (
        db.session.query(StockLevel)
        .join(ProductVariant, ProductVariant.id == StockLevel.variant_id)
        .filter(
            StockLevel.quantity > 0,
            ProductVariant.created_at < created_before,
            ~StockLevel.variant_id.in_(recently_sold),
        )
        .order_by(StockLevel.variant_id, StockLevel.location_id)
        .all()
    )
    return [
        {
            "variant_id": level.variant_id,
            "name": level.variant.display_name,
            "location": level.location.name,
            "lot_number": level.lot_number,
            "quantity": level.quantity,
            "last_sold_at": to_utc_z(last_sale.get(level.variant_id)),
        }
        for level in levels
    ]


def _quantities_before(location_id: int, bound: datetime) -> dict[int, int]:
    rows = (
        db.session.query(InventoryTransaction.variant_id, func.sum(InventoryTransaction.quantity_change))
        .filter(InventoryTransaction.location_id == location_id, InventoryTransaction.created_at < bound)
        .group_by(InventoryTransaction.variant_id)
        .all()
    )
    return {variant_id: int(qty or 0) for variant_id, qty in rows}


def _stock_value(quantities: dict[int, int]) -> Decimal:
    if not quantities:
        return ZERO
    costs = dict(
        db.session.query(ProductVariant.id, ProductVariant.cost)
        .filter(ProductVariant.id.in_(list(quantities)))
        .all()
    )
    return _money_sum(Decimal(costs.get(vid) or 0) * qty for vid, qty in quantities.items())


def daily_snapshot(day: date, include_values: bool = False) -> dict:
    """
    Opening/closing quantity per location for `day`, derived from the
    transaction ledger, plus that day's sales on the floor. Stock values
    (at current cost) only when include_values is set.
    """
    start, end = day_bounds(day)
    sales = _sales_between(start, end)
    sales_total = _money_sum(s.total_amount for s in sales)

    snapshots = []
    for location in db.session.query(InventoryLocation).order_by(InventoryLocation.name).all():
        opening = _quantities_before(location.id, start)
        closing = _quantities_before(location.id, end)
        on_floor = location.type == "floor"
        entry = {
            "snapshot_date": to_iso_date(day),
            "location": location.to_dict(),
            "opening_quantity": sum(opening.values()),
            "closing_quantity": sum(closing.values()),
            "sale_count": len(sales) if on_floor else 0,
            "total_sales": money_str(sales_total if on_floor else ZERO),
        }
        if include_values:
            entry["opening_stock_value"] = money_str(_stock_value(opening))
            entry["closing_stock_value"] = money_str(_stock_value(closing))
        snapshots.append(entry)
    return {"date": to_iso_date(day), "snapshots": snapshots}
