# Overview: Stock reconciliation primitives; the only writer of stock_levels.

"""
Stock reconciliation

Every quantity change (receiving, sale, transfer, adjustment, cycle count)
goes through apply_delta() or set_counted_quantity(), which update the
stock_levels row and append the matching inventory_transactions row in
the same database transaction. The caller owns the transaction: these
functions never commit.

Decrements are a single conditional UPDATE

    UPDATE stock_levels SET quantity = quantity + :delta
    WHERE <variant, location, lot> AND quantity + :delta >= 0

so two concurrent sales of the last bottle cannot both succeed. Zero rows
affected means the row is missing or the quantity is short.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryLocation, InventoryTransaction, ProductVariant, StockLevel
from ..models.inventory import TRANSACTION_KINDS
from ..time_utils import utcnow
from ..validation import optional_str
from .catalog_service import search_variants_query
from .concurrency import begin_immediate, lock_for_update, run_with_retry


@dataclass
class LotAllocation:
    """Quantity taken from one lot by consume_stock()."""
    lot_number: str | None
    quantity: int
    expiry_date: date | None


def normalize_lot(lot_number) -> str | None:
    if lot_number is None:
        return None
    lot = str(lot_number).strip()
    return lot or None


def _row_filter(variant_id: int, location_id: int, lot_number: str | None):
    # Null lot is matched explicitly, never as a wildcard
    lot_clause = StockLevel.lot_number.is_(None) if lot_number is None else StockLevel.lot_number == lot_number
    return (
        StockLevel.variant_id == variant_id,
        StockLevel.location_id == location_id,
        lot_clause,
    )


def find_level(variant_id: int, location_id: int, lot_number: str | None = None) -> StockLevel | None:
    return (
        db.session.query(StockLevel)
        .filter(*_row_filter(variant_id, location_id, normalize_lot(lot_number)))
        .populate_existing()
        .first()
    )


def get_stock(variant_id: int, location_id: int) -> list[StockLevel]:
    """All lot rows for (variant, location), lowest lot label first, null lot last."""
    return (
        db.session.query(StockLevel)
        .filter(StockLevel.variant_id == variant_id, StockLevel.location_id == location_id)
        .order_by(StockLevel.lot_number.asc().nulls_last(), StockLevel.id.asc())
        .populate_existing()
        .all()
    )


def total_stock(variant_id: int, location_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(StockLevel.quantity), 0))
        .filter(StockLevel.variant_id == variant_id, StockLevel.location_id == location_id)
        .scalar()
    )
    return int(total or 0)


def record_transaction(
    *,
    variant_id: int,
    location_id: int,
    kind: str,
    quantity_change: int,
    lot_number: str | None = None,
    actor_id: int | None = None,
    note: str | None = None,
    reference_id=None,
) -> InventoryTransaction:
    if kind not in TRANSACTION_KINDS:
        raise ValidationError(f"Unknown transaction type: {kind!r}")
    tx = InventoryTransaction(
        variant_id=variant_id,
        location_id=location_id,
        transaction_type=kind,
        quantity_change=quantity_change,
        lot_number=lot_number,
        reference_id=str(reference_id) if reference_id is not None else None,
        notes=note,
        created_by=actor_id,
        created_at=utcnow(),
    )
    db.session.add(tx)
    return tx


def apply_delta(
    variant_id: int,
    location_id: int,
    lot_number: str | None,
    delta: int,
    kind: str,
    *,
    actor_id: int | None = None,
    note: str | None = None,
    reference_id=None,
    expiry_date: date | None = None,
) -> StockLevel:
    """
    Add `delta` to the (variant, location, lot) row and append the audit row.

    A missing row is created when delta > 0. A missing row with delta < 0,
    or a decrement below zero, raises InsufficientStockError and writes
    nothing. expiry_date only fills an empty expiry on the row.
    """
    if kind not in TRANSACTION_KINDS:
        raise ValidationError(f"Unknown transaction type: {kind!r}")
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise ValidationError("Quantity change must be a non-zero whole number")

    lot_number = normalize_lot(lot_number)
    stmt = (
        update(StockLevel)
        .where(*_row_filter(variant_id, location_id, lot_number))
        .where(StockLevel.quantity + delta >= 0)
        .values(quantity=StockLevel.quantity + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount == 0:
        existing = find_level(variant_id, location_id, lot_number)
        if existing is not None or delta < 0:
            available = existing.quantity if existing is not None else 0
            raise InsufficientStockError(
                f"Insufficient stock: requested {abs(delta)}, available {available}",
                variant_id=variant_id,
                location_id=location_id,
                lot_number=lot_number,
                requested=abs(delta),
                available=available,
            )
        try:
            with db.session.begin_nested():
                db.session.add(StockLevel(
                    variant_id=variant_id,
                    location_id=location_id,
                    lot_number=lot_number,
                    quantity=delta,
                    expiry_date=expiry_date,
                ))
        except IntegrityError:
            # Another writer created the row first; add onto it instead
            if db.session.execute(stmt).rowcount == 0:
                raise

    level = find_level(variant_id, location_id, lot_number)
    if expiry_date is not None and level.expiry_date is None:
        level.expiry_date = expiry_date

    record_transaction(
        variant_id=variant_id,
        location_id=location_id,
        kind=kind,
        quantity_change=delta,
        lot_number=lot_number,
        actor_id=actor_id,
        note=note,
        reference_id=reference_id,
    )
    return level


def cycle_count_note(system: int, physical: int) -> str:
    return f"Cycle count: System had {system}, Physical count: {physical}"


def set_counted_quantity(
    level: StockLevel,
    physical: int,
    *,
    actor_id: int | None = None,
    note: str | None = None,
) -> int:
    """
    Overwrite a row's quantity with a physical count (cycle count).

    Returns the change actually applied (physical - quantity at write time);
    no audit row is written when that is zero.
    """
    if physical < 0:
        raise ValidationError("Physical quantity cannot be negative")

    locked = lock_for_update(
        db.session.query(StockLevel).filter(StockLevel.id == level.id)
    ).populate_existing().one()
    change = physical - locked.quantity
    if change == 0:
        return 0

    system = locked.quantity
    locked.quantity = physical
    locked.updated_at = utcnow()
    record_transaction(
        variant_id=locked.variant_id,
        location_id=locked.location_id,
        kind="cycle_count",
        quantity_change=change,
        lot_number=locked.lot_number,
        actor_id=actor_id,
        note=note or cycle_count_note(system, physical),
    )
    return change


def consume_stock(
    variant_id: int,
    location_id: int,
    quantity: int,
    kind: str,
    *,
    actor_id: int | None = None,
    note: str | None = None,
    reference_id=None,
) -> list[LotAllocation]:
    """
    Take `quantity` units from (variant, location), lot by lot in lot-label
    order (null lot last), one audit row per lot touched.

    Raises InsufficientStockError before writing anything when the lots
    together hold less than `quantity`.
    """
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")

    lots = lock_for_update(
        db.session.query(StockLevel)
        .filter(
            StockLevel.variant_id == variant_id,
            StockLevel.location_id == location_id,
            StockLevel.quantity > 0,
        )
        .order_by(StockLevel.lot_number.asc().nulls_last(), StockLevel.id.asc())
    ).populate_existing().all()

    available = sum(level.quantity for level in lots)
    if available < quantity:
        raise InsufficientStockError(
            f"Insufficient stock: requested {quantity}, available {available}",
            variant_id=variant_id,
            location_id=location_id,
            requested=quantity,
            available=available,
        )

    allocations: list[LotAllocation] = []
    remaining = quantity
    for level in lots:
        if remaining == 0:
            break
        take = min(level.quantity, remaining)
        lot_number, expiry = level.lot_number, level.expiry_date
        apply_delta(
            variant_id,
            location_id,
            lot_number,
            -take,
            kind,
            actor_id=actor_id,
            note=note,
            reference_id=reference_id,
        )
        allocations.append(LotAllocation(lot_number=lot_number, quantity=take, expiry_date=expiry))
        remaining -= take
    return allocations


# ---------------------------------------------------------------------------
# Read views (inventory and transactions pages)
# ---------------------------------------------------------------------------

def list_stock_levels(
    location_id: int | None = None,
    variant_id: int | None = None,
    include_zero: bool = False,
) -> list[StockLevel]:
    query = db.session.query(StockLevel)
    if location_id is not None:
        query = query.filter(StockLevel.location_id == location_id)
    if variant_id is not None:
        query = query.filter(StockLevel.variant_id == variant_id)
    if not include_zero:
        query = query.filter(StockLevel.quantity > 0)
    return query.order_by(
        StockLevel.variant_id,
        StockLevel.location_id,
        StockLevel.lot_number.asc().nulls_last(),
    ).all()


def variant_totals(search: str | None = None) -> list[dict]:
    """Per-variant quantity at floor, backroom and warehouse plus the overall total."""
    rows = (
        db.session.query(
            StockLevel.variant_id,
            InventoryLocation.type,
            func.sum(StockLevel.quantity),
        )
        .join(InventoryLocation, InventoryLocation.id == StockLevel.location_id)
        .group_by(StockLevel.variant_id, InventoryLocation.type)
        .all()
    )
    by_variant: dict[int, dict] = {}
    for variant_id, kind, qty in rows:
        entry = by_variant.setdefault(variant_id, {"floor": 0, "backroom": 0, "warehouse": 0})
        entry[kind] = int(qty or 0)

    variants = search_variants_query(search).all()

    result = []
    for variant in variants:
        totals = by_variant.get(variant.id, {"floor": 0, "backroom": 0, "warehouse": 0})
        result.append({
            "variant_id": variant.id,
            "name": variant.display_name,
            "sku": variant.sku,
            "upc": variant.upc,
            "size_ml": variant.size_ml,
            **totals,
            "total": sum(totals.values()),
        })
    return result


def list_transactions(
    variant_id: int | None = None,
    location_id: int | None = None,
    kind: str | None = None,
    limit: int = 100,
) -> list[InventoryTransaction]:
    query = db.session.query(InventoryTransaction)
    if variant_id is not None:
        query = query.filter(InventoryTransaction.variant_id == variant_id)
    if location_id is not None:
        query = query.filter(InventoryTransaction.location_id == location_id)
    if kind:
        if kind not in TRANSACTION_KINDS:
            raise ValidationError(f"Unknown transaction type: {kind!r}")
        query = query.filter(InventoryTransaction.transaction_type == kind)
    return (
        query.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .limit(max(1, min(limit, 1000)))
        .all()
    )


def adjust_stock(
    variant_id: int,
    location_id: int,
    delta: int,
    *,
    lot_number: str | None = None,
    actor_id: int | None = None,
    note: str | None = None,
) -> StockLevel:
    """Manual correction (kind=adjustment), committed."""
    lot_number = optional_str(lot_number, max_length=64, field="lot_number")
    note = optional_str(note, max_length=255, field="notes")
    if db.session.get(ProductVariant, variant_id) is None:
        raise NotFoundError(f"Variant {variant_id} not found")
    if db.session.get(InventoryLocation, location_id) is None:
        raise NotFoundError(f"Location {location_id} not found")

    def _op():
        begin_immediate()
        try:
            level = apply_delta(
                variant_id,
                location_id,
                lot_number,
                delta,
                "adjustment",
                actor_id=actor_id,
                note=note or "Manual adjustment",
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return level

    return run_with_retry(_op)
