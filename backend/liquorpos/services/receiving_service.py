# Overview: Service-layer operations for receiving sessions (stock into the warehouse).

"""
Receiving Service

A receiving batch is all-or-nothing: every line is validated (variant
exists, variant has a UPC, quantity > 0) before anything is written, and
the session, its received_items, the warehouse stock increases and the
purchase-order completeness check are committed together.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..errors import NotFoundError, PosError, PreconditionError, ValidationError
from ..extensions import db
from ..models import ProductVariant, ReceivedItem, ReceivingSession
from ..time_utils import utcnow
from ..validation import optional_date, optional_str, require_int
from .catalog_service import get_variant, lookup_variant_by_upc
from .concurrency import begin_immediate, run_with_retry
from .location_service import ensure_location
from .purchase_order_service import (
    PO_SENT,
    get_purchase_order,
    received_quantities,
    refresh_purchase_order_receipt,
)
from .query_cache import QueryCache
from .stock_service import apply_delta, normalize_lot

SESSION_IN_PROGRESS = "in_progress"
SESSION_COMPLETED = "completed"


@dataclass
class ReceivingLine:
    variant: ProductVariant
    quantity: int
    lot_number: str | None = None
    expiry_date: date | None = None


def _resolve_line(raw, cache: QueryCache | None) -> ReceivingLine:
    if not isinstance(raw, dict):
        raise ValidationError("lines must be objects")

    if raw.get("variant_id") is not None:
        variant = get_variant(require_int(raw["variant_id"], "variant_id"))
    else:
        variant = lookup_variant_by_upc(raw.get("upc"), cache=cache)
    if not (variant.upc or "").strip():
        raise ValidationError(
            f"{variant.display_name} has no UPC; add a barcode before receiving it",
            details={"variant_id": variant.id},
        )

    return ReceivingLine(
        variant=variant,
        quantity=require_int(raw.get("quantity"), "quantity", minimum=1),
        lot_number=normalize_lot(optional_str(raw.get("lot_number"), max_length=64, field="lot_number")),
        expiry_date=optional_date(raw.get("expiry_date"), "expiry_date"),
    )


def validate_lines(raw_lines, cache: QueryCache | None = None) -> list[ReceivingLine]:
    """Resolve every line or raise on the first bad one (reported with its index)."""
    if not raw_lines:
        raise ValidationError("Nothing to receive")
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    lines = []
    for index, raw in enumerate(raw_lines):
        try:
            lines.append(_resolve_line(raw, cache))
        except PosError as e:
            e.details = {**e.details, "line": index}
            raise
    return lines


def scan_for_receiving(upc, cache: QueryCache | None = None) -> ProductVariant:
    """Barcode lookup for the receiving screen; same rules as a batch line."""
    return _resolve_line({"upc": upc, "quantity": 1}, cache).variant


def lines_from_purchase_order(po_id: int) -> list[dict]:
    """Outstanding lines of a sent order, ready to be confirmed and received."""
    po = get_purchase_order(po_id)
    if po.status != PO_SENT:
        raise PreconditionError(f"Only sent purchase orders can be received (status is {po.status})")

    received = received_quantities(po.id)
    outstanding: dict[int, int] = {}
    for item in po.items:
        outstanding[item.variant_id] = outstanding.get(item.variant_id, 0) + item.quantity
    for variant_id, qty in received.items():
        if variant_id in outstanding:
            outstanding[variant_id] -= qty

    lines = []
    for variant_id, qty in outstanding.items():
        if qty <= 0:
            continue
        variant = get_variant(variant_id)
        lines.append({
            "variant_id": variant.id,
            "upc": variant.upc,
            "name": variant.display_name,
            "quantity": qty,
            "lot_number": None,
            "expiry_date": None,
        })
    return lines


def complete_receiving(
    raw_lines,
    *,
    received_by: int | None = None,
    po_id: int | None = None,
    cache: QueryCache | None = None,
) -> ReceivingSession:
    """
    Receive a batch into the warehouse. Returns the completed session.
    A linked purchase order moves to received once fully covered.
    """
    lines = validate_lines(raw_lines, cache=cache)
    if po_id is not None:
        po = get_purchase_order(po_id)
        if po.status != PO_SENT:
            raise PreconditionError(f"Only sent purchase orders can be received (status is {po.status})")

    def _op():
        begin_immediate()
        try:
            session = ReceivingSession(
                po_id=po_id,
                received_by=received_by,
                status=SESSION_IN_PROGRESS,
                created_at=utcnow(),
            )
            db.session.add(session)
            db.session.flush()

            warehouse = ensure_location("warehouse", cache=cache)
            for line in lines:
                apply_delta(
                    line.variant.id,
                    warehouse.id,
                    line.lot_number,
                    line.quantity,
                    "receiving",
                    actor_id=received_by,
                    note=f"Received in session #{session.id}",
                    reference_id=session.id,
                    expiry_date=line.expiry_date,
                )
                db.session.add(ReceivedItem(
                    session_id=session.id,
                    variant_id=line.variant.id,
                    location_id=warehouse.id,
                    quantity=line.quantity,
                    lot_number=line.lot_number,
                    expiry_date=line.expiry_date,
                    created_at=utcnow(),
                ))

            session.status = SESSION_COMPLETED
            session.completed_at = utcnow()
            db.session.flush()

            if po_id is not None:
                refresh_purchase_order_receipt(get_purchase_order(po_id))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return session

    return run_with_retry(_op)


def get_receiving_session(session_id: int) -> ReceivingSession:
    session = db.session.get(ReceivingSession, session_id)
    if session is None:
        raise NotFoundError(f"Receiving session {session_id} not found")
    return session


def list_receiving_sessions(status: str | None = None, limit: int = 50) -> list[ReceivingSession]:
    query = db.session.query(ReceivingSession)
    if status:
        query = query.filter(ReceivingSession.status == status)
    return (
        query.order_by(ReceivingSession.created_at.desc(), ReceivingSession.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
