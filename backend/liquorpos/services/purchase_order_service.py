# Overview: Service-layer operations for distributors and purchase orders.

"""
Purchase Order Service

Status flow: draft -> sent -> received, with cancelled reachable from
draft or sent. Lines can only be edited while the order is a draft. The
sent -> received step is not taken here by hand: receiving calls
refresh_purchase_order_receipt() after each completed session, and the
order advances once every line's ordered quantity is covered by the sum
received across all completed sessions for that order.

Sending is rendered, not delivered: the email body and a wa.me link are
returned for the front-end (or a mail relay) to hand off.
"""
from __future__ import annotations

import re
from collections import defaultdict
from decimal import Decimal
from urllib.parse import quote

from flask import current_app
from sqlalchemy import func

from ..errors import NotFoundError, PreconditionError, ValidationError, ConflictError
from ..extensions import db
from ..models import Distributor, POItem, PurchaseOrder, ReceivedItem, ReceivingSession
from ..money import quantize, to_money
from ..time_utils import utcnow
from ..validation import optional_str, require_int, require_str
from .catalog_service import get_variant

PO_DRAFT = "draft"
PO_SENT = "sent"
PO_RECEIVED = "received"
PO_CANCELLED = "cancelled"

SEND_CHANNELS = ("email", "whatsapp")


# ---------------------------------------------------------------------------
# Distributors
# ---------------------------------------------------------------------------

def list_distributors() -> list[Distributor]:
    return db.session.query(Distributor).order_by(Distributor.name.asc()).all()


def get_distributor(distributor_id: int) -> Distributor:
    distributor = db.session.get(Distributor, distributor_id)
    if distributor is None:
        raise NotFoundError(f"Distributor {distributor_id} not found")
    return distributor


def create_distributor(data: dict) -> Distributor:
    name = require_str(data.get("name"), "name", max_length=255)
    if db.session.query(Distributor.id).filter(Distributor.name == name).first() is not None:
        raise ConflictError(f"Distributor {name!r} already exists")
    distributor = Distributor(
        name=name,
        contact_name=optional_str(data.get("contact_name"), max_length=255, field="contact_name"),
        email=optional_str(data.get("email"), max_length=255, field="email"),
        phone=optional_str(data.get("phone"), max_length=32, field="phone"),
    )
    db.session.add(distributor)
    db.session.commit()
    return distributor


def delete_distributor(distributor_id: int) -> None:
    distributor = get_distributor(distributor_id)
    in_use = db.session.query(PurchaseOrder.id).filter(PurchaseOrder.distributor_id == distributor.id).first()
    if in_use is not None:
        raise PreconditionError("Distributor has purchase orders and cannot be deleted")
    db.session.delete(distributor)
    db.session.commit()


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------

def next_po_number(now=None) -> str:
    """PO-<yyyymmdd>-<seq>"""
    prefix = f"PO-{(now or utcnow()).strftime('%Y%m%d')}-"
    taken = db.session.query(PurchaseOrder.id).filter(PurchaseOrder.po_number.like(f"{prefix}%")).count()
    return f"{prefix}{taken + 1:03d}"


def _build_items(items) -> list[POItem]:
    if not items:
        raise ValidationError("A purchase order needs at least one item")
    built = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("items must be objects")
        variant = get_variant(require_int(raw.get("variant_id"), "variant_id"))
        quantity = require_int(raw.get("quantity"), "quantity", minimum=1)
        unit_cost = raw.get("unit_cost")
        unit_cost = to_money(unit_cost, "unit_cost") if unit_cost is not None else quantize(Decimal(variant.cost or 0))
        if unit_cost < 0:
            raise ValidationError("unit_cost cannot be negative")
        built.append(POItem(variant_id=variant.id, quantity=quantity, unit_cost=unit_cost))
    return built


def _order_total(items: list[POItem]) -> Decimal:
    return quantize(sum((Decimal(i.unit_cost) * i.quantity for i in items), Decimal(0)))


def get_purchase_order(po_id: int) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError(f"Purchase order {po_id} not found")
    return po


def list_purchase_orders(status: str | None = None) -> list[PurchaseOrder]:
    query = db.session.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def create_purchase_order(
    distributor_id: int,
    items: list[dict],
    *,
    created_by: int | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    distributor = get_distributor(distributor_id)
    po_items = _build_items(items)
    now = utcnow()
    po = PurchaseOrder(
        po_number=next_po_number(now),
        distributor_id=distributor.id,
        status=PO_DRAFT,
        total_amount=_order_total(po_items),
        notes=optional_str(notes),
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    po.items = po_items
    db.session.add(po)
    db.session.commit()
    return po


def update_purchase_order_items(po_id: int, items: list[dict], notes=None) -> PurchaseOrder:
    """Replace the lines of a draft order."""
    po = get_purchase_order(po_id)
    if po.status != PO_DRAFT:
        raise PreconditionError(f"Only draft purchase orders can be edited (status is {po.status})")
    po_items = _build_items(items)
    po.items = po_items
    po.total_amount = _order_total(po_items)
    if notes is not None:
        po.notes = optional_str(notes)
    db.session.commit()
    return po


def _format_kes(amount) -> str:
    return f"KES {Decimal(amount):,.2f}"


def render_email(po: PurchaseOrder) -> dict:
    store = current_app.config.get("STORE_NAME", "Last Kings")
    distributor = po.distributor
    lines = []
    for index, item in enumerate(po.items, start=1):
        variant = item.variant
        lines.append(
            f"{index}. {variant.display_name}\n"
            f"   SKU: {variant.sku}\n"
            f"   Quantity: {item.quantity}\n"
            f"   Unit Cost: {_format_kes(item.unit_cost)}\n"
            f"   Subtotal: {_format_kes(Decimal(item.unit_cost) * item.quantity)}"
        )
    body = (
        f"Dear {distributor.contact_name or distributor.name},\n\n"
        f"Please find below our purchase order details:\n\n"
        f"Purchase Order Number: {po.po_number}\n"
        f"Date: {po.created_at:%d %B %Y}\n"
        f"Total Amount: {_format_kes(po.total_amount)}\n\n"
        f"ITEMS:\n" + "\n\n".join(lines) + "\n\n"
        f"Please confirm receipt and expected delivery date.\n\n"
        f"Thank you,\n{store} POS System\n"
    )
    return {
        "to": distributor.email,
        "subject": f"Purchase Order {po.po_number} - {store}",
        "body": body,
    }


def render_whatsapp(po: PurchaseOrder, phone: str | None = None) -> dict:
    store = current_app.config.get("STORE_NAME", "Last Kings")
    raw_phone = phone or po.distributor.phone
    if not raw_phone:
        raise ValidationError("Distributor phone is required for WhatsApp")
    formatted_phone = re.sub(r"[^\d+]", "", raw_phone)

    lines = []
    for index, item in enumerate(po.items, start=1):
        variant = item.variant
        lines.append(
            f"{index}. {variant.display_name}\n"
            f"   SKU: {variant.sku}\n"
            f"   Qty: {item.quantity} x {_format_kes(item.unit_cost)} = "
            f"{_format_kes(Decimal(item.unit_cost) * item.quantity)}"
        )
    text = (
        f"*Purchase Order {po.po_number} - {store}*\n\n"
        f"Date: {po.created_at:%d %B %Y}\n\n"
        f"Total Amount: {_format_kes(po.total_amount)}\n\n"
        f"*Items:*\n" + "\n\n".join(lines) + "\n\n"
        f"Please confirm receipt and expected delivery date.\n\n"
        f"Thank you,\n{store} POS System"
    )
    return {
        "phone": formatted_phone,
        "text": text,
        "url": f"https://wa.me/{formatted_phone.lstrip('+')}?text={quote(text, safe='')}",
    }


def mark_purchase_order_sent(po_id: int, channel: str | None = None, contact: str | None = None) -> tuple[PurchaseOrder, dict | None]:
    """
    draft -> sent (records sent_at). Re-sending a sent order only renders the
    message again. Returns the order and the rendered message for `channel`.
    """
    po = get_purchase_order(po_id)
    if po.status not in (PO_DRAFT, PO_SENT):
        raise PreconditionError(f"Cannot send a purchase order that is {po.status}")
    if channel is not None and channel not in SEND_CHANNELS:
        raise ValidationError(f"channel must be one of {', '.join(SEND_CHANNELS)}")

    message = None
    if channel == "email":
        message = render_email(po)
        if contact:
            message["to"] = contact
        if not message["to"]:
            raise ValidationError("Distributor email is required")
    elif channel == "whatsapp":
        message = render_whatsapp(po, phone=contact)

    if po.status == PO_DRAFT:
        po.status = PO_SENT
        po.sent_at = utcnow()
    db.session.commit()
    return po, message


def cancel_purchase_order(po_id: int) -> PurchaseOrder:
    po = get_purchase_order(po_id)
    if po.status not in (PO_DRAFT, PO_SENT):
        raise PreconditionError(f"Cannot cancel a purchase order that is {po.status}")
    po.status = PO_CANCELLED
    db.session.commit()
    return po


def received_quantities(po_id: int) -> dict[int, int]:
    """variant_id -> units received across every completed session for the order."""
    rows = (
        db.session.query(ReceivedItem.variant_id, func.sum(ReceivedItem.quantity))
        .join(ReceivingSession, ReceivingSession.id == ReceivedItem.session_id)
        .filter(ReceivingSession.po_id == po_id, ReceivingSession.status == "completed")
        .group_by(ReceivedItem.variant_id)
        .all()
    )
    return {variant_id: int(qty or 0) for variant_id, qty in rows}


def _ordered_quantities(po: PurchaseOrder) -> dict[int, int]:
    ordered: dict[int, int] = defaultdict(int)
    for item in po.items:
        ordered[item.variant_id] += item.quantity
    return dict(ordered)


def receipt_progress(po_id: int) -> list[dict]:
    po = get_purchase_order(po_id)
    received = received_quantities(po.id)
    progress = []
    for variant_id, ordered in _ordered_quantities(po).items():
        got = received.get(variant_id, 0)
        variant = get_variant(variant_id)
        progress.append({
            "variant_id": variant_id,
            "variant": variant.display_name,
            "upc": variant.upc,
            "ordered": ordered,
            "received": got,
            "outstanding": max(ordered - got, 0),
            "complete": got >= ordered,
        })
    return progress


def refresh_purchase_order_receipt(po: PurchaseOrder) -> bool:
    """
    Advance a sent order to received when every line is fully covered.
    Runs inside the caller's transaction. Returns True when the status changed.
    """
    if po.status != PO_SENT:
        return False
    received = received_quantities(po.id)
    ordered = _ordered_quantities(po)
    if not ordered:
        return False
    if all(received.get(variant_id, 0) >= qty for variant_id, qty in ordered.items()):
        po.status = PO_RECEIVED
        po.received_at = utcnow()
        return True
    return False


def purchase_order_dict(po: PurchaseOrder) -> dict:
    data = po.to_dict(include_items=True)
    data["distributor_contact"] = {
        "contact_name": po.distributor.contact_name,
        "email": po.distributor.email,
        "phone": po.distributor.phone,
    }
    return data
