"""Distributors and purchase orders."""

from decimal import Decimal

import pytest

from liquorpos.errors import ConflictError, PreconditionError, ValidationError
from liquorpos.services import purchase_order_service as po_service


@pytest.fixture
def distributor(db_session):
    return po_service.create_distributor({
        "name": "Kenya Wine Agencies",
        "contact_name": "Achieng",
        "email": "orders@kwal.test",
        "phone": "+254 712 345 678",
    })


def test_duplicate_distributor_name(distributor):
    with pytest.raises(ConflictError):
        po_service.create_distributor({"name": "Kenya Wine Agencies"})


def test_create_po_defaults_unit_cost_to_variant_cost(distributor, catalog, manager_user):
    po = po_service.create_purchase_order(
        distributor.id,
        [
            {"variant_id": catalog["whisky"].id, "quantity": 12},
            {"variant_id": catalog["beer"].id, "quantity": 48, "unit_cost": "150"},
        ],
        created_by=manager_user.id,
    )

    assert po.status == "draft"
    assert po.po_number.startswith("PO-")
    assert po.total_amount == Decimal("32400.00")  # 12 * 2100 + 48 * 150


def test_po_needs_items(distributor):
    with pytest.raises(ValidationError):
        po_service.create_purchase_order(distributor.id, [])


def test_only_draft_orders_can_be_edited(distributor, catalog):
    po = po_service.create_purchase_order(distributor.id, [{"variant_id": catalog["beer"].id, "quantity": 24}])
    po = po_service.update_purchase_order_items(po.id, [{"variant_id": catalog["beer"].id, "quantity": 10, "unit_cost": 100}])
    assert po.total_amount == Decimal("1000.00")

    po_service.mark_purchase_order_sent(po.id)
    with pytest.raises(PreconditionError):
        po_service.update_purchase_order_items(po.id, [{"variant_id": catalog["beer"].id, "quantity": 1}])


def test_send_by_email_renders_message(distributor, catalog):
    po = po_service.create_purchase_order(distributor.id, [{"variant_id": catalog["whisky"].id, "quantity": 2}])

    po, message = po_service.mark_purchase_order_sent(po.id, channel="email")

    assert po.status == "sent"
    assert po.sent_at is not None
    assert message["to"] == "orders@kwal.test"
    assert po.po_number in message["subject"]
    assert "Dear Achieng" in message["body"]
    assert "Quantity: 2" in message["body"]
    assert "KES 4,200.00" in message["body"]


def test_send_by_whatsapp_builds_link(distributor, catalog):
    po = po_service.create_purchase_order(distributor.id, [{"variant_id": catalog["beer"].id, "quantity": 24}])

    _po, message = po_service.mark_purchase_order_sent(po.id, channel="whatsapp")

    assert message["phone"] == "+254712345678"
    assert message["url"].startswith("https://wa.me/254712345678?text=")


def test_resending_keeps_sent_at(distributor, catalog):
    po = po_service.create_purchase_order(distributor.id, [{"variant_id": catalog["beer"].id, "quantity": 24}])
    po, _ = po_service.mark_purchase_order_sent(po.id)
    first_sent = po.sent_at

    po, _ = po_service.mark_purchase_order_sent(po.id, channel="email")
    assert po.sent_at == first_sent


def test_cancelled_order_cannot_be_sent(distributor, catalog):
    po = po_service.create_purchase_order(distributor.id, [{"variant_id": catalog["beer"].id, "quantity": 24}])
    po_service.cancel_purchase_order(po.id)

    with pytest.raises(PreconditionError):
        po_service.mark_purchase_order_sent(po.id)


def test_distributor_with_orders_cannot_be_deleted(distributor, catalog):
    po_service.create_purchase_order(distributor.id, [{"variant_id": catalog["beer"].id, "quantity": 24}])
    with pytest.raises(PreconditionError):
        po_service.delete_distributor(distributor.id)
