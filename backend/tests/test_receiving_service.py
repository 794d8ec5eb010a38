"""Receiving batches into the warehouse."""

from datetime import date

import pytest

from liquorpos.errors import NotFoundError, PreconditionError, ValidationError
from liquorpos.extensions import db
from liquorpos.models import InventoryTransaction, ReceivingSession
from liquorpos.services import catalog_service, location_service, purchase_order_service, receiving_service, stock_service


def test_batch_lands_in_warehouse_with_audit(locations, catalog, manager_user):
    whisky, beer = catalog["whisky"], catalog["beer"]

    session = receiving_service.complete_receiving(
        [
            {"upc": "5011007003005", "quantity": 6, "lot_number": "JM-2026", "expiry_date": "2036-01-31"},
            {"variant_id": beer.id, "quantity": 48},
        ],
        received_by=manager_user.id,
    )

    assert session.status == "completed"
    assert session.completed_at is not None
    assert len(session.items) == 2

    warehouse = locations["warehouse"]
    level = stock_service.find_level(whisky.id, warehouse.id, "JM-2026")
    assert level.quantity == 6
    assert level.expiry_date == date(2036, 1, 31)
    assert stock_service.total_stock(beer.id, warehouse.id) == 48

    txs = db.session.query(InventoryTransaction).filter_by(transaction_type="receiving").all()
    assert len(txs) == 2
    assert all(t.reference_id == str(session.id) for t in txs)
    assert all(t.notes == f"Received in session #{session.id}" for t in txs)


def test_creates_warehouse_when_missing(catalog):
    receiving_service.complete_receiving([{"upc": "6161101600019", "quantity": 1}])

    warehouse = location_service.get_location_by_kind("warehouse")
    assert stock_service.total_stock(catalog["beer"].id, warehouse.id) == 1


def test_bad_line_rejects_whole_batch(locations, catalog):
    with pytest.raises(NotFoundError) as exc:
        receiving_service.complete_receiving([
            {"upc": "5011007003005", "quantity": 6},
            {"upc": "999999", "quantity": 1},
        ])
    db.session.rollback()

    assert exc.value.details["line"] == 1
    assert db.session.query(ReceivingSession).count() == 0
    assert stock_service.total_stock(catalog["whisky"].id, locations["warehouse"].id) == 0


def test_variant_without_upc_cannot_be_received(locations):
    product = catalog_service.create_product(
        brand="House", category="Wine", variants=[{"size_ml": 750, "price": "900"}]
    )

    with pytest.raises(ValidationError):
        receiving_service.complete_receiving([{"variant_id": product.variants[0].id, "quantity": 2}])


def test_quantity_must_be_positive(locations, catalog):
    with pytest.raises(ValidationError):
        receiving_service.complete_receiving([{"upc": "5011007003005", "quantity": 0}])


def _sent_po(catalog, quantity=10):
    distributor = purchase_order_service.create_distributor({"name": "KWAL", "email": "orders@kwal.test"})
    po = purchase_order_service.create_purchase_order(
        distributor.id, [{"variant_id": catalog["whisky"].id, "quantity": quantity}]
    )
    purchase_order_service.mark_purchase_order_sent(po.id)
    return po


def test_receiving_against_po_completes_it_when_covered(locations, catalog):
    po = _sent_po(catalog, quantity=10)

    receiving_service.complete_receiving([{"upc": "5011007003005", "quantity": 4}], po_id=po.id)
    assert purchase_order_service.get_purchase_order(po.id).status == "sent"

    lines = receiving_service.lines_from_purchase_order(po.id)
    assert lines == [{
        "variant_id": catalog["whisky"].id,
        "upc": "5011007003005",
        "name": catalog["whisky"].display_name,
        "quantity": 6,
        "lot_number": None,
        "expiry_date": None,
    }]

    receiving_service.complete_receiving(lines, po_id=po.id)
    po = purchase_order_service.get_purchase_order(po.id)
    assert po.status == "received"
    assert po.received_at is not None


def test_draft_po_cannot_be_received(locations, catalog):
    distributor = purchase_order_service.create_distributor({"name": "KWAL"})
    po = purchase_order_service.create_purchase_order(
        distributor.id, [{"variant_id": catalog["beer"].id, "quantity": 24}]
    )

    with pytest.raises(PreconditionError):
        receiving_service.complete_receiving([{"upc": "6161101600019", "quantity": 24}], po_id=po.id)
