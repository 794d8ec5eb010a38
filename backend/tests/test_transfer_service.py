"""Transfers between floor, back room and warehouse."""

from datetime import date

import pytest

from liquorpos.errors import PreconditionError
from liquorpos.extensions import db
from liquorpos.models import InventoryTransaction
from liquorpos.services import stock_service, transfer_service


def test_transfer_moves_stock_and_writes_both_sides(stocked, locations, manager_user):
    whisky = stocked["whisky"]
    warehouse, floor = locations["warehouse"], locations["floor"]

    result = transfer_service.transfer_stock(
        warehouse.id, floor.id, [{"variant_id": whisky.id, "quantity": 7}], actor_id=manager_user.id
    )

    assert result["completed"] == 1
    assert result["failed"] == 0
    assert result["results"][0]["transferred"] == 7
    assert stock_service.total_stock(whisky.id, warehouse.id) == 5
    assert stock_service.total_stock(whisky.id, floor.id) == 12

    txs = db.session.query(InventoryTransaction).filter_by(transaction_type="transfer").order_by(InventoryTransaction.id).all()
    assert [(t.location_id, t.quantity_change) for t in txs] == [(warehouse.id, -7), (floor.id, 7)]
    assert txs[0].notes == f"Transferred to {floor.name}"
    assert txs[1].notes == f"Transferred from {warehouse.name}"


def test_lot_and_expiry_follow_the_stock(locations, catalog):
    whisky = catalog["whisky"]
    warehouse, backroom = locations["warehouse"], locations["backroom"]
    stock_service.apply_delta(whisky.id, warehouse.id, "JM-1", 3, "receiving", expiry_date=date(2035, 6, 1))
    db.session.commit()

    transfer_service.transfer_stock(warehouse.id, backroom.id, [{"variant_id": whisky.id, "quantity": 2}])

    moved = stock_service.find_level(whisky.id, backroom.id, "JM-1")
    assert moved.quantity == 2
    assert moved.expiry_date == date(2035, 6, 1)


def test_same_location_is_rejected(stocked, locations):
    floor = locations["floor"]
    with pytest.raises(PreconditionError):
        transfer_service.transfer_stock(floor.id, floor.id, [{"variant_id": stocked["beer"].id, "quantity": 1}])
    assert db.session.query(InventoryTransaction).filter_by(transaction_type="transfer").count() == 0


def test_short_line_fails_alone(stocked, locations):
    whisky, beer = stocked["whisky"], stocked["beer"]
    floor, backroom = locations["floor"], locations["backroom"]

    result = transfer_service.transfer_stock(
        floor.id,
        backroom.id,
        [
            {"variant_id": whisky.id, "quantity": 9},
            {"variant_id": beer.id, "quantity": 6},
        ],
    )

    failed, ok = result["results"]
    assert failed["status"] == "failed"
    assert failed["shortfall"] == 4
    assert ok["status"] == "completed"
    assert result["completed"] == 1 and result["failed"] == 1

    assert stock_service.total_stock(whisky.id, floor.id) == 5
    assert stock_service.total_stock(whisky.id, backroom.id) == 0
    assert stock_service.total_stock(beer.id, backroom.id) == 6


def test_transfer_spanning_two_lots(locations, catalog):
    whisky = catalog["whisky"]
    warehouse, backroom = locations["warehouse"], locations["backroom"]
    stock_service.apply_delta(whisky.id, warehouse.id, "B", 4, "receiving")
    stock_service.apply_delta(whisky.id, warehouse.id, "A", 6, "receiving")
    db.session.commit()

    result = transfer_service.transfer_stock(warehouse.id, backroom.id, [{"variant_id": whisky.id, "quantity": 10}])

    assert result["results"][0]["lots"] == [
        {"lot_number": "A", "quantity": 6},
        {"lot_number": "B", "quantity": 4},
    ]
    assert stock_service.find_level(whisky.id, warehouse.id, "A").quantity == 0
    assert stock_service.find_level(whisky.id, warehouse.id, "B").quantity == 0
    assert [(l.lot_number, l.quantity) for l in stock_service.get_stock(whisky.id, backroom.id)] == [("A", 6), ("B", 4)]

    txs = db.session.query(InventoryTransaction).filter_by(transaction_type="transfer").all()
    assert len(txs) == 4
    assert sorted(t.quantity_change for t in txs) == [-6, -4, 4, 6]
    assert sum(t.quantity_change for t in txs) == 0
