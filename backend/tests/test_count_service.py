"""Cycle counts."""

import pytest

from liquorpos.errors import ValidationError
from liquorpos.extensions import db
from liquorpos.models import InventoryTransaction
from liquorpos.services import count_service, stock_service


def test_baseline_lists_rows_with_stock(stocked, locations):
    lines = count_service.load_count_baseline(locations["floor"].id)

    assert {l["variant_id"] for l in lines} == {stocked["whisky"].id, stocked["beer"].id}
    assert all(l["physical_quantity"] == l["system_quantity"] for l in lines)


def test_scan_bumps_existing_line_or_appends(stocked, locations):
    floor = locations["floor"]
    lines = count_service.load_count_baseline(floor.id)

    lines = count_service.add_count_item(floor.id, "5011007003005", lines)
    whisky_line = next(l for l in lines if l["variant_id"] == stocked["whisky"].id)
    assert whisky_line["physical_quantity"] == 6
    assert whisky_line["difference"] == 1

    lines = count_service.add_count_item(locations["backroom"].id, "6161101600019", [])
    assert lines[0]["system_quantity"] == 0
    assert lines[0]["physical_quantity"] == 1


def test_complete_applies_only_differences(stocked, locations, manager_user):
    floor = locations["floor"]
    whisky, beer = stocked["whisky"], stocked["beer"]
    lines = count_service.load_count_baseline(floor.id)
    for line in lines:
        if line["variant_id"] == whisky.id:
            line["physical_quantity"] = 4

    result = count_service.complete_cycle_count(floor.id, lines, actor_id=manager_user.id)

    assert result["skipped"] == 1
    assert result["adjustments"] == [{
        "variant_id": whisky.id,
        "lot_number": None,
        "system_quantity": 5,
        "physical_quantity": 4,
        "quantity_change": -1,
    }]
    assert stock_service.total_stock(whisky.id, floor.id) == 4
    assert stock_service.total_stock(beer.id, floor.id) == 24

    counts = db.session.query(InventoryTransaction).filter_by(transaction_type="cycle_count").all()
    assert len(counts) == 1
    assert counts[0].notes == "Cycle count: System had 5, Physical count: 4"
    assert counts[0].created_by == manager_user.id


def test_found_stock_creates_row(locations, catalog):
    backroom = locations["backroom"]
    beer = catalog["beer"]

    result = count_service.complete_cycle_count(
        backroom.id,
        [{"variant_id": beer.id, "system_quantity": 0, "physical_quantity": 3}],
    )

    assert result["adjustments"][0]["quantity_change"] == 3
    assert stock_service.total_stock(beer.id, backroom.id) == 3


def test_count_to_zero_keeps_row(stocked, locations):
    floor = locations["floor"]
    whisky = stocked["whisky"]

    count_service.complete_cycle_count(
        floor.id,
        [{"variant_id": whisky.id, "system_quantity": 5, "physical_quantity": 0}],
    )

    level = stock_service.find_level(whisky.id, floor.id, None)
    assert level is not None
    assert level.quantity == 0


def test_recount_after_correction_writes_nothing(stocked, locations):
    floor = locations["floor"]
    whisky = stocked["whisky"]
    lines = count_service.load_count_baseline(floor.id)
    for line in lines:
        if line["variant_id"] == whisky.id:
            line["physical_quantity"] = 3
    count_service.complete_cycle_count(floor.id, lines)

    recount = count_service.load_count_baseline(floor.id)
    result = count_service.complete_cycle_count(floor.id, recount)

    assert result["adjustments"] == []
    assert result["skipped"] == 2
    assert db.session.query(InventoryTransaction).filter_by(transaction_type="cycle_count").count() == 1
    assert stock_service.total_stock(whisky.id, floor.id) == 3


def test_scan_rejects_malformed_count_sheet(stocked, locations):
    with pytest.raises(ValidationError):
        count_service.add_count_item(locations["floor"].id, "5011007003005", ["x"])

    with pytest.raises(ValidationError):
        count_service.add_count_item(locations["floor"].id, "5011007003005", {"variant_id": 1})
