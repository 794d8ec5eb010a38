"""Customer tabs: open, add, cash out."""

from decimal import Decimal

import pytest

from liquorpos.errors import InsufficientStockError, PreconditionError, ValidationError
from liquorpos.extensions import db
from liquorpos.models import Sale
from liquorpos.services import customer_service, stock_service, tab_service


def test_open_tab_needs_a_name(locations):
    with pytest.raises(ValidationError):
        tab_service.open_tab(customer_name="  ")


def test_open_tab_for_customer_uses_their_name(locations):
    customer = customer_service.create_customer({"first_name": "Otieno", "last_name": "Odhiambo"})
    tab = tab_service.open_tab(customer_id=customer.id)

    assert tab.customer_name == "Otieno Odhiambo"
    assert tab.status == "open"
    assert tab.tab_number.startswith("TAB-")


def test_adding_items_does_not_touch_stock(stocked, locations, staff_user):
    floor = locations["floor"]
    tab = tab_service.open_tab(customer_name="Table 4", opened_by=staff_user.id)

    tab = tab_service.add_tab_items(
        tab.id,
        [{"upc": "6161101600019", "quantity": 3}, {"variant_id": stocked["whisky"].id, "quantity": 1}],
        added_by=staff_user.id,
    )

    assert tab.total_amount == Decimal("3750.00")
    assert stock_service.total_stock(stocked["beer"].id, floor.id) == 24


def test_tab_quantity_counts_against_floor(stocked, locations):
    tab = tab_service.open_tab(customer_name="Table 7")
    tab_service.add_tab_items(tab.id, [{"variant_id": stocked["whisky"].id, "quantity": 4}])

    with pytest.raises(InsufficientStockError):
        tab_service.add_tab_items(tab.id, [{"variant_id": stocked["whisky"].id, "quantity": 2}])


def test_remove_item_recomputes_total(stocked, locations):
    tab = tab_service.open_tab(customer_name="Bar")
    tab = tab_service.add_tab_items(tab.id, [{"variant_id": stocked["beer"].id, "quantity": 2}])
    item_id = tab.items[0].id

    tab = tab_service.remove_tab_item(tab.id, item_id)
    assert tab.items == []
    assert tab.total_amount == Decimal("0.00")


def test_cash_out_creates_sale_and_closes_tab(stocked, locations, staff_user):
    floor = locations["floor"]
    tab = tab_service.open_tab(customer_name="Table 2")
    tab_service.add_tab_items(tab.id, [{"variant_id": stocked["beer"].id, "quantity": 1}])
    tab_service.add_tab_items(tab.id, [{"variant_id": stocked["beer"].id, "quantity": 1}])

    sale = tab_service.cash_out_tab(tab.id, payment_method="cash", received_amount=700, closed_by=staff_user.id)

    assert sale.tab_id == tab.id
    assert sale.total_amount == Decimal("665.23")
    assert len(sale.items) == 1
    assert sale.items[0].quantity == 2
    assert stock_service.total_stock(stocked["beer"].id, floor.id) == 22

    closed = tab_service.get_tab(tab.id)
    assert closed.status == "closed"
    assert closed.closed_by == staff_user.id

    with pytest.raises(PreconditionError):
        tab_service.add_tab_items(tab.id, [{"variant_id": stocked["beer"].id, "quantity": 1}])


def test_empty_tab_cannot_be_cashed_out(locations):
    tab = tab_service.open_tab(customer_name="Nobody")
    with pytest.raises(ValidationError):
        tab_service.cash_out_tab(tab.id, payment_method="mpesa")
    assert tab_service.get_tab(tab.id).status == "open"


def test_closed_tab_cannot_be_cashed_out_twice(stocked, locations):
    floor = locations["floor"]
    tab = tab_service.open_tab(customer_name="Table 9")
    tab_service.add_tab_items(tab.id, [{"variant_id": stocked["beer"].id, "quantity": 2}])
    tab_service.cash_out_tab(tab.id, payment_method="mpesa")

    with pytest.raises(PreconditionError):
        tab_service.cash_out_tab(tab.id, payment_method="mpesa")

    assert db.session.query(Sale).filter_by(tab_id=tab.id).count() == 1
    assert stock_service.total_stock(stocked["beer"].id, floor.id) == 22
