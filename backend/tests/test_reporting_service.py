"""Dashboard and report aggregations."""

from datetime import timedelta

from liquorpos.extensions import db
from liquorpos.models import ProductVariant
from liquorpos.services import pos_service, receiving_service, reporting_service
from liquorpos.services import purchase_order_service as po_service
from liquorpos.time_utils import utcnow


def _sell(variant, quantity, method="mpesa"):
    return pos_service.checkout([{"variant_id": variant.id, "quantity": quantity}], payment_method=method)


def test_dashboard_today(stocked, locations):
    _sell(stocked["beer"], 3)
    _sell(stocked["whisky"], 1)

    data = reporting_service.dashboard()

    assert data["today_sales"]["count"] == 2
    assert data["top_movers"][0]["variant_id"] == stocked["beer"].id
    assert data["top_movers"][0]["quantity_sold"] == 3
    # whisky floor 4, whisky warehouse 12 (not < 10), beer floor 21
    assert [(r["variant_id"], r["quantity"]) for r in data["low_stock"]] == [(stocked["whisky"].id, 4)]


def test_low_stock_includes_empty_rows(stocked, locations):
    _sell(stocked["whisky"], 5)
    rows = reporting_service.low_stock(threshold=1)
    assert [(r["variant_id"], r["quantity"]) for r in rows] == [(stocked["whisky"].id, 0)]


def test_sales_summary_by_payment_method(stocked, locations):
    _sell(stocked["beer"], 1, method="mpesa")
    pos_service.checkout(
        [{"variant_id": stocked["beer"].id, "quantity": 2}], payment_method="cash", received_amount=1000
    )

    summary = reporting_service.sales_summary(days=1)

    assert summary["sale_count"] == 2
    assert summary["total"] == "997.85"  # 332.62 + 665.23
    assert summary["by_payment_method"]["cash"]["count"] == 1
    assert summary["by_payment_method"]["mpesa"]["total"] == "332.62"


def test_revenue_by_day_is_zero_filled(stocked, locations):
    _sell(stocked["beer"], 1)

    days = reporting_service.revenue_by_day(days=7)

    assert len(days) == 7
    assert days[-1]["count"] == 1
    assert days[-1]["total"] == "332.62"
    assert all(d["count"] == 0 for d in days[:-1])


def test_dead_stock_skips_recent_sellers_and_new_products(stocked, locations):
    long_ago = utcnow() - timedelta(days=120)
    db.session.query(ProductVariant).update({ProductVariant.created_at: long_ago})
    db.session.commit()
    _sell(stocked["beer"], 1)

    rows = reporting_service.dead_stock(days=90, min_age_days=30)

    assert {r["variant_id"] for r in rows} == {stocked["whisky"].id}
    assert sorted(r["quantity"] for r in rows) == [5, 12]
    assert all(r["last_sold_at"] is None for r in rows)


def test_daily_snapshot_from_ledger(stocked, locations):
    _sell(stocked["beer"], 4)

    snapshot = reporting_service.daily_snapshot(utcnow().date(), include_values=True)
    by_kind = {s["location"]["type"]: s for s in snapshot["snapshots"]}

    floor = by_kind["floor"]
    assert floor["opening_quantity"] == 0
    assert floor["closing_quantity"] == 5 + 20
    assert floor["sale_count"] == 1
    assert floor["closing_stock_value"] == "13700.00"  # 5 * 2100 + 20 * 160
    assert by_kind["warehouse"]["sale_count"] == 0


def test_daily_snapshot_hides_values_by_default(stocked, locations):
    snapshot = reporting_service.daily_snapshot(utcnow().date())
    assert "closing_stock_value" not in snapshot["snapshots"][0]


def test_receiving_queue_lists_sent_orders_with_outstanding_units(catalog, locations, manager_user):
    distributor = po_service.create_distributor({"name": "KBL"})
    draft = po_service.create_purchase_order(distributor.id, [{"variant_id": catalog["beer"].id, "quantity": 10}])
    sent = po_service.create_purchase_order(
        distributor.id,
        [{"variant_id": catalog["beer"].id, "quantity": 48}, {"variant_id": catalog["whisky"].id, "quantity": 6}],
    )
    po_service.mark_purchase_order_sent(sent.id)
    receiving_service.complete_receiving(
        [{"variant_id": catalog["beer"].id, "quantity": 48}], received_by=manager_user.id, po_id=sent.id
    )

    queue = reporting_service.dashboard()["receiving_queue"]

    assert [entry["id"] for entry in queue] == [sent.id]
    assert queue[0]["outstanding_units"] == 6
    assert draft.id not in [entry["id"] for entry in queue]
