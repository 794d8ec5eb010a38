from decimal import Decimal

from liquorpos.tax_utils import compute_taxes, excise_per_unit, excise_rate_for


def test_excise_rates_by_category():
    assert excise_rate_for("Beer") == Decimal("142.44")
    assert excise_rate_for("wine") == Decimal("229.94")
    assert excise_rate_for("Champagne") == Decimal("229.94")
    assert excise_rate_for("Whiskey") == Decimal("356.42")
    assert excise_rate_for("Mystery") == Decimal("356.42")
    assert excise_rate_for(None) == Decimal("356.42")


def test_excise_per_unit_scales_with_volume():
    assert excise_per_unit("Beer", 500) == Decimal("71.22")
    assert excise_per_unit("Whiskey", 750) == Decimal("267.315")


def test_single_bottle_of_spirits():
    taxes = compute_taxes([(Decimal("3000.00"), 1, "Whiskey", 750)])

    assert taxes.subtotal == Decimal("3000.00")
    assert taxes.base_price == Decimal("2586.21")
    assert taxes.excise_tax == Decimal("267.32")
    assert taxes.vat == Decimal("456.56")
    assert taxes.total == Decimal("3310.09")


def test_mixed_cart_rounds_once_at_the_end():
    taxes = compute_taxes([
        (Decimal("3000.00"), 1, "Whiskey", 750),
        (Decimal("250.00"), 2, "Beer", 500),
    ])

    assert taxes.subtotal == Decimal("3500.00")
    assert taxes.excise_tax == Decimal("409.76")
    assert taxes.total == Decimal("3975.32")


def test_empty_cart_is_zero():
    taxes = compute_taxes([])
    assert taxes.total == Decimal("0.00")
    assert taxes.to_dict()["vat_rate"] == "0.16"
