"""Products, variants and barcode lookups."""

from decimal import Decimal

import pytest

from liquorpos.errors import ConflictError, NotFoundError, ValidationError
from liquorpos.services import catalog_service


def test_sku_generated_from_brand_and_size(db_session):
    first = catalog_service.quick_add_variant(upc="111", brand="Johnnie Walker", category="Scotch", size_ml=750, price=4500)
    second = catalog_service.quick_add_variant(upc="222", brand="Johnnie Walker", category="Scotch", size_ml=750, price=9000)

    assert first.sku == "JOHNNIEWALKER-750"
    assert second.sku == "JOHNNIEWALKER-750-2"


def test_duplicate_upc_rejected(catalog):
    with pytest.raises(ConflictError) as exc:
        catalog_service.quick_add_variant(upc="5011007003005", brand="Other", category="Gin", size_ml=750, price=100)
    assert exc.value.details == {"field": "upc"}


def test_price_must_be_positive(db_session):
    with pytest.raises(ValidationError):
        catalog_service.quick_add_variant(upc="333", brand="Free", category="Beer", size_ml=500, price=0)


def test_brand_and_category_are_reused(catalog):
    product = catalog_service.create_product(
        brand="Jameson", category="Whiskey", name="Jameson Black Barrel",
        variants=[{"size_ml": 700, "price": "4200"}],
    )
    assert product.brand_id == catalog["whisky"].product.brand_id
    assert len(catalog_service.list_brands()) == 2


def test_lookup_trims_barcode(catalog):
    assert catalog_service.lookup_variant_by_upc("  5011007003005 ").id == catalog["whisky"].id


def test_lookup_unknown_barcode(catalog):
    with pytest.raises(NotFoundError):
        catalog_service.lookup_variant_by_upc("0000")


def test_update_variant_price_and_flags(catalog):
    variant = catalog_service.update_variant(
        catalog["whisky"].id, {"price": "3200", "collectible": True, "product_id": 999}
    )
    assert variant.price == Decimal("3200.00")
    assert variant.collectible is True
    assert variant.product_id == catalog["whisky"].product_id


def test_cost_hidden_unless_requested(catalog):
    assert "cost" not in catalog["whisky"].to_dict()
    assert catalog["whisky"].to_dict(include_cost=True)["cost"] == "2100.00"


def test_search_matches_brand_name(catalog):
    found = catalog_service.list_variants(search="tusk")
    assert [v.id for v in found] == [catalog["beer"].id]


def test_delete_variant(catalog):
    catalog_service.delete_variant(catalog["beer"].id)
    with pytest.raises(NotFoundError):
        catalog_service.get_variant(catalog["beer"].id)


@pytest.mark.parametrize("field,value", [("price", "NaN"), ("price", "Infinity"), ("cost", "nan"), ("cost", "-Infinity")])
def test_non_finite_amounts_rejected_on_edit(catalog, field, value):
    whisky = catalog["whisky"]
    with pytest.raises(ValidationError):
        catalog_service.update_variant(whisky.id, {field: value})

    assert catalog_service.get_variant(whisky.id).price == Decimal("3000.00")


def test_non_finite_price_rejected_on_quick_add(db_session):
    with pytest.raises(ValidationError):
        catalog_service.quick_add_variant(upc="444", brand="Ghost", category="Gin", size_ml=750, price="NaN")
