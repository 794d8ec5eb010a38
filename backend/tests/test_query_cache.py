"""Query cache: TTL expiry, sweeping, and cached id lookups."""

from liquorpos.services import catalog_service, location_service
from liquorpos.services.query_cache import QueryCache, location_key, variant_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = QueryCache(default_ttl=60, clock=clock)
    cache.set("k", 42)

    clock.advance(60)
    assert cache.get("k") == 42

    clock.advance(1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default():
    clock = FakeClock()
    cache = QueryCache(default_ttl=300, clock=clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2)

    clock.advance(10)
    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_sweep_evicts_only_expired_entries():
    clock = FakeClock()
    cache = QueryCache(default_ttl=30, clock=clock)
    cache.set("a", 1)
    clock.advance(20)
    cache.set("b", 2)
    clock.advance(15)

    assert cache.sweep() == 1
    assert len(cache) == 1
    assert cache.get("b") == 2


def test_get_or_load_does_not_store_none():
    cache = QueryCache(default_ttl=60, clock=FakeClock())
    calls = []

    def loader():
        calls.append(1)
        return None

    assert cache.get_or_load("missing", loader) is None
    assert cache.get_or_load("missing", loader) is None
    assert len(calls) == 2
    assert len(cache) == 0


def test_location_lookup_caches_id(locations):
    cache = QueryCache(default_ttl=60, clock=FakeClock())
    floor = location_service.get_location_by_kind("floor", cache=cache)

    assert cache.get(location_key("floor")) == floor.id
    assert location_service.get_location_by_kind("floor", cache=cache).id == floor.id


def test_unknown_upc_is_not_cached_and_new_product_is_found(db_session):
    cache = QueryCache(default_ttl=60, clock=FakeClock())
    assert catalog_service.find_variant_by_upc("0000123", cache=cache) is None
    assert cache.get(variant_key("0000123")) is None

    variant = catalog_service.quick_add_variant(
        upc="0000123", brand="Kenya Cane", category="Rum", size_ml=750, price="1200", cache=cache
    )

    found = catalog_service.find_variant_by_upc(" 0000123 ", cache=cache)
    assert found.id == variant.id
    assert cache.get(variant_key("0000123")) == variant.id


def test_upc_change_invalidates_old_key(catalog):
    cache = QueryCache(default_ttl=60, clock=FakeClock())
    whisky = catalog["whisky"]
    catalog_service.find_variant_by_upc("5011007003005", cache=cache)
    assert cache.get(variant_key("5011007003005")) == whisky.id

    catalog_service.update_variant(whisky.id, {"upc": "5011007009999"}, cache=cache)

    assert cache.get(variant_key("5011007003005")) is None
    assert catalog_service.find_variant_by_upc("5011007003005", cache=cache) is None
    assert catalog_service.find_variant_by_upc("5011007009999", cache=cache).id == whisky.id


def test_price_edit_invalidates_cached_lookup(catalog):
    cache = QueryCache(default_ttl=60, clock=FakeClock())
    whisky = catalog["whisky"]
    catalog_service.find_variant_by_upc("5011007003005", cache=cache)
    assert cache.get(variant_key("5011007003005")) == whisky.id

    catalog_service.update_variant(whisky.id, {"price": "3200"}, cache=cache)

    assert cache.get(variant_key("5011007003005")) is None
    found = catalog_service.find_variant_by_upc("5011007003005", cache=cache)
    assert str(found.price) == "3200.00"


def test_location_lookup_recovers_from_stale_id(locations):
    cache = QueryCache(default_ttl=60, clock=FakeClock())
    cache.set(location_key("floor"), locations["backroom"].id)

    assert location_service.get_location_by_kind("floor", cache=cache).id == locations["floor"].id
    assert cache.get(location_key("floor")) == locations["floor"].id
