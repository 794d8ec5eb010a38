# Overview: Service-layer operations for inventory locations; cached lookups by kind.

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryLocation
from ..models.inventory import LOCATION_KINDS
from .query_cache import QueryCache, location_key, location_ttl, resolve_cache

DEFAULT_LOCATION_NAMES = {
    "floor": "Main Floor",
    "backroom": "Back Room",
    "warehouse": "Warehouse",
}


def _check_kind(kind: str) -> str:
    kind = (kind or "").strip().lower()
    if kind not in LOCATION_KINDS:
        raise ValidationError(f"Unknown location type: {kind!r}")
    return kind


def get_location(location_id: int) -> InventoryLocation:
    location = db.session.get(InventoryLocation, location_id)
    if location is None:
        raise NotFoundError(f"Location {location_id} not found")
    return location


def list_locations() -> list[InventoryLocation]:
    return db.session.query(InventoryLocation).order_by(InventoryLocation.id).all()


def find_location_by_kind(kind: str, cache: QueryCache | None = None) -> InventoryLocation | None:
    """First location of the given kind, or None. The id is cached."""
    kind = _check_kind(kind)
    cache = resolve_cache(cache)
    key = location_key(kind)

    def _first_id():
        return (
            db.session.query(InventoryLocation.id)
            .filter(InventoryLocation.type == kind)
            .order_by(InventoryLocation.id)
            .limit(1)
            .scalar()
        )

    location_id = cache.get_or_load(key, _first_id, ttl=location_ttl())
    if location_id is None:
        return None
    location = db.session.get(InventoryLocation, location_id)
    if location is not None and location.type == kind:
        return location

    # stale id (row deleted or retyped); reload once
    cache.invalidate(key)
    location_id = cache.get_or_load(key, _first_id, ttl=location_ttl())
    return db.session.get(InventoryLocation, location_id) if location_id is not None else None


def get_location_by_kind(kind: str, cache: QueryCache | None = None) -> InventoryLocation:
    location = find_location_by_kind(kind, cache=cache)
    if location is None:
        raise NotFoundError(f"No {kind} location found")
    return location


def ensure_location(kind: str, cache: QueryCache | None = None) -> InventoryLocation:
    """Resolve the location of this kind, creating it with its default name if missing."""
    location = find_location_by_kind(kind, cache=cache)
    if location is not None:
        return location
    kind = _check_kind(kind)
    location = InventoryLocation(name=DEFAULT_LOCATION_NAMES[kind], type=kind)
    db.session.add(location)
    db.session.flush()
    return location


def seed_default_locations(cache: QueryCache | None = None) -> list[InventoryLocation]:
    """Create any missing fixed location. Caller commits."""
    return [ensure_location(kind, cache=cache) for kind in LOCATION_KINDS]
