# Overview: Service-layer operations for cycle counts at a single location.

"""
Cycle Count Service

The count sheet is held by the client. load_count_baseline() seeds it with
every row holding stock at the location, physical = system. On completion
each line whose physical count differs from its system baseline overwrites
the stock row and leaves one cycle_count transaction; unchanged lines are
skipped so confirmed counts add nothing to the ledger.
"""
from __future__ import annotations

from ..errors import ValidationError
from ..extensions import db
from ..models import StockLevel
from ..validation import optional_str, require_int
from .catalog_service import lookup_variant_by_upc
from .concurrency import begin_immediate, run_with_retry
from .location_service import get_location
from .query_cache import QueryCache
from .stock_service import apply_delta, cycle_count_note, find_level, normalize_lot, set_counted_quantity


def _baseline_line(level: StockLevel) -> dict:
    variant = level.variant
    return {
        "stock_level_id": level.id,
        "variant_id": level.variant_id,
        "name": variant.display_name,
        "upc": variant.upc,
        "sku": variant.sku,
        "lot_number": level.lot_number,
        "system_quantity": level.quantity,
        "physical_quantity": level.quantity,
        "difference": 0,
    }


def load_count_baseline(location_id: int) -> list[dict]:
    location = get_location(location_id)
    levels = (
        db.session.query(StockLevel)
        .filter(StockLevel.location_id == location.id, StockLevel.quantity > 0)
        .order_by(StockLevel.variant_id, StockLevel.lot_number.asc().nulls_last())
        .all()
    )
    return [_baseline_line(level) for level in levels]


def add_count_item(location_id: int, upc, baseline: list[dict] | None = None, cache: QueryCache | None = None) -> list[dict]:
    """
    A scan during counting: bump physical on the first matching line, or
    append the variant (untracked lot) with its current system quantity.
    """
    location = get_location(location_id)
    variant = lookup_variant_by_upc(upc, cache=cache)
    if baseline is None:
        baseline = []
    if not isinstance(baseline, list):
        raise ValidationError("lines must be a list")
    if not all(isinstance(line, dict) for line in baseline):
        raise ValidationError("lines must be objects")
    baseline = list(baseline)

    for line in baseline:
        if line.get("variant_id") == variant.id:
            line["physical_quantity"] = int(line.get("physical_quantity") or 0) + 1
            line["difference"] = line["physical_quantity"] - int(line.get("system_quantity") or 0)
            return baseline

    level = find_level(variant.id, location.id, None)
    system = level.quantity if level is not None else 0
    baseline.append({
        "stock_level_id": level.id if level is not None else None,
        "variant_id": variant.id,
        "name": variant.display_name,
        "upc": variant.upc,
        "sku": variant.sku,
        "lot_number": None,
        "system_quantity": system,
        "physical_quantity": system + 1,
        "difference": 1,
    })
    return baseline


def complete_cycle_count(location_id: int, lines, *, actor_id: int | None = None) -> dict:
    """
    Apply a finished count. Returns {"adjustments": [...], "skipped": n}.
    The whole count commits in one transaction.
    """
    location = get_location(location_id)
    if not isinstance(lines, list):
        raise ValidationError("lines must be a list")

    parsed = []
    for raw in lines:
        if not isinstance(raw, dict):
            raise ValidationError("lines must be objects")
        parsed.append({
            "variant_id": require_int(raw.get("variant_id"), "variant_id"),
            "lot_number": normalize_lot(optional_str(raw.get("lot_number"), max_length=64, field="lot_number")),
            "system": require_int(raw.get("system_quantity", 0), "system_quantity", minimum=0),
            "physical": require_int(raw.get("physical_quantity"), "physical_quantity", minimum=0),
        })

    def _op():
        begin_immediate()
        adjustments = []
        skipped = 0
        try:
            for line in parsed:
                if line["physical"] - line["system"] == 0:
                    skipped += 1
                    continue

                level = find_level(line["variant_id"], location.id, line["lot_number"])
                if level is None:
                    if line["physical"] == 0:
                        skipped += 1
                        continue
                    apply_delta(
                        line["variant_id"],
                        location.id,
                        line["lot_number"],
                        line["physical"],
                        "cycle_count",
                        actor_id=actor_id,
                        note=cycle_count_note(0, line["physical"]),
                    )
                    change = line["physical"]
                else:
                    change = set_counted_quantity(level, line["physical"], actor_id=actor_id)
                    if change == 0:
                        skipped += 1
                        continue

                adjustments.append({
                    "variant_id": line["variant_id"],
                    "lot_number": line["lot_number"],
                    "system_quantity": line["system"],
                    "physical_quantity": line["physical"],
                    "quantity_change": change,
                })
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return {"adjustments": adjustments, "skipped": skipped}

    return run_with_retry(_op)
