# Overview: Service-layer operations for moving stock between locations.

"""
Transfer Service

Each requested line moves lot by lot from the source (lowest lot label
first, untracked stock last) into the same lot at the destination, with a
negative and a positive transfer transaction per lot.

Every line commits on its own. A line that cannot be covered is rolled
back and reported; lines before and after it are unaffected.
"""
from __future__ import annotations

from ..errors import PosError, PreconditionError, ValidationError
from ..extensions import db
from ..validation import require_int
from .catalog_service import get_variant
from .concurrency import begin_immediate, run_with_retry
from .location_service import get_location
from .stock_service import apply_delta, consume_stock

LINE_COMPLETED = "completed"
LINE_FAILED = "failed"


def _parse_lines(lines) -> list[tuple[int, int]]:
    if not lines:
        raise ValidationError("Nothing to transfer")
    if not isinstance(lines, list):
        raise ValidationError("lines must be a list")
    parsed = []
    for raw in lines:
        if not isinstance(raw, dict):
            raise ValidationError("lines must be objects")
        parsed.append((
            require_int(raw.get("variant_id"), "variant_id"),
            require_int(raw.get("quantity"), "quantity", minimum=1),
        ))
    return parsed


def _transfer_line(variant_id: int, quantity: int, source, destination, actor_id):
    begin_immediate()
    try:
        get_variant(variant_id)
        allocations = consume_stock(
            variant_id,
            source.id,
            quantity,
            "transfer",
            actor_id=actor_id,
            note=f"Transferred to {destination.name}",
        )
        for allocation in allocations:
            apply_delta(
                variant_id,
                destination.id,
                allocation.lot_number,
                allocation.quantity,
                "transfer",
                actor_id=actor_id,
                note=f"Transferred from {source.name}",
                expiry_date=allocation.expiry_date,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return allocations


def transfer_stock(
    source_location_id: int,
    destination_location_id: int,
    lines,
    *,
    actor_id: int | None = None,
) -> dict:
    """
    Move stock between two different locations.

    Returns {"source", "destination", "results", "completed", "failed"} where
    each result is {variant_id, requested, transferred, status, error, lots}.
    """
    if source_location_id == destination_location_id:
        raise PreconditionError("Source and destination locations must be different")
    source = get_location(source_location_id)
    destination = get_location(destination_location_id)
    parsed = _parse_lines(lines)

    source_name, destination_name = source.name, destination.name
    results = []
    for variant_id, quantity in parsed:
        result = {
            "variant_id": variant_id,
            "requested": quantity,
            "transferred": 0,
            "status": LINE_FAILED,
            "error": None,
            "lots": [],
        }
        try:
            allocations = run_with_retry(
                lambda: _transfer_line(variant_id, quantity, source, destination, actor_id)
            )
        except PosError as e:
            result["error"] = e.message
            if e.details:
                result["details"] = e.details
                available = e.details.get("available")
                if available is not None:
                    result["shortfall"] = quantity - available
        else:
            result["status"] = LINE_COMPLETED
            result["transferred"] = sum(a.quantity for a in allocations)
            result["lots"] = [{"lot_number": a.lot_number, "quantity": a.quantity} for a in allocations]
        results.append(result)

    completed = sum(1 for r in results if r["status"] == LINE_COMPLETED)
    return {
        "source": {"id": source_location_id, "name": source_name},
        "destination": {"id": destination_location_id, "name": destination_name},
        "results": results,
        "completed": completed,
        "failed": len(results) - completed,
    }
