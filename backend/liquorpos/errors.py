# Overview: Domain error taxonomy shared by services and routes.

"""
Error taxonomy

Every workflow failure the user should see is raised as a PosError subclass.
Routes translate them into JSON bodies using the status_code carried by the
exception; anything else is an unexpected store/transport failure (500).
"""
from __future__ import annotations


class PosError(Exception):
    """Base class for errors surfaced to the user as a message."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(PosError):
    """Variant, location, session, tab or order lookup missed."""
    status_code = 404


class ValidationError(PosError, ValueError):
    """400-level input problem (missing UPC, non-positive price/size/quantity)."""
    status_code = 400


class ConflictError(PosError, ValueError):
    """409-level uniqueness conflict (duplicate SKU or UPC)."""
    status_code = 409


class InsufficientStockError(PosError):
    """Requested decrement exceeds the quantity available at the point of write."""
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        variant_id: int | None = None,
        location_id: int | None = None,
        lot_number: str | None = None,
        requested: int | None = None,
        available: int | None = None,
    ):
        super().__init__(
            message,
            details={
                "variant_id": variant_id,
                "location_id": location_id,
                "lot_number": lot_number,
                "requested": requested,
                "available": available,
            },
        )
        self.variant_id = variant_id
        self.location_id = location_id
        self.lot_number = lot_number
        self.requested = requested
        self.available = available


class PreconditionError(PosError):
    """Operation is not allowed in the current state (closed tab, non-draft PO, ...)."""
    status_code = 409


class AuthenticationError(PosError):
    """Missing, bad or expired credentials."""
    status_code = 401


class PermissionDeniedError(PosError):
    """Authenticated, but the role (or approval state) does not allow it."""
    status_code = 403
