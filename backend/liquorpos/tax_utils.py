# Overview: Kenya Revenue Authority excise duty and VAT for liquor sales.

"""
KRA taxes

Shelf prices include VAT. Excise duty is charged per litre by category and
added on top; VAT is then recomputed over (base price + excise):

    base  = subtotal / 1.16
    vat   = (base + excise) * 0.16
    total = base + excise + vat

Intermediate values keep full Decimal precision; results are rounded
half-up to cents.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .money import ZERO, quantize

VAT_RATE = Decimal("0.16")

SPIRITS_RATE = Decimal("356.42")
WINE_RATE = Decimal("229.94")
BEER_RATE = Decimal("142.44")

# KES per litre
EXCISE_RATES_PER_LITRE = {
    "beer": BEER_RATE,
    "wine": WINE_RATE,
    "champagne": WINE_RATE,
    "bourbon": SPIRITS_RATE,
    "whiskey": SPIRITS_RATE,
    "scotch": SPIRITS_RATE,
    "vodka": SPIRITS_RATE,
    "gin": SPIRITS_RATE,
    "rum": SPIRITS_RATE,
    "tequila": SPIRITS_RATE,
    "cognac": SPIRITS_RATE,
    "brandy": SPIRITS_RATE,
    "spirits": SPIRITS_RATE,
    "liqueur": SPIRITS_RATE,
    "aperitif": SPIRITS_RATE,
    "amaro": SPIRITS_RATE,
}
DEFAULT_EXCISE_RATE = SPIRITS_RATE


@dataclass(frozen=True)
class TaxBreakdown:
    subtotal: Decimal
    base_price: Decimal
    excise_tax: Decimal
    vat: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "base_price": str(self.base_price),
            "excise_tax": str(self.excise_tax),
            "vat": str(self.vat),
            "vat_rate": str(VAT_RATE),
            "total": str(self.total),
        }


def excise_rate_for(category_name: str | None) -> Decimal:
    if not category_name:
        return DEFAULT_EXCISE_RATE
    return EXCISE_RATES_PER_LITRE.get(category_name.strip().lower(), DEFAULT_EXCISE_RATE)


def excise_per_unit(category_name: str | None, size_ml: int) -> Decimal:
    """Unrounded excise for one unit."""
    return excise_rate_for(category_name) * Decimal(size_ml) / Decimal(1000)


def compute_taxes(lines) -> TaxBreakdown:
    """
    lines: iterable of (unit_price, quantity, category_name, size_ml).
    """
    subtotal = ZERO
    excise = Decimal(0)
    for unit_price, quantity, category_name, size_ml in lines:
        subtotal += Decimal(unit_price) * quantity
        excise += excise_per_unit(category_name, size_ml) * quantity

    base = subtotal / (1 + VAT_RATE)
    vat = (base + excise) * VAT_RATE
    total = base + excise + vat
    return TaxBreakdown(
        subtotal=quantize(subtotal),
        base_price=quantize(base),
        excise_tax=quantize(excise),
        vat=quantize(vat),
        total=quantize(total),
    )
