# neigh/services/totals.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping

from flask import current_app, has_app_context

TAX_RATE = Decimal("0.21")
_CENT = Decimal("0.01")


def round2(value) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def _field(item, name):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def item_quantity(item) -> Decimal:
    """``quantity`` wins; older invoice rows only carry ``qty``; default 1."""
    qty = _field(item, "quantity")
    if qty is None:
        qty = _field(item, "qty")
    if qty is None:
        qty = 1
    return Decimal(str(qty))


def calc_total(items: Iterable, tax_rate=TAX_RATE) -> dict[str, str]:
    """Subtotal, tax and total for a list of line items (dicts or objects with
    ``price`` and ``quantity``/``qty``), as two-decimal strings."""
    subtotal = round2(sum(
        (Decimal(str(_field(item, "price") or 0)) * item_quantity(item) for item in items),
        Decimal("0"),
    ))
    tax = round2(subtotal * Decimal(str(tax_rate)))
    total = round2(subtotal + tax)
    return {
        "subtotal": f"{subtotal:.2f}",
        "tax": f"{tax:.2f}",
        "tax_amount": f"{tax:.2f}",
        "total": f"{total:.2f}",
    }


def configured_tax_rate() -> Decimal:
    if has_app_context():
        return Decimal(str(current_app.config.get("TAX_RATE", TAX_RATE)))
    return TAX_RATE
