# invoicing/totals.py
from __future__ import annotations

from decimal import Decimal
from typing import Any

from invoicing.models import HistoryEntry, InvoiceTotals
from invoicing.parse_utils import coerce_number, round_money, to_decimal


def _non_negative(value: Any) -> Decimal:
    number = coerce_number(value)
    if number < 0:
        return Decimal(0)
    return to_decimal(number)


def compute(
    freight_total: Any,
    vacuum_seal_qty: Any = 0,
    vacuum_seal_unit_price: Any = 0,
    box_qty: Any = 0,
    box_unit_price: Any = 0,
    insurance: Any = 0,
    amount_paid: Any = 0,
) -> InvoiceTotals:
    """Full monetary breakdown of an invoice.

    Inputs that are not a valid non-negative number count as zero, so this
    never fails. A restored invoice fed back through here reproduces the
    totals it was saved with.
    """
    freight = _non_negative(freight_total)
    packing = (
        _non_negative(vacuum_seal_qty) * _non_negative(vacuum_seal_unit_price)
        + _non_negative(box_qty) * _non_negative(box_unit_price)
    )
    cover = _non_negative(insurance)
    paid = _non_negative(amount_paid)

    packing_charges = round_money(packing)
    grand_total = round_money(freight + to_decimal(packing_charges) + cover)
    amount = round_money(paid)

    return InvoiceTotals(
        packing_charges=packing_charges,
        insurance=round_money(cover),
        grand_total=grand_total,
        amount_paid=amount,
        balance_due=round_money(to_decimal(grand_total) - to_decimal(amount)),
    )


def totals_for_entry(entry: HistoryEntry) -> InvoiceTotals:
    return compute(
        freight_total=entry.freight_total,
        vacuum_seal_qty=entry.vacuum_seal_qty,
        vacuum_seal_unit_price=entry.vacuum_seal_unit_price,
        box_qty=entry.box_qty,
        box_unit_price=entry.box_unit_price,
        insurance=entry.insurance,
        amount_paid=entry.amount_paid,
    )
