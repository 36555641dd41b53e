from __future__ import annotations

import math
import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Optional

from dateutil import parser as date_parser


_MONEY_RE = re.compile(r"-?\d{1,3}(?:,\d{3})*(?:\.\d+)?|-?\d+(?:\.\d+)?")
_FLOAT_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_CURRENCY_MARKS = ("LKR", "Rs.", "Rs", "$", "£", "€")
_DIGITS_RE = re.compile(r"(\d+)")
_CENT = Decimal("0.01")


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Sheets hands back phone numbers and ids as floats.
        return str(int(value))
    return str(value)


def coerce_number(value: Any, default: float = 0.0) -> float:
    """Best-effort conversion of a loosely typed value to a finite float."""
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return default
        return number if math.isfinite(number) else default

    cleaned = str(value).strip()
    for mark in _CURRENCY_MARKS:
        cleaned = cleaned.replace(mark, "")
    cleaned = cleaned.replace(" ", "")
    if not cleaned:
        return default

    if not (_MONEY_RE.fullmatch(cleaned) or _FLOAT_RE.fullmatch(cleaned)):
        return default

    try:
        number = float(cleaned.replace(",", ""))
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def coerce_count(value: Any, default: int = 1) -> int:
    number = coerce_number(value, default=0.0)
    if number < 1:
        return default
    return int(number)


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def quantize_cents(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero, at whatever precision the amount needs."""
    if not amount.is_finite():
        return Decimal(0)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 4)
        return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def round_money(value: Any) -> float:
    return float(quantize_cents(to_decimal(value)))


def parse_date(value: str | None, dayfirst: bool = False) -> Optional[date]:
    if not value:
        return None

    cleaned = value.strip().lstrip("'")
    if not cleaned:
        return None

    try:
        parsed = date_parser.parse(cleaned, dayfirst=dayfirst)
    except (ValueError, TypeError, OverflowError):
        return None

    return parsed.date()


def ledger_date_text(value: str | date | None, today: Optional[date] = None) -> str:
    """Render a date the way the ledger stores it: YYYY-MM-DD."""
    if isinstance(value, date):
        return value.isoformat()
    parsed = parse_date(value)
    if parsed is None:
        parsed = today or date.today()
    return parsed.isoformat()


def natural_key(text: str) -> tuple:
    """Sort key comparing digit runs by magnitude and letters case-insensitively."""
    key = []
    for index, part in enumerate(_DIGITS_RE.split(text or "")):
        if index % 2:
            key.append((0, int(part), ""))
        elif part:
            key.append((1, 0, part.casefold()))
    return tuple(key)


def first_match(patterns: Iterable[str], text: str, flags: int = 0) -> Optional[re.Match[str]]:
    for pattern in patterns:
        match = re.search(pattern, text, flags)
        if match:
            return match
    return None


def digits_only(value: str | None) -> str:
    return re.sub(r"[^0-9]", "", value or "")
