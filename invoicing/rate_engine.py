# invoicing/rate_engine.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal
from typing import Any, Mapping

from invoicing.models import RateQuote
from invoicing.parse_utils import quantize_cents, to_decimal


class InvalidWeightError(ValueError):
    pass


class UnknownRateError(LookupError):
    pass


def _rate_key(country: str, service: str) -> tuple[str, str]:
    return (country or "").strip().casefold(), (service or "").strip().casefold()


@dataclass(frozen=True)
class RateTable:
    """Per-kg rates keyed by destination country and service level.

    ``increment_kg`` is the step chargeable weight is rounded up to.
    """

    increment_kg: Decimal
    rates: Mapping[tuple[str, str], Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.increment_kg <= 0:
            raise ValueError(f"Weight increment must be positive, got {self.increment_kg}")
        for key, rate in self.rates.items():
            if rate < 0:
                raise ValueError(f"Negative rate for {key}: {rate}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RateTable":
        """Build from ``{"increment_kg": 0.5, "rates": {country: {service: rate}}}``."""
        rates: dict[tuple[str, str], Decimal] = {}
        for country, services in (data.get("rates") or {}).items():
            for service, rate in (services or {}).items():
                rates[_rate_key(country, service)] = to_decimal(rate)
        return cls(increment_kg=to_decimal(data.get("increment_kg", "0.5")), rates=rates)

    def rate_for(self, country: str, service: str) -> Decimal:
        try:
            return self.rates[_rate_key(country, service)]
        except KeyError:
            raise UnknownRateError(f"No rate for {country!r} / {service!r}") from None


def _checked_weight(value: Any, name: str, allow_zero: bool) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidWeightError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(float(value)):
        raise InvalidWeightError(f"{name} must be finite, got {value!r}")

    weight = to_decimal(value)
    if weight < 0 or (weight == 0 and not allow_zero):
        raise InvalidWeightError(f"{name} must be positive, got {value!r}")
    return weight


class RateEngine:
    def __init__(self, table: RateTable) -> None:
        self.table = table

    def chargeable_weight(self, actual_weight_kg: Any, volumetric_weight_kg: Any) -> Decimal:
        actual = _checked_weight(actual_weight_kg, "Actual weight", allow_zero=False)
        volumetric = _checked_weight(volumetric_weight_kg, "Volumetric weight", allow_zero=True)

        step = self.table.increment_kg
        steps = (max(actual, volumetric) / step).to_integral_value(rounding=ROUND_CEILING)
        return steps * step

    def quote(
        self,
        country: str,
        service: str,
        actual_weight_kg: Any,
        volumetric_weight_kg: Any,
    ) -> RateQuote:
        chargeable = self.chargeable_weight(actual_weight_kg, volumetric_weight_kg)
        rate = self.table.rate_for(country, service)
        freight = quantize_cents(chargeable * rate)
        if not math.isfinite(float(freight)):
            raise InvalidWeightError(f"Weight too large to quote: {chargeable} kg")

        return RateQuote(
            chargeable_weight_kg=float(chargeable),
            rate_per_kg=float(rate),
            freight_total=float(freight),
        )
