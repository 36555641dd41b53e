# invoicing/models.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_PAYMENT_METHOD = "Cash"


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    description: str = ""
    qty: int = Field(default=1, ge=1)


class Branch(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    code: str = ""
    address: str = ""
    phone: str = ""


class RateQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    chargeable_weight_kg: float = Field(ge=0)
    rate_per_kg: float = Field(ge=0)
    freight_total: float = Field(ge=0)


class InvoiceTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    packing_charges: float = Field(ge=0)
    insurance: float = Field(ge=0)
    grand_total: float = Field(ge=0)
    amount_paid: float = Field(ge=0)
    # Negative when the customer overpaid.
    balance_due: float


class HistoryEntry(BaseModel):
    """One archived invoice, as rebuilt from a ledger record."""

    model_config = ConfigDict(frozen=True)

    invoice_no: str = ""
    date: str = ""
    branch: Branch
    country: str = ""
    service: str = ""

    sender_name: str = ""
    sender_phone: str = ""
    consignee_name: str = ""
    consignee_phone: str = ""
    consignee_email: str = ""
    consignee_address: str = ""
    consignee_city: str = ""
    consignee_zip: str = ""

    items_summary: str = ""
    items: tuple[LineItem, ...] = Field(min_length=1)
    total_boxes: int = Field(default=1, ge=1)

    actual_weight_kg: float = Field(default=0.0, ge=0)
    volumetric_weight_kg: float = Field(default=0.0, ge=0)
    chargeable_weight_kg: float = Field(default=0.0, ge=0)
    rate_per_kg: float = Field(default=0.0, ge=0)
    freight_total: float = Field(default=0.0, ge=0)

    vacuum_seal_qty: float = Field(default=0.0, ge=0)
    vacuum_seal_unit_price: float = Field(default=0.0, ge=0)
    box_qty: float = Field(default=0.0, ge=0)
    box_unit_price: float = Field(default=0.0, ge=0)
    insurance: float = Field(default=0.0, ge=0)

    grand_total: float = Field(default=0.0, ge=0)
    amount_paid: float = Field(default=0.0, ge=0)
    balance_due: float = 0.0
    payment_method: str = DEFAULT_PAYMENT_METHOD


class ShipmentDetails(BaseModel):
    """Shipment form input used to quote, total and archive a new invoice."""

    invoice_no: str
    date: Optional[str] = None
    branch: Optional[Branch] = None
    country: str
    service: str

    sender_name: str = ""
    sender_phone: str = ""
    consignee_name: str = ""
    consignee_phone: str = ""
    consignee_email: str = ""
    consignee_address: str = ""
    consignee_city: str = ""
    consignee_zip: str = ""

    items: list[LineItem] = []
    total_boxes: int = Field(default=1, ge=1)

    actual_weight_kg: float
    volumetric_weight_kg: float = 0.0

    vacuum_seal_qty: float = 0.0
    vacuum_seal_unit_price: float = 0.0
    box_qty: float = 0.0
    box_unit_price: float = 0.0
    insurance: float = 0.0
    amount_paid: float = 0.0
    payment_method: str = DEFAULT_PAYMENT_METHOD


class CollectionStats(BaseModel):
    total_revenue: float = 0.0
    total_weight_kg: float = 0.0
    total_boxes: int = 0
    count: int = 0


class DailyStats(BaseModel):
    day: str
    count: int = 0
    revenue: float = 0.0


class ShipmentPrefill(BaseModel):
    """Fields recognised on a photographed label. Every field is optional."""

    sender_name: Optional[str] = None
    sender_phone: Optional[str] = None
    consignee_name: Optional[str] = None
    consignee_phone: Optional[str] = None
    consignee_email: Optional[str] = None
    consignee_address: Optional[str] = None
    consignee_city: Optional[str] = None
    consignee_zip: Optional[str] = None
    country: Optional[str] = None
    actual_weight_kg: Optional[float] = None
    volumetric_weight_kg: Optional[float] = None
    total_boxes: Optional[int] = None
    items: Optional[list[LineItem]] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)
