"""Validated shapes of booking API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .models import Court, InvoiceStatus, Slot, SlotKind


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Envelope(ApiModel):
    success: bool = True
    msg: str = ""
    code: Optional[Union[int, str]] = None
    data: Any = None


class NamedRef(ApiModel):
    id: str = ""
    name: str = ""


class CourtSchema(ApiModel):
    id: str
    name: str

    def to_model(self) -> Court:
        return Court(id=self.id, name=self.name)


class SlotSchema(ApiModel):
    id: str = ""
    type: SlotKind = SlotKind.COURT
    court_id: Optional[str] = None
    staff_id: Optional[str] = None
    # Left as sent; the API mixes ISO and "YYYY-MM-DD HH:MM:SS" forms.
    start_at: str
    end_at: Optional[str] = None
    price: float = 0
    discount_price: Optional[float] = None
    is_available: bool = False

    def to_model(self) -> Slot:
        resource_id = self.court_id if self.type is SlotKind.COURT else self.staff_id
        return Slot(
            resource_id=resource_id,
            start_at=self.start_at,
            price=self.price,
            discount_price=self.discount_price,
            is_available=self.is_available,
            id=self.id,
            end_at=self.end_at,
            kind=self.type,
        )


class DaySlots(ApiModel):
    date: str
    slots: list[SlotSchema] = Field(default_factory=list)


class CoachAvailability(ApiModel):
    slot_id: str
    coach: NamedRef
    price: float
    start_at: str
    end_at: Optional[str] = None


class InventoryAvailability(ApiModel):
    id: str
    name: str
    description: str = ""
    price: float
    total_quantity: int = 0
    available_quantity: int = 0
    booked_quantity: int = 0


class PaymentMethod(ApiModel):
    id: str
    name: str
    is_active: bool = True
    fees: float = 0
    percentage: str = "0"
    channel: Optional[str] = None
    logo: Optional[str] = None
    sequence: int = 0


class CheckoutResult(ApiModel):
    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    payment_url: Optional[str] = None
    payment_session_id: Optional[str] = None

    @property
    def invoice_ref(self) -> Optional[str]:
        return self.invoice_number or self.invoice_id


# Booking lines, one variant per category.


class CourtLine(ApiModel):
    category: Literal["court"] = "court"
    id: str
    court_name: str = ""
    start_at: Optional[str] = None
    end_at: Optional[str] = None
    price: float = 0
    discount_price: Optional[float] = None

    @property
    def amount(self) -> float:
        discount = self.discount_price or 0
        return discount if 0 < discount < self.price else self.price


class CoachLine(ApiModel):
    category: Literal["coach"] = "coach"
    id: str
    staff_name: str = ""
    coach_type: Optional[str] = None
    start_at: Optional[str] = None
    price: float = 0

    @property
    def amount(self) -> float:
        return self.price


class BallboyLine(ApiModel):
    category: Literal["ballboy"] = "ballboy"
    id: str
    staff_name: str = ""
    start_at: Optional[str] = None
    price: float = 0

    @property
    def amount(self) -> float:
        return self.price


class InventoryLine(ApiModel):
    category: Literal["inventory"] = "inventory"
    id: str
    name: str = ""
    quantity: int = 0
    price: float = 0

    @property
    def amount(self) -> float:
        return self.price


BookingLine = Annotated[
    Union[CourtLine, CoachLine, BallboyLine, InventoryLine],
    Field(discriminator="category"),
]


def _staff_line(entry: dict[str, Any], category: str) -> dict[str, Any]:
    slot = entry.get("slot") or {}
    staff = slot.get("staff") or {}
    line = {
        "category": category,
        "id": entry.get("id", ""),
        "staffName": staff.get("name") or "",
        "startAt": slot.get("startAt"),
        "price": entry.get("price", 0),
    }
    if category == "coach":
        line["coachType"] = (entry.get("bookingCoachType") or {}).get("name")
    return line


class Booking(ApiModel):
    id: str
    status: str = ""
    total_price: float = 0
    processing_fee: float = 0
    lines: list[BookingLine] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _collect_lines(cls, raw: Any) -> Any:
        if not isinstance(raw, dict) or "lines" in raw:
            return raw

        lines: list[dict[str, Any]] = []
        for detail in raw.get("details") or []:
            slot = detail.get("slot") or {}
            court = detail.get("court") or slot.get("court") or {}
            lines.append(
                {
                    "category": "court",
                    "id": detail.get("id", ""),
                    "courtName": court.get("name") or "",
                    "startAt": slot.get("startAt"),
                    "endAt": slot.get("endAt"),
                    "price": detail.get("price", 0),
                    "discountPrice": detail.get("discountPrice"),
                }
            )
        for entry in raw.get("coaches") or []:
            lines.append(_staff_line(entry, "coach"))
        for entry in raw.get("ballboys") or []:
            lines.append(_staff_line(entry, "ballboy"))
        for entry in raw.get("inventories") or []:
            lines.append(
                {
                    "category": "inventory",
                    "id": entry.get("id", ""),
                    "name": (entry.get("inventory") or {}).get("name") or "",
                    "quantity": entry.get("quantity", 0),
                    "price": entry.get("price", 0),
                }
            )
        return {**raw, "lines": lines}


class Invoice(ApiModel):
    id: str
    number: str
    status: InvoiceStatus
    subtotal: float = 0
    processing_fee: float = 0
    total: float = 0
    issued_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    booking: Optional[Booking] = None
    payment_url: Optional[str] = None

    @property
    def lines(self) -> list[Union[CourtLine, CoachLine, BallboyLine, InventoryLine]]:
        return list(self.booking.lines) if self.booking else []
