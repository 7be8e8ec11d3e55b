from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

DEFAULT_TIME_SLOT = "default"

Timestamp = Union[datetime, str]


class SlotKind(str, Enum):
    COURT = "COURT"
    COACH = "COACH"
    BALLBOY = "BALLBOY"


@dataclass(frozen=True)
class Court:
    id: str
    name: str


@dataclass(frozen=True)
class Slot:
    """One bookable (resource, date, time) unit as reported by the API.

    ``start_at`` is kept as received; the grid normalises it when indexing.
    """

    resource_id: Optional[str]
    start_at: Timestamp
    price: float
    discount_price: Optional[float] = None
    is_available: bool = True
    id: str = ""
    end_at: Optional[Timestamp] = None
    kind: SlotKind = SlotKind.COURT

    @property
    def effective_price(self) -> float:
        discount = self.discount_price or 0
        if 0 < discount < self.price:
            return discount
        return self.price

    @property
    def has_discount(self) -> bool:
        return self.effective_price != self.price

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the slot."""

        def _stamp(value: Optional[Timestamp]) -> Optional[str]:
            if isinstance(value, datetime):
                return value.isoformat()
            return value

        data: dict[str, object] = {
            "id": self.id,
            "resource_id": self.resource_id,
            "kind": self.kind.value,
            "start_at": _stamp(self.start_at),
            "end_at": _stamp(self.end_at),
            "price": self.price,
            "effective_price": self.effective_price,
            "is_available": self.is_available,
        }
        if self.discount_price:
            data["discount_price"] = self.discount_price
        return data


@dataclass(frozen=True)
class SelectedBookingItem:
    court_id: str
    court_name: str
    time: str
    date: str
    price: float
    slot_id: Optional[str] = None
    end_time: Optional[str] = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.court_id, self.time, self.date)


@dataclass(frozen=True)
class SelectedStaffSession:
    """A coach or ball boy booked for one hour alongside a court."""

    resource_id: str
    name: str
    time: str
    date: str
    price: float
    slot_id: Optional[str] = None
    coach_type_id: Optional[str] = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.resource_id, self.time, self.date)


@dataclass(frozen=True)
class SelectedInventory:
    inventory_id: str
    name: str
    quantity: int
    unit_price: float
    time_slot: str = DEFAULT_TIME_SLOT

    @property
    def key(self) -> tuple[str, str]:
        return (self.inventory_id, self.time_slot or DEFAULT_TIME_SLOT)

    @property
    def price(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class CartTotals:
    court_subtotal: float
    coach_subtotal: float
    inventory_subtotal: float
    subtotal: float
    tax: int
    grand_total: float

    def to_dict(self) -> dict[str, object]:
        return {
            "court_subtotal": self.court_subtotal,
            "coach_subtotal": self.coach_subtotal,
            "inventory_subtotal": self.inventory_subtotal,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "grand_total": self.grand_total,
        }


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    HOLD = "HOLD"
    PAID = "PAID"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def awaiting_payment(self) -> bool:
        return self in (InvoiceStatus.PENDING, InvoiceStatus.HOLD)

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @property
    def color(self) -> str:
        return STATUS_COLORS[self]


TERMINAL_STATUSES = frozenset(
    {
        InvoiceStatus.PAID,
        InvoiceStatus.FAILED,
        InvoiceStatus.EXPIRED,
        InvoiceStatus.CANCELLED,
    }
)

STATUS_LABELS: dict[InvoiceStatus, str] = {
    InvoiceStatus.PENDING: "Awaiting payment",
    InvoiceStatus.HOLD: "Awaiting payment",
    InvoiceStatus.PAID: "Paid",
    InvoiceStatus.FAILED: "Failed",
    InvoiceStatus.EXPIRED: "Expired",
    InvoiceStatus.CANCELLED: "Cancelled",
}

# Streamlit badge colours.
STATUS_COLORS: dict[InvoiceStatus, str] = {
    InvoiceStatus.PENDING: "orange",
    InvoiceStatus.HOLD: "orange",
    InvoiceStatus.PAID: "green",
    InvoiceStatus.FAILED: "red",
    InvoiceStatus.EXPIRED: "gray",
    InvoiceStatus.CANCELLED: "gray",
}
