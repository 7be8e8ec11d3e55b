"""Read-only views derived from the cart.

Everything here is a pure function of a selections snapshot: the same input
always produces the same output and nothing is cached or mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Iterable, Sequence

from .models import CartTotals, SelectedBookingItem
from .settings import TAX_RATE

if TYPE_CHECKING:
    from .cart import Selections


@dataclass(frozen=True)
class CourtGroup:
    court_id: str
    court_name: str
    date: str
    items: tuple[SelectedBookingItem, ...]

    @property
    def subtotal(self) -> float:
        return sum(item.price for item in self.items)


def round_currency(value: float | Decimal) -> int:
    """Round half-up to a whole currency unit."""

    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def group_by_date(items: Iterable[SelectedBookingItem]) -> dict[str, list[SelectedBookingItem]]:
    groups: dict[str, list[SelectedBookingItem]] = {}
    for item in items:
        groups.setdefault(item.date, []).append(item)
    return {day: groups[day] for day in sorted(groups)}


def sorted_by_time(items: Sequence[SelectedBookingItem]) -> list[SelectedBookingItem]:
    # HH:MM is zero-padded, so string order is chronological.
    return sorted(items, key=lambda item: item.time)


def group_by_court(items: Iterable[SelectedBookingItem]) -> list[CourtGroup]:
    """Group court bookings per court and date, earliest date first."""

    buckets: dict[tuple[str, str], list[SelectedBookingItem]] = {}
    names: dict[str, str] = {}
    for item in items:
        buckets.setdefault((item.court_id, item.date), []).append(item)
        names.setdefault(item.court_id, item.court_name)

    groups = [
        CourtGroup(
            court_id=court_id,
            court_name=names[court_id],
            date=day,
            items=tuple(sorted_by_time(bucket)),
        )
        for (court_id, day), bucket in buckets.items()
    ]
    return sorted(groups, key=lambda group: group.date)


def compute_totals(selections: "Selections", *, tax_rate: float = TAX_RATE) -> CartTotals:
    court_subtotal = sum(item.price for item in selections.booking_items)
    coach_subtotal = sum(entry.price for entry in selections.coaches) + sum(
        entry.price for entry in selections.ballboys
    )
    inventory_subtotal = sum(entry.price for entry in selections.inventories)
    subtotal = court_subtotal + coach_subtotal + inventory_subtotal
    tax = round_currency(Decimal(str(tax_rate)) * Decimal(str(subtotal)))
    return CartTotals(
        court_subtotal=court_subtotal,
        coach_subtotal=coach_subtotal,
        inventory_subtotal=inventory_subtotal,
        subtotal=subtotal,
        tax=tax,
        grand_total=subtotal + tax,
    )
