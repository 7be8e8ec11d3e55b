from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from zoneinfo import ZoneInfo

from .aggregate import compute_totals
from .errors import SelectionError
from .grid import is_selectable, local_start
from .models import (
    DEFAULT_TIME_SLOT,
    CartTotals,
    Court,
    SelectedBookingItem,
    SelectedInventory,
    SelectedStaffSession,
    Slot,
)
from .settings import TAX_RATE

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")
# Slot ids the grid made up for cells without a server-side slot.
PLACEHOLDER_SLOT_ID = re.compile(r"-\d{2}:\d{2}$")

ADD_ON_REQUIRES_COURT = "Select at least one court before adding coaches, ball boys or equipment."


@dataclass(frozen=True)
class Selections:
    """Immutable snapshot of everything in the cart."""

    booking_items: tuple[SelectedBookingItem, ...] = ()
    coaches: tuple[SelectedStaffSession, ...] = ()
    ballboys: tuple[SelectedStaffSession, ...] = ()
    inventories: tuple[SelectedInventory, ...] = ()

    @property
    def has_court_booking(self) -> bool:
        return bool(self.booking_items)

    @property
    def is_empty(self) -> bool:
        return not (self.booking_items or self.coaches or self.ballboys or self.inventories)

    @property
    def item_count(self) -> int:
        return len(self.booking_items) + len(self.coaches) + len(self.ballboys) + len(self.inventories)


EMPTY_SELECTIONS = Selections()


def _check_key(resource_id: str, time: str, day: str) -> None:
    if not resource_id:
        raise ValueError("resource id must not be empty")
    if not TIME_PATTERN.match(time or ""):
        raise ValueError(f"time must be zero-padded HH:MM, got {time!r}")
    try:
        date.fromisoformat(day)
    except (TypeError, ValueError):
        raise ValueError(f"date must be YYYY-MM-DD, got {day!r}") from None


class BookingSession:
    """Cart state for one customer's booking session.

    Each mutation builds a new :class:`Selections` snapshot and swaps it in
    with a single assignment, so readers never see a half-applied change.
    """

    def __init__(
        self,
        *,
        tax_rate: float = TAX_RATE,
        selected_date: Optional[date] = None,
    ) -> None:
        self.tax_rate = tax_rate
        self.selected_date = selected_date or date.today()
        self.customer_id: Optional[str] = None
        self._selections = EMPTY_SELECTIONS

    @property
    def selections(self) -> Selections:
        return self._selections

    @property
    def has_court_booking(self) -> bool:
        return self._selections.has_court_booking

    def totals(self) -> CartTotals:
        return compute_totals(self._selections, tax_rate=self.tax_rate)

    def is_selected(self, court_id: str, time: str, day: str) -> bool:
        return any(item.key == (court_id, time, day) for item in self._selections.booking_items)

    def selected_cells(self, day: str) -> set[tuple[str, str]]:
        return {
            (item.court_id, item.time)
            for item in self._selections.booking_items
            if item.date == day
        }

    # Court bookings

    def toggle_booking_item(
        self,
        court_id: str,
        time: str,
        date: str,
        price: float,
        *,
        court_name: str = "",
        slot_id: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> bool:
        """Add the court slot, or remove it when already selected.

        Returns ``True`` when the item ended up in the cart.
        """

        _check_key(court_id, time, date)
        current = self._selections
        key = (court_id, time, date)
        remaining = tuple(item for item in current.booking_items if item.key != key)
        if len(remaining) != len(current.booking_items):
            self._selections = replace(current, booking_items=remaining)
            logger.debug("Removed court %s at %s on %s", court_id, time, date)
            return False

        item = SelectedBookingItem(
            court_id=court_id,
            court_name=court_name or court_id,
            time=time,
            date=date,
            price=price,
            slot_id=slot_id,
            end_time=end_time,
        )
        self._selections = replace(current, booking_items=current.booking_items + (item,))
        logger.debug("Added court %s at %s on %s for %s", court_id, time, date, price)
        return True

    def toggle_slot(
        self,
        court: Court,
        slot: Slot,
        *,
        timezone: Optional[ZoneInfo] = None,
    ) -> bool:
        """Toggle a grid cell, deriving time, date and price from the slot."""

        start = local_start(slot.start_at, timezone)
        if start is None:
            raise ValueError(f"slot {slot.id!r} has an unreadable start time {slot.start_at!r}")
        time = start.strftime("%H:%M")
        day = start.date().isoformat()

        if not self.is_selected(court.id, time, day) and not is_selectable(slot):
            raise SelectionError("This slot is no longer available.")

        end = local_start(slot.end_at, timezone)
        return self.toggle_booking_item(
            court.id,
            time,
            day,
            slot.effective_price,
            court_name=court.name,
            slot_id=slot.id or None,
            end_time=end.strftime("%H:%M") if end else None,
        )

    def remove_booking_item(self, court_id: str, time: str, date: str) -> None:
        current = self._selections
        remaining = tuple(item for item in current.booking_items if item.key != (court_id, time, date))
        if len(remaining) != len(current.booking_items):
            self._selections = replace(current, booking_items=remaining)

    # Add-ons

    def _require_court_booking(self) -> None:
        if not self._selections.has_court_booking:
            raise SelectionError(ADD_ON_REQUIRES_COURT)

    def _remove_staff(self, field: str, key: tuple[str, str, str]) -> bool:
        current = self._selections
        sessions: tuple[SelectedStaffSession, ...] = getattr(current, field)
        remaining = tuple(entry for entry in sessions if entry.key != key)
        if len(remaining) == len(sessions):
            return False
        self._selections = replace(current, **{field: remaining})
        return True

    def _toggle_staff(
        self,
        field: str,
        resource_id: str,
        name: str,
        time: str,
        date: str,
        price: float,
        slot_id: Optional[str],
        coach_type_id: Optional[str],
    ) -> bool:
        _check_key(resource_id, time, date)
        if self._remove_staff(field, (resource_id, time, date)):
            return False
        self._require_court_booking()

        current = self._selections
        sessions: tuple[SelectedStaffSession, ...] = getattr(current, field)
        entry = SelectedStaffSession(
            resource_id=resource_id,
            name=name or resource_id,
            time=time,
            date=date,
            price=price,
            slot_id=slot_id,
            coach_type_id=coach_type_id,
        )
        self._selections = replace(current, **{field: sessions + (entry,)})
        return True

    def toggle_coach(
        self,
        coach_id: str,
        time: str,
        date: str,
        price: float,
        *,
        name: str = "",
        slot_id: Optional[str] = None,
        coach_type_id: Optional[str] = None,
    ) -> bool:
        return self._toggle_staff("coaches", coach_id, name, time, date, price, slot_id, coach_type_id)

    def toggle_ballboy(
        self,
        ballboy_id: str,
        time: str,
        date: str,
        price: float,
        *,
        name: str = "",
        slot_id: Optional[str] = None,
    ) -> bool:
        return self._toggle_staff("ballboys", ballboy_id, name, time, date, price, slot_id, None)

    def remove_coach(self, coach_id: str, time: str, date: str) -> None:
        self._remove_staff("coaches", (coach_id, time, date))

    def remove_ballboy(self, ballboy_id: str, time: str, date: str) -> None:
        self._remove_staff("ballboys", (ballboy_id, time, date))

    def set_inventory_quantity(
        self,
        inventory_id: str,
        time_slot_key: Optional[str],
        quantity: int,
        unit_price: float,
        available_quantity: int,
        *,
        name: str = "",
    ) -> int:
        """Set how many units of an equipment item are rented.

        The quantity is clamped to ``[0, available_quantity]``; zero drops the
        entry, and is allowed even when the cart no longer holds a court.
        Returns the quantity actually stored.
        """

        if not inventory_id:
            raise ValueError("inventory id must not be empty")

        slot_key = time_slot_key or DEFAULT_TIME_SLOT
        clamped = max(0, min(int(quantity), max(0, int(available_quantity))))
        if clamped != quantity:
            logger.debug(
                "Clamped %s quantity %s to %s (available %s)",
                inventory_id,
                quantity,
                clamped,
                available_quantity,
            )

        if clamped == 0:
            self.remove_inventory(inventory_id, slot_key)
            return 0
        self._require_court_booking()

        current = self._selections
        key = (inventory_id, slot_key)
        entry = SelectedInventory(
            inventory_id=inventory_id,
            name=name or inventory_id,
            quantity=clamped,
            unit_price=unit_price,
            time_slot=slot_key,
        )
        inventories = list(current.inventories)
        for index, existing in enumerate(inventories):
            if existing.key == key:
                inventories[index] = entry
                break
        else:
            inventories.append(entry)
        self._selections = replace(current, inventories=tuple(inventories))
        return clamped

    def remove_inventory(self, inventory_id: str, time_slot_key: Optional[str] = None) -> None:
        current = self._selections
        key = (inventory_id, time_slot_key or DEFAULT_TIME_SLOT)
        remaining = tuple(entry for entry in current.inventories if entry.key != key)
        if len(remaining) != len(current.inventories):
            self._selections = replace(current, inventories=remaining)

    def inventory_quantity(self, inventory_id: str, time_slot_key: Optional[str] = None) -> int:
        key = (inventory_id, time_slot_key or DEFAULT_TIME_SLOT)
        for entry in self._selections.inventories:
            if entry.key == key:
                return entry.quantity
        return 0

    def clear_all(self) -> None:
        self._selections = EMPTY_SELECTIONS
        self.customer_id = None

    # Checkout

    def checkout_payload(
        self,
        payment_method_id: str,
        *,
        promo_code: Optional[str] = None,
    ) -> dict[str, object]:
        """Build the body of the checkout request from the current cart."""

        if not self._selections.has_court_booking:
            raise SelectionError("Your cart has no court booking.")

        current = self._selections
        court_slots = [
            item.slot_id
            for item in current.booking_items
            if item.slot_id and not PLACEHOLDER_SLOT_ID.search(item.slot_id)
        ]
        coach_slots = [entry.slot_id for entry in current.coaches if entry.slot_id]
        ballboy_slots = [entry.slot_id for entry in current.ballboys if entry.slot_id]
        inventories = [
            {"inventoryId": entry.inventory_id, "quantity": entry.quantity}
            for entry in current.inventories
            if entry.quantity > 0
        ]

        payload: dict[str, object] = {"paymentMethodId": payment_method_id}
        if promo_code:
            payload["promoCode"] = promo_code
        if court_slots:
            payload["courtSlots"] = court_slots
        if coach_slots:
            payload["coachSlots"] = coach_slots
        if ballboy_slots:
            payload["ballboySlots"] = ballboy_slots
        if inventories:
            payload["inventories"] = inventories
        if self.customer_id:
            payload["customerId"] = self.customer_id
        return payload
