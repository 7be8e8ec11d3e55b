from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Collection, Iterable, Optional

from zoneinfo import ZoneInfo

from .models import Court, Slot, Timestamp
from .settings import BOOKING_HORIZON_DAYS, GRID_FIRST_HOUR, GRID_LAST_HOUR

logger = logging.getLogger(__name__)

SlotGrid = dict[str, dict[str, Slot]]


class CellState(str, Enum):
    SELECTED = "selected"
    AVAILABLE = "available"
    BOOKED = "booked"
    NOT_AVAILABLE = "not_available"
    EMPTY = "empty"

    @property
    def selectable(self) -> bool:
        return self in (CellState.SELECTED, CellState.AVAILABLE)


CELL_LABELS: dict[CellState, str] = {
    CellState.SELECTED: "selected",
    CellState.AVAILABLE: "",
    CellState.BOOKED: "booked",
    CellState.NOT_AVAILABLE: "not available",
    CellState.EMPTY: "",
}


def parse_timestamp(value: Optional[Timestamp]) -> Optional[datetime]:
    """Parse an API timestamp in ISO or ``YYYY-MM-DD HH:MM[:SS]`` form.

    Returns ``None`` for anything that cannot be read.
    """

    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if "T" not in text:
        text = text.replace(" ", "T", 1)
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def local_start(
    value: Optional[Timestamp],
    timezone: Optional[ZoneInfo] = None,
) -> Optional[datetime]:
    """Parse a timestamp and shift offset-aware values into ``timezone``.

    Naive values are taken as already local.
    """

    parsed = parse_timestamp(value)
    if parsed is not None and timezone is not None and parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone)
    return parsed


def normalize_time_key(
    value: Optional[Timestamp],
    timezone: Optional[ZoneInfo] = None,
) -> Optional[str]:
    """Return the zero-padded ``HH:MM`` local start of a timestamp."""

    parsed = local_start(value, timezone)
    if parsed is None:
        logger.warning("Skipping slot with unreadable start time: %r", value)
        return None
    return parsed.strftime("%H:%M")


def build_slot_grid(
    slots: Iterable[Slot],
    courts: Iterable[Court],
    *,
    timezone: Optional[ZoneInfo] = None,
) -> SlotGrid:
    """Index slots by court id and ``HH:MM`` start time.

    Every court gets an entry, empty when the API returned nothing for it,
    so the grid can still draw its column.
    """

    grid: SlotGrid = {court.id: {} for court in courts}
    for slot in slots:
        if not slot.resource_id or slot.resource_id not in grid:
            logger.debug("Ignoring slot %s for unknown court %s", slot.id, slot.resource_id)
            continue
        time_key = normalize_time_key(slot.start_at, timezone)
        if time_key is None:
            continue
        grid[slot.resource_id][time_key] = slot
    return grid


def get_slot(grid: SlotGrid, court_id: str, time: str) -> Optional[Slot]:
    return grid.get(court_id, {}).get(time)


def is_selectable(slot: Optional[Slot]) -> bool:
    return slot is not None and slot.is_available and slot.effective_price > 0


def cell_state(
    grid: SlotGrid,
    court_id: str,
    time: str,
    selected: Collection[tuple[str, str]] = (),
) -> CellState:
    """Classify one grid cell.

    ``selected`` holds ``(court_id, time)`` pairs already in the cart for the
    date being shown.
    """

    slot = get_slot(grid, court_id, time)
    if slot is None:
        return CellState.EMPTY
    if not slot.is_available:
        return CellState.BOOKED
    if slot.effective_price <= 0:
        return CellState.NOT_AVAILABLE
    if (court_id, time) in selected:
        return CellState.SELECTED
    return CellState.AVAILABLE


def grid_times(first_hour: int = GRID_FIRST_HOUR, last_hour: int = GRID_LAST_HOUR) -> list[str]:
    return [f"{hour:02d}:00" for hour in range(first_hour, last_hour + 1)]


def booking_dates(today: date, days: int = BOOKING_HORIZON_DAYS) -> list[date]:
    return [today + timedelta(days=offset) for offset in range(days)]
