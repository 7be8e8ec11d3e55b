from __future__ import annotations

from court_booking.aggregate import compute_totals, group_by_court, group_by_date, round_currency
from court_booking.cart import BookingSession, Selections
from court_booking.models import SelectedBookingItem, SelectedInventory, SelectedStaffSession


def item(court: str, time: str, day: str, price: float = 100000) -> SelectedBookingItem:
    return SelectedBookingItem(court_id=court, court_name=f"Court {court}", time=time, date=day, price=price)


def test_totals_example() -> None:
    selections = Selections(
        booking_items=(item("A", "08:00", "2025-01-20", 100000), item("B", "09:00", "2025-01-20", 150000)),
        coaches=(SelectedStaffSession("c1", "Budi", "08:00", "2025-01-20", 250000),),
        inventories=(SelectedInventory("racket", "Racket", 4, 25000),),
    )

    totals = compute_totals(selections, tax_rate=0.10)

    assert totals.court_subtotal == 250000
    assert totals.coach_subtotal == 250000
    assert totals.inventory_subtotal == 100000
    assert totals.subtotal == 600000
    assert totals.tax == 60000
    assert totals.grand_total == 660000


def test_totals_are_pure() -> None:
    session = BookingSession(tax_rate=0.10)
    session.toggle_booking_item("A", "08:00", "2025-01-20", 33333)

    assert session.totals() == session.totals()


def test_ballboys_count_toward_coach_subtotal() -> None:
    selections = Selections(
        booking_items=(item("A", "08:00", "2025-01-20"),),
        ballboys=(SelectedStaffSession("bb", "Andi", "08:00", "2025-01-20", 50000),),
    )

    assert compute_totals(selections).coach_subtotal == 50000


def test_tax_rounds_half_up_to_whole_units() -> None:
    assert round_currency(2.5) == 3
    assert round_currency(3.5) == 4
    assert round_currency(1234.49) == 1234

    selections = Selections(booking_items=(item("A", "08:00", "2025-01-20", 15),))
    assert compute_totals(selections, tax_rate=0.10).tax == 2


def test_empty_cart_totals_are_zero() -> None:
    totals = compute_totals(Selections())

    assert totals.grand_total == 0
    assert totals.tax == 0


def test_group_by_date_orders_dates_and_keeps_insertion_order() -> None:
    items = [
        item("A", "10:00", "2025-01-21"),
        item("B", "09:00", "2025-01-20"),
        item("A", "08:00", "2025-01-21"),
    ]

    groups = group_by_date(items)

    assert list(groups) == ["2025-01-20", "2025-01-21"]
    assert [entry.time for entry in groups["2025-01-21"]] == ["10:00", "08:00"]


def test_group_by_court_sorts_times_within_group() -> None:
    items = [
        item("A", "10:00", "2025-01-21"),
        item("A", "08:00", "2025-01-21"),
        item("B", "09:00", "2025-01-20"),
    ]

    groups = group_by_court(items)

    assert [(group.court_id, group.date) for group in groups] == [("B", "2025-01-20"), ("A", "2025-01-21")]
    assert [entry.time for entry in groups[1].items] == ["08:00", "10:00"]
    assert groups[1].subtotal == 200000
