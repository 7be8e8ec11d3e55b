from __future__ import annotations

import random

import pytest

from court_booking.cart import BookingSession
from court_booking.errors import SelectionError
from court_booking.models import Court, Slot


def booked_session() -> BookingSession:
    session = BookingSession()
    session.toggle_booking_item("A", "08:00", "2025-01-20", 100000, court_name="Court A", slot_id="s1")
    return session


def test_toggle_adds_then_removes() -> None:
    session = BookingSession()
    before = session.selections

    assert session.toggle_booking_item("A", "08:00", "2025-01-20", 100000) is True
    assert len(session.selections.booking_items) == 1
    assert session.toggle_booking_item("A", "08:00", "2025-01-20", 100000) is False
    assert session.selections == before


def test_toggle_twice_restores_state_with_other_items_present() -> None:
    session = booked_session()
    session.toggle_booking_item("B", "09:00", "2025-01-20", 150000)
    before = session.selections

    session.toggle_booking_item("A", "10:00", "2025-01-21", 90000)
    session.toggle_booking_item("A", "10:00", "2025-01-21", 90000)

    assert session.selections == before


def test_random_toggles_never_duplicate_keys() -> None:
    rng = random.Random(7)
    session = BookingSession()
    for _ in range(300):
        session.toggle_booking_item(
            rng.choice(["A", "B", "C"]),
            rng.choice(["08:00", "09:00", "10:00"]),
            rng.choice(["2025-01-20", "2025-01-21"]),
            100,
        )
        keys = [item.key for item in session.selections.booking_items]
        assert len(keys) == len(set(keys))


def test_same_time_on_other_date_is_a_separate_item() -> None:
    session = booked_session()

    session.toggle_booking_item("A", "08:00", "2025-01-21", 100000)

    assert len(session.selections.booking_items) == 2


def test_malformed_keys_fail_fast() -> None:
    session = BookingSession()

    with pytest.raises(ValueError):
        session.toggle_booking_item("", "08:00", "2025-01-20", 100)
    with pytest.raises(ValueError):
        session.toggle_booking_item("A", "8:00", "2025-01-20", 100)
    with pytest.raises(ValueError):
        session.toggle_booking_item("A", "08:00", "20 Jan", 100)
    assert session.selections.is_empty


def test_remove_missing_item_is_a_noop() -> None:
    session = booked_session()
    before = session.selections

    session.remove_booking_item("Z", "08:00", "2025-01-20")

    assert session.selections is before


def test_inventory_without_court_booking_is_rejected() -> None:
    session = BookingSession()
    before = session.selections

    with pytest.raises(SelectionError):
        session.set_inventory_quantity("racket", None, 2, 25000, 5)

    assert session.selections is before


def test_coach_and_ballboy_without_court_booking_are_rejected() -> None:
    session = BookingSession()

    with pytest.raises(SelectionError):
        session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000)
    with pytest.raises(SelectionError):
        session.toggle_ballboy("bb-1", "08:00", "2025-01-20", 50000)
    assert session.selections.is_empty


def test_inventory_quantity_upserts_and_prices_per_unit() -> None:
    session = booked_session()

    assert session.set_inventory_quantity("racket", None, 2, 25000, 5, name="Racket") == 2
    assert session.set_inventory_quantity("racket", "default", 3, 25000, 5, name="Racket") == 3

    (entry,) = session.selections.inventories
    assert entry.quantity == 3
    assert entry.price == 75000
    assert entry.time_slot == "default"


def test_inventory_quantity_is_clamped_to_available_stock() -> None:
    session = booked_session()

    assert session.set_inventory_quantity("balls", None, 9, 10000, 4) == 4
    assert session.inventory_quantity("balls") == 4
    assert session.set_inventory_quantity("balls", None, -3, 10000, 4) == 0
    assert session.selections.inventories == ()


@pytest.mark.parametrize("prior", [0, 1, 4])
def test_zero_quantity_removes_entry(prior: int) -> None:
    session = booked_session()
    if prior:
        session.set_inventory_quantity("racket", None, prior, 25000, 5)

    session.set_inventory_quantity("racket", None, 0, 25000, 5)

    assert all(entry.key != ("racket", "default") for entry in session.selections.inventories)


def test_inventory_entries_are_keyed_by_time_slot() -> None:
    session = booked_session()

    session.set_inventory_quantity("racket", "08:00", 1, 25000, 5)
    session.set_inventory_quantity("racket", None, 2, 25000, 5)

    assert session.inventory_quantity("racket", "08:00") == 1
    assert session.inventory_quantity("racket") == 2


def test_coach_toggle() -> None:
    session = booked_session()

    assert session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000, name="Budi", slot_id="cs1")
    assert session.selections.coaches[0].name == "Budi"
    assert not session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000)
    assert session.selections.coaches == ()


def test_add_ons_can_be_removed_after_last_court_is_dropped() -> None:
    session = booked_session()
    session.set_inventory_quantity("racket", None, 2, 25000, 5, name="Racket")
    session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000, name="Budi")
    session.toggle_ballboy("bb-1", "08:00", "2025-01-20", 50000)
    session.toggle_booking_item("A", "08:00", "2025-01-20", 100000)

    assert session.set_inventory_quantity("racket", None, 0, 25000, 5) == 0
    assert session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000) is False
    session.remove_ballboy("bb-1", "08:00", "2025-01-20")

    assert session.selections.is_empty
    assert session.totals().grand_total == 0


def test_explicit_add_on_removals_are_idempotent() -> None:
    session = booked_session()
    session.set_inventory_quantity("racket", "08:00", 1, 25000, 5)
    session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000)
    session.toggle_booking_item("A", "08:00", "2025-01-20", 100000)

    for _ in range(2):
        session.remove_inventory("racket", "08:00")
        session.remove_coach("coach-1", "08:00", "2025-01-20")
        session.remove_ballboy("bb-1", "08:00", "2025-01-20")

    assert session.selections.is_empty


def test_re_adding_add_on_without_court_is_still_rejected() -> None:
    session = booked_session()
    session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000)
    session.toggle_booking_item("A", "08:00", "2025-01-20", 100000)
    session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000)

    with pytest.raises(SelectionError):
        session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000)
    with pytest.raises(SelectionError):
        session.set_inventory_quantity("racket", None, 1, 25000, 5)
    assert session.selections.is_empty


def test_clear_all_empties_every_category_in_one_step() -> None:
    session = booked_session()
    session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000)
    session.toggle_ballboy("bb-1", "08:00", "2025-01-20", 50000)
    session.set_inventory_quantity("racket", None, 1, 25000, 5)
    session.customer_id = "cust-1"
    snapshot = session.selections

    session.clear_all()

    assert session.selections.is_empty
    assert session.customer_id is None
    # Earlier snapshots are untouched.
    assert snapshot.item_count == 4


def test_toggle_slot_uses_effective_price_and_slot_times() -> None:
    session = BookingSession()
    court = Court(id="A", name="Court A")
    slot = Slot(
        resource_id="A",
        start_at="2025-01-20 08:00:00",
        end_at="2025-01-20 09:00:00",
        price=120000,
        discount_price=100000,
        id="slot-1",
    )

    assert session.toggle_slot(court, slot)

    (item,) = session.selections.booking_items
    assert item.key == ("A", "08:00", "2025-01-20")
    assert item.price == 100000
    assert item.court_name == "Court A"
    assert item.slot_id == "slot-1"
    assert item.end_time == "09:00"


def test_toggle_slot_rejects_unavailable_slot_but_allows_deselect() -> None:
    session = BookingSession()
    court = Court(id="A", name="Court A")
    taken = Slot(resource_id="A", start_at="2025-01-20 08:00:00", price=100, is_available=False)

    with pytest.raises(SelectionError):
        session.toggle_slot(court, taken)

    session.toggle_booking_item("A", "08:00", "2025-01-20", 100)
    assert session.toggle_slot(court, taken) is False
    assert session.selections.is_empty


def test_checkout_payload_skips_placeholder_ids_and_empty_lists() -> None:
    session = booked_session()
    session.toggle_booking_item("B", "09:00", "2025-01-20", 100000, slot_id="B-09:00")
    session.toggle_coach("coach-1", "08:00", "2025-01-20", 250000, slot_id="cs1")
    session.set_inventory_quantity("racket", None, 2, 25000, 5)

    payload = session.checkout_payload("pm-1", promo_code="HEMAT")

    assert payload == {
        "paymentMethodId": "pm-1",
        "promoCode": "HEMAT",
        "courtSlots": ["s1"],
        "coachSlots": ["cs1"],
        "inventories": [{"inventoryId": "racket", "quantity": 2}],
    }


def test_checkout_payload_requires_court_booking() -> None:
    with pytest.raises(SelectionError):
        BookingSession().checkout_payload("pm-1")
