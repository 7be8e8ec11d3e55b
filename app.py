from __future__ import annotations

import logging
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

import streamlit as st
from zoneinfo import ZoneInfo

sys.path.append(str(Path(__file__).resolve().parent.joinpath("src")))

from court_booking.aggregate import group_by_court
from court_booking.api import BookingApiClient, create_session
from court_booking.cart import BookingSession
from court_booking.errors import ApiError, SelectionError, SlotUnavailableError
from court_booking.grid import (
    CELL_LABELS,
    CellState,
    booking_dates,
    build_slot_grid,
    cell_state,
    get_slot,
    grid_times,
    local_start,
)
from court_booking.invoice import format_countdown, line_description, payment_countdown
from court_booking.models import InvoiceStatus
from court_booking.polling import InvoicePoller
from court_booking.settings import API_BASE_URL, DEFAULT_TIMEOUT, DEFAULT_TIMEZONE, POLL_INTERVAL

# Configure logging to show warnings and errors
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stderr)
    ]
)

PAGES = ("Book courts", "Add-ons", "Cart", "Invoice")

st.set_page_config(page_title="Court Booking", layout="wide")


@st.cache_resource
def get_client(api_url: str, timeout: int) -> BookingApiClient:
    return BookingApiClient(create_session(), base_url=api_url, timeout=timeout)


@st.cache_data(ttl=300)
def load_courts(api_url: str, timeout: int) -> list[Any]:
    return get_client(api_url, timeout).get_courts()


@st.cache_data(ttl=30)
def load_slots(api_url: str, timeout: int, day: str) -> list[Any]:
    return get_client(api_url, timeout).get_slots(day)


def get_booking_session() -> BookingSession:
    """One cart per browser session, created on first use."""

    if "booking_session" not in st.session_state:
        st.session_state["booking_session"] = BookingSession()
    return st.session_state["booking_session"]


def format_price(value: float) -> str:
    return f"Rp {value:,.0f}"


def show_fetch_error(exc: ApiError, key: str) -> None:
    st.error(f"Could not load data: {exc.message}")
    if st.button("Retry", key=f"retry_{key}"):
        load_courts.clear()
        load_slots.clear()
        st.rerun()


def render_court_grid(client: BookingApiClient, session: BookingSession, tz: ZoneInfo) -> None:
    today = datetime.now(tz).date()
    dates = booking_dates(today)
    selected_day = st.selectbox(
        "Date",
        options=dates,
        index=dates.index(session.selected_date) if session.selected_date in dates else 0,
        format_func=lambda value: value.strftime("%a %d %b"),
    )
    session.selected_date = selected_day
    day_key = selected_day.isoformat()

    try:
        courts = load_courts(client.base_url, client.timeout)
        slots = load_slots(client.base_url, client.timeout, day_key)
    except ApiError as exc:
        show_fetch_error(exc, "grid")
        return

    if not courts:
        st.info("No courts are open for booking.")
        return

    grid = build_slot_grid(slots, courts, timezone=tz)
    selected = session.selected_cells(day_key)

    header = st.columns(len(courts) + 1)
    header[0].markdown("**Time**")
    for column, court in zip(header[1:], courts):
        column.markdown(f"**{court.name}**")

    for time in grid_times():
        row = st.columns(len(courts) + 1)
        row[0].write(time)
        for column, court in zip(row[1:], courts):
            state = cell_state(grid, court.id, time, selected)
            slot = get_slot(grid, court.id, time)
            if not state.selectable or slot is None:
                column.caption(CELL_LABELS[state] or " ")
                continue
            label = format_price(slot.effective_price)
            if state is CellState.SELECTED:
                label = f"✓ {label}"
            if column.button(label, key=f"cell_{court.id}_{day_key}_{time}"):
                try:
                    session.toggle_slot(court, slot, timezone=tz)
                except SelectionError as exc:
                    st.warning(exc.message)
                else:
                    st.rerun()


def render_add_ons(client: BookingApiClient, session: BookingSession, tz: ZoneInfo) -> None:
    items = session.selections.booking_items
    if not items:
        st.info("Select at least one court before adding coaches or equipment.")
        return

    booked_starts = {(item.date, item.time) for item in items}
    first_day = min(date.fromisoformat(item.date) for item in items)
    last_day = max(date.fromisoformat(item.date) for item in items)

    try:
        coaches = client.get_coach_availability(
            datetime.combine(first_day, datetime.min.time()),
            datetime.combine(last_day + timedelta(days=1), datetime.min.time()),
        )
        inventories = client.get_inventory_availability()
        ballboys = [
            slot
            for day_key in sorted({item.date for item in items})
            for slot in client.get_ballboy_slots(day_key)
        ]
    except ApiError as exc:
        show_fetch_error(exc, "add_ons")
        return

    st.subheader("Coaches")
    offered = False
    for offer in coaches:
        start = local_start(offer.start_at, tz)
        if start is None:
            continue
        day_key, time = start.date().isoformat(), start.strftime("%H:%M")
        if (day_key, time) not in booked_starts:
            continue
        offered = True
        chosen = any(entry.slot_id == offer.slot_id for entry in session.selections.coaches)
        label = f"{offer.coach.name} · {day_key} {time} · {format_price(offer.price)}"
        if st.checkbox(label, value=chosen, key=f"coach_{offer.slot_id}") != chosen:
            try:
                session.toggle_coach(
                    offer.coach.id,
                    time,
                    day_key,
                    offer.price,
                    name=offer.coach.name,
                    slot_id=offer.slot_id,
                )
            except SelectionError as exc:
                st.warning(exc.message)
            else:
                st.rerun()
    if not offered:
        st.caption("No coaches free at your booked times.")

    st.subheader("Ball boys")
    offered = False
    for slot in ballboys:
        start = local_start(slot.start_at, tz)
        if start is None or slot.resource_id is None:
            continue
        day_key, time = start.date().isoformat(), start.strftime("%H:%M")
        if (day_key, time) not in booked_starts:
            continue
        chosen = any(entry.key == (slot.resource_id, time, day_key) for entry in session.selections.ballboys)
        if not chosen and not slot.is_available:
            continue
        offered = True
        label = f"Ball boy · {day_key} {time} · {format_price(slot.effective_price)}"
        key = f"ballboy_{slot.resource_id}_{day_key}_{time}"
        if st.checkbox(label, value=chosen, key=key) != chosen:
            try:
                session.toggle_ballboy(
                    slot.resource_id,
                    time,
                    day_key,
                    slot.effective_price,
                    slot_id=slot.id or None,
                )
            except SelectionError as exc:
                st.warning(exc.message)
            else:
                st.rerun()
    if not offered:
        st.caption("No ball boys free at your booked times.")

    st.subheader("Equipment")
    for inventory in inventories:
        current = session.inventory_quantity(inventory.id)
        quantity = st.number_input(
            f"{inventory.name} ({format_price(inventory.price)} each, {inventory.available_quantity} left)",
            min_value=0,
            max_value=max(inventory.available_quantity, current),
            value=current,
            step=1,
            key=f"inventory_{inventory.id}",
        )
        if quantity != current:
            try:
                session.set_inventory_quantity(
                    inventory.id,
                    None,
                    int(quantity),
                    inventory.price,
                    inventory.available_quantity,
                    name=inventory.name,
                )
            except SelectionError as exc:
                st.warning(exc.message)


def render_cart(client: BookingApiClient, session: BookingSession) -> None:
    selections = session.selections
    if selections.is_empty:
        st.info("Your cart is empty.")
        return

    for group in group_by_court(selections.booking_items):
        st.markdown(f"**{group.court_name}** · {group.date}")
        for item in group.items:
            left, right = st.columns([4, 1])
            left.write(f"{item.time} · {format_price(item.price)}")
            if right.button("Remove", key=f"remove_{item.court_id}_{item.date}_{item.time}"):
                session.remove_booking_item(item.court_id, item.time, item.date)
                st.rerun()

    for entry in selections.coaches:
        left, right = st.columns([4, 1])
        left.write(f"Coach {entry.name} · {entry.date} {entry.time} · {format_price(entry.price)}")
        if right.button("Remove", key=f"remove_coach_{entry.resource_id}_{entry.date}_{entry.time}"):
            session.remove_coach(entry.resource_id, entry.time, entry.date)
            st.rerun()
    for entry in selections.ballboys:
        left, right = st.columns([4, 1])
        left.write(f"Ball boy {entry.name} · {entry.date} {entry.time} · {format_price(entry.price)}")
        if right.button("Remove", key=f"remove_ballboy_{entry.resource_id}_{entry.date}_{entry.time}"):
            session.remove_ballboy(entry.resource_id, entry.time, entry.date)
            st.rerun()
    for entry in selections.inventories:
        left, right = st.columns([4, 1])
        left.write(f"{entry.name} x{entry.quantity} · {format_price(entry.price)}")
        if right.button("Remove", key=f"remove_inventory_{entry.inventory_id}_{entry.time_slot}"):
            session.remove_inventory(entry.inventory_id, entry.time_slot)
            st.rerun()

    totals = session.totals()
    columns = st.columns(4)
    columns[0].metric("Courts", format_price(totals.court_subtotal))
    columns[1].metric("Coaches", format_price(totals.coach_subtotal))
    columns[2].metric("Equipment", format_price(totals.inventory_subtotal))
    columns[3].metric("Tax", format_price(totals.tax))
    st.metric("Total", format_price(totals.grand_total))

    if st.button("Clear cart"):
        session.clear_all()
        st.rerun()

    try:
        methods = client.get_payment_methods()
    except ApiError as exc:
        show_fetch_error(exc, "payment_methods")
        return
    if not methods:
        st.warning("No payment methods are available right now.")
        return

    method = st.selectbox("Payment method", options=methods, format_func=lambda value: value.name)
    promo_code = st.text_input("Promo code").strip() or None
    if st.button("Checkout", type="primary"):
        try:
            result = client.checkout(session.checkout_payload(method.id, promo_code=promo_code))
        except SelectionError as exc:
            st.warning(exc.message)
            return
        except SlotUnavailableError as exc:
            load_slots.clear()
            st.warning(f"{exc.message} Please pick another slot.")
            return
        except ApiError as exc:
            st.error(f"Checkout failed: {exc.message}")
            return

        session.clear_all()
        st.session_state["invoice_number"] = result.invoice_ref
        st.session_state["next_page"] = "Invoice"
        st.rerun()


def render_invoice_status(poller: InvoicePoller) -> None:
    if not poller.finished and not poller.poll_once():
        # Final status reached; a full rerun drops the polling fragment.
        st.rerun()

    invoice = poller.latest
    if invoice is None:
        st.info("Loading invoice…")
        return

    st.markdown(f"### Invoice {invoice.number}")
    st.badge(invoice.status.label, color=invoice.status.color)
    if invoice.status.awaiting_payment and invoice.due_date is not None:
        st.caption(f"Pay within {format_countdown(payment_countdown(invoice.due_date))}")
        if invoice.payment_url:
            st.link_button("Pay now", invoice.payment_url)

    st.dataframe(
        [{"item": line_description(line), "amount": line.amount} for line in invoice.lines],
        use_container_width=True,
    )
    st.metric("Total", format_price(invoice.total))
    if invoice.status is InvoiceStatus.PAID:
        st.success("Payment received. See you on court!")


def render_invoice(client: BookingApiClient) -> None:
    number = st.text_input("Invoice number", value=st.session_state.get("invoice_number") or "")
    if not number:
        return
    st.session_state["invoice_number"] = number

    pollers: dict[str, InvoicePoller] = st.session_state.setdefault("invoice_pollers", {})
    poller = pollers.get(number)
    if poller is None:

        def remember_error(exc: ApiError) -> None:
            st.session_state["poll_error"] = exc.message

        poller = InvoicePoller(lambda: client.get_invoice(number), on_error=remember_error)
        pollers[number] = poller

    if st.session_state.get("poll_error"):
        st.warning(f"Could not refresh the invoice: {st.session_state.pop('poll_error')}")

    run_every = None if poller.finished else POLL_INTERVAL
    st.fragment(run_every=run_every)(render_invoice_status)(poller)


def main() -> None:
    st.title("Court Booking")

    if "next_page" in st.session_state:
        st.session_state["page"] = st.session_state.pop("next_page")

    with st.sidebar:
        page = st.radio("Go to", PAGES, key="page")
        session = get_booking_session()
        st.caption(f"{session.selections.item_count} item(s) in cart")
        timeout = st.slider("HTTP timeout (seconds)", min_value=5, max_value=60, value=DEFAULT_TIMEOUT)

    client = get_client(API_BASE_URL, timeout)
    tz = ZoneInfo(DEFAULT_TIMEZONE)

    if page == "Book courts":
        render_court_grid(client, session, tz)
    elif page == "Add-ons":
        render_add_ons(client, session, tz)
    elif page == "Cart":
        render_cart(client, session)
    else:
        render_invoice(client)


if __name__ == "__main__":
    main()
