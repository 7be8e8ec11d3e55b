from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date, datetime
from typing import Optional, Sequence

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .api import BookingApiClient, create_session
from .errors import ApiError
from .grid import CELL_LABELS, SlotGrid, build_slot_grid, cell_state, get_slot, grid_times
from .invoice import format_countdown, line_description, payment_countdown
from .models import Court
from .polling import InvoicePoller
from .schemas import Invoice
from .settings import API_BASE_URL, DEFAULT_TIMEOUT, DEFAULT_TIMEZONE, POLL_INTERVAL


def _cell_text(grid: SlotGrid, court: Court, time: str) -> str:
    state = cell_state(grid, court.id, time)
    slot = get_slot(grid, court.id, time)
    if state.selectable and slot is not None:
        return f"{slot.effective_price:,.0f}"
    return CELL_LABELS[state] or "-"


def format_grid_text(grid: SlotGrid, courts: Sequence[Court], day: date) -> str:
    """Render bookable slots grouped by court using a human-readable layout."""

    if not courts:
        return "No courts found."

    lines: list[str] = [day.strftime("%A %Y-%m-%d")]
    for court in courts:
        lines.append("")
        lines.append(f"{court.name} [{court.id}]")
        cells = grid.get(court.id, {})
        bookable = [time for time in sorted(cells) if cell_state(grid, court.id, time).selectable]
        if not bookable:
            lines.append("  no bookable slots")
            continue
        for time in bookable:
            slot = cells[time]
            price_text = f"{slot.effective_price:,.0f}"
            if slot.has_discount:
                price_text = f"{price_text} (was {slot.price:,.0f})"
            lines.append(f"  {time} | price {price_text}")
    return "\n".join(lines)


def format_grid_structured(grid: SlotGrid, courts: Sequence[Court], times: Sequence[str]) -> str:
    """Render the court x time grid as a fixed-width table."""

    if not courts:
        return "No courts found."

    headers = ("time", *(court.name for court in courts))
    rows: list[tuple[str, ...]] = [
        (time, *(_cell_text(grid, court, time) for court in courts)) for time in times
    ]

    widths = [len(header) for header in headers]
    for row in rows:
        widths = [max(width, len(value)) for width, value in zip(widths, row)]

    def render_row(values: Sequence[str]) -> str:
        return " | ".join(value.ljust(width) for value, width in zip(values, widths))

    separator = "-+-".join("-" * width for width in widths)

    lines = [render_row(headers), separator]
    lines.extend(render_row(row) for row in rows)
    return "\n".join(lines)


def format_invoice(invoice: Invoice, now: Optional[datetime] = None) -> str:
    lines = [f"Invoice {invoice.number}: {invoice.status.label} ({invoice.status.value})"]
    if invoice.status.awaiting_payment and invoice.due_date is not None:
        lines.append(f"  pay within {format_countdown(payment_countdown(invoice.due_date, now))}")
    for line in invoice.lines:
        lines.append(f"  {line_description(line)} | {line.amount:,.0f}")
    lines.append(f"  total {invoice.total:,.0f}")
    if invoice.payment_url and invoice.status.awaiting_payment:
        lines.append(f"  pay at {invoice.payment_url}")
    return "\n".join(lines)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Construct the CLI argument parser and parse inputs."""

    parser = argparse.ArgumentParser(
        description="Browse court availability and follow invoices on the booking API.",
    )
    parser.add_argument(
        "--api-url",
        default=API_BASE_URL,
        help=f"Booking API base URL (default: {API_BASE_URL}).",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"HTTP timeout in seconds (default: {DEFAULT_TIMEOUT}).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose logging for troubleshooting.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    slots_parser = subparsers.add_parser("slots", help="Show the court grid for one day.")
    slots_parser.add_argument(
        "--date",
        help="Day to show (YYYY-MM-DD, default: today).",
    )
    slots_parser.add_argument(
        "--timezone",
        "-t",
        default=DEFAULT_TIMEZONE,
        help=f"Timezone used to display times (default: {DEFAULT_TIMEZONE}).",
    )
    slots_parser.add_argument(
        "--format",
        "-f",
        choices=("text", "json", "structured"),
        default="text",
        help="Output format (default: text).",
    )

    invoice_parser = subparsers.add_parser("invoice", help="Show the status of an invoice.")
    invoice_parser.add_argument("number", help="Invoice number.")
    invoice_parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep polling until the invoice is paid, failed, expired or cancelled.",
    )
    invoice_parser.add_argument(
        "--interval",
        type=float,
        default=POLL_INTERVAL,
        help=f"Seconds between polls when watching (default: {POLL_INTERVAL}).",
    )
    return parser.parse_args(argv)


def _show_slots(args: argparse.Namespace, client: BookingApiClient) -> int:
    try:
        timezone = ZoneInfo(args.timezone)
    except ZoneInfoNotFoundError:
        print(f"Unknown timezone: {args.timezone}", file=sys.stderr)
        return 2

    day = datetime.now(timezone).date()
    if args.date:
        try:
            day = datetime.strptime(args.date, "%Y-%m-%d").date()
        except ValueError:
            print("--date must follow YYYY-MM-DD", file=sys.stderr)
            return 2

    courts = client.get_courts()
    slots = client.get_slots(day)
    grid = build_slot_grid(slots, courts, timezone=timezone)

    if args.format == "json":
        data = {
            court.id: {time: slot.to_dict() for time, slot in sorted(grid[court.id].items())}
            for court in courts
        }
        print(json.dumps(data, indent=2))
    elif args.format == "structured":
        print(format_grid_structured(grid, courts, grid_times()))
    else:
        print(format_grid_text(grid, courts, day))
    return 0


def _show_invoice(args: argparse.Namespace, client: BookingApiClient) -> int:
    if not args.watch:
        print(format_invoice(client.get_invoice(args.number)))
        return 0

    last_status = None

    def report(invoice: Invoice) -> None:
        nonlocal last_status
        if invoice.status != last_status:
            print(format_invoice(invoice), flush=True)
            last_status = invoice.status

    def report_error(exc: ApiError) -> None:
        print(f"Poll failed, retrying: {exc.message}", file=sys.stderr)

    poller = InvoicePoller(
        lambda: client.get_invoice(args.number),
        interval=args.interval,
        on_update=report,
        on_error=report_error,
    )
    try:
        poller.run()
    except KeyboardInterrupt:
        poller.stop()
        print("Stopped watching.", file=sys.stderr)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI application."""

    args = parse_args(argv)

    log_level = logging.DEBUG if args.debug else logging.WARNING
    logging.basicConfig(level=log_level, format="[%(levelname)s] %(message)s")

    client = BookingApiClient(create_session(), base_url=args.api_url, timeout=args.timeout)
    try:
        if args.command == "slots":
            return _show_slots(args, client)
        return _show_invoice(args, client)
    except ApiError as exc:
        print(f"Booking API request failed: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
