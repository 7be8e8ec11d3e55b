from __future__ import annotations

import json
from datetime import date

import pytest
import requests

from court_booking import cli
from court_booking.grid import build_slot_grid
from court_booking.models import Court, Slot

from .conftest import FakeSession, envelope, make_response

COURTS = [{"id": "A", "name": "Court A"}, {"id": "B", "name": "Court B"}]
SLOTS = [
    {"id": "s1", "courtId": "A", "startAt": "2025-01-20 08:00:00", "price": 50000, "isAvailable": True},
    {"id": "s2", "courtId": "A", "startAt": "2025-01-20 09:00:00", "price": 50000, "isAvailable": False},
]


@pytest.fixture
def fake_session(monkeypatch: pytest.MonkeyPatch) -> FakeSession:
    session = FakeSession()
    monkeypatch.setattr(cli, "create_session", lambda: session)
    return session


def test_format_grid_text_lists_bookable_slots() -> None:
    courts = [Court("A", "Court A"), Court("B", "Court B")]
    slots = [
        Slot(resource_id="A", start_at="2025-01-20 08:00:00", price=60000, discount_price=50000),
        Slot(resource_id="A", start_at="2025-01-20 09:00:00", price=60000, is_available=False),
    ]

    text = cli.format_grid_text(build_slot_grid(slots, courts), courts, date(2025, 1, 20))

    assert text.splitlines() == [
        "Monday 2025-01-20",
        "",
        "Court A [A]",
        "  08:00 | price 50,000 (was 60,000)",
        "",
        "Court B [B]",
        "  no bookable slots",
    ]


def test_format_grid_structured_marks_each_cell() -> None:
    courts = [Court("A", "Court A")]
    slots = [
        Slot(resource_id="A", start_at="2025-01-20 08:00:00", price=50000),
        Slot(resource_id="A", start_at="2025-01-20 09:00:00", price=50000, is_available=False),
    ]

    table = cli.format_grid_structured(build_slot_grid(slots, courts), courts, ["08:00", "09:00", "10:00"])

    lines = table.splitlines()
    assert lines[0] == "time  | Court A"
    assert lines[2].split(" | ") == ["08:00", "50,000 "]
    assert lines[3].split(" | ")[1].strip() == "booked"
    assert lines[4].split(" | ")[1].strip() == "-"


def test_slots_command_json(fake_session: FakeSession, capsys: pytest.CaptureFixture[str]) -> None:
    fake_session.queue(make_response(200, envelope(COURTS)), make_response(200, envelope(SLOTS)))

    exit_code = cli.main(["slots", "--date", "2025-01-20", "--format", "json"])

    assert exit_code == 0
    data = json.loads(capsys.readouterr().out)
    assert sorted(data["A"]) == ["08:00", "09:00"]
    assert data["A"]["08:00"]["effective_price"] == 50000
    assert data["B"] == {}


def test_slots_command_rejects_bad_date(fake_session: FakeSession, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["slots", "--date", "20-01-2025"]) == 2
    assert "YYYY-MM-DD" in capsys.readouterr().err


def test_api_failure_exit_code(fake_session: FakeSession, capsys: pytest.CaptureFixture[str]) -> None:
    fake_session.queue(requests.ConnectionError("down"))

    assert cli.main(["slots", "--date", "2025-01-20"]) == 1
    assert "Booking API request failed" in capsys.readouterr().err


def test_invoice_watch_prints_each_status_change(
    fake_session: FakeSession, capsys: pytest.CaptureFixture[str]
) -> None:
    for status in ("PENDING", "PENDING", "PAID"):
        fake_session.queue(make_response(200, envelope({"id": "i1", "number": "INV-1", "status": status})))

    exit_code = cli.main(["invoice", "INV-1", "--watch", "--interval", "0"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert len(fake_session.calls) == 3
    assert out.count("Invoice INV-1: Awaiting payment (PENDING)") == 1
    assert "Invoice INV-1: Paid (PAID)" in out
