from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from .schemas import BallboyLine, CoachLine, CourtLine, InventoryLine

LineType = (CourtLine, CoachLine, BallboyLine, InventoryLine)


@dataclass(frozen=True)
class Countdown:
    hours: int
    minutes: int
    seconds: int
    expired: bool


def payment_countdown(due_date: datetime, now: Optional[datetime] = None) -> Countdown:
    """Time left before an unpaid invoice lapses."""

    if now is None:
        now = datetime.now(due_date.tzinfo)
    remaining = int((due_date - now).total_seconds())
    if remaining <= 0:
        return Countdown(0, 0, 0, True)
    hours, rest = divmod(remaining, 3600)
    minutes, seconds = divmod(rest, 60)
    return Countdown(hours, minutes, seconds, False)


def format_countdown(countdown: Countdown) -> str:
    if countdown.expired:
        return "Payment expired"
    parts = []
    if countdown.hours > 0:
        parts.append(f"{countdown.hours}h")
    parts.append(f"{countdown.minutes}m")
    parts.append(f"{countdown.seconds}s")
    return " : ".join(parts)


def line_subtotals(lines: Iterable[object]) -> dict[str, float]:
    """Sum invoice lines per booking category."""

    totals = {"court": 0.0, "coach": 0.0, "ballboy": 0.0, "inventory": 0.0}
    for line in lines:
        if not isinstance(line, LineType):
            raise TypeError(f"unexpected booking line {line!r}")
        totals[line.category] += line.amount
    return totals


def line_description(line: object) -> str:
    if isinstance(line, CourtLine):
        return line.court_name or "Court"
    if isinstance(line, CoachLine):
        suffix = f" ({line.coach_type})" if line.coach_type else ""
        return f"Coach {line.staff_name}{suffix}".strip()
    if isinstance(line, BallboyLine):
        return f"Ball boy {line.staff_name}".strip()
    if isinstance(line, InventoryLine):
        return f"{line.name} x{line.quantity}"
    raise TypeError(f"unexpected booking line {line!r}")
