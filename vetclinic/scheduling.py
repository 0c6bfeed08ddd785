"""
Clinic slot grid and availability.

Pure functions: callers pass in the busy intervals (start, end) of the
veterinarian or of the whole clinic, nothing here touches the database.
All datetimes are naive clinic-local times.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence

Interval = tuple[datetime, datetime]

SLOT_MINUTES = 30
OPENING_TIME = time(9, 0)
CLOSING_TIME = time(17, 0)
SUNDAY = 6

# start times offered to clients (12:00-13:00 is lunch)
BOOKING_SLOTS: tuple[time, ...] = tuple(
    time(h, m)
    for h, m in [
        (9, 0), (9, 30), (10, 0), (10, 30), (11, 0), (11, 30),
        (13, 0), (13, 30), (14, 0), (14, 30), (15, 0), (15, 30), (16, 0), (16, 30),
    ]
)

# rows of the admin daily schedule
CALENDAR_SLOTS: tuple[time, ...] = tuple(time(9 + i // 2, 30 * (i % 2)) for i in range(17))

HEAT_MODERATE = 6
HEAT_BUSY = 13


def format_slot(t: time) -> str:
    return t.strftime("%H:%M")


def is_clinic_day(day: date) -> bool:
    return day.weekday() != SUNDAY


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open [start, end) overlap."""
    return a_start < b_end and a_end > b_start


def slot_fits_closing(slot: time, duration_minutes: int) -> bool:
    start = slot.hour * 60 + slot.minute
    return start + duration_minutes <= CLOSING_TIME.hour * 60 + CLOSING_TIME.minute


def is_booking_slot(start: datetime) -> bool:
    return start.time() in BOOKING_SLOTS


def conflicts(start: datetime, end: datetime, busy: Iterable[Interval]) -> bool:
    return any(overlaps(start, end, b_start, b_end) for b_start, b_end in busy)


def available_slots(
    day: date,
    duration_minutes: int,
    busy: Sequence[Interval] = (),
    now: datetime | None = None,
) -> list[time]:
    """
    Booking slots on ``day`` that can hold ``duration_minutes``:
    - end by closing time
    - do not overlap anything in ``busy``
    - start after ``now`` (only matters for today)
    Sundays and past days have no slots.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    now = now or datetime.now()
    if not is_clinic_day(day) or day < now.date():
        return []

    out: list[time] = []
    for slot in BOOKING_SLOTS:
        if not slot_fits_closing(slot, duration_minutes):
            continue
        start = datetime.combine(day, slot)
        if start <= now:
            continue
        end = start + timedelta(minutes=duration_minutes)
        if conflicts(start, end, busy):
            continue
        out.append(slot)
    return out


def taken_calendar_slots(day: date, busy: Iterable[Interval]) -> list[time]:
    """Calendar cells (30 min each) touched by at least one busy interval."""
    busy = list(busy)
    taken = []
    for slot in CALENDAR_SLOTS:
        cell_start = datetime.combine(day, slot)
        cell_end = cell_start + timedelta(minutes=SLOT_MINUTES)
        if conflicts(cell_start, cell_end, busy):
            taken.append(slot)
    return taken


def open_calendar_slots(day: date, busy: Iterable[Interval]) -> list[time]:
    taken = set(taken_calendar_slots(day, busy))
    return [s for s in CALENDAR_SLOTS if s not in taken]


def heat_level(count: int) -> str:
    if count >= HEAT_BUSY:
        return "Busy"
    if count >= HEAT_MODERATE:
        return "Moderate"
    if count > 0:
        return "Available"
    return ""


def clinic_days_in_month(year: int, month: int) -> list[date]:
    _, last = calendar.monthrange(year, month)
    return [d for d in (date(year, month, i) for i in range(1, last + 1)) if is_clinic_day(d)]


def monthly_capacity(year: int, month: int, vet_count: int = 1) -> int:
    return len(clinic_days_in_month(year, month)) * len(BOOKING_SLOTS) * max(vet_count, 1)


def capacity_percent(booked: int, capacity: int) -> int:
    if capacity <= 0:
        return 0
    return round(booked / capacity * 100)


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)
