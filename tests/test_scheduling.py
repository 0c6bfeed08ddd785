from __future__ import annotations

from datetime import date, datetime, time

import pytest

from vetclinic import scheduling

MONDAY = date(2030, 6, 3)
SUNDAY = date(2030, 6, 9)


def dt(hh: int, mm: int = 0, day: date = MONDAY) -> datetime:
    return datetime.combine(day, time(hh, mm))


EARLY = datetime(2030, 1, 1, 8, 0)


def test_grid_shapes():
    assert len(scheduling.BOOKING_SLOTS) == 14
    assert scheduling.BOOKING_SLOTS[0] == time(9, 0)
    assert scheduling.BOOKING_SLOTS[-1] == time(16, 30)
    assert time(12, 0) not in scheduling.BOOKING_SLOTS
    assert len(scheduling.CALENDAR_SLOTS) == 17
    assert scheduling.CALENDAR_SLOTS[-1] == time(17, 0)


def test_sunday_is_closed():
    assert not scheduling.is_clinic_day(SUNDAY)
    assert scheduling.available_slots(SUNDAY, 30, now=EARLY) == []


def test_empty_day_offers_every_slot_that_fits():
    slots = scheduling.available_slots(MONDAY, 30, now=EARLY)
    assert slots == list(scheduling.BOOKING_SLOTS)


def test_long_service_must_end_by_closing():
    slots = scheduling.available_slots(MONDAY, 120, now=EARLY)
    assert slots[-1] == time(15, 0)
    assert time(15, 30) not in slots


def test_busy_interval_blocks_overlapping_starts():
    busy = [(dt(10, 0), dt(10, 45))]
    slots = scheduling.available_slots(MONDAY, 30, busy, now=EARLY)
    assert time(10, 0) not in slots
    assert time(10, 30) not in slots
    assert time(9, 30) in slots
    assert time(11, 0) in slots


def test_back_to_back_is_not_a_conflict():
    busy = [(dt(9, 0), dt(9, 30))]
    slots = scheduling.available_slots(MONDAY, 30, busy, now=EARLY)
    assert time(9, 30) in slots


def test_today_hides_slots_already_started():
    now = dt(13, 10)
    slots = scheduling.available_slots(MONDAY, 30, now=now)
    assert slots[0] == time(13, 30)


def test_past_day_has_no_slots():
    assert scheduling.available_slots(MONDAY, 30, now=datetime(2030, 6, 4, 8, 0)) == []


def test_non_positive_duration_rejected():
    with pytest.raises(ValueError):
        scheduling.available_slots(MONDAY, 0, now=EARLY)


def test_taken_calendar_cells():
    busy = [(dt(9, 0), dt(10, 0)), (dt(14, 15), dt(14, 45))]
    taken = scheduling.taken_calendar_slots(MONDAY, busy)
    assert taken == [time(9, 0), time(9, 30), time(14, 0), time(14, 30)]
    open_ = scheduling.open_calendar_slots(MONDAY, busy)
    assert len(open_) + len(taken) == len(scheduling.CALENDAR_SLOTS)


@pytest.mark.parametrize(
    "count,label",
    [(0, ""), (1, "Available"), (5, "Available"), (6, "Moderate"), (12, "Moderate"), (13, "Busy")],
)
def test_heat_level(count, label):
    assert scheduling.heat_level(count) == label


def test_monthly_capacity():
    # June 2030 has 30 days, 5 of them Sundays
    assert len(scheduling.clinic_days_in_month(2030, 6)) == 25
    assert scheduling.monthly_capacity(2030, 6) == 25 * 14
    assert scheduling.monthly_capacity(2030, 6, vet_count=2) == 25 * 14 * 2
    assert scheduling.capacity_percent(35, 350) == 10
    assert scheduling.capacity_percent(5, 0) == 0


def test_booking_slot_check():
    assert scheduling.is_booking_slot(dt(9, 30))
    assert not scheduling.is_booking_slot(dt(12, 0))
    assert not scheduling.is_booking_slot(dt(9, 15))
    assert scheduling.slot_fits_closing(time(16, 30), 30)
    assert not scheduling.slot_fits_closing(time(16, 30), 45)
