from __future__ import annotations

import re
import threading
import time
from datetime import date, timedelta

import pytest

from conftest import at, next_clinic_day
from vetclinic import scheduling
from vetclinic.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from vetclinic.services import appointments, employees, notifications


def next_sunday(days_ahead: int = 7) -> date:
    d = date.today() + timedelta(days=days_ahead)
    while d.weekday() != 6:
        d += timedelta(days=1)
    return d


@pytest.fixture
def day() -> date:
    return next_clinic_day()


# =========================
# Booking rules
# =========================
def test_booking_starts_pending_with_service_defaults(client_actor, pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    assert a["appointment_status"] == "pending"
    assert a["appointment_type"] == "consultation"
    assert a["reason_for_visit"] == "General Check-up"
    assert a["scheduled_end"] == at(day, 10, 30).isoformat()
    assert a["pet"]["name"] == "Bantay"
    assert a["veterinarian"]["last_name"] == "Santos"
    assert re.fullmatch(r"APT-\d{15}", a["appointment_number"])


def test_overlap_with_same_vet_is_rejected(client_actor, pet, make_pet, book, day):
    book(client_actor, pet["id"], at(day, 10), service="dental")  # 10:00-10:45
    other = make_pet(client_actor, name="Mingming", species="Cat")
    with pytest.raises(ConflictError, match="no longer available"):
        book(client_actor, other["id"], at(day, 10, 30))
    assert book(client_actor, other["id"], at(day, 11))["appointment_status"] == "pending"


def test_other_vet_can_take_the_same_slot(client_actor, pet, make_pet, book, day):
    book(client_actor, pet["id"], at(day, 10))
    second = employees.create_employee(
        "veterinarian", "dr.reyes@example.com", "Vet#2024pass", "Ana", "Reyes", "09175550000",
        license_number="PRC-VET-0002",
    )
    other = make_pet(client_actor, name="Mingming", species="Cat")
    a = book(client_actor, other["id"], at(day, 10), veterinarian_id=second["id"])
    assert a["veterinarian"]["id"] == second["id"]


def test_cancelled_appointment_frees_its_slot(client_actor, pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    appointments.change_status(client_actor, a["id"], "cancelled", cancellation_reason="Owner travelling")
    assert book(client_actor, pet["id"], at(day, 10))["appointment_status"] == "pending"


def test_slot_rules(client_actor, pet, book, day):
    with pytest.raises(ValidationError, match="Sundays"):
        book(client_actor, pet["id"], at(next_sunday(), 10))
    with pytest.raises(ValidationError, match="booking slots"):
        book(client_actor, pet["id"], at(day, 10, 15))
    with pytest.raises(ValidationError, match="booking slots"):
        book(client_actor, pet["id"], at(day, 12))
    with pytest.raises(ValidationError, match="17:00"):
        book(client_actor, pet["id"], at(day, 16), service="surgery")
    with pytest.raises(ValidationError, match="future"):
        book(client_actor, pet["id"], at(day, 10), now=at(day, 11))
    with pytest.raises(ValidationError, match="Unknown service"):
        book(client_actor, pet["id"], at(day, 10), service="spa")


def test_emergency_bypasses_grid_but_not_overlap(client_actor, pet, make_pet, book, day):
    a = book(client_actor, pet["id"], at(day, 12, 10), service="emergency")
    assert a["is_emergency"]
    assert a["scheduled_end"] == at(day, 12, 55).isoformat()

    assert book(client_actor, pet["id"], at(next_sunday(), 18), service="emergency")["is_emergency"]

    other = make_pet(client_actor, name="Mingming", species="Cat")
    book(client_actor, other["id"], at(day, 10))
    with pytest.raises(ConflictError):
        book(client_actor, pet["id"], at(day, 10, 15), service="emergency")


def test_client_cannot_book_for_someone_elses_pet(make_client, pet, book, day):
    stranger, _ = make_client("stranger@example.com")
    with pytest.raises(NotFoundError):
        book(stranger, pet["id"], at(day, 10))


def test_concurrent_bookings_cannot_share_a_slot(client_actor, make_pet, day, monkeypatch):
    names = ["Bantay", "Mingming", "Brownie", "Choco", "Lucky", "Tiger"]
    pet_ids = [make_pet(client_actor, name=n)["id"] for n in names]

    busy = appointments._busy_intervals

    def slow_busy(*args, **kwargs):
        found = busy(*args, **kwargs)
        time.sleep(0.05)
        return found

    monkeypatch.setattr(appointments, "_busy_intervals", slow_busy)
    gate = threading.Barrier(len(pet_ids))
    results: list[str] = []

    def attempt(pet_id: str) -> None:
        gate.wait()
        try:
            appointments.book_appointment(client_actor, pet_id, "consultation", at(day, 10))
            results.append("ok")
        except ConflictError:
            results.append("conflict")

    threads = [threading.Thread(target=attempt, args=(p,)) for p in pet_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(results) == ["conflict"] * (len(pet_ids) - 1) + ["ok"]
    assert len(appointments.list_appointments(client_actor)) == 1


def test_aware_datetimes_are_converted_to_clinic_time(day):
    local = at(day, 10)
    assert appointments.to_local_naive(local.astimezone()) == local
    assert appointments.to_local_naive(local) is local


# =========================
# Availability
# =========================
def test_slots_for_hides_taken_and_reports_default_vet(client_actor, pet, book, day):
    book(client_actor, pet["id"], at(day, 10))
    res = appointments.slots_for(day, "consultation")
    assert "10:00" not in res["slots"]
    assert "10:30" in res["slots"]
    assert res["duration_minutes"] == 30
    assert res["veterinarian_id"] == appointments.list_veterinarians()[0]["id"]

    assert appointments.slots_for(next_sunday(), "consultation")["slots"] == []
    surgery = appointments.slots_for(day, "surgery")["slots"]
    assert surgery[-1] == "15:00"
    assert "09:00" not in surgery


def test_catalog_lists_seeded_services():
    codes = {s["code"]: s for s in appointments.list_services()}
    assert set(codes) == {"consultation", "vaccination", "surgery", "dental", "grooming", "emergency"}
    assert codes["dental"]["duration_minutes"] == 45
    assert codes["consultation"]["price"] == "500.00"


# =========================
# Status machine
# =========================
def test_full_lifecycle(admin, client_actor, pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    a = appointments.change_status(admin, a["id"], "confirmed")
    assert a["appointment_status"] == "confirmed"
    a = appointments.change_status(admin, a["id"], "in_progress")
    assert a["checked_in_at"] is not None
    a = appointments.change_status(admin, a["id"], "completed")
    assert a["actual_end"] is not None

    with pytest.raises(ConflictError, match="completed to cancelled"):
        appointments.change_status(admin, a["id"], "cancelled", cancellation_reason="late")


def test_illegal_transitions(admin, client_actor, pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    with pytest.raises(ConflictError):
        appointments.change_status(admin, a["id"], "completed")
    with pytest.raises(ValidationError, match="Invalid status"):
        appointments.change_status(admin, a["id"], "done")
    with pytest.raises(ValidationError, match="cancellation_reason"):
        appointments.change_status(admin, a["id"], "cancelled")


def test_client_may_only_cancel_own(client_actor, make_client, pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    with pytest.raises(PermissionDenied):
        appointments.change_status(client_actor, a["id"], "confirmed")

    stranger, _ = make_client("stranger@example.com")
    with pytest.raises(NotFoundError):
        appointments.change_status(stranger, a["id"], "cancelled", cancellation_reason="not mine")
    with pytest.raises(NotFoundError):
        appointments.get_appointment(stranger, a["id"])

    a = appointments.change_status(client_actor, a["id"], "cancelled", cancellation_reason="Pet is fine now")
    assert a["appointment_status"] == "cancelled"
    assert a["cancellation_reason"] == "Pet is fine now"


def test_status_notifications_are_queued(admin, client_actor, pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    appointments.change_status(admin, a["id"], "confirmed")
    appointments.change_status(admin, a["id"], "cancelled", cancellation_reason="Vet unavailable")

    types = [n["notification_type"] for n in notifications.list_for_user(client_actor.user_id)]
    assert sorted(types) == ["appointment_cancelled", "appointment_confirmed", "general"]
    assert notifications.unread_count(client_actor.user_id) == 3


# =========================
# Listing
# =========================
def test_listing_is_scoped_for_clients(admin, client_actor, make_client, make_pet, pet, book, day):
    mine = book(client_actor, pet["id"], at(day, 10))
    other_owner, _ = make_client("other@example.com")
    other_pet = make_pet(other_owner, name="Choco")
    book(other_owner, other_pet["id"], at(day, 11))

    assert [a["id"] for a in appointments.list_appointments(client_actor)] == [mine["id"]]
    assert len(appointments.list_appointments(admin)) == 2
    assert len(appointments.list_appointments(admin, day=day, status="pending")) == 2
    found = appointments.list_appointments(admin, search=mine["appointment_number"].lower())
    assert [a["id"] for a in found] == [mine["id"]]
    with pytest.raises(ValidationError):
        appointments.list_appointments(admin, status="sleeping")


# =========================
# Reschedule
# =========================
def test_reschedule(admin, client_actor, pet, make_pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    other = make_pet(client_actor, name="Mingming", species="Cat")
    book(client_actor, other["id"], at(day, 14))

    moved = appointments.reschedule(admin, a["id"], at(day, 11))
    assert moved["scheduled_start"] == at(day, 11).isoformat()
    assert moved["scheduled_end"] == at(day, 11, 30).isoformat()

    with pytest.raises(ConflictError):
        appointments.reschedule(admin, a["id"], at(day, 14))
    with pytest.raises(ValidationError):
        appointments.reschedule(admin, a["id"], at(next_sunday(), 10))


def test_clients_cannot_reschedule(client_actor, pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    with pytest.raises(PermissionDenied):
        appointments.reschedule(client_actor, a["id"], at(day, 11))
    assert appointments.get_appointment(client_actor, a["id"])["scheduled_start"] == at(day, 10).isoformat()


def test_reschedule_only_open_appointments(admin, client_actor, pet, book, day):
    a = book(client_actor, pet["id"], at(day, 10))
    appointments.change_status(admin, a["id"], "cancelled", cancellation_reason="duplicate")
    with pytest.raises(ConflictError):
        appointments.reschedule(admin, a["id"], at(day, 11))


# =========================
# Batch jobs
# =========================
def test_mark_no_shows_respects_grace(client_actor, pet, book, day):
    start = at(day, 10)
    book(client_actor, pet["id"], start, now=start - timedelta(days=1))

    early = appointments.mark_no_shows(now=start + timedelta(minutes=10))
    assert early.updated == 0
    assert early.message == "No missed appointments to update"

    late = appointments.mark_no_shows(now=start + timedelta(minutes=20))
    assert late.updated == 1
    assert late.message == "Marked 1 appointment(s) as no-show"
    assert appointments.list_appointments(client_actor)[0]["appointment_status"] == "no_show"

    assert appointments.mark_no_shows(now=start + timedelta(hours=2)).updated == 0


def test_checked_in_patients_are_never_no_shows(admin, client_actor, pet, book, day):
    start = at(day, 10)
    a = book(client_actor, pet["id"], start, now=start - timedelta(days=1))
    appointments.change_status(admin, a["id"], "confirmed")
    appointments.change_status(admin, a["id"], "in_progress")
    assert appointments.mark_no_shows(now=start + timedelta(hours=1)).updated == 0


def test_reminders_are_sent_once(client_actor, pet, book, day):
    start = at(day, 10)
    a = book(client_actor, pet["id"], start)

    assert appointments.send_reminders(now=start - timedelta(days=2)) == 0
    assert appointments.send_reminders(now=start - timedelta(hours=3)) == 1
    assert appointments.send_reminders(now=start - timedelta(hours=2)) == 0
    assert appointments.get_appointment(client_actor, a["id"])["reminder_sent"]

    types = [n["notification_type"] for n in notifications.list_for_user(client_actor.user_id)]
    assert "appointment_reminder" in types


# =========================
# Calendar
# =========================
def test_calendar_month_counts_non_cancelled(admin, client_actor, pet, make_pet, book, day):
    book(client_actor, pet["id"], at(day, 10))
    other = make_pet(client_actor, name="Mingming", species="Cat")
    dropped = book(client_actor, other["id"], at(day, 11))
    book(client_actor, other["id"], at(day, 13))
    appointments.change_status(admin, dropped["id"], "cancelled", cancellation_reason="duplicate")

    cal = appointments.calendar_month(day.year, day.month)
    assert {"date": day.isoformat(), "count": 2, "level": "Available"} in cal["days"]

    with pytest.raises(ValidationError):
        appointments.calendar_month(day.year, 13)


def test_daily_schedule_marks_taken_cells(client_actor, pet, book, day):
    book(client_actor, pet["id"], at(day, 10), service="dental")  # 10:00-10:45
    sched = appointments.daily_schedule(day)
    assert not sched["is_past"]
    assert sched["taken_slots"] == ["10:00", "10:30"]
    assert "11:00" in sched["open_slots"]
    assert len(sched["open_slots"]) == len(scheduling.CALENDAR_SLOTS) - 2
    assert [a["pet"]["name"] for a in sched["appointments"]] == ["Bantay"]

    assert appointments.daily_schedule(day, today=day + timedelta(days=1))["is_past"]


def test_stats_use_clinic_capacity(client_actor, pet, book, day):
    book(client_actor, pet["id"], at(day, 10))
    book(client_actor, pet["id"], at(day, 11))

    stats = appointments.appointment_stats(today=day)
    assert stats["appointments_today"] == 2
    assert stats["upcoming_7_days"] == 2
    assert stats["monthly_booked"] == 2
    clinic_days = len(scheduling.clinic_days_in_month(day.year, day.month))
    assert stats["monthly_capacity"] == clinic_days * len(scheduling.BOOKING_SLOTS)
    assert stats["capacity_percent"] == scheduling.capacity_percent(2, stats["monthly_capacity"])
