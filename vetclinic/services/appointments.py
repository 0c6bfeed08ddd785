from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from .. import config, scheduling
from ..db import db_session, unique_value
from ..errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from ..models import (
    ACTIVE_APPOINTMENT_STATUSES,
    Appointment,
    AppointmentStatus,
    AppointmentType,
    ClientProfile,
    EmploymentStatus,
    NotificationType,
    Pet,
    Service,
    VeterinarianProfile,
)
from .access import Actor, client_profile_of
from .notifications import queue_notification

logger = logging.getLogger(__name__)

S = AppointmentStatus

# Allowed status moves. Terminal states have no entry.
TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED, S.NO_SHOW}),
    S.CONFIRMED: frozenset({S.IN_PROGRESS, S.CANCELLED, S.NO_SHOW}),
    S.IN_PROGRESS: frozenset({S.COMPLETED, S.CANCELLED}),
}

CLIENT_CANCELLABLE = (S.PENDING, S.CONFIRMED)


@dataclass(frozen=True)
class NoShowResult:
    updated: int
    appointments: list[dict]

    @property
    def message(self) -> str:
        if not self.updated:
            return "No missed appointments to update"
        return f"Marked {self.updated} appointment(s) as no-show"


# =========================
# Helpers
# =========================
def to_local_naive(dt: datetime) -> datetime:
    """Clinic times are stored naive local; aware inputs are converted."""
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


def generate_appointment_number(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"APT-{int(now.timestamp() * 1000)}{random.randint(10, 99)}"


def appointment_flat(a: Appointment) -> dict:
    pet = a.pet
    owner = pet.owner if pet is not None else None
    vet = a.veterinarian
    return {
        "id": a.id,
        "appointment_number": a.appointment_number,
        "appointment_type": a.appointment_type.value,
        "appointment_status": a.appointment_status.value,
        "scheduled_start": a.scheduled_start.isoformat(),
        "scheduled_end": a.scheduled_end.isoformat(),
        "actual_start": a.actual_start.isoformat() if a.actual_start else None,
        "actual_end": a.actual_end.isoformat() if a.actual_end else None,
        "checked_in_at": a.checked_in_at.isoformat() if a.checked_in_at else None,
        "reason_for_visit": a.reason_for_visit,
        "special_instructions": a.special_instructions,
        "cancellation_reason": a.cancellation_reason,
        "is_emergency": a.is_emergency,
        "reminder_sent": a.reminder_sent,
        "pet": {"id": pet.id, "name": pet.name, "species": pet.species, "breed": pet.breed} if pet else None,
        "client": (
            {"id": owner.id, "first_name": owner.first_name, "last_name": owner.last_name, "phone": owner.phone}
            if owner
            else None
        ),
        "veterinarian": (
            {"id": vet.id, "first_name": vet.first_name, "last_name": vet.last_name} if vet else None
        ),
    }


def _with_relations(q):
    return q.options(
        selectinload(Appointment.pet).selectinload(Pet.owner),
        selectinload(Appointment.veterinarian),
    )


def _load(s: Session, appointment_id: str) -> Appointment:
    a = s.scalars(_with_relations(select(Appointment)).where(Appointment.id == appointment_id)).first()
    if a is None:
        raise NotFoundError("Appointment not found.")
    return a


def _ensure_visible(s: Session, actor: Actor, a: Appointment) -> None:
    if actor.is_client and a.pet.owner_id != client_profile_of(s, actor).id:
        raise NotFoundError("Appointment not found.")


def _service_by_code(s: Session, code: str) -> Service:
    svc = s.execute(select(Service).where(Service.code == code, Service.is_active.is_(True))).scalar_one_or_none()
    if svc is None:
        raise ValidationError(f"Unknown service: {code}")
    return svc


def default_veterinarian(s: Session) -> VeterinarianProfile:
    """First full-time vet, otherwise any vet still employed."""
    q = select(VeterinarianProfile).order_by(VeterinarianProfile.created_at, VeterinarianProfile.last_name)
    vet = s.scalars(q.where(VeterinarianProfile.employment_status == EmploymentStatus.FULL_TIME)).first()
    if vet is None:
        vet = s.scalars(q.where(VeterinarianProfile.employment_status != EmploymentStatus.TERMINATED)).first()
    if vet is None:
        raise ValidationError("No veterinarian available. Please contact the clinic to schedule an appointment.")
    return vet


def _pick_veterinarian(s: Session, veterinarian_id: str | None) -> VeterinarianProfile:
    if not veterinarian_id:
        return default_veterinarian(s)
    vet = s.get(VeterinarianProfile, veterinarian_id)
    if vet is None or vet.employment_status == EmploymentStatus.TERMINATED:
        raise ValidationError("Veterinarian not available.")
    return vet


def _busy_intervals(
    s: Session,
    start: datetime,
    end: datetime,
    veterinarian_id: str | None = None,
    exclude_id: str | None = None,
) -> list[scheduling.Interval]:
    conds = [
        Appointment.appointment_status.in_(ACTIVE_APPOINTMENT_STATUSES),
        Appointment.scheduled_start < end,
        Appointment.scheduled_end > start,
    ]
    if veterinarian_id:
        conds.append(Appointment.veterinarian_id == veterinarian_id)
    if exclude_id:
        conds.append(Appointment.id != exclude_id)
    rows = s.execute(select(Appointment.scheduled_start, Appointment.scheduled_end).where(and_(*conds))).all()
    return [(r.scheduled_start, r.scheduled_end) for r in rows]


def _lock_veterinarian(s: Session, veterinarian_id: str) -> None:
    """
    Write to the vet row before the overlap check. Concurrent bookings for
    the same vet then wait here until this transaction ends, so the check
    always sees the appointments committed before it.
    """
    s.execute(
        update(VeterinarianProfile)
        .where(VeterinarianProfile.id == veterinarian_id)
        .values(updated_at=datetime.now())
        .execution_options(synchronize_session=False)
    )


def _check_start(start: datetime, duration: int, emergency: bool, now: datetime) -> None:
    if emergency:
        if start < now.replace(second=0, microsecond=0):
            raise ValidationError("Appointment time is in the past.")
        return
    if start <= now:
        raise ValidationError("Appointment time must be in the future.")
    if not scheduling.is_clinic_day(start.date()):
        raise ValidationError("The clinic is closed on Sundays.")
    if not scheduling.is_booking_slot(start):
        raise ValidationError("Start time is not one of the clinic's booking slots.")
    if not scheduling.slot_fits_closing(start.time(), duration):
        raise ValidationError("Appointment must end by 17:00.")


def _owner_user_id(s: Session, pet: Pet) -> str | None:
    return s.scalar(select(ClientProfile.user_id).where(ClientProfile.id == pet.owner_id))


# =========================
# Catalog
# =========================
def list_services() -> list[dict]:
    with db_session() as s:
        rows = s.scalars(select(Service).where(Service.is_active.is_(True)).order_by(Service.id)).all()
        return [
            {
                "id": r.id,
                "code": r.code,
                "name": r.name,
                "appointment_type": r.appointment_type.value,
                "duration_minutes": r.duration_minutes,
                "price": str(r.price),
            }
            for r in rows
        ]


def list_veterinarians() -> list[dict]:
    with db_session() as s:
        rows = s.scalars(
            select(VeterinarianProfile)
            .where(VeterinarianProfile.employment_status != EmploymentStatus.TERMINATED)
            .order_by(VeterinarianProfile.last_name, VeterinarianProfile.first_name)
        ).all()
        return [
            {
                "id": v.id,
                "first_name": v.first_name,
                "last_name": v.last_name,
                "specializations": list(v.specializations or []),
                "consultation_fee": str(v.consultation_fee),
            }
            for v in rows
        ]


# =========================
# Availability
# =========================
def slots_for(day: date, service_code: str, veterinarian_id: str | None = None, now: datetime | None = None) -> dict:
    """Open booking slots for a service on a day, for a vet (default vet if none given)."""
    now = now or datetime.now()
    with db_session() as s:
        svc = _service_by_code(s, service_code)
        vet = _pick_veterinarian(s, veterinarian_id)
        day_start, day_end = scheduling.day_bounds(day)
        busy = _busy_intervals(s, day_start, day_end, veterinarian_id=vet.id)
        free = scheduling.available_slots(day, svc.duration_minutes, busy, now=now)
        return {
            "date": day.isoformat(),
            "service": svc.code,
            "duration_minutes": svc.duration_minutes,
            "veterinarian_id": vet.id,
            "slots": [scheduling.format_slot(t) for t in free],
        }


# =========================
# Booking
# =========================
def book_appointment(
    actor: Actor,
    pet_id: str,
    service_code: str,
    scheduled_start: datetime,
    veterinarian_id: str | None = None,
    reason_for_visit: str | None = None,
    special_instructions: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Use case: book an appointment.
    - the service fixes type, duration and default reason
    - slot rules (clinic day, grid, closing time, future)
    - no overlap with the vet's active appointments
    - status starts as pending; the owner gets a notification
    """
    now = now or datetime.now()
    start = to_local_naive(scheduled_start).replace(second=0, microsecond=0)

    with db_session() as s:
        pet = s.get(Pet, pet_id)
        if pet is None or pet.is_archived:
            raise NotFoundError("Pet not found.")
        if actor.is_client and pet.owner_id != client_profile_of(s, actor).id:
            raise NotFoundError("Pet not found.")

        svc = _service_by_code(s, service_code)
        emergency = svc.appointment_type == AppointmentType.EMERGENCY
        _check_start(start, svc.duration_minutes, emergency, now)
        end = start + timedelta(minutes=svc.duration_minutes)

        vet = _pick_veterinarian(s, veterinarian_id)
        _lock_veterinarian(s, vet.id)
        if _busy_intervals(s, start, end, veterinarian_id=vet.id):
            logger.warning("Slot %s taken for vet %s", start.isoformat(), vet.id)
            raise ConflictError("Selected time slot is no longer available.")

        a = Appointment(
            appointment_number=unique_value(s, Appointment.appointment_number, lambda: generate_appointment_number(now)),
            pet_id=pet.id,
            veterinarian_id=vet.id,
            service_id=svc.id,
            booked_by=actor.user_id,
            appointment_type=svc.appointment_type,
            appointment_status=S.PENDING,
            scheduled_start=start,
            scheduled_end=end,
            reason_for_visit=(reason_for_visit or "").strip() or svc.name,
            special_instructions=(special_instructions or "").strip() or None,
            is_emergency=emergency,
        )
        s.add(a)
        s.flush()

        owner_user = _owner_user_id(s, pet)
        if owner_user:
            queue_notification(
                s,
                owner_user,
                NotificationType.GENERAL,
                f"Appointment request received for {pet.name} on {start.strftime('%b %d, %Y %H:%M')}.",
                subject="Appointment request received",
                related_entity_type="appointment",
                related_entity_id=a.id,
            )

        logger.info("Appointment %s booked: pet=%s vet=%s start=%s", a.appointment_number, pet.id, vet.id, start)
        return appointment_flat(_load(s, a.id))


def list_appointments(
    actor: Actor,
    status: str | None = None,
    day: date | None = None,
    veterinarian_id: str | None = None,
    pet_id: str | None = None,
    search: str | None = None,
) -> list[dict]:
    with db_session() as s:
        q = _with_relations(select(Appointment)).order_by(Appointment.scheduled_start.desc())

        if actor.is_client:
            q = q.join(Pet, Pet.id == Appointment.pet_id).where(Pet.owner_id == client_profile_of(s, actor).id)
        if status and status != "all":
            try:
                q = q.where(Appointment.appointment_status == AppointmentStatus(status))
            except ValueError:
                raise ValidationError(f"Invalid status: {status}") from None
        if day:
            start, end = scheduling.day_bounds(day)
            q = q.where(Appointment.scheduled_start >= start, Appointment.scheduled_start < end)
        if veterinarian_id:
            q = q.where(Appointment.veterinarian_id == veterinarian_id)
        if pet_id:
            q = q.where(Appointment.pet_id == pet_id)
        if search:
            like = f"%{search.strip().lower()}%"
            q = q.where(
                or_(
                    func.lower(Appointment.appointment_number).like(like),
                    func.lower(Appointment.reason_for_visit).like(like),
                )
            )
        return [appointment_flat(a) for a in s.scalars(q).unique()]


def get_appointment(actor: Actor, appointment_id: str) -> dict:
    with db_session() as s:
        a = _load(s, appointment_id)
        _ensure_visible(s, actor, a)
        return appointment_flat(a)


# =========================
# Status machine
# =========================
def change_status(
    actor: Actor,
    appointment_id: str,
    new_status: str,
    cancellation_reason: str | None = None,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now()
    try:
        target = AppointmentStatus(new_status)
    except ValueError:
        valid = ", ".join(st.value for st in AppointmentStatus)
        raise ValidationError(f"Invalid status. Must be one of: {valid}") from None

    with db_session() as s:
        a = _load(s, appointment_id)
        _ensure_visible(s, actor, a)
        current = a.appointment_status

        if actor.is_client:
            if target != S.CANCELLED or current not in CLIENT_CANCELLABLE:
                raise PermissionDenied("Clients can only cancel pending or confirmed appointments.")

        if target not in TRANSITIONS.get(current, frozenset()):
            raise ConflictError(f"Cannot change appointment from {current.value} to {target.value}.")

        if target == S.CANCELLED:
            reason = (cancellation_reason or "").strip()
            if not reason:
                raise ValidationError("cancellation_reason is required when cancelling an appointment")
            a.cancellation_reason = reason
            a.cancelled_by = actor.user_id
            a.cancelled_at = now
        elif target == S.IN_PROGRESS:
            a.checked_in_at = now
            a.actual_start = now
        elif target == S.COMPLETED:
            a.actual_end = now
            a.checked_out_at = now

        a.appointment_status = target
        _notify_status(s, a, target)
        logger.info("Appointment %s: %s -> %s by %s", a.appointment_number, current.value, target.value, actor.user_id)
        return appointment_flat(a)


def _notify_status(s: Session, a: Appointment, target: AppointmentStatus) -> None:
    owner_user = _owner_user_id(s, a.pet)
    if not owner_user:
        return
    when = a.scheduled_start.strftime("%b %d, %Y %H:%M")
    if target == S.CONFIRMED:
        queue_notification(
            s, owner_user, NotificationType.APPOINTMENT_CONFIRMED,
            f"Your appointment for {a.pet.name} on {when} is confirmed.",
            subject="Appointment confirmed", related_entity_type="appointment", related_entity_id=a.id,
        )
    elif target == S.CANCELLED:
        queue_notification(
            s, owner_user, NotificationType.APPOINTMENT_CANCELLED,
            f"Your appointment for {a.pet.name} on {when} was cancelled. Reason: {a.cancellation_reason}",
            subject="Appointment cancelled", related_entity_type="appointment", related_entity_id=a.id,
        )


def reschedule(actor: Actor, appointment_id: str, new_start: datetime, now: datetime | None = None) -> dict:
    """Staff move a pending or confirmed appointment to another slot with the same vet."""
    if not actor.is_staff:
        raise PermissionDenied("Only clinic staff can reschedule appointments.")
    now = now or datetime.now()
    start = to_local_naive(new_start).replace(second=0, microsecond=0)

    with db_session() as s:
        a = _load(s, appointment_id)
        if a.appointment_status not in CLIENT_CANCELLABLE:
            raise ConflictError("Only pending or confirmed appointments can be rescheduled.")

        duration = int((a.scheduled_end - a.scheduled_start).total_seconds() // 60)
        _check_start(start, duration, a.is_emergency, now)
        end = start + timedelta(minutes=duration)
        _lock_veterinarian(s, a.veterinarian_id)
        if _busy_intervals(s, start, end, veterinarian_id=a.veterinarian_id, exclude_id=a.id):
            raise ConflictError("Selected time slot is no longer available.")

        old = a.scheduled_start
        a.scheduled_start, a.scheduled_end = start, end
        a.reminder_sent = False
        a.reminder_sent_at = None
        logger.info("Appointment %s moved %s -> %s", a.appointment_number, old, start)
        return appointment_flat(a)


# =========================
# Batch jobs (cron / CLI)
# =========================
def mark_no_shows(now: datetime | None = None, grace_minutes: int | None = None) -> NoShowResult:
    """
    pending/confirmed appointments that were never checked in and whose start
    is older than the grace period become no_show.
    """
    now = now or datetime.now()
    grace = config.NO_SHOW_GRACE_MINUTES if grace_minutes is None else grace_minutes
    cutoff = now - timedelta(minutes=grace)

    with db_session() as s:
        missed = s.scalars(
            select(Appointment).where(
                Appointment.appointment_status.in_((S.PENDING, S.CONFIRMED)),
                Appointment.checked_in_at.is_(None),
                Appointment.scheduled_start <= cutoff,
            )
        ).all()
        for a in missed:
            a.appointment_status = S.NO_SHOW

        rows = [
            {"id": a.id, "appointment_number": a.appointment_number, "scheduled_start": a.scheduled_start.isoformat()}
            for a in missed
        ]

    if rows:
        logger.info("Marked %d appointment(s) as no-show", len(rows))
    return NoShowResult(updated=len(rows), appointments=rows)


def send_reminders(now: datetime | None = None) -> int:
    """Queue one reminder per appointment starting within the next 24h."""
    now = now or datetime.now()
    horizon = now + timedelta(hours=config.REMINDER_WINDOW_HOURS)

    with db_session() as s:
        due = s.scalars(
            _with_relations(select(Appointment)).where(
                Appointment.appointment_status.in_((S.PENDING, S.CONFIRMED)),
                Appointment.reminder_sent.is_(False),
                Appointment.scheduled_start > now,
                Appointment.scheduled_start <= horizon,
            )
        ).all()
        for a in due:
            owner_user = _owner_user_id(s, a.pet)
            if owner_user:
                queue_notification(
                    s, owner_user, NotificationType.APPOINTMENT_REMINDER,
                    f"Reminder: {a.pet.name} has an appointment on {a.scheduled_start.strftime('%b %d, %Y %H:%M')}.",
                    subject="Appointment reminder", related_entity_type="appointment", related_entity_id=a.id,
                )
            a.reminder_sent = True
            a.reminder_sent_at = now

    logger.info("Queued %d appointment reminder(s)", len(due))
    return len(due)


# =========================
# Calendar (admin)
# =========================
def calendar_month(year: int, month: int, veterinarian_id: str | None = None) -> dict:
    """Per-day counts of non-cancelled appointments, with heat labels."""
    if not 1 <= month <= 12:
        raise ValidationError("Invalid month.")
    start, end = scheduling.month_bounds(year, month)

    with db_session() as s:
        q = select(Appointment.scheduled_start).where(
            Appointment.scheduled_start >= start,
            Appointment.scheduled_start < end,
            Appointment.appointment_status != S.CANCELLED,
        )
        if veterinarian_id:
            q = q.where(Appointment.veterinarian_id == veterinarian_id)
        counts = Counter(r.scheduled_start.date().isoformat() for r in s.execute(q).all())

    return {
        "year": year,
        "month": month,
        "days": [
            {"date": d, "count": c, "level": scheduling.heat_level(c)}
            for d, c in sorted(counts.items())
        ],
    }


def daily_schedule(day: date, veterinarian_id: str | None = None, today: date | None = None) -> dict:
    today = today or date.today()
    start, end = scheduling.day_bounds(day)

    with db_session() as s:
        q = (
            _with_relations(select(Appointment))
            .where(
                Appointment.scheduled_start >= start,
                Appointment.scheduled_start < end,
                Appointment.appointment_status != S.CANCELLED,
            )
            .order_by(Appointment.scheduled_start.asc())
        )
        if veterinarian_id:
            q = q.where(Appointment.veterinarian_id == veterinarian_id)
        appts = s.scalars(q).all()

        active = [a for a in appts if a.appointment_status in ACTIVE_APPOINTMENT_STATUSES]
        busy = [(a.scheduled_start, a.scheduled_end) for a in active]
        return {
            "date": day.isoformat(),
            "is_past": day < today,
            "appointments": [appointment_flat(a) for a in appts],
            "taken_slots": [scheduling.format_slot(t) for t in scheduling.taken_calendar_slots(day, busy)],
            "open_slots": [scheduling.format_slot(t) for t in scheduling.open_calendar_slots(day, busy)],
        }


def appointment_stats(today: date | None = None) -> dict:
    today = today or date.today()
    day_start, day_end = scheduling.day_bounds(today)
    week_end = day_start + timedelta(days=7)
    month_start, month_end = scheduling.month_bounds(today.year, today.month)

    with db_session() as s:
        def count(*conds) -> int:
            return int(s.scalar(select(func.count(Appointment.id)).where(*conds)) or 0)

        todays = count(Appointment.scheduled_start >= day_start, Appointment.scheduled_start < day_end)
        upcoming = count(
            Appointment.scheduled_start >= day_start,
            Appointment.scheduled_start < week_end,
            Appointment.appointment_status.in_((S.PENDING, S.CONFIRMED)),
        )
        booked = count(
            Appointment.scheduled_start >= month_start,
            Appointment.scheduled_start < month_end,
            Appointment.appointment_status.not_in((S.CANCELLED, S.NO_SHOW)),
        )
        vets = int(
            s.scalar(
                select(func.count(VeterinarianProfile.id)).where(
                    VeterinarianProfile.employment_status != EmploymentStatus.TERMINATED
                )
            )
            or 0
        )

    capacity = scheduling.monthly_capacity(today.year, today.month, vets)
    return {
        "appointments_today": todays,
        "upcoming_7_days": upcoming,
        "monthly_booked": booked,
        "monthly_capacity": capacity,
        "capacity_percent": scheduling.capacity_percent(booked, capacity),
    }
