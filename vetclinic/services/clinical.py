"""
Veterinarian workflow: triage -> consultation (SOAP) -> prescriptions,
plus vaccinations and the medical record archive.
"""
from __future__ import annotations

import logging
import random
import string
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from .. import scheduling
from ..db import db_session
from ..errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from ..models import (
    Appointment,
    AppointmentStatus,
    MedicalRecord,
    Pet,
    Prescription,
    PrescriptionStatus,
    TriageLevel,
    TriageRecord,
    Vaccination,
)
from .access import Actor, vet_profile_of

logger = logging.getLogger(__name__)

PRESCRIBABLE_STATUSES = (AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED)


def generate_record_number(now: datetime | None = None) -> str:
    now = now or datetime.now()
    tail = "".join(random.choices(string.ascii_uppercase + string.digits, k=9))
    return f"MR-{int(now.timestamp() * 1000)}-{tail}"


def _decimal(value: Any, field: str) -> Decimal:
    if value in (None, ""):
        raise ValidationError(f"{field.capitalize()} is required.")
    try:
        d = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field.capitalize()} must be a number.") from None
    if d <= 0:
        raise ValidationError(f"{field.capitalize()} must be greater than zero.")
    return d


def _parse_date(value: Any, field: str) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {field.replace('_', ' ')}.") from None


def _queue_row(a: Appointment) -> dict:
    return {
        "appointment_id": a.id,
        "appointment_number": a.appointment_number,
        "pet_id": a.pet_id,
        "pet_name": a.pet.name,
        "species": a.pet.species,
        "breed": a.pet.breed,
        "owner_name": a.pet.owner.full_name if a.pet.owner else None,
        "reason_for_visit": a.reason_for_visit,
        "scheduled_start": a.scheduled_start.isoformat(),
        "checked_in_at": a.checked_in_at.isoformat() if a.checked_in_at else None,
        "is_emergency": a.is_emergency,
    }


def _checked_in_today(today: date):
    start, end = scheduling.day_bounds(today)
    return or_(
        Appointment.checked_in_at.is_(None),
        (Appointment.checked_in_at >= start) & (Appointment.checked_in_at < end),
    )


# =========================
# Triage
# =========================
def triage_queue(today: date | None = None) -> list[dict]:
    """Checked-in patients still waiting for vitals, first come first served."""
    today = today or date.today()
    with db_session() as s:
        q = (
            select(Appointment)
            .options(selectinload(Appointment.pet).selectinload(Pet.owner))
            .outerjoin(TriageRecord, TriageRecord.appointment_id == Appointment.id)
            .where(
                Appointment.appointment_status == AppointmentStatus.IN_PROGRESS,
                _checked_in_today(today),
                TriageRecord.id.is_(None),
            )
            .order_by(Appointment.checked_in_at.asc(), Appointment.scheduled_start.asc())
        )
        return [_queue_row(a) for a in s.scalars(q)]


def record_triage(
    appointment_id: str,
    weight: Any,
    temperature: Any,
    pet_id: str | None = None,
    heart_rate: int | None = None,
    respiratory_rate: int | None = None,
    mucous_membrane: str | None = None,
    triage_level: str = "routine",
    chief_complaint: str | None = None,
) -> dict:
    if not appointment_id:
        raise ValidationError("Appointment ID is required.")
    w = _decimal(weight, "weight")
    t = _decimal(temperature, "temperature")
    try:
        level = TriageLevel(triage_level or "routine")
    except ValueError:
        raise ValidationError(f"Invalid triage level: {triage_level}") from None

    with db_session() as s:
        a = s.get(Appointment, appointment_id)
        if a is None:
            raise NotFoundError("Appointment not found.")
        if pet_id and pet_id != a.pet_id:
            raise ValidationError("Pet does not match the appointment.")
        if a.appointment_status != AppointmentStatus.IN_PROGRESS:
            raise ConflictError("Patient must be checked in before triage.")
        exists = s.execute(select(TriageRecord.id).where(TriageRecord.appointment_id == a.id)).first()
        if exists:
            raise ConflictError("Triage already recorded for this appointment.")

        tr = TriageRecord(
            appointment_id=a.id,
            pet_id=a.pet_id,
            weight=w,
            temperature=t,
            heart_rate=heart_rate,
            respiratory_rate=respiratory_rate,
            mucous_membrane=(mucous_membrane or "").strip() or None,
            triage_level=level,
            chief_complaint=(chief_complaint or "").strip() or None,
        )
        s.add(tr)

        # the triage scale is the clinic's latest weighing
        a.pet.weight = w
        s.flush()
        logger.info("Triage recorded for appointment %s (level=%s)", a.appointment_number, level.value)
        return {
            "id": tr.id,
            "appointment_id": a.id,
            "pet_id": a.pet_id,
            "weight": float(w),
            "temperature": float(t),
            "heart_rate": heart_rate,
            "respiratory_rate": respiratory_rate,
            "triage_level": level.value,
            "chief_complaint": tr.chief_complaint,
        }


# =========================
# Consultation
# =========================
def consultation_queue(today: date | None = None) -> list[dict]:
    today = today or date.today()
    with db_session() as s:
        q = (
            select(Appointment, TriageRecord)
            .options(selectinload(Appointment.pet).selectinload(Pet.owner))
            .join(TriageRecord, TriageRecord.appointment_id == Appointment.id)
            .outerjoin(MedicalRecord, MedicalRecord.appointment_id == Appointment.id)
            .where(
                Appointment.appointment_status == AppointmentStatus.IN_PROGRESS,
                _checked_in_today(today),
                MedicalRecord.id.is_(None),
            )
            .order_by(Appointment.checked_in_at.asc(), Appointment.scheduled_start.asc())
        )
        out = []
        for a, tr in s.execute(q).all():
            row = _queue_row(a)
            row["triage"] = {
                "weight": float(tr.weight),
                "temperature": float(tr.temperature),
                "heart_rate": tr.heart_rate,
                "triage_level": tr.triage_level.value,
                "chief_complaint": tr.chief_complaint,
            }
            out.append(row)
        return out


def complete_consultation(
    actor: Actor,
    appointment_id: str,
    assessment: str,
    subjective: str = "",
    objective: str = "",
    plan: str = "",
    now: datetime | None = None,
) -> dict:
    """
    SOAP note -> medical record. The appointment is completed in the same
    transaction, so a failed insert leaves it in progress.
    """
    if not (assessment or "").strip():
        raise ValidationError("Assessment (diagnosis) is required.")
    now = now or datetime.now()

    with db_session() as s:
        vet = vet_profile_of(s, actor)
        a = s.get(Appointment, appointment_id)
        if a is None:
            raise NotFoundError("Appointment not found.")
        if a.appointment_status != AppointmentStatus.IN_PROGRESS:
            raise ConflictError("Only appointments in progress can be completed.")
        if s.execute(select(MedicalRecord.id).where(MedicalRecord.appointment_id == a.id)).first():
            raise ConflictError("Consultation already recorded for this appointment.")

        rec = MedicalRecord(
            record_number=generate_record_number(now),
            appointment_id=a.id,
            pet_id=a.pet_id,
            veterinarian_id=vet.id,
            visit_date=now.date(),
            chief_complaint=(subjective or "").strip(),
            examination_findings=(objective or "").strip(),
            diagnosis=assessment.strip(),
            treatment_plan=(plan or "").strip(),
        )
        s.add(rec)

        a.appointment_status = AppointmentStatus.COMPLETED
        a.actual_end = now
        a.checked_out_at = now
        s.flush()
        logger.info("Consultation completed: appointment=%s record=%s", a.appointment_number, rec.record_number)
        return medical_record_flat(rec)


# =========================
# Prescriptions
# =========================
def prescription_flat(p: Prescription) -> dict:
    return {
        "id": p.id,
        "appointment_id": p.appointment_id,
        "pet_id": p.pet_id,
        "veterinarian_id": p.veterinarian_id,
        "medication_name": p.medication_name,
        "dosage": p.dosage,
        "frequency": p.frequency,
        "duration": p.duration,
        "instructions": p.instructions,
        "status": p.status.value,
        "created_at": p.created_at.isoformat(),
    }


def issue_prescription(
    actor: Actor,
    appointment_id: str,
    medication_name: str,
    dosage: str,
    frequency: str,
    duration: str | None = None,
    instructions: str | None = None,
) -> dict:
    if not all((appointment_id, (medication_name or "").strip(), (dosage or "").strip(), (frequency or "").strip())):
        raise ValidationError("Appointment, medication name, dosage and frequency are required.")

    with db_session() as s:
        vet = vet_profile_of(s, actor)
        a = s.get(Appointment, appointment_id)
        if a is None:
            raise NotFoundError("Appointment not found.")
        if a.appointment_status not in PRESCRIBABLE_STATUSES:
            raise PermissionDenied("Prescriptions can only be issued for active or completed consultations.")

        p = Prescription(
            appointment_id=a.id,
            pet_id=a.pet_id,
            veterinarian_id=vet.id,
            medication_name=medication_name.strip(),
            dosage=dosage.strip(),
            frequency=frequency.strip(),
            duration=(duration or "").strip() or None,
            instructions=(instructions or "").strip() or None,
            status=PrescriptionStatus.PENDING,
        )
        s.add(p)
        s.flush()
        logger.info("Prescription %s issued for appointment %s", p.id, a.appointment_number)
        return prescription_flat(p)


def list_prescriptions(pet_id: str | None = None, appointment_id: str | None = None) -> list[dict]:
    with db_session() as s:
        q = select(Prescription).order_by(Prescription.created_at.desc())
        if pet_id:
            q = q.where(Prescription.pet_id == pet_id)
        if appointment_id:
            q = q.where(Prescription.appointment_id == appointment_id)
        return [prescription_flat(p) for p in s.scalars(q)]


def delete_prescription(actor: Actor, prescription_id: str) -> None:
    if not actor.is_vet:
        raise PermissionDenied("Only veterinarians can delete prescriptions.")
    with db_session() as s:
        p = s.get(Prescription, prescription_id)
        if p is None:
            raise NotFoundError("Prescription not found.")
        s.delete(p)
        logger.info("Prescription %s deleted by %s", prescription_id, actor.user_id)


# =========================
# Vaccinations
# =========================
def vaccination_flat(v: Vaccination) -> dict:
    return {
        "id": v.id,
        "pet_id": v.pet_id,
        "pet_name": v.pet.name if v.pet else None,
        "veterinarian_id": v.veterinarian_id,
        "vaccine_name": v.vaccine_name,
        "vaccination_date": v.vaccination_date.isoformat(),
        "next_due_date": v.next_due_date.isoformat() if v.next_due_date else None,
        "batch_number": v.batch_number,
        "notes": v.notes,
    }


def list_vaccinations(pet_id: str | None = None) -> list[dict]:
    with db_session() as s:
        q = select(Vaccination).options(selectinload(Vaccination.pet)).order_by(Vaccination.vaccination_date.desc())
        if pet_id:
            q = q.where(Vaccination.pet_id == pet_id)
        return [vaccination_flat(v) for v in s.scalars(q)]


def create_vaccination(
    actor: Actor,
    pet_id: str,
    vaccine_name: str,
    vaccination_date: Any,
    next_due_date: Any = None,
    batch_number: str | None = None,
    notes: str | None = None,
) -> dict:
    if not pet_id or not (vaccine_name or "").strip():
        raise ValidationError("Pet and vaccine name are required.")
    given = _parse_date(vaccination_date, "vaccination_date")
    if given is None:
        raise ValidationError("Vaccination date is required.")
    due = _parse_date(next_due_date, "next_due_date")
    if due is not None and due < given:
        raise ValidationError("Next due date cannot be before the vaccination date.")

    with db_session() as s:
        if s.get(Pet, pet_id) is None:
            raise NotFoundError("Pet not found.")
        vet_id = vet_profile_of(s, actor).id if actor.is_vet else None
        v = Vaccination(
            pet_id=pet_id,
            veterinarian_id=vet_id,
            vaccine_name=vaccine_name.strip(),
            vaccination_date=given,
            next_due_date=due,
            batch_number=(batch_number or "").strip() or None,
            notes=(notes or "").strip() or None,
        )
        s.add(v)
        s.flush()
        s.refresh(v)
        return vaccination_flat(v)


def vaccinations_due(within_days: int = 30, today: date | None = None) -> list[dict]:
    today = today or date.today()
    with db_session() as s:
        q = (
            select(Vaccination)
            .options(selectinload(Vaccination.pet))
            .where(
                Vaccination.next_due_date.is_not(None),
                Vaccination.next_due_date >= today,
                Vaccination.next_due_date <= today + timedelta(days=within_days),
            )
            .order_by(Vaccination.next_due_date.asc())
        )
        return [vaccination_flat(v) for v in s.scalars(q)]


# =========================
# Medical records
# =========================
def medical_record_flat(r: MedicalRecord) -> dict:
    return {
        "id": r.id,
        "record_number": r.record_number,
        "appointment_id": r.appointment_id,
        "pet_id": r.pet_id,
        "veterinarian_id": r.veterinarian_id,
        "visit_date": r.visit_date.isoformat(),
        "chief_complaint": r.chief_complaint,
        "examination_findings": r.examination_findings,
        "diagnosis": r.diagnosis,
        "treatment_plan": r.treatment_plan,
    }


def list_medical_records(pet_id: str | None = None) -> list[dict]:
    with db_session() as s:
        q = select(MedicalRecord).order_by(MedicalRecord.visit_date.desc(), MedicalRecord.created_at.desc())
        if pet_id:
            q = q.where(MedicalRecord.pet_id == pet_id)
        return [medical_record_flat(r) for r in s.scalars(q)]
