from __future__ import annotations

import logging
import math
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from ..db import db_session
from ..errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from ..models import (
    Appointment,
    ClientProfile,
    Gender,
    MedicalRecord,
    Pet,
    Prescription,
    TriageRecord,
    Vaccination,
)
from ..validation import validate_birth_date
from .access import Actor, client_profile_of

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "species",
    "breed",
    "date_of_birth",
    "gender",
    "color",
    "weight",
    "microchip_number",
    "is_spayed_neutered",
    "special_needs",
    "behavioral_notes",
    "current_medical_status",
    "is_active",
)


def pet_flat(p: Pet, with_owner: bool = True) -> dict:
    d = {
        "id": p.id,
        "owner_id": p.owner_id,
        "name": p.name,
        "species": p.species,
        "breed": p.breed,
        "date_of_birth": p.date_of_birth.isoformat() if p.date_of_birth else None,
        "gender": p.gender.value,
        "color": p.color,
        "weight": float(p.weight) if p.weight is not None else None,
        "microchip_number": p.microchip_number,
        "is_spayed_neutered": p.is_spayed_neutered,
        "special_needs": p.special_needs,
        "behavioral_notes": p.behavioral_notes,
        "current_medical_status": p.current_medical_status,
        "is_active": p.is_active,
    }
    if with_owner and p.owner is not None:
        d["owner"] = {
            "id": p.owner.id,
            "first_name": p.owner.first_name,
            "last_name": p.owner.last_name,
            "phone": p.owner.phone,
        }
    return d


def _clean_weight(value: Any) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        w = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("Weight must be a number.") from None
    if w <= 0:
        raise ValidationError("Weight must be greater than zero.")
    return w


def _clean_gender(value: Any) -> Gender:
    if value in (None, ""):
        return Gender.UNKNOWN
    try:
        return Gender(value)
    except ValueError:
        raise ValidationError(f"Invalid gender: {value}") from None


def _apply(p: Pet, fields: dict) -> None:
    for key, value in fields.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key == "weight":
            value = _clean_weight(value)
        elif key == "gender":
            value = _clean_gender(value)
        elif key == "date_of_birth":
            if isinstance(value, str):
                try:
                    value = date.fromisoformat(value)
                except ValueError:
                    raise ValidationError("Invalid date of birth.") from None
            value = validate_birth_date(value)
        elif key in ("name", "species"):
            value = (value or "").strip()
            if not value:
                raise ValidationError(f"{key.capitalize()} is required.")
        elif isinstance(value, str):
            value = value.strip() or None
        setattr(p, key, value)


def _get_visible_pet(s: Session, actor: Actor, pet_id: str) -> Pet:
    """Clients only ever see their own pets; others get a 404, not a 403."""
    p = s.get(Pet, pet_id)
    if p is None or p.is_archived:
        raise NotFoundError("Pet not found.")
    if actor.is_client and p.owner_id != client_profile_of(s, actor).id:
        raise NotFoundError("Pet not found.")
    return p


def _ensure_microchip_free(s: Session, p: Pet) -> None:
    if not p.microchip_number:
        return
    q = select(Pet.id).where(Pet.microchip_number == p.microchip_number)
    if p.id:
        q = q.where(Pet.id != p.id)
    if s.execute(q.limit(1)).first() is not None:
        raise ConflictError("Microchip number already registered.")


# =========================
# Queries
# =========================
def list_pets(
    actor: Actor,
    page: int = 1,
    limit: int = 20,
    owner_id: str | None = None,
    species: str | None = None,
    search: str | None = None,
) -> dict:
    page = max(page, 1)
    limit = min(max(limit, 1), 100)

    with db_session() as s:
        conds = [Pet.is_archived.is_(False)]
        if actor.is_client:
            conds.append(Pet.owner_id == client_profile_of(s, actor).id)
        elif owner_id:
            conds.append(Pet.owner_id == owner_id)
        if species:
            conds.append(func.lower(Pet.species) == species.strip().lower())
        if search:
            like = f"%{search.strip().lower()}%"
            conds.append(or_(func.lower(Pet.name).like(like), func.lower(Pet.breed).like(like)))

        total = int(s.scalar(select(func.count(Pet.id)).where(*conds)) or 0)
        q = (
            select(Pet)
            .options(selectinload(Pet.owner))
            .where(*conds)
            .order_by(Pet.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = [pet_flat(p) for p in s.scalars(q)]

    return {
        "data": rows,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


def get_pet(actor: Actor, pet_id: str) -> dict:
    with db_session() as s:
        return pet_flat(_get_visible_pet(s, actor, pet_id))


def pet_history(actor: Actor, pet_id: str) -> dict:
    """Everything the clinic recorded for a pet, newest first."""
    with db_session() as s:
        p = _get_visible_pet(s, actor, pet_id)

        appts = s.scalars(
            select(Appointment)
            .options(selectinload(Appointment.veterinarian))
            .where(Appointment.pet_id == p.id)
            .order_by(Appointment.scheduled_start.desc())
        ).all()
        triage = s.scalars(
            select(TriageRecord).where(TriageRecord.pet_id == p.id).order_by(TriageRecord.created_at.desc())
        ).all()
        records = s.scalars(
            select(MedicalRecord).where(MedicalRecord.pet_id == p.id).order_by(MedicalRecord.visit_date.desc())
        ).all()
        rx = s.scalars(
            select(Prescription).where(Prescription.pet_id == p.id).order_by(Prescription.created_at.desc())
        ).all()
        vax = s.scalars(
            select(Vaccination).where(Vaccination.pet_id == p.id).order_by(Vaccination.vaccination_date.desc())
        ).all()

        return {
            "pet": pet_flat(p),
            "appointments": [
                {
                    "id": a.id,
                    "appointment_number": a.appointment_number,
                    "date": a.scheduled_start.isoformat(),
                    "status": a.appointment_status.value,
                    "veterinarian_name": a.veterinarian.full_name,
                    "reason_for_visit": a.reason_for_visit,
                }
                for a in appts
            ],
            "vitals": [
                {
                    "weight": float(t.weight),
                    "temperature": float(t.temperature),
                    "heart_rate": t.heart_rate,
                    "recorded_at": t.created_at.isoformat(),
                }
                for t in triage
            ],
            "medical_records": [
                {"id": r.id, "record_number": r.record_number, "visit_date": r.visit_date.isoformat(),
                 "diagnosis": r.diagnosis, "treatment_plan": r.treatment_plan}
                for r in records
            ],
            "medications": [
                {"name": m.medication_name, "dosage": m.dosage, "frequency": m.frequency,
                 "duration": m.duration, "status": m.status.value, "start_date": m.created_at.date().isoformat()}
                for m in rx
            ],
            "vaccinations": [
                {"id": v.id, "vaccine_name": v.vaccine_name, "date_administered": v.vaccination_date.isoformat(),
                 "next_due_date": v.next_due_date.isoformat() if v.next_due_date else None}
                for v in vax
            ],
        }


# =========================
# Commands
# =========================
def create_pet(actor: Actor, fields: dict) -> dict:
    if not fields.get("name") or not fields.get("species") or not fields.get("date_of_birth"):
        raise ValidationError("Missing required fields: name, species, date_of_birth.")

    with db_session() as s:
        if actor.is_client:
            # clients always own what they register
            owner_id = client_profile_of(s, actor).id
        else:
            owner_id = fields.get("owner_id")
            if not owner_id or s.get(ClientProfile, owner_id) is None:
                raise ValidationError("A valid owner_id is required.")

        p = Pet(owner_id=owner_id, is_active=True)
        _apply(p, fields)
        s.add(p)
        _ensure_microchip_free(s, p)
        s.flush()
        s.refresh(p)
        logger.info("Pet %s created for owner %s", p.id, owner_id)
        return pet_flat(p)


def update_pet(actor: Actor, pet_id: str, fields: dict) -> dict:
    with db_session() as s:
        p = _get_visible_pet(s, actor, pet_id)
        if "owner_id" in fields and fields["owner_id"] and fields["owner_id"] != p.owner_id:
            if actor.is_client:
                raise PermissionDenied("Clients cannot transfer pets.")
            if s.get(ClientProfile, fields["owner_id"]) is None:
                raise ValidationError("Owner not found.")
            p.owner_id = fields["owner_id"]
        _apply(p, fields)
        _ensure_microchip_free(s, p)
        s.flush()
        s.refresh(p)
        return pet_flat(p)


def archive_pet(actor: Actor, pet_id: str) -> None:
    with db_session() as s:
        p = _get_visible_pet(s, actor, pet_id)
        p.is_archived = True
        p.is_active = False
        logger.info("Pet %s archived by %s", pet_id, actor.user_id)
