from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from ..auth_models import User, UserRole
from ..db import db_session
from ..errors import NotFoundError, PermissionDenied, ValidationError
from ..models import AdminProfile, Appointment, ClientProfile, CommunicationPreference, Pet, VeterinarianProfile
from ..validation import validate_city, validate_name, validate_phone, validate_zip
from .access import Actor
from .pets import pet_flat

logger = logging.getLogger(__name__)


def client_flat(cp: ClientProfile, email: str | None = None) -> dict:
    return {
        "id": cp.id,
        "user_id": cp.user_id,
        "first_name": cp.first_name,
        "last_name": cp.last_name,
        "email": email,
        "phone": cp.phone,
        "alternate_phone": cp.alternate_phone,
        "address_line1": cp.address_line1,
        "address_line2": cp.address_line2,
        "city": cp.city,
        "state": cp.state,
        "zip_code": cp.zip_code,
        "country": cp.country,
        "communication_preference": cp.communication_preference.value,
        "registration_date": cp.registration_date.isoformat(),
        "notes": cp.notes,
    }


def _apply_client_fields(cp: ClientProfile, fields: dict, staff: bool) -> None:
    if "first_name" in fields:
        cp.first_name = validate_name(fields["first_name"], "first_name")
    if "last_name" in fields:
        cp.last_name = validate_name(fields["last_name"], "last_name")
    if "phone" in fields:
        cp.phone = validate_phone(fields["phone"])
    if "alternate_phone" in fields:
        cp.alternate_phone = validate_phone(fields["alternate_phone"], "alternate_phone", required=False)
    if "city" in fields:
        cp.city = validate_city(fields["city"])
    if "zip_code" in fields:
        cp.zip_code = validate_zip(fields["zip_code"])
    for key in ("address_line1", "address_line2", "state", "country"):
        if key in fields:
            setattr(cp, key, (fields[key] or "").strip())
    if "communication_preference" in fields:
        try:
            cp.communication_preference = CommunicationPreference(fields["communication_preference"])
        except ValueError:
            raise ValidationError("Invalid communication preference.") from None
    # notes are clinic-internal
    if staff and "notes" in fields:
        cp.notes = fields["notes"]


def list_clients(search: str | None = None) -> list[dict]:
    with db_session() as s:
        pet_count = (
            select(Pet.owner_id, func.count(Pet.id).label("pets"))
            .where(Pet.is_archived.is_(False))
            .group_by(Pet.owner_id)
            .subquery()
        )
        q = (
            select(ClientProfile, User.email, func.coalesce(pet_count.c.pets, 0))
            .join(User, User.id == ClientProfile.user_id)
            .outerjoin(pet_count, pet_count.c.owner_id == ClientProfile.id)
            .order_by(ClientProfile.last_name, ClientProfile.first_name)
        )
        if search:
            like = f"%{search.strip().lower()}%"
            q = q.where(
                or_(
                    func.lower(ClientProfile.first_name).like(like),
                    func.lower(ClientProfile.last_name).like(like),
                    ClientProfile.phone.like(like),
                    User.email.like(like),
                )
            )
        out = []
        for cp, email, pets in s.execute(q).all():
            row = client_flat(cp, email)
            row["pet_count"] = int(pets)
            out.append(row)
        return out


def get_client(client_id: str) -> dict:
    with db_session() as s:
        cp = s.get(ClientProfile, client_id)
        if cp is None:
            raise NotFoundError("Client not found.")
        email = s.scalar(select(User.email).where(User.id == cp.user_id))

        pets = s.scalars(
            select(Pet).where(Pet.owner_id == cp.id, Pet.is_archived.is_(False)).order_by(Pet.name)
        ).all()
        appts = s.scalars(
            select(Appointment)
            .options(selectinload(Appointment.pet))
            .join(Pet, Pet.id == Appointment.pet_id)
            .where(Pet.owner_id == cp.id)
            .order_by(Appointment.scheduled_start.desc())
            .limit(10)
        ).all()

        d = client_flat(cp, email)
        d["pets"] = [pet_flat(p, with_owner=False) for p in pets]
        d["recent_appointments"] = [
            {
                "id": a.id,
                "appointment_number": a.appointment_number,
                "pet_name": a.pet.name,
                "scheduled_start": a.scheduled_start.isoformat(),
                "appointment_status": a.appointment_status.value,
            }
            for a in appts
        ]
        return d


def update_client(actor: Actor, client_id: str, fields: dict) -> dict:
    with db_session() as s:
        cp = s.get(ClientProfile, client_id)
        if cp is None:
            raise NotFoundError("Client not found.")
        if actor.is_client and cp.user_id != actor.user_id:
            raise PermissionDenied("You can only edit your own profile.")
        if actor.is_vet:
            raise PermissionDenied("Veterinarians cannot edit client profiles.")
        _apply_client_fields(cp, fields, staff=actor.is_admin)
        s.flush()
        email = s.scalar(select(User.email).where(User.id == cp.user_id))
        logger.info("Client %s updated by %s", client_id, actor.user_id)
        return client_flat(cp, email)


# =========================
# Own profile (settings page)
# =========================
_PROFILE_MODELS = {
    UserRole.CLIENT: ClientProfile,
    UserRole.VETERINARIAN: VeterinarianProfile,
    UserRole.ADMIN: AdminProfile,
}


def get_own_profile(actor: Actor) -> dict:
    with db_session() as s:
        u = s.get(User, actor.user_id)
        if u is None:
            raise NotFoundError("User not found.")
        model = _PROFILE_MODELS[actor.role]
        prof = s.execute(select(model).where(model.user_id == actor.user_id)).scalar_one_or_none()

        d = {"user_id": u.id, "email": u.email, "role": u.role.value, "profile": None}
        if isinstance(prof, ClientProfile):
            d["profile"] = client_flat(prof, u.email)
        elif prof is not None:
            d["profile"] = {
                "id": prof.id,
                "first_name": prof.first_name,
                "last_name": prof.last_name,
                "phone": prof.phone,
            }
        return d


def update_own_profile(actor: Actor, fields: dict) -> dict:
    with db_session() as s:
        model = _PROFILE_MODELS[actor.role]
        prof = s.execute(select(model).where(model.user_id == actor.user_id)).scalar_one_or_none()
        if prof is None:
            raise NotFoundError("Profile not found.")
        if isinstance(prof, ClientProfile):
            _apply_client_fields(prof, fields, staff=False)
        else:
            if "first_name" in fields:
                prof.first_name = validate_name(fields["first_name"], "first_name")
            if "last_name" in fields:
                prof.last_name = validate_name(fields["last_name"], "last_name")
            if "phone" in fields:
                prof.phone = validate_phone(fields["phone"])
    return get_own_profile(actor)
