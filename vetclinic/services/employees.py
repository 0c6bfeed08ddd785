from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select

from ..auth_models import AccountStatus, User, UserRole
from ..auth_service import add_user
from ..db import db_session
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import AdminProfile, EmploymentStatus, VeterinarianProfile
from ..validation import validate_name, validate_phone

logger = logging.getLogger(__name__)

STAFF_ROLES = (UserRole.ADMIN, UserRole.VETERINARIAN)


def _vet_row(vp: VeterinarianProfile, u: User) -> dict:
    return {
        "id": vp.id,
        "user_id": u.id,
        "email": u.email,
        "role": UserRole.VETERINARIAN.value,
        "first_name": vp.first_name,
        "last_name": vp.last_name,
        "phone": vp.phone,
        "license_number": vp.license_number,
        "employee_id": None,
        "position": "Veterinarian",
        "department": "Medical",
        "specializations": list(vp.specializations or []),
        "employment_status": vp.employment_status.value,
        "account_status": u.account_status.value,
        "hire_date": vp.hire_date.isoformat(),
    }


def _admin_row(ap: AdminProfile, u: User) -> dict:
    return {
        "id": ap.id,
        "user_id": u.id,
        "email": u.email,
        "role": UserRole.ADMIN.value,
        "first_name": ap.first_name,
        "last_name": ap.last_name,
        "phone": ap.phone,
        "license_number": None,
        "employee_id": ap.employee_id,
        "position": ap.position,
        "department": ap.department,
        "access_level": ap.access_level,
        "account_status": u.account_status.value,
        "hire_date": ap.hire_date.isoformat(),
    }


def _parse_role(role: str) -> UserRole:
    try:
        r = UserRole(role)
    except ValueError:
        r = None
    if r not in STAFF_ROLES:
        raise ValidationError("Role must be admin or veterinarian.")
    return r


def list_employees(role: str | None = None, search: str | None = None) -> list[dict]:
    """Admins and vets merged, newest hires first, soft-deleted accounts excluded."""
    wanted = _parse_role(role) if role and role != "all" else None
    rows: list[dict] = []

    with db_session() as s:
        if wanted in (None, UserRole.ADMIN):
            q = select(AdminProfile, User).join(User, User.id == AdminProfile.user_id).where(User.deleted_at.is_(None))
            rows.extend(_admin_row(ap, u) for ap, u in s.execute(q).all())
        if wanted in (None, UserRole.VETERINARIAN):
            q = (
                select(VeterinarianProfile, User)
                .join(User, User.id == VeterinarianProfile.user_id)
                .where(User.deleted_at.is_(None))
            )
            rows.extend(_vet_row(vp, u) for vp, u in s.execute(q).all())

    if search:
        needle = search.strip().lower()
        rows = [
            r for r in rows
            if needle in f"{r['first_name']} {r['last_name']}".lower()
            or needle in r["email"]
            or needle in (r["employee_id"] or "").lower()
            or needle in (r["license_number"] or "").lower()
        ]
    rows.sort(key=lambda r: r["hire_date"], reverse=True)
    return rows


def create_employee(
    role: str,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    phone: str,
    license_number: str | None = None,
    employee_id: str | None = None,
    position: str | None = None,
    department: str | None = None,
    specializations: list[str] | None = None,
    consultation_fee: Decimal | float | None = None,
    employment_status: str = "full_time",
    hire_date: date | None = None,
) -> dict:
    """User account and profile in one transaction; a failing profile leaves no account behind."""
    r = _parse_role(role)
    first_name = validate_name(first_name, "first_name")
    last_name = validate_name(last_name, "last_name")
    phone = validate_phone(phone)

    if r == UserRole.VETERINARIAN and not (license_number or "").strip():
        raise ValidationError("License number is required for veterinarians.")
    if r == UserRole.ADMIN and not (employee_id or "").strip():
        raise ValidationError("Employee ID is required for admin staff.")

    with db_session() as s:
        u = add_user(s, email, password, r)

        if r == UserRole.VETERINARIAN:
            license_number = license_number.strip()
            if s.execute(select(VeterinarianProfile.id).where(VeterinarianProfile.license_number == license_number)).first():
                raise ConflictError("License number already registered.")
            try:
                status = EmploymentStatus(employment_status)
            except ValueError:
                raise ValidationError(f"Invalid employment status: {employment_status}") from None
            prof = VeterinarianProfile(
                user_id=u.id,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                license_number=license_number,
                specializations=list(specializations or []),
                consultation_fee=Decimal(str(consultation_fee or 0)),
                employment_status=status,
                hire_date=hire_date or date.today(),
            )
        else:
            employee_id = employee_id.strip()
            if s.execute(select(AdminProfile.id).where(AdminProfile.employee_id == employee_id)).first():
                raise ConflictError("Employee ID already in use.")
            prof = AdminProfile(
                user_id=u.id,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                employee_id=employee_id,
                position=(position or "").strip() or "Staff",
                department=(department or "").strip() or "General",
                hire_date=hire_date or date.today(),
            )
        s.add(prof)
        s.flush()
        logger.info("Employee created: %s (%s)", u.email, r.value)
        return _vet_row(prof, u) if r == UserRole.VETERINARIAN else _admin_row(prof, u)


def _find(s, user_id: str) -> tuple[User, AdminProfile | VeterinarianProfile]:
    u = s.get(User, user_id)
    if u is None or u.role not in STAFF_ROLES:
        raise NotFoundError("Employee not found.")
    model = VeterinarianProfile if u.role == UserRole.VETERINARIAN else AdminProfile
    prof = s.execute(select(model).where(model.user_id == u.id)).scalar_one_or_none()
    if prof is None:
        raise NotFoundError("Employee profile not found.")
    return u, prof


def update_employee(user_id: str, fields: dict) -> dict:
    with db_session() as s:
        u, prof = _find(s, user_id)

        if "first_name" in fields:
            prof.first_name = validate_name(fields["first_name"], "first_name")
        if "last_name" in fields:
            prof.last_name = validate_name(fields["last_name"], "last_name")
        if "phone" in fields:
            prof.phone = validate_phone(fields["phone"])
        if fields.get("account_status"):
            try:
                u.account_status = AccountStatus(fields["account_status"])
            except ValueError:
                raise ValidationError(f"Invalid account status: {fields['account_status']}") from None
            if u.account_status == AccountStatus.ACTIVE and u.deleted_at is not None:
                # undo deactivate_employee; an explicit employment_status below still wins
                u.deleted_at = None
                if isinstance(prof, VeterinarianProfile) and prof.employment_status == EmploymentStatus.TERMINATED:
                    prof.employment_status = EmploymentStatus.FULL_TIME
                    prof.termination_date = None
                logger.info("Employee %s reactivated", u.email)

        if isinstance(prof, VeterinarianProfile):
            if fields.get("specializations") is not None:
                prof.specializations = list(fields["specializations"])
            if fields.get("consultation_fee") is not None:
                prof.consultation_fee = Decimal(str(fields["consultation_fee"]))
            if fields.get("employment_status"):
                try:
                    prof.employment_status = EmploymentStatus(fields["employment_status"])
                except ValueError:
                    raise ValidationError(f"Invalid employment status: {fields['employment_status']}") from None
        else:
            for key in ("position", "department"):
                if fields.get(key):
                    setattr(prof, key, str(fields[key]).strip())
            if fields.get("access_level") is not None:
                prof.access_level = int(fields["access_level"])

        s.flush()
        return _vet_row(prof, u) if isinstance(prof, VeterinarianProfile) else _admin_row(prof, u)


def deactivate_employee(user_id: str, acting_user_id: str | None = None) -> None:
    """Soft delete: the account is suspended and stamped, the rows stay for history."""
    if acting_user_id and acting_user_id == user_id:
        raise ValidationError("You cannot deactivate your own account.")

    with db_session() as s:
        u, prof = _find(s, user_id)
        u.account_status = AccountStatus.SUSPENDED
        u.deleted_at = datetime.now()
        if isinstance(prof, VeterinarianProfile):
            prof.employment_status = EmploymentStatus.TERMINATED
            prof.termination_date = date.today()
        logger.info("Employee %s deactivated", u.email)
