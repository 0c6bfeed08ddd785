from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth_models import AccountStatus, User, UserRole
from .auth_security import hash_password, verify_password
from .db import db_session
from .errors import ConflictError, NotFoundError, ValidationError
from .models import ClientProfile, CommunicationPreference
from .validation import (
    validate_city,
    validate_email,
    validate_name,
    validate_password,
    validate_phone,
    validate_zip,
)

logger = logging.getLogger(__name__)


def add_user(s: Session, email: str, password: str, role: UserRole) -> User:
    """Insert a user inside the caller's transaction (no commit)."""
    email = validate_email(email)
    validate_password(password)

    exists = s.execute(select(User.id).where(User.email == email)).first()
    if exists:
        raise ConflictError("Email already registered.")

    u = User(email=email, password_hash=hash_password(password), role=role, account_status=AccountStatus.ACTIVE)
    s.add(u)
    s.flush()
    return u


def register_client(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    phone: str,
    address_line1: str = "",
    address_line2: str | None = None,
    city: str = "",
    state: str = "",
    zip_code: str = "",
    country: str = "Philippines",
    communication_preference: str = "email",
) -> dict:
    """
    Signup of a pet owner: user row and client profile are written in the
    same transaction, so a failing profile leaves no orphan account.
    """
    first_name = validate_name(first_name, "first_name")
    last_name = validate_name(last_name, "last_name")
    phone = validate_phone(phone)
    city = validate_city(city)
    zip_code = validate_zip(zip_code)
    try:
        pref = CommunicationPreference(communication_preference)
    except ValueError:
        raise ValidationError("Invalid communication preference.") from None

    with db_session() as s:
        u = add_user(s, email, password, UserRole.CLIENT)
        cp = ClientProfile(
            user_id=u.id,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            address_line1=(address_line1 or "").strip(),
            address_line2=(address_line2 or "").strip() or None,
            city=city,
            state=(state or "").strip(),
            zip_code=zip_code,
            country=(country or "").strip() or "Philippines",
            communication_preference=pref,
        )
        s.add(cp)
        s.flush()
        logger.info("Client registered: user=%s profile=%s", u.id, cp.id)
        return {"user_id": u.id, "client_id": cp.id, "email": u.email}


def authenticate(email: str, password: str) -> User | None:
    email = (email or "").strip().lower()
    with db_session() as s:
        u = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not u or not u.is_active:
            return None
        if not verify_password(password, u.password_hash):
            return None
        u.last_login_at = datetime.now()
        return u


def get_user_by_id(user_id: str) -> User | None:
    with db_session() as s:
        return s.get(User, user_id)


def change_password(user_id: str, current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise ValidationError("Current password and new password are required.")
    validate_password(new_password)

    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            raise NotFoundError("User not found.")
        if not verify_password(current_password, u.password_hash):
            raise ValidationError("Current password is incorrect.")
        u.password_hash = hash_password(new_password)
        logger.info("Password changed for user %s", user_id)
