from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class UserRole(enum.Enum):
    CLIENT = "client"
    VETERINARIAN = "veterinarian"
    ADMIN = "admin"


class AccountStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


def _values(enum_cls):
    return [m.value for m in enum_cls]


class User(Base):
    """
    Login account.
    - unique, lower-cased email
    - bcrypt password_hash (passlib)
    - the role decides which dashboard / endpoints are reachable
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=_values, native_enum=False), nullable=False
    )
    account_status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus, values_callable=_values, native_enum=False),
        default=AccountStatus.ACTIVE,
        nullable=False,
    )
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def is_active(self) -> bool:
        return self.account_status == AccountStatus.ACTIVE and self.deleted_at is None

    def __repr__(self) -> str:
        return f"User({self.email}, {self.role.value})"
