"""Who is calling a use case, and what that caller may see."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth_models import UserRole
from ..errors import PermissionDenied
from ..models import ClientProfile, VeterinarianProfile


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: UserRole

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_vet(self) -> bool:
        return self.role == UserRole.VETERINARIAN

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.VETERINARIAN)


def client_profile_of(s: Session, actor: Actor) -> ClientProfile:
    cp = s.execute(select(ClientProfile).where(ClientProfile.user_id == actor.user_id)).scalar_one_or_none()
    if cp is None:
        raise PermissionDenied("No client profile for this account.")
    return cp


def vet_profile_of(s: Session, actor: Actor) -> VeterinarianProfile:
    vp = s.execute(
        select(VeterinarianProfile).where(VeterinarianProfile.user_id == actor.user_id)
    ).scalar_one_or_none()
    if vp is None:
        raise PermissionDenied("No veterinarian profile for this account.")
    return vp
