from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from ..auth_models import User
from ..auth_security import create_access_token
from ..auth_service import authenticate, change_password, register_client
from ..deps import get_actor, get_current_user
from ..schemas import ChangePasswordIn, MeOut, ProfileUpdateIn, SignupIn, TokenOut, changes
from ..services import clients
from ..services.access import Actor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/auth/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: SignupIn) -> dict[str, Any]:
    return {"ok": True, **register_client(**payload.model_dump())}


@router.post("/auth/login", response_model=TokenOut)
def login(form: OAuth2PasswordRequestForm = Depends()) -> TokenOut:
    # the form field is called "username" by OAuth2; it carries the email
    u = authenticate(form.username, form.password)
    if not u:
        logger.warning("Failed login for %s", form.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    token = create_access_token(user_id=u.id, role=u.role.value, email=u.email)
    return TokenOut(access_token=token, role=u.role.value)


@router.get("/me", response_model=MeOut)
def me(user: User = Depends(get_current_user)) -> MeOut:
    return MeOut(
        id=user.id,
        email=user.email,
        role=user.role.value,
        account_status=user.account_status.value,
        is_active=user.is_active,
    )


@router.get("/me/profile")
def my_profile(actor: Actor = Depends(get_actor)) -> dict:
    return clients.get_own_profile(actor)


@router.put("/me/profile")
def update_my_profile(payload: ProfileUpdateIn, actor: Actor = Depends(get_actor)) -> dict:
    return clients.update_own_profile(actor, changes(payload))


@router.post("/settings/change-password")
def api_change_password(payload: ChangePasswordIn, actor: Actor = Depends(get_actor)) -> dict[str, Any]:
    change_password(actor.user_id, payload.current_password, payload.new_password)
    return {"ok": True, "message": "Password updated successfully"}
