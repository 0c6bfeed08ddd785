"""FastAPI dependencies: bearer token -> user -> role checks."""
from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .auth_models import User, UserRole
from .auth_security import read_claims
from .auth_service import get_user_by_id
from .services.access import Actor

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    # stray quotes/whitespace from copy-pasted tokens
    token = token.strip().strip('"').strip("'")

    claims = read_claims(token)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    u = get_user_by_id(claims.user_id)
    if not u or not u.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user")
    return u


def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor(user_id=user.id, role=user.role)


def require_roles(*roles: UserRole):
    """Dependency factory: 403 unless the caller has one of ``roles``."""
    def _check(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return actor

    return _check


admin_only = require_roles(UserRole.ADMIN)
staff_only = require_roles(UserRole.ADMIN, UserRole.VETERINARIAN)
vet_only = require_roles(UserRole.VETERINARIAN)
