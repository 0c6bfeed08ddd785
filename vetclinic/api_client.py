"""
HTTP helpers used by the Streamlit dashboard.

JWT inspection here is for the UI only (role-based tabs, expiry banner):
the signature is NOT verified, the API does that on every request.
"""
from __future__ import annotations

import base64
import json
from datetime import datetime, timezone
from typing import Any

import requests

from . import config


class ApiError(RuntimeError):
    """Non-2xx answer other than 401; ``detail`` is the API's message."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


# =========================
# JWT helpers (no signature check)
# =========================
def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def jwt_payload(token: str) -> dict:
    parts = (token or "").split(".")
    if len(parts) != 3:
        return {}
    try:
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def jwt_is_expired(token: str, now: datetime | None = None, skew_seconds: int = 5) -> bool:
    """Tokens without a readable ``exp`` are left to the server to reject."""
    exp = jwt_payload(token).get("exp")
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        return False

    now = now or datetime.now(tz=timezone.utc)
    return int(now.timestamp()) >= exp_int - skew_seconds


def jwt_role(token: str) -> str | None:
    return jwt_payload(token).get("role")


def jwt_email(token: str) -> str:
    p = jwt_payload(token)
    return str(p.get("email") or p.get("sub") or "user")


# =========================
# HTTP client (Bearer token)
# =========================
def _headers(token: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def _unwrap(r: requests.Response) -> Any:
    if r.status_code == 401:
        raise PermissionError("401 Unauthorized (invalid or expired token, or the backend restarted).")
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        raise ApiError(r.status_code, str(detail))
    return r.json()


def _request(method: str, path: str, token: str | None = None, **kwargs) -> Any:
    r = requests.request(
        method,
        f"{config.API_BASE}{path}",
        headers=_headers(token),
        timeout=config.HTTP_TIMEOUT_SECONDS,
        **kwargs,
    )
    return _unwrap(r)


def api_get(path: str, token: str | None = None, params: dict | None = None) -> Any:
    return _request("GET", path, token, params=params)


def api_post(path: str, payload: dict, token: str | None = None) -> Any:
    return _request("POST", path, token, json=payload)


def api_patch(path: str, payload: dict, token: str | None = None) -> Any:
    return _request("PATCH", path, token, json=payload)


def api_delete(path: str, token: str | None = None) -> Any:
    return _request("DELETE", path, token)


def api_login(email: str, password: str) -> str:
    # OAuth2PasswordRequestForm => x-www-form-urlencoded
    r = requests.post(
        f"{config.API_BASE}/api/auth/login",
        data={"username": email, "password": password},
        timeout=config.HTTP_TIMEOUT_SECONDS,
    )
    return _unwrap(r)["access_token"]
