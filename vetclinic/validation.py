"""
Field rules shared by signup, profile editing and employee forms.

Every ``validate_*`` function returns the normalised value or raises
:class:`~vetclinic.errors.ValidationError` naming the offending field.
"""
from __future__ import annotations

import re
from datetime import date

from .errors import ValidationError

NAME_RE = re.compile(r"^[a-zA-ZñÑ\s'-]+$")
CITY_RE = re.compile(r"^[a-zA-ZñÑ\s.]+$")
E164_RE = re.compile(r"^\+?[1-9]\d{1,14}$")
PH_MOBILE_RE = re.compile(r"^(\+63|0)\d{10}$")
PH_ZIP_RE = re.compile(r"^\d{4}$")
US_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PASSWORD_MIN_LENGTH = 8
_PASSWORD_CLASSES = (
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[0-9]"), "one number"),
    (re.compile(r"[^A-Za-z0-9]"), "one special character"),
)


def _label(field: str) -> str:
    return field.replace("_", " ").capitalize()


def validate_name(value: str | None, field: str = "name") -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{_label(field)} is required.")
    if len(value) > 50:
        raise ValidationError(f"{_label(field)} must be at most 50 characters.")
    if not NAME_RE.match(value):
        raise ValidationError(f"{_label(field)} contains invalid characters.")
    return value


def validate_phone(value: str | None, field: str = "phone", required: bool = True) -> str | None:
    raw = (value or "").strip()
    if not raw:
        if required:
            raise ValidationError(f"{_label(field)} is required.")
        return None
    compact = re.sub(r"[\s()-]", "", raw)
    if PH_MOBILE_RE.match(compact) or E164_RE.match(compact):
        return compact
    raise ValidationError(f"Invalid {field.replace('_', ' ')} number.")


def validate_zip(value: str | None, required: bool = False) -> str:
    value = (value or "").strip()
    if not value:
        if required:
            raise ValidationError("ZIP code is required.")
        return ""
    if PH_ZIP_RE.match(value) or US_ZIP_RE.match(value):
        return value
    raise ValidationError("Invalid ZIP code.")


def validate_city(value: str | None) -> str:
    value = (value or "").strip()
    if value and not CITY_RE.match(value):
        raise ValidationError("City contains invalid characters.")
    return value


def validate_email(value: str | None) -> str:
    value = (value or "").strip().lower()
    if not value:
        raise ValidationError("Email is required.")
    if not EMAIL_RE.match(value):
        raise ValidationError("Invalid email address.")
    return value


def password_problems(password: str) -> list[str]:
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"at least {PASSWORD_MIN_LENGTH} characters")
    problems.extend(label for rx, label in _PASSWORD_CLASSES if not rx.search(password))
    return problems


def validate_password(password: str | None) -> str:
    password = password or ""
    problems = password_problems(password)
    if problems:
        raise ValidationError("Password must contain " + ", ".join(problems) + ".")
    return password


def password_strength(password: str) -> int:
    """0-5 score: one point for length, one per character class."""
    score = 1 if len(password) >= PASSWORD_MIN_LENGTH else 0
    return score + sum(1 for rx, _ in _PASSWORD_CLASSES if rx.search(password))


def validate_birth_date(value: date | None, today: date | None = None) -> date | None:
    if value is None:
        return None
    if value > (today or date.today()):
        raise ValidationError("Date of birth cannot be in the future.")
    return value
