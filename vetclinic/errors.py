"""Domain exceptions. The API maps each class to an HTTP status code."""
from __future__ import annotations


class VetClinicError(ValueError):
    status_code = 400


class ValidationError(VetClinicError):
    status_code = 400


class AuthenticationError(VetClinicError):
    status_code = 401


class PermissionDenied(VetClinicError):
    status_code = 403


class NotFoundError(VetClinicError):
    status_code = 404


class ConflictError(VetClinicError):
    status_code = 409
