from __future__ import annotations

import pytest
from sqlalchemy import select

from vetclinic.auth_models import User
from vetclinic.auth_service import authenticate
from vetclinic.db import db_session
from vetclinic.errors import ConflictError, NotFoundError, ValidationError
from vetclinic.services import appointments, employees

PASSWORD = "Staff#2024"


def new_vet(email="dr.reyes@example.com", license_number="PRC-VET-0002", **kw) -> dict:
    return employees.create_employee(
        "veterinarian", email, PASSWORD, "Ana", "Reyes", "09175550000", license_number=license_number, **kw
    )


def test_seeded_staff_listed():
    rows = employees.list_employees()
    assert {r["role"] for r in rows} == {"admin", "veterinarian"}
    assert [r["license_number"] for r in employees.list_employees(role="veterinarian")] == ["PRC-VET-0001"]
    assert [r["employee_id"] for r in employees.list_employees(role="admin")] == ["ADM-0001"]
    with pytest.raises(ValidationError):
        employees.list_employees(role="client")


def test_create_vet_and_admin():
    vet = new_vet(specializations=["Surgery"], consultation_fee=750)
    assert vet["role"] == "veterinarian"
    assert vet["specializations"] == ["Surgery"]
    assert vet["employment_status"] == "full_time"

    adm = employees.create_employee(
        "admin", "frontdesk@example.com", PASSWORD, "Lito", "Garcia", "09170000001",
        employee_id="ADM-0002", position="Receptionist",
    )
    assert adm["position"] == "Receptionist"
    assert adm["department"] == "General"

    assert [r["email"] for r in employees.list_employees(search="reyes")] == ["dr.reyes@example.com"]
    assert len(employees.list_employees(search="adm-000")) == 2


def test_required_identifiers():
    with pytest.raises(ValidationError, match="License number"):
        employees.create_employee("veterinarian", "a@example.com", PASSWORD, "Ana", "Reyes", "09175550000")
    with pytest.raises(ValidationError, match="Employee ID"):
        employees.create_employee("admin", "b@example.com", PASSWORD, "Lito", "Garcia", "09170000001")
    with pytest.raises(ValidationError):
        employees.create_employee("client", "c@example.com", PASSWORD, "Lito", "Garcia", "09170000001")


def test_duplicate_license_leaves_no_account_behind():
    with pytest.raises(ConflictError, match="License number"):
        new_vet(email="copycat@example.com", license_number="PRC-VET-0001")
    with db_session() as s:
        assert s.execute(select(User).where(User.email == "copycat@example.com")).first() is None

    new_vet()
    with pytest.raises(ConflictError, match="Email"):
        new_vet(license_number="PRC-VET-0003")


def test_update_employee():
    vet = new_vet()
    row = employees.update_employee(vet["user_id"], {"phone": "0917 555 1234", "employment_status": "part_time"})
    assert row["phone"] == "09175551234"
    assert row["employment_status"] == "part_time"

    with pytest.raises(ValidationError):
        employees.update_employee(vet["user_id"], {"employment_status": "gone"})
    with pytest.raises(NotFoundError):
        employees.update_employee("missing", {"phone": "09175551234"})


def test_deactivate_vet(admin):
    vet = new_vet()
    employees.deactivate_employee(vet["user_id"], acting_user_id=admin.user_id)

    assert all(r["user_id"] != vet["user_id"] for r in employees.list_employees())
    assert all(v["id"] != vet["id"] for v in appointments.list_veterinarians())
    with db_session() as s:
        u = s.get(User, vet["user_id"])
        assert u.account_status.value == "suspended"
        assert u.deleted_at is not None


def test_reactivate_deactivated_vet(admin):
    vet = new_vet()
    employees.deactivate_employee(vet["user_id"], acting_user_id=admin.user_id)
    assert authenticate("dr.reyes@example.com", PASSWORD) is None

    row = employees.update_employee(vet["user_id"], {"account_status": "active"})
    assert row["account_status"] == "active"
    assert row["employment_status"] == "full_time"

    assert any(r["user_id"] == vet["user_id"] for r in employees.list_employees())
    assert any(v["id"] == vet["id"] for v in appointments.list_veterinarians())
    assert authenticate("dr.reyes@example.com", PASSWORD) is not None
    with db_session() as s:
        u = s.get(User, vet["user_id"])
        assert u.deleted_at is None


def test_reactivation_keeps_requested_employment_status(admin):
    vet = new_vet()
    employees.deactivate_employee(vet["user_id"], acting_user_id=admin.user_id)
    row = employees.update_employee(vet["user_id"], {"account_status": "active", "employment_status": "part_time"})
    assert row["employment_status"] == "part_time"


def test_cannot_deactivate_self(admin):
    with pytest.raises(ValidationError, match="own account"):
        employees.deactivate_employee(admin.user_id, acting_user_id=admin.user_id)
