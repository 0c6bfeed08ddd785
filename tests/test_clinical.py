from __future__ import annotations

import re
from datetime import date, timedelta

import pytest

from conftest import at, next_clinic_day
from vetclinic.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from vetclinic.services import appointments, clinical, pets


@pytest.fixture
def checked_in(admin, client_actor, pet, book) -> dict:
    """A confirmed appointment whose patient has just arrived."""
    a = book(client_actor, pet["id"], at(next_clinic_day(), 10))
    appointments.change_status(admin, a["id"], "confirmed")
    return appointments.change_status(admin, a["id"], "in_progress")


def test_record_number_format():
    assert re.fullmatch(r"MR-\d{13}-[A-Z0-9]{9}", clinical.generate_record_number())


# =========================
# Triage
# =========================
def test_triage_queue_then_vitals(admin, checked_in, pet):
    queue = clinical.triage_queue()
    assert [r["appointment_id"] for r in queue] == [checked_in["id"]]
    assert queue[0]["owner_name"] == "Juan Dela Cruz"

    tr = clinical.record_triage(checked_in["id"], "12.5", "38.6", heart_rate=110, triage_level="urgent",
                                chief_complaint=" Limping ")
    assert tr["weight"] == 12.5
    assert tr["triage_level"] == "urgent"
    assert tr["chief_complaint"] == "Limping"

    assert clinical.triage_queue() == []
    assert pets.get_pet(admin, pet["id"])["weight"] == 12.5

    with pytest.raises(ConflictError, match="already recorded"):
        clinical.record_triage(checked_in["id"], "12.5", "38.6")


def test_triage_validation(client_actor, pet, book, checked_in):
    with pytest.raises(ValidationError, match="Weight"):
        clinical.record_triage(checked_in["id"], "-1", "38.6")
    with pytest.raises(ValidationError, match="Temperature"):
        clinical.record_triage(checked_in["id"], "10", "hot")
    with pytest.raises(ValidationError):
        clinical.record_triage(checked_in["id"], "10", "38", triage_level="meh")
    with pytest.raises(ValidationError, match="Pet does not match"):
        clinical.record_triage(checked_in["id"], "10", "38", pet_id="someone-else")
    with pytest.raises(NotFoundError):
        clinical.record_triage("missing", "10", "38")

    waiting = book(client_actor, pet["id"], at(next_clinic_day(), 14))
    with pytest.raises(ConflictError, match="checked in"):
        clinical.record_triage(waiting["id"], "10", "38")


# =========================
# Consultation
# =========================
def test_consultation_completes_appointment(vet, admin, checked_in, pet):
    clinical.record_triage(checked_in["id"], "10", "38.5", chief_complaint="Vomiting")
    queue = clinical.consultation_queue()
    assert [r["appointment_id"] for r in queue] == [checked_in["id"]]
    assert queue[0]["triage"]["chief_complaint"] == "Vomiting"

    rec = clinical.complete_consultation(
        vet, checked_in["id"], "Gastritis",
        subjective="Vomiting since last night", objective="Mild dehydration", plan="Bland diet",
    )
    assert rec["diagnosis"] == "Gastritis"
    assert rec["record_number"].startswith("MR-")

    assert appointments.get_appointment(admin, checked_in["id"])["appointment_status"] == "completed"
    assert clinical.consultation_queue() == []
    assert [r["id"] for r in clinical.list_medical_records(pet["id"])] == [rec["id"]]

    with pytest.raises(ConflictError):
        clinical.complete_consultation(vet, checked_in["id"], "Again")


def test_consultation_needs_vet_and_assessment(admin, vet, checked_in):
    with pytest.raises(ValidationError, match="Assessment"):
        clinical.complete_consultation(vet, checked_in["id"], "  ")
    with pytest.raises(PermissionDenied):
        clinical.complete_consultation(admin, checked_in["id"], "Healthy")
    assert appointments.get_appointment(admin, checked_in["id"])["appointment_status"] == "in_progress"


# =========================
# Prescriptions
# =========================
def test_prescriptions(vet, admin, checked_in, client_actor, pet, book):
    rx = clinical.issue_prescription(vet, checked_in["id"], "Amoxicillin", "250mg", "BID", duration="7 days")
    assert rx["status"] == "pending"
    assert [p["id"] for p in clinical.list_prescriptions(pet_id=pet["id"])] == [rx["id"]]

    pending = book(client_actor, pet["id"], at(next_clinic_day(), 15))
    with pytest.raises(PermissionDenied):
        clinical.issue_prescription(vet, pending["id"], "Amoxicillin", "250mg", "BID")
    with pytest.raises(ValidationError):
        clinical.issue_prescription(vet, checked_in["id"], "", "250mg", "BID")

    with pytest.raises(PermissionDenied):
        clinical.delete_prescription(admin, rx["id"])
    clinical.delete_prescription(vet, rx["id"])
    assert clinical.list_prescriptions(appointment_id=checked_in["id"]) == []
    with pytest.raises(NotFoundError):
        clinical.delete_prescription(vet, rx["id"])


# =========================
# Vaccinations
# =========================
def test_vaccinations_and_due_list(vet, admin, pet):
    today = date(2030, 3, 1)
    v = clinical.create_vaccination(vet, pet["id"], "Rabies", "2030-02-15", next_due_date="2030-03-20", batch_number="RB-77")
    assert v["pet_name"] == "Bantay"
    assert v["veterinarian_id"] is not None

    later = clinical.create_vaccination(admin, pet["id"], "DHPP", today, next_due_date=today + timedelta(days=90))
    assert later["veterinarian_id"] is None

    due = clinical.vaccinations_due(30, today=today)
    assert [x["vaccine_name"] for x in due] == ["Rabies"]
    assert len(clinical.list_vaccinations(pet["id"])) == 2

    with pytest.raises(ValidationError, match="cannot be before"):
        clinical.create_vaccination(vet, pet["id"], "Rabies", "2030-02-15", next_due_date="2030-01-01")
    with pytest.raises(ValidationError):
        clinical.create_vaccination(vet, pet["id"], "Rabies", "15/02/2030")
    with pytest.raises(NotFoundError):
        clinical.create_vaccination(vet, "missing", "Rabies", today)
