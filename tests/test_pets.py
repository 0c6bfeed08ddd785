from __future__ import annotations

import pytest

from conftest import at, next_clinic_day
from vetclinic.db import db_session
from vetclinic.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from vetclinic.models import Pet
from vetclinic.services import appointments, clinical, pets


# =========================
# Registration
# =========================
def test_client_always_owns_what_they_register(client_actor, make_client, make_pet):
    _, other = make_client("other@example.com")
    p = make_pet(client_actor, owner_id=other["client_id"], weight="8.40", microchip_number=" 985112 ")
    assert p["owner_id"] != other["client_id"]
    assert p["owner"]["first_name"] == "Juan"
    assert p["weight"] == 8.4
    assert p["microchip_number"] == "985112"
    assert p["gender"] == "unknown"


def test_required_fields_and_weight(client_actor, make_pet):
    with pytest.raises(ValidationError, match="Missing required fields"):
        pets.create_pet(client_actor, {"name": "Bantay", "species": "Dog"})
    with pytest.raises(ValidationError, match="greater than zero"):
        make_pet(client_actor, weight="0")
    with pytest.raises(ValidationError, match="greater than zero"):
        make_pet(client_actor, weight=-2)
    with pytest.raises(ValidationError, match="must be a number"):
        make_pet(client_actor, weight="heavy")
    assert pets.list_pets(client_actor)["total"] == 0


def test_staff_must_name_a_real_owner(admin, make_client, make_pet):
    with pytest.raises(ValidationError, match="valid owner_id"):
        make_pet(admin)
    with pytest.raises(ValidationError, match="valid owner_id"):
        make_pet(admin, owner_id="nobody")

    _, res = make_client()
    p = make_pet(admin, owner_id=res["client_id"])
    assert p["owner_id"] == res["client_id"]


def test_microchip_must_be_unique(client_actor, make_client, make_pet):
    first = make_pet(client_actor, microchip_number="985112")
    stranger, _ = make_client("stranger@example.com")
    with pytest.raises(ConflictError, match="Microchip"):
        make_pet(stranger, name="Mingming", species="Cat", microchip_number="985112")

    second = make_pet(client_actor, name="Brownie")
    with pytest.raises(ConflictError, match="Microchip"):
        pets.update_pet(client_actor, second["id"], {"microchip_number": "985112"})

    # saving a pet with its own chip is not a clash
    same = pets.update_pet(client_actor, first["id"], {"microchip_number": "985112", "color": "Brown"})
    assert same["color"] == "Brown"


# =========================
# Visibility and ownership
# =========================
def test_other_clients_pets_are_hidden(make_client, pet):
    stranger, _ = make_client("stranger@example.com")
    with pytest.raises(NotFoundError):
        pets.get_pet(stranger, pet["id"])
    with pytest.raises(NotFoundError):
        pets.update_pet(stranger, pet["id"], {"name": "Stolen"})
    with pytest.raises(NotFoundError):
        pets.archive_pet(stranger, pet["id"])
    with pytest.raises(NotFoundError):
        pets.pet_history(stranger, pet["id"])
    assert pets.list_pets(stranger)["data"] == []


def test_only_staff_transfer_pets(admin, client_actor, make_client, pet):
    _, other = make_client("other@example.com")
    with pytest.raises(PermissionDenied):
        pets.update_pet(client_actor, pet["id"], {"owner_id": other["client_id"]})
    with pytest.raises(ValidationError, match="Owner not found"):
        pets.update_pet(admin, pet["id"], {"owner_id": "nobody"})

    moved = pets.update_pet(admin, pet["id"], {"owner_id": other["client_id"]})
    assert moved["owner_id"] == other["client_id"]
    with pytest.raises(NotFoundError):
        pets.get_pet(client_actor, pet["id"])


def test_archived_pet_disappears(admin, client_actor, pet, book):
    pets.archive_pet(client_actor, pet["id"])

    assert pets.list_pets(client_actor)["total"] == 0
    assert pets.list_pets(admin)["total"] == 0
    with pytest.raises(NotFoundError):
        pets.get_pet(admin, pet["id"])
    with pytest.raises(NotFoundError):
        book(client_actor, pet["id"], at(next_clinic_day(), 10))

    with db_session() as s:
        row = s.get(Pet, pet["id"])
        assert row.is_archived is True
        assert row.is_active is False


# =========================
# Listing
# =========================
def test_pagination_and_filters(client_actor, make_pet):
    make_pet(client_actor, name="Choco", breed="Aspin")
    make_pet(client_actor, name="Mingming", species="Cat", breed="Puspin")
    make_pet(client_actor, name="Bantay", breed="Aspin")

    first = pets.list_pets(client_actor, page=1, limit=2)
    assert [p["name"] for p in first["data"]] == ["Bantay", "Choco"]
    assert (first["total"], first["total_pages"]) == (3, 2)

    second = pets.list_pets(client_actor, page=2, limit=2)
    assert [p["name"] for p in second["data"]] == ["Mingming"]

    beyond = pets.list_pets(client_actor, page=5, limit=2)
    assert beyond["data"] == []
    assert beyond["total"] == 3
    assert beyond["page"] == 5

    assert pets.list_pets(client_actor, species="cat")["total"] == 1
    assert pets.list_pets(client_actor, search="aspin")["total"] == 2
    assert pets.list_pets(client_actor, limit=500)["limit"] == 100


# =========================
# History
# =========================
def test_pet_history(vet, client_actor, pet, book):
    day = next_clinic_day()
    book(client_actor, pet["id"], at(day, 10))
    book(client_actor, pet["id"], at(day, 14))
    clinical.create_vaccination(vet, pet["id"], "Rabies", "2024-03-01", next_due_date="2025-03-01")

    history = pets.pet_history(client_actor, pet["id"])
    assert history["pet"]["name"] == "Bantay"
    assert [a["date"] for a in history["appointments"]] == [at(day, 14).isoformat(), at(day, 10).isoformat()]
    assert history["appointments"][0]["veterinarian_name"].endswith("Santos")
    assert [v["vaccine_name"] for v in history["vaccinations"]] == ["Rabies"]
    assert history["vitals"] == []
    assert history["medical_records"] == []
    assert history["medications"] == []

    assert appointments.list_appointments(client_actor, pet_id=pet["id"])[0]["pet"]["id"] == pet["id"]
