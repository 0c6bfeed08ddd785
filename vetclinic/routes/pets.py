from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..deps import get_actor
from ..schemas import PetIn, PetUpdateIn, changes
from ..services import pets
from ..services.access import Actor

router = APIRouter(prefix="/api/pets", tags=["pets"])


@router.get("")
def api_list_pets(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    owner_id: str | None = Query(None),
    species: str | None = Query(None),
    search: str | None = Query(None),
    actor: Actor = Depends(get_actor),
) -> dict:
    return pets.list_pets(actor, page=page, limit=limit, owner_id=owner_id, species=species, search=search)


@router.post("", status_code=status.HTTP_201_CREATED)
def api_create_pet(payload: PetIn, actor: Actor = Depends(get_actor)) -> dict:
    return pets.create_pet(actor, payload.model_dump())


@router.get("/{pet_id}")
def api_get_pet(pet_id: str, actor: Actor = Depends(get_actor)) -> dict:
    return pets.get_pet(actor, pet_id)


@router.get("/{pet_id}/history")
def api_pet_history(pet_id: str, actor: Actor = Depends(get_actor)) -> dict:
    return pets.pet_history(actor, pet_id)


@router.patch("/{pet_id}")
def api_update_pet(pet_id: str, payload: PetUpdateIn, actor: Actor = Depends(get_actor)) -> dict:
    return pets.update_pet(actor, pet_id, changes(payload))


@router.delete("/{pet_id}")
def api_archive_pet(pet_id: str, actor: Actor = Depends(get_actor)) -> dict:
    pets.archive_pet(actor, pet_id)
    return {"ok": True, "message": "Pet archived successfully"}
