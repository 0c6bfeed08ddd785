from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..deps import admin_only, staff_only
from ..schemas import ClientUpdateIn, changes
from ..services import clients
from ..services.access import Actor

router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.get("", dependencies=[Depends(staff_only)])
def api_list_clients(search: str | None = Query(None)) -> list[dict]:
    return clients.list_clients(search)


@router.get("/{client_id}", dependencies=[Depends(staff_only)])
def api_get_client(client_id: str) -> dict:
    return clients.get_client(client_id)


@router.put("/{client_id}")
def api_update_client(client_id: str, payload: ClientUpdateIn, actor: Actor = Depends(admin_only)) -> dict:
    return clients.update_client(actor, client_id, changes(payload))
