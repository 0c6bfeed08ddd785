from __future__ import annotations

import hmac
import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .. import config
from ..deps import admin_only, get_actor, staff_only
from ..schemas import AppointmentIn, RescheduleIn, StatusIn
from ..services import appointments as svc
from ..services.access import Actor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["appointments"])
cron_router = APIRouter(prefix="/api/cron", tags=["cron"])


# PUBLIC

@router.get("/slots")
def api_slots(
    day: date = Query(..., alias="date"),
    service: str = Query(...),
    veterinarian_id: str | None = Query(None),
) -> dict:
    return svc.slots_for(day, service, veterinarian_id)


# STAFF calendar

@router.get("/calendar", dependencies=[Depends(staff_only)])
def api_calendar(
    year: int = Query(...),
    month: int = Query(..., ge=1, le=12),
    veterinarian_id: str | None = Query(None),
) -> dict:
    return svc.calendar_month(year, month, veterinarian_id)


@router.get("/daily", dependencies=[Depends(staff_only)])
def api_daily(day: date = Query(..., alias="date"), veterinarian_id: str | None = Query(None)) -> dict:
    return svc.daily_schedule(day, veterinarian_id)


@router.get("/stats", dependencies=[Depends(staff_only)])
def api_stats() -> dict:
    return svc.appointment_stats()


# ADMIN batch jobs

@router.post("/check-no-shows", dependencies=[Depends(admin_only)])
def api_check_no_shows() -> dict[str, Any]:
    res = svc.mark_no_shows()
    return {"success": True, "updated": res.updated, "message": res.message, "appointments": res.appointments}


@router.post("/send-reminders", dependencies=[Depends(admin_only)])
def api_send_reminders() -> dict[str, Any]:
    return {"success": True, "queued": svc.send_reminders()}


# AUTHENTICATED (clients scoped to their pets)

@router.get("")
def api_list(
    status_filter: str | None = Query(None, alias="status"),
    day: date | None = Query(None, alias="date"),
    veterinarian_id: str | None = Query(None),
    pet_id: str | None = Query(None),
    search: str | None = Query(None),
    actor: Actor = Depends(get_actor),
) -> list[dict]:
    return svc.list_appointments(actor, status_filter, day, veterinarian_id, pet_id, search)


@router.post("", status_code=status.HTTP_201_CREATED)
def api_book(payload: AppointmentIn, actor: Actor = Depends(get_actor)) -> dict:
    return svc.book_appointment(
        actor,
        pet_id=payload.pet_id,
        service_code=payload.service_code,
        scheduled_start=payload.scheduled_start,
        veterinarian_id=payload.veterinarian_id,
        reason_for_visit=payload.reason_for_visit,
        special_instructions=payload.special_instructions,
    )


@router.get("/{appointment_id}")
def api_get(appointment_id: str, actor: Actor = Depends(get_actor)) -> dict:
    return svc.get_appointment(actor, appointment_id)


@router.patch("/{appointment_id}/status")
def api_status(appointment_id: str, payload: StatusIn, actor: Actor = Depends(get_actor)) -> dict:
    return svc.change_status(actor, appointment_id, payload.status, payload.cancellation_reason)


@router.post("/{appointment_id}/reschedule")
def api_reschedule(appointment_id: str, payload: RescheduleIn, actor: Actor = Depends(staff_only)) -> dict:
    return svc.reschedule(actor, appointment_id, payload.scheduled_start)


# CRON (shared secret instead of JWT)

@cron_router.get("/mark-no-show")
def cron_mark_no_show(secret: str | None = Query(None)) -> dict[str, Any]:
    if not config.CRON_SECRET or not secret or not hmac.compare_digest(secret, config.CRON_SECRET):
        logger.warning("Rejected cron call with a bad secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    res = svc.mark_no_shows()
    return {"success": True, "updated": res.updated, "message": res.message, "appointments": res.appointments}
