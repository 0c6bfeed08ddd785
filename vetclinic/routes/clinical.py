"""Veterinarian workflow endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..deps import staff_only, vet_only
from ..schemas import ConsultationIn, PrescriptionIn, TriageIn, VaccinationIn
from ..services import clinical
from ..services.access import Actor

router = APIRouter(prefix="/api", tags=["clinical"])


@router.get("/triage", dependencies=[Depends(vet_only)])
def api_triage_queue() -> list[dict]:
    return clinical.triage_queue()


@router.post("/triage", status_code=status.HTTP_201_CREATED, dependencies=[Depends(vet_only)])
def api_record_triage(payload: TriageIn) -> dict:
    return clinical.record_triage(**payload.model_dump())


@router.get("/consultations", dependencies=[Depends(vet_only)])
def api_consultation_queue() -> list[dict]:
    return clinical.consultation_queue()


@router.post("/consultations", status_code=status.HTTP_201_CREATED)
def api_complete_consultation(payload: ConsultationIn, actor: Actor = Depends(vet_only)) -> dict:
    return clinical.complete_consultation(
        actor,
        payload.appointment_id,
        assessment=payload.assessment,
        subjective=payload.subjective,
        objective=payload.objective,
        plan=payload.plan,
    )


@router.get("/prescriptions", dependencies=[Depends(staff_only)])
def api_prescriptions(pet_id: str | None = Query(None), appointment_id: str | None = Query(None)) -> list[dict]:
    return clinical.list_prescriptions(pet_id=pet_id, appointment_id=appointment_id)


@router.post("/prescriptions", status_code=status.HTTP_201_CREATED)
def api_issue_prescription(payload: PrescriptionIn, actor: Actor = Depends(vet_only)) -> dict:
    return clinical.issue_prescription(actor, **payload.model_dump())


@router.delete("/prescriptions/{prescription_id}")
def api_delete_prescription(prescription_id: str, actor: Actor = Depends(vet_only)) -> dict:
    clinical.delete_prescription(actor, prescription_id)
    return {"ok": True}


@router.get("/vaccinations", dependencies=[Depends(staff_only)])
def api_vaccinations(pet_id: str | None = Query(None), due_within_days: int | None = Query(None, ge=0)) -> list[dict]:
    if due_within_days is not None:
        return clinical.vaccinations_due(due_within_days)
    return clinical.list_vaccinations(pet_id)


@router.post("/vaccinations", status_code=status.HTTP_201_CREATED)
def api_create_vaccination(payload: VaccinationIn, actor: Actor = Depends(vet_only)) -> dict:
    return clinical.create_vaccination(actor, **payload.model_dump())


@router.get("/medical-records", dependencies=[Depends(staff_only)])
def api_medical_records(pet_id: str | None = Query(None)) -> list[dict]:
    return clinical.list_medical_records(pet_id)
