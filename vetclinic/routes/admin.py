from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..deps import admin_only
from ..schemas import EmployeeIn, EmployeeUpdateIn, changes
from ..services import dashboard, employees
from ..services.access import Actor

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(admin_only)])


@router.get("/dashboard")
def api_dashboard() -> dict:
    return dashboard.admin_dashboard()


@router.get("/employees")
def api_employees(role: str | None = Query(None), search: str | None = Query(None)) -> list[dict]:
    return employees.list_employees(role=role, search=search)


@router.post("/employees", status_code=status.HTTP_201_CREATED)
def api_create_employee(payload: EmployeeIn) -> dict:
    return employees.create_employee(**payload.model_dump())


@router.put("/employees/{user_id}")
def api_update_employee(user_id: str, payload: EmployeeUpdateIn) -> dict:
    return employees.update_employee(user_id, changes(payload))


@router.delete("/employees/{user_id}")
def api_deactivate_employee(user_id: str, actor: Actor = Depends(admin_only)) -> dict:
    employees.deactivate_employee(user_id, acting_user_id=actor.user_id)
    return {"ok": True, "message": "Employee deactivated"}
