"""Services, veterinarians and products: public reads, admin writes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..deps import admin_only
from ..schemas import ProductIn, ProductUpdateIn, RestockIn, changes
from ..services import appointments, billing

router = APIRouter(prefix="/api", tags=["catalog"])


# PUBLIC endpoints (no JWT)

@router.get("/services")
def api_services() -> list[dict]:
    return appointments.list_services()


@router.get("/veterinarians")
def api_veterinarians() -> list[dict]:
    return appointments.list_veterinarians()


@router.get("/products")
def api_products(category: str | None = Query(None), search: str | None = Query(None)) -> list[dict]:
    return billing.list_products(category=category, search=search)


# ADMIN endpoints

@router.get("/products/low-stock", dependencies=[Depends(admin_only)])
def api_low_stock(limit: int | None = Query(None, ge=1)) -> list[dict]:
    return billing.low_stock(limit=limit)


@router.get("/products/{product_id}")
def api_product(product_id: str) -> dict:
    return billing.get_product(product_id)


@router.post("/products", status_code=status.HTTP_201_CREATED, dependencies=[Depends(admin_only)])
def api_create_product(payload: ProductIn) -> dict:
    return billing.create_product(**payload.model_dump())


@router.put("/products/{product_id}", dependencies=[Depends(admin_only)])
def api_update_product(product_id: str, payload: ProductUpdateIn) -> dict:
    return billing.update_product(product_id, changes(payload))


@router.post("/products/{product_id}/restock", dependencies=[Depends(admin_only)])
def api_restock(product_id: str, payload: RestockIn) -> dict:
    return billing.restock(product_id, payload.quantity)


@router.delete("/products/{product_id}", dependencies=[Depends(admin_only)])
def api_delete_product(product_id: str) -> dict:
    billing.deactivate_product(product_id)
    return {"ok": True}
