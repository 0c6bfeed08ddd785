"""POS, invoices, payments and stock. Admin only."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..deps import admin_only
from ..schemas import CheckoutIn, InventoryIn, InvoiceIn, PaymentIn
from ..services import billing

router = APIRouter(prefix="/api/billing", tags=["billing"], dependencies=[Depends(admin_only)])


def _items(payload) -> list[dict]:
    return [item.model_dump() for item in payload.items]


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
def api_checkout(payload: CheckoutIn) -> dict:
    return billing.checkout(
        _items(payload),
        payment_method=payload.payment_method,
        client_id=payload.client_id,
        walk_in_customer_name=payload.walk_in_customer_name,
        discount_percent=payload.discount_percent,
        tax_percent=payload.tax_percent,
        cash_tendered=payload.cash_tendered,
        transaction_reference=payload.transaction_reference,
        notes=payload.notes,
    )


@router.post("/invoices", status_code=status.HTTP_201_CREATED)
def api_create_invoice(payload: InvoiceIn) -> dict:
    return billing.create_invoice(
        _items(payload),
        client_id=payload.client_id,
        walk_in_customer_name=payload.walk_in_customer_name,
        discount_percent=payload.discount_percent,
        tax_percent=payload.tax_percent,
        due_date=payload.due_date,
        notes=payload.notes,
    )


@router.get("/invoices")
def api_invoices(status_filter: str | None = Query(None, alias="status"), client_id: str | None = Query(None)) -> list[dict]:
    return billing.list_invoices(status=status_filter, client_id=client_id)


@router.get("/invoices/{invoice_id}")
def api_invoice(invoice_id: str) -> dict:
    return billing.get_invoice(invoice_id)


@router.post("/invoices/{invoice_id}/payments", status_code=status.HTTP_201_CREATED)
def api_pay_invoice(invoice_id: str, payload: PaymentIn) -> dict:
    return billing.record_payment(
        invoice_id,
        payload.amount,
        payload.payment_method,
        transaction_reference=payload.transaction_reference,
        notes=payload.notes,
    )


@router.get("/payments")
def api_payments(limit: int = Query(100, ge=1, le=500)) -> list[dict]:
    return billing.list_payments(limit)


@router.patch("/inventory")
def api_inventory(payload: InventoryIn) -> dict:
    products = billing.adjust_stock([u.model_dump() for u in payload.updates])
    return {"success": True, "message": "Inventory updated successfully", "products": products}
