from __future__ import annotations

from vetclinic.services import appointments, billing, dashboard


def product_id(sku: str) -> str:
    return next(p["id"] for p in billing.list_products() if p["sku"] == sku)


def service_item(code: str) -> dict:
    sid = next(s["id"] for s in appointments.list_services() if s["code"] == code)
    return {"item_type": "service", "item_id": str(sid), "quantity": 1}


def test_revenue_grouped_by_service_type_and_product_category(make_client):
    billing.checkout(
        [
            {"item_type": "product", "item_id": product_id("FOO-SEED-001"), "quantity": 2},
            {"item_type": "product", "item_id": product_id("MED-SEED-002"), "quantity": 1},
            service_item("consultation"),
        ],
        tax_percent=0,
    )
    billing.checkout([service_item("consultation")], payment_method="gcash", tax_percent=0)

    # unpaid and partially paid invoices are not revenue yet
    _, res = make_client()
    billing.create_invoice([service_item("surgery")], client_id=res["client_id"], tax_percent=0)
    pending = billing.create_invoice([service_item("surgery")], client_id=res["client_id"], tax_percent=0)
    billing.record_payment(pending["id"], "2000", "cash")

    body = dashboard.admin_dashboard()
    assert body["revenue_by_category"] == {
        "Food": "2500.00",
        "Medicine": "220.00",
        "consultation": "1000.00",
    }
    assert body["total_revenue"] == "3720.00"


def test_revenue_is_empty_without_sales():
    body = dashboard.admin_dashboard()
    assert body["revenue_by_category"] == {}
    assert body["total_revenue"] == "0.00"
