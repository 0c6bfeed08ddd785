from __future__ import annotations

import re
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from vetclinic.db import db_session
from vetclinic.errors import ConflictError, NotFoundError, ValidationError
from vetclinic.models import Invoice, Product
from vetclinic.services import billing


def product_by_sku(sku: str) -> dict:
    return next(p for p in billing.list_products() if p["sku"] == sku)


def service_id(code: str) -> int:
    from vetclinic.services.appointments import list_services

    return next(s["id"] for s in list_services() if s["code"] == code)


# =========================
# Totals
# =========================
def test_totals_discount_then_tax():
    t = billing.compute_totals([(2, Decimal("100.00")), (1, Decimal("50.00"))], discount_percent=10, tax_percent=12)
    assert t.subtotal == Decimal("250.00")
    assert t.discount_amount == Decimal("25.00")
    assert t.tax_amount == Decimal("27.00")
    assert t.total_amount == Decimal("252.00")


def test_totals_round_half_up():
    t = billing.compute_totals([(1, Decimal("0.05"))], discount_percent=0, tax_percent=50)
    assert t.tax_amount == Decimal("0.03")


def test_totals_default_tax_is_clinic_rate():
    t = billing.compute_totals([(1, Decimal("100"))])
    assert t.tax_amount == Decimal("12.00")


@pytest.mark.parametrize("discount,tax", [(-1, 12), (101, 12), (0, -5)])
def test_totals_reject_out_of_range(discount, tax):
    with pytest.raises(ValidationError):
        billing.compute_totals([(1, Decimal("10"))], discount, tax)


def test_number_formats():
    assert re.fullmatch(r"INV-260115-\d{4}", billing.generate_invoice_number(date(2026, 1, 15)))
    assert re.fullmatch(r"PAY-\d{15}", billing.generate_payment_number())
    assert re.fullmatch(r"MED-\d+-\d{3}", billing.generate_sku("Medicine"))


def test_invoice_number_is_redrawn_when_taken(monkeypatch):
    items = [{"item_type": "service", "item_id": str(service_id("consultation")), "quantity": 1}]
    draws = iter([1234, 1234, 5678])
    monkeypatch.setattr(billing.random, "randint", lambda a, b: next(draws))

    first = billing.create_invoice(items)
    second = billing.create_invoice(items)
    assert first["invoice_number"].endswith("-1234")
    assert second["invoice_number"].endswith("-5678")

    monkeypatch.setattr(billing.random, "randint", lambda a, b: 1234)
    with pytest.raises(ConflictError, match="unique invoice number"):
        billing.create_invoice(items)
    with db_session() as s:
        assert s.scalar(select(func.count()).select_from(Invoice)) == 2


# =========================
# POS checkout
# =========================
def test_checkout_cash_sale_deducts_stock_and_gives_change():
    food = product_by_sku("FOO-SEED-001")
    res = billing.checkout(
        [
            {"item_type": "product", "item_id": food["id"], "quantity": 2},
            {"item_type": "service", "item_id": str(service_id("consultation")), "quantity": 1},
        ],
        payment_method="cash",
        tax_percent=0,
        cash_tendered="4000",
    )
    inv = res["invoice"]
    assert inv["subtotal"] == "3000.00"
    assert inv["payment_status"] == "paid"
    assert inv["customer_name"] == "Walk-in Customer"
    assert len(inv["line_items"]) == 2
    assert res["payment"]["change_due"] == "1000.00"
    assert product_by_sku("FOO-SEED-001")["stock_quantity"] == food["stock_quantity"] - 2


def test_checkout_insufficient_stock_writes_nothing():
    food = product_by_sku("FOO-SEED-001")
    toy = product_by_sku("ACC-SEED-001")  # 3 in stock
    with pytest.raises(ConflictError, match="Insufficient stock"):
        billing.checkout(
            [
                {"item_type": "product", "item_id": food["id"], "quantity": 1},
                {"item_type": "product", "item_id": toy["id"], "quantity": 5},
            ],
            payment_method="gcash",
        )
    assert product_by_sku("FOO-SEED-001")["stock_quantity"] == food["stock_quantity"]
    with db_session() as s:
        assert s.scalar(select(func.count(Invoice.id))) == 0


def test_checkout_cash_short_is_rejected():
    food = product_by_sku("FOO-SEED-001")
    with pytest.raises(ValidationError, match="Cash tendered"):
        billing.checkout([{"item_type": "product", "item_id": food["id"], "quantity": 1}], cash_tendered="10")


def test_checkout_unknown_item():
    with pytest.raises(NotFoundError):
        billing.checkout([{"item_type": "product", "item_id": "nope", "quantity": 1}], payment_method="gcash")
    with pytest.raises(ValidationError):
        billing.checkout([], payment_method="gcash")


# =========================
# Invoices and payments
# =========================
def test_invoice_partial_then_full_payment(make_client):
    _, res = make_client()
    inv = billing.create_invoice(
        [{"item_type": "service", "item_id": str(service_id("surgery")), "quantity": 1}],
        client_id=res["client_id"],
        tax_percent=0,
    )
    assert inv["payment_status"] == "unpaid"
    assert inv["customer_name"] == "Juan Dela Cruz"

    out = billing.record_payment(inv["id"], "2000", "credit_card")
    assert out["invoice"]["payment_status"] == "partially_paid"
    assert out["invoice"]["balance_due"] == "3000.00"

    with pytest.raises(ValidationError, match="exceeds"):
        billing.record_payment(inv["id"], "5000", "debit_card")

    out = billing.record_payment(inv["id"], "3500", "cash")
    assert out["invoice"]["payment_status"] == "paid"
    assert out["payment"]["amount_paid"] == "3000.00"
    assert out["payment"]["change_due"] == "500.00"

    with pytest.raises(ConflictError):
        billing.record_payment(inv["id"], "1", "cash")

    assert [p["invoice_number"] for p in billing.list_payments()] == [inv["invoice_number"]] * 2
    assert billing.list_invoices(status="paid")[0]["id"] == inv["id"]


# =========================
# Inventory and products
# =========================
def test_adjust_stock_is_all_or_nothing():
    food = product_by_sku("FOO-SEED-001")
    toy = product_by_sku("ACC-SEED-001")
    with pytest.raises(ConflictError):
        billing.adjust_stock([
            {"product_id": food["id"], "quantity": 1},
            {"product_id": toy["id"], "quantity": 99},
        ])
    assert product_by_sku("FOO-SEED-001")["stock_quantity"] == food["stock_quantity"]

    rows = billing.adjust_stock([{"product_id": toy["id"], "quantity": 1}])
    assert rows[0]["stock_quantity"] == toy["stock_quantity"] - 1


def test_adjust_stock_unknown_product():
    with pytest.raises(NotFoundError):
        billing.adjust_stock([{"product_id": "missing", "quantity": 1}])


def test_product_lifecycle():
    p = billing.create_product("Vitamin Paste", "Supplements", "199.50", stock_quantity=2)
    assert p["sku"].startswith("SUP-")
    assert p["is_low_stock"]

    assert any(x["id"] == p["id"] for x in billing.low_stock())
    billing.restock(p["id"], 10)
    assert not billing.get_product(p["id"])["is_low_stock"]

    p = billing.update_product(p["id"], {"price": "210", "product_name": "Vitamin Paste XL"})
    assert p["price"] == "210.00"
    assert billing.list_products(search="paste xl")[0]["id"] == p["id"]

    billing.deactivate_product(p["id"])
    assert all(x["id"] != p["id"] for x in billing.list_products())


def test_product_validation():
    with pytest.raises(ValidationError):
        billing.create_product("", "Food", "10")
    with pytest.raises(ValidationError):
        billing.create_product("Bowl", "Accessories", "0")
    billing.create_product("Bowl", "Accessories", "10", sku="ACC-BOWL")
    with pytest.raises(ConflictError):
        billing.create_product("Bowl 2", "Accessories", "10", sku="ACC-BOWL")


def test_low_stock_lowest_first():
    skus = [p["sku"] for p in billing.low_stock()]
    # seeded: chew toy 3, spot-on 4, both under threshold 5
    assert skus == ["ACC-SEED-001", "MED-SEED-001"]
    with db_session() as s:
        assert s.scalar(select(func.count(Product.id))) == 5
