"""
Point of sale, invoices, payments and inventory.

Money is Decimal end to end, rounded half-up to cents. Discount is a
percentage of the subtotal; tax applies to what is left after the discount.
"""
from __future__ import annotations

import logging
import random
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from .. import config
from ..db import db_session, unique_value
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import (
    ClientProfile,
    Invoice,
    InvoiceLineItem,
    LineItemType,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Product,
    Service,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")
WALK_IN = "Walk-in Customer"


def cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number.") from None


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    def as_strings(self) -> dict:
        return {k: str(v) for k, v in asdict(self).items()}


def compute_totals(
    lines: Iterable[tuple[int, Decimal]],
    discount_percent: Any = 0,
    tax_percent: Any = None,
) -> Totals:
    """``lines`` is (quantity, unit_price) pairs."""
    d = to_decimal(discount_percent or 0, "Discount")
    t = to_decimal(config.CLINIC_TAX_PERCENT if tax_percent is None else tax_percent, "Tax")
    if not ZERO <= d <= HUNDRED:
        raise ValidationError("Discount must be between 0 and 100 percent.")
    if t < ZERO:
        raise ValidationError("Tax cannot be negative.")

    subtotal = cents(sum((Decimal(q) * Decimal(str(p)) for q, p in lines), ZERO))
    discount = cents(subtotal * d / HUNDRED)
    tax = cents((subtotal - discount) * t / HUNDRED)
    return Totals(subtotal, discount, tax, subtotal - discount + tax)


def generate_invoice_number(today: date | None = None) -> str:
    today = today or date.today()
    return f"INV-{today.strftime('%y%m%d')}-{random.randint(1000, 9999)}"


def generate_payment_number(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"PAY-{int(now.timestamp() * 1000)}{random.randint(10, 99)}"


def generate_sku(category: str, now: datetime | None = None) -> str:
    now = now or datetime.now()
    prefix = "".join(ch for ch in category.upper() if ch.isalnum())[:3] or "GEN"
    return f"{prefix}-{int(now.timestamp())}-{random.randint(0, 999):03d}"


def _parse_method(value: str) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(f"Invalid payment method: {value}") from None


# =========================
# Line items
# =========================
@dataclass
class _Line:
    item_type: LineItemType
    description: str
    quantity: int
    unit_price: Decimal
    service_id: int | None = None
    product_id: str | None = None
    is_taxable: bool = True

    @property
    def line_total(self) -> Decimal:
        return cents(self.unit_price * self.quantity)


def _resolve_lines(s: Session, items: list[dict]) -> list[_Line]:
    """
    items: {"item_type": "service"|"product", "item_id": ..., "quantity": n,
    "unit_price"?: override}. Catalog prices apply unless overridden.
    """
    if not items:
        raise ValidationError("Cart is empty.")

    out: list[_Line] = []
    for raw in items:
        qty = int(raw.get("quantity") or 0)
        if qty <= 0:
            raise ValidationError("Quantity must be greater than zero.")
        kind = raw.get("item_type")
        item_id = raw.get("item_id")

        if kind == LineItemType.SERVICE.value:
            svc = s.get(Service, int(item_id)) if str(item_id).isdigit() else None
            if svc is None or not svc.is_active:
                raise NotFoundError(f"Service not found: {item_id}")
            line = _Line(LineItemType.SERVICE, svc.name, qty, svc.price, service_id=svc.id)
        elif kind == LineItemType.PRODUCT.value:
            prod = s.get(Product, item_id)
            if prod is None or not prod.is_active:
                raise NotFoundError(f"Product not found: {item_id}")
            line = _Line(LineItemType.PRODUCT, prod.product_name, qty, prod.price, product_id=prod.id)
        else:
            raise ValidationError(f"Invalid item type: {kind}")

        if raw.get("unit_price") is not None:
            price = to_decimal(raw["unit_price"], "Unit price")
            if price < ZERO:
                raise ValidationError("Unit price cannot be negative.")
            line.unit_price = price
        out.append(line)
    return out


def _deduct_stock(s: Session, quantities: dict[str, int]) -> None:
    """All-or-nothing: any shortfall raises and the caller's transaction rolls back."""
    for product_id, qty in quantities.items():
        res = s.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= qty)
            .values(stock_quantity=Product.stock_quantity - qty)
        )
        if res.rowcount != 1:
            name = s.scalar(select(Product.product_name).where(Product.id == product_id))
            if name is None:
                raise NotFoundError(f"Product not found: {product_id}")
            raise ConflictError(f"Insufficient stock for {name}.")


def _product_quantities(lines: list[_Line]) -> dict[str, int]:
    totals: dict[str, int] = defaultdict(int)
    for ln in lines:
        if ln.product_id:
            totals[ln.product_id] += ln.quantity
    return dict(totals)


def _customer(s: Session, client_id: str | None, walk_in_customer_name: str | None) -> tuple[str | None, str | None]:
    if client_id:
        if s.get(ClientProfile, client_id) is None:
            raise NotFoundError("Client not found.")
        return client_id, None
    return None, (walk_in_customer_name or "").strip() or WALK_IN


def _new_invoice(s: Session, lines: list[_Line], totals: Totals, client_id, walk_in, notes, due_date=None) -> Invoice:
    today = date.today()
    inv = Invoice(
        invoice_number=unique_value(s, Invoice.invoice_number, lambda: generate_invoice_number(today)),
        client_id=client_id,
        walk_in_customer_name=walk_in,
        issue_date=today,
        due_date=due_date or today,
        subtotal=totals.subtotal,
        discount_amount=totals.discount_amount,
        tax_amount=totals.tax_amount,
        total_amount=totals.total_amount,
        amount_paid=ZERO,
        payment_status=PaymentStatus.UNPAID,
        notes=notes,
    )
    for ln in lines:
        inv.line_items.append(
            InvoiceLineItem(
                item_type=ln.item_type,
                service_id=ln.service_id,
                product_id=ln.product_id,
                description=ln.description,
                quantity=ln.quantity,
                unit_price=ln.unit_price,
                line_total=ln.line_total,
                is_taxable=ln.is_taxable,
            )
        )
    s.add(inv)
    return inv


# =========================
# Flatteners
# =========================
def payment_flat(p: Payment) -> dict:
    return {
        "id": p.id,
        "payment_number": p.payment_number,
        "invoice_id": p.invoice_id,
        "payment_date": p.payment_date.isoformat(),
        "amount_paid": str(p.amount_paid),
        "payment_method": p.payment_method.value,
        "transaction_reference": p.transaction_reference,
        "cash_tendered": str(p.cash_tendered) if p.cash_tendered is not None else None,
        "change_due": str(p.change_due) if p.change_due is not None else None,
        "notes": p.notes,
    }


def invoice_flat(inv: Invoice, detail: bool = False) -> dict:
    d = {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "client_id": inv.client_id,
        "customer_name": inv.customer_name,
        "issue_date": inv.issue_date.isoformat(),
        "due_date": inv.due_date.isoformat(),
        "subtotal": str(inv.subtotal),
        "discount_amount": str(inv.discount_amount),
        "tax_amount": str(inv.tax_amount),
        "total_amount": str(inv.total_amount),
        "amount_paid": str(inv.amount_paid),
        "balance_due": str(inv.balance_due),
        "payment_status": inv.payment_status.value,
        "notes": inv.notes,
    }
    if detail:
        d["line_items"] = [
            {
                "item_type": li.item_type.value,
                "service_id": li.service_id,
                "product_id": li.product_id,
                "description": li.description,
                "quantity": li.quantity,
                "unit_price": str(li.unit_price),
                "line_total": str(li.line_total),
            }
            for li in inv.line_items
        ]
        d["payments"] = [payment_flat(p) for p in inv.payments]
    return d


def _load_invoice(s: Session, invoice_id: str) -> Invoice:
    inv = s.scalars(
        select(Invoice)
        .options(selectinload(Invoice.client), selectinload(Invoice.line_items), selectinload(Invoice.payments))
        .where(Invoice.id == invoice_id)
    ).first()
    if inv is None:
        raise NotFoundError("Invoice not found.")
    return inv


# =========================
# POS
# =========================
def checkout(
    items: list[dict],
    payment_method: str = "cash",
    client_id: str | None = None,
    walk_in_customer_name: str | None = None,
    discount_percent: Any = 0,
    tax_percent: Any = None,
    cash_tendered: Any = None,
    transaction_reference: str | None = None,
    notes: str | None = None,
) -> dict:
    """
    One POS sale in one transaction:
    - price the cart from the catalog
    - deduct product stock (any shortfall aborts the whole sale)
    - write a fully paid invoice with its line items and the payment
    """
    method = _parse_method(payment_method)

    with db_session() as s:
        lines = _resolve_lines(s, items)
        totals = compute_totals(((ln.quantity, ln.unit_price) for ln in lines), discount_percent, tax_percent)

        tendered = change = None
        if method == PaymentMethod.CASH:
            tendered = cents(to_decimal(cash_tendered if cash_tendered is not None else totals.total_amount, "Cash"))
            if tendered < totals.total_amount:
                raise ValidationError("Cash tendered is less than the total amount.")
            change = tendered - totals.total_amount

        cid, walk_in = _customer(s, client_id, walk_in_customer_name)
        _deduct_stock(s, _product_quantities(lines))

        inv = _new_invoice(s, lines, totals, cid, walk_in, notes)
        inv.amount_paid = totals.total_amount
        inv.payment_status = PaymentStatus.PAID
        pay = Payment(
            payment_number=unique_value(s, Payment.payment_number, generate_payment_number),
            payment_date=date.today(),
            amount_paid=totals.total_amount,
            payment_method=method,
            transaction_reference=(transaction_reference or "").strip() or None,
            cash_tendered=tendered,
            change_due=change,
        )
        inv.payments.append(pay)
        s.flush()

        logger.info("POS sale %s total=%s method=%s", inv.invoice_number, totals.total_amount, method.value)
        return {
            "invoice": invoice_flat(_load_invoice(s, inv.id), detail=True),
            "payment": payment_flat(pay),
        }


def create_invoice(
    items: list[dict],
    client_id: str | None = None,
    walk_in_customer_name: str | None = None,
    discount_percent: Any = 0,
    tax_percent: Any = None,
    due_date: date | None = None,
    notes: str | None = None,
) -> dict:
    """Unpaid invoice, settled later with :func:`record_payment`. Stock is not touched."""
    with db_session() as s:
        lines = _resolve_lines(s, items)
        totals = compute_totals(((ln.quantity, ln.unit_price) for ln in lines), discount_percent, tax_percent)
        cid, walk_in = _customer(s, client_id, walk_in_customer_name)
        inv = _new_invoice(s, lines, totals, cid, walk_in, notes, due_date=due_date)
        s.flush()
        logger.info("Invoice %s created total=%s", inv.invoice_number, totals.total_amount)
        return invoice_flat(_load_invoice(s, inv.id), detail=True)


def record_payment(
    invoice_id: str,
    amount: Any,
    payment_method: str,
    transaction_reference: str | None = None,
    notes: str | None = None,
) -> dict:
    method = _parse_method(payment_method)
    amount = cents(to_decimal(amount, "Amount"))
    if amount <= ZERO:
        raise ValidationError("Amount must be greater than zero.")

    with db_session() as s:
        inv = _load_invoice(s, invoice_id)
        balance = inv.balance_due
        if balance <= ZERO:
            raise ConflictError("Invoice is already paid.")

        tendered = change = None
        applied = amount
        if amount > balance:
            if method != PaymentMethod.CASH:
                raise ValidationError("Amount exceeds the balance due.")
            tendered, change, applied = amount, amount - balance, balance

        pay = Payment(
            payment_number=unique_value(s, Payment.payment_number, generate_payment_number),
            payment_date=date.today(),
            amount_paid=applied,
            payment_method=method,
            transaction_reference=(transaction_reference or "").strip() or None,
            cash_tendered=tendered,
            change_due=change,
            notes=notes,
        )
        inv.payments.append(pay)
        inv.amount_paid = inv.amount_paid + applied
        inv.payment_status = PaymentStatus.PAID if inv.balance_due <= ZERO else PaymentStatus.PARTIALLY_PAID
        s.flush()

        logger.info("Payment %s on %s amount=%s", pay.payment_number, inv.invoice_number, applied)
        return {"invoice": invoice_flat(inv, detail=True), "payment": payment_flat(pay)}


def list_invoices(status: str | None = None, client_id: str | None = None) -> list[dict]:
    with db_session() as s:
        q = select(Invoice).options(selectinload(Invoice.client)).order_by(Invoice.created_at.desc())
        if status and status != "all":
            try:
                q = q.where(Invoice.payment_status == PaymentStatus(status))
            except ValueError:
                raise ValidationError(f"Invalid payment status: {status}") from None
        if client_id:
            q = q.where(Invoice.client_id == client_id)
        return [invoice_flat(inv) for inv in s.scalars(q)]


def get_invoice(invoice_id: str) -> dict:
    with db_session() as s:
        return invoice_flat(_load_invoice(s, invoice_id), detail=True)


def list_payments(limit: int = 100) -> list[dict]:
    with db_session() as s:
        q = (
            select(Payment)
            .options(selectinload(Payment.invoice).selectinload(Invoice.client))
            .order_by(Payment.created_at.desc())
            .limit(limit)
        )
        out = []
        for p in s.scalars(q):
            row = payment_flat(p)
            row["invoice_number"] = p.invoice.invoice_number
            row["customer_name"] = p.invoice.customer_name
            out.append(row)
        return out


# =========================
# Inventory
# =========================
def adjust_stock(updates: list[dict]) -> list[dict]:
    """Apply ``{product_id, quantity}`` deductions atomically."""
    if not updates:
        raise ValidationError("No stock updates given.")
    quantities: dict[str, int] = defaultdict(int)
    for u in updates:
        qty = int(u.get("quantity") or 0)
        if not u.get("product_id") or qty <= 0:
            raise ValidationError("Each update needs a product_id and a positive quantity.")
        quantities[u["product_id"]] += qty

    with db_session() as s:
        _deduct_stock(s, dict(quantities))
        rows = s.execute(
            select(Product.id, Product.product_name, Product.stock_quantity).where(Product.id.in_(list(quantities)))
        ).all()
        logger.info("Stock deducted for %d product(s)", len(rows))
        return [{"id": r.id, "product_name": r.product_name, "stock_quantity": r.stock_quantity} for r in rows]


def restock(product_id: str, quantity: int) -> dict:
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero.")
    with db_session() as s:
        p = s.get(Product, product_id)
        if p is None:
            raise NotFoundError("Product not found.")
        p.stock_quantity += quantity
        logger.info("Restocked %s +%d -> %d", p.sku, quantity, p.stock_quantity)
        return product_flat(p)


# =========================
# Products
# =========================
def product_flat(p: Product) -> dict:
    return {
        "id": p.id,
        "product_name": p.product_name,
        "category": p.category,
        "sku": p.sku,
        "price": str(p.price),
        "stock_quantity": p.stock_quantity,
        "low_stock_threshold": p.low_stock_threshold,
        "description": p.description,
        "is_active": p.is_active,
        "is_low_stock": p.is_low_stock,
    }


def list_products(category: str | None = None, search: str | None = None) -> list[dict]:
    with db_session() as s:
        q = select(Product).where(Product.is_active.is_(True)).order_by(Product.product_name)
        if category and category != "all":
            q = q.where(Product.category == category)
        if search:
            like = f"%{search.strip().lower()}%"
            q = q.where(
                or_(
                    func.lower(Product.product_name).like(like),
                    func.lower(Product.category).like(like),
                    func.lower(Product.sku).like(like),
                )
            )
        return [product_flat(p) for p in s.scalars(q)]


def get_product(product_id: str) -> dict:
    with db_session() as s:
        p = s.get(Product, product_id)
        if p is None:
            raise NotFoundError("Product not found.")
        return product_flat(p)


def _clean_price(value: Any) -> Decimal:
    price = cents(to_decimal(value, "Price"))
    if price <= ZERO:
        raise ValidationError("Price must be greater than zero.")
    return price


def create_product(
    product_name: str,
    category: str,
    price: Any,
    stock_quantity: int = 0,
    low_stock_threshold: int | None = None,
    sku: str | None = None,
    description: str | None = None,
) -> dict:
    product_name = (product_name or "").strip()
    category = (category or "").strip()
    if not product_name or not category:
        raise ValidationError("Product name and category are required.")
    if stock_quantity < 0:
        raise ValidationError("Stock quantity cannot be negative.")

    with db_session() as s:
        sku = (sku or "").strip() or generate_sku(category)
        if s.execute(select(Product.id).where(Product.sku == sku)).first():
            raise ConflictError(f"SKU already exists: {sku}")
        p = Product(
            product_name=product_name,
            category=category,
            sku=sku,
            price=_clean_price(price),
            stock_quantity=stock_quantity,
            low_stock_threshold=(
                config.LOW_STOCK_DEFAULT_THRESHOLD if low_stock_threshold is None else low_stock_threshold
            ),
            description=(description or "").strip() or None,
            is_active=True,
        )
        s.add(p)
        s.flush()
        logger.info("Product created: %s (%s)", p.product_name, p.sku)
        return product_flat(p)


def update_product(product_id: str, fields: dict) -> dict:
    with db_session() as s:
        p = s.get(Product, product_id)
        if p is None:
            raise NotFoundError("Product not found.")
        for key in ("product_name", "category", "description"):
            if key in fields and fields[key] is not None:
                value = str(fields[key]).strip()
                if key != "description" and not value:
                    raise ValidationError(f"{key.replace('_', ' ').capitalize()} cannot be empty.")
                setattr(p, key, value or None)
        if fields.get("price") is not None:
            p.price = _clean_price(fields["price"])
        if fields.get("stock_quantity") is not None:
            if int(fields["stock_quantity"]) < 0:
                raise ValidationError("Stock quantity cannot be negative.")
            p.stock_quantity = int(fields["stock_quantity"])
        if fields.get("low_stock_threshold") is not None:
            p.low_stock_threshold = int(fields["low_stock_threshold"])
        if fields.get("is_active") is not None:
            p.is_active = bool(fields["is_active"])
        return product_flat(p)


def deactivate_product(product_id: str) -> None:
    with db_session() as s:
        p = s.get(Product, product_id)
        if p is None:
            raise NotFoundError("Product not found.")
        p.is_active = False
        logger.info("Product %s deactivated", p.sku)


def low_stock(limit: int | None = None) -> list[dict]:
    with db_session() as s:
        q = (
            select(Product)
            .where(Product.is_active.is_(True), Product.stock_quantity <= Product.low_stock_threshold)
            .order_by(Product.stock_quantity.asc(), Product.product_name)
        )
        if limit:
            q = q.limit(limit)
        return [product_flat(p) for p in s.scalars(q)]
