from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from .. import scheduling
from ..db import db_session
from ..models import (
    Appointment,
    AppointmentStatus,
    ClientProfile,
    EmploymentStatus,
    Invoice,
    InvoiceLineItem,
    LineItemType,
    PaymentStatus,
    Pet,
    Product,
    Service,
    VeterinarianProfile,
)
from .appointments import appointment_flat
from .billing import low_stock


def revenue_by_category(s) -> dict[str, str]:
    """
    Paid invoice line items, grouped: services by appointment type,
    products by product category.
    """
    rows = s.execute(
        select(
            InvoiceLineItem.item_type,
            Service.appointment_type,
            Product.category,
            func.sum(InvoiceLineItem.line_total),
        )
        .join(Invoice, Invoice.id == InvoiceLineItem.invoice_id)
        .outerjoin(Service, Service.id == InvoiceLineItem.service_id)
        .outerjoin(Product, Product.id == InvoiceLineItem.product_id)
        .where(Invoice.payment_status == PaymentStatus.PAID)
        .group_by(InvoiceLineItem.item_type, Service.appointment_type, Product.category)
    ).all()

    out: dict[str, Decimal] = defaultdict(Decimal)
    for item_type, appt_type, category, total in rows:
        if item_type == LineItemType.SERVICE:
            key = appt_type.value if appt_type is not None else "other_services"
        else:
            key = category or "other_products"
        out[key] += Decimal(str(total or 0))
    return {k: str(v) for k, v in sorted(out.items())}


def admin_dashboard(today: date | None = None) -> dict:
    today = today or date.today()
    day_start, day_end = scheduling.day_bounds(today)
    week_end = day_start + timedelta(days=7)

    with db_session() as s:
        def count(col, *conds) -> int:
            return int(s.scalar(select(func.count(col)).where(*conds)) or 0)

        recent = s.scalars(
            select(Appointment)
            .options(selectinload(Appointment.pet).selectinload(Pet.owner), selectinload(Appointment.veterinarian))
            .order_by(Appointment.created_at.desc())
            .limit(5)
        ).all()
        revenue = s.scalar(
            select(func.coalesce(func.sum(Invoice.total_amount), 0)).where(
                Invoice.payment_status == PaymentStatus.PAID
            )
        )

        stats = {
            "total_clients": count(ClientProfile.id),
            "total_pets": count(Pet.id, Pet.is_active.is_(True), Pet.is_archived.is_(False)),
            "total_appointments": count(Appointment.id),
            "total_veterinarians": count(
                VeterinarianProfile.id, VeterinarianProfile.employment_status != EmploymentStatus.TERMINATED
            ),
            "appointments_today": count(
                Appointment.id, Appointment.scheduled_start >= day_start, Appointment.scheduled_start < day_end
            ),
            "upcoming_appointments": count(
                Appointment.id,
                Appointment.scheduled_start >= day_start,
                Appointment.scheduled_start < week_end,
                Appointment.appointment_status.in_((AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)),
            ),
            "total_revenue": str(Decimal(str(revenue or 0)).quantize(Decimal("0.01"))),
            "revenue_by_category": revenue_by_category(s),
            "recent_appointments": [appointment_flat(a) for a in recent],
        }

    stats["low_stock_items"] = low_stock(limit=10)
    return stats
