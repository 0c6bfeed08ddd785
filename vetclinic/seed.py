from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select

from . import config
from .auth_models import User, UserRole
from .auth_service import add_user
from .db import db_session
from .models import AdminProfile, AppointmentType, EmploymentStatus, Product, Service, VeterinarianProfile

logger = logging.getLogger(__name__)

# code, name, type, minutes, price
SERVICES = [
    ("consultation", "General Check-up", AppointmentType.CONSULTATION, 30, "500.00"),
    ("vaccination", "Vaccination", AppointmentType.VACCINATION, 20, "350.00"),
    ("surgery", "Surgery", AppointmentType.SURGERY, 120, "5000.00"),
    ("dental", "Dental Cleaning", AppointmentType.DENTAL, 45, "1500.00"),
    ("grooming", "Grooming", AppointmentType.GROOMING, 60, "800.00"),
    ("emergency", "Emergency Care", AppointmentType.EMERGENCY, 45, "1200.00"),
]

# name, category, sku, price, stock
PRODUCTS = [
    ("Premium Dog Food 5kg", "Food", "FOO-SEED-001", "1250.00", 20),
    ("Cat Litter 10L", "Supplies", "SUP-SEED-001", "450.00", 15),
    ("Flea & Tick Spot-on", "Medicine", "MED-SEED-001", "680.00", 4),
    ("Deworming Tablets", "Medicine", "MED-SEED-002", "220.00", 30),
    ("Chew Toy", "Accessories", "ACC-SEED-001", "150.00", 3),
]


def _seed_catalog(s) -> None:
    for code, name, atype, minutes, price in SERVICES:
        if s.execute(select(Service.id).where(Service.code == code)).first() is None:
            s.add(Service(code=code, name=name, appointment_type=atype, duration_minutes=minutes, price=Decimal(price)))

    for name, category, sku, price, stock in PRODUCTS:
        if s.execute(select(Product.id).where(Product.sku == sku)).first() is None:
            s.add(
                Product(
                    product_name=name,
                    category=category,
                    sku=sku,
                    price=Decimal(price),
                    stock_quantity=stock,
                    low_stock_threshold=config.LOW_STOCK_DEFAULT_THRESHOLD,
                )
            )


def _seed_staff(s) -> None:
    def missing(email: str) -> bool:
        return s.execute(select(User.id).where(User.email == email)).first() is None

    if missing(config.SEED_VET_EMAIL):
        u = add_user(s, config.SEED_VET_EMAIL, config.SEED_VET_PASSWORD, UserRole.VETERINARIAN)
        s.add(
            VeterinarianProfile(
                user_id=u.id,
                first_name="Maria",
                last_name="Santos",
                license_number="PRC-VET-0001",
                phone="09171234567",
                specializations=["General Practice", "Surgery"],
                years_of_experience=8,
                consultation_fee=Decimal("500.00"),
                employment_status=EmploymentStatus.FULL_TIME,
            )
        )
        logger.info("Seeded veterinarian %s", config.SEED_VET_EMAIL)

    if missing(config.SEED_ADMIN_EMAIL):
        u = add_user(s, config.SEED_ADMIN_EMAIL, config.SEED_ADMIN_PASSWORD, UserRole.ADMIN)
        s.add(
            AdminProfile(
                user_id=u.id,
                first_name="Clinic",
                last_name="Admin",
                employee_id="ADM-0001",
                phone="09179876543",
                position="Clinic Manager",
                department="Administration",
                access_level=3,
            )
        )
        logger.info("Seeded admin %s", config.SEED_ADMIN_EMAIL)


def seed_base(with_staff: bool = True) -> None:
    """
    Minimal data (idempotent):
    - services catalog
    - starter products
    - one vet and one admin account (dev credentials from config)
    """
    with db_session() as s:
        _seed_catalog(s)
        if with_staff:
            _seed_staff(s)
