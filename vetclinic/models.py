from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .auth_models import User, _values, new_uuid
from .db import Base


class AppointmentStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


ACTIVE_APPOINTMENT_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
)


class AppointmentType(enum.Enum):
    WELLNESS = "wellness"
    EMERGENCY = "emergency"
    FOLLOW_UP = "follow_up"
    SURGERY = "surgery"
    VACCINATION = "vaccination"
    DENTAL = "dental"
    CONSULTATION = "consultation"
    GROOMING = "grooming"


class EmploymentStatus(enum.Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    TERMINATED = "terminated"


class Gender(enum.Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class PaymentStatus(enum.Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    REFUNDED = "refunded"


class PaymentMethod(enum.Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    ONLINE = "online"
    INSURANCE = "insurance"
    CHECK = "check"
    GCASH = "gcash"


class NotificationType(enum.Enum):
    APPOINTMENT_REMINDER = "appointment_reminder"
    TEST_RESULTS = "test_results"
    PAYMENT_DUE = "payment_due"
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    GENERAL = "general"


class NotificationStatus(enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class CommunicationPreference(enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    PHONE = "phone"
    ANY = "any"


class LineItemType(enum.Enum):
    SERVICE = "service"
    PRODUCT = "product"


class PrescriptionStatus(enum.Enum):
    PENDING = "pending"
    DISPENSED = "dispensed"
    CANCELLED = "cancelled"


class TriageLevel(enum.Enum):
    ROUTINE = "routine"
    URGENT = "urgent"
    CRITICAL = "critical"


def _enum(enum_cls):
    return Enum(enum_cls, values_callable=_values, native_enum=False)


MONEY = Numeric(10, 2)


# =========================
# Profiles
# =========================
class ClientProfile(Base):
    """Pet owner."""
    __tablename__ = "client_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    alternate_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address_line1: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    address_line2: Mapped[str | None] = mapped_column(String(120), nullable=True)
    city: Mapped[str] = mapped_column(String(80), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(80), nullable=False, default="")
    zip_code: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(60), nullable=False, default="Philippines")
    communication_preference: Mapped[CommunicationPreference] = mapped_column(
        _enum(CommunicationPreference), default=CommunicationPreference.EMAIL, nullable=False
    )
    registration_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    user: Mapped["User"] = relationship()
    pets: Mapped[list["Pet"]] = relationship(back_populates="owner")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class VeterinarianProfile(Base):
    __tablename__ = "veterinarian_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    license_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    specializations: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    certifications: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    years_of_experience: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    biography: Mapped[str | None] = mapped_column(Text, nullable=True)
    consultation_fee: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    employment_status: Mapped[EmploymentStatus] = mapped_column(
        _enum(EmploymentStatus), default=EmploymentStatus.FULL_TIME, nullable=False
    )
    hire_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    user: Mapped["User"] = relationship()
    appointments: Mapped[list["Appointment"]] = relationship(back_populates="veterinarian")

    @property
    def full_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}"


class AdminProfile(Base):
    __tablename__ = "admin_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    position: Mapped[str] = mapped_column(String(80), default="Staff", nullable=False)
    department: Mapped[str] = mapped_column(String(80), default="General", nullable=False)
    access_level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    hire_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    user: Mapped["User"] = relationship()


# =========================
# Pets
# =========================
class Pet(Base):
    __tablename__ = "pets"
    __table_args__ = (CheckConstraint("weight IS NULL OR weight > 0", name="ck_pet_weight_positive"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    owner_id: Mapped[str] = mapped_column(ForeignKey("client_profiles.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(60), nullable=False)
    species: Mapped[str] = mapped_column(String(40), nullable=False)
    breed: Mapped[str | None] = mapped_column(String(60), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[Gender] = mapped_column(_enum(Gender), default=Gender.UNKNOWN, nullable=False)
    color: Mapped[str | None] = mapped_column(String(40), nullable=True)
    weight: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    microchip_number: Mapped[str | None] = mapped_column(String(40), unique=True, nullable=True)
    is_spayed_neutered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    special_needs: Mapped[str | None] = mapped_column(Text, nullable=True)
    behavioral_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_medical_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    owner: Mapped["ClientProfile"] = relationship(back_populates="pets")
    appointments: Mapped[list["Appointment"]] = relationship(back_populates="pet")

    def __repr__(self) -> str:
        return f"Pet({self.name}, {self.species})"


# =========================
# Catalog
# =========================
class Service(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    appointment_type: Mapped[AppointmentType] = mapped_column(_enum(AppointmentType), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    product_name: Mapped[str] = mapped_column(String(120), nullable=False)
    category: Mapped[str] = mapped_column(String(60), nullable=False)
    sku: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.low_stock_threshold


# =========================
# Appointments
# =========================
class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (CheckConstraint("scheduled_end > scheduled_start", name="ck_appointment_interval"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    appointment_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)

    pet_id: Mapped[str] = mapped_column(ForeignKey("pets.id"), nullable=False)
    veterinarian_id: Mapped[str] = mapped_column(ForeignKey("veterinarian_profiles.id"), nullable=False)
    service_id: Mapped[int | None] = mapped_column(ForeignKey("services.id"), nullable=True)
    booked_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    appointment_type: Mapped[AppointmentType] = mapped_column(
        _enum(AppointmentType), default=AppointmentType.CONSULTATION, nullable=False
    )
    appointment_status: Mapped[AppointmentStatus] = mapped_column(
        _enum(AppointmentStatus), default=AppointmentStatus.PENDING, nullable=False
    )

    scheduled_start: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    scheduled_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    actual_start: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    reason_for_visit: Mapped[str] = mapped_column(Text, nullable=False, default="General appointment")
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    is_emergency: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    checked_out_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    pet: Mapped["Pet"] = relationship(back_populates="appointments")
    veterinarian: Mapped["VeterinarianProfile"] = relationship(back_populates="appointments")
    service: Mapped["Service | None"] = relationship()
    triage: Mapped["TriageRecord | None"] = relationship(back_populates="appointment", uselist=False)
    medical_record: Mapped["MedicalRecord | None"] = relationship(back_populates="appointment", uselist=False)


# =========================
# Clinical
# =========================
class TriageRecord(Base):
    __tablename__ = "triage_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    appointment_id: Mapped[str] = mapped_column(ForeignKey("appointments.id"), unique=True, nullable=False)
    pet_id: Mapped[str] = mapped_column(ForeignKey("pets.id"), nullable=False)
    weight: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    temperature: Mapped[Decimal] = mapped_column(Numeric(4, 1), nullable=False)
    heart_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    respiratory_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mucous_membrane: Mapped[str | None] = mapped_column(String(40), nullable=True)
    triage_level: Mapped[TriageLevel] = mapped_column(_enum(TriageLevel), default=TriageLevel.ROUTINE, nullable=False)
    chief_complaint: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    appointment: Mapped["Appointment"] = relationship(back_populates="triage")


class MedicalRecord(Base):
    __tablename__ = "medical_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    record_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    appointment_id: Mapped[str | None] = mapped_column(ForeignKey("appointments.id"), unique=True, nullable=True)
    pet_id: Mapped[str] = mapped_column(ForeignKey("pets.id"), nullable=False)
    veterinarian_id: Mapped[str] = mapped_column(ForeignKey("veterinarian_profiles.id"), nullable=False)
    visit_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    chief_complaint: Mapped[str] = mapped_column(Text, default="", nullable=False)
    examination_findings: Mapped[str] = mapped_column(Text, default="", nullable=False)
    diagnosis: Mapped[str] = mapped_column(Text, nullable=False)
    treatment_plan: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    appointment: Mapped["Appointment | None"] = relationship(back_populates="medical_record")
    pet: Mapped["Pet"] = relationship()
    veterinarian: Mapped["VeterinarianProfile"] = relationship()


class Prescription(Base):
    __tablename__ = "prescriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    appointment_id: Mapped[str] = mapped_column(ForeignKey("appointments.id"), nullable=False)
    pet_id: Mapped[str] = mapped_column(ForeignKey("pets.id"), nullable=False)
    veterinarian_id: Mapped[str] = mapped_column(ForeignKey("veterinarian_profiles.id"), nullable=False)
    medication_name: Mapped[str] = mapped_column(String(120), nullable=False)
    dosage: Mapped[str] = mapped_column(String(80), nullable=False)
    frequency: Mapped[str] = mapped_column(String(80), nullable=False)
    duration: Mapped[str | None] = mapped_column(String(80), nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[PrescriptionStatus] = mapped_column(
        _enum(PrescriptionStatus), default=PrescriptionStatus.PENDING, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)


class Vaccination(Base):
    __tablename__ = "vaccinations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    pet_id: Mapped[str] = mapped_column(ForeignKey("pets.id"), nullable=False)
    veterinarian_id: Mapped[str | None] = mapped_column(ForeignKey("veterinarian_profiles.id"), nullable=True)
    vaccine_name: Mapped[str] = mapped_column(String(120), nullable=False)
    vaccination_date: Mapped[date] = mapped_column(Date, nullable=False)
    next_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    batch_number: Mapped[str | None] = mapped_column(String(60), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    pet: Mapped["Pet"] = relationship()


# =========================
# Billing
# =========================
class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    invoice_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    client_id: Mapped[str | None] = mapped_column(ForeignKey("client_profiles.id"), nullable=True)
    walk_in_customer_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    issue_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    client: Mapped["ClientProfile | None"] = relationship()
    line_items: Mapped[list["InvoiceLineItem"]] = relationship(back_populates="invoice", cascade="all, delete-orphan")
    payments: Mapped[list["Payment"]] = relationship(back_populates="invoice", cascade="all, delete-orphan")

    @property
    def customer_name(self) -> str:
        if self.client is not None:
            return self.client.full_name
        return self.walk_in_customer_name or "Walk-in Customer"

    @property
    def balance_due(self) -> Decimal:
        return max(self.total_amount - self.amount_paid, Decimal("0"))


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[str] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    item_type: Mapped[LineItemType] = mapped_column(_enum(LineItemType), nullable=False)
    service_id: Mapped[int | None] = mapped_column(ForeignKey("services.id"), nullable=True)
    product_id: Mapped[str | None] = mapped_column(ForeignKey("products.id"), nullable=True)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="line_items")
    service: Mapped["Service | None"] = relationship()
    product: Mapped["Product | None"] = relationship()


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    payment_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    invoice_id: Mapped[str] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(_enum(PaymentMethod), nullable=False)
    transaction_reference: Mapped[str | None] = mapped_column(String(80), nullable=True)
    cash_tendered: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    change_due: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="payments")


# =========================
# Notifications
# =========================
class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    recipient_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    notification_type: Mapped[NotificationType] = mapped_column(_enum(NotificationType), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(200), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_status: Mapped[NotificationStatus] = mapped_column(
        _enum(NotificationStatus), default=NotificationStatus.PENDING, nullable=False
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # optional: what the notification refers to (e.g. "appointment", <id>)
    related_entity_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    related_entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
